"""
Suggest variable groups worth running through PCA.

Two sources feed the suggestions: groups of mutually correlated columns
found in a correlation matrix, and a fixed table of geochemically related
element groups matched against the column names.

The variance figures attached to a suggestion are a rough preview derived
from average correlation. They are not PCA output and must not be reported
as eigenvalues; run perform_pca on the suggested variables for real ones.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

MIN_GROUP_SIZE = 3
PROFILE_WEIGHTS = (0.4, 0.3, 0.2)
DOMAIN_CONFIDENCE = 0.75

DOMAIN_GROUPS = {
    'Major oxides': ['SiO2', 'TiO2', 'Al2O3', 'Fe2O3', 'FeO', 'MnO', 'MgO',
                     'CaO', 'Na2O', 'K2O', 'P2O5'],
    'Light rare earth elements': ['La', 'Ce', 'Pr', 'Nd', 'Sm', 'Eu'],
    'Heavy rare earth elements': ['Gd', 'Tb', 'Dy', 'Ho', 'Er', 'Tm', 'Yb', 'Lu'],
    'High field strength elements': ['Zr', 'Hf', 'Nb', 'Ta', 'Ti', 'Y', 'Th', 'U'],
    'Large ion lithophile elements': ['Rb', 'Sr', 'Ba', 'Cs', 'K', 'Pb'],
    'Transition metals': ['Sc', 'V', 'Cr', 'Co', 'Ni', 'Cu', 'Zn'],
    'Chalcophile and ore metals': ['Cu', 'Pb', 'Zn', 'Ag', 'As', 'Sb', 'Bi', 'Mo', 'Au'],
}

_LEADING_TOKEN = re.compile(r'[A-Za-z][A-Za-z0-9]*')


@dataclass
class EstimatedVarianceProfile:
    """Heuristic pre-PCA variance preview. Not computed from the data's eigenstructure."""
    estimated_eigenvalues: List[float]
    estimated_variance: List[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'estimated_eigenvalues': list(self.estimated_eigenvalues),
            'estimated_variance': list(self.estimated_variance)
        }


@dataclass
class PCASuggestion:
    """A proposed variable set for PCA."""
    variables: List[str]
    source: str
    confidence: float
    reason: str
    group_name: Optional[str] = None
    average_correlation: Optional[float] = None
    estimated_profile: Optional[EstimatedVarianceProfile] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'variables': list(self.variables),
            'source': self.source,
            'confidence': self.confidence,
            'reason': self.reason,
            'group_name': self.group_name,
            'average_correlation': self.average_correlation,
            'estimated_profile': self.estimated_profile.to_dict() if self.estimated_profile else None
        }


def abs_corr(matrix: Mapping[str, Mapping[str, float]], a: str, b: str) -> float:
    """|r| between two variables, 0.0 when the matrix lacks the entry."""
    return abs(matrix.get(a, {}).get(b, 0.0))


def average_pairwise_correlation(matrix: Mapping[str, Mapping[str, float]],
                                 variables: Sequence[str]) -> float:
    """
    Mean |r| over all unordered pairs in a variable set.

    Args:
        matrix: Correlation matrix
        variables: Variables in the set

    Returns:
        Mean absolute correlation, 0.0 for fewer than two variables
    """
    total = 0.0
    count = 0
    for i, a in enumerate(variables):
        for b in variables[i + 1:]:
            total += abs_corr(matrix, a, b)
            count += 1
    return total / count if count else 0.0


def estimate_variance_profile(group_size: int, avg_corr: float) -> EstimatedVarianceProfile:
    """
    Preview the variance a group might concentrate in three components.

    The group's total standardized variance (its size) is scaled by the
    average correlation and split with fixed 0.4 / 0.3 / 0.2 weights.

    Args:
        group_size: Number of variables in the group
        avg_corr: Average pairwise |r| in the group

    Returns:
        EstimatedVarianceProfile
    """
    eigenvalues = [group_size * avg_corr * w for w in PROFILE_WEIGHTS]
    variance = [avg_corr * w * 100 for w in PROFILE_WEIGHTS]
    return EstimatedVarianceProfile(eigenvalues, variance)


def correlated_groups(matrix: Mapping[str, Mapping[str, float]],
                      variables: Sequence[str],
                      threshold: float = 0.6) -> List[List[str]]:
    """
    Greedy partition of variables by correlation with a seed variable.

    Each unprocessed variable, in order, seeds a group with every other
    unprocessed variable whose |r| with the seed exceeds the threshold.
    Groups smaller than 3 are dropped, but their members stay processed.

    Args:
        matrix: Correlation matrix
        variables: Variables to partition
        threshold: |r| that must be exceeded

    Returns:
        List of groups (each a list of variable names)
    """
    used = set()
    groups = []
    for seed in variables:
        if seed in used:
            continue
        group = [seed]
        used.add(seed)
        for other in variables:
            if other in used:
                continue
            if abs_corr(matrix, seed, other) > threshold:
                group.append(other)
                used.add(other)
        if len(group) >= MIN_GROUP_SIZE:
            groups.append(group)
    return groups


def chemical_token(column: str) -> str:
    """
    Leading chemical token of a column name, lower-cased.

    'SiO2 (wt%)' -> 'sio2', 'La_ppm' -> 'la'
    """
    match = _LEADING_TOKEN.match(column.strip())
    if not match:
        return ''
    token = match.group(0)
    return token.lower()


def domain_group_matches(variables: Sequence[str],
                         groups: Optional[Mapping[str, Sequence[str]]] = None) -> Dict[str, List[str]]:
    """
    Columns matching each domain group, in group table order.

    Args:
        variables: Column names
        groups: Group table (defaults to DOMAIN_GROUPS)

    Returns:
        Mapping from group name to matching columns (only groups with >= 3)
    """
    groups = DOMAIN_GROUPS if groups is None else groups
    by_token = {}
    for var in variables:
        by_token.setdefault(chemical_token(var), []).append(var)

    matches = {}
    for name, members in groups.items():
        found = []
        for member in members:
            for var in by_token.get(member.lower(), []):
                if var not in found:
                    found.append(var)
        if len(found) >= MIN_GROUP_SIZE:
            matches[name] = found
    return matches


def suggest_pca_variables(matrix: Mapping[str, Mapping[str, float]],
                          variables: Sequence[str],
                          threshold: float = 0.6,
                          domain_confidence: float = DOMAIN_CONFIDENCE,
                          domain_groups: Optional[Mapping[str, Sequence[str]]] = None,
                          max_suggestions: Optional[int] = None) -> List[PCASuggestion]:
    """
    Propose variable sets for PCA.

    Args:
        matrix: Correlation matrix (mapping of mappings)
        variables: Candidate variables
        threshold: |r| a variable must exceed to join a seed's group
        domain_confidence: Fixed confidence for domain-table suggestions
        domain_groups: Domain table override
        max_suggestions: Keep only the first N after sorting

    Returns:
        Suggestions sorted by descending confidence
    """
    suggestions = []

    for group in correlated_groups(matrix, variables, threshold):
        avg_corr = average_pairwise_correlation(matrix, group)
        profile = estimate_variance_profile(len(group), avg_corr)
        suggestions.append(PCASuggestion(
            variables=group,
            source='correlation',
            confidence=avg_corr,
            reason=(f"{len(group)} variables correlate with {group[0]} above |r| = {threshold} "
                    f"(mean |r| = {avg_corr:.2f}); estimated PC1 share about "
                    f"{profile.estimated_variance[0]:.0f}%"),
            average_correlation=avg_corr,
            estimated_profile=profile
        ))

    for name, members in domain_group_matches(variables, domain_groups).items():
        avg_corr = average_pairwise_correlation(matrix, members)
        suggestions.append(PCASuggestion(
            variables=members,
            source='domain',
            confidence=domain_confidence,
            reason=f"{len(members)} columns belong to the {name.lower()} group",
            group_name=name,
            average_correlation=avg_corr
        ))

    suggestions.sort(key=lambda s: s.confidence, reverse=True)
    logger.debug(f"Generated {len(suggestions)} PCA suggestions from {len(variables)} variables")

    if max_suggestions is not None:
        suggestions = suggestions[:max_suggestions]
    return suggestions
