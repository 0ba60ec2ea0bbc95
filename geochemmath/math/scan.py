"""
Combinatorial correlation scan over the numeric columns of a dataset.

Every unordered pair of columns is paired row-wise, analysed with
calculate_statistics, and kept when at least one requested method clears
both the correlation and the significance threshold. Pairs are independent,
so callers may shard ``column_pairs`` across workers and call ``scan_pair``
on each shard.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from geochemmath.math.corr import CorrelationResult, calculate_statistics, normalize_methods
from geochemmath.math.sample_matrix import Rows, paired_columns, to_records
from geochemmath.utils.general import distinct, round_to

logger = logging.getLogger(__name__)

STRONG_CORRELATION = 0.7
MODERATE_CORRELATION = 0.4
DUPLICATE_CORRELATION = 0.99

# column name suffix pairs that usually mean the same quantity in two units
UNIT_VARIANTS = [
    (re.compile(r'ppm$', re.I), re.compile(r'ppb$', re.I)),
    (re.compile(r'mg/l$', re.I), re.compile(r'g/l$', re.I)),
    (re.compile(r'wt%$', re.I), re.compile(r'mol%$', re.I)),
    (re.compile(r'^total', re.I), re.compile(r'^sum', re.I)),
]


@dataclass
class ScanEntry:
    """One analysed column pair."""
    x_variable: str
    y_variable: str
    statistics: CorrelationResult
    meets_criteria: bool = False
    tags: List[str] = field(default_factory=list)

    def strength(self) -> float:
        """Largest |coefficient| among the computed methods."""
        values = [abs(v) for v in (self.statistics.pearson_corr,
                                   self.statistics.spearman_corr) if v is not None]
        return max(values) if values else 0.0

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'x_variable': self.x_variable,
            'y_variable': self.y_variable,
            'meets_criteria': self.meets_criteria,
            'tags': list(self.tags)
        }
        result.update(self.statistics.to_dict())
        return result


@dataclass
class ScanSummary:
    """Scan results with the bookkeeping a report needs."""
    total_combinations: int
    significant_combinations: int
    failed_combinations: int
    results: List[ScanEntry]
    execution_time: float
    options: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_combinations': self.total_combinations,
            'significant_combinations': self.significant_combinations,
            'failed_combinations': self.failed_combinations,
            'execution_time': self.execution_time,
            'options': dict(self.options),
            'results': [entry.to_dict() for entry in self.results]
        }


def column_pairs(columns: Sequence[str]) -> Iterator[Tuple[str, str]]:
    """
    Every unordered pair of distinct columns, in column order.

    Args:
        columns: Column names

    Yields:
        (first, second) tuples with first listed before second
    """
    columns = distinct(columns)
    for i in range(len(columns)):
        for j in range(i + 1, len(columns)):
            yield columns[i], columns[j]


def meets_criteria(stats: CorrelationResult,
                   methods: Iterable[str],
                   threshold: float,
                   p_threshold: float) -> bool:
    """
    Whether some method has |r| >= threshold and p <= p_threshold.

    Methods whose coefficient or p-value is missing never qualify.
    """
    if stats.error:
        return False
    for method in methods:
        corr = stats.corr(method)
        p = stats.p_value(method)
        if corr is None or p is None:
            continue
        if abs(corr) >= threshold and p <= p_threshold:
            return True
    return False


def common_prefix_length(a: str, b: str) -> int:
    i = 0
    while i < len(a) and i < len(b) and a[i] == b[i]:
        i += 1
    return i


def is_duplicate_pair(pearson_corr: Optional[float], x_col: str, y_col: str) -> bool:
    """
    Near-perfect correlation between columns that look like the same quantity.

    Args:
        pearson_corr: Pearson coefficient of the pair
        x_col: First column name
        y_col: Second column name

    Returns:
        True for unit variants or names sharing more than 90% of a prefix
    """
    if pearson_corr is None or abs(pearson_corr) <= DUPLICATE_CORRELATION:
        return False

    for pattern1, pattern2 in UNIT_VARIANTS:
        if (pattern1.search(x_col) and pattern2.search(y_col)) or \
           (pattern2.search(x_col) and pattern1.search(y_col)):
            return True

    x_lower = x_col.lower()
    y_lower = y_col.lower()
    max_length = max(len(x_lower), len(y_lower))
    if max_length == 0:
        return False
    return common_prefix_length(x_lower, y_lower) / max_length > 0.9


def relationship_tags(stats: CorrelationResult, x_col: str, y_col: str) -> List[str]:
    """
    Descriptive tags for a pair, used to rank and annotate scan output.

    Args:
        stats: Pair statistics
        x_col: First column name
        y_col: Second column name

    Returns:
        List of tags such as 'strong-positive', 'non-linear', 'duplicate'
    """
    tags = []
    pearson = stats.pearson_corr
    spearman = stats.spearman_corr

    if is_duplicate_pair(pearson, x_col, y_col):
        tags.append('duplicate')

    if pearson is not None:
        abs_pearson = abs(pearson)
        if abs_pearson >= STRONG_CORRELATION:
            tags.append('strong-positive' if pearson > 0 else 'strong-negative')
        elif abs_pearson >= MODERATE_CORRELATION:
            tags.append('moderate')

    if pearson is not None and spearman is not None:
        abs_pearson = abs(pearson)
        abs_spearman = abs(spearman)
        if abs_spearman > STRONG_CORRELATION and abs_spearman - abs_pearson > 0.1:
            tags.append('non-linear')
            if abs_pearson < 0.6:
                tags.append('log-scale')

    return tags


def scan_pair(rows: Rows,
              x_col: str,
              y_col: str,
              threshold: float = 0.5,
              p_threshold: float = 0.05,
              methods: Sequence[str] = ('pearson',),
              p_value_method: str = 'exact',
              tie_method: str = 'average') -> ScanEntry:
    """
    Analyse one column pair of a dataset.

    Args:
        rows: Dataset rows
        x_col: First column
        y_col: Second column
        threshold: Minimum |r|
        p_threshold: Maximum p-value
        methods: Correlation methods
        p_value_method: 'exact' or 'legacy'
        tie_method: Spearman tie handling

    Returns:
        ScanEntry; a pair with too few rows has ``statistics.error`` set
    """
    methods = normalize_methods(methods)
    x_clean, y_clean = paired_columns(rows, x_col, y_col)
    stats = calculate_statistics(x_clean, y_clean, methods, p_value_method, tie_method)
    return ScanEntry(
        x_variable=x_col,
        y_variable=y_col,
        statistics=stats,
        meets_criteria=meets_criteria(stats, methods, threshold, p_threshold),
        tags=[] if stats.error else relationship_tags(stats, x_col, y_col)
    )


def scan_pairs(rows: Rows,
               pairs: Iterable[Tuple[str, str]],
               threshold: float = 0.5,
               p_threshold: float = 0.05,
               methods: Sequence[str] = ('pearson',),
               p_value_method: str = 'exact',
               tie_method: str = 'average') -> List[ScanEntry]:
    """
    Analyse a batch of column pairs, returning every entry.

    Failed pairs are kept with their error so the caller can count them.
    """
    records = to_records(rows)
    methods = normalize_methods(methods)
    entries = []
    for x_col, y_col in pairs:
        entry = scan_pair(records, x_col, y_col, threshold, p_threshold,
                          methods, p_value_method, tie_method)
        if entry.statistics.error:
            logger.warning(f"Skipping {x_col} vs {y_col}: {entry.statistics.error}")
        entries.append(entry)
    return entries


def full_scan_analysis(rows: Rows,
                       numeric_columns: Sequence[str],
                       threshold: float = 0.5,
                       p_threshold: float = 0.05,
                       methods: Sequence[str] = ('pearson',),
                       p_value_method: str = 'exact',
                       tie_method: str = 'average',
                       exclude_columns: Optional[Iterable[str]] = None) -> List[ScanEntry]:
    """
    Scan every column pair and keep the ones meeting the criteria.

    Args:
        rows: Dataset rows
        numeric_columns: Columns to pair up
        threshold: Minimum |r| for a method to count
        p_threshold: Maximum p-value for a method to count
        methods: Correlation methods
        p_value_method: 'exact' or 'legacy'
        tie_method: Spearman tie handling
        exclude_columns: Columns left out of the scan

    Returns:
        Entries meeting the criteria, in pair order
    """
    return scan_summary(rows, numeric_columns, threshold, p_threshold, methods,
                        p_value_method, tie_method, exclude_columns,
                        sort_results=False).results


def scan_summary(rows: Rows,
                 numeric_columns: Sequence[str],
                 threshold: float = 0.5,
                 p_threshold: float = 0.05,
                 methods: Sequence[str] = ('pearson',),
                 p_value_method: str = 'exact',
                 tie_method: str = 'average',
                 exclude_columns: Optional[Iterable[str]] = None,
                 sort_results: bool = True) -> ScanSummary:
    """
    Run the full scan and report totals and timing.

    Args:
        See full_scan_analysis.
        sort_results: Order surviving entries strongest first

    Returns:
        ScanSummary
    """
    start_time = time.time()
    methods = normalize_methods(methods)
    excluded = set(exclude_columns or [])
    columns = [col for col in numeric_columns if col not in excluded]
    pairs = list(column_pairs(columns))

    logger.info(f"Scanning {len(pairs)} column pairs across {len(columns)} columns")

    entries = scan_pairs(rows, pairs, threshold, p_threshold, methods,
                         p_value_method, tie_method)
    failed = sum(1 for entry in entries if entry.statistics.error)
    survivors = [entry for entry in entries if entry.meets_criteria]
    if sort_results:
        survivors.sort(key=lambda entry: entry.strength(), reverse=True)

    elapsed = time.time() - start_time
    logger.info(
        f"Scan finished in {elapsed:.3f}s: {len(survivors)} of {len(pairs)} pairs "
        f"meet |r| >= {threshold}, p <= {p_threshold} ({failed} failed)"
    )

    return ScanSummary(
        total_combinations=len(pairs),
        significant_combinations=len(survivors),
        failed_combinations=failed,
        results=survivors,
        execution_time=round_to(elapsed, 4),
        options={
            'threshold': threshold,
            'p_threshold': p_threshold,
            'methods': list(methods),
            'p_value_method': p_value_method,
            'tie_method': tie_method,
            'exclude_columns': sorted(excluded)
        }
    )
