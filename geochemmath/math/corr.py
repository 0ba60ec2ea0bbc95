"""
Correlation and regression for pairs of geochemical variables.

This module provides Pearson and Spearman correlation with significance,
simple linear regression, and the correlation matrix used by the variable
grouping heuristic.
"""

import logging
import numpy as np
import pandas as pd
from dataclasses import dataclass, fields
from scipy import stats as scipy_stats
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from geochemmath.math.errors import InsufficientDataError, UnsupportedMethodError
from geochemmath.math.sample_matrix import Rows, pair_values, parse_number, to_records
from geochemmath.math.stats import correlation_p_value

logger = logging.getLogger(__name__)

MIN_PAIRS = 3
SUPPORTED_METHODS = ('pearson', 'spearman')
KNOWN_METHODS = ('pearson', 'spearman', 'kendall')
TIE_METHODS = ('average', 'ordinal')


@dataclass
class CorrelationResult:
    """
    Outcome of one pairwise analysis.

    Fields stay None when they were not requested or could not be computed;
    a failed pair carries only ``error``.
    """
    pearson_corr: Optional[float] = None
    pearson_p: Optional[float] = None
    spearman_corr: Optional[float] = None
    spearman_p: Optional[float] = None
    r_squared: Optional[float] = None
    linear_slope: Optional[float] = None
    linear_intercept: Optional[float] = None
    n: Optional[int] = None
    error: Optional[str] = None

    def corr(self, method: str) -> Optional[float]:
        """Coefficient for a method name."""
        return getattr(self, f"{method}_corr", None)

    def p_value(self, method: str) -> Optional[float]:
        """p-value for a method name."""
        return getattr(self, f"{method}_p", None)

    def to_dict(self) -> Dict[str, Any]:
        """Dictionary of the fields that were computed."""
        return {f.name: getattr(self, f.name) for f in fields(self)
                if getattr(self, f.name) is not None}


def normalize_methods(methods: Iterable[str]) -> Tuple[str, ...]:
    """
    Validate requested correlation methods.

    Args:
        methods: Method names

    Returns:
        Tuple of lower-cased method names, duplicates removed

    Raises:
        UnsupportedMethodError: for 'kendall', which has no implementation
        ValueError: for names outside the known vocabulary
    """
    if isinstance(methods, str):
        methods = (methods,)

    result = []
    for method in methods:
        name = str(method).lower()
        if name not in KNOWN_METHODS:
            raise ValueError(f"Unknown correlation method: {method}")
        if name not in SUPPORTED_METHODS:
            raise UnsupportedMethodError(
                f"Correlation method '{name}' is not implemented"
            )
        if name not in result:
            result.append(name)
    return tuple(result)


def pearson_correlation(x: np.ndarray, y: np.ndarray) -> Optional[float]:
    """
    Sample Pearson correlation coefficient.

    Args:
        x: First array
        y: Second array, same length

    Returns:
        Coefficient in [-1, 1], or None when either input has no variance
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.size < 2:
        return None

    dx = x - x.mean()
    dy = y - y.mean()
    sxx = float(np.dot(dx, dx))
    syy = float(np.dot(dy, dy))
    if sxx == 0 or syy == 0:
        return None

    r = float(np.dot(dx, dy)) / np.sqrt(sxx * syy)
    return float(np.clip(r, -1.0, 1.0))


def rank_values(values: np.ndarray, tie_method: str = 'average') -> np.ndarray:
    """
    Rank values starting at 1.

    Args:
        values: Values to rank
        tie_method: 'average' gives tied values their mean rank; 'ordinal'
            gives ties consecutive ranks in order of appearance

    Returns:
        Array of ranks
    """
    if tie_method not in TIE_METHODS:
        raise ValueError(f"Unknown tie method: {tie_method}")
    return scipy_stats.rankdata(values, method=tie_method)


def linear_regression(x: np.ndarray, y: np.ndarray) -> Optional[Tuple[float, float]]:
    """
    Ordinary least squares fit of y = slope * x + intercept.

    Args:
        x: Predictor values
        y: Response values

    Returns:
        Tuple of (slope, intercept), or None when x is constant
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    dx = x - x.mean()
    sxx = float(np.dot(dx, dx))
    if sxx == 0:
        return None

    slope = float(np.dot(dx, y - y.mean())) / sxx
    intercept = float(y.mean() - slope * x.mean())
    return slope, intercept


def r_squared(x: np.ndarray, y: np.ndarray, slope: float, intercept: float) -> Optional[float]:
    """
    Coefficient of determination of a fitted line.

    Args:
        x: Predictor values
        y: Response values
        slope: Line slope
        intercept: Line intercept

    Returns:
        R^2, or None when y has no variance
    """
    y = np.asarray(y, dtype=float)
    residuals = y - (slope * np.asarray(x, dtype=float) + intercept)
    ss_res = float(np.dot(residuals, residuals))
    ss_tot = float(np.sum((y - y.mean()) ** 2))
    if ss_tot == 0:
        return None
    return 1 - ss_res / ss_tot


def pairwise_statistics(x: Sequence[Any],
                        y: Sequence[Any],
                        methods: Iterable[str] = ('pearson', 'spearman'),
                        p_value_method: str = 'exact',
                        tie_method: str = 'average') -> CorrelationResult:
    """
    Correlation, significance and regression for one variable pair.

    Values are paired by index and pairs with a non-finite member dropped
    before anything is computed.

    Args:
        x: First variable
        y: Second variable
        methods: Correlation methods to compute
        p_value_method: 'exact' or 'legacy' (see stats.correlation_p_value)
        tie_method: Rank tie handling for Spearman

    Returns:
        CorrelationResult

    Raises:
        InsufficientDataError: if fewer than 3 valid pairs remain
        UnsupportedMethodError: if 'kendall' is requested
    """
    methods = normalize_methods(methods)
    x_clean, y_clean = pair_values(x, y)
    n = len(x_clean)

    if n < MIN_PAIRS:
        raise InsufficientDataError(
            f"Not enough valid data points: {n} pairs (need at least {MIN_PAIRS})"
        )

    result = CorrelationResult(n=n)

    if 'pearson' in methods:
        r = pearson_correlation(x_clean, y_clean)
        if r is None:
            logger.debug("Pearson correlation undefined for constant input")
        else:
            result.pearson_corr = r
            result.pearson_p = correlation_p_value(r, n, p_value_method)

    if 'spearman' in methods:
        rho = pearson_correlation(rank_values(x_clean, tie_method),
                                  rank_values(y_clean, tie_method))
        if rho is None:
            logger.debug("Spearman correlation undefined for constant ranks")
        else:
            result.spearman_corr = rho
            result.spearman_p = correlation_p_value(rho, n, p_value_method)

    if n > 2:
        fit = linear_regression(x_clean, y_clean)
        if fit is not None:
            result.linear_slope, result.linear_intercept = fit
            result.r_squared = r_squared(x_clean, y_clean, *fit)

    return result


def calculate_statistics(x: Sequence[Any],
                         y: Sequence[Any],
                         methods: Iterable[str] = ('pearson', 'spearman'),
                         p_value_method: str = 'exact',
                         tie_method: str = 'average') -> CorrelationResult:
    """
    Same as pairwise_statistics, but a pair with too little data comes back
    as a result with ``error`` set instead of raising.
    """
    try:
        return pairwise_statistics(x, y, methods, p_value_method, tie_method)
    except InsufficientDataError as e:
        return CorrelationResult(error=str(e))


def correlation_matrix(data: Mapping[str, Sequence[Any]]) -> Dict[str, Dict[str, float]]:
    """
    Pearson correlation for every pair of variables.

    Each pair uses the rows where both values are present. Pairs that cannot
    be computed (constant input, fewer than 3 shared rows) get 0.0.

    Args:
        data: Mapping from variable name to its row-aligned values

    Returns:
        Symmetric mapping of mappings with 1.0 on the diagonal
    """
    variables = list(data.keys())
    parsed = {}
    for var in variables:
        numbers = [parse_number(value) for value in data[var]]
        parsed[var] = [np.nan if number is None else number for number in numbers]
    frame = pd.DataFrame(parsed, columns=variables, dtype=float)

    corr = frame.corr(method='pearson', min_periods=MIN_PAIRS)
    corr = corr.fillna(0.0)

    matrix = {}
    for var1 in variables:
        matrix[var1] = {}
        for var2 in variables:
            if var1 == var2:
                matrix[var1][var2] = 1.0
            else:
                value = float(np.clip(corr.at[var1, var2], -1.0, 1.0))
                matrix[var1][var2] = value
    # pandas computes each triangle separately; pin exact symmetry
    for i, var1 in enumerate(variables):
        for var2 in variables[i + 1:]:
            matrix[var2][var1] = matrix[var1][var2]
    return matrix


def dataset_correlation_matrix(rows: Rows,
                               variables: Sequence[str]) -> Dict[str, Dict[str, float]]:
    """
    Correlation matrix for columns of a dataset.

    Args:
        rows: Dataset rows
        variables: Column names

    Returns:
        Symmetric mapping of mappings, see correlation_matrix
    """
    records = to_records(rows)
    return correlation_matrix({var: [row.get(var) for row in records] for var in variables})


def matrix_to_array(matrix: Mapping[str, Mapping[str, float]],
                    variables: Sequence[str]) -> np.ndarray:
    """
    Convert a mapping-of-mappings correlation matrix to a square array.

    Missing entries become 0.0.
    """
    return np.array([[matrix.get(a, {}).get(b, 0.0) for b in variables] for a in variables],
                    dtype=float)
