"""
Statistical functions for the geochemmath engine.

This module provides descriptive statistics for a single column and the
significance routines shared by the correlation code.
"""

import math
import numpy as np
from dataclasses import asdict, dataclass, field
from scipy import stats as scipy_stats
from typing import Any, Dict, List, Sequence

from geochemmath.math.errors import EmptyInputError

P_VALUE_METHODS = ('exact', 'legacy')


@dataclass
class DescriptiveStats:
    """Summary of one numeric column."""
    count: int
    mean: float
    median: float
    standard_deviation: float
    variance: float
    skewness: float
    kurtosis: float
    q25: float
    q75: float
    iqr: float
    lower_fence: float
    upper_fence: float
    min: float
    max: float
    outliers: List[float] = field(default_factory=list)
    # |skewness| < 1 and |kurtosis| < 3. A shape heuristic, not a normality test.
    is_normal: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def finite_values(values: Sequence[Any]) -> np.ndarray:
    """
    Drop NaN and infinite entries.

    Args:
        values: Sequence of numbers

    Returns:
        Float array of the finite entries, in input order
    """
    arr = np.asarray(values, dtype=float).ravel()
    return arr[np.isfinite(arr)]


def skewness(values: np.ndarray, mean: float, std_dev: float) -> float:
    """
    Third standardized moment (biased estimator).

    Args:
        values: Finite values
        mean: Mean of values
        std_dev: Sample standard deviation of values

    Returns:
        Skewness, or 0.0 for a constant column
    """
    if std_dev == 0:
        return 0.0
    return float(np.mean(((values - mean) / std_dev) ** 3))


def kurtosis(values: np.ndarray, mean: float, std_dev: float) -> float:
    """
    Excess kurtosis: fourth standardized moment minus 3.

    Args:
        values: Finite values
        mean: Mean of values
        std_dev: Sample standard deviation of values

    Returns:
        Excess kurtosis, or 0.0 for a constant column
    """
    if std_dev == 0:
        return 0.0
    return float(np.mean(((values - mean) / std_dev) ** 4) - 3)


def iqr_bounds(q25: float, q75: float, k: float = 1.5) -> tuple:
    """Tukey fences for the given quartiles."""
    iqr = q75 - q25
    return q25 - k * iqr, q75 + k * iqr


def descriptive_stats(values: Sequence[Any]) -> DescriptiveStats:
    """
    Summarize a numeric column.

    Non-finite entries are dropped first. Quartiles use linear interpolation
    (numpy's default quantile method).

    Args:
        values: Column values

    Returns:
        DescriptiveStats for the finite values

    Raises:
        EmptyInputError: if no finite value remains
    """
    clean = finite_values(values)
    if clean.size == 0:
        raise EmptyInputError("No valid data points")

    mean = float(np.mean(clean))
    median = float(np.median(clean))
    if clean.size > 1:
        variance = float(np.var(clean, ddof=1))
    else:
        variance = 0.0
    std_dev = math.sqrt(variance)

    skew = skewness(clean, mean, std_dev)
    kurt = kurtosis(clean, mean, std_dev)

    q25, q75 = (float(q) for q in np.quantile(clean, [0.25, 0.75]))
    lower, upper = iqr_bounds(q25, q75)
    outliers = [float(v) for v in clean if v < lower or v > upper]

    return DescriptiveStats(
        count=int(clean.size),
        mean=mean,
        median=median,
        standard_deviation=std_dev,
        variance=variance,
        skewness=skew,
        kurtosis=kurt,
        q25=q25,
        q75=q75,
        iqr=q75 - q25,
        lower_fence=lower,
        upper_fence=upper,
        min=float(np.min(clean)),
        max=float(np.max(clean)),
        outliers=outliers,
        is_normal=abs(skew) < 1 and abs(kurt) < 3,
    )


def correlation_t_statistic(r: float, n: int) -> float:
    """
    t-statistic for a correlation coefficient.

    t = r * sqrt((n - 2) / (1 - r^2)); a perfect correlation gives an
    infinite t with the sign of r.

    Args:
        r: Correlation coefficient
        n: Number of paired observations

    Returns:
        t-statistic
    """
    denom = 1 - r * r
    if denom <= 0:
        return math.copysign(math.inf, r)
    return r * math.sqrt((n - 2) / denom)


def t_test_p_value(t: float, df: int) -> float:
    """
    Two-tailed p-value of a t-statistic under Student's t distribution.

    Args:
        t: t-statistic
        df: Degrees of freedom

    Returns:
        p-value in [0, 1]
    """
    if math.isnan(t) or df <= 0:
        return 1.0
    if math.isinf(t):
        return 0.0
    p = 2 * scipy_stats.t.sf(abs(t), df)
    return float(min(1.0, max(0.0, p)))


def legacy_t_test_p_value(t: float, df: int = 0) -> float:
    """
    Bucketed p-value lookup kept for parity with older scan results.

    This is a coarse step function of |t| and ignores the degrees of
    freedom; use t_test_p_value for anything new.

    Args:
        t: t-statistic
        df: Unused, accepted for signature parity with t_test_p_value

    Returns:
        Bucketed p-value
    """
    abs_t = abs(t)
    if abs_t > 6:
        return 0.0001
    if abs_t > 4:
        return 0.001
    if abs_t > 3:
        return 0.01
    if abs_t > 2:
        return 0.05
    if abs_t > 1:
        return 0.1
    return 0.5


def correlation_p_value(r: float, n: int, method: str = 'exact') -> float:
    """
    p-value for a correlation coefficient over n pairs.

    Args:
        r: Correlation coefficient
        n: Number of paired observations
        method: 'exact' (Student t) or 'legacy' (bucketed table)

    Returns:
        p-value
    """
    if method not in P_VALUE_METHODS:
        raise ValueError(f"Unknown p-value method: {method}")

    t = correlation_t_statistic(r, n)
    if method == 'legacy':
        return legacy_t_test_p_value(t, n - 2)
    return t_test_p_value(t, n - 2)
