"""
General utility functions for the geochemmath package.
"""

import math
import numpy as np
from typing import Any, Dict, Iterable, List, TypeVar

T = TypeVar('T')
U = TypeVar('U')


def round_to(n: float, digits: int = 0) -> float:
    """
    Round a number to a specific number of decimal places.

    Args:
        n: Number to round
        digits: Number of decimal digits to keep

    Returns:
        Rounded number
    """
    return round(n, digits)


def hash_map_subset(m: Dict[T, U], keys: Iterable[T]) -> Dict[T, U]:
    """
    Create a subset of a dictionary with only the specified keys.

    Args:
        m: Source dictionary
        keys: Keys to include

    Returns:
        Dictionary with only the specified keys
    """
    return {k: m[k] for k in keys if k in m}


def distinct(coll: Iterable[T]) -> List[T]:
    """
    Return distinct elements from a collection, preserving order.

    Args:
        coll: Input collection

    Returns:
        List of distinct elements
    """
    seen = set()
    result = []

    for item in coll:
        if item not in seen:
            seen.add(item)
            result.append(item)

    return result


def to_jsonable(value: Any) -> Any:
    """
    Convert results to values json.dump accepts.

    Objects with ``to_dict`` are expanded, numpy scalars and arrays become
    Python numbers and lists, and non-finite floats become None.

    Args:
        value: Value to convert

    Returns:
        JSON-compatible value
    """
    if hasattr(value, 'to_dict') and not isinstance(value, type):
        return to_jsonable(value.to_dict())
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, np.ndarray):
        return to_jsonable(value.tolist())
    if isinstance(value, np.bool_):
        return bool(value)
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, (float, np.floating)):
        value = float(value)
        return value if math.isfinite(value) else None
    return value
