"""
Clean sample matrices for geochemical tables.

This module turns a row-major table (list of row mappings, or a pandas
DataFrame) into matrices of finite numbers. A row of a SampleMatrix is kept
only if every requested variable parses; the original row positions are
retained as row names so results can be re-aligned to the source table.
"""

import math
import numbers
import numpy as np
import pandas as pd
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

Rows = Union[Sequence[Mapping[str, Any]], pd.DataFrame]


def parse_number(value: Any) -> Optional[float]:
    """
    Convert a raw cell to a finite float.

    Strings are trimmed and parsed, numbers must be finite. Booleans, blank
    strings and anything unparsable yield None.

    Args:
        value: Raw cell value

    Returns:
        Finite float, or None if the cell holds no usable number
    """
    if value is None or isinstance(value, (bool, np.bool_)):
        return None

    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            number = float(value)
        except ValueError:
            return None
    elif isinstance(value, numbers.Real):
        number = float(value)
    else:
        return None

    if not math.isfinite(number):
        return None
    return number


def to_records(rows: Rows) -> List[Mapping[str, Any]]:
    """
    Normalize a dataset to a list of row mappings.

    Args:
        rows: List of row mappings or a DataFrame

    Returns:
        List of row mappings in positional order
    """
    if isinstance(rows, pd.DataFrame):
        return rows.to_dict(orient='records')
    return list(rows)


def column_values(rows: Rows, column: str) -> List[float]:
    """
    Parse one column, using NaN for cells without a usable number.

    The result has one entry per row so it stays aligned with the table.
    """
    values = []
    for row in to_records(rows):
        number = parse_number(row.get(column))
        values.append(np.nan if number is None else number)
    return values


def pair_values(x: Sequence[Any], y: Sequence[Any]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Pair two sequences by index and drop pairs with a non-finite member.

    Pairing happens before filtering, so a missing value in one column never
    shifts the other column's values onto the wrong rows.

    Args:
        x: First sequence
        y: Second sequence

    Returns:
        Tuple of (x_clean, y_clean) float arrays of equal length
    """
    xs = []
    ys = []
    for a, b in zip(x, y):
        a = parse_number(a)
        b = parse_number(b)
        if a is None or b is None:
            continue
        xs.append(a)
        ys.append(b)
    return np.array(xs, dtype=float), np.array(ys, dtype=float)


def paired_columns(rows: Rows, x_col: str, y_col: str) -> Tuple[np.ndarray, np.ndarray]:
    """Row-wise paired values of two columns with incomplete rows dropped."""
    records = to_records(rows)
    return pair_values([row.get(x_col) for row in records],
                       [row.get(y_col) for row in records])


def valid_counts(rows: Rows, variables: Sequence[str]) -> Dict[str, int]:
    """
    Count the rows holding a usable number, per variable.

    Args:
        rows: Dataset
        variables: Variables to count

    Returns:
        Mapping from variable name to its valid row count
    """
    records = to_records(rows)
    return {
        var: sum(1 for row in records if parse_number(row.get(var)) is not None)
        for var in variables
    }


class SampleMatrix:
    """
    Matrix of clean samples with named rows and columns.

    Row names are the original row positions in the source table, column
    names are the requested variables in request order.
    """

    def __init__(self, rows: Rows, variables: Sequence[str]):
        """
        Build the clean sample matrix.

        Args:
            rows: Dataset rows
            variables: Ordered variable names
        """
        records = to_records(rows)
        self._variables = list(variables)
        self._n_total = len(records)

        kept_rows = []
        kept_index = []
        excluded = []
        counts = {var: 0 for var in self._variables}

        for row_idx, row in enumerate(records):
            parsed = [parse_number(row.get(var)) for var in self._variables]
            for var, number in zip(self._variables, parsed):
                if number is not None:
                    counts[var] += 1

            if self._variables and all(number is not None for number in parsed):
                kept_rows.append(parsed)
                kept_index.append(row_idx)
            else:
                excluded.append(row_idx)

        self._matrix = pd.DataFrame(
            np.array(kept_rows, dtype=float).reshape(len(kept_rows), len(self._variables)),
            index=kept_index,
            columns=self._variables
        )
        self._excluded = excluded
        self._valid_counts = counts

    @property
    def matrix(self) -> pd.DataFrame:
        """Get the underlying DataFrame."""
        return self._matrix

    @property
    def values(self) -> np.ndarray:
        """Get the clean samples as a numpy array."""
        return self._matrix.values

    def rownames(self) -> List[int]:
        """Original row positions of the clean samples."""
        return [int(idx) for idx in self._matrix.index]

    def colnames(self) -> List[str]:
        """Variable names in request order."""
        return list(self._variables)

    @property
    def excluded_rows(self) -> List[int]:
        """Original row positions dropped during cleaning."""
        return list(self._excluded)

    @property
    def valid_counts(self) -> Dict[str, int]:
        """Per-variable count of rows holding a usable number."""
        return dict(self._valid_counts)

    @property
    def n_rows(self) -> int:
        return self._matrix.shape[0]

    @property
    def n_total(self) -> int:
        return self._n_total

    def get_col_by_name(self, col_name: str) -> np.ndarray:
        """
        Get a column of the matrix by name.

        Args:
            col_name: The name of the column

        Returns:
            The column as a numpy array
        """
        if col_name not in self._matrix.columns:
            raise KeyError(f"Column name '{col_name}' not found")
        return self._matrix[col_name].values

    def expand_labels(self, labels: Sequence[int], fill: int = -1) -> List[int]:
        """
        Spread per-sample labels back over the original row count.

        Args:
            labels: One label per clean sample, in row order
            fill: Label for excluded rows

        Returns:
            List with one label per original row
        """
        if len(labels) != self.n_rows:
            raise ValueError(
                f"Expected {self.n_rows} labels, got {len(labels)}"
            )
        full = [fill] * self._n_total
        for row_idx, label in zip(self.rownames(), labels):
            full[row_idx] = int(label)
        return full

    def describe_validity(self) -> str:
        """Multi-line summary of row and per-variable validity."""
        lines = [
            f"total rows: {self._n_total}",
            f"rows with every variable: {self.n_rows}",
            "valid values per variable:",
        ]
        for var in self._variables:
            lines.append(f"  {var}: {self._valid_counts[var]}/{self._n_total}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"SampleMatrix(rows={self.n_rows}, cols={len(self._variables)}, excluded={len(self._excluded)})"
