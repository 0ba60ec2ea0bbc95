"""
Error kinds raised by the geochemmath engine.

All errors are local and synchronous. They subclass ValueError so callers
that already guard numerical code with ``except ValueError`` keep working.
"""

from typing import Dict, Optional


class GeochemMathError(ValueError):
    """Base class for engine errors."""


class EmptyInputError(GeochemMathError):
    """No finite values remained after filtering."""


class InsufficientDataError(GeochemMathError):
    """Fewer than 3 valid paired points for correlation or regression."""


class UnsupportedMethodError(GeochemMathError):
    """A requested correlation method is recognised but not implemented."""


class PCAInputError(GeochemMathError):
    """
    A PCA precondition failed.

    Carries the per-variable valid counts so a caller can point a human at
    the sparse columns.
    """

    def __init__(self, message: str, valid_counts: Optional[Dict[str, int]] = None,
                 n_total: int = 0, n_valid: int = 0):
        super().__init__(message)
        self.valid_counts = dict(valid_counts or {})
        self.n_total = n_total
        self.n_valid = n_valid


class InsufficientSamplesError(PCAInputError):
    """Fewer than 3 rows had a value for every requested variable."""


class InsufficientVariablesError(PCAInputError):
    """Fewer than 2 variables were requested."""
