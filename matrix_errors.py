"""
Exceptions raised by the sparse matrix engine.
"""


class SparseMatrixError(Exception):
    """Base exception for sparse matrix errors."""
    pass


class MatrixIndexError(SparseMatrixError, IndexError):
    """Raised when an element access falls outside the matrix."""
    pass


class InvalidStateError(SparseMatrixError):
    """Raised when an operation is not allowed in the current storage mode."""
    pass


class DimensionError(SparseMatrixError, ValueError):
    """Raised when operand shapes (or orderings) are incompatible."""
    pass


class InvariantViolation(SparseMatrixError, ValueError):
    """Raised when construction or batch data breaks a storage invariant."""
    pass
