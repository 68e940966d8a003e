"""
Element type constraint and enumerations shared by the sparse matrix modules.

A matrix element type must support accumulation (+, -), scaling (*, /) and
a magnitude convertible to a real number. At runtime this is enforced on the
numpy dtype of the matrix and on scalars entering arithmetic.
"""

from enum import Enum
from numbers import Number
from typing import Any, Protocol, TypeVar, runtime_checkable

import numpy as np


class Order(Enum):
    """Which physical dimension is the segment axis."""
    ROW = "row"
    COLUMN = "column"


class Norm(Enum):
    ONE = "one"
    INFINITY = "infinity"
    FROBENIUS = "frobenius"


@runtime_checkable
class MatrixType(Protocol):
    """Capabilities required from a matrix element."""

    def __add__(self, other: Any) -> Any: ...

    def __sub__(self, other: Any) -> Any: ...

    def __mul__(self, other: Any) -> Any: ...

    def __truediv__(self, other: Any) -> Any: ...

    def __abs__(self) -> Any: ...


T = TypeVar("T", bound=MatrixType)


def check_matrix_type(dtype) -> np.dtype:
    """
    Validate and normalise a matrix element dtype.

    Args:
        dtype: Anything accepted by numpy.dtype

    Returns:
        The normalised numpy dtype

    Raises:
        TypeError: If the dtype is not an integer, floating or complex type
    """
    dtype = np.dtype(dtype)
    if dtype.kind not in "iufc":
        raise TypeError(f"Unsupported matrix element type {dtype}: "
                        "elements need accumulation, scaling and a magnitude")
    return dtype


def check_scalar(value) -> Any:
    """Return value if it can act as a matrix scalar, else raise TypeError."""
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, (Number, np.number)):
        raise TypeError(f"Unsupported scalar type {type(value).__name__}")
    if not isinstance(value, MatrixType):
        raise TypeError(f"Scalar {value!r} does not support matrix arithmetic")
    return value


def is_scalar(value) -> bool:
    return isinstance(value, (Number, np.number)) and not isinstance(value, (bool, np.bool_))
