"""
Storage representations for SparseMatrix and conversion between them.

A matrix is in exactly one mode at a time:
    - CooStorage: dictionary from physical (first, second) pairs to values
    - CompressedStorage: CSR-style arrays (segment offsets, indices, values),
      one segment per physical row

The physical axes are (rows, columns) for row ordering and (columns, rows)
for column ordering, so the same arrays describe CSR and CSC.
"""

from dataclasses import dataclass, field
from operator import itemgetter
from typing import Any, Dict, List, Tuple

import numpy as np

from logging_config import get_logger
from matrix_errors import InvariantViolation

logger = get_logger(__name__)

INDEX_DTYPE = np.int64

Key = Tuple[int, int]


@dataclass
class CooStorage:
    """Coordinate map storage."""
    elements: Dict[Key, Any] = field(default_factory=dict)

    @property
    def nnz(self) -> int:
        return len(self.elements)

    def sorted_items(self) -> List[Tuple[Key, Any]]:
        """Entries in lexicographic (first, second) order."""
        return sorted(self.elements.items(), key=itemgetter(0))

    def copy(self) -> "CooStorage":
        return CooStorage(dict(self.elements))


@dataclass
class CompressedStorage:
    """
    Compressed storage.

    Attributes:
        inner: Segment offsets, length first + 1
        outer: Second-dimension index of every stored entry
        values: Stored values, parallel to outer
    """
    inner: np.ndarray
    outer: np.ndarray
    values: np.ndarray

    @property
    def nnz(self) -> int:
        return len(self.values)

    @property
    def segments(self) -> int:
        return len(self.inner) - 1

    def segment(self, i: int) -> Tuple[np.ndarray, np.ndarray]:
        """Indices and values of segment i."""
        start, end = self.inner[i], self.inner[i + 1]
        return self.outer[start:end], self.values[start:end]

    def segment_ids(self) -> np.ndarray:
        """First-dimension index of every stored entry."""
        return np.repeat(np.arange(self.segments, dtype=INDEX_DTYPE), np.diff(self.inner))

    def copy(self) -> "CompressedStorage":
        return CompressedStorage(self.inner.copy(), self.outer.copy(), self.values.copy())


def _index_array(name: str, data) -> np.ndarray:
    array = np.asarray(data)
    if array.ndim != 1:
        raise InvariantViolation(f"{name} must be one-dimensional, got shape {array.shape}")
    if array.size == 0:
        return np.zeros(0, dtype=INDEX_DTYPE)
    if array.dtype.kind not in "iu":
        raise InvariantViolation(f"{name} must hold integers, got {array.dtype}")
    return array.astype(INDEX_DTYPE)


def validate_compressed(first: int,
                        second: int,
                        inner,
                        outer,
                        values,
                        dtype: np.dtype) -> CompressedStorage:
    """
    Check compressed arrays against the storage invariants and copy them.

    Args:
        first: Number of segments
        second: Extent of the second dimension
        inner: Segment offsets (length first + 1)
        outer: Second-dimension indices
        values: Values parallel to outer
        dtype: Element dtype of the matrix

    Returns:
        A CompressedStorage owning copies of the arrays

    Raises:
        InvariantViolation: If any invariant is broken
        TypeError: If values cannot be cast to dtype without changing kind
    """
    inner = _index_array("inner", inner)
    outer = _index_array("outer", outer)

    values = np.asarray(values)
    if values.ndim != 1:
        raise InvariantViolation(f"values must be one-dimensional, got shape {values.shape}")
    if values.size and not np.can_cast(values.dtype, dtype, casting="same_kind"):
        raise TypeError(f"Cannot store {values.dtype} values in a {dtype} matrix")
    values = values.astype(dtype)

    if len(inner) != first + 1:
        raise InvariantViolation(f"inner must have length {first + 1}, got {len(inner)}")
    if inner[0] != 0:
        raise InvariantViolation(f"inner must start at 0, got {inner[0]}")
    if np.any(np.diff(inner) < 0):
        raise InvariantViolation("inner must be monotonically non-decreasing")
    if len(outer) != inner[-1]:
        raise InvariantViolation(f"outer must have length {inner[-1]}, got {len(outer)}")
    if len(values) != len(outer):
        raise InvariantViolation(f"values must have length {len(outer)}, got {len(values)}")

    if outer.size:
        if outer.min() < 0 or outer.max() >= second:
            raise InvariantViolation(f"outer indices must lie in [0, {second})")

        # Strictly increasing inside a segment, free across segment boundaries
        increasing = np.diff(outer) > 0
        starts = inner[1:-1]
        starts = starts[(starts > 0) & (starts < len(outer))]
        increasing[starts - 1] = True
        if not np.all(increasing):
            raise InvariantViolation("outer indices must be strictly increasing within each segment")

    return CompressedStorage(inner, outer, values)


def compress(storage: CooStorage, first: int, tolerance: float, dtype: np.dtype) -> CompressedStorage:
    """
    Convert a coordinate map to compressed storage.

    Entries are visited in lexicographic order so that every segment is
    filled contiguously; magnitudes <= tolerance are dropped.
    """
    items = storage.sorted_items()
    inner = np.zeros(first + 1, dtype=INDEX_DTYPE)
    outer = []
    values = []

    position = 0
    for i in range(first):
        while position < len(items) and items[position][0][0] == i:
            (_, k), value = items[position]
            position += 1
            if abs(value) > tolerance:
                outer.append(k)
                values.append(value)
        inner[i + 1] = len(values)

    dropped = len(items) - len(values)
    if dropped:
        logger.debug("Compression dropped %d entries within tolerance %g", dropped, tolerance)

    return CompressedStorage(inner,
                             np.asarray(outer, dtype=INDEX_DTYPE),
                             np.asarray(values, dtype=dtype))


def uncompress(storage: CompressedStorage) -> CooStorage:
    """Convert compressed storage back to a coordinate map."""
    elements = {}
    for i in range(storage.segments):
        for position in range(storage.inner[i], storage.inner[i + 1]):
            elements[(i, int(storage.outer[position]))] = storage.values[position]
    return CooStorage(elements)


def drop_small(storage: CompressedStorage, tolerance: float) -> CompressedStorage:
    """Remove stored entries whose magnitude is <= tolerance."""
    keep = np.abs(storage.values) > tolerance
    if np.all(keep):
        return storage

    counts = np.bincount(storage.segment_ids()[keep], minlength=storage.segments)
    inner = np.zeros(storage.segments + 1, dtype=INDEX_DTYPE)
    np.cumsum(counts, out=inner[1:])
    return CompressedStorage(inner, storage.outer[keep], storage.values[keep])
