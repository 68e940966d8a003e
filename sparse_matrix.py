"""
SparseMatrix - sparse matrix with a dynamic coordinate-map mode and a
compressed (CSR/CSC) mode.

The ordering fixes which logical dimension is the physical first dimension:
rows for Order.ROW (CSR when compressed), columns for Order.COLUMN (CSC).
Constructors take physical extents and coordinates; element access takes
logical (row, column) coordinates.
"""

import operator
from typing import Any, Dict, Generic, Iterable, Optional, Sequence, Tuple

import numpy as np
import scipy.sparse as sparse

import matrix_multiply
import matrix_norms
import matrix_storage
from matrix_config import DEFAULT_CONFIG, MatrixConfig, check_tolerance
from logging_config import get_logger
from matrix_errors import DimensionError, InvalidStateError, InvariantViolation, MatrixIndexError
from matrix_storage import CompressedStorage, CooStorage
from matrix_types import Norm, Order, T, check_matrix_type, is_scalar

logger = get_logger(__name__)


class SparseMatrix(Generic[T]):
    """
    A sparse matrix with two interchangeable storage modes.

    Attributes:
        first: Physical first extent (rows for Order.ROW, columns otherwise)
        second: Physical second extent
        order: Matrix ordering
        dtype: Element dtype
        tolerance: Magnitudes <= tolerance are treated as structural zeros
    """

    # Let numpy arrays on the left defer to the reflected operators
    __array_ufunc__ = None

    def __init__(self,
                 first: int,
                 second: int,
                 elements: Optional[Dict[Tuple[int, int], Any]] = None,
                 *,
                 order: Order = Order.ROW,
                 dtype=None,
                 tolerance: Optional[float] = None,
                 config: Optional[MatrixConfig] = None):
        """
        Create a matrix in coordinate-map mode.

        Args:
            first: Physical first extent
            second: Physical second extent
            elements: Optional mapping from physical (first, second) pairs to values
            order: Matrix ordering
            dtype: Element dtype, defaults to the config dtype
            tolerance: Zero tolerance, defaults to the config tolerance
            config: Settings, DEFAULT_CONFIG if not provided
        """
        if config is None:
            config = DEFAULT_CONFIG

        self._first, self._second = _check_extents(first, second)
        self._order = Order(order)
        self._dtype = check_matrix_type(config.dtype if dtype is None else dtype)
        self._tolerance = config.tolerance if tolerance is None else check_tolerance(tolerance)
        self._config = config
        self._storage = CooStorage(self._checked_elements(elements or {}))

    @classmethod
    def from_compressed(cls,
                        first: int,
                        second: int,
                        inner: Sequence[int],
                        outer: Sequence[int],
                        values: Sequence[Any],
                        *,
                        order: Order = Order.ROW,
                        dtype=None,
                        tolerance: Optional[float] = None,
                        config: Optional[MatrixConfig] = None) -> "SparseMatrix":
        """
        Create a matrix in compressed mode from raw arrays.

        Args:
            first: Physical first extent (number of segments)
            second: Physical second extent
            inner: Segment offsets, length first + 1
            outer: Second-dimension index of each entry
            values: Entry values
            order: Matrix ordering
            dtype: Element dtype; inferred from numeric values if not provided

        Returns:
            A compressed SparseMatrix

        Raises:
            InvariantViolation: If the arrays are malformed
        """
        if dtype is None:
            array = np.asarray(values)
            if array.size and array.dtype.kind in "iufc":
                dtype = array.dtype

        matrix = cls(first, second, order=order, dtype=dtype, tolerance=tolerance, config=config)
        matrix._storage = matrix_storage.validate_compressed(
            matrix._first, matrix._second, inner, outer, values, matrix._dtype)
        return matrix

    @classmethod
    def from_dense(cls,
                   dense,
                   *,
                   order: Order = Order.ROW,
                   dtype=None,
                   tolerance: Optional[float] = None,
                   config: Optional[MatrixConfig] = None) -> "SparseMatrix":
        """Create a coordinate-map matrix holding the nonzeros of a 2-D array."""
        dense = np.asarray(dense)
        if dense.ndim != 2:
            raise DimensionError(f"Expected a 2-D array, got shape {dense.shape}")
        if dtype is None and dense.dtype.kind in "iufc":
            dtype = dense.dtype

        physical = dense if Order(order) is Order.ROW else dense.T
        elements = {(int(j), int(k)): physical[j, k] for j, k in zip(*np.nonzero(physical))}
        return cls(physical.shape[0], physical.shape[1], elements,
                   order=order, dtype=dtype, tolerance=tolerance, config=config)

    @classmethod
    def from_scipy(cls,
                   matrix: sparse.spmatrix,
                   *,
                   order: Order = Order.ROW,
                   tolerance: Optional[float] = None,
                   config: Optional[MatrixConfig] = None) -> "SparseMatrix":
        """
        Create a compressed matrix from any scipy sparse matrix.

        Row ordering goes through CSR, column ordering through CSC. Stored
        entries within tolerance are dropped, as compress() would.
        """
        if not sparse.issparse(matrix):
            raise TypeError(f"Expected a scipy sparse matrix, got {type(matrix).__name__}")

        order = Order(order)
        compressed = matrix.tocsr(copy=True) if order is Order.ROW else matrix.tocsc(copy=True)
        compressed.sum_duplicates()
        compressed.sort_indices()

        rows, columns = compressed.shape
        first, second = (rows, columns) if order is Order.ROW else (columns, rows)
        matrix = cls.from_compressed(first, second,
                                     compressed.indptr, compressed.indices, compressed.data,
                                     order=order, dtype=compressed.dtype,
                                     tolerance=tolerance, config=config)
        matrix._storage = matrix_storage.drop_small(matrix._storage, matrix._tolerance)
        return matrix

    def with_elements(self,
                      first: int,
                      second: int,
                      elements: Optional[Dict[Tuple[int, int], Any]] = None,
                      dtype=None) -> "SparseMatrix":
        """New coordinate-map matrix sharing this matrix's ordering and settings."""
        return SparseMatrix(first, second, elements,
                            order=self._order,
                            dtype=self._dtype if dtype is None else dtype,
                            tolerance=self._tolerance,
                            config=self._config)

    def with_storage(self, storage, dtype=None) -> "SparseMatrix":
        """
        New matrix with this matrix's extents and settings adopting storage.

        The storage object is taken as is and must already satisfy the
        invariants of its mode for these extents.
        """
        matrix = self.with_elements(self._first, self._second, dtype=dtype)
        matrix._storage = storage
        return matrix

    def copy(self) -> "SparseMatrix":
        """Copy preserving the storage mode."""
        return self.with_storage(self._storage.copy())

    def assign(self, other: "SparseMatrix") -> "SparseMatrix":
        """
        Replace this matrix's contents with a copy of another's.

        Raises:
            DimensionError: If extents or ordering differ
        """
        if (self._first, self._second, self._order) != (other._first, other._second, other._order):
            raise DimensionError(f"Cannot assign a {other!r} to a {self!r}")
        self._dtype = other._dtype
        self._storage = other._storage.copy()
        return self

    # Validation helpers

    def _checked_elements(self, elements) -> Dict[Tuple[int, int], Any]:
        checked = {}
        for key, value in dict(elements).items():
            try:
                j, k = (operator.index(i) for i in key)
            except (TypeError, ValueError) as e:
                raise InvariantViolation(f"Invalid coordinate {key!r}") from e
            if not (0 <= j < self._first and 0 <= k < self._second):
                raise InvariantViolation(
                    f"Coordinate {key!r} outside physical extents ({self._first}, {self._second})")
            checked[(j, k)] = self._cast(value)
        return checked

    def _cast(self, value):
        """Convert a value to the element dtype, refusing lossy kind changes."""
        kind = np.asarray(value).dtype
        if not np.can_cast(kind, self._dtype, casting="same_kind"):
            raise TypeError(f"Cannot store a {kind} value in a {self._dtype} matrix")
        return self._dtype.type(value)

    def _physical(self, row: int, column: int) -> Tuple[int, int]:
        row, column = operator.index(row), operator.index(column)
        if not (0 <= row < self.rows() and 0 <= column < self.columns()):
            raise MatrixIndexError(f"Index ({row}, {column}) out of bounds for shape {self.shape()}")
        return (row, column) if self._order is Order.ROW else (column, row)

    def _require_sparse(self, operation: str) -> CooStorage:
        if isinstance(self._storage, CompressedStorage):
            raise InvalidStateError(f"{operation} requires an uncompressed matrix")
        return self._storage

    def _require_compressed(self, operation: str) -> CompressedStorage:
        if isinstance(self._storage, CooStorage):
            raise InvalidStateError(f"{operation} requires a compressed matrix")
        return self._storage

    # Properties

    @property
    def first(self) -> int:
        return self._first

    @property
    def second(self) -> int:
        return self._second

    @property
    def order(self) -> Order:
        return self._order

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    @property
    def tolerance(self) -> float:
        return self._tolerance

    @property
    def storage(self):
        """The active storage: CooStorage or CompressedStorage."""
        return self._storage

    def rows(self) -> int:
        return self._first if self._order is Order.ROW else self._second

    def columns(self) -> int:
        return self._second if self._order is Order.ROW else self._first

    def shape(self) -> Tuple[int, int]:
        return self.rows(), self.columns()

    def size(self) -> int:
        """Number of stored entries."""
        return self._storage.nnz

    def is_compressed(self) -> bool:
        return isinstance(self._storage, CompressedStorage)

    def sparsity(self) -> float:
        return matrix_norms.sparsity(self)

    def density(self) -> float:
        return matrix_norms.density(self)

    def norm(self, kind: Norm = Norm.FROBENIUS) -> float:
        return matrix_norms.norm(self, kind)

    # Element access

    def at(self, row: int, column: int):
        """
        Read the (row, column) element in either mode.

        Raises:
            MatrixIndexError: If the index is out of bounds
        """
        j, k = self._physical(row, column)
        zero = self._dtype.type(0)

        if isinstance(self._storage, CooStorage):
            return self._storage.elements.get((j, k), zero)

        indices, values = self._storage.segment(j)
        position = np.searchsorted(indices, k)
        if position < len(indices) and indices[position] == k:
            return values[position]
        return zero

    def __getitem__(self, key):
        row, column = key
        return self.at(row, column)

    def __setitem__(self, key, value):
        """Write an element, creating it if absent. Uncompressed matrices only."""
        storage = self._require_sparse("Element write")
        row, column = key
        storage.elements[self._physical(row, column)] = self._cast(value)

    def insert(self, row: int, column: int, value) -> None:
        """
        Insert an element; values within tolerance are left absent.

        Raises:
            InvalidStateError: If the matrix is compressed
            MatrixIndexError: If the index is out of bounds
        """
        storage = self._require_sparse("insert")
        self._store(storage, self._physical(row, column), self._cast(value))

    def insert_batch(self, coordinates: Iterable[Tuple[int, int]], values: Iterable[Any]) -> None:
        """
        Insert several elements at once.

        Args:
            coordinates: Logical (row, column) pairs
            values: One value per coordinate

        Raises:
            InvalidStateError: If the matrix is compressed
            InvariantViolation: If counts differ or a coordinate is out of bounds
            TypeError: If a value does not fit the element dtype
        """
        storage = self._require_sparse("insert_batch")
        coordinates = list(coordinates)
        values = list(values)

        if len(coordinates) != len(values):
            raise InvariantViolation(
                f"Got {len(coordinates)} coordinates but {len(values)} values")

        keys = []
        for coordinate in coordinates:
            try:
                keys.append(self._physical(*coordinate))
            except (MatrixIndexError, TypeError) as e:
                raise InvariantViolation(f"Invalid batch coordinate {coordinate!r}") from e

        values = [self._cast(value) for value in values]
        for key, value in zip(keys, values):
            self._store(storage, key, value)

    def _store(self, storage: CooStorage, key: Tuple[int, int], value) -> None:
        if self._config.filter_on_insert and abs(value) <= self._tolerance:
            storage.elements.pop(key, None)
        else:
            storage.elements[key] = value

    def row(self, row: int) -> np.ndarray:
        """Dense copy of a logical row."""
        row = operator.index(row)
        if not 0 <= row < self.rows():
            raise MatrixIndexError(f"Row {row} out of bounds for shape {self.shape()}")
        if self._order is Order.ROW:
            return self._segment_dense(row)
        return self._cross_dense(row)

    def column(self, column: int) -> np.ndarray:
        """Dense copy of a logical column."""
        column = operator.index(column)
        if not 0 <= column < self.columns():
            raise MatrixIndexError(f"Column {column} out of bounds for shape {self.shape()}")
        if self._order is Order.COLUMN:
            return self._segment_dense(column)
        return self._cross_dense(column)

    def _segment_dense(self, i: int) -> np.ndarray:
        # Along the physical first dimension
        result = np.zeros(self._second, dtype=self._dtype)
        if isinstance(self._storage, CooStorage):
            for (j, k), value in self._storage.elements.items():
                if j == i:
                    result[k] = value
        else:
            indices, values = self._storage.segment(i)
            result[indices] = values
        return result

    def _cross_dense(self, k: int) -> np.ndarray:
        # Across all segments
        result = np.zeros(self._first, dtype=self._dtype)
        if isinstance(self._storage, CooStorage):
            for (j, h), value in self._storage.elements.items():
                if h == k:
                    result[j] = value
        else:
            mask = self._storage.outer == k
            result[self._storage.segment_ids()[mask]] = self._storage.values[mask]
        return result

    # Shape and compression

    def reshape(self, first: int, second: int, compress: bool = False) -> "SparseMatrix":
        """
        Reinterpret the stored entries under new physical extents.

        The result is compressed if compress is True, uncompressed otherwise.

        Raises:
            InvariantViolation: If the stored entries do not fit the new extents
        """
        if isinstance(self._storage, CooStorage):
            matrix = self.with_elements(first, second, self._storage.elements)
            if compress:
                matrix.compress()
            return matrix

        matrix = SparseMatrix.from_compressed(first, second,
                                              self._storage.inner,
                                              self._storage.outer,
                                              self._storage.values,
                                              order=self._order,
                                              dtype=self._dtype,
                                              tolerance=self._tolerance,
                                              config=self._config)
        if not compress:
            matrix.uncompress()
        return matrix

    def compress(self) -> None:
        """Switch to compressed storage, dropping entries within tolerance."""
        if isinstance(self._storage, CompressedStorage):
            return
        self._storage = matrix_storage.compress(self._storage, self._first, self._tolerance, self._dtype)
        logger.debug("Compressed %dx%d matrix, nnz: %d", self.rows(), self.columns(), self.size())

    def uncompress(self) -> None:
        """Switch back to coordinate-map storage."""
        if isinstance(self._storage, CooStorage):
            return
        self._storage = matrix_storage.uncompress(self._storage)
        logger.debug("Uncompressed %dx%d matrix, nnz: %d", self.rows(), self.columns(), self.size())

    # Mode-gated getters

    def get_elements(self) -> Dict[Tuple[int, int], Any]:
        """Physical coordinate map in lexicographic order."""
        return dict(self._require_sparse("get_elements").sorted_items())

    def get_inner(self) -> np.ndarray:
        return self._require_compressed("get_inner").inner.copy()

    def get_outer(self) -> np.ndarray:
        return self._require_compressed("get_outer").outer.copy()

    def get_values(self) -> np.ndarray:
        return self._require_compressed("get_values").values.copy()

    segment_offsets = property(get_inner)
    indices = property(get_outer)
    values = property(get_values)

    # Conversions

    def to_dense(self) -> np.ndarray:
        physical = np.zeros((self._first, self._second), dtype=self._dtype)
        if isinstance(self._storage, CooStorage):
            for (j, k), value in self._storage.elements.items():
                physical[j, k] = value
        else:
            physical[self._storage.segment_ids(), self._storage.outer] = self._storage.values
        return physical if self._order is Order.ROW else physical.T.copy()

    def to_scipy(self) -> sparse.spmatrix:
        """CSR/CSC matrix when compressed, COO matrix otherwise."""
        if isinstance(self._storage, CompressedStorage):
            arrays = (self._storage.values.copy(), self._storage.outer.copy(), self._storage.inner.copy())
            if self._order is Order.ROW:
                return sparse.csr_matrix(arrays, shape=self.shape())
            return sparse.csc_matrix(arrays, shape=self.shape())

        items = self._storage.sorted_items()
        data = np.array([value for _, value in items], dtype=self._dtype)
        first = np.array([j for (j, _), _ in items], dtype=np.int64)
        second = np.array([k for (_, k), _ in items], dtype=np.int64)
        rows, columns = (first, second) if self._order is Order.ROW else (second, first)
        return sparse.coo_matrix((data, (rows, columns)), shape=self.shape())

    def _logical_nonzeros(self) -> Dict[Tuple[int, int], Any]:
        if isinstance(self._storage, CooStorage):
            items = self._storage.elements.items()
        else:
            items = matrix_storage.uncompress(self._storage).elements.items()
        swap = self._order is Order.COLUMN
        return {((k, j) if swap else (j, k)): value for (j, k), value in items if value != 0}

    # Operators

    def __mul__(self, other):
        if isinstance(other, SparseMatrix):
            return matrix_multiply.matrix_matrix_multiply(self, other)
        if is_scalar(other):
            return matrix_multiply.scale(self, other)
        if isinstance(other, (list, tuple, np.ndarray)):
            return matrix_multiply.matrix_vector_multiply(self, other)
        return NotImplemented

    def __rmul__(self, other):
        if is_scalar(other):
            return matrix_multiply.scale(self, other)
        if isinstance(other, (list, tuple, np.ndarray)):
            return matrix_multiply.vector_matrix_multiply(other, self)
        return NotImplemented

    def __matmul__(self, other):
        if isinstance(other, SparseMatrix):
            return matrix_multiply.matrix_matrix_multiply(self, other)
        if isinstance(other, (list, tuple, np.ndarray)):
            return matrix_multiply.matrix_vector_multiply(self, other)
        return NotImplemented

    def __rmatmul__(self, other):
        if isinstance(other, (list, tuple, np.ndarray)):
            return matrix_multiply.vector_matrix_multiply(other, self)
        return NotImplemented

    def __imul__(self, other):
        if not is_scalar(other):
            return NotImplemented
        scaled = matrix_multiply.scale(self, other)
        self._dtype, self._storage = scaled._dtype, scaled._storage
        return self

    def __truediv__(self, other):
        if not is_scalar(other):
            return NotImplemented
        return matrix_multiply.divide(self, other)

    def __itruediv__(self, other):
        if not is_scalar(other):
            return NotImplemented
        divided = matrix_multiply.divide(self, other)
        self._dtype, self._storage = divided._dtype, divided._storage
        return self

    def __eq__(self, other):
        if not isinstance(other, SparseMatrix):
            return NotImplemented
        return (self._order is other._order
                and self.shape() == other.shape()
                and self._logical_nonzeros() == other._logical_nonzeros())

    __hash__ = None

    # Output

    def __str__(self) -> str:
        if isinstance(self._storage, CooStorage):
            return "\n".join(f"({j}, {k}): {value}" for (j, k), value in self._storage.sorted_items())
        return "\n".join([
            "Inner: " + " ".join(str(value) for value in self._storage.inner),
            "Outer: " + " ".join(str(value) for value in self._storage.outer),
            "Values: " + " ".join(str(value) for value in self._storage.values),
        ])

    def __repr__(self) -> str:
        mode = "compressed" if self.is_compressed() else "sparse"
        return (f"SparseMatrix(shape={self.shape()}, order={self._order.value}, "
                f"mode={mode}, nnz={self.size()}, dtype={self._dtype})")


def _check_extents(first, second) -> Tuple[int, int]:
    first, second = operator.index(first), operator.index(second)
    if first <= 0 or second <= 0:
        raise InvariantViolation(f"Matrix extents must be positive, got ({first}, {second})")
    return first, second
