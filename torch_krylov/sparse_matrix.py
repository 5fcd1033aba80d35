"""
Immutable compressed sparse row (CSR) matrix backed by PyTorch tensors.

A ``SparseMatrix`` stores only the non-zero entries of an ``m x n`` matrix
in three tensors:

- ``values``      [nnz]   non-zero values, row by row
- ``col_indices`` [nnz]   column of each stored value
- ``row_ptr``     [m + 1] ``row_ptr[r]:row_ptr[r+1]`` is the slice of row ``r``

The layout is canonical: columns are strictly increasing inside each row.
Duplicate entries given at construction are summed. Nothing mutates a
``SparseMatrix`` after construction; ``transposed`` and ``submatrix``
return new instances.

Examples
--------
>>> import torch
>>> from torch_krylov import SparseMatrix
>>>
>>> A = SparseMatrix.from_dense([[4.0, -1.0, 0.0],
...                              [-1.0, 4.0, -1.0],
...                              [0.0, -1.0, 4.0]])
>>> A
SparseMatrix(shape=(3, 3), nnz=7, sparsity=0.2222, dtype=torch.float64, device=cpu)
>>> y = A @ torch.ones(3, dtype=torch.float64)
>>>
>>> # Triplets at the same position are summed
>>> B = SparseMatrix.from_triplets([(0, 0, 1.0), (0, 0, 2.0)], (1, 1))
>>> B[0, 0]
3.0
"""

import operator
import torch
from typing import Iterable, Optional, Sequence, Tuple, Union

from .check import (
    DimensionMismatch,
    InvalidInput,
    check_coo,
    check_csr,
    check_shape,
    check_vector,
)
from .sort import coalesce


RangeLike = Union[Tuple[int, int], range, slice]


def _as_float_tensor(data, dtype: Optional[torch.dtype] = None, device=None) -> torch.Tensor:
    """Convert array-like input to a floating point tensor (python lists become float64)."""
    if dtype is None and not isinstance(data, torch.Tensor) and not hasattr(data, "dtype"):
        dtype = torch.float64
    try:
        t = torch.as_tensor(data, dtype=dtype, device=device)
    except (TypeError, ValueError, RuntimeError) as e:
        raise InvalidInput(f"cannot convert input to a numeric tensor: {e}") from None
    if not t.is_floating_point():
        t = t.to(torch.float64)
    return t


def _as_index_tensor(data, device=None) -> torch.Tensor:
    t = torch.as_tensor(data, device=device)
    if t.numel() == 0:
        return t.long()
    if t.is_floating_point() or t.is_complex() or t.dtype == torch.bool:
        raise InvalidInput(f"indices must be integers, got {t.dtype}")
    return t.long()


class SparseMatrix:
    """
    Immutable CSR sparse matrix.

    Parameters
    ----------
    values : array-like
        [nnz] non-zero values laid out row by row.
    col_indices : array-like
        [nnz] column index of every value.
    row_ptr : array-like
        [m + 1] row pointers.
    shape : Tuple[int, int]
        (m, n). Zero sized dimensions are allowed.

    Raises
    ------
    DimensionMismatch
        If the arrays have incompatible lengths.
    InvalidInput
        If the arrays violate the CSR invariants (see ``check_csr``).

    Notes
    -----
    The tensors are copied, so later changes to the caller's arrays do not
    leak into the matrix. Use ``from_dense``, ``from_coo`` or
    ``from_triplets`` to build from unordered data.
    """

    def __init__(
        self,
        values,
        col_indices,
        row_ptr,
        shape: Tuple[int, int],
    ):
        shape = check_shape(shape)
        values = _as_float_tensor(values)
        col_indices = _as_index_tensor(col_indices, device=values.device)
        row_ptr = _as_index_tensor(row_ptr, device=values.device)
        check_csr(values, row_ptr, col_indices, shape)
        self._init(values.clone(), col_indices.clone(), row_ptr.clone(), shape)

    def _init(self, values: torch.Tensor, col_indices: torch.Tensor,
              row_ptr: torch.Tensor, shape: Tuple[int, int]):
        self._values = values
        self._col = col_indices
        self._row_ptr = row_ptr
        self._shape = shape
        # row of every stored entry, used by matvec and re-bucketing
        self._row = torch.repeat_interleave(
            torch.arange(shape[0], device=values.device), row_ptr[1:] - row_ptr[:-1]
        )
        self._transpose = None

    @classmethod
    def _trusted(cls, values, col_indices, row_ptr, shape) -> "SparseMatrix":
        """Wrap arrays that are known to be canonical CSR without copying or checking."""
        obj = cls.__new__(cls)
        obj._init(values, col_indices, row_ptr, tuple(shape))
        return obj

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def from_dense(cls, A, dtype: Optional[torch.dtype] = None) -> "SparseMatrix":
        """
        Create a SparseMatrix from a dense 2D array.

        Cells are scanned in row-major order and zero cells are skipped, so
        ``nnz`` equals the number of non-zero cells of ``A``.

        Parameters
        ----------
        A : array-like
            [m, n] dense matrix (tensor, numpy array or nested lists).
        dtype : torch.dtype, optional
            Value dtype. Default: dtype of ``A``, float64 for python lists.

        Returns
        -------
        SparseMatrix
        """
        A = _as_float_tensor(A, dtype=dtype)
        if A.ndim == 1 and A.numel() == 0:
            A = A.reshape(0, 0)
        if A.ndim != 2:
            raise DimensionMismatch("A", tuple(A.shape), "[m, n]")
        m, n = A.shape
        row, col = torch.nonzero(A, as_tuple=True)
        values = A[row, col]
        row_ptr = torch.zeros(m + 1, dtype=torch.long, device=A.device)
        row_ptr[1:] = torch.cumsum(torch.bincount(row, minlength=m), 0)
        return cls._trusted(values, col, row_ptr, (m, n))

    @classmethod
    def from_coo(
        cls,
        values,
        row,
        col,
        shape: Tuple[int, int],
        dtype: Optional[torch.dtype] = None,
    ) -> "SparseMatrix":
        """
        Create a SparseMatrix from unordered COO arrays.

        Entries are sorted by (row, column); entries at the same position are
        summed in input order.

        Parameters
        ----------
        values : array-like
            [nnz] values
        row : array-like
            [nnz] row indices in ``[0, m)``
        col : array-like
            [nnz] column indices in ``[0, n)``
        shape : Tuple[int, int]
            (m, n)
        dtype : torch.dtype, optional
            Value dtype.

        Raises
        ------
        InvalidInput
            If an index is out of range or not an integer.
        """
        shape = check_shape(shape)
        values = _as_float_tensor(values, dtype=dtype)
        row = _as_index_tensor(row, device=values.device)
        col = _as_index_tensor(col, device=values.device)
        check_coo(values, row, col, shape)
        values, row_ptr, col = coalesce(values, row, col, shape)
        return cls._trusted(values, col, row_ptr, shape)

    @classmethod
    def from_triplets(
        cls,
        triplets: Iterable[Tuple[int, int, float]],
        shape: Tuple[int, int],
        dtype: Optional[torch.dtype] = None,
    ) -> "SparseMatrix":
        """
        Create a SparseMatrix from ``(row, column, value)`` triplets.

        Triplets at the same position are summed, never overwritten.
        A merged value of zero is still stored as an explicit entry.

        Examples
        --------
        >>> A = SparseMatrix.from_triplets([(0, 1, 2.0), (1, 0, 3.0)], (2, 2))
        >>> A.nnz
        2
        """
        rows, cols, vals = [], [], []
        for t in triplets:
            try:
                r, c, v = t
                rows.append(operator.index(r))
                cols.append(operator.index(c))
            except (TypeError, ValueError):
                raise InvalidInput(f"triplet must be (int, int, value), got {t!r}") from None
            vals.append(v)
        values = _as_float_tensor(vals, dtype=dtype)
        return cls.from_coo(values, rows, cols, shape)

    @classmethod
    def from_torch_sparse(cls, A: torch.Tensor) -> "SparseMatrix":
        """
        Create a SparseMatrix from a PyTorch sparse COO or CSR tensor (2D only).
        """
        if A.layout != torch.sparse_coo:
            A = A.to_sparse_coo()
        indices = A._indices()
        return cls.from_coo(A._values(), indices[0], indices[1], tuple(A.shape))

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def shape(self) -> Tuple[int, int]:
        """(rows, columns)."""
        return self._shape

    @property
    def rows(self) -> int:
        return self._shape[0]

    @property
    def columns(self) -> int:
        return self._shape[1]

    @property
    def nnz(self) -> int:
        """Number of stored entries."""
        return self._values.shape[0]

    @property
    def sparsity(self) -> float:
        """Fraction of cells that are not stored, 1.0 for empty matrices."""
        cells = self._shape[0] * self._shape[1]
        if cells == 0:
            return 1.0
        return 1.0 - self.nnz / cells

    @property
    def values(self) -> torch.Tensor:
        """Copy of the stored values."""
        return self._values.clone()

    @property
    def col_indices(self) -> torch.Tensor:
        """Copy of the column indices."""
        return self._col.clone()

    @property
    def row_ptr(self) -> torch.Tensor:
        """Copy of the row pointers."""
        return self._row_ptr.clone()

    @property
    def row_indices(self) -> torch.Tensor:
        """Row index of every stored entry (COO view)."""
        return self._row.clone()

    @property
    def dtype(self) -> torch.dtype:
        return self._values.dtype

    @property
    def device(self) -> torch.device:
        return self._values.device

    @property
    def is_square(self) -> bool:
        return self._shape[0] == self._shape[1]

    # =========================================================================
    # Device and Type Management
    # =========================================================================

    def to(
        self,
        device: Optional[Union[str, torch.device]] = None,
        dtype: Optional[torch.dtype] = None,
    ) -> "SparseMatrix":
        """
        Return a copy on ``device`` and/or with value dtype ``dtype``.
        """
        values, col, row_ptr = self._values, self._col, self._row_ptr
        if device is not None:
            values, col, row_ptr = values.to(device), col.to(device), row_ptr.to(device)
        if dtype is not None:
            values = values.to(dtype)
        return SparseMatrix._trusted(values, col, row_ptr, self._shape)

    # =========================================================================
    # Conversion
    # =========================================================================

    def to_dense(self) -> torch.Tensor:
        """Dense [m, n] tensor."""
        dense = torch.zeros(self._shape, dtype=self.dtype, device=self.device)
        dense[self._row, self._col] = self._values
        return dense

    def to_torch_sparse(self) -> torch.Tensor:
        """PyTorch sparse CSR tensor with a copy of the stored arrays."""
        return torch.sparse_csr_tensor(
            self._row_ptr.clone(), self._col.clone(), self._values.clone(), size=self._shape,
            dtype=self.dtype, device=self.device,
        )

    def triplets(self) -> Sequence[Tuple[int, int, float]]:
        """Stored entries as ``(row, column, value)`` in row-major order."""
        return list(zip(self._row.tolist(), self._col.tolist(), self._values.tolist()))

    # =========================================================================
    # Element access
    # =========================================================================

    def __getitem__(self, key: Tuple[int, int]) -> float:
        """
        Value at ``(i, j)``; 0.0 when the cell is not stored.

        Negative indices count from the end as for python sequences.
        """
        if not (isinstance(key, tuple) and len(key) == 2):
            raise TypeError("SparseMatrix indices must be a tuple (row, column)")
        i, j = operator.index(key[0]), operator.index(key[1])
        m, n = self._shape
        if i < 0:
            i += m
        if j < 0:
            j += n
        if not (0 <= i < m and 0 <= j < n):
            raise IndexError(f"index {key} out of range for shape {self._shape}")
        start, end = self._row_ptr[i].item(), self._row_ptr[i + 1].item()
        cols = self._col[start:end]
        pos = torch.searchsorted(cols, torch.tensor([j], device=self.device)).item()
        if pos < cols.shape[0] and cols[pos].item() == j:
            return self._values[start + pos].item()
        return 0.0

    # =========================================================================
    # Matrix Operations
    # =========================================================================

    def _as_operand(self, x) -> torch.Tensor:
        if not isinstance(x, torch.Tensor):
            x = torch.as_tensor(x, dtype=self.dtype)
        return x.to(device=self.device, dtype=self.dtype)

    def multiply(self, x) -> torch.Tensor:
        """
        Sparse matrix-vector product ``y = A @ x`` in O(nnz).

        Parameters
        ----------
        x : array-like
            [n] dense vector.

        Returns
        -------
        torch.Tensor
            [m] result.

        Raises
        ------
        DimensionMismatch
            If ``len(x) != columns``.
        """
        x = self._as_operand(x)
        check_vector("x", x, self.columns)
        y = torch.zeros(self.rows, dtype=self.dtype, device=self.device)
        y.scatter_add_(0, self._row, self._values * x[self._col])
        return y

    def __matmul__(self, other) -> torch.Tensor:
        """``A @ x`` for a vector [n] or a dense matrix [n, k]."""
        X = self._as_operand(other)
        if X.ndim == 1:
            return self.multiply(X)
        if X.ndim != 2 or X.shape[0] != self.columns:
            raise DimensionMismatch("other", tuple(X.shape), f"[{self.columns}] or [{self.columns}, k]")
        Y = torch.zeros(self.rows, X.shape[1], dtype=self.dtype, device=self.device)
        Y.index_add_(0, self._row, self._values.unsqueeze(1) * X[self._col])
        return Y

    def transposed(self) -> "SparseMatrix":
        """
        Transpose: every entry ``(r, c, v)`` moves to ``(c, r, v)``.

        Entries are re-bucketed by their old column and re-sorted, exactly as
        when building from triplets.
        """
        if self._transpose is None:
            m, n = self._shape
            values, row_ptr, col = coalesce(self._values, self._col, self._row, (n, m))
            self._transpose = SparseMatrix._trusted(values, col, row_ptr, (n, m))
        return self._transpose

    @property
    def T(self) -> "SparseMatrix":
        """Alias of ``transposed()``."""
        return self.transposed()

    def submatrix(self, row_range: RangeLike, col_range: RangeLike) -> "SparseMatrix":
        """
        Extract the block ``A[r0:r1, c0:c1]`` as a new SparseMatrix.

        Parameters
        ----------
        row_range, col_range : tuple, range or slice
            Half-open ranges ``(start, stop)``. Ranges must lie inside the
            matrix; they are not clamped.

        Raises
        ------
        InvalidInput
            If a range is reversed, has a step other than 1 or reaches
            outside the matrix.
        """
        r0, r1 = _normalize_range(row_range, self.rows, "row_range")
        c0, c1 = _normalize_range(col_range, self.columns, "col_range")

        start, end = self._row_ptr[r0].item(), self._row_ptr[r1].item()
        row = self._row[start:end]
        col = self._col[start:end]
        values = self._values[start:end]

        keep = (col >= c0) & (col < c1)
        row = row[keep] - r0
        col = col[keep] - c0
        values = values[keep]

        m = r1 - r0
        row_ptr = torch.zeros(m + 1, dtype=torch.long, device=self.device)
        row_ptr[1:] = torch.cumsum(torch.bincount(row, minlength=m), 0)
        return SparseMatrix._trusted(values.clone(), col, row_ptr, (m, c1 - c0))

    def is_symmetric(self, atol: float = 0.0) -> bool:
        """
        Whether ``|A - A^T| <= atol`` entrywise.
        """
        if not self.is_square:
            return False
        from .compare import max_abs_difference
        return max_abs_difference(self, self.transposed()) <= atol

    def solve(self, b, **kwargs):
        """
        Solve ``A x = b``; keyword arguments are forwarded to ``spsolve``.

        Returns
        -------
        SolveResult
        """
        from .linear_solve import spsolve
        return spsolve(self, b, **kwargs)

    # =========================================================================
    # Memory
    # =========================================================================

    def memory_bytes(self) -> int:
        """Bytes held by the CSR arrays (values, column indices, row pointers)."""
        return (self._values.element_size() * self.nnz
                + self._col.element_size() * self.nnz
                + self._row_ptr.element_size() * (self.rows + 1))

    def dense_memory_bytes(self) -> int:
        """Bytes a dense matrix of the same shape and dtype would need."""
        return self._values.element_size() * self.rows * self.columns

    def __repr__(self) -> str:
        return (f"SparseMatrix(shape={self._shape}, nnz={self.nnz}, "
                f"sparsity={self.sparsity:.4f}, dtype={self.dtype}, device={self.device})")


def _normalize_range(r: RangeLike, dim: int, name: str) -> Tuple[int, int]:
    if isinstance(r, slice):
        if r.step not in (None, 1):
            raise InvalidInput(f"{name} must have step 1, got {r.step}")
        start = 0 if r.start is None else r.start
        stop = dim if r.stop is None else r.stop
    elif isinstance(r, range):
        if r.step != 1:
            raise InvalidInput(f"{name} must have step 1, got {r.step}")
        start, stop = r.start, r.stop
    else:
        try:
            start, stop = r
        except (TypeError, ValueError):
            raise InvalidInput(f"{name} must be (start, stop), range or slice, got {r!r}") from None
    try:
        start, stop = operator.index(start), operator.index(stop)
    except TypeError:
        raise InvalidInput(f"{name} bounds must be integers, got {(start, stop)!r}") from None
    if not (0 <= start <= stop <= dim):
        raise InvalidInput(f"{name} {(start, stop)} out of bounds for dimension {dim}")
    return start, stop
