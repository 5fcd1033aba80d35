import torch


class KrylovError(Exception):
    """Base class of every error raised by torch_krylov."""


class DimensionMismatch(KrylovError, ValueError):
    def __init__(self, name, shape, expected_shape):
        self.name = name
        self.shape = shape
        self.expected_shape = expected_shape
        super().__init__(f"{name} has shape {shape} expected {expected_shape}")


class InvalidInput(KrylovError, ValueError):
    """Malformed construction or solver input."""


class NotConverged(KrylovError, ArithmeticError):
    """
    The iteration cap was reached before the residual met the tolerance.

    Attributes
    ----------
    iterations: int
        number of iterations performed
    residual: float
        norm of the last residual
    """
    def __init__(self, iterations: int, residual: float):
        self.iterations = iterations
        self.residual = residual
        super().__init__(f"did not converge in {iterations} iterations (residual={residual:.2e})")


class Breakdown(KrylovError, ArithmeticError):
    """
    An inner product used as a denominator vanished at ``iteration``.
    """
    def __init__(self, iteration: int, quantity: str = "denominator"):
        self.iteration = iteration
        self.quantity = quantity
        super().__init__(f"breakdown at iteration {iteration}: {quantity} vanished")


def check_shape(shape:tuple)->tuple:
    """
    Check a matrix shape

    Parameters
    ----------
    shape: tuple
        (m,n) shape of the sparse matrix, zero sized dimensions allowed

    Returns
    -------
    tuple
        (m,n) as python ints
    """
    try:
        m, n = shape
        m, n = int(m), int(n)
    except (TypeError, ValueError):
        raise InvalidInput(f"shape must be a pair (m,n), got {shape!r}") from None
    if m < 0 or n < 0:
        raise InvalidInput(f"shape must be non-negative, got {(m, n)}")
    return m, n


def check_coo(val:torch.Tensor,
              row:torch.Tensor,
              col:torch.Tensor,
              shape:tuple
              ):
    """
    Check the COO format

    Parameters
    ----------

    val: torch.Tensor
        [nnz] values of the sparse matrix
    row: torch.Tensor
        [nnz] row indices of the sparse matrix
    col: torch.Tensor
        [nnz] column indices of the sparse matrix
    shape: tuple
        (m,n) shape of the sparse matrix

    """
    m, n = shape
    if not val.ndim == 1:
        raise DimensionMismatch("val", tuple(val.shape), "[nnz]")
    if not row.ndim == 1:
        raise DimensionMismatch("row", tuple(row.shape), "[nnz]")
    if not col.ndim == 1:
        raise DimensionMismatch("col", tuple(col.shape), "[nnz]")
    if not val.shape[0] == row.shape[0]:
        raise DimensionMismatch("row", tuple(row.shape), f"[{val.shape[0]}]")
    if not val.shape[0] == col.shape[0]:
        raise DimensionMismatch("col", tuple(col.shape), f"[{val.shape[0]}]")
    if row.numel() > 0:
        if row.min() < 0 or row.max() >= m:
            bad = row[(row < 0) | (row >= m)][0].item()
            raise InvalidInput(f"row index {bad} out of range [0, {m})")
        if col.min() < 0 or col.max() >= n:
            bad = col[(col < 0) | (col >= n)][0].item()
            raise InvalidInput(f"column index {bad} out of range [0, {n})")


def check_csr(val:torch.Tensor,
              rowptr:torch.Tensor,
              col:torch.Tensor,
              shape:tuple):
    """
    Check the canonical CSR format

    Besides the array shapes this verifies that ``rowptr`` starts at 0,
    ends at nnz and never decreases, that every column index lies in
    ``[0, n)`` and that columns are strictly increasing inside each row.

    Parameters
    ----------
    val: torch.Tensor
        [nnz] values of the sparse matrix
    rowptr: torch.Tensor
        [m+1] rowptr of the sparse matrix
    col: torch.Tensor
        [nnz] column indices of the sparse matrix
    shape: tuple
        (m,n) shape of the sparse matrix
    """
    m, n = shape
    if not (rowptr.ndim == 1 and rowptr.shape[0] == m+1):
        raise DimensionMismatch("rowptr", tuple(rowptr.shape), f"[{m+1}]")
    if not val.ndim == 1:
        raise DimensionMismatch("val", tuple(val.shape), "[nnz]")
    if not col.ndim == 1:
        raise DimensionMismatch("col", tuple(col.shape), "[nnz]")
    if not val.shape[0] == col.shape[0]:
        raise DimensionMismatch("col", tuple(col.shape), f"[{val.shape[0]}]")
    nnz = val.shape[0]
    if rowptr[0] != 0:
        raise InvalidInput(f"rowptr[0] must be 0, got {rowptr[0].item()}")
    if rowptr[-1] != nnz:
        raise InvalidInput(f"rowptr[-1] must equal nnz={nnz}, got {rowptr[-1].item()}")
    counts = rowptr[1:] - rowptr[:-1]
    if (counts < 0).any():
        raise InvalidInput("rowptr must be non-decreasing")
    if nnz == 0:
        return
    if col.min() < 0 or col.max() >= n:
        bad = col[(col < 0) | (col >= n)][0].item()
        raise InvalidInput(f"column index {bad} out of range [0, {n})")
    row = torch.repeat_interleave(torch.arange(m, device=col.device), counts.to(col.device))
    same_row = row[1:] == row[:-1]
    if (col[1:][same_row] <= col[:-1][same_row]).any():
        raise InvalidInput("column indices must be strictly increasing within each row")


def check_vector(name:str, x:torch.Tensor, size:int):
    """
    Check that ``x`` is a 1D tensor of length ``size``

    Parameters
    ----------
    name: str
        name reported in the error
    x: torch.Tensor
        the vector
    size: int
        expected length
    """
    if not (x.ndim == 1 and x.shape[0] == size):
        raise DimensionMismatch(name, tuple(x.shape), f"[{size}]")
