import torch
from .sort import coalesce
from .sparse_matrix import SparseMatrix


def max_abs_difference(A:SparseMatrix, B:SparseMatrix)->float:
    """
    Largest entrywise ``|A - B|``, comparing by position rather than layout

    Entries stored in only one of the matrices count against the stored
    value, so an explicit zero matches an unstored cell.

    Parameters
    ----------
    A: SparseMatrix
        [m, n]
    B: SparseMatrix
        [m, n]

    Returns
    -------
    float
        0.0 when both matrices hold no entries
    """
    if A.shape != B.shape:
        raise ValueError(f"shapes differ: {A.shape} and {B.shape}")

    B = B.to(device=A.device, dtype=A.dtype)
    val = torch.cat([A._values, -B._values])
    row = torch.cat([A._row, B._row])
    col = torch.cat([A._col, B._col])

    diff, _, _ = coalesce(val, row, col, A.shape)
    if diff.numel() == 0:
        return 0.0
    return diff.abs().max().item()


def csr_allclose(A:SparseMatrix, B:SparseMatrix, atol:float=1e-12)->bool:
    """
    Whether two sparse matrices hold the same entry set within ``atol``

    Parameters
    ----------
    A: SparseMatrix
    B: SparseMatrix
    atol: float
        absolute tolerance on every entry

    Returns
    -------
    bool
        False when the shapes differ
    """
    if A.shape != B.shape:
        return False
    return max_abs_difference(A, B) <= atol
