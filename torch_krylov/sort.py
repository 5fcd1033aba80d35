import torch
from typing import Sequence, Tuple

def lexsort(keys:Sequence[torch.Tensor], dim=-1)->torch.Tensor:
    """ Multi level stable sort, same convention as ``numpy.lexsort``
    https://discuss.pytorch.org/t/numpy-lexsort-equivalent-in-pytorch/47850/4

    The last key is the primary sort key. Ties keep their input order.

    Parameters
    ----------
    keys: Sequence[torch.Tensor]
        sequence of tensors with identical shape

    dim: int
        the dimension for sorting


    Returns
    -------
    indices: torch.Tensor
        the sorted indices

    """
    if len(keys) == 0:
        raise ValueError(f"Must have at least 1 key, but {len(keys)=}.")

    idx = keys[0].argsort(dim=dim, stable=True)
    for k in keys[1:]:
        idx = idx.gather(dim, k.gather(dim, idx).argsort(dim=dim, stable=True))

    return idx


def coalesce(val:torch.Tensor,
             row:torch.Tensor,
             col:torch.Tensor,
             shape:Tuple[int, int]
             )->Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
    """ Lay out COO entries as canonical CSR

    Entries are ordered by row then column. Entries sharing a (row, col)
    position are summed in their input order, so the result is
    reproducible bit for bit on CPU.

    Parameters
    ----------
    val: torch.Tensor
        [nnz] values
    row: torch.Tensor
        [nnz] row indices, already range checked
    col: torch.Tensor
        [nnz] column indices, already range checked
    shape: Tuple[int, int]
        (m,n)

    Returns
    -------
    val: torch.Tensor
        [nnz'] merged values
    rowptr: torch.Tensor
        [m+1] row pointers
    col: torch.Tensor
        [nnz'] column indices, strictly increasing inside each row
    """
    m, n = shape
    row = row.long()
    col = col.long()

    order = lexsort([col, row])
    row, col, val = row[order], col[order], val[order]

    key = row * n + col
    unique_key, group = torch.unique_consecutive(key, return_inverse=True)
    merged = torch.zeros(unique_key.shape[0], dtype=val.dtype, device=val.device)
    merged.index_add_(0, group, val)

    if n > 0:
        new_row = torch.div(unique_key, n, rounding_mode='floor')
        new_col = unique_key - new_row * n
    else:
        new_row = unique_key
        new_col = unique_key

    counts = torch.bincount(new_row, minlength=m)
    rowptr = torch.zeros(m + 1, dtype=torch.long, device=val.device)
    rowptr[1:] = torch.cumsum(counts, 0)
    return merged, rowptr, new_col
