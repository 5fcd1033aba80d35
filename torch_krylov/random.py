import torch
from typing import Optional, Tuple

from .sparse_matrix import SparseMatrix


def _generator(seed:Optional[int])->torch.Generator:
    g = torch.Generator()
    if seed is not None:
        g.manual_seed(seed)
    else:
        g.seed()
    return g


def _positions(m:int, n:int, count:int, generator:torch.Generator, offdiag:bool=False)->torch.Tensor:
    """``count`` distinct flat positions of an m x n matrix, optionally off the diagonal"""
    available = m * n - (min(m, n) if offdiag else 0)
    assert count <= available, f"cannot place {count} entries in {available} cells"
    flat = torch.empty(0, dtype=torch.long)
    while flat.numel() < count:
        cand = torch.randint(0, m * n, (2 * count,), generator=generator)
        if offdiag:
            cand = cand[cand // n != cand % n]
        flat = torch.unique(torch.cat([flat, cand]))
    return flat[torch.randperm(flat.numel(), generator=generator)[:count]]


def random_sparse(shape:Tuple[int, int],
                  density:float=0.01,
                  seed:Optional[int]=None,
                  dtype=torch.float64,
                  )->SparseMatrix:
    """
    random sparse matrix with values in [-10, -0.01] U [0.01, 10]

    Parameters
    ----------
    shape : tuple
        (m,n) shape of the matrix
    density : float, optional
        fraction of stored cells, by default 0.01
    seed : int, optional
        seed of the generator, by default None
    dtype : torch.dtype, optional
        Data type of the matrix, by default torch.float64

    Returns
    -------
    SparseMatrix
    """
    assert 0.0 <= density <= 1.0, "density must be in [0, 1]"
    g = _generator(seed)

    m, n = shape
    nnz = round(m * n * density)
    flat = _positions(m, n, nnz, g)
    val = torch.rand(nnz, generator=g, dtype=dtype) * 9.99 + 0.01
    negative = torch.rand(nnz, generator=g) < 0.5
    val[negative] = -val[negative]
    return SparseMatrix.from_coo(val, flat // n, flat % n, (m, n))


def random_spd(n:int,
               density:float=0.03,
               diagonal_strength:float=2.0,
               seed:Optional[int]=None,
               dtype=torch.float64,
               )->SparseMatrix:
    """
    random sparse symmetric positive-definite matrix

    Off-diagonal pairs (i,j)/(j,i) share a value in [-1, 1]; each diagonal
    entry is ``diagonal_strength`` plus the absolute off-diagonal sum of
    its row, so the matrix is strictly diagonally dominant.

    Parameters
    ----------
    n : int
        size of the matrix
    density : float, optional
        target fraction of stored cells, by default 0.03
    diagonal_strength : float, optional
        diagonal margin, by default 2.0
    seed : int, optional
        seed of the generator
    dtype : torch.dtype, optional
        by default torch.float64
    """
    g = _generator(seed)

    pairs = max(0, (round(n * n * density) - n) // 2)
    flat = _positions(n, n, pairs, g, offdiag=True)
    a, b = flat // n, flat % n
    # fold onto the upper triangle; (i,j) and (j,i) may both have been drawn
    key = torch.unique(torch.minimum(a, b) * n + torch.maximum(a, b))
    i, j = key // n, key % n
    v = torch.rand(i.shape[0], generator=g, dtype=dtype) * 2 - 1

    diag = torch.full((n,), diagonal_strength, dtype=dtype)
    diag.index_add_(0, i, v.abs())
    diag.index_add_(0, j, v.abs())

    d = torch.arange(n)
    row = torch.cat([i, j, d])
    col = torch.cat([j, i, d])
    val = torch.cat([v, v, diag])
    return SparseMatrix.from_coo(val, row, col, (n, n))


def random_diagonally_dominant(n:int,
                               density:float=0.06,
                               asymmetry:float=0.2,
                               diagonal_strength:float=2.0,
                               seed:Optional[int]=None,
                               dtype=torch.float64,
                               )->SparseMatrix:
    """
    random sparse non-symmetric, strictly diagonally dominant matrix

    Parameters
    ----------
    n : int
        size of the matrix
    density : float, optional
        target fraction of stored cells, by default 0.06
    asymmetry : float, optional
        fraction of off-diagonal entries rescaled by a factor in [0.5, 1.5],
        by default 0.2
    diagonal_strength : float, optional
        diagonal margin, by default 2.0
    seed : int, optional
        seed of the generator
    dtype : torch.dtype, optional
        by default torch.float64
    """
    g = _generator(seed)

    count = max(0, round(n * n * density) - n)
    flat = _positions(n, n, count, g, offdiag=True)
    row, col = flat // n, flat % n
    v = torch.rand(row.shape[0], generator=g, dtype=dtype) * 2 - 1
    skew = torch.rand(row.shape[0], generator=g) < asymmetry
    scale = torch.rand(row.shape[0], generator=g, dtype=dtype) + 0.5
    v = torch.where(skew, v * scale, v)

    diag = torch.full((n,), diagonal_strength, dtype=dtype)
    diag.index_add_(0, row, v.abs())

    d = torch.arange(n)
    return SparseMatrix.from_coo(
        torch.cat([v, diag]), torch.cat([row, d]), torch.cat([col, d]), (n, n)
    )
