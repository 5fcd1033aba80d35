"""
torch-krylov: Sparse CSR matrices and Krylov solvers for PyTorch

An immutable compressed-sparse-row matrix type and two iterative solvers
for square sparse systems, running on CPU or CUDA tensors.

Methods
-------
- 'cg': Conjugate Gradient, for symmetric positive-definite matrices
- 'bicg': Biconjugate Gradient, for general matrices

Failures are raised as typed exceptions, all deriving from KrylovError:
DimensionMismatch, InvalidInput, NotConverged and Breakdown.

Usage
-----
>>> import torch
>>> from torch_krylov import SparseMatrix, SparseSolver, spsolve
>>>
>>> # Method 1: from a dense array
>>> A = SparseMatrix.from_dense([[2.0, 0.0, 0.0],
...                              [0.0, 2.0, 0.0],
...                              [0.0, 0.0, 2.0]])
>>> result = spsolve(A, [2.0, 4.0, 6.0], method='cg')
>>> result.x, result.num_iters
(tensor([1., 2., 3.], dtype=torch.float64), 1)
>>>
>>> # Method 2: from (row, column, value) triplets, duplicates are summed
>>> B = SparseMatrix.from_triplets([(0, 0, 4.0), (0, 1, 1.0), (1, 1, 3.0)], (2, 2))
>>> x = B.solve(torch.tensor([1.0, 2.0], dtype=torch.float64), method='bicg').x
>>>
>>> # Method 3: reusable solver with shared configuration
>>> solver = SparseSolver(method='bicg', atol=1e-8, maxiter=1000)
>>> x = solver.solve(B, [1.0, 2.0]).x
"""

from .check import (
    KrylovError,
    DimensionMismatch,
    InvalidInput,
    NotConverged,
    Breakdown,
)

from .sparse_matrix import SparseMatrix

from .vector_ops import (
    dot,
    norm,
    axpy,
    subtract,
)

from .solvers import (
    cg_solve,
    bicg_solve,
    get_solver,
    get_available_methods,
    default_maxiter,
    SolveResult,
    METHODS,
    MethodType,
    DEFAULT_ATOL,
)

from .linear_solve import (
    spsolve,
    SolverConfig,
    SparseSolver,
)

from .compare import (
    max_abs_difference,
    csr_allclose,
)

from .random import (
    random_sparse,
    random_spd,
    random_diagonally_dominant,
)

__version__ = "0.1.0"

__all__ = [
    # Errors
    "KrylovError",
    "DimensionMismatch",
    "InvalidInput",
    "NotConverged",
    "Breakdown",
    # Matrix
    "SparseMatrix",
    # Vector primitives
    "dot",
    "norm",
    "axpy",
    "subtract",
    # Solvers
    "cg_solve",
    "bicg_solve",
    "get_solver",
    "get_available_methods",
    "default_maxiter",
    "SolveResult",
    "METHODS",
    "MethodType",
    "DEFAULT_ATOL",
    # Facade
    "spsolve",
    "SolverConfig",
    "SparseSolver",
    # Comparison
    "max_abs_difference",
    "csr_allclose",
    # Random matrices
    "random_sparse",
    "random_spd",
    "random_diagonally_dominant",
    # Version
    "__version__",
]
