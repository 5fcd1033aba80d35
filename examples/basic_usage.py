#!/usr/bin/env python
"""
Basic Usage Examples for torch-krylov

This example demonstrates:
1. Creating SparseMatrix from dense matrices and triplets
2. Element access, transpose and submatrices
3. Sparse matrix-vector products
4. Solving with CG and BiCG, options and failure handling
"""

import torch
from torch_krylov import (
    SparseMatrix,
    SparseSolver,
    spsolve,
    random_spd,
    Breakdown,
    NotConverged,
)


# =============================================================================
# 1. Creation
# =============================================================================

def example_1_from_dense():
    """Create SparseMatrix from a dense matrix."""
    dense = torch.tensor([[4.0, -1.0,  0.0],
                          [-1.0, 4.0, -1.0],
                          [ 0.0, -1.0, 4.0]], dtype=torch.float64)
    A = SparseMatrix.from_dense(dense)
    print(f"Created: {A}")
    print(f"CSR arrays: values={A.values.tolist()}, cols={A.col_indices.tolist()}, row_ptr={A.row_ptr.tolist()}")
    return A


def example_2_from_triplets():
    """Duplicate triplets are summed."""
    A = SparseMatrix.from_triplets([(0, 0, 1.0), (1, 2, 5.0), (0, 0, 2.0)], (2, 3))
    print(f"A[0, 0] = {A[0, 0]}  (1.0 + 2.0)")
    print(f"A[1, 1] = {A[1, 1]}  (not stored)")
    print(f"Dense:\n{A.to_dense()}")


# =============================================================================
# 2. Derived matrices
# =============================================================================

def example_3_derived():
    A = SparseMatrix.from_dense([[1.0, 2.0, 0.0],
                                 [0.0, 3.0, 4.0],
                                 [5.0, 0.0, 6.0]])
    print(f"A^T:\n{A.T.to_dense()}")
    print(f"A[1:3, 0:2]:\n{A.submatrix(slice(1, 3), slice(0, 2)).to_dense()}")
    print(f"symmetric: {A.is_symmetric()}")


# =============================================================================
# 3. Multiply
# =============================================================================

def example_4_multiply():
    n = 2000
    A = random_spd(n, density=0.002, seed=0)
    x = torch.ones(n, dtype=torch.float64)
    y = A.multiply(x)
    print(f"{A}")
    print(f"||A x|| = {torch.linalg.norm(y).item():.4f}")
    print(f"CSR memory: {A.memory_bytes() / 1024:.1f} KB, dense: {A.dense_memory_bytes() / 1024:.1f} KB")


# =============================================================================
# 4. Solve
# =============================================================================

def example_5_solve():
    A = random_spd(100, density=0.05, seed=1)
    b = torch.ones(100, dtype=torch.float64)

    result = spsolve(A, b, method="cg")
    print(f"CG:   {result.num_iters} iterations, residual {result.residual:.2e}")

    residuals = []
    result = A.solve(b, method="bicg", callback=lambda i, r: residuals.append(r))
    print(f"BiCG: {result.num_iters} iterations, first residuals {[f'{r:.1e}' for r in residuals[:3]]}")

    diag = torch.diagonal(A.to_dense())
    result = spsolve(A, b, preconditioner=lambda r: r / diag)
    print(f"Jacobi-preconditioned CG: {result.num_iters} iterations")


def example_6_failures():
    A = random_spd(100, density=0.05, seed=1)
    b = torch.ones(100, dtype=torch.float64)
    try:
        SparseSolver(maxiter=2).solve(A, b)
    except NotConverged as e:
        print(f"NotConverged after {e.iterations} iterations, residual {e.residual:.2e}")

    swap = SparseMatrix.from_dense([[0.0, 1.0], [1.0, 0.0]])
    try:
        spsolve(swap, [1.0, 0.0], method="bicg")
    except Breakdown as e:
        print(f"Breakdown at iteration {e.iteration}: {e.quantity} vanished")


if __name__ == "__main__":
    print("=" * 60)
    print("1. Creation")
    print("=" * 60)
    example_1_from_dense()
    example_2_from_triplets()

    print("\n" + "=" * 60)
    print("2. Derived matrices")
    print("=" * 60)
    example_3_derived()

    print("\n" + "=" * 60)
    print("3. Multiply")
    print("=" * 60)
    example_4_multiply()

    print("\n" + "=" * 60)
    print("4. Solve")
    print("=" * 60)
    example_5_solve()
    example_6_failures()
