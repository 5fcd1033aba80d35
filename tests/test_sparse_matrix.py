"""
Tests for the SparseMatrix CSR type.

Tests cover:
- Construction from dense arrays, COO arrays, triplets and raw CSR
- Derived properties (nnz, sparsity, memory)
- Matrix-vector products against dense references
- Transpose, submatrix extraction and element access
- Error handling for malformed input
"""

import pytest
import torch
import numpy as np
from itertools import product
from scipy.sparse import csr_matrix
import sys

sys.path.insert(0, "..")
from torch_krylov import (
    SparseMatrix,
    DimensionMismatch,
    InvalidInput,
    KrylovError,
    csr_allclose,
    random_sparse,
)


def create_sparse_dense(m: int, n: int, seed: int = 0, dtype=torch.float64):
    """Dense matrix with roughly 70% zeros."""
    g = torch.Generator().manual_seed(seed)
    A = torch.randn(m, n, generator=g, dtype=dtype)
    A[A.abs() < 1.0] = 0
    return A


def create_tridiagonal(n: int):
    triplets = []
    for i in range(n):
        triplets.append((i, i, 4.0))
        if i > 0:
            triplets.append((i, i - 1, -1.0))
        if i < n - 1:
            triplets.append((i, i + 1, -1.0))
    return SparseMatrix.from_triplets(triplets, (n, n))


SHAPES = [(1, 1), (5, 5), (7, 3), (3, 7), (32, 32), (50, 20)]


# ============================================================================
# Construction
# ============================================================================

class TestConstruction:

    @pytest.mark.parametrize('shape', SHAPES)
    def test_from_dense_matches_scipy(self, shape):
        A_dense = create_sparse_dense(*shape)
        A = SparseMatrix.from_dense(A_dense)
        ref = csr_matrix(A_dense.numpy())

        assert A.shape == shape
        assert A.nnz == ref.nnz
        np.testing.assert_array_equal(A.row_ptr.numpy(), ref.indptr)
        np.testing.assert_array_equal(A.col_indices.numpy(), ref.indices)
        np.testing.assert_array_equal(A.values.numpy(), ref.data)

    def test_from_dense_nested_lists_are_float64(self):
        A = SparseMatrix.from_dense([[1, 0], [0, 2]])
        assert A.dtype == torch.float64
        assert A.nnz == 2
        assert A.row_ptr.tolist() == [0, 1, 2]
        assert A.col_indices.tolist() == [0, 1]

    def test_from_dense_numpy(self):
        A_np = np.array([[0.0, 3.0], [1.0, 0.0]])
        A = SparseMatrix.from_dense(A_np)
        torch.testing.assert_close(A.to_dense(), torch.from_numpy(A_np))

    def test_from_dense_requires_2d(self):
        with pytest.raises(DimensionMismatch):
            SparseMatrix.from_dense([1.0, 2.0])

    @pytest.mark.parametrize('shape', SHAPES)
    def test_from_coo_roundtrip_through_dense(self, shape):
        A_dense = create_sparse_dense(*shape, seed=1)
        row, col = torch.nonzero(A_dense, as_tuple=True)
        perm = torch.randperm(row.numel(), generator=torch.Generator().manual_seed(3))
        A = SparseMatrix.from_coo(A_dense[row, col][perm], row[perm], col[perm], shape)
        torch.testing.assert_close(A.to_dense(), A_dense)

    def test_duplicate_triplets_are_summed(self):
        A = SparseMatrix.from_triplets([(0, 0, 1.0), (0, 0, 2.0)], (1, 1))
        assert A.nnz == 1
        assert A[0, 0] == 3.0

    def test_triplets_count_distinct_positions(self):
        triplets = [(2, 1, 1.0), (0, 0, 5.0), (2, 1, 1.5), (1, 2, -1.0), (0, 0, 1.0)]
        A = SparseMatrix.from_triplets(triplets, (3, 3))
        assert A.nnz == 3
        assert A.triplets() == [(0, 0, 6.0), (1, 2, -1.0), (2, 1, 2.5)]

    def test_triplets_cancelling_to_zero_stay_stored(self):
        A = SparseMatrix.from_triplets([(0, 1, 1.0), (0, 1, -1.0)], (2, 2))
        assert A.nnz == 1
        assert A[0, 1] == 0.0

    def test_triplet_rows_without_entries(self):
        A = SparseMatrix.from_triplets([(0, 0, 1.0), (3, 2, 2.0)], (4, 3))
        assert A.row_ptr.tolist() == [0, 1, 1, 1, 2]

    @pytest.mark.parametrize('triplet', [(2, 0, 1.0), (0, 3, 1.0), (-1, 0, 1.0), (0, -1, 1.0)])
    def test_triplet_out_of_range(self, triplet):
        with pytest.raises(InvalidInput):
            SparseMatrix.from_triplets([triplet], (2, 3))

    @pytest.mark.parametrize('triplet', [(0.5, 0, 1.0), (0, 0), "abc", None])
    def test_malformed_triplet(self, triplet):
        with pytest.raises(InvalidInput):
            SparseMatrix.from_triplets([triplet], (2, 2))

    @pytest.mark.parametrize('value', ["x", [1.0, 2.0], None])
    def test_non_numeric_triplet_value(self, value):
        with pytest.raises(KrylovError):
            SparseMatrix.from_triplets([(0, 0, value)], (1, 1))

    @pytest.mark.parametrize('dense', [[[1.0, 2.0], [3.0]], [[1.0, "x"]]])
    def test_malformed_dense(self, dense):
        with pytest.raises(InvalidInput):
            SparseMatrix.from_dense(dense)

    @pytest.mark.parametrize('shape', [(-1, 2), (2,), "ab"])
    def test_bad_shape(self, shape):
        with pytest.raises(InvalidInput):
            SparseMatrix.from_triplets([], shape)

    def test_from_torch_sparse(self):
        A_dense = create_sparse_dense(6, 4)
        for A_torch in (A_dense.to_sparse_coo(), A_dense.to_sparse_csr()):
            A = SparseMatrix.from_torch_sparse(A_torch)
            torch.testing.assert_close(A.to_dense(), A_dense)

    def test_to_torch_sparse(self):
        A_dense = create_sparse_dense(6, 4)
        A = SparseMatrix.from_dense(A_dense)
        A_csr = A.to_torch_sparse()
        assert A_csr.layout == torch.sparse_csr
        torch.testing.assert_close(A_csr.to_dense(), A_dense)


class TestCSRConstructor:

    def test_valid(self):
        A = SparseMatrix([1.0, 2.0, 3.0], [0, 2, 1], [0, 2, 2, 3], (3, 3))
        torch.testing.assert_close(
            A.to_dense(),
            torch.tensor([[1.0, 0.0, 2.0], [0.0, 0.0, 0.0], [0.0, 3.0, 0.0]], dtype=torch.float64),
        )

    def test_inputs_are_copied(self):
        values = torch.tensor([1.0, 2.0], dtype=torch.float64)
        A = SparseMatrix(values, [0, 1], [0, 1, 2], (2, 2))
        values[0] = 100.0
        assert A[0, 0] == 1.0

    def test_accessors_return_copies(self):
        A = SparseMatrix([1.0, 2.0], [0, 1], [0, 1, 2], (2, 2))
        A.values[0] = 100.0
        A.col_indices[0] = 1
        A.row_ptr[1] = 0
        assert A[0, 0] == 1.0
        assert A.row_ptr.tolist() == [0, 1, 2]

    def test_torch_sparse_is_a_copy(self):
        A = SparseMatrix.from_dense([[1.0, 0.0], [0.0, 2.0]])
        A_csr = A.to_torch_sparse()
        A_csr.values().mul_(100)
        A_csr.col_indices().fill_(0)
        assert A[0, 0] == 1.0
        assert A[1, 1] == 2.0
        assert A.col_indices.tolist() == [0, 1]

    def test_no_item_assignment(self):
        A = SparseMatrix([1.0], [0], [0, 1], (1, 1))
        with pytest.raises(TypeError):
            A[0, 0] = 2.0

    @pytest.mark.parametrize(['values', 'col', 'rowptr'], [
        ([1.0, 2.0], [0, 1], [0, 2]),          # rowptr too short
        ([1.0, 2.0], [0], [0, 1, 2]),          # col shorter than values
    ])
    def test_dimension_mismatch(self, values, col, rowptr):
        with pytest.raises(DimensionMismatch):
            SparseMatrix(values, col, rowptr, (2, 2))

    @pytest.mark.parametrize(['values', 'col', 'rowptr'], [
        ([1.0, 2.0], [0, 1], [1, 1, 2]),       # rowptr[0] != 0
        ([1.0, 2.0], [0, 1], [0, 1, 3]),       # rowptr[-1] != nnz
        ([1.0, 2.0], [0, 1], [0, 3, 2]),       # decreasing
        ([1.0, 2.0], [0, 2], [0, 1, 2]),       # column out of range
        ([1.0, 2.0], [1, 1], [0, 2, 2]),       # duplicate column in a row
        ([1.0, 2.0], [1, 0], [0, 2, 2]),       # unsorted row
        ([1.0, 2.0], [0.0, 1.0], [0, 1, 2]),   # float indices
    ])
    def test_invalid_input(self, values, col, rowptr):
        with pytest.raises(InvalidInput):
            SparseMatrix(values, col, rowptr, (2, 2))


# ============================================================================
# Properties
# ============================================================================

class TestProperties:

    @pytest.mark.parametrize('shape', SHAPES)
    def test_nnz_and_sparsity(self, shape):
        A_dense = create_sparse_dense(*shape)
        A = SparseMatrix.from_dense(A_dense)
        count = int((A_dense != 0).sum())
        assert A.nnz == count
        assert A.sparsity == pytest.approx(1 - count / (shape[0] * shape[1]))

    def test_all_zero_matrix(self):
        A = SparseMatrix.from_dense(torch.zeros(4, 5, dtype=torch.float64))
        assert A.nnz == 0
        assert A.sparsity == 1.0
        assert A.row_ptr.tolist() == [0] * 5

    @pytest.mark.parametrize('shape', [(0, 0), (0, 4), (3, 0)])
    def test_empty_matrix(self, shape):
        A = SparseMatrix.from_triplets([], shape)
        assert A.shape == shape
        assert A.nnz == 0
        assert A.sparsity == 1.0
        assert A.multiply(torch.zeros(shape[1], dtype=torch.float64)).shape == (shape[0],)
        assert A.transposed().shape == (shape[1], shape[0])
        assert A.to_dense().shape == shape

    def test_empty_dense_list(self):
        A = SparseMatrix.from_dense([])
        assert A.shape == (0, 0)
        assert A.sparsity == 1.0

    def test_memory_savings(self):
        A = random_sparse((1000, 1000), density=0.003, seed=0)
        savings = 1 - A.memory_bytes() / A.dense_memory_bytes()
        assert A.nnz == 3000
        assert savings > 0.95

    def test_repr(self):
        A = create_tridiagonal(3)
        assert repr(A) == "SparseMatrix(shape=(3, 3), nnz=7, sparsity=0.2222, dtype=torch.float64, device=cpu)"

    def test_to_dtype(self):
        A = create_tridiagonal(4)
        B = A.to(dtype=torch.float32)
        assert B.dtype == torch.float32
        assert A.dtype == torch.float64
        torch.testing.assert_close(B.to_dense(), A.to_dense().float())

    def test_is_symmetric(self):
        assert create_tridiagonal(5).is_symmetric()
        assert not SparseMatrix.from_dense([[1.0, 2.0], [0.0, 1.0]]).is_symmetric()
        assert not SparseMatrix.from_dense([[1.0, 2.0, 3.0]]).is_symmetric()
        # an explicit zero matches an unstored cell
        A = SparseMatrix.from_triplets([(0, 1, 1.0), (0, 1, -1.0), (0, 0, 2.0)], (2, 2))
        assert A.is_symmetric()
        B = SparseMatrix.from_dense([[1.0, 2.0], [2.0 + 1e-12, 1.0]])
        assert not B.is_symmetric()
        assert B.is_symmetric(atol=1e-10)


# ============================================================================
# Matrix-vector product
# ============================================================================

class TestMultiply:

    @pytest.mark.parametrize('shape', SHAPES)
    def test_matches_dense(self, shape):
        A_dense = create_sparse_dense(*shape)
        A = SparseMatrix.from_dense(A_dense)
        x = torch.randn(shape[1], dtype=torch.float64)
        torch.testing.assert_close(A.multiply(x), A_dense @ x)
        torch.testing.assert_close(A @ x, A_dense @ x)

    def test_matches_dense_matrix(self):
        A_dense = create_sparse_dense(9, 6)
        A = SparseMatrix.from_dense(A_dense)
        X = torch.randn(6, 4, dtype=torch.float64)
        torch.testing.assert_close(A @ X, A_dense @ X)

    def test_accepts_lists(self):
        A = SparseMatrix.from_dense([[1.0, 2.0], [0.0, 3.0]])
        assert A.multiply([1.0, 1.0]).tolist() == [3.0, 3.0]

    @pytest.mark.parametrize('x', [torch.ones(3), torch.ones(5), torch.ones(4, 1)])
    def test_dimension_mismatch(self, x):
        A = SparseMatrix.from_dense(create_sparse_dense(4, 4))
        with pytest.raises(DimensionMismatch):
            A.multiply(x)

    def test_matmul_dimension_mismatch(self):
        A = SparseMatrix.from_dense(create_sparse_dense(4, 4))
        with pytest.raises(DimensionMismatch):
            A @ torch.ones(3, 2, dtype=torch.float64)

    def test_cost_independent_of_dense_size(self):
        # a dense 200000 x 200000 float64 matrix would need 320 GB
        n = 200_000
        idx = torch.arange(n)
        A = SparseMatrix.from_coo(torch.full((n,), 2.0, dtype=torch.float64), idx, idx, (n, n))
        x = torch.arange(n, dtype=torch.float64)
        torch.testing.assert_close(A.multiply(x), 2 * x)
        assert A.sparsity > 0.99999


# ============================================================================
# Transpose / submatrix / element access
# ============================================================================

class TestDerived:

    @pytest.mark.parametrize('shape', SHAPES)
    def test_transposed_matches_dense(self, shape):
        A_dense = create_sparse_dense(*shape)
        A = SparseMatrix.from_dense(A_dense)
        At = A.transposed()
        assert At.shape == (shape[1], shape[0])
        assert At.nnz == A.nnz
        torch.testing.assert_close(At.to_dense(), A_dense.T)
        torch.testing.assert_close(A.T.to_dense(), A_dense.T)

    @pytest.mark.parametrize('shape', SHAPES)
    def test_double_transpose_reproduces_entries(self, shape):
        A = SparseMatrix.from_dense(create_sparse_dense(*shape))
        Att = A.transposed().transposed()
        assert csr_allclose(A, Att, atol=0.0)
        assert A.triplets() == Att.triplets()

    def test_transpose_matches_scipy(self):
        A_dense = create_sparse_dense(8, 5)
        At = SparseMatrix.from_dense(A_dense).transposed()
        ref = csr_matrix(A_dense.numpy()).T.tocsr()
        ref.sort_indices()
        np.testing.assert_array_equal(At.row_ptr.numpy(), ref.indptr)
        np.testing.assert_array_equal(At.col_indices.numpy(), ref.indices)
        np.testing.assert_array_equal(At.values.numpy(), ref.data)

    @pytest.mark.parametrize(['rows', 'cols'], product(
        [(0, 10), (2, 7), (3, 3), (9, 10)],
        [(0, 8), (1, 4), (5, 8), (4, 4)],
    ))
    def test_submatrix_matches_dense(self, rows, cols):
        A_dense = create_sparse_dense(10, 8)
        A = SparseMatrix.from_dense(A_dense)
        S = A.submatrix(rows, cols)
        expected = A_dense[rows[0]:rows[1], cols[0]:cols[1]]
        assert S.shape == tuple(expected.shape)
        assert S.nnz == int((expected != 0).sum())
        torch.testing.assert_close(S.to_dense(), expected)

    def test_submatrix_range_kinds(self):
        A = SparseMatrix.from_dense(create_sparse_dense(10, 8))
        ref = A.submatrix((2, 6), (1, 5))
        for rows, cols in [(range(2, 6), range(1, 5)), (slice(2, 6), slice(1, 5))]:
            assert csr_allclose(A.submatrix(rows, cols), ref, atol=0.0)
        assert csr_allclose(A.submatrix(slice(None), slice(None)), A, atol=0.0)

    @pytest.mark.parametrize(['rows', 'cols'], [
        ((0, 11), (0, 8)),
        ((0, 10), (0, 9)),
        ((-1, 3), (0, 8)),
        ((5, 3), (0, 8)),
        (slice(0, 10, 2), (0, 8)),
        (range(0, 8, 2), (0, 8)),
        ((0, 1, 2), (0, 8)),
        ((0.0, 2.0), (0, 8)),
    ])
    def test_submatrix_rejects_bad_ranges(self, rows, cols):
        A = SparseMatrix.from_dense(create_sparse_dense(10, 8))
        with pytest.raises(InvalidInput):
            A.submatrix(rows, cols)

    def test_getitem(self):
        A_dense = create_sparse_dense(6, 5)
        A = SparseMatrix.from_dense(A_dense)
        for i in range(6):
            for j in range(5):
                assert A[i, j] == A_dense[i, j].item()
        assert A[-1, -1] == A_dense[-1, -1].item()

    @pytest.mark.parametrize('key', [(6, 0), (0, 5), (-7, 0)])
    def test_getitem_out_of_range(self, key):
        A = SparseMatrix.from_dense(create_sparse_dense(6, 5))
        with pytest.raises(IndexError):
            A[key]

    def test_getitem_requires_pair(self):
        A = SparseMatrix.from_dense(create_sparse_dense(6, 5))
        with pytest.raises(TypeError):
            A[0]
