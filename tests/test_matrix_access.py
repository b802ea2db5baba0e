import numpy as np
import pytest
import scipy.sparse as sp

from scdenoise.core.matrix import MatrixAccess
from scdenoise.core.parallel import ExecutionContext


def _dense() -> np.ndarray:
    return np.array(
        [
            [0.0, 1.0, 0.0, 3.0, 0.0],
            [2.0, 2.0, 2.0, 2.0, 2.0],
            [0.0, 0.0, 0.0, 0.0, 7.0],
        ]
    )


def test_dense_and_sparse_rows_match():
    x = _dense()
    dense = MatrixAccess(x)
    sparse = MatrixAccess(sp.csc_matrix(x))
    assert sparse.is_sparse and not dense.is_sparse
    assert dense.shape == sparse.shape == (3, 5)
    for i in range(3):
        np.testing.assert_array_equal(dense.get_row(i), sparse.get_row(i))


def test_sparse_duplicates_are_summed_without_touching_input():
    coo = sp.coo_matrix(
        (np.array([1.0, 2.0, 4.0]), (np.array([0, 0, 1]), np.array([1, 1, 0]))),
        shape=(2, 3),
    )
    before = coo.data.copy()
    acc = MatrixAccess(coo)
    np.testing.assert_array_equal(acc.get_row(0), [0.0, 3.0, 0.0])
    np.testing.assert_array_equal(coo.data, before)


@pytest.mark.parametrize("to_matrix", [np.asarray, sp.csr_matrix])
def test_row_statistics(to_matrix):
    x = _dense()
    acc = MatrixAccess(to_matrix(x))
    rows = np.array([2, 0])
    np.testing.assert_allclose(acc.row_means(rows), x[rows].mean(axis=1))
    np.testing.assert_allclose(acc.row_vars(rows), x[rows].var(axis=1, ddof=1))
    np.testing.assert_allclose(acc.dense_rows(rows), x[rows])


def test_row_vars_need_two_cells():
    acc = MatrixAccess(np.ones((2, 1)))
    assert np.all(np.isnan(acc.row_vars(np.arange(2))))


def test_non_2d_rejected():
    with pytest.raises(ValueError, match="2D"):
        MatrixAccess(np.ones(3))
    with pytest.raises(ValueError, match="numeric"):
        MatrixAccess(np.array([["a", "b"]]))


def test_context_preserves_order_across_chunks():
    acc = MatrixAccess(np.arange(40, dtype=float).reshape(10, 4))
    rows = np.array([9, 3, 5, 0, 7, 1, 2])
    serial = ExecutionContext().map_rows(acc.row_means, rows)
    parallel = ExecutionContext(n_jobs=2, chunk_size=2).map_rows(acc.row_means, rows)
    np.testing.assert_allclose(serial, parallel)
    np.testing.assert_allclose(serial, np.arange(40).reshape(10, 4)[rows].mean(axis=1))


def test_context_handles_empty_rows():
    acc = MatrixAccess(np.ones((3, 4)))
    out = ExecutionContext().map_rows(acc.row_vars, np.zeros(0, dtype=int))
    assert out.shape == (0,)


@pytest.mark.parametrize(
    "kwargs, match",
    [
        ({"n_jobs": 0}, "n_jobs"),
        ({"chunk_size": 0}, "chunk_size"),
        ({"backend": "dask"}, "Unknown backend"),
    ],
)
def test_context_validation(kwargs, match):
    with pytest.raises(ValueError, match=match):
        ExecutionContext(**kwargs)
