import numpy as np
import pytest

from fps.blockmat import (
    Block,
    BlockMap,
    BlockMatrix,
    SymBlockMap,
    frobenius_norm,
    sum_abs,
    sum_squares,
)


def _partition():
    return (
        Block(np.array([0, 2]), np.array([1, 3, 4])),
        Block(np.array([3]), np.array([0])),
    )


def _masked(x: np.ndarray, partition) -> np.ndarray:
    out = np.zeros_like(x)
    for rows, cols in partition:
        out[np.ix_(rows, cols)] = x[np.ix_(rows, cols)]
    return out


def test_block_map_extracts_and_scatters():
    rng = np.random.default_rng(1234)
    x = rng.standard_normal((5, 5))
    bm = BlockMap(x, _partition())

    assert len(bm) == 2
    assert bm.shapes == [(2, 3), (1, 1)]
    np.testing.assert_array_equal(bm[0], x[np.ix_([0, 2], [1, 3, 4])])

    # Blocks own their storage.
    bm[1][0, 0] = 100.0
    assert x[3, 0] != 100.0

    target = np.full((5, 5), -7.0)
    bm.copy_to(target)
    assert target[3, 0] == 100.0
    np.testing.assert_array_equal(target[np.ix_([0, 2], [1, 3, 4])], bm[0])
    # Entries outside the blocks are untouched.
    assert target[1, 1] == -7.0
    assert target[0, 0] == -7.0


def test_block_arithmetic_matches_dense_on_the_blocks():
    rng = np.random.default_rng(42)
    partition = _partition()
    x = rng.standard_normal((5, 5))
    y = rng.standard_normal((5, 5))
    bx, by = BlockMap(x, partition), BlockMap(y, partition)

    expr = bx - by + bx / 2.0 - 3.0 * by
    assert isinstance(expr, BlockMap)
    dense = expr.copy_to(np.zeros((5, 5)))
    np.testing.assert_allclose(dense, _masked(x - y + x / 2.0 - 3.0 * y, partition))

    mx, my = _masked(x, partition), _masked(y, partition)
    assert bx.sum_squares() == pytest.approx(np.sum(mx**2))
    assert bx.sum_abs() == pytest.approx(np.sum(np.abs(mx)))
    assert bx.inner(by) == pytest.approx(np.sum(mx * my))
    assert sum_squares(bx) == pytest.approx(sum_squares(mx))
    assert sum_abs(bx) == pytest.approx(sum_abs(mx))
    assert frobenius_norm(bx) == pytest.approx(np.linalg.norm(mx))
    np.testing.assert_allclose(
        bx.square().copy_to(np.zeros((5, 5))), mx**2
    )


def test_cross_term_reductions_are_blockwise_sums():
    rng = np.random.default_rng(3)
    partition = _partition()
    x = rng.standard_normal((5, 5))
    z = rng.standard_normal((5, 5))
    bx, bz = BlockMap(x, partition), BlockMap(z, partition)

    expected_dot = sum(np.sum((a.T @ b) ** 2) for a, b in zip(bx, bz))
    expected_tdot = sum(np.sum((a @ b.T) ** 2) for a, b in zip(bx, bz))
    assert bx.dot_square(bz) == pytest.approx(expected_dot)
    assert bx.tdot_square(bz) == pytest.approx(expected_tdot)

    # With disjoint blocks the cross terms are those of the masked matrices.
    mx, mz = _masked(x, partition), _masked(z, partition)
    assert bx.dot_square(bz) == pytest.approx(np.sum((mx.T @ mz) ** 2))
    assert bx.tdot_square(bz) == pytest.approx(np.sum((mx @ mz.T) ** 2))


def test_in_place_operators_modify_blocks():
    x = np.arange(16, dtype=float).reshape(4, 4)
    bm = BlockMap(x, (Block(np.array([1, 2]), np.array([0, 3])),))
    original = bm[0].copy()
    alias = bm

    bm += bm.copy()
    bm *= 0.5
    bm -= 1.0
    bm /= 2.0
    assert bm is alias
    np.testing.assert_allclose(bm[0], (original - 1.0) / 2.0)


def test_symmetric_map_matches_general_map():
    rng = np.random.default_rng(11)
    a = rng.standard_normal((6, 6))
    s = a + a.T
    index_sets = (np.array([0, 4]), np.array([1, 2, 5]))

    sym = SymBlockMap(s, index_sets)
    general = BlockMap(s, tuple(Block(idx, idx) for idx in index_sets))

    for b_sym, b_gen in zip(sym, general):
        np.testing.assert_array_equal(b_sym, b_gen)
    assert sym.sum_squares() == general.sum_squares()
    assert sym.inner(sym) == general.inner(general)
    np.testing.assert_array_equal(
        sym.copy_to(np.zeros((6, 6))), general.copy_to(np.zeros((6, 6)))
    )


def test_mismatched_partitions_are_rejected():
    x = np.ones((4, 4))
    a = BlockMap(x, (Block(np.array([0]), np.array([0, 1])),))
    b = BlockMap(x, (Block(np.array([0, 1]), np.array([0])),))
    with pytest.raises(ValueError):
        a + b
    with pytest.raises(ValueError):
        a.inner(b)
    with pytest.raises(TypeError):
        np.ones((1, 2)) + a


def test_empty_block_matrix_reduces_to_zero():
    empty = BlockMap(np.ones((3, 3)), ())
    assert len(empty) == 0
    assert empty.sum_squares() == 0.0
    assert (empty - empty).sum_abs() == 0.0
    assert isinstance(BlockMatrix().copy(), BlockMatrix)


def test_block_matrix_copies_its_blocks():
    data = np.ones((2, 2))
    bm = BlockMatrix([data])
    bm[0][0, 0] = 5.0
    assert data[0, 0] == 1.0
    bm *= 2.0
    np.testing.assert_array_equal(data, np.ones((2, 2)))
