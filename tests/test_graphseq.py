import math

import numpy as np
import pytest

from fps.graphseq import BiGraphSequence, GraphSequence


def _as_sets(partition):
    return [
        (frozenset(b.rows.tolist()), frozenset(b.cols.tolist())) for b in partition
    ]


def test_bigraph_sequence_records_merges():
    x = np.array(
        [
            [5.0, 0.0, 0.0],
            [0.0, -4.0, 0.0],
            [2.0, 0.0, 0.0],
        ]
    )
    gs = BiGraphSequence(x)

    np.testing.assert_array_equal(gs.knots, [math.inf, 5.0, 4.0, 2.0])
    assert len(gs) == 4
    assert gs[0] == (math.inf, ())
    assert _as_sets(gs[1][1]) == [({0}, {0})]
    assert _as_sets(gs[2][1]) == [({0}, {0}), ({1}, {1})]
    assert _as_sets(gs[3][1]) == [({0, 2}, {0}), ({1}, {1})]
    assert not gs.truncated
    assert gs.lambda_floor == 0.0


def test_get_active_uses_first_threshold_below_lambda():
    x = np.array(
        [
            [5.0, 0.0, 0.0],
            [0.0, 4.0, 0.0],
            [2.0, 0.0, 0.0],
        ]
    )
    gs = BiGraphSequence(x)

    assert _as_sets(gs.get_active(10.0)) == [({0}, {0})]
    assert _as_sets(gs.get_active(4.5)) == [({0}, {0}), ({1}, {1})]
    assert _as_sets(gs.get_active(4.0)) == [({0}, {0}), ({1}, {1})]
    assert _as_sets(gs.get_active(3.0)) == [({0, 2}, {0}), ({1}, {1})]
    # Below the smallest threshold the finest partition is returned.
    assert _as_sets(gs.get_active(0.5)) == [({0, 2}, {0}), ({1}, {1})]


def test_ties_are_merged_in_one_entry():
    x = np.array(
        [
            [1.0, 0.0, 0.0],
            [0.0, 1.0, 0.0],
            [0.0, 0.0, 1.0],
            [1.0, 1.0, 1.0],
        ]
    )
    gs = BiGraphSequence(x)

    assert len(gs) == 2
    (block,) = gs[1][1]
    np.testing.assert_array_equal(block.rows, [0, 1, 2, 3])
    np.testing.assert_array_equal(block.cols, [0, 1, 2])


def test_minval_excludes_small_entries():
    x = np.array([[3.0, 0.1], [0.2, 1.0]])
    gs = BiGraphSequence(x, minval=0.5)

    np.testing.assert_array_equal(gs.knots, [math.inf, 3.0, 1.0])
    assert _as_sets(gs.get_active(0.0)) == [({0}, {0}), ({1}, {1})]


def test_partitions_only_coarsen():
    rng = np.random.default_rng(1234)
    x = rng.standard_normal((8, 6))
    gs = BiGraphSequence(x)

    assert np.all(np.diff(gs.knots[1:]) < 0)
    previous = []
    for _threshold, partition in gs:
        current = _as_sets(partition)
        for rows, cols in previous:
            assert any(rows <= r and cols <= c for r, c in current)
        rows_seen = [r for b in partition for r in b.rows.tolist()]
        cols_seen = [c for b in partition for c in b.cols.tolist()]
        assert len(rows_seen) == len(set(rows_seen))
        assert len(cols_seen) == len(set(cols_seen))
        previous = current

    # All entries are nonzero, so the last partition is one full block.
    (block,) = gs[len(gs) - 1][1]
    assert block.rows.size == 8 and block.cols.size == 6


def test_max_block_size_truncates_sequence():
    x = np.array(
        [
            [5.0, 0.0, 0.0],
            [0.0, 4.0, 0.0],
            [2.0, 0.0, 0.0],
        ]
    )
    gs = BiGraphSequence(x, max_block_size=3)

    assert gs.truncated
    assert gs.lambda_floor == 2.0
    np.testing.assert_array_equal(gs.knots, [math.inf, 5.0, 4.0])
    assert BiGraphSequence.max_block_size_of(gs[2][1]) == 2

    # A block that reaches the bound is already excluded.
    gs = BiGraphSequence(x, max_block_size=2)
    assert gs.truncated
    assert gs.lambda_floor == 5.0
    np.testing.assert_array_equal(gs.knots, [math.inf])
    assert gs.weight_max == 5.0


def test_sequence_stops_once_fully_connected():
    x = np.array([[5.0, 0.1], [4.0, 3.0]])
    gs = BiGraphSequence(x)

    np.testing.assert_array_equal(gs.knots, [math.inf, 5.0, 4.0, 3.0])
    assert _as_sets(gs.get_active(0.0)) == [({0, 1}, {0, 1})]


def test_symmetric_sequence_activates_diagonal_then_joins():
    s = np.array(
        [
            [3.0, 0.5, 0.0],
            [0.5, 2.0, 0.0],
            [0.0, 0.0, 1.0],
        ]
    )
    gs = GraphSequence(s)

    np.testing.assert_array_equal(gs.knots, [math.inf, 3.0, 2.0, 1.0, 0.5])
    last = gs.get_active(0.1)
    assert [b.tolist() for b in last] == [[0, 1], [2]]
    assert [b.tolist() for b in gs.get_active(2.5)] == [[0], [1]]
    assert [b.tolist() for b in gs.get_active(1.5)] == [[0], [1], [2]]
    assert GraphSequence.max_block_size_of(last) == 2
    assert GraphSequence.max_block_size_of(()) == 0


def test_symmetric_sequence_rejects_rectangular_input():
    with pytest.raises(ValueError):
        GraphSequence(np.zeros((2, 3)))
    with pytest.raises(ValueError):
        BiGraphSequence(np.zeros(3))
    with pytest.raises(ValueError):
        BiGraphSequence(np.ones((2, 2)), minval=-1.0)


def test_zero_matrix_has_only_the_empty_partition():
    gs = BiGraphSequence(np.zeros((3, 2)))
    assert len(gs) == 1
    assert gs.get_active(1.0) == ()
