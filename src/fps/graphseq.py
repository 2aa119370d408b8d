"""Sequences of active-set partitions indexed by the penalty level.

For a penalty ``lambda`` the solution of the penalised problem vanishes
outside the connected components of the graph whose edges are the entries
of the input with ``|x_ij| >= lambda``.  As ``lambda`` decreases, edges are
added and components merge.  The classes in this module record every
distinct partition along that sequence so that the path driver can look up
the active blocks for any ``lambda`` without recomputing connectivity.

Two graphs are supported:

* :class:`BiGraphSequence` for a rectangular matrix.  Rows and columns are
  the two vertex classes of a bipartite graph and the entry ``x[i, j]``
  joins row ``i`` to column ``j``.  Blocks are :class:`~fps.blockmat.Block`
  pairs of row and column index sets.
* :class:`GraphSequence` for a symmetric matrix.  The diagonal entry
  ``s[i, i]`` activates variable ``i`` and ``s[i, j]`` joins ``i`` and
  ``j``.  Blocks are index arrays.

Components are maintained incrementally with a union-find structure while
walking the edges in order of decreasing weight, so each edge is touched
once.
"""
from __future__ import annotations

import math
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .blockmat import Block


class _DisjointSets:
    """Union-find over the active vertices, tracking component members."""

    def __init__(self, n: int) -> None:
        self.parent = np.full(n, -1, dtype=int)
        self.members: Dict[int, List[int]] = {}
        self.rank: Dict[int, int] = {}
        self.n_activated = 0

    def find(self, v: int) -> int:
        root = v
        while self.parent[root] != root:
            root = int(self.parent[root])
        while self.parent[v] != root:
            nxt = int(self.parent[v])
            self.parent[v] = root
            v = nxt
        return root

    def activate(self, v: int) -> bool:
        if self.parent[v] >= 0:
            return False
        self.parent[v] = v
        self.members[v] = [v]
        self.rank[v] = self.n_activated
        self.n_activated += 1
        return True

    def union(self, a: int, b: int) -> Optional[int]:
        """Merge the components of ``a`` and ``b``; return the surviving root."""

        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return None
        if len(self.members[ra]) < len(self.members[rb]):
            ra, rb = rb, ra
        self.parent[rb] = ra
        self.members[ra].extend(self.members.pop(rb))
        self.rank[ra] = min(self.rank[ra], self.rank.pop(rb))
        return ra


class _BaseGraphSequence:
    """Shared construction and lookup logic of the graph sequences."""

    def __init__(
        self,
        heads: np.ndarray,
        tails: np.ndarray,
        weights: np.ndarray,
        n_vertices: int,
        minval: float,
        max_block_size: int | None,
    ) -> None:
        if minval < 0:
            raise ValueError("'minval' must be non-negative")
        if max_block_size is not None and max_block_size < 1:
            raise ValueError("'max_block_size' must be positive")

        self.minval = float(minval)
        self.max_block_size = max_block_size
        self.truncated = False
        self.lambda_floor = self.minval
        # Largest entry magnitude, before ``minval`` filtering.
        self.weight_max = float(weights.max()) if weights.size else 0.0

        keep = (weights > 0.0) & (weights >= minval)
        heads, tails, weights = heads[keep], tails[keep], weights[keep]
        order = np.argsort(-weights, kind="stable")
        heads, tails, weights = heads[order], tails[order], weights[order]

        thresholds: List[float] = [math.inf]
        partitions: List[tuple] = [()]

        sets = _DisjointSets(n_vertices)
        blocks: Dict[int, object] = {}
        n_edges = weights.size
        start = 0
        while start < n_edges:
            w = weights[start]
            stop = start
            while stop < n_edges and weights[stop] == w:
                stop += 1

            changed = set()
            for e in range(start, stop):
                h, t = int(heads[e]), int(tails[e])
                for v in (h, t):
                    if sets.activate(v):
                        changed.add(v)
                root = sets.union(h, t)
                if root is not None:
                    changed.add(root)
            start = stop

            if not changed:
                continue

            largest = max(len(m) for m in sets.members.values())
            if max_block_size is not None and largest >= max_block_size:
                self.truncated = True
                self.lambda_floor = float(w)
                break

            for root in list(blocks):
                if root not in sets.members:
                    del blocks[root]
            for v in changed:
                root = sets.find(v)
                blocks[root] = self._make_block(sorted(sets.members[root]))
            ranked = sorted(blocks, key=lambda r: sets.rank[r])

            thresholds.append(float(w))
            partitions.append(tuple(blocks[r] for r in ranked))

            if sets.n_activated == n_vertices and len(sets.members) == 1:
                break

        self._knots = np.array(thresholds, dtype=float)
        self._partitions = partitions

    def _make_block(self, vertices: List[int]):
        raise NotImplementedError

    @staticmethod
    def block_size(block) -> int:
        raise NotImplementedError

    @classmethod
    def max_block_size_of(cls, partition: Sequence) -> int:
        """Size of the largest block of ``partition`` (0 when empty)."""

        return max((cls.block_size(b) for b in partition), default=0)

    @property
    def knots(self) -> np.ndarray:
        """Thresholds of the sequence in decreasing order."""

        return self._knots.copy()

    def __len__(self) -> int:
        return len(self._partitions)

    def __getitem__(self, index: int) -> Tuple[float, tuple]:
        return float(self._knots[index]), self._partitions[index]

    def __iter__(self) -> Iterator[Tuple[float, tuple]]:
        for threshold, partition in zip(self._knots, self._partitions):
            yield float(threshold), partition

    def get_active(self, lam: float) -> tuple:
        """Return the active partition for the penalty ``lam``.

        This is the partition of the first entry whose threshold is at
        most ``lam``.  Below the smallest threshold the last, finest
        partition is returned.
        """

        k = int(np.searchsorted(-self._knots, -lam, side="left"))
        if k >= len(self._partitions):
            k = len(self._partitions) - 1
        return self._partitions[k]


class BiGraphSequence(_BaseGraphSequence):
    """Partition sequence of the bipartite row/column graph of ``x``.

    Parameters
    ----------
    x : :class:`numpy.ndarray`
        Rectangular input matrix.
    minval : float, optional
        Entries with ``|x_ij| < minval`` are never added.
    max_block_size : int, optional
        Bound on the number of rows plus columns in a block.  The sequence
        stops before the first threshold at which a block reaches it.
    """

    def __init__(self, x: np.ndarray, minval: float = 0.0, max_block_size: int | None = None) -> None:
        x = np.asarray(x, dtype=float)
        if x.ndim != 2:
            raise ValueError("'x' must be a 2-D array")
        self.n_rows, self.n_cols = x.shape
        rows, cols = np.indices(x.shape)
        super().__init__(
            rows.ravel(),
            cols.ravel() + self.n_rows,
            np.abs(x).ravel(),
            self.n_rows + self.n_cols,
            minval,
            max_block_size,
        )

    def _make_block(self, vertices: List[int]) -> Block:
        v = np.asarray(vertices, dtype=int)
        return Block(v[v < self.n_rows], v[v >= self.n_rows] - self.n_rows)

    @staticmethod
    def block_size(block: Block) -> int:
        return int(block.rows.size + block.cols.size)


class GraphSequence(_BaseGraphSequence):
    """Partition sequence of the graph of a symmetric matrix ``s``.

    Parameters
    ----------
    s : :class:`numpy.ndarray`
        Square symmetric input matrix; only the upper triangle is read.
    minval : float, optional
        Entries with ``|s_ij| < minval`` are never added.
    max_block_size : int, optional
        Bound on the number of variables in a block, as for
        :class:`BiGraphSequence`.
    """

    def __init__(self, s: np.ndarray, minval: float = 0.0, max_block_size: int | None = None) -> None:
        s = np.asarray(s, dtype=float)
        if s.ndim != 2 or s.shape[0] != s.shape[1]:
            raise ValueError("'s' must be a square matrix")
        self.n_vars = s.shape[0]
        heads, tails = np.triu_indices(self.n_vars)
        super().__init__(
            heads,
            tails,
            np.abs(s[heads, tails]),
            self.n_vars,
            minval,
            max_block_size,
        )

    def _make_block(self, vertices: List[int]) -> np.ndarray:
        return np.asarray(vertices, dtype=int)

    @staticmethod
    def block_size(block: np.ndarray) -> int:
        return int(block.size)


__all__ = ["BiGraphSequence", "GraphSequence"]
