"""Block diagonal matrices restricted to an active set.

A :class:`BlockMatrix` stores one dense sub-matrix per block of a
partition of the rows and columns of a larger matrix.  Entries outside
every block are implicitly zero, which lets the ADMM iterations work on
small dense pieces instead of the whole matrix.  Arithmetic is applied
blockwise and reductions are sums of the per-block quantities.

Two specialisations build a block matrix from a dense matrix:
:class:`BlockMap` for rectangular blocks given by independent row and
column index sets, and :class:`SymBlockMap` for symmetric blocks that use
a single index set for both.
"""
from __future__ import annotations

from numbers import Real
from typing import Iterator, List, NamedTuple, Sequence

import numpy as np


class Block(NamedTuple):
    """Row and column index sets of one rectangular block."""

    rows: np.ndarray
    cols: np.ndarray


class BlockMatrix:
    """Ordered collection of dense blocks sharing a partition."""

    # Mixed expressions with an ndarray dispatch to the reflected methods.
    __array_ufunc__ = None

    def __init__(self, blocks: Sequence[np.ndarray] = ()) -> None:
        self.blocks: List[np.ndarray] = [np.array(b, dtype=float) for b in blocks]
        self.partition: tuple | None = None

    def _like(self, blocks: List[np.ndarray]) -> "BlockMatrix":
        # Results of arithmetic keep the type and partition of ``self`` so
        # that they can still be scattered with ``copy_to``.
        out = BlockMatrix.__new__(type(self))
        out.blocks = [np.asarray(b, dtype=float) for b in blocks]
        out.partition = self.partition
        return out

    def __len__(self) -> int:
        return len(self.blocks)

    def __iter__(self) -> Iterator[np.ndarray]:
        return iter(self.blocks)

    def __getitem__(self, index: int) -> np.ndarray:
        return self.blocks[index]

    def __repr__(self) -> str:
        shapes = ", ".join(f"{b.shape[0]}x{b.shape[1]}" for b in self.blocks)
        return f"{type(self).__name__}([{shapes}])"

    @property
    def shapes(self) -> List[tuple]:
        return [b.shape for b in self.blocks]

    def copy(self) -> "BlockMatrix":
        return self._like([b.copy() for b in self.blocks])

    def _check_partner(self, other: "BlockMatrix") -> None:
        if len(other) != len(self) or any(
            a.shape != b.shape for a, b in zip(self.blocks, other.blocks)
        ):
            raise ValueError("Block matrices must share the same partition")

    def _binary(self, other, op) -> "BlockMatrix":
        if isinstance(other, BlockMatrix):
            self._check_partner(other)
            return self._like([op(a, b) for a, b in zip(self.blocks, other.blocks)])
        if isinstance(other, Real):
            return self._like([op(a, float(other)) for a in self.blocks])
        return NotImplemented

    def _inplace(self, other, op) -> "BlockMatrix":
        if isinstance(other, BlockMatrix):
            self._check_partner(other)
            for a, b in zip(self.blocks, other.blocks):
                op(a, b, out=a)
            return self
        if isinstance(other, Real):
            for a in self.blocks:
                op(a, float(other), out=a)
            return self
        return NotImplemented

    def __add__(self, other):
        return self._binary(other, np.add)

    def __radd__(self, other):
        return self._binary(other, np.add)

    def __sub__(self, other):
        return self._binary(other, np.subtract)

    def __rsub__(self, other):
        if isinstance(other, Real):
            return self._like([float(other) - a for a in self.blocks])
        return NotImplemented

    def __mul__(self, other):
        if isinstance(other, Real):
            return self._binary(other, np.multiply)
        return NotImplemented

    def __rmul__(self, other):
        return self.__mul__(other)

    def __truediv__(self, other):
        if isinstance(other, Real):
            return self._binary(other, np.divide)
        return NotImplemented

    def __neg__(self) -> "BlockMatrix":
        return self._like([-a for a in self.blocks])

    def __iadd__(self, other):
        return self._inplace(other, np.add)

    def __isub__(self, other):
        return self._inplace(other, np.subtract)

    def __imul__(self, other):
        if isinstance(other, Real):
            return self._inplace(other, np.multiply)
        return NotImplemented

    def __itruediv__(self, other):
        if isinstance(other, Real):
            return self._inplace(other, np.divide)
        return NotImplemented

    def square(self) -> "BlockMatrix":
        """Elementwise square."""

        return self._like([np.square(a) for a in self.blocks])

    def sum_squares(self) -> float:
        """Sum of squared entries over all blocks."""

        return float(sum(np.sum(np.square(a)) for a in self.blocks))

    def sum_abs(self) -> float:
        """Sum of absolute values over all blocks (the L1 norm)."""

        return float(sum(np.sum(np.abs(a)) for a in self.blocks))

    def inner(self, other: "BlockMatrix") -> float:
        """Frobenius inner product ``sum_b <A_b, B_b>``."""

        self._check_partner(other)
        return float(sum(np.sum(a * b) for a, b in zip(self.blocks, other.blocks)))

    def dot_square(self, other: "BlockMatrix") -> float:
        """Sum over blocks of ``||A_b^T B_b||_F^2``."""

        self._check_partner(other)
        return float(sum(np.sum(np.square(a.T @ b)) for a, b in zip(self.blocks, other.blocks)))

    def tdot_square(self, other: "BlockMatrix") -> float:
        """Sum over blocks of ``||A_b B_b^T||_F^2``."""

        self._check_partner(other)
        return float(sum(np.sum(np.square(a @ b.T)) for a, b in zip(self.blocks, other.blocks)))


class BlockMap(BlockMatrix):
    """Rectangular blocks ``x[rows, cols]`` copied out of a dense matrix."""

    def __init__(self, x: np.ndarray, partition: Sequence[Block]) -> None:
        super().__init__([x[np.ix_(rows, cols)] for rows, cols in partition])
        self.partition = tuple(partition)

    def copy_to(self, x: np.ndarray) -> np.ndarray:
        """Scatter the blocks into ``x``; entries outside the blocks are untouched."""

        for (rows, cols), b in zip(self.partition, self.blocks):
            x[np.ix_(rows, cols)] = b
        return x


class SymBlockMap(BlockMatrix):
    """Symmetric blocks ``x[idx, idx]`` copied out of a dense matrix."""

    def __init__(self, x: np.ndarray, partition: Sequence[np.ndarray]) -> None:
        super().__init__([x[np.ix_(idx, idx)] for idx in partition])
        self.partition = tuple(partition)

    def copy_to(self, x: np.ndarray) -> np.ndarray:
        """Scatter the blocks into ``x``; entries outside the blocks are untouched."""

        for idx, b in zip(self.partition, self.blocks):
            x[np.ix_(idx, idx)] = b
        return x


def blocks_of(m: np.ndarray | BlockMatrix) -> List[np.ndarray]:
    """Return the dense pieces of ``m``: its blocks, or ``m`` itself."""

    if isinstance(m, BlockMatrix):
        return m.blocks
    return [m]


def sum_squares(m: np.ndarray | BlockMatrix) -> float:
    if isinstance(m, BlockMatrix):
        return m.sum_squares()
    return float(np.sum(np.square(m)))


def sum_abs(m: np.ndarray | BlockMatrix) -> float:
    if isinstance(m, BlockMatrix):
        return m.sum_abs()
    return float(np.sum(np.abs(m)))


def frobenius_norm(m: np.ndarray | BlockMatrix) -> float:
    return float(np.sqrt(sum_squares(m)))


__all__ = [
    "Block",
    "BlockMatrix",
    "BlockMap",
    "SymBlockMap",
    "blocks_of",
    "frobenius_norm",
    "sum_abs",
    "sum_squares",
]
