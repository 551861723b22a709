# Copyright (c) Facebook, Inc. and its affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.
from typing import List

from .mapper import *

#
# Array chunking - traversal planning
#
# Given a shape and an axis ordering, ArrayChunking walks the
# coordinate space one run at a time. A run is a line along the
# fastest varying axis (order[0]); its length is fixed up front, so run
# boundaries depend only on (shape, order, run length) and can be
# re-derived by a caller that wants to partition work.
#
# Cursor state is kept in *iterator* numbering: iterator index n is
# the position along axis order[n].
#


# axes sorted so the smallest stride varies fastest. slice boundary
# axes always go last: stepping one jumps to an unrelated allocation,
# which makes it the worst axis to vary quickly. ties keep axis order.
def fastest_varying_axes(strides: Strides) -> Tuple[int, ...]:
    def key(n):
        if strides.stepping(n) is Stepping.SLICE_BOUNDARY:
            return (1, 0, n)
        return (0, strides[n], n)

    return tuple(sorted(range(strides.ndim), key=key))


def declared_axes(ndim: int) -> Tuple[int, ...]:
    return tuple(range(ndim))


def check_order(order: Sequence[int], ndim: int):
    if sorted(order) != list(range(ndim)):
        raise PreconditionError(f"axis order {tuple(order)} is not a permutation of {ndim} axes")


# longest run we can hand out per step: the whole fastest axis, unless
# stepping along it crosses slice boundaries, in which case each
# element is its own run
def max_run_length(shape: Shape, order: Sequence[int], strides: Strides) -> int:
    if shape.ndim == 0:
        return 1
    if strides.stepping(order[0]) is Stepping.SLICE_BOUNDARY:
        return 1
    return shape[order[0]]


class ArrayChunking:
    def __init__(self, shape: Shape, order: Sequence[int], run_length: Optional[int] = None):
        if shape.ndim == 0:
            raise PreconditionError("rank 0 arrays can't be traversed")
        check_order(order, shape.ndim)
        self._shape = shape
        self._order = tuple(order)
        self._extents = tuple(shape[n] for n in self._order)
        if run_length is None:
            run_length = self._extents[0]
        if self._extents[0] > 0 and (run_length < 1 or self._extents[0] % run_length != 0):
            msg = f"run length {run_length} must evenly divide extent {self._extents[0]} of axis {self._order[0]}"
            raise PreconditionError(msg)
        self._max_access_elements = run_length
        self._index: List[int] = [0] * shape.ndim
        self._pointer_invalid = True
        self._exhausted = shape.is_empty()

    @property
    def shape(self) -> Shape:
        return self._shape

    @property
    def max_access_elements(self) -> int:
        return self._max_access_elements

    # cursor position in reordered (iterator) numbering
    def iterator_index(self) -> Tuple[int, ...]:
        return tuple(self._index)

    # cursor position in the array's own axis numbering
    def array_index(self) -> Tuple[int, ...]:
        index = [0] * len(self._index)
        for n, axis in enumerate(self._order):
            index[axis] = self._index[n]
        return tuple(index)

    def varying_index(self) -> int:
        return self._order[0]

    def varying_index_order(self) -> Tuple[int, ...]:
        return self._order

    def is_exhausted(self) -> bool:
        return self._exhausted

    #
    # advance the cursor by count elements along the fastest axis,
    # carrying into slower axes when a line is finished. a carry means
    # the next access must rebuild its dimension cursor, since the
    # start of the next line isn't reachable by stepping.
    # returns False when there is nothing left after this step.
    #
    def _access_elements(self, count: int) -> bool:
        self._index[0] += count
        if self._index[0] < self._extents[0]:
            return True
        self._index[0] = 0
        self._pointer_invalid = True
        for n in range(1, len(self._index)):
            self._index[n] += 1
            if self._index[n] < self._extents[n]:
                return True
            self._index[n] = 0
        self._exhausted = True
        return False

    def num_runs(self) -> int:
        if self._shape.is_empty():
            return 0
        return self._shape.numel() // self._max_access_elements

    # starting coordinate (array numbering) of every run, in traversal
    # order. independent of cursor state.
    def run_origins(self) -> Iterator[Tuple[int, ...]]:
        if self._shape.is_empty():
            return
        step = self._max_access_elements
        index = [0] * len(self._extents)
        while True:
            coord = [0] * len(index)
            for n, axis in enumerate(self._order):
                coord[axis] = index[n]
            yield tuple(coord)
            index[0] += step
            n = 0
            while index[n] >= self._extents[n]:
                index[n] = 0
                n += 1
                if n == len(index):
                    return
                index[n] += 1
