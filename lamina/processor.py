# Copyright (c) Facebook, Inc. and its affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.
import logging
from typing import Callable

from .chunking import *

#
# Processors
#
# A processor is a one-shot cursor over every element of an Array (or
# of a bare Memory - anything with shape, mapper and begin_dim()). It
# combines the chunking plan with the memory's dimension cursors, and
# is the only primitive the array ops use to walk storage: data may be
# strided, a view, or split over several allocations, and only the
# memory knows how to step through it.
#
# Processors hold private mutable state and are never shared between
# threads. Several processors may read one array at a time.
#

logger = logging.getLogger(__name__)

OrderFn = Callable[[Any], Sequence[int]]

# op(address, stride, count)
RunOp = Callable[[Address, int, int], None]

# op(address, stride, address2, stride2, count)
JointRunOp = Callable[[Address, int, Address, int, int], None]


def memory_of(target):
    return getattr(target, "memory", target)


def fastest_varying_axes_memory(memory) -> Tuple[int, ...]:
    return fastest_varying_axes(memory.mapper.strides)


def declared_axes_memory(memory) -> Tuple[int, ...]:
    return declared_axes(memory.shape.ndim)


class ArrayProcessor(ArrayChunking):
    def __init__(self, target, order_fn: OrderFn, run_length: Optional[int] = None):
        self.target = target
        self.memory = memory_of(target)
        super().__init__(self.memory.shape, order_fn(self.memory), run_length)
        self._iterator = None
        self._done = False

    def access_single_element(self) -> Tuple[bool, Optional[Address]]:
        return self._access(1)

    #
    # hand out the address of the element (or run start) under the
    # cursor, then advance. the flag is False on the call that returns
    # the *last* element: that address is still valid. calling again
    # after that is an error.
    #
    def _access(self, count: int) -> Tuple[bool, Optional[Address]]:
        if self._done:
            raise PreconditionError("processor is exhausted")
        if self.is_exhausted():
            # empty array: nothing to hand out
            self._done = True
            return False, None
        if count != 1 and count != self.max_access_elements:
            msg = f"can only access 1 or {self.max_access_elements} elements, got {count}"
            raise PreconditionError(msg)
        if self._pointer_invalid:
            self._iterator = self.memory.begin_dim(self.varying_index(), self.array_index())
            self._pointer_invalid = False
        else:
            self._iterator.add(count)  # type: ignore
        address = self._iterator.address  # type: ignore
        more = self._access_elements(count)
        self._done = not more
        return more, address

    # (coordinate, address) for every element, in traversal order
    def elements(self) -> Iterator[Tuple[Tuple[int, ...], Address]]:
        more = not self.is_exhausted()
        while more:
            coord = self.array_index()
            more, address = self.access_single_element()
            yield coord, address  # type: ignore


#
# iterate in the order that maximizes memory locality. this should be
# the preferred processor. it is the only one that can hand out whole
# runs, since only here is the fastest axis the one with the smallest
# physical stride.
#
class ArrayProcessorByLocality(ArrayProcessor):
    def __init__(self, target):
        memory = memory_of(target)
        order = fastest_varying_axes_memory(memory)
        run = max_run_length(memory.shape, order, memory.mapper.strides)
        super().__init__(target, lambda _: order, run)

    # physical stride along the run direction. a run is not necessarily
    # dense: element i of a run is at run_start + i * stride().
    def stride(self) -> int:
        return self.memory.mapper.strides[self.varying_index()]

    def access_max_elements(self) -> Tuple[bool, Optional[Address]]:
        return self._access(self.max_access_elements)

    # (run start, stride, count) for every run
    def runs(self) -> Iterator[Tuple[Address, int, int]]:
        more = not self.is_exhausted()
        while more:
            more, address = self.access_max_elements()
            yield address, self.stride(), self.max_access_elements  # type: ignore


# iterate by dimension, in (x, y, z, ...) order
class ArrayProcessorByDimension(ArrayProcessor):
    def __init__(self, target):
        super().__init__(target, declared_axes_memory)


#
# joint iteration
#


def same_data_ordering(memory1, memory2) -> bool:
    order1 = fastest_varying_axes_memory(memory1)
    order2 = fastest_varying_axes_memory(memory2)
    if order1 != order2:
        return False
    run1 = max_run_length(memory1.shape, order1, memory1.mapper.strides)
    run2 = max_run_length(memory2.shape, order2, memory2.mapper.strides)
    return run1 == run2


def check_joint_shapes(memory1, memory2):
    ensure(
        memory1.shape.ndim == memory2.shape.ndim,
        f"must have the same rank, got {memory1.shape.ndim} and {memory2.shape.ndim}",
    )
    ensure(
        memory1.shape.equal(memory2.shape),
        f"must have the same shape, got {memory1.shape} and {memory2.shape}",
    )


def _iterate_memories_same_ordering(target, source, op: JointRunOp):
    processor1 = ArrayProcessorByLocality(target)
    processor2 = ArrayProcessorByLocality(source)
    ensure(
        processor1.max_access_elements == processor2.max_access_elements,
        "memory lines must have the same size",
    )
    count = processor1.max_access_elements
    more = True
    while more:
        more, address1 = processor1.access_max_elements()
        _, address2 = processor2.access_max_elements()
        op(address1, processor1.stride(), address2, processor2.stride(), count)  # type: ignore


#
# the source is scanned at its own best locality, and the target
# follows along one element at a time in the source's axis order,
# paying the cache misses on its side
#
def _iterate_memories_different_ordering(target, source, op: JointRunOp):
    processor2 = ArrayProcessorByLocality(source)
    order = processor2.varying_index_order()
    processor1 = ArrayProcessor(target, lambda _: order)
    more = True
    while more:
        more, address1 = processor1.access_single_element()
        _, address2 = processor2.access_single_element()
        # single elements, so the strides are never used to step
        op(address1, 1, address2, 1, 1)  # type: ignore


#
# iterate a (written) target and a (read) source jointly.
# op is called as op(target_address, target_stride, source_address,
# source_stride, count) once per chunk.
#
def iterate_memories(target, source, op: JointRunOp):
    memory1, memory2 = memory_of(target), memory_of(source)
    check_joint_shapes(memory1, memory2)
    if memory1.shape.is_empty():
        return
    if same_data_ordering(memory1, memory2):
        logger.debug("joint iteration over %s: same ordering", memory1.shape)
        _iterate_memories_same_ordering(memory1, memory2, op)
    else:
        logger.debug("joint iteration over %s: different ordering", memory1.shape)
        _iterate_memories_different_ordering(memory1, memory2, op)


def iterate_arrays(target, source, op: JointRunOp):
    iterate_memories(target.memory, source.memory, op)


# op is called as op(address, stride, count) once per run
def iterate_array(target, op: RunOp):
    processor = ArrayProcessorByLocality(target)
    for address, stride, count in processor.runs():
        op(address, stride, count)


#
# generic fill: fn is called with each coordinate tuple exactly once,
# and its result is stored at that coordinate. visiting order is
# whatever is fastest for the layout, so fn must not depend on it.
#
def fill(target, fn: Callable[[Tuple[int, ...]], Any]):
    processor = ArrayProcessorByLocality(target)
    for coord, address in processor.elements():
        address.set(fn(coord))


def copy_run(address1: Address, stride1: int, address2: Address, stride2: int, count: int):
    address1.run(stride1, count).copy_(address2.run(stride2, count))
