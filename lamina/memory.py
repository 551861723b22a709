# Copyright (c) Facebook, Inc. and its affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.
import logging
import weakref

from .processor import *

#
# Memory
#
# A Memory pairs a Shape and an IndexMapper with the raw storage the
# mapper addresses. Two layouts share one interface:
#
# - ContiguousMemory: one buffer; any axis may be the fastest varying.
# - MultisliceMemory: one buffer per position along the slice axis.
#   The slice axis never contributes to in-buffer offsets, so stepping
#   along it means switching buffers.
#
# A memory either owns its storage (it was allocated for it) or is a
# view referencing storage owned by another memory. Views keep a weak,
# non-owning reference to the root memory for bookkeeping only: the
# owner must outlive its views, and nothing enforces it.
#
# Copies are always deep and always copy the *logical* extent - a copy
# of a 2x2 view into a 100x100 block is a fresh 2x2 block.
#

logger = logging.getLogger(__name__)


#
# DimIterator - single axis cursor
#
# Position is (slice, offset). Along a LINEAR axis the slice is fixed
# and the offset moves by the stride; along a SLICE_BOUNDARY axis the
# in-slice offset is fixed and the slice index moves. The mode is fixed
# at construction, and mixing cursors of different modes or strides
# is an error.
#
class DimIterator:
    def __init__(
        self,
        slices: Sequence[torch.Tensor],
        slice_index: int,
        offset: int,
        stride: int,
        stepping: Stepping,
    ):
        self._slices = slices
        self._slice = slice_index
        self._offset = offset
        self._stride = stride
        self._stepping = stepping

    @property
    def stride(self) -> int:
        return self._stride

    @property
    def stepping(self) -> Stepping:
        return self._stepping

    # None once a slice boundary cursor has stepped past the last slice
    @property
    def address(self) -> Optional[Address]:
        if self._slice >= len(self._slices):
            return None
        return Address(self._slices[self._slice], self._offset)

    def add(self, step: int = 1) -> "DimIterator":
        if self._stepping is Stepping.SLICE_BOUNDARY:
            self._slice += step
        else:
            self._offset += self._stride * step
        return self

    def get(self) -> Any:
        return self.address.get()  # type: ignore

    def set(self, value: Any):
        self.address.set(value)  # type: ignore

    def _check_compatible(self, other: "DimIterator"):
        if not isinstance(other, DimIterator):
            raise PreconditionError(f"can't compare DimIterator with {type(other).__name__}")
        if self._stepping is not other._stepping or self._stride != other._stride:
            raise PreconditionError("non matching dimension iterators")

    def __eq__(self, other) -> bool:
        self._check_compatible(other)
        return self._slice == other._slice and self._offset == other._offset

    def __ne__(self, other) -> bool:
        return not self == other

    def __sub__(self, other: "DimIterator") -> int:
        self._check_compatible(other)
        if self._stepping is Stepping.SLICE_BOUNDARY:
            ensure(self._offset == other._offset, "non matching dimension iterators")
            return self._slice - other._slice
        ensure(self._slice == other._slice, "non matching dimension iterators")
        ensure(self._stride != 0, "can't difference cursors along a zero stride axis")
        return (self._offset - other._offset) // self._stride

    __hash__ = None  # type: ignore


class Memory:
    shape: Shape
    mapper: IndexMapper

    def __init__(
        self,
        shape: Shape,
        mapper: IndexMapper,
        allocator,
        owned: bool,
        parent,
        buffers: Sequence[torch.Tensor] = (),
    ):
        if shape.ndim != mapper.ndim:
            msg = f"shape {shape} and mapper strides {mapper.strides} have different ranks"
            raise PreconditionError(msg)
        self.shape = shape
        self.mapper = mapper
        self.allocator = TorchAllocator() if allocator is None else allocator
        self.owned = owned
        self._parent = None if parent is None else weakref.ref(parent)
        # kept through release() and move(), when there are no buffers left
        # to ask
        if len(buffers) > 0:
            self._dtype, self._device = buffers[0].dtype, buffers[0].device
        else:
            self._dtype, self._device = element_type_of(self.allocator)

    @property
    def ndim(self) -> int:
        return self.shape.ndim

    @property
    def layout(self) -> Layout:
        return self.mapper.layout

    @property
    def dtype(self) -> torch.dtype:
        return self._dtype

    @property
    def device(self) -> torch.device:
        return self._device

    def is_empty(self) -> bool:
        return self.shape.is_empty()

    @property
    def is_view(self) -> bool:
        return self._parent is not None

    # the memory owning our storage. None if that memory has already been
    # collected, which means our storage is no longer guaranteed valid
    @property
    def root(self) -> Optional["Memory"]:
        return self if self._parent is None else self._parent()

    # number of elements in the buffers we reference, including any
    # not covered by our shape
    def capacity(self) -> int:
        return sum(b.numel() for b in self._slice_table())

    def _slice_table(self) -> Sequence[torch.Tensor]:
        raise NotImplementedError

    def _slice_of(self, coord: Sequence[int]) -> int:
        raise NotImplementedError

    def _new_like(self) -> "Memory":
        raise NotImplementedError

    def at(self, coord: Sequence[int]) -> Address:
        raise NotImplementedError

    def slice(self, axis: int, point: Sequence[int]) -> "Memory":
        raise NotImplementedError

    def release(self):
        raise NotImplementedError

    def begin_dim(self, axis: int, coord: Sequence[int]) -> DimIterator:
        return DimIterator(
            self._slice_table(),
            self._slice_of(coord),
            self.mapper.offset(coord),
            self.mapper.strides[axis],
            self.mapper.strides.stepping(axis),
        )

    # one past the end along axis
    def end_dim(self, axis: int, coord: Sequence[int]) -> DimIterator:
        end = list(coord)
        end[axis] = self.shape[axis]
        return self.begin_dim(axis, end)

    def iter_dim(self, axis: int, coord: Sequence[int]) -> Iterator[Address]:
        it, end = self.begin_dim(axis, coord), self.end_dim(axis, coord)
        while it != end:
            yield it.address  # type: ignore
            it.add()

    def _check_slice_args(self, axis: int, point: Sequence[int]) -> int:
        if self.ndim < 2:
            raise PreconditionError(f"can't slice a rank {self.ndim} memory")
        check_coord(point, self.shape, "slice point")
        return wrap_dim(axis, self.ndim)

    def _check_view_args(self, origin, shape: Shape, strides) -> Tuple[int, ...]:
        check_coord(origin, self.shape, "view origin")
        if strides is None:
            strides = (1,) * shape.ndim
        check_coord(strides, self.shape, "view strides")
        return tuple(strides)

    #
    # value semantics
    #

    def clone(self) -> "Memory":
        result = self._new_like()
        logger.debug(
            "deep copy of %s: %d elements out of %d referenced",
            self.shape,
            self.shape.numel(),
            self.capacity(),
        )
        iterate_memories(result, self, copy_run)
        return result

    def __copy__(self) -> "Memory":
        return self.clone()

    def __deepcopy__(self, memo) -> "Memory":
        return self.clone()

    def assign(self, other: "Memory"):
        if type(other) is not type(self):
            msg = f"can't assign {type(other).__name__} to {type(self).__name__}"
            raise PreconditionError(msg)
        copied = other.clone()
        self.release()
        self.__dict__.update(copied.__dict__)

    # transfer storage and ownership to a new memory, leaving this one empty
    def move(self) -> "Memory":
        moved = object.__new__(type(self))
        moved.__dict__.update(self.__dict__)
        self._make_empty()
        return moved

    def _make_empty(self):
        shape = Shape(*self.shape.zeros())
        self.mapper = IndexMapper.natural(shape, self.mapper.layout, self.mapper.slice_axis)
        self.shape = shape
        self.owned = False
        self._parent = None

    def __repr__(self) -> str:
        kind = "view" if self.is_view else ("owner" if self.owned else "ref")
        return f"{type(self).__name__}({self.shape}, {self.mapper.strides}, {kind})"


class ContiguousMemory(Memory):
    buffer: Optional[torch.Tensor]

    def __init__(
        self,
        shape: Shape,
        buffer: Optional[torch.Tensor],
        mapper: IndexMapper,
        allocator=None,
        owned: bool = False,
        parent: Optional[Memory] = None,
    ):
        if mapper.layout is Layout.MULTISLICE:
            raise PreconditionError("contiguous memory needs a contiguous mapper")
        buffers = () if buffer is None else (buffer,)
        super().__init__(shape, mapper, allocator, owned, parent, buffers)
        self.buffer = buffer

    @classmethod
    def from_shape(
        cls,
        shape: ShapeDesc,
        fill: Any = 0,
        layout: Layout = Layout.ROW_MAJOR,
        allocator=None,
    ) -> "ContiguousMemory":
        shape = as_shape(shape)
        allocator = TorchAllocator() if allocator is None else allocator
        n = shape.numel()
        buffer = allocator.allocate(n)
        allocator.construct(Address(buffer, 0), fill, n)
        mapper = IndexMapper.contiguous(shape, parse_layout(layout))
        return cls(shape, buffer, mapper, allocator, owned=True)

    #
    # reference the region of `shape` elements of parent starting at
    # `origin`, stepping by `strides` (in parent coordinates). no copy.
    #
    @classmethod
    def view_of(
        cls,
        parent: "ContiguousMemory",
        origin: Sequence[int],
        shape: ShapeDesc,
        strides: Optional[Sequence[int]] = None,
    ) -> "ContiguousMemory":
        shape = as_shape(shape)
        strides = parent._check_view_args(origin, shape, strides)
        mapper = parent.mapper.submap(origin, shape, strides)
        logger.debug("view %s at %s of %r", shape, tuple(origin), parent)
        return cls(shape, parent.buffer, mapper, parent.allocator, False, parent.root)

    # adopt an existing flat buffer. if owned, it will be released
    # through allocator like one we allocated ourselves.
    @classmethod
    def wrap(
        cls,
        buffer: torch.Tensor,
        shape: ShapeDesc,
        strides: Optional[Sequence[int]] = None,
        origin: int = 0,
        layout: Layout = Layout.ROW_MAJOR,
        allocator=None,
        owned: bool = False,
    ) -> "ContiguousMemory":
        shape = as_shape(shape)
        layout = parse_layout(layout)
        if strides is None:
            mapper = IndexMapper.contiguous(shape, layout)
            mapper.origin = origin
        else:
            check_coord(strides, shape, "strides")
            mapper = IndexMapper(origin, Strides(strides), layout)
        if allocator is None:
            allocator = TorchAllocator(buffer.dtype, buffer.device)
        return cls(shape, buffer, mapper, allocator, owned)

    def _slice_table(self) -> Sequence[torch.Tensor]:
        return () if self.buffer is None else (self.buffer,)

    def _slice_of(self, coord: Sequence[int]) -> int:
        return 0

    def _new_like(self) -> "ContiguousMemory":
        return ContiguousMemory.from_shape(self.shape, 0, self.layout, self.allocator)

    def at(self, coord: Sequence[int]) -> Address:
        return Address(self.buffer, self.mapper.offset(coord))  # type: ignore

    # rank-reduced view through point, with axis removed
    def slice(self, axis: int, point: Sequence[int]) -> "ContiguousMemory":
        axis = self._check_slice_args(axis, point)
        cut = [0] * self.ndim
        cut[axis] = point[axis]
        mapper = self.mapper.drop_axis(axis, self.mapper.offset(cut))
        logger.debug("slice dim %d at %d of %r", axis, point[axis], self)
        shape = self.shape.drop(axis)
        return ContiguousMemory(shape, self.buffer, mapper, self.allocator, False, self.root)

    def release(self):
        if self.owned and self.buffer is not None:
            n = self.buffer.numel()
            self.allocator.destroy(Address(self.buffer, 0), n)
            self.allocator.deallocate(self.buffer, n)
        self._make_empty()

    def _make_empty(self):
        super()._make_empty()
        self.buffer = None


class MultisliceMemory(Memory):
    slices: List[torch.Tensor]

    def __init__(
        self,
        shape: Shape,
        slices: Sequence[torch.Tensor],
        mapper: IndexMapper,
        allocator=None,
        owned: bool = False,
        parent: Optional[Memory] = None,
    ):
        if mapper.layout is not Layout.MULTISLICE:
            raise PreconditionError("multislice memory needs a multislice mapper")
        super().__init__(shape, mapper, allocator, owned, parent, slices)
        if len(slices) != shape[mapper.slice_axis]:  # type: ignore
            msg = f"{len(slices)} slices for extent {shape[mapper.slice_axis]} at slice axis {mapper.slice_axis}"  # type: ignore
            raise PreconditionError(msg)
        self.slices = list(slices)

    @property
    def slice_axis(self) -> int:
        return self.mapper.slice_axis  # type: ignore

    @classmethod
    def from_shape(
        cls,
        shape: ShapeDesc,
        fill: Any = 0,
        slice_axis: int = -1,
        allocator=None,
    ) -> "MultisliceMemory":
        shape = as_shape(shape)
        allocator = TorchAllocator() if allocator is None else allocator
        mapper = IndexMapper.multislice(shape, slice_axis)
        size = in_slice_size(shape, mapper.slice_axis)  # type: ignore
        slices = []
        for _ in range(shape[mapper.slice_axis]):  # type: ignore
            buffer = allocator.allocate(size)
            allocator.construct(Address(buffer, 0), fill, size)
            slices.append(buffer)
        return cls(shape, slices, mapper, allocator, owned=True)

    @classmethod
    def view_of(
        cls,
        parent: "MultisliceMemory",
        origin: Sequence[int],
        shape: ShapeDesc,
        strides: Optional[Sequence[int]] = None,
    ) -> "MultisliceMemory":
        shape = as_shape(shape)
        strides = parent._check_view_args(origin, shape, strides)
        z = parent.slice_axis
        slices = [parent.slices[origin[z] + s * strides[z]] for s in range(shape[z])]
        mapper = parent.mapper.submap(origin, shape, strides)
        logger.debug("view %s at %s of %r", shape, tuple(origin), parent)
        return cls(shape, slices, mapper, parent.allocator, False, parent.root)

    # adopt pre-existing slice buffers, one per position along slice_axis.
    # if owned, they will be released through allocator.
    @classmethod
    def wrap(
        cls,
        slices: Sequence[torch.Tensor],
        shape: ShapeDesc,
        slice_axis: int = -1,
        strides: Optional[Sequence[int]] = None,
        allocator=None,
        owned: bool = False,
    ) -> "MultisliceMemory":
        shape = as_shape(shape)
        if strides is None:
            mapper = IndexMapper.multislice(shape, slice_axis)
        else:
            check_coord(strides, shape, "strides")
            z = wrap_dim(slice_axis, shape.ndim)
            steppings = [
                Stepping.SLICE_BOUNDARY if n == z else Stepping.LINEAR
                for n in range(shape.ndim)
            ]
            mapper = IndexMapper(0, Strides(strides, steppings), Layout.MULTISLICE, z)
        if allocator is None and len(slices) > 0:
            allocator = TorchAllocator(slices[0].dtype, slices[0].device)
        return cls(shape, slices, mapper, allocator, owned)

    def _slice_table(self) -> Sequence[torch.Tensor]:
        return self.slices

    def _slice_of(self, coord: Sequence[int]) -> int:
        return coord[self.slice_axis]

    def _new_like(self) -> "MultisliceMemory":
        return MultisliceMemory.from_shape(self.shape, 0, self.slice_axis, self.allocator)

    def at(self, coord: Sequence[int]) -> Address:
        return Address(self.slices[coord[self.slice_axis]], self.mapper.offset(coord))

    #
    # rank-reduced view through point, with axis removed.
    #
    # cutting the slice axis keeps exactly one slice, which is already an
    # independent contiguous block. cutting any other axis keeps every
    # slice, each advanced to the cut point - there is no single linear
    # address space to move one origin around in.
    #
    def slice(self, axis: int, point: Sequence[int]) -> Memory:
        axis = self._check_slice_args(axis, point)
        logger.debug("slice dim %d at %d of %r", axis, point[axis], self)
        shape = self.shape.drop(axis)
        z = self.slice_axis
        if axis == z:
            buffer = self.slices[point[z]]
            mapper = self.mapper.drop_axis(z, self.mapper.origin)
            return ContiguousMemory(shape, buffer, mapper, self.allocator, False, self.root)
        cut = [0] * self.ndim
        cut[axis] = point[axis]
        slices = []
        for n in range(self.shape[z]):
            cut[z] = n
            start = self.at(cut)
            slices.append(start.buffer[start.offset :])
        mapper = self.mapper.drop_axis(axis)
        return MultisliceMemory(shape, slices, mapper, self.allocator, False, self.root)

    def release(self):
        if self.owned:
            for buffer in self.slices:
                n = buffer.numel()
                self.allocator.destroy(Address(buffer, 0), n)
                self.allocator.deallocate(buffer, n)
        self._make_empty()

    def _make_empty(self):
        super()._make_empty()
        self.slices = []


def memory_from_shape(
    shape: ShapeDesc,
    fill: Any = 0,
    layout: Layout = Layout.ROW_MAJOR,
    slice_axis: Optional[int] = None,
    allocator=None,
) -> Memory:
    layout = parse_layout(layout)
    if layout is Layout.MULTISLICE:
        z = -1 if slice_axis is None else slice_axis
        return MultisliceMemory.from_shape(shape, fill, z, allocator)
    if slice_axis is not None:
        raise PreconditionError(f"{layout.value} layout has no slice axis")
    return ContiguousMemory.from_shape(shape, fill, layout, allocator)


def memory_view_of(
    parent: Memory,
    origin: Sequence[int],
    shape: ShapeDesc,
    strides: Optional[Sequence[int]] = None,
) -> Memory:
    return type(parent).view_of(parent, origin, shape, strides)  # type: ignore
