# Copyright (c) Facebook, Inc. and its affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.
from typing import Iterable

from .memory import *

#
# index prep used by Array.__getitem__()
#

# the type of post-prep index tuple entries
IndexEntry = Union[int, slice]


def check_index_entry_type(d: int, ix: Any):
    if isinstance(ix, (int, slice)) and not isinstance(ix, bool):
        return
    raise ValueError(f"expected int or slice, got {repr(ix)} at dim {d}")


#
# prepare an index value (as passed into __getitem__/__setitem__):
# ensure it's a tuple of ints and slices, padded out to ndim with
# full slices
#
def prep_indexes(indexes: Any, ndim: int) -> Tuple[IndexEntry, ...]:
    if not isinstance(indexes, tuple):
        indexes = (indexes,)
    for i, index in enumerate(indexes):
        check_index_entry_type(i, index)
    if len(indexes) > ndim:
        raise ValueError(f"too many dimensions ({len(indexes)}), ndims = {ndim}")
    if len(indexes) < ndim:
        indexes += (slice(None),) * (ndim - len(indexes))
    return indexes


def is_element_index(indexes: Any, ndim: int) -> bool:
    if not isinstance(indexes, tuple):
        indexes = (indexes,)
    return len(indexes) == ndim and all(isinstance(ix, int) for ix in indexes)


# wrap negative values and check range
def wrap_index(i: int, width: int, n: int) -> int:
    if i < 0:
        i += width
    if i < 0 or i >= width:
        raise ValueError(f"dim {n}: index {i} out of range for width {width}")
    return i


#
# (start, extent, step) of the region selected along one dim. ints keep
# the dim with extent 1, so views always have the rank of their parent;
# use Array.slice() to drop a dim.
#
def index_region(ix: IndexEntry, width: int, n: int) -> Tuple[int, int, int]:
    if isinstance(ix, int):
        return wrap_index(ix, width, n), 1, 1
    start, stop, step = ix.indices(width)
    if step < 0:
        raise ValueError(f"dim {n}: negative slice step {step} not supported")
    return start, len(range(start, stop, step)), step


#
# Array
#
# The array class is a thin owner of exactly one Memory. Everything that
# walks data goes through a processor over that memory, so the array
# API is the same whatever the layout underneath.
#
# Arrays have value semantics: clone() and assign() always deep copy
# the logical extent. Views (from indexing with slices, subarray(),
# view_of() or slice()) share storage with their parent, which must be
# kept alive while they are in use.
#


@dataclass
class Array:
    memory: Memory

    def __init__(self, memory: Memory):
        if memory.ndim == 0:
            raise ValueError("rank 0 arrays are not supported")
        self.memory = memory

    #
    # construction
    #

    @classmethod
    def from_shape(
        cls,
        *shape: ShapeDesc,
        layout: Optional[Union[Layout, str]] = None,
        slice_axis: Optional[int] = None,
        dtype: Optional[torch.dtype] = None,
        device: Optional[torch.device] = None,
        allocator=None,
        fill: Any = 0,
    ):
        s = shape_from_args(*shape)
        layout = parse_layout(config.get("array.layout") if layout is None else layout)
        if allocator is None:
            allocator = TorchAllocator(dtype, device)
        return cls(memory_from_shape(s, fill, layout, slice_axis, allocator))

    @classmethod
    def with_fill(cls, shape: ShapeDesc, value: Any, **kwargs):
        return cls.from_shape(shape, fill=value, **kwargs)

    # reference a region of parent. no data is copied.
    @classmethod
    def view_of(
        cls,
        parent: "Array",
        origin: Sequence[int],
        shape: ShapeDesc,
        strides: Optional[Sequence[int]] = None,
    ):
        return cls(memory_view_of(parent.memory, origin, as_shape(shape), strides))

    #
    # wrap a torch tensor's storage without copying. the array aliases
    # the tensor: writes through either are visible through both.
    #
    @classmethod
    def from_tensor(cls, tensor: torch.Tensor):
        if tensor.dim() == 0:
            raise ValueError("rank 0 arrays are not supported")
        n = tensor.untyped_storage().nbytes() // tensor.element_size()
        buffer = tensor.as_strided((n,), (1,), 0)
        strides = tensor.stride()
        fastest = min(range(tensor.dim()), key=lambda i: (strides[i], -i))
        layout = Layout.COLUMN_MAJOR if fastest == tensor.dim() - 1 else Layout.ROW_MAJOR
        memory = ContiguousMemory.wrap(
            buffer, tuple(tensor.shape), strides, tensor.storage_offset(), layout
        )
        return cls(memory)

    #
    # metadata
    #

    @property
    def shape(self) -> Shape:
        return self.memory.shape

    @property
    def ndim(self) -> int:
        return self.memory.ndim

    def rank(self) -> int:
        return self.memory.ndim

    @property
    def layout(self) -> Layout:
        return self.memory.layout

    @property
    def dtype(self) -> torch.dtype:
        return self.memory.dtype

    @property
    def device(self) -> torch.device:
        return self.memory.device

    def numel(self) -> int:
        return self.shape.numel()

    def is_empty(self) -> bool:
        return self.memory.is_empty()

    def is_view(self) -> bool:
        return self.memory.is_view

    #
    # element access
    #

    def at(self, coord: Sequence[int]) -> Address:
        return self.memory.at(coord)

    def begin_dim(self, axis: int, coord: Sequence[int]) -> DimIterator:
        return self.memory.begin_dim(axis, coord)

    def end_dim(self, axis: int, coord: Sequence[int]) -> DimIterator:
        return self.memory.end_dim(axis, coord)

    def _element_coord(self, index: Any) -> Tuple[int, ...]:
        indexes = index if isinstance(index, tuple) else (index,)
        return tuple(wrap_index(i, w, n) for n, (i, w) in enumerate(zip(indexes, self.shape)))

    def __getitem__(self, index: Any):
        if is_element_index(index, self.ndim):
            return self.at(self._element_coord(index)).get()
        return self.view(index)

    def __setitem__(self, index: Any, value: Any):
        if is_element_index(index, self.ndim):
            self.at(self._element_coord(index)).set(value)
            return
        target = self.view(index)
        if isinstance(value, Array):
            target.copy_from(value)
        else:
            target.fill_value(value)

    def view(self, index: Any):
        indexes = prep_indexes(index, self.ndim)
        regions = [index_region(ix, w, n) for n, (ix, w) in enumerate(zip(indexes, self.shape))]
        origin = tuple(r[0] for r in regions)
        shape = Shape(*(r[1] for r in regions))
        strides = tuple(r[2] for r in regions)
        return type(self).view_of(self, origin, shape, strides)

    # view of the region between min_index and max_index, both inclusive
    def subarray(self, min_index: Sequence[int], max_index: Sequence[int]):
        check_coord(min_index, self.shape, "min index")
        check_coord(max_index, self.shape, "max index")
        shape = Shape(*(hi - lo + 1 for lo, hi in zip(min_index, max_index)))
        return type(self).view_of(self, min_index, shape)

    #
    # rank-reduced view of the hyperplane through point, perpendicular to
    # axis. point may be a full coordinate or just the position along axis.
    #
    def slice(self, axis: int, point: Union[int, Sequence[int]]) -> "Array":
        axis = wrap_dim(axis, self.ndim)
        if isinstance(point, int):
            coord = [0] * self.ndim
            coord[axis] = point
            point = coord
        return Array(self.memory.slice(axis, point))

    #
    # value semantics
    #

    def clone(self):
        return type(self)(self.memory.clone())

    def __copy__(self):
        return self.clone()

    def __deepcopy__(self, memo):
        return self.clone()

    # replace our contents (and shape, and layout) by a deep copy of other
    def assign(self, other: "Array"):
        copied = other.memory.clone()
        self.memory.release()
        self.memory = copied

    # write other's values into our existing storage. shapes must match;
    # layouts may differ. through a view, this updates the parent.
    def copy_from(self, other: "Array"):
        iterate_arrays(self, other, copy_run)

    def move(self):
        return type(self)(self.memory.move())

    def release(self):
        self.memory.release()

    #
    # filling
    #

    # fn(coord) -> value, called once per coordinate in unspecified order
    def fill(self, fn: Callable[[Tuple[int, ...]], Any]):
        fill(self, fn)

    # fill from a flat sequence in declared axis order: axis 0 varies
    # fastest, whatever the physical layout
    def fill_values(self, values: Iterable[Any]):
        values = list(values)
        ensure(
            len(values) == self.numel(),
            f"expected {self.numel()} values for shape {self.shape}, got {len(values)}",
        )
        processor = ArrayProcessorByDimension(self)
        for (_, address), value in zip(processor.elements(), values):
            address.set(value)

    def fill_value(self, value: Any):
        iterate_array(self, lambda address, stride, count: address.run(stride, count).fill_(value))

    #
    # conversion
    #

    def to_tensor(self) -> torch.Tensor:
        result = torch.empty(tuple(self.shape), dtype=self.dtype, device=self.device)
        iterate_memories(Array.from_tensor(result).memory, self.memory, copy_run)
        return result

    def tolist(self) -> List:
        return self.to_tensor().tolist()

    def __eq__(self, other) -> bool:
        if not (isinstance(other, Array) and self.shape.equal(other.shape)):
            return False
        return torch.equal(self.to_tensor(), other.to_tensor().to(self.dtype))

    def __str__(self) -> str:
        return str(self.tolist())

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.shape}, {self.layout.value}, {self.dtype})"
