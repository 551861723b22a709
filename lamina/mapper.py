# Copyright (c) Facebook, Inc. and its affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.
from .strides import *

#
# IndexMapper
#
# An IndexMapper defines how a multidimensional coordinate maps to a
# linear offset into backing storage: offset = dot(coord, strides) +
# origin. Views are built by composing mappers (submap) rather than by
# materializing anything, so a view of a view is just another origin
# and another set of physical strides.
#
# For multislice storage the slice axis contributes nothing to the
# offset: offset() yields the position *within* a slice, and picking
# the slice is left to the Memory that owns the slice table.
#


class Layout(Enum):
    ROW_MAJOR = "row_major"
    COLUMN_MAJOR = "column_major"
    MULTISLICE = "multislice"


def parse_layout(data: Any) -> Layout:
    if isinstance(data, Layout):
        return data
    return Layout(parse_layout_name(data))


def natural_strides(s: Shape, layout: Layout, slice_axis: Optional[int] = None) -> Strides:
    if layout is Layout.ROW_MAJOR:
        return row_major_strides(s)
    if layout is Layout.COLUMN_MAJOR:
        return column_major_strides(s)
    if slice_axis is None:
        raise PreconditionError("multislice layout requires a slice axis")
    return multislice_strides(s, slice_axis)


@dataclass
class IndexMapper:
    origin: int
    strides: Strides
    layout: Layout
    slice_axis: Optional[int]

    def __init__(
        self,
        origin: int,
        strides: Strides,
        layout: Layout = Layout.ROW_MAJOR,
        slice_axis: Optional[int] = None,
    ):
        slice_axes = strides.slice_axes()
        if layout is Layout.MULTISLICE:
            if slice_axes != (slice_axis,):
                msg = f"multislice mapper needs exactly slice axis {slice_axis}, strides have {slice_axes}"
                raise PreconditionError(msg)
        elif len(slice_axes) > 0 or slice_axis is not None:
            raise PreconditionError(f"{layout.value} mapper can't have a slice axis")
        self.origin = origin
        self.strides = strides
        self.layout = layout
        self.slice_axis = slice_axis

    @classmethod
    def contiguous(cls, shape: Shape, layout: Layout = Layout.ROW_MAJOR) -> "IndexMapper":
        return cls(0, natural_strides(shape, layout), layout)

    @classmethod
    def multislice(cls, shape: Shape, slice_axis: int) -> "IndexMapper":
        slice_axis = wrap_dim(slice_axis, shape.ndim)
        strides = multislice_strides(shape, slice_axis)
        return cls(0, strides, Layout.MULTISLICE, slice_axis)

    @classmethod
    def natural(cls, shape: Shape, layout: Layout, slice_axis: Optional[int] = None):
        if layout is Layout.MULTISLICE:
            return cls.multislice(shape, slice_axis)  # type: ignore
        return cls.contiguous(shape, layout)

    @property
    def ndim(self) -> int:
        return self.strides.ndim

    @property
    def physical_strides(self) -> Tuple[int, ...]:
        return self.strides.values

    def offset(self, coord: Sequence[int]) -> int:
        return sum(c * s for c, s in zip(coord, self.strides.values)) + self.origin

    # derive a mapper for the region of `shape` elements starting at
    # `origin` and stepping by `strides` (in our own coordinates).
    # shape doesn't affect the mapping itself, it is checked for rank only.
    def submap(
        self, origin: Sequence[int], shape: Shape, strides: Sequence[int]
    ) -> "IndexMapper":
        if not (len(origin) == len(shape) == len(strides) == self.ndim):
            msg = f"submap: origin {tuple(origin)}, shape {shape}, strides {tuple(strides)} must all have rank {self.ndim}"
            raise PreconditionError(msg)
        return IndexMapper(
            self.offset(origin),
            self.strides.scale(strides),
            self.layout,
            self.slice_axis,
        )

    # rank-reduced mapper over the same physical strides with axis n
    # removed. dropping the slice axis of a multislice mapper leaves a
    # plain row major one.
    def drop_axis(self, n: int, origin: int = 0) -> "IndexMapper":
        n = wrap_dim(n, self.ndim)
        strides = self.strides.drop(n)
        if self.layout is Layout.MULTISLICE and n != self.slice_axis:
            z = self.slice_axis - 1 if n < self.slice_axis else self.slice_axis  # type: ignore
            return IndexMapper(origin, strides, Layout.MULTISLICE, z)
        layout = Layout.ROW_MAJOR if self.layout is Layout.MULTISLICE else self.layout
        return IndexMapper(origin, strides, layout)

    def __eq__(self, other) -> bool:
        return (
            isinstance(other, IndexMapper)
            and self.origin == other.origin
            and self.strides.equal(other.strides)
            and self.layout is other.layout
            and self.slice_axis == other.slice_axis
        )
