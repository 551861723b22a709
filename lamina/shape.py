# Copyright (c) Facebook, Inc. and its affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.
from dataclasses import dataclass
from functools import reduce
from typing import Iterator, Sequence, Tuple, Union, overload

from .storage import *

#
# Shape - rank-fixed shape representation
#
# A Shape is a tuple of non-negative extents, one per axis. The rank
# of an array never changes after construction: ops that reduce rank
# (slicing) build a new Shape rather than mutating one.
#

# what as_shape() will promote to a Shape
ShapeDesc = Union[int, Sequence[int], "Shape"]


def wrap_dim(n: int, ndim: int):
    if n < 0:
        n = max(n + ndim, 0)
    if n < 0 or n >= ndim:
        raise ValueError(f"dimension {n} out of range for ndim {ndim}")
    return n


def check_extent(n: int, e) -> int:
    if not isinstance(e, int) or isinstance(e, bool) or e < 0:
        raise ValueError(f"extent at dim {n} must be a non-negative int, got {e!r}")
    return e


@dataclass
class Shape:
    dims: Tuple[int, ...]

    def __init__(self, *dims):
        self.dims = tuple(check_extent(n, d) for n, d in enumerate(dims))

    def __repr__(self) -> str:
        return f"Shape{self.dims}"

    def __str__(self) -> str:
        return f"({', '.join(str(d) for d in self.dims)})"

    def __len__(self):
        return len(self.dims)

    @overload
    def __getitem__(self, i: int) -> int:
        ...

    @overload
    def __getitem__(self, i: slice) -> Tuple[int, ...]:
        ...

    def __getitem__(self, i: Union[int, slice]) -> Union[int, Tuple[int, ...]]:
        return self.dims[i]

    # note: here for mypy. Python only needs __len__ and __getitem__
    def __iter__(self) -> Iterator[int]:
        for i in range(len(self)):
            yield self[i]

    @property
    def ndim(self) -> int:
        return len(self.dims)

    def numel(self) -> int:
        return reduce(lambda acc, d: acc * d, self.dims, 1)

    def is_empty(self) -> bool:
        return self.numel() == 0

    # rank-reduced shape with axis n removed
    def drop(self, n: int) -> "Shape":
        n = wrap_dim(n, self.ndim)
        return Shape(*self.dims[:n], *self.dims[n + 1 :])

    def replace(self, n: int, extent: int) -> "Shape":
        n = wrap_dim(n, self.ndim)
        return Shape(*self.dims[:n], extent, *self.dims[n + 1 :])

    def zeros(self) -> Tuple[int, ...]:
        return (0,) * self.ndim

    def equal(self, x) -> bool:
        return isinstance(x, Shape) and self.dims == x.dims

    def __eq__(self, x) -> bool:
        if isinstance(x, tuple):
            return self.dims == x
        return self.equal(x)


def as_shape(s: ShapeDesc) -> Shape:
    if isinstance(s, Shape):
        return s
    if isinstance(s, int):
        return Shape(s)
    return Shape(*s)


# accepts either f(2, 3) or f((2, 3)) / f(Shape(2, 3)) style arguments
def shape_from_args(*dims: ShapeDesc) -> Shape:
    if len(dims) == 1 and not isinstance(dims[0], int):
        return as_shape(dims[0])
    return Shape(*dims)


def check_coord(coord: Sequence[int], shape: Shape, what: str = "coordinate"):
    if len(coord) != shape.ndim:
        msg = f"{what} {tuple(coord)} has rank {len(coord)}, expected {shape.ndim}"
        raise PreconditionError(msg)
