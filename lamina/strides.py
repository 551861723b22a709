# Copyright (c) Facebook, Inc. and its affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .shape import *

#
# Strides - physical stride representation
#
# A Strides object pairs a stride value with a Stepping per axis.
# Stepping says *how* a cursor moves along the axis: LINEAR axes
# advance by adding the stride to an offset within one buffer,
# SLICE_BOUNDARY axes jump to a different buffer altogether (the
# multislice axis). Keeping the two apart means a LINEAR stride of 0
# (a broadcast axis) is never mistaken for a slice boundary.
#


class Stepping(Enum):
    LINEAR = "linear"
    SLICE_BOUNDARY = "slice_boundary"


@dataclass
class Strides:
    values: Tuple[int, ...]
    steppings: Tuple[Stepping, ...]

    def __init__(self, values: Sequence[int], steppings: Optional[Sequence[Stepping]] = None):
        values = tuple(values)
        if steppings is None:
            steppings = (Stepping.LINEAR,) * len(values)
        steppings = tuple(steppings)
        if len(steppings) != len(values):
            msg = f"len(steppings) {len(steppings)} != len(values) {len(values)}"
            raise ValueError(msg)
        for n, (v, s) in enumerate(zip(values, steppings)):
            if s is Stepping.SLICE_BOUNDARY and v != 0:
                raise ValueError(f"dim {n}: slice boundary stride must be 0, got {v}")
            if v < 0:
                raise ValueError(f"dim {n}: negative stride {v}")
        self.values = values
        self.steppings = steppings

    def __repr__(self) -> str:
        return f"Strides{self.values}"

    def __str__(self) -> str:
        desc = lambda v, s: "slice" if s is Stepping.SLICE_BOUNDARY else str(v)
        return f"({', '.join(desc(v, s) for v, s in zip(self.values, self.steppings))})"

    def __len__(self):
        return len(self.values)

    def __getitem__(self, i: int) -> int:
        return self.values[i]

    def __iter__(self) -> Iterator[int]:
        for i in range(len(self)):
            yield self[i]

    @property
    def ndim(self) -> int:
        return len(self.values)

    def stepping(self, n: int) -> Stepping:
        return self.steppings[n]

    def slice_axes(self) -> Tuple[int, ...]:
        return tuple(
            n for n, s in enumerate(self.steppings) if s is Stepping.SLICE_BOUNDARY
        )

    # elementwise product with the strides of a view taken over us.
    # slice boundary axes stay slice boundaries (and stay 0).
    def scale(self, view_strides: Sequence[int]) -> "Strides":
        if len(view_strides) != self.ndim:
            msg = f"len(view strides) {len(view_strides)} != ndim {self.ndim}"
            raise PreconditionError(msg)
        values = tuple(v * w for v, w in zip(self.values, view_strides))
        return Strides(values, self.steppings)

    def drop(self, n: int) -> "Strides":
        n = wrap_dim(n, self.ndim)
        return Strides(
            self.values[:n] + self.values[n + 1 :],
            self.steppings[:n] + self.steppings[n + 1 :],
        )

    def equal(self, x) -> bool:
        return (
            isinstance(x, Strides)
            and self.values == x.values
            and self.steppings == x.steppings
        )

    def __eq__(self, x) -> bool:
        if isinstance(x, tuple):
            return self.values == x
        return self.equal(x)


#
# natural stride policies. note the axis naming convention: "row major"
# means axis 0 (x) varies fastest, as in an image stored row by row
# and addressed (x, y, z). "column major" means the last axis varies
# fastest.
#


def row_major_strides(s: Shape) -> Strides:
    values: Tuple[int, ...] = ()
    stride = 1
    for d in s:
        values += (stride,)
        stride *= d
    return Strides(values)


def column_major_strides(s: Shape) -> Strides:
    values: Tuple[int, ...] = ()
    stride = 1
    for d in reversed(s.dims):
        values = (stride, *values)
        stride *= d
    return Strides(values)


# row major over every axis but the slice axis, which gets its own
# allocation per position and so carries no in-buffer stride
def multislice_strides(s: Shape, slice_axis: int) -> Strides:
    slice_axis = wrap_dim(slice_axis, s.ndim)
    values: Tuple[int, ...] = ()
    steppings: Tuple[Stepping, ...] = ()
    stride = 1
    for n, d in enumerate(s):
        if n == slice_axis:
            values += (0,)
            steppings += (Stepping.SLICE_BOUNDARY,)
        else:
            values += (stride,)
            steppings += (Stepping.LINEAR,)
            stride *= d
    return Strides(values, steppings)


def in_slice_size(s: Shape, slice_axis: int) -> int:
    return s.drop(slice_axis).numel()
