# Copyright (c) Facebook, Inc. and its affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.
from .array import *

#
# Matrix
#
# A rank 2 array addressed (row, column), with helpers for handing
# its storage to BLAS style routines. Matrix memory orders are named
# the BLAS way: "column_major" means rows vary fastest, i.e. the
# ROW_MAJOR layout in our (x, y) axis convention. Column major is the
# default, as for Fortran.
#

MATRIX_ORDERS = ("column_major", "row_major")


def layout_for_matrix_order(order: str) -> Layout:
    if order == "column_major":
        return Layout.ROW_MAJOR
    if order == "row_major":
        return Layout.COLUMN_MAJOR
    raise ValueError(f"expected one of {MATRIX_ORDERS}, got {order!r} instead")


class Matrix(Array):
    def __init__(self, memory: Memory):
        if memory.ndim != 2:
            raise PreconditionError(f"a matrix must have rank 2, got {memory.ndim}")
        super().__init__(memory)

    @classmethod
    def from_shape(cls, *shape: ShapeDesc, order: str = "column_major", **kwargs):
        if "layout" not in kwargs:
            kwargs["layout"] = layout_for_matrix_order(order)
        return super().from_shape(*shape, **kwargs)

    @classmethod
    def from_array(cls, array: Array) -> "Matrix":
        return cls(array.memory)

    def rows(self) -> int:
        return self.shape[0]

    def columns(self) -> int:
        return self.shape[1]


def is_matrix(a: Any) -> bool:
    return isinstance(a, Matrix)


#
# BLAS memory order of a rank 2 array: whichever of rows or columns
# sits at unit stride. multislice storage or a matrix with no unit
# stride axis can't be handed to BLAS as is.
#
def matrix_memory_order(a: Array) -> str:
    ensure(a.ndim == 2, f"expected a rank 2 array, got rank {a.ndim}")
    ensure(a.layout is not Layout.MULTISLICE, "multislice storage has no BLAS memory order")
    row_stride, column_stride = a.memory.mapper.physical_strides
    if row_stride == 1 and (column_stride >= row_stride or a.shape[1] == 1):
        return "column_major"
    if column_stride == 1:
        return "row_major"
    raise PreconditionError(
        f"strides {(row_stride, column_stride)} have no unit stride axis"
    )


# distance between consecutive columns (column major) or rows (row
# major), as expected by BLAS lda/ldb style arguments
def leading_dimension(a: Array) -> int:
    row_stride, column_stride = a.memory.mapper.physical_strides
    if matrix_memory_order(a) == "column_major":
        return max(column_stride, a.shape[0], 1)
    return max(row_stride, a.shape[1], 1)
