# Copyright (c) Facebook, Inc. and its affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.
from unittest import TestCase, main
from lamina.strides import *

# shape and stride specific tests - not much here since Memory/Array
# tests stress these extensively, but serves to bisect some obvious stuff.


class TestShape(TestCase):
    def test_basics(self):
        s = Shape(2, 3, 4)
        self.assertEqual(s.ndim, 3)
        self.assertEqual(len(s), 3)
        self.assertEqual(s.numel(), 24)
        self.assertEqual(list(s), [2, 3, 4])
        self.assertEqual(s[-1], 4)
        self.assertEqual(s, (2, 3, 4))
        self.assertEqual(str(s), "(2, 3, 4)")

    def test_empty(self):
        self.assertTrue(Shape(2, 0, 3).is_empty())
        self.assertEqual(Shape(2, 0, 3).numel(), 0)
        self.assertFalse(Shape(1).is_empty())

    def test_bad_extent(self):
        with self.assertRaises(ValueError):
            Shape(2, -1)
        with self.assertRaises(ValueError):
            Shape(2, 1.5)

    def test_drop_replace(self):
        s = Shape(2, 3, 4)
        self.assertEqual(s.drop(0), Shape(3, 4))
        self.assertEqual(s.drop(-1), Shape(2, 3))
        self.assertEqual(s.replace(1, 7), Shape(2, 7, 4))

    def test_promotion(self):
        self.assertEqual(as_shape(5), Shape(5))
        self.assertEqual(as_shape([2, 3]), Shape(2, 3))
        self.assertEqual(shape_from_args(2, 3), Shape(2, 3))
        self.assertEqual(shape_from_args((2, 3)), Shape(2, 3))
        self.assertEqual(shape_from_args(Shape(2, 3)), Shape(2, 3))

    def test_wrap_dim(self):
        self.assertEqual(wrap_dim(-1, 3), 2)
        with self.assertRaises(ValueError):
            wrap_dim(3, 3)


class TestStrides(TestCase):
    def test_row_major(self):
        # axis 0 varies fastest
        self.assertEqual(row_major_strides(Shape(2, 3, 4)), (1, 2, 6))

    def test_column_major(self):
        self.assertEqual(column_major_strides(Shape(2, 3, 4)), (12, 4, 1))

    def test_multislice(self):
        strides = multislice_strides(Shape(2, 3, 4), 1)
        self.assertEqual(strides.values, (1, 0, 2))
        self.assertEqual(strides.slice_axes(), (1,))
        self.assertIs(strides.stepping(0), Stepping.LINEAR)
        self.assertEqual(in_slice_size(Shape(2, 3, 4), 1), 8)

    def test_zero_linear_stride_is_not_a_slice(self):
        strides = Strides((0, 1))
        self.assertEqual(strides.slice_axes(), ())

    def test_slice_boundary_must_be_zero(self):
        with self.assertRaises(ValueError):
            Strides((1, 2), (Stepping.LINEAR, Stepping.SLICE_BOUNDARY))

    def test_scale_and_drop(self):
        strides = multislice_strides(Shape(4, 5, 3), 2)
        scaled = strides.scale((2, 3, 1))
        self.assertEqual(scaled.values, (2, 12, 0))
        self.assertEqual(scaled.slice_axes(), (2,))
        self.assertEqual(scaled.drop(0).values, (12, 0))
        self.assertEqual(scaled.drop(0).slice_axes(), (1,))


if __name__ == "__main__":
    main()
