# Copyright (c) Facebook, Inc. and its affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.
from unittest import TestCase, main
from lamina import *


class TestOrdering(TestCase):
    def test_row_major(self):
        strides = row_major_strides(Shape(2, 3, 4))
        self.assertEqual(fastest_varying_axes(strides), (0, 1, 2))

    def test_column_major(self):
        strides = column_major_strides(Shape(2, 3, 4))
        self.assertEqual(fastest_varying_axes(strides), (2, 1, 0))

    def test_slice_axis_goes_last(self):
        strides = multislice_strides(Shape(2, 3, 4), 0)
        self.assertEqual(strides.values, (0, 1, 3))
        self.assertEqual(fastest_varying_axes(strides), (1, 2, 0))

    def test_ties_keep_axis_order(self):
        self.assertEqual(fastest_varying_axes(Strides((4, 1, 1))), (1, 2, 0))

    def test_broadcast_axis_goes_first(self):
        self.assertEqual(fastest_varying_axes(Strides((3, 0, 1))), (1, 2, 0))

    def test_declared(self):
        self.assertEqual(declared_axes(3), (0, 1, 2))


class TestRunLength(TestCase):
    def test_contiguous(self):
        s = Shape(2, 3)
        strides = column_major_strides(s)
        self.assertEqual(max_run_length(s, fastest_varying_axes(strides), strides), 3)

    def test_strided_run_is_still_a_run(self):
        s = Shape(3, 2)
        strides = Strides((2, 10))
        self.assertEqual(max_run_length(s, (0, 1), strides), 3)

    def test_slice_axis_degrades_to_single_elements(self):
        s = Shape(4)
        strides = multislice_strides(s, 0)
        self.assertEqual(max_run_length(s, (0,), strides), 1)


class TestChunking(TestCase):
    def test_access_elements(self):
        c = ArrayChunking(Shape(2, 3), (0, 1))
        self.assertEqual(c.max_access_elements, 2)
        self.assertEqual(c.varying_index(), 0)
        self.assertTrue(c._access_elements(2))
        self.assertEqual(c.array_index(), (0, 1))
        self.assertTrue(c._access_elements(2))
        self.assertEqual(c.array_index(), (0, 2))
        self.assertFalse(c._access_elements(2))
        self.assertTrue(c.is_exhausted())

    def test_index_numbering(self):
        c = ArrayChunking(Shape(2, 3), (1, 0), 1)
        c._access_elements(1)
        self.assertEqual(c.iterator_index(), (1, 0))
        self.assertEqual(c.array_index(), (0, 1))
        self.assertEqual(c.varying_index_order(), (1, 0))

    def test_run_origins(self):
        c = ArrayChunking(Shape(2, 3), (1, 0))
        self.assertEqual(c.num_runs(), 2)
        self.assertEqual(list(c.run_origins()), [(0, 0), (1, 0)])

    def test_run_origins_single_elements(self):
        c = ArrayChunking(Shape(2, 3), (0, 1), 1)
        self.assertEqual(c.num_runs(), 6)
        expected = [(0, 0), (1, 0), (0, 1), (1, 1), (0, 2), (1, 2)]
        self.assertEqual(list(c.run_origins()), expected)

    def test_run_origins_match_traversal(self):
        c = ArrayChunking(Shape(3, 2, 2), (2, 0, 1))
        origins = list(c.run_origins())
        visited = []
        more = True
        while more:
            visited.append(c.array_index())
            more = c._access_elements(c.max_access_elements)
        self.assertEqual(origins, visited)

    def test_empty(self):
        c = ArrayChunking(Shape(2, 0), (0, 1))
        self.assertTrue(c.is_exhausted())
        self.assertEqual(c.num_runs(), 0)
        self.assertEqual(list(c.run_origins()), [])

    def test_bad_order(self):
        with self.assertRaises(PreconditionError):
            ArrayChunking(Shape(2, 3), (0, 0))

    def test_bad_run_length(self):
        with self.assertRaises(PreconditionError):
            ArrayChunking(Shape(4, 3), (0, 1), 3)

    def test_rank_zero(self):
        with self.assertRaises(PreconditionError):
            ArrayChunking(Shape(), ())


if __name__ == "__main__":
    main()
