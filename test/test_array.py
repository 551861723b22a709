# Copyright (c) Facebook, Inc. and its affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.
import copy
from unittest import TestCase, main
from lamina import *

#
# Array tests: construction, indexing, views, value semantics and
# torch interop
#


def coord_value(c):
    return sum(x * 10**n for n, x in enumerate(c))


def sample(*shape, **kwargs):
    a = Array.from_shape(*shape, **kwargs)
    a.fill(coord_value)
    return a


LAYOUTS = [
    dict(layout="row_major"),
    dict(layout="column_major"),
    dict(layout="multislice", slice_axis=0),
    dict(layout="multislice", slice_axis=-1),
]


class TestConstruct(TestCase):
    def test_defaults(self):
        a = Array.from_shape(2, 3)
        self.assertEqual(a.shape, (2, 3))
        self.assertEqual(a.rank(), 2)
        self.assertEqual(a.numel(), 6)
        self.assertIs(a.layout, Layout.ROW_MAJOR)
        self.assertEqual(a.dtype, torch.float32)
        self.assertEqual(a.tolist(), [[0, 0, 0], [0, 0, 0]])

    def test_shape_forms(self):
        self.assertEqual(Array.from_shape((2, 3)).shape, (2, 3))
        self.assertEqual(Array.from_shape(Shape(2, 3)).shape, (2, 3))
        self.assertEqual(Array.from_shape(4).shape, (4,))

    def test_config_layout(self):
        with config.set({"array.layout": "column_major"}):
            a = Array.from_shape(2, 3)
        self.assertIs(a.layout, Layout.COLUMN_MAJOR)
        self.assertEqual(a.memory.mapper.strides, (3, 1))
        self.assertIs(Array.from_shape(2, 3).layout, Layout.ROW_MAJOR)

    def test_config_dtype(self):
        with config.set({"array.dtype": "int64"}):
            a = Array.from_shape(2, 2)
        self.assertEqual(a.dtype, torch.int64)
        self.assertEqual(Array.from_shape(2, 2, dtype=torch.float64).dtype, torch.float64)

    def test_bad_config(self):
        with config.set({"array.layout": "diagonal"}):
            with self.assertRaises(ValueError):
                Array.from_shape(2, 3)
        with self.assertRaises(ValueError):
            Array.from_shape(2, 3, dtype="nonsense")

    def test_with_fill(self):
        for kwargs in LAYOUTS:
            a = Array.with_fill((2, 3), 5, **kwargs)
            self.assertEqual(a.tolist(), [[5, 5, 5], [5, 5, 5]])

    def test_rank_zero(self):
        with self.assertRaises(ValueError):
            Array.from_shape(())

    def test_negative_extent(self):
        with self.assertRaises(ValueError):
            Array.from_shape(2, -1)

    def test_zero_extent(self):
        for kwargs in LAYOUTS:
            a = Array.from_shape(3, 0, **kwargs)
            self.assertTrue(a.is_empty())
            self.assertEqual(a.tolist(), [[], [], []])
            self.assertTrue(a.clone().is_empty())

    def test_slice_axis_without_multislice(self):
        with self.assertRaises(PreconditionError):
            Array.from_shape(2, 3, layout="row_major", slice_axis=0)


class TestIndex(TestCase):
    def test_getitem(self):
        for kwargs in LAYOUTS:
            a = sample(3, 4, **kwargs)
            self.assertEqual(a[2, 3], 32)
            self.assertEqual(a[-1, -2], 22)

    def test_getitem_out_of_range(self):
        a = sample(3, 4)
        with self.assertRaises(ValueError):
            a[3, 0]
        with self.assertRaises(ValueError):
            a[0, -5]

    def test_setitem(self):
        for kwargs in LAYOUTS:
            a = Array.from_shape(3, 4, **kwargs)
            a[1, 2] = 7
            a[-1, -1] = 9
            self.assertEqual(a.at((1, 2)).get(), 7)
            self.assertEqual(a.at((2, 3)).get(), 9)

    def test_bad_index_type(self):
        a = sample(3, 4)
        with self.assertRaises(ValueError):
            a["x"]
        with self.assertRaises(ValueError):
            a[0, 0, 0]

    def test_slice_view(self):
        for kwargs in LAYOUTS:
            a = sample(4, 5, **kwargs)
            v = a[1:3, 2:]
            self.assertTrue(v.is_view())
            self.assertEqual(v.shape, (2, 3))
            self.assertEqual(v[0, 0], 21)
            self.assertEqual(v[1, 2], 42)

    def test_int_keeps_rank(self):
        a = sample(4, 5)
        v = a[2]
        self.assertEqual(v.shape, (1, 5))
        self.assertEqual(v[0, 4], 42)

    def test_step(self):
        for kwargs in LAYOUTS:
            a = sample(6, 5, **kwargs)
            v = a[::2, 1::3]
            self.assertEqual(v.shape, (3, 2))
            self.assertEqual(v.tolist(), [[10, 40], [12, 42], [14, 44]])

    def test_negative_step(self):
        a = sample(4, 5)
        with self.assertRaises(ValueError):
            a[::-1]

    def test_view_of_view(self):
        for kwargs in LAYOUTS:
            a = sample(6, 6, **kwargs)
            v = a[1:, 1:][1:4:2, ::2]
            self.assertEqual(v.shape, (2, 3))
            self.assertEqual(v[1, 2], coord_value((4, 5)))

    def test_view_writes_through(self):
        for kwargs in LAYOUTS:
            a = Array.from_shape(4, 4, **kwargs)
            v = a[1:3, 1:3]
            v[0, 1] = 5
            self.assertEqual(a[1, 2], 5)

    def test_scalar_assign_into_view(self):
        for kwargs in LAYOUTS:
            a = Array.from_shape(4, 4, **kwargs)
            a[1:3, ::2] = 1
            expected = [
                [0, 0, 0, 0],
                [1, 0, 1, 0],
                [1, 0, 1, 0],
                [0, 0, 0, 0],
            ]
            self.assertEqual(a.tolist(), expected)

    def test_array_assign_into_view(self):
        a = Array.from_shape(4, 4)
        b = sample(2, 2, layout="column_major")
        a[2:, :2] = b
        self.assertEqual(a[2, 0], 0)
        self.assertEqual(a[3, 1], 11)
        with self.assertRaises(PreconditionError):
            a[:, :2] = b

    def test_view_of(self):
        a = sample(4, 5)
        v = Array.view_of(a, (1, 1), (2, 2), (2, 3))
        self.assertEqual(v.tolist(), [[11, 41], [13, 43]])


class TestSubarray(TestCase):
    def test_inclusive_bounds(self):
        for kwargs in LAYOUTS:
            a = sample(4, 5, 3, **kwargs)
            s = a.subarray((1, 2, 0), (2, 4, 1))
            self.assertEqual(s.shape, (2, 3, 2))
            self.assertEqual(s[0, 0, 0], coord_value((1, 2, 0)))
            self.assertEqual(s[1, 2, 1], coord_value((2, 4, 1)))

    def test_rank_mismatch(self):
        a = sample(4, 5)
        with self.assertRaises(PreconditionError):
            a.subarray((1,), (2, 2))


class TestSlice(TestCase):
    def test_slice_int_point(self):
        for kwargs in LAYOUTS:
            a = sample(2, 3, 4, **kwargs)
            for axis in range(3):
                s = a.slice(axis, 1)
                self.assertIs(type(s), Array)
                self.assertEqual(s.rank(), 2)
                self.assertEqual(s.shape, a.shape.drop(axis))
                for c in [(0, 0), (1, 1), (s.shape[0] - 1, s.shape[1] - 1)]:
                    full = list(c)
                    full.insert(axis, 1)
                    self.assertEqual(s[c], coord_value(full))

    def test_slice_full_point(self):
        a = sample(2, 3, 4)
        s = a.slice(1, (0, 2, 0))
        self.assertEqual(s[1, 3], 321)

    def test_slice_then_clone(self):
        for kwargs in LAYOUTS:
            a = sample(2, 3, 4, **kwargs)
            c = a.slice(2, 3).clone()
            self.assertFalse(c.is_view())
            self.assertEqual(c[1, 2], 321)

    def test_slice_rank_one(self):
        a = sample(4)
        with self.assertRaises(PreconditionError):
            a.slice(0, 1)


class TestValueSemantics(TestCase):
    def test_clone_isolated(self):
        for kwargs in LAYOUTS:
            a = sample(3, 4, **kwargs)
            b = a.clone()
            self.assertEqual(a, b)
            self.assertIs(b.layout, a.layout)
            b[0, 0] = 99
            self.assertEqual(a[0, 0], 0)

    def test_deepcopy_of_view(self):
        for kwargs in LAYOUTS:
            a = sample(10, 10, **kwargs)
            v = a[2:4, 5:7]
            b = copy.deepcopy(v)
            self.assertFalse(b.is_view())
            self.assertEqual(b.memory.capacity(), 4)
            self.assertEqual(b.tolist(), [[52, 62], [53, 63]])
            a[2, 5] = -1
            self.assertEqual(b[0, 0], 52)

    def test_copy(self):
        a = sample(2, 2)
        b = copy.copy(a)
        b[1, 1] = 0
        self.assertEqual(a[1, 1], 11)

    def test_assign(self):
        a = Array.from_shape(5, 5, layout="multislice")
        b = sample(2, 3, layout="column_major")
        a.assign(b)
        self.assertEqual(a.shape, (2, 3))
        self.assertIs(a.layout, Layout.COLUMN_MAJOR)
        self.assertEqual(a, b)
        b[0, 0] = 5
        self.assertEqual(a[0, 0], 0)

    def test_assign_self(self):
        a = sample(2, 3)
        a.assign(a)
        self.assertEqual(a[1, 2], 21)

    def test_move(self):
        for kwargs in LAYOUTS:
            a = sample(2, 3, **kwargs)
            b = a.move()
            self.assertEqual(b[1, 2], 21)
            self.assertTrue(a.is_empty())
            self.assertEqual(a.shape, (0, 0))
            self.assertEqual(a.memory.capacity(), 0)

    def test_release(self):
        for kwargs in LAYOUTS:
            a = sample(2, 3, **kwargs)
            a.release()
            self.assertTrue(a.is_empty())
            a.release()

    def test_copy_from_layouts(self):
        for src_kwargs in LAYOUTS:
            for dst_kwargs in LAYOUTS:
                src = sample(3, 2, 2, **src_kwargs)
                dst = Array.from_shape(3, 2, 2, **dst_kwargs)
                dst.copy_from(src)
                self.assertEqual(dst, src)

    def test_copy_from_shape_mismatch(self):
        with self.assertRaises(PreconditionError):
            Array.from_shape(2, 3).copy_from(Array.from_shape(3, 2))


class TestFillValues(TestCase):
    def test_declared_order(self):
        for kwargs in LAYOUTS:
            a = Array.from_shape(2, 3, **kwargs)
            a.fill_values(range(1, 7))
            self.assertEqual(a.tolist(), [[1, 3, 5], [2, 4, 6]])

    def test_wrong_count(self):
        a = Array.from_shape(2, 3)
        with self.assertRaises(PreconditionError):
            a.fill_values([1, 2, 3])

    def test_fill_value(self):
        for kwargs in LAYOUTS:
            a = Array.from_shape(2, 3, 2, **kwargs)
            a.fill_value(4)
            self.assertEqual(a, Array.with_fill((2, 3, 2), 4))


class TestTensor(TestCase):
    def test_to_tensor(self):
        for kwargs in LAYOUTS:
            t = sample(2, 3, **kwargs).to_tensor()
            self.assertEqual(tuple(t.shape), (2, 3))
            self.assertEqual(t.tolist(), [[0, 10, 20], [1, 11, 21]])

    def test_from_tensor_aliases(self):
        t = torch.arange(6, dtype=torch.float32).reshape(2, 3)
        a = Array.from_tensor(t)
        self.assertIs(a.layout, Layout.COLUMN_MAJOR)
        self.assertEqual(a[1, 2], 5)
        a[0, 1] = 10
        self.assertEqual(t[0, 1].item(), 10)

    def test_from_transposed_tensor(self):
        t = torch.arange(6, dtype=torch.float32).reshape(3, 2).t()
        a = Array.from_tensor(t)
        self.assertIs(a.layout, Layout.ROW_MAJOR)
        self.assertEqual(a.tolist(), t.tolist())

    def test_from_tensor_view(self):
        base = torch.arange(20, dtype=torch.float32).reshape(4, 5)
        t = base[1:3, 2:]
        a = Array.from_tensor(t)
        self.assertEqual(a.tolist(), t.tolist())
        a[1, 0] = -1
        self.assertEqual(base[2, 2].item(), -1)

    def test_equality_across_layouts(self):
        arrays = [sample(2, 3, 2, **kwargs) for kwargs in LAYOUTS]
        for a in arrays:
            for b in arrays:
                self.assertEqual(a, b)
        self.assertNotEqual(arrays[0], sample(2, 3, 1))
        self.assertNotEqual(arrays[0], 1)

    def test_str(self):
        a = Array.from_shape(2, 2, dtype=torch.int64)
        a.fill_values([1, 2, 3, 4])
        self.assertEqual(str(a), "[[1, 3], [2, 4]]")


if __name__ == "__main__":
    main()
