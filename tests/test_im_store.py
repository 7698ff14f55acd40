from __future__ import annotations

import unittest

import numpy as np

import im_store
from im_store import IntensityStore


class TestSet(unittest.TestCase):
    def setUp(self) -> None:
        self.store = IntensityStore()

    def test_set_on_fresh_store(self) -> None:
        self.assertEqual(self.store.set(0, 10, 5), {0: 5, 10: 0})

    def test_overwrite_replaces_instead_of_accumulating(self) -> None:
        self.store.set(0, 10, 5)
        self.store.set(0, 10, 3)
        self.assertEqual(self.store.intensities, {0: 3, 10: 0})

    def test_repeated_set_is_idempotent(self) -> None:
        once = IntensityStore()
        once.set(2, 7, 4)
        self.store.set(2, 7, 4)
        self.assertEqual(self.store.set(2, 7, 4), once.query())

    def test_zero_set_on_fresh_store_is_empty(self) -> None:
        self.assertEqual(self.store.set(0, 10, 0), {})

    def test_zeroing_whole_region_empties_store(self) -> None:
        self.store.set(0, 10, 5)
        self.assertEqual(self.store.set(0, 10, 0), {})
        self.assertFalse(self.store)

    def test_zeroing_tail_keeps_single_edge_at_first_zero(self) -> None:
        self.store.set(0, 10, 5)
        self.assertEqual(self.store.set(5, 10, 0), {0: 5, 5: 0})

    def test_zeroing_head_drops_leading_zero(self) -> None:
        self.store.set(0, 10, 5)
        self.assertEqual(self.store.set(0, 5, 0), {5: 5, 10: 0})

    def test_inner_zero_run_is_kept(self) -> None:
        self.store.set(0, 10, 5)
        self.assertEqual(self.store.set(3, 6, 0), {0: 5, 3: 0, 6: 5, 10: 0})


class TestAdd(unittest.TestCase):
    def setUp(self) -> None:
        self.store = IntensityStore()

    def test_add_on_fresh_store(self) -> None:
        self.assertEqual(self.store.add(0, 10, 2), {0: 2, 10: 0})

    def test_zero_add_on_fresh_store_is_noop(self) -> None:
        self.assertEqual(self.store.add(0, 5, 0), {})
        self.assertEqual(len(self.store), 0)

    def test_overlapping_add_splits_boundaries(self) -> None:
        self.store.set(0, 10, 5)
        self.assertEqual(self.store.add(5, 15, 3), {0: 5, 5: 8, 10: 3, 15: 0})

    def test_overlapping_add_after_smaller_set(self) -> None:
        self.store.set(0, 10, 2)
        self.store.add(5, 15, 3)
        self.assertEqual(self.store.intensities, {0: 2, 5: 5, 10: 3, 15: 0})

    def test_negative_add_inside_region(self) -> None:
        self.store.set(0, 10, 5)
        self.store.add(0, 5, -2)
        self.assertEqual(self.store.intensities, {0: 3, 5: 5, 10: 0})

    def test_multiple_adds(self) -> None:
        self.store.set(0, 10, 1)
        self.store.add(0, 5, 2)
        self.store.add(5, 10, 3)
        self.assertEqual(self.store.intensities, {0: 3, 5: 4, 10: 0})

    def test_additive_composition(self) -> None:
        split = IntensityStore()
        split.add(-4, 9, 2)
        split.add(-4, 9, 5)
        self.assertEqual(split.query(), self.store.add(-4, 9, 7))

    def test_zero_add_on_populated_store_keeps_split(self) -> None:
        # Equal neighbours are not collapsed after a value-preserving split.
        self.store.set(0, 10, 5)
        self.assertEqual(self.store.add(0, 5, 0), {0: 5, 5: 5, 10: 0})

    def test_add_before_existing_data(self) -> None:
        self.store.set(10, 20, 5)
        self.assertEqual(self.store.add(0, 5, 2), {0: 2, 5: 0, 10: 5, 20: 0})

    def test_add_after_existing_data(self) -> None:
        self.store.set(0, 10, 5)
        self.assertEqual(self.store.add(20, 30, 1), {0: 5, 10: 0, 20: 1, 30: 0})

    def test_add_spanning_whole_region(self) -> None:
        self.store.set(0, 10, 5)
        self.assertEqual(self.store.add(-5, 15, 1), {-5: 1, 0: 6, 10: 1, 15: 0})

    def test_negative_positions_and_values(self) -> None:
        self.assertEqual(self.store.add(-10, -3, -4), {-10: -4, -3: 0})

    def test_cancelling_add_empties_store(self) -> None:
        self.store.add(0, 10, 3)
        self.assertEqual(self.store.add(0, 10, -3), {})


class TestValidation(unittest.TestCase):
    def setUp(self) -> None:
        self.store = IntensityStore()
        self.store.set(0, 10, 5)

    def test_empty_range_rejected(self) -> None:
        with self.assertRaises(im_store.InvalidRangeError):
            self.store.set(10, 10, 5)
        self.assertEqual(self.store.query(), {0: 5, 10: 0})

    def test_reversed_range_rejected(self) -> None:
        with self.assertRaises(im_store.InvalidRangeError):
            self.store.add(5, 1, 1)
        self.assertEqual(self.store.query(), {0: 5, 10: 0})

    def test_non_integer_rejected(self) -> None:
        with self.assertRaises(im_store.InvalidTypeError):
            self.store.add("a", 10, 5)
        with self.assertRaises(im_store.InvalidTypeError):
            self.store.set(0, 2.5, 5)
        with self.assertRaises(im_store.InvalidTypeError):
            self.store.set(0, 5, None)
        self.assertEqual(self.store.query(), {0: 5, 10: 0})

    def test_bool_rejected(self) -> None:
        with self.assertRaises(im_store.InvalidTypeError):
            self.store.add(0, 5, True)

    def test_errors_are_value_errors(self) -> None:
        with self.assertRaises(ValueError):
            self.store.set(3, 1, 0)
        with self.assertRaises(TypeError):
            self.store.set("x", 1, 0)

    def test_numpy_integers_accepted(self) -> None:
        result = self.store.add(np.int64(5), np.int32(15), np.int64(3))
        self.assertEqual(result, {0: 5, 5: 8, 10: 3, 15: 0})
        self.assertTrue(all(type(k) is int and type(v) is int for k, v in result.items()))


class TestQuery(unittest.TestCase):
    def test_query_never_mutates(self) -> None:
        store = IntensityStore()
        store.set(0, 10, 5)
        store.add(5, 15, 3)
        first = store.query()
        first[99] = 1
        self.assertEqual(store.query(), {0: 5, 5: 8, 10: 3, 15: 0})
        self.assertEqual(store.query(), store.query())

    def test_breakpoints_are_ascending_pairs(self) -> None:
        store = IntensityStore()
        store.set(20, 30, 1)
        store.set(0, 10, 2)
        self.assertEqual(store.breakpoints(), [(0, 2), (10, 0), (20, 1), (30, 0)])
        self.assertEqual(list(store), store.breakpoints())
        self.assertEqual(list(store.query()), [0, 10, 20, 30])

    def test_empty_store(self) -> None:
        store = IntensityStore()
        self.assertEqual(store.query(), {})
        self.assertEqual(len(store), 0)
        self.assertEqual(repr(store), "IntensityStore({})")


class TestExportHelpers(unittest.TestCase):
    def test_to_segments(self) -> None:
        segs = im_store.to_segments({0: 5, 5: 8, 10: 3, 15: 0})
        self.assertEqual(
            segs,
            [
                im_store.Segment(0, 5, 5),
                im_store.Segment(5, 10, 8),
                im_store.Segment(10, 15, 3),
                im_store.Segment(15, None, 0),
            ],
        )
        self.assertEqual(im_store.to_segments({}), [])

    def test_breakpoint_arrays(self) -> None:
        store = IntensityStore()
        store.set(0, 10, 5)
        positions, values = im_store.breakpoint_arrays(store)
        np.testing.assert_array_equal(positions, np.array([0, 10]))
        np.testing.assert_array_equal(values, np.array([5, 0]))
        big = IntensityStore()
        big.set(0, 2 ** 70, 2 ** 80)
        big_pos, big_val = im_store.breakpoint_arrays(big)
        self.assertEqual(list(big_pos), [0, 2 ** 70])
        self.assertEqual(list(big_val), [2 ** 80, 0])
        empty_pos, empty_val = im_store.breakpoint_arrays({})
        self.assertEqual(empty_pos.size, 0)
        self.assertEqual(empty_val.size, 0)


if __name__ == "__main__":
    unittest.main()
