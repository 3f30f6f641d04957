"""
Unit tests for shuffle, sort and group.
"""

import unittest

from mrengine.common.types import KeyGroup
from mrengine.coordinator.shuffle import (assign_reduce_tasks, merge_buffers, partition_for_key,
                                          shuffle, sort_and_group)
from mrengine.worker.intermediate_buffer import IntermediateBuffer


def make_buffer(owner, pairs):
    buffer = IntermediateBuffer(owner)
    for key, value in pairs:
        buffer.emit(key, value)
    return buffer


class TestSortAndGroup(unittest.TestCase):
    """Test grouping of intermediate pairs."""

    def test_groups_sorted_by_key(self):
        """Keys come out in ascending order with all their values."""
        pairs = [("the", 1), ("quick", 1), ("fox", 1), ("the", 1), ("lazy", 1), ("the", 1)]
        groups = sort_and_group(pairs)

        self.assertEqual(groups, [
            KeyGroup("fox", [1]),
            KeyGroup("lazy", [1]),
            KeyGroup("quick", [1]),
            KeyGroup("the", [1, 1, 1]),
        ])

    def test_values_keep_arrival_order(self):
        """The sort is stable, so values stay in arrival order."""
        groups = sort_and_group([("k", 3), ("a", 0), ("k", 1), ("k", 2)])

        self.assertEqual(groups[1], KeyGroup("k", [3, 1, 2]))

    def test_duplicate_pairs_are_retained(self):
        """Identical pairs are counted, not deduplicated."""
        groups = sort_and_group([("a", 1), ("a", 1), ("a", 1)])

        self.assertEqual(groups, [KeyGroup("a", [1, 1, 1])])

    def test_case_sensitive_ordering(self):
        """Uppercase sorts before lowercase and is a different key."""
        groups = sort_and_group([("the", 1), ("The", 1), ("apple", 1)])

        self.assertEqual([g.key for g in groups], ["The", "apple", "the"])

    def test_empty_input(self):
        """No pairs, no groups."""
        self.assertEqual(sort_and_group([]), [])


class TestShuffle(unittest.TestCase):
    """Test merging buffers from several map tasks."""

    def setUp(self):
        self.buffers = [
            make_buffer("map-0", [("a", 1), ("b", 1), ("a", 1)]),
            make_buffer("map-1", [("b", 1), ("a", 1)]),
        ]

    def test_merge_buffers_in_task_order(self):
        """Buffers are concatenated in the order given."""
        self.assertEqual(list(merge_buffers(self.buffers)),
                         [("a", 1), ("b", 1), ("a", 1), ("b", 1), ("a", 1)])

    def test_shuffle_combines_all_buffers(self):
        """Every pair lands in exactly one group."""
        groups = shuffle(self.buffers)

        self.assertEqual(groups, [KeyGroup("a", [1, 1, 1]), KeyGroup("b", [1, 1])])

    def test_values_ordered_by_map_task(self):
        """Values from earlier map tasks come first."""
        buffers = [make_buffer("map-0", [("k", "first")]), make_buffer("map-1", [("k", "second")])]

        self.assertEqual(shuffle(buffers), [KeyGroup("k", ["first", "second"])])

    def test_partitioned_sort_matches_single_sort(self):
        """The parallel path gives exactly the same groups."""
        words = [f"w{i % 37}" for i in range(500)]
        buffers = [make_buffer(f"map-{n}", [(w, n) for w in words[n::4]]) for n in range(4)]

        expected = shuffle(buffers, num_partitions=1)
        for partitions in (2, 3, 8):
            with self.subTest(partitions=partitions):
                self.assertEqual(shuffle(buffers, num_partitions=partitions), expected)

    def test_shuffle_of_empty_buffers(self):
        """Empty map output produces no key groups."""
        self.assertEqual(shuffle([make_buffer("map-0", [])], num_partitions=4), [])

    def test_partition_for_key_is_stable(self):
        """Partitioning does not depend on Python's hash seed."""
        self.assertEqual(partition_for_key("hello", 7), partition_for_key("hello", 7))
        self.assertTrue(all(0 <= partition_for_key(f"k{i}", 5) < 5 for i in range(100)))


class TestAssignReduceTasks(unittest.TestCase):
    """Test splitting key groups into contiguous reduce ranges."""

    def setUp(self):
        self.groups = [KeyGroup(k, [1]) for k in "abcdefg"]

    def test_ranges_are_contiguous_and_complete(self):
        """Concatenating the ranges gives back the input."""
        ranges = assign_reduce_tasks(self.groups, 3)

        self.assertEqual([len(r) for r in ranges], [3, 2, 2])
        self.assertEqual([g for r in ranges for g in r], self.groups)

    def test_more_tasks_than_groups(self):
        """No empty ranges are created."""
        ranges = assign_reduce_tasks(self.groups[:2], 5)

        self.assertEqual(len(ranges), 2)

    def test_single_task(self):
        """One task takes all groups."""
        self.assertEqual(assign_reduce_tasks(self.groups, 1), [self.groups])

    def test_no_groups(self):
        """No groups, no reduce tasks."""
        self.assertEqual(assign_reduce_tasks([], 4), [])


if __name__ == '__main__':
    unittest.main()
