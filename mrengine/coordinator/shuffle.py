"""
Shuffle, sort and group.

Turns the intermediate buffers of all completed map tasks into KeyGroups in
ascending key order. Buffers are merged in map task order and the sort is
stable, so values inside a group keep a deterministic arrival order.
"""

import heapq
import logging
import zlib
from concurrent.futures import ThreadPoolExecutor
from itertools import groupby
from operator import itemgetter
from typing import Any, Iterable, Iterator, List, Sequence, Tuple

from mrengine.common.types import KeyGroup

logger = logging.getLogger(__name__)

_first = itemgetter(0)


def partition_for_key(key, num_partitions: int) -> int:
    """Stable hash partitioning (independent of PYTHONHASHSEED)"""
    return zlib.crc32(str(key).encode('utf-8')) % num_partitions


def merge_buffers(buffers: Iterable[Iterable[Tuple[Any, Any]]]) -> Iterator[Tuple[Any, Any]]:
    """Concatenate buffers in the order given"""
    for buffer in buffers:
        yield from buffer


def sort_and_group(pairs: Iterable[Tuple[Any, Any]]) -> List[KeyGroup]:
    ordered = sorted(pairs, key=_first)
    return [KeyGroup(key, [value for _, value in group])
            for key, group in groupby(ordered, key=_first)]


def shuffle(buffers: Sequence[Iterable[Tuple[Any, Any]]], num_partitions: int = 1) -> List[KeyGroup]:
    """
    Merge, sort and group intermediate pairs

    With num_partitions > 1 pairs are hash-partitioned, each partition is
    sorted on its own thread and the sorted partitions are merged by key.
    Every key lives in exactly one partition, so the result is the same as
    the single-partition path.

    Args:
        buffers: Intermediate buffers ordered by map task id
        num_partitions: Number of sort partitions

    Returns:
        KeyGroups in ascending key order
    """
    if num_partitions <= 1:
        groups = sort_and_group(merge_buffers(buffers))
    else:
        partitions = [[] for _ in range(num_partitions)]
        for key, value in merge_buffers(buffers):
            partitions[partition_for_key(key, num_partitions)].append((key, value))

        with ThreadPoolExecutor(max_workers=num_partitions, thread_name_prefix="sort") as pool:
            sorted_partitions = list(pool.map(sort_and_group, partitions))
        groups = list(heapq.merge(*sorted_partitions, key=_first))

    logger.info(f"Shuffle produced {len(groups)} key groups from {len(buffers)} buffer(s)")
    return groups


def assign_reduce_tasks(groups: Sequence[KeyGroup], num_tasks: int) -> List[List[KeyGroup]]:
    """
    Split ordered key groups into contiguous key ranges, one per reduce task

    Ranges differ in size by at most one group; no empty ranges are returned.
    """
    num_tasks = max(1, min(num_tasks, len(groups)))
    groups_per_task, remainder = divmod(len(groups), num_tasks)

    ranges = []
    start = 0
    for idx in range(num_tasks):
        end = start + groups_per_task + (1 if idx < remainder else 0)
        if start < end:
            ranges.append(list(groups[start:end]))
        start = end
    return ranges
