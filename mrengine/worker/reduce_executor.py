#!/usr/bin/env python3
"""
Reduce Task Executor
Executes reduce tasks by applying the reduce function to each key group of
one contiguous key range
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from mrengine.common.errors import ReduceError
from mrengine.common.types import KeyGroup, ReduceResult

logger = logging.getLogger(__name__)


@dataclass
class ReduceTaskResult:
    """Outcome of one successful reduce task attempt"""
    task_id: int
    results: List[ReduceResult] = field(default_factory=list)
    failed_keys: Dict[str, str] = field(default_factory=dict)
    groups_processed: int = 0
    execution_time_ms: int = 0
    cancelled: bool = False


class ReduceExecutor:
    """Executes a single reduce task"""

    def __init__(self, task_id: int, key_groups: Sequence[KeyGroup], reduce_function: Callable,
                 fail_fast: bool = True, should_stop: Optional[Callable[[], bool]] = None):
        """
        Initialize the reduce executor

        Args:
            task_id: Unique ID for this reduce task
            key_groups: Key groups in ascending key order
            reduce_function: reduce_function(key, values) -> aggregated value
            fail_fast: Raise on the first failing key instead of recording it
            should_stop: Checked before each key group; True stops the task early
        """
        self.task_id = task_id
        self.key_groups = key_groups
        self.reduce_function = reduce_function
        self.fail_fast = fail_fast
        self.should_stop = should_stop or (lambda: False)

    def execute(self) -> ReduceTaskResult:
        """
        Execute the reduce task

        Returns:
            ReduceTaskResult with one result per successfully reduced key

        Raises:
            ReduceError: If a key fails and fail_fast is set
        """
        start_time = time.time()
        result = ReduceTaskResult(task_id=self.task_id)

        for group in self.key_groups:
            if self.should_stop():
                result.cancelled = True
                logger.info(f"Reduce task {self.task_id}: Stopping after {result.groups_processed} key groups")
                break

            result.groups_processed += 1
            try:
                value = self.reduce_function(group.key, group.values)
            except Exception as e:
                error = ReduceError(group.key, e)
                if self.fail_fast:
                    raise error from e
                logger.warning(f"Reduce task {self.task_id}: {error}")
                result.failed_keys[group.key] = str(e)
                continue

            result.results.append(ReduceResult(group.key, value))

        result.execution_time_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Reduce task {self.task_id}: Completed in {result.execution_time_ms}ms "
                    f"({len(result.results)} results, {len(result.failed_keys)} failed keys)")
        return result
