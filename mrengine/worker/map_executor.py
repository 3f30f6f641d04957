#!/usr/bin/env python3
"""
Map Task Executor
Executes map tasks by reading an input split, applying the map function,
collecting output in an intermediate buffer and optionally combining it
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from mrengine.common.config import DEFAULT_SPILL_THRESHOLD
from mrengine.common.errors import RecordDecodeError
from mrengine.common.types import Record
from mrengine.worker.intermediate_buffer import IntermediateBuffer

logger = logging.getLogger(__name__)


@dataclass
class MapTaskResult:
    """Outcome of one successful map task attempt"""
    task_id: int
    buffer: IntermediateBuffer
    records_read: int = 0
    records_skipped: int = 0
    pairs_emitted: int = 0
    pairs_after_combine: int = 0
    spill_count: int = 0
    execution_time_ms: int = 0
    cancelled: bool = False


def decode_record(split_id: int, record: Record) -> str:
    """Return the record's line as text, decoding UTF-8 bytes strictly"""
    value = record.value
    if isinstance(value, bytes):
        try:
            return value.decode('utf-8')
        except UnicodeDecodeError as e:
            raise RecordDecodeError(split_id, record.key, str(e)) from e
    return value


class MapExecutor:
    """Executes a single map task"""

    def __init__(self, task_id: int, split, map_function: Callable,
                 combiner_function: Optional[Callable] = None,
                 spill_threshold: int = DEFAULT_SPILL_THRESHOLD,
                 spill_dir: Optional[str] = None,
                 should_stop: Optional[Callable[[], bool]] = None):
        """
        Initialize the map executor

        Args:
            task_id: Unique ID for this map task
            split: Input split providing records() (FileSplit or MemorySplit)
            map_function: map_function(key, value) yielding (key, value) pairs
            combiner_function: Optional per-key pre-reduction applied to the buffer
            spill_threshold: Pairs held in memory before spilling to disk
            spill_dir: Directory for spill files (system temp dir if None)
            should_stop: Checked before each record; True stops the task early
        """
        self.task_id = task_id
        self.split = split
        self.map_function = map_function
        self.combiner_function = combiner_function
        self.spill_threshold = spill_threshold
        self.spill_dir = spill_dir
        self.should_stop = should_stop or (lambda: False)

    def execute(self) -> MapTaskResult:
        """
        Execute the map task

        Returns:
            MapTaskResult holding the (possibly combined) intermediate buffer

        Raises:
            SourceUnavailableError: If the split cannot be read
            Exception: Whatever the map or combiner function raises
        """
        start_time = time.time()
        buffer = IntermediateBuffer(f"map-{self.task_id}", self.spill_threshold, self.spill_dir)
        result = MapTaskResult(task_id=self.task_id, buffer=buffer)
        emit = buffer.emit

        logger.debug(f"Map task {self.task_id}: Reading split {self.split.label}")
        try:
            for record in self.split.records():
                if self.should_stop():
                    result.cancelled = True
                    logger.info(f"Map task {self.task_id}: Stopping after {result.records_read} records")
                    break

                result.records_read += 1
                try:
                    text = decode_record(self.split.split_id, record)
                except RecordDecodeError as e:
                    result.records_skipped += 1
                    logger.warning(f"Map task {self.task_id}: Skipping record: {e}")
                    continue

                for out_key, out_value in self.map_function(record.key, text):
                    emit(out_key, out_value)

            result.pairs_emitted = len(buffer)
            result.spill_count = buffer.spill_count

            if self.combiner_function is not None and not result.cancelled:
                combined = buffer.combine(self.combiner_function)
                buffer.discard()
                result.buffer = combined
                result.spill_count += combined.spill_count
                logger.debug(f"Map task {self.task_id}: Combiner reduced {result.pairs_emitted} "
                             f"pairs to {len(combined)}")
        except Exception:
            result.buffer.discard()
            raise

        result.pairs_after_combine = len(result.buffer)
        result.execution_time_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Map task {self.task_id}: Completed in {result.execution_time_ms}ms "
                    f"({result.records_read} records, {result.pairs_emitted} pairs)")
        return result
