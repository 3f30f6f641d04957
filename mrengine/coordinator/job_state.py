#!/usr/bin/env python3
"""
Job state machine and task records for the MapReduce coordinator
Handles phase transitions and the completed-task counters
"""

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class JobStatus(Enum):
    """Status of a MapReduce job"""
    INITIALIZED = "initialized"
    MAPPING = "mapping"
    SHUFFLING = "shuffling"
    REDUCING = "reducing"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskStatus(Enum):
    """Status of individual map or reduce tasks"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class MapTask:
    """Represents a single map task (one input split)"""
    task_id: int
    split: Any
    status: TaskStatus = TaskStatus.PENDING
    attempts: int = 0
    error_message: str = ""
    start_time: float = 0.0
    end_time: float = 0.0


@dataclass
class ReduceTask:
    """Represents a single reduce task (one contiguous key range)"""
    task_id: int
    key_groups: List[Any] = field(default_factory=list)
    status: TaskStatus = TaskStatus.PENDING
    attempts: int = 0
    error_message: str = ""
    start_time: float = 0.0
    end_time: float = 0.0


_NEXT_STATES = {
    JobStatus.INITIALIZED: JobStatus.MAPPING,
    JobStatus.MAPPING: JobStatus.SHUFFLING,
    JobStatus.SHUFFLING: JobStatus.REDUCING,
    JobStatus.REDUCING: JobStatus.COMPLETED,
}


class JobState:
    """
    Lifecycle of one job.

    The completed-task counters are the only state shared between worker
    threads; they are changed only through the increment methods.
    """

    def __init__(self, job_id: str):
        self.job_id = job_id
        self.status = JobStatus.INITIALIZED
        self.num_map_tasks = 0
        self.num_reduce_tasks = 0
        self.completed_map_tasks = 0
        self.completed_reduce_tasks = 0
        self.failed_stage: Optional[str] = None
        self.error_message = ""
        self.start_time = time.time()
        self.end_time = 0.0
        self.lock = threading.Lock()

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def increment_map_completed(self) -> int:
        with self.lock:
            self.completed_map_tasks += 1
            return self.completed_map_tasks

    def increment_reduce_completed(self) -> int:
        with self.lock:
            self.completed_reduce_tasks += 1
            return self.completed_reduce_tasks

    def _advance(self, expected: JobStatus):
        if self.status != expected:
            raise ValueError(f"Cannot move job {self.job_id} from {self.status.value} "
                             f"to {_NEXT_STATES.get(expected, expected).value}")
        self.status = _NEXT_STATES[expected]

    def start_mapping(self, num_map_tasks: int = 0):
        with self.lock:
            self._advance(JobStatus.INITIALIZED)
            self.num_map_tasks = num_map_tasks

    def set_map_task_count(self, num_map_tasks: int):
        """Record how many map tasks the source produced (known once splits are planned)"""
        with self.lock:
            if self.status != JobStatus.MAPPING:
                raise ValueError(f"Job {self.job_id} is not mapping")
            self.num_map_tasks = num_map_tasks

    def start_shuffling(self):
        """Pass the map barrier; every map task must have reported completion"""
        with self.lock:
            if self.completed_map_tasks < self.num_map_tasks:
                raise ValueError(f"Cannot shuffle job {self.job_id}: {self.completed_map_tasks}/"
                                 f"{self.num_map_tasks} map tasks complete")
            self._advance(JobStatus.MAPPING)

    def start_reducing(self, num_reduce_tasks: int):
        with self.lock:
            self._advance(JobStatus.SHUFFLING)
            self.num_reduce_tasks = num_reduce_tasks

    def mark_completed(self):
        with self.lock:
            if self.completed_reduce_tasks < self.num_reduce_tasks:
                raise ValueError(f"Cannot complete job {self.job_id}: {self.completed_reduce_tasks}/"
                                 f"{self.num_reduce_tasks} reduce tasks complete")
            self._advance(JobStatus.REDUCING)
            self.end_time = time.time()

    def mark_failed(self, stage: str, error_msg: str):
        with self.lock:
            if self.is_terminal:
                raise ValueError(f"Job {self.job_id} already {self.status.value}")
            self.status = JobStatus.FAILED
            self.failed_stage = stage
            self.error_message = error_msg
            self.end_time = time.time()

    def get_status(self) -> Dict:
        """Snapshot of status and progress"""
        with self.lock:
            total_tasks = self.num_map_tasks + self.num_reduce_tasks
            completed_tasks = self.completed_map_tasks + self.completed_reduce_tasks
            progress = int((completed_tasks / total_tasks * 100)) if total_tasks > 0 else 0

            return {
                'job_id': self.job_id,
                'status': self.status.value,
                'progress': progress,
                'map_completed': self.completed_map_tasks,
                'map_total': self.num_map_tasks,
                'reduce_completed': self.completed_reduce_tasks,
                'reduce_total': self.num_reduce_tasks,
                'error_message': self.error_message,
            }
