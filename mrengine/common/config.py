"""
Job configuration.

Defaults come from the environment so the CLI and embedded callers share them.
"""

import os
from dataclasses import dataclass, field, replace
from typing import Callable, Optional, Tuple


def _env_timeout() -> Optional[float]:
    value = float(os.getenv('MR_TASK_TIMEOUT', '0'))
    return value if value > 0 else None


# Configuration from environment
DEFAULT_MAP_WORKERS = int(os.getenv('MR_MAP_WORKERS', '4'))
DEFAULT_REDUCE_WORKERS = int(os.getenv('MR_REDUCE_WORKERS', '4'))
DEFAULT_SPLIT_SIZE = int(os.getenv('MR_SPLIT_SIZE', str(32 * 1024 * 1024)))
DEFAULT_SPILL_THRESHOLD = int(os.getenv('MR_SPILL_THRESHOLD', '500000'))
DEFAULT_SPILL_DIR = os.getenv('MR_SPILL_DIR')
DEFAULT_MAX_RETRIES = int(os.getenv('MR_MAX_RETRIES', '3'))
DEFAULT_TASK_TIMEOUT = _env_timeout()
DEFAULT_LOG_LEVEL = os.getenv('MR_LOG_LEVEL', 'INFO')


@dataclass(frozen=True)
class JobConfig:
    """Immutable description of one map-reduce job"""
    map_function: Callable
    reduce_function: Callable
    combiner_function: Optional[Callable] = None
    job_name: str = "word count"
    input_paths: Tuple[str, ...] = field(default_factory=tuple)
    output_path: Optional[str] = None
    num_map_workers: int = DEFAULT_MAP_WORKERS
    num_reduce_workers: int = DEFAULT_REDUCE_WORKERS
    num_reduce_tasks: Optional[int] = None
    sort_partitions: int = 1
    split_size: int = DEFAULT_SPLIT_SIZE
    task_timeout: Optional[float] = DEFAULT_TASK_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    fail_fast: bool = True
    spill_threshold: int = DEFAULT_SPILL_THRESHOLD
    spill_dir: Optional[str] = DEFAULT_SPILL_DIR

    def __post_init__(self):
        if not callable(self.map_function):
            raise ValueError("map_function must be callable")
        if not callable(self.reduce_function):
            raise ValueError("reduce_function must be callable")
        if self.combiner_function is not None and not callable(self.combiner_function):
            raise ValueError("combiner_function must be callable or None")

        # Accept any iterable of paths (or a single path) but store a tuple
        paths = self.input_paths
        if isinstance(paths, (str, os.PathLike)):
            paths = (paths,)
        object.__setattr__(self, 'input_paths', tuple(str(p) for p in paths))

        for name in ('num_map_workers', 'num_reduce_workers', 'sort_partitions',
                     'split_size', 'spill_threshold'):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")
        if self.num_reduce_tasks is not None and self.num_reduce_tasks < 1:
            raise ValueError("num_reduce_tasks must be at least 1")
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if self.task_timeout is not None and self.task_timeout <= 0:
            raise ValueError("task_timeout must be positive")

    @property
    def use_combiner(self) -> bool:
        return self.combiner_function is not None

    @property
    def reduce_task_count(self) -> int:
        """Number of key-range reduce tasks; defaults to the reduce pool size"""
        return self.num_reduce_tasks or self.num_reduce_workers

    def with_overrides(self, **changes) -> 'JobConfig':
        return replace(self, **changes)
