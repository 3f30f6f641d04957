"""
Performance metrics collection for MapReduce jobs.
"""

import json
import logging
import os
import threading
import time
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, Optional

import psutil

from mrengine.common.errors import SourceUnavailableError
from mrengine.common.output_sink import OUTPUT_FILE_NAME
from mrengine.common.record_source import TextFileSource

logger = logging.getLogger(__name__)


@dataclass
class JobMetrics:
    """Metrics and counters for a single MapReduce job execution."""

    job_id: str
    job_name: str
    start_time: float
    end_time: float = 0.0
    map_phase_start: float = 0.0
    map_phase_end: float = 0.0
    shuffle_phase_start: float = 0.0
    shuffle_phase_end: float = 0.0
    reduce_phase_start: float = 0.0
    reduce_phase_end: float = 0.0
    num_map_tasks: int = 0
    num_reduce_tasks: int = 0
    use_combiner: bool = False
    input_size_bytes: int = 0
    output_size_bytes: int = 0
    map_input_records: int = 0
    skipped_records: int = 0
    map_output_records: int = 0
    combine_output_records: int = 0
    spilled_buffers: int = 0
    reduce_input_groups: int = 0
    reduce_output_records: int = 0
    failed_keys: int = 0
    task_retries: int = 0
    peak_rss_bytes: int = 0

    @property
    def total_time_seconds(self) -> float:
        """Total job execution time in seconds."""
        return max(0.0, self.end_time - self.start_time)

    @property
    def map_phase_time_seconds(self) -> float:
        """Map phase execution time in seconds."""
        return max(0.0, self.map_phase_end - self.map_phase_start)

    @property
    def shuffle_phase_time_seconds(self) -> float:
        """Shuffle/sort/group execution time in seconds."""
        return max(0.0, self.shuffle_phase_end - self.shuffle_phase_start)

    @property
    def reduce_phase_time_seconds(self) -> float:
        """Reduce phase execution time in seconds."""
        return max(0.0, self.reduce_phase_end - self.reduce_phase_start)

    @property
    def combiner_reduction_ratio(self) -> float:
        """Fraction of map output pairs removed by the combiner."""
        if not self.use_combiner or self.map_output_records == 0:
            return 0.0
        return 1.0 - (self.combine_output_records / self.map_output_records)

    def to_dict(self) -> dict:
        """Convert metrics to dictionary."""
        data = asdict(self)
        data.update({
            'total_time_seconds': self.total_time_seconds,
            'map_phase_time_seconds': self.map_phase_time_seconds,
            'shuffle_phase_time_seconds': self.shuffle_phase_time_seconds,
            'reduce_phase_time_seconds': self.reduce_phase_time_seconds,
            'combiner_reduction_ratio': self.combiner_reduction_ratio,
        })
        return data

    def save_to_file(self, filepath: str):
        """Save metrics to JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


def _input_size(paths: Iterable[str]) -> int:
    paths = list(paths)
    if not paths:
        return 0
    try:
        files = TextFileSource(paths).resolve_input_files()
    except SourceUnavailableError as e:
        # The map phase reports missing input as a job failure
        logger.debug(f"Input size unknown: {e}")
        return 0
    return sum(os.path.getsize(path) for path in files)


class MetricsCollector:
    """Collects and manages metrics for MapReduce jobs (safe to share between threads)."""

    def __init__(self):
        self.job_metrics: Dict[str, JobMetrics] = {}
        self.lock = threading.Lock()
        self.process = psutil.Process()

    def start_job(self, job_id: str, job_name: str, use_combiner: bool,
                  input_paths: Iterable[str] = ()):
        """Initialize metrics tracking for a new job."""
        metrics = JobMetrics(
            job_id=job_id,
            job_name=job_name,
            start_time=time.time(),
            use_combiner=use_combiner,
            input_size_bytes=_input_size(input_paths),
        )
        with self.lock:
            self.job_metrics[job_id] = metrics
        self.sample_memory(job_id)

    def sample_memory(self, job_id: str):
        """Record the current resident set size if it is a new peak."""
        rss = self.process.memory_info().rss
        with self.lock:
            metrics = self.job_metrics.get(job_id)
            if metrics is not None and rss > metrics.peak_rss_bytes:
                metrics.peak_rss_bytes = rss

    def start_map_phase(self, job_id: str, num_map_tasks: int):
        with self.lock:
            if job_id in self.job_metrics:
                self.job_metrics[job_id].map_phase_start = time.time()
                self.job_metrics[job_id].num_map_tasks = num_map_tasks

    def record_map_task(self, job_id: str, result):
        """Add the counters of one accepted map task result."""
        with self.lock:
            metrics = self.job_metrics.get(job_id)
            if metrics is None:
                return
            metrics.map_input_records += result.records_read
            metrics.skipped_records += result.records_skipped
            metrics.map_output_records += result.pairs_emitted
            metrics.combine_output_records += result.pairs_after_combine
            metrics.spilled_buffers += result.spill_count
        self.sample_memory(job_id)

    def end_map_phase(self, job_id: str):
        """Mark the end of the map phase."""
        with self.lock:
            if job_id in self.job_metrics:
                self.job_metrics[job_id].map_phase_end = time.time()

    def start_shuffle_phase(self, job_id: str):
        with self.lock:
            if job_id in self.job_metrics:
                self.job_metrics[job_id].shuffle_phase_start = time.time()

    def end_shuffle_phase(self, job_id: str, num_groups: int):
        with self.lock:
            if job_id in self.job_metrics:
                self.job_metrics[job_id].shuffle_phase_end = time.time()
                self.job_metrics[job_id].reduce_input_groups = num_groups
        self.sample_memory(job_id)

    def start_reduce_phase(self, job_id: str, num_reduce_tasks: int):
        """Mark the start of the reduce phase."""
        with self.lock:
            if job_id in self.job_metrics:
                self.job_metrics[job_id].reduce_phase_start = time.time()
                self.job_metrics[job_id].num_reduce_tasks = num_reduce_tasks

    def record_reduce_task(self, job_id: str, result):
        """Add the counters of one accepted reduce task result."""
        with self.lock:
            metrics = self.job_metrics.get(job_id)
            if metrics is None:
                return
            metrics.reduce_output_records += len(result.results)
            metrics.failed_keys += len(result.failed_keys)

    def end_reduce_phase(self, job_id: str):
        with self.lock:
            if job_id in self.job_metrics:
                self.job_metrics[job_id].reduce_phase_end = time.time()

    def end_job(self, job_id: str, output_path: Optional[str] = None, task_retries: int = 0):
        """Mark job completion and calculate output size."""
        self.sample_memory(job_id)
        output_size = 0
        if output_path:
            output_file = os.path.join(output_path, OUTPUT_FILE_NAME)
            if os.path.exists(output_file):
                output_size = os.path.getsize(output_file)

        with self.lock:
            if job_id in self.job_metrics:
                self.job_metrics[job_id].end_time = time.time()
                self.job_metrics[job_id].output_size_bytes = output_size
                self.job_metrics[job_id].task_retries = task_retries

    def get_metrics(self, job_id: str) -> Optional[JobMetrics]:
        """Retrieve metrics for a specific job."""
        with self.lock:
            return self.job_metrics.get(job_id)


def format_counters(metrics: JobMetrics) -> str:
    """Render job counters as indented name=value lines."""
    counters = [
        ("Map input records", metrics.map_input_records),
        ("Skipped records", metrics.skipped_records),
        ("Map output records", metrics.map_output_records),
    ]
    if metrics.use_combiner:
        counters.append(("Combine output records", metrics.combine_output_records))
    counters.extend([
        ("Spilled buffers", metrics.spilled_buffers),
        ("Reduce input groups", metrics.reduce_input_groups),
        ("Reduce output records", metrics.reduce_output_records),
        ("Failed keys", metrics.failed_keys),
        ("Task retries", metrics.task_retries),
        ("Peak memory (MB)", f"{metrics.peak_rss_bytes / (1024 * 1024):.1f}"),
    ])
    return "\n".join(f"    {name}={value}" for name, value in counters)
