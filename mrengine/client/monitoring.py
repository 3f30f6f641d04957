"""Progress reporting and job summaries for the command line client."""

import logging
import threading
from typing import Callable, Dict

from mrengine.coordinator.metrics import format_counters

logger = logging.getLogger(__name__)


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human readable string."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds / 60)
    seconds = seconds % 60
    if minutes < 60:
        return f"{minutes}m {seconds:.1f}s"
    hours = int(minutes / 60)
    minutes = minutes % 60
    return f"{hours}h {minutes}m {seconds:.1f}s"


def format_progress_bar(completed: int, total: int, width: int = 40) -> str:
    """Create a progress bar string."""
    percentage = (completed / total) if total > 0 else 0
    filled = int(width * percentage)
    bar = "█" * filled + "░" * (width - filled)
    return f"[{bar}] {percentage:.1%}"


def format_status_line(status: Dict) -> str:
    """One-line summary of a get_job_status() snapshot."""
    phase = status['status']
    if phase == 'reducing':
        bar = format_progress_bar(status['reduce_completed'], status['reduce_total'], width=20)
        tasks = f"reduce {status['reduce_completed']}/{status['reduce_total']}"
    else:
        bar = format_progress_bar(status['map_completed'], status['map_total'], width=20)
        tasks = f"map {status['map_completed']}/{status['map_total']}"
    return f"{status['job_id']} {phase:<10} {bar} {tasks}"


class ProgressReporter(threading.Thread):
    """Background thread that logs job progress at a fixed interval."""

    def __init__(self, get_status: Callable[[], Dict], interval: float = 2.0):
        super().__init__(name="progress-reporter", daemon=True)
        self.get_status = get_status
        self.interval = interval
        self._stopped = threading.Event()
        self._last_line = None

    def run(self):
        while not self._stopped.wait(self.interval):
            line = format_status_line(self.get_status())
            if line != self._last_line:
                logger.info(line)
                self._last_line = line

    def stop(self):
        self._stopped.set()
        if self.is_alive():
            self.join()


def print_job_report(report):
    """Print the outcome of a finished job."""
    metrics = report.metrics
    if report.succeeded:
        print(f"✓ Job {report.job_id} ({report.job_name}) completed")
        print(f"  Records processed: {metrics.map_input_records}")
        print(f"  Distinct keys: {metrics.reduce_output_records}")
        print(f"  Map phase: {format_duration(metrics.map_phase_time_seconds)}")
        print(f"  Shuffle phase: {format_duration(metrics.shuffle_phase_time_seconds)}")
        print(f"  Reduce phase: {format_duration(metrics.reduce_phase_time_seconds)}")
        print(f"  Total time: {format_duration(metrics.total_time_seconds)}")
        if report.failed_keys:
            print(f"Warning: {len(report.failed_keys)} key(s) failed and were excluded from output:")
            for key, reason in sorted(report.failed_keys.items()):
                print(f"  {key}: {reason}")
    else:
        print(f"✗ Job {report.job_id} ({report.job_name}) failed during {report.failed_stage}")
        print(f"  Error: {report.error}")
        if metrics is not None:
            print(f"  Skipped records: {metrics.skipped_records}")
            print(f"  Failed keys: {metrics.failed_keys}")
            print(f"  Task retries: {metrics.task_retries}")

    if metrics is not None:
        print("  Counters:")
        print(format_counters(metrics))
