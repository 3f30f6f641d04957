#!/usr/bin/env python3
"""
Job Manager for the MapReduce engine
Drives one job through map, shuffle and reduce, tracks progress and turns
job-level errors into a failed JobReport
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from mrengine.common.config import JobConfig
from mrengine.common.errors import JobCancelledError, MapReduceError
from mrengine.common.output_sink import TextFileSink
from mrengine.common.record_source import TextFileSource
from mrengine.common.types import KeyGroup
from mrengine.coordinator.job_state import JobState, JobStatus, MapTask, ReduceTask
from mrengine.coordinator.metrics import JobMetrics, MetricsCollector
from mrengine.coordinator.scheduler import TaskScheduler
from mrengine.coordinator.shuffle import assign_reduce_tasks, shuffle
from mrengine.worker.map_executor import MapExecutor, MapTaskResult
from mrengine.worker.reduce_executor import ReduceExecutor, ReduceTaskResult

logger = logging.getLogger(__name__)


@dataclass
class JobReport:
    """Final outcome of a job"""
    job_id: str
    job_name: str
    status: JobStatus
    failed_stage: Optional[str] = None
    error: Optional[BaseException] = None
    metrics: Optional[JobMetrics] = None
    failed_keys: Dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == JobStatus.COMPLETED

    @property
    def exit_code(self) -> int:
        """0 on full success, 1 on failure, 2 when some keys were dropped"""
        if not self.succeeded:
            return 1
        return 2 if self.failed_keys else 0


class OrderedEmitter:
    """
    Writes reduce task results to the sink in task order.

    Reduce tasks cover contiguous ascending key ranges, so flushing completed
    tasks in task_id order keeps the sink's input in ascending key order.
    Tasks that finish early wait in `pending` until their predecessors arrive.
    """

    def __init__(self, sink):
        self.sink = sink
        self.next_task_id = 0
        self.pending: Dict[int, list] = {}
        self.lock = threading.Lock()

    def submit(self, task_id: int, results: list):
        with self.lock:
            self.pending[task_id] = results
            while self.next_task_id in self.pending:
                for result in self.pending.pop(self.next_task_id):
                    self.sink.write(result)
                self.next_task_id += 1


class JobManager:
    """Runs a single MapReduce job"""

    def __init__(self, config: JobConfig, source=None, sink=None, job_id: Optional[str] = None,
                 metrics_collector: Optional[MetricsCollector] = None):
        """
        Initialize the job manager

        Args:
            config: Job configuration
            source: Record source (defaults to text files from config.input_paths)
            sink: Output sink (defaults to a text file sink at config.output_path)
            job_id: Job identifier (generated if not given)
            metrics_collector: Collector shared across jobs (a new one if not given)
        """
        if sink is None and not config.output_path:
            raise ValueError("An output path or an explicit sink is required")

        self.config = config
        self.source = source if source is not None else TextFileSource(config.input_paths, config.split_size)
        self.sink = sink if sink is not None else TextFileSink(config.output_path)
        self.job_id = job_id or f"job-{uuid.uuid4().hex[:8]}"
        self.state = JobState(self.job_id)
        self.metrics_collector = metrics_collector or MetricsCollector()
        self.cancel_event = threading.Event()

        self.map_tasks: List[MapTask] = []
        self.reduce_tasks: List[ReduceTask] = []
        self.failed_keys: Dict[str, str] = {}
        self.task_retries = 0
        self.lock = threading.Lock()

        self._map_results: Dict[int, MapTaskResult] = {}
        self._sink_opened = False
        self._emitter: Optional[OrderedEmitter] = None
        self._schedulers: List[TaskScheduler] = []

    def run(self) -> JobReport:
        """
        Execute the job to completion

        Returns:
            JobReport describing success or the failed stage

        Raises:
            Exception: Anything that is not a MapReduceError (after the job is marked failed)
        """
        config = self.config
        logger.info(f"Starting job {self.job_id} ({config.job_name}): "
                    f"{config.num_map_workers} map worker(s), {config.num_reduce_workers} reduce worker(s), "
                    f"combiner {'on' if config.use_combiner else 'off'}")
        self.metrics_collector.start_job(self.job_id, config.job_name, config.use_combiner,
                                         config.input_paths)
        try:
            self.sink.open()
            self._sink_opened = True
            self._run_map_phase()
            key_groups = self._run_shuffle_phase()
            self._run_reduce_phase(key_groups)
            self._check_cancelled()
            self.sink.flush()
            self.state.mark_completed()
        except MapReduceError as e:
            return self._fail(e)
        except BaseException as e:
            self._fail(e)
            raise
        finally:
            self._discard_map_buffers()

        self.metrics_collector.end_job(self.job_id, config.output_path, self.task_retries)
        report = self._report()
        metrics = report.metrics
        logger.info(f"Job {self.job_id} completed in {metrics.total_time_seconds:.2f}s: "
                    f"{metrics.map_input_records} records processed, "
                    f"{metrics.reduce_output_records} distinct keys written")
        if self.failed_keys:
            logger.warning(f"Job {self.job_id}: {len(self.failed_keys)} key(s) failed and were "
                           f"excluded from output")
        return report

    def cancel(self):
        """Ask running tasks to stop at their next record or key group"""
        logger.info(f"Cancelling job {self.job_id}")
        self.cancel_event.set()

    def get_job_status(self) -> Dict:
        """Get current job status with progress"""
        status = self.state.get_status()
        status['job_name'] = self.config.job_name
        status['failed_stage'] = self.state.failed_stage
        return status

    def lingering_tasks(self) -> List[str]:
        """Abandoned or stopped task attempts that have not returned yet"""
        return [f"{scheduler.task_type} task {task_id}"
                for scheduler in self._schedulers
                for task_id in scheduler.lingering_task_ids()]

    def _check_cancelled(self):
        if self.cancel_event.is_set():
            raise JobCancelledError(f"Job {self.job_id} cancelled during {self.state.status.value}")

    # Map phase

    def _run_map_phase(self):
        self.state.start_mapping()

        while True:
            split = self.source.next_split()
            if split is None:
                break
            self.map_tasks.append(MapTask(task_id=len(self.map_tasks), split=split))

        self.state.set_map_task_count(len(self.map_tasks))
        self.metrics_collector.start_map_phase(self.job_id, len(self.map_tasks))
        logger.info(f"Job {self.job_id}: Map phase with {len(self.map_tasks)} task(s)")

        scheduler = self._create_scheduler("map", self.config.num_map_workers)
        try:
            scheduler.run(self.map_tasks, self._execute_map_task,
                          on_task_completed=self._on_map_task_completed,
                          on_result_ignored=lambda result: result.buffer.discard())
        finally:
            self.task_retries += scheduler.retries
        self.metrics_collector.end_map_phase(self.job_id)
        self._check_cancelled()

    def _execute_map_task(self, task: MapTask, should_stop) -> MapTaskResult:
        config = self.config
        executor = MapExecutor(task.task_id, task.split, config.map_function,
                               combiner_function=config.combiner_function,
                               spill_threshold=config.spill_threshold,
                               spill_dir=config.spill_dir,
                               should_stop=should_stop)
        return executor.execute()

    def _on_map_task_completed(self, task: MapTask, result: MapTaskResult):
        if result.cancelled:
            result.buffer.discard()
            return
        with self.lock:
            self._map_results[task.task_id] = result
        self.metrics_collector.record_map_task(self.job_id, result)
        completed = self.state.increment_map_completed()
        logger.info(f"Job {self.job_id}: Map task {task.task_id} completed "
                    f"({completed}/{len(self.map_tasks)})")

    def _discard_map_buffers(self):
        with self.lock:
            results = list(self._map_results.values())
            self._map_results.clear()
        for result in results:
            result.buffer.discard()

    # Shuffle phase

    def _run_shuffle_phase(self) -> List[KeyGroup]:
        self.state.start_shuffling()
        self.metrics_collector.start_shuffle_phase(self.job_id)

        # Buffers are merged in map task order so value order never depends on scheduling
        with self.lock:
            buffers = [self._map_results[task.task_id].buffer for task in self.map_tasks]
        key_groups = shuffle(buffers, self.config.sort_partitions)
        self._discard_map_buffers()

        self.metrics_collector.end_shuffle_phase(self.job_id, len(key_groups))
        return key_groups

    # Reduce phase

    def _run_reduce_phase(self, key_groups: List[KeyGroup]):
        ranges = assign_reduce_tasks(key_groups, self.config.reduce_task_count)
        self.reduce_tasks = [ReduceTask(task_id=i, key_groups=groups) for i, groups in enumerate(ranges)]
        self.state.start_reducing(len(self.reduce_tasks))
        self.metrics_collector.start_reduce_phase(self.job_id, len(self.reduce_tasks))
        logger.info(f"Job {self.job_id}: Reduce phase with {len(key_groups)} key group(s) "
                    f"in {len(self.reduce_tasks)} task(s)")

        self._emitter = OrderedEmitter(self.sink)
        scheduler = self._create_scheduler("reduce", self.config.num_reduce_workers)
        try:
            scheduler.run(self.reduce_tasks, self._execute_reduce_task,
                          on_task_completed=self._on_reduce_task_completed)
        finally:
            self.task_retries += scheduler.retries
        self.metrics_collector.end_reduce_phase(self.job_id)

    def _execute_reduce_task(self, task: ReduceTask, should_stop) -> ReduceTaskResult:
        executor = ReduceExecutor(task.task_id, task.key_groups, self.config.reduce_function,
                                  fail_fast=self.config.fail_fast, should_stop=should_stop)
        return executor.execute()

    def _on_reduce_task_completed(self, task: ReduceTask, result: ReduceTaskResult):
        if result.cancelled:
            return
        if result.failed_keys:
            with self.lock:
                self.failed_keys.update(result.failed_keys)
        self._emitter.submit(task.task_id, result.results)
        self.metrics_collector.record_reduce_task(self.job_id, result)
        completed = self.state.increment_reduce_completed()
        logger.info(f"Job {self.job_id}: Reduce task {task.task_id} completed "
                    f"({completed}/{len(self.reduce_tasks)})")

    # Completion

    def _create_scheduler(self, task_type: str, max_workers: int) -> TaskScheduler:
        scheduler = TaskScheduler(task_type, max_workers,
                                  task_timeout=self.config.task_timeout,
                                  max_retries=self.config.max_retries,
                                  cancel_event=self.cancel_event)
        self._schedulers.append(scheduler)
        return scheduler

    def _fail(self, error: BaseException) -> JobReport:
        stage = self.state.status.value
        if self.cancel_event.is_set() and not isinstance(error, JobCancelledError):
            cancelled = JobCancelledError(f"Job {self.job_id} cancelled during {stage}")
            cancelled.__cause__ = error
            error = cancelled

        logger.error(f"Job {self.job_id} failed during {stage}: {error}")
        self.state.mark_failed(stage, str(error))
        if self._sink_opened:
            self.sink.abort()
        self.metrics_collector.end_job(self.job_id, task_retries=self.task_retries)
        return self._report(error)

    def _report(self, error: Optional[BaseException] = None) -> JobReport:
        return JobReport(
            job_id=self.job_id,
            job_name=self.config.job_name,
            status=self.state.status,
            failed_stage=self.state.failed_stage,
            error=error,
            metrics=self.metrics_collector.get_metrics(self.job_id),
            failed_keys=dict(self.failed_keys),
        )
