#!/usr/bin/env python3
"""
Task Scheduler
Runs the tasks of one phase on a bounded thread pool with per-task timeouts,
retries and cooperative cancellation, and blocks until every task is done
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from mrengine.common.config import DEFAULT_MAX_RETRIES
from mrengine.common.errors import MapReduceError, TaskFailedError, TaskTimeoutError
from mrengine.coordinator.job_state import TaskStatus

logger = logging.getLogger(__name__)

# Returned by an attempt that never started because the job was cancelled
TASK_SKIPPED = object()


class CountDownLatch:
    """
    Barrier that opens once count_down() has been called `count` times.

    abort() wakes every waiter and makes wait() raise the given error.
    """

    def __init__(self, count: int):
        self._count = count
        self._error: Optional[BaseException] = None
        self._condition = threading.Condition()

    @property
    def count(self) -> int:
        with self._condition:
            return self._count

    def count_down(self):
        with self._condition:
            self._count -= 1
            if self._count <= 0:
                self._condition.notify_all()

    def abort(self, error: BaseException):
        with self._condition:
            # First error wins
            if self._error is None:
                self._error = error
            self._condition.notify_all()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the count reaches zero, the latch is aborted or the timeout expires

        Returns:
            True if the count reached zero, False on timeout

        Raises:
            The error passed to abort()
        """
        with self._condition:
            self._condition.wait_for(lambda: self._count <= 0 or self._error is not None, timeout)
            if self._error is not None:
                raise self._error
            return self._count <= 0


@dataclass(eq=False)
class TaskAttempt:
    """One execution of a task on the pool"""
    task: Any
    number: int
    stop_event: threading.Event = field(default_factory=threading.Event)
    deadline: Optional[float] = None
    future: Optional[Future] = None
    abandoned: bool = False


class TaskScheduler:
    """Schedules the tasks of a single phase (map or reduce)"""

    def __init__(self, task_type: str, max_workers: int, task_timeout: Optional[float] = None,
                 max_retries: int = DEFAULT_MAX_RETRIES,
                 cancel_event: Optional[threading.Event] = None):
        """
        Initialize the scheduler

        Args:
            task_type: "map" or "reduce", used in logs and errors
            max_workers: Size of the worker pool
            task_timeout: Seconds an attempt may run before it is abandoned (None = no limit)
            max_retries: Extra attempts allowed per task after the first one
            cancel_event: Shared job cancellation flag
        """
        self.task_type = task_type
        self.max_workers = max_workers
        self.task_timeout = task_timeout
        self.max_retries = max_retries
        self.cancel_event = cancel_event or threading.Event()
        self.retries = 0
        self.lock = threading.Lock()

        self._pool: Optional[ThreadPoolExecutor] = None
        self._retry_pools = []
        self._abandoned: List[TaskAttempt] = []
        self._latch: Optional[CountDownLatch] = None
        self._attempts = set()
        self._results: Dict[int, Any] = {}
        self._finished = set()
        self._closed = False
        self._work_fn: Optional[Callable] = None
        self._on_task_completed: Optional[Callable] = None
        self._on_result_ignored: Optional[Callable] = None

    def run(self, tasks: Sequence[Any], work_fn: Callable[[Any, Callable[[], bool]], Any],
            on_task_completed: Optional[Callable[[Any, Any], None]] = None,
            on_result_ignored: Optional[Callable[[Any], None]] = None) -> Dict[int, Any]:
        """
        Run every task to completion

        Args:
            tasks: Task records with task_id, status and attempts fields
            work_fn: work_fn(task, should_stop) -> result, run on a pool thread
            on_task_completed: Called once per task with the result of its
                first successful attempt; later or abandoned attempts are ignored
            on_result_ignored: Called with results of abandoned or duplicate
                attempts so they can release resources

        Returns:
            Mapping of task_id to accepted result (tasks skipped after
            cancellation have no entry)

        Raises:
            TaskFailedError: If a task exhausted its retry budget
            MapReduceError: Non-retryable errors raised by a task
        """
        self._work_fn = work_fn
        self._on_task_completed = on_task_completed or (lambda task, result: None)
        self._on_result_ignored = on_result_ignored or (lambda result: None)
        self._latch = CountDownLatch(len(tasks))
        self._pool = ThreadPoolExecutor(max_workers=self.max_workers,
                                        thread_name_prefix=f"{self.task_type}-worker")
        logger.info(f"Scheduling {len(tasks)} {self.task_type} task(s) on {self.max_workers} worker(s)")

        try:
            for task in tasks:
                self._submit(task)
            while not self._latch.wait(timeout=self._time_to_next_deadline()):
                self._expire_overdue_attempts()
        except BaseException:
            self._stop_all()
            raise
        finally:
            with self.lock:
                self._closed = True
            for pool in [self._pool] + self._retry_pools:
                pool.shutdown(wait=False, cancel_futures=True)

        return dict(self._results)

    def _submit(self, task, fresh_worker: bool = False):
        with self.lock:
            if self._closed:
                return
            task.attempts += 1
            task.status = TaskStatus.PENDING
            attempt = TaskAttempt(task=task, number=task.attempts)
            self._attempts.add(attempt)
            pool = self._pool
            if fresh_worker:
                # The abandoned attempt may still occupy a pool thread
                pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"{self.task_type}-retry")
                self._retry_pools.append(pool)
            attempt.future = pool.submit(self._run_attempt, attempt)

        attempt.future.add_done_callback(lambda future, a=attempt: self._on_attempt_done(a, future))

    def _run_attempt(self, attempt: TaskAttempt):
        task = attempt.task

        def should_stop() -> bool:
            return self.cancel_event.is_set() or attempt.stop_event.is_set()

        if should_stop():
            return TASK_SKIPPED

        with self.lock:
            if self.task_timeout is not None:
                attempt.deadline = time.monotonic() + self.task_timeout
            task.status = TaskStatus.RUNNING
            task.start_time = time.time()

        logger.debug(f"Starting {self.task_type} task {task.task_id} (attempt {attempt.number})")
        return self._work_fn(task, should_stop)

    def _on_attempt_done(self, attempt: TaskAttempt, future: Future):
        task = attempt.task
        with self.lock:
            self._attempts.discard(attempt)
            if future.cancelled():
                return
            error = future.exception()
            ignored = attempt.abandoned or self._closed or task.task_id in self._finished
            if error is None and not ignored:
                result = future.result()
                self._finished.add(task.task_id)
                task.end_time = time.time()
                if result is TASK_SKIPPED:
                    task.status = TaskStatus.SKIPPED
                else:
                    task.status = TaskStatus.COMPLETED
                    self._results[task.task_id] = result
            elif error is not None and not ignored:
                task.error_message = str(error)

        if ignored:
            if error is None and future.result() is not TASK_SKIPPED:
                logger.debug(f"Ignoring late result of {self.task_type} task {task.task_id} "
                             f"(attempt {attempt.number})")
                self._on_result_ignored(future.result())
            return

        if error is None:
            if result is not TASK_SKIPPED:
                try:
                    self._on_task_completed(task, result)
                except Exception as e:
                    self._latch.abort(e)
                    return
            self._latch.count_down()
        else:
            self._handle_failure(task, error)

    def _handle_failure(self, task, error: BaseException, fresh_worker: bool = False):
        if isinstance(error, MapReduceError):
            retryable = error.retryable
        else:
            # Unexpected errors (user code, I/O while spilling) count against the retry budget
            retryable = isinstance(error, Exception)

        if retryable and task.attempts <= self.max_retries and not self.cancel_event.is_set():
            with self.lock:
                self.retries += 1
            logger.warning(f"{self.task_type.capitalize()} task {task.task_id} attempt {task.attempts} "
                           f"failed: {error}; retrying")
            self._submit(task, fresh_worker)
            return

        task.status = TaskStatus.FAILED
        if isinstance(error, MapReduceError) and not error.retryable:
            logger.error(f"{self.task_type.capitalize()} task {task.task_id} failed: {error}")
            self._latch.abort(error)
        else:
            failure = TaskFailedError(self.task_type, task.task_id, task.attempts, error)
            logger.error(str(failure))
            self._latch.abort(failure)

    def _time_to_next_deadline(self) -> Optional[float]:
        if self.task_timeout is None:
            return None
        with self.lock:
            deadlines = [a.deadline for a in self._attempts
                         if a.deadline is not None and a.future is not None and not a.future.done()]
        if not deadlines:
            # Attempts that start later get deadlines at least this far away
            return self.task_timeout
        return max(0.0, min(deadlines) - time.monotonic())

    def _expire_overdue_attempts(self):
        now = time.monotonic()
        expired = []
        with self.lock:
            for attempt in list(self._attempts):
                if (attempt.deadline is not None and attempt.deadline <= now
                        and attempt.future is not None and not attempt.future.done()):
                    attempt.abandoned = True
                    attempt.stop_event.set()
                    self._attempts.discard(attempt)
                    self._abandoned.append(attempt)
                    expired.append(attempt)

        for attempt in expired:
            logger.warning(f"Abandoning {self.task_type} task {attempt.task.task_id} attempt {attempt.number} "
                           f"after {self.task_timeout}s")
            self._handle_failure(attempt.task, TaskTimeoutError(attempt.task.task_id, self.task_timeout),
                                 fresh_worker=True)

    def _stop_all(self):
        with self.lock:
            for attempt in self._attempts:
                attempt.stop_event.set()

    def lingering_task_ids(self) -> List[int]:
        """Tasks with an abandoned or stopped attempt still executing on a worker thread"""
        with self.lock:
            attempts = list(self._attempts) + self._abandoned
        return sorted({a.task.task_id for a in attempts if a.future is not None and a.future.running()})
