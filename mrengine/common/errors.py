"""
Error taxonomy for the map-reduce engine.

Per-record and per-task errors are absorbed where they occur (skipped or
retried); job-level errors propagate to the JobManager and fail the job.
"""


class MapReduceError(Exception):
    """Base class for all engine errors"""

    # Whether the scheduler may rerun the task that raised this error
    retryable = False


class RecordDecodeError(MapReduceError):
    """A single input record could not be decoded"""

    def __init__(self, split_id: int, offset: int, reason: str):
        self.split_id = split_id
        self.offset = offset
        self.reason = reason
        super().__init__(f"Undecodable record in split {split_id} at offset {offset}: {reason}")


class TaskTimeoutError(MapReduceError):
    """A task attempt ran longer than the configured per-task timeout"""

    retryable = True

    def __init__(self, task_id: int, timeout: float):
        self.task_id = task_id
        self.timeout = timeout
        super().__init__(f"Task {task_id} exceeded timeout of {timeout}s")


class TaskFailedError(MapReduceError):
    """A task failed on every attempt allowed by the retry budget"""

    def __init__(self, task_type: str, task_id: int, attempts: int, cause: Exception):
        self.task_type = task_type
        self.task_id = task_id
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"{task_type} task {task_id} failed after {attempts} attempt(s): {cause}")


class DestinationExistsError(MapReduceError):
    """The output path already holds data"""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Output destination already exists: {path}")


class ReduceError(MapReduceError):
    """The reduce function raised for one key"""

    def __init__(self, key, cause: Exception):
        self.key = key
        self.cause = cause
        super().__init__(f"Reduce failed for key {key!r}: {cause}")


class SourceUnavailableError(MapReduceError):
    """Input could not be located or read"""


class SinkUnavailableError(MapReduceError):
    """Output could not be written or committed"""


class JobCancelledError(MapReduceError):
    """The job was cancelled before it completed"""
