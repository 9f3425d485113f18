"""Error taxonomy for the transcoding pipeline.

Only ``retryable`` errors are allowed to fail a task upward; everything else
is recorded on the job and absorbed.
"""


class PipelineError(Exception):
    """Base error for the transcoding pipeline."""

    retryable = False


class StorageError(PipelineError):
    """Base error raised by the object store client."""

    def __init__(self, message: str, *, bucket: str = "", key: str = ""):
        super().__init__(message)
        self.bucket = bucket
        self.key = key


class ObjectNotFound(StorageError):
    """The addressed object (or its bucket) does not exist."""


class StorageUnavailable(StorageError):
    """Transient storage failure; redelivery of the event may succeed."""

    retryable = True


class QuotaExceeded(StorageError):
    """The destination refused the write for capacity reasons."""


class EncodeFailed(PipelineError):
    """ffmpeg exited non-zero, could not be launched, or produced nothing."""

    def __init__(self, message: str, *, exit_code: int | None = None, stderr_tail: str = ""):
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr_tail = stderr_tail

    def __str__(self):
        base = super().__str__()
        if self.stderr_tail:
            return f"{base}: {self.stderr_tail}"
        return base


class EncodeTimeout(PipelineError):
    """ffmpeg ran past the wall-clock limit and was killed."""

    def __init__(self, timeout: float):
        super().__init__(f"Encode exceeded timeout of {timeout:g}s; process killed")
        self.timeout = timeout


class StatusWriteFailed(PipelineError):
    """The job status record could not be written."""
