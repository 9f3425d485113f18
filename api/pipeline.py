"""
Transcode orchestration for one storage "object finalized" event.

received -> validated -> downloaded -> encoded -> uploaded -> completed|failed

Each invocation is stateless: it owns a private scratch directory, writes to a
destination key derived only from the source key, and relies on the tracker's
downgrade guard to stay correct under duplicate or racing deliveries.
"""
import enum
import logging
import shutil
import tempfile
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

from .activity import log_activity
from .config import TranscodeConfig
from .encoder import FFmpegEncoder
from .exceptions import (
    EncodeFailed,
    EncodeTimeout,
    ObjectNotFound,
    QuotaExceeded,
    StatusWriteFailed,
    StorageUnavailable,
)
from .models import ActivityLog
from .s3 import ObjectStore
from .tracker import JobStateTracker
from .utils import format_size, job_id_for, output_path_for

logger = logging.getLogger(__name__)


class State(str, enum.Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    DOWNLOADED = "downloaded"
    ENCODED = "encoded"
    UPLOADED = "uploaded"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class UploadEvent:
    bucket: str
    object_path: str
    size_bytes: int = 0


@dataclass(frozen=True)
class TranscodeOutcome:
    state: State
    job_id: str = ""
    output_path: str = ""
    error: str = ""


@contextmanager
def scratch_dir(base: Path | None = None):
    """Private temp directory removed on exit; removal errors are only logged."""
    if base is not None:
        base.mkdir(parents=True, exist_ok=True)
    path = Path(tempfile.mkdtemp(prefix="transcode-", dir=base))
    try:
        yield path
    finally:
        try:
            shutil.rmtree(path)
        except OSError as exc:
            logger.warning("Failed to remove scratch dir %s: %s", path, exc)


class TranscodeOrchestrator:
    def __init__(
        self,
        store: ObjectStore,
        encoder: FFmpegEncoder,
        tracker: JobStateTracker,
        config: TranscodeConfig,
    ):
        self.store = store
        self.encoder = encoder
        self.tracker = tracker
        self.config = config

    def should_process(self, object_path: str) -> bool:
        """
        Only fresh uploads are processed. Anything under the output prefix is
        our own result and must never re-enter the pipeline. Hidden files
        (".mp4", ".DS_Store") have no usable stem for a job id.
        """
        if not object_path or object_path.endswith("/"):
            return False
        if PurePosixPath(object_path).name.startswith("."):
            return False
        if object_path.startswith(self.config.output_prefix):
            return False
        return object_path.startswith(self.config.intake_prefix)

    def handle_upload(self, event: UploadEvent) -> TranscodeOutcome:
        """
        Run one event through the pipeline.

        Returns the outcome for every terminal result. Only StorageUnavailable
        propagates, so the caller can ask for redelivery.
        """
        key = event.object_path
        logger.debug("%s s3://%s/%s (%d bytes)", State.RECEIVED.value, event.bucket, key, event.size_bytes)
        if not self.should_process(key):
            logger.info("Skipping s3://%s/%s: outside intake prefix or already encoded", event.bucket, key)
            return TranscodeOutcome(State.SKIPPED)

        job_id = job_id_for(key)
        dest_key = output_path_for(key, self.config.intake_prefix, self.config.output_prefix, self.config.output_suffix)
        file_name = PurePosixPath(key).name
        state = State.VALIDATED
        logger.info("Job %s: %s s3://%s/%s -> %s", job_id, state.value, event.bucket, key, dest_key)
        log_activity(
            "video_encoding_started",
            ActivityLog.Level.INFO,
            f"Started video encoding: {file_name}",
            {"videoId": job_id, "fileName": file_name, "filePath": key, "fileSize": event.size_bytes, "bucket": event.bucket},
        )
        started = time.monotonic()

        with scratch_dir(self.config.scratch_dir) as workdir:
            source = workdir / f"source{PurePosixPath(key).suffix}"
            output = workdir / f"output{self.config.output_suffix}"

            try:
                self.store.download(event.bucket, key, source)
            except ObjectNotFound as exc:
                return self._fail(job_id, key, f"Source object not found: {exc}", started)
            state = State.DOWNLOADED
            original_size = source.stat().st_size
            logger.info("Job %s: %s (%s)", job_id, state.value, format_size(original_size))

            self._record(self.tracker.mark_processing, job_id, bucket=event.bucket, source_path=key)

            try:
                result = self.encoder.encode(
                    source, output, self.config.profile, timeout=self.config.job_timeout_seconds
                )
            except EncodeTimeout as exc:
                return self._fail(job_id, key, f"Timeout: {exc}", started)
            except EncodeFailed as exc:
                return self._fail(job_id, key, str(exc), started)
            state = State.ENCODED
            logger.info("Job %s: %s in %.1fs", job_id, state.value, result.elapsed_seconds)

            metadata = {
                "original-file": file_name,
                "encoded-at": datetime.now(timezone.utc).isoformat(),
                "resolution": self.config.profile.resolution_label,
            }
            try:
                self.store.upload(output, event.bucket, dest_key, self.config.content_type, metadata)
            except QuotaExceeded as exc:
                return self._fail(job_id, key, str(exc), started)
            except StorageUnavailable as exc:
                self._fail(job_id, key, str(exc), started)
                raise
            state = State.UPLOADED
            logger.info("Job %s: %s s3://%s/%s", job_id, state.value, event.bucket, dest_key)

        elapsed = time.monotonic() - started
        compression = round((1 - result.output_size / original_size) * 100, 1) if original_size else None
        stats = {
            "original_size": original_size,
            "encoded_size": result.output_size,
            "compression_ratio": compression,
            "encoding_duration": round(elapsed, 2),
        }
        self._record(self.tracker.mark_completed, job_id, dest_key, stats=stats)
        log_activity(
            "video_encoding_completed",
            ActivityLog.Level.SUCCESS,
            f"Video encoded successfully: {file_name}",
            {
                "videoId": job_id,
                "fileName": file_name,
                "originalSize": format_size(original_size),
                "encodedSize": format_size(result.output_size),
                "compressionRatio": f"{compression}%" if compression is not None else "n/a",
                "processingTime": f"{round(elapsed)}s",
                "resolution": self.config.profile.resolution_label,
                "encodedFilePath": dest_key,
            },
        )
        logger.info("Job %s: completed in %.1fs", job_id, elapsed)
        return TranscodeOutcome(State.COMPLETED, job_id=job_id, output_path=dest_key)

    def abort(self, event: UploadEvent, message: str) -> TranscodeOutcome:
        """
        Record a run interrupted from outside (e.g. the task time limit) as
        failed. Scratch cleanup has already happened as the run unwound.
        """
        if not self.should_process(event.object_path):
            return TranscodeOutcome(State.SKIPPED)
        return self._fail(job_id_for(event.object_path), event.object_path, message, time.monotonic())

    def _fail(self, job_id: str, key: str, message: str, started: float) -> TranscodeOutcome:
        elapsed = time.monotonic() - started
        logger.error("Job %s: failed after %.1fs: %s", job_id, elapsed, message)
        self._record(self.tracker.mark_failed, job_id, message, elapsed_seconds=elapsed)
        log_activity(
            "video_encoding_failed",
            ActivityLog.Level.ERROR,
            f"Video encoding failed: {PurePosixPath(key).name}",
            {"videoId": job_id, "filePath": key, "error": message, "processingTime": f"{round(elapsed)}s"},
        )
        return TranscodeOutcome(State.FAILED, job_id=job_id, error=message)

    @staticmethod
    def _record(write, job_id: str, *args, **kwargs):
        # Status is observability only; the published object is what counts
        try:
            write(job_id, *args, **kwargs)
        except StatusWriteFailed as exc:
            logger.warning("Job %s: status write skipped: %s", job_id, exc)
