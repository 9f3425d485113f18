"""FFmpeg invocation for the single delivery profile.

Builds a deterministic argument list from an ``EncodeProfile``, runs ffmpeg as
a child process and reports lifecycle events (start, progress, end, error) to
a sink. The call blocks until the child exits or the timeout kills it.
"""
import json
import logging
import resource
import subprocess
import threading
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from .exceptions import EncodeFailed, EncodeTimeout

logger = logging.getLogger(__name__)

VIDEO_ENCODERS = {
    "h264": "libx264",
    "avc": "libx264",
    "hevc": "libx265",
    "h265": "libx265",
}
AUDIO_ENCODERS = {
    "aac": "aac",
    "opus": "libopus",
    "mp3": "libmp3lame",
}

STDERR_TAIL_LINES = 20
STDERR_TAIL_CHARS = 4000


@dataclass(frozen=True)
class EncodeProfile:
    video_codec: str = "h264"
    preset: str = "medium"
    crf: int = 23
    target_height: int = 720
    audio_codec: str = "aac"
    audio_bitrate: str = "128k"
    # Bounds x264 worker threads (and their per-thread allocations); 0 lets ffmpeg decide
    threads: int = 4

    @property
    def resolution_label(self) -> str:
        return f"{self.target_height}p"


@dataclass(frozen=True)
class EncodeEvent:
    kind: str                       # start | progress | end | error
    input_name: str
    percent: int | None = None
    message: str = ""


@dataclass(frozen=True)
class EncodeResult:
    output_path: Path
    output_size: int
    elapsed_seconds: float
    source_duration: float | None
    command: list[str]


def log_encode_event(event: EncodeEvent):
    """Default sink: one tagged log line per lifecycle event."""
    if event.kind == "progress":
        if event.percent is None:
            logger.info("encode.progress %s: %s", event.input_name, event.message)
        else:
            logger.info("encode.progress %s: %d%%", event.input_name, event.percent)
    elif event.kind == "error":
        logger.error("encode.error %s: %s", event.input_name, event.message)
    else:
        logger.info("encode.%s %s: %s", event.kind, event.input_name, event.message)


def build_command(ffmpeg_binary: str, input_path, output_path, profile: EncodeProfile) -> list[str]:
    """Return the ffmpeg argument list for ``profile``; same inputs, same list."""
    video_encoder = VIDEO_ENCODERS.get(profile.video_codec.lower(), profile.video_codec)
    audio_encoder = AUDIO_ENCODERS.get(profile.audio_codec.lower(), profile.audio_codec)
    return [
        ffmpeg_binary,
        "-hide_banner",
        "-nostdin",
        "-y",
        "-i", str(input_path),
        # -2 keeps the aspect ratio with an even width
        "-vf", f"scale=-2:{profile.target_height}",
        "-c:v", video_encoder,
        "-preset", profile.preset,
        "-crf", str(profile.crf),
        "-pix_fmt", "yuv420p",
        "-threads", str(profile.threads),
        "-c:a", audio_encoder,
        "-b:a", profile.audio_bitrate,
        "-movflags", "+faststart",
        "-progress", "pipe:1",
        "-nostats",
        str(output_path),
    ]


def probe_duration(ffprobe_binary: str, input_path) -> float | None:
    """
    Duration of the source in seconds, or None if ffprobe cannot tell.
    """
    try:
        result = subprocess.run(
            [ffprobe_binary, "-v", "quiet", "-print_format", "json", "-show_format", str(input_path)],
            capture_output=True,
            text=True,
            check=True,
            timeout=60,
        )
        duration = float(json.loads(result.stdout)["format"]["duration"])
    except (OSError, subprocess.SubprocessError, ValueError, KeyError, TypeError) as exc:
        logger.debug("ffprobe could not read duration of %s: %s", input_path, exc)
        return None
    return duration if duration > 0 else None


def _discard(path: Path):
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove partial output %s: %s", path, exc)


class FFmpegEncoder:
    """Run ffmpeg for one input/output pair at a time."""

    def __init__(
        self,
        ffmpeg_binary: str = "ffmpeg",
        ffprobe_binary: str = "ffprobe",
        *,
        max_memory: int | None = None,
        progress_step: int = 25,
        on_event: Callable[[EncodeEvent], None] | None = None,
    ):
        self.ffmpeg_binary = ffmpeg_binary
        self.ffprobe_binary = ffprobe_binary
        self.max_memory = max_memory
        self.progress_step = max(1, progress_step)
        self.on_event = on_event or log_encode_event

    def _limit_memory(self, process: subprocess.Popen):
        """
        Cap the child's data segment (heap and private writable mappings),
        which tracks real allocation rather than reserved address space.
        """
        if not self.max_memory:
            return
        try:
            resource.prlimit(process.pid, resource.RLIMIT_DATA, (self.max_memory, self.max_memory))
        except ProcessLookupError:
            # Already exited; the exit code tells the rest
            pass
        except OSError as exc:
            logger.warning("Could not apply memory limit to pid %s: %s", process.pid, exc)

    def encode(
        self,
        input_path,
        output_path,
        profile: EncodeProfile,
        *,
        timeout: float | None = None,
        on_event: Callable[[EncodeEvent], None] | None = None,
    ) -> EncodeResult:
        """
        Transcode ``input_path`` into ``output_path``.

        Raises EncodeFailed on launch error, non-zero exit or empty output, and
        EncodeTimeout when the child outlives ``timeout`` seconds. On these and on
        any interruption the child is killed and ``output_path`` removed.
        """
        input_path, output_path = Path(input_path), Path(output_path)
        emit = on_event or self.on_event
        name = input_path.name
        cmd = build_command(self.ffmpeg_binary, input_path, output_path, profile)
        duration = probe_duration(self.ffprobe_binary, input_path)

        emit(EncodeEvent("start", name, message=" ".join(cmd)))
        started = time.monotonic()
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as exc:
            _discard(output_path)
            emit(EncodeEvent("error", name, message=str(exc)))
            raise EncodeFailed(f"Could not launch {self.ffmpeg_binary}", stderr_tail=str(exc)) from exc
        self._limit_memory(process)

        stderr_lines: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        readers = [
            threading.Thread(target=self._read_progress, args=(process.stdout, duration, name, emit), daemon=True),
            threading.Thread(target=self._read_stderr, args=(process.stderr, stderr_lines), daemon=True),
        ]
        for reader in readers:
            reader.start()

        try:
            exit_code = process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            self._stop(process, readers, output_path)
            err = EncodeTimeout(timeout)
            emit(EncodeEvent("error", name, message=str(err)))
            raise err
        except BaseException:
            # Interrupted (e.g. the task's soft time limit); never leave ffmpeg running
            self._stop(process, readers, output_path)
            raise

        for reader in readers:
            reader.join()
        elapsed = time.monotonic() - started
        stderr_tail = "\n".join(stderr_lines)[-STDERR_TAIL_CHARS:]

        if exit_code != 0:
            _discard(output_path)
            emit(EncodeEvent("error", name, message=f"exit code {exit_code}"))
            raise EncodeFailed(
                f"ffmpeg exited with code {exit_code}", exit_code=exit_code, stderr_tail=stderr_tail
            )
        if not output_path.exists() or output_path.stat().st_size == 0:
            _discard(output_path)
            emit(EncodeEvent("error", name, message="no output produced"))
            raise EncodeFailed("ffmpeg produced no output", exit_code=exit_code, stderr_tail=stderr_tail)

        emit(EncodeEvent("end", name, percent=100, message=f"finished in {elapsed:.1f}s"))
        return EncodeResult(
            output_path=output_path,
            output_size=output_path.stat().st_size,
            elapsed_seconds=elapsed,
            source_duration=duration,
            command=cmd,
        )

    @staticmethod
    def _stop(process: subprocess.Popen, readers, output_path: Path):
        process.kill()
        process.wait()
        for reader in readers:
            reader.join()
        _discard(output_path)

    def _read_progress(self, stream, duration, name, emit):
        """Parse ``-progress pipe:1`` key=value blocks into throttled events."""
        last_reported = 0
        for line in stream:
            key, _, value = line.strip().partition("=")
            if key not in ("out_time_us", "out_time_ms") or not duration:
                continue
            # Both keys carry microseconds
            try:
                position = int(value) / 1_000_000
            except ValueError:
                continue
            percent = min(100, int(position / duration * 100))
            if percent - last_reported >= self.progress_step and percent < 100:
                last_reported = percent
                emit(EncodeEvent("progress", name, percent=percent))
        stream.close()

    @staticmethod
    def _read_stderr(stream, lines: deque):
        for line in stream:
            line = line.rstrip()
            if line:
                lines.append(line)
        stream.close()
