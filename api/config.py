"""
Configuration adapter for the transcoding pipeline.

Reads the TRANSCODE_* Django settings once and validates them, so the
orchestrator, encoder and tasks all see the same values.
"""
import re
from dataclasses import dataclass, field
from pathlib import Path

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from .encoder import EncodeProfile

_MEMORY_UNITS = {
    "": 1,
    "b": 1,
    "k": 1000, "kb": 1000, "kib": 1024,
    "m": 1000 ** 2, "mb": 1000 ** 2, "mib": 1024 ** 2,
    "g": 1000 ** 3, "gb": 1000 ** 3, "gib": 1024 ** 3,
}
_MEMORY_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]*)\s*$")


def parse_memory(value) -> int | None:
    """
    Parse sizes like "2GiB", "512MiB" or "1000000" into bytes.
    Empty, "0" or None mean unlimited.
    """
    if value is None:
        return None
    if isinstance(value, int):
        return value or None
    match = _MEMORY_RE.match(str(value))
    if not match:
        if str(value).strip() == "":
            return None
        raise ImproperlyConfigured(f"Unrecognised memory size: {value!r}")
    number, unit = match.groups()
    multiplier = _MEMORY_UNITS.get(unit.lower())
    if multiplier is None:
        raise ImproperlyConfigured(f"Unrecognised memory unit in {value!r}")
    size = int(float(number) * multiplier)
    return size or None


@dataclass(frozen=True)
class TranscodeConfig:
    intake_prefix: str = "videos/uploads/"
    output_prefix: str = "videos/encoded/"
    profile: EncodeProfile = field(default_factory=EncodeProfile)
    job_timeout_seconds: int = 540
    max_memory: int | None = 2 * 1024 ** 3
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    scratch_dir: Path | None = None
    content_type: str = "video/mp4"
    output_suffix: str = ".mp4"

    def __post_init__(self):
        self.validate()

    def validate(self):
        if not self.intake_prefix or not self.output_prefix:
            raise ImproperlyConfigured("Both intake and output prefixes must be set")
        if self.intake_prefix.startswith(self.output_prefix) or self.output_prefix.startswith(self.intake_prefix):
            # Output landing under intake would re-trigger the pipeline forever
            raise ImproperlyConfigured(
                f"Intake prefix {self.intake_prefix!r} and output prefix {self.output_prefix!r} must not overlap"
            )
        if self.job_timeout_seconds <= 0:
            raise ImproperlyConfigured("Job timeout must be a positive number of seconds")
        if self.profile.target_height <= 0:
            raise ImproperlyConfigured("Target height must be positive")

    @classmethod
    def from_settings(cls) -> "TranscodeConfig":
        scratch = getattr(settings, "TRANSCODE_SCRATCH_DIR", None)
        return cls(
            intake_prefix=settings.TRANSCODE_INTAKE_PREFIX,
            output_prefix=settings.TRANSCODE_OUTPUT_PREFIX,
            profile=EncodeProfile(
                video_codec=settings.TRANSCODE_VIDEO_CODEC,
                preset=settings.TRANSCODE_PRESET,
                crf=int(settings.TRANSCODE_CRF),
                target_height=int(settings.TRANSCODE_TARGET_HEIGHT),
                audio_codec=settings.TRANSCODE_AUDIO_CODEC,
                audio_bitrate=settings.TRANSCODE_AUDIO_BITRATE,
                threads=int(getattr(settings, "TRANSCODE_THREADS", 4)),
            ),
            job_timeout_seconds=int(settings.TRANSCODE_JOB_TIMEOUT_SECONDS),
            max_memory=parse_memory(settings.TRANSCODE_MAX_MEMORY),
            ffmpeg_binary=settings.TRANSCODE_FFMPEG_BINARY,
            ffprobe_binary=settings.TRANSCODE_FFPROBE_BINARY,
            scratch_dir=Path(scratch) if scratch else None,
        )
