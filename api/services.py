from functools import lru_cache

from django.conf import settings

from .config import TranscodeConfig
from .encoder import FFmpegEncoder
from .pipeline import TranscodeOrchestrator
from .s3 import ObjectStore
from .tracker import JobStateTracker


@lru_cache(maxsize=1)
def get_orchestrator() -> TranscodeOrchestrator:
    """Build the orchestrator and its clients once per worker process."""
    config = TranscodeConfig.from_settings()
    return TranscodeOrchestrator(
        store=ObjectStore(),
        encoder=FFmpegEncoder(
            config.ffmpeg_binary,
            config.ffprobe_binary,
            max_memory=config.max_memory,
        ),
        tracker=JobStateTracker(create_missing=settings.TRANSCODE_CREATE_MISSING_JOBS),
        config=config,
    )
