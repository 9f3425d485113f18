"""Shared fixtures: stand-in ffmpeg/ffprobe scripts and in-memory collaborators."""
import os
import stat
from pathlib import Path

from api.encoder import EncodeResult
from api.exceptions import ObjectNotFound

PROBE_ONE_SECOND = """#!/bin/sh
printf '{"format": {"duration": "1.0"}}'
"""

# Writes the last argument (the output path) and reports progress like -progress pipe:1
FFMPEG_OK = """#!/bin/sh
for last; do :; done
printf 'out_time_us=250000\\nprogress=continue\\n'
printf 'out_time_us=500000\\nprogress=continue\\n'
printf 'out_time_us=1000000\\nprogress=end\\n'
printf 'encoded-video-bytes' > "$last"
"""

FFMPEG_FAIL = """#!/bin/sh
for last; do :; done
printf 'partial' > "$last"
echo "Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'source.mp4':" >&2
echo "source.mp4: Invalid data found when processing input" >&2
exit 1
"""

FFMPEG_SILENT = """#!/bin/sh
exit 0
"""

FFMPEG_HANG = """#!/bin/sh
exec sleep 30
"""


def write_script(directory, name: str, body: str) -> str:
    path = Path(directory) / name
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


class FakeStore:
    """In-memory object store keyed by (bucket, key)."""

    def __init__(self, objects=None):
        self.objects = dict(objects or {})
        self.downloads = []
        self.uploads = []
        self.download_error = None
        self.upload_error = None

    def download(self, bucket, key, dest):
        self.downloads.append((bucket, key))
        if self.download_error is not None:
            raise self.download_error
        if (bucket, key) not in self.objects:
            raise ObjectNotFound(f"s3://{bucket}/{key} does not exist", bucket=bucket, key=key)
        dest = Path(dest)
        dest.write_bytes(self.objects[(bucket, key)])
        return dest

    def upload(self, local_path, bucket, key, content_type, metadata=None):
        if self.upload_error is not None:
            raise self.upload_error
        self.uploads.append({"bucket": bucket, "key": key, "content_type": content_type, "metadata": metadata})
        self.objects[(bucket, key)] = Path(local_path).read_bytes()


class FakeEncoder:
    """Copies the input with a marker, or raises the configured error."""

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def encode(self, input_path, output_path, profile, *, timeout=None, on_event=None):
        self.calls.append({"input": Path(input_path), "output": Path(output_path), "profile": profile, "timeout": timeout})
        if self.error is not None:
            raise self.error
        data = b"h264:" + Path(input_path).read_bytes()[:8]
        Path(output_path).write_bytes(data)
        return EncodeResult(
            output_path=Path(output_path),
            output_size=len(data),
            elapsed_seconds=0.01,
            source_duration=10.0,
            command=["ffmpeg"],
        )


def list_dir(path) -> list:
    return sorted(os.listdir(path))
