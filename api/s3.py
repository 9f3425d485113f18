import logging
from pathlib import Path

import boto3
from boto3.exceptions import RetriesExceededError, S3UploadFailedError
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings

from .exceptions import ObjectNotFound, QuotaExceeded, StorageUnavailable

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound", "NoSuchBucket"}
QUOTA_CODES = {
    "QuotaExceeded",
    "XMinioAdminBucketQuotaExceeded",
    "XMinioStorageFull",
    "EntityTooLarge",
}


def _client_config() -> BotoConfig:
    return BotoConfig(
        s3={"addressing_style": "path"},
        signature_version="s3v4",
        retries={"max_attempts": settings.S3_MAX_ATTEMPTS, "mode": "standard"},
    )


def get_s3_client():
    """
    SDK client for server-side upload/download.
    """
    session = boto3.session.Session(
        aws_access_key_id=settings.S3_ACCESS_KEY,
        aws_secret_access_key=settings.S3_SECRET_KEY,
        region_name=settings.S3_REGION,
    )
    return session.client(
        "s3",
        endpoint_url=settings.S3_ENDPOINT_URL,  # e.g. http://127.0.0.1:9000
        config=_client_config(),
    )


def get_presign_client():
    """
    Separate client for generating presigned URLs that the browser/curl will call.
    Uses S3_PUBLIC_ENDPOINT so the URL host matches what the client reaches.
    """
    session = boto3.session.Session(
        aws_access_key_id=settings.S3_ACCESS_KEY,
        aws_secret_access_key=settings.S3_SECRET_KEY,
        region_name=settings.S3_REGION,
    )
    return session.client(
        "s3",
        endpoint_url=settings.S3_PUBLIC_ENDPOINT,
        config=_client_config(),
    )


def create_presigned_get(key: str, bucket: str | None = None, expires: int | None = None) -> str:
    """
    Create a presigned GET URL to download an object.
    """
    s3 = get_presign_client()
    return s3.generate_presigned_url(
        ClientMethod="get_object",
        Params={"Bucket": bucket or settings.S3_BUCKET, "Key": key},
        ExpiresIn=expires or settings.S3_PRESIGN_EXPIRE_SECONDS,
        HttpMethod="GET",
    )


def _error_code(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        return str(exc.response.get("Error", {}).get("Code", ""))
    return ""


def translate_error(exc: Exception, *, bucket: str, key: str, action: str):
    """
    Map a boto3/botocore failure onto the pipeline's storage errors.
    """
    if isinstance(exc, RetriesExceededError) and exc.last_exception is not None:
        # boto3 gave up after repeated transfer errors; classify the last one
        code = _error_code(exc.last_exception)
    else:
        code = _error_code(exc)
    if not code and isinstance(exc, S3UploadFailedError):
        # boto3 flattens the ClientError into a message; the original is chained
        cause = exc.__cause__ or exc.__context__
        code = _error_code(cause) if cause is not None else ""
        if not code:
            text = str(exc)
            code = next((c for c in QUOTA_CODES | NOT_FOUND_CODES if f"({c})" in text), "")

    message = f"{action} s3://{bucket}/{key} failed: {exc}"
    if code in NOT_FOUND_CODES:
        return ObjectNotFound(message, bucket=bucket, key=key)
    if code in QUOTA_CODES:
        return QuotaExceeded(message, bucket=bucket, key=key)
    return StorageUnavailable(message, bucket=bucket, key=key)


class ObjectStore:
    """
    Download/upload objects for one orchestration run.

    Every call hits S3/MinIO directly; nothing is cached.
    """

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_s3_client()
        return self._client

    def download(self, bucket: str, key: str, dest) -> Path:
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        try:
            self.client.download_file(bucket, key, str(dest))
        except (ClientError, BotoCoreError) as exc:
            raise translate_error(exc, bucket=bucket, key=key, action="Download") from exc
        except RetriesExceededError as exc:
            raise translate_error(exc, bucket=bucket, key=key, action="Download") from (exc.last_exception or exc)
        logger.info("Downloaded s3://%s/%s to %s (%d bytes)", bucket, key, dest, dest.stat().st_size)
        return dest

    def upload(self, local_path, bucket: str, key: str, content_type: str, metadata: dict | None = None):
        """
        Upload a single file with Content-Type and optional user metadata.
        Overwrites whatever is at ``key`` (last write wins).
        """
        extra = {"ContentType": content_type}
        if metadata:
            extra["Metadata"] = {k: str(v) for k, v in metadata.items()}
        try:
            self.client.upload_file(str(local_path), bucket, key, ExtraArgs=extra)
        except (ClientError, BotoCoreError, S3UploadFailedError) as exc:
            raise translate_error(exc, bucket=bucket, key=key, action="Upload") from exc
        logger.info("Uploaded %s to s3://%s/%s", local_path, bucket, key)
