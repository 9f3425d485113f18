"""
Tests for api/s3.py

The boto3 client is replaced by a mock; these tests cover argument passing and
the mapping of botocore failures onto the pipeline's storage errors.
"""
import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

from boto3.exceptions import RetriesExceededError, S3UploadFailedError
from botocore.exceptions import ClientError, EndpointConnectionError
from django.test import SimpleTestCase, override_settings

from api.exceptions import ObjectNotFound, QuotaExceeded, StorageUnavailable
from api.s3 import ObjectStore, create_presigned_get


def client_error(code, operation="HeadObject"):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class ObjectStoreDownloadTest(SimpleTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dest = Path(self._tmp.name) / "nested" / "source.mp4"
        self.client = MagicMock()
        self.store = ObjectStore(self.client)

    def tearDown(self):
        self._tmp.cleanup()

    def test_download_writes_to_destination(self):
        self.client.download_file.side_effect = lambda bucket, key, path: Path(path).write_bytes(b"video")

        result = self.store.download("media", "videos/uploads/a.mp4", self.dest)

        self.assertEqual(result, self.dest)
        self.assertEqual(self.dest.read_bytes(), b"video")
        self.client.download_file.assert_called_once_with("media", "videos/uploads/a.mp4", str(self.dest))

    def test_missing_object_is_not_found(self):
        for code in ("404", "NoSuchKey", "NoSuchBucket"):
            self.client.download_file.side_effect = client_error(code)
            with self.assertRaises(ObjectNotFound) as ctx:
                self.store.download("media", "videos/uploads/a.mp4", self.dest)
            self.assertEqual(ctx.exception.key, "videos/uploads/a.mp4")
            self.assertFalse(ctx.exception.retryable)

    def test_connection_failure_is_unavailable(self):
        self.client.download_file.side_effect = EndpointConnectionError(endpoint_url="http://127.0.0.1:9000")

        with self.assertRaises(StorageUnavailable) as ctx:
            self.store.download("media", "videos/uploads/a.mp4", self.dest)
        self.assertTrue(ctx.exception.retryable)

    def test_exhausted_transfer_retries_are_unavailable(self):
        self.client.download_file.side_effect = RetriesExceededError(ConnectionResetError("reset by peer"))

        with self.assertRaises(StorageUnavailable) as ctx:
            self.store.download("media", "videos/uploads/a.mp4", self.dest)
        self.assertTrue(ctx.exception.retryable)
        self.assertIsInstance(ctx.exception.__cause__, ConnectionResetError)

    def test_exhausted_retries_keep_not_found_classification(self):
        self.client.download_file.side_effect = RetriesExceededError(client_error("NoSuchKey", "GetObject"))
        with self.assertRaises(ObjectNotFound):
            self.store.download("media", "videos/uploads/a.mp4", self.dest)

    def test_throttling_is_unavailable(self):
        self.client.download_file.side_effect = client_error("SlowDown", "GetObject")
        with self.assertRaises(StorageUnavailable):
            self.store.download("media", "videos/uploads/a.mp4", self.dest)


class ObjectStoreUploadTest(SimpleTestCase):
    def setUp(self):
        self.client = MagicMock()
        self.store = ObjectStore(self.client)

    def test_upload_sets_content_type_and_metadata(self):
        self.store.upload("/tmp/out.mp4", "media", "videos/encoded/a.mp4", "video/mp4", {"resolution": "720p"})

        self.client.upload_file.assert_called_once_with(
            "/tmp/out.mp4",
            "media",
            "videos/encoded/a.mp4",
            ExtraArgs={"ContentType": "video/mp4", "Metadata": {"resolution": "720p"}},
        )

    def test_quota_error_chained_inside_upload_failure(self):
        err = S3UploadFailedError("Failed to upload /tmp/out.mp4 to media/videos/encoded/a.mp4")
        err.__cause__ = client_error("XMinioStorageFull", "PutObject")
        self.client.upload_file.side_effect = err

        with self.assertRaises(QuotaExceeded):
            self.store.upload("/tmp/out.mp4", "media", "videos/encoded/a.mp4", "video/mp4")

    def test_quota_error_in_upload_failure_message(self):
        self.client.upload_file.side_effect = S3UploadFailedError(
            "Failed to upload: An error occurred (QuotaExceeded) when calling the PutObject operation"
        )
        with self.assertRaises(QuotaExceeded):
            self.store.upload("/tmp/out.mp4", "media", "videos/encoded/a.mp4", "video/mp4")

    def test_other_upload_failure_is_unavailable(self):
        self.client.upload_file.side_effect = S3UploadFailedError("Failed to upload: connection reset")
        with self.assertRaises(StorageUnavailable):
            self.store.upload("/tmp/out.mp4", "media", "videos/encoded/a.mp4", "video/mp4")


class PresignTest(SimpleTestCase):
    @override_settings(S3_BUCKET="default-bucket", S3_PRESIGN_EXPIRE_SECONDS=900)
    @patch("api.s3.get_presign_client")
    def test_presigned_get_defaults_bucket(self, mock_client):
        mock_client.return_value.generate_presigned_url.return_value = "http://signed"

        self.assertEqual(create_presigned_get("videos/encoded/a.mp4"), "http://signed")
        mock_client.return_value.generate_presigned_url.assert_called_once_with(
            ClientMethod="get_object",
            Params={"Bucket": "default-bucket", "Key": "videos/encoded/a.mp4"},
            ExpiresIn=900,
            HttpMethod="GET",
        )
