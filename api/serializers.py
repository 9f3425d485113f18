from urllib.parse import unquote_plus

from rest_framework import serializers

from .models import TranscodeJob
from .pipeline import UploadEvent


class JobSerializer(serializers.ModelSerializer):
    class Meta:
        model = TranscodeJob
        fields = [
            "job_id",
            "status",
            "bucket",
            "source_path",
            "output_path",
            "error",
            "original_size",
            "encoded_size",
            "compression_ratio",
            "encoding_duration",
            "created_at",
            "updated_at",
        ]


class UploadEventSerializer(serializers.Serializer):
    """Flat form: {"bucket": ..., "key": ..., "size": ...}"""
    bucket = serializers.CharField()
    key = serializers.CharField()
    size = serializers.IntegerField(required=False, default=0, min_value=0)

    def to_events(self) -> list[UploadEvent]:
        data = self.validated_data
        return [UploadEvent(bucket=data["bucket"], object_path=data["key"], size_bytes=data["size"])]


class S3BucketSerializer(serializers.Serializer):
    name = serializers.CharField()


class S3ObjectSerializer(serializers.Serializer):
    key = serializers.CharField()
    size = serializers.IntegerField(required=False, default=0, min_value=0)


class S3EntitySerializer(serializers.Serializer):
    bucket = S3BucketSerializer()
    object = S3ObjectSerializer()


class S3RecordSerializer(serializers.Serializer):
    eventName = serializers.CharField()
    s3 = S3EntitySerializer()


class StorageNotificationSerializer(serializers.Serializer):
    """
    S3 / MinIO bucket notification body. Keys arrive URL-encoded and only
    ObjectCreated records are turned into upload events.
    """
    Records = S3RecordSerializer(many=True, allow_empty=True)

    def to_events(self) -> list[UploadEvent]:
        events = []
        for record in self.validated_data["Records"]:
            if "ObjectCreated:" not in record["eventName"]:
                continue
            entity = record["s3"]
            events.append(UploadEvent(
                bucket=entity["bucket"]["name"],
                object_path=unquote_plus(entity["object"]["key"]),
                size_bytes=entity["object"]["size"],
            ))
        return events


def notification_serializer_for(data):
    """Pick the serializer matching the shape of the posted body."""
    if isinstance(data, dict) and "Records" in data:
        return StorageNotificationSerializer(data=data)
    return UploadEventSerializer(data=data)
