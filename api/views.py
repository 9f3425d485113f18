import hmac
import logging

from django.conf import settings
from django.shortcuts import get_object_or_404
from rest_framework import status, views
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .models import TranscodeJob
from .s3 import create_presigned_get
from .serializers import JobSerializer, notification_serializer_for
from .tasks import transcode_upload

logger = logging.getLogger(__name__)


def _token_ok(request) -> bool:
    expected = settings.STORAGE_EVENT_TOKEN
    if not expected:
        return True
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    return scheme.lower() == "bearer" and hmac.compare_digest(token.strip(), expected)


class StorageEventView(views.APIView):
    """
    Webhook for bucket notifications. Enqueues one transcode task per created
    object; prefix filtering happens in the worker.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        if not _token_ok(request):
            return Response({"detail": "Invalid or missing event token"}, status=status.HTTP_401_UNAUTHORIZED)

        ser = notification_serializer_for(request.data)
        ser.is_valid(raise_exception=True)

        queued = []
        for event in ser.to_events():
            transcode_upload.delay(event.bucket, event.object_path, event.size_bytes)
            queued.append(event.object_path)
        logger.info("Queued %d transcode task(s) from storage event", len(queued))
        return Response({"queued": queued}, status=status.HTTP_202_ACCEPTED)


class JobDetailView(views.APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, job_id):
        job = get_object_or_404(TranscodeJob, pk=job_id)
        data = JobSerializer(job).data
        if job.status == TranscodeJob.Status.COMPLETED and job.output_path:
            data["output_url"] = create_presigned_get(job.output_path, bucket=job.bucket or None)
        return Response(data)


class HealthView(views.APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        return Response({
            "status": "ok",
            "intake_prefix": settings.TRANSCODE_INTAKE_PREFIX,
            "output_prefix": settings.TRANSCODE_OUTPUT_PREFIX,
        })
