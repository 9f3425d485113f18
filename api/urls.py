from django.urls import path
from .views import StorageEventView, JobDetailView, HealthView

urlpatterns = [
    path("events/storage/", StorageEventView.as_view(), name="storage_event"),
    path("jobs/<str:job_id>/", JobDetailView.as_view(), name="job_detail"),
    path("health/", HealthView.as_view(), name="health"),
]
