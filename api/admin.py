from django.contrib import admin

from .models import ActivityLog, TranscodeJob


@admin.register(TranscodeJob)
class TranscodeJobAdmin(admin.ModelAdmin):
    list_display = ("job_id", "status", "output_path", "encoding_duration", "updated_at")
    list_filter = ("status",)
    search_fields = ("job_id", "source_path", "output_path")
    readonly_fields = [f.name for f in TranscodeJob._meta.fields]


@admin.register(ActivityLog)
class ActivityLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "level", "action", "message")
    list_filter = ("level", "action")
    search_fields = ("message",)
