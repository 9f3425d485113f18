import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ActivityLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=64)),
                (
                    "level",
                    models.CharField(
                        choices=[("info", "Info"), ("warning", "Warning"), ("error", "Error"), ("success", "Success")],
                        default="info",
                        max_length=16,
                    ),
                ),
                ("message", models.TextField()),
                ("details", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="TranscodeJob",
            fields=[
                ("job_id", models.CharField(max_length=255, primary_key=True, serialize=False)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("bucket", models.CharField(blank=True, default="", max_length=255)),
                ("source_path", models.CharField(blank=True, default="", max_length=1024)),
                ("output_path", models.CharField(blank=True, default="", max_length=1024)),
                ("error", models.TextField(blank=True, default="")),
                ("original_size", models.BigIntegerField(blank=True, null=True)),
                ("encoded_size", models.BigIntegerField(blank=True, null=True)),
                ("compression_ratio", models.FloatField(blank=True, null=True)),
                ("encoding_duration", models.FloatField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "ordering": ["-updated_at"],
            },
        ),
    ]
