"""
Tests for api/utils.py
"""
from django.test import SimpleTestCase

from api.utils import format_size, job_id_for, output_path_for


class PathHelpersTest(SimpleTestCase):
    def test_job_id_is_base_name_without_extension(self):
        self.assertEqual(job_id_for("videos/uploads/a.mp4"), "a")
        self.assertEqual(job_id_for("videos/uploads/season1/ep.02.mkv"), "ep.02")

    def test_output_path_swaps_prefix(self):
        self.assertEqual(
            output_path_for("videos/uploads/a.mp4", "videos/uploads/", "videos/encoded/"),
            "videos/encoded/a.mp4",
        )
        self.assertEqual(
            output_path_for("videos/uploads/s1/b.MOV", "videos/uploads/", "videos/encoded/"),
            "videos/encoded/s1/b.mp4",
        )

    def test_output_path_requires_intake_prefix(self):
        with self.assertRaises(ValueError):
            output_path_for("other/a.mp4", "videos/uploads/", "videos/encoded/")

    def test_format_size(self):
        self.assertEqual(format_size(1024 * 1024), "1.00 MB")
        self.assertEqual(format_size(None), "unknown")
