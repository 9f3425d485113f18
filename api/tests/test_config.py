"""
Tests for api/config.py
"""
from django.core.exceptions import ImproperlyConfigured
from django.test import SimpleTestCase, override_settings

from api.config import TranscodeConfig, parse_memory
from api.services import get_orchestrator


class ParseMemoryTest(SimpleTestCase):
    def test_binary_and_decimal_units(self):
        self.assertEqual(parse_memory("2GiB"), 2 * 1024 ** 3)
        self.assertEqual(parse_memory("512MiB"), 512 * 1024 ** 2)
        self.assertEqual(parse_memory("1GB"), 1000 ** 3)
        self.assertEqual(parse_memory("4096"), 4096)

    def test_empty_means_unlimited(self):
        self.assertIsNone(parse_memory(""))
        self.assertIsNone(parse_memory(None))
        self.assertIsNone(parse_memory("0"))

    def test_garbage_is_rejected(self):
        with self.assertRaises(ImproperlyConfigured):
            parse_memory("lots")
        with self.assertRaises(ImproperlyConfigured):
            parse_memory("2 parsecs")


class TranscodeConfigTest(SimpleTestCase):
    def test_defaults(self):
        config = TranscodeConfig()
        self.assertEqual(config.intake_prefix, "videos/uploads/")
        self.assertEqual(config.output_prefix, "videos/encoded/")
        self.assertEqual(config.profile.video_codec, "h264")
        self.assertEqual(config.profile.crf, 23)
        self.assertEqual(config.profile.target_height, 720)
        self.assertEqual(config.job_timeout_seconds, 540)

    def test_output_nested_under_intake_is_rejected(self):
        with self.assertRaises(ImproperlyConfigured):
            TranscodeConfig(intake_prefix="videos/", output_prefix="videos/encoded/")

    def test_identical_prefixes_are_rejected(self):
        with self.assertRaises(ImproperlyConfigured):
            TranscodeConfig(intake_prefix="videos/", output_prefix="videos/")

    def test_non_positive_timeout_is_rejected(self):
        with self.assertRaises(ImproperlyConfigured):
            TranscodeConfig(job_timeout_seconds=0)

    @override_settings(
        TRANSCODE_INTAKE_PREFIX="raw/",
        TRANSCODE_OUTPUT_PREFIX="published/",
        TRANSCODE_TARGET_HEIGHT=480,
        TRANSCODE_CRF=28,
        TRANSCODE_MAX_MEMORY="",
        TRANSCODE_JOB_TIMEOUT_SECONDS=60,
        TRANSCODE_THREADS=2,
    )
    def test_from_settings(self):
        config = TranscodeConfig.from_settings()
        self.assertEqual(config.intake_prefix, "raw/")
        self.assertEqual(config.output_prefix, "published/")
        self.assertEqual(config.profile.target_height, 480)
        self.assertEqual(config.profile.crf, 28)
        self.assertIsNone(config.max_memory)
        self.assertEqual(config.job_timeout_seconds, 60)
        self.assertEqual(config.profile.threads, 2)


class GetOrchestratorTest(SimpleTestCase):
    def setUp(self):
        get_orchestrator.cache_clear()

    def tearDown(self):
        get_orchestrator.cache_clear()

    @override_settings(TRANSCODE_CREATE_MISSING_JOBS=False, TRANSCODE_MAX_MEMORY="1GiB")
    def test_clients_built_once_from_settings(self):
        first = get_orchestrator()

        self.assertIs(first, get_orchestrator())
        self.assertFalse(first.tracker.create_missing)
        self.assertEqual(first.encoder.max_memory, 1024 ** 3)
        self.assertEqual(first.config.output_prefix, "videos/encoded/")
