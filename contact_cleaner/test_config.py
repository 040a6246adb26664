import os
import unittest
from pathlib import Path
from unittest import mock

from contact_cleaner.config import TableSettings, load_config


class TestLoadConfig(unittest.TestCase):
    @mock.patch.dict(os.environ, {}, clear=True)
    def test_defaults(self) -> None:
        cfg = load_config()
        self.assertEqual(cfg.out_dir, Path("output"))
        self.assertEqual((cfg.min_files, cfg.max_files), (2, 5))
        self.assertEqual(cfg.max_file_bytes, 10 * 1024 * 1024)
        self.assertEqual(cfg.cleaning.phone_format, "+91")
        self.assertEqual(cfg.log_level, "INFO")

    @mock.patch.dict(os.environ, {
        "CONTACT_CLEANER_MIN_FILES": "3",
        "CONTACT_CLEANER_OCR_TIMEOUT": "30",
        "CONTACT_CLEANER_DATE_FORMAT": "DD/MM/YYYY",
    }, clear=True)
    def test_environment(self) -> None:
        cfg = load_config()
        self.assertEqual(cfg.min_files, 3)
        self.assertEqual(cfg.ocr_timeout, 30.0)
        self.assertEqual(cfg.cleaning.date_format, "DD/MM/YYYY")

    @mock.patch.dict(os.environ, {
        "CONTACT_CLEANER_MIN_FILES": "3",
        "CONTACT_CLEANER_OCR_TIMEOUT": "30",
    }, clear=True)
    def test_zero_overrides_beat_environment(self) -> None:
        cfg = load_config(min_files=0, ocr_timeout=0)
        self.assertEqual(cfg.min_files, 0)
        self.assertEqual(cfg.ocr_timeout, 0.0)

    @mock.patch.dict(os.environ, {}, clear=True)
    def test_bad_format(self) -> None:
        with self.assertRaises(ValueError):
            load_config(phone_format="+1")


class TestTableSettings(unittest.TestCase):
    def test_relaxed_is_a_copy(self) -> None:
        base = TableSettings()
        relaxed = base.relaxed()
        self.assertEqual(base.column_tolerance, 20.0)
        self.assertAlmostEqual(relaxed.column_tolerance, 26.0)


if __name__ == "__main__":
    unittest.main()
