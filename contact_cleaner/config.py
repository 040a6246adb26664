"""
Pipeline configuration: dataclasses plus environment-driven loading.
"""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional


PHONE_FORMAT_E164 = "+91"
PHONE_FORMAT_DIGITS = "10-digit"
PHONE_FORMATS = (PHONE_FORMAT_E164, PHONE_FORMAT_DIGITS)

DATE_FORMAT_ISO = "YYYY-MM-DD"
DATE_FORMAT_DMY = "DD/MM/YYYY"
DATE_FORMATS = (DATE_FORMAT_ISO, DATE_FORMAT_DMY)

INVALID_PHONE_POLICIES = ("keep", "blank", "flag", "drop")


@dataclass
class CleaningOptions:
    """Switches for one cleaning pass."""
    trim_spaces: bool = True
    standardize_empty: bool = False
    phone_format: str = PHONE_FORMAT_E164
    strict_mobile: bool = False
    invalid_phone_policy: str = "keep"  # keep | blank | flag | drop
    normalize_emails: bool = True
    normalize_dates: bool = True
    date_format: str = DATE_FORMAT_ISO
    title_case_names: bool = False
    normalize_yes_no: bool = False
    remove_emojis: bool = False
    duplicate_mode: str = "drop"  # drop | flag
    keep: str = "first"           # first | last
    phone_only: bool = False
    split_name: bool = False
    remove_empty_columns: bool = False


CASE_MODES = ("upper", "lower", "proper")


@dataclass
class ColumnOperations:
    """User-requested column edits, applied after cleaning in this order."""
    merge_columns: List[str] = field(default_factory=list)
    merge_name: str = "Merged_Column"
    merge_separator: str = " "
    split_column: Optional[str] = None
    split_delimiter: str = " "
    split_parts: int = 2
    case_mode: Optional[str] = None  # upper | lower | proper
    case_columns: List[str] = field(default_factory=list)
    to_number: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.merge_columns or self.split_column or self.case_mode or self.to_number)


@dataclass(frozen=True)
class TableSettings:
    """Tolerances (pixels) for spatial table reconstruction."""
    column_tolerance: float = 20.0
    row_tolerance: float = 15.0
    header_band: float = 30.0

    def relaxed(self) -> "TableSettings":
        """Widen tolerances for a re-analysis pass."""
        return replace(
            self,
            column_tolerance=self.column_tolerance * 1.3,
            row_tolerance=self.row_tolerance * 1.2,
        )


@dataclass
class PipelineConfig:
    """Top-level configuration for a pipeline run."""
    out_dir: Path
    min_files: int = 2
    max_files: int = 5
    max_file_mb: float = 10.0
    ocr_lang: str = "eng"
    ocr_timeout: float = 60.0
    ocr_dpi: int = 200
    log_level: str = "INFO"
    cleaning: CleaningOptions = field(default_factory=CleaningOptions)
    table: TableSettings = field(default_factory=TableSettings)

    @property
    def max_file_bytes(self) -> int:
        return int(self.max_file_mb * 1024 * 1024)


ENV_PREFIX = "CONTACT_CLEANER_"


def _setting(value, env_name: str, default: str):
    """An explicit value (zero included) wins over CONTACT_CLEANER_<env_name>."""
    if value is not None:
        return value
    return os.getenv(ENV_PREFIX + env_name, default)


def load_config(
    out_dir: Optional[str] = None,
    phone_format: Optional[str] = None,
    date_format: Optional[str] = None,
    min_files: Optional[int] = None,
    max_files: Optional[int] = None,
    max_file_mb: Optional[float] = None,
    ocr_lang: Optional[str] = None,
    ocr_timeout: Optional[float] = None,
    ocr_dpi: Optional[int] = None,
    log_level: Optional[str] = None,
) -> PipelineConfig:
    """
    Build a PipelineConfig from explicit overrides, then environment variables.

    Args:
        out_dir: Output directory (env CONTACT_CLEANER_OUT_DIR, default "output")
        phone_format: "+91" or "10-digit" (env CONTACT_CLEANER_PHONE_FORMAT)
        date_format: "YYYY-MM-DD" or "DD/MM/YYYY" (env CONTACT_CLEANER_DATE_FORMAT)
        min_files: Minimum files for a merge (env CONTACT_CLEANER_MIN_FILES)
        max_files: Maximum files per batch (env CONTACT_CLEANER_MAX_FILES)
        max_file_mb: Per-file size limit in MB (env CONTACT_CLEANER_MAX_FILE_MB)
        ocr_lang: Tesseract language (env CONTACT_CLEANER_OCR_LANG)
        ocr_timeout: Seconds per recognition call (env CONTACT_CLEANER_OCR_TIMEOUT)
        ocr_dpi: Rasterization DPI for scanned PDFs (env CONTACT_CLEANER_OCR_DPI)
        log_level: Logging level (env CONTACT_CLEANER_LOG_LEVEL)

    Returns:
        PipelineConfig instance

    Raises:
        ValueError: If a format value is not supported
    """
    root = Path(_setting(out_dir, "OUT_DIR", "output")).expanduser()

    phone_format = _setting(phone_format, "PHONE_FORMAT", PHONE_FORMAT_E164)
    if phone_format not in PHONE_FORMATS:
        raise ValueError(f"Unsupported phone format: {phone_format}")

    date_format = _setting(date_format, "DATE_FORMAT", DATE_FORMAT_ISO)
    if date_format not in DATE_FORMATS:
        raise ValueError(f"Unsupported date format: {date_format}")

    cfg = PipelineConfig(
        out_dir=root,
        min_files=int(_setting(min_files, "MIN_FILES", "2")),
        max_files=int(_setting(max_files, "MAX_FILES", "5")),
        max_file_mb=float(_setting(max_file_mb, "MAX_FILE_MB", "10")),
        ocr_lang=_setting(ocr_lang, "OCR_LANG", "eng"),
        ocr_timeout=float(_setting(ocr_timeout, "OCR_TIMEOUT", "60")),
        ocr_dpi=int(_setting(ocr_dpi, "OCR_DPI", "200")),
        log_level=str(_setting(log_level, "LOG_LEVEL", "INFO")).upper(),
        cleaning=CleaningOptions(phone_format=phone_format, date_format=date_format),
    )
    return cfg
