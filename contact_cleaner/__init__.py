"""
Contact list cleaning, merging and extraction.
Reconciles differently named columns across spreadsheets and rebuilds rows from OCR scans.
"""

from .models import SemanticField, TextToken, UnifiedColumn, SourceSheet, CleaningStats
from .classifier import classify_header
from .normalizers import normalize_phone, normalize_email, standardize_date
from .reconciler import reconcile_columns, auto_select_columns
from .merger import merge_rows
from .cleaning import clean_rows, CleaningResult
from .pipeline import PipelineContext, consolidate, clean_single_file, extract_from_images

__version__ = "1.0.0"

__all__ = [
    "SemanticField",
    "TextToken",
    "UnifiedColumn",
    "SourceSheet",
    "CleaningStats",
    "classify_header",
    "normalize_phone",
    "normalize_email",
    "standardize_date",
    "reconcile_columns",
    "auto_select_columns",
    "merge_rows",
    "clean_rows",
    "CleaningResult",
    "PipelineContext",
    "consolidate",
    "clean_single_file",
    "extract_from_images",
]
