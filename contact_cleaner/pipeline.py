"""
End-to-end runs over a caller-owned PipelineContext.

Three flows are supported:

* consolidate: several spreadsheets -> reconciled columns -> merged, cleaned rows
* clean_single_file: one spreadsheet -> fixed headers -> cleaned rows
* extract_from_images: images/PDFs -> OCR -> reconstructed, cleaned rows

Parsed sheets are frozen once loaded. Every derived row set is built on a
working copy and assigned to the context only after the step succeeds, so a
failed step leaves the previous result in place.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from .classifier import classify_header, normalize_key
from .cleaning import CleaningResult, clean_rows, field_map_from_columns
from .config import CleaningOptions, ColumnOperations, PipelineConfig
from .errors import ContactCleanerError, InputRejectedError, NoDataError
from .logging_setup import log_progress
from .merger import merge_rows, selected_in_order
from .models import (
    CleaningStats,
    PROVENANCE_KEY,
    SemanticField,
    SourceSheet,
    UnifiedColumn,
    is_internal_key,
)
from .ocr_engine import IMAGE_EXTENSIONS, PDF_EXTENSIONS, OcrEngine
from .readers import read_sheet, validate_files
from .reconciler import auto_select_columns, reconcile_columns
from .reconstruct import (
    SUPPORTED_FIELDS,
    extract_pattern_rows,
    extract_phone_lines,
    reanalyze_table,
    reconstruct_table,
)
from .transforms import apply_column_operations, fix_headers, rename_columns


STRATEGIES = ('pattern', 'table', 'lines')

# Display names for extracted field keys
FIELD_LABELS = {
    'phone': 'Phone',
    'email': 'Email',
    'pincode': 'Pincode',
    'date': 'Date',
    'id': 'ID',
    'name': 'Name',
    'address': 'Address',
    'city': 'City',
    'state': 'State',
    'custom': 'Custom',
}


@dataclass
class PipelineContext:
    """State of one consolidation session. Owned by the caller, never shared."""
    config: PipelineConfig
    sheets: List[SourceSheet] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)
    columns: List[UnifiedColumn] = field(default_factory=list)
    selected: List[str] = field(default_factory=list)
    merged_rows: List[dict] = field(default_factory=list)
    rows: List[dict] = field(default_factory=list)
    stats: Optional[CleaningStats] = None

    @property
    def file_names(self) -> List[str]:
        return [sheet.file_name for sheet in self.sheets]


@dataclass
class ExtractionResult:
    """Rows recovered from a batch of images, plus per-file failures."""
    rows: List[dict] = field(default_factory=list)
    stats: Optional[CleaningStats] = None
    failures: Dict[str, str] = field(default_factory=dict)


def load_sheets(
    ctx: PipelineContext,
    paths: Sequence[str],
    logger: Optional[logging.Logger] = None
) -> List[SourceSheet]:
    """
    Validate and parse the input spreadsheets.

    A file that is rejected or fails to parse is recorded in ctx.failures
    and skipped; the rest of the batch proceeds.

    Args:
        ctx: Pipeline context
        paths: Spreadsheet paths
        logger: Logger instance

    Returns:
        Parsed sheets

    Raises:
        InputRejectedError: If the file count is out of bounds or too few
            files pass validation
        NoDataError: If no file could be parsed
    """
    logger = logger or logging.getLogger(__name__)
    cfg = ctx.config

    checked, rejected = validate_files(
        paths,
        min_files=cfg.min_files,
        max_files=cfg.max_files,
        max_file_bytes=cfg.max_file_bytes,
    )
    for reason in rejected.values():
        logger.warning(f"Rejected: {reason}")

    sheets: List[SourceSheet] = []
    failures: Dict[str, str] = dict(rejected)

    for i, path in enumerate(checked, 1):
        log_progress(logger, i, len(checked), "Reading files", path.name)
        try:
            sheet = read_sheet(path, logger=logger)
        except ContactCleanerError as e:
            logger.warning(f"Skipping {path.name}: {e}")
            failures[path.name] = str(e)
            continue

        logger.info(f"  {sheet.file_name}: {len(sheet.rows)} rows, {len(sheet.headers)} columns")
        sheets.append(sheet)

    if not sheets:
        raise NoDataError("None of the input files could be read")

    reset(ctx)
    ctx.sheets = sheets
    ctx.failures = failures
    return sheets


def prepare_columns(ctx: PipelineContext, logger: Optional[logging.Logger] = None) -> List[UnifiedColumn]:
    """
    Reconcile the loaded sheets' headers and pre-select the common columns.

    Returns:
        Unified columns, most widely shared first
    """
    logger = logger or logging.getLogger(__name__)

    if not ctx.sheets:
        raise NoDataError("No files loaded")

    columns = reconcile_columns(
        [sheet.headers for sheet in ctx.sheets],
        ctx.file_names,
    )
    selected = auto_select_columns(columns, len(ctx.sheets))

    logger.info(f"Detected {len(columns)} unique columns, {len(selected)} pre-selected")
    for col in columns:
        marker = "x" if col.key in selected else " "
        logger.debug(f"  [{marker}] {col.canonical_name} ({col.file_count}/{len(ctx.sheets)} files)")

    ctx.columns = columns
    ctx.selected = selected
    return columns


def resolve_selection(columns: Sequence[UnifiedColumn], names: Sequence[str]) -> List[str]:
    """
    Map user-supplied column names to column keys.

    A name matches a column by key or canonical name, ignoring case.

    Raises:
        InputRejectedError: If a name matches no column
    """
    lookup = {}
    for col in columns:
        lookup[col.key] = col.key
        lookup[normalize_key(col.canonical_name)] = col.key

    keys = []
    for name in names:
        key = lookup.get(normalize_key(name))
        if key is None:
            known = ', '.join(col.canonical_name for col in columns)
            raise InputRejectedError(f"Unknown column '{name}' (available: {known})")
        if key not in keys:
            keys.append(key)
    return keys


def consolidate(
    ctx: PipelineContext,
    selected: Optional[Sequence[str]] = None,
    options: Optional[CleaningOptions] = None,
    operations: Optional[ColumnOperations] = None,
    logger: Optional[logging.Logger] = None
) -> CleaningResult:
    """
    Merge the loaded sheets and run the cleaning pass.

    Args:
        ctx: Pipeline context with sheets loaded
        selected: Column keys to keep; defaults to the auto-selection
        options: Cleaning switches; defaults to ctx.config.cleaning
        operations: Column edits applied after cleaning
        logger: Logger instance

    Returns:
        CleaningResult (also stored on ctx)

    Raises:
        NoDataError: If no columns are selected or no rows survive cleaning
        InputRejectedError: If a column edit names an unknown column
        MergeRefusedError: If a column merge would join numeric data
    """
    logger = logger or logging.getLogger(__name__)

    if not ctx.columns:
        prepare_columns(ctx, logger=logger)

    keys = list(selected) if selected is not None else list(ctx.selected)
    merged = merge_rows(ctx.sheets, ctx.columns, keys)
    logger.info(f"Merged {len(merged)} rows from {len(ctx.sheets)} files")

    chosen = selected_in_order(ctx.columns, keys)
    result = clean_rows(
        merged,
        field_map_from_columns(chosen),
        options or ctx.config.cleaning,
        key_order=[col.canonical_name for col in chosen],
        logger=logger,
    )

    if not result.rows:
        raise NoDataError("No rows left after removing empty and duplicate rows")

    if operations:
        result.rows = apply_column_operations(result.rows, operations, logger=logger)

    ctx.selected = keys
    ctx.merged_rows = merged
    ctx.rows = result.rows
    ctx.stats = result.stats
    return result


def reset(ctx: PipelineContext) -> None:
    """Discard everything derived from the sheets; the sheets themselves stay."""
    ctx.columns = []
    ctx.selected = []
    ctx.merged_rows = []
    ctx.rows = []
    ctx.stats = None


def _field_map_for(columns: Sequence[str]) -> Dict[str, SemanticField]:
    return {col: classify_header(col)[0] for col in columns}


def clean_single_file(
    ctx: PipelineContext,
    path: str,
    options: Optional[CleaningOptions] = None,
    operations: Optional[ColumnOperations] = None,
    logger: Optional[logging.Logger] = None
) -> CleaningResult:
    """
    Tidy one spreadsheet: fix headers, classify columns and clean every row.

    Args:
        ctx: Pipeline context (its sheets are replaced by this file)
        path: Spreadsheet path
        options: Cleaning switches; defaults to ctx.config.cleaning
        operations: Column edits applied after cleaning
        logger: Logger instance

    Returns:
        CleaningResult (also stored on ctx)
    """
    logger = logger or logging.getLogger(__name__)
    cfg = ctx.config

    checked, _ = validate_files([path], min_files=1, max_files=1, max_file_bytes=cfg.max_file_bytes)
    sheet = read_sheet(checked[0], logger=logger)

    mapping = fix_headers(sheet.headers)
    for old, new in mapping.items():
        if old != new:
            logger.debug(f"  Header '{old}' -> '{new}'")

    headers = [mapping[h] for h in sheet.headers]
    rows = rename_columns(sheet.rows, mapping)
    result = clean_rows(
        rows,
        _field_map_for(headers),
        options or cfg.cleaning,
        key_order=headers,
        logger=logger,
    )

    if not result.rows:
        raise NoDataError(f"No rows left in {sheet.file_name} after cleaning")

    if operations:
        result.rows = apply_column_operations(result.rows, operations, logger=logger)

    reset(ctx)
    ctx.sheets = [sheet]
    ctx.failures = {}
    ctx.rows = result.rows
    ctx.stats = result.stats
    return result


def _uniform(rows: Sequence[dict]) -> List[dict]:
    """Give every row the same columns, in first-seen order."""
    columns: List[str] = []
    for row in rows:
        for key in row:
            if not is_internal_key(key) and key not in columns:
                columns.append(key)

    shaped = []
    for row in rows:
        new_row = {col: row.get(col, "") for col in columns}
        new_row.update({k: v for k, v in row.items() if is_internal_key(k)})
        shaped.append(new_row)
    return shaped


def extract_from_images(
    paths: Sequence[str],
    fields: Sequence[str],
    strategy: str,
    config: PipelineConfig,
    options: Optional[CleaningOptions] = None,
    relaxed: bool = False,
    clean: bool = True,
    engine_factory: Optional[Callable[[], OcrEngine]] = None,
    logger: Optional[logging.Logger] = None
) -> ExtractionResult:
    """
    OCR a batch of images (or PDFs) and rebuild contact rows.

    Each file gets its own engine scope; a rejection, failure or timeout on one file
    is recorded and the batch continues.

    Args:
        paths: Image or PDF paths
        fields: Fields for the pattern strategy (ignored by the others)
        strategy: "pattern", "table" or "lines"
        config: Pipeline configuration
        options: Cleaning switches; defaults to config.cleaning
        relaxed: Use widened tolerances for the table strategy
        clean: Run the cleaning pass over the extracted rows
        engine_factory: Builds an OcrEngine; defaults to one from config
        logger: Logger instance

    Returns:
        ExtractionResult with rows, stats and failures

    Raises:
        InputRejectedError: If the batch fails validation
        ValueError: On an unknown strategy or field
    """
    logger = logger or logging.getLogger(__name__)

    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown strategy: {strategy} (expected one of {', '.join(STRATEGIES)})")
    if strategy == 'pattern':
        unknown = [f for f in fields if f not in SUPPORTED_FIELDS]
        if unknown:
            raise ValueError(f"Unknown fields: {', '.join(unknown)}")
        if not fields:
            raise NoDataError("Please select at least one field")

    if engine_factory is None:
        def engine_factory():
            return OcrEngine(
                lang=config.ocr_lang,
                timeout=config.ocr_timeout,
                dpi=config.ocr_dpi,
                logger=logger,
            )

    checked, rejected = validate_files(
        paths,
        min_files=1,
        max_files=config.max_files,
        max_file_bytes=config.max_file_bytes,
        extensions=IMAGE_EXTENSIONS | PDF_EXTENSIONS,
    )
    for reason in rejected.values():
        logger.warning(f"Rejected: {reason}")

    extracted: List[dict] = []
    failures: Dict[str, str] = dict(rejected)

    for i, path in enumerate(checked, 1):
        log_progress(logger, i, len(checked), "Recognizing", path.name)
        try:
            with engine_factory() as engine:
                pages = engine.recognize(path)
        except ContactCleanerError as e:
            logger.warning(f"Skipping {path.name}: {e}")
            failures[path.name] = str(e)
            continue

        for page in pages:
            if strategy == 'pattern':
                page_rows = extract_pattern_rows(page.tokens, fields, config.table.row_tolerance)
            elif strategy == 'lines':
                page_rows = extract_phone_lines(page.text)
            elif relaxed:
                page_rows = reanalyze_table(page.tokens, config.table)
            else:
                page_rows = reconstruct_table(page.tokens, config.table)

            logger.info(
                f"  {path.name} p{page.page_num + 1}: {len(page.tokens)} tokens, "
                f"{len(page_rows)} rows (confidence {page.confidence:.0f}%)"
            )

            for row in page_rows:
                labeled = {FIELD_LABELS.get(k, k): v for k, v in row.items()}
                labeled[PROVENANCE_KEY] = path.name
                extracted.append(labeled)

    rows = _uniform(extracted)
    if not clean or not rows:
        return ExtractionResult(rows=rows, failures=failures)

    columns = [key for key in rows[0] if not is_internal_key(key)]
    result = clean_rows(
        rows,
        _field_map_for(columns),
        options or config.cleaning,
        key_order=columns,
        logger=logger,
    )
    return ExtractionResult(rows=result.rows, stats=result.stats, failures=failures)
