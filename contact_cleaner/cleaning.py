"""
The cleaning pass applied to merged (or single-file) rows.

Steps run in a fixed order. Empty rows go first so they never reach
duplicate detection, and phone numbers are normalized before duplicates
are keyed on them.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .config import CleaningOptions
from .filters import (
    filter_rows_with_phone,
    remove_duplicates,
    remove_empty_columns,
    remove_empty_rows,
)
from .models import (
    CleaningStats,
    DUPLICATE_KEY,
    INVALID_PHONE_KEY,
    SemanticField,
    UnifiedColumn,
    is_internal_key,
)
from .normalizers import (
    clean_whitespace,
    is_blank,
    normalize_email,
    normalize_mobile_strict,
    normalize_phone,
    normalize_yes_no,
    standardize_date,
    standardize_empty,
    strip_emojis,
    title_case,
)
from .transforms import split_name


Row = Dict[str, Any]


@dataclass
class CleaningResult:
    """Cleaned rows plus the counters gathered on the way."""
    rows: List[Row] = field(default_factory=list)
    stats: CleaningStats = field(default_factory=CleaningStats)


def field_map_from_columns(columns: Sequence[UnifiedColumn]) -> Dict[str, SemanticField]:
    """Canonical column name -> semantic field."""
    return {col.canonical_name: col.semantic_field for col in columns}


def _columns_of(field_map: Mapping[str, SemanticField], semantic_field: SemanticField) -> List[str]:
    return [name for name, f in field_map.items() if f is semantic_field]


def _map_values(rows: List[Row], columns: Sequence[str], func) -> List[Row]:
    targets = set(columns)
    return [
        {k: func(v) if k in targets else v for k, v in row.items()}
        for row in rows
    ]


def _map_all(rows: List[Row], func) -> List[Row]:
    return [
        {k: v if is_internal_key(k) else func(v) for k, v in row.items()}
        for row in rows
    ]


def _normalize_phones(
    rows: List[Row],
    phone_columns: Sequence[str],
    options: CleaningOptions,
    stats: CleaningStats
) -> List[Row]:
    result = []
    for row in rows:
        new_row = dict(row)
        drop = False

        for col in phone_columns:
            value = row.get(col, "")
            if is_blank(value):
                continue

            if options.strict_mobile:
                cleaned = normalize_mobile_strict(value, options.phone_format)
                if cleaned is None:
                    stats.invalid_phones += 1
                    policy = options.invalid_phone_policy
                    if policy == "blank":
                        new_row[col] = ""
                    elif policy == "flag":
                        new_row[INVALID_PHONE_KEY] = True
                    elif policy == "drop":
                        drop = True
                    continue
            else:
                cleaned = normalize_phone(value, options.phone_format)

            if cleaned != value:
                stats.phones_cleaned += 1
            new_row[col] = cleaned

        if not drop:
            result.append(new_row)
    return result


def _count_changes(before: List[Row], after: List[Row], columns: Sequence[str]) -> int:
    return sum(
        1
        for old, new in zip(before, after)
        for col in columns
        if old.get(col) != new.get(col)
    )


def clean_rows(
    rows: Sequence[Row],
    field_map: Mapping[str, SemanticField],
    options: Optional[CleaningOptions] = None,
    key_order: Optional[Sequence[str]] = None,
    logger: Optional[logging.Logger] = None
) -> CleaningResult:
    """
    Run the full cleaning pass.

    Args:
        rows: Rows to clean (left unmodified)
        field_map: Column name -> semantic field for typed normalization
        options: Cleaning switches; defaults to CleaningOptions()
        key_order: Field order for duplicate keys; defaults to each row's own order
        logger: Logger instance

    Returns:
        CleaningResult with the new rows and statistics
    """
    options = options or CleaningOptions()
    logger = logger or logging.getLogger(__name__)
    stats = CleaningStats(total_rows=len(rows))

    phone_columns = _columns_of(field_map, SemanticField.PHONE)
    email_columns = _columns_of(field_map, SemanticField.EMAIL)
    date_columns = _columns_of(field_map, SemanticField.DATE)
    name_columns = _columns_of(field_map, SemanticField.NAME)
    primary_phone = phone_columns[0] if phone_columns else None

    # 1. Empty rows
    data = remove_empty_rows(rows)
    stats.empty_removed = len(rows) - len(data)
    logger.debug(f"Removed {stats.empty_removed} empty rows")

    # 2. Whitespace
    if options.trim_spaces:
        data = _map_all(data, clean_whitespace)

    # 3. Placeholder values
    if options.standardize_empty:
        data = _map_all(data, standardize_empty)

    # 4. Phones (always on)
    before = len(data)
    data = _normalize_phones(data, phone_columns, options, stats)
    if len(data) != before:
        logger.info(f"Dropped {before - len(data)} rows with invalid mobile numbers")

    # 5. Emails
    if options.normalize_emails and email_columns:
        cleaned = _map_values(data, email_columns, normalize_email)
        stats.emails_cleaned = _count_changes(data, cleaned, email_columns)
        data = cleaned

    # 6. Dates
    if options.normalize_dates and date_columns:
        cleaned = _map_values(
            data, date_columns, lambda v: standardize_date(v, options.date_format)
        )
        stats.dates_standardized = _count_changes(data, cleaned, date_columns)
        data = cleaned

    # 7. Optional text passes
    if options.title_case_names and name_columns:
        data = _map_values(data, name_columns, title_case)
    if options.normalize_yes_no:
        data = _map_all(data, normalize_yes_no)
    if options.remove_emojis:
        data = _map_all(data, strip_emojis)

    # 8. Duplicates
    before = len(data)
    data = remove_duplicates(
        data,
        phone_column=primary_phone,
        key_order=key_order,
        mode=options.duplicate_mode,
        keep=options.keep,
    )
    if options.duplicate_mode == "flag":
        stats.duplicates_flagged = sum(1 for row in data if row.get(DUPLICATE_KEY))
    else:
        stats.duplicates_removed = before - len(data)

    # 9. Phone-only merge mode
    if options.phone_only:
        before = len(data)
        data = filter_rows_with_phone(data, primary_phone)
        stats.phone_filtered = before - len(data)

    # 10. Shape changes
    if options.split_name:
        data = split_name(data, name_columns[0] if name_columns else None)
    if options.remove_empty_columns:
        data = remove_empty_columns(data)

    stats.final_rows = len(data)
    return CleaningResult(rows=data, stats=stats)
