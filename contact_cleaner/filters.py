"""
Row filters: empty rows, duplicates, phone-only, empty columns.

All filters return new lists and never modify the rows they are given.
"""

import json
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .models import DUPLICATE_KEY, is_internal_key
from .normalizers import stringify


Row = Dict[str, Any]


def is_empty_row(row: Row) -> bool:
    """True when every non-internal value is blank after trimming."""
    return all(
        stringify(value).strip() == ""
        for key, value in row.items()
        if not is_internal_key(key)
    )


def remove_empty_rows(rows: Sequence[Row]) -> List[Row]:
    return [row for row in rows if not is_empty_row(row)]


def duplicate_key(
    row: Row,
    phone_column: Optional[str] = None,
    key_order: Optional[Sequence[str]] = None
) -> Tuple[str, str]:
    """
    Compute the identity used for duplicate detection.

    Args:
        row: Row to identify
        phone_column: Name of the selected Phone column, if any
        key_order: Fixed field order for the full-row serialization;
            defaults to the row's own key order

    Returns:
        ("phone", value) when the row has a phone, otherwise
        ("row", serialized non-internal fields)
    """
    if phone_column:
        phone = stringify(row.get(phone_column, "")).strip()
        if phone:
            return ("phone", phone)

    keys = key_order if key_order is not None else list(row.keys())
    fields = [[key, stringify(row.get(key, ""))] for key in keys if not is_internal_key(key)]
    return ("row", json.dumps(fields, ensure_ascii=False))


def remove_duplicates(
    rows: Sequence[Row],
    phone_column: Optional[str] = None,
    key_order: Optional[Sequence[str]] = None,
    mode: str = "drop",
    keep: str = "first"
) -> List[Row]:
    """
    Remove (or flag) duplicate rows.

    Rows sharing a phone number are duplicates regardless of their other
    fields; rows without a phone are compared on all fields.

    Args:
        rows: Input rows
        phone_column: Name of the selected Phone column, if any
        key_order: Field order for full-row comparison
        mode: "drop" removes repeats, "flag" keeps them with "_duplicate": True
        keep: "first" keeps the first occurrence, "last" the last one

    Returns:
        New list of rows
    """
    keys = [duplicate_key(row, phone_column, key_order) for row in rows]

    if keep == "last":
        # Index of the final occurrence of every key
        survivor = {key: i for i, key in enumerate(keys)}
        is_repeat = [survivor[key] != i for i, key in enumerate(keys)]
    else:
        seen = set()
        is_repeat = []
        for key in keys:
            is_repeat.append(key in seen)
            seen.add(key)

    if mode == "flag":
        return [
            {**row, DUPLICATE_KEY: True} if repeat else dict(row)
            for row, repeat in zip(rows, is_repeat)
        ]

    return [dict(row) for row, repeat in zip(rows, is_repeat) if not repeat]


def filter_rows_with_phone(rows: Sequence[Row], phone_column: Optional[str]) -> List[Row]:
    """Keep only rows with a non-empty phone; no-op without a phone column."""
    if not phone_column:
        return list(rows)
    return [row for row in rows if stringify(row.get(phone_column, "")).strip()]


def remove_empty_columns(rows: Sequence[Row]) -> List[Row]:
    """
    Drop columns that are blank in every row.

    Args:
        rows: Input rows

    Returns:
        Rows without the all-blank columns (internal keys are always kept)
    """
    if not rows:
        return []

    columns = [key for key in rows[0].keys() if not is_internal_key(key)]
    empty = {
        col for col in columns
        if all(stringify(row.get(col, "")).strip() == "" for row in rows)
    }

    return [{k: v for k, v in row.items() if k not in empty} for row in rows]
