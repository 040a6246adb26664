"""
Column-level operations on row sets.

Each function returns a new list of rows; inputs are left untouched.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from .classifier import detect_value_type
from .config import CASE_MODES, ColumnOperations
from .errors import InputRejectedError, MergeRefusedError
from .models import is_internal_key
from .normalizers import change_case, stringify, text_to_number


Row = Dict[str, Any]

# Value types that must never be string-concatenated
NUMERIC_TYPES = {'number', 'currency'}


def fix_headers(headers: Sequence[str]) -> Dict[str, str]:
    """
    Tidy header names.

    Trims, turns "_", "-" and "." runs into spaces, title-cases each word and
    suffixes repeated names with " 2", " 3", ...

    Args:
        headers: Original header names

    Returns:
        Mapping of original header -> fixed header
    """
    mapping: Dict[str, str] = {}
    used: Dict[str, int] = {}

    for header in headers:
        fixed = re.sub(r'[_\-.]+', ' ', str(header).strip())
        fixed = ' '.join(w[:1].upper() + w[1:].lower() for w in fixed.split(' '))

        if fixed in used:
            used[fixed] += 1
            fixed = f"{fixed} {used[fixed]}"
        else:
            used[fixed] = 1

        mapping[header] = fixed

    return mapping


def rename_columns(rows: Sequence[Row], mapping: Dict[str, str]) -> List[Row]:
    return [{mapping.get(k, k): v for k, v in row.items()} for row in rows]


def merge_columns(
    rows: Sequence[Row],
    sources: Sequence[str],
    new_name: str = "Merged_Column",
    separator: str = " "
) -> List[Row]:
    """
    Combine several columns into a new one.

    Args:
        rows: Input rows
        sources: Columns to join, in order
        new_name: Name of the added column
        separator: Text placed between non-empty parts

    Returns:
        Rows with the merged column appended

    Raises:
        MergeRefusedError: If any source column holds numbers or currency
    """
    for col in sources:
        kind = detect_value_type(row.get(col) for row in rows)
        if kind in NUMERIC_TYPES:
            raise MergeRefusedError(
                f"Column '{col}' looks like {kind} data; merging it as text would corrupt values"
            )

    merged = []
    for row in rows:
        parts = [stringify(row.get(col, "")).strip() for col in sources]
        merged.append({**row, new_name: separator.join(p for p in parts if p)})
    return merged


def split_column(
    rows: Sequence[Row],
    source: str,
    delimiter: str = " ",
    parts: int = 2
) -> List[Row]:
    """
    Split one column into <source>_Part1..N.

    The last part receives the unsplit remainder; missing parts are "".
    """
    if parts < 2:
        raise ValueError("parts must be at least 2")

    result = []
    for row in rows:
        text = stringify(row.get(source, "")).strip()
        pieces = text.split(delimiter, parts - 1) if text else []
        pieces = [p.strip() for p in pieces] + [""] * (parts - len(pieces))
        new_row = dict(row)
        for i, piece in enumerate(pieces, 1):
            new_row[f"{source}_Part{i}"] = piece
        result.append(new_row)
    return result


def split_name(rows: Sequence[Row], name_column: Optional[str]) -> List[Row]:
    """Add "First Name" and "Last Name" derived from a full-name column."""
    if not name_column:
        return [dict(row) for row in rows]

    result = []
    for row in rows:
        tokens = stringify(row.get(name_column, "")).split()
        result.append({
            **row,
            'First Name': tokens[0] if tokens else '',
            'Last Name': ' '.join(tokens[1:]),
        })
    return result


def apply_case(rows: Sequence[Row], columns: Sequence[str], mode: str) -> List[Row]:
    """Convert text case ("upper", "lower", "proper") in the given columns."""
    targets = set(columns)
    return [
        {k: change_case(v, mode) if k in targets else v for k, v in row.items()}
        for row in rows
    ]


def convert_text_to_number(rows: Sequence[Row], columns: Sequence[str]) -> List[Row]:
    targets = set(columns)
    return [
        {k: text_to_number(v) if k in targets else v for k, v in row.items()}
        for row in rows
    ]


def match_columns(columns: Sequence[str], names: Sequence[str]) -> List[str]:
    """
    Resolve user-typed column names against the actual columns.

    Matching ignores case and surrounding spaces.

    Raises:
        InputRejectedError: If a name matches no column
    """
    lookup = {str(c).strip().lower(): c for c in columns}
    resolved = []
    for name in names:
        column = lookup.get(str(name).strip().lower())
        if column is None:
            raise InputRejectedError(
                f"Unknown column '{name}' (available: {', '.join(columns)})"
            )
        resolved.append(column)
    return resolved


def apply_column_operations(
    rows: Sequence[Row],
    ops: ColumnOperations,
    logger: Optional[logging.Logger] = None
) -> List[Row]:
    """
    Run the requested merge, split, case and number edits, in that order.

    Each step sees the columns produced by the one before, so a merged
    column can be split or re-cased in the same pass.

    Args:
        rows: Cleaned rows
        ops: Requested edits
        logger: Logger instance

    Returns:
        Edited rows

    Raises:
        InputRejectedError: If a named column does not exist
        MergeRefusedError: If a merge source holds numbers or currency
    """
    logger = logger or logging.getLogger(__name__)
    result = [dict(row) for row in rows]
    if not result or ops.is_empty():
        return result

    def columns() -> List[str]:
        return [k for k in result[0] if not is_internal_key(k)]

    if ops.merge_columns:
        if len(ops.merge_columns) < 2:
            raise InputRejectedError("Select at least two columns to merge")
        sources = match_columns(columns(), ops.merge_columns)
        result = merge_columns(result, sources, ops.merge_name, ops.merge_separator)
        logger.info(f"Merged {', '.join(sources)} into '{ops.merge_name}'")

    if ops.split_column:
        source = match_columns(columns(), [ops.split_column])[0]
        result = split_column(result, source, ops.split_delimiter, ops.split_parts)
        logger.info(f"Split '{source}' into {ops.split_parts} parts")

    if ops.case_mode:
        if ops.case_mode not in CASE_MODES:
            raise ValueError(f"Unknown case mode: {ops.case_mode}")
        targets = match_columns(columns(), ops.case_columns) if ops.case_columns else columns()
        result = apply_case(result, targets, ops.case_mode)
        logger.info(f"Applied {ops.case_mode} case to {len(targets)} column(s)")

    if ops.to_number:
        targets = match_columns(columns(), ops.to_number)
        result = convert_text_to_number(result, targets)
        logger.info(f"Converted {', '.join(targets)} to numbers")

    return result
