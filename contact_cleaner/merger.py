"""
Row merging: project every source row through the unified schema.
"""

import math
from typing import Any, Dict, List, Sequence

from .errors import NoDataError
from .models import PROVENANCE_KEY, SourceSheet, UnifiedColumn


def _cell(value: Any) -> Any:
    """Missing, None and NaN cells become ""; everything else is kept as-is."""
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return value


def selected_in_order(
    columns: Sequence[UnifiedColumn],
    selected_keys: Sequence[str]
) -> List[UnifiedColumn]:
    """Selected columns, in reconciled (not selection) order."""
    wanted = set(selected_keys)
    return [col for col in columns if col.key in wanted]


def merge_rows(
    sheets: Sequence[SourceSheet],
    columns: Sequence[UnifiedColumn],
    selected_keys: Sequence[str]
) -> List[Dict[str, Any]]:
    """
    Merge all sheets into uniformly shaped rows.

    Args:
        sheets: Parsed input files, index-aligned with the reconciliation
        columns: Reconciled columns
        selected_keys: Keys of the columns to keep

    Returns:
        One row per source row, keyed by canonical name, with the source
        file recorded under "_source_file"

    Raises:
        NoDataError: If no columns are selected
    """
    chosen = selected_in_order(columns, selected_keys)
    if not chosen:
        raise NoDataError("Please select at least one column")

    merged: List[Dict[str, Any]] = []

    for file_index, sheet in enumerate(sheets):
        # Resolve each column's source header for this file once
        sources = [(col.canonical_name, col.occurrence_for(file_index)) for col in chosen]

        for raw in sheet.rows:
            row: Dict[str, Any] = {}
            for name, occurrence in sources:
                if occurrence is None:
                    row[name] = ""
                else:
                    row[name] = _cell(raw.get(occurrence.original_name))
            row[PROVENANCE_KEY] = sheet.file_name
            merged.append(row)

    return merged
