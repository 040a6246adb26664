"""
Column reconciliation across several input files.
"""

import math
from typing import Dict, List, Optional, Sequence

from .classifier import canonical_name, classify_header
from .models import SemanticField, SourceOccurrence, UnifiedColumn


# A column present in at least this share of files is pre-selected
COVERAGE_RATIO = 0.6


def reconcile_columns(
    header_lists: Sequence[Sequence[str]],
    file_names: Optional[Sequence[str]] = None
) -> List[UnifiedColumn]:
    """
    Build the unified column schema for a merge session.

    Every header is classified and grouped by its semantic key; each group
    records which file contributed which original header. The canonical
    name is the field label (or the first-seen header for OTHER columns).

    Args:
        header_lists: Header list per input file, in file order
        file_names: Optional file identifiers, parallel to header_lists

    Returns:
        Unified columns sorted by descending number of distinct files,
        ties kept in first-encountered order
    """
    groups: Dict[str, dict] = {}

    for file_index, headers in enumerate(header_lists):
        file_name = file_names[file_index] if file_names else ""

        for header in headers:
            semantic_field, key = classify_header(header)

            if key not in groups:
                groups[key] = {
                    "field": semantic_field,
                    "name": canonical_name(semantic_field, header),
                    "occurrences": [],
                }

            groups[key]["occurrences"].append(
                SourceOccurrence(
                    file_index=file_index,
                    original_name=str(header),
                    file_name=file_name,
                )
            )

    columns = [
        UnifiedColumn(
            semantic_field=group["field"],
            canonical_name=group["name"],
            key=key,
            occurrences=tuple(group["occurrences"]),
        )
        for key, group in groups.items()
    ]

    # sorted() is stable, so ties keep first-seen order
    return sorted(columns, key=lambda col: col.file_count, reverse=True)


def coverage_threshold(file_count: int) -> int:
    """Minimum number of files a column must appear in to count as common."""
    return math.ceil(file_count * COVERAGE_RATIO)


def auto_select_columns(columns: Sequence[UnifiedColumn], file_count: int) -> List[str]:
    """
    Default column selection.

    Args:
        columns: Reconciled columns
        file_count: Number of files in the session

    Returns:
        Keys of columns present in >= 60% of files, plus any Phone column
    """
    threshold = coverage_threshold(file_count)
    return [
        col.key for col in columns
        if col.file_count >= threshold or col.semantic_field is SemanticField.PHONE
    ]


def select_common_columns(columns: Sequence[UnifiedColumn], file_count: int) -> List[str]:
    """Keys of columns meeting the coverage threshold only."""
    threshold = coverage_threshold(file_count)
    return [col.key for col in columns if col.file_count >= threshold]


def select_all_columns(columns: Sequence[UnifiedColumn]) -> List[str]:
    return [col.key for col in columns]
