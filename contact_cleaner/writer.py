"""
Output file writers (CSV, Excel and JSON).
"""

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from .errors import NoDataError
from .models import CleaningStats, is_internal_key


EXPORT_FORMATS = ('csv', 'xlsx', 'json')
SHEET_NAME = "Merged Data"


def export_rows(rows: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Prepare rows for export.

    Internal keys are stripped and every row is reshaped to the first
    row's column order.

    Raises:
        NoDataError: If there are no rows
    """
    if not rows:
        raise NoDataError("No data to export")

    columns = [key for key in rows[0].keys() if not is_internal_key(key)]
    return [{col: row.get(col, "") for col in columns} for row in rows]


def output_path(output_dir: str, prefix: str, extension: str, now: Optional[datetime] = None) -> Path:
    """<output_dir>/<prefix>_<YYYY-MM-DD>_<HHMMSS>.<extension>, creating the directory."""
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    now = now or datetime.now()
    return out_dir / f"{prefix}_{now.strftime('%Y-%m-%d')}_{now.strftime('%H%M%S')}.{extension}"


def _json_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def write_csv(
    rows: Sequence[Dict[str, Any]],
    output_dir: str = "output",
    prefix: str = "merged_contacts"
) -> str:
    """
    Write rows to a CSV file.

    Args:
        rows: Rows to export
        output_dir: Output directory
        prefix: Filename prefix

    Returns:
        Path to output file
    """
    data = export_rows(rows)
    path = output_path(output_dir, prefix, 'csv')

    # utf-8-sig so Excel shows non-ASCII names correctly
    pd.DataFrame(data).to_csv(path, index=False, encoding='utf-8-sig')
    return str(path)


def write_xlsx(
    rows: Sequence[Dict[str, Any]],
    output_dir: str = "output",
    prefix: str = "merged_contacts"
) -> str:
    """
    Write rows to an Excel workbook with a single "Merged Data" sheet.

    Args:
        rows: Rows to export
        output_dir: Output directory
        prefix: Filename prefix

    Returns:
        Path to output file
    """
    data = export_rows(rows)
    path = output_path(output_dir, prefix, 'xlsx')

    with pd.ExcelWriter(path, engine='openpyxl') as writer:
        pd.DataFrame(data).to_excel(writer, sheet_name=SHEET_NAME, index=False)

    return str(path)


def write_json(
    rows: Sequence[Dict[str, Any]],
    sources: Sequence[str],
    stats: Optional[CleaningStats] = None,
    output_dir: str = "output",
    prefix: str = "merged_contacts"
) -> str:
    """
    Write rows to a JSON file with run metadata.

    Args:
        rows: Rows to export
        sources: Input file names
        stats: Cleaning statistics, if a cleaning pass ran
        output_dir: Output directory
        prefix: Filename prefix

    Returns:
        Path to output file
    """
    data = export_rows(rows)
    path = output_path(output_dir, prefix, 'json')

    output = {
        "metadata": {
            "generatedAt": datetime.utcnow().isoformat()[:-3] + "Z",
            "sources": list(sources),
            "totalRows": len(data),
            "columns": list(data[0].keys()),
            "stats": stats.to_dict() if stats else None,
        },
        "rows": [{k: _json_value(v) for k, v in row.items()} for row in data],
    }

    with open(path, 'w', encoding='utf-8') as f:
        json.dump(output, f, indent=2, ensure_ascii=False)

    return str(path)


def write_rows(
    rows: Sequence[Dict[str, Any]],
    fmt: str,
    output_dir: str = "output",
    prefix: str = "merged_contacts",
    sources: Sequence[str] = (),
    stats: Optional[CleaningStats] = None
) -> str:
    """Dispatch to the writer for fmt ("csv", "xlsx" or "json")."""
    if fmt == 'csv':
        return write_csv(rows, output_dir, prefix)
    if fmt == 'xlsx':
        return write_xlsx(rows, output_dir, prefix)
    if fmt == 'json':
        return write_json(rows, sources, stats, output_dir, prefix)
    raise ValueError(f"Unsupported export format: {fmt}")
