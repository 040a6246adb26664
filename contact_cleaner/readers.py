"""
Spreadsheet reading and input validation.

Only the first sheet of a workbook is read. Blank cells become "" and
headers are always strings.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import pandas as pd

from .errors import InputRejectedError, ParseFailureError
from .models import SourceSheet


SPREADSHEET_EXTENSIONS = {'.xlsx', '.xls', '.csv'}


def _format_size(num_bytes: int) -> str:
    if num_bytes < 1024:
        return f"{num_bytes} B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KB"
    return f"{num_bytes / (1024 * 1024):.1f} MB"


def check_file(path: Path, allowed: Set[str], max_file_bytes: Optional[int] = None) -> Path:
    """
    Check one input file.

    Raises:
        InputRejectedError: If the file is missing, empty, too large or of
            an unsupported type
    """
    if path.suffix.lower() not in allowed:
        raise InputRejectedError(
            f"Unsupported file type: {path.name} (expected {', '.join(sorted(allowed))})"
        )
    if not path.is_file():
        raise InputRejectedError(f"File not found: {path}")

    size = path.stat().st_size
    if size == 0:
        raise InputRejectedError(f"File is empty: {path.name}")
    if max_file_bytes is not None and size > max_file_bytes:
        raise InputRejectedError(
            f"File too large: {path.name} ({_format_size(size)}, limit {_format_size(max_file_bytes)})"
        )

    return path


def validate_files(
    paths: Sequence[str],
    min_files: int = 1,
    max_files: int = 5,
    max_file_bytes: Optional[int] = None,
    extensions: Optional[Sequence[str]] = None
) -> Tuple[List[Path], Dict[str, str]]:
    """
    Check a batch of input files before anything is parsed.

    A bad file is rejected on its own; the rest of the batch is kept.

    Args:
        paths: Input file paths
        min_files: Minimum number of usable files
        max_files: Maximum number of files
        max_file_bytes: Per-file size limit (None disables the check)
        extensions: Allowed lowercase suffixes; defaults to spreadsheets

    Returns:
        Tuple of (accepted Paths in input order, file name -> rejection message)

    Raises:
        InputRejectedError: On too many or too few files, or when fewer
            than min_files pass the checks
    """
    allowed = set(extensions) if extensions is not None else SPREADSHEET_EXTENSIONS

    if len(paths) > max_files:
        raise InputRejectedError(f"Maximum {max_files} files allowed")
    if len(paths) < min_files:
        raise InputRejectedError(f"Upload at least {min_files} files (currently: {len(paths)})")

    accepted: List[Path] = []
    rejected: Dict[str, str] = {}

    for raw in paths:
        path = Path(raw).expanduser()
        try:
            accepted.append(check_file(path, allowed, max_file_bytes))
        except InputRejectedError as e:
            rejected[path.name] = str(e)

    if len(accepted) < min_files:
        reasons = '; '.join(rejected.values())
        raise InputRejectedError(
            f"Need at least {min_files} usable files (currently: {len(accepted)}): {reasons}"
        )

    return accepted, rejected


def unique_headers(headers: Sequence[Any]) -> List[str]:
    """
    Trim header names and suffix repeats with " 2", " 3", ...

    "Name" and "Name " would otherwise collapse into one column.
    """
    result: List[str] = []
    seen = set()

    for header in headers:
        name = str(header).strip()
        candidate = name
        n = 1
        while candidate in seen:
            n += 1
            candidate = f"{name} {n}"
        seen.add(candidate)
        result.append(candidate)

    return result


def read_dataframe(path: Path) -> pd.DataFrame:
    """Load the first sheet of a spreadsheet with every blank cell set to ""."""
    if path.suffix.lower() == '.csv':
        df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding='utf-8-sig')
    else:
        df = pd.read_excel(path, sheet_name=0, dtype=object)

    df = df.where(pd.notna(df), '')
    df.columns = unique_headers(df.columns)
    return df


def read_sheet(path: Path, logger: Optional[logging.Logger] = None) -> SourceSheet:
    """
    Parse one spreadsheet into a frozen SourceSheet.

    Args:
        path: Spreadsheet file
        logger: Logger instance

    Returns:
        SourceSheet with headers and read-only rows

    Raises:
        ParseFailureError: If the file cannot be parsed
    """
    logger = logger or logging.getLogger(__name__)
    path = Path(path)

    try:
        df = read_dataframe(path)
    except Exception as e:
        raise ParseFailureError(f"Could not read {path.name}: {e}") from e

    records = df.to_dict(orient='records')
    logger.debug(f"Read {len(records)} rows x {len(df.columns)} columns from {path.name}")

    return SourceSheet.from_records(path.name, records, headers=list(df.columns))
