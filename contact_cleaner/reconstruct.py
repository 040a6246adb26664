"""
Rebuild rows from positioned OCR tokens.

Two strategies are available:

* Pattern scan: tokens are grouped into rows by Y position and each wanted
  field is pulled from the row text with a regular expression.
* Spatial table: tokens are clustered into columns by X and rows by Y, and
  the top band of the page supplies the column names.

Values are returned raw; phone, email and date cleanup happens later in
the cleaning pass.
"""

import re
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .classifier import header_keywords
from .config import TableSettings
from .models import TextToken


Row = Dict[str, str]

FIELD_PATTERNS = {
    'phone': re.compile(r'[\+\d][\d\s\-\.]{4,20}'),
    'email': re.compile(r'[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}', re.IGNORECASE),
    'pincode': re.compile(r'\b\d{6}\b'),
    'date': re.compile(r'\d{1,2}[-/]\d{1,2}[-/]\d{2,4}|\d{4}[-/]\d{1,2}[-/]\d{1,2}'),
    'id': re.compile(r'[A-Z]{2,4}\d{4,}'),
}

# Free-text fields taken from the whole row when long enough
FREE_TEXT_FIELDS = {'address', 'city', 'state'}

SUPPORTED_FIELDS = list(FIELD_PATTERNS) + ['name', 'address', 'city', 'state', 'custom']

MOBILE_LEADING_DIGITS = set('6789')


def group_tokens_by_rows(tokens: Sequence[TextToken], tolerance: float = 15) -> List[List[TextToken]]:
    """
    Cluster tokens into rows by vertical position.

    Tokens are sorted by Y; a token joins the current row when its Y is
    within tolerance of the row's last token, so rows can drift slowly.

    Args:
        tokens: Positioned tokens
        tolerance: Maximum Y gap in pixels

    Returns:
        Rows of tokens, top to bottom
    """
    if not tokens:
        return []

    ordered = sorted(tokens, key=lambda t: t.y)
    rows = [[ordered[0]]]

    for token in ordered[1:]:
        if abs(token.y - rows[-1][-1].y) <= tolerance:
            rows[-1].append(token)
        else:
            rows.append([token])

    return rows


def _row_text(row_tokens: Sequence[TextToken]) -> str:
    return ' '.join(t.text for t in row_tokens)


def extract_field_value(field_name: str, row_text: str) -> str:
    """
    Pull one field's raw value out of a row's text.

    Args:
        field_name: phone, email, pincode, date, id, name, address, city,
            state or custom
        row_text: Space-joined token text of the row

    Returns:
        The first match (or derived text); "" when nothing fits
    """
    pattern = FIELD_PATTERNS.get(field_name)
    if pattern is not None:
        match = pattern.search(row_text)
        return match.group(0) if match else ''

    if field_name == 'name':
        text = row_text
        for key in ('phone', 'email', 'pincode'):
            text = FIELD_PATTERNS[key].sub('', text)
        text = text.strip()
        return text if len(text) > 2 else ''

    if field_name in FREE_TEXT_FIELDS:
        return row_text if len(row_text) > 3 else ''

    return row_text


def scan_scattered(tokens: Sequence[TextToken], fields: Sequence[str]) -> List[Row]:
    """One single-field row per pattern hit anywhere on the page."""
    page_text = _row_text(tokens)
    rows = []

    for field_name in fields:
        pattern = FIELD_PATTERNS.get(field_name)
        if pattern is None:
            continue
        for match in pattern.finditer(page_text):
            rows.append({field_name: match.group(0)})

    return rows


def extract_pattern_rows(
    tokens: Sequence[TextToken],
    fields: Sequence[str],
    row_tolerance: float = 15,
    include_scattered: bool = True
) -> List[Row]:
    """
    Pattern-scan extraction.

    Args:
        tokens: Positioned tokens of one page or image
        fields: Fields to extract, in output order
        row_tolerance: Y tolerance for row grouping
        include_scattered: Append the page-wide single-field hits

    Returns:
        Rows keyed by field name; rows where every field is empty are dropped
    """
    rows: List[Row] = []

    for row_tokens in group_tokens_by_rows(tokens, row_tolerance):
        text = _row_text(row_tokens)
        row = {name: extract_field_value(name, text) for name in fields}
        if any(row.values()):
            rows.append(row)

    if include_scattered:
        rows.extend(scan_scattered(tokens, fields))

    return rows


def extract_phone_lines(text: str) -> List[Row]:
    """
    Line-by-line name/phone scan of recognized text.

    A line qualifies when it holds at least 10 digits and the last 10 start
    with 6-9. The name is whatever remains after removing digits and phone
    punctuation.

    Args:
        text: Full recognized text

    Returns:
        Rows with "name" and "phone" (bare 10 digits), one per distinct phone
    """
    rows: List[Row] = []
    seen: Set[str] = set()

    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue

        digits = re.sub(r'\D', '', line)
        if len(digits) < 10:
            continue

        phone = digits[-10:]
        if phone[0] not in MOBILE_LEADING_DIGITS or phone in seen:
            continue

        name = re.sub(r'[0-9+\-()]', '', line).strip()
        name = re.sub(r'^[:.\-_]+|[:.\-_]+$', '', name).strip()
        if len(name) < 2:
            name = 'Unknown'

        rows.append({'name': name, 'phone': phone})
        seen.add(phone)

    return rows


def cluster_columns(tokens: Sequence[TextToken], tolerance: float = 20) -> List[Tuple[float, float]]:
    """
    Cluster tokens into column X ranges.

    Tokens are sorted by X; a token whose left edge falls within tolerance
    of the running column's right edge extends that column.

    Returns:
        (x_min, x_max) per column, left to right
    """
    columns: List[List[float]] = []

    for token in sorted(tokens, key=lambda t: t.x):
        if columns and token.x <= columns[-1][1] + tolerance:
            columns[-1][1] = max(columns[-1][1], token.right)
        else:
            columns.append([token.x, token.right])

    return [(lo, hi) for lo, hi in columns]


def detect_header_tokens(
    tokens: Sequence[TextToken],
    band: float = 30,
    keywords: Optional[Sequence[str]] = None
) -> List[int]:
    """
    Find header tokens near the top of the page.

    Args:
        tokens: Positioned tokens
        band: Height of the header band below the topmost token
        keywords: Header words; defaults to every column alias

    Returns:
        Indexes into tokens of the header tokens
    """
    if not tokens:
        return []

    if keywords is None:
        keywords = header_keywords()

    top = min(t.y for t in tokens)
    indexes = []

    for i, token in enumerate(tokens):
        if token.y - top > band:
            continue
        text = token.text.strip().lower()
        if len(text) > 3 or any(word in text for word in keywords):
            indexes.append(i)

    return indexes


def assign_columns(tokens: Sequence[TextToken], columns: Sequence[Tuple[float, float]]) -> List[int]:
    """
    Nearest column (by centre X) for every token; ties go to the first column.
    """
    centers = [(lo + hi) / 2 for lo, hi in columns]
    assigned = []

    for token in tokens:
        best = 0
        best_distance = None
        for i, center in enumerate(centers):
            distance = abs(token.center_x - center)
            if best_distance is None or distance < best_distance:
                best, best_distance = i, distance
        assigned.append(best)

    return assigned


def _column_names(
    tokens: Sequence[TextToken],
    header_indexes: Sequence[int],
    assigned: Sequence[int],
    column_count: int
) -> List[str]:
    parts: Dict[int, List[TextToken]] = {}
    for i in header_indexes:
        parts.setdefault(assigned[i], []).append(tokens[i])

    names = []
    for col in range(column_count):
        words = sorted(parts.get(col, []), key=lambda t: t.x)
        name = ' '.join(t.text.strip() for t in words).strip()
        if not name or name in names:
            name = f"Column {col + 1}"
        names.append(name)
    return names


def reconstruct_table(tokens: Sequence[TextToken], settings: Optional[TableSettings] = None) -> List[Row]:
    """
    Spatial table reconstruction.

    Args:
        tokens: Positioned tokens of one page or image
        settings: Clustering tolerances

    Returns:
        One row per Y cluster keyed by column name (header text or
        "Column N"); rows whose cells are all blank are dropped
    """
    settings = settings or TableSettings()
    if not tokens:
        return []

    columns = cluster_columns(tokens, settings.column_tolerance)
    assigned = assign_columns(tokens, columns)
    header_indexes = detect_header_tokens(tokens, settings.header_band)
    names = _column_names(tokens, header_indexes, assigned, len(columns))

    header_set = set(header_indexes)
    data = [(tokens[i], assigned[i]) for i in range(len(tokens)) if i not in header_set]
    column_of = {id(token): col for token, col in data}

    rows: List[Row] = []
    for row_tokens in group_tokens_by_rows([token for token, _ in data], settings.row_tolerance):
        cells: Dict[str, List[str]] = {name: [] for name in names}
        for token in sorted(row_tokens, key=lambda t: t.x):
            cells[names[column_of[id(token)]]].append(token.text.strip())

        row = {name: ' '.join(p for p in parts if p) for name, parts in cells.items()}
        if any(value.strip() for value in row.values()):
            rows.append(row)

    return rows


def reanalyze_table(tokens: Sequence[TextToken], settings: Optional[TableSettings] = None) -> List[Row]:
    """Rebuild the table from scratch with relaxed tolerances."""
    settings = settings or TableSettings()
    return reconstruct_table(tokens, settings.relaxed())
