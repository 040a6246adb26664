"""
Column classification: raw header text -> semantic contact field.

Matching is substring-based against the lowercased, trimmed header, so a
header such as "Customer Mobile No." lands on Phone. The alias lists are
fixed; the first field (in declaration order) with a matching alias wins.
"""

import math
import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Tuple

from .models import SemanticField


COLUMN_ALIASES: Dict[SemanticField, Tuple[str, ...]] = {
    SemanticField.PHONE: ('phone', 'mobile', 'contact', 'cell', 'telephone',
                          'mobile no', 'contact number', 'whatsapp'),
    SemanticField.NAME: ('name', 'full name', 'customer name', 'person name',
                         'client name', 'nama'),
    SemanticField.EMAIL: ('email', 'mail', 'e-mail', 'email address'),
    SemanticField.ADDRESS: ('address', 'location', 'addr', 'full address', 'alamat'),
    SemanticField.DATE: ('date', 'timestamp', 'created', 'modified', 'dob'),
    SemanticField.CITY: ('city', 'district', 'town'),
    SemanticField.STATE: ('state', 'province', 'region'),
    SemanticField.PINCODE: ('pincode', 'pin', 'zip', 'postal', 'zipcode'),
}

DATE_STRING_PATTERNS = (
    re.compile(r'^\d{1,2}/\d{1,2}/\d{2,4}$'),
    re.compile(r'^\d{4}-\d{2}-\d{2}$'),
    re.compile(r'^\d{1,2}-\d{1,2}-\d{2,4}$'),
)
CURRENCY_PATTERN = re.compile(r'^(?:[₹$€£]|rs\.?|inr)\s*-?[\d,]+(?:\.\d+)?$', re.IGNORECASE)
NUMBER_PATTERN = re.compile(r'^-?(?:\d+|\d{1,3}(?:,\d{3})+)(?:\.\d+)?$')
BOOLEAN_STRINGS = {'true', 'false'}

# Fraction of samples the dominant type needs before a column stops being "mixed"
DOMINANT_TYPE_RATIO = 0.7
TYPE_SAMPLE_SIZE = 100


def normalize_key(text: str) -> str:
    """Lowercase and replace whitespace runs with underscores."""
    return re.sub(r'\s+', '_', str(text).strip().lower())


def classify_header(header: str) -> Tuple[SemanticField, str]:
    """
    Classify a raw header into a semantic field.

    Args:
        header: Raw header text from a spreadsheet

    Returns:
        Tuple of (field, grouping key). Unmatched headers return
        SemanticField.OTHER keyed by the header text itself.
    """
    normalized = str(header).strip().lower()

    for semantic_field, aliases in COLUMN_ALIASES.items():
        if any(alias in normalized for alias in aliases):
            return semantic_field, normalize_key(semantic_field.label)

    return SemanticField.OTHER, normalize_key(header)


def canonical_name(semantic_field: SemanticField, header: str) -> str:
    """Display name of a column: the field label, or the header for OTHER."""
    if semantic_field is SemanticField.OTHER:
        return str(header).strip()
    return semantic_field.label


def is_date_string(text: str) -> bool:
    """Check for the common numeric date shapes (d/m/y, yyyy-mm-dd, d-m-y)."""
    return any(p.match(text) for p in DATE_STRING_PATTERNS)


def _value_type(value: Any) -> str:
    if value is None:
        return 'empty'
    if isinstance(value, bool):
        return 'boolean'
    if isinstance(value, (datetime, date)):
        return 'date'
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return 'empty'
        return 'number'

    text = str(value).strip()
    if not text:
        return 'empty'
    if text.lower() in BOOLEAN_STRINGS:
        return 'boolean'
    if is_date_string(text):
        return 'date'
    if CURRENCY_PATTERN.match(text):
        return 'currency'
    if NUMBER_PATTERN.match(text):
        return 'number'
    return 'text'


def detect_value_type(values: Iterable[Any]) -> str:
    """
    Profile a column's values.

    Looks at up to the first 100 values. Empty cells are ignored; if the most
    common type covers less than 70% of the rest, the column is "mixed".

    Args:
        values: Cell values of one column

    Returns:
        One of number, currency, date, boolean, text, mixed, empty
    """
    counts: Dict[str, int] = {}
    for i, value in enumerate(values):
        if i >= TYPE_SAMPLE_SIZE:
            break
        kind = _value_type(value)
        if kind == 'empty':
            continue
        counts[kind] = counts.get(kind, 0) + 1

    if not counts:
        return 'empty'

    total = sum(counts.values())
    dominant = max(counts, key=lambda k: counts[k])
    if counts[dominant] / total < DOMINANT_TYPE_RATIO:
        return 'mixed'
    return dominant


def header_keywords() -> List[str]:
    """Every alias, used to recognize header tokens in scanned tables."""
    words: List[str] = []
    for aliases in COLUMN_ALIASES.values():
        for alias in aliases:
            if alias not in words:
                words.append(alias)
    return words
