"""
Field normalizers.

Every function here is pure and fail-soft: when a value cannot be
normalized it is returned unchanged, so later steps always receive a
defined value.
"""

import math
import re
from datetime import date, datetime
from typing import Any, Optional

from dateutil import parser as date_parser

from .config import (
    DATE_FORMAT_ISO,
    PHONE_FORMAT_DIGITS,
    PHONE_FORMAT_E164,
)


NON_DIGIT = re.compile(r'\D')
WHITESPACE = re.compile(r'\s+')
VALID_MOBILE = re.compile(r'^[6789]\d{9}$')

EMAIL_PATTERN = re.compile(r'^[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}$')
# Frequent OCR confusions in the most common mail domain
EMAIL_DOMAIN_FIXES = (
    (re.compile(r'gmai1\.com'), 'gmail.com'),
    (re.compile(r'gma1l\.com'), 'gmail.com'),
)

DMY_PATTERN = re.compile(r'^(\d{1,2})[-/](\d{1,2})[-/](\d{4})$')
YMD_PATTERN = re.compile(r'^(\d{4})[-/](\d{1,2})[-/](\d{1,2})$')
MIN_YEAR = 1950
# dateutil fills missing date parts from these; they differ in year, month and day
FILL_DEFAULTS = (datetime(2000, 1, 1), datetime(2001, 2, 2))

EMOJI_PATTERN = re.compile(
    '['
    '\U0001F600-\U0001F64F'
    '\U0001F300-\U0001F5FF'
    '\U0001F680-\U0001F6FF'
    '\U0001F1E0-\U0001F1FF'
    '\u2600-\u26FF'
    '\u2700-\u27BF'
    ']'
)

YES_VALUES = {'yes', 'y', 'true', '1'}
NO_VALUES = {'no', 'n', 'false', '0'}
EMPTY_TOKENS = {'NA', 'N/A', 'null', 'undefined', '-'}


def stringify(value: Any) -> str:
    """
    Render a cell value as text.

    None and NaN become "", and integral floats lose their ".0" so that
    spreadsheet numbers such as 9876543210.0 keep their digits.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value)


def is_blank(value: Any) -> bool:
    return stringify(value).strip() == ""


# ---------------------------------------------------------------- phone ----

def _format_phone(digits: str, fmt: str) -> str:
    if fmt == PHONE_FORMAT_DIGITS:
        return digits
    return PHONE_FORMAT_E164 + digits


def normalize_phone(value: Any, fmt: str = PHONE_FORMAT_E164) -> Any:
    """
    Normalize an Indian phone number.

    Strips non-digits, drops a leading "91" country code and a leading
    trunk "0", then keeps the last 10 digits.

    Args:
        value: Raw phone cell
        fmt: "+91" for +91XXXXXXXXXX or "10-digit" for the bare number

    Returns:
        Formatted number, "" for empty input, or the original value when
        no 10-digit number can be recovered
    """
    if is_blank(value):
        return ""

    digits = NON_DIGIT.sub('', stringify(value))

    if digits.startswith('91') and len(digits) > 10:
        digits = digits[2:]

    if digits.startswith('0'):
        digits = digits[1:]

    if len(digits) > 10:
        digits = digits[-10:]

    if len(digits) != 10:
        return value

    return _format_phone(digits, fmt)


def extract_valid_mobile(value: Any) -> Optional[str]:
    """
    Find a valid 10-digit Indian mobile number (first digit 6-9).

    A "91" prefix is only dropped when what remains is itself valid. Longer
    digit runs are scanned left to right for the first valid 10-digit
    window, with the last 10 digits as a final attempt.

    Args:
        value: Raw text, typically an OCR capture

    Returns:
        The 10 digits, or None when no valid mobile exists
    """
    digits = NON_DIGIT.sub('', stringify(value))

    if digits.startswith('91') and len(digits) > 10:
        without_prefix = digits[2:]
        if VALID_MOBILE.match(without_prefix):
            digits = without_prefix

    if VALID_MOBILE.match(digits):
        return digits

    if len(digits) < 10:
        return None

    for start in range(len(digits) - 9):
        window = digits[start:start + 10]
        if VALID_MOBILE.match(window):
            return window

    last_ten = digits[-10:]
    if VALID_MOBILE.match(last_ten):
        return last_ten

    return None


def normalize_mobile_strict(value: Any, fmt: str = PHONE_FORMAT_E164) -> Optional[str]:
    """Formatted strict mobile number, or None when invalid."""
    digits = extract_valid_mobile(value)
    if digits is None:
        return None
    return _format_phone(digits, fmt)


# ---------------------------------------------------------------- email ----

def normalize_email(value: Any) -> Any:
    """
    Clean an email address.

    Lowercases, removes whitespace, repairs common OCR domain slips,
    collapses repeated dots and extra "@" signs.

    Args:
        value: Raw email cell

    Returns:
        Cleaned address, "" for empty input, or the original value when the
        result is still not a valid address
    """
    if is_blank(value):
        return ""

    email = WHITESPACE.sub('', stringify(value).strip().lower())

    for pattern, replacement in EMAIL_DOMAIN_FIXES:
        email = pattern.sub(replacement, email)

    email = re.sub(r'\.{2,}', '.', email)
    email = email.strip('.')

    if email.count('@') > 1:
        local, *rest = email.split('@')
        email = local + '@' + ''.join(rest)

    if not EMAIL_PATTERN.match(email):
        return value

    return email


# ----------------------------------------------------------------- date ----

def _format_date(parsed: date, fmt: str) -> str:
    if fmt == DATE_FORMAT_ISO:
        return f"{parsed.year:04d}-{parsed.month:02d}-{parsed.day:02d}"
    return f"{parsed.day:02d}/{parsed.month:02d}/{parsed.year:04d}"


def _parse_date(text: str) -> Optional[date]:
    match = DMY_PATTERN.match(text)
    if match:
        day, month, year = (int(g) for g in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            pass

    match = YMD_PATTERN.match(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            pass

    # A date that changes with the default was only partially given
    try:
        first = date_parser.parse(text, dayfirst=True, default=FILL_DEFAULTS[0])
        second = date_parser.parse(text, dayfirst=True, default=FILL_DEFAULTS[1])
    except (ValueError, OverflowError):
        return None

    if first.date() != second.date():
        return None
    return first.date()


def standardize_date(
    value: Any,
    fmt: str = DATE_FORMAT_ISO,
    current_year: Optional[int] = None
) -> Any:
    """
    Reformat a date cell.

    Args:
        value: Raw date cell (text or a datetime/date from the spreadsheet)
        fmt: "YYYY-MM-DD" or "DD/MM/YYYY"
        current_year: Upper bound reference; defaults to today's year

    Returns:
        Reformatted date; "" for empty input or a year outside
        [1950, current_year + 1]; the original value when unparseable
    """
    if isinstance(value, datetime):
        parsed: Optional[date] = value.date()
    elif isinstance(value, date):
        parsed = value
    else:
        text = stringify(value).strip()
        if not text:
            return ""
        parsed = _parse_date(text)

    if parsed is None:
        return value

    if current_year is None:
        current_year = date.today().year

    if parsed.year < MIN_YEAR or parsed.year > current_year + 1:
        return ""

    return _format_date(parsed, fmt)


# ----------------------------------------------------------------- text ----

def clean_whitespace(value: Any) -> Any:
    """Trim and collapse internal whitespace; non-strings pass through."""
    if not isinstance(value, str):
        return value
    return WHITESPACE.sub(' ', value.strip())


def title_case(value: Any) -> Any:
    """Capitalize the first letter of each token and lowercase the rest."""
    if not isinstance(value, str):
        return value
    return ' '.join(word[:1].upper() + word[1:].lower() for word in value.split())


def change_case(value: Any, mode: str) -> Any:
    """
    Convert text case.

    Args:
        value: Cell value
        mode: "upper", "lower" or "proper"

    Returns:
        Converted text; non-strings and unknown modes pass through
    """
    if not isinstance(value, str):
        return value
    if mode == 'upper':
        return value.upper()
    if mode == 'lower':
        return value.lower()
    if mode == 'proper':
        return title_case(value)
    return value


def strip_emojis(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    return EMOJI_PATTERN.sub('', value)


def normalize_yes_no(value: Any) -> Any:
    """Map yes/y/true/1 to "Yes" and no/n/false/0 to "No"."""
    token = stringify(value).strip().lower()
    if token in YES_VALUES:
        return 'Yes'
    if token in NO_VALUES:
        return 'No'
    return value


def standardize_empty(value: Any) -> Any:
    """Blank out placeholder tokens such as N/A or "-"."""
    if stringify(value).strip() in EMPTY_TOKENS:
        return ""
    return value


def text_to_number(value: Any) -> Any:
    """Convert numeric text ("1,200", "3.5") to int/float; otherwise unchanged."""
    if not isinstance(value, str):
        return value
    text = value.strip().replace(',', '')
    if not text:
        return value
    try:
        number = float(text)
    except ValueError:
        return value
    if math.isnan(number) or math.isinf(number):
        return value
    if number.is_integer() and '.' not in text and 'e' not in text.lower():
        return int(number)
    return number
