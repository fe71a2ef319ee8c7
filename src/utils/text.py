"""
Text, Date and Amount Helpers.

Shared primitives used by every layout parser and by the pipeline
heuristics. PDF text layers routinely drop accents, replace spaces with
NBSP or other Unicode separators and inject spaces between date digits,
so every comparison in the system goes through these helpers.

All money values are decimal.Decimal.
"""

import calendar
import re
import unicodedata
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional


MONTHS = {
    'JAN': 1, 'FEV': 2, 'FEB': 2, 'MAR': 3, 'ABR': 4, 'APR': 4,
    'MAI': 5, 'MAY': 5, 'JUN': 6, 'JUL': 7, 'AGO': 8, 'AUG': 8,
    'SET': 9, 'SEP': 9, 'OUT': 10, 'OCT': 10, 'NOV': 11, 'DEZ': 12, 'DEC': 12,
}

FULL_MONTHS = {
    'JANEIRO': 1, 'FEVEREIRO': 2, 'MARCO': 3, 'ABRIL': 4, 'MAIO': 5, 'JUNHO': 6,
    'JULHO': 7, 'AGOSTO': 8, 'SETEMBRO': 9, 'OUTUBRO': 10, 'NOVEMBRO': 11, 'DEZEMBRO': 12,
}

_SEPARATORS = re.compile(r"[\u00a0\u1680\u2000-\u200a\u2028\u2029\u202f\u205f\u3000]")
_FULL_DATE = re.compile(r"\b\d{2}\s*/\s*\d{2}\s*/\s*(\d{4})\b")


def strip_accents(text: str) -> str:
    """Remove combining marks after NFD decomposition."""
    decomposed = unicodedata.normalize('NFD', text)
    return ''.join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize(text: Optional[str]) -> str:
    """
    Normalize text for keyword search.

    Lowercases, strips accents, turns NBSP and other Unicode separators
    into plain spaces and collapses all whitespace (newlines included).

    Args:
        text: Raw text.

    Returns:
        Normalized single-line text, or empty string.

    Example:
        >>> normalize("Itaú   Personalité")
        'itau personalite'
    """
    if not text or not text.strip():
        return ""
    result = strip_accents(text.lower())
    result = _SEPARATORS.sub(' ', result)
    return re.sub(r"\s+", ' ', result).strip()


def normalize_keep_lines(text: Optional[str]) -> str:
    """Normalize each line independently and keep line breaks."""
    if not text:
        return ""
    return '\n'.join(normalize(line) for line in text.splitlines())


def contains_keyword(text: Optional[str], keyword: Optional[str]) -> bool:
    """Case and accent insensitive containment check."""
    if text is None or keyword is None:
        return False
    return normalize(keyword) in normalize(text)


def contains_any(normalized_text: str, keywords: Iterable[str]) -> bool:
    """Check an already normalized text against several keywords."""
    return any(keyword in normalized_text for keyword in keywords)


def clean_spaces(text: Optional[str]) -> str:
    """Replace NBSP-like separators and collapse runs of blanks."""
    if not text:
        return ""
    return re.sub(r"[ \t]+", ' ', _SEPARATORS.sub(' ', text)).strip()


def normalize_numeric_dates(text: Optional[str]) -> str:
    """
    Repair dates whose digits were split by the PDF renderer.

    "2 2 / 1 2 / 2 0 2 5" becomes "22/12/2025".

    Args:
        text: Raw text.

    Returns:
        Text with whitespace between digits and around date separators removed.
    """
    if not text or not text.strip():
        return ""
    result = text.replace("\u00a0", " ")
    result = re.sub(r"(?<=\d)\s+(?=\d)", '', result)
    return re.sub(r"\s*([./-])\s*", r"\1", result)


def infer_year(text: Optional[str]) -> Optional[int]:
    """Return the year of the first fully qualified dd/mm/yyyy date in the text."""
    if not text:
        return None
    match = _FULL_DATE.search(text)
    return int(match.group(1)) if match else None


def month_number(token: Optional[str]) -> Optional[int]:
    """
    Map a month abbreviation or full Portuguese month name to its number.

    OCR often reads the letter O as a zero ("0UT"), which is repaired here.

    Example:
        >>> month_number("dez")
        12
        >>> month_number("0UT")
        10
    """
    if not token:
        return None
    key = strip_accents(token.strip().upper()).replace('0', 'O')
    key = re.sub(r"[^A-Z]", '', key)
    if key in MONTHS:
        return MONTHS[key]
    return FULL_MONTHS.get(key)


def safe_date(year: Optional[int], month: Optional[int], day: Optional[int]) -> Optional[date]:
    """Build a date, returning None for missing or impossible components."""
    if year is None or month is None or day is None:
        return None
    try:
        return date(int(year), int(month), int(day))
    except (TypeError, ValueError):
        return None


def parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    value = value.strip()
    if not value.lstrip('-').isdigit():
        return None
    return int(value)


def purchase_date(
    day: int,
    month: int,
    due_date: Optional[date],
    fallback_year: Optional[int] = None
) -> Optional[date]:
    """
    Resolve the full date of a "dd/mm" purchase row.

    Purchases belong to the billing cycle that closes before the due
    date, so a purchase month after the due month belongs to the
    previous year (a December purchase on a January invoice).

    Args:
        day: Day of month as printed.
        month: Month number as printed.
        due_date: Invoice due date, when known.
        fallback_year: Year to use when the due date is unknown.

    Returns:
        The purchase date, or None when no year can be determined.
    """
    if month is None or day is None or not 1 <= month <= 12:
        return None
    if due_date is not None:
        year = due_date.year - 1 if month > due_date.month else due_date.year
    elif fallback_year is not None:
        year = fallback_year
    else:
        return None
    last_day = calendar.monthrange(year, month)[1]
    return safe_date(year, month, max(1, min(day, last_day)))


def parse_brl_amount(raw: Optional[str]) -> Optional[Decimal]:
    """
    Parse a Brazilian formatted amount ("1.234,56").

    A leading or trailing minus marks a negative value. A value with no
    comma and exactly two decimals after a single dot ("12.50") is read
    as a dot-decimal amount.

    Args:
        raw: Amount text, optionally with "R$".

    Returns:
        Decimal amount, or None when the text is not a number.

    Example:
        >>> parse_brl_amount("1.234,56")
        Decimal('1234.56')
        >>> parse_brl_amount("-10,00")
        Decimal('-10.00')
    """
    if raw is None:
        return None
    value = _SEPARATORS.sub('', raw).replace('R$', '').replace(' ', '').strip()
    negative = False
    if value.endswith('-'):
        negative = True
        value = value[:-1]
    if value.startswith('-'):
        negative = True
        value = value[1:]
    value = value.lstrip('+')
    value = re.sub(r"[^0-9,.]", '', value)
    if not value or not any(ch.isdigit() for ch in value):
        return None

    if ',' in value:
        value = value.replace('.', '').replace(',', '.')
    elif not re.fullmatch(r"\d+\.\d{2}", value):
        value = value.replace('.', '')

    try:
        amount = Decimal(value)
    except InvalidOperation:
        return None
    return -amount if negative else amount


def parse_amount_loose(raw: Optional[str]) -> Optional[Decimal]:
    """
    Parse an amount in either Brazilian or English notation.

    The right-most separator followed by one or two digits is the
    decimal separator; every other separator is a thousands mark.

    Example:
        >>> parse_amount_loose("1,234.56")
        Decimal('1234.56')
        >>> parse_amount_loose("R$ 1.234,56")
        Decimal('1234.56')
    """
    if raw is None:
        return None
    value = _SEPARATORS.sub('', raw).replace('R$', '').replace('US$', '').replace(' ', '').strip()
    negative = value.startswith('-') or value.endswith('-')
    value = re.sub(r"[^0-9,.]", '', value)
    if not value or not any(ch.isdigit() for ch in value):
        return None

    last_comma = value.rfind(',')
    last_dot = value.rfind('.')
    decimal_at = max(last_comma, last_dot)

    if decimal_at >= 0:
        fraction = value[decimal_at + 1:]
        mixed = last_comma >= 0 and last_dot >= 0
        if fraction and (mixed or len(fraction) in (1, 2)):
            integer = re.sub(r"[,.]", '', value[:decimal_at])
            value = f"{integer or '0'}.{fraction}"
        else:
            # "1.234" or "1,234" with a single separator kind is a thousands mark
            value = re.sub(r"[,.]", '', value)

    try:
        amount = Decimal(value)
    except InvalidOperation:
        return None
    return -amount if negative else amount


def first_group(pattern: "re.Pattern", text: str, group: int = 1) -> Optional[str]:
    """Return one group of the first match, stripped, or None."""
    match = pattern.search(text)
    if not match:
        return None
    value = match.group(group)
    return value.strip() if value else None


__all__ = [
    'MONTHS',
    'FULL_MONTHS',
    'strip_accents',
    'normalize',
    'normalize_keep_lines',
    'contains_keyword',
    'contains_any',
    'clean_spaces',
    'normalize_numeric_dates',
    'infer_year',
    'month_number',
    'safe_date',
    'parse_int',
    'purchase_date',
    'parse_brl_amount',
    'parse_amount_loose',
    'first_group',
]
