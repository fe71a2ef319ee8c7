"""
Shared building blocks for the layout parsers.

Installment markers, row dedupe and the "Vencimento ..." due-date
cascade appear in several issuer layouts with only small variations.
"""

import re
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional

from src.utils.text import (
    infer_year,
    month_number,
    normalize,
    normalize_numeric_dates,
    parse_int,
    safe_date,
)
from .models import Installment, TransactionCandidate

INSTALLMENT_SLASH = re.compile(r"(\d{1,2})\s*/\s*(\d{1,2})")
INSTALLMENT_TIMES = re.compile(r"(\d{1,2})\s*x\s*(\d{1,2})", re.IGNORECASE)

DUE_LABEL = r"\b(?:venc(?:imento)?|vct(?:o)?|data\s+de\s+vencimento)\b"

_DUE_NUMERIC = re.compile(DUE_LABEL + r"[^\d]{0,40}(\d{2})[./-](\d{2})[./-](\d{4})", re.IGNORECASE | re.DOTALL)
_DUE_NO_YEAR = re.compile(DUE_LABEL + r"[^\d]{0,40}(\d{2})[./-](\d{2})(?![./-]\d{4})", re.IGNORECASE | re.DOTALL)
_DUE_TEXTUAL = re.compile(DUE_LABEL + r"[^\d]{0,40}(\d{2})\s+([A-Za-z]{3})\s+(\d{4})", re.IGNORECASE | re.DOTALL)
_DUE_DIGITS = re.compile(DUE_LABEL + r"[^0-9]{0,60}([0-9][0-9\s./-]{5,30})", re.IGNORECASE | re.DOTALL)


def extract_installment(description: Optional[str]) -> Optional[Installment]:
    """
    Find an installment marker ("03/10" or "3x10") in a description.

    Example:
        >>> extract_installment("LOJA XPTO 03/10")
        Installment(current=3, total=10)
    """
    if not description or not description.strip():
        return None
    for pattern in (INSTALLMENT_SLASH, INSTALLMENT_TIMES):
        match = pattern.search(description)
        if match:
            current, total = int(match.group(1)), int(match.group(2))
            if current > 0 and total > 0:
                return Installment(current=current, total=total)
    return None


def last_installment(description: str) -> Optional[Installment]:
    """Return the right-most "n/m" marker of a description."""
    found = None
    for match in INSTALLMENT_SLASH.finditer(description or ""):
        current, total = int(match.group(1)), int(match.group(2))
        found = Installment(current=current, total=total)
    return found


def remove_installment(description: str, installment: Installment) -> str:
    """Drop the "n/m" marker from a description and collapse spaces."""
    pattern = re.compile(rf"\s*0*{installment.current}\s*/\s*0*{installment.total}\s*")
    return re.sub(r"\s+", ' ', pattern.sub(' ', description)).strip()


def dedupe_by_installment(transactions: Iterable[TransactionCandidate]) -> List[TransactionCandidate]:
    """
    Collapse repeated rows, keeping the lowest installment number.

    "Next invoices" blocks repeat current installments with the marker
    incremented (07/10 then 08/10); rows are keyed by card, date, amount
    and normalized description.
    """
    best: Dict[str, TransactionCandidate] = {}
    for tx in transactions:
        key = "|".join([
            tx.card_name or "",
            tx.date.isoformat() if tx.date else "",
            str(tx.amount) if tx.amount is not None else "",
            normalize(tx.description),
        ])
        existing = best.get(key)
        if existing is None:
            best[key] = tx
        elif (existing.installment and tx.installment
                and tx.installment.current < existing.installment.current):
            best[key] = tx
    return list(best.values())


def numeric_date(match: "re.Match", inferred_year: Optional[int]) -> Optional[date]:
    return safe_date(parse_int(match.group(3)), parse_int(match.group(2)), parse_int(match.group(1)))


def day_month_date(match: "re.Match", inferred_year: Optional[int]) -> Optional[date]:
    if inferred_year is None:
        return None
    return safe_date(inferred_year, parse_int(match.group(2)), parse_int(match.group(1)))


def textual_date(match: "re.Match", inferred_year: Optional[int]) -> Optional[date]:
    return safe_date(parse_int(match.group(3)), month_number(match.group(2)), parse_int(match.group(1)))


LABELED_DUE_DATE_STEPS: List = [
    (_DUE_NUMERIC, numeric_date),
    (_DUE_NO_YEAR, day_month_date),
    (_DUE_TEXTUAL, textual_date),
]


def labeled_due_date(
    text: str,
    leading_steps: Iterable = (),
    inferred_year: Optional[int] = None
) -> Optional[date]:
    """
    Run the "Vencimento" due-date cascade.

    Steps, first hit wins:
        1. issuer specific (pattern, builder) pairs in leading_steps
        2. label + dd/mm/yyyy
        3. label + dd/mm with the year of another full date in the text
        4. label + "dd MON yyyy"
        5. label + a run of at least eight digits read as ddmmyyyy

    Args:
        text: Raw invoice text.
        leading_steps: Extra (compiled pattern, builder) pairs tried first.
        inferred_year: Year used for dates printed without one.

    Returns:
        Due date, or None.
    """
    if not text or not text.strip():
        return None
    normalized = normalize_numeric_dates(text)
    if inferred_year is None:
        inferred_year = infer_year(normalized)

    for pattern, build in list(leading_steps) + LABELED_DUE_DATE_STEPS:
        match = pattern.search(normalized)
        if match:
            found = build(match, inferred_year)
            if found is not None:
                return found

    return digits_near_label(text, inferred_year)


def digits_near_label(text: str, inferred_year: Optional[int] = None) -> Optional[date]:
    """Read "Vencimento: 2 2 1 2 2 0 2 5" style dates from the raw text."""
    match = _DUE_DIGITS.search(text.replace("\u00a0", " "))
    if not match:
        return None
    digits = re.sub(r"\D", '', match.group(1))
    if len(digits) >= 8:
        found = safe_date(int(digits[4:8]), int(digits[2:4]), int(digits[0:2]))
        if found is not None:
            return found
    if len(digits) >= 4 and inferred_year is not None:
        return safe_date(inferred_year, int(digits[2:4]), int(digits[0:2]))
    return None


def build_step(pattern: str, builder: Callable) -> tuple:
    """Compile an issuer specific due-date step for labeled_due_date()."""
    return re.compile(pattern, re.IGNORECASE | re.DOTALL), builder


__all__ = [
    'INSTALLMENT_SLASH',
    'extract_installment',
    'last_installment',
    'remove_installment',
    'dedupe_by_installment',
    'numeric_date',
    'day_month_date',
    'textual_date',
    'labeled_due_date',
    'digits_near_label',
    'build_step',
]
