"""
Extraction Heuristics.

Pure functions the pipeline uses to decide when a text-layer parse is
not trustworthy, and to recover the fields a layout parser missed:

    - garbled merchant detection (broken font encodings)
    - "too little signal" detection for the text layer
    - total reconciliation against the declared invoice total
    - ordered fallbacks for the due date and the declared total
    - early detection of unsupported issuer families

The fallbacks are kept as ordered tuples of independent functions so a
new issuer quirk can be added without touching the existing order.
"""

import math
import re
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, Optional, Sequence, Tuple

from dateutil.parser import isoparse

from src.parsers.models import TransactionCandidate, TransactionType
from src.utils.exceptions import InvalidDueDateOverrideError
from src.utils.logger import get_logger
from src.utils.text import (
    infer_year,
    month_number,
    normalize,
    normalize_numeric_dates,
    parse_amount_loose,
    parse_int,
    safe_date,
)

# Initialize module logger
logger = get_logger(__name__)

REPLACEMENT_CHAR = "\ufffd"
MAX_REPLACEMENT_CHARS = 10
MIN_ALNUM_FLOOR = 40

DEFAULT_MISSING_RATIO = Decimal("0.96")

GARBLE_EXEMPT_WORDS = ("UBER", "IFOOD", "PAGAMENTO", "ANUIDADE", "PAYMENT", "ANNUAL FEE")

_VOWELS = frozenset("AEIOU")
_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")
_ASCII_ALNUM = re.compile(r"^[A-Za-z0-9]+$")


# =============================================================================
# GARBLED DESCRIPTIONS
# =============================================================================

def is_likely_garbled_merchant(description: Optional[str]) -> bool:
    """
    Detect descriptions produced by a broken font encoding.

    Typical damage looks like "bPU3OTOSY6GLEy": long tokens mixing
    letters and digits, or long consonant-only runs.

    Args:
        description: Row description.

    Returns:
        True when the description is probably unreadable.

    Example:
        >>> is_likely_garbled_merchant("bPU3OTOSY6GLEy")
        True
        >>> is_likely_garbled_merchant("PADARIA SAO JOSE")
        False
    """
    if not description or not description.strip():
        return False
    text = description.strip()
    upper = text.upper()
    if any(word in upper for word in GARBLE_EXEMPT_WORDS):
        return False

    long_alnum = 0
    mixed = 0
    for token in text.split():
        cleaned = _NON_ALNUM.sub('', token)
        if len(cleaned) < 8:
            continue
        if len(cleaned) >= 10 and _ASCII_ALNUM.match(cleaned):
            long_alnum += 1
        digit_count = sum(1 for ch in cleaned if ch.isdigit())
        has_letter = any(ch.isalpha() for ch in cleaned)
        if len(cleaned) >= 10 and has_letter and digit_count >= 2:
            mixed += 1

    letters = sum(1 for ch in upper if 'A' <= ch <= 'Z')
    digits = sum(1 for ch in upper if '0' <= ch <= '9')
    vowels = sum(1 for ch in upper if ch in _VOWELS)

    if mixed >= 1:
        return True
    if long_alnum >= 1 and letters >= 8 and digits >= 2 and vowels <= 1:
        return True
    return letters >= 12 and vowels == 0 and long_alnum >= 2


def has_too_little_signal(text: Optional[str], min_len: int) -> bool:
    """
    Decide whether a text layer is too poor to parse.

    Args:
        text: Extracted text.
        min_len: Minimum number of non-whitespace characters.

    Returns:
        True for blank text, too few characters or alphanumerics, or
        more than 10 replacement characters.
    """
    if not text or not text.strip():
        logger.info("OCR trigger: extracted text is blank")
        return True

    min_len = max(0, int(min_len))
    non_whitespace = sum(1 for ch in text if not ch.isspace())
    alnum = sum(1 for ch in text if ch.isalnum())
    replacement = text.count(REPLACEMENT_CHAR)

    too_little = non_whitespace < min_len or alnum < max(MIN_ALNUM_FLOOR, min_len // 2)
    too_garbled = replacement > MAX_REPLACEMENT_CHARS
    if too_little or too_garbled:
        logger.info(
            f"OCR trigger: textLen={len(text)} nonWs={non_whitespace} alnum={alnum} "
            f"minTextLen={min_len} replacement={replacement}"
        )
        return True
    return False


# =============================================================================
# SUMS AND RETRY DECISIONS
# =============================================================================

def sum_expense_amounts(transactions: Optional[Iterable[TransactionCandidate]]) -> Decimal:
    """Sum of absolute EXPENSE amounts."""
    total = Decimal("0")
    for tx in transactions or ():
        if tx is None or tx.amount is None or tx.type != TransactionType.EXPENSE:
            continue
        total += abs(tx.amount)
    return total


def sum_net_amounts(transactions: Optional[Iterable[TransactionCandidate]]) -> Decimal:
    """Expenses minus income, both taken as absolute values."""
    total = Decimal("0")
    for tx in transactions or ():
        if tx is None or tx.amount is None:
            continue
        if tx.type == TransactionType.EXPENSE:
            total += abs(tx.amount)
        elif tx.type == TransactionType.INCOME:
            total -= abs(tx.amount)
    return total


def _quality_counts(transactions: Sequence[TransactionCandidate]) -> Tuple[int, int, int]:
    rows = [tx for tx in transactions or () if tx is not None]
    garbled = sum(1 for tx in rows if is_likely_garbled_merchant(tx.description))
    missing_dates = sum(1 for tx in rows if tx.date is None)
    return len(rows), garbled, missing_dates


def should_retry_for_quality(transactions: Sequence[TransactionCandidate]) -> bool:
    """
    Decide whether a parse looks damaged enough to retry with OCR.

    Any garbled description triggers a retry, as does a majority of rows
    without a date (at least two).
    """
    total, garbled, missing_dates = _quality_counts(transactions)
    if total == 0:
        return False

    trigger = garbled >= 1 or missing_dates >= max(2, math.ceil(total * 0.5))
    if trigger:
        samples = [
            f"[{tx.date}]{(tx.description or '')[:60]}"
            for tx in transactions
            if tx is not None and (tx.date is None or is_likely_garbled_merchant(tx.description))
        ][:3]
        logger.info(
            f"OCR quality trigger: total={total} garbled={garbled} missingDate={missing_dates} "
            f"samples={' '.join(samples)}"
        )
    return trigger


def transaction_quality(transactions: Sequence[TransactionCandidate]) -> int:
    """Comparable row-level quality: 1000 per row, minus 250 per damaged field."""
    total, garbled, missing_dates = _quality_counts(transactions)
    if total == 0:
        return 0
    return total * 1000 - garbled * 250 - missing_dates * 250


def should_retry_for_missing_transactions(
    transactions: Sequence[TransactionCandidate],
    text: Optional[str],
    ratio: Decimal = DEFAULT_MISSING_RATIO
) -> bool:
    """
    Compare the expense sum with the declared invoice total.

    Args:
        transactions: Parsed rows.
        text: Text the rows were parsed from.
        ratio: Fraction of the declared total below which rows are
            considered missing.

    Returns:
        True when the expense sum is below ratio * declared total.
    """
    if not transactions:
        return False

    expected = extract_expected_total(text)
    if expected is None or expected <= 0:
        return False

    extracted = sum_expense_amounts(transactions)
    if extracted <= 0:
        return False

    threshold = expected * Decimal(str(ratio))
    trigger = extracted < threshold
    pct = (extracted * 100 / expected).quantize(Decimal("0.01"))
    logger.info(
        f"Total check: txCount={len(transactions)} extracted={extracted} expected={expected} "
        f"threshold={threshold} ({pct}% of expected) trigger={trigger}"
    )
    return trigger


def is_retry_better_for_missing(
    retry: Sequence[TransactionCandidate],
    original: Sequence[TransactionCandidate],
    expected: Optional[Decimal]
) -> bool:
    """
    Decide whether a retried parse recovered missing rows.

    The retry wins when it has at least as many rows and is strictly
    closer to the declared total, or has more rows and is no farther.
    """
    if expected is None or expected <= 0:
        return False

    original_total = sum_expense_amounts(original)
    retry_total = sum_expense_amounts(retry)
    original_diff = abs(expected - original_total)
    retry_diff = abs(expected - retry_total)
    original_count = len(original or ())
    retry_count = len(retry or ())

    better = (
        (retry_count >= original_count and retry_diff < original_diff)
        or (retry_count > original_count and retry_diff <= original_diff)
    )
    logger.info(
        f"Retry evaluated: txCount {original_count} -> {retry_count} | "
        f"extracted {original_total} -> {retry_total} | "
        f"diffToExpected {original_diff} -> {retry_diff} | accepted={better}"
    )
    return better


# =============================================================================
# DECLARED TOTAL
# =============================================================================

_AMOUNT_TAIL = r"[^0-9]{0,25}R?\$?\s*([0-9][0-9 .,]{0,25}[0-9])"

EXPECTED_TOTAL_PATTERNS: Tuple["re.Pattern", ...] = tuple(
    re.compile(label + _AMOUNT_TAIL, re.IGNORECASE | re.DOTALL)
    for label in (
        # Current invoice first; Itau prints the previous invoice total too
        r"\b(?:total\s+desta\s+fatura|total\s+of\s+this\s+invoice)\b",
        r"\blan[cç]amentos\s+atuais\b",
        r"\btotal\s+dos\s+lan[cç]amentos\s+atuais\b",
        r"\btotal\s+(?:da\s+)?fatura\b(?!\s*anterior)",
        r"\b(?:total\s+a\s+pagar|total\s+to\s+pay)\b",
        r"\b(?:valor\s+total|total\s+amount)\b",
    )
)


def extract_expected_total(text: Optional[str]) -> Optional[Decimal]:
    """
    Find the total the invoice declares for itself.

    Args:
        text: Invoice text.

    Returns:
        The first positive amount matched by EXPECTED_TOTAL_PATTERNS,
        or None.

    Example:
        >>> extract_expected_total("Total desta fatura R$ 1.234,56")
        Decimal('1234.56')
    """
    if not text or not text.strip():
        return None
    normalized = text.replace("\u00a0", " ")

    for pattern in EXPECTED_TOTAL_PATTERNS:
        match = pattern.search(normalized)
        if not match:
            continue
        amount = parse_amount_loose(match.group(1))
        if amount is not None and amount > 0:
            return amount
    return None


# =============================================================================
# DUE DATE FALLBACKS
# =============================================================================

_DUE_LABEL = r"\b(?:venc(?:imento)?|vct(?:o)?|data\s+de\s+vencimento|due\s+date)\b"

_DUE_NUMERIC = re.compile(
    _DUE_LABEL + r"[^\d]{0,30}(\d{2})\s*[./-]\s*(\d{2})\s*[./-]\s*(\d{4})",
    re.IGNORECASE | re.DOTALL
)
_DUE_NUMERIC_NO_YEAR = re.compile(
    _DUE_LABEL + r"[^\d]{0,30}(\d{2})\s*[./-]\s*(\d{2})(?!\s*[./-]\s*\d{4})",
    re.IGNORECASE | re.DOTALL
)
_DUE_TEXTUAL = re.compile(
    r"\b(?:venc(?:imento)?|vct(?:o)?|data\s+de\s+vencimento|due\s+date|fatura)\b"
    r"[^\d]{0,30}(\d{2})\s+([A-Z]{3})\s+(\d{4})",
    re.IGNORECASE | re.DOTALL
)
_DUE_DIGITS = re.compile(
    _DUE_LABEL + r"[^0-9]{0,60}([0-9][0-9\s./-]{5,30})",
    re.IGNORECASE | re.DOTALL
)

_ISO_OVERRIDE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_BR_OVERRIDE = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")


def due_date_numeric(text: str) -> Optional[date]:
    """Labeled dd/mm/yyyy."""
    match = _DUE_NUMERIC.search(normalize_numeric_dates(text))
    if not match:
        return None
    return safe_date(parse_int(match.group(3)), parse_int(match.group(2)), parse_int(match.group(1)))


def due_date_numeric_no_year(text: str) -> Optional[date]:
    """Labeled dd/mm, dated with the year of the first full date in the text."""
    normalized = normalize_numeric_dates(text)
    year = infer_year(normalized)
    if year is None:
        return None
    match = _DUE_NUMERIC_NO_YEAR.search(normalized)
    if not match:
        return None
    return safe_date(year, parse_int(match.group(2)), parse_int(match.group(1)))


def due_date_textual(text: str) -> Optional[date]:
    """Labeled "dd MON yyyy"."""
    match = _DUE_TEXTUAL.search(normalize_numeric_dates(text))
    if not match:
        return None
    return safe_date(parse_int(match.group(3)), month_number(match.group(2)), parse_int(match.group(1)))


def due_date_digits(text: str) -> Optional[date]:
    """Labeled run of at least eight digits read as ddmmyyyy."""
    match = _DUE_DIGITS.search(text.replace("\u00a0", " "))
    if not match:
        return None
    digits = re.sub(r"\D", '', match.group(1))
    if len(digits) < 8:
        return None
    return safe_date(parse_int(digits[4:8]), parse_int(digits[2:4]), parse_int(digits[0:2]))


DUE_DATE_FALLBACKS: Tuple[Callable[[str], Optional[date]], ...] = (
    due_date_numeric,
    due_date_numeric_no_year,
    due_date_textual,
    due_date_digits,
)


def extract_fallback_due_date(text: Optional[str]) -> Optional[date]:
    """
    Run DUE_DATE_FALLBACKS in order and return the first date found.

    Used only when the chosen layout parser found no due date.
    """
    if not text or not text.strip():
        return None
    for fallback in DUE_DATE_FALLBACKS:
        found = fallback(text)
        if found is not None:
            logger.warning(f"Fallback due date extracted via {fallback.__name__}: {found}")
            return found
    return None


def parse_due_date_override(value: Optional[str]) -> Optional[date]:
    """
    Parse a caller-supplied due date.

    Args:
        value: "yyyy-mm-dd" or "dd/mm/yyyy". Blank means no override.

    Returns:
        The date, or None for a blank value.

    Raises:
        InvalidDueDateOverrideError: For any other format or an
            impossible date.
    """
    if value is None or not value.strip():
        return None
    value = value.strip()

    if _ISO_OVERRIDE.match(value):
        try:
            return isoparse(value).date()
        except ValueError:
            raise InvalidDueDateOverrideError(value)

    match = _BR_OVERRIDE.match(value)
    if match:
        parsed = safe_date(int(match.group(3)), int(match.group(2)), int(match.group(1)))
        if parsed is not None:
            return parsed

    raise InvalidDueDateOverrideError(value)


# =============================================================================
# UNSUPPORTED ISSUERS
# =============================================================================

def looks_like_unsupported_issuer(text: Optional[str]) -> bool:
    """
    Detect Mercado Pago invoices, which are not supported.

    The brand alone is not enough: other issuers print merchant lines
    like "MERCADOPAGO *LOJA". At least two invoice context markers are
    required as well.
    """
    if not text or not text.strip():
        return False
    n = normalize(text)

    if "mercado pago" not in n and "mercadopago" not in n:
        return False

    markers = [
        "essa e sua fatura" in n or "esta e sua fatura" in n or "sua fatura" in n,
        "vence em" in n or "vencimento" in n,
        "total a pagar" in n or ("total" in n and "pagar" in n),
    ]
    return sum(markers) >= 2


__all__ = [
    'DUE_DATE_FALLBACKS',
    'EXPECTED_TOTAL_PATTERNS',
    'extract_expected_total',
    'extract_fallback_due_date',
    'has_too_little_signal',
    'is_likely_garbled_merchant',
    'is_retry_better_for_missing',
    'looks_like_unsupported_issuer',
    'parse_due_date_override',
    'should_retry_for_missing_transactions',
    'should_retry_for_quality',
    'sum_expense_amounts',
    'sum_net_amounts',
    'transaction_quality',
]
