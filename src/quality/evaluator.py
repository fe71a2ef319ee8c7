"""
Parse Quality Evaluator.

Scores a ParseResult from 0 to 100 using positive and negative signals.

Positive signals:
    due date found                                   +20
    total amount > 0                                 +20
    card last four digits                            +10
    at least 5 transactions                          +20
    at least 80% of rows with a date and a non-zero amount  +30

Negative signals:
    text shorter than min_text_length                -30
    garbled characters above max_garbled_percent     -20
    fewer than min_transactions rows                 -25
    any row without amount or description            -15

The result is clamped to [0, 100].
"""

import re
from decimal import Decimal
from typing import Optional

from src.parsers.models import ParseResult, ScoredParse
from src.utils.logger import get_logger
from .config import QualityConfig

# Initialize module logger
logger = get_logger(__name__)

_CARD_DIGITS = re.compile(r"^\d{4}$")

DUE_DATE_POINTS = 20
TOTAL_POINTS = 20
CARD_POINTS = 10
MANY_TRANSACTIONS_POINTS = 20
VALID_ROWS_POINTS = 30
SHORT_TEXT_PENALTY = 30
GARBLED_PENALTY = 20
FEW_TRANSACTIONS_PENALTY = 25
INVALID_ROWS_PENALTY = 15

MANY_TRANSACTIONS = 5
VALID_ROWS_RATIO = 0.80


def is_garbled_char(ch: str) -> bool:
    """U+FFFD or a control character other than newline, carriage return and tab."""
    return ch == '\ufffd' or (ord(ch) < 32 and ch not in '\n\r\t')


def garbled_percent(text: str) -> float:
    if not text:
        return 0.0
    garbled = sum(1 for ch in text if is_garbled_char(ch))
    return garbled / len(text) * 100


class ParseQualityEvaluator:
    """
    Scores parse results.

    Attributes:
        config: Quality thresholds.

    Example:
        >>> evaluator = ParseQualityEvaluator()
        >>> scored = evaluator.score(parse, text, "text-layer")
        >>> scored.score
        90
    """

    def __init__(self, config: Optional[QualityConfig] = None) -> None:
        self.config = config or QualityConfig.from_config()

    def evaluate(self, parse: Optional[ParseResult], raw_text: Optional[str]) -> int:
        """
        Compute the quality score of a parse.

        Args:
            parse: Parse to evaluate.
            raw_text: Text the parse was derived from.

        Returns:
            Score in [0, 100]; 0 for a missing parse.
        """
        if parse is None:
            logger.warning("Quality evaluation called without a parse result")
            return 0

        score = 0
        transactions = parse.transactions
        tx_count = len(transactions)

        if parse.due_date is not None:
            score += DUE_DATE_POINTS
        if parse.total_amount is not None and parse.total_amount > 0:
            score += TOTAL_POINTS
        if parse.card_last_four and _CARD_DIGITS.match(parse.card_last_four):
            score += CARD_POINTS
        if tx_count >= MANY_TRANSACTIONS:
            score += MANY_TRANSACTIONS_POINTS

        valid_ratio = self._valid_row_ratio(parse)
        if valid_ratio >= VALID_ROWS_RATIO:
            score += VALID_ROWS_POINTS

        if raw_text is not None and len(raw_text) < self.config.min_text_length:
            score -= SHORT_TEXT_PENALTY
            logger.debug(f"Text too short: {len(raw_text)} chars")

        if raw_text and garbled_percent(raw_text) > self.config.max_garbled_percent:
            score -= GARBLED_PENALTY
            logger.debug(f"Too many garbled characters: {garbled_percent(raw_text):.1f}%")

        if tx_count < self.config.min_transactions:
            score -= FEW_TRANSACTIONS_PENALTY

        if any(tx.amount is None or not (tx.description or "").strip() for tx in transactions):
            score -= INVALID_ROWS_PENALTY

        score = max(0, min(100, score))
        logger.info(
            f"Quality score: {score} (transactions: {tx_count}, valid: {round(valid_ratio * 100)}%, "
            f"text: {len(raw_text) if raw_text else 0} chars)"
        )
        return score

    def score(self, parse: ParseResult, raw_text: Optional[str], source: str) -> ScoredParse:
        """Evaluate a parse and wrap it with its score and provenance tag."""
        return ScoredParse(parse=parse, score=self.evaluate(parse, raw_text), source=source, raw_text=raw_text or "")

    @staticmethod
    def _valid_row_ratio(parse: ParseResult) -> float:
        if not parse.transactions:
            return 0.0
        valid = sum(
            1 for tx in parse.transactions
            if tx.date is not None and tx.amount is not None and tx.amount != Decimal("0")
        )
        return valid / len(parse.transactions)


__all__ = ['ParseQualityEvaluator', 'garbled_percent', 'is_garbled_char']
