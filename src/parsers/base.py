"""
Layout Parser Base Classes.

Every issuer layout is one InvoiceParserStrategy. Strategies are
stateless: the same text always yields the same applicability verdict,
due date and rows, so the selector can evaluate all of them on one text
without side effects.

Strategies that can send the original PDF to the remote structured
extractor also implement DocumentAwareParser.
"""

import re
from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional

from .models import ParseResult, TransactionCandidate

_CARD_FINAL = re.compile(
    r"(?:final|cart[aã]o\s+final|card\s+ending\s+in|terminad[oa]\s+em)\s*[:\-]?\s*(\d{4})\b",
    re.IGNORECASE
)
_MASKED_CARD = re.compile(r"(?:[\*xX\.]{2,}\s*){1,3}(\d{4})\b")


class InvoiceParserStrategy(ABC):
    """
    Base class for issuer layout parsers.

    Attributes:
        name: Stable identifier used in logs, configuration and reports.
        bank_label: Issuer label attached to the ParseResult.
        uses_net_total: When the declared total is missing, derive it
            from the net sum (expenses minus income) instead of the
            expense sum.
    """

    name: str = "base"
    bank_label: Optional[str] = None
    uses_net_total: bool = False

    @abstractmethod
    def is_applicable(self, text: str) -> bool:
        """Return True when the text looks like this issuer's layout."""

    @abstractmethod
    def extract_due_date(self, text: str) -> Optional[date]:
        """Return the invoice due date, or None."""

    @abstractmethod
    def extract_transactions(self, text: str) -> List[TransactionCandidate]:
        """Return the invoice rows in document order."""

    def extract_card_last_four(self, text: str) -> Optional[str]:
        """
        Find the last four digits of the card.

        Looks for "final 1234" style labels first, then masked numbers
        like "**** **** **** 1234".
        """
        if not text:
            return None
        match = _CARD_FINAL.search(text) or _MASKED_CARD.search(text)
        return match.group(1) if match else None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class DocumentAwareParser(ABC):
    """
    Mixin for strategies that can parse from the original PDF bytes.

    The pipeline calls parse_with_document() after selection. A non-None
    result overrides the text-based due date and rows.
    """

    @abstractmethod
    def parse_with_document(self, data: bytes, text: str) -> Optional[ParseResult]:
        """
        Parse the invoice with access to the original document.

        Args:
            data: Raw PDF bytes.
            text: Text the strategy was selected on.

        Returns:
            ParseResult, or None when nothing better than the text parse
            is available.
        """


__all__ = ['InvoiceParserStrategy', 'DocumentAwareParser']
