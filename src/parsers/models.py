"""
Parser Data Classes.

This module defines the immutable records produced by layout parsers
and by quality scoring:

    TransactionCandidate  one invoice row
    ParseResult           the raw output of one parse attempt
    ScoredParse           a ParseResult plus its quality score, source tag
                          and the text it came from

Scoring never mutates a ParseResult; it produces a new ScoredParse.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class TransactionType(str, Enum):
    """Direction of money for a transaction."""
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"


class TransactionScope(str, Enum):
    """Bookkeeping scope attached to a transaction."""
    PERSONAL = "PERSONAL"
    BUSINESS = "BUSINESS"


@dataclass(frozen=True)
class Installment:
    """Installment marker such as "03/10" (current=3, total=10)."""
    current: int
    total: int

    def __str__(self) -> str:
        return f"{self.current:02d}/{self.total:02d}"


@dataclass(frozen=True)
class TransactionCandidate:
    """
    One transaction row recovered from an invoice.

    Attributes:
        description: Merchant or row description.
        amount: Absolute amount (direction is given by `type`).
        type: EXPENSE or INCOME.
        category: Best-effort category label.
        date: Purchase date. May be None for damaged rows.
        scope: PERSONAL or BUSINESS.
        due_date: Invoice due date, attached once known.
        card_name: Card display name (e.g. "Itau Personnalite final 8578").
        cardholder_name: Holder name when the layout prints it.
        installment: Installment pair when the row is a parcel.
    """
    description: Optional[str]
    amount: Optional[Decimal]
    type: TransactionType = TransactionType.EXPENSE
    category: Optional[str] = None
    date: Optional[date] = None
    scope: TransactionScope = TransactionScope.PERSONAL
    due_date: Optional[date] = None
    card_name: Optional[str] = None
    cardholder_name: Optional[str] = None
    installment: Optional[Installment] = None

    @property
    def is_valid(self) -> bool:
        """A row needs at least a description and an amount."""
        return bool(self.description and self.description.strip()) and self.amount is not None

    @property
    def is_expense(self) -> bool:
        return self.type == TransactionType.EXPENSE

    def with_due_date(self, due_date: Optional[date]) -> 'TransactionCandidate':
        return replace(self, due_date=due_date)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            'description': self.description,
            'amount': str(self.amount) if self.amount is not None else None,
            'type': self.type.value,
            'category': self.category,
            'date': self.date.isoformat() if self.date else None,
            'scope': self.scope.value,
            'due_date': self.due_date.isoformat() if self.due_date else None,
            'card_name': self.card_name,
            'cardholder_name': self.cardholder_name,
            'installment': (
                {'current': self.installment.current, 'total': self.installment.total}
                if self.installment else None
            ),
        }


@dataclass(frozen=True)
class ParseResult:
    """
    Output of one parse attempt by the chosen layout parser.

    Attributes:
        transactions: Parsed rows, in document order.
        due_date: Invoice due date.
        total_amount: Declared invoice total (or the derived sum).
        card_last_four: Last four digits of the card, when recovered.
        bank_name: Issuer label.
        parser_name: Name of the strategy that produced the result.
    """
    transactions: Tuple[TransactionCandidate, ...] = field(default_factory=tuple)
    due_date: Optional[date] = None
    total_amount: Optional[Decimal] = None
    card_last_four: Optional[str] = None
    bank_name: Optional[str] = None
    parser_name: Optional[str] = None

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)

    def describe(self) -> str:
        return (
            f"ParseResult{{parser={self.parser_name}, transactions={self.transaction_count}, "
            f"dueDate={self.due_date}, total={self.total_amount}}}"
        )


@dataclass(frozen=True)
class ScoredParse:
    """
    A ParseResult after quality evaluation.

    Attributes:
        parse: The evaluated parse.
        score: Quality score in [0, 100].
        source: Provenance tag of the text ("text-layer", "ocr", ...).
        raw_text: The text the parse was derived from.
    """
    parse: ParseResult
    score: int
    source: str
    raw_text: str = ""

    @property
    def transactions(self) -> Tuple[TransactionCandidate, ...]:
        return self.parse.transactions

    @property
    def due_date(self) -> Optional[date]:
        return self.parse.due_date

    @property
    def total_amount(self) -> Optional[Decimal]:
        return self.parse.total_amount

    def describe(self) -> str:
        return (
            f"ScoredParse{{source={self.source}, score={self.score}, "
            f"transactions={self.parse.transaction_count}, dueDate={self.due_date}, "
            f"total={self.total_amount}}}"
        )


__all__ = [
    'TransactionType',
    'TransactionScope',
    'Installment',
    'TransactionCandidate',
    'ParseResult',
    'ScoredParse',
]
