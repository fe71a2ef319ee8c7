"""
Parser Selector.

Evaluates every strategy on one text and picks the best. A strategy's
score is built from, highest weight first:

    applicable                          1,000,000
    due date found                        100,000
    rows found (applicable or dated)       10,000 + min(5,000, 20 per row)

The first strategy in priority order wins ties. When nothing scores,
the first strategy is returned as a best-effort choice so the pipeline
can still try OCR instead of failing immediately.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence, Tuple

from src.utils.logger import get_logger
from src.utils.exceptions import UnsupportedLayoutError
from .base import InvoiceParserStrategy
from .models import TransactionCandidate

# Initialize module logger
logger = get_logger(__name__)

APPLICABLE_WEIGHT = 1_000_000
DUE_DATE_WEIGHT = 100_000
TRANSACTIONS_WEIGHT = 10_000
PER_TRANSACTION_WEIGHT = 20
MAX_TRANSACTION_BONUS = 5_000


@dataclass(frozen=True)
class Candidate:
    """Outcome of evaluating one strategy on a text."""
    parser: InvoiceParserStrategy
    score: int
    applicable: bool
    due_date: Optional[date]
    tx_count: int
    transactions: Tuple[TransactionCandidate, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Selection:
    """
    Result of a selection run.

    Attributes:
        chosen: The winning candidate.
        evaluated: Every candidate, in priority order.
        best_effort: True when no strategy scored and the first one was
            picked by default.
    """
    chosen: Candidate
    evaluated: Tuple[Candidate, ...]
    best_effort: bool = False

    @property
    def parser(self) -> InvoiceParserStrategy:
        return self.chosen.parser


def score_candidate(applicable: bool, due_date: Optional[date], tx_count: int) -> int:
    """Combine the selection signals into one comparable score."""
    score = 0
    if applicable:
        score += APPLICABLE_WEIGHT
    if due_date is not None:
        score += DUE_DATE_WEIGHT
    # Rows alone do not count; most strategies find some "dd/mm ... 1,00" lines
    if tx_count > 0 and (applicable or due_date is not None):
        score += TRANSACTIONS_WEIGHT + min(MAX_TRANSACTION_BONUS, PER_TRANSACTION_WEIGHT * tx_count)
    if score == 0 and applicable and due_date is not None:
        score = 1
    return score


class ParserSelector:
    """
    Chooses the layout strategy for a text.

    Example:
        >>> selector = ParserSelector(build_default_strategies())
        >>> selection = selector.select(text)
        >>> selection.parser.name
        'bradesco'
    """

    def __init__(self, strategies: Sequence[InvoiceParserStrategy]):
        self.strategies = list(strategies)

    def evaluate(self, strategy: InvoiceParserStrategy, text: str) -> Candidate:
        """
        Run one strategy's applicability, due date and row extraction.

        A strategy that raises is treated as not applicable, without a
        due date and without rows.
        """
        try:
            applicable = bool(strategy.is_applicable(text))
        except Exception as e:
            logger.debug(f"{strategy.name}.is_applicable failed: {e}")
            applicable = False

        try:
            due_date = strategy.extract_due_date(text)
        except Exception as e:
            logger.debug(f"{strategy.name}.extract_due_date failed: {e}")
            due_date = None

        try:
            transactions = tuple(strategy.extract_transactions(text) or ())
        except Exception as e:
            logger.debug(f"{strategy.name}.extract_transactions failed: {e}")
            transactions = ()

        return Candidate(
            parser=strategy,
            score=score_candidate(applicable, due_date, len(transactions)),
            applicable=applicable,
            due_date=due_date,
            tx_count=len(transactions),
            transactions=transactions,
        )

    def select(self, text: str) -> Selection:
        """
        Evaluate all strategies and pick the winner.

        Args:
            text: Invoice text.

        Returns:
            Selection with the chosen candidate and every evaluated one.

        Raises:
            UnsupportedLayoutError: If no strategies are registered.
        """
        if not self.strategies:
            raise UnsupportedLayoutError("no parser strategies registered")

        evaluated: List[Candidate] = []
        best: Optional[Candidate] = None
        for strategy in self.strategies:
            candidate = self.evaluate(strategy, text)
            evaluated.append(candidate)
            logger.debug(
                f"Parser candidate {strategy.name}: score={candidate.score} applicable={candidate.applicable} "
                f"due={candidate.due_date} txs={candidate.tx_count}"
            )
            if best is None or candidate.score > best.score:
                best = candidate

        if best.score <= 0:
            logger.info(f"No parser matched; using {evaluated[0].parser.name} as best effort")
            return Selection(chosen=evaluated[0], evaluated=tuple(evaluated), best_effort=True)

        logger.info(
            f"Selected parser {best.parser.name} (score={best.score}, due={best.due_date}, txs={best.tx_count})"
        )
        return Selection(chosen=best, evaluated=tuple(evaluated), best_effort=False)


__all__ = ['Candidate', 'Selection', 'ParserSelector', 'score_candidate']
