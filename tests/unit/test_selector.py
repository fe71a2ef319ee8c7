"""Unit tests for the parser selector."""

from datetime import date
from decimal import Decimal

import pytest

from src.parsers.base import InvoiceParserStrategy
from src.parsers.models import TransactionCandidate
from src.parsers.selector import ParserSelector, score_candidate
from src.utils.exceptions import UnsupportedLayoutError


class FakeStrategy(InvoiceParserStrategy):
    """Strategy returning fixed answers."""

    def __init__(self, name, applicable=False, due_date=None, rows=0, error=None):
        self.name = name
        self.applicable = applicable
        self.due_date = due_date
        self.rows = rows
        self.error = error

    def is_applicable(self, text):
        if self.error:
            raise self.error
        return self.applicable

    def extract_due_date(self, text):
        if self.error:
            raise self.error
        return self.due_date

    def extract_transactions(self, text):
        if self.error:
            raise self.error
        return [TransactionCandidate(description=f"ROW {i}", amount=Decimal("1.00")) for i in range(self.rows)]


DUE = date(2025, 11, 21)


class TestScoreCandidate:
    """Tests for the selection score."""

    @pytest.mark.parametrize("applicable,due_date,tx_count,expected", [
        (False, None, 0, 0),
        (False, None, 5, 0),
        (True, None, 0, 1_000_000),
        (False, DUE, 3, 110_060),
        (True, DUE, 10, 1_110_200),
        (True, DUE, 1000, 1_115_000),
    ])
    def test_weights(self, applicable, due_date, tx_count, expected):
        """Test each signal's weight and the row bonus cap."""
        assert score_candidate(applicable, due_date, tx_count) == expected


class TestParserSelector:
    """Tests for ParserSelector.select."""

    def test_applicable_beats_rows(self):
        """Test applicability outranks a due date with many rows."""
        selector = ParserSelector([
            FakeStrategy("loose", due_date=DUE, rows=200),
            FakeStrategy("issuer", applicable=True),
        ])
        selection = selector.select("text")
        assert selection.parser.name == "issuer"
        assert selection.best_effort is False
        assert len(selection.evaluated) == 2

    def test_tie_keeps_priority_order(self):
        """Test the earlier strategy wins a tie."""
        selector = ParserSelector([
            FakeStrategy("first", applicable=True, due_date=DUE, rows=4),
            FakeStrategy("second", applicable=True, due_date=DUE, rows=4),
        ])
        assert selector.select("text").parser.name == "first"

    def test_raising_strategy_is_skipped(self):
        """Test a strategy that raises scores zero instead of failing selection."""
        selector = ParserSelector([
            FakeStrategy("broken", error=ValueError("boom")),
            FakeStrategy("working", due_date=DUE, rows=2),
        ])
        selection = selector.select("text")
        assert selection.parser.name == "working"
        broken = selection.evaluated[0]
        assert broken.score == 0
        assert broken.tx_count == 0

    def test_best_effort_when_nothing_scores(self):
        """Test the first strategy is returned when nobody matches."""
        selector = ParserSelector([FakeStrategy("first", rows=3), FakeStrategy("second")])
        selection = selector.select("text")
        assert selection.parser.name == "first"
        assert selection.best_effort is True

    def test_candidate_keeps_rows(self):
        """Test the chosen candidate carries the rows found during selection."""
        selector = ParserSelector([FakeStrategy("issuer", applicable=True, due_date=DUE, rows=3)])
        chosen = selector.select("text").chosen
        assert chosen.tx_count == 3
        assert len(chosen.transactions) == 3
        assert chosen.due_date == DUE

    def test_empty_registry(self):
        """Test selecting without strategies is an unsupported layout."""
        with pytest.raises(UnsupportedLayoutError):
            ParserSelector([]).select("text")
