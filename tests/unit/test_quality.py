"""Unit tests for quality scoring and validation."""

from dataclasses import replace
from decimal import Decimal

import pytest

from src.parsers.models import ParseResult, ScoredParse
from src.quality import ParseQualityEvaluator, ParseQualityValidator, QualityConfig
from src.quality.evaluator import garbled_percent, is_garbled_char
from src.utils.exceptions import QualityRejectionError

LONG_TEXT = "03/11 LOJA 10,00\n" * 20


class TestGarbledCharacters:
    """Tests for the garbled character helpers."""

    @pytest.mark.parametrize("ch,expected", [
        ("\ufffd", True),
        ("\x01", True),
        ("\n", False),
        ("\t", False),
        ("a", False),
        ("ç", False),
    ])
    def test_is_garbled_char(self, ch, expected):
        """Test replacement and control characters are garbled."""
        assert is_garbled_char(ch) is expected

    def test_garbled_percent(self):
        """Test the share is computed over the whole text."""
        assert garbled_percent("a" * 90 + "\ufffd" * 10) == pytest.approx(10.0)
        assert garbled_percent("") == 0.0


class TestParseQualityEvaluator:
    """Tests for ParseQualityEvaluator scoring."""

    @pytest.fixture
    def evaluator(self, quality_config):
        return ParseQualityEvaluator(quality_config)

    def test_complete_parse_scores_100(self, evaluator, complete_parse):
        """Test a parse with every positive signal reaches the maximum."""
        assert evaluator.evaluate(complete_parse, LONG_TEXT) == 100

    def test_missing_parse_scores_zero(self, evaluator):
        """Test a missing parse scores zero."""
        assert evaluator.evaluate(None, LONG_TEXT) == 0

    def test_empty_parse_clamped_to_zero(self, evaluator):
        """Test penalties never push the score below zero."""
        assert evaluator.evaluate(ParseResult(), "") == 0

    def test_short_text_penalty(self, evaluator, complete_parse):
        """Test text below the minimum length loses points."""
        assert evaluator.evaluate(complete_parse, "curto") == 70

    def test_garbled_text_penalty(self, evaluator, complete_parse):
        """Test too many replacement characters lose points."""
        text = LONG_TEXT + "\ufffd" * 40
        assert evaluator.evaluate(complete_parse, text) == 80

    def test_few_transactions(self, evaluator, complete_parse):
        """Test fewer rows than the minimum lose the volume points and a penalty."""
        parse = replace(complete_parse, transactions=complete_parse.transactions[:2])
        assert evaluator.evaluate(parse, LONG_TEXT) == 55

    def test_row_without_amount(self, evaluator, complete_parse, make_transaction):
        """Test a row without an amount is penalised."""
        rows = complete_parse.transactions[:4] + (make_transaction(amount=None),)
        parse = replace(complete_parse, transactions=rows)
        assert evaluator.evaluate(parse, LONG_TEXT) == 85

    @pytest.mark.parametrize("card", [None, "43", "abcd"])
    def test_card_digits_required(self, evaluator, complete_parse, card):
        """Test only four digits earn the card points."""
        parse = replace(complete_parse, card_last_four=card)
        assert evaluator.evaluate(parse, LONG_TEXT) == 90

    def test_zero_total_earns_nothing(self, evaluator, complete_parse):
        """Test a zero total does not count as found."""
        parse = replace(complete_parse, total_amount=Decimal("0"))
        assert evaluator.evaluate(parse, LONG_TEXT) == 80

    def test_score_wraps_parse(self, evaluator, complete_parse):
        """Test score() keeps the parse and tags its source."""
        scored = evaluator.score(complete_parse, LONG_TEXT, "ocr")
        assert scored.parse is complete_parse
        assert scored.source == "ocr"
        assert scored.score == 100
        assert scored.raw_text == LONG_TEXT


class TestParseQualityValidator:
    """Tests for ParseQualityValidator acceptance rules."""

    @pytest.fixture
    def validator(self):
        return ParseQualityValidator(QualityConfig())

    def scored(self, parse, score=90):
        return ScoredParse(parse=parse, score=score, source="text-layer")

    def test_accepts_complete_parse(self, validator, complete_parse):
        """Test a complete, well scored parse is accepted."""
        assert validator.reject_reason(self.scored(complete_parse)) is None
        assert validator.is_valid(self.scored(complete_parse)) is True

    def test_missing_parse(self, validator):
        """Test a missing parse is rejected."""
        assert validator.reject_reason(None) == "No parse result"
        assert validator.is_valid(None) is False

    def test_score_checked_first(self, validator):
        """Test the score is reported before any content problem."""
        assert validator.reject_reason(self.scored(ParseResult(), score=10)) == "Score too low: 10 < 50"

    def test_no_transactions(self, validator):
        """Test an empty parse is rejected."""
        assert validator.reject_reason(self.scored(ParseResult())) == "No transactions found"

    def test_too_few_transactions(self, validator, complete_parse):
        """Test the row count threshold."""
        parse = replace(complete_parse, transactions=complete_parse.transactions[:2])
        assert validator.reject_reason(self.scored(parse)) == "Too few transactions: 2 < 3"

    def test_no_due_date(self, validator, complete_parse):
        """Test a parse without due date is rejected."""
        parse = replace(complete_parse, due_date=None, total_amount=None)
        assert validator.reject_reason(self.scored(parse)) == "No due date found"

    @pytest.mark.parametrize("total", [None, Decimal("0")])
    def test_no_total(self, validator, complete_parse, total):
        """Test a missing or zero total is rejected."""
        parse = replace(complete_parse, total_amount=total)
        assert validator.reject_reason(self.scored(parse)) == "No total amount or is zero"

    def test_high_quality_threshold(self, validator, complete_parse):
        """Test the high quality bar is inclusive."""
        assert validator.is_high_quality(self.scored(complete_parse, score=75)) is True
        assert validator.is_high_quality(self.scored(complete_parse, score=74)) is False
        assert validator.is_high_quality(None) is False

    def test_validate_or_raise(self, validator, complete_parse):
        """Test the exception carries the reason and score."""
        scored = self.scored(complete_parse)
        assert validator.validate_or_raise(scored) is scored

        with pytest.raises(QualityRejectionError) as exc_info:
            validator.validate_or_raise(self.scored(complete_parse, score=20))
        assert exc_info.value.reason == "Score too low: 20 < 50"
        assert exc_info.value.score == 20


class TestQualityConfig:
    """Tests for QualityConfig loading."""

    def test_defaults_from_settings(self):
        """Test the shipped settings match the documented defaults."""
        config = QualityConfig.from_config()
        assert config.min_score_for_acceptance == 50
        assert config.min_score_for_high_quality == 75
        assert config.min_transactions == 3

    def test_description(self):
        """Test the description lists every threshold."""
        text = QualityConfig().description()
        assert "acceptance=50" in text
        assert "maxGarbled=5.0%" in text
