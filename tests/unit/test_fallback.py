"""Unit tests for the external service arbitration."""

import pytest

from src.parsers.models import ParseResult, ScoredParse
from src.pipeline.fallback import FallbackConfig, FallbackStrategy
from src.pipeline.state import FallbackDecision, TextSource


def scored(score, source=TextSource.TEXT_LAYER):
    return ScoredParse(parse=ParseResult(), score=score, source=source.value)


@pytest.fixture
def strategy():
    return FallbackStrategy(FallbackConfig(high_quality_score=75, significant_margin=20, near_tie_margin=5))


class TestShouldTryExternal:
    """Tests for the external consultation threshold."""

    @pytest.mark.parametrize("score,expected", [(0, True), (74, True), (75, False), (100, False)])
    def test_threshold(self, strategy, score, expected):
        """Test only scores below the high quality bar consult the service."""
        assert strategy.should_try_external(score) is expected


class TestDecide:
    """Tests for FallbackStrategy.decide."""

    def test_no_external_result(self, strategy):
        """Test a failed service keeps the local result."""
        assert strategy.decide(scored(40), None) == FallbackDecision.LOCAL_FALLBACK

    @pytest.mark.parametrize("local,external,expected", [
        (40, 60, FallbackDecision.EXTERNAL),
        (40, 90, FallbackDecision.EXTERNAL),
        (40, 59, FallbackDecision.LOCAL),
        (40, 40, FallbackDecision.LOCAL),
        (40, 35, FallbackDecision.LOCAL),
        (40, 34, FallbackDecision.LOCAL),
        (0, 10, FallbackDecision.LOCAL),
    ])
    def test_margins(self, strategy, local, external, expected):
        """Test the significant and near-tie margins."""
        decision = strategy.decide(scored(local), scored(external, TextSource.EXTERNAL_SERVICE))
        assert decision == expected

    def test_missing_local_counts_as_zero(self, strategy):
        """Test a missing local result is compared as score zero."""
        decision = strategy.decide(None, scored(20, TextSource.EXTERNAL_SERVICE))
        assert decision == FallbackDecision.EXTERNAL

    def test_small_lead_beyond_near_tie(self):
        """Test a lead smaller than the significant margin still wins past the near-tie window."""
        strategy = FallbackStrategy(FallbackConfig(significant_margin=20, near_tie_margin=-5))
        decision = strategy.decide(scored(40), scored(42, TextSource.EXTERNAL_SERVICE))
        assert decision == FallbackDecision.EXTERNAL


class TestDescribe:
    """Tests for the decision summaries."""

    @pytest.mark.parametrize("decision,expected", [
        (FallbackDecision.EXTERNAL, "Using external result (score: 80)"),
        (FallbackDecision.LOCAL, "Using local result (score: 40)"),
        (FallbackDecision.LOCAL_FALLBACK, "Using local result as fallback (external failed, score: 40)"),
    ])
    def test_describe(self, decision, expected):
        assert FallbackStrategy.describe(decision, 40, 80) == expected


class TestFallbackConfig:
    """Tests for loading FallbackConfig from settings."""

    def test_from_settings(self):
        """Test the shipped thresholds."""
        config = FallbackConfig.from_config()
        assert config.high_quality_score == 75
        assert config.significant_margin == 20
        assert config.near_tie_margin == 5
