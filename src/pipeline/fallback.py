"""
External Service Fallback Strategy.

Decides when to consult the external document-extraction service and
which of the two scored results to keep.

Decision rules, applied in order:
    1. no external result                  -> local-fallback
    2. external >= local + significant     -> external
    3. external >= local - near_tie        -> local
    4. external > local                    -> external
    5. otherwise                           -> local
"""

from dataclasses import dataclass
from typing import Optional

from config import get_config
from src.parsers.models import ScoredParse
from src.utils.logger import get_logger
from .state import FallbackDecision

# Initialize module logger
logger = get_logger(__name__)


@dataclass(frozen=True)
class FallbackConfig:
    """
    Arbitration thresholds.

    Attributes:
        high_quality_score: Local scores at or above this never consult
            the external service.
        significant_margin: Lead that makes the external result win outright.
        near_tie_margin: Deficit within which the local result is preferred.
    """
    high_quality_score: int = 75
    significant_margin: int = 20
    near_tie_margin: int = 5

    @classmethod
    def from_config(cls) -> 'FallbackConfig':
        return cls(
            high_quality_score=int(get_config("quality.min_score_for_high_quality", 75)),
            significant_margin=int(get_config("fallback.significant_margin", 20)),
            near_tie_margin=int(get_config("fallback.near_tie_margin", 5)),
        )


class FallbackStrategy:
    """
    Arbitrates between the local and the external extraction.

    Example:
        >>> strategy = FallbackStrategy()
        >>> strategy.should_try_external(60)
        True
        >>> strategy.decide(local, None)
        <FallbackDecision.LOCAL_FALLBACK: 'local-fallback'>
    """

    def __init__(self, config: Optional[FallbackConfig] = None) -> None:
        self.config = config or FallbackConfig.from_config()

    def should_try_external(self, current_score: int) -> bool:
        threshold = self.config.high_quality_score
        if current_score < threshold:
            logger.info(f"Low score ({current_score} < {threshold}), trying external service")
            return True
        logger.debug(f"Score ok ({current_score} >= {threshold}), no external fallback")
        return False

    def decide(self, local: Optional[ScoredParse], external: Optional[ScoredParse]) -> FallbackDecision:
        """
        Pick the result to keep.

        Args:
            local: Scored local result.
            external: Scored external result, None when the service
                failed or its text could not be parsed.

        Returns:
            FallbackDecision.
        """
        if external is None:
            logger.warning("External service failed; keeping the local result")
            return FallbackDecision.LOCAL_FALLBACK

        current = local.score if local is not None else 0
        other = external.score
        logger.info(f"Comparing scores: local={current}, external={other}")

        if other >= current + self.config.significant_margin:
            logger.info("External result significantly better")
            return FallbackDecision.EXTERNAL
        if other >= current - self.config.near_tie_margin:
            logger.info("Scores are close; preferring the local result")
            return FallbackDecision.LOCAL
        if other > current:
            return FallbackDecision.EXTERNAL
        return FallbackDecision.LOCAL

    @staticmethod
    def describe(decision: FallbackDecision, local_score: int, external_score: int) -> str:
        if decision == FallbackDecision.EXTERNAL:
            return f"Using external result (score: {external_score})"
        if decision == FallbackDecision.LOCAL_FALLBACK:
            return f"Using local result as fallback (external failed, score: {local_score})"
        return f"Using local result (score: {local_score})"


__all__ = ['FallbackConfig', 'FallbackStrategy']
