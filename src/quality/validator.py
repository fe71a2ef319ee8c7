"""
Parse Quality Validator.

Accepts or rejects a scored parse. Rejection reasons are checked in a
fixed order and the first failing one is reported:

    1. "Score too low: X < Y"
    2. "No transactions found"
    3. "Too few transactions: X < Y"
    4. "No due date found"
    5. "No total amount or is zero"
"""

from typing import Optional

from src.parsers.models import ScoredParse
from src.utils.logger import get_logger
from src.utils.exceptions import QualityRejectionError
from .config import QualityConfig

# Initialize module logger
logger = get_logger(__name__)


class ParseQualityValidator:
    """
    Validates scored parses against the quality thresholds.

    Example:
        >>> validator = ParseQualityValidator()
        >>> validator.is_valid(scored)
        True
    """

    def __init__(self, config: Optional[QualityConfig] = None) -> None:
        self.config = config or QualityConfig.from_config()

    def reject_reason(self, scored: Optional[ScoredParse]) -> Optional[str]:
        """
        Return the first failing rule, or None when the parse is acceptable.
        """
        if scored is None:
            return "No parse result"

        config = self.config
        if scored.score < config.min_score_for_acceptance:
            return f"Score too low: {scored.score} < {config.min_score_for_acceptance}"

        tx_count = len(scored.transactions)
        if tx_count == 0:
            return "No transactions found"
        if tx_count < config.min_transactions:
            return f"Too few transactions: {tx_count} < {config.min_transactions}"

        if scored.due_date is None:
            return "No due date found"

        if scored.total_amount is None or scored.total_amount <= 0:
            return "No total amount or is zero"

        return None

    def is_valid(self, scored: Optional[ScoredParse]) -> bool:
        logger.debug(f"Validating with {self.config.description()}")
        reason = self.reject_reason(scored)
        if reason is not None:
            logger.warning(f"REJECTED: {reason}")
            return False
        logger.info(f"ACCEPTED: score={scored.score} transactions={len(scored.transactions)}")
        return True

    def is_high_quality(self, scored: Optional[ScoredParse]) -> bool:
        if scored is None:
            return False
        return scored.score >= self.config.min_score_for_high_quality

    def validate_or_raise(self, scored: ScoredParse) -> ScoredParse:
        """
        Return the parse unchanged when valid.

        Raises:
            QualityRejectionError: With the first failing reason.
        """
        reason = self.reject_reason(scored)
        if reason is not None:
            logger.warning(f"REJECTED: {reason}")
            raise QualityRejectionError(reason, scored.score if scored else None)
        logger.info(f"ACCEPTED: score={scored.score} transactions={len(scored.transactions)}")
        return scored


__all__ = ['ParseQualityValidator']
