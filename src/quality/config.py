"""
Quality Score Configuration.

Thresholds used by the evaluator and validator, loaded from the
"quality" section of settings.yaml.
"""

from dataclasses import dataclass

from config import get_config


@dataclass(frozen=True)
class QualityConfig:
    """
    Quality thresholds.

    Attributes:
        min_score_for_acceptance: Scores below this are rejected.
        min_score_for_high_quality: Scores at or above this skip the
            external extraction service.
        min_transactions: Minimum row count for acceptance.
        min_text_length: Texts shorter than this lose points.
        max_garbled_percent: Maximum share of garbled characters.
    """
    min_score_for_acceptance: int = 50
    min_score_for_high_quality: int = 75
    min_transactions: int = 3
    min_text_length: int = 800
    max_garbled_percent: float = 5.0

    @classmethod
    def from_config(cls) -> 'QualityConfig':
        """Build from the "quality" section of the configuration."""
        return cls(
            min_score_for_acceptance=int(get_config("quality.min_score_for_acceptance", 50)),
            min_score_for_high_quality=int(get_config("quality.min_score_for_high_quality", 75)),
            min_transactions=int(get_config("quality.min_transactions", 3)),
            min_text_length=int(get_config("quality.min_text_length", 800)),
            max_garbled_percent=float(get_config("quality.max_garbled_percent", 5.0)),
        )

    def description(self) -> str:
        return (
            f"QualityScoreConfig{{acceptance={self.min_score_for_acceptance}, "
            f"highQuality={self.min_score_for_high_quality}, minTx={self.min_transactions}, "
            f"minText={self.min_text_length}, maxGarbled={self.max_garbled_percent:.1f}%}}"
        )


__all__ = ['QualityConfig']
