"""
Quality Module for the Card Invoice Extraction System.

This module provides:
    - Quality thresholds (QualityConfig)
    - 0-100 scoring of parse results
    - Acceptance and rejection of scored parses
"""

from .config import QualityConfig
from .evaluator import ParseQualityEvaluator
from .validator import ParseQualityValidator

__all__ = ['QualityConfig', 'ParseQualityEvaluator', 'ParseQualityValidator']
