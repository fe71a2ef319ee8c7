"""
Extraction Pipeline Module for the Card Invoice Extraction System.

This module provides:
    - The extraction orchestrator with one-shot OCR retries
    - Heuristics for damaged text layers and total reconciliation
    - The external document-extraction service and its fallback arbitration
    - The final ExtractionResult
"""

from .state import FallbackDecision, OcrState, TextSource
from .extraction_result import ExtractionResult
from .external_service import ExternalExtractionService, ExtractedText
from .fallback import FallbackConfig, FallbackStrategy
from .orchestrator import ExtractionPipeline, PipelineConfig, build_pipeline

__all__ = [
    'FallbackDecision',
    'OcrState',
    'TextSource',
    'ExtractionResult',
    'ExternalExtractionService',
    'ExtractedText',
    'FallbackConfig',
    'FallbackStrategy',
    'ExtractionPipeline',
    'PipelineConfig',
    'build_pipeline',
]
