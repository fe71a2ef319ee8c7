"""
Card Invoice Extraction System - Source Package.

This package contains the core modules of the credit-card invoice
extraction system for Brazilian issuers.

Modules:
    - input_handler: PDF loading, decryption and text-layer extraction
    - ocr_engine: Page rendering and Tesseract OCR
    - parsers: Layout parser strategies and the parser selector
    - quality: Parse quality scoring and validation
    - pipeline: Orchestration, OCR retries and external fallback
    - output_handler: JSON and Excel output
    - utils: Logging, exceptions, retries and normalization helpers

Architecture:
    Input -> Text layer -> Selector -> Parser -> Quality -> Output
                 |                        |
                OCR <---- one-shot retry --+
                                          |
                           External service arbitration
"""

__version__ = "1.0.0"

__all__ = [
    'input_handler',
    'ocr_engine',
    'parsers',
    'quality',
    'pipeline',
    'output_handler',
    'utils'
]
