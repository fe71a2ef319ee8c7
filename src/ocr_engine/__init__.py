"""
OCR Engine Module for the Card Invoice Extraction System.

This module provides OCR for scanned invoices and for PDFs whose text
layer is missing or garbled:
    - Page rendering (through the PDF processor)
    - Page-level text recognition with Tesseract
    - Structured per-page OCR output
"""

from .engine import OCREngine
from .tesseract_backend import TesseractBackend
from .ocr_result import OCRResult, OCRPage

__all__ = ['OCREngine', 'TesseractBackend', 'OCRResult', 'OCRPage']
