"""
Input Handler Module for the Card Invoice Extraction System.

This module provides functionality for:
    - Loading and validating invoice PDFs from disk
    - Decrypting password-protected PDFs
    - Extracting the embedded text layer (plain and position-sorted)
    - Rendering pages to images for OCR

Supported formats:
    - PDF (digital and scanned)
"""

from .handler import InputHandler
from .pdf_processor import PDFProcessor, PdfDocument, RawDocument

__all__ = ['InputHandler', 'PDFProcessor', 'PdfDocument', 'RawDocument']
