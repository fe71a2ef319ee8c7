"""
OCR Result Data Classes.

This module defines the structures returned by the OCR engine: the
recognized text of each rendered page plus timing information.

Classes:
    OCRPage: Recognized text of a single page
    OCRResult: Complete OCR output for a document
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class OCRPage:
    """
    Represents the OCR output of a single page.

    Attributes:
        page_number: 1-based page number.
        text: Recognized text.
        processing_time: Seconds spent recognizing this page.
    """
    page_number: int
    text: str
    processing_time: float = 0.0

    @property
    def is_blank(self) -> bool:
        return not self.text or not self.text.strip()


@dataclass
class OCRResult:
    """
    Complete OCR output for a document.

    Attributes:
        pages: Per-page results in page order.
        total_pages: Number of pages in the document.
        language: Tesseract language used.
        dpi: Render resolution.
        processing_time: Total seconds spent rendering and recognizing.

    Example:
        >>> result = engine.extract(document)
        >>> print(f"{result.recognized_pages}/{result.total_pages} pages, {len(result.text)} chars")
    """
    pages: List[OCRPage] = field(default_factory=list)
    total_pages: int = 0
    language: str = ""
    dpi: int = 0
    processing_time: float = 0.0

    @property
    def text(self) -> str:
        """Text of all non-blank pages, one page per block."""
        return "\n".join(page.text for page in self.pages if not page.is_blank)

    @property
    def recognized_pages(self) -> int:
        return sum(1 for page in self.pages if not page.is_blank)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to dictionary format for logging and reports.

        Returns:
            Dictionary representation.
        """
        return {
            'pages': [
                {'page_number': p.page_number, 'chars': len(p.text), 'processing_time': round(p.processing_time, 3)}
                for p in self.pages
            ],
            'total_pages': self.total_pages,
            'recognized_pages': self.recognized_pages,
            'language': self.language,
            'dpi': self.dpi,
            'processing_time': round(self.processing_time, 3),
        }
