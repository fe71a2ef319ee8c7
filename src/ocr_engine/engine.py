"""
Main OCR Engine Module.

This module provides the OCREngine class the extraction pipeline uses
when the text layer of a PDF is missing or cannot be trusted. The engine
renders the first pages of the document and recognizes each one with
Tesseract.

Usage:
    from src.ocr_engine import OCREngine

    engine = OCREngine(pdf_processor)
    text = engine.extract_text(document)
"""

import time
from typing import Optional

from config import get_config
from src.input_handler.pdf_processor import PDFProcessor, PdfDocument
from src.utils.logger import get_logger
from src.utils.exceptions import OCREngineNotAvailableError, OCRProcessingError
from .ocr_result import OCRPage, OCRResult
from .tesseract_backend import TesseractBackend

# Initialize module logger
logger = get_logger(__name__)


class OCREngine:
    """
    Document-level OCR engine.

    Attributes:
        enabled: Whether OCR may run at all.
        dpi: Render resolution for OCR.
        max_pages: Maximum number of pages recognized per document.

    Example:
        >>> engine = OCREngine(PDFProcessor())
        >>> result = engine.extract(document)
        >>> print(result.recognized_pages)
    """

    def __init__(
        self,
        pdf_processor: PDFProcessor,
        backend: Optional[TesseractBackend] = None,
        enabled: Optional[bool] = None,
        dpi: Optional[int] = None,
        max_pages: Optional[int] = None
    ) -> None:
        """
        Initialize the OCR engine.

        Args:
            pdf_processor: Renders document pages to images.
            backend: Tesseract backend. Built from config when omitted.
            enabled: Overrides ocr.enabled.
            dpi: Overrides ocr.render_dpi.
            max_pages: Overrides ocr.max_pages.
        """
        self.pdf_processor = pdf_processor
        self.backend = backend or TesseractBackend()
        self.enabled = bool(get_config("ocr.enabled", True) if enabled is None else enabled)
        self.dpi = max(72, int(dpi if dpi is not None else get_config("ocr.render_dpi", 220)))
        self.max_pages = max(1, int(max_pages if max_pages is not None else get_config("ocr.max_pages", 6)))

        if self.enabled:
            logger.info(
                f"OCR enabled: language='{self.backend.language}' dpi={self.dpi} max_pages={self.max_pages}"
            )
        else:
            logger.info("OCR disabled (ocr.enabled=false)")

    def extract(self, document: PdfDocument) -> OCRResult:
        """
        Recognize the text of a document.

        Args:
            document: Opened document.

        Returns:
            OCRResult with one entry per recognized page.

        Raises:
            OCREngineNotAvailableError: If OCR is disabled or Tesseract is missing.
            OCRProcessingError: If rendering or recognition fails.
        """
        if not self.enabled:
            raise OCREngineNotAvailableError("tesseract", "OCR is disabled. Enable it with ocr.enabled=true")

        start_time = time.time()
        pages_to_process = min(document.page_count, self.max_pages)

        try:
            images = self.pdf_processor.render_pages(document, self.dpi, pages_to_process)
        except Exception as e:
            raise OCRProcessingError(document.name, f"Page rendering failed: {e}")

        result = OCRResult(total_pages=document.page_count, language=self.backend.language, dpi=self.dpi)

        for index, image in enumerate(images, start=1):
            page_start = time.time()
            text = self.backend.get_text(image, source=f"{document.name}#page{index}")
            result.pages.append(OCRPage(page_number=index, text=text or "", processing_time=time.time() - page_start))

        result.processing_time = time.time() - start_time

        logger.info(
            f"OCR completed: pages={pages_to_process}/{document.page_count} dpi={self.dpi} "
            f"elapsed={result.processing_time:.2f}s chars={len(result.text)} "
            f"recognized_pages={result.recognized_pages}"
        )
        return result

    def extract_text(self, document: PdfDocument) -> str:
        """
        Recognize the text of a document and return it as one string.

        Args:
            document: Opened document.

        Returns:
            Recognized text of all pages.
        """
        return self.extract(document).text
