"""
Tesseract OCR Backend.

This module provides page-level OCR using Tesseract through pytesseract.
Invoices are dense tables, so the default page segmentation mode treats
each page as a single uniform block of text.

Requirements:
    - Tesseract OCR installed on the system
    - Language data for the configured language (default "por")
"""

from typing import Optional

import pytesseract
from PIL import Image

from config import get_config
from src.utils.logger import get_logger
from src.utils.exceptions import OCREngineNotAvailableError, OCRProcessingError

# Initialize module logger
logger = get_logger(__name__)


class TesseractBackend:
    """
    Tesseract OCR backend implementation.

    Availability is checked lazily on first use so that a pipeline can be
    built on machines without Tesseract; the failure only surfaces when
    OCR is actually required.

    Attributes:
        language: Tesseract language code(s), e.g. "por" or "por+eng".
        psm: Page Segmentation Mode (0-13).
        oem: OCR Engine Mode (0-3).
        tessdata_path: Optional directory holding the traineddata files.
        timeout: Seconds before a page is abandoned (0 disables).

    Example:
        >>> backend = TesseractBackend(language="por")
        >>> text = backend.get_text(page_image)
    """

    def __init__(
        self,
        language: Optional[str] = None,
        psm: Optional[int] = None,
        oem: Optional[int] = None,
        tessdata_path: Optional[str] = None,
        timeout: Optional[float] = None
    ) -> None:
        self.language = language or get_config("ocr.language", "por")
        self.psm = psm if psm is not None else get_config("ocr.psm", 6)
        self.oem = oem if oem is not None else get_config("ocr.oem", 3)
        self.tessdata_path = tessdata_path if tessdata_path is not None else get_config("ocr.tessdata_path", "")
        self.timeout = timeout if timeout is not None else get_config("ocr.timeout_seconds", 60)
        self._version = None

        logger.debug(
            f"TesseractBackend initialized (lang={self.language}, "
            f"psm={self.psm}, oem={self.oem}, tessdata='{self.tessdata_path}')"
        )

    def check_available(self) -> str:
        """
        Verify that the Tesseract binary can be executed.

        Returns:
            Tesseract version string.

        Raises:
            OCREngineNotAvailableError: If Tesseract is not installed.
        """
        if self._version is None:
            try:
                self._version = str(pytesseract.get_tesseract_version())
            except (pytesseract.TesseractNotFoundError, OSError) as e:
                raise OCREngineNotAvailableError("tesseract", f"not installed or not in PATH: {e}")
            logger.info(f"Tesseract version: {self._version}")
        return self._version

    def _build_config(self) -> str:
        """
        Build the Tesseract configuration string.

        Returns:
            Configuration string for Tesseract.
        """
        config_parts = [
            f"--psm {self.psm}",
            f"--oem {self.oem}"
        ]

        if self.tessdata_path:
            config_parts.append(f'--tessdata-dir "{self.tessdata_path}"')

        return ' '.join(config_parts)

    def get_text(self, image: Image.Image, source: str = "page") -> str:
        """
        Recognize the text of one rendered page.

        Args:
            image: Page image.
            source: Label used in error details.

        Returns:
            Recognized text (may be empty).

        Raises:
            OCREngineNotAvailableError: If Tesseract or the language data is missing.
            OCRProcessingError: If recognition fails or times out.
        """
        self.check_available()

        if image.mode != 'RGB':
            image = image.convert('RGB')

        try:
            return pytesseract.image_to_string(
                image,
                lang=self.language,
                config=self._build_config(),
                timeout=self.timeout or 0
            )
        except pytesseract.TesseractError as e:
            # Missing traineddata is a configuration problem, not a page problem
            if "Failed loading language" in str(e) or "traineddata" in str(e):
                raise OCREngineNotAvailableError("tesseract", f"language data '{self.language}' not found")
            raise OCRProcessingError(source, str(e))
        except RuntimeError as e:
            # pytesseract raises RuntimeError on timeout
            raise OCRProcessingError(source, f"Tesseract timed out: {e}")
