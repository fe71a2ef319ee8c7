"""
PDF Processor Module.

This module handles everything the pipeline needs from a PDF file:
    - Decryption with a caller-supplied password (attempted once)
    - Text-layer extraction in content-stream order (pdfplumber)
    - Text-layer extraction in position-sorted reading order (PyMuPDF)
    - Page rendering for OCR (PyMuPDF, or pdf2image/Poppler)

Documents are handled as in-memory bytes; nothing is written to disk.
"""

import io
from dataclasses import dataclass
from typing import List, Optional

import fitz  # PyMuPDF
import pdfplumber
from pdf2image import convert_from_bytes
from PIL import Image

from config import get_config
from src.utils.logger import get_logger
from src.utils.exceptions import (
    CorruptedFileError,
    EmptyDocumentError,
    IncorrectPasswordError,
    InputError,
    PasswordRequiredError,
)

# Initialize module logger
logger = get_logger(__name__)


@dataclass(frozen=True)
class RawDocument:
    """
    A document exactly as supplied by the caller.

    Attributes:
        data: PDF bytes.
        password: Optional password for encrypted documents.
        name: Display name used in logs and error details.
    """
    data: bytes
    password: Optional[str] = None
    name: str = "invoice.pdf"


@dataclass(frozen=True)
class PdfDocument:
    """
    A PDF that has been opened and, if needed, decrypted.

    Attributes:
        data: PDF bytes.
        password: Password that unlocked the document, None if unencrypted.
        page_count: Number of pages.
        name: Display name.
    """
    data: bytes
    password: Optional[str]
    page_count: int
    name: str = "invoice.pdf"

    @property
    def encrypted(self) -> bool:
        return self.password is not None


class PDFProcessor:
    """
    Processor for invoice PDF files.

    Attributes:
        renderer: Page renderer used for OCR ('pymupdf' or 'pdf2image').

    Example:
        >>> processor = PDFProcessor()
        >>> document = processor.open_document(RawDocument(data, password="1234"))
        >>> text = processor.extract_text(document)
    """

    RENDERERS = ('pymupdf', 'pdf2image')

    def __init__(self, renderer: Optional[str] = None) -> None:
        """
        Initialize the PDF processor.

        Args:
            renderer: Page renderer. Defaults to ocr.renderer from config.
        """
        self.renderer = (renderer or get_config("ocr.renderer", "pymupdf")).lower()
        if self.renderer not in self.RENDERERS:
            raise InputError(
                f"Unknown PDF renderer: {self.renderer}",
                {"supported": list(self.RENDERERS)}
            )

        logger.debug(f"PDFProcessor initialized (renderer={self.renderer})")

    def open_document(self, raw: RawDocument) -> PdfDocument:
        """
        Open and decrypt a document.

        Decryption is attempted exactly once; a missing or wrong password
        is terminal for the invocation.

        Args:
            raw: Document bytes and optional password.

        Returns:
            PdfDocument ready for extraction.

        Raises:
            EmptyDocumentError: If there are no bytes.
            PasswordRequiredError: If the PDF is encrypted and no password was given.
            IncorrectPasswordError: If the password does not unlock the PDF.
            CorruptedFileError: If the bytes are not a readable PDF.
        """
        if not raw.data:
            raise EmptyDocumentError(raw.name)

        logger.info(f"Opening PDF: {raw.name} ({len(raw.data)} bytes)")

        try:
            doc = fitz.open(stream=raw.data, filetype="pdf")
        except (RuntimeError, ValueError) as e:
            logger.error(f"PyMuPDF could not open {raw.name}: {e}")
            raise CorruptedFileError(raw.name, str(e))

        try:
            password = None
            if doc.needs_pass:
                if raw.password is None or not raw.password.strip():
                    raise PasswordRequiredError()
                if not doc.authenticate(raw.password):
                    raise IncorrectPasswordError()
                password = raw.password
            page_count = doc.page_count
        finally:
            doc.close()

        if page_count == 0:
            raise EmptyDocumentError(raw.name)

        return PdfDocument(data=raw.data, password=password, page_count=page_count, name=raw.name)

    def extract_text(self, document: PdfDocument) -> str:
        """
        Extract the embedded text layer, page by page.

        Args:
            document: Opened document.

        Returns:
            Text of all pages joined by newlines (may be blank for scans).
        """
        try:
            with pdfplumber.open(io.BytesIO(document.data), password=document.password or "") as pdf:
                pages = [page.extract_text() or "" for page in pdf.pages]
        except Exception as e:
            logger.error(f"pdfplumber text extraction failed: {e}")
            raise CorruptedFileError(document.name, str(e))

        text = "\n".join(pages)
        logger.info(f"Text layer extracted: pages={len(pages)} chars={len(text)}")
        return text

    def extract_text_sorted(self, document: PdfDocument) -> str:
        """
        Extract the text layer in position-sorted reading order.

        Useful when a layout's content stream emits columns or rows out
        of visual order, which drops rows from line-based parsers.

        Args:
            document: Opened document.

        Returns:
            Text of all pages, top-to-bottom and left-to-right.
        """
        doc = self._open_fitz(document)
        try:
            pages = [page.get_text("text", sort=True) for page in doc]
        finally:
            doc.close()

        text = "\n".join(pages)
        logger.info(f"Sorted text layer extracted: pages={len(pages)} chars={len(text)}")
        return text

    def render_pages(self, document: PdfDocument, dpi: int, max_pages: int) -> List[Image.Image]:
        """
        Render the first pages of a document to RGB images.

        Args:
            document: Opened document.
            dpi: Render resolution.
            max_pages: Maximum number of pages to render.

        Returns:
            List of PIL Images, one per page.
        """
        pages = max(1, min(document.page_count, max_pages))
        dpi = max(72, dpi)

        if self.renderer == 'pdf2image':
            return self._render_with_pdf2image(document, dpi, pages)
        return self._render_with_pymupdf(document, dpi, pages)

    def _open_fitz(self, document: PdfDocument) -> "fitz.Document":
        doc = fitz.open(stream=document.data, filetype="pdf")
        if doc.needs_pass:
            doc.authenticate(document.password or "")
        return doc

    def _render_with_pymupdf(self, document: PdfDocument, dpi: int, pages: int) -> List[Image.Image]:
        logger.debug(f"Rendering {pages} page(s) with PyMuPDF at {dpi} DPI")
        images = []

        doc = self._open_fitz(document)
        try:
            # Default PDF resolution is 72 DPI
            zoom = dpi / 72.0
            matrix = fitz.Matrix(zoom, zoom)

            for page_num in range(pages):
                pix = doc.load_page(page_num).get_pixmap(matrix=matrix)
                image = Image.open(io.BytesIO(pix.tobytes("png")))
                if image.mode != 'RGB':
                    image = image.convert('RGB')
                images.append(image)
        except RuntimeError as e:
            logger.error(f"PyMuPDF rendering failed: {e}")
            raise CorruptedFileError(document.name, str(e))
        finally:
            doc.close()

        return images

    def _render_with_pdf2image(self, document: PdfDocument, dpi: int, pages: int) -> List[Image.Image]:
        logger.debug(f"Rendering {pages} page(s) with pdf2image at {dpi} DPI")
        try:
            images = convert_from_bytes(
                document.data,
                dpi=dpi,
                first_page=1,
                last_page=pages,
                userpw=document.password,
                fmt='png'
            )
        except Exception as e:
            logger.error(f"pdf2image rendering failed: {e}")
            raise CorruptedFileError(document.name, str(e))

        return [img.convert('RGB') if img.mode != 'RGB' else img for img in images]


__all__ = ['RawDocument', 'PdfDocument', 'PDFProcessor']
