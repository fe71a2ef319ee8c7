"""Unit tests for PDFProcessor using in-memory PDFs."""

import pytest

from src.input_handler.pdf_processor import PDFProcessor, RawDocument
from src.utils.exceptions import (
    CorruptedFileError,
    EmptyDocumentError,
    IncorrectPasswordError,
    InputError,
    PasswordRequiredError,
)


@pytest.fixture
def processor():
    return PDFProcessor(renderer="pymupdf")


class TestOpenDocument:
    """Tests for PDFProcessor.open_document."""

    def test_unencrypted(self, processor, invoice_pdf):
        """Test an unencrypted PDF opens without a password."""
        document = processor.open_document(RawDocument(invoice_pdf, name="fatura.pdf"))
        assert document.page_count == 2
        assert document.encrypted is False
        assert document.name == "fatura.pdf"

    def test_empty(self, processor):
        with pytest.raises(EmptyDocumentError):
            processor.open_document(RawDocument(b""))

    def test_not_a_pdf(self, processor):
        """Test unreadable bytes are reported as corrupted."""
        with pytest.raises(CorruptedFileError):
            processor.open_document(RawDocument(b"this is not a pdf at all"))

    @pytest.mark.parametrize("password", [None, "", "   "])
    def test_password_required(self, processor, make_pdf, password):
        """Test an encrypted PDF without a usable password is rejected."""
        data = make_pdf(["Vencimento 10/12/2025"], password="1234")
        with pytest.raises(PasswordRequiredError):
            processor.open_document(RawDocument(data, password=password))

    def test_wrong_password(self, processor, make_pdf):
        data = make_pdf(["Vencimento 10/12/2025"], password="1234")
        with pytest.raises(IncorrectPasswordError):
            processor.open_document(RawDocument(data, password="9999"))

    def test_correct_password(self, processor, make_pdf):
        """Test the password is kept for later extraction."""
        data = make_pdf(["Vencimento 10/12/2025"], password="1234")
        document = processor.open_document(RawDocument(data, password="1234"))
        assert document.encrypted is True
        assert document.password == "1234"

    def test_errors_are_input_errors(self):
        """Test every document problem is an input error."""
        for error in (CorruptedFileError, EmptyDocumentError, IncorrectPasswordError, PasswordRequiredError):
            assert issubclass(error, InputError)


class TestTextExtraction:
    """Tests for the two text-layer extractions."""

    def test_extract_text(self, processor, invoice_pdf):
        """Test every page's text layer is returned."""
        text = processor.extract_text(processor.open_document(RawDocument(invoice_pdf)))
        assert "Vencimento: 21/11/2025" in text
        assert "PADARIA REAL" in text
        assert "LOJA CENTRAL" in text

    def test_extract_text_sorted(self, processor, invoice_pdf):
        text = processor.extract_text_sorted(processor.open_document(RawDocument(invoice_pdf)))
        assert text.index("Vencimento") < text.index("PADARIA REAL")

    def test_sorted_text_of_encrypted_pdf(self, processor, make_pdf):
        """Test the sorted extraction decrypts with the stored password."""
        data = make_pdf(["03/11 PADARIA REAL 50,00"], password="1234")
        document = processor.open_document(RawDocument(data, password="1234"))
        assert "PADARIA REAL" in processor.extract_text_sorted(document)


class TestRenderPages:
    """Tests for page rendering."""

    def test_render_pymupdf(self, processor, invoice_pdf):
        """Test rendering respects the page cap and returns RGB images."""
        document = processor.open_document(RawDocument(invoice_pdf))
        images = processor.render_pages(document, dpi=72, max_pages=1)
        assert len(images) == 1
        assert images[0].mode == "RGB"

    def test_unknown_renderer(self):
        with pytest.raises(InputError):
            PDFProcessor(renderer="ghostscript")

    def test_default_renderer_from_settings(self):
        assert PDFProcessor().renderer == "pymupdf"
