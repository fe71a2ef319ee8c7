"""Unit tests for InputHandler."""

import pytest

from src.input_handler import InputHandler
from src.utils.exceptions import (
    EmptyDocumentError,
    InputError,
    InputFileNotFoundError,
    UnsupportedFileTypeError,
)


@pytest.fixture
def handler():
    return InputHandler(max_file_size_mb=1)


@pytest.fixture
def pdf_file(tmp_path, invoice_pdf):
    path = tmp_path / "fatura.pdf"
    path.write_bytes(invoice_pdf)
    return path


class TestValidateFile:
    """Tests for InputHandler.validate_file."""

    def test_valid_pdf(self, handler, pdf_file):
        assert handler.validate_file(pdf_file) == pdf_file

    def test_missing(self, handler, tmp_path):
        with pytest.raises(InputFileNotFoundError):
            handler.validate_file(tmp_path / "missing.pdf")

    def test_directory(self, handler, tmp_path):
        with pytest.raises(InputError):
            handler.validate_file(tmp_path)

    def test_wrong_extension(self, handler, tmp_path):
        path = tmp_path / "fatura.txt"
        path.write_text("Vencimento 10/12/2025")
        with pytest.raises(UnsupportedFileTypeError):
            handler.validate_file(path)

    def test_empty_file(self, handler, tmp_path):
        path = tmp_path / "vazio.pdf"
        path.write_bytes(b"")
        with pytest.raises(EmptyDocumentError):
            handler.validate_file(path)

    def test_too_large(self, tmp_path):
        """Test files above the size limit are rejected."""
        path = tmp_path / "grande.pdf"
        path.write_bytes(b"%PDF" + b"0" * 2048)
        with pytest.raises(InputError, match="File too large"):
            InputHandler(max_file_size_mb=0.001).validate_file(path)


class TestLoad:
    """Tests for InputHandler.load."""

    def test_load(self, handler, pdf_file, invoice_pdf):
        """Test the bytes, password and name are carried to the document."""
        raw = handler.load(pdf_file, password="1234")
        assert raw.data == invoice_pdf
        assert raw.password == "1234"
        assert raw.name == "fatura.pdf"

    def test_default_size_limit(self):
        assert InputHandler().max_file_size_mb == 25


class TestDiscover:
    """Tests for InputHandler.discover."""

    def test_single_file(self, handler, pdf_file):
        assert handler.discover(pdf_file) == [pdf_file]

    def test_directory(self, handler, tmp_path):
        """Test only PDFs are listed, sorted by name."""
        for name in ("b.PDF", "a.pdf", "notas.txt"):
            (tmp_path / name).write_bytes(b"%PDF")
        (tmp_path / "sub.pdf").mkdir()

        assert [p.name for p in handler.discover(tmp_path)] == ["a.pdf", "b.PDF"]

    def test_empty_directory(self, handler, tmp_path):
        assert handler.discover(tmp_path) == []

    def test_missing(self, handler, tmp_path):
        with pytest.raises(InputFileNotFoundError):
            handler.discover(tmp_path / "nada")
