"""Unit tests for the OCR engine and the Tesseract backend."""

from unittest.mock import patch

import pytesseract
import pytest
from PIL import Image

from src.input_handler.pdf_processor import PdfDocument
from src.ocr_engine import OCREngine, OCRPage, OCRResult, TesseractBackend
from src.utils.exceptions import OCREngineNotAvailableError, OCRProcessingError

DOCUMENT = PdfDocument(data=b"%PDF", password=None, page_count=3, name="fatura.pdf")


class FakeRenderer:
    """Returns blank images instead of rendering."""

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def render_pages(self, document, dpi, max_pages):
        self.calls.append((dpi, max_pages))
        if self.error:
            raise self.error
        return [Image.new("RGB", (10, 10), "white") for _ in range(max_pages)]


class FakeBackend:
    """Returns one scripted text per page."""

    language = "por"

    def __init__(self, texts):
        self.texts = list(texts)
        self.sources = []

    def get_text(self, image, source="page"):
        self.sources.append(source)
        return self.texts.pop(0)


class TestOCREngine:
    """Tests for OCREngine."""

    def test_recognizes_each_page(self):
        """Test every rendered page is recognized and blank pages are skipped."""
        backend = FakeBackend(["Vencimento 10/12/2025", "  ", "03/11 PADARIA 10,00"])
        engine = OCREngine(FakeRenderer(), backend=backend, enabled=True, dpi=300, max_pages=6)

        result = engine.extract(DOCUMENT)

        assert result.text == "Vencimento 10/12/2025\n03/11 PADARIA 10,00"
        assert result.recognized_pages == 2
        assert result.total_pages == 3
        assert backend.sources == ["fatura.pdf#page1", "fatura.pdf#page2", "fatura.pdf#page3"]

    def test_page_limit_and_minimum_dpi(self):
        """Test the page cap and the 72 DPI floor."""
        renderer = FakeRenderer()
        engine = OCREngine(renderer, backend=FakeBackend(["a", "b"]), enabled=True, dpi=50, max_pages=2)

        assert engine.extract_text(DOCUMENT) == "a\nb"
        assert renderer.calls == [(72, 2)]

    def test_disabled(self):
        """Test a disabled engine refuses to run."""
        engine = OCREngine(FakeRenderer(), backend=FakeBackend([]), enabled=False)
        with pytest.raises(OCREngineNotAvailableError):
            engine.extract(DOCUMENT)

    def test_render_failure(self):
        """Test rendering errors become processing errors."""
        engine = OCREngine(FakeRenderer(error=RuntimeError("bad page")), backend=FakeBackend([]), enabled=True)
        with pytest.raises(OCRProcessingError):
            engine.extract(DOCUMENT)


class TestOCRResult:
    """Tests for OCRResult."""

    def test_to_dict(self):
        result = OCRResult(
            pages=[OCRPage(1, "texto", 0.12345), OCRPage(2, "")],
            total_pages=2,
            language="por",
            dpi=220,
        )
        data = result.to_dict()
        assert data['recognized_pages'] == 1
        assert data['pages'][0] == {'page_number': 1, 'chars': 5, 'processing_time': 0.123}
        assert data['dpi'] == 220


class TestTesseractBackend:
    """Tests for TesseractBackend with pytesseract patched."""

    @pytest.fixture
    def backend(self):
        return TesseractBackend(language="por", psm=6, oem=3, tessdata_path="", timeout=5)

    @pytest.fixture
    def image(self):
        return Image.new("L", (10, 10), 255)

    def test_build_config(self):
        backend = TesseractBackend(language="por", psm=4, oem=1, tessdata_path="/opt/tessdata")
        assert backend._build_config() == '--psm 4 --oem 1 --tessdata-dir "/opt/tessdata"'

    def test_get_text(self, backend, image):
        """Test the image is converted to RGB and recognized with the configured options."""
        with patch.object(pytesseract, "get_tesseract_version", return_value="5.3.0"), \
                patch.object(pytesseract, "image_to_string", return_value="FATURA") as image_to_string:
            assert backend.get_text(image) == "FATURA"

        args, kwargs = image_to_string.call_args
        assert args[0].mode == "RGB"
        assert kwargs["lang"] == "por"
        assert kwargs["config"] == "--psm 6 --oem 3"
        assert kwargs["timeout"] == 5

    def test_binary_missing(self, backend, image):
        """Test a missing binary is reported as unavailable."""
        with patch.object(pytesseract, "get_tesseract_version", side_effect=pytesseract.TesseractNotFoundError()):
            with pytest.raises(OCREngineNotAvailableError):
                backend.get_text(image)

    def test_language_data_missing(self, backend, image):
        """Test missing traineddata is reported as unavailable."""
        error = pytesseract.TesseractError(1, "Failed loading language 'por'")
        with patch.object(pytesseract, "get_tesseract_version", return_value="5.3.0"), \
                patch.object(pytesseract, "image_to_string", side_effect=error):
            with pytest.raises(OCREngineNotAvailableError):
                backend.get_text(image)

    @pytest.mark.parametrize("error", [
        pytesseract.TesseractError(1, "Image too small to scale"),
        RuntimeError("Tesseract process timeout"),
    ])
    def test_recognition_failure(self, backend, image, error):
        """Test other recognition errors are processing errors."""
        with patch.object(pytesseract, "get_tesseract_version", return_value="5.3.0"), \
                patch.object(pytesseract, "image_to_string", side_effect=error):
            with pytest.raises(OCRProcessingError):
                backend.get_text(image, source="fatura.pdf#page1")
