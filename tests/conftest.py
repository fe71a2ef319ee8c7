"""
Pytest Configuration and Fixtures
=================================

Shared fixtures for the card invoice extraction test suite: in-memory
PDFs, transaction factories and a pipeline wired with fake collaborators.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

import fitz
import pytest

from config import ConfigurationManager
from src.input_handler.pdf_processor import PdfDocument
from src.parsers.generic import GenericInvoiceParser
from src.parsers.models import ParseResult, TransactionCandidate, TransactionType
from src.parsers.selector import ParserSelector
from src.pipeline.fallback import FallbackConfig, FallbackStrategy
from src.pipeline.orchestrator import ExtractionPipeline, PipelineConfig
from src.quality.config import QualityConfig
from src.quality.evaluator import ParseQualityEvaluator
from src.quality.validator import ParseQualityValidator


# =============================================================================
# SAMPLE TEXTS
# =============================================================================

# Five rows summing to the declared total
FULL_TEXT = """ACME CARD SERVICES
Monthly statement for JOHN DOE
Card ending in 4321
Due date: 21/11/2025
Total of this invoice: 1,234.56
03/11 GROCERY STORE 120.50
05/11 ELECTRONICS SHOP 800.00
07/11 RESTAURANT CENTRAL 150.06
10/11 BOOKSTORE 64.00
12/11 PHARMACY 100.00
"""

# Same invoice with two rows lost by the text layer
THREE_ROWS_TEXT = """ACME CARD SERVICES
Monthly statement for JOHN DOE
Card ending in 4321
Due date: 21/11/2025
Total of this invoice: 1,234.56
03/11 GROCERY STORE 120.50
05/11 ELECTRONICS SHOP 800.00
07/11 RESTAURANT CENTRAL 150.06
"""

# Same invoice with a broken font encoding on one merchant
GARBLED_TEXT = FULL_TEXT.replace("GROCERY STORE", "bPU3OTOSY6GLEy")

# Rows carry the year, but nothing labels the due date
NO_DUE_DATE_TEXT = """ACME CARD SERVICES
Monthly statement for JOHN DOE
Card ending in 4321
Total of this invoice: 1,234.56
03/11/2025 GROCERY STORE 120.50
05/11/2025 ELECTRONICS SHOP 800.00
07/11/2025 RESTAURANT CENTRAL 150.06
10/11/2025 BOOKSTORE 64.00
12/11/2025 PHARMACY 100.00
"""

MERCADO_PAGO_TEXT = """Mercado Pago
Essa e sua fatura
Vence em 10/12/2025
Total a pagar R$ 500,00
03/11 LOJA XPTO R$ 500,00
"""

# Premium Itau layout, served by a document-aware parser
PERSONNALITE_TEXT = """Itaú Personnalité
Mastercard Black
Resumo da fatura
Com vencimento em: 22/12/2025
Lançamentos no cartão (final 8578)
DATA ESTABELECIMENTO VALOR EM R$
10/11 RESTAURANTE DO ZE 120,50
SAUDE.FORTALEZA
12/11 LOJA ABC 02/05 300,00
15/11 ESTORNO LOJA -20,00
Compras parceladas - próximas faturas
20/12 LOJA ABC 03/05 300,00
"""


# =============================================================================
# CONFIGURATION
# =============================================================================

@pytest.fixture(autouse=True)
def reset_configuration():
    """Give every test a freshly loaded settings.yaml."""
    ConfigurationManager.reset()
    yield
    ConfigurationManager.reset()


@pytest.fixture
def quality_config() -> QualityConfig:
    """Default thresholds with a text length floor suited to short samples."""
    return QualityConfig(min_text_length=100)


# =============================================================================
# PDF FIXTURES
# =============================================================================

def build_pdf(pages: List[str], password: Optional[str] = None) -> bytes:
    """Render one text block per page into an in-memory PDF."""
    doc = fitz.open()
    try:
        for text in pages:
            page = doc.new_page()
            page.insert_text((72, 72), text, fontsize=10)
        if password:
            return doc.tobytes(
                encryption=fitz.PDF_ENCRYPT_AES_256,
                owner_pw=f"owner-{password}",
                user_pw=password,
            )
        return doc.tobytes()
    finally:
        doc.close()


@pytest.fixture
def make_pdf():
    """Factory fixture returning PDF bytes for the given page texts."""
    return build_pdf


@pytest.fixture
def invoice_pdf() -> bytes:
    """A two-page unencrypted invoice."""
    return build_pdf([
        "BANCO EXEMPLO\nVencimento: 21/11/2025\nTotal da fatura: R$ 250,00",
        "03/11 PADARIA REAL 50,00\n05/11 LOJA CENTRAL 200,00",
    ])


# =============================================================================
# MODEL FACTORIES
# =============================================================================

@pytest.fixture
def make_transaction():
    """Factory fixture for TransactionCandidate with sensible defaults."""
    def _make(**overrides) -> TransactionCandidate:
        values = dict(
            description="PADARIA REAL",
            amount=Decimal("50.00"),
            type=TransactionType.EXPENSE,
            category="Alimentação",
            date=date(2025, 11, 3),
        )
        values.update(overrides)
        return TransactionCandidate(**values)
    return _make


@pytest.fixture
def complete_parse(make_transaction) -> ParseResult:
    """A parse that earns every positive signal."""
    rows = tuple(
        make_transaction(description=f"LOJA {i}", amount=Decimal("10.00"), date=date(2025, 11, i + 1))
        for i in range(5)
    )
    return ParseResult(
        transactions=rows,
        due_date=date(2025, 11, 21),
        total_amount=Decimal("50.00"),
        card_last_four="4321",
        bank_name="Banco Exemplo",
        parser_name="generic",
    )


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

class FakePdfProcessor:
    """Serves fixed texts instead of reading a real PDF."""

    def __init__(self, text: str = "", sorted_text: Optional[str] = None) -> None:
        self.text = text
        self.sorted_text = sorted_text
        self.sorted_calls = 0

    def open_document(self, raw) -> PdfDocument:
        return PdfDocument(data=raw.data, password=raw.password, page_count=1, name=raw.name)

    def extract_text(self, document: PdfDocument) -> str:
        return self.text

    def extract_text_sorted(self, document: PdfDocument) -> str:
        self.sorted_calls += 1
        return self.text if self.sorted_text is None else self.sorted_text


class FakeOcrEngine:
    """Returns a fixed OCR text, or raises the configured error."""

    def __init__(self, text: str = "", error: Optional[Exception] = None) -> None:
        self.text = text
        self.error = error
        self.calls = 0

    def extract_text(self, document: PdfDocument) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture
def make_pipeline(quality_config):
    """
    Factory fixture for an ExtractionPipeline with fake PDF and OCR
    collaborators. Keyword arguments not consumed by the factory are
    passed to PipelineConfig.
    """
    def _make(
        text: str = "",
        sorted_text: Optional[str] = None,
        ocr_text: str = "",
        ocr_error: Optional[Exception] = None,
        strategies=None,
        external_service=None,
        **settings
    ) -> ExtractionPipeline:
        config = dict(ocr_enabled=True, min_text_length=50, ocr_skip_issuers=())
        config.update(settings)
        return ExtractionPipeline(
            pdf_processor=FakePdfProcessor(text, sorted_text),
            ocr_engine=FakeOcrEngine(ocr_text, ocr_error),
            selector=ParserSelector(strategies or [GenericInvoiceParser()]),
            evaluator=ParseQualityEvaluator(quality_config),
            validator=ParseQualityValidator(quality_config),
            external_service=external_service,
            fallback=FallbackStrategy(FallbackConfig()),
            config=PipelineConfig(**config),
        )
    return _make
