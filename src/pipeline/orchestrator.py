"""
Extraction Pipeline Module.

This module provides the ExtractionPipeline class that turns the bytes
of a credit-card invoice PDF into a validated ExtractionResult.

Stages:
    1. Decrypt and read the text layer
    2. Reject unsupported issuer families
    3. Select the layout parser and parse (due date, rows, total)
    4. Retry once with OCR when the text layer looks unreliable
    5. Score the parse and consult the external service on low scores
    6. Validate; a rejected parse is never returned

OCR is one-shot per invocation. Its availability is an explicit OcrState
value: AVAILABLE until the first OCR run consumes it, or
SKIPPED_FOR_ISSUER for issuers whose text layer is trusted.

OCR triggers, in order:
    1. too little signal in the text layer
    2. no transactions parsed
    3. garbled descriptions or many rows without a date
    4. expense sum well below the declared total
    5. parsing raised an input error (e.g. due date not found)
"""

import time
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Tuple

from config import get_config
from src.input_handler.pdf_processor import PDFProcessor, PdfDocument, RawDocument
from src.ocr_engine.engine import OCREngine
from src.parsers.base import DocumentAwareParser
from src.parsers.models import ParseResult, ScoredParse, TransactionType
from src.parsers.registry import build_default_strategies
from src.parsers.selector import ParserSelector, Selection
from src.quality.evaluator import ParseQualityEvaluator
from src.quality.validator import ParseQualityValidator
from src.utils.exceptions import (
    DueDateNotFoundError,
    EmptyDocumentError,
    InputError,
    InvoiceExtractionError,
    OCRError,
    OCRUnavailableError,
    UnsupportedIssuerError,
    UnsupportedLayoutError,
)
from src.utils.logger import get_logger
from .extraction_result import ExtractionResult
from .external_service import ExternalExtractionService
from .fallback import FallbackStrategy
from .heuristics import (
    extract_expected_total,
    extract_fallback_due_date,
    has_too_little_signal,
    is_likely_garbled_merchant,
    is_retry_better_for_missing,
    looks_like_unsupported_issuer,
    parse_due_date_override,
    should_retry_for_missing_transactions,
    should_retry_for_quality,
    sum_expense_amounts,
    sum_net_amounts,
    transaction_quality,
)
from .state import FallbackDecision, OcrState, TextSource

# Initialize module logger
logger = get_logger(__name__)

UNSUPPORTED_ISSUER = "Mercado Pago"

# Rows dated after the due date belong to the next invoice on this layout
DROP_AFTER_DUE_PARSERS = ("itau",)

DEFAULT_SKIP_ISSUERS = ("itau", "c6", "nubank", "banco_do_brasil", "bradesco", "santander")


@dataclass(frozen=True)
class PipelineConfig:
    """
    Pipeline settings.

    Attributes:
        ocr_enabled: ocr.enabled; gates every OCR trigger except a blank
            text layer.
        min_text_length: Non-whitespace characters below which the text
            layer is OCR'd.
        ocr_skip_issuers: Parser names that never run OCR.
        missing_ratio: Expense sum / declared total below which rows are
            considered missing.
        reconciliation_tolerance: Difference logged as a warning.
        log_extracted_text: Log the extracted text (truncated).
        extracted_text_max_chars: Truncation for log_extracted_text.
        log_due_date_snippets: Log the text around the due date label.
        due_date_context_chars: Context around the label.
    """
    ocr_enabled: bool = True
    min_text_length: int = 200
    ocr_skip_issuers: Tuple[str, ...] = DEFAULT_SKIP_ISSUERS
    missing_ratio: Decimal = Decimal("0.96")
    reconciliation_tolerance: Decimal = Decimal("0.01")
    log_extracted_text: bool = False
    extracted_text_max_chars: int = 4000
    log_due_date_snippets: bool = False
    due_date_context_chars: int = 80

    @classmethod
    def from_config(cls) -> 'PipelineConfig':
        return cls(
            ocr_enabled=bool(get_config("ocr.enabled", True)),
            min_text_length=int(get_config("ocr.min_text_length", 200)),
            ocr_skip_issuers=tuple(get_config("pipeline.ocr_skip_issuers", list(DEFAULT_SKIP_ISSUERS)) or ()),
            missing_ratio=Decimal(str(get_config("reconciliation.missing_ratio_threshold", "0.96"))),
            reconciliation_tolerance=Decimal(str(get_config("reconciliation.tolerance", "0.01"))),
            log_extracted_text=bool(get_config("debug.log_extracted_text", False)),
            extracted_text_max_chars=int(get_config("debug.extracted_text_max_chars", 4000)),
            log_due_date_snippets=bool(get_config("debug.log_due_date_snippets", False)),
            due_date_context_chars=int(get_config("debug.due_date_context_chars", 80)),
        )


class ExtractionPipeline:
    """
    Orchestrates one invoice extraction.

    Every collaborator is injected, so tests can replace the PDF
    processor, OCR engine and external service with fakes.

    Attributes:
        pdf_processor: Decryption and text-layer extraction.
        ocr_engine: One-shot OCR.
        selector: Layout parser selection.
        evaluator: Quality scoring.
        validator: Final acceptance gate.
        external_service: External document-extraction service.
        fallback: Arbitration between local and external results.
        config: PipelineConfig.

    Example:
        >>> pipeline = build_pipeline()
        >>> result = pipeline.extract(pdf_bytes, password="1234")
        >>> print(result.parse.due_date, result.parse.total_amount)
    """

    def __init__(
        self,
        pdf_processor: PDFProcessor,
        ocr_engine: OCREngine,
        selector: ParserSelector,
        evaluator: ParseQualityEvaluator,
        validator: ParseQualityValidator,
        external_service: Optional[ExternalExtractionService] = None,
        fallback: Optional[FallbackStrategy] = None,
        config: Optional[PipelineConfig] = None
    ) -> None:
        self.pdf_processor = pdf_processor
        self.ocr_engine = ocr_engine
        self.selector = selector
        self.evaluator = evaluator
        self.validator = validator
        self.external_service = external_service
        self.fallback = fallback or FallbackStrategy()
        self.config = config or PipelineConfig.from_config()

        logger.info(
            f"ExtractionPipeline initialized: strategies={len(selector.strategies)} "
            f"ocr_enabled={self.config.ocr_enabled} skip_issuers={list(self.config.ocr_skip_issuers)}"
        )

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    def extract(
        self,
        data: bytes,
        password: Optional[str] = None,
        due_date_override: Optional[str] = None,
        name: str = "invoice.pdf"
    ) -> ExtractionResult:
        """
        Extract an invoice.

        Args:
            data: PDF bytes.
            password: Password for encrypted PDFs. Tried once.
            due_date_override: "yyyy-mm-dd" or "dd/mm/yyyy", used only
                when neither the parser nor the fallbacks find a due date.
            name: Display name for logs and the result.

        Returns:
            Validated ExtractionResult.

        Raises:
            InputError: Empty, encrypted or unreadable document, bad
                override, unsupported issuer, or no resolvable due date.
            OCRUnavailableError: OCR was required but could not run.
            QualityRejectionError: The parse failed validation.
        """
        start_time = time.time()
        if not data:
            raise EmptyDocumentError(name)

        override = parse_due_date_override(due_date_override)
        logger.info(f"Read {len(data)} bytes from {name}")

        document = self.pdf_processor.open_document(RawDocument(data=data, password=password, name=name))
        text = self.pdf_processor.extract_text(document) or ""

        # Checked before selection to avoid misleading parser or due date errors
        if looks_like_unsupported_issuer(text):
            raise UnsupportedIssuerError(UNSUPPORTED_ISSUER)

        run = _Run(
            document=document,
            data=data,
            override=override,
            start_time=start_time,
            ocr_state=self._baseline_ocr_state(text),
        )
        source = TextSource.TEXT_LAYER
        self._log_text(source, text)

        if has_too_little_signal(text, self.config.min_text_length):
            if run.ocr_state == OcrState.SKIPPED_FOR_ISSUER:
                logger.info("Skipping OCR for this issuer (text layer is trusted)")
            elif not text.strip() or self._ocr_allowed(run):
                # A blank text layer needs OCR even when it is disabled; the failure is a configuration error
                text = self._run_ocr(run)
                source = TextSource.OCR
                self._log_text(source, text)
            else:
                logger.info("OCR is disabled; continuing with the short text layer")

        if not text.strip():
            logger.warning("No text could be extracted from the document")
            return self._finalize(run, ParseResult(due_date=run.override), text, source)

        try:
            parse = self.parse_text(data, text, override)
            return self._retry_or_finalize(run, parse, text, source)
        except InputError as e:
            if isinstance(e, UnsupportedIssuerError) or not self._ocr_allowed(run):
                if run.ocr_state == OcrState.SKIPPED_FOR_ISSUER:
                    logger.warning(f"Skipping OCR exception retry for this issuer: {e.message}")
                raise
            logger.warning(f"Parsing failed ({e.message}). Retrying once with OCR...")
            ocr_text = self._run_ocr(run)
            self._log_text(TextSource.OCR, ocr_text)
            parse = self.parse_text(data, ocr_text, override)
            return self._finalize(run, parse, ocr_text, TextSource.OCR)

    # -------------------------------------------------------------------------
    # Parsing
    # -------------------------------------------------------------------------

    def parse_text(self, data: bytes, text: str, override: Optional[date] = None) -> ParseResult:
        """
        Parse one text with the best layout parser.

        Args:
            data: Original PDF bytes, for document-aware parsers.
            text: Text to parse.
            override: Caller-supplied due date, the last resort.

        Returns:
            ParseResult with the due date attached to every row.

        Raises:
            UnsupportedIssuerError: For unsupported issuer families.
            DueDateNotFoundError: If no due date can be resolved.
        """
        if looks_like_unsupported_issuer(text):
            raise UnsupportedIssuerError(UNSUPPORTED_ISSUER)

        selection = self.selector.select(text)
        parser = selection.parser
        due_date = selection.chosen.due_date
        transactions = list(selection.chosen.transactions)

        document_parse = None
        # A best-effort pick has not recognized the layout; never upload it to an issuer extractor
        if isinstance(parser, DocumentAwareParser) and not selection.chosen.applicable:
            logger.info(f"Parser={parser.name} was not applicable; skipping document-aware parse")
        elif isinstance(parser, DocumentAwareParser):
            try:
                document_parse = parser.parse_with_document(data, text)
            except Exception as e:
                logger.warning(f"Document-aware parse failed, falling back to text parser. reason={e}")
            if document_parse is not None:
                if document_parse.due_date is not None:
                    due_date = document_parse.due_date
                if document_parse.transactions:
                    transactions = list(document_parse.transactions)

        if due_date is None:
            logger.warning(f"Parser={parser.name} matched but found no due date. Trying fallback extractors...")
            due_date = extract_fallback_due_date(text)
        if due_date is None and override is not None:
            logger.warning(f"Using due date override: {override}")
            due_date = override
        if due_date is None:
            raise DueDateNotFoundError(parser.name)

        transactions = [tx.with_due_date(due_date) for tx in transactions]

        if parser.name in DROP_AFTER_DUE_PARSERS and transactions:
            before = len(transactions)
            transactions = [
                tx for tx in transactions
                if not (tx.type == TransactionType.EXPENSE and tx.date is not None and tx.date > due_date)
            ]
            if len(transactions) < before:
                logger.info(
                    f"Dropped {before - len(transactions)} EXPENSE rows after dueDate={due_date} "
                    f"({before} -> {len(transactions)})"
                )

        garbled = [tx.description for tx in transactions if is_likely_garbled_merchant(tx.description)]
        missing_dates = sum(1 for tx in transactions if tx.date is None)
        logger.info(f"Using parser={parser.name} dueDate={due_date} txCount={len(transactions)}")
        logger.info(
            f"Parse quality: txCount={len(transactions)} garbled={len(garbled)} "
            f"missingDate={missing_dates} garbledSamples={[d.strip()[:60] for d in garbled[:3]]}"
        )

        total = extract_expected_total(text)
        if total is None or total <= 0:
            remote_total = document_parse.total_amount if document_parse is not None else None
            if remote_total is not None and remote_total > 0:
                total = remote_total
            elif parser.uses_net_total:
                total = sum_net_amounts(transactions)
            else:
                total = sum_expense_amounts(transactions)

        card_last_four = None
        if document_parse is not None and document_parse.card_last_four:
            card_last_four = document_parse.card_last_four
        if card_last_four is None:
            card_last_four = parser.extract_card_last_four(text)

        bank_name = parser.bank_label
        if document_parse is not None and document_parse.bank_name:
            bank_name = document_parse.bank_name

        return ParseResult(
            transactions=tuple(transactions),
            due_date=due_date,
            total_amount=total,
            card_last_four=card_last_four,
            bank_name=bank_name,
            parser_name=parser.name,
        )

    # -------------------------------------------------------------------------
    # OCR retries
    # -------------------------------------------------------------------------

    def _retry_or_finalize(self, run: '_Run', parse: ParseResult, text: str, source: TextSource) -> ExtractionResult:
        transactions = parse.transactions
        ocr_allowed = self._ocr_allowed(run)
        skipped = self.config.ocr_enabled and run.ocr_state == OcrState.SKIPPED_FOR_ISSUER

        if transactions:
            expected = extract_expected_total(text)
            if expected is not None and expected > 0:
                extracted = sum_expense_amounts(transactions)
                pct = (extracted * 100 / expected).quantize(Decimal("0.01"))
                logger.info(
                    f"Pre-check: ocrState={run.ocr_state.value} txCount={len(transactions)} "
                    f"extracted={extracted} expected={expected} ({pct}% of expected)"
                )

        # Trigger 2: nothing parsed
        if not transactions:
            if ocr_allowed:
                logger.info("OCR trigger: no transactions parsed; retrying once with OCR...")
                text = self._run_ocr(run)
                self._log_text(TextSource.OCR, text)
                parse = self.parse_text(run.data, text, run.override)
                return self._finalize(run, parse, text, TextSource.OCR)
            if skipped:
                logger.info("Skipping OCR empty-result retry for this issuer")
            return self._finalize(run, parse, text, source)

        # Trigger 3: garbled descriptions or many rows without a date
        if (ocr_allowed or skipped) and should_retry_for_quality(transactions):
            if ocr_allowed:
                logger.info("OCR trigger: parsed transactions look garbled; retrying once with OCR...")
                ocr_text = self._run_ocr(run)
                ocr_parse = self._try_parse(run, ocr_text, TextSource.OCR)
                if ocr_parse is not None and transaction_quality(ocr_parse.transactions) > transaction_quality(transactions):
                    return self._finalize(run, ocr_parse, ocr_text, TextSource.OCR)
                logger.info("OCR result is not better; keeping the original parse")
                return self._finalize(run, parse, text, source)
            logger.info("Skipping OCR quality retry for this issuer")

        # Trigger 4: rows missing against the declared total
        if (ocr_allowed or skipped) and should_retry_for_missing_transactions(
            transactions, text, self.config.missing_ratio
        ):
            if skipped:
                logger.info("Skipping OCR missing-transactions retry for this issuer; re-reading sorted text layer")
                retry_text, retry_source = self._read_sorted(run.document), TextSource.TEXT_LAYER_SORTED
            else:
                logger.info("OCR trigger: possible missing transactions (total mismatch); retrying once with OCR...")
                retry_text, retry_source = self._run_ocr(run), TextSource.OCR

            if retry_text.strip():
                retry_parse = self._try_parse(run, retry_text, retry_source)
                expected = extract_expected_total(text)
                if expected is None:
                    expected = extract_expected_total(retry_text)
                if retry_parse is not None and is_retry_better_for_missing(
                    retry_parse.transactions, transactions, expected
                ):
                    return self._finalize(run, retry_parse, retry_text, retry_source)

        return self._finalize(run, parse, text, source)

    def _try_parse(self, run: '_Run', text: str, source: TextSource) -> Optional[ParseResult]:
        """Parse a retried text; a retry that cannot be parsed is discarded."""
        self._log_text(source, text)
        try:
            return self.parse_text(run.data, text, run.override)
        except InputError as e:
            logger.warning(f"Retry parse from {source.value} failed; keeping the original. reason={e.message}")
            return None

    def _read_sorted(self, document: PdfDocument) -> str:
        try:
            return self.pdf_processor.extract_text_sorted(document) or ""
        except (InvoiceExtractionError, RuntimeError) as e:
            logger.info(f"Sorted text-layer extraction failed: {e}")
            return ""

    def _ocr_allowed(self, run: '_Run') -> bool:
        return self.config.ocr_enabled and run.ocr_state == OcrState.AVAILABLE

    def _run_ocr(self, run: '_Run') -> str:
        """
        Run OCR and consume the one-shot.

        Raises:
            OCRUnavailableError: If the engine is disabled, missing or failed.
        """
        if run.ocr_state == OcrState.CONSUMED:
            raise OCRUnavailableError("OCR already attempted for this document")
        run.ocr_state = OcrState.CONSUMED

        logger.info("Attempting OCR fallback")
        try:
            return self.ocr_engine.extract_text(run.document) or ""
        except OCRError as e:
            logger.error(f"OCR failed: {e}")
            raise OCRUnavailableError(str(e))

    def _baseline_ocr_state(self, text: str) -> OcrState:
        try:
            selection: Optional[Selection] = self.selector.select(text)
        except UnsupportedLayoutError:
            selection = None

        if selection is not None and not selection.best_effort \
                and selection.parser.name in self.config.ocr_skip_issuers:
            logger.info(f"OCR disabled for issuer {selection.parser.name}")
            return OcrState.SKIPPED_FOR_ISSUER
        return OcrState.AVAILABLE

    # -------------------------------------------------------------------------
    # Scoring, fallback and validation
    # -------------------------------------------------------------------------

    def _finalize(
        self,
        run: '_Run',
        parse: ParseResult,
        text: str,
        source: TextSource
    ) -> ExtractionResult:
        """
        Score, arbitrate with the external service and validate.

        Raises:
            DueDateNotFoundError: If the chosen parse has no due date.
            QualityRejectionError: If the chosen parse fails validation.
        """
        current = self.evaluator.score(parse, text, source.value)
        logger.info(f"Extraction result: {current.describe()}")

        chosen: ScoredParse = current
        chosen_text = text
        top_source = TextSource.TEXT_LAYER
        decision: Optional[FallbackDecision] = None

        if self.external_service is not None and self.fallback.should_try_external(current.score) \
                and self.external_service.is_available():
            extracted = self.external_service.extract(run.data)
            external = None
            if extracted is not None and extracted.text.strip():
                try:
                    external_parse = self.parse_text(run.data, extracted.text, run.override)
                    external = self.evaluator.score(external_parse, extracted.text, extracted.source.value)
                    logger.info(f"External parse scored {external.score}")
                except InvoiceExtractionError as e:
                    logger.warning(f"Could not parse external service text: {e.message}")
            else:
                logger.warning("External service returned no text; keeping the current result")

            decision = self.fallback.decide(current, external)
            logger.info(
                f"Fallback decision: "
                f"{self.fallback.describe(decision, current.score, external.score if external else 0)}"
            )
            if decision == FallbackDecision.EXTERNAL and external is not None:
                chosen, chosen_text, top_source = external, extracted.text, extracted.source

        if chosen.due_date is None:
            logger.error("No due date could be resolved from the text layer, OCR or external service")
            raise DueDateNotFoundError(chosen.parse.parser_name)

        self._log_reconciliation(chosen, chosen_text)
        self.validator.validate_or_raise(chosen)

        return ExtractionResult(
            parse=chosen,
            text=chosen_text,
            source=top_source.value,
            ocr_attempted=run.ocr_state == OcrState.CONSUMED,
            fallback_decision=decision,
            source_file=run.document.name,
            processing_time=time.time() - run.start_time,
        )

    def _log_reconciliation(self, scored: ScoredParse, text: str) -> None:
        if not scored.transactions:
            return
        expected = extract_expected_total(text)
        if expected is None or expected <= 0:
            return

        extracted = sum_expense_amounts(scored.transactions)
        difference = abs(extracted - expected)
        logger.info(
            f"[VALIDATION][{scored.source}] Extracted total: R$ {extracted}, "
            f"expected total: R$ {expected}, difference: R$ {difference}"
        )
        if difference > self.config.reconciliation_tolerance:
            logger.warning(
                f"[VALIDATION][{scored.source}] Extracted total differs from the declared total "
                f"by more than R$ {self.config.reconciliation_tolerance}"
            )

    # -------------------------------------------------------------------------
    # Debug logging
    # -------------------------------------------------------------------------

    def _log_text(self, source: TextSource, text: str) -> None:
        if self.config.log_extracted_text:
            limit = self.config.extracted_text_max_chars
            payload = text if limit <= 0 or len(text) <= limit else text[:limit] + "\n... (truncated)"
            logger.info(
                f"Extracted text source={source.value} len={len(text)} maxChars={limit}\n"
                f"--BEGIN--\n{payload}\n--END--"
            )

        if self.config.log_due_date_snippets:
            lowered = text.lower()
            for label in ("data de vencimento", "vencimento", "venc", "vcto", "due date"):
                at = lowered.find(label)
                if at >= 0:
                    context = max(0, self.config.due_date_context_chars)
                    snippet = text[max(0, at - context):at + len(label) + context]
                    logger.info(f"Due date snippet source={source.value}\n--SNIP--\n{snippet}\n--/SNIP--")
                    break
            else:
                logger.info(f"Due date snippet source={source.value}: no due date label found")


@dataclass
class _Run:
    """Per-invocation state shared by the retry and finalize steps."""
    document: PdfDocument
    data: bytes
    override: Optional[date]
    start_time: float
    ocr_state: OcrState = OcrState.AVAILABLE


def build_pipeline() -> ExtractionPipeline:
    """
    Wire the pipeline from configuration.

    Returns:
        ExtractionPipeline with the default parser strategies.
    """
    pdf_processor = PDFProcessor()
    return ExtractionPipeline(
        pdf_processor=pdf_processor,
        ocr_engine=OCREngine(pdf_processor),
        selector=ParserSelector(build_default_strategies()),
        evaluator=ParseQualityEvaluator(),
        validator=ParseQualityValidator(),
        external_service=ExternalExtractionService(),
    )


__all__ = ['ExtractionPipeline', 'PipelineConfig', 'build_pipeline']
