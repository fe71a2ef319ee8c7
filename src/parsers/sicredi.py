"""
Sicredi invoice layout.

The text layer is a column table split by runs of two or more spaces:

    "Cartão Sicredi Mastercard final 1234"      card header
    "Data e hora   Cidade   Tipo   Descrição   Parcela   Valor em reais"
    "11/nov 06:13   PORTO ALEGRE   Online   NETFLIX   01/03   R$ 55,90"

The remote structured extractor reads this layout more reliably; the
table parse is kept as the text-only path.
"""

import re
from datetime import date
from decimal import Decimal
from typing import List, Optional

from src.utils.logger import get_logger
from src.utils.text import month_number, normalize, normalize_numeric_dates, parse_brl_amount, purchase_date, safe_date
from .base import DocumentAwareParser, InvoiceParserStrategy
from .categories import categorize
from .models import Installment, ParseResult, TransactionCandidate, TransactionType
from .remote_extractor import RemoteExtractorClient

# Initialize module logger
logger = get_logger(__name__)

_DUE_DATE = re.compile(r"\bvencimento\b\s*[:\-]?\s*(\d{2})/(\d{2})/(\d{4})", re.IGNORECASE | re.DOTALL)
_ROW_START = re.compile(r"^\d{2}/[a-z]{3}\b", re.IGNORECASE)
_DATE_TIME = re.compile(r"^(\d{2})/([a-z]{3})(?:\s+\d{2}:\d{2})?", re.IGNORECASE)
_INSTALLMENT = re.compile(r"^(\d{2})/(\d{2})$")
_COLUMNS = re.compile(r"\s{2,}")

CARD_NAME = "Sicredi"


def _has_table_header(n: str) -> bool:
    return "data e hora" in n and "valor em reais" in n


class SicrediParser(InvoiceParserStrategy, DocumentAwareParser):
    """
    Parser for Sicredi credit card invoices.

    Attributes:
        remote_client: Remote structured extractor used by parse_with_document().
    """

    name = "sicredi"
    bank_label = "Sicredi"

    def __init__(self, remote_client: Optional[RemoteExtractorClient] = None) -> None:
        self.remote_client = remote_client

    def is_applicable(self, text: str) -> bool:
        if not text or not text.strip():
            return False
        n = normalize(text)
        has_due = bool(_DUE_DATE.search(normalize_numeric_dates(text)))
        if "sicredi" in n and ("resumo da fatura" in n or has_due):
            return True
        return has_due and _has_table_header(n)

    def extract_due_date(self, text: str) -> Optional[date]:
        if not text or not text.strip():
            return None
        match = _DUE_DATE.search(normalize_numeric_dates(text))
        if not match:
            return None
        return safe_date(int(match.group(3)), int(match.group(2)), int(match.group(1)))

    def extract_transactions(self, text: str) -> List[TransactionCandidate]:
        if not text or not text.strip():
            return []
        due_date = self.extract_due_date(text)
        if due_date is None:
            return []

        transactions = []
        in_table = False
        card_name = None

        for raw in re.split(r"\r?\n", text):
            line = raw.strip()
            if not line:
                continue
            n = normalize(line)

            if n.startswith("cartao "):
                card_name = line
                continue
            if _has_table_header(n):
                in_table = True
                continue
            if not in_table or not _ROW_START.search(line):
                continue

            candidate = self._parse_row(line, card_name, due_date)
            if candidate is not None:
                transactions.append(candidate)

        logger.debug(f"Sicredi rows parsed: {len(transactions)}")
        return transactions

    def parse_with_document(self, data: bytes, text: str) -> Optional[ParseResult]:
        """
        Parse through the remote extractor.

        Remote failures raise RemoteExtractorError; the pipeline logs them
        and keeps the text parse.

        Returns:
            ParseResult, or None when no remote client is configured.
        """
        if self.remote_client is None:
            return None

        logger.info("Parsing Sicredi invoice through the remote extractor")
        response = self.remote_client.parse_sicredi(data)

        transactions = []
        card_last_four = None
        for tx in response.transactions:
            if not tx.description or not tx.description.strip() or tx.amount is None:
                continue
            tx_date = self._remote_date(tx.date_text)
            if tx_date is None:
                continue

            tx_type = TransactionType.INCOME if tx.amount < 0 else TransactionType.EXPENSE
            card_name = CARD_NAME
            if tx.card_final and tx.card_final.strip():
                card_last_four = tx.card_final.strip()
                card_name = f"{CARD_NAME} final {card_last_four}"

            transactions.append(TransactionCandidate(
                description=tx.description.strip(),
                amount=abs(tx.amount),
                type=tx_type,
                category=categorize(tx.description, tx_type),
                date=tx_date,
                card_name=card_name,
                installment=tx.installment,
            ))

        return ParseResult(
            transactions=tuple(transactions),
            due_date=response.due_date,
            total_amount=response.total,
            card_last_four=card_last_four,
            bank_name=response.bank or "SICREDI",
            parser_name=self.name,
        )

    @staticmethod
    def _remote_date(value: Optional[str]) -> Optional[date]:
        if not value or not re.match(r"^\d{4}-\d{2}-\d{2}$", value.strip()):
            return None
        year, month, day = value.strip().split('-')
        return safe_date(int(year), int(month), int(day))

    def _parse_row(self, line: str, card_name: Optional[str], due_date: date) -> Optional[TransactionCandidate]:
        # Columns: date/time, city, Online/Presencial, description, ..., amount
        parts = [part.strip() for part in _COLUMNS.split(line)]
        if len(parts) < 4:
            return None

        match = _DATE_TIME.search(parts[0])
        if not match:
            return None
        tx_date = purchase_date(int(match.group(1)), month_number(match.group(2)), due_date)
        if tx_date is None:
            return None

        description = parts[3]
        amount = parse_brl_amount(parts[-1])
        if not description or amount is None:
            return None

        tx_type = self._infer_type(description, amount)
        if tx_type == TransactionType.EXPENSE:
            category = self._categorize_expense(description)
        else:
            category = categorize(description, tx_type)

        return TransactionCandidate(
            description=description,
            amount=abs(amount),
            type=tx_type,
            category=category,
            date=tx_date,
            card_name=card_name,
            installment=self._installment(parts),
        )

    @staticmethod
    def _infer_type(description: str, amount: Decimal) -> TransactionType:
        if amount < 0:
            return TransactionType.INCOME
        n = normalize(description)
        if "pagamento" in n or "credito" in n or "estorno" in n:
            return TransactionType.INCOME
        return TransactionType.EXPENSE

    @staticmethod
    def _categorize_expense(description: str) -> str:
        n = normalize(description)
        if "iof" in n or "anuidade" in n:
            return "Taxas e Juros"
        return categorize(description, TransactionType.EXPENSE)

    @staticmethod
    def _installment(parts: List[str]) -> Optional[Installment]:
        for part in parts:
            match = _INSTALLMENT.match(part)
            if match and int(match.group(1)) > 0 and int(match.group(2)) > 0:
                return Installment(current=int(match.group(1)), total=int(match.group(2)))
        return None
