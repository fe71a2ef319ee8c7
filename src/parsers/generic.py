"""
Label-driven fallback layout.

Used for statements from issuers without a dedicated parser, in either
Portuguese or English:

    "Due date: 21/11/2025"              or "Vencimento: 21/11/2025"
    "Total of this invoice: 1,234.56"   or "Total desta fatura: 1.234,56"
    "03/11 GROCERY STORE 120.50"
    "04/11/2025 PAYMENT RECEIVED -500.00"

Amounts may use either decimal convention.
"""

import re
from datetime import date
from decimal import Decimal
from typing import List, Optional

from src.utils.text import infer_year, normalize, normalize_numeric_dates, parse_amount_loose, purchase_date, safe_date
from .base import InvoiceParserStrategy
from .categories import categorize
from .common import build_step, extract_installment, labeled_due_date, numeric_date
from .models import TransactionCandidate, TransactionType

_DUE_LABEL = re.compile(r"\b(?:due\s+date|payment\s+due|venc(?:imento)?|vct(?:o)?)\b", re.IGNORECASE)
_TOTAL_LABEL = re.compile(
    r"\b(?:total\s+(?:of\s+this\s+invoice|desta\s+fatura|da\s+fatura|a\s+pagar|to\s+pay|amount)|valor\s+total)\b",
    re.IGNORECASE
)
_ENGLISH_DUE = build_step(
    r"\b(?:due\s+date|payment\s+due)\b[^\d]{0,40}(\d{2})[./-](\d{2})[./-](\d{4})", numeric_date
)
_ROW = re.compile(
    r"^(\d{2})/(\d{2})(?:/(\d{4}))?\s+(.+?)\s+((?:R\$\s*)?-?\s*\d[\d.,]*\d(?:\s*-)?)\s*$",
    re.IGNORECASE
)
_INCOME_WORDS = ("payment", "pagamento", "credit", "credito", "refund", "estorno")

# Documents naming a supported issuer belong to that issuer's parser
_ISSUER_MARKERS = (
    "itau", "bradesco", "banco do brasil", "ourocard", "sicredi", "mercado pago",
    "nubank", "c6 bank", "santander",
)


class GenericInvoiceParser(InvoiceParserStrategy):
    """
    Lowest priority parser for labeled statements.

    Only applicable when a due-date label, a total label and at least
    one row are all present and no supported issuer is named, so it
    never competes with issuer layouts on their own documents.
    """

    name = "generic"
    bank_label = None

    def is_applicable(self, text: str) -> bool:
        if not text or not text.strip():
            return False
        if any(marker in normalize(text) for marker in _ISSUER_MARKERS):
            return False
        if not _DUE_LABEL.search(text) or not _TOTAL_LABEL.search(text):
            return False
        return any(_ROW.match(line.strip()) for line in text.splitlines())

    def extract_due_date(self, text: str) -> Optional[date]:
        return labeled_due_date(text, leading_steps=[_ENGLISH_DUE])

    def extract_transactions(self, text: str) -> List[TransactionCandidate]:
        if not text or not text.strip():
            return []

        due_date = self.extract_due_date(text)
        fallback_year = infer_year(normalize_numeric_dates(text))
        transactions = []

        for raw in text.splitlines():
            match = _ROW.match(raw.strip())
            if not match:
                continue
            day, month, year, description, amount_text = match.groups()
            description = description.strip()
            amount = parse_amount_loose(amount_text)
            if not description or amount is None:
                continue

            if year:
                tx_date = safe_date(int(year), int(month), int(day))
            else:
                tx_date = purchase_date(int(day), int(month), due_date, fallback_year)

            tx_type = self._infer_type(description, amount)
            transactions.append(TransactionCandidate(
                description=description,
                amount=abs(amount),
                type=tx_type,
                category=categorize(description, tx_type),
                date=tx_date,
                installment=extract_installment(description),
            ))

        return transactions

    @staticmethod
    def _infer_type(description: str, amount: Decimal) -> TransactionType:
        if amount < 0:
            return TransactionType.INCOME
        n = normalize(description)
        if any(word in n for word in _INCOME_WORDS):
            return TransactionType.INCOME
        return TransactionType.EXPENSE
