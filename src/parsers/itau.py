"""
Itau (regular) invoice layout.

Layout:
    "Pagamentos efetuados"            payments section (INCOME rows)
    "Lançamentos: compras e saques"   purchases section
    "Compras parceladas - próximas faturas"  next-cycle installments (ignored)

Rows are "dd/mm DESCRIPTION 1.234,56" or "dd MON DESCRIPTION 1.234,56".
"""

import re
from datetime import date
from typing import List, Optional

from src.utils.logger import get_logger
from src.utils.text import (
    infer_year,
    month_number,
    normalize,
    normalize_numeric_dates,
    parse_brl_amount,
    purchase_date,
    safe_date,
    strip_accents,
)
from .base import InvoiceParserStrategy
from .categories import categorize
from .common import build_step, extract_installment, labeled_due_date, numeric_date
from .models import TransactionCandidate, TransactionScope, TransactionType

# Initialize module logger
logger = get_logger(__name__)

_ROW = re.compile(r"^(\d{2}\s+[A-Za-z]{3}|\d{2}/\d{2}(?:/\d{4})?)\s+(.+?)\s+(-?[\d.,]+)\s*$")

# "Com vencimento em: dd/mm/yyyy" is the current invoice; a bare
# "Vencimento:" may belong to the processing block of the next one.
_CURRENT_DUE = build_step(r"com\s+vencimento\s+em\s*:?\s*(\d{2})[./-](\d{2})[./-](\d{4})", numeric_date)

_BUSINESS_WORDS = re.compile(r"\b(?:cnpj|mei|ltda|eireli|pj)\b")
_BUSINESS_HINTS = ("fornecedor", "insumo", "estoque", "maquininha")

_PAYMENTS = "pagamentos efetuados"
_PURCHASES = "lancamentos: compras e saques"
_FUTURE = ("compras parceladas", "proximas faturas", "proxima fatura")
_SECTION_END = ("encargos cobrados nesta fatura", "novo teto", "credito rotativo", "limites de credito")


def infer_scope(description: Optional[str], card_name: Optional[str] = None) -> TransactionScope:
    """Flag company purchases (CNPJ, MEI, LTDA, supplier wording) as BUSINESS."""
    d = normalize(description)
    c = normalize(card_name)
    if _BUSINESS_WORDS.search(d) or _BUSINESS_WORDS.search(c) or "empresa" in c:
        return TransactionScope.BUSINESS
    if any(hint in d for hint in _BUSINESS_HINTS):
        return TransactionScope.BUSINESS
    return TransactionScope.PERSONAL


class ItauParser(InvoiceParserStrategy):
    """
    Parser for regular Itau credit card invoices.

    Example:
        >>> parser = ItauParser()
        >>> parser.is_applicable(text)
        True
        >>> parser.extract_due_date(text)
        datetime.date(2025, 12, 22)
    """

    name = "itau"
    bank_label = "Itaú"

    def is_applicable(self, text: str) -> bool:
        if not text:
            return False
        n = strip_accents(text.lower())
        n = re.sub(r"\s+", ' ', n).strip()

        has_itau = "itau" in n or "itaucard" in n or "banco itau" in n
        has_payments = _PAYMENTS in n
        has_purchases = _PURCHASES in n or ("lancamentos" in n and "compras e saques" in n)
        has_sections = has_payments and has_purchases

        # Some extractions lose the section titles but keep the summary block
        has_summary = (
            "resumo da fatura" in n and "total desta fatura" in n and "pagamento minimo" in n
        )
        return has_itau and (has_sections or has_summary)

    def extract_due_date(self, text: str) -> Optional[date]:
        return labeled_due_date(text, leading_steps=[_CURRENT_DUE])

    def extract_transactions(self, text: str) -> List[TransactionCandidate]:
        if not text or not text.strip():
            return []

        due_date = self.extract_due_date(text)
        fallback_year = infer_year(normalize_numeric_dates(text))

        transactions = []
        section = None

        for line in text.splitlines():
            heading = re.sub(r"\s+", ' ', strip_accents(line.lower()).strip())

            if _PAYMENTS in heading:
                section = "payments"
                continue
            if _PURCHASES in heading:
                section = "purchases"
                continue
            if any(marker in heading for marker in _FUTURE):
                section = "future"
                continue
            if any(marker in heading for marker in _SECTION_END) or heading.startswith("sac"):
                section = None
                continue

            if section not in ("payments", "purchases"):
                continue

            candidate = self._parse_row(line, due_date, fallback_year)
            if candidate is not None:
                transactions.append(candidate)

        logger.debug(f"Itau rows parsed: {len(transactions)}")
        return transactions

    def _parse_row(
        self,
        line: str,
        due_date: Optional[date],
        fallback_year: Optional[int]
    ) -> Optional[TransactionCandidate]:
        match = _ROW.search(line.strip())
        if not match:
            return None

        date_text, description, amount_text = match.groups()
        amount = parse_brl_amount(amount_text)
        if amount is None:
            return None

        lowered = description.lower()
        if amount < 0 or "pagamento" in lowered or "payment" in lowered:
            tx_type = TransactionType.INCOME
        else:
            tx_type = TransactionType.EXPENSE

        return TransactionCandidate(
            description=description.strip(),
            amount=abs(amount),
            type=tx_type,
            category=categorize(description, tx_type),
            date=self._row_date(date_text, due_date, fallback_year),
            scope=infer_scope(description),
            installment=extract_installment(description),
        )

    @staticmethod
    def _row_date(value: str, due_date: Optional[date], fallback_year: Optional[int]) -> Optional[date]:
        parts = re.split(r"[\s/]+", value.strip())
        day = int(parts[0])
        if len(parts) == 3:
            return safe_date(int(parts[2]), int(parts[1]), day)
        month = month_number(parts[1]) if parts[1].isalpha() else int(parts[1])
        return purchase_date(day, month, due_date, fallback_year)
