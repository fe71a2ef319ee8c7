"""
C6 Bank invoice layout.

    "C6 Carbon Virtual Final 5867 - HOLDER NAME"    card header
    "27 out AIRBNB * HMF99EFWK9 - Parcela 2/3 369,48"
    "14 nov BAR PIMENTA CARIOCA 92,40"

Rows repeated within the same card block are dropped.
"""

import re
from datetime import date
from decimal import Decimal
from typing import List, Optional, Set

from src.utils.logger import get_logger
from src.utils.text import (
    infer_year,
    month_number,
    normalize,
    normalize_numeric_dates,
    parse_brl_amount,
    purchase_date,
    safe_date,
)
from .base import InvoiceParserStrategy
from .categories import categorize
from .common import build_step, labeled_due_date
from .models import Installment, TransactionCandidate, TransactionType

# Initialize module logger
logger = get_logger(__name__)

_LABEL = r"\b(?:venc(?:imento)?|data\s+d[eo]\s+vencimento)\b"

_CARD_HEADER = re.compile(r"^c6\s+(.+?)\s+final\s*:?\s*(\d{4})(?:\s*-\s*(.+))?$", re.IGNORECASE)
_ROW = re.compile(
    r"^(\d{1,2})\s+([a-z0-9]{3})\s+(.+?)(?:\s+-\s+parcela\s+(\d+)\s*/\s*(\d+))?\s+(-?[\d.,]+)\s*$",
    re.IGNORECASE
)
_INCOME_WORDS = ("pagamento", "estorno", "credito", "inclusao")


def _textual_with_year(match: "re.Match", inferred_year: Optional[int]) -> Optional[date]:
    return safe_date(int(match.group(3)), month_number(match.group(2)), int(match.group(1)))


def _textual_without_year(match: "re.Match", inferred_year: Optional[int]) -> Optional[date]:
    if inferred_year is None:
        return None
    return safe_date(inferred_year, month_number(match.group(2)), int(match.group(1)))


# "Vencimento: 20 de dezembro de 2025" / "Data de vencimento 20 DEZ"
_DUE_STEPS = [
    build_step(_LABEL + r"[^0-9]{0,60}(\d{2})\s+(?:de\s+)?([A-Z]{3,9})\s+(?:de\s+)?(\d{4})", _textual_with_year),
    build_step(_LABEL + r"[^0-9]{0,60}(\d{2})\s+(?:de\s+)?([A-Z]{3,9})\b(?!\s+(?:de\s+)?\d{4})", _textual_without_year),
]


class C6Parser(InvoiceParserStrategy):
    """Parser for C6 Bank credit card invoices."""

    name = "c6"
    bank_label = "C6 Bank"

    def is_applicable(self, text: str) -> bool:
        if not text or not text.strip():
            return False
        n = normalize(text)
        if "c6 bank" in n or "c6bank" in n:
            return True
        if "c6" in n and "venc" in n and ("cartao" in n or "fatura" in n):
            return True
        return any(_CARD_HEADER.search(line.strip()) for line in text.splitlines())

    def extract_due_date(self, text: str) -> Optional[date]:
        if not text or not text.strip():
            return None
        normalized = normalize_numeric_dates(text)
        inferred_year = infer_year(normalized)

        found = labeled_due_date(text, inferred_year=inferred_year)
        if found is not None:
            return found
        for pattern, build in _DUE_STEPS:
            match = pattern.search(normalized)
            if match:
                found = build(match, inferred_year)
                if found is not None:
                    return found
        return None

    def extract_transactions(self, text: str) -> List[TransactionCandidate]:
        if not text or not text.strip():
            return []

        due_date = self.extract_due_date(text)
        fallback_year = infer_year(normalize_numeric_dates(text))
        transactions = []
        seen: Set[str] = set()
        card_name = None
        in_summary = False

        for raw in re.split(r"\r?\n", text):
            # Some extractors keep the table pipes
            line = re.sub(r"\s+", ' ', raw.replace('|', ' ')).strip()
            if not line:
                continue
            n = normalize(line)

            if "resumo" in n and "fatura" in n:
                in_summary = True
                continue
            if "transacoes" in n:
                in_summary = False
                continue
            if in_summary and any(word in n for word in ("compras", "juros", "tarifa", "total a pagar")):
                continue

            header = _CARD_HEADER.search(line)
            if header:
                label = header.group(1).strip() or "C6"
                new_card = f"{label} {header.group(2).strip()}"
                if card_name is not None and card_name != new_card:
                    seen.clear()
                card_name = new_card
                logger.debug(f"C6 card block: {card_name}")
                continue

            candidate = self._parse_row(line, due_date, fallback_year, card_name)
            if candidate is None:
                continue

            key = f"{candidate.date}|{normalize(candidate.description)}|{candidate.amount}"
            if key in seen:
                logger.debug(f"C6 duplicate row skipped: {candidate.description} = {candidate.amount}")
                continue
            seen.add(key)
            transactions.append(candidate)

        logger.debug(f"C6 rows parsed: {len(transactions)}")
        return transactions

    @staticmethod
    def _parse_row(
        line: str,
        due_date: Optional[date],
        fallback_year: Optional[int],
        card_name: Optional[str]
    ) -> Optional[TransactionCandidate]:
        match = _ROW.search(line)
        if not match:
            return None
        day, month_token, description, current, total, amount_text = match.groups()
        description = description.strip()
        amount = parse_brl_amount(amount_text)
        if len(description) < 2 or amount is None or amount == 0:
            return None

        tx_date = purchase_date(int(day), month_number(month_token), due_date, fallback_year)
        if tx_date is None:
            return None

        tx_type = C6Parser._infer_type(description, amount)
        installment = None
        if current and total and int(current) > 0 and int(total) > 0:
            installment = Installment(current=int(current), total=int(total))

        return TransactionCandidate(
            description=description,
            amount=abs(amount),
            type=tx_type,
            category=categorize(description, tx_type),
            date=tx_date,
            card_name=card_name,
            installment=installment,
        )

    @staticmethod
    def _infer_type(description: str, amount: Decimal) -> TransactionType:
        if amount < 0:
            return TransactionType.INCOME
        n = normalize(description)
        if any(word in n for word in _INCOME_WORDS):
            return TransactionType.INCOME
        return TransactionType.EXPENSE
