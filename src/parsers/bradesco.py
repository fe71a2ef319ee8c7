"""
Bradesco invoice layout.

Layout:
    "Titular: NAME"                      holder
    "Total da fatura: R$ 13.646,35"
    "Vencimento: 25/12/2025"
    "LANÇAMENTOS"                        rows until "LIMITES" or "RESUMO"
    "27/10 CTCE FORTALEZA CE P/1 19.813,33"

Rows may be split across lines: a "dd/mm DESCRIPTION" line followed by
a line ending in the amount. Debit-account payments and "Total para"
subtotals are skipped.
"""

import re
from datetime import date
from decimal import Decimal
from typing import List, Optional

from src.utils.logger import get_logger
from src.utils.text import infer_year, parse_brl_amount, purchase_date, safe_date, strip_accents
from .base import InvoiceParserStrategy
from .categories import categorize
from .models import Installment, TransactionCandidate, TransactionType

# Initialize module logger
logger = get_logger(__name__)

_DUE_DATE = re.compile(
    r"\b(?:venc(?:imento)?|vct(?:o)?)\b\.?\s*[:\-]?\s*(\d{2}\s*/\s*\d{2}(?:\s*/\s*\d{2,4})?)",
    re.IGNORECASE | re.DOTALL
)
_CARD = re.compile(r"\bcart[ãa]o\b\s*[:\-]?\s*([^\r\n]+)", re.IGNORECASE)
_HOLDER = re.compile(r"^\s*titular\s*[:\-]?\s*(.+?)\s*$", re.IGNORECASE | re.MULTILINE)
_ROW = re.compile(r"^(\d{2}/\d{2})(?:/\d{2,4})?[ \t]+([^\r\n]+?)[ \t]+(-?[\d.,]+)\s*$")
_ROW_START = re.compile(r"^(\d{2}/\d{2})(?:/\d{2,4})?[ \t]+([^\r\n]+?)\s*$")
_TRAILING_AMOUNT = re.compile(r"(-?(?:\d{1,3}(?:\.\d{3})*|\d+)(?:,\d{2}|\.\d{2}))\s*$")
_INSTALLMENT = re.compile(r"\bP/(\d+)(?:\s|$)", re.IGNORECASE)
_TOTAL = re.compile(r"total\s+(?:da\s+)?fatura[:\s]+R?\$?\s*([\d.,]+)", re.IGNORECASE)

_SECTION_STARTS = ("LANÇAMENTOS", "LANCAMENTOS", "HISTÓRICO DE LANÇAMENTOS", "HISTORICO DE LANCAMENTOS")
_PAYMENT_WORDS = ("PAGTO", "PAGAMENTO", "DEB EM C/C", "DÉBITO EM CONTA")
_CONTINUATION_MARKERS = ("CAM", "PA")


def _search_form(value: Optional[str]) -> str:
    return strip_accents(value or "").lower()


def _first_index(haystack: str, needles, start: int = 0) -> int:
    positions = [haystack.find(needle, start) for needle in needles]
    positions = [p for p in positions if p >= 0]
    return min(positions) if positions else -1


class BradescoParser(InvoiceParserStrategy):
    """Parser for Bradesco credit card invoices."""

    name = "bradesco"
    bank_label = "Bradesco"

    def is_applicable(self, text: str) -> bool:
        if not text or not text.strip():
            return False
        n = _search_form(text)
        has_bank = "bradesco" in n
        has_due = "vencimento" in n
        has_total = "total da fatura" in n
        has_launches = "lancamentos" in n
        return has_bank and has_due and (has_total or has_launches)

    def extract_due_date(self, text: str) -> Optional[date]:
        """
        Read "Vencimento: dd/mm[/yy[yy]]".

        Dates without a year take the year of another full date in the
        document; without one the due date is left unresolved.
        """
        if not text or not text.strip():
            return None
        match = _DUE_DATE.search(text)
        if not match:
            return None

        parts = re.sub(r"\s+", '', match.group(1)).split('/')
        day, month = int(parts[0]), int(parts[1])
        if len(parts) == 3:
            year = int(parts[2])
            if len(parts[2]) == 2:
                year += 2000
            return safe_date(year, month, day)

        year = infer_year(text)
        return safe_date(year, month, day) if year else None

    def extract_transactions(self, text: str) -> List[TransactionCandidate]:
        if not text or not text.strip():
            return []

        due_date = self.extract_due_date(text)
        card_name = self._card_name(text)
        holder = self._holder_name(text)
        fallback_year = infer_year(text)

        transactions = []
        pending = None

        for raw in re.split(r"\r?\n", self._launches_section(text)):
            line = raw.strip()
            if not line or line.upper() in _CONTINUATION_MARKERS:
                continue

            # A pending "dd/mm DESCRIPTION" row takes the next amount line
            if pending is not None:
                amount_match = _TRAILING_AMOUNT.search(line)
                if amount_match:
                    amount = parse_brl_amount(amount_match.group(1))
                    if amount is not None:
                        transactions.append(self._build(
                            pending[0], pending[1], amount, due_date, fallback_year, card_name, holder
                        ))
                    pending = None
                continue

            match = _ROW.search(line)
            if not match:
                start = _ROW_START.search(line)
                if start and not self._is_skipped(start.group(2)):
                    pending = (start.group(1), start.group(2).strip())
                continue

            ddmm, description, amount_text = match.group(1), match.group(2).strip(), match.group(3)
            if self._is_skipped(description):
                continue

            amount = parse_brl_amount(amount_text)
            if amount is None:
                continue

            transactions.append(self._build(ddmm, description, amount, due_date, fallback_year, card_name, holder))

        self._log_reconciliation(text, transactions)
        return transactions

    @staticmethod
    def _is_skipped(description: str) -> bool:
        upper = description.upper()
        if upper.startswith("TOTAL PARA"):
            return True
        return any(word in upper for word in _PAYMENT_WORDS)

    def _build(
        self,
        ddmm: str,
        description: str,
        amount: Decimal,
        due_date: Optional[date],
        fallback_year: Optional[int],
        card_name: str,
        holder: Optional[str]
    ) -> TransactionCandidate:
        tx_type = self._infer_type(description, amount)
        installment = None
        match = _INSTALLMENT.search(description)
        if match and int(match.group(1)) > 0:
            installment = Installment(current=int(match.group(1)), total=1)

        return TransactionCandidate(
            description=description,
            amount=abs(amount),
            type=tx_type,
            category=self._categorize(description, tx_type),
            date=purchase_date(int(ddmm[0:2]), int(ddmm[3:5]), due_date, fallback_year),
            card_name=card_name,
            cardholder_name=holder,
            installment=installment,
        )

    @staticmethod
    def _infer_type(description: str, amount: Decimal) -> TransactionType:
        if amount < 0:
            return TransactionType.INCOME
        n = _search_form(description)
        # Annual fee and points purchases are charges even if worded like credits
        if "anuidade" in n or "compra de pontos" in n:
            return TransactionType.EXPENSE
        if any(word in n for word in ("reembolso", "credito", "devolucao", "cashback", "paygoal")):
            return TransactionType.INCOME
        return TransactionType.EXPENSE

    @staticmethod
    def _categorize(description: str, tx_type: TransactionType) -> str:
        n = _search_form(description)
        if "anuidade" in n:
            return "Taxas e Tarifas"
        if "compra de pontos" in n:
            return "Diversos"
        if tx_type == TransactionType.INCOME:
            if any(word in n for word in ("paygoal", "cashback", "pontos", "reembolso", "credito", "devolucao")):
                return "Reembolso"
            return categorize(description, tx_type)
        if "ctce" in n:
            return "Hospedagem"
        if "exterior" in n or "iof" in n:
            return "Viagem"
        return categorize(description, tx_type)

    @staticmethod
    def _launches_section(text: str) -> str:
        upper = text.upper()
        start = _first_index(upper, _SECTION_STARTS)
        if start < 0:
            return text

        # "LIMITES" ends the rows; otherwise cut at the summary, but not
        # right after the header where some layouts repeat "RESUMO"
        end = _first_index(upper, ("LIMITES",), start)
        if end <= start:
            end = _first_index(upper, ("RESUMO DA FATURA", "RESUMO"), min(len(upper), start + 400))
        if end <= start:
            end = len(text)
        return text[start:end]

    @staticmethod
    def _card_name(text: str) -> str:
        match = _CARD.search(text)
        if match and match.group(1).strip():
            return match.group(1).strip()
        return "Bradesco"

    @staticmethod
    def _holder_name(text: str) -> Optional[str]:
        match = _HOLDER.search(text)
        if match and match.group(1).strip():
            return match.group(1).strip()
        return None

    @staticmethod
    def _log_reconciliation(text: str, transactions: List[TransactionCandidate]) -> None:
        extracted = sum((tx.amount for tx in transactions), Decimal("0"))
        match = _TOTAL.search(text)
        expected = parse_brl_amount(match.group(1)) if match else None
        if expected and extracted > 0 and extracted < expected * Decimal("0.95"):
            logger.warning(f"Bradesco rows look incomplete: extracted={extracted} expected={expected}")
