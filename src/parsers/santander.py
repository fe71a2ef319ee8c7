"""
Santander invoice layout.

    "Total a Pagar R$ 44.815,95 Vencimento 20/12/2025"    header
    "HOLDER NAME - 4258 XXXX XXXX 8854"                    holder block
    "Pagamentos e demais créditos"                         section titles
    "Parcelamentos"
    "Despesas"
    "03/10 LOJA XPTO 02/05 120,00"                         installment row
    "05/10 RESTAURANTE ABC 45,90 8,50"                     expense row (BRL, optional USD)

Invoices without a printed total fall back to the net sum (expenses
minus credits) rather than the expense sum.
"""

import re
from datetime import date
from decimal import Decimal
from typing import List, Optional

from src.utils.text import normalize, parse_brl_amount, purchase_date, safe_date
from .base import InvoiceParserStrategy
from .categories import categorize
from .models import Installment, TransactionCandidate, TransactionType

_HEADER_TOTAL_AND_DUE = re.compile(
    r"Total\s+a\s+Pagar\s+R\$\s*([\d.,]+)\s+Vencimento\s+(\d{2})/(\d{2})/(\d{4})", re.IGNORECASE | re.DOTALL
)
_DUE_DATE = re.compile(r"\bvencimento\b\s+(\d{2})/(\d{2})/(\d{4})", re.IGNORECASE | re.DOTALL)
_HOLDER_BLOCK = re.compile(r"^([A-Z\s]+)\s+-\s+(\d{4})\s+XXXX\s+XXXX\s+(\d{4})\s*$", re.MULTILINE)
_INSTALLMENT_ROW = re.compile(r"^(\d{2}/\d{2})\s+(.+?)\s+(\d{2})/(\d{2})\s+(-?[\d.,]+)\s*$")
_EXPENSE_ROW = re.compile(r"^(\d{2}/\d{2})\s+(.+?)\s+(-?[\d.,]+)(?:\s+([\d.,]+))?\s*$")
_ROW_START = re.compile(r"^\d{2}/\d{2}\s+")

_PAYMENT_WORDS = ("pagamento", "deb autom", "debito autom")
_CREDIT_WORDS = ("credito", "estorno")
_FOOD_WORDS = ("restaurante", "cafe", "padaria", "churrasc", "pizzaria", "lanchonete")

PAYMENTS = "payments"
INSTALLMENTS = "installments"
EXPENSES = "expenses"


class SantanderParser(InvoiceParserStrategy):
    """Parser for Santander credit card invoices."""

    name = "santander"
    bank_label = "Santander"
    uses_net_total = True

    def is_applicable(self, text: str) -> bool:
        if not text or not text.strip():
            return False
        n = normalize(text)
        has_due = bool(_DUE_DATE.search(text) or _HEADER_TOTAL_AND_DUE.search(text))
        has_holders = bool(_HOLDER_BLOCK.search(text))
        return has_due and ("santander" in n or has_holders or "total a pagar" in n)

    def extract_due_date(self, text: str) -> Optional[date]:
        if not text or not text.strip():
            return None
        match = _HEADER_TOTAL_AND_DUE.search(text)
        if match:
            return safe_date(int(match.group(4)), int(match.group(3)), int(match.group(2)))
        match = _DUE_DATE.search(text)
        if match:
            return safe_date(int(match.group(3)), int(match.group(2)), int(match.group(1)))
        return None

    def extract_transactions(self, text: str) -> List[TransactionCandidate]:
        if not text or not text.strip():
            return []
        due_date = self.extract_due_date(text)
        if due_date is None:
            return []

        transactions = []
        card_name = None
        holder_name = None
        section = None

        for raw in re.split(r"\r?\n", text):
            line = raw.strip()
            if not line:
                continue

            holder = _HOLDER_BLOCK.search(line)
            if holder:
                holder_name = holder.group(1).strip() or None
                card_name = f"Santander {holder.group(3)} ({holder.group(2)})"
                section = None
                continue

            # Section titles may share the line with a row, so no early continue
            n = normalize(line)
            if any(word in n for word in ("pagamentos", "debitos", "creditos")):
                section = PAYMENTS
            elif "parcel" in n:
                section = INSTALLMENTS
            elif any(word in n for word in ("despesas", "compras", "lancamentos")):
                section = EXPENSES
            elif "resumo" in n and "fatura" in n:
                section = None

            if not _ROW_START.match(line):
                continue

            candidate = self._parse_row(line, card_name, holder_name, due_date)
            if candidate is not None:
                transactions.append(candidate)

        return transactions

    def _parse_row(
        self,
        line: str,
        card_name: Optional[str],
        holder_name: Optional[str],
        due_date: date
    ) -> Optional[TransactionCandidate]:
        cleaned = re.sub(r"\s+", ' ', line.replace("US$", ' ').replace("R$", ' ')).strip()

        installment = None
        match = _INSTALLMENT_ROW.search(cleaned)
        if match:
            ddmm, description = match.group(1), match.group(2).strip()
            current, total = int(match.group(3)), int(match.group(4))
            if current > 0 and total > 0:
                installment = Installment(current=current, total=total)
            amount = parse_brl_amount(match.group(5))
        else:
            match = _EXPENSE_ROW.search(cleaned)
            if not match:
                return None
            ddmm, description = match.group(1), match.group(2).strip()
            # With a USD column the BRL amount is the first of the two
            amount = parse_brl_amount(match.group(3))
            if amount is None:
                amount = parse_brl_amount(match.group(4))

        tx_date = purchase_date(int(ddmm[0:2]), int(ddmm[3:5]), due_date)
        if tx_date is None or not description or amount is None:
            return None

        tx_type = self._infer_type(description, amount)
        return TransactionCandidate(
            description=description,
            amount=abs(amount),
            type=tx_type,
            category=self._categorize(description, tx_type),
            date=tx_date,
            card_name=card_name,
            cardholder_name=holder_name,
            installment=installment,
        )

    @staticmethod
    def _infer_type(description: str, amount: Decimal) -> TransactionType:
        if amount < 0:
            return TransactionType.INCOME
        n = normalize(description)
        if any(word in n for word in _PAYMENT_WORDS + _CREDIT_WORDS):
            return TransactionType.INCOME
        return TransactionType.EXPENSE

    @staticmethod
    def _categorize(description: str, tx_type: TransactionType) -> str:
        n = normalize(description)
        if tx_type == TransactionType.INCOME:
            if any(word in n for word in _PAYMENT_WORDS) or "fatura" in n:
                return "Pagamento"
            if any(word in n for word in _CREDIT_WORDS):
                return "Reembolso"
        elif any(word in n for word in _FOOD_WORDS):
            return "Alimentação"
        return categorize(description, tx_type)
