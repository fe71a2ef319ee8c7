"""
Mercado Pago invoice layout.

The pipeline rejects Mercado Pago invoices before selection, so this
parser only runs when it is invoked directly.

Row shapes (pipes are usually dropped by the text layer):
    "Cartão Visa [**** 1234]"                                  card header
    "03/10 LOJA XPTO R$ 120,00"                                basic row
    "03/10 LOJA XPTO Parcela 2 de 5 R$ 80,00"                  installment row
    "03/10 Compra internacional em AMAZON" ... "R$ 55,10"      international row
"""

import re
from datetime import date
from decimal import Decimal
from typing import List, Optional

from src.utils.text import normalize, parse_brl_amount, purchase_date, safe_date
from .base import InvoiceParserStrategy
from .models import Installment, TransactionCandidate, TransactionType

_DUE_DATE = re.compile(r"\bvencimento\b\s*[:\-]?\s*(\d{2})/(\d{2})/(\d{4})", re.IGNORECASE | re.DOTALL)
_DUE_DATE_VENCE = re.compile(r"\bvence\s+em\b\s*[:\-]?\s*(\d{2})/(\d{2})/(\d{4})", re.IGNORECASE | re.DOTALL)
_CARD_HEADER = re.compile(r"cart[aã]o\s+([a-z]+)\s*\[.*?(\d{4})\s*\]", re.IGNORECASE)
_INSTALLMENT_ROW = re.compile(
    r"^(\d{2}/\d{2})\s+(.+?)\s+parcela\s+(\d+)\s+de\s+(\d+)\s+R\$\s*([\d.]+,\d{2})\s*$", re.IGNORECASE
)
_BASIC_ROW = re.compile(r"^(\d{2}/\d{2})\s+(.+?)\s+R\$\s*(-?[\d.]+,\d{2})\s*$", re.IGNORECASE)
_INTERNATIONAL_START = re.compile(r"^(\d{2}/\d{2})\s+compra\s+internacional\s+em\s+(.+?)\s*$", re.IGNORECASE)
_BRL_AMOUNT = re.compile(r"R\$\s*(-?[\d.]+,\d{2})", re.IGNORECASE)

DEFAULT_CATEGORY = "Outros"


class MercadoPagoParser(InvoiceParserStrategy):
    """Parser for Mercado Pago credit card invoices."""

    name = "mercado_pago"
    bank_label = "Mercado Pago"

    def is_applicable(self, text: str) -> bool:
        n = normalize(text)
        return "mercado pago" in n or "mp card" in n

    def extract_due_date(self, text: str) -> Optional[date]:
        if not text or not text.strip():
            return None
        # "Vencimento:" wins over "Vence em"
        for pattern in (_DUE_DATE, _DUE_DATE_VENCE):
            match = pattern.search(text)
            if match:
                return safe_date(int(match.group(3)), int(match.group(2)), int(match.group(1)))
        return None

    def extract_transactions(self, text: str) -> List[TransactionCandidate]:
        if not text or not text.strip():
            return []

        due_date = self.extract_due_date(text)
        transactions = []
        card_name = None
        pending = None

        for raw in re.split(r"\r?\n", text):
            line = raw.strip()
            if not line:
                continue

            header = _CARD_HEADER.search(line)
            if header:
                card_name = f"{header.group(1).strip()} {header.group(2).strip()}"
                continue

            # International purchases span several lines; the BRL amount closes them
            international = _INTERNATIONAL_START.search(line)
            if international:
                pending = (international.group(1), f"Compra internacional em {international.group(2)}")
                continue

            if pending is not None:
                amount_match = _BRL_AMOUNT.search(line)
                if amount_match:
                    amount = parse_brl_amount(amount_match.group(1))
                    if amount is not None:
                        transactions.append(self._build(pending[0], pending[1], amount, due_date, card_name))
                    pending = None
                continue

            match = _INSTALLMENT_ROW.search(line)
            if match:
                amount = parse_brl_amount(match.group(5))
                if amount is not None:
                    installment = Installment(current=int(match.group(3)), total=int(match.group(4)))
                    transactions.append(
                        self._build(match.group(1), match.group(2), amount, due_date, card_name, installment)
                    )
                continue

            match = _BASIC_ROW.search(line)
            if match:
                amount = parse_brl_amount(match.group(3))
                if amount is not None:
                    transactions.append(self._build(match.group(1), match.group(2), amount, due_date, card_name))

        return transactions

    @staticmethod
    def _build(
        ddmm: str,
        description: str,
        amount: Decimal,
        due_date: Optional[date],
        card_name: Optional[str],
        installment: Optional[Installment] = None
    ) -> TransactionCandidate:
        if amount < 0 or "pagamento" in description.lower():
            tx_type = TransactionType.INCOME
        else:
            tx_type = TransactionType.EXPENSE

        fallback_year = due_date.year if due_date else None
        return TransactionCandidate(
            description=description.strip(),
            amount=abs(amount),
            type=tx_type,
            category=DEFAULT_CATEGORY,
            date=purchase_date(int(ddmm[0:2]), int(ddmm[3:5]), due_date, fallback_year),
            card_name=card_name,
            installment=installment,
        )
