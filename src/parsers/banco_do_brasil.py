"""
Banco do Brasil (Ourocard) invoice layout.

Rows start after the "Descrição  País  Valor" table header:
    "20/08 PGTO. COBRANCA 2958 BR R$ -84,00"
    "21/08 WWW.STATUE.COM US R$ 79,68"
    "      *** 14,00 DOLAR AMERICANO"       foreign purchase detail

Category headers (LAZER, RESTAURANTES, ...) and indented foreign
currency detail lines are not transactions.
"""

import re
from datetime import date
from decimal import Decimal
from typing import List, Optional

from src.utils.logger import get_logger
from src.utils.text import normalize, parse_brl_amount, purchase_date, strip_accents
from .base import InvoiceParserStrategy
from .categories import categorize
from .common import labeled_due_date
from .models import TransactionCandidate, TransactionType

# Initialize module logger
logger = get_logger(__name__)

_ROW = re.compile(r"^(\d{2}/\d{2})\s+(.+?)\s+(?:([A-Z]{2})\s+)?R\$\s*([-\d.,]+)\s*$")
_DOLLAR_LINE = re.compile(r"^\s*\*\*\*\s+([\d,.]+)\s+DOLAR\s+AMERICANO\b.*$", re.IGNORECASE)
_HOLDER = re.compile(
    r"^\s*(?:nome\s+do\s+titular|titular|cliente|nome)\s*[:\-]?\s*(.+?)\s*$",
    re.IGNORECASE | re.MULTILINE
)
_PREVIOUS_PAYMENT = ("pgto cobranca", "pagto cobranca", "pagamento cobranca")
_NOT_HOLDERS = ("banco do brasil", "ourocard", "bb")

CATEGORY_HEADERS = frozenset({
    "LAZER",
    "RESTAURANTES",
    "SERVICOS",
    "VESTUARIO",
    "VIAGENS",
    "OUTROS LANCAMENTOS",
})

CARD_NAME = "Banco do Brasil"


class BancoDoBrasilParser(InvoiceParserStrategy):
    """Parser for Banco do Brasil / Ourocard credit card invoices."""

    name = "banco_do_brasil"
    bank_label = "Banco do Brasil"

    def is_applicable(self, text: str) -> bool:
        if not text or not text.strip():
            return False
        n = normalize(text)

        # "Resumo da fatura" and "Total desta fatura" appear in other
        # issuers' layouts too, so a brand marker is mandatory
        has_brand = (
            "banco do brasil" in n
            or "ourocard" in n
            or "bb.com.br" in n
            or ("ouvidoria" in n and "bb" in n)
        )
        if not has_brand:
            return False

        has_total = "total desta fatura" in n or "total da fatura" in n
        return ("resumo da fatura" in n and has_total) or (
            "pagamento efetuado" in n and "lancamentos atuais" in n
        )

    def extract_due_date(self, text: str) -> Optional[date]:
        return labeled_due_date(text)

    def extract_transactions(self, text: str) -> List[TransactionCandidate]:
        """
        Walk the transaction table.

        Returns an empty list when the due date is unknown, since the
        purchase year is derived from it.
        """
        if not text or not text.strip():
            return []
        due_date = self.extract_due_date(text)
        if due_date is None:
            return []

        holder = self._holder_name(text)
        transactions = []
        in_table = False
        skipping_foreign_detail = False

        for raw in re.split(r"\r?\n", text):
            line = raw.strip()
            if not line:
                continue
            n = normalize(line)

            if not in_table:
                if "descricao" in n and "valor" in n and "pais" in n:
                    in_table = True
                continue

            if "total da fatura" in n or ("resumo" in n and "fatura" in n):
                break

            if strip_accents(line).upper() in CATEGORY_HEADERS:
                continue

            # Indented lines after a foreign purchase carry the dollar
            # amount and the exchange rate
            if skipping_foreign_detail:
                if raw[:1].isspace():
                    continue
                skipping_foreign_detail = False

            match = _ROW.search(line)
            if not match:
                if self._is_detail_line(line, n):
                    logger.debug(f"BB detail line skipped: {line}")
                continue

            ddmm, description, country, amount_text = match.groups()
            description = self._clean_description(description)
            if not description or self._is_previous_payment(description):
                continue

            amount = parse_brl_amount(amount_text)
            tx_date = purchase_date(int(ddmm[0:2]), int(ddmm[3:5]), due_date)
            if amount is None or tx_date is None:
                continue

            tx_type = self._infer_type(description, amount)
            transactions.append(TransactionCandidate(
                description=description,
                amount=abs(amount),
                type=tx_type,
                category=self._categorize(description, tx_type),
                date=tx_date,
                card_name=CARD_NAME,
                cardholder_name=holder,
            ))

            if country and country.upper() != "BR":
                skipping_foreign_detail = True

        logger.debug(f"BB rows parsed: {len(transactions)}")
        return transactions

    @staticmethod
    def _is_previous_payment(description: str) -> bool:
        n = re.sub(r"[^a-z0-9 ]", ' ', normalize(description))
        n = re.sub(r"\s+", ' ', n).strip()
        return n.startswith(_PREVIOUS_PAYMENT)

    @staticmethod
    def _is_detail_line(line: str, n: str) -> bool:
        return line.startswith("***") or n.startswith("cotacao") or n.startswith("iof") or bool(
            _DOLLAR_LINE.match(line)
        )

    @staticmethod
    def _clean_description(description: str) -> str:
        """Cut detail text that some extractors glue onto the row."""
        d = description.strip()
        for marker in ("***", "COTAÇÃO", "COTACAO", " IOF"):
            cut = d.upper().find(marker)
            if cut >= 0:
                d = d[:cut].strip()
        return d

    @staticmethod
    def _holder_name(text: str) -> Optional[str]:
        for match in _HOLDER.finditer(text):
            value = match.group(1).strip()
            if value and normalize(value) not in _NOT_HOLDERS:
                return value
        return None

    @staticmethod
    def _infer_type(description: str, amount: Decimal) -> TransactionType:
        if amount < 0:
            return TransactionType.INCOME
        n = normalize(description)
        if any(word in n for word in ("pgto", "pagamento", "credito", "estorno", "reembolso")):
            return TransactionType.INCOME
        return TransactionType.EXPENSE

    @staticmethod
    def _categorize(description: str, tx_type: TransactionType) -> str:
        if tx_type == TransactionType.INCOME:
            n = normalize(description)
            if "pgto" in n or "pagamento" in n:
                return "Pagamento"
            if any(word in n for word in ("estorno", "credito", "reembolso")):
                return "Reembolso"
        return categorize(description, tx_type)
