"""
Nubank invoice layout.

Rows:
    "06 NOV  🔄  Pepay*Segurofatura  R$ 6,90"       one line
    "12 NOV  🏪  R F CRUZ CHURRASCANAL"             header, amount on the next line
    "R$ 104,30"
    "12 NOV"                                          date anchor on its own line
    "UBER *TRIP  R$ 23,10"                            row that uses the last anchor

Payments ("Pagamento em 05 NOV: -R$ 934,83") are collected in a second
pass and reported as INCOME. "↳ Total a pagar" detail lines are skipped.
"""

import re
from datetime import date
from typing import List, Optional

from src.utils.logger import get_logger
from src.utils.text import month_number, normalize, parse_brl_amount, purchase_date, safe_date
from .base import InvoiceParserStrategy
from .categories import categorize
from .models import TransactionCandidate, TransactionType

# Initialize module logger
logger = get_logger(__name__)

_DUE_DATE = re.compile(r"Data de vencimento:\s*(\d{2})\s+([A-Z]{3})\s+(\d{4})", re.IGNORECASE)
_ROW = re.compile(r"^(\d{2})\s+([A-Z0-9]{3})\s+(.+?)\s+R\$\s*([\d.]+,\d{2})(?:\s+.*)?$", re.IGNORECASE)
_ROW_NO_DATE = re.compile(r"^(?![↳└]).+?\s+R\$\s*([\d.]+,\d{2})(?:\s+.*)?$", re.IGNORECASE)
_ROW_HEADER = re.compile(r"^(\d{2})\s+([A-Z0-9]{3})\s+(.+?)\s*$", re.IGNORECASE)
_DATE_ONLY = re.compile(r"^(\d{2})\s+([A-Z0-9]{3})\s*$", re.IGNORECASE)
_AMOUNT_ONLY = re.compile(r"^(?:R\$\s*)?([\d.]+,\d{2})\s*$", re.IGNORECASE)

_PAYMENT_LINE = re.compile(
    r"^Pagamento em\s+(\d{2})\s+([A-Z]{3})\s*:?\s*-R\$\s*([\d.]+,\d{2})\s*$", re.IGNORECASE | re.MULTILINE
)
_PAYMENT_COLUMNS = re.compile(
    r"^(\d{2})\s+([A-Z]{3}).*?\bPagamento em\b.*?-R\$\s*([\d.]+,\d{2})\s*$", re.IGNORECASE | re.MULTILINE
)

_BRAND_MARKERS = ("nubank", "nu pagamentos", "nucard", "nu bank")

_INSURANCE = ("pepay", "segurofatura", "seguro")
_TRANSPORT = ("UBER", "99", "TAXI", "BOLT", "LOGGI")
_DELIVERY = ("IFOOD", "DELIVERY")
_HEALTH = ("FARMACIA", "DROGARIA", "HOSPITAL", "CLINICA", "MEDICO", "ODONTO", "DENTISTA")
_FOOD = (
    "RESTAURANTE", "BAR ", "PIZZARIA", "BURGER", "SUSHI", "PADARIA", "CONFEITARIA",
    "CHURRASC", "LANCHONETE", "CAFE", "BELMONTE", "BAFO",
)
_SUBSCRIPTIONS = (
    "GOOGLE", "MICROSOFT", "ADOBE", "NETFLIX", "SPOTIFY", "AMAZON", "APPLE",
    "DROPBOX", "FIGMA", "NOTION", "CANVA", "BRASIL PAGAMENTOS",
)
_LEISURE = ("PARQUE", "CINEMA", "TEATRO", "MUSEU", "ENTRETENIMENTO", "DIVERSAO", "JOGO", "GAME")


def strip_icons(description: str) -> str:
    """Drop up to three leading symbol-only tokens (emoji icons, arrows)."""
    d = (description or "").strip()
    for _ in range(3):
        parts = d.split(None, 1)
        if not parts:
            break
        first = parts[0]
        if len(first) > 4 or any(ch.isalnum() for ch in first):
            break
        d = parts[1].strip() if len(parts) == 2 else ""
    return d


def categorize_nubank(description: str, tx_type: TransactionType) -> str:
    """Nubank specific category rules, falling back to the shared mapper."""
    if tx_type == TransactionType.INCOME:
        return "Reembolso"

    n = normalize(description)
    upper = n.upper()
    if any(word in n for word in _INSURANCE):
        return "Seguro"
    if any(word in upper for word in _TRANSPORT):
        return "Transporte"
    if any(word in upper for word in _DELIVERY) or upper.startswith("IFD"):
        return "iFood"
    if any(word in upper for word in _HEALTH):
        return "Saúde"
    if any(word in upper for word in _FOOD) or upper.startswith("BAR"):
        return "Alimentação"
    if any(word in upper for word in _SUBSCRIPTIONS):
        return "Assinaturas"
    if any(word in upper for word in _LEISURE):
        return "Lazer"
    return categorize(description, tx_type)


class NubankParser(InvoiceParserStrategy):
    """Parser for Nubank credit card invoices."""

    name = "nubank"
    bank_label = "Nubank"

    def is_applicable(self, text: str) -> bool:
        if not text or not text.strip():
            return False
        n = normalize(text)
        # "Data de vencimento" and "transações" are common wording, the brand is required
        if not any(marker in n for marker in _BRAND_MARKERS):
            return False
        return "data de vencimento" in n and "transacoes" in n and "fatura" in n

    def extract_due_date(self, text: str) -> Optional[date]:
        if not text or not text.strip():
            return None
        match = _DUE_DATE.search(text)
        if not match:
            return None
        return safe_date(int(match.group(3)), month_number(match.group(2)), int(match.group(1)))

    def extract_transactions(self, text: str) -> List[TransactionCandidate]:
        """
        Assemble rows line by line, then add payment credits.

        Returns an empty list when the due date is unknown.
        """
        if not text or not text.strip():
            return []
        due_date = self.extract_due_date(text)
        if due_date is None:
            return []

        transactions = []
        pending = None
        anchor = None

        for raw in re.split(r"\r?\n", text):
            line = raw.strip()
            if not line:
                continue
            n = normalize(line)

            if line.startswith("↳") or "total a pagar" in n or "total e pagar" in n:
                continue

            date_only = _DATE_ONLY.match(line)
            if date_only:
                anchor = (date_only.group(1), date_only.group(2))
                continue

            if pending is not None:
                amount_match = _AMOUNT_ONLY.match(line)
                if amount_match:
                    self._append(transactions, pending[0], pending[1], pending[2], amount_match.group(1), due_date)
                    pending = None
                    continue
                logger.debug(f"Nubank row without amount line skipped: {pending[2]}")
                pending = None

            match = _ROW.search(line)
            if match:
                anchor = (match.group(1), match.group(2))
                self._append(transactions, match.group(1), match.group(2), match.group(3), match.group(4), due_date)
                continue

            if anchor is not None:
                match = _ROW_NO_DATE.search(line)
                if match:
                    cut = line.upper().rfind("R$")
                    description = line[:cut].strip() if cut > 0 else line
                    self._append(transactions, anchor[0], anchor[1], description, match.group(1), due_date)
                    continue

            header = _ROW_HEADER.search(line)
            if header:
                maybe = normalize(header.group(3))
                if "pagamento em" not in maybe and "pagamentos" not in maybe and "fatura" not in maybe:
                    anchor = (header.group(1), header.group(2))
                    pending = (header.group(1), header.group(2), header.group(3))

        transactions.extend(self._payments(text, due_date))
        logger.debug(f"Nubank rows parsed: {len(transactions)}")
        return transactions

    @staticmethod
    def _append(
        transactions: List[TransactionCandidate],
        day: str,
        month_token: str,
        description: str,
        amount_text: str,
        due_date: date
    ) -> None:
        tx_date = purchase_date(int(day), month_number(month_token), due_date)
        description = strip_icons(description)
        amount = parse_brl_amount(amount_text)
        if tx_date is None or amount is None or not description:
            logger.debug(f"Nubank row skipped: {description!r} {amount_text}")
            return
        transactions.append(TransactionCandidate(
            description=description,
            amount=abs(amount),
            type=TransactionType.EXPENSE,
            category=categorize_nubank(description, TransactionType.EXPENSE),
            date=tx_date,
        ))

    @staticmethod
    def _payments(text: str, due_date: date) -> List[TransactionCandidate]:
        payments = []
        for pattern in (_PAYMENT_LINE, _PAYMENT_COLUMNS):
            for match in pattern.finditer(text):
                day, month_token, amount_text = match.groups()
                tx_date = purchase_date(int(day), month_number(month_token), due_date)
                amount = parse_brl_amount(amount_text)
                if tx_date is None or amount is None:
                    continue
                payments.append(TransactionCandidate(
                    description=f"Pagamento em {day} {month_token}",
                    amount=abs(amount),
                    type=TransactionType.INCOME,
                    category="Reembolso",
                    date=tx_date,
                ))
        return payments
