"""
Itau Personnalite invoice layout.

Layout:
    "Lançamentos no cartão (final 8578)"   one block per card
    "dd/mm ESTABLISHMENT 1.234,56"         row
    "SAUDE.FORTALEZA"                      optional CATEGORY.CITY line
    "Compras parceladas - próximas faturas"  everything after is ignored

Premium wording ("Personnalité", "Mastercard Black", "Visa Infinite") or
per-card blocks are required, so a regular Itau invoice is never
claimed by this parser. When the PDF is available the remote extractor
is tried first and the text parse is the fallback.
"""

import re
from datetime import date
from typing import List, Optional

from src.utils.logger import get_logger
from src.utils.exceptions import RemoteExtractorError
from src.utils.text import (
    infer_year,
    normalize,
    parse_brl_amount,
    purchase_date,
    strip_accents,
)
from .base import DocumentAwareParser, InvoiceParserStrategy
from .categories import categorize
from .common import dedupe_by_installment, last_installment, remove_installment
from .itau import ItauParser
from .models import ParseResult, TransactionCandidate, TransactionType
from .remote_extractor import RemoteExtractorClient, parse_remote_date

# Initialize module logger
logger = get_logger(__name__)

CARD_LABEL = "Itau Personnalitê"
CARD_LABEL_MASTERCARD = "Itau Personnalitê Mastercard"

_MULTI_CARDS = re.compile(r"lan(?:c|ç)?amentos\s+no\s+cart(?:a|ã)?o.*final\s*\d{4}", re.IGNORECASE | re.DOTALL)
_PERSONALITE_LABEL = re.compile(r"itau\s+person{1,2}alite", re.IGNORECASE)
# Text layers sometimes space out the letters ("p e r s o n a l i t e")
_PERSONALITE_SPACED = re.compile(r"p\s*e\s*r\s*s\s*o\s*n(?:\s*n)?\s*a\s*l\s*i\s*t\s*e", re.IGNORECASE | re.DOTALL)
_LAUNCHES = re.compile(
    r"(?:lan(?:c|ç)?amentos\s*(?:[:：]?\s*)?compras\s+e\s+saques|lan(?:c|ç)?amentos\s+atuais\b)",
    re.IGNORECASE | re.DOTALL
)
_CARD_SECTION = re.compile(r"lan(?:c|ç)?amentos\s+no\s+cart(?:a|ã)?o\s*\(\s*final\s+(\d{4})\s*\)", re.IGNORECASE)
_INSTALLMENTS = re.compile(r"compras\s+parceladas", re.IGNORECASE | re.DOTALL)
_MONEY_AT_END = re.compile(r"(?:R\$\s*)?(-?(?:\d{1,3}(?:\.\d{3})*,\d{2}|\d+[.,]\d{2}))\s*$")
_DATE_AT_START = re.compile(r"^\d{2}/\d{2}\b")
_HEADER = re.compile(
    r".*(data\s+estabelecimento\s+valor|data\s+lan[cç]amentos\s+valor|estabelecimento\s+valor|valor\s+em\s+r\$).*",
    re.IGNORECASE
)
_PURCHASES_BLOCK = re.compile(
    r"lan(?:c|ç)?amentos\s*:\s*compras\s+e\s+saques(.*?)(?:compras\s+parceladas|$)", re.IGNORECASE | re.DOTALL
)
_FIRST_CARD_BLOCK = re.compile(
    r"(lan(?:c|ç)?amentos\s+no\s+cart(?:a|ã)?o\s*\(.*?final\s+\d{4}\s*\))(.*?)(?:compras\s+parceladas|$)",
    re.IGNORECASE | re.DOTALL
)

_ITAU_MARKERS = (
    "itau", "banco itau", "itau unibanco", "unibanco", "itaucard", "itau card",
    "ita unibanco", "ita cares", "itau cares", "itacares", "itaucares",
)
_SKIPPED_PREFIXES = (
    "lancamentos", "lanamentos", "total dos lancamentos atuais", "total dos lanamentos atuais",
    "total dos pagamentos",
)
_SKIPPED_WORDS = (
    "vencimento", "emissao", "emisso", "postagem", "previsao", "previso", "fechamento",
    "periodo", "peodo", "continua", " total dos pagamentos",
)
_PAYMENT_WORDS = ("deb", "automatic", "debitad", "efetuad")


def _search_form(value: Optional[str]) -> str:
    return strip_accents((value or "").replace("\u00a0", " ")).lower()


def _collapse(value: str) -> str:
    return re.sub(r"\s+", ' ', value or "").strip()


def _income_or_expense(amount, description: str):
    if amount < 0:
        return TransactionType.INCOME, abs(amount)
    lowered = _search_form(description)
    if "estorno" in lowered or "credito" in lowered:
        return TransactionType.INCOME, amount
    return TransactionType.EXPENSE, amount


class ItauPersonnaliteParser(InvoiceParserStrategy, DocumentAwareParser):
    """
    Parser for Itau Personnalite (premium) invoices.

    Attributes:
        remote_client: Remote structured extractor used by parse_with_document().
    """

    name = "itau_personnalite"
    bank_label = "Itaú Personnalité"

    def __init__(self, remote_client: Optional[RemoteExtractorClient] = None) -> None:
        self.remote_client = remote_client
        self._due_date_delegate = ItauParser()

    def is_applicable(self, text: str) -> bool:
        if not text or not text.strip():
            return False
        n = normalize(text)

        has_itau = any(marker in n for marker in _ITAU_MARKERS)
        has_premium = (
            "mastercard black" in n or ("mastercard" in n and "black" in n)
            or "visa infinite" in n or ("visa" in n and "infinite" in n)
        )
        has_personalite = (
            "personalite" in n or "personnalite" in n
            or bool(_PERSONALITE_LABEL.search(n)) or bool(_PERSONALITE_SPACED.search(n))
        )
        has_multiple_cards = bool(_MULTI_CARDS.search(n))

        has_invoice_layout = any([
            "resumo da fatura" in n,
            "parcelamento da fatura" in n or ("parcelamento" in n and "fatura" in n),
            "pagamento minimo" in n or "pagamentomnimo" in n,
            "o total da sua fatura" in n or "total desta fatura" in n or "total da fatura" in n,
            bool(_LAUNCHES.search(n)),
            has_multiple_cards,
            "lancamentos atuais" in n or "lanamentos atuais" in n,
            "total dos lancamentos atuais" in n or "total dos lanamentos atuais" in n,
        ])

        # "Resumo da fatura" and "lançamentos atuais" also appear on regular
        # Itau invoices; without the explicit name, card blocks or premium
        # branding are required.
        layout_count = int(has_multiple_cards) + int(has_premium)
        if has_itau or has_multiple_cards or has_premium:
            required = 1
        else:
            required = 2

        if has_personalite:
            result = has_invoice_layout
        else:
            result = has_invoice_layout and layout_count >= required

        logger.debug(
            f"Itau Personnalite {'ACCEPTED' if result else 'REJECTED'}: itau={has_itau} "
            f"personalite={has_personalite} cards={has_multiple_cards} premium={has_premium} "
            f"layout_count={layout_count} required={required}"
        )
        return result

    def extract_due_date(self, text: str) -> Optional[date]:
        return self._due_date_delegate.extract_due_date(text)

    def extract_transactions(self, text: str) -> List[TransactionCandidate]:
        if not text or not text.strip():
            return []

        due_date = self.extract_due_date(text)
        inferred_year = infer_year(text)
        if due_date is None:
            logger.debug("Itau Personnalite due date not found by parser; continuing with row extraction")

        # Rows after "Compras parceladas" belong to next invoices
        body = self._before_installments(text)
        if not body.strip():
            body = self._launches_section(text)
            if not body:
                return []

        is_mastercard = "mastercard" in _search_form(text)
        base_label = CARD_LABEL_MASTERCARD if is_mastercard else CARD_LABEL
        card_name = base_label

        transactions = []
        lines = body.splitlines()
        for index, raw in enumerate(lines):
            line = raw.strip()
            if not line:
                continue

            card_match = _CARD_SECTION.search(line)
            if card_match:
                card_name = f"{base_label} final {card_match.group(1)}"
                continue

            if self._is_noise(line):
                continue

            line = re.sub(r"^[^0-9]+", '', line).strip()
            if not line:
                continue
            if re.fullmatch(r"\d{2}/\d{2}/\d{4}[.)]?", line):
                continue
            if re.fullmatch(r"\d{2}/\d{2}\s+a\s+\d{2}/\d{2}\)?", line):
                continue
            if not _DATE_AT_START.search(line):
                continue

            category = self._category_from_next_line(lines, index)
            candidate = self._parse_row(line, due_date, inferred_year, card_name, category)
            if candidate is not None:
                transactions.append(candidate)
            else:
                logger.debug(f"Itau Personnalite could not parse row: {line}")

        return dedupe_by_installment(transactions)

    def parse_with_document(self, data: bytes, text: str) -> Optional[ParseResult]:
        """
        Parse through the remote extractor, falling back to the text parse.

        Any remote failure is logged and the pattern-based result is
        returned instead, so this method never raises for collaborator
        problems.
        """
        try:
            if self.remote_client is None:
                raise RemoteExtractorError("itau-personnalite", "remote extractor not configured")
            return self._parse_remote(data, text)
        except (RemoteExtractorError, ValueError) as e:
            logger.warning(f"Remote extractor failed for Itau Personnalite; falling back to text parser. reason={e}")
            return ParseResult(
                transactions=tuple(self.extract_transactions(text)),
                due_date=self.extract_due_date(text),
                parser_name=self.name,
            )

    def _parse_remote(self, data: bytes, text: str) -> ParseResult:
        response = self.remote_client.parse_itau_personnalite(data)
        if response is None:
            raise ValueError("remote extractor returned no response")

        due_date = response.due_date
        inferred_year = infer_year(text)
        base_label = CARD_LABEL_MASTERCARD if "mastercard" in _search_form(text) else CARD_LABEL

        transactions = []
        for tx in response.transactions:
            description = _collapse(tx.description or "")
            if not description or tx.amount is None:
                continue

            tx_type, amount = _income_or_expense(tx.amount, description)

            installment = tx.installment or last_installment(description)
            if installment is not None:
                description = remove_installment(description, installment)

            tx_date = parse_remote_date(tx.date_text, due_date, inferred_year)
            if tx_date is None:
                continue

            card_name = base_label
            if tx.card_final and re.fullmatch(r"\d{4}", tx.card_final):
                card_name = f"{base_label} final {tx.card_final}"

            transactions.append(TransactionCandidate(
                description=description,
                amount=amount,
                type=tx_type,
                category=categorize(description, tx_type),
                date=tx_date,
                card_name=card_name,
                installment=installment,
            ))

        logger.info(f"Remote extractor returned {len(transactions)} Itau Personnalite rows (due={due_date})")
        return ParseResult(
            transactions=tuple(dedupe_by_installment(transactions)),
            due_date=due_date,
            total_amount=response.total if response.total and response.total > 0 else None,
            parser_name=self.name,
        )

    @staticmethod
    def _before_installments(text: str) -> str:
        match = _INSTALLMENTS.search(text)
        if match and match.start() > 0:
            return text[:match.start()]
        return text

    @staticmethod
    def _launches_section(text: str) -> Optional[str]:
        match = _PURCHASES_BLOCK.search(text)
        if match:
            return match.group(1)
        match = _FIRST_CARD_BLOCK.search(text)
        if match:
            return f"{match.group(1)}\n{match.group(2)}"
        return None

    @staticmethod
    def _is_noise(line: str) -> bool:
        if _HEADER.fullmatch(line):
            return True
        n = _search_form(line)
        if n.startswith(_SKIPPED_PREFIXES):
            return True
        if "pagamento" in n and any(word in n for word in _PAYMENT_WORDS):
            return True
        return any(word in n for word in _SKIPPED_WORDS)

    @staticmethod
    def _category_from_next_line(lines: List[str], index: int) -> Optional[str]:
        """Read the "CATEGORY.CITY" line that may follow a row."""
        if index + 1 >= len(lines):
            return None
        following = lines[index + 1].strip()
        if not following or "." not in following or _HEADER.fullmatch(following):
            return None
        if _DATE_AT_START.search(re.sub(r"^[^0-9]+", '', following)):
            return None
        category = following.split('.', 1)[0].strip()
        return _collapse(category) or None

    @staticmethod
    def _parse_row(
        line: str,
        due_date: Optional[date],
        inferred_year: Optional[int],
        card_name: str,
        category: Optional[str]
    ) -> Optional[TransactionCandidate]:
        money = _MONEY_AT_END.search(line)
        if not money:
            return None

        establishment = _collapse(line[5:money.start(1)])
        establishment = re.sub(r"^[^\w]+", '', establishment).strip()
        if not establishment:
            return None

        installment = last_installment(establishment)
        if installment is not None:
            establishment = remove_installment(establishment, installment)

        amount = parse_brl_amount(money.group(1))
        if amount is None:
            return None
        tx_type, amount = _income_or_expense(amount, establishment)

        day, month = int(line[0:2]), int(line[3:5])
        return TransactionCandidate(
            description=establishment,
            amount=amount,
            type=tx_type,
            category=category or categorize(establishment, tx_type),
            date=purchase_date(day, month, due_date, inferred_year),
            card_name=card_name,
            installment=installment,
        )
