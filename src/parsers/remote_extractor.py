"""
Remote Structured Extractor Client.

Some layouts (Itau Personnalite, Sicredi) are parsed far more reliably by
a dedicated extraction service that works on the original PDF. This
module is the small synchronous httpx client for that service.

Endpoints:
    POST {base_url}/parse/itau-personnalite
    POST {base_url}/parse/sicredi

Both accept a multipart upload named "file" and answer with:
    {
        "bank": "...",
        "dueDate": "2025-11-21",
        "total": 1234.56,
        "transactions": [
            {"date": "2025-10-03", "description": "...", "amount": 10.5,
             "cardFinal": "1234", "installment": {"current": 1, "total": 3}}
        ]
    }

Every failure (HTTP error, timeout, malformed body) raises
RemoteExtractorError; callers decide whether to fall back.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import httpx
from dateutil.parser import isoparse

from config import get_config
from src.utils.logger import get_logger
from src.utils.exceptions import RemoteExtractorError
from src.utils.text import purchase_date, safe_date
from .models import Installment

# Initialize module logger
logger = get_logger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000"

ITAU_PERSONNALITE_PATH = "/parse/itau-personnalite"
SICREDI_PATH = "/parse/sicredi"

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_DAY_MONTH = re.compile(r"^(\d{2})/(\d{2})$")
_FULL_DATE = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")


@dataclass(frozen=True)
class RemoteTransaction:
    """One row as returned by the remote extractor."""
    date_text: Optional[str]
    description: Optional[str]
    amount: Optional[Decimal]
    card_final: Optional[str] = None
    installment: Optional[Installment] = None


@dataclass(frozen=True)
class RemoteParse:
    """Structured response of the remote extractor."""
    bank: Optional[str]
    due_date: Optional[date]
    total: Optional[Decimal]
    transactions: List[RemoteTransaction] = field(default_factory=list)


def parse_remote_date(
    value: Optional[str],
    due_date: Optional[date] = None,
    fallback_year: Optional[int] = None
) -> Optional[date]:
    """
    Parse a date as returned by the remote extractor.

    Accepts ISO dates, "dd/mm/yyyy" and "dd/mm" (resolved against the
    due date's billing cycle).

    Returns:
        The date, or None when the value is missing or malformed.
    """
    if not value or not value.strip():
        return None
    value = value.strip()

    if _ISO_DATE.match(value):
        try:
            return isoparse(value).date()
        except ValueError:
            return None

    match = _DAY_MONTH.match(value)
    if match:
        return purchase_date(int(match.group(1)), int(match.group(2)), due_date, fallback_year)

    match = _FULL_DATE.match(value)
    if match:
        return safe_date(int(match.group(3)), int(match.group(2)), int(match.group(1)))

    return None


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def _to_installment(value: Any) -> Optional[Installment]:
    if not isinstance(value, dict):
        return None
    current, total = value.get("current"), value.get("total")
    if isinstance(current, int) and isinstance(total, int):
        return Installment(current=current, total=total)
    return None


class RemoteExtractorClient:
    """
    Synchronous client for the remote structured extractor.

    Attributes:
        base_url: Service root without trailing slash.
        timeout: Request timeout in seconds.

    Example:
        >>> client = RemoteExtractorClient("http://localhost:8000")
        >>> parsed = client.parse_sicredi(pdf_bytes)
        >>> print(parsed.due_date, len(parsed.transactions))
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None
    ) -> None:
        url = (base_url or get_config("remote_extractor.base_url", DEFAULT_BASE_URL) or DEFAULT_BASE_URL).strip()
        self.base_url = url.rstrip('/')
        self.timeout = float(timeout if timeout is not None else get_config("remote_extractor.timeout_seconds", 10))
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    def parse_itau_personnalite(self, data: bytes) -> RemoteParse:
        return self._post(ITAU_PERSONNALITE_PATH, data)

    def parse_sicredi(self, data: bytes) -> RemoteParse:
        return self._post(SICREDI_PATH, data)

    def _post(self, path: str, data: bytes) -> RemoteParse:
        """
        Upload a PDF and decode the structured response.

        Args:
            path: Endpoint path.
            data: PDF bytes.

        Returns:
            RemoteParse.

        Raises:
            RemoteExtractorError: On empty input, HTTP or transport
                errors, or a malformed response body.
        """
        endpoint = f"{self.base_url}{path}"
        if not data:
            raise RemoteExtractorError(endpoint, "document is empty")

        logger.info(f"Sending PDF to remote extractor: url={endpoint} bytes={len(data)} magic={data[:4]!r}")

        files = {"file": ("invoice.pdf", data, "application/pdf")}
        try:
            with self._client() as client:
                response = client.post(path, files=files)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as e:
            payload = e.response.text[:500] if e.response is not None else ""
            raise RemoteExtractorError(endpoint, f"status={e.response.status_code} body={payload}")
        except httpx.HTTPError as e:
            raise RemoteExtractorError(endpoint, f"{type(e).__name__}: {e}")
        except ValueError as e:
            raise RemoteExtractorError(endpoint, f"invalid JSON: {e}")

        if not isinstance(body, dict):
            raise RemoteExtractorError(endpoint, "empty or non-object body")

        return self._decode(endpoint, body)

    @staticmethod
    def _decode(endpoint: str, body: Dict[str, Any]) -> RemoteParse:
        raw_transactions = body.get("transactions")
        if raw_transactions is not None and not isinstance(raw_transactions, list):
            raise RemoteExtractorError(endpoint, "'transactions' is not a list")

        transactions = []
        for item in raw_transactions or []:
            if not isinstance(item, dict):
                continue
            transactions.append(RemoteTransaction(
                date_text=item.get("date"),
                description=item.get("description"),
                amount=_to_decimal(item.get("amount")),
                card_final=item.get("cardFinal"),
                installment=_to_installment(item.get("installment")),
            ))

        return RemoteParse(
            bank=body.get("bank"),
            due_date=parse_remote_date(body.get("dueDate")),
            total=_to_decimal(body.get("total")),
            transactions=transactions,
        )


__all__ = [
    'RemoteExtractorClient',
    'RemoteParse',
    'RemoteTransaction',
    'parse_remote_date',
]
