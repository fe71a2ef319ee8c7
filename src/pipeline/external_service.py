"""
External Document-Extraction Service.

Client for the hosted PDF extraction API the pipeline consults when the
local result scores below the high-quality threshold.

Request:
    POST {endpoint}/extract
    Authorization: Bearer {access_token}
    x-api-key: {client_id}
    {"assetID": "<base64 PDF>"}

The service is strictly best effort: every failure is logged and
reported as "no result", never raised to the pipeline. Timeouts,
transport errors and 5xx answers are retried a few times with
exponential backoff before giving up.
"""

import base64
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import httpx

from config import get_config
from src.utils.exceptions import ExternalServiceError
from src.utils.logger import get_logger
from src.utils.retry import RetryConfig, retry_with_backoff
from .state import TextSource

# Initialize module logger
logger = get_logger(__name__)

STATUS_DISABLED = "DISABLED"
STATUS_NOT_CONFIGURED = "NOT_CONFIGURED"
STATUS_READY = "READY"

# Elements whose top edges are this close (in points) share a line
LINE_TOLERANCE = 2.0


class RetryableServiceError(ExternalServiceError):
    """A 5xx answer from the service; retried like a transport error."""


RETRYABLE_ERRORS = (httpx.TimeoutException, httpx.TransportError, RetryableServiceError)


@dataclass(frozen=True)
class ExtractedText:
    """
    Text returned by the external service.

    Attributes:
        text: Extracted text.
        source: TextSource tag; sorted when built from positioned elements.
    """
    text: str
    source: TextSource = TextSource.EXTERNAL_SERVICE


def elements_to_text(elements: List[Dict[str, Any]]) -> str:
    """
    Rebuild reading-order text from positioned elements.

    Elements carry "Text", "Page" and "Bounds" ([left, bottom, right, top]
    with the origin at the bottom of the page). They are ordered by page,
    then top to bottom, then left to right; elements on the same visual
    line are joined with two spaces so column layouts stay splittable.
    """
    positioned = []
    for element in elements:
        if not isinstance(element, dict):
            continue
        text = element.get("Text")
        if not isinstance(text, str) or not text.strip():
            continue
        bounds = element.get("Bounds") or [0, 0, 0, 0]
        try:
            left, top = float(bounds[0]), float(bounds[3])
        except (IndexError, TypeError, ValueError):
            left, top = 0.0, 0.0
        page = element.get("Page") if isinstance(element.get("Page"), int) else 0
        positioned.append((page, -top, left, text.strip()))

    positioned.sort(key=lambda item: (item[0], item[1], item[2]))

    lines: List[str] = []
    current: List[str] = []
    current_key = None
    for page, neg_top, _left, text in positioned:
        if current_key is not None and page == current_key[0] and abs(neg_top - current_key[1]) <= LINE_TOLERANCE:
            current.append(text)
            continue
        if current:
            lines.append("  ".join(current))
        current = [text]
        current_key = (page, neg_top)
    if current:
        lines.append("  ".join(current))
    return "\n".join(lines)


class ExternalExtractionService:
    """
    Best-effort client for the external extraction API.

    Attributes:
        enabled: external_service.enabled.
        endpoint: API root, without the "/extract" suffix.
        client_id: Sent as x-api-key.
        access_token: Sent as a Bearer token.
        timeout: Request timeout in seconds.

    Example:
        >>> service = ExternalExtractionService()
        >>> if service.is_available():
        ...     extracted = service.extract(pdf_bytes)
    """

    def __init__(
        self,
        enabled: Optional[bool] = None,
        endpoint: Optional[str] = None,
        client_id: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: Optional[float] = None,
        retry_config: Optional[RetryConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Optional[Callable[[float], None]] = None
    ) -> None:
        self.enabled = bool(get_config("external_service.enabled", False) if enabled is None else enabled)
        self.endpoint = (endpoint if endpoint is not None else get_config("external_service.endpoint", "")) or ""
        self.client_id = (client_id if client_id is not None else get_config("external_service.client_id", "")) or ""
        self.access_token = (
            access_token if access_token is not None else get_config("external_service.access_token", "")
        ) or ""
        self.timeout = float(timeout if timeout is not None else get_config("external_service.timeout_seconds", 30))
        self.retry_config = retry_config or RetryConfig.from_config()
        self._transport = transport
        self._sleep = sleep

    @property
    def configured(self) -> bool:
        return bool(self.endpoint.strip() and self.client_id.strip() and self.access_token.strip())

    def status(self) -> str:
        if not self.enabled:
            return STATUS_DISABLED
        if not self.configured:
            return STATUS_NOT_CONFIGURED
        return STATUS_READY

    def is_available(self) -> bool:
        return self.status() == STATUS_READY

    @property
    def url(self) -> str:
        endpoint = self.endpoint.strip()
        return endpoint + ("extract" if endpoint.endswith("/") else "/extract")

    def extract(self, data: bytes) -> Optional[ExtractedText]:
        """
        Send a PDF to the service.

        Args:
            data: PDF bytes.

        Returns:
            ExtractedText, or None when the service is unavailable,
            failed after all attempts or answered with nothing.
        """
        if not data:
            logger.debug("External service skipped: empty document")
            return None

        status = self.status()
        if status != STATUS_READY:
            logger.debug(f"External service skipped: status={status}")
            return None

        payload = {"assetID": base64.b64encode(data).decode("ascii")}
        try:
            kwargs = {"sleep": self._sleep} if self._sleep is not None else {}
            response = retry_with_backoff(self._post, self.retry_config, RETRYABLE_ERRORS, payload, **kwargs)
        except (httpx.HTTPError, ExternalServiceError) as e:
            logger.warning(f"External service call failed: {type(e).__name__}: {e}")
            return None

        extracted = self._read_response(response)
        if extracted is None or not extracted.text.strip():
            logger.warning("External service returned an empty result")
            return None

        logger.info(f"External extraction successful: {len(extracted.text)} chars ({extracted.source.value})")
        return extracted

    def _post(self, payload: Dict[str, str]) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "x-api-key": self.client_id,
        }
        logger.debug(f"Calling external service at: {self.url}")
        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            response = client.post(self.url, json=payload, headers=headers)

        if response.status_code >= 500:
            raise RetryableServiceError(self.url, f"status={response.status_code}")
        if response.status_code >= 400:
            raise ExternalServiceError(self.url, f"status={response.status_code} body={response.text[:500]}")
        return response

    @staticmethod
    def _read_response(response: httpx.Response) -> Optional[ExtractedText]:
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            elements = body.get("elements")
            if isinstance(elements, list) and elements:
                text = elements_to_text(elements)
                if text.strip():
                    return ExtractedText(text=text, source=TextSource.EXTERNAL_SERVICE_SORTED)
            if isinstance(body.get("text"), str):
                return ExtractedText(text=body["text"], source=TextSource.EXTERNAL_SERVICE)
            logger.warning(f"External service response has no usable text: keys={sorted(body)}")
            return None

        raw = response.text
        return ExtractedText(text=raw, source=TextSource.EXTERNAL_SERVICE) if raw else None


__all__ = ['ExternalExtractionService', 'ExtractedText', 'elements_to_text']
