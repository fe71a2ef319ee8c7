"""
Pipeline State Values.

Small enums threaded through one extraction invocation:

    OcrState          whether the one-shot OCR retry is still available
    TextSource        provenance tag of the text a parse came from
    FallbackDecision  outcome of the external-service arbitration
"""

from enum import Enum


class OcrState(str, Enum):
    """
    OCR availability within one invocation.

    AVAILABLE moves to CONSUMED after the first OCR run and never back.
    SKIPPED_FOR_ISSUER is set for issuers whose text layer is trusted.
    """
    AVAILABLE = "AVAILABLE"
    CONSUMED = "CONSUMED"
    SKIPPED_FOR_ISSUER = "SKIPPED_FOR_ISSUER"


class TextSource(str, Enum):
    """Where the parsed text came from."""
    TEXT_LAYER = "text-layer"
    TEXT_LAYER_SORTED = "text-layer-sorted"
    OCR = "ocr"
    EXTERNAL_SERVICE = "external-service"
    EXTERNAL_SERVICE_SORTED = "external-service-sorted"

    @property
    def is_external(self) -> bool:
        return self in (TextSource.EXTERNAL_SERVICE, TextSource.EXTERNAL_SERVICE_SORTED)


class FallbackDecision(str, Enum):
    """Which result the fallback arbitration kept."""
    LOCAL = "local"
    EXTERNAL = "external"
    LOCAL_FALLBACK = "local-fallback"


__all__ = ['OcrState', 'TextSource', 'FallbackDecision']
