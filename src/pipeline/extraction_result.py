"""
Extraction Result Data Class.

This module defines the value returned by the extraction pipeline: the
accepted scored parse, the text it was parsed from and how the pipeline
got there (text source, OCR use, fallback decision).
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from src.parsers.models import ScoredParse, TransactionCandidate, TransactionType
from .state import FallbackDecision


@dataclass(frozen=True)
class ExtractionResult:
    """
    Final result of one extraction.

    Attributes:
        parse: Accepted scored parse.
        text: Text the parse was derived from.
        source: Top-level source: "text-layer" or "external-service".
        ocr_attempted: Whether the OCR retry was consumed.
        fallback_decision: External arbitration outcome, None when the
            external service was not consulted.
        source_file: Source filename, when known.
        processing_time: Wall time of the extraction in seconds.
        extraction_timestamp: When the extraction finished.

    Example:
        >>> result = pipeline.extract(pdf_bytes)
        >>> result.parse.score
        95
        >>> print(result.to_json())
    """
    parse: ScoredParse
    text: str
    source: str
    ocr_attempted: bool = False
    fallback_decision: Optional[FallbackDecision] = None
    source_file: Optional[str] = None
    processing_time: float = 0.0
    extraction_timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def transactions(self) -> Tuple[TransactionCandidate, ...]:
        return self.parse.transactions

    @property
    def score(self) -> int:
        return self.parse.score

    @property
    def expense_total(self) -> Decimal:
        return sum(
            (abs(tx.amount) for tx in self.transactions if tx.amount is not None and tx.type == TransactionType.EXPENSE),
            Decimal("0")
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the result to a JSON-friendly dictionary.

        Returns:
            Dictionary with the invoice fields, the rows and the
            extraction metadata.
        """
        parse = self.parse.parse
        return {
            'invoice': {
                'bank_name': parse.bank_name,
                'parser': parse.parser_name,
                'due_date': parse.due_date.isoformat() if parse.due_date else None,
                'total_amount': str(parse.total_amount) if parse.total_amount is not None else None,
                'card_last_four': parse.card_last_four,
            },
            'transactions': [tx.to_dict() for tx in self.transactions],
            'metadata': {
                'source_file': self.source_file,
                'source': self.source,
                'parse_source': self.parse.source,
                'quality_score': self.parse.score,
                'ocr_attempted': self.ocr_attempted,
                'fallback_decision': self.fallback_decision.value if self.fallback_decision else None,
                'transaction_count': len(self.transactions),
                'processing_time': round(self.processing_time, 3),
                'extraction_timestamp': self.extraction_timestamp,
            },
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def __str__(self) -> str:
        parse = self.parse.parse
        lines = [
            f"Extraction Result for: {self.source_file or 'Unknown'}",
            "-" * 50,
            f"  {'Bank':<15}: {parse.bank_name or '[NOT FOUND]'}",
            f"  {'Due date':<15}: {parse.due_date or '[NOT FOUND]'}",
            f"  {'Total':<15}: {parse.total_amount if parse.total_amount is not None else '[NOT FOUND]'}",
            f"  {'Transactions':<15}: {len(self.transactions)}",
            f"  {'Score':<15}: {self.parse.score} ({self.parse.source})",
            "-" * 50,
            f"Processing Time: {self.processing_time:.2f}s",
        ]
        return "\n".join(lines)


__all__ = ['ExtractionResult']
