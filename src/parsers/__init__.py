"""
Layout Parsers Module for the Card Invoice Extraction System.

This module provides:
    - One parser strategy per supported issuer layout
    - A label-driven fallback parser
    - Strategy selection over a single text
    - Merchant categorization
    - The client for the remote structured extractor

Supported issuers:
    - Itaú, Itaú Personnalité, Bradesco, Banco do Brasil, Sicredi,
      Mercado Pago, Nubank, C6 Bank, Santander
"""

from .models import (
    Installment,
    ParseResult,
    ScoredParse,
    TransactionCandidate,
    TransactionScope,
    TransactionType,
)
from .base import DocumentAwareParser, InvoiceParserStrategy
from .categories import MerchantCategoryMapper, categorize
from .remote_extractor import RemoteExtractorClient, RemoteParse
from .registry import build_default_strategies, strategy_by_name
from .selector import Candidate, ParserSelector, Selection

__all__ = [
    'Installment',
    'ParseResult',
    'ScoredParse',
    'TransactionCandidate',
    'TransactionScope',
    'TransactionType',
    'DocumentAwareParser',
    'InvoiceParserStrategy',
    'MerchantCategoryMapper',
    'categorize',
    'RemoteExtractorClient',
    'RemoteParse',
    'build_default_strategies',
    'strategy_by_name',
    'Candidate',
    'ParserSelector',
    'Selection',
]
