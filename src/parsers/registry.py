"""
Parser Registry.

Builds the ordered tuple of layout strategies. Order encodes priority:
more specific layouts come first (the Personnalite variant before the
regular Itau layout) and the selector prefers earlier strategies on
ties. Santander has broad applicability signals and the generic
label-driven parser matches almost anything with a due date and a
total, so both stay at the end.
"""

from typing import Optional, Tuple

from src.utils.logger import get_logger
from .banco_do_brasil import BancoDoBrasilParser
from .base import InvoiceParserStrategy
from .bradesco import BradescoParser
from .c6 import C6Parser
from .generic import GenericInvoiceParser
from .itau import ItauParser
from .itau_personnalite import ItauPersonnaliteParser
from .mercado_pago import MercadoPagoParser
from .nubank import NubankParser
from .remote_extractor import RemoteExtractorClient
from .santander import SantanderParser
from .sicredi import SicrediParser

# Initialize module logger
logger = get_logger(__name__)


def build_default_strategies(
    remote_client: Optional[RemoteExtractorClient] = None
) -> Tuple[InvoiceParserStrategy, ...]:
    """
    Build the priority-ordered strategy list.

    Args:
        remote_client: Remote structured extractor shared by the
            document-aware strategies. Built from configuration when
            omitted.

    Returns:
        Tuple of strategies, highest priority first.
    """
    if remote_client is None:
        remote_client = RemoteExtractorClient()
    logger.debug(f"Building parser strategies (remote extractor: {remote_client.base_url})")

    return (
        ItauPersonnaliteParser(remote_client),
        ItauParser(),
        BradescoParser(),
        BancoDoBrasilParser(),
        SicrediParser(remote_client),
        MercadoPagoParser(),
        NubankParser(),
        C6Parser(),
        SantanderParser(),
        GenericInvoiceParser(),
    )


def strategy_by_name(
    name: str,
    remote_client: Optional[RemoteExtractorClient] = None
) -> InvoiceParserStrategy:
    """
    Look up one strategy by its name attribute.

    Raises:
        KeyError: If no strategy has that name.
    """
    for strategy in build_default_strategies(remote_client):
        if strategy.name == name:
            return strategy
    raise KeyError(f"Unknown parser strategy: {name}")


__all__ = ['build_default_strategies', 'strategy_by_name']
