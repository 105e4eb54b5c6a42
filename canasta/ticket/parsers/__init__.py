"""Store-specific ticket parsers and the registry that chooses between them."""

from canasta.ticket.parsers.ara import AraParser
from canasta.ticket.parsers.base import TicketParser
from canasta.ticket.parsers.d1 import D1Parser
from canasta.ticket.parsers.dollarcity import DollarcityParser
from canasta.ticket.parsers.generic import GenericParser
from canasta.ticket.parsers.gigante import GiganteParser
from canasta.ticket.parsers.olimpica import OlimpicaParser
from canasta.ticket.parsers.registry import CONFIRMATION_THRESHOLD, ParserRegistry


def build_default_registry() -> ParserRegistry:
    """Create a frozen registry with every bundled parser, Generic last."""
    registry = ParserRegistry()
    registry.register_all(
        [
            D1Parser(),
            OlimpicaParser(),
            DollarcityParser(),
            AraParser(),
            GiganteParser(),
            GenericParser(),
        ]
    )
    registry.freeze()
    return registry


__all__ = [
    "AraParser",
    "CONFIRMATION_THRESHOLD",
    "D1Parser",
    "DollarcityParser",
    "GenericParser",
    "GiganteParser",
    "OlimpicaParser",
    "ParserRegistry",
    "TicketParser",
    "build_default_registry",
]
