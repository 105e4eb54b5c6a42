"""Registry of store parsers: detection ranking and dispatch.

A registry is built once at startup, frozen, then shared read-only. It is
passed explicitly to whatever needs it rather than kept as a module global.
"""

from __future__ import annotations

from collections.abc import Iterable

from canasta.domain.errors import NotFoundError
from canasta.domain.ticket import DetectionResult, DetectionSummary, ParsedTicket
from canasta.runtime.logging import get_logger
from canasta.ticket.parsers.base import TicketParser

logger = get_logger(__name__)

# Below this best-detection confidence a human must confirm the store.
CONFIRMATION_THRESHOLD = 0.7
FALLBACK_KEY = "generic"


class ParserRegistry:
    """Holds parsers in registration order and picks one for a text.

    Registration must finish before the first detect/parse call; that call
    freezes the registry and later register() calls raise RuntimeError.
    """

    def __init__(self, fallback_key: str = FALLBACK_KEY) -> None:
        self._parsers: dict[str, TicketParser] = {}
        self._frozen = False
        self.fallback_key = fallback_key

    def register(self, parser: TicketParser) -> None:
        """Register a parser.

        Args:
            parser: Parser instance; its key must be unique in the registry.
        """
        if self._frozen:
            raise RuntimeError(f"Cannot register parser '{parser.key}': registry is frozen")
        if parser.key in self._parsers:
            raise ValueError(f"Parser '{parser.key}' is already registered")
        self._parsers[parser.key] = parser
        logger.debug("Registered parser: %s (%s)", parser.key, parser.store_name)

    def register_all(self, parsers: Iterable[TicketParser]) -> None:
        for parser in parsers:
            self.register(parser)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return len(self._parsers)

    def __contains__(self, key: object) -> bool:
        return key in self._parsers

    def get_parser(self, key: str) -> TicketParser:
        """Return the parser registered under key.

        Raises:
            NotFoundError: No parser has that key.
        """
        parser = self._parsers.get(key)
        if parser is None:
            raise NotFoundError(f"Parser '{key}' not found")
        return parser

    def detect(self, text: str) -> list[DetectionResult]:
        """Run every parser's detect() and rank the hits.

        Returns:
            Detections with confidence > 0, highest confidence first. Ties keep
            registration order.
        """
        self._frozen = True
        results = []
        for parser in self._parsers.values():
            result = parser.detect(text)
            if result is not None and result.confidence > 0:
                results.append(result)
        results.sort(key=lambda result: result.confidence, reverse=True)
        return results

    def detect_with_confirmation(self, text: str) -> DetectionSummary:
        """Detect the store and decide whether the user must confirm it."""
        results = self.detect(text)
        if not results:
            return DetectionSummary(detected=False, results=(), needs_confirmation=True, suggested=None)

        best = results[0]
        return DetectionSummary(
            detected=True,
            results=tuple(results),
            needs_confirmation=best.confidence < CONFIRMATION_THRESHOLD,
            suggested=best,
        )

    def best_parser(self, text: str) -> TicketParser | None:
        results = self.detect(text)
        if not results:
            return None
        return self._parsers[results[0].store_key]

    def parse(self, text: str, force_key: str | None = None) -> ParsedTicket:
        """Parse text with a forced parser, the best detected one, or the fallback.

        Args:
            text: Raw OCR text.
            force_key: Parser key chosen by the user, skipping detection.

        Raises:
            NotFoundError: force_key is not registered, or nothing detected and
                no fallback parser is registered.
        """
        if force_key:
            parser = self.get_parser(force_key)
        else:
            parser = self.best_parser(text) or self._parsers.get(self.fallback_key)
            if parser is None:
                raise NotFoundError("No parser available for this text")

        ticket = parser.parse(text)
        logger.debug(
            "Parsed ticket with %s: %d items, total %d",
            parser.key,
            len(ticket.items),
            ticket.totals.total,
        )
        return ticket

    def supported_stores(self) -> list[tuple[str, str]]:
        """Return (key, name) for every store-specific parser, in registration order."""
        return [(parser.key, parser.store_name) for parser in self._parsers.values() if parser.key != self.fallback_key]

    def health(self) -> dict[str, object]:
        return {
            "parsers_loaded": len(self._parsers),
            "stores": [key for key, _ in self.supported_stores()],
        }
