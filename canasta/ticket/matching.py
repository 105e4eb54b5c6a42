"""Match detected item names against one user's product catalog.

Names are normalized (accents, punctuation, sizes and packaging words removed)
and compared with word-padded trigram similarity, the same measure PostgreSQL's
pg_trgm uses, so "Leche Entera 1L" and "LECHE ENTERA" compare equal.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import lru_cache

from canasta.domain.catalog import MatchResult, Product, ProductMatch
from canasta.ticket.text import collapse_whitespace, strip_accents

# Match policy defaults, overridable from config/matching.toml.
MATCHED_THRESHOLD = 0.8
MIN_SIMILARITY = 0.3
SUGGESTION_LIMIT = 5
MIN_NORMALIZED_LENGTH = 2

UNIT_TOKENS = ("kg", "gr", "g", "ml", "lt", "l", "un", "und", "x", "paq", "paquete", "bolsa", "bsa", "cja", "caja")

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
# "1l", "500 gr", "2,5kg" (the comma is already a space by then)
_MEASURE = re.compile(r"\b\d+(?:\s\d+)?\s?(?:kg|gr|g|ml|lt|l|cc|oz|lb|un|und)\b")
_UNIT_WORDS = re.compile(r"\b(?:" + "|".join(UNIT_TOKENS) + r")\b")

Similarity = Callable[[str, str], float]


def normalize_name(name: str) -> str:
    """Reduce a product name to the words that identify the product.

    >>> normalize_name("Leche Entera 1L")
    'leche entera'
    """
    value = strip_accents(name.lower())
    value = _NON_ALNUM.sub(" ", value)
    value = collapse_whitespace(value)
    value = _MEASURE.sub(" ", value)
    value = _UNIT_WORDS.sub(" ", value)
    return collapse_whitespace(value)


@lru_cache(maxsize=4096)
def trigrams(value: str) -> frozenset[str]:
    """Word trigrams padded like pg_trgm: two spaces before each word, one after."""
    grams: set[str] = set()
    for word in value.split():
        padded = f"  {word} "
        for idx in range(len(padded) - 2):
            grams.add(padded[idx : idx + 3])
    return frozenset(grams)


def trigram_similarity(left: str, right: str) -> float:
    """Shared trigrams over all distinct trigrams of both strings (0.0 to 1.0)."""
    left_grams = trigrams(left)
    right_grams = trigrams(right)
    if not left_grams or not right_grams:
        return 0.0
    shared = len(left_grams & right_grams)
    return shared / len(left_grams | right_grams)


@dataclass(frozen=True)
class MatchConfig:
    """Thresholds that trade false matches against duplicate products."""

    matched_threshold: float = MATCHED_THRESHOLD
    min_similarity: float = MIN_SIMILARITY
    limit: int = SUGGESTION_LIMIT
    similarity: Similarity = field(default=trigram_similarity, compare=False)


@dataclass(frozen=True)
class _CatalogEntry:
    product: Product
    normalized: str


class UserCatalog:
    """The products of exactly one user, with names pre-normalized.

    Products owned by anyone else are dropped at construction, so a catalog
    can never leak matches across users.
    """

    def __init__(self, user_id: str, products: Iterable[Product]) -> None:
        self.user_id = user_id
        self._entries = tuple(
            _CatalogEntry(product=product, normalized=normalize_name(product.name))
            for product in products
            if product.user_id == user_id
        )

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def products(self) -> tuple[Product, ...]:
        return tuple(entry.product for entry in self._entries)

    def entries(self) -> tuple[_CatalogEntry, ...]:
        return self._entries


def _to_match(product: Product, similarity: float) -> ProductMatch:
    return ProductMatch(
        product_id=product.id,
        name=product.name,
        category=product.category,
        brand=product.brand,
        similarity=similarity,
    )


def find_similar(
    catalog: UserCatalog,
    name: str,
    limit: int = SUGGESTION_LIMIT,
    min_similarity: float = MIN_SIMILARITY,
    similarity: Similarity = trigram_similarity,
) -> list[ProductMatch]:
    """Rank catalog products by similarity to name.

    Args:
        catalog: The caller's catalog.
        name: Detected item name (raw; normalized here).
        limit: Maximum number of candidates returned.
        min_similarity: Candidates scoring below this are dropped. A score
            exactly at the threshold is kept.
        similarity: Scoring function over two normalized names.

    Returns:
        Candidates sorted by similarity, highest first.
    """
    normalized = normalize_name(name)
    if len(normalized) < MIN_NORMALIZED_LENGTH:
        return []

    scored = []
    for entry in catalog.entries():
        score = similarity(normalized, entry.normalized)
        if score >= min_similarity:
            scored.append(_to_match(entry.product, score))

    scored.sort(key=lambda match: match.similarity, reverse=True)
    return scored[:limit]


def match_product(catalog: UserCatalog, detected_name: str, config: MatchConfig | None = None) -> MatchResult:
    """Classify a detected name as MATCHED, PENDING or NEW.

    MATCHED when the best candidate reaches config.matched_threshold (the
    other candidates become suggestions), PENDING when there are candidates
    below it (all become suggestions), NEW when there are none.
    """
    if config is None:
        config = MatchConfig()

    candidates = find_similar(
        catalog,
        detected_name,
        limit=config.limit,
        min_similarity=config.min_similarity,
        similarity=config.similarity,
    )
    normalized = normalize_name(detected_name)

    if not candidates:
        return MatchResult(detected_name=detected_name, normalized_name=normalized, status="NEW")

    best = candidates[0]
    if best.similarity >= config.matched_threshold:
        return MatchResult(
            detected_name=detected_name,
            normalized_name=normalized,
            status="MATCHED",
            match=best,
            suggestions=tuple(candidates[1:]),
        )

    return MatchResult(
        detected_name=detected_name,
        normalized_name=normalized,
        status="PENDING",
        suggestions=tuple(candidates),
    )


def match_products(
    catalog: UserCatalog,
    detected_names: Sequence[str],
    config: MatchConfig | None = None,
    max_workers: int | None = None,
) -> list[MatchResult]:
    """Match several names against one catalog, preserving input order.

    Items are independent, so with max_workers > 1 they are matched on a
    thread pool. The catalog must belong to a single user.
    """
    if max_workers is None or max_workers <= 1 or len(detected_names) <= 1:
        return [match_product(catalog, name, config) for name in detected_names]

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(lambda name: match_product(catalog, name, config), detected_names))


def find_exact_product(catalog: UserCatalog, name: str) -> Product | None:
    """Return the first product whose normalized name equals the normalized name given."""
    normalized = normalize_name(name)
    if not normalized:
        return None
    for entry in catalog.entries():
        if entry.normalized == normalized:
            return entry.product
    return None
