"""Keyword rules that assign a category to a new catalog product.

Used only when confirming a ticket creates a product the user did not have.
Rules come from TOML layers; the first rule with a keyword present in the
product name wins, and names matching nothing get the fallback label.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from canasta.ticket.text import collapse_whitespace, strip_accents

DEFAULT_FALLBACK_CATEGORY = "Otros"

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


def normalize_text(text: str) -> str:
    value = strip_accents(text.lower())
    return collapse_whitespace(_NON_ALNUM.sub(" ", value))


def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    # Whole words, tolerating a simple Spanish plural ("manzanas", "limones").
    words = [re.escape(word) for word in normalize_text(keyword).split()]
    return re.compile(r"\b" + r"\s+".join(words) + r"(?:s|es)?\b")


@dataclass(frozen=True)
class CategoryRule:
    category: str
    keywords: tuple[str, ...]
    patterns: tuple[re.Pattern[str], ...]


@dataclass(frozen=True)
class CategoryRules:
    """Ordered rules plus the label used when nothing matches."""

    rules: tuple[CategoryRule, ...]
    fallback: str = DEFAULT_FALLBACK_CATEGORY


def _normalize_keywords(raw: Any) -> tuple[str, ...]:
    """Normalize a keywords value from TOML into a tuple of non-empty strings."""
    if isinstance(raw, str):
        value = raw.strip()
        return (value,) if value else tuple()
    if isinstance(raw, list):
        return tuple(str(v).strip() for v in raw if str(v).strip())
    return tuple()


def build_category_rules(configs: Sequence[Mapping[str, Any]]) -> CategoryRules:
    """Merge rule configs; earlier configs are checked first.

    Args:
        configs: Parsed TOML documents with ``[[rules]]`` tables
            (``category`` and ``keywords``) and an optional ``fallback``.

    Returns:
        CategoryRules with every valid rule in order.
    """
    rules: list[CategoryRule] = []
    fallback = None
    for config in configs:
        if fallback is None and str(config.get("fallback", "")).strip():
            fallback = str(config["fallback"]).strip()

        for raw_rule in config.get("rules", []):
            if not isinstance(raw_rule, Mapping):
                continue
            category = str(raw_rule.get("category", "")).strip()
            keywords = _normalize_keywords(raw_rule.get("keywords"))
            if not category or not keywords:
                continue
            rules.append(
                CategoryRule(
                    category=category,
                    keywords=keywords,
                    patterns=tuple(_keyword_pattern(keyword) for keyword in keywords),
                )
            )

    return CategoryRules(rules=tuple(rules), fallback=fallback or DEFAULT_FALLBACK_CATEGORY)


class CategoryClassifier:
    """Pure keyword lookup from product name to category label."""

    def __init__(self, rules: CategoryRules) -> None:
        self.rules = rules

    def detect_category(self, product_name: str) -> str:
        normalized = normalize_text(product_name)
        for rule in self.rules.rules:
            if any(pattern.search(normalized) for pattern in rule.patterns):
                return rule.category
        return self.rules.fallback

    def get_categories(self) -> list[str]:
        """All category labels in rule order, fallback last."""
        seen: list[str] = []
        for rule in self.rules.rules:
            if rule.category not in seen:
                seen.append(rule.category)
        if self.rules.fallback not in seen:
            seen.append(self.rules.fallback)
        return seen
