"""Runtime loader for product category rules."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from canasta.runtime.config_files import load_toml
from canasta.runtime.logging import get_logger
from canasta.runtime.paths import get_paths
from canasta.ticket.categories import CategoryClassifier, build_category_rules

logger = get_logger(__name__)


@lru_cache(maxsize=8)
def load_category_classifier(rule_paths: tuple[str, ...] | None = None) -> CategoryClassifier:
    """Load category rules from runtime-configured files.

    Args:
        rule_paths: Explicit TOML files, checked in order. If None, the project
            file config/category_rules.toml is checked before the packaged
            defaults.

    Returns:
        A classifier over the merged rules.
    """
    if rule_paths is None:
        p = get_paths()
        files = [p.category_rules, p.default_category_rules]
    else:
        files = [Path(path) for path in rule_paths]

    configs = tuple(load_toml(path) for path in files)
    rules = build_category_rules(configs)
    logger.debug("Loaded %d category rules from %d files", len(rules.rules), len(files))
    return CategoryClassifier(rules)
