"""Runtime loader for product matching thresholds."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

from canasta.runtime.config_files import load_toml
from canasta.runtime.logging import get_logger
from canasta.runtime.paths import get_paths
from canasta.ticket.matching import MatchConfig

logger = get_logger(__name__)


def build_match_config(config: dict[str, Any]) -> MatchConfig:
    """Build MatchConfig from a ``[matching]`` table, keeping defaults for missing keys.

    Raises:
        ValueError: Thresholds outside 0..1, min_similarity above the matched
            threshold, or a non-positive limit.
    """
    table = config.get("matching", {})
    defaults = MatchConfig()
    matched = float(table.get("matched_threshold", defaults.matched_threshold))
    minimum = float(table.get("min_similarity", defaults.min_similarity))
    limit = int(table.get("limit", defaults.limit))

    if not (0.0 <= minimum <= matched <= 1.0):
        raise ValueError(
            f"Invalid matching thresholds: need 0 <= min_similarity ({minimum}) "
            f"<= matched_threshold ({matched}) <= 1"
        )
    if limit < 1:
        raise ValueError(f"Invalid matching limit: {limit}")

    return MatchConfig(matched_threshold=matched, min_similarity=minimum, limit=limit)


@lru_cache(maxsize=4)
def load_match_config(config_path: str | None = None) -> MatchConfig:
    """Load matching thresholds from config/matching.toml (defaults when absent)."""
    path = Path(config_path) if config_path is not None else get_paths().matching_config
    config = build_match_config(load_toml(path))
    logger.debug(
        "Matching thresholds: matched>=%.2f, suggest>=%.2f, limit=%d",
        config.matched_threshold,
        config.min_similarity,
        config.limit,
    )
    return config
