"""Runtime infrastructure for canasta.

This package provides process/runtime services including:
- Logging setup via get_logger()
- Path resolution via get_paths(), ProjectPaths
- Rule loading via load_category_classifier(), load_match_config()

Storage, the OCR client, the image store and the HTTP server live in their own
modules (canasta.runtime.storage, .ocr_client, .image_store, .ticket_server)
and are imported where they are used.

Usage:
    from canasta.runtime import get_logger, get_paths

    logger = get_logger(__name__)
    paths = get_paths()
    print(paths.root, paths.database)
"""

from canasta.runtime.logging import (
    DEFAULT_LOG_LEVEL,
    LOG_FORMAT,
    LOG_FORMAT_DEBUG,
    configure_logging,
    get_logger,
    set_log_level,
)
from canasta.runtime.paths import ProjectPaths, get_paths, reset_paths
from canasta.runtime.category_rules import load_category_classifier
from canasta.runtime.matching_rules import build_match_config, load_match_config

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "set_log_level",
    "DEFAULT_LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_FORMAT_DEBUG",
    # Rules
    "load_category_classifier",
    "load_match_config",
    "build_match_config",
    # Paths
    "get_paths",
    "reset_paths",
    "ProjectPaths",
]
