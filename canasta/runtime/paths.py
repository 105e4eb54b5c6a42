"""Centralized path management for canasta.

All runtime files (configuration, database, uploaded images) live under one
project root so the CLI and the server agree on where things are.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _get_project_root() -> Path:
    """Determine the project root directory (CANASTA_HOME or the working directory)."""
    configured = os.environ.get("CANASTA_HOME", "").strip()
    if configured:
        return Path(configured).expanduser()
    return Path.cwd()


@dataclass
class ProjectPaths:
    """Container for all project-related paths.

    All paths are computed relative to the project root, ensuring consistency
    across all modules regardless of the current working directory.
    """

    root: Path = field(default_factory=_get_project_root)

    def __post_init__(self) -> None:
        self.root = self.root.resolve()

    # --- Source code paths ---
    @property
    def src(self) -> Path:
        """Installed canasta package directory."""
        return Path(__file__).resolve().parents[1]

    @property
    def default_category_rules(self) -> Path:
        """Packaged default category keyword rules."""
        return self.src / "ticket" / "rules" / "default_categories.toml"

    # --- Configuration paths ---
    @property
    def config(self) -> Path:
        """Configuration directory (config/)."""
        return self.root / "config"

    @property
    def matching_config(self) -> Path:
        """Product matching thresholds TOML file."""
        return self.config / "matching.toml"

    @property
    def category_rules(self) -> Path:
        """Project-level category keyword rules TOML file."""
        return self.config / "category_rules.toml"

    # --- Data paths ---
    @property
    def data(self) -> Path:
        """Data directory (data/)."""
        return self.root / "data"

    @property
    def database(self) -> Path:
        """SQLite database holding catalogs, ticket scans and purchases."""
        return self.data / "canasta.sqlite3"

    @property
    def images(self) -> Path:
        """Uploaded ticket images."""
        return self.data / "images"

    def ensure_dirs(self) -> None:
        """Create data directories if they don't exist."""
        for path in (self.data, self.images):
            path.mkdir(parents=True, exist_ok=True)


# Global singleton instance
_paths: ProjectPaths | None = None


def get_paths() -> ProjectPaths:
    """Get the global ProjectPaths instance.

    Returns:
        The singleton ProjectPaths instance.
    """
    global _paths
    if _paths is None:
        _paths = ProjectPaths()
    return _paths


def reset_paths(root: Path | None = None) -> ProjectPaths:
    """Replace the global ProjectPaths instance (used by tests and the CLI --home flag)."""
    global _paths
    _paths = ProjectPaths(root=root) if root is not None else ProjectPaths()
    return _paths
