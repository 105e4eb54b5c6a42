"""Architecture boundary checks between the pure core and its collaborators."""

from __future__ import annotations

import ast
from pathlib import Path

PACKAGE_DIR = Path(__file__).resolve().parents[1] / "canasta"

# The parsing core may log, but must not reach storage, HTTP or the CLI.
CORE_ALLOWED_RUNTIME = frozenset({"canasta.runtime.logging"})
CORE_FORBIDDEN = (
    "canasta.application",
    "canasta.cli",
    "canasta.runtime",
    "fastapi",
    "httpx",
    "pydantic",
    "sqlite3",
    "starlette",
    "uvicorn",
)
WORKFLOW_FORBIDDEN = ("canasta.cli", "fastapi", "pydantic", "starlette", "uvicorn")


def _imports(path: Path) -> list[str]:
    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    result: list[str] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                result.append(alias.name)
        elif isinstance(node, ast.ImportFrom):
            result.append("." * node.level + (node.module or ""))
    return result


def _violations(
    subpackage: str, forbidden: tuple[str, ...], allowed: frozenset[str] = frozenset()
) -> list[str]:
    violations: list[str] = []
    for path in sorted((PACKAGE_DIR / subpackage).rglob("*.py")):
        for mod in _imports(path):
            if mod in allowed:
                continue
            if any(mod == prefix or mod.startswith(prefix + ".") for prefix in forbidden):
                violations.append(f"{path}: {mod}")
    return violations


def test_domain_is_free_of_collaborators() -> None:
    violations = _violations("domain", CORE_FORBIDDEN)
    assert not violations, "Domain import violations:\n" + "\n".join(violations)


def test_ticket_core_only_reaches_runtime_logging() -> None:
    violations = _violations("ticket", CORE_FORBIDDEN, CORE_ALLOWED_RUNTIME)
    assert not violations, "Ticket core import violations:\n" + "\n".join(violations)


def test_workflows_do_not_depend_on_outer_surfaces() -> None:
    violations = _violations("application", WORKFLOW_FORBIDDEN)
    assert not violations, "Workflow import violations:\n" + "\n".join(violations)


def test_core_modules_use_absolute_imports() -> None:
    relative = [
        f"{path}: {mod}"
        for sub in ("domain", "ticket", "application")
        for path in sorted((PACKAGE_DIR / sub).rglob("*.py"))
        for mod in _imports(path)
        if mod.startswith(".")
    ]
    assert not relative, "Relative imports:\n" + "\n".join(relative)
