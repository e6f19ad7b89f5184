from __future__ import annotations
import fnmatch
import logging
from pathlib import Path, PurePosixPath
from typing import Iterable

from rich.console import Console
from rich.logging import RichHandler

from slopless_action.errors import ConfigurationError

IGNORE_DIRS = {
    ".git", ".hg", ".svn",
    "node_modules", "bower_components",
    ".venv", "venv", "env",
    "__pycache__", ".pytest_cache", ".mypy_cache", ".ruff_cache",
    ".tox", ".nox", ".cache",
    "dist", "build", "target", ".next", ".nuxt", "coverage",
    ".idea", ".vscode",
}

IGNORE_FILE_GLOBS = (
    ".DS_Store", "Thumbs.db",
    "*.pyc", "*.pyo",
    "*.swp", "*.swo", "*~",
)

TRUE_VALUES = {"true", "1", "yes", "y", "on"}
FALSE_VALUES = {"false", "0", "no", "n", "off"}


def is_ignored_name(name: str) -> bool:
    return any(fnmatch.fnmatch(name, pattern) for pattern in IGNORE_FILE_GLOBS)


def match_any(rel_path: str, patterns: Iterable[str]) -> bool:
    p = PurePosixPath(rel_path)
    for pattern in patterns:
        if p.match(pattern):
            return True
        # "**/" should also match zero directories
        if "**/" in pattern and p.match(pattern.replace("**/", "")):
            return True
    return False


def iter_files(root: Path, extra_excludes: Iterable[str] = ()) -> Iterable[Path]:
    """Yield files under root in sorted order, skipping the deny-lists."""
    extra = list(extra_excludes)
    for p in sorted(root.rglob("*")):
        rel = p.relative_to(root)
        if set(rel.parts[:-1]) & IGNORE_DIRS:
            continue
        if not p.is_file():
            continue
        if is_ignored_name(p.name):
            continue
        if extra and match_any(rel.as_posix(), extra):
            continue
        yield p


def parse_bool(value: object, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_VALUES:
            return True
        if lowered in FALSE_VALUES:
            return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
