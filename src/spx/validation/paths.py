"""Path utilities for spx validators.

Expands file and directory arguments into Python source files and filters out
paths that should never be scanned (virtual environments, caches, etc.).
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

from spx.logging_config import get_logger

logger = get_logger(__name__)

# Directories to exclude when scanning for source files
IGNORED_DIRS = frozenset(
    {
        ".venv",
        "venv",
        "node_modules",
        "__pycache__",
        ".git",
        "dist",
        "build",
        ".tox",
        ".nox",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
        "site-packages",
    }
)

PYTHON_SUFFIXES = frozenset({".py", ".pyi"})


class PathNotFoundError(FileNotFoundError):
    """Raised when file arguments name paths that do not exist."""

    def __init__(self, paths: list[Path]) -> None:
        self.paths = paths
        joined = ", ".join(str(p) for p in paths)
        super().__init__(f"Path(s) not found: {joined}")


def is_python_file(path: Path) -> bool:
    """Check if a path has a Python source extension."""
    return path.suffix in PYTHON_SUFFIXES


def _should_skip_path(path: Path) -> bool:
    """Check if a relative path passes through an ignored or hidden directory."""
    return any(part in IGNORED_DIRS or part.startswith(".") for part in path.parts[:-1])


def iter_python_files(root: Path) -> Iterator[Path]:
    """Yield Python files under ``root`` in sorted order, skipping ignored directories.

    Args:
        root: Directory to scan.

    Yields:
        Absolute paths of Python source files.
    """
    for path in sorted(root.rglob("*")):
        if not path.is_file() or not is_python_file(path):
            continue

        try:
            rel_path = path.relative_to(root)
        except ValueError:
            continue

        if _should_skip_path(rel_path):
            continue

        yield path


def expand_file_paths(paths: list[Path], base_path: Path | None = None) -> list[Path]:
    """Expand file and directory arguments into Python source files.

    Directories contribute every Python file they contain; non-Python files
    are skipped with a warning. Duplicates are dropped, first occurrence wins.

    Args:
        paths: File or directory arguments.
        base_path: Base for relative arguments. Defaults to cwd.

    Returns:
        Absolute paths of the Python files to validate.

    Raises:
        PathNotFoundError: If any argument does not exist.
    """
    base = base_path or Path.cwd()
    valid_files: list[Path] = []
    missing: list[Path] = []

    for raw in paths:
        path = raw if raw.is_absolute() else base / raw
        if not path.exists():
            missing.append(raw)
            continue

        if path.is_dir():
            found = list(iter_python_files(path))
            logger.info("Found %d Python file(s) in directory: %s", len(found), raw)
            valid_files.extend(p.resolve() for p in found)
        elif is_python_file(path):
            valid_files.append(path.resolve())
        else:
            logger.warning("Skipping non-Python file: %s", raw)

    if missing:
        raise PathNotFoundError(missing)

    if paths and not valid_files:
        logger.warning("No Python files found in specified paths")

    return list(dict.fromkeys(valid_files))
