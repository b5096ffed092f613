"""Pytest configuration and fixtures for spx tests."""

from __future__ import annotations

import logging
import os
from collections.abc import Generator
from pathlib import Path

import pytest

# Set a fixed terminal width to prevent line wrapping issues in CI
# This must be set before any Rich imports
os.environ.setdefault("COLUMNS", "200")
os.environ.setdefault("LINES", "50")
# Disable Rich's terminal detection to ensure consistent output
os.environ.setdefault("TERM", "dumb")

from spx.config import ValidationSettings  # noqa: E402

PYPROJECT = """\
[project]
name = "fixture"
version = "0.0.0"

[tool.mypy]
strict = true

[tool.ruff]
line-length = 100
"""

CLEAN_MODULE = """\
def add(a: int, b: int) -> int:
    return a + b
"""

TYPE_ERROR_MODULE = """\
x: int = "a"
"""

LINT_ERROR_MODULE = """\
def compute() -> int:
    unused = 1
    return 2
"""


def write_project(root: Path, files: dict[str, str], pyproject: str = PYPROJECT) -> Path:
    """Write a fixture project: a pyproject.toml plus the given files.

    Args:
        root: Directory to create the project in.
        files: Relative path to file content.
        pyproject: Content of pyproject.toml.

    Returns:
        The project root.
    """
    root.mkdir(parents=True, exist_ok=True)
    (root / "pyproject.toml").write_text(pyproject)
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


@pytest.fixture(autouse=True)
def _isolate_spx_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Clear SPX_* variables and undo logging setup done by the CLI."""
    for key in list(os.environ):
        if key.startswith("SPX_"):
            monkeypatch.delenv(key)

    yield

    logger = logging.getLogger("spx")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def settings() -> ValidationSettings:
    """Default validation settings."""
    return ValidationSettings()


@pytest.fixture
def clean_project(tmp_path: Path) -> Path:
    """A project with no type, lint or import-cycle problems."""
    return write_project(
        tmp_path / "clean-project",
        {
            "src/app/__init__.py": "",
            "src/app/core.py": CLEAN_MODULE,
        },
    )


@pytest.fixture
def type_error_project(tmp_path: Path) -> Path:
    """A project with one deliberate type error."""
    return write_project(
        tmp_path / "with-type-errors",
        {
            "src/app/__init__.py": "",
            "src/app/core.py": CLEAN_MODULE,
            "src/app/broken.py": TYPE_ERROR_MODULE,
        },
    )


@pytest.fixture
def lint_error_project(tmp_path: Path) -> Path:
    """A project with an unused local variable."""
    return write_project(
        tmp_path / "with-lint-errors",
        {
            "src/app/__init__.py": "",
            "src/app/core.py": CLEAN_MODULE,
            "src/app/sloppy.py": LINT_ERROR_MODULE,
        },
    )


@pytest.fixture
def cycle_project(tmp_path: Path) -> Path:
    """A project whose modules pkg.a and pkg.b import each other."""
    return write_project(
        tmp_path / "with-cycle",
        {
            "src/pkg/__init__.py": "",
            "src/pkg/a.py": "from pkg import b\n\nVALUE = 1\n",
            "src/pkg/b.py": "from pkg import a\n\nOTHER = 2\n",
        },
    )
