"""Command-line argument builders for the linter and the type checker.

Pure functions: the same inputs always give the same argument list, so the
CLI can preview a command and tests can check it without running anything.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from pathlib import Path


def _display_path(path: Path, project_root: Path) -> str:
    """Render ``path`` relative to the project root when it lies inside it."""
    if not path.is_absolute():
        return str(path)
    try:
        relative = path.relative_to(project_root)
    except ValueError:
        return str(path)
    return str(relative) if str(relative) != "." else "."


def build_lint_args(
    targets: Sequence[Path],
    project_root: Path,
    output_format: str = "concise",
    fix: bool = False,
) -> list[str]:
    """Build ``ruff`` arguments.

    Args:
        targets: Files to lint. Empty means the whole project.
        project_root: Root directory of the project; the target when no files
            are given, and the base for rendering relative paths.
        output_format: Value for ``--output-format``.
        fix: Add ``--fix``.

    Returns:
        Argument list, without the executable.
    """
    args = ["check"]
    if not targets:
        args.append(str(project_root))
    args.extend(["--output-format", output_format, "--no-cache"])
    if fix:
        args.append("--fix")
    if targets:
        # "--" keeps file names starting with a dash from being read as flags
        args.append("--")
        args.extend(_display_path(t, project_root) for t in targets)
    return args


def build_type_check_args(
    config_file: Path,
    project_root: Path,
    targets: Sequence[Path] = (),
) -> list[str]:
    """Build ``mypy`` arguments.

    ``--cache-dir`` points at the null device so a run writes nothing to the
    project.

    Args:
        config_file: Configuration file to use.
        project_root: Root directory of the project, the base for rendering
            relative paths.
        targets: Paths to check. Empty when the configuration lists the files.

    Returns:
        Argument list, without the executable.
    """
    args = [
        "--config-file",
        _display_path(config_file, project_root),
        "--cache-dir",
        os.devnull,
        "--no-color-output",
        "--show-error-codes",
    ]
    args.extend(_display_path(t, project_root) for t in targets)
    return args
