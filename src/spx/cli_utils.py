"""CLI utility functions for spx.

Provides helper functions for:
- Config wiring: Extracting Typer CLI options and passing to load_settings
- Path resolution: Finding project root by looking for pyproject.toml
- Error formatting: Consistent user-friendly error messages with exit codes
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, NoReturn

import typer

from spx.config import ValidationSettings, load_settings

# Exit code conventions
EXIT_SUCCESS = 0
EXIT_USER_ERROR = 1  # Validation failure or user error (bad input, missing file, etc.)
EXIT_HOOK_FAILURE = 2  # Editor hook: the edited file needs fixing

PROJECT_MARKER = "pyproject.toml"


class ProjectRootNotFoundError(Exception):
    """Raised when project root cannot be found."""

    def __init__(self, start_dir: Path, marker: str = PROJECT_MARKER) -> None:
        self.start_dir = start_dir
        self.marker = marker
        super().__init__(
            f"Could not find project root (no '{marker}' found). Searched from: {start_dir}"
        )


# -----------------------------------------------------------------------------
# Error Formatting Helpers
# -----------------------------------------------------------------------------


def error(msg: str, *, exit_code: int = EXIT_USER_ERROR) -> NoReturn:
    """Print an error message and exit with the given exit code.

    Args:
        msg: The error message to display.
        exit_code: Exit code to use (default: EXIT_USER_ERROR=1).

    Raises:
        typer.Exit: Always raises to exit the program.
    """
    styled_prefix = typer.style("Error:", fg=typer.colors.RED, bold=True)
    typer.echo(f"{styled_prefix} {msg}", err=True)
    raise typer.Exit(code=exit_code)


def warning(msg: str) -> None:
    """Print a warning message to stderr.

    Args:
        msg: The warning message to display.
    """
    styled_prefix = typer.style("Warning:", fg=typer.colors.YELLOW, bold=True)
    typer.echo(f"{styled_prefix} {msg}", err=True)


def format_error_details(errors: list[str]) -> str:
    """Format a list of error messages for display.

    Args:
        errors: List of error messages.

    Returns:
        Formatted string with bullet points.
    """
    if not errors:
        return ""
    return "\n".join(f"  - {e}" for e in errors)


# -----------------------------------------------------------------------------
# Path Resolution Helper
# -----------------------------------------------------------------------------


def find_project_root(
    start_dir: Path | None = None,
    marker: str = PROJECT_MARKER,
) -> Path:
    """Find the project root by looking for the project marker.

    Traverses up the directory tree from start_dir looking for a directory
    containing the marker (default: pyproject.toml).

    Args:
        start_dir: Directory to start searching from. Defaults to cwd.
        marker: Name of the marker file or directory to look for.

    Returns:
        Path to the project root (directory containing the marker).

    Raises:
        ProjectRootNotFoundError: If no project root is found.
        PermissionError: If a directory cannot be accessed.
    """
    current = (start_dir or Path.cwd()).resolve()
    original_start = current

    while True:
        marker_path = current / marker

        try:
            if marker_path.exists():
                return current
        except PermissionError as e:
            raise PermissionError(
                f"Permission denied when checking for project root at: {current}"
            ) from e

        parent = current.parent

        # Check if we've reached the filesystem root
        if parent == current:
            raise ProjectRootNotFoundError(original_start, marker)

        current = parent


# -----------------------------------------------------------------------------
# Config Wiring Helper
# -----------------------------------------------------------------------------


def wire_settings(
    fix: bool | None = None,
    quiet: bool | None = None,
    timeout: float | None = None,
    start_dir: Path | None = None,
) -> ValidationSettings:
    """Wire CLI options to load_settings with appropriate overrides.

    Options left at None fall through to the environment and config files.

    Args:
        fix: Override for letting the linter apply fixes.
        quiet: Override for quiet progress output.
        timeout: Override for the per-step timeout in seconds.
        start_dir: Directory to start searching for config files.

    Returns:
        Fully resolved ValidationSettings instance.

    Raises:
        typer.Exit: If configuration is invalid.
    """
    cli_overrides: dict[str, Any] = {}

    # Flags only override when set; False means "not given" on the command line
    if fix:
        cli_overrides["fix"] = True
    if quiet:
        cli_overrides["quiet"] = True
    if timeout is not None:
        cli_overrides["timeout"] = timeout

    try:
        return load_settings(cli_overrides=cli_overrides, start_dir=start_dir)
    except ValueError as e:
        error(f"Invalid configuration: {e}", exit_code=EXIT_USER_ERROR)


# -----------------------------------------------------------------------------
# Typer Option Factory Functions
# -----------------------------------------------------------------------------
# Typer consumes Option objects when decorating commands, so every command
# needs fresh instances.


def files_argument() -> Any:
    """Create a Typer Argument for the optional file list."""
    return typer.Argument(
        None,
        help="Files or directories to validate. Validates the whole project when omitted.",
        show_default=False,
    )


def fix_option() -> Any:
    """Create a Typer Option for --fix."""
    return typer.Option(
        False,
        "--fix",
        help="Let the linter apply safe fixes.",
    )


def json_option() -> Any:
    """Create a Typer Option for --json."""
    return typer.Option(
        False,
        "--json",
        help="Output the report as JSON.",
    )


def quiet_option() -> Any:
    """Create a Typer Option for --quiet / -q."""
    return typer.Option(
        False,
        "--quiet",
        "-q",
        help="Minimal output for CI: only failures are printed.",
    )


def sequential_option() -> Any:
    """Create a Typer Option for --sequential."""
    return typer.Option(
        False,
        "--sequential",
        help="Run validators one after another instead of concurrently.",
    )


def timeout_option() -> Any:
    """Create a Typer Option for --timeout."""
    return typer.Option(
        None,
        "--timeout",
        min=0.1,
        help="Seconds a single validation step may run (default: 300).",
    )


def dry_run_option() -> Any:
    """Create a Typer Option for --dry-run."""
    return typer.Option(
        False,
        "--dry-run",
        help="Print the commands that would run, without running them.",
    )


def debug_option() -> Any:
    """Create a Typer Option for --debug."""
    return typer.Option(
        False,
        "--debug",
        help="Enable debug logging.",
    )
