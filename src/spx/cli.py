"""spx CLI - Main entry point."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape

from spx import __version__
from spx.cli_utils import (
    EXIT_HOOK_FAILURE,
    EXIT_SUCCESS,
    EXIT_USER_ERROR,
    ProjectRootNotFoundError,
    debug_option,
    dry_run_option,
    error,
    files_argument,
    find_project_root,
    fix_option,
    format_error_details,
    json_option,
    quiet_option,
    sequential_option,
    timeout_option,
    warning,
    wire_settings,
)
from spx.config import ValidationSettings, validate_paths_exist
from spx.logging_config import setup_logging
from spx.validation import (
    SubprocessRunner,
    ValidationContext,
    ValidationReport,
    ValidationRunner,
    ValidatorKind,
    build_lint_args,
    build_type_check_args,
)
from spx.validation.paths import PathNotFoundError, expand_file_paths, is_python_file
from spx.validation.scope import resolve_circular, resolve_lint, resolve_type_check
from spx.validation.type_checker import new_token

app = typer.Typer(
    name="spx",
    help="spx - validate Python projects with a type checker, a linter and an import-cycle check.",
    add_completion=False,
)

validate_app = typer.Typer(
    help="Run validation steps against the project or a set of files.",
    no_args_is_help=True,
)
app.add_typer(validate_app, name="validate")

# Rich consoles for output
console = Console()
err_console = Console(stderr=True)

ALL_KINDS = [ValidatorKind.TYPE_CHECK, ValidatorKind.LINT, ValidatorKind.CIRCULAR]

STEP_LABELS = {
    ValidatorKind.TYPE_CHECK: "Type check",
    ValidatorKind.LINT: "Lint",
    ValidatorKind.CIRCULAR: "Circular dependencies",
}

POSTEDIT_FIX_INSTRUCTIONS = [
    "1. Fix the lint errors listed above",
    "2. Re-run the type checker if you changed signatures",
    "3. Save the file to trigger another check",
]


# -----------------------------------------------------------------------------
# Output Helpers
# -----------------------------------------------------------------------------


def _output_success(message: str, quiet: bool = False) -> None:
    """Print a success message."""
    if not quiet:
        console.print(f"[green]Success:[/green] {message}")


def _output_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[red]Error:[/red] {message}")


def _print_report(report: ValidationReport, quiet: bool) -> None:
    """Print one line per step, then the error text of every failed step."""
    if not quiet:
        for result in report.results:
            status = "[green]PASS[/green]" if result.success else "[red]FAIL[/red]"
            console.print(f"  {status} {STEP_LABELS[result.kind]} ({result.duration:.1f}s)")

    for result in report.failed:
        err_console.print(f"\n[red bold]{STEP_LABELS[result.kind]} failed[/red bold]")
        err_console.print(escape(result.error or ""), highlight=False)

    if report.success:
        _output_success(f"All {report.validators_run} validation step(s) passed", quiet)
    else:
        _output_error(f"{len(report.failed)} of {report.validators_run} validation step(s) failed")


def _print_dry_run(
    context: ValidationContext,
    settings: ValidationSettings,
    kinds: list[ValidatorKind],
) -> None:
    """Print the commands a run would execute."""
    for kind in kinds:
        if kind is ValidatorKind.TYPE_CHECK:
            token = new_token() if context.files else None
            plan = resolve_type_check(context, settings, token)
            args = build_type_check_args(plan.config_file, plan.project_root, plan.targets)
            console.print(escape(" ".join([plan.command, *args])), highlight=False)
            if plan.ephemeral is not None:
                console.print(
                    f"  (temporary config inheriting from {plan.ephemeral.base_config.name}, "
                    f"{len(plan.ephemeral.included_files)} file(s))"
                )
        elif kind is ValidatorKind.LINT:
            lint_plan = resolve_lint(context, settings)
            args = build_lint_args(
                lint_plan.targets,
                lint_plan.project_root,
                lint_plan.output_format,
                lint_plan.fix,
            )
            console.print(escape(" ".join([lint_plan.command, *args])), highlight=False)
        else:
            circular_plan = resolve_circular(context, settings)
            console.print(f"import-cycle analysis of {escape(str(circular_plan.source_root))}")


# -----------------------------------------------------------------------------
# Shared Validation Flow
# -----------------------------------------------------------------------------


def _build_context(project_root: Path, files: list[Path] | None) -> ValidationContext | None:
    """Build the run context, or None when the file arguments hold no Python files."""
    if not files:
        return ValidationContext.full(project_root)

    try:
        expanded = expand_file_paths(files)
    except PathNotFoundError as e:
        error(str(e))

    if not expanded:
        return None
    return ValidationContext.for_files(project_root, expanded)


def _run_validation(
    kinds: list[ValidatorKind],
    files: list[Path] | None,
    fix: bool,
    json_output: bool,
    quiet: bool,
    sequential: bool,
    timeout: float | None,
    dry_run: bool,
    debug: bool,
) -> None:
    setup_logging(level="DEBUG" if debug else None, quiet=quiet or json_output)

    try:
        project_root = find_project_root()
    except ProjectRootNotFoundError as e:
        if json_output:
            console.print_json(json.dumps({"success": False, "error": str(e)}))
        error(str(e))

    settings = wire_settings(fix=fix, quiet=quiet or json_output, timeout=timeout, start_dir=project_root)

    path_errors = validate_paths_exist(settings, project_root)
    if path_errors:
        error("Project is not set up for validation:\n" + format_error_details(path_errors))

    context = _build_context(project_root, files)
    if context is None:
        warning("No Python files to validate")
        raise typer.Exit(code=EXIT_SUCCESS)

    if dry_run:
        _print_dry_run(context, settings, kinds)
        return

    runner = ValidationRunner(SubprocessRunner(), settings, parallel=not sequential)
    report = runner.run_sync(context, kinds)

    if json_output:
        console.print_json(json.dumps(report.to_dict()))
    else:
        _print_report(report, quiet)

    if not report.success:
        raise typer.Exit(code=EXIT_USER_ERROR)


# -----------------------------------------------------------------------------
# Version and Main Callbacks
# -----------------------------------------------------------------------------


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"spx version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """spx - validate Python projects with a type checker, a linter and an import-cycle check."""
    pass


# -----------------------------------------------------------------------------
# Validate Commands
# -----------------------------------------------------------------------------


@validate_app.command("all")
def validate_all(
    files: list[Path] | None = files_argument(),
    fix: bool = fix_option(),
    json_output: bool = json_option(),
    quiet: bool = quiet_option(),
    sequential: bool = sequential_option(),
    timeout: float | None = timeout_option(),
    dry_run: bool = dry_run_option(),
    debug: bool = debug_option(),
) -> None:
    """Run every validation step: type check, lint and circular dependencies.

    A failing step does not stop the others; the report lists every step.
    Exits with code 1 if any step fails.
    """
    _run_validation(ALL_KINDS, files, fix, json_output, quiet, sequential, timeout, dry_run, debug)


@validate_app.command("typecheck")
def validate_typecheck(
    files: list[Path] | None = files_argument(),
    json_output: bool = json_option(),
    quiet: bool = quiet_option(),
    timeout: float | None = timeout_option(),
    dry_run: bool = dry_run_option(),
    debug: bool = debug_option(),
) -> None:
    """Run the type checker.

    With file arguments only those files are checked, through a temporary
    configuration that inherits the project's type-checker settings.
    """
    _run_validation(
        [ValidatorKind.TYPE_CHECK], files, False, json_output, quiet, True, timeout, dry_run, debug
    )


@validate_app.command("lint")
def validate_lint(
    files: list[Path] | None = files_argument(),
    fix: bool = fix_option(),
    json_output: bool = json_option(),
    quiet: bool = quiet_option(),
    timeout: float | None = timeout_option(),
    dry_run: bool = dry_run_option(),
    debug: bool = debug_option(),
) -> None:
    """Run the linter over the project or the given files."""
    _run_validation([ValidatorKind.LINT], files, fix, json_output, quiet, True, timeout, dry_run, debug)


@validate_app.command("circular")
def validate_circular(
    json_output: bool = json_option(),
    quiet: bool = quiet_option(),
    dry_run: bool = dry_run_option(),
    debug: bool = debug_option(),
) -> None:
    """Check the source tree for circular imports.

    Always analyses the whole source tree: a cycle can run through modules
    outside any file subset.
    """
    _run_validation([ValidatorKind.CIRCULAR], None, False, json_output, quiet, True, None, dry_run, debug)


# -----------------------------------------------------------------------------
# Editor Hook Command
# -----------------------------------------------------------------------------


def _hook_file_path(raw: str) -> str | None:
    """Extract the edited file path from editor hook JSON."""
    if not raw.strip():
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    tool_input: Any = data.get("tool_input") or {}
    if not isinstance(tool_input, dict):
        return None
    for key in ("file_path", "path", "notebook_path"):
        value = tool_input.get(key)
        if isinstance(value, str) and value:
            return value
    return None


@validate_app.command("postedit")
def validate_postedit(
    debug: bool = debug_option(),
) -> None:
    """Check a file just written by an editor hook.

    Reads the hook's JSON payload from stdin, lints the edited file with
    fixes applied, and exits with code 2 when issues remain so the editor
    reports them back. Non-Python and missing files are skipped.
    """
    setup_logging(level="DEBUG" if debug else None, quiet=True)

    raw = "" if sys.stdin.isatty() else sys.stdin.read()
    file_arg = _hook_file_path(raw)
    if file_arg is None:
        raise typer.Exit(code=EXIT_SUCCESS)

    file_path = Path(file_arg)
    if not is_python_file(file_path):
        console.print(f"Skipped non-Python file: {escape(file_arg)}")
        raise typer.Exit(code=EXIT_SUCCESS)
    if not file_path.is_file():
        console.print(f"Skipped missing file: {escape(file_arg)}")
        raise typer.Exit(code=EXIT_SUCCESS)

    try:
        project_root = find_project_root(file_path.resolve().parent)
    except ProjectRootNotFoundError:
        console.print(f"Skipped file outside a project: {escape(file_arg)}")
        raise typer.Exit(code=EXIT_SUCCESS) from None

    settings = wire_settings(fix=True, quiet=True, start_dir=project_root)
    context = ValidationContext.for_files(project_root, [file_path.resolve()])

    runner = ValidationRunner(SubprocessRunner(), settings, parallel=False)
    report = runner.run_sync(context, [ValidatorKind.LINT])

    if report.success:
        console.print(f"{escape(file_path.name)} passed all checks")
        raise typer.Exit(code=EXIT_SUCCESS)

    for result in report.failed:
        err_console.print(escape(result.error or ""), highlight=False)
    err_console.print("\n[bold]Fix These Issues[/bold]")
    for line in POSTEDIT_FIX_INSTRUCTIONS:
        err_console.print(line)
    raise typer.Exit(code=EXIT_HOOK_FAILURE)


if __name__ == "__main__":
    app()
