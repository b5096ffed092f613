"""Lint validator (ruff)."""

from __future__ import annotations

import json
import re

from spx.logging_config import get_logger
from spx.validation.args import build_lint_args
from spx.validation.base import (
    BaseValidator,
    FailureKind,
    ValidationContext,
    ValidationStepResult,
    ValidatorKind,
    classify_abnormal_exit,
    summarize_lines,
)
from spx.validation.process import ExitStatus, SpawnOptions, run_process
from spx.validation.scope import resolve_lint

logger = get_logger(__name__)

TOOL_LABEL = "Linter"

# Exit code ruff uses when it terminates abnormally (bad config, bad args)
ABNORMAL_EXIT_CODE = 2

_VIOLATION_RE = re.compile(r"^(?P<path>.+?):(?P<line>\d+):(?P<column>\d+): (?P<message>.+)$")


def _json_violations(stdout: str) -> list[tuple[str, str]] | None:
    """Parse ``--output-format json`` output into (path, line) pairs."""
    text = stdout.strip()
    if not text.startswith("["):
        return None
    try:
        entries = json.loads(text)
    except json.JSONDecodeError:
        return None

    violations: list[tuple[str, str]] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        location = entry.get("location") or {}
        path = str(entry.get("filename", "?"))
        violations.append(
            (
                path,
                f"{path}:{location.get('row', '?')}:{location.get('column', '?')}: "
                f"{entry.get('code') or 'error'} {entry.get('message', '')}".rstrip(),
            )
        )
    return violations


def parse_lint_violations(stdout: str) -> list[tuple[str, str]]:
    """Extract violations from linter output.

    Returns:
        List of (path, display line) pairs, in output order.
    """
    from_json = _json_violations(stdout)
    if from_json is not None:
        return from_json

    violations: list[tuple[str, str]] = []
    for raw in stdout.splitlines():
        line = raw.rstrip()
        match = _VIOLATION_RE.match(line)
        if match is not None:
            violations.append((match["path"], line))
    return violations


def classify_lint_output(
    status: ExitStatus,
    stdout: str,
    stderr: str,
    command: str = "ruff",
) -> ValidationStepResult:
    """Classify a linter run.

    Exit code 0 passes. Otherwise the violations reported by the linter are
    summarized; when none can be parsed (e.g. a configuration error) the
    linter's own message is used.

    Args:
        status: Exit status of the run.
        stdout: Captured standard output.
        stderr: Captured standard error.
        command: Executable that ran, for messages.

    Returns:
        ValidationStepResult for the lint step.
    """
    kind = ValidatorKind.LINT
    abnormal = classify_abnormal_exit(kind, TOOL_LABEL, command, status)
    if abnormal is not None:
        return abnormal

    if status.code == 0:
        return ValidationStepResult.passed(kind)

    violations = parse_lint_violations(stdout) if status.code != ABNORMAL_EXIT_CODE else []
    if not violations:
        details = [line.strip() for line in (stderr or stdout).splitlines() if line.strip()]
        message = f"Lint failed: '{command}' exited with code {status.code}"
        if details:
            message += "\n" + summarize_lines(details, limit=10)
        return ValidationStepResult.failed(kind, FailureKind.TOOL_REPORTED_FAILURE, message)

    file_count = len({path for path, _ in violations})
    message = (
        f"Lint failed: {len(violations)} violation(s) in {file_count} file(s)\n"
        + summarize_lines([line for _, line in violations])
    )
    return ValidationStepResult.failed(kind, FailureKind.TOOL_REPORTED_FAILURE, message)


class LintValidator(BaseValidator):
    """Validator running the linter over the requested files or the whole project."""

    kind = ValidatorKind.LINT

    async def _validate(self, context: ValidationContext) -> ValidationStepResult:
        plan = resolve_lint(context, self.settings)
        args = build_lint_args(plan.targets, plan.project_root, plan.output_format, plan.fix)

        if plan.targets:
            self._progress("Linting %d file(s)", len(plan.targets))
        else:
            self._progress("Linting full scope")
        logger.debug("%s %s", plan.command, " ".join(args))

        result = await run_process(
            self.runner,
            plan.command,
            args,
            SpawnOptions(cwd=plan.project_root, timeout=plan.timeout),
        )
        return classify_lint_output(result.status, result.stdout, result.stderr, plan.command)
