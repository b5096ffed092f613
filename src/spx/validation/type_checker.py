"""Type-check validator (mypy).

Runs the type checker over the source tree (FULL scope) or over exactly the
requested files through an ephemeral configuration (FILES scope), and turns
its output into a ``ValidationStepResult``.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from spx.config import ValidationSettings
from spx.logging_config import get_logger
from spx.validation.args import build_type_check_args
from spx.validation.base import (
    BaseValidator,
    FailureKind,
    ValidationContext,
    ValidationScope,
    ValidationStepResult,
    ValidatorKind,
    classify_abnormal_exit,
    summarize_lines,
)
from spx.validation.ephemeral import EphemeralTypeCheckConfig
from spx.validation.process import ExitStatus, ProcessRunner, SpawnOptions, run_process
from spx.validation.scope import TypeCheckPlan, resolve_type_check

logger = get_logger(__name__)

TOOL_LABEL = "Type checker"

_DIAGNOSTIC_RE = re.compile(
    r"^(?P<path>.+?):(?P<line>\d+)(?::(?P<column>\d+))?: "
    r"(?P<severity>error|warning|note): (?P<message>.*?)(?:\s+\[(?P<code>[\w-]+)\])?$"
)


@dataclass(frozen=True)
class TypeDiagnostic:
    """One diagnostic line of type-checker output."""

    path: str
    line: int
    severity: str
    message: str
    code: str | None
    text: str

    @property
    def is_syntax(self) -> bool:
        return self.code == "syntax" or self.message.startswith("invalid syntax")


def parse_type_diagnostics(output: str) -> list[TypeDiagnostic]:
    """Parse ``path:line: severity: message  [code]`` lines."""
    diagnostics: list[TypeDiagnostic] = []
    for raw in output.splitlines():
        line = raw.rstrip()
        match = _DIAGNOSTIC_RE.match(line)
        if match is None:
            continue
        diagnostics.append(
            TypeDiagnostic(
                path=match["path"],
                line=int(match["line"]),
                severity=match["severity"],
                message=match["message"],
                code=match["code"],
                text=line,
            )
        )
    return diagnostics


def _first_lines(text: str, limit: int = 5) -> list[str]:
    return [line.strip() for line in text.splitlines() if line.strip()][:limit]


def classify_type_check_output(
    status: ExitStatus,
    stdout: str,
    stderr: str,
    command: str = "mypy",
) -> ValidationStepResult:
    """Classify a type-checker run.

    Exit code 0 passes. A nonzero exit fails with a summary naming the
    diagnostic category found in the output: type errors, syntax errors, or,
    when nothing parseable was printed, the checker's own error message.

    Args:
        status: Exit status of the run.
        stdout: Captured standard output.
        stderr: Captured standard error.
        command: Executable that ran, for messages.

    Returns:
        ValidationStepResult for the type-check step.
    """
    kind = ValidatorKind.TYPE_CHECK
    abnormal = classify_abnormal_exit(kind, TOOL_LABEL, command, status)
    if abnormal is not None:
        return abnormal

    if status.code == 0:
        return ValidationStepResult.passed(kind)

    errors = [d for d in parse_type_diagnostics(stdout + "\n" + stderr) if d.severity == "error"]
    if not errors:
        details = _first_lines(stderr) or _first_lines(stdout)
        message = f"Type checker '{command}' exited with code {status.code}"
        if details:
            message += ":\n" + summarize_lines(details)
        return ValidationStepResult.failed(kind, FailureKind.TOOL_REPORTED_FAILURE, message)

    syntax_count = sum(1 for d in errors if d.is_syntax)
    type_count = len(errors) - syntax_count
    file_count = len({d.path for d in errors})

    categories: list[str] = []
    if type_count:
        categories.append(f"{type_count} type error(s)")
    if syntax_count:
        categories.append(f"{syntax_count} syntax error(s)")

    message = (
        f"Type check failed: {' and '.join(categories)} in {file_count} file(s)\n"
        + summarize_lines([d.text for d in errors])
    )
    return ValidationStepResult.failed(kind, FailureKind.TOOL_REPORTED_FAILURE, message)


def new_token() -> str:
    """Return a fresh token for naming an ephemeral configuration."""
    return uuid.uuid4().hex


class TypeCheckValidator(BaseValidator):
    """Validator running the type checker.

    In FILES scope an ephemeral configuration is written before the run and
    removed afterwards, whatever the outcome.
    """

    kind = ValidatorKind.TYPE_CHECK

    def __init__(
        self,
        runner: ProcessRunner,
        settings: ValidationSettings,
        token_factory: Callable[[], str] = new_token,
    ) -> None:
        """Initialize validator.

        Args:
            runner: Process runner used to spawn the type checker.
            settings: Validation settings.
            token_factory: Produces the unique token naming the ephemeral
                configuration.
        """
        super().__init__(runner, settings)
        self.token_factory = token_factory

    async def _validate(self, context: ValidationContext) -> ValidationStepResult:
        token = self.token_factory() if context.scope is ValidationScope.FILES else None
        plan = resolve_type_check(context, self.settings, token)

        if plan.ephemeral is None:
            return await self._run(plan)

        with EphemeralTypeCheckConfig(plan.ephemeral):
            return await self._run(plan)

    async def _run(self, plan: TypeCheckPlan) -> ValidationStepResult:
        args = build_type_check_args(plan.config_file, plan.project_root, plan.targets)

        if plan.ephemeral is not None:
            self._progress(
                "Type checking %d file(s) using %s",
                len(plan.ephemeral.included_files),
                plan.ephemeral.base_config.name,
            )
        else:
            self._progress("Type checking full scope using %s", plan.config_file.name)
        logger.debug("%s %s", plan.command, " ".join(args))

        result = await run_process(
            self.runner,
            plan.command,
            args,
            SpawnOptions(cwd=plan.project_root, timeout=plan.timeout),
        )
        return classify_type_check_output(result.status, result.stdout, result.stderr, plan.command)
