"""Base validator classes and models for the spx validation framework.

Provides the run context, the per-step result type and the abstract
validator that every tool-specific validator extends.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any

from spx.config import ValidationSettings
from spx.logging_config import get_logger
from spx.validation.process import ExitStatus, ProcessRunner

logger = get_logger(__name__)


class ValidationError(Exception):
    """Base exception for validation errors."""


class ConfigGenerationError(ValidationError):
    """Raised when an ephemeral type-check configuration cannot be written or deleted."""


class ValidationScope(str, Enum):
    """Whether a run covers the whole project or a subset of files."""

    FULL = "full"
    FILES = "files"


class ValidatorKind(str, Enum):
    """The validators the orchestrator knows how to run."""

    TYPE_CHECK = "typecheck"
    LINT = "lint"
    CIRCULAR = "circular"


class FailureKind(str, Enum):
    """Why a validation step failed."""

    TOOL_NOT_FOUND = "tool_not_found"
    TOOL_REPORTED_FAILURE = "tool_reported_failure"
    CONFIG_GENERATION_FAILURE = "config_generation_failure"
    UNEXPECTED_CRASH = "unexpected_crash"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class ValidationContext:
    """Immutable description of one validation run.

    Attributes:
        project_root: Root directory of the project being validated.
        scope: FULL for the whole project, FILES for ``files`` only.
        files: Files to validate. Required (non-empty) iff scope is FILES.
    """

    project_root: Path
    scope: ValidationScope = ValidationScope.FULL
    files: tuple[Path, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "project_root", Path(self.project_root))
        object.__setattr__(self, "scope", ValidationScope(self.scope))
        object.__setattr__(self, "files", tuple(Path(f) for f in self.files))

        if self.scope is ValidationScope.FILES and not self.files:
            raise ValueError("FILES scope requires at least one file")
        if self.scope is ValidationScope.FULL and self.files:
            raise ValueError("FULL scope does not take a file list")

    @classmethod
    def full(cls, project_root: Path) -> ValidationContext:
        return cls(project_root=project_root, scope=ValidationScope.FULL)

    @classmethod
    def for_files(cls, project_root: Path, files: list[Path] | tuple[Path, ...]) -> ValidationContext:
        return cls(project_root=project_root, scope=ValidationScope.FILES, files=tuple(files))

    def absolute_files(self) -> tuple[Path, ...]:
        """Return ``files`` resolved against the project root."""
        return tuple(f if f.is_absolute() else self.project_root / f for f in self.files)


@dataclass(frozen=True)
class ValidationStepResult:
    """Result of a single validator run.

    Attributes:
        kind: Which validator produced the result.
        success: Whether the step passed.
        error: Human-readable summary of the failure. Present iff not success.
        failure: Category of the failure. Present iff not success.
        duration: Wall-clock seconds the step took.
    """

    kind: ValidatorKind
    success: bool
    error: str | None = None
    failure: FailureKind | None = None
    duration: float = 0.0

    def __post_init__(self) -> None:
        if self.success and (self.error is not None or self.failure is not None):
            raise ValueError("a successful step cannot carry an error")
        if not self.success and (not self.error or self.failure is None):
            raise ValueError("a failed step needs both an error and a failure kind")

    @classmethod
    def passed(cls, kind: ValidatorKind) -> ValidationStepResult:
        return cls(kind=kind, success=True)

    @classmethod
    def failed(cls, kind: ValidatorKind, failure: FailureKind, error: str) -> ValidationStepResult:
        return cls(kind=kind, success=False, error=error, failure=failure)

    def with_duration(self, duration: float) -> ValidationStepResult:
        return replace(self, duration=duration)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "success": self.success,
            "error": self.error,
            "failure": self.failure.value if self.failure else None,
            "duration": round(self.duration, 3),
        }


def classify_abnormal_exit(
    kind: ValidatorKind,
    tool: str,
    command: str,
    status: ExitStatus,
) -> ValidationStepResult | None:
    """Classify exits that are not a normal exit code.

    Args:
        kind: Validator the status belongs to.
        tool: Human-readable tool role (e.g. "Type checker").
        command: Executable that was spawned.
        status: Exit status reported by the process runner.

    Returns:
        A failed result for spawn failures, signals and timeouts, or None for a
        normal exit, which the tool-specific classifier handles.
    """
    if status.kind == "spawn_failed":
        return ValidationStepResult.failed(
            kind,
            FailureKind.TOOL_NOT_FOUND,
            f"{tool} '{command}' could not be started ({status.reason}). Is it installed?",
        )
    if status.kind == "signaled":
        return ValidationStepResult.failed(
            kind,
            FailureKind.UNEXPECTED_CRASH,
            f"{tool} '{command}' was terminated by signal {status.signal}",
        )
    if status.kind == "timed_out":
        return ValidationStepResult.failed(
            kind,
            FailureKind.TIMEOUT,
            f"{tool} '{command}' timed out after {status.timeout:g}s",
        )
    if status.code is None:
        return ValidationStepResult.failed(
            kind,
            FailureKind.UNEXPECTED_CRASH,
            f"{tool} '{command}' produced no exit status",
        )
    return None


def summarize_lines(lines: list[str], limit: int = 20) -> str:
    """Join output lines, truncating after ``limit`` entries."""
    shown = [f"  {line}" for line in lines[:limit]]
    if len(lines) > limit:
        shown.append(f"  ... and {len(lines) - limit} more")
    return "\n".join(shown)


class BaseValidator(ABC):
    """Abstract base class for all validators.

    ``validate`` is the validator boundary: whatever goes wrong inside
    ``_validate`` comes back as a failed ``ValidationStepResult``.

    Attributes:
        kind: Validator kind, set by subclasses.
        runner: Process runner used for every spawned tool.
        settings: Settings for the run.
    """

    kind: ValidatorKind

    def __init__(self, runner: ProcessRunner, settings: ValidationSettings) -> None:
        """Initialize validator.

        Args:
            runner: Process runner used for every spawned tool.
            settings: Validation settings.
        """
        self.runner = runner
        self.settings = settings

    async def validate(self, context: ValidationContext) -> ValidationStepResult:
        """Run the validator and classify the outcome.

        Args:
            context: The run context.

        Returns:
            ValidationStepResult for this validator. Never raises.
        """
        started = time.perf_counter()
        try:
            result = await self._validate(context)
        except ConfigGenerationError as e:
            result = ValidationStepResult.failed(
                self.kind,
                FailureKind.CONFIG_GENERATION_FAILURE,
                f"Could not manage the temporary type-check configuration: {e}",
            )
        except Exception as e:
            logger.debug("%s validator raised", self.kind.value, exc_info=True)
            result = ValidationStepResult.failed(
                self.kind,
                FailureKind.UNEXPECTED_CRASH,
                f"{self.kind.value} validator failed: {e!s}",
            )

        duration = time.perf_counter() - started
        self._log_outcome(result, duration)
        return result.with_duration(duration)

    def _progress(self, message: str, *args: object) -> None:
        """Log a progress message; demoted to debug level in quiet mode."""
        level = logging.DEBUG if self.settings.quiet else logging.INFO
        logger.log(level, message, *args)

    def _log_outcome(self, result: ValidationStepResult, duration: float) -> None:
        if result.success:
            self._progress("%s passed (%.1fs)", self.kind.value, duration)
        else:
            logger.debug("%s failed: %s", self.kind.value, result.failure.value if result.failure else "")

    @abstractmethod
    async def _validate(self, context: ValidationContext) -> ValidationStepResult:
        """Run validation checks.

        Must be implemented by subclasses to perform the tool-specific logic.

        Returns:
            ValidationStepResult containing the outcome.
        """
