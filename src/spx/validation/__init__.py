"""Validation framework for spx.

Runs a type checker, a linter and a circular-dependency analysis against a
project or a subset of its files, and reports a uniform pass/fail result per
step.
"""

from __future__ import annotations

from spx.validation.args import build_lint_args, build_type_check_args
from spx.validation.base import (
    BaseValidator,
    ConfigGenerationError,
    FailureKind,
    ValidationContext,
    ValidationError,
    ValidationScope,
    ValidationStepResult,
    ValidatorKind,
)
from spx.validation.circular import CircularDependencyValidator
from spx.validation.linter import LintValidator
from spx.validation.process import (
    ExitStatus,
    ProcessResult,
    ProcessRunner,
    ScriptedProcessRunner,
    ScriptedResponse,
    SpawnOptions,
    SubprocessRunner,
)
from spx.validation.runner import ValidationReport, ValidationRunner
from spx.validation.type_checker import TypeCheckValidator

__all__ = [
    # Base types
    "BaseValidator",
    "ConfigGenerationError",
    "FailureKind",
    "ValidationContext",
    "ValidationError",
    "ValidationScope",
    "ValidationStepResult",
    "ValidatorKind",
    # Argument builders
    "build_lint_args",
    "build_type_check_args",
    # Process runners
    "ExitStatus",
    "ProcessResult",
    "ProcessRunner",
    "ScriptedProcessRunner",
    "ScriptedResponse",
    "SpawnOptions",
    "SubprocessRunner",
    # Validators
    "CircularDependencyValidator",
    "LintValidator",
    "TypeCheckValidator",
    # Runner
    "ValidationReport",
    "ValidationRunner",
]
