"""Integration tests running the real type checker and linter.

Skipped when mypy or ruff is not installed.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from spx.config import ValidationSettings
from spx.validation.base import FailureKind, ValidationContext, ValidatorKind
from spx.validation.circular import CircularDependencyValidator
from spx.validation.linter import LintValidator
from spx.validation.process import SubprocessRunner, resolve_executable
from spx.validation.runner import ValidationRunner
from spx.validation.type_checker import TypeCheckValidator

pytestmark = pytest.mark.integration


def _require(tool: str) -> None:
    if resolve_executable(tool) == tool:
        pytest.skip(f"{tool} is not installed")


@pytest.fixture
def real_settings() -> ValidationSettings:
    return ValidationSettings(timeout=120)


class TestTypeCheckIntegration:
    def test_type_error_is_reported(self, type_error_project: Path, real_settings: ValidationSettings) -> None:
        _require("mypy")
        validator = TypeCheckValidator(SubprocessRunner(), real_settings)

        result = asyncio.run(validator.validate(ValidationContext.full(type_error_project)))

        assert not result.success
        assert result.failure is FailureKind.TOOL_REPORTED_FAILURE
        assert "type" in (result.error or "").lower()

    def test_clean_project_passes(self, clean_project: Path, real_settings: ValidationSettings) -> None:
        _require("mypy")
        validator = TypeCheckValidator(SubprocessRunner(), real_settings)

        result = asyncio.run(validator.validate(ValidationContext.full(clean_project)))

        assert result.success, result.error

    def test_file_scope_checks_only_requested_files(
        self, type_error_project: Path, real_settings: ValidationSettings
    ) -> None:
        _require("mypy")
        validator = TypeCheckValidator(SubprocessRunner(), real_settings)
        clean_file = ValidationContext.for_files(type_error_project, [type_error_project / "src/app/core.py"])
        broken_file = ValidationContext.for_files(
            type_error_project, [type_error_project / "src/app/broken.py"]
        )

        assert asyncio.run(validator.validate(clean_file)).success
        broken = asyncio.run(validator.validate(broken_file))

        assert not broken.success
        assert "broken.py" in (broken.error or "")
        assert list(type_error_project.glob(".spx-mypy-*")) == []


class TestLintIntegration:
    def test_unused_variable_is_reported(
        self, lint_error_project: Path, real_settings: ValidationSettings
    ) -> None:
        _require("ruff")
        validator = LintValidator(SubprocessRunner(), real_settings)

        result = asyncio.run(validator.validate(ValidationContext.full(lint_error_project)))

        assert not result.success
        assert "lint" in (result.error or "").lower()
        assert "F841" in (result.error or "")

    def test_clean_project_passes(self, clean_project: Path, real_settings: ValidationSettings) -> None:
        _require("ruff")
        validator = LintValidator(SubprocessRunner(), real_settings)

        result = asyncio.run(validator.validate(ValidationContext.full(clean_project)))

        assert result.success, result.error


class TestCircularIntegration:
    def test_cycle_is_reported(self, cycle_project: Path, real_settings: ValidationSettings) -> None:
        validator = CircularDependencyValidator(SubprocessRunner(), real_settings)

        result = asyncio.run(validator.validate(ValidationContext.full(cycle_project)))

        assert not result.success
        assert "pkg.a -> pkg.b -> pkg.a" in (result.error or "")


class TestOrchestratorIntegration:
    def test_clean_project_passes_every_step(
        self, clean_project: Path, real_settings: ValidationSettings
    ) -> None:
        _require("mypy")
        _require("ruff")

        report = ValidationRunner(SubprocessRunner(), real_settings).run_sync(
            ValidationContext.full(clean_project)
        )

        assert report.success, [r.error for r in report.failed]
        assert [r.kind for r in report.results] == [
            ValidatorKind.TYPE_CHECK,
            ValidatorKind.LINT,
            ValidatorKind.CIRCULAR,
        ]
        assert all(r.error is None for r in report.results)

    def test_lint_failure_does_not_hide_other_steps(
        self, lint_error_project: Path, real_settings: ValidationSettings
    ) -> None:
        _require("mypy")
        _require("ruff")

        report = ValidationRunner(SubprocessRunner(), real_settings).run_sync(
            ValidationContext.full(lint_error_project)
        )

        assert not report.success
        by_kind = report.by_kind()
        assert by_kind[ValidatorKind.TYPE_CHECK].success, by_kind[ValidatorKind.TYPE_CHECK].error
        assert not by_kind[ValidatorKind.LINT].success
        assert by_kind[ValidatorKind.CIRCULAR].success
