"""Tests for the type-check, lint and circular-dependency validators.

Every test injects a ScriptedProcessRunner; no real tool is spawned.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from spx.config import ValidationSettings
from spx.validation.base import (
    BaseValidator,
    FailureKind,
    ValidationContext,
    ValidationStepResult,
    ValidatorKind,
)
from spx.validation.circular import CircularDependencyValidator
from spx.validation.linter import LintValidator
from spx.validation.process import (
    ExitStatus,
    ScriptedProcessRunner,
    ScriptedResponse,
    SpawnRequest,
)
from spx.validation.type_checker import TypeCheckValidator

TYPE_ERROR_OUTPUT = (
    'src/app/broken.py:1: error: Incompatible types in assignment (expression has type "str", '
    'variable has type "int")  [assignment]\n'
    "Found 1 error in 1 file (checked 3 source files)\n"
)

LINT_ERROR_OUTPUT = (
    "src/app/sloppy.py:2:5: F841 Local variable `unused` is assigned to but never used\n"
    "Found 1 error.\n"
)


def _ephemeral_configs(root: Path) -> list[Path]:
    return sorted(root.glob(".spx-mypy-*.ini"))


class TestBaseValidator:
    """Tests for the shared validator boundary."""

    class _Raising(BaseValidator):
        kind = ValidatorKind.LINT

        async def _validate(self, context: ValidationContext) -> ValidationStepResult:
            raise RuntimeError("kaboom")

    class _Passing(BaseValidator):
        kind = ValidatorKind.LINT

        async def _validate(self, context: ValidationContext) -> ValidationStepResult:
            return ValidationStepResult.passed(self.kind)

    def test_exceptions_become_unexpected_crash(self, tmp_path: Path, settings: ValidationSettings) -> None:
        validator = self._Raising(ScriptedProcessRunner(), settings)
        result = asyncio.run(validator.validate(ValidationContext.full(tmp_path)))
        assert not result.success
        assert result.failure is FailureKind.UNEXPECTED_CRASH
        assert "kaboom" in (result.error or "")

    def test_duration_is_recorded(self, tmp_path: Path, settings: ValidationSettings) -> None:
        validator = self._Passing(ScriptedProcessRunner(), settings)
        result = asyncio.run(validator.validate(ValidationContext.full(tmp_path)))
        assert result.success
        assert result.duration >= 0

    def test_result_invariants(self) -> None:
        with pytest.raises(ValueError):
            ValidationStepResult(kind=ValidatorKind.LINT, success=True, error="x")
        with pytest.raises(ValueError):
            ValidationStepResult(kind=ValidatorKind.LINT, success=False)

    def test_result_to_dict(self) -> None:
        result = ValidationStepResult.failed(ValidatorKind.LINT, FailureKind.TIMEOUT, "slow")
        assert result.with_duration(1.23456).to_dict() == {
            "kind": "lint",
            "success": False,
            "error": "slow",
            "failure": "timeout",
            "duration": 1.235,
        }


class TestTypeCheckValidator:
    """Tests for TypeCheckValidator."""

    def _validator(
        self,
        runner: ScriptedProcessRunner,
        settings: ValidationSettings | None = None,
        token: str = "tok1",
    ) -> TypeCheckValidator:
        return TypeCheckValidator(runner, settings or ValidationSettings(), token_factory=lambda: token)

    def test_full_scope_uses_base_config_and_no_ephemeral(self, clean_project: Path) -> None:
        runner = ScriptedProcessRunner({"mypy": ScriptedResponse.exit(0)})

        result = asyncio.run(self._validator(runner).validate(ValidationContext.full(clean_project)))

        assert result.success
        (call,) = runner.calls_for("mypy")
        assert call.args[:2] == ("--config-file", "pyproject.toml")
        assert call.args[-1] == "src"
        assert call.options.cwd == clean_project
        assert call.options.timeout == 300.0
        assert _ephemeral_configs(clean_project) == []

    def test_full_scope_type_error(self, type_error_project: Path) -> None:
        runner = ScriptedProcessRunner({"mypy": ScriptedResponse.exit(1, stdout=TYPE_ERROR_OUTPUT)})

        result = asyncio.run(self._validator(runner).validate(ValidationContext.full(type_error_project)))

        assert not result.success
        assert result.failure is FailureKind.TOOL_REPORTED_FAILURE
        assert "type" in (result.error or "").lower()

    def test_files_scope_creates_exactly_one_config_during_run(self, clean_project: Path) -> None:
        target = clean_project / "src/app/core.py"
        seen: list[list[Path]] = []
        contents: list[str] = []

        def respond(request: SpawnRequest) -> ScriptedResponse:
            configs = _ephemeral_configs(clean_project)
            seen.append(configs)
            contents.append(configs[0].read_text())
            return ScriptedResponse.exit(0)

        runner = ScriptedProcessRunner({"mypy": respond})
        context = ValidationContext.for_files(clean_project, [target])

        result = asyncio.run(self._validator(runner).validate(context))

        assert result.success
        assert seen == [[clean_project / ".spx-mypy-tok1.ini"]]
        assert f"files = {target}" in contents[0]
        assert "strict = True" in contents[0]
        (call,) = runner.calls_for("mypy")
        assert call.args[:2] == ("--config-file", ".spx-mypy-tok1.ini")
        assert _ephemeral_configs(clean_project) == []

    @pytest.mark.parametrize(
        "response",
        [
            ScriptedResponse.exit(1, stdout=TYPE_ERROR_OUTPUT),
            ScriptedResponse(status=ExitStatus.signaled(9)),
            ScriptedResponse(status=ExitStatus.timed_out(1.0)),
        ],
        ids=["nonzero-exit", "signal", "timeout"],
    )
    def test_files_scope_config_removed_on_failure(
        self, type_error_project: Path, response: ScriptedResponse
    ) -> None:
        runner = ScriptedProcessRunner({"mypy": response})
        context = ValidationContext.for_files(type_error_project, [type_error_project / "src/app/broken.py"])

        result = asyncio.run(self._validator(runner).validate(context))

        assert not result.success
        assert _ephemeral_configs(type_error_project) == []

    def test_files_scope_config_removed_when_runner_raises(self, clean_project: Path) -> None:
        def explode(request: SpawnRequest) -> ScriptedResponse:
            raise OSError("runner blew up")

        runner = ScriptedProcessRunner({"mypy": explode})
        context = ValidationContext.for_files(clean_project, [clean_project / "src/app/core.py"])

        result = asyncio.run(self._validator(runner).validate(context))

        assert result.failure is FailureKind.UNEXPECTED_CRASH
        assert "runner blew up" in (result.error or "")
        assert _ephemeral_configs(clean_project) == []

    def test_files_scope_config_removed_when_arg_building_fails(
        self, clean_project: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def broken_builder(*args: object, **kwargs: object) -> list[str]:
            raise ValueError("cannot build arguments")

        monkeypatch.setattr("spx.validation.type_checker.build_type_check_args", broken_builder)
        runner = ScriptedProcessRunner({"mypy": ScriptedResponse.exit(0)})
        context = ValidationContext.for_files(clean_project, [clean_project / "src/app/core.py"])

        result = asyncio.run(self._validator(runner).validate(context))

        assert result.failure is FailureKind.UNEXPECTED_CRASH
        assert runner.calls == []
        assert _ephemeral_configs(clean_project) == []

    def test_missing_base_config_is_config_generation_failure(self, tmp_path: Path) -> None:
        (tmp_path / "a.py").write_text("x = 1\n")
        runner = ScriptedProcessRunner({"mypy": ScriptedResponse.exit(0)})
        context = ValidationContext.for_files(tmp_path, [tmp_path / "a.py"])

        result = asyncio.run(self._validator(runner).validate(context))

        assert result.failure is FailureKind.CONFIG_GENERATION_FAILURE
        assert runner.calls == []

    def test_colliding_config_path_is_config_generation_failure(self, clean_project: Path) -> None:
        existing = clean_project / ".spx-mypy-tok1.ini"
        existing.write_text("someone else's")
        runner = ScriptedProcessRunner({"mypy": ScriptedResponse.exit(0)})
        context = ValidationContext.for_files(clean_project, [clean_project / "src/app/core.py"])

        result = asyncio.run(self._validator(runner).validate(context))

        assert result.failure is FailureKind.CONFIG_GENERATION_FAILURE
        assert existing.read_text() == "someone else's"

    def test_missing_tool(self, clean_project: Path) -> None:
        runner = ScriptedProcessRunner()
        result = asyncio.run(self._validator(runner).validate(ValidationContext.full(clean_project)))
        assert result.failure is FailureKind.TOOL_NOT_FOUND
        assert "mypy" in (result.error or "")

    def test_default_tokens_are_unique(self, clean_project: Path) -> None:
        """Concurrent file-scoped runs never share a configuration path."""
        paths: list[str] = []

        def respond(request: SpawnRequest) -> ScriptedResponse:
            paths.append(request.args[1])
            return ScriptedResponse.exit(0)

        runner = ScriptedProcessRunner({"mypy": respond})
        context = ValidationContext.for_files(clean_project, [clean_project / "src/app/core.py"])
        validators = [TypeCheckValidator(runner, ValidationSettings()) for _ in range(3)]

        async def run_all() -> list[ValidationStepResult]:
            return list(await asyncio.gather(*(v.validate(context) for v in validators)))

        results = asyncio.run(run_all())

        assert all(r.success for r in results)
        assert len(set(paths)) == 3
        assert _ephemeral_configs(clean_project) == []


class TestLintValidator:
    """Tests for LintValidator."""

    def test_clean_project_passes(self, clean_project: Path, settings: ValidationSettings) -> None:
        runner = ScriptedProcessRunner({"ruff": ScriptedResponse.exit(0, stdout="All checks passed!\n")})

        result = asyncio.run(LintValidator(runner, settings).validate(ValidationContext.full(clean_project)))

        assert result.success
        (call,) = runner.calls_for("ruff")
        assert call.args[:2] == ("check", str(clean_project))

    def test_violation_fails(self, lint_error_project: Path, settings: ValidationSettings) -> None:
        runner = ScriptedProcessRunner({"ruff": ScriptedResponse.exit(1, stdout=LINT_ERROR_OUTPUT)})

        result = asyncio.run(
            LintValidator(runner, settings).validate(ValidationContext.full(lint_error_project))
        )

        assert not result.success
        assert result.failure is FailureKind.TOOL_REPORTED_FAILURE
        assert "lint" in (result.error or "").lower()
        assert "F841" in (result.error or "")

    def test_files_scope_passes_files(self, lint_error_project: Path) -> None:
        runner = ScriptedProcessRunner({"ruff": ScriptedResponse.exit(0)})
        target = lint_error_project / "src/app/core.py"
        context = ValidationContext.for_files(lint_error_project, [target])

        asyncio.run(LintValidator(runner, ValidationSettings(fix=True)).validate(context))

        (call,) = runner.calls_for("ruff")
        assert "--fix" in call.args
        assert call.args[-2:] == ("--", "src/app/core.py")

    def test_missing_tool(self, clean_project: Path, settings: ValidationSettings) -> None:
        result = asyncio.run(
            LintValidator(ScriptedProcessRunner(), settings).validate(ValidationContext.full(clean_project))
        )
        assert result.failure is FailureKind.TOOL_NOT_FOUND


class TestCircularDependencyValidator:
    """Tests for CircularDependencyValidator."""

    def test_cycle_fails_and_lists_cycle(self, cycle_project: Path, settings: ValidationSettings) -> None:
        runner = ScriptedProcessRunner()

        result = asyncio.run(
            CircularDependencyValidator(runner, settings).validate(ValidationContext.full(cycle_project))
        )

        assert not result.success
        assert result.failure is FailureKind.TOOL_REPORTED_FAILURE
        assert "pkg.a -> pkg.b -> pkg.a" in (result.error or "")
        assert runner.calls == []

    def test_acyclic_project_passes(self, clean_project: Path, settings: ValidationSettings) -> None:
        result = asyncio.run(
            CircularDependencyValidator(ScriptedProcessRunner(), settings).validate(
                ValidationContext.full(clean_project)
            )
        )
        assert result.success
        assert result.error is None

    def test_file_scope_still_analyses_whole_tree(
        self, cycle_project: Path, settings: ValidationSettings
    ) -> None:
        (cycle_project / "src/pkg/c.py").write_text("VALUE = 3\n")
        context = ValidationContext.for_files(cycle_project, [cycle_project / "src/pkg/c.py"])

        result = asyncio.run(CircularDependencyValidator(ScriptedProcessRunner(), settings).validate(context))

        assert not result.success
        assert "pkg.a -> pkg.b -> pkg.a" in (result.error or "")
