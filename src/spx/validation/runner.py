"""Validation runner for orchestrating all validators.

Provides a unified interface to run validators and aggregate results.
Supports concurrent execution and selective validator runs. A failing step
never stops the others: every requested step reports a result.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from spx.config import ValidationSettings
from spx.logging_config import get_logger
from spx.validation.base import (
    BaseValidator,
    FailureKind,
    ValidationContext,
    ValidationStepResult,
    ValidatorKind,
)
from spx.validation.circular import CircularDependencyValidator
from spx.validation.linter import LintValidator
from spx.validation.process import ProcessRunner
from spx.validation.type_checker import TypeCheckValidator

logger = get_logger(__name__)

# Extra seconds a step gets on top of the process timeout before the runner
# abandons it; covers config writing and output classification.
STEP_TIMEOUT_GRACE = 5.0


@dataclass(frozen=True)
class ValidationReport:
    """Aggregated results from running multiple validators.

    Attributes:
        success: True iff every requested step succeeded.
        results: One result per requested step, in requested order.
    """

    success: bool
    results: tuple[ValidationStepResult, ...]

    @property
    def validators_run(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> list[ValidationStepResult]:
        """Results of the steps that failed, in requested order."""
        return [result for result in self.results if not result.success]

    def by_kind(self) -> dict[ValidatorKind, ValidationStepResult]:
        return {result.kind: result for result in self.results}

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "validators_run": self.validators_run,
            "results": [result.to_dict() for result in self.results],
        }


def _dedupe_kinds(kinds: Iterable[ValidatorKind | str]) -> list[ValidatorKind]:
    ordered: list[ValidatorKind] = []
    for kind in kinds:
        normalized = ValidatorKind(kind)
        if normalized not in ordered:
            ordered.append(normalized)
    return ordered


class ValidationRunner:
    """Orchestrates running validators.

    Supports:
    - Running all validators
    - Running specific validators by kind
    - Concurrent execution of the requested steps
    - A per-step timeout guard
    """

    # Available validator classes
    VALIDATORS: dict[ValidatorKind, type[BaseValidator]] = {
        ValidatorKind.TYPE_CHECK: TypeCheckValidator,
        ValidatorKind.LINT: LintValidator,
        ValidatorKind.CIRCULAR: CircularDependencyValidator,
    }

    # Default validators for a standard run
    DEFAULT_KINDS = [ValidatorKind.TYPE_CHECK, ValidatorKind.LINT, ValidatorKind.CIRCULAR]

    def __init__(
        self,
        runner: ProcessRunner,
        settings: ValidationSettings,
        parallel: bool = True,
    ) -> None:
        """Initialize validation runner.

        Args:
            runner: Process runner handed to every validator.
            settings: Validation settings.
            parallel: Whether to run validators concurrently.
        """
        self.runner = runner
        self.settings = settings
        self.parallel = parallel

    async def run(
        self,
        context: ValidationContext,
        kinds: Iterable[ValidatorKind | str] | None = None,
    ) -> ValidationReport:
        """Run the requested validators.

        Args:
            context: The run context.
            kinds: Validators to run, in report order. Defaults to all.
                Duplicates are dropped.

        Returns:
            ValidationReport with one result per requested validator.
        """
        requested = _dedupe_kinds(kinds if kinds is not None else self.DEFAULT_KINDS)
        if not requested:
            return ValidationReport(success=True, results=())

        logger.debug(
            "Running %s (%s scope, %s)",
            ", ".join(kind.value for kind in requested),
            context.scope.value,
            "parallel" if self.parallel else "sequential",
        )

        if self.parallel and len(requested) > 1:
            results = await self._run_parallel(context, requested)
        else:
            results = await self._run_sequential(context, requested)

        return self._aggregate_results(results)

    def run_sync(
        self,
        context: ValidationContext,
        kinds: Iterable[ValidatorKind | str] | None = None,
    ) -> ValidationReport:
        """Run the requested validators from synchronous code."""
        return asyncio.run(self.run(context, kinds))

    async def run_single(
        self,
        context: ValidationContext,
        kind: ValidatorKind | str,
    ) -> ValidationStepResult:
        """Run a single validator.

        Args:
            context: The run context.
            kind: Validator to run.

        Returns:
            ValidationStepResult for that validator.
        """
        return await self._run_step(context, ValidatorKind(kind))

    def _create_validator(self, kind: ValidatorKind) -> BaseValidator:
        """Create a validator instance by kind.

        Raises:
            KeyError: If no validator is registered for the kind.
        """
        validator_class = self.VALIDATORS[kind]
        return validator_class(self.runner, self.settings)

    async def _run_step(self, context: ValidationContext, kind: ValidatorKind) -> ValidationStepResult:
        """Run one validator under the step timeout guard."""
        limit = self.settings.timeout + STEP_TIMEOUT_GRACE
        try:
            validator = self._create_validator(kind)
            return await asyncio.wait_for(validator.validate(context), timeout=limit)
        except asyncio.TimeoutError:
            logger.debug("%s exceeded the step timeout", kind.value)
            return ValidationStepResult.failed(
                kind,
                FailureKind.TIMEOUT,
                f"{kind.value} step timed out after {limit:g}s",
            ).with_duration(limit)
        except Exception as e:
            # Validators convert their own failures; this covers construction
            return ValidationStepResult.failed(
                kind,
                FailureKind.UNEXPECTED_CRASH,
                f"Failed to run {kind.value} validator: {e!s}",
            )

    async def _run_sequential(
        self,
        context: ValidationContext,
        kinds: list[ValidatorKind],
    ) -> list[ValidationStepResult]:
        results: list[ValidationStepResult] = []
        for kind in kinds:
            results.append(await self._run_step(context, kind))
        return results

    async def _run_parallel(
        self,
        context: ValidationContext,
        kinds: list[ValidatorKind],
    ) -> list[ValidationStepResult]:
        # gather returns results in argument order, whatever finishes first
        results = await asyncio.gather(*(self._run_step(context, kind) for kind in kinds))
        return list(results)

    def _aggregate_results(self, results: list[ValidationStepResult]) -> ValidationReport:
        success = all(result.success for result in results)
        return ValidationReport(success=success, results=tuple(results))
