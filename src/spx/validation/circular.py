"""Circular-dependency validator.

Analyses the import graph of the whole source tree in process. The validator
takes a process runner like the others so every validator is constructed the
same way, but it never spawns anything.
"""

from __future__ import annotations

import asyncio

from spx.logging_config import get_logger
from spx.validation.base import (
    BaseValidator,
    FailureKind,
    ValidationContext,
    ValidationScope,
    ValidationStepResult,
    ValidatorKind,
)
from spx.validation.import_graph import build_import_graph, find_cycles
from spx.validation.scope import CircularPlan, resolve_circular

logger = get_logger(__name__)


def format_cycle(cycle: list[str]) -> str:
    return " -> ".join(cycle)


def classify_cycles(cycles: list[list[str]]) -> ValidationStepResult:
    """Classify the cycles found in the import graph.

    Args:
        cycles: Ordered cycles, each starting and ending with the same module.

    Returns:
        A passing result when there are no cycles, otherwise a failure listing
        every cycle.
    """
    kind = ValidatorKind.CIRCULAR
    if not cycles:
        return ValidationStepResult.passed(kind)

    lines = [f"Found {len(cycles)} circular dependency cycle(s):"]
    lines.extend(f"  Cycle {i}: {format_cycle(cycle)}" for i, cycle in enumerate(cycles, start=1))
    return ValidationStepResult.failed(kind, FailureKind.TOOL_REPORTED_FAILURE, "\n".join(lines))


def analyze_cycles(plan: CircularPlan) -> list[list[str]]:
    """Build the import graph described by ``plan`` and return its cycles."""
    graph = build_import_graph(plan.source_root, plan.ignore_type_checking_imports)
    logger.debug(
        "Import graph: %d module(s), %d skipped",
        len(graph.modules),
        len(graph.skipped),
    )
    return find_cycles(graph)


class CircularDependencyValidator(BaseValidator):
    """Validator detecting import cycles across the whole source tree."""

    kind = ValidatorKind.CIRCULAR

    async def _validate(self, context: ValidationContext) -> ValidationStepResult:
        plan = resolve_circular(context, self.settings)

        if context.scope is ValidationScope.FILES:
            logger.debug("Ignoring file scope: cycles are checked across the whole tree")
        self._progress("Analyzing circular dependencies in %s", plan.source_root)

        cycles = await asyncio.to_thread(analyze_cycles, plan)
        for cycle in cycles:
            logger.debug("Cycle: %s", format_cycle(cycle))
        return classify_cycles(cycles)
