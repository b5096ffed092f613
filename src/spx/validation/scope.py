"""Scope resolution for validation runs.

Turns a ``ValidationContext`` plus settings into the concrete plan each
validator executes. Everything here is pure: no filesystem access, no
environment reads. The random token that names an ephemeral configuration is
passed in by the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from spx.config import ValidationSettings
from spx.validation.base import ValidationContext, ValidationScope

EPHEMERAL_CONFIG_PREFIX = ".spx-mypy-"
EPHEMERAL_CONFIG_SUFFIX = ".ini"


@dataclass(frozen=True)
class EphemeralConfigDescriptor:
    """A temporary type-check configuration restricted to a file subset.

    Attributes:
        path: Where the configuration is written.
        base_config: Project configuration it inherits settings from.
        included_files: Exactly the files the type checker should check.
    """

    path: Path
    base_config: Path
    included_files: tuple[Path, ...]


@dataclass(frozen=True)
class TypeCheckPlan:
    """What the type-check validator runs.

    Attributes:
        command: Type checker executable.
        project_root: Working directory for the run.
        config_file: Configuration passed to the type checker.
        targets: Paths to check. Empty when the configuration lists the files.
        ephemeral: Descriptor of the configuration to create first, FILES only.
        timeout: Seconds before the run is abandoned.
    """

    command: str
    project_root: Path
    config_file: Path
    targets: tuple[Path, ...]
    ephemeral: EphemeralConfigDescriptor | None
    timeout: float


@dataclass(frozen=True)
class LintPlan:
    """What the lint validator runs."""

    command: str
    project_root: Path
    targets: tuple[Path, ...]
    output_format: str
    fix: bool
    timeout: float


@dataclass(frozen=True)
class CircularPlan:
    """What the circular-dependency validator analyses."""

    project_root: Path
    source_root: Path
    ignore_type_checking_imports: bool


def ephemeral_config_path(project_root: Path, token: str) -> Path:
    """Return the path of the ephemeral configuration named by ``token``.

    Raises:
        ValueError: If the token is empty or not a plain name.
    """
    if not token or not token.isalnum():
        raise ValueError(f"Invalid ephemeral config token: {token!r}")
    return project_root / f"{EPHEMERAL_CONFIG_PREFIX}{token}{EPHEMERAL_CONFIG_SUFFIX}"


def resolve_type_check(
    context: ValidationContext,
    settings: ValidationSettings,
    token: str | None = None,
) -> TypeCheckPlan:
    """Resolve the type-check plan for a context.

    FULL scope checks the source tree against the project's base
    configuration. FILES scope checks exactly ``context.files`` through an
    ephemeral configuration that inherits from the base one.

    Args:
        context: The run context.
        settings: Validation settings.
        token: Unique token for the ephemeral configuration name. Required for
            FILES scope.

    Returns:
        TypeCheckPlan for the run.

    Raises:
        ValueError: If FILES scope is requested without a token.
    """
    root = context.project_root
    base_config = settings.get_type_check_config_path(root)

    if context.scope is ValidationScope.FULL:
        return TypeCheckPlan(
            command=settings.type_checker,
            project_root=root,
            config_file=base_config,
            targets=(settings.get_source_path(root),),
            ephemeral=None,
            timeout=settings.timeout,
        )

    if token is None:
        raise ValueError("FILES scope requires a token for the ephemeral configuration")

    descriptor = EphemeralConfigDescriptor(
        path=ephemeral_config_path(root, token),
        base_config=base_config,
        included_files=context.absolute_files(),
    )
    return TypeCheckPlan(
        command=settings.type_checker,
        project_root=root,
        config_file=descriptor.path,
        targets=(),
        ephemeral=descriptor,
        timeout=settings.timeout,
    )


def resolve_lint(context: ValidationContext, settings: ValidationSettings) -> LintPlan:
    """Resolve the lint plan: the requested files, or the whole project."""
    targets = context.files if context.scope is ValidationScope.FILES else ()
    return LintPlan(
        command=settings.linter,
        project_root=context.project_root,
        targets=targets,
        output_format=settings.lint_output_format,
        fix=settings.fix,
        timeout=settings.timeout,
    )


def resolve_circular(context: ValidationContext, settings: ValidationSettings) -> CircularPlan:
    """Resolve the circular-dependency plan.

    Always the whole source tree: a cycle can run through modules outside the
    requested files, so the scope is ignored.
    """
    return CircularPlan(
        project_root=context.project_root,
        source_root=settings.get_source_path(context.project_root),
        ignore_type_checking_imports=settings.ignore_type_checking_imports,
    )
