"""Configuration management for spx validation.

Handles configuration loading from multiple sources with precedence:
CLI args > environment variables > .spxrc > pyproject.toml > defaults
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Callable

# tomllib is only available in Python 3.11+
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[import-not-found]

LINT_OUTPUT_FORMATS = frozenset({"concise", "full", "json", "grouped", "pylint"})


@dataclass(frozen=True)
class ValidationSettings:
    """Settings shared by every validation run.

    Attributes:
        source_dir: Source tree analysed for import cycles and type-checked
            in full scope (default: "src").
        type_checker: Type checker executable (default: "mypy").
        type_check_config: Base type-check configuration, relative to the
            project root (default: "pyproject.toml").
        linter: Linter executable (default: "ruff").
        lint_output_format: Value passed to the linter's --output-format.
        timeout: Maximum seconds a single validation step may run.
        fix: Let the linter apply safe fixes.
        quiet: Log progress at debug level instead of info.
        ignore_type_checking_imports: Skip imports guarded by
            ``if TYPE_CHECKING:`` when building the import graph.
    """

    source_dir: str = "src"
    type_checker: str = "mypy"
    type_check_config: str = "pyproject.toml"
    linter: str = "ruff"
    lint_output_format: str = "concise"
    timeout: float = 300.0
    fix: bool = False
    quiet: bool = False
    ignore_type_checking_imports: bool = True

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If any configuration value is invalid.
        """
        for name in ("source_dir", "type_checker", "type_check_config", "linter"):
            value = getattr(self, name)
            if not value or not isinstance(value, str):
                raise ValueError(f"{name} must be a non-empty string")

        if self.lint_output_format not in LINT_OUTPUT_FORMATS:
            allowed = ", ".join(sorted(LINT_OUTPUT_FORMATS))
            raise ValueError(f"lint_output_format must be one of: {allowed}")

        if isinstance(self.timeout, bool) or not isinstance(self.timeout, (int, float)):
            raise ValueError("timeout must be a number")
        if self.timeout <= 0:
            raise ValueError("timeout must be greater than zero")

    def get_source_path(self, project_root: Path) -> Path:
        """Get the full path to the source tree.

        Args:
            project_root: Root directory of the project.

        Returns:
            Path to the source directory.
        """
        return project_root / self.source_dir

    def get_type_check_config_path(self, project_root: Path) -> Path:
        """Get the full path to the base type-check configuration.

        Args:
            project_root: Root directory of the project.

        Returns:
            Path to the base configuration file.
        """
        return project_root / self.type_check_config


def _parse_bool(value: str) -> bool:
    """Parse a boolean from an environment variable value.

    Raises:
        ValueError: If the value is not a recognised boolean.
    """
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off", ""}:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


def _get_config_field_names() -> set[str]:
    """Get the set of valid configuration field names.

    Returns:
        Set of field names from ValidationSettings.
    """
    return {f.name for f in fields(ValidationSettings)}


def find_config_file(filename: str = ".spxrc", start_dir: Path | None = None) -> Path | None:
    """Find a configuration file by traversing up the directory tree.

    Searches for the specified file starting from start_dir (or current directory)
    and traversing up to the filesystem root.

    Args:
        filename: Name of the config file to find.
        start_dir: Directory to start searching from. Defaults to current directory.

    Returns:
        Path to the config file if found, None otherwise.
    """
    current = (start_dir or Path.cwd()).resolve()

    while True:
        config_path = current / filename
        if config_path.is_file():
            return config_path

        parent = current.parent
        if parent == current:
            # Reached filesystem root
            return None
        current = parent


def _load_toml_file(path: Path) -> dict[str, Any]:
    """Load a TOML file and return its contents.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        tomllib.TOMLDecodeError: If the file is not valid TOML.
    """
    with open(path, "rb") as f:
        result: dict[str, Any] = tomllib.load(f)
        return result


def _filter_fields(data: dict[str, Any]) -> dict[str, Any]:
    valid_fields = _get_config_field_names()
    return {k.replace("-", "_"): v for k, v in data.items() if k.replace("-", "_") in valid_fields}


def _load_from_spxrc(start_dir: Path | None = None) -> dict[str, Any]:
    """Load configuration from a .spxrc file.

    Args:
        start_dir: Directory to start searching from.

    Returns:
        Dictionary containing configuration from .spxrc, or empty dict if not found.
    """
    config_path = find_config_file(".spxrc", start_dir)
    if config_path is None:
        return {}

    try:
        return _filter_fields(_load_toml_file(config_path))
    except (tomllib.TOMLDecodeError, OSError):
        return {}


def _load_from_pyproject(start_dir: Path | None = None) -> dict[str, Any]:
    """Load configuration from pyproject.toml [tool.spx] section.

    Args:
        start_dir: Directory to start searching from.

    Returns:
        Dictionary containing configuration from pyproject.toml, or empty dict if not found.
    """
    config_path = find_config_file("pyproject.toml", start_dir)
    if config_path is None:
        return {}

    try:
        data = _load_toml_file(config_path)
        spx_section = data.get("tool", {}).get("spx", {})
        return _filter_fields(spx_section)
    except (tomllib.TOMLDecodeError, OSError):
        return {}


_ENV_MAPPING: dict[str, tuple[str, Callable[[str], Any]]] = {
    "SPX_SOURCE_DIR": ("source_dir", str),
    "SPX_TYPE_CHECKER": ("type_checker", str),
    "SPX_TYPE_CHECK_CONFIG": ("type_check_config", str),
    "SPX_LINTER": ("linter", str),
    "SPX_LINT_OUTPUT_FORMAT": ("lint_output_format", str),
    "SPX_TIMEOUT": ("timeout", float),
    "SPX_FIX": ("fix", _parse_bool),
    "SPX_QUIET": ("quiet", _parse_bool),
    "SPX_IGNORE_TYPE_CHECKING_IMPORTS": ("ignore_type_checking_imports", _parse_bool),
}


def _load_from_env() -> dict[str, Any]:
    """Load configuration from environment variables.

    Environment variables are prefixed with SPX_ and use uppercase names,
    for example SPX_SOURCE_DIR or SPX_TIMEOUT.

    Returns:
        Dictionary containing configuration from environment variables.

    Raises:
        ValueError: If a numeric or boolean variable cannot be parsed.
    """
    result: dict[str, Any] = {}
    for env_var, (config_key, convert) in _ENV_MAPPING.items():
        value = os.environ.get(env_var)
        if value is None:
            continue
        try:
            result[config_key] = convert(value)
        except ValueError as e:
            raise ValueError(f"{env_var}: {e}") from e

    return result


def _merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """Merge multiple configuration dictionaries.

    Later dictionaries take precedence over earlier ones.
    """
    result: dict[str, Any] = {}
    for config in configs:
        for key, value in config.items():
            if value is not None:
                result[key] = value
    return result


def load_settings(
    cli_overrides: dict[str, Any] | None = None,
    start_dir: Path | None = None,
) -> ValidationSettings:
    """Load settings with full precedence chain.

    Loads configuration from multiple sources and merges them with the following
    precedence (highest to lowest):
    1. CLI arguments (cli_overrides)
    2. Environment variables (SPX_*)
    3. .spxrc file
    4. pyproject.toml [tool.spx] section
    5. Default values

    Args:
        cli_overrides: Configuration overrides from CLI arguments.
        start_dir: Directory to start searching for config files.

    Returns:
        Fully resolved ValidationSettings instance.

    Raises:
        ValueError: If the resulting configuration is invalid.
    """
    pyproject_config = _load_from_pyproject(start_dir)
    spxrc_config = _load_from_spxrc(start_dir)
    env_config = _load_from_env()
    cli_config = _filter_fields(cli_overrides or {})

    merged = _merge_configs(
        pyproject_config,
        spxrc_config,
        env_config,
        cli_config,
    )

    return ValidationSettings(**merged)


def validate_paths_exist(settings: ValidationSettings, project_root: Path) -> list[str]:
    """Validate that configured paths exist.

    Args:
        settings: Settings to validate.
        project_root: Root directory of the project.

    Returns:
        List of error messages for paths that don't exist. Empty if all valid.
    """
    errors: list[str] = []

    source_path = settings.get_source_path(project_root)
    if not source_path.is_dir():
        errors.append(f"Source directory does not exist: {source_path}")

    config_path = settings.get_type_check_config_path(project_root)
    if not config_path.is_file():
        errors.append(f"Type-check configuration does not exist: {config_path}")

    return errors
