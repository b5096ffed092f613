"""Ephemeral type-check configuration for file-scoped runs.

mypy has no ``extends`` mechanism, so the temporary configuration copies the
``[mypy]``/``[mypy-*]`` settings of the project's base configuration and
replaces the checked-file set with exactly the requested files. The file is
created with exclusive-create semantics and removed when the run ends.
"""

from __future__ import annotations

import configparser
import io
import sys
from pathlib import Path
from types import TracebackType
from typing import Any

from spx.logging_config import get_logger
from spx.validation.base import ConfigGenerationError
from spx.validation.scope import EphemeralConfigDescriptor

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[import-not-found]

logger = get_logger(__name__)

GLOBAL_SECTION = "mypy"
PER_MODULE_PREFIX = "mypy-"

# Settings that select files; the ephemeral configuration replaces them.
FILE_SELECTION_KEYS = frozenset({"files", "exclude", "modules", "packages"})

INI_SUFFIXES = frozenset({".ini", ".cfg"})


def _ini_value(value: Any) -> str:
    """Render a TOML value in mypy's INI syntax."""
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, (list, tuple)):
        return ", ".join(_ini_value(v) for v in value)
    return str(value)


def _read_ini_sections(path: Path) -> dict[str, dict[str, str]]:
    parser = configparser.ConfigParser(interpolation=None)
    with open(path, encoding="utf-8") as f:
        parser.read_file(f)
    return {
        section: dict(parser.items(section, raw=True))
        for section in parser.sections()
        if section == GLOBAL_SECTION or section.startswith(PER_MODULE_PREFIX)
    }


def _read_toml_sections(path: Path) -> dict[str, dict[str, str]]:
    with open(path, "rb") as f:
        data = tomllib.load(f)

    mypy_section = data.get("tool", {}).get("mypy", {})
    sections: dict[str, dict[str, str]] = {GLOBAL_SECTION: {}}

    for key, value in mypy_section.items():
        if key == "overrides":
            continue
        sections[GLOBAL_SECTION][key] = _ini_value(value)

    for override in mypy_section.get("overrides", []):
        modules = override.get("module", [])
        if isinstance(modules, str):
            modules = [modules]
        options = {k: _ini_value(v) for k, v in override.items() if k != "module"}
        for module in modules:
            sections.setdefault(f"{PER_MODULE_PREFIX}{module}", {}).update(options)

    return sections


def read_base_sections(base_config: Path) -> dict[str, dict[str, str]]:
    """Read the mypy sections of a base configuration.

    Supports INI-style files (mypy.ini, .mypy.ini, setup.cfg) and
    pyproject.toml's ``[tool.mypy]`` table, whose ``overrides`` become
    ``[mypy-<module>]`` sections.

    Args:
        base_config: Path to the base configuration.

    Returns:
        Mapping of section name to its options, always including ``mypy``.

    Raises:
        ConfigGenerationError: If the file is missing or cannot be parsed.
    """
    if not base_config.is_file():
        raise ConfigGenerationError(f"Base type-check configuration not found: {base_config}")

    try:
        if base_config.suffix in INI_SUFFIXES or base_config.name == ".mypy.ini":
            sections = _read_ini_sections(base_config)
        else:
            sections = _read_toml_sections(base_config)
    except (OSError, configparser.Error, tomllib.TOMLDecodeError) as e:
        raise ConfigGenerationError(f"Could not read {base_config}: {e}") from e

    sections.setdefault(GLOBAL_SECTION, {})
    return sections


def render_config(descriptor: EphemeralConfigDescriptor) -> str:
    """Render the ephemeral configuration's INI text.

    Raises:
        ConfigGenerationError: If the base configuration cannot be read.
    """
    sections = read_base_sections(descriptor.base_config)

    global_options = {
        k: v for k, v in sections[GLOBAL_SECTION].items() if k not in FILE_SELECTION_KEYS
    }
    global_options["files"] = ", ".join(str(f) for f in descriptor.included_files)

    parser = configparser.ConfigParser(interpolation=None)
    parser[GLOBAL_SECTION] = global_options
    for name, options in sections.items():
        if name != GLOBAL_SECTION:
            parser[name] = options

    buffer = io.StringIO()
    buffer.write(f"# Generated by spx from {descriptor.base_config.name}; removed after the run.\n")
    parser.write(buffer)
    return buffer.getvalue()


class EphemeralTypeCheckConfig:
    """Scoped owner of one ephemeral configuration file.

    Use as a context manager; the file is deleted on every exit path::

        with EphemeralTypeCheckConfig(descriptor) as config_path:
            ...
    """

    def __init__(self, descriptor: EphemeralConfigDescriptor) -> None:
        self.descriptor = descriptor
        self._created = False

    @property
    def path(self) -> Path:
        return self.descriptor.path

    def acquire(self) -> Path:
        """Write the configuration file.

        Returns:
            Path of the written file.

        Raises:
            ConfigGenerationError: If the base configuration cannot be read,
                the path already exists, or the file cannot be written.
        """
        if not self.descriptor.included_files:
            raise ConfigGenerationError("An ephemeral configuration needs at least one file")

        content = render_config(self.descriptor)
        try:
            with open(self.path, "x", encoding="utf-8") as f:
                self._created = True
                f.write(content)
        except FileExistsError as e:
            raise ConfigGenerationError(f"Ephemeral configuration already exists: {self.path}") from e
        except OSError as e:
            raise ConfigGenerationError(f"Could not write {self.path}: {e}") from e

        logger.debug(
            "Wrote %s covering %d file(s)",
            self.path,
            len(self.descriptor.included_files),
        )
        return self.path

    def release(self) -> None:
        """Delete the configuration file if this instance created it.

        Raises:
            ConfigGenerationError: If the file exists but cannot be deleted.
        """
        if not self._created:
            return
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise ConfigGenerationError(f"Could not delete {self.path}: {e}") from e
        self._created = False
        logger.debug("Removed %s", self.path)

    def __enter__(self) -> Path:
        try:
            return self.acquire()
        except BaseException:
            self.release()
            raise

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
