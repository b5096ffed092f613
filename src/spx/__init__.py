"""spx - type checking, linting and import-cycle validation for Python projects."""

from __future__ import annotations

__version__ = "0.2.0"
