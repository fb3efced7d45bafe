"""
crmdeck - generic resource views for CRM dashboards.

Turns a resource adapter plus field descriptors into table, list, grid and
kanban board views with shared pagination, search, filtering and CRUD
dialog orchestration.
"""

from __future__ import annotations

import re
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _metadata_version
from pathlib import Path as _Path

from .core.controller import ResourceDefinition, ResourceViewController, ViewSnapshot
from .core.descriptors import (
    FieldDescriptor,
    FilterDefinition,
    FilterOption,
    KanbanColumn,
    KanbanConfig,
    StatDefinition,
)
from .core.errors import AdapterError, ConfigError, CrmdeckError
from .core.query import ViewMode


def _get_version() -> str:
    """Get version from pyproject.toml (editable) or importlib.metadata (installed)."""
    pyproject = _Path(__file__).parent.parent.parent / "pyproject.toml"
    if pyproject.exists():
        content = pyproject.read_text()
        if match := re.search(r'^version\s*=\s*["\']([^"\']+)["\']', content, re.MULTILINE):
            return match.group(1)

    try:
        return _metadata_version("crmdeck")
    except PackageNotFoundError:
        return "0.0.0"


__version__ = _get_version()

__all__ = [
    "__version__",
    "AdapterError",
    "ConfigError",
    "CrmdeckError",
    "FieldDescriptor",
    "FilterDefinition",
    "FilterOption",
    "KanbanColumn",
    "KanbanConfig",
    "ResourceDefinition",
    "ResourceViewController",
    "StatDefinition",
    "ViewMode",
    "ViewSnapshot",
]
