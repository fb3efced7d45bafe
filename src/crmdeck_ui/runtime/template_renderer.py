"""
Jinja2 template renderer for server-rendered resource views.

Sets up the Jinja2 environment with custom filters and template loading
from the templates/ directory.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

# Template directory
TEMPLATES_DIR = Path(__file__).parent.parent / "templates"


def display_value(value: Any) -> str:
    """Plain-text rendering of a field value.

    Relationships arrive as dicts and are shown by display name.
    """
    if isinstance(value, dict):
        return str(
            value.get("name")
            or value.get("title")
            or value.get("label")
            or value.get("email")
            or value.get("id", "")
        )
    if isinstance(value, (list, tuple)):
        return ", ".join(display_value(v) for v in value)
    if isinstance(value, bool):
        return "Yes" if value else "No"
    return "" if value is None else str(value)


def _pretty_json_filter(value: Any) -> str:
    """Indented JSON used by the generic card."""
    return json.dumps(value, indent=2, default=str, sort_keys=True)


def create_jinja_env() -> Environment:
    """Create and configure the Jinja2 environment."""
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )

    from crmdeck import __version__

    env.globals["_crmdeck_version"] = __version__

    env.filters["pretty_json"] = _pretty_json_filter

    return env


# Module-level singleton
_env: Environment | None = None


def get_jinja_env() -> Environment:
    """Get the shared Jinja2 environment (lazy singleton)."""
    global _env
    if _env is None:
        _env = create_jinja_env()
    return _env


def render_fragment(template_name: str, **kwargs: Any) -> str:
    """
    Render an HTML fragment (for HTMX partial responses).

    Args:
        template_name: Template path relative to templates/.
        **kwargs: Template variables.

    Returns:
        Rendered HTML fragment string.
    """
    env = get_jinja_env()
    template = env.get_template(template_name)
    return template.render(**kwargs)
