"""
crmdeck UI runtime

Server-rendered resource panels using Jinja2 templates and HTMX.

This module provides:
- Template renderer (Jinja2 environment and filters)
- View renderer (ViewSnapshot -> table / list / grid / board HTML)
- HTMX response helpers
- FastAPI routes exposing a resource as a panel

Example usage:
    >>> from crmdeck_ui.runtime import create_app
    >>> app = create_app([leads_resource])
"""

from crmdeck_ui.runtime.htmx import HtmxDetails, htmx_response, notification_triggers
from crmdeck_ui.runtime.routes import create_app, create_resource_router
from crmdeck_ui.runtime.template_renderer import create_jinja_env, render_fragment
from crmdeck_ui.runtime.view_renderer import build_panel_context, render_page, render_panel

__all__ = [
    "HtmxDetails",
    "build_panel_context",
    "create_app",
    "create_jinja_env",
    "create_resource_router",
    "htmx_response",
    "notification_triggers",
    "render_fragment",
    "render_page",
    "render_panel",
]
