"""
HTMX-aware response utilities.

Builds HTMLResponse objects with HX-* headers: toast triggers for
notifications, URL replacement for the ``view`` query parameter and client
redirects for external create pages.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from fastapi.responses import HTMLResponse

from crmdeck.core.notifications import Notification


@dataclass(frozen=True, slots=True)
class HtmxDetails:
    """Parsed HTMX request headers.

    https://htmx.org/reference/#request_headers
    """

    is_htmx: bool = False
    is_boosted: bool = False
    is_history_restore: bool = False

    @classmethod
    def from_request(cls, request: Any) -> HtmxDetails:
        """Construct from a Starlette/FastAPI request."""
        if not hasattr(request, "headers"):
            return cls()
        h = request.headers
        return cls(
            is_htmx=h.get("HX-Request") == "true",
            is_boosted=h.get("HX-Boosted") == "true",
            is_history_restore=h.get("HX-History-Restore-Request") == "true",
        )

    @property
    def wants_fragment(self) -> bool:
        """HTMX swap that is not a history restore -> panel fragment only."""
        return self.is_htmx and not self.is_boosted and not self.is_history_restore


def htmx_response(
    content: str,
    *,
    status_code: int = 200,
    triggers: dict[str, Any] | list[str] | None = None,
    replace_url: str | None = None,
    redirect: str | None = None,
) -> HTMLResponse:
    """Create an HTMLResponse with HTMX headers.

    Args:
        content: HTML body content.
        status_code: HTTP status code (default 200).
        triggers: Events to fire on the client via HX-Trigger.
            - list[str]: simple event names (no payload)
            - dict[str, Any]: event names with JSON payloads
        replace_url: URL written into the location bar (HX-Replace-Url).
        redirect: URL to redirect the client to via HX-Redirect.
    """
    headers: dict[str, str] = {}

    if triggers:
        headers["HX-Trigger"] = _encode_trigger(triggers)
    if replace_url:
        headers["HX-Replace-Url"] = replace_url
    if redirect:
        headers["HX-Redirect"] = redirect

    return HTMLResponse(content=content, status_code=status_code, headers=headers)


def notification_triggers(notifications: Iterable[Notification]) -> dict[str, Any]:
    """HX-Trigger payload showing *notifications* as toasts.

    A single notification becomes ``{"showToast": {"message", "type"}}``;
    several are sent as a list under the same event.
    """
    toasts = [{"message": n.message, "type": n.level.value} for n in notifications]
    if not toasts:
        return {}
    return {"showToast": toasts[0] if len(toasts) == 1 else toasts}


def _encode_trigger(value: dict[str, Any] | list[str]) -> str:
    """Encode trigger value to HX-Trigger header format."""
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return ", ".join(value)
    return json.dumps(value)
