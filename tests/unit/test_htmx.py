"""Tests for HTMX request/response helpers."""

from __future__ import annotations

import json
from types import SimpleNamespace

from crmdeck.core.notifications import Notification, NotificationLevel
from crmdeck_ui.runtime.htmx import (
    HtmxDetails,
    htmx_response,
    notification_triggers,
)


def _request(**headers: str) -> SimpleNamespace:
    return SimpleNamespace(headers=headers)


class TestHtmxDetails:
    def test_plain_request(self) -> None:
        details = HtmxDetails.from_request(_request())
        assert not details.is_htmx
        assert not details.wants_fragment

    def test_htmx_swap_wants_fragment(self) -> None:
        details = HtmxDetails.from_request(_request(**{"HX-Request": "true"}))
        assert details.is_htmx
        assert details.wants_fragment

    def test_history_restore_wants_full_page(self) -> None:
        request = _request(**{"HX-Request": "true", "HX-History-Restore-Request": "true"})
        assert not HtmxDetails.from_request(request).wants_fragment

    def test_boosted_wants_full_page(self) -> None:
        request = _request(**{"HX-Request": "true", "HX-Boosted": "true"})
        assert not HtmxDetails.from_request(request).wants_fragment

    def test_object_without_headers(self) -> None:
        assert HtmxDetails.from_request(object()) == HtmxDetails()


class TestHtmxResponse:
    def test_headers(self) -> None:
        response = htmx_response(
            "<p>ok</p>",
            triggers={"showToast": {"message": "Saved", "type": "success"}},
            replace_url="/leads?view=grid",
        )
        assert response.status_code == 200
        assert json.loads(response.headers["HX-Trigger"]) == {
            "showToast": {"message": "Saved", "type": "success"}
        }
        assert response.headers["HX-Replace-Url"] == "/leads?view=grid"

    def test_event_names(self) -> None:
        response = htmx_response("", triggers=["a", "b"])
        assert response.headers["HX-Trigger"] == "a, b"

    def test_no_headers_by_default(self) -> None:
        response = htmx_response("", status_code=422)
        assert response.status_code == 422
        assert "HX-Trigger" not in response.headers

    def test_redirect(self) -> None:
        assert htmx_response("", redirect="/new").headers["HX-Redirect"] == "/new"


class TestNotificationTriggers:
    def test_none(self) -> None:
        assert notification_triggers([]) == {}

    def test_single(self) -> None:
        triggers = notification_triggers(
            [Notification(NotificationLevel.ERROR, "Failed to delete item")]
        )
        assert triggers == {"showToast": {"message": "Failed to delete item", "type": "error"}}

    def test_several(self) -> None:
        triggers = notification_triggers(
            [
                Notification(NotificationLevel.SUCCESS, "a"),
                Notification(NotificationLevel.INFO, "b"),
            ]
        )
        assert triggers == {
            "showToast": [{"message": "a", "type": "success"}, {"message": "b", "type": "info"}]
        }
