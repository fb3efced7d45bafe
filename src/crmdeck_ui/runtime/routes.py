"""
Resource panel routes.

Exposes one ``ResourceDefinition`` as a server-rendered dashboard panel:

    GET  {base}                          panel (full page, or fragment for HTMX)
    GET  {base}/dialog/create            create dialog
    GET  {base}/items/{id}/dialog        view/edit dialog (?mode=view|edit)
    POST {base}/dialog/success           form reported success -> close + refetch
    GET  {base}/items/{id}/delete        delete confirmation prompt
    POST {base}/items/{id}/delete        confirm deletion
    POST {base}/board/drop               board drop (entity_id, target_id, target_kind)

Every request builds a fresh controller from the URL query parameters, so the
URL is the query state. All controllers of one router read through a shared
``CacheStore``: concurrent requests for the same page share one adapter call,
and a failed refetch keeps serving the last good page. Panel responses to
HTMX requests carry ``HX-Replace-Url`` with the canonical URL (including
``view``) and toast triggers for any notifications raised while handling the
request.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from fastapi import APIRouter, FastAPI, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from crmdeck.config import CacheConfig, ViewsConfig
from crmdeck.core.cache import CacheStore, RequestCache
from crmdeck.core.controller import ResourceDefinition, ResourceViewController, ViewSnapshot
from crmdeck.core.dialogs import DialogMode
from crmdeck.core.errors import DialogStateError, NotFoundError
from crmdeck.core.notifications import NotificationLog
from crmdeck_ui.runtime.htmx import HtmxDetails, htmx_response, notification_triggers
from crmdeck_ui.runtime.view_renderer import (
    build_url,
    query_params,
    render_confirm_delete,
    render_dialog,
    render_page,
    render_panel,
)

logger = logging.getLogger(__name__)


async def parse_body(request: Request) -> dict[str, Any]:
    """Parse a form-encoded or JSON request body."""
    content_type = (request.headers.get("content-type") or "").lower()
    if "application/json" in content_type:
        body = await request.json()
        return dict(body) if isinstance(body, dict) else {}
    form = await request.form()
    return {k: v for k, v in form.items() if isinstance(v, str)}


def create_resource_router(
    definition: ResourceDefinition,
    *,
    prefix: str | None = None,
    views: ViewsConfig | None = None,
    cache: CacheConfig | None = None,
) -> APIRouter:
    """
    Create the routes serving one resource panel.

    Args:
        definition: The resource to expose.
        prefix: URL prefix (defaults to the definition's endpoint).
        views: View defaults from crmdeck.toml.
        cache: Shared cache settings from crmdeck.toml.

    Returns:
        APIRouter to include in a FastAPI app.
    """
    base_url = prefix or "/" + definition.endpoint.strip("/")
    router = APIRouter(prefix=base_url, tags=[definition.title])
    cache = cache or CacheConfig()
    store = CacheStore(ttl=cache.ttl, max_entries=cache.max_entries)

    def _controller(request: Request) -> ResourceViewController:
        controller = ResourceViewController.from_query_params(
            definition,
            request.query_params,
            views=views,
            cache=RequestCache(store),
            notifier=NotificationLog(),
        )
        toggle = request.query_params.get("toggle_sort")
        if toggle:
            controller.toggle_sort(toggle)
        return controller

    async def _load(controller: ResourceViewController) -> ViewSnapshot:
        snapshot = await controller.refresh()
        if not snapshot.is_loading and snapshot.page > snapshot.total_pages:
            # Page no longer exists (e.g. after a delete): clamp to the last one
            controller.query.go_to_page(snapshot.total_pages, snapshot.total_pages)
            snapshot = await controller.refresh()
        return snapshot

    def _panel_response(
        request: Request, controller: ResourceViewController, snapshot: ViewSnapshot
    ) -> HTMLResponse:
        htmx = HtmxDetails.from_request(request)
        notifier = controller.notifier
        notifications = notifier.drain() if isinstance(notifier, NotificationLog) else []
        if htmx.wants_fragment:
            return htmx_response(
                render_panel(controller, snapshot, base_url),
                triggers=notification_triggers(notifications),
                replace_url=build_url(base_url, query_params(controller)),
            )
        return htmx_response(
            render_page(controller, snapshot, base_url),
            triggers=notification_triggers(notifications),
        )

    async def _entity(controller: ResourceViewController, entity_id: str) -> Any:
        entity = controller.find_entity(entity_id)
        if entity is not None:
            return entity
        detail = f"{definition.singular} {entity_id} not found"
        getter = getattr(definition.adapter, "get", None)
        if not callable(getter):
            raise HTTPException(status_code=404, detail=detail)
        try:
            return await getter(entity_id)
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=detail) from e

    @router.get("", response_class=HTMLResponse, summary=f"{definition.title} panel")
    async def panel(request: Request) -> Response:
        controller = _controller(request)
        snapshot = await _load(controller)
        return _panel_response(request, controller, snapshot)

    @router.get("/dialog/create", response_class=HTMLResponse)
    async def create_dialog(request: Request) -> Response:
        controller = _controller(request)
        if definition.create_link:
            if HtmxDetails.from_request(request).is_htmx:
                return htmx_response("", redirect=definition.create_link)
            return RedirectResponse(definition.create_link, status_code=303)
        try:
            controller.dialogs.open_create()
        except DialogStateError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return htmx_response(render_dialog(controller, base_url))

    @router.get("/items/{entity_id}/dialog", response_class=HTMLResponse)
    async def item_dialog(
        request: Request,
        entity_id: str,
        mode: str = Query("view", pattern="^(view|edit)$"),
    ) -> Response:
        controller = _controller(request)
        await _load(controller)
        entity = await _entity(controller, entity_id)
        try:
            if mode == DialogMode.EDIT:
                controller.dialogs.open_edit(entity)
            else:
                controller.dialogs.open_view(entity)
        except DialogStateError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return htmx_response(render_dialog(controller, base_url))

    @router.post("/dialog/success", response_class=HTMLResponse)
    async def dialog_success(
        request: Request,
        mode: str = Query(..., pattern="^(create|edit|view)$"),
    ) -> Response:
        controller = _controller(request)
        await _load(controller)
        # Restore the dialog the form was submitted from
        try:
            if mode == DialogMode.CREATE:
                controller.dialogs.open_create()
            elif mode == DialogMode.EDIT:
                controller.dialogs.open_edit(None)
            else:
                controller.dialogs.open_view(None)
        except DialogStateError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        await controller.dialogs.form_succeeded()
        return _panel_response(request, controller, controller.snapshot())

    @router.get("/items/{entity_id}/delete", response_class=HTMLResponse)
    async def confirm_delete_prompt(request: Request, entity_id: str) -> Response:
        controller = _controller(request)
        await _load(controller)
        entity = await _entity(controller, entity_id)
        controller.dialogs.stage_delete(entity)
        return htmx_response(render_confirm_delete(controller, entity, base_url))

    @router.post("/items/{entity_id}/delete", response_class=HTMLResponse)
    async def confirm_delete(request: Request, entity_id: str) -> Response:
        controller = _controller(request)
        await _load(controller)
        entity = controller.find_entity(entity_id) or {"id": entity_id}
        controller.dialogs.stage_delete(entity)
        deleted = await controller.dialogs.confirm_delete()
        snapshot = await _load(controller) if deleted else controller.snapshot()
        return _panel_response(request, controller, snapshot)

    @router.post("/board/drop", response_class=HTMLResponse)
    async def board_drop(request: Request) -> Response:
        controller = _controller(request)
        if controller.board is None:
            raise HTTPException(status_code=404, detail=f"{definition.title} has no board")
        body = await parse_body(request)
        if not body.get("entity_id"):
            raise HTTPException(status_code=422, detail="entity_id is required")
        target_kind = body.get("target_kind")
        if target_kind not in ("column", "item"):
            target_kind = None

        await _load(controller)
        outcome = controller.board.drop(body["entity_id"], body.get("target_id"), target_kind)
        logger.debug("Board drop of %s -> %s", body["entity_id"], outcome.kind)
        await controller.wait_for_mutations()
        return _panel_response(request, controller, controller.snapshot())

    return router


def create_app(
    definitions: Sequence[ResourceDefinition],
    *,
    views: ViewsConfig | None = None,
    cache: CacheConfig | None = None,
    title: str = "crmdeck",
) -> FastAPI:
    """
    Create a FastAPI application serving one panel per resource.

    Args:
        definitions: Resources to expose.
        views: View defaults from crmdeck.toml.
        cache: Shared cache settings from crmdeck.toml.
        title: Application title.

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(title=title)

    @app.get("/health", tags=["System"], summary="Health check")
    async def health() -> dict[str, str]:
        return {"status": "healthy"}

    for definition in definitions:
        app.include_router(create_resource_router(definition, views=views, cache=cache))

    if definitions:
        first = "/" + definitions[0].endpoint.strip("/")

        @app.get("/", include_in_schema=False)
        async def index() -> RedirectResponse:
            return RedirectResponse(first)

    return app
