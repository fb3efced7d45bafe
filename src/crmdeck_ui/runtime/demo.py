"""Demo application: the leads panel plus the form endpoint its dialog posts to."""

from __future__ import annotations

import logging

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import Response

from crmdeck.adapters.memory import InMemoryAdapter, SearchableInMemoryAdapter
from crmdeck.config import CacheConfig, ViewsConfig
from crmdeck.demo import PIPELINE_STAGES, build_leads_resource, sample_leads
from crmdeck_ui.runtime.htmx import htmx_response
from crmdeck_ui.runtime.routes import create_app, parse_body

logger = logging.getLogger(__name__)

FORM_SUCCEEDED_EVENT = "crmdeck:formSucceeded"


def create_lead_form_router(adapter: InMemoryAdapter) -> APIRouter:
    """Handle the demo lead form; success fires ``crmdeck:formSucceeded``."""
    router = APIRouter(tags=["Leads"])

    @router.post("/leads/form")
    async def submit_lead(request: Request) -> Response:
        body = await parse_body(request)
        data = {key: str(body.get(key) or "").strip() for key in ("name", "company", "email")}
        if not data["name"]:
            return htmx_response(
                "",
                status_code=422,
                triggers={"showToast": {"message": "Name is required", "type": "error"}},
            )
        if body.get("id"):
            await adapter.update(body["id"], data)
        else:
            first = PIPELINE_STAGES[0]
            stage = {"id": first.id, "name": first.label}
            await adapter.create({**data, "value": 0, "source": "website", "stage": stage})
        logger.info("Lead form saved: %s", data["name"])
        return htmx_response("", triggers=[FORM_SUCCEEDED_EVENT])

    return router


def create_demo_app(
    views: ViewsConfig | None = None,
    *,
    cache: CacheConfig | None = None,
    latency: float = 0.0,
) -> FastAPI:
    adapter = SearchableInMemoryAdapter(
        sample_leads(), search_fields=("name", "company", "email"), latency=latency
    )
    app = create_app(
        [build_leads_resource(adapter)], views=views, cache=cache, title="crmdeck demo"
    )
    app.include_router(create_lead_form_router(adapter))
    return app
