"""Demo "Leads" resource backed by the in-memory adapter.

Used by ``crmdeck serve`` / ``crmdeck render`` when no API is configured.
"""

from __future__ import annotations

from typing import Any

from markupsafe import Markup

from crmdeck.adapters.memory import InMemoryAdapter, SearchableInMemoryAdapter
from crmdeck.core.controller import ResourceDefinition
from crmdeck.core.descriptors import (
    FieldDescriptor,
    FilterDefinition,
    FilterOption,
    KanbanColumn,
    KanbanConfig,
    StatDefinition,
)

PIPELINE_STAGES: list[KanbanColumn] = [
    KanbanColumn(id=1, label="New", color="#94a3b8"),
    KanbanColumn(id=2, label="Contacted", color="#38bdf8"),
    KanbanColumn(id=3, label="Qualified", color="#818cf8"),
    KanbanColumn(id=4, label="Proposal", color="#fbbf24"),
    KanbanColumn(id=5, label="Won", color="#34d399"),
    KanbanColumn(id=6, label="Lost", color="#f87171"),
]

_COMPANIES = [
    "Acme Corp",
    "Globex",
    "Initech",
    "Umbrella Health",
    "Stark Industries",
    "Wayne Logistics",
    "Hooli",
    "Vandelay Imports",
]
_CONTACTS = ["Ana Ruiz", "Ben Okafor", "Chen Wei", "Dana Kim", "Eli Novak", "Farah Haddad"]
_SOURCES = ["website", "referral", "event", "cold_call"]
_OWNERS = [{"id": 1, "name": "Priya"}, {"id": 2, "name": "Marco"}]


def sample_leads(count: int = 24) -> list[dict[str, Any]]:
    """Deterministic sample leads spread over the pipeline."""
    leads = []
    for i in range(count):
        stage = PIPELINE_STAGES[i % len(PIPELINE_STAGES)]
        leads.append(
            {
                "id": i + 1,
                "name": f"{_CONTACTS[i % len(_CONTACTS)]} ({_COMPANIES[i % len(_COMPANIES)]})",
                "company": _COMPANIES[i % len(_COMPANIES)],
                "email": f"lead{i + 1}@example.com",
                "source": _SOURCES[i % len(_SOURCES)],
                "value": 1500 + (i * 750) % 12000,
                "stage": {"id": stage.id, "name": stage.label},
                "owner": _OWNERS[i % len(_OWNERS)],
            }
        )
    return leads


def _stage_badge(lead: Any) -> Markup:
    stage = (lead.get("stage") or {}).get("name", "")
    return Markup('<span class="badge badge-outline">{}</span>').format(stage)


def _value_cell(lead: Any) -> str:
    return f"${lead.get('value', 0):,.0f}"


def _lead_card(lead: Any, actions_html: str) -> Markup:
    return Markup(
        '<div class="card bg-base-100 shadow-sm"><div class="card-body p-3 gap-1">'
        '<div class="font-semibold">{name}</div>'
        '<div class="text-xs text-base-content/60">{company} · {email}</div>'
        '<div class="flex justify-between items-center">'
        '<span class="text-sm">{value}</span>{actions}</div>'
        "</div></div>"
    ).format(
        name=lead.get("name", ""),
        company=lead.get("company", ""),
        email=lead.get("email", ""),
        value=_value_cell(lead),
        actions=Markup(actions_html),
    )


def _lead_form(lead: Any) -> Markup:
    lead = lead or {}
    return Markup(
        '<form class="grid gap-2" hx-post="/leads/form" hx-swap="none">'
        '<input type="hidden" name="id" value="{id}">'
        '<input class="input input-bordered" name="name" placeholder="Name"'
        ' value="{name}" required>'
        '<input class="input input-bordered" name="company" placeholder="Company"'
        ' value="{company}">'
        '<input class="input input-bordered" name="email" type="email" placeholder="Email"'
        ' value="{email}">'
        '<button class="btn btn-primary" type="submit">Save</button>'
        "</form>"
    ).format(
        id=lead.get("id", ""),
        name=lead.get("name", ""),
        company=lead.get("company", ""),
        email=lead.get("email", ""),
    )


def build_leads_resource(
    adapter: InMemoryAdapter | None = None,
    *,
    with_form: bool = True,
) -> ResourceDefinition:
    """The demo pipeline: leads grouped by ``stage.id`` on the board."""
    adapter = adapter or SearchableInMemoryAdapter(
        sample_leads(), search_fields=("name", "company", "email")
    )
    stage_labels = {str(c.id): c.label for c in PIPELINE_STAGES}

    async def move_lead(lead_id: Any, stage_id: Any) -> None:
        await adapter.update(
            lead_id, {"stage": {"id": int(stage_id), "name": stage_labels[str(stage_id)]}}
        )

    return ResourceDefinition(
        title="Leads",
        endpoint="leads",
        adapter=adapter,
        fields=[
            FieldDescriptor(key="name", label="Name", sortable=True),
            FieldDescriptor(key="company", label="Company", sortable=True),
            FieldDescriptor(key="email", label="Email"),
            FieldDescriptor(key="stage.name", label="Stage", render=_stage_badge),
            FieldDescriptor(
                key="value",
                label="Value",
                render=_value_cell,
                sortable=True,
                class_name="text-right",
            ),
            FieldDescriptor(key="owner", label="Owner"),
        ],
        filters=[
            FilterDefinition(
                key="source",
                label="Source",
                options=[
                    FilterOption(value=s, label=s.replace("_", " ").title()) for s in _SOURCES
                ],
            ),
            FilterDefinition(
                key="stage.id",
                label="Stage",
                options=[FilterOption(value=str(c.id), label=c.label) for c in PIPELINE_STAGES],
            ),
        ],
        kanban=KanbanConfig(
            group_by="stage.id", columns=PIPELINE_STAGES, on_status_change=move_lead
        ),
        stats=[
            StatDefinition(title="Open pipeline", value="$184k"),
            StatDefinition(title="Win rate", value="32%"),
        ],
        card_renderer=_lead_card,
        form_renderer=_lead_form if with_form else None,
        search_placeholder="Search leads...",
    )
