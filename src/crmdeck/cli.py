"""
crmdeck command line.

    crmdeck version
    crmdeck serve [--api URL --endpoint leads --field name:Name ...]
    crmdeck render --view board --search acme
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from crmdeck import __version__
from crmdeck.config import CrmdeckConfig, load_config
from crmdeck.core.controller import ResourceDefinition, ResourceViewController
from crmdeck.core.descriptors import FieldDescriptor, KanbanColumn, KanbanConfig
from crmdeck.core.errors import ConfigError
from crmdeck.core.query import ViewMode
from crmdeck.logging import get_log_file, setup_logging

logger = logging.getLogger(__name__)

app = typer.Typer(help="Generic resource views (table, list, grid, board) for CRM dashboards")
console = Console()


def _load(config_path: Path | None) -> CrmdeckConfig:
    try:
        return load_config(config_path)
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


def _split_pairs(values: list[str], option: str) -> list[tuple[str, str]]:
    pairs = []
    for value in values:
        key, sep, label = value.partition(":")
        if not key:
            typer.echo(f"Error: invalid {option} '{value}', expected key:Label", err=True)
            raise typer.Exit(code=1)
        pairs.append((key, label if sep and label else key.replace("_", " ").title()))
    return pairs


def _api_resource(
    config: CrmdeckConfig,
    endpoint: str,
    fields: list[str],
    group_by: str | None,
    columns: list[str],
) -> ResourceDefinition:
    """Resource definition for a JSON:API backend described on the command line."""
    from crmdeck.adapters.jsonapi import JsonApiAdapter

    if not config.api.base_url:
        raise ConfigError("No API base URL configured")
    adapter = JsonApiAdapter(
        config.api.base_url,
        endpoint,
        token=config.api.get_token(),
        timeout=config.api.timeout,
    )
    descriptors = [
        FieldDescriptor(key=key, label=label)
        for key, label in _split_pairs(fields or ["id", "name"], "--field")
    ]
    kanban = None
    if group_by:
        kanban = KanbanConfig(
            group_by=group_by,
            columns=[
                KanbanColumn(id=key, label=label)
                for key, label in _split_pairs(columns, "--column")
            ],
            on_status_change=lambda entity_id, column_id: adapter.update(
                entity_id, {group_by: column_id}
            ),
        )
    return ResourceDefinition(
        title=endpoint.strip("/").replace("-", " ").title(),
        endpoint=endpoint,
        adapter=adapter,
        fields=descriptors,
        kanban=kanban,
    )


@app.command()
def version() -> None:
    """Show the crmdeck version."""
    typer.echo(f"crmdeck {__version__}")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Port"),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Path to crmdeck.toml"),
    api: str | None = typer.Option(None, "--api", help="JSON:API base URL (overrides config)"),
    endpoint: str = typer.Option("leads", "--endpoint", "-e", help="Resource endpoint"),
    fields: list[str] = typer.Option([], "--field", "-f", help="Column as key:Label"),
    group_by: str | None = typer.Option(None, "--group-by", help="Board grouping field path"),
    columns: list[str] = typer.Option([], "--column", help="Board column as id:Label"),
    latency: float = typer.Option(0.0, "--latency", help="Demo adapter latency (seconds)"),
) -> None:
    """Serve resource panels over HTTP (demo leads unless an API is configured)."""
    import uvicorn

    from crmdeck_ui.runtime.demo import create_demo_app
    from crmdeck_ui.runtime.routes import create_app

    config = _load(config_path)
    if api:
        config.api.base_url = api
    setup_logging(config.logging.log_dir, config.logging.level)

    if config.api.is_configured:
        resource = _api_resource(config, endpoint, fields, group_by, columns)
        fastapi_app = create_app([resource], views=config.views, cache=config.cache)
        typer.echo(f"Serving {resource.title} from {config.api.base_url}")
    else:
        fastapi_app = create_demo_app(config.views, cache=config.cache, latency=latency)
        typer.echo("Serving demo leads (in-memory)")

    typer.echo(f"Open http://{host}:{port}/")
    typer.echo(f"Logs: {get_log_file()}")
    uvicorn.run(fastapi_app, host=host, port=port, log_level=config.logging.level.lower())


@app.command()
def render(
    view: ViewMode = typer.Option(ViewMode.TABLE, "--view", help="Layout to render"),
    search: str = typer.Option("", "--search", "-s", help="Search text"),
    page: int = typer.Option(1, "--page", min=1),
    per_page: int | None = typer.Option(None, "--per-page", min=1),
    summary: bool = typer.Option(False, "--summary", help="Print a table instead of HTML"),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Path to crmdeck.toml"),
) -> None:
    """Render the demo leads panel once and print it."""
    from crmdeck.demo import build_leads_resource
    from crmdeck_ui.runtime.view_renderer import render_panel

    config = _load(config_path)
    # stdout carries the rendered output
    setup_logging(config.logging.log_dir, config.logging.level, stream=sys.stderr)

    params: dict[str, str] = {"view": view.value, "search": search, "page": str(page)}
    if per_page:
        params["per_page"] = str(per_page)

    async def _render() -> tuple[ResourceViewController, str]:
        controller = ResourceViewController.from_query_params(
            build_leads_resource(), params, views=config.views
        )
        snapshot = await controller.refresh()
        return controller, render_panel(controller, snapshot, "/leads")

    controller, html = asyncio.run(_render())
    if not summary:
        typer.echo(html)
        return

    snapshot = controller.snapshot()
    table = Table(title=f"{controller.definition.title} ({snapshot.view_mode})")
    for field in controller.definition.fields:
        table.add_column(field.label)
    for entity in snapshot.items:
        table.add_row(*[_plain(entity, field.key) for field in controller.definition.fields])
    console.print(table)
    console.print(
        f"Showing {len(snapshot.items)} of {snapshot.total_items} items · "
        f"Page {snapshot.page} of {snapshot.total_pages}"
    )


def _plain(entity: object, key: str) -> str:
    from crmdeck.core.accessors import get_nested_value
    from crmdeck_ui.runtime.template_renderer import display_value

    return display_value(get_nested_value(entity, key))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
