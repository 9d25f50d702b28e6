"""CLI for notionforms."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

import click

from notionforms import __version__
from notionforms.config import Settings, get_settings
from notionforms.exceptions import NotionFormsError, SubmissionValidationError
from notionforms.models import (
    DecodedValue,
    FieldDefinition,
    FormConfig,
    FormContext,
    PageRow,
    RowPage,
)
from notionforms.notion.client import NotionClient
from notionforms.notion.filters import compile_filters
from notionforms.notion.schema import parse_database, parse_database_summary, parse_user
from notionforms.service import FormService


def format_value(value: Any) -> str:
    """Render a decoded property value as a single line of text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, list):
        return ", ".join(format_value(item) for item in value)
    if isinstance(value, dict):
        if "prefix" in value and "number" in value:
            prefix = value["prefix"]
            return f"{prefix}-{value['number']}" if prefix else str(value["number"])
        return str(value.get("name") or value.get("url") or value.get("id") or "")
    return str(value)


def _require_settings(ctx: click.Context) -> Settings:
    settings: Settings | None = ctx.obj.get("settings")
    if settings is None:
        click.echo(f"Error loading settings: {ctx.obj.get('settings_error')}", err=True)
        ctx.exit(1)
    return settings


def _load_form(ctx: click.Context, form_file: Path) -> FormConfig:
    try:
        return FormConfig.load(form_file)
    except NotionFormsError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)


def _run(ctx: click.Context, coro) -> None:
    try:
        asyncio.run(coro)
    except SubmissionValidationError as e:
        click.echo("Submission rejected:", err=True)
        for prop_id, message in e.errors.items():
            click.echo(f"  {prop_id}: {message}", err=True)
        ctx.exit(1)
    except NotionFormsError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context) -> None:
    """Publish Notion databases as web forms."""
    ctx.ensure_object(dict)

    # Load settings
    try:
        settings = get_settings()
        ctx.obj["settings"] = settings
        log_level = settings.log_level
    except Exception as e:
        ctx.obj["settings_error"] = str(e)
        log_level = "WARNING"

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


@main.command()
@click.pass_context
def databases(ctx: click.Context) -> None:
    """List databases shared with the integration."""
    settings = _require_settings(ctx)

    async def run() -> None:
        client = NotionClient.from_settings(settings)
        try:
            results = await client.search_databases()
            if not results:
                click.echo("No databases shared with this integration.")
                return
            for raw in results:
                db = parse_database_summary(raw)
                click.echo(f"{db.id}  {db.title}")
        finally:
            await client.close()

    _run(ctx, run())


@main.command()
@click.argument("database_id")
@click.pass_context
def schema(ctx: click.Context, database_id: str) -> None:
    """Show the properties of a database (id, name, type)."""
    settings = _require_settings(ctx)

    async def run() -> None:
        client = NotionClient.from_settings(settings)
        try:
            db = parse_database(await client.get_database(database_id))
            click.echo(f"{db.title} has {len(db.properties)} properties:\n")
            for prop in db.properties:
                suffix = " (read-only)" if prop.is_read_only else ""
                click.echo(f"  {prop.id}  {prop.name}: {prop.type}{suffix}")
                if prop.options:
                    names = ", ".join(opt.get("name", "") for opt in prop.options)
                    click.echo(f"        options: {names}")
        finally:
            await client.close()

    _run(ctx, run())


@main.command()
@click.pass_context
def users(ctx: click.Context) -> None:
    """List workspace members (ids usable in people fields)."""
    settings = _require_settings(ctx)

    async def run() -> None:
        client = NotionClient.from_settings(settings)
        try:
            people = [u for u in map(parse_user, await client.list_users()) if u is not None]
            for user in people:
                email = f" <{user.email}>" if user.email else ""
                click.echo(f"{user.id}  {user.name}{email}")
        finally:
            await client.close()

    _run(ctx, run())


@main.command("compile-filter")
@click.argument("form_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def compile_filter(ctx: click.Context, form_file: Path) -> None:
    """Print the Notion query filter compiled from a form's filter rules."""
    form = _load_form(ctx, form_file)
    notion_filter = compile_filters(form.filters)
    if notion_filter is None:
        click.echo("No filter (all rows are listed)")
        return
    click.echo(json.dumps(notion_filter, indent=2))


async def _with_relation_titles(
    service: FormService,
    fields: list[FieldDefinition],
    rows: list[PageRow],
) -> list[PageRow]:
    """Replace related page ids with page titles for display."""
    relation_ids = [
        field.property_id for field in fields if field.property_type == "relation"
    ]
    if not relation_ids:
        return rows

    page_ids = {
        page_id
        for row in rows
        for prop_id in relation_ids
        for page_id in row.value(prop_id) or []
    }
    titles = await service.relation_titles(sorted(page_ids))

    result = []
    for row in rows:
        properties = dict(row.properties)
        for prop_id in relation_ids:
            decoded = properties.get(prop_id)
            if decoded is not None and decoded.value:
                properties[prop_id] = DecodedValue(
                    type=decoded.type, value=[titles.get(pid, pid) for pid in decoded.value]
                )
        result.append(row.model_copy(update={"properties": properties}))
    return result


def _echo_row(row: PageRow, fields: list[FieldDefinition]) -> None:
    for field in fields:
        click.echo(f"  {field.label}: {format_value(row.value(field.property_id))}")


@main.command()
@click.argument("form_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--page-size", type=click.IntRange(1, 100), help="Rows per page")
@click.option("--cursor", help="Start cursor from a previous listing")
@click.option("--all", "all_rows", is_flag=True, help="Fetch every matching row")
@click.pass_context
def rows(
    ctx: click.Context,
    form_file: Path,
    page_size: int | None,
    cursor: str | None,
    all_rows: bool,
) -> None:
    """List rows visible through a form's list view."""
    settings = _require_settings(ctx)
    form = _load_form(ctx, form_file)
    columns = form.list_fields() or form.visible_fields()

    async def run() -> None:
        client = NotionClient.from_settings(settings)
        try:
            service = FormService(client, form)
            if all_rows:
                result = RowPage(rows=[row async for row in service.iter_rows()])
            else:
                result = await service.list_rows(start_cursor=cursor, page_size=page_size)
            for row in await _with_relation_titles(service, columns, result.rows):
                click.echo(row.id)
                _echo_row(row, columns)
            click.echo(f"\n{len(result.rows)} rows")
            if result.has_more:
                click.echo(f"More rows available: --cursor {result.next_cursor}")
        finally:
            await client.close()

    _run(ctx, run())


@main.command()
@click.argument("form_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("page_id")
@click.pass_context
def show(ctx: click.Context, form_file: Path, page_id: str) -> None:
    """Show one row through a form's fields."""
    settings = _require_settings(ctx)
    form = _load_form(ctx, form_file)

    async def run() -> None:
        client = NotionClient.from_settings(settings)
        try:
            service = FormService(client, form)
            fields = form.visible_fields()
            row = await service.get_row(page_id)
            row = (await _with_relation_titles(service, fields, [row]))[0]
            click.echo(f"{row.id}  {row.url or ''}".rstrip())
            _echo_row(row, fields)
        finally:
            await client.close()

    _run(ctx, run())


@main.command("relation-pages")
@click.argument("form_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("property_id")
@click.option("--search", help="Case-insensitive title filter")
@click.option("--page-size", type=click.IntRange(1, 100), default=50, show_default=True)
@click.pass_context
def relation_pages(
    ctx: click.Context,
    form_file: Path,
    property_id: str,
    search: str | None,
    page_size: int,
) -> None:
    """List pages a relation field can link to."""
    settings = _require_settings(ctx)
    form = _load_form(ctx, form_file)

    async def run() -> None:
        client = NotionClient.from_settings(settings)
        try:
            service = FormService(client, form)
            database_id = await service.relation_database_id(property_id)
            result = await service.list_relation_pages(database_id, search=search, page_size=page_size)
            for page in result.pages:
                click.echo(f"{page.id}  {page.title}")
            if result.has_more:
                click.echo("More pages available; narrow the search", err=True)
        finally:
            await client.close()

    _run(ctx, run())


@main.command()
@click.argument("form_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("page_id")
@click.pass_context
def comments(ctx: click.Context, form_file: Path, page_id: str) -> None:
    """Show the comments on a row."""
    settings = _require_settings(ctx)
    form = _load_form(ctx, form_file)

    async def run() -> None:
        client = NotionClient.from_settings(settings)
        try:
            results = await FormService(client, form).list_comments(page_id)
            if not results:
                click.echo("No comments.")
            for comment in results:
                author = comment.created_by.name if comment.created_by else "Unknown"
                click.echo(f"[{comment.created_time or ''}] {author}: {comment.plain_text}")
        finally:
            await client.close()

    _run(ctx, run())


@main.command()
@click.argument("form_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("page_id")
@click.argument("text")
@click.option("--discussion-id", help="Reply in this discussion thread")
@click.pass_context
def comment(
    ctx: click.Context,
    form_file: Path,
    page_id: str,
    text: str,
    discussion_id: str | None,
) -> None:
    """Add a comment to a row."""
    settings = _require_settings(ctx)
    form = _load_form(ctx, form_file)

    async def run() -> None:
        client = NotionClient.from_settings(settings)
        try:
            created = await FormService(client, form).add_comment(page_id, text, discussion_id)
            click.echo(f"Added comment {created.id}")
        finally:
            await client.close()

    _run(ctx, run())


@main.command()
@click.argument("form_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("data_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--page-id", help="Update this page instead of creating a new one")
@click.option("--user-id", help="Notion user id used for 'current user' defaults")
@click.pass_context
def submit(
    ctx: click.Context,
    form_file: Path,
    data_file: Path,
    page_id: str | None,
    user_id: str | None,
) -> None:
    """Submit form values (JSON object keyed by property id)."""
    settings = _require_settings(ctx)
    form = _load_form(ctx, form_file)

    try:
        values = json.loads(data_file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        click.echo(f"Error: cannot read submission data: {e}", err=True)
        ctx.exit(1)
    if not isinstance(values, dict):
        click.echo("Error: submission data must be a JSON object", err=True)
        ctx.exit(1)

    async def run() -> None:
        client = NotionClient.from_settings(settings)
        try:
            service = FormService(client, form)
            if page_id:
                result = await service.update_row(page_id, values)
                click.echo(f"Updated page {result.page_id}")
            else:
                result = await service.create_row(values, FormContext(user_id=user_id))
                click.echo(f"Created page {result.page_id}")
            if result.url:
                click.echo(result.url)
            for prop_id in result.skipped:
                click.echo(f"Skipped unknown property {prop_id}", err=True)
        finally:
            await client.close()

    _run(ctx, run())


if __name__ == "__main__":
    main()
