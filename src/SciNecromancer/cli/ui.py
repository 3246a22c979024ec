"""Click CLI interface definitions.

Defines the command-line interface structure and routes commands
to their respective runners.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import click
from dotenv import load_dotenv

from SciNecromancer.cli.commands import (
    AbstractsCommand,
    ErrorsCommand,
    GenerationCommand,
    SyncCommand,
    render_json,
)
from SciNecromancer.cli.runner import AppContext, CommandRunner
from SciNecromancer.config import DEFAULT_CONFIG_PATH, load_config_with_defaults
from SciNecromancer.core.models import CATEGORY_TYPES, Category, ProviderName


def parse_categories(values: Sequence[str]) -> tuple[Category, ...]:
    """Parse ``name`` or ``name:type`` options into user-selected categories."""
    categories = []
    for value in values:
        name, _, kind = value.partition(":")
        kind = kind.strip() or "main"
        if kind not in CATEGORY_TYPES:
            raise click.BadParameter(f"category type must be one of {', '.join(CATEGORY_TYPES)}: {value}")
        categories.append(Category(name=name.strip(), type=kind, probability=1.0))
    return tuple(categories)


def _runner(ctx: click.Context) -> CommandRunner:
    return ctx.obj["runner"]


def _generation(app: AppContext, ctx: click.Context) -> GenerationCommand:
    return GenerationCommand(
        config=app.config,
        dispatcher=app.dispatcher,
        offline_fallback=ctx.obj["offline_fallback"],
    )


@click.group(help="SciNecromancer: draft conference abstracts with AI, stored local-first.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=DEFAULT_CONFIG_PATH,
    show_default=True,
    help="Path to YAML config file (merged over the defaults).",
)
@click.option(
    "--provider",
    type=click.Choice([p.value for p in ProviderName]),
    default=None,
    help="Use this provider as primary instead of the configured one.",
)
@click.option(
    "--offline-fallback",
    is_flag=True,
    help="Fall back to local heuristics when every AI provider is unavailable.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path, provider: str | None, offline_fallback: bool) -> None:
    """CLI entry group.

    Loads environment variables from .env file before processing config.

    Args:
        ctx: Click context.
        config_path: Path to YAML config file.
        provider: Optional primary provider override.
        offline_fallback: Whether offline heuristics may replace AI output.
    """
    load_dotenv()

    cfg = load_config_with_defaults(config_path)
    ctx.obj = {
        "runner": CommandRunner(cfg, provider=ProviderName(provider) if provider else None),
        "offline_fallback": offline_fallback,
    }


@cli.command("analyze")
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option("--conference", default=None, help="Target conference (ISMRM, RSNA, JACC, ER).")
@click.pass_context
def analyze_cmd(ctx: click.Context, source, conference: str | None) -> None:
    """Identify research categories and keywords in SOURCE ('-' for stdin)."""
    text = source.read()

    def body(app: AppContext) -> None:
        result, provider = _generation(app, ctx).analyze(text, conference)
        click.echo(render_json({"provider": provider, "analysis": result}))

    _runner(ctx).run(ctx.command.name, body)


@cli.command("suggest-type")
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option("--conference", default=None)
@click.option("--category", "categories", multiple=True, help="Category as NAME or NAME:TYPE.")
@click.option("--keyword", "keywords", multiple=True)
@click.pass_context
def suggest_type_cmd(
    ctx: click.Context,
    source,
    conference: str | None,
    categories: tuple[str, ...],
    keywords: tuple[str, ...],
) -> None:
    """Rank likely abstract types for SOURCE."""
    text = source.read()
    selected = parse_categories(categories)

    def body(app: AppContext) -> None:
        suggestions, provider = _generation(app, ctx).suggest_type(text, selected, keywords, conference)
        click.echo(render_json({"provider": provider, "suggestions": suggestions}))

    _runner(ctx).run(ctx.command.name, body)


@cli.command("generate")
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option("--type", "abstract_type", required=True, help="Target abstract type.")
@click.option("--conference", default="ISMRM", show_default=True)
@click.option("--category", "categories", multiple=True, help="Category as NAME or NAME:TYPE.")
@click.option("--keyword", "keywords", multiple=True)
@click.option("--save", is_flag=True, help="Store the generated abstract.")
@click.option("--title", default=None, help="Title used when saving.")
@click.pass_context
def generate_cmd(
    ctx: click.Context,
    source,
    abstract_type: str,
    conference: str,
    categories: tuple[str, ...],
    keywords: tuple[str, ...],
    save: bool,
    title: str | None,
) -> None:
    """Generate the final structured abstract for SOURCE."""
    text = source.read()
    selected = parse_categories(categories)
    if save and not title:
        raise click.UsageError("--title is required with --save")

    def body(app: AppContext) -> None:
        command = _generation(app, ctx)
        content, provider = command.generate(text, abstract_type, selected, keywords, conference)
        output = {"provider": provider, "abstract": content}
        if save:
            record = AbstractsCommand(app.coordinator).save(
                title=title,
                conference=conference,
                abstract_type=abstract_type,
                content=content,
                source_text=text,
                categories=selected,
                keywords=keywords,
                parameters=command.parameters_for(provider, abstract_type, selected, keywords),
            )
            output["record"] = {"id": record.id, "sync_state": record.sync_state.value}
        click.echo(render_json(output))

    _runner(ctx).run(ctx.command.name, body)


@cli.command("creative")
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option("--conference", default=None)
@click.pass_context
def creative_cmd(ctx: click.Context, source, conference: str | None) -> None:
    """Expand the core idea in SOURCE into a creative abstract."""
    idea = source.read()

    def body(app: AppContext) -> None:
        content, provider = _generation(app, ctx).creative(idea, conference)
        click.echo(render_json({"provider": provider, "abstract": content}))

    _runner(ctx).run(ctx.command.name, body)


@cli.command("image")
@click.argument("specs")
@click.option("--context", "context_file", type=click.File("r", encoding="utf-8"), default=None)
@click.option("--image", "image_path", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option(
    "--output",
    "output_path",
    type=click.Path(path_type=Path, dir_okay=False),
    required=True,
    help="Where to write the generated image.",
)
@click.pass_context
def image_cmd(ctx: click.Context, specs: str, context_file, image_path: Path | None, output_path: Path) -> None:
    """Generate an image from SPECS, or edit --image according to SPECS."""
    context = context_file.read() if context_file else ""

    def body(app: AppContext) -> None:
        result, provider = _generation(app, ctx).image(specs, context, image_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(result.data)
        click.echo(f"Wrote {len(result.data)} bytes ({result.mime_type}) from {provider} to {output_path}")

    _runner(ctx).run(ctx.command.name, body)


@cli.group("abstracts")
def abstracts_group() -> None:
    """Manage stored abstracts."""


@abstracts_group.command("list")
@click.pass_context
def abstracts_list_cmd(ctx: click.Context) -> None:
    def body(app: AppContext) -> None:
        for record in AbstractsCommand(app.coordinator).list():
            click.echo(
                f"{record.id}  [{record.sync_state.value}]  {record.updated_at:%Y-%m-%d %H:%M}  "
                f"{record.conference}/{record.abstract_type}  {record.title}"
            )

    _runner(ctx).run("abstracts-list", body)


@abstracts_group.command("show")
@click.argument("record_id")
@click.pass_context
def abstracts_show_cmd(ctx: click.Context, record_id: str) -> None:
    def body(app: AppContext) -> None:
        click.echo(render_json(AbstractsCommand(app.coordinator).show(record_id)))

    _runner(ctx).run("abstracts-show", body)


@abstracts_group.command("search")
@click.argument("query")
@click.pass_context
def abstracts_search_cmd(ctx: click.Context, query: str) -> None:
    """Search titles, content and keywords of local abstracts."""

    def body(app: AppContext) -> None:
        for record in AbstractsCommand(app.coordinator).search(query):
            click.echo(f"{record.id}  {record.title}")

    _runner(ctx).run("abstracts-search", body)


@abstracts_group.command("delete")
@click.argument("record_id")
@click.pass_context
def abstracts_delete_cmd(ctx: click.Context, record_id: str) -> None:
    def body(app: AppContext) -> None:
        AbstractsCommand(app.coordinator).delete(record_id)
        click.echo(f"Deleted {record_id}")

    _runner(ctx).run("abstracts-delete", body)


@abstracts_group.command("export")
@click.argument("path", type=click.Path(path_type=Path, dir_okay=False))
@click.pass_context
def abstracts_export_cmd(ctx: click.Context, path: Path) -> None:
    def body(app: AppContext) -> None:
        count = AbstractsCommand(app.coordinator).export(path)
        click.echo(f"Exported {count} abstracts to {path}")

    _runner(ctx).run("abstracts-export", body)


@abstracts_group.command("import")
@click.argument("path", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.pass_context
def abstracts_import_cmd(ctx: click.Context, path: Path) -> None:
    def body(app: AppContext) -> None:
        count = AbstractsCommand(app.coordinator).import_(path)
        click.echo(f"Imported {count} abstracts from {path}")

    _runner(ctx).run("abstracts-import", body)


@cli.group("sync")
def sync_group() -> None:
    """Inspect and drive cloud sync."""


@sync_group.command("status")
@click.pass_context
def sync_status_cmd(ctx: click.Context) -> None:
    def body(app: AppContext) -> None:
        click.echo(render_json(SyncCommand(app.coordinator).status()))

    _runner(ctx).run("sync-status", body)


@sync_group.command("probe")
@click.pass_context
def sync_probe_cmd(ctx: click.Context) -> None:
    """Check whether the remote store is reachable."""

    def body(app: AppContext) -> None:
        online = SyncCommand(app.coordinator).probe()
        click.echo("online" if online else "offline")

    _runner(ctx).run("sync-probe", body)


@sync_group.command("drain")
@click.pass_context
def sync_drain_cmd(ctx: click.Context) -> None:
    """Push every pending local change to the remote store."""

    def body(app: AppContext) -> None:
        report = SyncCommand(app.coordinator).drain()
        click.echo(
            f"synced={len(report.synced)} deleted={len(report.deleted)} "
            f"superseded={len(report.superseded)} conflicted={len(report.conflicted)} failed={len(report.failed)}"
        )
        if report.failed:
            raise click.ClickException(f"{len(report.failed)} change(s) still pending")

    _runner(ctx).run("sync-drain", body)


@sync_group.command("resolve")
@click.argument("record_id")
@click.option(
    "--strategy",
    type=click.Choice(["local", "remote", "merge"]),
    required=True,
    help="Keep the local copy, adopt the remote copy, or merge field by field.",
)
@click.pass_context
def sync_resolve_cmd(ctx: click.Context, record_id: str, strategy: str) -> None:
    def body(app: AppContext) -> None:
        record = SyncCommand(app.coordinator).resolve(record_id, strategy)
        click.echo(f"Resolved {record.id} ({record.sync_state.value})")

    _runner(ctx).run("sync-resolve", body)


@cli.command("errors")
@click.option("--limit", type=int, default=20, show_default=True)
@click.pass_context
def errors_cmd(ctx: click.Context, limit: int) -> None:
    """Show recent generation failures and recurring patterns."""

    def body(app: AppContext) -> None:
        click.echo(render_json(ErrorsCommand(app.error_log).report(limit)))

    _runner(ctx).run(ctx.command.name, body)
