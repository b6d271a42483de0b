"""CLI entry point for Factsets maintenance."""

from __future__ import annotations

import json
import signal
import sys
import threading
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich import print as rprint
from rich.syntax import Syntax
from rich.table import Table

from factsets.config import (
    DEFAULT_CONFIG_TEMPLATE,
    ConfigError,
    FactsetsConfig,
    describe_config_keys,
    load_config,
    resolve_config,
    set_config_value,
)
from factsets.config.keys import CONFIG_KEYS
from factsets.freshness import classify, matching_categories, threshold_hours
from factsets.log import configure_logging
from factsets.maintenance import (
    CheckStaleInput,
    CheckStaleOutput,
    MaintenanceWorker,
    check_stale,
    get_resource_freshness,
    mark_resources_refreshed,
    review_skill,
    update_resource_snapshot,
)
from factsets.store import SQLiteKnowledgeStore, StoreError

app = typer.Typer(
    name="factsets",
    help="Staleness checks and maintenance for a Factsets knowledge store.",
)

config_app = typer.Typer(help="Manage Factsets configuration.")
app.add_typer(config_app, name="config")

# Global options, set by the callback
_options: dict[str, str | None] = {}


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to factsets.yaml")
    ] = None,
    database_url: Annotated[
        str | None,
        typer.Option("--database-url", envvar="DATABASE_URL", help="SQLite database path"),
    ] = None,
    client: Annotated[
        str | None, typer.Option("--client", help="github-copilot, cursor, claude or generic")
    ] = None,
    skills_dir: Annotated[
        str | None, typer.Option("--skills-dir", help="Override the skills directory")
    ] = None,
) -> None:
    """Global options."""
    _options.clear()
    _options.update(
        config=config, database_url=database_url, client=client, skills_dir=skills_dir
    )


def _open_store() -> SQLiteKnowledgeStore:
    db_path = _options.get("database_url") or load_config(_options.get("config")).database_url
    try:
        return SQLiteKnowledgeStore(db_path)
    except StoreError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def _load(store: SQLiteKnowledgeStore) -> FactsetsConfig:
    return resolve_config(
        _options.get("config"),
        store,
        database_url=store.db_path,
        client=_options.get("client"),
        skills_dir=_options.get("skills_dir"),
    )


def _resolve(store: SQLiteKnowledgeStore) -> FactsetsConfig:
    try:
        cfg = _load(store)
    except ValueError as e:
        rprint(f"[red]Config error:[/red] {e}")
        raise typer.Exit(1)
    configure_logging(cfg.log_level, cfg.log_format)
    return cfg


def _fmt_ts(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "never"


def _display_report(report: CheckStaleOutput) -> None:
    """Render a staleness report as Rich tables."""
    s = report.summary
    rprint(
        f"[bold]Stale:[/bold] {s.total_stale} "
        f"([cyan]{s.resources}[/cyan] resources, [cyan]{s.skills}[/cyan] skills, "
        f"[cyan]{s.facts}[/cyan] facts, [cyan]{s.pending_review}[/cyan] pending review; "
        f"[yellow]{s.approaching}[/yellow] approaching)"
    )

    if report.stale_resources:
        table = Table(title=f"Stale Resources ({len(report.stale_resources)})")
        table.add_column("ID", justify="right")
        table.add_column("URI", style="cyan")
        table.add_column("Type")
        table.add_column("Last verified")
        table.add_column("Hours", justify="right", style="red")
        for r in report.stale_resources:
            table.add_row(str(r.id), r.uri, r.type, _fmt_ts(r.last_verified_at), str(r.hours_stale))
        rprint(table)

    if report.approaching_stale_resources:
        table = Table(title=f"Approaching Stale ({len(report.approaching_stale_resources)})")
        table.add_column("ID", justify="right")
        table.add_column("URI", style="cyan")
        table.add_column("Category")
        table.add_column("Hours left", justify="right", style="yellow")
        for r in report.approaching_stale_resources:
            table.add_row(str(r.id), r.uri, r.category, f"{r.hours_until_stale:.1f}")
        rprint(table)

    if report.stale_skills:
        table = Table(title=f"Stale Skills ({len(report.stale_skills)})")
        table.add_column("ID", justify="right")
        table.add_column("Name", style="cyan")
        table.add_column("Reason", style="red")
        table.add_column("Dependencies")
        for sk in report.stale_skills:
            deps = ", ".join(f"{d.type.value}:{d.name}" for d in sk.stale_dependencies)
            table.add_row(str(sk.id), sk.name, sk.reason, deps)
        rprint(table)

    if report.unverified_facts:
        table = Table(title=f"Unverified Facts ({len(report.unverified_facts)})")
        table.add_column("ID", justify="right")
        table.add_column("Content", style="dim")
        table.add_column("Days", justify="right")
        table.add_column("Source")
        for f in report.unverified_facts:
            snippet = f.content[:60] + ("..." if len(f.content) > 60 else "")
            days = f"{f.days_old}" + (" [red](expiring)[/red]" if f.pending_expiration else "")
            table.add_row(str(f.id), snippet, days, f.source_type)
        rprint(table)

    if report.skills_needing_review:
        table = Table(title=f"Skills Needing Review ({len(report.skills_needing_review)})")
        table.add_column("ID", justify="right")
        table.add_column("Name", style="cyan")
        table.add_column("Title")
        table.add_column("File", style="dim")
        for sk in report.skills_needing_review:
            table.add_row(str(sk.id), sk.name, sk.title, sk.file_path or "-")
        rprint(table)


@app.command()
def check(
    resources: bool = typer.Option(True, "--resources/--no-resources", help="Check resources"),
    skills: bool = typer.Option(True, "--skills/--no-skills", help="Check skill dependencies"),
    facts: bool = typer.Option(True, "--facts/--no-facts", help="List unverified facts"),
    max_age_hours: float | None = typer.Option(
        None, "--max-age-hours", help="Use one threshold for every resource category"
    ),
    tag: list[str] | None = typer.Option(None, "--tag", "-t", help="Only entities with this tag"),
    format: str = typer.Option("table", "--format", "-f", help="Output format: table or json"),
) -> None:
    """Report stale resources, drifted skills and unverified facts."""
    if format not in ("table", "json"):
        rprint(f"[red]Error:[/red] Invalid format '{format}'. Choose table or json.")
        raise typer.Exit(1)
    if max_age_hours is not None and max_age_hours <= 0:
        rprint("[red]Error:[/red] --max-age-hours must be positive.")
        raise typer.Exit(1)

    with _open_store() as store:
        cfg = _resolve(store)
        request = CheckStaleInput(
            check_resources=resources,
            check_skills=skills,
            check_facts=facts,
            max_age_hours=max_age_hours,
            tags=tag or None,
        )
        report = check_stale(store, request, cfg)

    if format == "json":
        typer.echo(report.model_dump_json(by_alias=True, indent=2))
        return
    if report.summary.total_stale == 0 and report.summary.approaching == 0:
        rprint("[green]Everything is fresh.[/green]")
        return
    _display_report(report)


@app.command()
def refresh(
    ids: list[int] = typer.Argument(..., help="Resource ids to mark as verified now"),
) -> None:
    """Mark resources as refreshed without changing their snapshot."""
    with _open_store() as store:
        _resolve(store)
        result = mark_resources_refreshed(store, ids)

    rprint(f"[green]Refreshed[/green] {result.updated} of {len(set(ids))} resource(s).")
    if result.skills_to_review:
        rprint("[yellow]Skills referencing these resources:[/yellow]")
        for sk in result.skills_to_review:
            rprint(f"  {sk.id}: {sk.name}")


@app.command()
def snapshot(
    resource_id: int = typer.Argument(..., help="Resource id"),
    source: str = typer.Argument("-", help="File with the new content, or - for stdin"),
) -> None:
    """Store new snapshot content for a resource, applying the overflow policy."""
    if source == "-":
        content: str | bytes = sys.stdin.read()
    else:
        path = Path(source)
        if not path.is_file():
            rprint(f"[red]Error:[/red] File not found: {source}")
            raise typer.Exit(1)
        content = path.read_bytes()

    with _open_store() as store:
        cfg = _resolve(store)
        result = update_resource_snapshot(store, resource_id, content, cfg)

    if not result.found:
        rprint(f"[red]Resource not found:[/red] {resource_id}")
        raise typer.Exit(1)
    note = f" ({result.policy_applied})" if result.policy_applied else ""
    rprint(
        f"[green]Stored[/green] snapshot for resource {resource_id}: "
        f"{result.stored_bytes} bytes{note}"
    )
    for sk in result.skills_to_review:
        rprint(f"  [yellow]review:[/yellow] {sk.id}: {sk.name}")


@app.command()
def review(
    target: str = typer.Argument(..., help="Skill id or name"),
) -> None:
    """Accept a skill's current dependencies and clear its review flag."""
    with _open_store() as store:
        _resolve(store)
        skill = store.get_skill(int(target)) if target.isdigit() else store.get_skill_by_name(target)
        result = review_skill(store, skill.id) if skill is not None else None

    if result is None or not result.found:
        rprint(f"[red]Skill not found:[/red] {target}")
        raise typer.Exit(1)
    rprint(f"[green]Reviewed[/green] skill {skill.name}: {result.refreshed} reference(s) refreshed.")
    if result.dangling:
        rprint(f"[yellow]{result.dangling} reference(s) point at deleted entities.[/yellow]")


@app.command()
def status(
    target: str = typer.Argument(..., help="Resource id or URI"),
) -> None:
    """Show the freshness verdict for one resource."""
    with _open_store() as store:
        cfg = _resolve(store)
        if target.isdigit():
            result = get_resource_freshness(store, resource_id=int(target), config=cfg)
        else:
            result = get_resource_freshness(store, uri=target, config=cfg)

    if not result.found:
        rprint(f"[red]Resource not found:[/red] {target}")
        raise typer.Exit(1)

    colors = {"fresh": "green", "warning": "yellow", "stale": "red"}
    color = colors.get(result.state, "white")
    age = f"{result.age_hours:.1f}h" if result.age_hours is not None else "never verified"
    rprint(f"[bold]{result.uri}[/bold] ({result.category})")
    rprint(f"  state: [{color}]{result.state}[/{color}]")
    rprint(f"  age:   {age} of {result.threshold_hours:g}h")


@app.command(name="classify")
def classify_cmd(
    uri: str = typer.Argument(..., help="URI or path to classify"),
    tag: list[str] | None = typer.Option(None, "--tag", "-t", help="Entity tag"),
) -> None:
    """Show which freshness category a URI falls into."""
    cfg = load_config(_options.get("config"))
    category = classify(uri, tag or ())
    rprint(f"[bold]{uri}[/bold] -> [cyan]{category.value}[/cyan] ({threshold_hours(category, cfg.freshness):g}h)")
    matches = [c.value for c in matching_categories(uri)]
    if len(matches) > 1:
        rprint(f"  [dim]also matches: {', '.join(m for m in matches if m != category.value)}[/dim]")


@app.command()
def worker(
    once: bool = typer.Option(False, "--once", help="Run every task once and exit"),
) -> None:
    """Run the background maintenance sweeps."""
    with _open_store() as store:
        _resolve(store)
        runner = MaintenanceWorker(store, lambda: _load(store))

        if once:
            _, states = runner.run_cycle(force=True)
            table = Table(title="Maintenance Tasks")
            table.add_column("Task", style="cyan")
            table.add_column("Status")
            table.add_column("Items", justify="right")
            table.add_column("Message", style="dim")
            for st in states:
                table.add_row(st.task_name, st.last_status.value, str(st.items_processed), st.last_message or "")
            rprint(table)
            return

        stop = threading.Event()
        for sig in (signal.SIGINT, signal.SIGTERM):
            signal.signal(sig, lambda *_: stop.set())
        rprint("[bold]Worker running.[/bold] Ctrl+C to stop.")
        runner.run_forever(stop)


@config_app.command("show")
def config_show() -> None:
    """Show current resolved configuration."""
    with _open_store() as store:
        cfg = _resolve(store)
    rprint(Syntax(yaml.dump(cfg.model_dump(), default_flow_style=False), "yaml"))


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config"),
) -> None:
    """Create default factsets.yaml in current directory."""
    target = Path("factsets.yaml")
    if target.exists() and not force:
        rprint("[yellow]factsets.yaml already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    target.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Created[/green] {target}")


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Config key, see 'factsets config keys'"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Store a configuration value in the database."""
    if key not in CONFIG_KEYS:
        rprint(f"[red]Unknown config key:[/red] {key}")
        raise typer.Exit(1)
    with _open_store() as store:
        try:
            set_config_value(store, key, value)
        except ConfigError as e:
            rprint(f"[red]Invalid value:[/red] {e}")
            raise typer.Exit(1)
    rprint(f"[green]Set[/green] {key} = {value}")


@config_app.command("keys")
def config_keys(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table or json"),
) -> None:
    """List the configuration keys that can be stored in the database."""
    described = describe_config_keys()
    if format == "json":
        typer.echo(json.dumps(described, indent=2))
        return
    table = Table(title=f"Config Keys ({len(described)})")
    table.add_column("Key", style="cyan")
    table.add_column("Type")
    table.add_column("Default", style="green")
    table.add_column("Description", style="dim")
    for key, meta in described.items():
        table.add_row(key, meta["type"], json.dumps(meta["default"]), meta["description"])
    rprint(table)


if __name__ == "__main__":
    app()
