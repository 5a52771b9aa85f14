# src/actiongraph/cli.py
"""actiongraph Command Line Interface.

Entry point for the actiongraph CLI tool.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer
from pydantic import ValidationError

from actiongraph import __version__
from actiongraph.contracts import ExportFormat
from actiongraph.contracts.actions import Action
from actiongraph.contracts.errors import ActionGraphError, NotFoundError
from actiongraph.core.config import ActionGraphSettings, load_settings
from actiongraph.core.logging import configure_logging
from actiongraph.core.store.database import ActionDB, SchemaCompatibilityError
from actiongraph.engine import CompositionEngine

__all__ = ["app"]

app = typer.Typer(
    name="actiongraph",
    help="actiongraph: compose reusable pipeline actions.",
    no_args_is_help=True,
)

DEFAULT_SETTINGS_PATH = Path("settings.yaml")


@dataclass(frozen=True)
class LogFlags:
    """Logging options given on the command line."""

    verbose: bool
    json_logs: bool


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"actiongraph version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """actiongraph: compose reusable pipeline actions."""
    ctx.obj = LogFlags(verbose=verbose, json_logs=json_logs)
    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "WARNING")


def _load_config(settings_path: Path | None) -> ActionGraphSettings:
    """Settings from an explicit file, ./settings.yaml, or defaults."""
    path = settings_path if settings_path is not None else DEFAULT_SETTINGS_PATH
    if settings_path is None and not path.exists():
        return ActionGraphSettings()
    try:
        return load_settings(path)
    except FileNotFoundError:
        typer.echo(f"Error: settings file not found: {path}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.echo(f"Error: invalid settings in {path}:\n{e}", err=True)
        raise typer.Exit(1) from None


def _database_url(database: str | None, config: ActionGraphSettings, *, must_exist: bool) -> str:
    if database is None:
        return config.database.url
    if "://" in database:
        return database
    db_path = Path(database).expanduser().resolve()
    # Prevents silent creation of an empty database on a typoed path
    if must_exist and not db_path.exists():
        typer.echo(f"Error: database file not found: {db_path}", err=True)
        raise typer.Exit(1)
    return f"sqlite:///{db_path}"


def _open(
    ctx: typer.Context,
    database: str | None,
    settings_path: Path | None,
    *,
    must_exist: bool = True,
) -> tuple[ActionDB, CompositionEngine]:
    config = _load_config(settings_path)
    flags = ctx.find_root().obj
    # Command-line flags win over the settings file
    if isinstance(flags, LogFlags) and not (flags.verbose or flags.json_logs):
        configure_logging(json_output=config.logging.json_output, level=config.logging.level)
    url = _database_url(database, config, must_exist=must_exist)
    try:
        db = ActionDB.from_url(url, echo=config.database.echo)
    except SchemaCompatibilityError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    return db, CompositionEngine(db, config)


def _fail(error: ActionGraphError) -> typer.Exit:
    typer.echo(f"Error: {error}", err=True)
    return typer.Exit(1)


DatabaseOption = typer.Option(None, "--database", "-d", help="Database file path or SQLAlchemy URL.")
SettingsOption = typer.Option(None, "--settings", "-s", help="Path to settings YAML file.")


@app.command()
def init(
    ctx: typer.Context,
    database: str | None = DatabaseOption,
    settings: Path | None = SettingsOption,
) -> None:
    """Create the database schema and seed the builtin actions."""
    from actiongraph.core.builtins import seed_builtin_actions

    db, engine = _open(ctx, database, settings, must_exist=False)
    with db:
        if engine.settings.seed_builtins:
            seeded = seed_builtin_actions(db, engine.settings.shared_group_id)
            typer.echo(f"Seeded {len(seeded)} builtin action(s) into {engine.settings.shared_group_id}")
        typer.echo(f"Database ready: {db.connection_string}")


@app.command("list")
def list_actions(
    ctx: typer.Context,
    group: list[str] | None = typer.Option(None, "--group", "-g", help="Only actions of this group (repeatable)."),
    database: str | None = DatabaseOption,
    settings: Path | None = SettingsOption,
) -> None:
    """List Builtin and Default actions."""
    db, engine = _open(ctx, database, settings)
    with db:
        actions = engine.load_all_for_groups(group) if group else engine.load_all()
    if not actions:
        typer.echo("No actions found.")
        return
    for action in actions:
        flags = []
        if not action.enabled:
            flags.append("disabled")
        if action.deprecated:
            flags.append("deprecated")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        typer.echo(f"{action.group_id}/{action.name} ({action.action_type}){suffix}")


def _render(action: Action) -> list[str]:
    lines = [
        f"Name:        {action.name}",
        f"Group:       {action.group_id}",
        f"Type:        {action.action_type}",
        f"Enabled:     {action.enabled}",
        f"Deprecated:  {action.deprecated}",
    ]
    if action.description:
        lines.append(f"Description: {action.description}")
    if action.requirements:
        lines.append("Requirements:")
        lines.extend(f"  - {r.name} ({r.type}): {r.value}" for r in action.requirements)
    if action.parameters:
        lines.append("Parameters:")
        lines.extend(f"  - {p.name} ({p.type}) = {p.value!r}" for p in action.parameters)
    if action.children:
        lines.append("Steps:")
        for order, child in enumerate(action.children, start=1):
            label = child.step_name or child.name
            state = "" if child.enabled else " [disabled]"
            lines.append(f"  {order}. {label} -> {child.name}{state}")
    return lines


@app.command()
def show(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Action name (case-insensitive)."),
    group: str = typer.Option(..., "--group", "-g", help="Group owning the action."),
    database: str | None = DatabaseOption,
    settings: Path | None = SettingsOption,
) -> None:
    """Show an action with its requirements, parameters and steps."""
    db, engine = _open(ctx, database, settings)
    with db:
        try:
            action = engine.load_by_name_and_group(name, group)
        except ActionGraphError as e:
            raise _fail(e) from None
    for line in _render(action):
        typer.echo(line)


@app.command()
def usage(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Action name (case-insensitive)."),
    group: str = typer.Option(..., "--group", "-g", help="Group owning the action."),
    database: str | None = DatabaseOption,
    settings: Path | None = SettingsOption,
) -> None:
    """Show which pipelines and actions use an action."""
    db, engine = _open(ctx, database, settings)
    with db:
        try:
            action = engine.load_by_name_and_group(name, group)
            if action.action_id is None:
                raise NotFoundError("action has no id", name=name, group_id=group)
            found = engine.get_usage(action.action_id)
        except ActionGraphError as e:
            raise _fail(e) from None

    if not found.pipelines and not found.actions:
        typer.echo(f"{action.name} is not used.")
        return
    for pipeline in found.pipelines:
        mark = " (!)" if pipeline.warning else ""
        typer.echo(f"pipeline {pipeline.pipeline_name} / {pipeline.stage_name} / {pipeline.job_name}{mark}")
    for parent in found.actions:
        mark = " (!)" if parent.warning else ""
        typer.echo(f"action {parent.parent_action_name}{mark}")


@app.command()
def export(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Action name (case-insensitive)."),
    output_format: ExportFormat = typer.Option(ExportFormat.YAML, "--format", "-f", help="Output format."),
    group: str | None = typer.Option(None, "--group", "-g", help="Group owning the action."),
    database: str | None = DatabaseOption,
    settings: Path | None = SettingsOption,
) -> None:
    """Export an action as YAML or canonical JSON."""
    db, engine = _open(ctx, database, settings)
    with db:
        try:
            rendered = engine.export(name, output_format, group_id=group)
        except ActionGraphError as e:
            raise _fail(e) from None
    typer.echo(rendered.rstrip("\n"))


@app.command("import")
def import_(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Exported action document."),
    group: str | None = typer.Option(None, "--group", "-g", help="Import into this group instead of the document's."),
    user: str = typer.Option("cli", "--user", "-u", help="User recorded in the audit log."),
    database: str | None = DatabaseOption,
    settings: Path | None = SettingsOption,
) -> None:
    """Create or replace an action from an exported document."""
    from actiongraph.core.export import parse_action_document

    db, engine = _open(ctx, database, settings)
    with db:
        try:
            action = parse_action_document(path.read_text(encoding="utf-8"), group_id=group)
            imported = engine.import_action(action, user)
        except ActionGraphError as e:
            raise _fail(e) from None
    typer.echo(f"Imported {imported.group_id}/{imported.name} ({imported.action_id})")


if __name__ == "__main__":
    app()
