"""Layerkit CLI entry point."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from layerkit import __version__
from layerkit.errors import LayerkitError


@click.group()
@click.version_option(version=__version__, prog_name="layerkit")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """Layerkit - field specs, feature detection and DI wiring for layered Go services."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    elif quiet:
        logging.basicConfig(level=logging.ERROR, format="%(levelname)s %(name)s: %(message)s")


def _quiet() -> bool:
    ctx = click.get_current_context()
    return bool(ctx.obj and ctx.obj.get("quiet"))


# ---------------------------------------------------------------------------
# fields
# ---------------------------------------------------------------------------


@main.command()
@click.argument("spec")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
@click.option(
    "--strict-names",
    is_flag=True,
    default=False,
    help="Also reject Go keywords and names of generated members (e.g. id).",
)
def fields(spec: str, *, output_json: bool, strict_names: bool) -> None:
    """Parse a field specification such as 'name:string,age:int,tags:[]string'."""
    from layerkit.fieldspec import check_reserved_names, parse_fields, render_fields

    try:
        parsed = parse_fields(spec)
        if strict_names:
            check_reserved_names(parsed)
    except LayerkitError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if output_json:
        payload = {
            "canonical": render_fields(parsed),
            "fields": [
                {
                    "name": f.name,
                    "type": f.type_token,
                    "go_name": f.exported_name,
                    "go_type": f.resolved_type.go_type(),
                    "semantic": repr(f.resolved_type),
                    "pointer": f.is_pointer,
                    "slice": f.is_slice,
                }
                for f in parsed
            ],
        }
        click.echo(json.dumps(payload, indent=2))
        return

    from rich.console import Console
    from rich.table import Table

    console = Console()
    table = Table(title=render_fields(parsed))
    table.add_column("Field", style="bold")
    table.add_column("Go name")
    table.add_column("Go type")
    table.add_column("Semantic type", style="dim")
    for f in parsed:
        table.add_row(f.name, f.exported_name, f.resolved_type.go_type(), repr(f.resolved_type))
    console.print(table)


# ---------------------------------------------------------------------------
# entity
# ---------------------------------------------------------------------------


@main.command()
@click.argument("name")
@click.option("--fields", "spec", required=True, help="Field specification, e.g. 'name:string,age:int'.")
@click.option("--validation", is_flag=True, help="Generate a Validate() method.")
@click.option("--timestamps", is_flag=True, help="Add CreatedAt/UpdatedAt.")
@click.option("--soft-delete", is_flag=True, help="Add DeletedAt and SoftDelete().")
@click.option("--business-rules", is_flag=True, help="Add rule methods for well-known fields.")
@click.option("--force", is_flag=True, help="Overwrite an existing entity file.")
@click.option("--stdout", "to_stdout", is_flag=True, help="Print the entity instead of writing it.")
@click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory).",
)
def entity(
    name: str,
    *,
    spec: str,
    validation: bool,
    timestamps: bool,
    soft_delete: bool,
    business_rules: bool,
    force: bool,
    to_stdout: bool,
    project: Path | None,
) -> None:
    """Generate the domain entity NAME from a field specification."""
    from layerkit.config import load_config
    from layerkit.fieldspec import EntityComposer, GenerationOptions, parse_fields
    from layerkit.integration.writer import atomic_write

    project_root = project or Path.cwd()
    config = load_config(project_root)
    options = GenerationOptions(
        validation=validation,
        timestamps=timestamps,
        soft_delete=soft_delete,
        business_rules=business_rules,
    )
    try:
        parsed = parse_fields(spec)
        files = EntityComposer(config.source_root).compose(name, parsed, options)
    except LayerkitError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    for relative, text in files.items():
        if to_stdout:
            click.echo(text, nl=False)
            continue
        target = project_root / relative
        if target.exists() and not force:
            click.echo(f"Error: {relative} already exists (use --force to overwrite).", err=True)
            sys.exit(1)
        try:
            atomic_write(target, text)
        except OSError as exc:
            click.echo(f"Error: could not write {relative}: {exc}", err=True)
            sys.exit(1)
        if not _quiet():
            click.echo(f"Created {relative}")


# ---------------------------------------------------------------------------
# detect
# ---------------------------------------------------------------------------


@main.command()
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
@click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory).",
)
def detect(*, output_json: bool, project: Path | None) -> None:
    """List generated features and the layers each one has."""
    from layerkit.config import load_config
    from layerkit.integration.detector import DirectorySnapshot, detect_features
    from layerkit.integration.report import inventory_to_dict, render_inventory

    project_root = project or Path.cwd()
    config = load_config(project_root)
    inventory = detect_features(
        DirectorySnapshot(project_root), rules=config.layer_rules(), exclude=config.exclude
    )

    if output_json:
        click.echo(json.dumps(inventory_to_dict(inventory), indent=2))
        return

    from rich.console import Console

    render_inventory(inventory, Console())


# ---------------------------------------------------------------------------
# integrate
# ---------------------------------------------------------------------------


@main.command()
@click.option("--features", "-f", default=None, help='Features to integrate, e.g. "User,Product".')
@click.option("--dry-run", is_flag=True, help="Show what would change without writing.")
@click.option("--diff", "show_diff", is_flag=True, help="Print a unified diff of the changes.")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
@click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory).",
)
def integrate(
    *,
    features: str | None,
    dry_run: bool,
    show_diff: bool,
    output_json: bool,
    project: Path | None,
) -> None:
    """Wire detected features into the DI container and main.go.

    Exit codes: 0 = at least one feature integrated (or none to integrate),
    1 = every feature failed or needs manual integration.
    """
    from layerkit.integration.report import format_text, render_report, report_to_dict
    from layerkit.integration.runner import integrate as run_integrate

    project_root = project or Path.cwd()
    order = [name.strip() for name in features.split(",") if name.strip()] if features else None

    try:
        run = run_integrate(project_root, features=order, dry_run=dry_run)
    except (OSError, UnicodeDecodeError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if output_json:
        payload = report_to_dict(run)
        if show_diff:
            payload["diff"] = {change.path: change.diff() for change in run.changes}
        click.echo(json.dumps(payload, indent=2))
    else:
        if show_diff:
            for change in run.changes:
                click.echo(change.diff(), nl=False)
        if _quiet() and run.report.ok:
            return
        if sys.stdout.isatty():
            from rich.console import Console

            render_report(run, Console())
        else:
            click.echo(format_text(run))

    if not run.report.ok:
        sys.exit(1)
