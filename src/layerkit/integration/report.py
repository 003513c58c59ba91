"""Reporting for detection and integration runs (text, JSON-safe dicts, Rich)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from layerkit.integration.detector import HANDLER_LAYERS, LayerKind
from layerkit.integration.merger import FeatureState

if TYPE_CHECKING:
    from rich.console import Console

    from layerkit.integration.detector import ProjectInventory
    from layerkit.integration.merger import FeatureOutcome, IntegrationReport
    from layerkit.integration.runner import IntegrationRun

_STATE_STYLE = {
    FeatureState.ALREADY_INTEGRATED: ("=", "dim", "already integrated"),
    FeatureState.BOUND: ("+", "green", "bound"),
    FeatureState.REGISTERED: ("+", "green", "bound and routed"),
    FeatureState.PARTIAL: ("!", "yellow", "needs manual integration"),
    FeatureState.FAILED: ("x", "red", "failed"),
}


@dataclass(frozen=True)
class ManualIntegration:
    """What an operator has to paste by hand for one feature."""

    feature: str
    import_line: str
    binding_snippet: str
    route_snippet: str


def manual_instructions(report: IntegrationReport, module: str) -> list[ManualIntegration]:
    """Manual-integration blocks for every partially integrated feature."""
    blocks: list[ManualIntegration] = []
    for outcome in report.partial:
        blocks.append(
            ManualIntegration(
                feature=outcome.feature,
                import_line=f'"{module}/internal/di"',
                binding_snippet=outcome.binding.snippet() if outcome.binding else "",
                route_snippet=outcome.route.text.strip("\n") if outcome.route else "",
            )
        )
    return blocks


def _outcome_label(outcome: FeatureOutcome, dry_run: bool) -> tuple[str, str, str]:
    marker, style, label = _STATE_STYLE.get(outcome.state, ("?", "white", outcome.state.value))
    if dry_run and outcome.changed:
        label = f"would be {label}"
    return marker, style, label


# ---------------------------------------------------------------------------
# Plain text / JSON
# ---------------------------------------------------------------------------


def format_text(run: IntegrationRun) -> str:
    """Plain-text summary, one line per feature plus manual blocks."""
    report = run.report
    lines: list[str] = []
    for outcome in report.outcomes:
        marker, _style, label = _outcome_label(outcome, report.dry_run)
        line = f"{marker} {outcome.feature}: {label}"
        if outcome.error is not None:
            line += f" - {outcome.error}"
        lines.append(line)
    for notice in report.notices:
        lines.append(f"i {notice}")

    for block in manual_instructions(report, run.module):
        lines.append("")
        lines.append(f"Manual integration for {block.feature}:")
        lines.append(f"  import {block.import_line}")
        if block.binding_snippet:
            lines.append("  container:")
            lines.extend(f"    {line}" for line in block.binding_snippet.splitlines())
        if block.route_snippet:
            lines.append("  routes:")
            lines.extend(f"    {line.strip()}" for line in block.route_snippet.splitlines())

    lines.append("")
    lines.append(
        f"{len(report.integrated)} integrated, {len(report.partial)} partial, {len(report.failed)} failed"
    )
    return "\n".join(lines)


def inventory_to_dict(inventory: ProjectInventory) -> dict[str, Any]:
    return {
        "features": [
            {
                "name": record.name,
                "layers": sorted(layer.value for layer in record.layers),
                "complete": record.is_complete,
                "missing": record.missing_layers(),
            }
            for record in inventory
        ],
        "notices": [str(notice) for notice in inventory.notices],
    }


def report_to_dict(run: IntegrationRun) -> dict[str, Any]:
    """JSON-safe representation of an integration run."""
    report = run.report
    return {
        "ok": report.ok,
        "dry_run": report.dry_run,
        "features": [
            {
                "name": outcome.feature,
                "state": outcome.state.value,
                "path": [state.value for state in outcome.path],
                "error": str(outcome.error) if outcome.error is not None else None,
            }
            for outcome in report.outcomes
        ],
        "changed_files": [change.path for change in run.changes],
        "manual": [
            {
                "feature": block.feature,
                "import": block.import_line,
                "binding": block.binding_snippet,
                "routes": block.route_snippet,
            }
            for block in manual_instructions(report, run.module)
        ],
        "notices": [str(notice) for notice in report.notices],
    }


# ---------------------------------------------------------------------------
# Rich
# ---------------------------------------------------------------------------


def render_inventory(inventory: ProjectInventory, console: Console) -> None:
    """Table of detected features with per-layer presence."""
    from rich.markup import escape
    from rich.table import Table

    if not len(inventory):
        console.print("No features detected.")
        return

    columns = [
        ("domain", LayerKind.DOMAIN),
        ("usecase", LayerKind.USE_CASE),
        ("repository", LayerKind.REPOSITORY_IMPL),
    ]
    table = Table(title="Detected features")
    table.add_column("Feature", style="bold")
    for title, _kind in columns:
        table.add_column(title, justify="center")
    table.add_column("Handlers")
    table.add_column("Status")

    for record in inventory:
        cells = ["[green]✓[/green]" if kind in record.layers else "[dim]-[/dim]" for _t, kind in columns]
        handlers = sorted(kind.value.removeprefix("handler_") for kind in record.layers & HANDLER_LAYERS)
        cells.append(", ".join(handlers) or "[dim]-[/dim]")
        status = (
            "[green]complete[/green]"
            if record.is_complete
            else f"[yellow]missing {', '.join(record.missing_layers())}[/yellow]"
        )
        table.add_row(record.name, *cells, status)

    console.print(table)
    for notice in inventory.notices:
        console.print(f"[dim]i {escape(str(notice))}[/dim]")


def render_report(run: IntegrationRun, console: Console) -> None:
    """Render an integration run: per-feature lines, manual blocks, summary."""
    from rich.markup import escape
    from rich.panel import Panel

    report = run.report
    if not report.outcomes:
        console.print("No features to integrate.")
        return

    title = "Integration plan (dry run)" if report.dry_run else "Integration"
    console.print(f"[bold]{title}[/bold]")
    for outcome in report.outcomes:
        marker, style, label = _outcome_label(outcome, report.dry_run)
        console.print(f"  [{style}]{marker} {outcome.feature}[/{style}]: {label}")
        if outcome.error is not None:
            console.print(f"    [dim]{escape(str(outcome.error))}[/dim]")

    for block in manual_instructions(report, run.module):
        body = [f"import {block.import_line}"]
        if block.binding_snippet:
            body += ["", block.binding_snippet]
        if block.route_snippet:
            body += ["", block.route_snippet]
        console.print(
            Panel(
                escape("\n".join(body)),
                title=f"Manual integration: {block.feature}",
                border_style="yellow",
            )
        )

    for change in run.changes:
        verb = "would write" if report.dry_run else "wrote"
        console.print(f"  [dim]{verb} {change.path}[/dim]")

    summary_style = "green" if report.ok else "red"
    console.print(
        f"[{summary_style}]{len(report.integrated)} integrated, "
        f"{len(report.partial)} partial, {len(report.failed)} failed[/{summary_style}]"
    )
