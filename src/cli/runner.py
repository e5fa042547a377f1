# src/cli/runner.py

"""Headless cycle runner: load inputs, reconcile, persist, report."""

import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from src.config.settings import EngineConfig
from src.errors import ConfigError
from src.models.change_record import ChangeRecord, ChangeReport
from src.models.match_cluster import MatchCluster
from src.scrapers.html_extractor import HtmlListingExtractor
from src.services.reconciliation import ReconciliationOrchestrator
from src.storage.state_codec import encode_report
from src.storage.state_store import StateStore

logger = logging.getLogger("price_tracker.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def load_raw_file(path: Path) -> list[object]:
    """Read a JSON array of raw listing records.

    Raises ``SystemExit`` when the file is missing or not an array.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        _err.print(f"[red]Cannot read {path}: {exc}[/red]")
        raise SystemExit(1) from exc
    if not isinstance(data, list):
        _err.print(f"[red]{path} must contain a JSON array[/red]")
        raise SystemExit(1)
    return data


def load_html_specs(html_specs: list[str]) -> list[object]:
    """Extract raw listings from ``STORE_ID=FILE`` pairs."""
    records: list[object] = []
    for spec in html_specs:
        store_id, sep, file_name = spec.partition("=")
        if not sep or not store_id or not file_name:
            _err.print(f"[red]Expected STORE_ID=FILE, got {spec!r}[/red]")
            raise SystemExit(1)
        try:
            extractor = HtmlListingExtractor(store_id.strip())
            extracted = extractor.extract_file(Path(file_name))
        except (ConfigError, OSError) as exc:
            _err.print(f"[red]{exc}[/red]")
            raise SystemExit(1) from exc
        _err.print(
            f"[dim]{extractor.store_label}: {len(extracted)} listings"
            f" from {file_name}[/dim]"
        )
        records.extend(extracted)
    return records


def _format_price(value: object) -> str:
    return f"€{value:,.2f}" if value is not None else "—"


def _print_changes(report: ChangeReport) -> None:
    """Render a Rich table of priced changes, new and removed listings."""
    table = Table(
        title="Price Changes",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Change", style="bold")
    table.add_column("Store", style="magenta")
    table.add_column("Product", max_width=50)
    table.add_column("Old", justify="right")
    table.add_column("New", justify="right", style="green")
    table.add_column("Δ", justify="right")

    def add(label: str, records: list[ChangeRecord]) -> None:
        for r in records:
            table.add_row(
                label,
                r.listing.store,
                r.listing.raw_name[:50],
                _format_price(r.old_price),
                _format_price(
                    r.new_price if r.new_price is not None else r.listing.price
                ),
                _format_price(r.delta),
            )

    add("[green]▼ down[/green]", report.decreased)
    add("[red]▲ up[/red]", report.increased)
    add("[cyan]new[/cyan]", report.new)
    add("[dim]removed[/dim]", report.removed)
    Console().print(table)


def _print_clusters(clusters: list[MatchCluster]) -> None:
    """Render one row per cross-store cluster with its best offer."""
    table = Table(
        title="Cross-store Matches",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Match key")
    table.add_column("Best price", justify="right", style="green")
    table.add_column("Best store", style="magenta")
    table.add_column("Stores")
    table.add_column("Spread", justify="right")

    for c in clusters:
        table.add_row(
            c.match_key,
            _format_price(c.best.price),
            c.best.store,
            ", ".join(c.stores),
            _format_price(c.price_spread),
        )
    Console().print(table)


def run_cycle_cli(
    raw_files: list[str],
    html_specs: list[str],
    state_path: str | None,
    report_path: str | None,
    output_format: str,
) -> int:
    """Run one cycle from the given inputs and return an exit code."""
    records: list[object] = []
    for name in raw_files:
        records.extend(load_raw_file(Path(name)))
    records.extend(load_html_specs(html_specs))

    if not records:
        _err.print("[yellow]No raw listings supplied.[/yellow]")
        return 1

    try:
        config = EngineConfig.from_settings()
    except ConfigError as exc:
        _err.print(f"[red]Invalid configuration: {exc}[/red]")
        return 1

    store = StateStore(Path(state_path) if state_path else None)
    orchestrator = ReconciliationOrchestrator(config)
    result = orchestrator.run_with_store(store, records)
    report = result.report
    diag = result.diagnostics

    if diag.state_reset:
        _err.print(
            "[bold red]Previous state was unreadable and has been reset:"
            f" {diag.state_error}[/bold red]"
        )

    parts: list[str] = []
    if diag.dropped:
        parts.append(f"{diag.dropped} dropped")
    if diag.duplicate_ids:
        parts.append(f"{diag.duplicate_ids} duplicates")
    if diag.unclustered_with_model_key:
        parts.append(f"{diag.unclustered_with_model_key} unmatched")
    detail = f" ({', '.join(parts)})" if parts else ""
    _err.print(
        f"[green]✓ {len(result.state.listings)} listings"
        f" of {diag.raw_count}{detail},"
        f" {len(result.state.clusters)} clusters[/green]"
    )
    _err.print(
        f"[dim]{len(report.new)} new, {len(report.removed)} removed,"
        f" {len(report.increased)} up, {len(report.decreased)} down[/dim]"
    )

    try:
        saved = store.save_report(
            report, Path(report_path) if report_path else None
        )
        _err.print(f"[dim]Saved report → {saved}[/dim]")
    except OSError as exc:
        logger.error("Report save failed: %s", exc, exc_info=True)
        _err.print(f"[red]Report save failed: {exc}[/red]")

    if output_format == "table":
        _print_changes(report)
        _print_clusters(result.state.clusters)
    else:
        json.dump(
            encode_report(report),
            sys.stdout,
            ensure_ascii=False,
            indent=2,
        )
        sys.stdout.write("\n")

    return 0
