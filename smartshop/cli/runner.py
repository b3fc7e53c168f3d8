# smartshop/cli/runner.py

"""Headless CLI commands over the aggregator and the local state store."""

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from smartshop.models.product import EnrichedProduct
from smartshop.services.aggregator import Aggregator, SearchResult, SourceStatus
from smartshop.storage.file_manager import FileManager
from smartshop.storage.kv_storage import SQLiteStorage
from smartshop.storage.state_store import LocalStateStore

logger = logging.getLogger("smartshop.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)

_STATUS_STYLE = {
    SourceStatus.ONLINE: "[green]online[/green]",
    SourceStatus.LIMITED: "[yellow]limited[/yellow]",
    SourceStatus.OFFLINE: "[red]offline (fallback data)[/red]",
}


def open_store(storage: SQLiteStorage | None = None) -> LocalStateStore:
    """Open and load the on-disk state store."""
    store = LocalStateStore(storage or SQLiteStorage())
    if not store.load():
        for error in store.load_errors:
            _err.print(f"[yellow]Warning: {error}[/yellow]")
    return store


@contextmanager
def store_session(
    store: LocalStateStore | None = None,
) -> Iterator[LocalStateStore]:
    """Yield *store*, or open the on-disk store and close it afterwards."""
    if store is not None:
        yield store
        return
    opened = open_store()
    try:
        yield opened
    finally:
        opened.storage.close()


def _emit_json(data: Any) -> None:
    json.dump(data, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


def _print_products(title: str, products: list[EnrichedProduct]) -> None:
    """Render a Rich price-comparison table to stdout."""
    table = Table(title=title, show_lines=True, title_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("ID", style="dim")
    table.add_column("Title", max_width=50)
    table.add_column("Best Price", justify="right", style="green")
    table.add_column("Was", justify="right", style="dim")
    table.add_column("Save", justify="right")
    table.add_column("Best Store", style="magenta")
    table.add_column("Rating", justify="center")

    for idx, p in enumerate(products, 1):
        table.add_row(
            str(idx),
            p.id,
            p.title[:50],
            f"${p.price:,.2f}",
            f"${p.original_price:,.2f}",
            f"{p.discount}%" if p.discount else "-",
            p.best_deal.store if p.best_deal else "-",
            f"{p.rating.rate:.1f} ({p.rating.count})",
        )

    Console().print(table)


def _print_records(title: str, records: list[dict[str, Any]], columns: list[str]) -> None:
    """Render stored dict records as a Rich table."""
    table = Table(title=title, show_lines=False, title_style="bold cyan")
    for column in columns:
        table.add_column(column.replace("_", " ").title())
    for record in records:
        row: list[str] = []
        for column in columns:
            value = record.get(column)
            if column.endswith("_at") or column == "timestamp":
                value = (
                    datetime.fromtimestamp(value).strftime("%Y-%m-%d %H:%M")
                    if isinstance(value, (int, float)) and value
                    else ""
                )
            row.append("" if value is None else str(value))
        table.add_row(*row)
    Console().print(table)


def _report(
    result: SearchResult,
    output_format: str,
    title: str,
    csv_export: bool = False,
) -> int:
    """Print summary to stderr and products to stdout."""
    for error_msg in result.errors:
        _err.print(f"[red]Error: {error_msg}[/red]")

    if not result.products:
        _err.print("[yellow]No products found.[/yellow]")
        return 1

    parts: list[str] = []
    if result.deduplicated_count:
        parts.append(f"{result.deduplicated_count} deduped")
    if result.invalid_count:
        parts.append(f"{result.invalid_count} invalid")
    detail = f" ({', '.join(parts)})" if parts else ""
    _err.print(
        f"[green]✓ {len(result.products)} products{detail}[/green]  "
        f"status: {_STATUS_STYLE[result.status]}"
    )

    if csv_export:
        path = FileManager().export_comparison_csv(result.query, result.products)
        _err.print(f"[dim]Saved comparison → {path}[/dim]")

    if output_format == "table":
        _print_products(title, result.products)
    else:
        _emit_json([p.to_dict() for p in result.products])
    return 0


async def cli_search(
    query: str,
    output_format: str,
    limit: int,
    csv_export: bool = False,
    aggregator: Aggregator | None = None,
    store: LocalStateStore | None = None,
) -> int:
    """Run a search, record it and check price alerts; returns exit code."""
    aggregator = aggregator or Aggregator()

    _err.print(f"[bold]Searching:[/bold] {query}")
    result = await aggregator.search(query, limit)

    with store_session(store) as state:
        state.add_search_query(query)
        for alert in state.check_price_alerts(result.products):
            _err.print(
                f"[bold yellow]🔔 Price alert:[/bold yellow] "
                f"{alert['product_title']} is now "
                f"${alert['triggered_price']:,.2f} "
                f"(target ${alert['target_price']:,.2f})"
            )

    return _report(result, output_format, f"Results for '{query}'", csv_export)


async def cli_trending(
    output_format: str,
    limit: int,
    aggregator: Aggregator | None = None,
) -> int:
    """Show trending products."""
    aggregator = aggregator or Aggregator()
    _err.print("[bold]Fetching trending products...[/bold]")
    result = await aggregator.trending(limit)
    return _report(result, output_format, "Trending")


async def cli_category(
    category: str,
    output_format: str,
    limit: int,
    aggregator: Aggregator | None = None,
) -> int:
    """Show products in one category."""
    aggregator = aggregator or Aggregator()
    _err.print(f"[bold]Category:[/bold] {category}")
    result = await aggregator.by_category(category, limit)
    return _report(result, output_format, f"Category '{category}'")


def show_collection(
    name: str,
    output_format: str,
    store: LocalStateStore | None = None,
) -> int:
    """Print favorites, alerts or search history."""
    if name == "favorites":
        columns = ["id", "title", "price", "category", "added_at"]
    elif name == "alerts":
        columns = [
            "id", "product_title", "target_price",
            "active", "triggered", "triggered_price", "created_at",
        ]
    elif name == "history":
        columns = ["query", "timestamp"]
    else:
        raise ValueError(f"Unknown collection: {name}")

    with store_session(store) as state:
        if name == "favorites":
            records = state.sort_favorites("newest")
        elif name == "alerts":
            records = state.get_price_alerts()
        else:
            records = state.get_search_history_entries()

    if output_format == "table":
        if not records:
            _err.print(f"[yellow]No {name} stored.[/yellow]")
        _print_records(name.title(), records, columns)
    else:
        _emit_json(records)
    return 0


def run_export(path: str | None, store: LocalStateStore | None = None) -> int:
    """Write every collection to an export file."""
    with store_session(store) as state:
        payload = state.export_data()
    target = Path(path) if path else None
    written = FileManager().write_export(payload, target)
    _err.print(f"[green]✓ Exported state → {written}[/green]")
    return 0


def run_import(path: str, store: LocalStateStore | None = None) -> int:
    """Import collections from an export file."""
    try:
        payload = FileManager().read_import(Path(path))
    except OSError as exc:
        logger.error("Import read failed: %s", exc, exc_info=True)
        _err.print(f"[red]Cannot read {path}: {exc}[/red]")
        return 1

    with store_session(store) as state:
        result = state.import_data(payload)
    if result.error:
        _err.print(f"[red]Import failed: {result.error}[/red]")
        return 1
    for name, count in result.imported.items():
        _err.print(f"[green]✓ {name}: {count} entries[/green]")
    for name in result.rejected:
        _err.print(f"[red]✗ {name}: rejected[/red]")
    return 0 if result.success else 1


def run_backup(store: LocalStateStore | None = None) -> int:
    with store_session(store) as state:
        backup = state.create_backup()
    if backup is None:
        _err.print("[red]Backup failed.[/red]")
        return 1
    _err.print("[green]✓ Backup created[/green]")
    return 0


def run_restore(store: LocalStateStore | None = None) -> int:
    with store_session(store) as state:
        result = state.restore_from_backup()
    if not result.success:
        _err.print(f"[red]Restore failed: {result.error}[/red]")
        return 1
    when = (
        result.backup_date.strftime("%Y-%m-%d %H:%M")
        if result.backup_date
        else "unknown date"
    )
    _err.print(f"[green]✓ Restored backup from {when}[/green]")
    return 0


def run_repair(store: LocalStateStore | None = None) -> int:
    """Report integrity issues, then repair."""
    with store_session(store) as state:
        integrity = state.validate_integrity()
        report = state.repair()
    for issue in integrity.issues:
        _err.print(f"[yellow]• {issue}[/yellow]")
    _err.print(
        f"[green]✓ Repair done:[/green] "
        f"{report.duplicates_removed} duplicates removed, "
        f"{report.alerts_dropped} alerts dropped, "
        f"{report.timestamps_backfilled} timestamps and "
        f"{report.ids_backfilled} ids backfilled"
    )
    return 0


async def run_health_check() -> int:
    """Run connectivity health check on all sources."""
    from smartshop.services.health_checker import HealthChecker

    _err.print("[bold]Running source health check...[/bold]")
    checker = HealthChecker()
    results = await checker.check_all()

    table = Table(
        title="Source Health Check",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Source", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Latency", justify="right")
    table.add_column("Notes", style="dim")

    any_down = False
    for r in results:
        if r.status == "ok":
            status = "[green]✅ OK[/green]"
        elif r.status == "slow":
            status = "[yellow]⚠️  SLOW[/yellow]"
        else:
            status = "[red]❌ DOWN[/red]"
            any_down = True

        latency = f"{r.latency_ms:.0f}ms" if r.latency_ms > 0 else "-"
        table.add_row(r.source_id, status, latency, r.message)

    Console().print(table)
    return 1 if any_down else 0
