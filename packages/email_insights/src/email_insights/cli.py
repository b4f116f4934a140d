"""Typer CLI for email_insights."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from email_insights.exceptions import InsightsError
from email_insights.formatting import format_value
from email_insights.metrics import METRICS
from email_insights.pipeline import export_outputs, run_pipeline
from email_insights.settings import Settings

app = typer.Typer(help="Email marketing export analytics (campaigns, flows, subscribers).")
console = Console()

HEADLINE = ["revenue", "emails_sent", "open_rate", "click_rate", "conversion_rate"]


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _headline_table(result) -> Table:
    table = Table(title=f"Headline metrics ({result.settings.date_range})")
    table.add_column("Metric")
    table.add_column("Current", justify="right")
    table.add_column("Previous", justify="right")
    table.add_column("Change", justify="right")
    for metric in HEADLINE:
        change = result.store.period_change(metric, result.settings.date_range)
        label = METRICS[metric].label
        color = "green" if change.is_positive else "red"
        table.add_row(
            label,
            format_value(change.current, label),
            format_value(change.previous, label) if change.previous is not None else "-",
            f"[{color}]{change.change_percent:+.1f}%[/{color}]",
        )
    return table


@app.command()
def analyze(
    campaigns: Path = typer.Option(None, "--campaigns", help="Campaign export CSV."),
    flows: Path = typer.Option(None, "--flows", help="Flow export CSV."),
    subscribers: Path = typer.Option(None, "--subscribers", help="Subscriber export CSV."),
    config: Path = typer.Option(None, "--config", "-c", help="Path to config.yaml"),
    output_dir: Path = typer.Option(None, "--output-dir", "-o", help="Output directory"),
    date_range: str = typer.Option(None, "--date-range", "-r", help="30d..365d, all, custom:A:B"),
    compare_mode: str = typer.Option(None, "--compare-mode", help="prev-period or prev-year"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Load the exports, run every analysis and write the Excel report."""
    _setup_logging(verbose)

    overrides = {
        "campaigns_file": campaigns,
        "flows_file": flows,
        "subscribers_file": subscribers,
        "output_dir": output_dir,
        "date_range": date_range,
        "compare_mode": compare_mode,
    }
    try:
        if config and config.exists():
            settings = Settings.from_yaml(config, **overrides)
        else:
            settings = Settings.from_args(**overrides)

        def on_progress(step: int, total: int, msg: str) -> None:
            console.print(f"  [{step + 1}/{total}] {msg}")

        console.print("[bold]Email Insights[/bold]")
        result = run_pipeline(settings, on_progress=on_progress)
    except InsightsError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    for error in result.load.errors:
        console.print(f"  [yellow]{error}[/yellow]")
    successful = sum(1 for a in result.analyses if a.error is None)
    console.print(f"  {successful}/{len(result.analyses)} analyses completed")
    counts = result.store.record_counts()
    if counts["campaigns"] or counts["flows"]:
        console.print(_headline_table(result))

    files = export_outputs(result)
    for f in files:
        console.print(f"  Output: {f}")

    console.print("[bold green]Done.[/bold green]")
