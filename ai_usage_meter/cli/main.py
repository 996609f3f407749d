"""
CLI interface for AI Usage Meter.

Thin front end over the metered client: text commands read their input
from an argument or stdin, usage commands read the ledger.
"""

import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from ai_usage_meter.config.loader import (
    MeterConfig,
    PRESETS,
    load_meter_config,
    preset_config,
)
from ai_usage_meter.core.pricing import PRICING_TABLE, format_cost, format_tokens
from ai_usage_meter.core.projection import PERIODS, projected_monthly_cost
from ai_usage_meter.sdk.adapters import create_adapter, is_reasoning_model
from ai_usage_meter.sdk.client import SUPPORTED_MODELS, MultiProviderLLM
from ai_usage_meter.storage.kv import SQLiteKeyValueStore
from ai_usage_meter.storage.ledger import UsageLedger
from ai_usage_meter.storage.models import UsageStats

app = typer.Typer()
console = Console()

EXIT_CODE_OK = 0
EXIT_CODE_FAIL = 1

DEFAULT_CONFIG_FILE = "ai-usage-meter.yaml"

PERIOD_TITLES = {
    "today": "Today",
    "month": "This Month",
    "all": "All Time",
}


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help=f"YAML config file (default: ./{DEFAULT_CONFIG_FILE} if present)"
    ),
    preset: Optional[str] = typer.Option(
        None,
        "--preset",
        "-p",
        help=f"Model preset: {', '.join(PRESETS)}"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging"
    ),
):
    """AI Usage Meter CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"config": config, "preset": preset}
    if ctx.invoked_subcommand is None:
        console.print("AI Usage Meter - Use --help to see available commands")


def _load_config(ctx: typer.Context) -> MeterConfig:
    options = ctx.obj or {}
    try:
        if options.get("config"):
            return load_meter_config(str(options["config"]))
        if options.get("preset"):
            return preset_config(options["preset"])
        if Path(DEFAULT_CONFIG_FILE).exists():
            return load_meter_config(DEFAULT_CONFIG_FILE)
        return preset_config("default")
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Configuration error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


def _build_ledger(config: MeterConfig) -> UsageLedger:
    return UsageLedger(
        SQLiteKeyValueStore(config.ledger.db_path),
        max_records=config.ledger.max_records,
    )


def _build_client(config: MeterConfig) -> MultiProviderLLM:
    try:
        model_config = config.to_model_config()
        adapter = create_adapter(model_config.provider, model_config.api_key)
    except ValueError as e:
        console.print(f"[red]Configuration error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    ledger = _build_ledger(config) if config.track_usage else None
    return MultiProviderLLM(model_config, ledger=ledger, adapter=adapter)


def _read_text(text: Optional[str]) -> str:
    """Use the argument, or stdin when it is absent or '-'."""
    if text is None or text == "-":
        text = sys.stdin.read()
    if not text or not text.strip():
        console.print("[red]No text provided[/]")
        sys.exit(EXIT_CODE_FAIL)
    return text


def _run(operation, *args, **kwargs):
    """Call a client operation, turning failures into exit code 1."""
    try:
        return operation(*args, **kwargs)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def action(
    ctx: typer.Context,
    text: Optional[str] = typer.Argument(None, help="Text to scan (stdin if omitted)"),
):
    """Detect a single actionable task in text."""
    client = _build_client(_load_config(ctx))
    task = _run(client.detect_action, _read_text(text))
    if task == "NONE":
        console.print("[yellow]No action found[/]")
        sys.exit(EXIT_CODE_OK)
    typer.echo(task)


@app.command()
def tasks(
    ctx: typer.Context,
    text: Optional[str] = typer.Argument(None, help="Text to scan (stdin if omitted)"),
):
    """Extract every actionable task from text."""
    client = _build_client(_load_config(ctx))
    found = _run(client.extract_multiple_tasks, _read_text(text))
    if not found:
        console.print("[yellow]No tasks found[/]")
        sys.exit(EXIT_CODE_OK)
    for task in found:
        typer.echo(task)


@app.command()
def anki(
    ctx: typer.Context,
    text: Optional[str] = typer.Argument(None, help="Text to study (stdin if omitted)"),
    category: Optional[List[str]] = typer.Option(
        None,
        "--category",
        help="Allowed deck category (repeatable; defaults to the configured list)"
    ),
):
    """Generate Anki flashcards as JSON."""
    config = _load_config(ctx)
    client = _build_client(config)
    categories = category or list(config.categories)
    cards = _run(client.generate_anki_cards, _read_text(text), categories)
    stamp = date.today().isoformat()
    tagged = [card.with_tags(f"{config.provider}-generated", stamp) for card in cards]
    typer.echo(json.dumps([card.to_dict() for card in tagged], indent=2, ensure_ascii=False))


@app.command()
def thread(
    ctx: typer.Context,
    text: Optional[str] = typer.Argument(None, help="Text to rewrite (stdin if omitted)"),
):
    """Rewrite text as a 5-tweet thread."""
    client = _build_client(_load_config(ctx))
    typer.echo(_run(client.make_tweet_thread, _read_text(text)))


@app.command()
def tweet(
    ctx: typer.Context,
    text: Optional[str] = typer.Argument(None, help="Text to rewrite (stdin if omitted)"),
    style: str = typer.Option(
        "engagement",
        "--style",
        "-s",
        help="Tweet style: engagement or informative"
    ),
    prompt: Optional[str] = typer.Option(
        None,
        "--prompt",
        help="Full prompt that replaces the style template"
    ),
):
    """Rewrite text as a single tweet."""
    client = _build_client(_load_config(ctx))
    result = _run(client.make_viral_tweet, _read_text(text), style, prompt)
    if not result:
        console.print("[red]Error:[/] Empty response from AI model")
        sys.exit(EXIT_CODE_FAIL)
    typer.echo(result)


@app.command("improve-prompt")
def improve_prompt(
    ctx: typer.Context,
    text: Optional[str] = typer.Argument(None, help="Prompt to improve (stdin if omitted)"),
):
    """Rewrite a prompt for clarity."""
    client = _build_client(_load_config(ctx))
    result = _run(client.improve_prompt, _read_text(text))
    if not result:
        console.print("[red]Error:[/] No response from AI")
        sys.exit(EXIT_CODE_FAIL)
    typer.echo(result)


def _period_stats(ledger: UsageLedger, period: str) -> UsageStats:
    if period == "today":
        return ledger.statistics_for_today()
    if period == "month":
        return ledger.statistics_for_current_month()
    return ledger.statistics()


def _check_period(period: str) -> None:
    if period not in PERIODS:
        console.print(f"[red]Error:[/] period must be one of: {', '.join(PERIODS)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def usage(
    ctx: typer.Context,
    period: str = typer.Option(
        "month",
        "--period",
        help="Time period: today, month or all"
    ),
    estimate: bool = typer.Option(
        False,
        "--estimate",
        "-e",
        help="Show projected monthly cost"
    ),
):
    """Show metered usage and cost."""
    _check_period(period)
    ledger = _build_ledger(_load_config(ctx))
    stats = _period_stats(ledger, period)
    _display_stats(stats, PERIOD_TITLES[period])

    if estimate:
        projected = projected_monthly_cost(stats, period)
        text = "N/A" if projected is None else format_cost(projected)
        console.print(f"\n[bold]Projected monthly cost:[/bold] {text}")


def _display_stats(stats: UsageStats, title: str) -> None:
    """Display usage statistics as tables."""
    console.print(f"\n[bold]Overview - {title}[/bold]")
    console.print("-" * 40)
    console.print(f"Total cost: [green]{format_cost(stats.total_cost)}[/]")
    calls = f"{stats.call_count} calls"
    if stats.error_count:
        calls += f" ([red]{stats.error_count} errors[/])"
    console.print(f"Calls: {calls}")
    console.print(
        f"Tokens: {format_tokens(stats.total_tokens)} "
        f"(input {format_tokens(stats.total_input_tokens)}, "
        f"output {format_tokens(stats.total_output_tokens)})"
    )

    if not stats.call_count:
        console.print("\n[dim]No usage recorded for this period.[/]")
        return

    for heading, breakdown in (
        ("By Provider", stats.by_provider),
        ("By Model", stats.by_model),
        ("By Command", stats.by_command),
    ):
        table = Table(title=heading, title_justify="left")
        table.add_column("Name")
        table.add_column("Cost", justify="right")
        table.add_column("Calls", justify="right")
        table.add_column("Tokens", justify="right")
        for name, entry in sorted(breakdown.items(), key=lambda item: item[1].cost, reverse=True):
            table.add_row(
                name,
                format_cost(entry.cost),
                str(entry.calls),
                format_tokens(entry.total_tokens),
            )
        console.print(table)


@app.command()
def export(
    ctx: typer.Context,
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="CSV file to write (default: ai-usage-export-<date>.csv)"
    ),
):
    """Export all usage records as CSV."""
    ledger = _build_ledger(_load_config(ctx))
    path = output or Path(f"ai-usage-export-{date.today().isoformat()}.csv")
    try:
        path.write_text(ledger.export_csv(), encoding="utf-8")
    except OSError as e:
        console.print(f"[red]Export failed:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    console.print(f"[green]✓[/] Usage data exported to {path}")


@app.command()
def clear(
    ctx: typer.Context,
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip confirmation"
    ),
):
    """Delete all usage history."""
    ledger = _build_ledger(_load_config(ctx))
    if not yes and not typer.confirm(
        "Clear all usage data? This cannot be undone."
    ):
        console.print("Aborted")
        sys.exit(EXIT_CODE_OK)
    ledger.clear()
    console.print("[green]✓[/] Usage data cleared")


@app.command()
def models():
    """List supported models and their prices per 1K tokens."""
    table = Table(title="Supported Models", title_justify="left")
    table.add_column("Provider")
    table.add_column("Model")
    table.add_column("Input / 1K", justify="right")
    table.add_column("Output / 1K", justify="right")
    table.add_column("Reasoning")

    for provider, names in SUPPORTED_MODELS.items():
        listed = list(names) + [m for m in PRICING_TABLE.models_for(provider) if m not in names]
        for model in listed:
            entry = PRICING_TABLE.lookup(provider, model)
            table.add_row(
                provider,
                model,
                f"${entry.input_cost_per_1k}" if entry else "-",
                f"${entry.output_cost_per_1k}" if entry else "-",
                "yes" if is_reasoning_model(model) else "",
            )
    console.print(table)


if __name__ == "__main__":
    app()
