"""CLI interface for the economy engine."""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from .config import DEFAULT_ECONOMY, EconomyConfig, deep_merge, load_config, load_yaml
from .dates import DateKey, as_date_key, today_key
from .errors import ConfigError
from .events import apply_event_modifiers, daily_recommendation, event_effect_lines, get_active_events
from .models import Rarity
from .simulation import SimulationReport, Simulator
from .validators import validate_config


console = Console()


def print_banner():
    """Print application banner."""
    console.print(Panel.fit("Idle Economy: rules engine toolkit", style="bold blue"))


def print_validation_errors(errors: list[str]):
    """Print validation errors."""
    console.print("\n[red bold]Configuration Validation Failed:[/red bold]")
    for error in errors:
        console.print(f"  [red]• {error}[/red]")


def load_and_validate(base_path: Optional[Path], overrides: tuple[Path, ...]) -> EconomyConfig:
    """Load base tables plus overrides; exit with status 1 on any problem."""
    console.print("[CONFIG] Loading economy...", style="bold")
    try:
        base = deep_merge(DEFAULT_ECONOMY, load_yaml(base_path)) if base_path else None
        config_dict = load_config(list(overrides) if overrides else None, base=base)
    except ConfigError as e:
        console.print(f"  [red]✗ Failed to load config: {e}[/red]")
        sys.exit(1)

    console.print(f"  ✓ Base: {base_path or 'built-in defaults'}", style="green")
    for path in overrides:
        console.print(f"  ✓ Override: {path}", style="green")

    errors = validate_config(config_dict)
    if errors:
        print_validation_errors(errors)
        sys.exit(1)
    console.print("  ✓ All validations passed", style="green bold")
    return EconomyConfig(config_dict)


def _parse_date(value: Optional[str]) -> DateKey:
    if value is None:
        return today_key()
    key = as_date_key(value)
    if key is None:
        raise click.BadParameter(f"not a YYYY-MM-DD date: {value}")
    return key


@click.group()
@click.option(
    "--config", "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Base configuration file (defaults to the built-in economy)",
)
@click.option(
    "--override", "-o",
    type=click.Path(exists=True, path_type=Path),
    multiple=True,
    help="Override configuration file(s), merged in order",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.pass_context
def main(ctx: click.Context, config: Optional[Path], override: tuple[Path, ...], verbose: bool):
    """Balance tooling for the idle economy.

    Examples:

        python economy.py validate

        python economy.py events --start 2026-03-02 --days 14

        python economy.py -o configs/overrides/generous.yaml simulate --seed 7
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["overrides"] = override


@main.command()
@click.pass_context
def validate(ctx: click.Context):
    """Only validate configuration."""
    print_banner()
    config = load_and_validate(ctx.obj["config"], ctx.obj["overrides"])
    console.print(
        f"\n[green]Configuration is valid[/green] (version {config.version}, "
        f"{config.max_zone} zones, {len(config.boost_catalog)} boosts)."
    )


@main.command()
@click.option("--start", "-s", default=None, help="First day (YYYY-MM-DD), defaults to today")
@click.option("--days", "-n", type=click.IntRange(1, 366), default=7, help="Number of days")
@click.pass_context
def events(ctx: click.Context, start: Optional[str], days: int):
    """Show the event schedule and combined modifiers."""
    config = load_and_validate(ctx.obj["config"], ctx.obj["overrides"])
    first = _parse_date(start)

    table = Table(title=f"Event schedule from {first}")
    table.add_column("Date", style="cyan")
    table.add_column("Daily", style="magenta")
    table.add_column("Weekly", style="blue")
    table.add_column("Task x", justify="right")
    table.add_column("Idle x", justify="right")
    table.add_column("Rare +", justify="right")
    table.add_column("Pack -", justify="right")
    table.add_column("Boost x", justify="right")
    table.add_column("Energy +", justify="right")
    table.add_column("Free idle", justify="center")

    for offset in range(days):
        day = first.shift(offset)
        active = get_active_events(day)
        bundle = apply_event_modifiers(active, config)
        table.add_row(
            f"{day} {day.day.strftime('%a')}",
            active.daily.event_id,
            active.weekly.event_id,
            f"{bundle.task_coin_multiplier:.2f}",
            f"{bundle.idle_cpm_multiplier:.2f}",
            f"{bundle.gacha_rare_bonus:.2f}",
            f"{bundle.gacha_first_pack_discount:.0%}",
            f"{bundle.boost_price_multiplier:.2f}",
            str(bundle.energy_cap_bonus),
            "✓" if bundle.free_idle_claim_once_per_day else "",
        )

    console.print(table)

    active = get_active_events(first)
    lines = event_effect_lines(active.daily) + event_effect_lines(active.weekly)
    body = "\n".join(f"• {line}" for line in lines) or "No modifiers"
    console.print(Panel(
        f"{body}\n\n[bold]Tip:[/bold] {daily_recommendation(active.daily)}",
        title=f"{active.daily.title} + {active.weekly.title}",
    ))


def print_report(report: SimulationReport):
    """Print simulation summary."""
    table = Table(title="Simulation Summary", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    player = report.final_player
    table.add_row("Seed", str(report.seed))
    table.add_row("Days", str(len(report.days)))
    table.add_row("Task coins", f"{report.total_task_coins:,}")
    table.add_row("Idle coins", f"{report.total_idle_coins:,}")
    table.add_row("Pulls", str(report.total_pulls))
    for rarity in Rarity:
        table.add_row(f"  {rarity.value}", str(report.rarity_counts.get(rarity, 0)))
    table.add_row("Zone unlocks", ", ".join(f"z{z}@d{d}" for d, z in report.zone_unlocks) or "-")
    table.add_row("Prestiges", ", ".join(f"+{g}@d{d}" for d, g in report.prestiges) or "-")
    table.add_row("Quests claimed", str(len(report.quests_claimed)))
    table.add_row("Evolutions", str(len(report.evolutions)))
    table.add_row("Clone tasks", str(report.clone_tasks))
    table.add_row("Daily loops claimed", str(report.daily_loops_claimed))
    table.add_row("Event claims", str(report.event_claims))
    table.add_row("Boosts bought", str(report.boosts_bought))
    if player is not None:
        table.add_row("Final coins", f"{player.coins:,}")
        table.add_row("Final essence", str(player.essence))
        table.add_row("Talents", ", ".join(f"{k}={v}" for k, v in player.talents.to_dict().items()))

    console.print(table)


@main.command()
@click.option("--seed", "-s", type=int, default=None, help="Override random seed")
@click.option("--days", "-n", type=click.IntRange(1, 3650), default=None, help="Override duration")
@click.option("--start", default=None, help="Override start date (YYYY-MM-DD)")
@click.option(
    "--output", "-O",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the full report as JSON",
)
@click.pass_context
def simulate(
    ctx: click.Context,
    seed: Optional[int],
    days: Optional[int],
    start: Optional[str],
    output: Optional[Path],
):
    """Run the deterministic balance simulation."""
    print_banner()
    config = load_and_validate(ctx.obj["config"], ctx.obj["overrides"])
    if start is not None:
        _parse_date(start)

    start_time = datetime.now()
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        simulator = Simulator(config, seed=seed, days=days, start_date=start)
        task = progress.add_task("[cyan]Simulating...", total=simulator.days)

        def progress_callback(day: int, total: int):
            progress.update(task, completed=day, description=f"[cyan]Day {day}/{total}")

        simulator.progress_callback = progress_callback
        report = simulator.run()

    console.print()
    print_report(report)

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        with open(output, "w", encoding="utf-8") as f:
            json.dump(report.to_dict(), f, indent=2)
        console.print(f"  ✓ Report: {output}", style="green")

    console.print(f"\n[DONE] Completed in {datetime.now() - start_time}", style="bold green")


if __name__ == "__main__":
    main()
