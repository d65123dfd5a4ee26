"""
Main CLI application for UI Explorer.

Runs a single exploration with the Playwright driver and prints a
summary, or shows the effective configuration.
"""

import asyncio
import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ui_explorer import __version__
from ui_explorer.config import LoggingSettings, Settings, load_config
from ui_explorer.utils.logging import get_logger, setup_logging

app = typer.Typer(
    name="ui-explorer",
    help="UI Explorer - autonomous exploration of web application UIs",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()
logger = get_logger(__name__)

MODES = ("beam", "graph")


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]UI Explorer[/bold blue] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Enable verbose logging",
    ),
) -> None:
    """
    UI Explorer - drive a browser through a web app and map its states.

    Use 'ui-explorer --help' for command list.
    """
    setup_logging(LoggingSettings(level="DEBUG" if verbose else "INFO"))


@app.command()
def explore(
    url: str = typer.Argument(
        ...,
        help="URL to start exploring from",
    ),
    mode: str = typer.Option(
        "beam",
        "--mode",
        "-m",
        help="Exploration loop: 'beam' (scored beam search) or 'graph' (LLM-guided DFS)",
    ),
    max_steps: Optional[int] = typer.Option(
        None,
        "--max-steps",
        "-n",
        help="Maximum actions to execute",
        min=1,
        max=10000,
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
        exists=True,
        dir_okay=False,
    ),
    headless: bool = typer.Option(
        True,
        "--headless/--no-headless",
        help="Run browser in headless mode",
    ),
) -> None:
    """
    Explore a web application starting from URL.

    Examples:
        ui-explorer explore https://example.com
        ui-explorer explore https://example.com --mode graph --max-steps 50
    """
    if mode not in MODES:
        console.print(f"[red]Error:[/red] unknown mode '{mode}' (expected one of: {', '.join(MODES)})")
        raise typer.Exit(2)

    try:
        settings = load_config(config_file)
        settings.browser.headless = headless
        if max_steps is not None:
            settings.budget.max_total_steps = max_steps

        console.print(Panel(
            f"[bold]Exploring:[/bold] {url}\n"
            f"[dim]Mode: {mode} | Max steps: {settings.budget.max_total_steps} | "
            f"Max depth: {settings.explorer.max_depth}[/dim]",
            title="UI Explorer",
            border_style="blue",
        ))

        summary = asyncio.run(_explore_async(url, mode, settings))
    except KeyboardInterrupt:
        console.print("\n[yellow]Exploration cancelled by user[/yellow]")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        logger.exception("Exploration failed")
        raise typer.Exit(1)

    _print_summary(summary)


async def _explore_async(url: str, mode: str, settings: Settings) -> dict[str, object]:
    """Async exploration implementation."""
    from ui_explorer.browser import BrowserManager
    from ui_explorer.exploration import (
        BudgetTracker,
        CoverageTracker,
        StateTracker,
        create_explorer,
        create_llm_explorer,
    )

    coverage = CoverageTracker()
    state = StateTracker()
    budget = BudgetTracker(settings.budget)

    async with BrowserManager(settings.browser) as manager:
        driver = await manager.new_driver()

        if mode == "graph":
            api_key = os.environ.get(settings.api_llm.api_key_env_var)
            if not api_key:
                logger.info(
                    f"{settings.api_llm.api_key_env_var} not set, graph mode runs heuristics only"
                )
            explorer = create_llm_explorer(
                driver, coverage, state, budget, api_key, config=settings
            )
            result = await explorer.explore(url)
            termination = result.termination_reason
            steps = result.total_steps
            duration_ms = result.duration_ms
            extra = {"Graph nodes": result.graph.get_stats().total_nodes}
        else:
            explorer = create_explorer(driver, coverage, state, budget, config=settings)
            result = await explorer.explore(url)
            termination = result.termination_reason.value
            steps = len(result.steps)
            duration_ms = result.duration_ms
            extra = {
                "Successful steps": sum(1 for s in result.steps if s.success),
            }

    stats = coverage.get_stats()
    return {
        "Termination": termination,
        "Steps": steps,
        "Duration": f"{duration_ms / 1000:.1f}s",
        "Unique states": state.get_unique_state_count(),
        "Unique URLs": stats.total_urls,
        "Forms": stats.total_forms,
        "Dialogs": stats.total_dialogs,
        "Elements interacted": stats.total_interactions,
        "Coverage score": f"{stats.coverage_score:.0f}",
        **extra,
    }


def _print_summary(summary: dict[str, object]) -> None:
    table = Table(title="Exploration Summary", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    for key, value in summary.items():
        table.add_row(key, str(value))

    console.print()
    console.print(table)


@app.command()
def config(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
        exists=True,
        dir_okay=False,
    ),
) -> None:
    """
    Show effective configuration.

    Values come from defaults, the YAML file and UI_EXPLORER__* environment
    variables, in increasing order of precedence.
    """
    try:
        settings = load_config(config_file)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    _show_config(settings)


def _show_config(settings: Settings) -> None:
    """Show configuration by section."""
    config_dict = settings.model_dump()

    console.print(Panel(
        "[bold]Current Configuration[/bold]",
        border_style="blue",
    ))

    for section, values in config_dict.items():
        console.print(f"\n[bold cyan]{section}:[/bold cyan]")
        if isinstance(values, dict):
            for key, value in values.items():
                console.print(f"  {key}: [dim]{value}[/dim]")
        else:
            console.print(f"  {values}")


if __name__ == "__main__":
    app()
