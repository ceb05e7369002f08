"""modelstream CLI — Typer + Rich terminal interface.

Commands: repair, stream, models list.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.json import JSON
from rich.live import Live
from rich.logging import RichHandler
from rich.table import Table

from modelstream import __version__
from modelstream.events.observer import ModelCallObserver
from modelstream.keys import has_key, load_keys_env
from modelstream.partial_json import repair_json
from modelstream.providers.litellm_provider import LiteLLMTextStreamingModel
from modelstream.providers.registry import get_model_config, load_models
from modelstream.schemas.events import ModelCallFinishedEvent
from modelstream.schemas.settings import TextStreamingModelSettings
from modelstream.streaming import stream_structure, stream_text

console = Console()
err_console = Console(stderr=True)

# ── App and sub-apps ─────────────────────────────────────────────

app = typer.Typer(
    name="modelstream",
    help="Stream LLM output as text fragments or always-valid partial JSON.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

models_app = typer.Typer(
    name="models",
    help="Inspect the model registry.",
    no_args_is_help=True,
)
app.add_typer(models_app, name="models")


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"modelstream {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log call lifecycle details.",
    ),
) -> None:
    """modelstream — stream LLM output as text or partial JSON."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=err_console, show_path=False)],
        )


# ── Helpers ──────────────────────────────────────────────────────


def _load_registry():
    """Load the model registry, exit on error."""
    try:
        return load_models()
    except (FileNotFoundError, ValueError) as e:
        err_console.print(f"[red]Error loading model registry:[/red] {e}")
        raise typer.Exit(1) from None


class _SummaryObserver(ModelCallObserver):
    """Remembers the finished event so the CLI can report on it."""

    def __init__(self) -> None:
        self.finished: ModelCallFinishedEvent | None = None

    def on_model_call_finished(self, event: ModelCallFinishedEvent) -> None:
        self.finished = event


def _print_summary(observer: _SummaryObserver) -> None:
    event = observer.finished
    if event is None:
        return
    err_console.print(
        f"[dim]{event.status} · {event.metadata.model.model_name} · "
        f"{event.metadata.duration_in_ms} ms[/dim]"
    )


# ── modelstream repair ──────────────────────────────────────────


@app.command()
def repair(
    file: str = typer.Argument("", help="File holding partial JSON (default: read stdin)"),
) -> None:
    """Complete truncated JSON and print the result."""
    if file:
        path = Path(file)
        if not path.is_file():
            err_console.print(f"[red]File not found:[/red] {file}")
            raise typer.Exit(1)
        text = path.read_text(encoding="utf-8")
    else:
        text = sys.stdin.read()
    repaired = repair_json(text)
    if not repaired:
        err_console.print("[yellow]No JSON value could be recovered.[/yellow]")
        raise typer.Exit(1)
    typer.echo(repaired)


# ── modelstream stream ──────────────────────────────────────────


@app.command()
def stream(
    prompt: str = typer.Argument(..., help="Prompt to send"),
    model_key: str = typer.Option(
        "gpt-4o-mini", "--model", "-m", help="Model registry key",
    ),
    as_json: bool = typer.Option(
        False, "--json", help="Render the output as a live partial JSON value",
    ),
    system: str = typer.Option("", "--system", "-s", help="System prompt"),
    timeout: int = typer.Option(120, "--timeout", help="Timeout in seconds", min=1),
) -> None:
    """Stream a model's response to the terminal as it is generated."""
    load_keys_env()
    registry = _load_registry()
    try:
        config = get_model_config(registry, model_key)
    except KeyError as e:
        err_console.print(f"[red]{e.args[0]}[/red]")
        raise typer.Exit(1) from None

    if not has_key(config.api_key_env):
        err_console.print(
            f"[red]API key not set:[/red] {config.api_key_env}\n"
            f"Set it with: export {config.api_key_env}=your-key"
        )
        raise typer.Exit(1)

    summary = _SummaryObserver()
    model = LiteLLMTextStreamingModel(
        config,
        TextStreamingModelSettings(observers=[summary], system=system, timeout=timeout),
    )

    async def _stream_text() -> None:
        async for fragment in stream_text(model, prompt):
            console.print(fragment, end="", markup=False, highlight=False)
        console.print()

    async def _stream_json() -> None:
        with Live(console=console, auto_refresh=False) as live:
            async for part in stream_structure(model, prompt):
                live.update(JSON.from_data(part.value), refresh=True)

    try:
        asyncio.run(_stream_json() if as_json else _stream_text())
    except KeyboardInterrupt:
        console.print()
        _print_summary(summary)
        err_console.print("[yellow]Aborted.[/yellow]")
        raise typer.Exit(130) from None
    except Exception as e:
        _print_summary(summary)
        err_console.print(f"[red]Failed:[/red] {e}")
        raise typer.Exit(1) from None

    _print_summary(summary)


# ── modelstream models ──────────────────────────────────────────


@models_app.command("list")
def models_list() -> None:
    """Show all registered models as a table."""
    registry = _load_registry()

    table = Table(title="Registered Models", show_lines=True)
    table.add_column("Key", style="bold cyan")
    table.add_column("Display Name")
    table.add_column("Provider", style="dim")
    table.add_column("Context", justify="right")
    table.add_column("Input $/M", justify="right")
    table.add_column("Output $/M", justify="right")
    table.add_column("JSON", justify="center")

    for key, cfg in sorted(registry.items()):
        table.add_row(
            key,
            cfg.display_name,
            cfg.provider,
            f"{cfg.context_window:,}",
            f"${cfg.cost_input:.2f}",
            f"${cfg.cost_output:.2f}",
            "yes" if cfg.supports_structured else "",
        )

    console.print(table)
    console.print(f"\n[dim]{len(registry)} models registered[/dim]")
