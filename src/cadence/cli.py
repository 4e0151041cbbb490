"""cadence command line entry point."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from cadence.backends.scripted import EchoBackend
from cadence.config import get_settings
from cadence.hookspecs import hookimpl
from cadence.logging_utils import configure_logging
from cadence.routing.router import CapabilityRouter
from cadence.runtime.loop import TurnLoop
from cadence.runtime.state import Phase
from cadence.types import AgentConfig, ToolResult

app = typer.Typer(name="cadence", help="Bounded multi-turn agent runtime", add_completion=False)
console = Console()


class _PhaseEcho:
    @hookimpl
    def on_phase_change(self, phase: Phase) -> None:
        console.print(f"[dim]phase: {phase.value}[/dim]")

    @hookimpl
    def on_tool_results(self, results: list[ToolResult]) -> None:
        for result in results:
            status = "ok" if result.ok else f"error: {result.error}"
            console.print(f"[yellow][tool][/yellow] {result.name} {status}")


def _build_router() -> CapabilityRouter:
    settings = get_settings()
    return CapabilityRouter(
        threshold=settings.confidence_threshold,
        cache_ttl_seconds=settings.classifier_cache_ttl_seconds,
        compat_mode=settings.compat_mode,
        classifier_model=settings.classifier_model,
    )


@app.callback()
def _main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level"),
) -> None:
    configure_logging(profile="cli", level=log_level)


@app.command("route")
def route(text: str = typer.Argument(..., help="User utterance to classify")) -> None:
    """Classify one utterance and print the routing decision."""

    result = asyncio.run(_build_router().route(text))
    console.print(result.narration, style="cyan", markup=False)
    typer.echo(f"capability={result.capability.value} tier={result.tier} confidence={result.confidence:.2f}")


@app.command("table")
def table() -> None:
    """Show the capability to agent routing table."""

    grid = Table("capability", "agent")
    for capability, agent_id in _build_router().routing_table().items():
        grid.add_row(capability.value, agent_id)
    console.print(grid)


@app.command("run")
def run(
    message: str = typer.Argument(..., help="Task input"),
    agent_id: str = typer.Option("default", "--agent", help="Agent id"),
    session_id: str = typer.Option("local", "--session-id", help="Session id"),
    max_turns: int = typer.Option(5, "--max-turns", min=1, help="Turn limit"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print phase transitions"),
) -> None:
    """Run one task through the turn loop against the echo backend."""

    loop = TurnLoop(
        session_id,
        backend=EchoBackend(),
        agent=AgentConfig(id=agent_id, max_turns=max_turns),
        plugins=[_PhaseEcho()] if verbose else (),
        settings=get_settings(),
    )
    result = asyncio.run(loop.run(message))
    typer.echo(result.summary)
    typer.echo(f"done={result.done} turns={result.turns_used}")
    if not result.done:
        raise typer.Exit(code=1)
