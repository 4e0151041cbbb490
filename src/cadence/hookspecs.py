"""Pluggy hook namespace and turn-loop observation hooks."""

from __future__ import annotations

import pluggy

from cadence.runtime.state import Phase, TurnSnapshot
from cadence.types import CompletionResult, ProgressEvent, ToolResult

CADENCE_HOOK_NAMESPACE = "cadence"
hookspec = pluggy.HookspecMarker(CADENCE_HOOK_NAMESPACE)
hookimpl = pluggy.HookimplMarker(CADENCE_HOOK_NAMESPACE)


class CadenceHookSpecs:
    """Observation hooks. Return values are ignored; they never steer the loop."""

    @hookspec
    def on_phase_change(self, session_id: str, phase: Phase) -> None:
        """Observe a turn loop phase transition."""

    @hookspec
    def on_text_delta(self, session_id: str, delta: str) -> None:
        """Observe one streamed text fragment."""

    @hookspec
    def on_text(self, session_id: str, text: str) -> None:
        """Observe a complete assistant text reply."""

    @hookspec
    def on_tool_results(self, session_id: str, results: list[ToolResult]) -> None:
        """Observe the settled results of one tool batch."""

    @hookspec
    def on_progress(self, session_id: str, event: ProgressEvent) -> None:
        """Observe per-turn progress."""

    @hookspec
    def on_complete(self, session_id: str, result: CompletionResult) -> None:
        """Observe a task judged complete."""

    @hookspec
    def on_error(self, session_id: str, stage: str, error: Exception, snapshot: TurnSnapshot | None) -> None:
        """Observe failures from observers, agent hooks and the loop."""
