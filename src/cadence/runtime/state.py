"""Per-session turn state with copy-on-read snapshots."""

from __future__ import annotations

import copy
from dataclasses import dataclass, replace
from enum import StrEnum

from loguru import logger

from cadence.types import Message, ToolResult


class Phase(StrEnum):
    """Turn loop phases.

    ``idle`` and ``error`` end a turn. The ``dispatching_tools`` ->
    ``awaiting_tool_results`` -> ``assembling_context`` cycle repeats while the
    model keeps requesting tools.
    """

    IDLE = "idle"
    ASSEMBLING_CONTEXT = "assembling_context"
    AWAITING_COMPLETION = "awaiting_completion"
    DISPATCHING_TOOLS = "dispatching_tools"
    AWAITING_TOOL_RESULTS = "awaiting_tool_results"
    EVALUATING_COMPLETION = "evaluating_completion"
    ERROR = "error"


@dataclass(frozen=True)
class TurnSnapshot:
    """Point-in-time view of one session."""

    session_id: str
    agent_id: str
    turn_number: int
    messages: tuple[Message, ...]
    pending_tool_calls: tuple[str, ...]
    completed_tool_results: tuple[ToolResult, ...]
    phase: Phase


class TurnState:
    """Mutable session state. Only the owning turn loop writes to it."""

    def __init__(self, session_id: str, agent_id: str) -> None:
        self.session_id = session_id
        self.agent_id = agent_id
        self._turn_number = 0
        self._messages: list[Message] = []
        self._pending: list[str] = []
        self._completed: list[ToolResult] = []
        self._phase = Phase.IDLE

    @property
    def snapshot(self) -> TurnSnapshot:
        return TurnSnapshot(
            session_id=self.session_id,
            agent_id=self.agent_id,
            turn_number=self._turn_number,
            messages=tuple(self._messages),
            pending_tool_calls=tuple(self._pending),
            completed_tool_results=tuple(_detached(result) for result in self._completed),
            phase=self._phase,
        )

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def message_count(self) -> int:
        return len(self._messages)

    def append_message(self, message: Message) -> None:
        self._messages.append(message)

    def advance_turn(self) -> None:
        self._turn_number += 1
        self._pending = []
        self._completed = []

    def set_phase(self, phase: Phase) -> None:
        self._phase = Phase(phase)

    def record_tool_call(self, call_id: str) -> None:
        self._pending.append(call_id)

    def record_tool_result(self, result: ToolResult) -> None:
        if result.tool_call_id in self._pending:
            self._pending = [call_id for call_id in self._pending if call_id != result.tool_call_id]
        else:
            # Unknown ids are recorded, not rejected.
            logger.warning(
                "state.unknown_tool_result session={} call_id={} name={}",
                self.session_id,
                result.tool_call_id,
                result.name,
            )
        self._completed.append(result)


def _detached(result: ToolResult) -> ToolResult:
    """Copy ``result`` with a deep-copied output; outputs that cannot be copied are shared."""
    try:
        output = copy.deepcopy(result.output)
    except Exception:
        logger.debug("state.output_not_copied name={} type={}", result.name, type(result.output).__name__)
        return result
    return replace(result, output=output)
