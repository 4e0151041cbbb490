from __future__ import annotations

import dataclasses
import threading

import pytest

from cadence.runtime.state import Phase, TurnState
from cadence.types import Message, ToolResult


def _message(content: str = "Hello", role: str = "user") -> Message:
    return Message(role=role, content=content)  # type: ignore[arg-type]


def test_state_starts_idle_with_empty_collections() -> None:
    state = TurnState("session-1", "agent-a")

    snap = state.snapshot
    assert snap.session_id == "session-1"
    assert snap.agent_id == "agent-a"
    assert snap.turn_number == 0
    assert snap.phase == Phase.IDLE
    assert snap.messages == ()
    assert snap.pending_tool_calls == ()
    assert snap.completed_tool_results == ()


def test_append_message_keeps_previous_entries_in_order() -> None:
    state = TurnState("s", "a")
    first = _message("one")
    second = _message("two", role="assistant")

    state.append_message(first)
    state.append_message(second)

    assert state.snapshot.messages == (first, second)


def test_advance_turn_clears_tool_collections_but_keeps_history() -> None:
    state = TurnState("s", "a")
    state.append_message(_message())
    state.record_tool_call("call-1")
    state.record_tool_result(ToolResult(tool_call_id="call-1", name="read", output="x"))

    state.advance_turn()

    snap = state.snapshot
    assert snap.turn_number == 1
    assert snap.pending_tool_calls == ()
    assert snap.completed_tool_results == ()
    assert len(snap.messages) == 1


def test_message_count_never_decreases() -> None:
    state = TurnState("s", "a")
    counts = []
    for idx in range(3):
        state.append_message(_message(str(idx)))
        counts.append(state.message_count)
        state.advance_turn()
        counts.append(state.message_count)

    assert counts == sorted(counts)
    assert counts[-1] == 3


def test_record_tool_result_moves_call_from_pending_to_completed() -> None:
    state = TurnState("s", "a")
    state.record_tool_call("call-1")
    state.record_tool_call("call-2")

    state.record_tool_result(ToolResult(tool_call_id="call-1", name="read", output="ok"))

    snap = state.snapshot
    assert snap.pending_tool_calls == ("call-2",)
    assert [result.tool_call_id for result in snap.completed_tool_results] == ["call-1"]


def test_record_tool_result_tolerates_unknown_call_id() -> None:
    state = TurnState("s", "a")
    state.record_tool_call("call-1")

    state.record_tool_result(ToolResult(tool_call_id="ghost", name="read", output="ok"))

    snap = state.snapshot
    assert snap.pending_tool_calls == ("call-1",)
    assert len(snap.completed_tool_results) == 1


def test_set_phase_updates_snapshot() -> None:
    state = TurnState("s", "a")
    state.set_phase(Phase.DISPATCHING_TOOLS)
    assert state.snapshot.phase == Phase.DISPATCHING_TOOLS


def test_snapshot_is_frozen_and_not_aliased() -> None:
    state = TurnState("s", "a")
    state.record_tool_call("call-1")
    state.record_tool_result(ToolResult(tool_call_id="call-1", name="read", output={"lines": [1, 2]}))

    first = state.snapshot
    with pytest.raises(dataclasses.FrozenInstanceError):
        first.turn_number = 5  # type: ignore[misc]

    first.completed_tool_results[0].output["lines"].append(3)
    second = state.snapshot

    assert second.completed_tool_results[0].output == {"lines": [1, 2]}
    assert first is not second


def test_snapshot_does_not_see_later_appends() -> None:
    state = TurnState("s", "a")
    state.append_message(_message("one"))
    before = state.snapshot

    state.append_message(_message("two"))

    assert len(before.messages) == 1
    assert len(state.snapshot.messages) == 2


def test_snapshot_shares_outputs_that_cannot_be_copied() -> None:
    lock = threading.Lock()
    state = TurnState("s", "a")
    state.record_tool_call("call-1")
    state.record_tool_result(ToolResult(tool_call_id="call-1", name="acquire", output=lock))

    snap = state.snapshot

    assert snap.completed_tool_results[0].output is lock
    assert snap.completed_tool_results[0].tool_call_id == "call-1"
