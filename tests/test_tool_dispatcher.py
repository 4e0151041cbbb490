from __future__ import annotations

import asyncio
import threading

import pytest

from cadence.tools.dispatcher import ToolDispatcher
from cadence.tools.registry import ToolRegistry
from cadence.types import Tool, ToolCall


def _registry() -> ToolRegistry:
    registry = ToolRegistry()

    @registry.register("read", description="Read a file")
    async def read(args: dict) -> str:
        await asyncio.sleep(0.01)
        return f"content of {args['path']}"

    @registry.register("count", description="Count items")
    def count(args: dict) -> dict:
        return {"count": len(args.get("items", [])), "thread": threading.current_thread().name}

    @registry.register("explode", description="Always fails")
    async def explode(args: dict) -> None:
        raise ValueError("disk on fire")

    @registry.register("blank", description="Fails with an empty message")
    def blank(args: dict) -> None:
        raise RuntimeError()

    @registry.register("slowdb", description="Fails with its own timeout")
    async def slowdb(args: dict) -> None:
        raise TimeoutError("db connection timed out")

    @registry.register("hang", description="Never returns")
    async def hang(args: dict) -> None:
        await asyncio.sleep(10)

    return registry


@pytest.mark.asyncio
async def test_dispatch_empty_batch_returns_empty_list() -> None:
    results = await ToolDispatcher().dispatch([], _registry(), ["*"])
    assert results == []


@pytest.mark.asyncio
async def test_results_keep_call_order() -> None:
    calls = [
        ToolCall(id="c1", name="read", arguments={"path": "a.py"}),
        ToolCall(id="c2", name="count", arguments={"items": [1, 2, 3]}),
        ToolCall(id="c3", name="read", arguments={"path": "b.py"}),
    ]

    results = await ToolDispatcher().dispatch(calls, _registry(), ["*"])

    assert [result.tool_call_id for result in results] == ["c1", "c2", "c3"]
    assert results[0].output == "content of a.py"
    assert results[1].output["count"] == 3
    assert results[2].output == "content of b.py"
    assert all(result.ok for result in results)
    assert all(result.duration_ms >= 0 for result in results)


@pytest.mark.asyncio
async def test_sync_handler_runs_off_the_event_loop_thread() -> None:
    results = await ToolDispatcher().dispatch([ToolCall(id="c1", name="count")], _registry(), ["*"])
    assert results[0].output["thread"] != threading.current_thread().name


@pytest.mark.asyncio
async def test_tool_outside_allow_list_is_rejected() -> None:
    calls = [ToolCall(id="c1", name="read", arguments={"path": "a"})]

    results = await ToolDispatcher().dispatch(calls, _registry(), ["count"])

    assert results[0].output is None
    assert results[0].error == "Tool 'read' is not in the agent's allowedTools list."


@pytest.mark.asyncio
async def test_unregistered_tool_is_reported() -> None:
    results = await ToolDispatcher().dispatch([ToolCall(id="c1", name="missing")], _registry(), ["*"])
    assert results[0].error == "Tool 'missing' is not registered."
    assert results[0].name == "missing"


@pytest.mark.asyncio
async def test_unregistered_check_comes_before_allow_list() -> None:
    results = await ToolDispatcher().dispatch([ToolCall(id="c1", name="missing")], _registry(), ["read"])
    assert results[0].error == "Tool 'missing' is not registered."


@pytest.mark.asyncio
async def test_handler_exception_becomes_error_text() -> None:
    calls = [ToolCall(id="c1", name="explode"), ToolCall(id="c2", name="blank")]

    results = await ToolDispatcher().dispatch(calls, _registry(), ["*"])

    assert results[0].error == "disk on fire"
    assert results[1].error == "RuntimeError"


@pytest.mark.asyncio
async def test_timeout_reports_configured_limit() -> None:
    dispatcher = ToolDispatcher(timeout_seconds=0.05)

    results = await dispatcher.dispatch([ToolCall(id="c1", name="hang")], _registry(), ["*"])

    assert results[0].error == "Tool 'hang' timed out after 50ms."
    assert results[0].output is None


@pytest.mark.asyncio
async def test_failures_do_not_affect_sibling_calls() -> None:
    calls = [
        ToolCall(id="c1", name="explode"),
        ToolCall(id="c2", name="read", arguments={"path": "ok.txt"}),
        ToolCall(id="c3", name="hang"),
        ToolCall(id="c4", name="missing"),
    ]

    results = await ToolDispatcher(timeout_seconds=0.05).dispatch(calls, _registry(), ["*"])

    assert [result.ok for result in results] == [False, True, False, False]
    assert results[1].output == "content of ok.txt"


@pytest.mark.asyncio
async def test_calls_run_concurrently() -> None:
    registry = ToolRegistry()
    started: list[str] = []
    gate = asyncio.Event()

    async def wait_for_peer(args: dict) -> str:
        started.append(args["name"])
        if len(started) == 2:
            gate.set()
        await asyncio.wait_for(gate.wait(), timeout=1)
        return args["name"]

    registry.add(Tool(name="peer", description="waits for a peer", handler=wait_for_peer))
    calls = [
        ToolCall(id="c1", name="peer", arguments={"name": "a"}),
        ToolCall(id="c2", name="peer", arguments={"name": "b"}),
    ]

    results = await ToolDispatcher().dispatch(calls, registry, ["*"])

    assert [result.output for result in results] == ["a", "b"]


@pytest.mark.asyncio
async def test_dispatch_accepts_plain_mapping() -> None:
    tool = Tool(name="echo", description="echo", handler=lambda args: args["value"])
    results = await ToolDispatcher().dispatch(
        [ToolCall(id="c1", name="echo", arguments={"value": 7})],
        {"echo": tool},
        ["echo"],
    )
    assert results[0].output == 7


@pytest.mark.asyncio
async def test_timeout_raised_by_handler_keeps_its_message() -> None:
    results = await ToolDispatcher(timeout_seconds=30).dispatch([ToolCall(id="c1", name="slowdb")], _registry(), ["*"])

    assert results[0].error == "db connection timed out"


@pytest.mark.asyncio
async def test_sync_handler_timeout_is_reported_while_worker_finishes() -> None:
    release = threading.Event()
    finished = threading.Event()

    def blocking(args: dict) -> str:
        release.wait(timeout=5)
        finished.set()
        return "late"

    registry = ToolRegistry([Tool(name="blocking", description="blocks a thread", handler=blocking)])

    results = await ToolDispatcher(timeout_seconds=0.05).dispatch([ToolCall(id="c1", name="blocking")], registry, ["*"])

    assert results[0].error == "Tool 'blocking' timed out after 50ms."
    assert not finished.is_set()
    release.set()
    await asyncio.to_thread(finished.wait, 5)
    assert finished.is_set()
