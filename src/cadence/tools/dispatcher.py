"""Concurrent tool call dispatch."""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Mapping, Sequence
from typing import Any

from loguru import logger

from cadence.types import Tool, ToolCall, ToolResult, is_tool_allowed

DEFAULT_TOOL_TIMEOUT_SECONDS = 30.0


class ToolDispatcher:
    """Executes one batch of tool calls concurrently.

    Every call settles into a :class:`ToolResult`; unknown tools, disallowed
    tools, handler exceptions and timeouts are reported in ``error`` and never
    raised. Results keep the order of the input calls.

    Sync handlers run in a worker thread that cannot be interrupted: after a
    timeout the thread keeps running until the handler returns, and
    ``asyncio.run`` waits for it on shutdown. Write long-running tools as
    coroutine functions so the timeout cancels them.
    """

    def __init__(self, *, timeout_seconds: float = DEFAULT_TOOL_TIMEOUT_SECONDS) -> None:
        self._timeout_seconds = timeout_seconds

    async def dispatch(
        self,
        calls: Sequence[ToolCall],
        registry: Mapping[str, Tool],
        allowed_tools: Sequence[str],
    ) -> list[ToolResult]:
        if not calls:
            return []
        tasks = [self._execute_one(call, registry, allowed_tools) for call in calls]
        return list(await asyncio.gather(*tasks))

    async def _execute_one(
        self,
        call: ToolCall,
        registry: Mapping[str, Tool],
        allowed_tools: Sequence[str],
    ) -> ToolResult:
        start = time.monotonic()

        tool = registry.get(call.name)
        if tool is None:
            return self._failure(call, f"Tool '{call.name}' is not registered.", start)
        if not is_tool_allowed(call.name, allowed_tools):
            return self._failure(call, f"Tool '{call.name}' is not in the agent's allowedTools list.", start)

        logger.info("tool.call.start name={} call_id={}", call.name, call.id)
        deadline = asyncio.timeout(self._timeout_seconds)
        try:
            async with deadline:
                output = await _invoke(tool, dict(call.arguments))
        except TimeoutError as exc:
            if not deadline.expired():
                logger.exception("tool.call.error name={} call_id={}", call.name, call.id)
                return self._failure(call, _error_text(exc), start)
            timeout_ms = int(self._timeout_seconds * 1000)
            logger.warning("tool.call.timeout name={} call_id={} timeout_ms={}", call.name, call.id, timeout_ms)
            return self._failure(call, f"Tool '{call.name}' timed out after {timeout_ms}ms.", start)
        except Exception as exc:
            logger.exception("tool.call.error name={} call_id={}", call.name, call.id)
            return self._failure(call, _error_text(exc), start)

        duration_ms = _elapsed_ms(start)
        logger.info("tool.call.end name={} call_id={} duration={}ms", call.name, call.id, duration_ms)
        return ToolResult(tool_call_id=call.id, name=call.name, output=output, duration_ms=duration_ms)

    @staticmethod
    def _failure(call: ToolCall, error: str, start: float) -> ToolResult:
        return ToolResult(
            tool_call_id=call.id,
            name=call.name,
            output=None,
            error=error,
            duration_ms=_elapsed_ms(start),
        )


async def _invoke(tool: Tool, arguments: dict[str, Any]) -> Any:
    handler = tool.handler
    if inspect.iscoroutinefunction(handler):
        return await handler(arguments)
    result = await asyncio.to_thread(handler, arguments)
    if inspect.isawaitable(result):
        result = await result
    return result


def _error_text(exc: BaseException) -> str:
    text = str(exc)
    if text:
        return text
    return exc.__class__.__name__


def _elapsed_ms(start: float) -> int:
    return max(0, int((time.monotonic() - start) * 1000))
