"""Multi-turn task loop for one agent session."""

from __future__ import annotations

import asyncio
import inspect
import json
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, assert_never

from loguru import logger

from cadence.backends.base import ModelBackend
from cadence.config import Settings
from cadence.hook_runtime import HookRuntime, create_plugin_manager
from cadence.logging_utils import bind_session
from cadence.runtime.context import AssemblyOptions, ContextAssembler
from cadence.runtime.state import Phase, TurnSnapshot, TurnState
from cadence.tools.dispatcher import ToolDispatcher
from cadence.tools.registry import ToolRegistry
from cadence.types import (
    AgentConfig,
    CompletionCondition,
    CompletionContract,
    CompletionResult,
    CompletionSignal,
    ErrorSignal,
    HealthStatus,
    Message,
    ProgressEvent,
    RequestOptions,
    TextSignal,
    Tool,
    ToolCall,
    ToolResult,
    ToolUseSignal,
)

DEFAULT_MODEL = "default"
DEFAULT_CAPABILITY = "general"


@dataclass
class _RunState:
    contract: CompletionContract | None
    registry: ToolRegistry
    max_turns: int
    deadline: float
    started: float
    turns_used: int = 0
    condition_ids: list[str] = field(default_factory=list)


class TurnLoop:
    """Drives one session's conversation until the task completes or a limit is hit.

    Each iteration assembles context, calls the backend (retrying retryable
    errors with backoff), then either dispatches the requested tools or
    evaluates the completion contract against a text reply. Failures come back
    as a non-done :class:`CompletionResult`; ``run`` does not raise for backend,
    tool or condition errors.

    One instance owns one :class:`TurnState`. Callers must not run two ``run``
    calls concurrently on the same instance.
    """

    def __init__(
        self,
        session_id: str,
        *,
        backend: ModelBackend,
        agent: AgentConfig,
        tools: Mapping[str, Tool] | None = None,
        contract: CompletionContract | None = None,
        plugins: Sequence[object] = (),
        hooks: HookRuntime | None = None,
        settings: Settings | None = None,
        memory_context: str | None = None,
        stream: bool = False,
        dispatcher: ToolDispatcher | None = None,
        assembler: ContextAssembler | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings or Settings()
        self._state = TurnState(session_id, agent.id)
        self._backend = backend
        self._agent = agent
        self._tools = _as_registry(tools)
        self._contract = contract
        self._hooks = hooks or HookRuntime(create_plugin_manager(plugins))
        self._memory_context = memory_context
        self._stream = stream
        self._dispatcher = dispatcher or ToolDispatcher(timeout_seconds=self._settings.tool_timeout_seconds)
        self._assembler = assembler or ContextAssembler()
        self._retry_delays = tuple(self._settings.retry_delays)
        self._clock = clock
        self._satisfied: dict[str, None] = {}
        self._artifacts: list[str] = []

    @property
    def session_id(self) -> str:
        return self._state.session_id

    @property
    def snapshot(self) -> TurnSnapshot:
        return self._state.snapshot

    @property
    def hooks(self) -> HookRuntime:
        return self._hooks

    def satisfy_condition(self, condition_id: str, artifact_path: str | None = None) -> None:
        """Mark a condition satisfied from outside, e.g. once an artifact file exists."""
        self._satisfied[condition_id] = None
        if artifact_path:
            self._artifacts.append(artifact_path)

    async def health(self) -> HealthStatus:
        start = self._clock()
        try:
            return await self._backend.health()
        except Exception:
            logger.exception("loop.health.error session={}", self.session_id)
            return HealthStatus(ok=False, latency_ms=_elapsed_ms(start, self._clock()))

    async def run(
        self,
        user_input: str,
        *,
        contract: CompletionContract | None = None,
        tools: Mapping[str, Tool] | None = None,
    ) -> CompletionResult:
        bind_session(self.session_id)
        started = self._clock()
        active_contract = contract or self._contract
        timeout_ms = active_contract.timeout_ms if active_contract else self._settings.task_timeout_ms
        run = _RunState(
            contract=active_contract,
            registry=self._tools if tools is None else _as_registry(tools),
            max_turns=active_contract.max_turns if active_contract else self._agent.max_turns,
            deadline=started + timeout_ms / 1000,
            started=started,
            condition_ids=[condition.id for condition in _conditions(active_contract)],
        )
        logger.info(
            "loop.run.start session={} agent={} max_turns={} timeout_ms={}",
            self.session_id,
            self._agent.id,
            run.max_turns,
            timeout_ms,
        )

        self._state.append_message(Message(role="user", content=user_input))
        self._state.advance_turn()

        while True:
            if self._clock() >= run.deadline:
                await self._transition(Phase.IDLE)
                return self._finish(run, done=False, summary="Task timed out before completion.")
            if run.turns_used >= run.max_turns:
                await self._transition(Phase.IDLE)
                return self._finish(
                    run,
                    done=False,
                    summary=f"Reached maximum turns ({run.max_turns}) without completing all conditions.",
                )

            await self._call_agent_hook("before_turn")
            await self._emit_progress(run)

            await self._transition(Phase.ASSEMBLING_CONTEXT)
            messages = self._assembler.assemble(
                self._state.snapshot,
                AssemblyOptions(
                    max_context_tokens=self._settings.max_context_tokens,
                    system_prompt=self._agent.system_prompt,
                    memory_context=self._memory_context,
                ),
            )
            options = self._assembler.build_request_options(
                self._agent.model or DEFAULT_MODEL,
                temperature=self._agent.temperature,
                tools=run.registry.allowed(self._agent.allowed_tools),
                stream=self._stream,
            )

            await self._transition(Phase.AWAITING_COMPLETION)
            signal = await self._call_backend_with_retry(messages, options)

            match signal:
                case ErrorSignal(code=code, message=message):
                    await self._transition(Phase.ERROR)
                    await self._call_agent_hook("on_error")
                    logger.error("loop.backend.error session={} code={} message={}", self.session_id, code, message)
                    return self._finish(run, done=False, summary=f"LLM error: {message}")
                case ToolUseSignal(calls=calls):
                    await self._handle_tool_use(run, calls)
                    run.turns_used += 1
                    await self._call_agent_hook("after_turn")
                case TextSignal(content=content):
                    result = await self._handle_text(run, content)
                    if result is not None:
                        return result
                    await self._call_agent_hook("after_turn")
                case _:
                    assert_never(signal)

    async def _handle_tool_use(self, run: _RunState, calls: Sequence[ToolCall]) -> list[ToolResult]:
        await self._transition(Phase.DISPATCHING_TOOLS)
        for call in calls:
            self._state.record_tool_call(call.id)
        self._state.append_message(Message(role="assistant", content=_render_tool_use(calls)))

        await self._transition(Phase.AWAITING_TOOL_RESULTS)
        results = await self._dispatcher.dispatch(calls, run.registry, self._agent.allowed_tools)
        for result in results:
            self._state.record_tool_result(result)
            self._state.append_message(
                Message(role="tool", content=_render_tool_result(result), tool_call_id=result.tool_call_id)
            )
        await self._hooks.notify("on_tool_results", session_id=self.session_id, results=list(results))
        return results

    async def _handle_text(self, run: _RunState, content: str) -> CompletionResult | None:
        self._state.append_message(Message(role="assistant", content=content))
        await self._hooks.notify("on_text", session_id=self.session_id, text=content)
        run.turns_used += 1

        await self._transition(Phase.EVALUATING_COMPLETION)
        conditions = _conditions(run.contract)
        if conditions:
            await self._evaluate_conditions(conditions)
            if not all(condition_id in self._satisfied for condition_id in run.condition_ids):
                return None

        await self._transition(Phase.IDLE)
        result = self._finish(run, done=True, summary=content)
        await self._hooks.notify("on_complete", session_id=self.session_id, result=result)
        return result

    async def _evaluate_conditions(self, conditions: Sequence[CompletionCondition]) -> None:
        for condition in conditions:
            if condition.id in self._satisfied:
                continue
            # Manual conditions are never auto-satisfied; artifact conditions only via satisfy_condition().
            if condition.check != "assertion" or condition.assertion_fn is None:
                continue
            try:
                value = condition.assertion_fn()
                if inspect.isawaitable(value):
                    value = await value
            except Exception as exc:
                logger.debug("loop.condition.failed session={} condition={} error={}", self.session_id, condition.id, exc)
                continue
            if value:
                self._satisfied[condition.id] = None

    async def _call_backend_with_retry(self, messages: list[Message], options: RequestOptions) -> CompletionSignal:
        last_error: ErrorSignal | None = None
        for attempt in range(len(self._retry_delays) + 1):
            signal = await self._call_backend(messages, options)
            if not isinstance(signal, ErrorSignal) or not signal.retryable:
                return signal
            last_error = signal
            if attempt >= len(self._retry_delays):
                break
            delay = self._retry_delays[attempt]
            logger.warning(
                "loop.backend.retry session={} attempt={} delay={}s code={}",
                self.session_id,
                attempt + 1,
                delay,
                signal.code,
            )
            await asyncio.sleep(delay)

        if last_error is None:
            return ErrorSignal(code="unknown", message="Unknown error after retries", retryable=False)
        return last_error

    async def _call_backend(self, messages: list[Message], options: RequestOptions) -> CompletionSignal:
        try:
            if options.stream:
                return await self._backend.stream(messages, options, self._emit_delta)
            return await self._backend.complete(messages, options)
        except Exception as exc:
            logger.exception("loop.backend.exception session={}", self.session_id)
            return ErrorSignal(code="backend_exception", message=str(exc) or exc.__class__.__name__, retryable=False)

    def _emit_delta(self, delta: str) -> None:
        self._hooks.notify_sync("on_text_delta", session_id=self.session_id, delta=delta)

    async def _transition(self, phase: Phase) -> None:
        self._state.set_phase(phase)
        logger.debug("loop.phase session={} phase={}", self.session_id, phase.value)
        await self._hooks.notify("on_phase_change", session_id=self.session_id, phase=phase)

    async def _emit_progress(self, run: _RunState) -> None:
        turn_number = run.turns_used + 1
        event = ProgressEvent(
            capability=run.contract.capability if run.contract else DEFAULT_CAPABILITY,
            turn_number=turn_number,
            max_turns=run.max_turns,
            satisfied_conditions=tuple(cid for cid in run.condition_ids if cid in self._satisfied),
            total_conditions=len(run.condition_ids),
            current_activity=f"Turn {turn_number} of {run.max_turns}",
        )
        await self._hooks.notify("on_progress", session_id=self.session_id, event=event)

    async def _call_agent_hook(self, name: str) -> None:
        agent_hooks = self._agent.hooks
        if agent_hooks is None:
            return
        hook = getattr(agent_hooks, name)
        if hook is None:
            return
        snapshot = self._state.snapshot
        try:
            value = hook(snapshot)
            if inspect.isawaitable(value):
                await value
        except Exception as error:
            await self._hooks.notify_error(
                session_id=self.session_id,
                stage=f"agent_hook:{name}",
                error=error,
                snapshot=snapshot,
            )

    def _finish(self, run: _RunState, *, done: bool, summary: str) -> CompletionResult:
        satisfied = tuple(self._satisfied)
        unsatisfied = tuple(cid for cid in run.condition_ids if cid not in self._satisfied)
        result = CompletionResult(
            done=done,
            satisfied_conditions=satisfied,
            unsatisfied_conditions=unsatisfied,
            summary=summary,
            artifacts=tuple(self._artifacts),
            turns_used=run.turns_used,
            duration_ms=_elapsed_ms(run.started, self._clock()),
        )
        logger.info(
            "loop.run.finish session={} done={} turns={} duration={}ms",
            self.session_id,
            result.done,
            result.turns_used,
            result.duration_ms,
        )
        return result


def _as_registry(tools: Mapping[str, Tool] | None) -> ToolRegistry:
    if isinstance(tools, ToolRegistry):
        return tools
    return ToolRegistry((tools or {}).values())


def _conditions(contract: CompletionContract | None) -> tuple[CompletionCondition, ...]:
    if contract is None:
        return ()
    return contract.conditions


def _render_tool_use(calls: Sequence[ToolCall]) -> str:
    payload = [{"id": call.id, "name": call.name, "arguments": dict(call.arguments)} for call in calls]
    return json.dumps({"tool_use": payload}, ensure_ascii=False, default=str)


def _render_tool_result(result: ToolResult) -> str:
    if result.error is not None:
        return result.error
    output: Any = result.output
    if isinstance(output, str):
        return output
    try:
        return json.dumps(output, ensure_ascii=False)
    except TypeError:
        return str(output)


def _elapsed_ms(start: float, end: float) -> int:
    return max(0, int((end - start) * 1000))
