"""In-process backends that need no provider."""

from __future__ import annotations

import inspect
from collections import deque
from collections.abc import Iterable, Sequence

from cadence.backends.base import DeltaCallback
from cadence.types import CompletionSignal, HealthStatus, Message, RequestOptions, TextSignal


class ScriptedBackend:
    """Replays a fixed sequence of signals, one per call.

    Once the script runs out the backend echoes the latest user message.
    Every call is recorded in :attr:`calls` for inspection.
    """

    def __init__(self, signals: Iterable[CompletionSignal] = ()) -> None:
        self._script: deque[CompletionSignal] = deque(signals)
        self.calls: list[tuple[list[Message], RequestOptions]] = []

    def push(self, signal: CompletionSignal) -> None:
        self._script.append(signal)

    async def complete(self, messages: Sequence[Message], options: RequestOptions) -> CompletionSignal:
        self.calls.append((list(messages), options))
        if self._script:
            return self._script.popleft()
        return TextSignal(content=_latest_user_text(messages))

    async def stream(
        self,
        messages: Sequence[Message],
        options: RequestOptions,
        on_delta: DeltaCallback,
    ) -> CompletionSignal:
        signal = await self.complete(messages, options)
        if isinstance(signal, TextSignal):
            for word in _chunks(signal.content):
                value = on_delta(word)
                if inspect.isawaitable(value):
                    await value
        return signal

    async def health(self) -> HealthStatus:
        return HealthStatus(ok=True, latency_ms=0)


class EchoBackend(ScriptedBackend):
    """Answers every request with the latest user message."""

    def __init__(self) -> None:
        super().__init__()


def _latest_user_text(messages: Sequence[Message]) -> str:
    for message in reversed(messages):
        if message.role == "user":
            return message.content
    return ""


def _chunks(text: str) -> list[str]:
    parts = text.split(" ")
    return [part if idx == len(parts) - 1 else f"{part} " for idx, part in enumerate(parts)]
