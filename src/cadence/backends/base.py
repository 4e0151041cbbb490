"""Model backend contract implemented by provider adapters."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Protocol, TypeAlias

from cadence.types import CompletionSignal, HealthStatus, Message, RequestOptions

DeltaCallback: TypeAlias = Callable[[str], Any]


class ModelBackend(Protocol):
    """Minimal async contract for model providers.

    Implementations report failures as :class:`~cadence.types.ErrorSignal`
    values instead of raising.
    """

    async def complete(self, messages: Sequence[Message], options: RequestOptions) -> CompletionSignal: ...

    async def stream(
        self,
        messages: Sequence[Message],
        options: RequestOptions,
        on_delta: DeltaCallback,
    ) -> CompletionSignal: ...

    async def health(self) -> HealthStatus: ...
