"""Context window assembly for backend calls."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from cadence.runtime.state import TurnSnapshot
from cadence.types import Message, RequestOptions

MEMORY_CONTEXT_LABEL = "[Memory Context]"
DEFAULT_MAX_TOKENS = 4096
DEFAULT_TEMPERATURE = 1.0
CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Approximate token count with a four-characters-per-token heuristic."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


@dataclass(frozen=True)
class AssemblyOptions:
    max_context_tokens: int
    system_prompt: str | None = None
    memory_context: str | None = None


class ContextAssembler:
    """Builds the ordered message list sent to the backend on every turn.

    Order:
      1. system prompt, if configured;
      2. ``[Memory Context]`` system message, if supplied;
      3. conversation history, oldest messages dropped first to fit the budget
         left over after 1 and 2. The newest message is always kept.
    """

    def assemble(self, snapshot: TurnSnapshot, options: AssemblyOptions) -> list[Message]:
        messages: list[Message] = []
        if options.system_prompt:
            messages.append(Message(role="system", content=options.system_prompt))
        if options.memory_context:
            messages.append(Message(role="system", content=f"{MEMORY_CONTEXT_LABEL}\n{options.memory_context}"))

        system_tokens = sum(estimate_tokens(message.content) for message in messages)
        history_budget = options.max_context_tokens - system_tokens
        messages.extend(truncate_history(snapshot.messages, history_budget))
        return messages

    @staticmethod
    def build_request_options(model: str, **overrides: Any) -> RequestOptions:
        """Merge per-call overrides onto the documented defaults.

        ``None`` values are treated as "not overridden".
        """
        max_tokens = overrides.get("max_tokens")
        temperature = overrides.get("temperature")
        tools = overrides.get("tools")
        stream = overrides.get("stream")
        return RequestOptions(
            model=model,
            max_tokens=DEFAULT_MAX_TOKENS if max_tokens is None else max_tokens,
            temperature=DEFAULT_TEMPERATURE if temperature is None else temperature,
            system_prompt=overrides.get("system_prompt"),
            tools=None if tools is None else tuple(tools),
            stream=False if stream is None else bool(stream),
        )


def truncate_history(messages: Sequence[Message], token_budget: int) -> list[Message]:
    """Keep the newest messages that fit ``token_budget``, always at least one."""

    retained: list[Message] = []
    tokens_used = 0
    for message in reversed(messages):
        tokens = estimate_tokens(message.content)
        if tokens_used + tokens > token_budget and retained:
            break
        retained.append(message)
        tokens_used += tokens
    retained.reverse()
    return retained
