"""Name to tool registry."""

from __future__ import annotations

import builtins
from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any

from loguru import logger

from cadence.errors import ToolRegistrationError
from cadence.types import Tool, ToolHandler, ToolSource, is_tool_allowed


class ToolRegistry(Mapping[str, Tool]):
    """Registry for builtin, skill and agent tools.

    Behaves as a read-only mapping so it can be handed to the dispatcher
    directly.
    """

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.add(tool)

    def __getitem__(self, name: str) -> Tool:
        return self._tools[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def add(self, tool: Tool) -> Tool:
        if tool.name in self._tools:
            raise ToolRegistrationError(f"Tool '{tool.name}' is already registered.")
        self._tools[tool.name] = tool
        logger.debug("tool.register name={} source={}", tool.name, tool.source)
        return tool

    def register(
        self,
        name: str,
        *,
        description: str,
        parameters: Mapping[str, Any] | None = None,
        source: ToolSource = "builtin",
        source_id: str | None = None,
    ) -> Callable[[ToolHandler], ToolHandler]:
        """Decorator form of :meth:`add`. The handler receives the call arguments dict."""

        def decorator(handler: ToolHandler) -> ToolHandler:
            self.add(
                Tool(
                    name=name,
                    description=description,
                    handler=handler,
                    parameters=dict(parameters or {}),
                    source=source,
                    source_id=source_id,
                )
            )
            return handler

        return decorator

    def descriptors(self) -> builtins.list[Tool]:
        return sorted(self._tools.values(), key=lambda item: item.name)

    def allowed(self, allowed_tools: Iterable[str]) -> builtins.list[Tool]:
        """Tools visible to an agent with the given allow-list, in name order."""
        allow_list = tuple(allowed_tools)
        return [tool for tool in self.descriptors() if is_tool_allowed(tool.name, allow_list)]
