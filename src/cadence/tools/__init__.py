"""Tool registry and dispatch."""

from cadence.tools.dispatcher import ToolDispatcher
from cadence.tools.registry import ToolRegistry

__all__ = ["ToolDispatcher", "ToolRegistry"]
