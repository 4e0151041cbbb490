"""cadence - bounded multi-turn agent runtime."""

from cadence.routing import CapabilityRouter
from cadence.runtime import ContextAssembler, Phase, TurnLoop, TurnState
from cadence.tools import ToolDispatcher, ToolRegistry

__version__ = "0.1.0"

__all__ = [
    "CapabilityRouter",
    "ContextAssembler",
    "Phase",
    "ToolDispatcher",
    "ToolRegistry",
    "TurnLoop",
    "TurnState",
]
