"""Turn loop runtime."""

from cadence.runtime.context import AssemblyOptions, ContextAssembler, estimate_tokens, truncate_history
from cadence.runtime.loop import TurnLoop
from cadence.runtime.state import Phase, TurnSnapshot, TurnState

__all__ = [
    "AssemblyOptions",
    "ContextAssembler",
    "Phase",
    "TurnLoop",
    "TurnSnapshot",
    "TurnState",
    "estimate_tokens",
    "truncate_history",
]
