"""Capability routing."""

from cadence.routing.aliases import DEFAULT_ALIASES, DeprecationNotifier, resolve_alias
from cadence.routing.router import CapabilityRouter
from cadence.routing.signals import BUILTIN_SIGNALS, CONFIDENCE_THRESHOLD, DEFAULT_CAPABILITY_MAP

__all__ = [
    "BUILTIN_SIGNALS",
    "CONFIDENCE_THRESHOLD",
    "DEFAULT_ALIASES",
    "DEFAULT_CAPABILITY_MAP",
    "CapabilityRouter",
    "DeprecationNotifier",
    "resolve_alias",
]
