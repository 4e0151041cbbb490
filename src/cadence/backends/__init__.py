"""Model backends."""

from cadence.backends.base import ModelBackend
from cadence.backends.scripted import EchoBackend, ScriptedBackend

__all__ = ["EchoBackend", "ModelBackend", "ScriptedBackend"]
