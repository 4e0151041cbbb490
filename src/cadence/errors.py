"""Application-level exception types for cadence."""

from __future__ import annotations


class CadenceError(Exception):
    """Base exception for cadence."""


class ConfigurationError(CadenceError):
    """Base exception for configuration and startup validation errors."""


class ToolRegistrationError(ConfigurationError):
    """Raised when a tool name is registered twice."""


class UnknownCapabilityError(ConfigurationError):
    """Raised when a routing override names a capability that does not exist."""
