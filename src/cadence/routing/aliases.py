"""Legacy ``/plugin:command`` aliases kept for compat mode."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from loguru import logger

from cadence.types import CapabilityTag

DEPRECATION_MESSAGE = (
    "compat_mode is enabled. Legacy /plugin:command syntax will be removed in v2.0. "
    "Migrate to natural language intents."
)

DEFAULT_ALIASES: dict[str, CapabilityTag] = {
    "/wicked-engineering:review": CapabilityTag.CODE_REVIEW,
    "/wicked-engineering:debug": CapabilityTag.DEBUG,
    "/wicked-engineering:arch": CapabilityTag.ARCHITECTURE_ANALYSIS,
    "/wicked-engineering:plan": CapabilityTag.IMPLEMENTATION,
    "/wicked-engineering:docs": CapabilityTag.GENERAL,
    "/wicked-qe:scenarios": CapabilityTag.TEST_SCENARIOS,
    "/wicked-qe:qe-plan": CapabilityTag.TEST_STRATEGY,
    "/wicked-qe:qe-review": CapabilityTag.CODE_REVIEW,
    "/wicked-qe:automate": CapabilityTag.TEST_EXECUTION,
    "/wicked-platform:security": CapabilityTag.SECURITY_SCAN,
    "/wicked-platform:compliance": CapabilityTag.COMPLIANCE_CHECK,
    "/wicked-platform:actions": CapabilityTag.CICD_PIPELINE,
    "/wicked-product:elicit": CapabilityTag.REQUIREMENTS,
    "/wicked-product:acceptance": CapabilityTag.ACCEPTANCE_CRITERIA,
    "/wicked-product:ux-review": CapabilityTag.UX_REVIEW,
    "/wicked-jam:brainstorm": CapabilityTag.BRAINSTORM,
    "/wicked-jam:jam": CapabilityTag.BRAINSTORM,
    "/wicked-crew:start": CapabilityTag.ORCHESTRATE,
    "/wicked-crew:execute": CapabilityTag.PHASE_ROUTING,
    "/wicked-crew:status": CapabilityTag.PROGRESS_REPORT,
    "/wicked-mem:store": CapabilityTag.MEMORY_STORE,
    "/wicked-mem:recall": CapabilityTag.MEMORY_RECALL,
    "/wicked-data:analyze": CapabilityTag.DATA_ANALYSIS,
}


@dataclass(frozen=True)
class AliasMatch:
    capability: CapabilityTag
    original: str


def resolve_alias(text: str, custom_aliases: Mapping[str, CapabilityTag] | None = None) -> AliasMatch | None:
    """Resolve a legacy command to its capability, or ``None`` if it is not an alias."""

    aliases = {**DEFAULT_ALIASES, **(custom_aliases or {})}
    trimmed = text.strip()
    capability = aliases.get(trimmed)
    if capability is None:
        return None
    return AliasMatch(capability=CapabilityTag(capability), original=trimmed)


class DeprecationNotifier:
    """Emits the compat-mode deprecation warning at most once per instance.

    Share one instance across the components of a process or session that may
    need to emit it.
    """

    def __init__(self, message: str = DEPRECATION_MESSAGE) -> None:
        self._message = message
        self._fired = False

    @property
    def fired(self) -> bool:
        return self._fired

    def notify(self) -> bool:
        """Log the warning if it has not been logged yet. Returns True when it fired."""
        if self._fired:
            return False
        self._fired = True
        logger.warning("compat.deprecated {}", self._message)
        return True

    def reset(self) -> None:
        self._fired = False
