"""Shared runtime data types."""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

Role: TypeAlias = Literal["user", "assistant", "system", "tool"]
StopReason: TypeAlias = Literal["end_turn", "max_tokens", "stop_sequence"]
ToolSource: TypeAlias = Literal["skill", "agent", "builtin"]
ToolHandler: TypeAlias = Callable[[dict[str, Any]], Any]
RoutingTier: TypeAlias = Literal["fast", "llm"]


def new_id() -> str:
    return str(uuid.uuid4())


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Message:
    """One conversation entry. Never modified after it is appended."""

    role: Role
    content: str
    id: str = field(default_factory=new_id)
    timestamp: int = field(default_factory=now_ms)
    tool_call_id: str | None = None


@dataclass(frozen=True)
class ToolCall:
    """A request from the backend to execute one tool."""

    id: str
    name: str
    arguments: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one tool call. Failed calls carry ``error`` and no output."""

    tool_call_id: str
    name: str
    output: Any = None
    error: str | None = None
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class Tool:
    """Callable tool exposed to the model. Only ``handler`` is invoked by the runtime."""

    name: str
    description: str
    handler: ToolHandler
    parameters: Mapping[str, Any] = field(default_factory=dict)
    source: ToolSource = "builtin"
    source_id: str | None = None


@dataclass(frozen=True)
class TextSignal:
    content: str
    stop_reason: StopReason = "end_turn"


@dataclass(frozen=True)
class ToolUseSignal:
    calls: tuple[ToolCall, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "calls", tuple(self.calls))


@dataclass(frozen=True)
class ErrorSignal:
    code: str
    message: str
    retryable: bool = False


CompletionSignal: TypeAlias = TextSignal | ToolUseSignal | ErrorSignal


@dataclass(frozen=True)
class RequestOptions:
    """Options for one backend call."""

    model: str
    max_tokens: int = 4096
    temperature: float = 1.0
    system_prompt: str | None = None
    tools: tuple[Tool, ...] | None = None
    stream: bool = False


@dataclass(frozen=True)
class HealthStatus:
    ok: bool
    latency_ms: int


class CapabilityTag(StrEnum):
    """Enumerated user intents the router can resolve."""

    CODE_REVIEW = "code-review"
    DEBUG = "debug"
    REFACTOR = "refactor"
    ARCHITECTURE_ANALYSIS = "architecture-analysis"
    IMPLEMENTATION = "implementation"
    TEST_STRATEGY = "test-strategy"
    TEST_SCENARIOS = "test-scenarios"
    TEST_EXECUTION = "test-execution"
    ORCHESTRATE = "orchestrate"
    PHASE_ROUTING = "phase-routing"
    PROGRESS_REPORT = "progress-report"
    MEMORY_STORE = "memory-store"
    MEMORY_RECALL = "memory-recall"
    CONTEXT_ASSEMBLY = "context-assembly"
    SECURITY_SCAN = "security-scan"
    COMPLIANCE_CHECK = "compliance-check"
    CICD_PIPELINE = "cicd-pipeline"
    REQUIREMENTS = "requirements"
    BRAINSTORM = "brainstorm"
    UX_REVIEW = "ux-review"
    ACCEPTANCE_CRITERIA = "acceptance-criteria"
    DATA_ANALYSIS = "data-analysis"
    PIPELINE_DESIGN = "pipeline-design"
    ML_GUIDANCE = "ml-guidance"
    CODE_PATCH = "code-patch"
    CROSS_LANGUAGE_PROPAGATION = "cross-language-propagation"
    GENERAL = "general"


class IntentSignal(BaseModel):
    """Tier-1 routing rule: a regex pattern plus exact keyword triggers."""

    model_config = ConfigDict(frozen=True)

    pattern: str
    capability: CapabilityTag
    confidence: float = Field(ge=0, le=1)
    keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class RoutingResult:
    capability: CapabilityTag
    confidence: float
    tier: RoutingTier
    agent_id: str
    narration: str


class CompletionCondition(BaseModel):
    """One done-condition of a completion contract."""

    model_config = ConfigDict(frozen=True)

    id: str
    check: Literal["artifact", "assertion", "manual"]
    description: str = ""
    artifact_pattern: str | None = None
    assertion_fn: Callable[[], Any] | None = None


class CompletionContract(BaseModel):
    """Caller-supplied conditions and limits for one multi-turn task."""

    model_config = ConfigDict(frozen=True)

    capability: str
    conditions: tuple[CompletionCondition, ...] = ()
    max_turns: int = Field(default=30, gt=0)
    timeout_ms: int = Field(default=300_000, gt=0)


@dataclass(frozen=True)
class CompletionResult:
    done: bool
    satisfied_conditions: tuple[str, ...]
    unsatisfied_conditions: tuple[str, ...]
    summary: str
    artifacts: tuple[str, ...]
    turns_used: int
    duration_ms: int


@dataclass(frozen=True)
class ProgressEvent:
    """Per-turn progress notification for observers."""

    capability: str
    turn_number: int
    max_turns: int
    satisfied_conditions: tuple[str, ...]
    total_conditions: int
    current_activity: str


class AgentHooks(BaseModel):
    """Optional per-agent callables invoked by the turn loop with the current snapshot."""

    before_turn: Callable[..., Any] | None = None
    after_turn: Callable[..., Any] | None = None
    on_error: Callable[..., Any] | None = None


class AgentConfig(BaseModel):
    """Agent persona as produced by the agent-loading subsystem."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(pattern=r"^[a-z][a-z0-9-]*$")
    name: str = ""
    description: str | None = None
    system_prompt: str | None = None
    allowed_tools: tuple[str, ...] = ("*",)
    model: str | None = None
    temperature: float | None = Field(default=None, ge=0, le=2)
    max_turns: int = Field(default=30, gt=0)
    hooks: AgentHooks | None = None

    def allows(self, tool_name: str) -> bool:
        return is_tool_allowed(tool_name, self.allowed_tools)


def is_tool_allowed(tool_name: str, allowed_tools: Sequence[str]) -> bool:
    if "*" in allowed_tools:
        return True
    return tool_name in allowed_tools
