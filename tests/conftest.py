from __future__ import annotations

import pytest

from cadence.config import Settings
from cadence.types import AgentConfig


@pytest.fixture
def settings() -> Settings:
    return Settings(retry_delays=(0.0, 0.0, 0.0), tool_timeout_seconds=1.0, max_context_tokens=10_000)


@pytest.fixture
def agent() -> AgentConfig:
    return AgentConfig(id="tester", system_prompt="You are a test agent.", max_turns=5)
