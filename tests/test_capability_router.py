from __future__ import annotations

import pytest

from cadence.backends.scripted import ScriptedBackend
from cadence.errors import UnknownCapabilityError
from cadence.routing.aliases import DeprecationNotifier
from cadence.routing.router import CapabilityRouter
from cadence.types import CapabilityTag, ErrorSignal, IntentSignal, TextSignal


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class ExplodingBackend(ScriptedBackend):
    async def complete(self, messages, options):  # type: ignore[override]
        raise ConnectionError("classifier offline")


UNMATCHED = "xyzzy frobnicator blorb"


@pytest.mark.asyncio
async def test_keyword_match_routes_fast_with_boost() -> None:
    result = await CapabilityRouter().route("review this code")

    assert result.capability == CapabilityTag.CODE_REVIEW
    assert result.tier == "fast"
    assert result.confidence == pytest.approx(0.9)
    assert result.agent_id == "senior-engineer"
    assert result.narration == "Treating this as code-review using senior-engineer. Starting."


@pytest.mark.asyncio
async def test_pattern_match_without_keyword_uses_signal_confidence() -> None:
    result = await CapabilityRouter().route("show me the dashboard numbers")

    assert result.capability == CapabilityTag.DATA_ANALYSIS
    assert result.confidence == pytest.approx(0.80)
    assert result.tier == "fast"


@pytest.mark.asyncio
async def test_unmatched_input_without_backend_falls_back_to_general() -> None:
    result = await CapabilityRouter().route(UNMATCHED)

    assert result.capability == CapabilityTag.GENERAL
    assert result.confidence == 0.5
    assert result.tier == "llm"
    assert result.agent_id == "default"


@pytest.mark.asyncio
async def test_match_below_threshold_goes_to_tier_two() -> None:
    router = CapabilityRouter(threshold=0.95)

    result = await router.route("refactor this module")

    assert result.capability == CapabilityTag.GENERAL
    assert result.tier == "llm"
    assert router.threshold == 0.95


@pytest.mark.asyncio
async def test_custom_signals_are_checked_first() -> None:
    router = CapabilityRouter()
    router.register_signals(
        [IntentSignal(pattern="frobnicator", capability=CapabilityTag.BRAINSTORM, confidence=0.95)]
    )

    result = await router.route(UNMATCHED)

    assert result.capability == CapabilityTag.BRAINSTORM
    assert result.confidence == pytest.approx(0.95)
    assert result.tier == "fast"
    assert result.agent_id == "facilitator"


@pytest.mark.asyncio
async def test_equal_confidence_keeps_earlier_signal() -> None:
    router = CapabilityRouter()
    router.register_signals(
        [
            IntentSignal(pattern="plugh", capability=CapabilityTag.REFACTOR, confidence=0.9),
            IntentSignal(pattern="plugh", capability=CapabilityTag.DEBUG, confidence=0.9),
        ]
    )

    result = await router.route("plugh")

    assert result.capability == CapabilityTag.REFACTOR


@pytest.mark.asyncio
async def test_invalid_custom_pattern_is_skipped() -> None:
    router = CapabilityRouter()
    router.register_signals([IntentSignal(pattern="([unclosed", capability=CapabilityTag.DEBUG, confidence=0.99)])

    result = await router.route("review this code")

    assert result.capability == CapabilityTag.CODE_REVIEW


def test_routing_table_is_a_copy() -> None:
    router = CapabilityRouter()

    table = router.routing_table()
    table[CapabilityTag.DEBUG] = "someone-else"

    assert router.routing_table()[CapabilityTag.DEBUG] == "debugger"
    assert set(router.routing_table()) == set(CapabilityTag)


@pytest.mark.asyncio
async def test_capability_overrides_replace_agent() -> None:
    router = CapabilityRouter(capability_overrides={"debug": "my-debugger"})

    result = await router.route("debug this crash")

    assert result.agent_id == "my-debugger"
    assert result.narration == "Treating this as debug using my-debugger. Starting."


def test_unknown_override_capability_is_rejected() -> None:
    with pytest.raises(UnknownCapabilityError, match="astrology"):
        CapabilityRouter(capability_overrides={"astrology": "oracle"})


@pytest.mark.asyncio
async def test_backend_classification_is_used_and_cached() -> None:
    backend = ScriptedBackend([TextSignal(content='Sure: {"capability": "debug", "confidence": 0.9}')])
    router = CapabilityRouter(backend, classifier_model="tiny")

    first = await router.route(UNMATCHED)
    second = await router.route(f"  {UNMATCHED.upper()} ")

    assert first.capability == CapabilityTag.DEBUG
    assert first.tier == "llm"
    assert first.confidence == pytest.approx(0.9)
    assert second == first
    assert len(backend.calls) == 1
    messages, options = backend.calls[0]
    assert options.model == "tiny"
    assert options.max_tokens == 100
    assert options.temperature == 0
    assert UNMATCHED in messages[0].content


@pytest.mark.asyncio
async def test_cache_entries_expire() -> None:
    clock = FakeClock()
    backend = ScriptedBackend(
        [
            TextSignal(content='{"capability": "debug", "confidence": 0.9}'),
            TextSignal(content='{"capability": "brainstorm", "confidence": 0.8}'),
        ]
    )
    router = CapabilityRouter(backend, cache_ttl_seconds=300, clock=clock)

    first = await router.route(UNMATCHED)
    clock.now += 301
    second = await router.route(UNMATCHED)

    assert first.capability == CapabilityTag.DEBUG
    assert second.capability == CapabilityTag.BRAINSTORM
    assert len(backend.calls) == 2


@pytest.mark.asyncio
async def test_classifier_confidence_is_clamped() -> None:
    backend = ScriptedBackend([TextSignal(content='{"capability": "debug", "confidence": 1.7}')])
    result = await CapabilityRouter(backend).route(UNMATCHED)
    assert result.confidence == 1.0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "signal",
    [
        TextSignal(content="I think it is about debugging"),
        TextSignal(content='{"capability": "astrology", "confidence": 0.9}'),
        TextSignal(content='{"capability": "debug", "confidence": "high"}'),
        ErrorSignal(code="overloaded", message="busy", retryable=True),
    ],
)
async def test_unusable_classification_falls_back(signal) -> None:
    result = await CapabilityRouter(ScriptedBackend([signal])).route(UNMATCHED)

    assert result.capability == CapabilityTag.GENERAL
    assert result.confidence == 0.5
    assert result.tier == "llm"


@pytest.mark.asyncio
async def test_classifier_exception_falls_back() -> None:
    result = await CapabilityRouter(ExplodingBackend()).route(UNMATCHED)
    assert result.capability == CapabilityTag.GENERAL


@pytest.mark.asyncio
async def test_compat_mode_resolves_legacy_alias_and_warns_once() -> None:
    notifier = DeprecationNotifier()
    router = CapabilityRouter(compat_mode=True, notifier=notifier)

    first = await router.route("/wicked-engineering:debug")
    assert notifier.fired
    second = await router.route("/wicked-jam:brainstorm")

    assert first.capability == CapabilityTag.DEBUG
    assert first.confidence == 1.0
    assert first.tier == "fast"
    assert second.capability == CapabilityTag.BRAINSTORM
    assert notifier.notify() is False


@pytest.mark.asyncio
async def test_aliases_ignored_without_compat_mode() -> None:
    notifier = DeprecationNotifier()
    router = CapabilityRouter(notifier=notifier)

    result = await router.route("/wicked-mem:store")

    assert result.capability != CapabilityTag.MEMORY_STORE
    assert not notifier.fired
