"""Two-tier capability routing for free-text user input."""

from __future__ import annotations

import json
import re
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from loguru import logger

from cadence.backends.base import ModelBackend
from cadence.errors import UnknownCapabilityError
from cadence.routing.aliases import DeprecationNotifier, resolve_alias
from cadence.routing.signals import (
    BUILTIN_SIGNALS,
    CONFIDENCE_THRESHOLD,
    DEFAULT_AGENT_ID,
    DEFAULT_CAPABILITY_MAP,
    FALLBACK_CONFIDENCE,
    KEYWORD_CONFIDENCE_BOOST,
)
from cadence.types import (
    CapabilityTag,
    IntentSignal,
    Message,
    RequestOptions,
    RoutingResult,
    RoutingTier,
    TextSignal,
)

CLASSIFIER_MAX_TOKENS = 100
DEFAULT_CACHE_TTL_SECONDS = 300.0
JSON_OBJECT_RE = re.compile(r"\{[^}]+\}")


@dataclass(frozen=True)
class _TierOneMatch:
    capability: CapabilityTag
    confidence: float


@dataclass(frozen=True)
class _CacheEntry:
    result: RoutingResult
    expires_at: float


class CapabilityRouter:
    """Classifies one utterance into a capability tag and a target agent.

    Tier 1 matches registered :class:`IntentSignal` keywords and regex
    patterns. Tier 2 runs only when no tier-1 match reaches the confidence
    threshold: it asks the configured backend to classify, or falls back to
    ``general`` when there is none. Tier-2 answers are cached per input.
    """

    def __init__(
        self,
        backend: ModelBackend | None = None,
        *,
        classifier_model: str | None = None,
        capability_overrides: Mapping[str, str] | None = None,
        threshold: float = CONFIDENCE_THRESHOLD,
        cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        compat_mode: bool = False,
        aliases: Mapping[str, CapabilityTag] | None = None,
        notifier: DeprecationNotifier | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._backend = backend
        self._classifier_model = classifier_model
        self._threshold = threshold
        self._cache_ttl_seconds = cache_ttl_seconds
        self._compat_mode = compat_mode
        self._aliases = dict(aliases or {})
        self._notifier = notifier or DeprecationNotifier()
        self._clock = clock
        self._signals: list[IntentSignal] = list(BUILTIN_SIGNALS)
        self._routing_table: dict[CapabilityTag, str] = dict(DEFAULT_CAPABILITY_MAP)
        self._routing_table.update(_normalize_overrides(capability_overrides or {}))
        self._cache: dict[str, _CacheEntry] = {}

    @property
    def threshold(self) -> float:
        return self._threshold

    def register_signals(self, signals: Iterable[IntentSignal]) -> None:
        """Add custom signals. They are checked before every existing signal."""
        self._signals = [*signals, *self._signals]

    def routing_table(self) -> dict[CapabilityTag, str]:
        return dict(self._routing_table)

    async def route(self, text: str) -> RoutingResult:
        if self._compat_mode and (alias := resolve_alias(text, self._aliases)) is not None:
            self._notifier.notify()
            return self._result(alias.capability, 1.0, "fast", reason=f"alias {alias.original}")

        match = self._run_tier_one(text)
        if match is not None and match.confidence >= self._threshold:
            return self._result(match.capability, match.confidence, "fast")

        if self._backend is None:
            return self._fallback()

        cache_key = text.strip().lower()
        now = self._clock()
        cached = self._cache.get(cache_key)
        if cached is not None and now < cached.expires_at:
            logger.debug("router.cache.hit key={}", cache_key)
            return cached.result

        result = await self._run_tier_two(text)
        self._cache[cache_key] = _CacheEntry(result=result, expires_at=now + self._cache_ttl_seconds)
        self._evict_expired(now)
        return result

    def _run_tier_one(self, text: str) -> _TierOneMatch | None:
        normalized = text.lower()
        best: _TierOneMatch | None = None
        for signal in self._signals:
            confidence = _match_signal(signal, normalized)
            if confidence is None:
                continue
            if best is None or confidence > best.confidence:
                best = _TierOneMatch(capability=signal.capability, confidence=confidence)
        return best

    async def _run_tier_two(self, text: str) -> RoutingResult:
        assert self._backend is not None
        prompt = self._classification_prompt(text)
        options = RequestOptions(
            model=self._classifier_model or "default",
            max_tokens=CLASSIFIER_MAX_TOKENS,
            temperature=0,
            stream=False,
        )
        try:
            signal = await self._backend.complete([Message(role="user", content=prompt)], options)
        except Exception:
            logger.exception("router.classify.error")
            return self._fallback()

        if isinstance(signal, TextSignal) and (parsed := self._parse_classification(signal.content)) is not None:
            return self._result(parsed.capability, parsed.confidence, "llm")
        logger.warning("router.classify.unusable signal={}", type(signal).__name__)
        return self._fallback()

    def _classification_prompt(self, text: str) -> str:
        capability_list = ", ".join(tag.value for tag in self._routing_table)
        return (
            f"Classify the following user input into EXACTLY ONE capability tag from this list: {capability_list}.\n\n"
            f'User input: "{text}"\n\n'
            "Respond with valid JSON in this exact format:\n"
            '{"capability": "<tag>", "confidence": <0.0-1.0>}\n\n'
            "Rules:\n"
            "- capability must be one of the listed tags\n"
            "- confidence must be a number between 0 and 1\n"
            '- If unclear, use "general" with confidence 0.5'
        )

    def _parse_classification(self, text: str) -> _TierOneMatch | None:
        found = JSON_OBJECT_RE.search(text)
        if found is None:
            return None
        try:
            parsed: Any = json.loads(found.group(0))
        except json.JSONDecodeError:
            return None
        if not isinstance(parsed, dict):
            return None
        capability = parsed.get("capability")
        confidence = parsed.get("confidence")
        if not isinstance(capability, str) or isinstance(confidence, bool) or not isinstance(confidence, int | float):
            return None
        try:
            tag = CapabilityTag(capability)
        except ValueError:
            return None
        if tag not in self._routing_table:
            return None
        return _TierOneMatch(capability=tag, confidence=max(0.0, min(1.0, float(confidence))))

    def _fallback(self) -> RoutingResult:
        return self._result(CapabilityTag.GENERAL, FALLBACK_CONFIDENCE, "llm")

    def _result(
        self,
        capability: CapabilityTag,
        confidence: float,
        tier: RoutingTier,
        *,
        reason: str | None = None,
    ) -> RoutingResult:
        agent_id = self._routing_table.get(capability) or DEFAULT_AGENT_ID
        logger.info(
            "router.route capability={} tier={} confidence={:.2f} agent={}{}",
            capability.value,
            tier,
            confidence,
            agent_id,
            f" reason={reason}" if reason else "",
        )
        return RoutingResult(
            capability=capability,
            confidence=confidence,
            tier=tier,
            agent_id=agent_id,
            narration=f"Treating this as {capability.value} using {agent_id}. Starting.",
        )

    def _evict_expired(self, now: float) -> None:
        expired = [key for key, entry in self._cache.items() if now >= entry.expires_at]
        for key in expired:
            del self._cache[key]


def _match_signal(signal: IntentSignal, normalized: str) -> float | None:
    for keyword in signal.keywords:
        if keyword.lower() in normalized:
            return min(1.0, signal.confidence + KEYWORD_CONFIDENCE_BOOST)
    try:
        if re.search(signal.pattern, normalized, re.IGNORECASE):
            return signal.confidence
    except re.error:
        logger.warning("router.signal.bad_pattern pattern={} capability={}", signal.pattern, signal.capability.value)
    return None


def _normalize_overrides(overrides: Mapping[str, str]) -> dict[CapabilityTag, str]:
    normalized: dict[CapabilityTag, str] = {}
    for capability, agent_id in overrides.items():
        try:
            normalized[CapabilityTag(capability)] = agent_id
        except ValueError as exc:
            raise UnknownCapabilityError(f"Unknown capability in routing overrides: {capability}") from exc
    return normalized
