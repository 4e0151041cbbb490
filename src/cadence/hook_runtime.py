"""Hook execution runtime with per-plugin fault isolation."""

from __future__ import annotations

import inspect
from collections.abc import Iterable
from typing import Any

import pluggy
from loguru import logger

from cadence.hookspecs import CADENCE_HOOK_NAMESPACE, CadenceHookSpecs
from cadence.runtime.state import TurnSnapshot


def create_plugin_manager(plugins: Iterable[object] = ()) -> pluggy.PluginManager:
    """Build a plugin manager with the cadence hook specs and register ``plugins``."""

    manager = pluggy.PluginManager(CADENCE_HOOK_NAMESPACE)
    manager.add_hookspecs(CadenceHookSpecs)
    for plugin in plugins:
        manager.register(plugin)
    return manager


class HookRuntime:
    """Safe wrapper around pluggy hook execution."""

    def __init__(self, plugin_manager: pluggy.PluginManager | None = None) -> None:
        self._plugin_manager = plugin_manager or create_plugin_manager()

    @property
    def plugin_manager(self) -> pluggy.PluginManager:
        return self._plugin_manager

    def register(self, plugin: object, name: str | None = None) -> None:
        self._plugin_manager.register(plugin, name=name)

    async def notify(self, hook_name: str, **kwargs: Any) -> None:
        """Run every implementation; a failing one is reported and skipped."""

        for impl in self._iter_hookimpls(hook_name):
            call_kwargs = self._kwargs_for_impl(impl, kwargs)
            try:
                value = impl.function(**call_kwargs)
                if inspect.isawaitable(value):
                    await value
            except Exception as error:
                await self.notify_error(
                    session_id=str(kwargs.get("session_id", "-")),
                    stage=f"{hook_name}:{impl.plugin_name or '<unknown>'}",
                    error=error,
                    snapshot=None,
                )

    def notify_sync(self, hook_name: str, **kwargs: Any) -> None:
        """Synchronous variant of notify for callbacks that cannot await."""

        for impl in self._iter_hookimpls(hook_name):
            call_kwargs = self._kwargs_for_impl(impl, kwargs)
            try:
                value = impl.function(**call_kwargs)
            except Exception:
                logger.opt(exception=True).warning(
                    "hook.failed hook={} adapter={}",
                    hook_name,
                    impl.plugin_name or "<unknown>",
                )
                continue
            if inspect.isawaitable(value):
                _discard(value)
                logger.warning(
                    "hook.async_not_supported hook={} adapter={}",
                    hook_name,
                    impl.plugin_name or "<unknown>",
                )

    async def notify_error(
        self,
        *,
        session_id: str,
        stage: str,
        error: Exception,
        snapshot: TurnSnapshot | None,
    ) -> None:
        """Call on_error hooks, swallowing observer failures."""

        logger.opt(exception=error).warning("hook.error stage={} session={}", stage, session_id)
        for impl in self._iter_hookimpls("on_error"):
            call_kwargs = self._kwargs_for_impl(
                impl,
                {"session_id": session_id, "stage": stage, "error": error, "snapshot": snapshot},
            )
            try:
                value = impl.function(**call_kwargs)
                if inspect.isawaitable(value):
                    await value
            except Exception:
                logger.opt(exception=True).warning(
                    "hook.on_error_failed stage={} adapter={}",
                    stage,
                    impl.plugin_name or "<unknown>",
                )

    def _iter_hookimpls(self, hook_name: str) -> list[Any]:
        hook = getattr(self._plugin_manager.hook, hook_name, None)
        if hook is None or not hasattr(hook, "get_hookimpls"):
            return []
        return list(reversed(hook.get_hookimpls()))

    @staticmethod
    def _kwargs_for_impl(impl: Any, kwargs: dict[str, Any]) -> dict[str, Any]:
        return {name: kwargs[name] for name in impl.argnames if name in kwargs}


def _discard(value: Any) -> None:
    close = getattr(value, "close", None)
    if callable(close):
        close()
