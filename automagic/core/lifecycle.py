# automagic/core/lifecycle.py
"""Ordered startup and shutdown of the daemon's long-lived parts.

Components start in registration order and stop in reverse, so the
single instance lock (registered first) is released only after the
scheduler loops have been cancelled.

Example:
    >>> lm = get_lifecycle_manager()
    >>> lm.register("single_instance_lock", lock)
    >>> lm.register("scheduler", get_task_scheduler())
    >>> await lm.startup()
    >>> # ... daemon runs ...
    >>> await lm.shutdown()
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

START_HOOKS = ("start", "startup")
STOP_HOOKS = ("shutdown", "stop")


@dataclass
class _Registration:
    name: str
    component: Any
    started: bool = False


def _find_hook(component: Any, names: tuple[str, ...]) -> Callable[[], Any] | None:
    for name in names:
        hook = getattr(component, name, None)
        if callable(hook):
            return hook
    return None


async def _invoke(hook: Callable[[], Any]) -> None:
    result = hook()
    if inspect.isawaitable(result):
        await result


class LifecycleManager:
    """Starts registered components and stops them in reverse order.

    A component may expose start()/startup() and shutdown()/stop(), either
    sync or async. Components without a start hook count as started as
    soon as startup() runs.
    """

    def __init__(self, stop_timeout: float = 10.0) -> None:
        """Initialize the manager.

        Args:
            stop_timeout: Seconds each component gets to stop.
        """
        self._registrations: list[_Registration] = []
        self._stop_timeout = stop_timeout

    def register(self, name: str, component: Any) -> None:
        """Register a component under a unique name.

        Raises:
            ValueError: If the name is already registered.
        """
        if any(r.name == name for r in self._registrations):
            raise ValueError(f"Lifecycle component {name!r} already registered")
        self._registrations.append(_Registration(name, component))
        logger.debug("Registered lifecycle component: %s", name)

    async def startup(self) -> None:
        """Start every component that is not running yet.

        If a component fails to start, the ones already started are
        stopped again and the error is re-raised.
        """
        for registration in self._registrations:
            if registration.started:
                continue
            hook = _find_hook(registration.component, START_HOOKS)
            logger.info("Starting %s", registration.name)
            try:
                if hook is not None:
                    await _invoke(hook)
            except Exception:
                logger.exception("Failed to start %s, rolling back", registration.name)
                await self.shutdown()
                raise
            registration.started = True

        logger.info("Daemon components started (%d total)", len(self._registrations))

    async def shutdown(self) -> None:
        """Stop started components, last registered first.

        Each stop is bounded by stop_timeout; a failing or hanging
        component is logged and the rest still stop.
        """
        for registration in reversed(self._registrations):
            if not registration.started:
                continue
            registration.started = False
            hook = _find_hook(registration.component, STOP_HOOKS)
            if hook is None:
                continue
            logger.info("Stopping %s", registration.name)
            try:
                await asyncio.wait_for(_invoke(hook), timeout=self._stop_timeout)
            except asyncio.TimeoutError:
                logger.error(
                    "%s did not stop within %.1fs", registration.name, self._stop_timeout
                )
            except Exception as e:
                logger.error("Error shutting down %s: %s", registration.name, e)

    @property
    def is_started(self) -> bool:
        return any(r.started for r in self._registrations)

    @property
    def component_names(self) -> list[str]:
        return [r.name for r in self._registrations]


_lifecycle_manager: LifecycleManager | None = None


def get_lifecycle_manager() -> LifecycleManager:
    """Get the process-wide lifecycle manager."""
    global _lifecycle_manager
    if _lifecycle_manager is None:
        _lifecycle_manager = LifecycleManager()
    return _lifecycle_manager


def reset_lifecycle_manager() -> None:
    """Drop the process-wide lifecycle manager (for testing)."""
    global _lifecycle_manager
    _lifecycle_manager = None
