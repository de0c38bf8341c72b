"""
Per-job-class extension registry.

Holds, keyed by class name:
- the queue a class is routed to when no queue is given explicitly
- before/after schedule hooks
- custom schedulers that take over immediate execution

Everything is resolved from the registry; job classes are never inspected
at call time.
"""

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from src.config import get_settings
from src.errors import InvalidArgumentError

logger = logging.getLogger(__name__)

# Hooks may be plain functions or coroutines. A before hook returning False
# rejects scheduling; any other return value lets it proceed.
ScheduleHook = Callable[[str, list[Any]], bool | None | Awaitable[bool | None]]


class CustomScheduler(Protocol):
    """A job class that runs itself when scheduled for the past or inline."""

    async def scheduled(self, queue: str, class_name: str, args: list[Any]) -> None:
        ...


class SchedulerRegistry:
    """Registry of queue routes, schedule hooks and custom schedulers."""

    def __init__(self, default_queue: str | None = None):
        """
        Initialize the registry.

        Args:
            default_queue: Queue used for classes without an explicit route.
        """
        self.default_queue = default_queue
        self._queues: dict[str, str] = {}
        self._before_hooks: dict[str, list[ScheduleHook]] = {}
        self._after_hooks: dict[str, list[ScheduleHook]] = {}
        self._custom_schedulers: dict[str, CustomScheduler] = {}

    def register_queue(self, class_name: str, queue: str) -> None:
        """Route a job class to a queue."""
        if not queue:
            raise InvalidArgumentError(f"Queue for {class_name} must not be blank")
        self._queues[class_name] = queue

    def queue_for(self, class_name: str) -> str:
        """
        Resolve the queue for a job class.

        Raises:
            InvalidArgumentError: If the class has no route and there is no default.
        """
        queue = self._queues.get(class_name, self.default_queue)
        if not queue:
            raise InvalidArgumentError(f"Jobs must be placed onto a queue: {class_name}")
        return queue

    def before_schedule(self, class_name: str) -> Callable[[ScheduleHook], ScheduleHook]:
        """
        Decorator to register a before-schedule hook.

        Example:
            @registry.before_schedule("SendFollowUpEmail")
            def only_active_accounts(class_name, args):
                return args[0]["active"]
        """
        def decorator(hook: ScheduleHook) -> ScheduleHook:
            self._before_hooks.setdefault(class_name, []).append(hook)
            logger.info(f"Registered before_schedule hook for job class: {class_name}")
            return hook
        return decorator

    def after_schedule(self, class_name: str) -> Callable[[ScheduleHook], ScheduleHook]:
        """Decorator to register an after-schedule hook."""
        def decorator(hook: ScheduleHook) -> ScheduleHook:
            self._after_hooks.setdefault(class_name, []).append(hook)
            logger.info(f"Registered after_schedule hook for job class: {class_name}")
            return hook
        return decorator

    def register_custom_scheduler(self, class_name: str, scheduler: CustomScheduler) -> None:
        """Let ``scheduler`` run ``class_name`` jobs that are due immediately."""
        self._custom_schedulers[class_name] = scheduler

    def custom_scheduler_for(self, class_name: str) -> CustomScheduler | None:
        return self._custom_schedulers.get(class_name)

    async def run_before_schedule_hooks(self, class_name: str, args: list[Any]) -> bool:
        """
        Run every before hook for a class.

        Returns:
            False if any hook rejected scheduling.
        """
        for hook in self._before_hooks.get(class_name, []):
            if await _call(hook, class_name, args) is False:
                return False
        return True

    async def run_after_schedule_hooks(self, class_name: str, args: list[Any]) -> None:
        """Run every after hook for a class."""
        for hook in self._after_hooks.get(class_name, []):
            await _call(hook, class_name, args)


async def _call(hook: ScheduleHook, class_name: str, args: list[Any]) -> Any:
    result = hook(class_name, list(args))
    if inspect.isawaitable(result):
        result = await result
    return result


# Global registry instance
_registry: SchedulerRegistry | None = None


def get_registry() -> SchedulerRegistry:
    """Get or create the process-wide registry."""
    global _registry
    if _registry is None:
        _registry = SchedulerRegistry(default_queue=get_settings().scheduler_default_queue)
    return _registry


def register_queue(class_name: str, queue: str) -> None:
    """Route a job class to a queue in the global registry."""
    get_registry().register_queue(class_name, queue)


def before_schedule(class_name: str) -> Callable[[ScheduleHook], ScheduleHook]:
    """Register a before-schedule hook in the global registry."""
    return get_registry().before_schedule(class_name)


def after_schedule(class_name: str) -> Callable[[ScheduleHook], ScheduleHook]:
    """Register an after-schedule hook in the global registry."""
    return get_registry().after_schedule(class_name)


def register_custom_scheduler(class_name: str, scheduler: CustomScheduler) -> None:
    """Register a custom scheduler in the global registry."""
    get_registry().register_custom_scheduler(class_name, scheduler)
