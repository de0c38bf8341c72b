"""
Scheduler module.
Contains the delayed queue engine, the caller-facing client, the extension
registry, dispatch and the poller.
"""

from src.scheduler.client import SchedulerClient
from src.scheduler.dispatch import Dispatcher, QueueDispatcher
from src.scheduler.queue import DelayedQueue
from src.scheduler.registry import (
    CustomScheduler,
    SchedulerRegistry,
    after_schedule,
    before_schedule,
    get_registry,
    register_custom_scheduler,
    register_queue,
)

__all__ = [
    "DelayedQueue",
    "SchedulerClient",
    "Dispatcher",
    "QueueDispatcher",
    "SchedulerRegistry",
    "CustomScheduler",
    "get_registry",
    "register_queue",
    "before_schedule",
    "after_schedule",
    "register_custom_scheduler",
]
