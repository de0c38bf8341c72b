"""
Hand-off of due jobs to live execution.

The delayed queue never runs jobs itself. A due (or immediately runnable)
job is handed to a ``Dispatcher``; the default one pushes it onto the live
queue list that workers consume.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from src.store.base import DelayedStore

logger = logging.getLogger(__name__)


class Dispatcher(ABC):
    """Destination for jobs leaving the delayed queue."""

    @abstractmethod
    async def dispatch(self, queue: str, class_name: str, args: list[Any]) -> None:
        """Hand a due or popped job to live execution."""

    async def create_immediate(self, queue: str, class_name: str, args: list[Any]) -> None:
        """Run a job right away, bypassing the delayed queue."""
        await self.dispatch(queue, class_name, args)


class QueueDispatcher(Dispatcher):
    """
    Pushes jobs onto live queues kept in the delayed store.

    Payloads are ``{"class": ..., "args": [...]}`` appended to ``queue:<name>``.
    """

    def __init__(self, store: DelayedStore):
        self._store = store

    async def dispatch(self, queue: str, class_name: str, args: list[Any]) -> None:
        payload = json.dumps({"class": class_name, "args": list(args)}, separators=(",", ":"))
        await self._store.enqueue(queue, payload)

        logger.info(
            "Dispatched job to live queue",
            extra={"queue": queue, "class_name": class_name},
        )
