"""
FastAPI dependencies for store and scheduler access.
"""

from typing import Annotated

from fastapi import Depends

from src.scheduler import DelayedQueue, SchedulerClient
from src.store import DelayedStore, get_store


def get_delayed_store() -> DelayedStore:
    """
    Dependency for the shared delayed store.

    Tests override this to run the API against the in-memory store.
    """
    return get_store()


def get_scheduler_client(
    store: Annotated[DelayedStore, Depends(get_delayed_store)],
) -> SchedulerClient:
    """Dependency for a scheduler client over the delayed store."""
    return SchedulerClient(DelayedQueue(store))


Store = Annotated[DelayedStore, Depends(get_delayed_store)]
Scheduler = Annotated[SchedulerClient, Depends(get_scheduler_client)]
