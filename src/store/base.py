"""
Store abstraction for the delayed queue.

The engine never talks to Redis directly. It depends on the capability set
below: ordered-sequence operations for buckets, sorted-index operations for
the schedule, set operations for the reverse index, grouped reads, and an
optimistic guarded transaction for bucket cleanup.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from contextlib import AbstractAsyncContextManager


class BucketTransaction(ABC):
    """
    An optimistic transaction watching a single bucket.

    ``delete`` commits only if nobody wrote to the bucket since the watch
    began, otherwise it raises ``TransactionAbortedError``.
    """

    @abstractmethod
    async def size(self) -> int:
        """Read the bucket length inside the watch."""

    @abstractmethod
    async def delete(self) -> None:
        """Delete the bucket and its schedule index entry atomically."""


class DelayedStore(ABC):
    """Capability set the delayed queue engine requires from its backing store."""

    # Bucket store

    @abstractmethod
    async def push(self, timestamp: int, item: str) -> None:
        """Append an item to the tail of a bucket, creating it if absent."""

    @abstractmethod
    async def pop_front(self, timestamp: int) -> str | None:
        """Remove and return the earliest item of a bucket."""

    @abstractmethod
    async def range(self, timestamp: int, start: int, count: int) -> list[str]:
        """Read ``count`` items from ``start`` without mutating (``count=-1`` for all)."""

    @abstractmethod
    async def remove_all(self, timestamp: int, item: str) -> int:
        """Delete every occurrence of ``item`` from a bucket."""

    @abstractmethod
    async def remove_one(self, timestamp: int, item: str) -> int:
        """Delete the earliest occurrence of ``item`` from a bucket."""

    @abstractmethod
    async def contains(self, timestamp: int, item: str) -> bool:
        """Check whether a bucket holds at least one copy of ``item``."""

    @abstractmethod
    async def size(self, timestamp: int) -> int:
        """Number of items in a bucket (0 when absent)."""

    @abstractmethod
    async def delete_buckets(self, timestamps: Iterable[int]) -> None:
        """Drop buckets outright."""

    @abstractmethod
    async def fetch_buckets(self, timestamps: Sequence[int]) -> list[list[str]]:
        """Read the full contents of several buckets in one round trip."""

    @abstractmethod
    async def bucket_sizes(self, timestamps: Sequence[int]) -> list[int]:
        """Read the sizes of several buckets in one round trip."""

    @abstractmethod
    def watch_bucket(self, timestamp: int) -> AbstractAsyncContextManager[BucketTransaction]:
        """Start a guarded transaction on a bucket."""

    # Schedule index

    @abstractmethod
    async def index_add(self, timestamp: int) -> None:
        """Add a timestamp to the schedule index (idempotent)."""

    @abstractmethod
    async def index_remove(self, timestamp: int) -> None:
        """Remove a timestamp from the schedule index."""

    @abstractmethod
    async def peek_range(self, start: int, count: int) -> list[int]:
        """Ascending timestamps from offset ``start`` (``count=-1`` for all)."""

    @abstractmethod
    async def first_in_range(self, lo: int | None, hi: int | None) -> int | None:
        """Smallest indexed timestamp with ``lo <= t <= hi``; ``None`` bounds are open."""

    @abstractmethod
    async def index_size(self) -> int:
        """Number of timestamps in the schedule index."""

    @abstractmethod
    async def clear_index(self) -> None:
        """Remove the schedule index entirely."""

    # Reverse index

    @abstractmethod
    async def link(self, item: str, timestamp: int) -> None:
        """Record that ``timestamp`` holds a copy of ``item`` (idempotent)."""

    @abstractmethod
    async def unlink(self, item: str, timestamp: int) -> None:
        """Forget that ``timestamp`` holds a copy of ``item``."""

    @abstractmethod
    async def lookup(self, item: str) -> set[int]:
        """Timestamps currently linked to ``item``."""

    @abstractmethod
    async def drop_links(self, items: Iterable[str]) -> None:
        """Delete the reverse index entries of several items."""

    @abstractmethod
    async def purge(self, item: str) -> int:
        """
        Remove every copy of ``item`` from every linked bucket.

        Unlinks each bucket as it goes and returns the number of copies
        removed. Emptied buckets are left in place.
        """

    # Bookkeeping and live queues

    @abstractmethod
    async def set_last_enqueued_at(self, job_name: str, value: str) -> None:
        """Record when a job was last moved to its live queue."""

    @abstractmethod
    async def get_last_enqueued_at(self, job_name: str) -> str | None:
        """Read the last-enqueued-at bookkeeping for a job."""

    @abstractmethod
    async def enqueue(self, queue: str, payload: str) -> None:
        """Push a payload onto a live queue, registering the queue name."""

    @abstractmethod
    async def ping(self) -> bool:
        """Check store connectivity."""
