"""
In-memory delayed store for testing.

Mirrors the Redis store's semantics, including WATCH-style optimistic
transactions: every write to a bucket bumps its version, and a guarded
delete commits only if the version it observed is still current.
"""

import bisect
from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import asynccontextmanager

from src.errors import StoreUnavailableError, TransactionAbortedError
from src.store.base import BucketTransaction, DelayedStore


class InMemoryBucketTransaction(BucketTransaction):
    """Guarded transaction over one in-memory bucket."""

    def __init__(self, store: "InMemoryDelayedStore", timestamp: int):
        self._store = store
        self._timestamp = timestamp
        self._version = store._versions.get(timestamp, 0)

    async def size(self) -> int:
        return await self._store.size(self._timestamp)

    async def delete(self) -> None:
        self._store._check_online()
        if self._store._versions.get(self._timestamp, 0) != self._version:
            raise TransactionAbortedError(
                f"Bucket {self._timestamp} changed while watched"
            )
        self._store._delete_bucket(self._timestamp)
        self._store._index.discard(self._timestamp)


class InMemoryDelayedStore(DelayedStore):
    """In-memory implementation of the delayed store capability set."""

    def __init__(self):
        self._buckets: dict[int, list[str]] = {}
        self._versions: dict[int, int] = {}
        self._index: set[int] = set()
        self._reverse: dict[str, set[int]] = {}
        self._last_enqueued_at: dict[str, str] = {}
        self.queues: dict[str, list[str]] = {}
        self.online = True

    def _check_online(self) -> None:
        if not self.online:
            raise StoreUnavailableError("In-memory store is offline")

    def _touch(self, timestamp: int) -> None:
        self._versions[timestamp] = self._versions.get(timestamp, 0) + 1

    def _delete_bucket(self, timestamp: int) -> None:
        if self._buckets.pop(timestamp, None) is not None:
            self._touch(timestamp)

    def _prune(self, timestamp: int) -> None:
        # Redis deletes a list key once its last element is gone
        if not self._buckets.get(timestamp):
            self._buckets.pop(timestamp, None)

    def has_bucket(self, timestamp: int) -> bool:
        """Check whether a bucket key exists (test helper)."""
        return timestamp in self._buckets

    async def push(self, timestamp: int, item: str) -> None:
        self._check_online()
        self._buckets.setdefault(timestamp, []).append(item)
        self._touch(timestamp)

    async def pop_front(self, timestamp: int) -> str | None:
        self._check_online()
        items = self._buckets.get(timestamp)
        if not items:
            return None
        item = items.pop(0)
        self._touch(timestamp)
        self._prune(timestamp)
        return item

    async def range(self, timestamp: int, start: int, count: int) -> list[str]:
        self._check_online()
        items = self._buckets.get(timestamp, [])
        if count < 0:
            return list(items[start:])
        return list(items[start:start + count])

    async def remove_all(self, timestamp: int, item: str) -> int:
        self._check_online()
        items = self._buckets.get(timestamp, [])
        kept = [existing for existing in items if existing != item]
        removed = len(items) - len(kept)
        if removed:
            self._buckets[timestamp] = kept
            self._touch(timestamp)
            self._prune(timestamp)
        return removed

    async def remove_one(self, timestamp: int, item: str) -> int:
        self._check_online()
        items = self._buckets.get(timestamp, [])
        if item not in items:
            return 0
        items.remove(item)
        self._touch(timestamp)
        self._prune(timestamp)
        return 1

    async def contains(self, timestamp: int, item: str) -> bool:
        self._check_online()
        return item in self._buckets.get(timestamp, [])

    async def size(self, timestamp: int) -> int:
        self._check_online()
        return len(self._buckets.get(timestamp, []))

    async def delete_buckets(self, timestamps: Iterable[int]) -> None:
        self._check_online()
        for timestamp in timestamps:
            self._delete_bucket(timestamp)

    async def fetch_buckets(self, timestamps: Sequence[int]) -> list[list[str]]:
        self._check_online()
        return [list(self._buckets.get(timestamp, [])) for timestamp in timestamps]

    async def bucket_sizes(self, timestamps: Sequence[int]) -> list[int]:
        self._check_online()
        return [len(self._buckets.get(timestamp, [])) for timestamp in timestamps]

    @asynccontextmanager
    async def watch_bucket(self, timestamp: int) -> AsyncIterator[BucketTransaction]:
        self._check_online()
        yield InMemoryBucketTransaction(self, timestamp)

    async def index_add(self, timestamp: int) -> None:
        self._check_online()
        self._index.add(timestamp)

    async def index_remove(self, timestamp: int) -> None:
        self._check_online()
        self._index.discard(timestamp)

    async def peek_range(self, start: int, count: int) -> list[int]:
        self._check_online()
        ordered = sorted(self._index)
        if count < 0:
            return ordered[start:]
        return ordered[start:start + count]

    async def first_in_range(self, lo: int | None, hi: int | None) -> int | None:
        self._check_online()
        ordered = sorted(self._index)
        position = 0 if lo is None else bisect.bisect_left(ordered, lo)
        if position >= len(ordered):
            return None
        candidate = ordered[position]
        if hi is not None and candidate > hi:
            return None
        return candidate

    async def index_size(self) -> int:
        self._check_online()
        return len(self._index)

    async def clear_index(self) -> None:
        self._check_online()
        self._index.clear()

    async def link(self, item: str, timestamp: int) -> None:
        self._check_online()
        self._reverse.setdefault(item, set()).add(timestamp)

    async def unlink(self, item: str, timestamp: int) -> None:
        self._check_online()
        timestamps = self._reverse.get(item)
        if timestamps is None:
            return
        timestamps.discard(timestamp)
        if not timestamps:
            del self._reverse[item]

    async def lookup(self, item: str) -> set[int]:
        self._check_online()
        return set(self._reverse.get(item, set()))

    async def drop_links(self, items: Iterable[str]) -> None:
        self._check_online()
        for item in items:
            self._reverse.pop(item, None)

    async def purge(self, item: str) -> int:
        self._check_online()
        removed = 0
        for timestamp in sorted(self._reverse.get(item, set())):
            removed += await self.remove_all(timestamp, item)
            await self.unlink(item, timestamp)
        return removed

    async def set_last_enqueued_at(self, job_name: str, value: str) -> None:
        self._check_online()
        self._last_enqueued_at[job_name] = value

    async def get_last_enqueued_at(self, job_name: str) -> str | None:
        self._check_online()
        return self._last_enqueued_at.get(job_name)

    async def enqueue(self, queue: str, payload: str) -> None:
        self._check_online()
        self.queues.setdefault(queue, []).append(payload)

    async def ping(self) -> bool:
        return self.online
