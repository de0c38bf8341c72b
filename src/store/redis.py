"""
Redis-backed delayed store.

Key layout (relative to the namespace):
- ``delayed:<timestamp>``: list of encoded jobs due at that timestamp
- ``delayed_queue_schedule``: sorted set of non-empty bucket timestamps
- ``timestamps:<encoded job>``: set of ``delayed:<timestamp>`` bucket keys
- ``delayed:last_enqueued_at``: hash of job name -> last enqueue time
- ``queue:<name>`` / ``queues``: live queues fed by the dispatcher

Connection errors from redis-py are deliberately not caught here.
"""

import logging
from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import asynccontextmanager

from redis.asyncio import Redis
from redis.asyncio.client import Pipeline
from redis.exceptions import WatchError

from src.constants import (
    BUCKET_KEY_PREFIX,
    LAST_ENQUEUED_AT_KEY,
    QUEUE_KEY_PREFIX,
    QUEUES_KEY,
    REVERSE_INDEX_KEY_PREFIX,
    SCHEDULE_INDEX_KEY,
)
from src.errors import TransactionAbortedError
from src.store.base import BucketTransaction, DelayedStore

logger = logging.getLogger(__name__)


def bucket_member(timestamp: int) -> str:
    """Bucket key as stored inside reverse index sets (never namespaced)."""
    return f"{BUCKET_KEY_PREFIX}{int(timestamp)}"


def parse_bucket_member(member: str) -> int:
    """Inverse of ``bucket_member``."""
    return int(member[len(BUCKET_KEY_PREFIX):])


def _stop(start: int, count: int) -> int:
    return -1 if count < 0 else start + count - 1


class RedisBucketTransaction(BucketTransaction):
    """WATCH/MULTI/EXEC transaction over one bucket key."""

    def __init__(self, pipe: Pipeline, bucket_key: str, schedule_key: str, timestamp: int):
        self._pipe = pipe
        self._bucket_key = bucket_key
        self._schedule_key = schedule_key
        self._timestamp = timestamp

    async def size(self) -> int:
        # Immediate mode: the pipeline is watching, commands run right away
        return int(await self._pipe.llen(self._bucket_key))

    async def delete(self) -> None:
        self._pipe.multi()
        self._pipe.delete(self._bucket_key)
        self._pipe.zrem(self._schedule_key, self._timestamp)
        try:
            await self._pipe.execute()
        except WatchError as e:
            logger.debug(
                "Watched bucket changed, aborting cleanup",
                extra={"timestamp": self._timestamp},
            )
            raise TransactionAbortedError(
                f"Bucket {self._timestamp} changed while watched"
            ) from e


class RedisDelayedStore(DelayedStore):
    """
    Delayed store over a shared Redis instance.

    Any number of processes may use the same keys concurrently; all
    coordination relies on Redis' atomic commands and WATCH.
    """

    def __init__(self, redis: Redis, namespace: str = ""):
        """
        Initialize the store.

        Args:
            redis: An async Redis client created with ``decode_responses=True``.
            namespace: Prefix for every key, without the trailing colon.
        """
        self._redis = redis
        self._namespace = namespace

    @property
    def namespace(self) -> str:
        return self._namespace

    def _key(self, name: str) -> str:
        return f"{self._namespace}:{name}" if self._namespace else name

    def _bucket_key(self, timestamp: int) -> str:
        return self._key(bucket_member(timestamp))

    def _reverse_key(self, item: str) -> str:
        return self._key(f"{REVERSE_INDEX_KEY_PREFIX}{item}")

    @property
    def _schedule_key(self) -> str:
        return self._key(SCHEDULE_INDEX_KEY)

    async def push(self, timestamp: int, item: str) -> None:
        await self._redis.rpush(self._bucket_key(timestamp), item)

    async def pop_front(self, timestamp: int) -> str | None:
        return await self._redis.lpop(self._bucket_key(timestamp))

    async def range(self, timestamp: int, start: int, count: int) -> list[str]:
        if count == 0:
            return []
        return await self._redis.lrange(
            self._bucket_key(timestamp), start, _stop(start, count)
        )

    async def remove_all(self, timestamp: int, item: str) -> int:
        return int(await self._redis.lrem(self._bucket_key(timestamp), 0, item))

    async def remove_one(self, timestamp: int, item: str) -> int:
        return int(await self._redis.lrem(self._bucket_key(timestamp), 1, item))

    async def contains(self, timestamp: int, item: str) -> bool:
        position = await self._redis.lpos(self._bucket_key(timestamp), item)
        return position is not None

    async def size(self, timestamp: int) -> int:
        return int(await self._redis.llen(self._bucket_key(timestamp)))

    async def delete_buckets(self, timestamps: Iterable[int]) -> None:
        keys = [self._bucket_key(timestamp) for timestamp in timestamps]
        if keys:
            await self._redis.delete(*keys)

    async def fetch_buckets(self, timestamps: Sequence[int]) -> list[list[str]]:
        if not timestamps:
            return []
        async with self._redis.pipeline(transaction=False) as pipe:
            for timestamp in timestamps:
                pipe.lrange(self._bucket_key(timestamp), 0, -1)
            return await pipe.execute()

    async def bucket_sizes(self, timestamps: Sequence[int]) -> list[int]:
        if not timestamps:
            return []
        async with self._redis.pipeline(transaction=False) as pipe:
            for timestamp in timestamps:
                pipe.llen(self._bucket_key(timestamp))
            return [int(size) for size in await pipe.execute()]

    @asynccontextmanager
    async def watch_bucket(self, timestamp: int) -> AsyncIterator[BucketTransaction]:
        bucket_key = self._bucket_key(timestamp)
        async with self._redis.pipeline(transaction=True) as pipe:
            await pipe.watch(bucket_key)
            # Leaving the block resets the pipeline, which also unwatches
            yield RedisBucketTransaction(pipe, bucket_key, self._schedule_key, timestamp)

    async def index_add(self, timestamp: int) -> None:
        # Score and member are both the timestamp
        await self._redis.zadd(self._schedule_key, {str(int(timestamp)): int(timestamp)})

    async def index_remove(self, timestamp: int) -> None:
        await self._redis.zrem(self._schedule_key, str(int(timestamp)))

    async def peek_range(self, start: int, count: int) -> list[int]:
        if count == 0:
            return []
        members = await self._redis.zrange(self._schedule_key, start, _stop(start, count))
        return [int(member) for member in members]

    async def first_in_range(self, lo: int | None, hi: int | None) -> int | None:
        members = await self._redis.zrangebyscore(
            self._schedule_key,
            "-inf" if lo is None else int(lo),
            "+inf" if hi is None else int(hi),
            start=0,
            num=1,
        )
        return int(members[0]) if members else None

    async def index_size(self) -> int:
        return int(await self._redis.zcard(self._schedule_key))

    async def clear_index(self) -> None:
        await self._redis.delete(self._schedule_key)

    async def link(self, item: str, timestamp: int) -> None:
        await self._redis.sadd(self._reverse_key(item), bucket_member(timestamp))

    async def unlink(self, item: str, timestamp: int) -> None:
        await self._redis.srem(self._reverse_key(item), bucket_member(timestamp))

    async def lookup(self, item: str) -> set[int]:
        members = await self._redis.smembers(self._reverse_key(item))
        return {parse_bucket_member(member) for member in members}

    async def drop_links(self, items: Iterable[str]) -> None:
        keys = {self._reverse_key(item) for item in items}
        if keys:
            await self._redis.delete(*keys)

    async def purge(self, item: str) -> int:
        reverse_key = self._reverse_key(item)
        members = await self._redis.smembers(reverse_key)
        if not members:
            return 0

        async with self._redis.pipeline(transaction=False) as pipe:
            for member in members:
                pipe.lrem(self._key(member), 0, item)
                pipe.srem(reverse_key, member)
            replies = await pipe.execute()

        # Replies alternate LREM count, SREM count
        return sum(int(count) for count in replies[0::2])

    async def set_last_enqueued_at(self, job_name: str, value: str) -> None:
        await self._redis.hset(self._key(LAST_ENQUEUED_AT_KEY), job_name, value)

    async def get_last_enqueued_at(self, job_name: str) -> str | None:
        return await self._redis.hget(self._key(LAST_ENQUEUED_AT_KEY), job_name)

    async def enqueue(self, queue: str, payload: str) -> None:
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.sadd(self._key(QUEUES_KEY), queue)
            pipe.rpush(self._key(f"{QUEUE_KEY_PREFIX}{queue}"), payload)
            await pipe.execute()

    async def ping(self) -> bool:
        return bool(await self._redis.ping())
