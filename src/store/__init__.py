"""
Store module.
Contains the delayed store abstraction and its Redis and in-memory implementations.
"""

from src.store.base import BucketTransaction, DelayedStore
from src.store.connection import close_redis, get_redis, get_store, init_redis
from src.store.memory import InMemoryDelayedStore
from src.store.redis import RedisDelayedStore

__all__ = [
    "BucketTransaction",
    "DelayedStore",
    "InMemoryDelayedStore",
    "RedisDelayedStore",
    "get_redis",
    "get_store",
    "init_redis",
    "close_redis",
]
