"""
Scheduler exception hierarchy.

Redis connectivity failures (``redis.exceptions.ConnectionError`` and
``redis.exceptions.TimeoutError``) are never wrapped: they propagate to the
caller unchanged.
"""


class SchedulerError(Exception):
    """Base class for all scheduler errors."""


class InvalidArgumentError(SchedulerError, ValueError):
    """
    The caller supplied an argument the scheduler cannot accept.

    Examples: a non-numeric delay, a missing predicate, a blank class name,
    job arguments that cannot be canonically encoded.
    """


class StoreUnavailableError(SchedulerError, ConnectionError):
    """Raised by the in-memory store when it has been taken offline."""


class TransactionAbortedError(SchedulerError):
    """
    A guarded transaction lost its race.

    Another writer touched the watched key between observation and commit.
    The engine absorbs this error; it is never surfaced to callers.
    """
