"""
Job-related type definitions for internal use.

A delayed job is identified by its canonical encoding: two descriptors are
the same job iff their encodings are byte-equal. All encoding happens in
``JobDescriptor.encode`` so every writer produces identical bytes for
identical jobs.
"""

import json
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.errors import InvalidArgumentError


class JobDescriptor(BaseModel):
    """
    A job waiting in the delayed queue.

    Serialized as ``{"args": [...], "class": "...", "queue": "..."}`` with
    sorted keys and compact separators.

    Frozen against reassignment only: ``args`` stays a list, so descriptors
    are not hashable. Key sets and dicts on ``encode()`` instead.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    class_name: str = Field(alias="class")
    args: list[Any] = Field(default_factory=list)
    queue: str

    def to_payload(self) -> dict[str, Any]:
        """Return the job as the plain mapping stored in Redis."""
        return {"class": self.class_name, "args": list(self.args), "queue": self.queue}

    def encode(self) -> str:
        """
        Encode the job canonically.

        Raises:
            InvalidArgumentError: If the arguments are not JSON encodable
                or contain NaN/Infinity.
        """
        try:
            return json.dumps(
                self.to_payload(),
                sort_keys=True,
                separators=(",", ":"),
                ensure_ascii=True,
                allow_nan=False,
            )
        except (TypeError, ValueError) as e:
            raise InvalidArgumentError(
                f"Job arguments for {self.class_name} cannot be encoded: {e}"
            ) from e

    @classmethod
    def decode(cls, encoded: str | bytes) -> "JobDescriptor":
        """
        Decode a stored job.

        Raises:
            InvalidArgumentError: If the payload is not a valid job.
        """
        try:
            payload = json.loads(encoded)
            return cls.model_validate(payload)
        except (ValueError, TypeError, ValidationError) as e:
            raise InvalidArgumentError(f"Undecodable job payload: {encoded!r}") from e


@dataclass(frozen=True)
class ScheduledJob:
    """
    One occurrence of a job in one bucket.

    Returned by searches so callers can remove exactly this copy.
    """

    timestamp: int
    encoded: str
    job: JobDescriptor


def to_timestamp(value: Any) -> int:
    """
    Coerce a scheduling time into whole epoch seconds.

    Accepts ints, floats (truncated) and datetimes (naive values are UTC).

    Raises:
        InvalidArgumentError: For NaN, infinities and any other type.
    """
    if isinstance(value, bool):
        raise InvalidArgumentError("Please supply a numeric timestamp or datetime")
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp())
    if isinstance(value, float) and not math.isfinite(value):
        raise InvalidArgumentError(f"Timestamp must be finite, got {value}")
    if isinstance(value, (int, float)):
        return int(value)
    raise InvalidArgumentError("Please supply a numeric timestamp or datetime")
