"""
API request and response type definitions.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from src.types.job import JobDescriptor


class ScheduleJobRequest(BaseModel):
    """Request body for scheduling a delayed job."""

    class_name: str = Field(..., min_length=1, description="Job class name")
    args: list[Any] = Field(default_factory=list, description="Job arguments")
    queue: str | None = Field(
        default=None, description="Target queue; routed by class name when omitted"
    )
    run_at: datetime | int | None = Field(
        default=None, description="Execution time (datetime or epoch seconds)"
    )
    delay_seconds: float | None = Field(
        default=None, ge=0, allow_inf_nan=False, description="Execution delay from now"
    )

    @model_validator(mode="after")
    def check_exactly_one_time(self) -> "ScheduleJobRequest":
        if (self.run_at is None) == (self.delay_seconds is None):
            raise ValueError("Provide exactly one of run_at or delay_seconds")
        return self


class ScheduleJobResponse(BaseModel):
    """Response body after scheduling a job."""

    scheduled: bool
    message: str


class JobReference(BaseModel):
    """Identifies a delayed job by class, arguments and optional queue."""

    class_name: str = Field(..., min_length=1)
    args: list[Any] = Field(default_factory=list)
    queue: str | None = None


class DelayedJobResponse(BaseModel):
    """A delayed job as stored."""

    class_name: str
    args: list[Any]
    queue: str
    timestamp: int | None = None

    @classmethod
    def from_job(cls, job: JobDescriptor, timestamp: int | None = None) -> "DelayedJobResponse":
        return cls(
            class_name=job.class_name,
            args=list(job.args),
            queue=job.queue,
            timestamp=timestamp,
        )


class ScheduleResponse(BaseModel):
    """Page of scheduled timestamps."""

    timestamps: list[int]
    total: int


class BucketResponse(BaseModel):
    """Page of jobs due at one timestamp."""

    timestamp: int
    jobs: list[DelayedJobResponse]
    size: int


class CountResponse(BaseModel):
    """Total number of delayed jobs."""

    count: int


class ExistsResponse(BaseModel):
    """Whether a job is delayed, and when."""

    delayed: bool
    timestamps: list[int]


class CountResultResponse(BaseModel):
    """Number of jobs affected by an operation."""

    count: int
    message: str


class SelectionRequest(BaseModel):
    """
    Selects delayed jobs.

    Every given field must match; omitted fields match anything.
    """

    class_name: str | None = None
    queue: str | None = None
    args: list[Any] | None = None

    def matches(self, job: JobDescriptor) -> bool:
        if self.queue is not None and job.queue != self.queue:
            return False
        if self.args is not None and list(job.args) != self.args:
            return False
        return True


class RescheduleRequest(SelectionRequest):
    """Selects delayed jobs and the time to move them to."""

    run_at: datetime | int = Field(..., description="New execution time")


class SelectionResponse(BaseModel):
    """Delayed jobs matching a selection."""

    jobs: list[DelayedJobResponse]
    count: int


class AuthRequest(BaseModel):
    """Authentication request."""

    api_key: str = Field(..., description="API key for authentication")
    subject: str = Field(..., description="Operator identifier")


class TokenResponse(BaseModel):
    """JWT token response."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    redis: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    detail: str | None = None
