"""
Type definitions for the delayed scheduler.
Contains input/output type definitions, grouped by module.
"""

from src.types.api import (
    AuthRequest,
    BucketResponse,
    CountResponse,
    CountResultResponse,
    DelayedJobResponse,
    ErrorResponse,
    ExistsResponse,
    HealthResponse,
    JobReference,
    RescheduleRequest,
    ScheduleJobRequest,
    ScheduleJobResponse,
    ScheduleResponse,
    SelectionRequest,
    SelectionResponse,
    TokenResponse,
)
from src.types.job import (
    JobDescriptor,
    ScheduledJob,
    to_timestamp,
)

__all__ = [
    # API types
    "ScheduleJobRequest",
    "ScheduleJobResponse",
    "JobReference",
    "DelayedJobResponse",
    "ScheduleResponse",
    "BucketResponse",
    "CountResponse",
    "CountResultResponse",
    "ExistsResponse",
    "SelectionRequest",
    "RescheduleRequest",
    "SelectionResponse",
    "AuthRequest",
    "TokenResponse",
    "HealthResponse",
    "ErrorResponse",
    # Job types
    "JobDescriptor",
    "ScheduledJob",
    "to_timestamp",
]
