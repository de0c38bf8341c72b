"""
Delayed job management routes.
"""

import logging

from fastapi import APIRouter, Query, status

from src.api.auth import CurrentOperator
from src.api.dependencies import Scheduler
from src.constants import API_V1_PREFIX
from src.scheduler import SchedulerClient
from src.types.api import (
    BucketResponse,
    CountResponse,
    CountResultResponse,
    DelayedJobResponse,
    ExistsResponse,
    JobReference,
    RescheduleRequest,
    ScheduleJobRequest,
    ScheduleJobResponse,
    ScheduleResponse,
    SelectionRequest,
    SelectionResponse,
)
from src.types.job import JobDescriptor

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{API_V1_PREFIX}/delayed", tags=["Delayed Jobs"])


def _job_from_reference(client: SchedulerClient, reference: JobReference) -> JobDescriptor:
    return client.build_job(reference.class_name, reference.args, reference.queue)


@router.post(
    "",
    response_model=ScheduleJobResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Schedule a job",
    description="Schedule a job at a time or after a delay.",
)
async def schedule_job(
    request: ScheduleJobRequest,
    operator: CurrentOperator,
    client: Scheduler,
) -> ScheduleJobResponse:
    """
    Schedule a delayed job.

    A time already in the past runs the job immediately. A before-schedule
    hook may reject the job, in which case ``scheduled`` is false.
    """
    if request.delay_seconds is not None:
        if request.queue:
            scheduled = await client.enqueue_in_with_queue(
                request.queue, request.delay_seconds, request.class_name, *request.args
            )
        else:
            scheduled = await client.enqueue_in(
                request.delay_seconds, request.class_name, *request.args
            )
    elif request.queue:
        scheduled = await client.enqueue_at_with_queue(
            request.queue, request.run_at, request.class_name, *request.args
        )
    else:
        scheduled = await client.enqueue_at(request.run_at, request.class_name, *request.args)

    logger.info(
        "Delayed job requested",
        extra={
            "class_name": request.class_name,
            "scheduled": scheduled,
            "operator": operator.subject,
        },
    )

    return ScheduleJobResponse(
        scheduled=scheduled,
        message="Job scheduled" if scheduled else "Job rejected by before_schedule hook",
    )


@router.get(
    "/schedule",
    response_model=ScheduleResponse,
    summary="Peek the schedule",
    description="List timestamps that have pending delayed jobs.",
)
async def peek_schedule(
    operator: CurrentOperator,
    client: Scheduler,
    start: int = Query(default=0, ge=0),
    count: int = Query(default=50, ge=1, le=1000),
) -> ScheduleResponse:
    timestamps = await client.delayed_queue_peek(start, count)
    total = await client.delayed_queue_schedule_size()
    return ScheduleResponse(timestamps=timestamps, total=total)


@router.get(
    "/schedule/{timestamp}",
    response_model=BucketResponse,
    summary="Peek a bucket",
    description="List the jobs due at one timestamp without removing them.",
)
async def peek_bucket(
    timestamp: int,
    operator: CurrentOperator,
    client: Scheduler,
    start: int = Query(default=0, ge=0),
    count: int = Query(default=50, ge=1, le=1000),
) -> BucketResponse:
    jobs = await client.delayed_timestamp_peek(timestamp, start, count)
    size = await client.delayed_timestamp_size(timestamp)
    return BucketResponse(
        timestamp=timestamp,
        jobs=[DelayedJobResponse.from_job(job, timestamp) for job in jobs],
        size=size,
    )


@router.get(
    "/count",
    response_model=CountResponse,
    summary="Count delayed jobs",
)
async def count_delayed(operator: CurrentOperator, client: Scheduler) -> CountResponse:
    return CountResponse(count=await client.count_all_scheduled_jobs())


@router.post(
    "/lookup",
    response_model=ExistsResponse,
    summary="Look up a job",
    description="Check whether a job is delayed and list its timestamps.",
)
async def lookup_job(
    reference: JobReference,
    operator: CurrentOperator,
    client: Scheduler,
) -> ExistsResponse:
    timestamps = await client.queue.scheduled_times(_job_from_reference(client, reference))
    return ExistsResponse(delayed=bool(timestamps), timestamps=timestamps)


@router.post(
    "/remove",
    response_model=CountResultResponse,
    summary="Remove a job",
    description="Remove every delayed copy of a job.",
)
async def remove_job(
    reference: JobReference,
    operator: CurrentOperator,
    client: Scheduler,
) -> CountResultResponse:
    removed = await client.remove_job(_job_from_reference(client, reference))
    return CountResultResponse(count=removed, message=f"Removed {removed} delayed jobs")


@router.post(
    "/enqueue",
    response_model=CountResultResponse,
    summary="Enqueue a job now",
    description="Remove every delayed copy of a job and dispatch each one now.",
)
async def enqueue_job_now(
    reference: JobReference,
    operator: CurrentOperator,
    client: Scheduler,
) -> CountResultResponse:
    dispatched = await client.enqueue_job_now(_job_from_reference(client, reference))
    return CountResultResponse(count=dispatched, message=f"Enqueued {dispatched} jobs")


@router.post(
    "/selection/find",
    response_model=SelectionResponse,
    summary="Find delayed jobs",
)
async def find_selection(
    selection: SelectionRequest,
    operator: CurrentOperator,
    client: Scheduler,
) -> SelectionResponse:
    found = await client.queue.find_matching(selection.matches, selection.class_name)
    return SelectionResponse(
        jobs=[DelayedJobResponse.from_job(match.job, match.timestamp) for match in found],
        count=len(found),
    )


@router.post(
    "/selection/remove",
    response_model=CountResultResponse,
    summary="Remove delayed jobs by selection",
)
async def remove_selection(
    selection: SelectionRequest,
    operator: CurrentOperator,
    client: Scheduler,
) -> CountResultResponse:
    removed = await client.queue.remove_matching(selection.matches, selection.class_name)
    return CountResultResponse(count=removed, message=f"Removed {removed} delayed jobs")


@router.post(
    "/selection/enqueue",
    response_model=CountResultResponse,
    summary="Enqueue delayed jobs by selection now",
)
async def enqueue_selection(
    selection: SelectionRequest,
    operator: CurrentOperator,
    client: Scheduler,
) -> CountResultResponse:
    dispatched = await client.queue.enqueue_matching_now(selection.matches, selection.class_name)
    return CountResultResponse(count=dispatched, message=f"Enqueued {dispatched} jobs")


@router.post(
    "/selection/reschedule",
    response_model=CountResultResponse,
    summary="Reschedule delayed jobs by selection",
)
async def reschedule_selection(
    request: RescheduleRequest,
    operator: CurrentOperator,
    client: Scheduler,
) -> CountResultResponse:
    class_name = request.class_name

    def matches(job: JobDescriptor) -> bool:
        return (class_name is None or job.class_name == class_name) and request.matches(job)

    moved = await client.queue.reschedule_matching(matches, request.run_at)
    return CountResultResponse(count=moved, message=f"Rescheduled {moved} jobs")


@router.delete(
    "",
    response_model=CountResultResponse,
    summary="Reset the delayed queue",
    description="Delete every delayed job. Not isolated from concurrent writers.",
)
async def reset_delayed(operator: CurrentOperator, client: Scheduler) -> CountResultResponse:
    count = await client.count_all_scheduled_jobs()
    await client.reset_delayed_queue()

    logger.warning(
        "Delayed queue reset",
        extra={"operator": operator.subject, "count": count},
    )
    return CountResultResponse(count=count, message="Delayed queue reset")
