"""
Application constants.
Centralized location for all constant values used across the application.
"""

# Redis key layout (relative to the configured namespace)
BUCKET_KEY_PREFIX = "delayed:"
SCHEDULE_INDEX_KEY = "delayed_queue_schedule"
REVERSE_INDEX_KEY_PREFIX = "timestamps:"
LAST_ENQUEUED_AT_KEY = "delayed:last_enqueued_at"
QUEUE_KEY_PREFIX = "queue:"
QUEUES_KEY = "queues"

# Beyond 100 buckets per round trip there is almost no improvement in speed
DEFAULT_SCAN_BATCH_SIZE = 100

# API constants
API_V1_PREFIX = "/v1"

# Metrics names
METRIC_JOBS_SCHEDULED = "delayed_jobs_scheduled_total"
METRIC_JOBS_DISPATCHED = "delayed_jobs_dispatched_total"
METRIC_JOBS_REMOVED = "delayed_jobs_removed_total"
METRIC_CLEANUP_ABORTED = "delayed_cleanup_aborted_total"
METRIC_SCHEDULE_SIZE = "delayed_queue_schedule_size"
METRIC_POLL_DURATION = "delayed_poll_duration_seconds"
METRIC_API_REQUESTS = "api_requests_total"
METRIC_API_LATENCY = "api_request_latency_seconds"

# Trace span names
SPAN_SCHEDULE_JOB = "schedule_job"
SPAN_POLL_CYCLE = "poll_cycle"
SPAN_DISPATCH_JOB = "dispatch_job"
SPAN_FIND_SELECTION = "find_delayed_selection"
