"""
Observability module.
Contains logging, metrics, and tracing setup.
"""

from src.observability.logging import setup_logging
from src.observability.metrics import (
    MetricsCollector,
    get_metrics,
    setup_metrics,
)
from src.observability.tracing import get_tracer, job_span, setup_tracing

__all__ = [
    "setup_logging",
    "setup_metrics",
    "get_metrics",
    "MetricsCollector",
    "setup_tracing",
    "get_tracer",
    "job_span",
]
