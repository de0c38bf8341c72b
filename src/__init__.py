"""
Delayed Job Scheduler

A Redis-backed, time-indexed queue that holds jobs until their execution time
arrives, then moves them onto live queues for workers to pick up.
"""

__version__ = "1.0.0"
