"""
Background Jobs Module

Handles scheduled tasks for:
- Startup download of the remote dataset
- Periodic dataset sync
"""

from hr_portal.jobs.scheduler import scheduler, start_scheduler, shutdown_scheduler, get_job_status

__all__ = [
    "scheduler",
    "start_scheduler",
    "shutdown_scheduler",
    "get_job_status",
]
