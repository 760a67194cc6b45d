# Import celery app first
from continuum.infra.celery_app import celery_app

# Initialize logging configuration for Celery workers
from continuum.infra.logging_config import LoggingConfig
from continuum.tasks.followup_task import send_post_call_followup_task

LoggingConfig()  # Initialize logging

__all__ = [
    "celery_app",
    "send_post_call_followup_task",
]
