"""Celery application for delayed work (post-call follow-ups)."""

from celery import Celery

from continuum.config import get_settings

settings = get_settings()

celery_app = Celery(
    "continuum",
    broker=settings.broker_url,
    backend=settings.broker_url,
    include=["continuum.tasks.followup_task"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_ignore_result=True,
    task_always_eager=settings.is_test,
)
