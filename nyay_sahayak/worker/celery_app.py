from __future__ import annotations

from celery import Celery

from nyay_sahayak.config import settings

# Status-change events go to their own queue so notification workers can be
# scaled apart from anything else sharing the broker.
STATUS_EVENTS_QUEUE = "application_status_events"


def make_celery() -> Celery:
    """Build the Celery app used by the API (producer) and the worker (consumer)."""

    celery = Celery(
        "nyay_sahayak",
        broker=settings.redis_url,
        include=["nyay_sahayak.worker.tasks"],
    )

    celery.conf.update(
        task_serializer="json",
        accept_content=["json"],
        timezone="Asia/Kolkata",
        enable_utc=True,
        # Fire-and-forget: the API never waits on a notification.
        task_ignore_result=True,
        task_acks_late=True,
        task_routes={"nyay_sahayak.application_status_changed": {"queue": STATUS_EVENTS_QUEUE}},
        broker_connection_retry_on_startup=True,
    )

    return celery


celery_app = make_celery()
