from __future__ import annotations

import logging
from typing import Any

from nyay_sahayak.config import settings

logger = logging.getLogger(__name__)


def emit_status_change(event: dict[str, Any]) -> None:
    """Publish an application status-change event for notification / payment consumers.

    Must be non-fatal: the transition is already committed, so a failure to
    enqueue is logged and dropped.
    """

    if not settings.celery_enabled:
        logger.debug(
            "status change not published (celery disabled) application_id=%s %s -> %s",
            event.get("application_id"),
            event.get("old_status"),
            event.get("new_status"),
        )
        return

    try:
        # Imported lazily so the API starts without a broker configured.
        from nyay_sahayak.worker.tasks import application_status_changed

        application_status_changed.delay(event)
    except Exception:
        logger.exception(
            "Failed to emit application_status_changed task (application_id=%s)",
            event.get("application_id"),
        )
