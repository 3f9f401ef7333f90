from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from nyay_sahayak.lifecycle import ApplicationStatus


class TimelineEntry(BaseModel):
    action: str
    performed_by: UUID | None = None

    old_value: dict[str, Any] | None = None
    new_value: dict[str, Any] | None = None
    change_summary: str | None = None

    created_at: datetime

    class Config:
        from_attributes = True


class ApplicationTimeline(BaseModel):
    application_id: str
    current_status: ApplicationStatus
    entries: list[TimelineEntry]
