from __future__ import annotations

from functools import lru_cache

from fastapi import Header, Request

from nyay_sahayak.services.application_store import ApplicationStore
from nyay_sahayak.services.review_workflow import ReviewWorkflow


@lru_cache
def get_store() -> ApplicationStore:
    return ApplicationStore()


@lru_cache
def get_workflow() -> ReviewWorkflow:
    return ReviewWorkflow(store=get_store())


def get_store_timeout(
    x_store_timeout: float | None = Header(
        None,
        gt=0,
        le=120,
        description="Deadline in seconds for the store operation behind this request.",
    ),
) -> float | None:
    return x_store_timeout


def get_request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)
