from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from nyay_sahayak.api.deps import get_request_id, get_store, get_store_timeout
from nyay_sahayak.database import get_db
from nyay_sahayak.lifecycle import ApplicationStatus, ApplicationType
from nyay_sahayak.schemas.application import (
    ApplicationCreate,
    ApplicationListItem,
    ApplicationListResponse,
    ApplicationRead,
    ApplicationStatsItem,
    ApplicationStatsResponse,
    AssignRequest,
    DocumentUploadCreate,
)
from nyay_sahayak.schemas.timeline import ApplicationTimeline, TimelineEntry
from nyay_sahayak.services.application_store import ApplicationStore


router = APIRouter(prefix="/applications", tags=["applications"])


@router.post("", response_model=ApplicationRead, status_code=status.HTTP_201_CREATED)
async def create_application_endpoint(
    payload: ApplicationCreate,
    session: AsyncSession = Depends(get_db),
    store: ApplicationStore = Depends(get_store),
    timeout: float | None = Depends(get_store_timeout),
    request_id: str | None = Depends(get_request_id),
) -> ApplicationRead:
    app = await store.create(
        session,
        beneficiary_id=payload.beneficiary_id,
        application_type=payload.application_type,
        scheme_details=payload.scheme_details,
        application_id=payload.application_id,
        documents=payload.documents,
        application_reason=payload.application_reason,
        timeout=timeout,
        request_id=request_id,
    )
    return ApplicationRead.model_validate(app)


@router.get("", response_model=ApplicationListResponse)
async def list_applications_endpoint(
    status: ApplicationStatus | None = Query(None, description="Application status"),
    application_type: ApplicationType | None = Query(None, description="Scheme"),
    beneficiary_id: uuid.UUID | None = Query(None, description="Beneficiary UUID"),
    submitted_from: datetime | None = Query(None, description="Filter: submitted_at >= submitted_from"),
    submitted_to: datetime | None = Query(None, description="Filter: submitted_at <= submitted_to"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_db),
    store: ApplicationStore = Depends(get_store),
    timeout: float | None = Depends(get_store_timeout),
) -> ApplicationListResponse:
    if submitted_from is not None and submitted_to is not None and submitted_from > submitted_to:
        raise HTTPException(status_code=422, detail="submitted_from must be <= submitted_to")

    items, total = await store.search(
        session,
        status=status.value if status else None,
        application_type=application_type.value if application_type else None,
        beneficiary_id=beneficiary_id,
        submitted_from=submitted_from,
        submitted_to=submitted_to,
        page=page,
        page_size=page_size,
        timeout=timeout,
    )

    return ApplicationListResponse(
        items=[ApplicationListItem.model_validate(i) for i in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/stats", response_model=ApplicationStatsResponse)
async def application_stats_endpoint(
    session: AsyncSession = Depends(get_db),
    store: ApplicationStore = Depends(get_store),
    timeout: float | None = Depends(get_store_timeout),
) -> ApplicationStatsResponse:
    rows = await store.stats(session, timeout=timeout)
    return ApplicationStatsResponse(items=[ApplicationStatsItem(**r) for r in rows])


@router.get("/pending", response_model=list[ApplicationListItem])
async def pending_applications_endpoint(
    officer_id: uuid.UUID | None = Query(None, description="Only applications assigned to this officer"),
    session: AsyncSession = Depends(get_db),
    store: ApplicationStore = Depends(get_store),
    timeout: float | None = Depends(get_store_timeout),
) -> list[ApplicationListItem]:
    items = await store.find_pending(session, officer_id=officer_id, timeout=timeout)
    return [ApplicationListItem.model_validate(i) for i in items]


@router.get("/by-beneficiary/{beneficiary_id}", response_model=list[ApplicationRead])
async def beneficiary_applications_endpoint(
    beneficiary_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    store: ApplicationStore = Depends(get_store),
    timeout: float | None = Depends(get_store_timeout),
) -> list[ApplicationRead]:
    items = await store.find_by_beneficiary(session, beneficiary_id, timeout=timeout)
    return [ApplicationRead.model_validate(i) for i in items]


@router.get("/{application_id}", response_model=ApplicationRead)
async def get_application_endpoint(
    application_id: str,
    session: AsyncSession = Depends(get_db),
    store: ApplicationStore = Depends(get_store),
    timeout: float | None = Depends(get_store_timeout),
) -> ApplicationRead:
    app = await store.get(session, application_id, timeout=timeout)
    return ApplicationRead.model_validate(app)


@router.get("/{application_id}/timeline", response_model=ApplicationTimeline)
async def application_timeline_endpoint(
    application_id: str,
    session: AsyncSession = Depends(get_db),
    store: ApplicationStore = Depends(get_store),
    timeout: float | None = Depends(get_store_timeout),
) -> ApplicationTimeline:
    app, entries = await store.timeline(session, application_id, timeout=timeout)
    return ApplicationTimeline(
        application_id=app.application_id,
        current_status=app.application_status,
        entries=[TimelineEntry.model_validate(e) for e in entries],
    )


@router.post("/{application_id}/submit", response_model=ApplicationRead)
async def submit_application_endpoint(
    application_id: str,
    session: AsyncSession = Depends(get_db),
    store: ApplicationStore = Depends(get_store),
    timeout: float | None = Depends(get_store_timeout),
    request_id: str | None = Depends(get_request_id),
) -> ApplicationRead:
    app = await store.submit(session, application_id, timeout=timeout, request_id=request_id)
    return ApplicationRead.model_validate(app)


@router.post("/{application_id}/assign", response_model=ApplicationRead)
async def assign_application_endpoint(
    application_id: str,
    payload: AssignRequest,
    session: AsyncSession = Depends(get_db),
    store: ApplicationStore = Depends(get_store),
    timeout: float | None = Depends(get_store_timeout),
    request_id: str | None = Depends(get_request_id),
) -> ApplicationRead:
    app = await store.assign(session, application_id, payload.officer_id, timeout=timeout, request_id=request_id)
    return ApplicationRead.model_validate(app)


@router.post(
    "/{application_id}/documents",
    response_model=ApplicationRead,
    status_code=status.HTTP_201_CREATED,
)
async def attach_document_endpoint(
    application_id: str,
    payload: DocumentUploadCreate,
    session: AsyncSession = Depends(get_db),
    store: ApplicationStore = Depends(get_store),
    timeout: float | None = Depends(get_store_timeout),
    request_id: str | None = Depends(get_request_id),
) -> ApplicationRead:
    """Attach an already-stored file (its `file_url`) to a DRAFT application."""

    app = await store.attach_document(session, application_id, payload, timeout=timeout, request_id=request_id)
    return ApplicationRead.model_validate(app)
