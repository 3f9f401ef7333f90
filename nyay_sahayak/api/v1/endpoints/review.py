from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from nyay_sahayak.api.deps import get_request_id, get_store_timeout, get_workflow
from nyay_sahayak.database import get_db
from nyay_sahayak.schemas.application import (
    ApplicationRead,
    DecisionRequest,
    DocumentVerificationUpdate,
    PaymentRequest,
    SchemeDetailsVerificationUpdate,
    StartReviewRequest,
)
from nyay_sahayak.services.review_workflow import ReviewWorkflow


router = APIRouter(prefix="/applications", tags=["review"])


@router.post("/{application_id}/review/start", response_model=ApplicationRead)
async def start_review_endpoint(
    application_id: str,
    payload: StartReviewRequest,
    session: AsyncSession = Depends(get_db),
    workflow: ReviewWorkflow = Depends(get_workflow),
    timeout: float | None = Depends(get_store_timeout),
    request_id: str | None = Depends(get_request_id),
) -> ApplicationRead:
    app = await workflow.start_review(
        session, application_id, officer_id=payload.officer_id, timeout=timeout, request_id=request_id
    )
    return ApplicationRead.model_validate(app)


@router.post("/{application_id}/decision", response_model=ApplicationRead)
async def decide_application_endpoint(
    application_id: str,
    payload: DecisionRequest,
    session: AsyncSession = Depends(get_db),
    workflow: ReviewWorkflow = Depends(get_workflow),
    timeout: float | None = Depends(get_store_timeout),
    request_id: str | None = Depends(get_request_id),
) -> ApplicationRead:
    """Approve (with `amount`) or reject (with `remarks`) an application.

    A 409 InvalidTransition means the application is no longer pending a
    decision; re-read it before deciding again.
    """

    app = await workflow.decide(
        session,
        application_id,
        payload.action,
        officer_id=payload.officer_id,
        remarks=payload.remarks,
        amount=payload.amount,
        timeout=timeout,
        request_id=request_id,
    )
    return ApplicationRead.model_validate(app)


@router.patch("/{application_id}/documents/{index}", response_model=ApplicationRead)
async def verify_document_endpoint(
    application_id: str,
    index: int,
    payload: DocumentVerificationUpdate,
    session: AsyncSession = Depends(get_db),
    workflow: ReviewWorkflow = Depends(get_workflow),
    timeout: float | None = Depends(get_store_timeout),
    request_id: str | None = Depends(get_request_id),
) -> ApplicationRead:
    app = await workflow.verify_document(
        session,
        application_id,
        index,
        payload.verification_status,
        verified_by=payload.verified_by,
        timeout=timeout,
        request_id=request_id,
    )
    return ApplicationRead.model_validate(app)


@router.patch("/{application_id}/scheme-details", response_model=ApplicationRead)
async def verify_scheme_details_endpoint(
    application_id: str,
    payload: SchemeDetailsVerificationUpdate,
    session: AsyncSession = Depends(get_db),
    workflow: ReviewWorkflow = Depends(get_workflow),
    timeout: float | None = Depends(get_store_timeout),
    request_id: str | None = Depends(get_request_id),
) -> ApplicationRead:
    app = await workflow.verify_scheme_details(
        session,
        application_id,
        payload.verification_status,
        verified_by=payload.verified_by,
        timeout=timeout,
        request_id=request_id,
    )
    return ApplicationRead.model_validate(app)


@router.post("/{application_id}/payment/initiate", response_model=ApplicationRead)
async def initiate_payment_endpoint(
    application_id: str,
    payload: PaymentRequest,
    session: AsyncSession = Depends(get_db),
    workflow: ReviewWorkflow = Depends(get_workflow),
    timeout: float | None = Depends(get_store_timeout),
    request_id: str | None = Depends(get_request_id),
) -> ApplicationRead:
    app = await workflow.initiate_payment(
        session,
        application_id,
        transaction_id=payload.transaction_id,
        performed_by=payload.performed_by,
        timeout=timeout,
        request_id=request_id,
    )
    return ApplicationRead.model_validate(app)


@router.post("/{application_id}/payment/complete", response_model=ApplicationRead)
async def complete_payment_endpoint(
    application_id: str,
    payload: PaymentRequest,
    session: AsyncSession = Depends(get_db),
    workflow: ReviewWorkflow = Depends(get_workflow),
    timeout: float | None = Depends(get_store_timeout),
    request_id: str | None = Depends(get_request_id),
) -> ApplicationRead:
    app = await workflow.complete_payment(
        session,
        application_id,
        transaction_id=payload.transaction_id,
        performed_by=payload.performed_by,
        timeout=timeout,
        request_id=request_id,
    )
    return ApplicationRead.model_validate(app)
