from __future__ import annotations

import logging
from collections.abc import Callable
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from nyay_sahayak.crud.application import (
    get_application_or_raise,
    set_document_verification,
    set_scheme_details_verification,
    transition_application,
    utcnow,
)
from nyay_sahayak.exceptions import (
    ApplicationValidationError,
    DocumentsNotVerifiedError,
    InvalidTransitionError,
    MissingRemarksError,
    OfficerMismatchError,
)
from nyay_sahayak.lifecycle import (
    PENDING_STATUSES,
    ApplicationStatus,
    DetailsVerificationStatus,
    DocumentVerificationStatus,
    ReviewAction,
)
from nyay_sahayak.models.application import Application
from nyay_sahayak.services.application_store import ApplicationStore
from nyay_sahayak.services.document_policy import DocumentPolicy
from nyay_sahayak.worker import dispatch

logger = logging.getLogger(__name__)

StatusEventEmitter = Callable[[dict[str, Any]], None]


def _normalize_amount(amount: Any) -> Decimal:
    if amount is None:
        raise ApplicationValidationError("amount is required to approve an application")
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as e:
        raise ApplicationValidationError("amount must be a number") from e
    if not value.is_finite():
        raise ApplicationValidationError("amount must be a finite number")
    if value < 0:
        raise ApplicationValidationError("amount must be >= 0")
    return value


class ReviewWorkflow:
    """Officer-side transitions of the application lifecycle.

    DRAFT -> SUBMITTED -> UNDER_REVIEW -> {APPROVED, REJECTED};
    APPROVED -> PAYMENT_INITIATED -> COMPLETED. Every transition is a
    conditional update on the status the caller observed, so concurrent
    duplicate decisions resolve to exactly one success. Transitions are never
    retried here: a caller that lost the race re-reads and decides again.
    """

    def __init__(
        self,
        *,
        store: ApplicationStore | None = None,
        policy: DocumentPolicy | None = None,
        emit: StatusEventEmitter | None = None,
    ) -> None:
        self._store = store or ApplicationStore()
        self._policy = policy or DocumentPolicy.from_settings()
        self._emit = emit or dispatch.emit_status_change

    @property
    def store(self) -> ApplicationStore:
        return self._store

    def _check_officer(self, app: Application, officer_id: UUID) -> None:
        # An unassigned application is self-assigned by the deciding officer.
        if app.assigned_officer is not None and app.assigned_officer != officer_id:
            raise OfficerMismatchError(app.application_id)

    def _publish(self, app: Application, old_status: str, **extra: Any) -> None:
        event = {
            "application_id": app.application_id,
            "application_type": app.application_type,
            "beneficiary_id": str(app.beneficiary_id),
            "old_status": old_status,
            "new_status": app.application_status,
            "assigned_officer": str(app.assigned_officer) if app.assigned_officer else None,
            "approved_amount": float(app.approved_amount) if app.approved_amount is not None else None,
            "rejection_reason": app.rejection_reason,
        }
        event.update(extra)
        self._emit(event)

    async def decide(
        self,
        session: AsyncSession,
        application_id: str,
        action: ReviewAction | str,
        *,
        officer_id: UUID,
        remarks: str | None = None,
        amount: Any = None,
        timeout: float | None = None,
        request_id: str | None = None,
    ) -> Application:
        """Approve or reject a SUBMITTED / UNDER_REVIEW application."""

        try:
            action = ReviewAction(action)
        except ValueError as e:
            raise ApplicationValidationError(f"Unknown review action: {action}") from e

        if action == ReviewAction.REJECT:
            if remarks is None or not remarks.strip():
                raise MissingRemarksError()
            target = ApplicationStatus.REJECTED
            values: dict[str, Any] = {"rejection_reason": remarks, "approved_amount": None}
            audit_action = "APPLICATION_REJECTED"
        else:
            target = ApplicationStatus.APPROVED
            values = {"approved_amount": _normalize_amount(amount), "rejection_reason": None}
            audit_action = "APPLICATION_APPROVED"

        async def _op() -> tuple[Application, str]:
            app = await get_application_or_raise(session, application_id=application_id)
            observed = app.application_status
            if observed not in {s.value for s in PENDING_STATUSES}:
                raise InvalidTransitionError(application_id, observed, target.value)
            self._check_officer(app, officer_id)

            if target == ApplicationStatus.APPROVED:
                missing = self._policy.missing_verified(app.application_type, app.documents)
                if missing:
                    raise DocumentsNotVerifiedError(application_id, missing)

            update_values = dict(values, reviewed_at=utcnow())
            if app.assigned_officer is None:
                update_values["assigned_officer"] = officer_id

            audit_extra = {"remarks": remarks} if remarks else None
            app = await transition_application(
                session,
                app=app,
                target=target,
                values=update_values,
                action=audit_action,
                performed_by=officer_id,
                expected_officer=app.assigned_officer,
                change_summary=f"application {target.value.lower()} by officer",
                audit_extra=audit_extra,
                request_id=request_id,
            )
            return app, observed

        app, old_status = await self._store.run(session, _op, timeout=timeout, name="decide")
        self._publish(app, old_status, remarks=remarks)
        return app

    async def start_review(
        self,
        session: AsyncSession,
        application_id: str,
        *,
        officer_id: UUID,
        timeout: float | None = None,
        request_id: str | None = None,
    ) -> Application:
        """SUBMITTED -> UNDER_REVIEW, self-assigning an unassigned application."""

        async def _op() -> tuple[Application, str]:
            app = await get_application_or_raise(session, application_id=application_id)
            observed = app.application_status
            if observed != ApplicationStatus.SUBMITTED.value:
                raise InvalidTransitionError(application_id, observed, ApplicationStatus.UNDER_REVIEW.value)
            self._check_officer(app, officer_id)

            values: dict[str, Any] = {}
            if app.assigned_officer is None:
                values["assigned_officer"] = officer_id

            app = await transition_application(
                session,
                app=app,
                target=ApplicationStatus.UNDER_REVIEW,
                values=values,
                action="APPLICATION_REVIEW_STARTED",
                performed_by=officer_id,
                expected_officer=app.assigned_officer,
                change_summary="application under review",
                request_id=request_id,
            )
            return app, observed

        app, old_status = await self._store.run(session, _op, timeout=timeout, name="start_review")
        self._publish(app, old_status)
        return app

    async def _payment_step(
        self,
        session: AsyncSession,
        application_id: str,
        *,
        source: ApplicationStatus,
        target: ApplicationStatus,
        action: str,
        transaction_id: str,
        performed_by: UUID | None,
        timeout: float | None,
        request_id: str | None,
    ) -> Application:
        if not transaction_id or not transaction_id.strip():
            raise ApplicationValidationError("transaction_id is required")

        async def _op() -> tuple[Application, str]:
            app = await get_application_or_raise(session, application_id=application_id)
            observed = app.application_status
            if observed != source.value:
                raise InvalidTransitionError(application_id, observed, target.value)

            app = await transition_application(
                session,
                app=app,
                target=target,
                values={},
                action=action,
                performed_by=performed_by,
                change_summary=f"payment {target.value.lower()}",
                audit_extra={"transaction_id": transaction_id},
                request_id=request_id,
            )
            return app, observed

        app, old_status = await self._store.run(session, _op, timeout=timeout, name=action.lower())
        self._publish(app, old_status, transaction_id=transaction_id)
        return app

    async def initiate_payment(
        self,
        session: AsyncSession,
        application_id: str,
        *,
        transaction_id: str,
        performed_by: UUID | None = None,
        timeout: float | None = None,
        request_id: str | None = None,
    ) -> Application:
        return await self._payment_step(
            session,
            application_id,
            source=ApplicationStatus.APPROVED,
            target=ApplicationStatus.PAYMENT_INITIATED,
            action="PAYMENT_INITIATED",
            transaction_id=transaction_id,
            performed_by=performed_by,
            timeout=timeout,
            request_id=request_id,
        )

    async def complete_payment(
        self,
        session: AsyncSession,
        application_id: str,
        *,
        transaction_id: str,
        performed_by: UUID | None = None,
        timeout: float | None = None,
        request_id: str | None = None,
    ) -> Application:
        return await self._payment_step(
            session,
            application_id,
            source=ApplicationStatus.PAYMENT_INITIATED,
            target=ApplicationStatus.COMPLETED,
            action="PAYMENT_COMPLETED",
            transaction_id=transaction_id,
            performed_by=performed_by,
            timeout=timeout,
            request_id=request_id,
        )

    async def verify_document(
        self,
        session: AsyncSession,
        application_id: str,
        index: int,
        verification_status: DocumentVerificationStatus | str,
        *,
        verified_by: UUID | None,
        timeout: float | None = None,
        request_id: str | None = None,
    ) -> Application:
        """PENDING -> VERIFIED | REJECTED for one document.

        Independent of the application's own status; `verified_by` is an
        officer or an external verification integration.
        """

        return await self._store.run(
            session,
            lambda: set_document_verification(
                session,
                application_id=application_id,
                index=index,
                verification_status=verification_status,
                verified_by=verified_by,
                request_id=request_id,
            ),
            timeout=timeout,
            name="verify_document",
        )

    async def verify_scheme_details(
        self,
        session: AsyncSession,
        application_id: str,
        verification_status: DetailsVerificationStatus | str,
        *,
        verified_by: UUID | None,
        timeout: float | None = None,
        request_id: str | None = None,
    ) -> Application:
        return await self._store.run(
            session,
            lambda: set_scheme_details_verification(
                session,
                application_id=application_id,
                verification_status=verification_status,
                verified_by=verified_by,
                request_id=request_id,
            ),
            timeout=timeout,
            name="verify_scheme_details",
        )
