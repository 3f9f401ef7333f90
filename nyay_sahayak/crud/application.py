from __future__ import annotations

import logging
import secrets
from collections.abc import Iterable
from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from nyay_sahayak.crud.audit_log import add_application_audit
from nyay_sahayak.exceptions import (
    ApplicationNotFoundError,
    ApplicationValidationError,
    DocumentNotFoundError,
    DuplicateApplicationIdError,
    InvalidTransitionError,
)
from nyay_sahayak.lifecycle import (
    APPLICATION_ID_PREFIXES,
    DEFAULT_APPLICATION_REASONS,
    PENDING_STATUSES,
    TERMINAL_STATUSES,
    ApplicationStatus,
    ApplicationType,
    DetailsVerificationStatus,
    DocumentVerificationStatus,
    application_id_pattern,
    can_transition,
)
from nyay_sahayak.models.application import Application
from nyay_sahayak.models.document import ApplicationDocument
from nyay_sahayak.schemas.application import DocumentUploadCreate, validate_scheme_details

logger = logging.getLogger(__name__)

# Generated ids that collide with an existing row are regenerated this many times.
MAX_ID_ATTEMPTS = 5

_UNSET: Any = object()

E = TypeVar("E", bound=Enum)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_application_id(application_type: ApplicationType, *, year: int | None = None) -> str:
    """`<PREFIX>_<year>_<6 digits>`, suffix drawn from `secrets`.

    Uniqueness is enforced by the unique index on insert, not here.
    """

    prefix = APPLICATION_ID_PREFIXES[application_type]
    year = year or utcnow().year
    return f"{prefix}_{year:04d}_{secrets.randbelow(1_000_000):06d}"


def _coerce_type(application_type: ApplicationType | str) -> ApplicationType:
    try:
        return ApplicationType(application_type)
    except ValueError as e:
        raise ApplicationValidationError(f"Unknown application_type: {application_type}") from e


def _coerce_enum(enum_cls: type[E], value: Any, field: str) -> E:
    try:
        return enum_cls(value)
    except ValueError as e:
        raise ApplicationValidationError(f"Invalid {field}: {value}") from e


def _coerce_document(doc: DocumentUploadCreate | dict[str, Any]) -> DocumentUploadCreate:
    if isinstance(doc, DocumentUploadCreate):
        return doc
    try:
        return DocumentUploadCreate.model_validate(doc)
    except ValueError as e:
        raise ApplicationValidationError(f"Invalid document: {e}") from e


async def get_application(
    session: AsyncSession,
    *,
    application_id: str,
) -> Application | None:
    # populate_existing: a long-lived session must still see other writers' commits.
    stmt = (
        select(Application)
        .where(Application.application_id == application_id)
        .execution_options(populate_existing=True)
    )
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def get_application_or_raise(session: AsyncSession, *, application_id: str) -> Application:
    app = await get_application(session, application_id=application_id)
    if app is None:
        raise ApplicationNotFoundError(application_id)
    return app


async def _application_id_taken(session: AsyncSession, application_id: str) -> bool:
    res = await session.execute(
        select(func.count()).select_from(Application).where(Application.application_id == application_id)
    )
    return int(res.scalar_one()) > 0


async def create_application(
    session: AsyncSession,
    *,
    beneficiary_id: UUID,
    application_type: ApplicationType | str,
    scheme_details: Any,
    application_id: str | None = None,
    documents: Iterable[DocumentUploadCreate | dict[str, Any]] = (),
    application_reason: str | None = None,
    request_id: str | None = None,
) -> Application:
    """Create a DRAFT application.

    A caller-supplied `application_id` must follow the scheme's canonical
    format and fails with DuplicateApplicationIdError if it is taken. Generated
    ids are retried on collision.
    """

    app_type = _coerce_type(application_type)
    details = validate_scheme_details(app_type, scheme_details)
    docs = [_coerce_document(d) for d in documents]

    if beneficiary_id is None:
        raise ApplicationValidationError("beneficiary_id is required")

    if application_id is not None and not application_id_pattern(app_type).match(application_id):
        prefix = APPLICATION_ID_PREFIXES[app_type]
        raise ApplicationValidationError(
            f"application_id must match {prefix}_YYYY_NNNNNN for {app_type.value}"
        )

    for _ in range(MAX_ID_ATTEMPTS):
        candidate = application_id or generate_application_id(app_type)

        if await _application_id_taken(session, candidate):
            if application_id is not None:
                raise DuplicateApplicationIdError(candidate)
            continue

        now = utcnow()
        app = Application(
            application_id=candidate,
            beneficiary_id=beneficiary_id,
            application_type=app_type.value,
            application_status=ApplicationStatus.DRAFT.value,
            application_reason=application_reason or DEFAULT_APPLICATION_REASONS[app_type],
            scheme_details=details,
            documents=[
                ApplicationDocument(
                    position=i,
                    document_type=d.document_type,
                    file_name=d.file_name,
                    file_url=d.file_url,
                    uploaded_at=now,
                    verification_status=DocumentVerificationStatus.PENDING.value,
                )
                for i, d in enumerate(docs)
            ],
        )
        session.add(app)
        add_application_audit(
            session,
            application_id=candidate,
            action="APPLICATION_CREATED",
            new_value={
                "application_type": app_type.value,
                "application_status": ApplicationStatus.DRAFT.value,
                "documents": len(docs),
            },
            change_summary="application created",
            request_id=request_id,
        )

        try:
            await session.commit()
        except IntegrityError:
            # Lost a race on the unique application_id index.
            await session.rollback()
            if application_id is not None:
                raise DuplicateApplicationIdError(candidate) from None
            logger.warning("application_id collision on insert, regenerating (application_id=%s)", candidate)
            continue

        logger.info("application created application_id=%s type=%s", candidate, app_type.value)
        return app

    raise DuplicateApplicationIdError(f"{APPLICATION_ID_PREFIXES[app_type]}_* (no free id after {MAX_ID_ATTEMPTS} attempts)")


async def transition_application(
    session: AsyncSession,
    *,
    app: Application,
    target: ApplicationStatus | None,
    values: dict[str, Any],
    action: str,
    performed_by: UUID | None = None,
    expected_officer: UUID | None = _UNSET,
    change_summary: str | None = None,
    audit_extra: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> Application:
    """Apply a conditional update keyed on the status observed in `app`.

    The UPDATE only matches while the row still carries that status (and,
    when `expected_officer` is given, that officer assignment). Zero matched
    rows means another writer got there first: InvalidTransitionError.
    A `target` the lifecycle table does not allow from the observed status
    fails the same way without touching the row. `target=None` updates
    fields without changing status.
    """

    # Read before any rollback: a rollback expires `app`.
    application_id = app.application_id
    observed = app.application_status
    target_label = target.value if target is not None else action

    if target is not None and not can_transition(observed, target.value):
        raise InvalidTransitionError(application_id, observed, target_label)

    stmt = (
        update(Application)
        .where(Application.application_id == application_id)
        .where(Application.application_status == observed)
    )
    if expected_officer is not _UNSET:
        if expected_officer is None:
            stmt = stmt.where(Application.assigned_officer.is_(None))
        else:
            stmt = stmt.where(Application.assigned_officer == expected_officer)

    new_values = dict(values)
    if target is not None:
        new_values["application_status"] = target.value
    new_values["updated_at"] = utcnow()

    res = await session.execute(stmt.values(**new_values).execution_options(synchronize_session=False))
    if res.rowcount != 1:
        await session.rollback()
        raise InvalidTransitionError(application_id, observed, target_label)

    audit_new = {k: _jsonable(v) for k, v in new_values.items() if k != "updated_at"}
    if audit_extra:
        audit_new.update(audit_extra)
    add_application_audit(
        session,
        application_id=application_id,
        action=action,
        performed_by=performed_by,
        old_value={"application_status": observed},
        new_value=audit_new,
        change_summary=change_summary,
        request_id=request_id,
    )
    await session.commit()
    await session.refresh(app)

    logger.info(
        "application transition application_id=%s %s -> %s action=%s",
        app.application_id,
        observed,
        app.application_status,
        action,
    )
    return app


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if value is not None and not isinstance(value, (str, int, float, bool, dict, list)):
        return str(value)
    return value


async def submit_application(
    session: AsyncSession,
    *,
    application_id: str,
    request_id: str | None = None,
) -> Application:
    app = await get_application_or_raise(session, application_id=application_id)
    if app.application_status != ApplicationStatus.DRAFT.value:
        raise InvalidTransitionError(application_id, app.application_status, ApplicationStatus.SUBMITTED.value)

    return await transition_application(
        session,
        app=app,
        target=ApplicationStatus.SUBMITTED,
        values={"submitted_at": utcnow()},
        action="APPLICATION_SUBMITTED",
        change_summary="application submitted by beneficiary",
        request_id=request_id,
    )


async def assign_application(
    session: AsyncSession,
    *,
    application_id: str,
    officer_id: UUID,
    request_id: str | None = None,
) -> Application:
    app = await get_application_or_raise(session, application_id=application_id)
    if app.application_status not in {s.value for s in PENDING_STATUSES}:
        raise InvalidTransitionError(application_id, app.application_status, "ASSIGN")

    return await transition_application(
        session,
        app=app,
        target=None,
        values={"assigned_officer": officer_id},
        action="APPLICATION_ASSIGNED",
        performed_by=officer_id,
        change_summary="application assigned for review",
        request_id=request_id,
    )


async def attach_document(
    session: AsyncSession,
    *,
    application_id: str,
    document: DocumentUploadCreate | dict[str, Any],
    request_id: str | None = None,
    max_attempts: int = 3,
) -> Application:
    """Append a document to a DRAFT application."""

    doc = _coerce_document(document)

    for _ in range(max_attempts):
        app = await get_application_or_raise(session, application_id=application_id)
        if app.application_status != ApplicationStatus.DRAFT.value:
            raise InvalidTransitionError(application_id, app.application_status, "ATTACH_DOCUMENT")

        res = await session.execute(
            select(func.coalesce(func.max(ApplicationDocument.position), -1)).where(
                ApplicationDocument.application_pk == app.id
            )
        )
        position = int(res.scalar_one()) + 1

        session.add(
            ApplicationDocument(
                application_pk=app.id,
                position=position,
                document_type=doc.document_type,
                file_name=doc.file_name,
                file_url=doc.file_url,
                uploaded_at=utcnow(),
                verification_status=DocumentVerificationStatus.PENDING.value,
            )
        )
        add_application_audit(
            session,
            application_id=application_id,
            action="DOCUMENT_UPLOADED",
            new_value={"position": position, "document_type": doc.document_type, "file_name": doc.file_name},
            change_summary="document uploaded",
            request_id=request_id,
        )

        try:
            await session.commit()
        except IntegrityError:
            # Another upload took this position; recompute it.
            await session.rollback()
            continue

        await session.refresh(app, attribute_names=["documents"])
        return app

    raise InvalidTransitionError(application_id, None, "ATTACH_DOCUMENT")


async def set_document_verification(
    session: AsyncSession,
    *,
    application_id: str,
    index: int,
    verification_status: DocumentVerificationStatus | str,
    verified_by: UUID | None,
    request_id: str | None = None,
) -> Application:
    """Move one document PENDING -> VERIFIED | REJECTED."""

    target = _coerce_enum(DocumentVerificationStatus, verification_status, "verification_status")
    app = await get_application_or_raise(session, application_id=application_id)

    if app.application_status in {s.value for s in TERMINAL_STATUSES}:
        raise InvalidTransitionError(application_id, app.application_status, f"DOCUMENT_{target.value}")

    doc = next((d for d in app.documents if d.position == index), None)
    if doc is None:
        raise DocumentNotFoundError(application_id, index)

    if target == DocumentVerificationStatus.PENDING or doc.verification_status != DocumentVerificationStatus.PENDING.value:
        raise InvalidTransitionError(
            f"{application_id}#document[{index}]", doc.verification_status, target.value
        )

    now = utcnow()
    res = await session.execute(
        update(ApplicationDocument)
        .where(ApplicationDocument.id == doc.id)
        .where(ApplicationDocument.verification_status == DocumentVerificationStatus.PENDING.value)
        .values(verification_status=target.value, verified_by=verified_by, verified_at=now)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        await session.rollback()
        raise InvalidTransitionError(
            f"{application_id}#document[{index}]", DocumentVerificationStatus.PENDING.value, target.value
        )

    add_application_audit(
        session,
        application_id=application_id,
        action="DOCUMENT_VERIFIED",
        performed_by=verified_by,
        old_value={"position": index, "verification_status": DocumentVerificationStatus.PENDING.value},
        new_value={"position": index, "verification_status": target.value, "document_type": doc.document_type},
        change_summary=f"document {doc.document_type} marked {target.value}",
        request_id=request_id,
    )
    await session.commit()
    await session.refresh(doc)
    return app


async def set_scheme_details_verification(
    session: AsyncSession,
    *,
    application_id: str,
    verification_status: DetailsVerificationStatus | str,
    verified_by: UUID | None,
    request_id: str | None = None,
) -> Application:
    """Move the FIR / marriage payload PENDING -> VERIFIED | INVALID."""

    target = _coerce_enum(DetailsVerificationStatus, verification_status, "verification_status")
    app = await get_application_or_raise(session, application_id=application_id)

    if app.application_status in {s.value for s in TERMINAL_STATUSES}:
        raise InvalidTransitionError(application_id, app.application_status, f"DETAILS_{target.value}")

    current = (app.scheme_details or {}).get("verification_status", DetailsVerificationStatus.PENDING.value)
    if target == DetailsVerificationStatus.PENDING or current != DetailsVerificationStatus.PENDING.value:
        raise InvalidTransitionError(f"{application_id}#scheme_details", current, target.value)

    details = dict(app.scheme_details)
    details["verification_status"] = target.value

    # Optimistic check on updated_at: the JSON payload is rewritten whole.
    res = await session.execute(
        update(Application)
        .where(Application.application_id == application_id)
        .where(Application.updated_at == app.updated_at)
        .values(scheme_details=details, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        await session.rollback()
        raise InvalidTransitionError(f"{application_id}#scheme_details", current, target.value)

    add_application_audit(
        session,
        application_id=application_id,
        action="SCHEME_DETAILS_VERIFIED",
        performed_by=verified_by,
        old_value={"verification_status": current},
        new_value={"verification_status": target.value},
        change_summary=f"scheme details marked {target.value}",
        request_id=request_id,
    )
    await session.commit()
    await session.refresh(app)
    return app


async def list_applications_by_beneficiary(
    session: AsyncSession,
    *,
    beneficiary_id: UUID,
) -> list[Application]:
    """All applications for a beneficiary, newest first."""

    stmt = (
        select(Application)
        .where(Application.beneficiary_id == beneficiary_id)
        .order_by(Application.created_at.desc(), Application.application_id.desc())
    )
    res = await session.execute(stmt.execution_options(populate_existing=True))
    return list(res.scalars().all())


async def list_pending_applications(
    session: AsyncSession,
    *,
    officer_id: UUID | None = None,
) -> list[Application]:
    """SUBMITTED / UNDER_REVIEW applications, oldest submission first."""

    stmt = select(Application).where(Application.application_status.in_([s.value for s in PENDING_STATUSES]))
    if officer_id is not None:
        stmt = stmt.where(Application.assigned_officer == officer_id)

    stmt = stmt.order_by(Application.submitted_at.asc(), Application.application_id.asc())
    res = await session.execute(stmt.execution_options(populate_existing=True))
    return list(res.scalars().all())


async def application_stats(session: AsyncSession) -> list[dict[str, Any]]:
    """Counts grouped by (application_type, application_status)."""

    stmt = (
        select(
            Application.application_type,
            Application.application_status,
            func.count().label("count"),
        )
        .group_by(Application.application_type, Application.application_status)
        .order_by(Application.application_type, Application.application_status)
    )
    rows = (await session.execute(stmt)).mappings().all()
    return [
        {
            "application_type": r["application_type"],
            "application_status": r["application_status"],
            "count": int(r["count"]),
        }
        for r in rows
    ]


async def list_applications(
    session: AsyncSession,
    *,
    status: str | None = None,
    application_type: str | None = None,
    beneficiary_id: UUID | None = None,
    submitted_from: datetime | None = None,
    submitted_to: datetime | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Application], int]:
    """Return (items, total), most recently submitted first."""

    if page < 1:
        raise ApplicationValidationError("page must be >= 1")
    if page_size < 1 or page_size > 100:
        raise ApplicationValidationError("page_size must be between 1 and 100")

    stmt = select(Application)

    if status is not None:
        stmt = stmt.where(Application.application_status == status)
    if application_type is not None:
        stmt = stmt.where(Application.application_type == application_type)
    if beneficiary_id is not None:
        stmt = stmt.where(Application.beneficiary_id == beneficiary_id)
    if submitted_from is not None:
        stmt = stmt.where(Application.submitted_at >= submitted_from)
    if submitted_to is not None:
        stmt = stmt.where(Application.submitted_at <= submitted_to)

    count_stmt = select(func.count()).select_from(stmt.subquery())
    total = int((await session.execute(count_stmt)).scalar_one())

    stmt = stmt.order_by(
        Application.submitted_at.desc().nullslast(),
        Application.created_at.desc(),
        Application.application_id.desc(),
    )
    stmt = stmt.offset((page - 1) * page_size).limit(page_size)

    res = await session.execute(stmt.execution_options(populate_existing=True))
    return list(res.scalars().all()), total
