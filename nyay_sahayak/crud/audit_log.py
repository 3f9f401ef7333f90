from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nyay_sahayak.models.audit_log import AuditLog


def add_application_audit(
    session: AsyncSession,
    *,
    application_id: str,
    action: str,
    performed_by: UUID | None = None,
    old_value: dict[str, Any] | None = None,
    new_value: dict[str, Any] | None = None,
    change_summary: str | None = None,
    request_id: str | None = None,
) -> AuditLog:
    """Stage an audit row in the caller's transaction (no flush, no commit)."""

    audit = AuditLog(
        performed_by=performed_by,
        entity_type="application",
        entity_id=application_id,
        action=action,
        old_value=old_value,
        new_value=new_value,
        change_summary=change_summary,
        request_id=request_id,
    )
    session.add(audit)
    return audit


async def list_application_audit(
    session: AsyncSession,
    *,
    application_id: str,
    limit: int = 200,
) -> list[AuditLog]:
    """Return audit entries for an application, oldest first."""

    stmt = (
        select(AuditLog)
        .where(AuditLog.entity_type == "application", AuditLog.entity_id == application_id)
        .order_by(AuditLog.created_at.asc(), AuditLog.id.asc())
        .limit(limit)
    )
    res = await session.execute(stmt)
    return list(res.scalars().all())
