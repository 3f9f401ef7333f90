from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from nyay_sahayak.config import settings
from nyay_sahayak.crud import application as crud
from nyay_sahayak.crud.audit_log import list_application_audit
from nyay_sahayak.exceptions import StoreTimeoutError
from nyay_sahayak.lifecycle import ApplicationType
from nyay_sahayak.models.application import Application
from nyay_sahayak.models.audit_log import AuditLog
from nyay_sahayak.schemas.application import DocumentUploadCreate

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class StoreDefaults:
    """Deadline and retry budget applied to every store operation."""

    timeout_seconds: float = 10.0
    max_attempts: int = 3
    backoff_seconds: float = 0.1

    @classmethod
    def from_settings(cls) -> "StoreDefaults":
        return cls(
            timeout_seconds=settings.store_timeout_seconds,
            max_attempts=settings.store_max_attempts,
            backoff_seconds=settings.store_backoff_seconds,
        )


def is_transient(exc: BaseException) -> bool:
    """Connectivity / lock contention errors that are safe to retry."""

    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


class ApplicationStore:
    """Durable storage of application records.

    Every operation runs under a deadline. Transient database failures are
    retried with exponential backoff inside that deadline; running out of
    attempts or time raises StoreTimeoutError. Domain errors (NotFound,
    InvalidTransition, ...) propagate on the first occurrence.
    """

    def __init__(self, *, defaults: StoreDefaults | None = None) -> None:
        self._defaults = defaults or StoreDefaults.from_settings()

    @property
    def defaults(self) -> StoreDefaults:
        return self._defaults

    async def run(
        self,
        session: AsyncSession,
        op: Callable[[], Awaitable[T]],
        *,
        timeout: float | None = None,
        name: str = "store_op",
    ) -> T:
        budget = self._defaults.timeout_seconds if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + budget
        attempt = 0

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise StoreTimeoutError(f"{name} exceeded {budget:.2f}s deadline")

            try:
                return await asyncio.wait_for(op(), timeout=remaining)
            except asyncio.TimeoutError:
                await self._reset(session)
                raise StoreTimeoutError(f"{name} exceeded {budget:.2f}s deadline") from None
            except DBAPIError as e:
                if not is_transient(e):
                    raise
                attempt += 1
                await self._reset(session)
                if attempt >= self._defaults.max_attempts:
                    raise StoreTimeoutError(f"{name} failed after {attempt} attempts: {e.orig!r}") from e

                delay = self._defaults.backoff_seconds * (2 ** (attempt - 1))
                delay = min(delay, max(deadline - loop.time(), 0.0))
                logger.warning(
                    "transient store error op=%s attempt=%s retry_in=%.3fs error=%r",
                    name,
                    attempt,
                    delay,
                    e.orig,
                )
                await asyncio.sleep(delay)

    async def _reset(self, session: AsyncSession) -> None:
        try:
            await session.rollback()
        except DBAPIError:
            logger.warning("rollback failed while resetting session", exc_info=True)

    async def create(
        self,
        session: AsyncSession,
        *,
        beneficiary_id: UUID,
        application_type: ApplicationType | str,
        scheme_details: Any,
        application_id: str | None = None,
        documents: Iterable[DocumentUploadCreate | dict[str, Any]] = (),
        application_reason: str | None = None,
        timeout: float | None = None,
        request_id: str | None = None,
    ) -> Application:
        docs = list(documents)
        return await self.run(
            session,
            lambda: crud.create_application(
                session,
                beneficiary_id=beneficiary_id,
                application_type=application_type,
                scheme_details=scheme_details,
                application_id=application_id,
                documents=docs,
                application_reason=application_reason,
                request_id=request_id,
            ),
            timeout=timeout,
            name="create",
        )

    async def get(self, session: AsyncSession, application_id: str, *, timeout: float | None = None) -> Application:
        return await self.run(
            session,
            lambda: crud.get_application_or_raise(session, application_id=application_id),
            timeout=timeout,
            name="get",
        )

    async def submit(
        self,
        session: AsyncSession,
        application_id: str,
        *,
        timeout: float | None = None,
        request_id: str | None = None,
    ) -> Application:
        return await self.run(
            session,
            lambda: crud.submit_application(session, application_id=application_id, request_id=request_id),
            timeout=timeout,
            name="submit",
        )

    async def assign(
        self,
        session: AsyncSession,
        application_id: str,
        officer_id: UUID,
        *,
        timeout: float | None = None,
        request_id: str | None = None,
    ) -> Application:
        return await self.run(
            session,
            lambda: crud.assign_application(
                session, application_id=application_id, officer_id=officer_id, request_id=request_id
            ),
            timeout=timeout,
            name="assign",
        )

    async def attach_document(
        self,
        session: AsyncSession,
        application_id: str,
        document: DocumentUploadCreate | dict[str, Any],
        *,
        timeout: float | None = None,
        request_id: str | None = None,
    ) -> Application:
        return await self.run(
            session,
            lambda: crud.attach_document(
                session, application_id=application_id, document=document, request_id=request_id
            ),
            timeout=timeout,
            name="attach_document",
        )

    async def find_by_beneficiary(
        self, session: AsyncSession, beneficiary_id: UUID, *, timeout: float | None = None
    ) -> list[Application]:
        return await self.run(
            session,
            lambda: crud.list_applications_by_beneficiary(session, beneficiary_id=beneficiary_id),
            timeout=timeout,
            name="find_by_beneficiary",
        )

    async def find_pending(
        self, session: AsyncSession, *, officer_id: UUID | None = None, timeout: float | None = None
    ) -> list[Application]:
        return await self.run(
            session,
            lambda: crud.list_pending_applications(session, officer_id=officer_id),
            timeout=timeout,
            name="find_pending",
        )

    async def stats(self, session: AsyncSession, *, timeout: float | None = None) -> list[dict[str, Any]]:
        return await self.run(session, lambda: crud.application_stats(session), timeout=timeout, name="stats")

    async def search(
        self,
        session: AsyncSession,
        *,
        status: str | None = None,
        application_type: str | None = None,
        beneficiary_id: UUID | None = None,
        submitted_from: datetime | None = None,
        submitted_to: datetime | None = None,
        page: int = 1,
        page_size: int = 20,
        timeout: float | None = None,
    ) -> tuple[list[Application], int]:
        return await self.run(
            session,
            lambda: crud.list_applications(
                session,
                status=status,
                application_type=application_type,
                beneficiary_id=beneficiary_id,
                submitted_from=submitted_from,
                submitted_to=submitted_to,
                page=page,
                page_size=page_size,
            ),
            timeout=timeout,
            name="search",
        )

    async def timeline(
        self, session: AsyncSession, application_id: str, *, timeout: float | None = None
    ) -> tuple[Application, list[AuditLog]]:
        async def _op() -> tuple[Application, list[AuditLog]]:
            app = await crud.get_application_or_raise(session, application_id=application_id)
            entries = await list_application_audit(session, application_id=application_id)
            return app, entries

        return await self.run(session, _op, timeout=timeout, name="timeline")
