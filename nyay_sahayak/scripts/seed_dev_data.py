from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from nyay_sahayak.config import settings
from nyay_sahayak.crud.application import create_application, get_application, submit_application
from nyay_sahayak.database import engine_kwargs
from nyay_sahayak.lifecycle import ApplicationType

logger = logging.getLogger(__name__)


DEMO_BENEFICIARY_ID = uuid.UUID("00000000-0000-4000-8000-00000000b001")


@dataclass(frozen=True)
class SeedApplicationSpec:
    application_id: str
    application_type: ApplicationType
    scheme_details: dict[str, Any]
    documents: tuple[dict[str, str], ...] = field(default_factory=tuple)
    submit: bool = False


DEMO_APPLICATIONS: tuple[SeedApplicationSpec, ...] = (
    SeedApplicationSpec(
        application_id="MAR_2025_100001",
        application_type=ApplicationType.INTERCASTE_MARRIAGE,
        scheme_details={
            "spouse_details": {"name": "Priya Sharma", "category": "GENERAL", "aadhaar_number": "234567890123"},
            "marriage_registration_id": "MR/2025/00417",
            "marriage_date": "2025-02-14",
            "registration_authority": "Sub-Registrar, Pune",
        },
        documents=(
            {
                "document_type": "MARRIAGE_CERTIFICATE",
                "file_name": "marriage_certificate.pdf",
                "file_url": "https://files.example.local/demo/marriage_certificate.pdf",
            },
        ),
        submit=True,
    ),
    SeedApplicationSpec(
        application_id="ATR_2025_100001",
        application_type=ApplicationType.ATROCITY_RELIEF,
        scheme_details={
            "fir_number": "FIR/2025/0042",
            "police_station": "Shivajinagar",
            "district": "Pune",
            "date_of_incident": "2025-01-09",
            "incident_description": "Assault and caste-based abuse",
            "sections_applied": ["3(1)(r)", "3(1)(s)"],
        },
        documents=(
            {"document_type": "FIR_COPY", "file_name": "fir.pdf", "file_url": "https://files.example.local/demo/fir.pdf"},
        ),
        submit=True,
    ),
    SeedApplicationSpec(
        application_id="MAR_2025_100002",
        application_type=ApplicationType.INTERCASTE_MARRIAGE,
        scheme_details={
            "spouse_details": {"name": "Rahul Verma", "category": "OBC", "aadhaar_number": "345678901234"},
            "marriage_registration_id": "MR/2025/00988",
            "marriage_date": "2025-03-02",
            "registration_authority": "Sub-Registrar, Nagpur",
        },
    ),
)


async def seed(session: AsyncSession) -> dict[str, int]:
    """Create the demo applications that are missing. Safe to run repeatedly."""

    created = 0
    existing = 0

    for spec in DEMO_APPLICATIONS:
        if await get_application(session, application_id=spec.application_id) is not None:
            existing += 1
            continue

        await create_application(
            session,
            beneficiary_id=DEMO_BENEFICIARY_ID,
            application_type=spec.application_type,
            scheme_details=spec.scheme_details,
            application_id=spec.application_id,
            documents=spec.documents,
        )
        if spec.submit:
            await submit_application(session, application_id=spec.application_id)
        created += 1

    return {"created": created, "existing": existing}


async def main(database_url: str | None = None) -> dict[str, int]:
    url = database_url or settings.database_url
    engine = create_async_engine(url, **engine_kwargs(url))
    try:
        session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
        async with session_factory() as session:
            result = await seed(session)
    finally:
        await engine.dispose()

    logger.info("seed complete created=%s existing=%s", result["created"], result["existing"])
    return result


if __name__ == "__main__":
    from nyay_sahayak.logging_config import configure_logging

    configure_logging()
    asyncio.run(main())
