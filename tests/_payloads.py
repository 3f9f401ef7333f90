import uuid
from typing import Any

MARRIAGE_DETAILS: dict[str, Any] = {
    "spouse_details": {"name": "Priya Sharma", "category": "GENERAL", "aadhaar_number": "234567890123"},
    "marriage_registration_id": "MR/2025/00417",
    "marriage_date": "2025-02-14",
    "registration_authority": "Sub-Registrar, Pune",
}

FIR_DETAILS: dict[str, Any] = {
    "fir_number": "FIR/2025/0042",
    "police_station": "Shivajinagar",
    "district": "Pune",
    "date_of_incident": "2025-01-09",
    "incident_description": "Assault and caste-based abuse",
    "sections_applied": ["3(1)(r)"],
}

SCHEME_DETAILS = {
    "INTERCASTE_MARRIAGE": MARRIAGE_DETAILS,
    "ATROCITY_RELIEF": FIR_DETAILS,
}


def create_payload(application_type: str = "INTERCASTE_MARRIAGE", **overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "beneficiary_id": str(uuid.uuid4()),
        "application_type": application_type,
        "scheme_details": dict(SCHEME_DETAILS[application_type]),
        "documents": [],
    }
    payload.update(overrides)
    return payload


async def make_application(
    store,
    session,
    *,
    application_type: str = "INTERCASTE_MARRIAGE",
    beneficiary_id: uuid.UUID | None = None,
    documents=(),
    submit: bool = False,
):
    app = await store.create(
        session,
        beneficiary_id=beneficiary_id or uuid.uuid4(),
        application_type=application_type,
        scheme_details=SCHEME_DETAILS[application_type],
        documents=documents,
    )
    if submit:
        app = await store.submit(session, app.application_id)
    return app
