from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, ValidationError, computed_field, model_validator

from nyay_sahayak.exceptions import ApplicationValidationError
from nyay_sahayak.lifecycle import (
    ApplicationStatus,
    ApplicationType,
    CasteCategory,
    DetailsVerificationStatus,
    DocumentVerificationStatus,
    ReviewAction,
)


class SpouseDetails(BaseModel):
    name: str = Field(..., min_length=1)
    category: CasteCategory
    aadhaar_number: str = Field(..., pattern=r"^\d{12}$")


class MarriageDetails(BaseModel):
    spouse_details: SpouseDetails
    marriage_registration_id: str = Field(..., min_length=1)
    marriage_date: date
    registration_authority: str = Field(..., min_length=1)
    verification_status: DetailsVerificationStatus = DetailsVerificationStatus.PENDING


class FirDetails(BaseModel):
    fir_number: str = Field(..., min_length=1)
    police_station: str = Field(..., min_length=1)
    district: str = Field(..., min_length=1)
    date_of_incident: date
    incident_description: str = Field(..., min_length=1)
    sections_applied: list[str] = Field(default_factory=list)
    verification_status: DetailsVerificationStatus = DetailsVerificationStatus.PENDING


SCHEME_DETAILS_MODELS: dict[ApplicationType, type[BaseModel]] = {
    ApplicationType.INTERCASTE_MARRIAGE: MarriageDetails,
    ApplicationType.ATROCITY_RELIEF: FirDetails,
}


def validate_scheme_details(application_type: ApplicationType | str, payload: Any) -> dict[str, Any]:
    """Validate a scheme payload against its application type.

    Returns the JSON-ready dict that gets persisted in `scheme_details`.
    """

    try:
        model = SCHEME_DETAILS_MODELS[ApplicationType(application_type)]
    except ValueError as e:
        raise ApplicationValidationError(f"Unknown application_type: {application_type}") from e

    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    if not isinstance(payload, dict):
        raise ApplicationValidationError("scheme_details must be an object")

    try:
        parsed = model.model_validate(payload)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ApplicationValidationError(
            f"Invalid scheme_details for {ApplicationType(application_type).value}: {fields}"
        ) from e

    return parsed.model_dump(mode="json")


class DocumentUploadCreate(BaseModel):
    document_type: str = Field(..., min_length=1, max_length=100)
    file_name: str = Field(..., min_length=1, max_length=255)
    file_url: str = Field(..., min_length=1)


class DocumentUploadRead(BaseModel):
    position: int

    document_type: str
    file_name: str
    file_url: str
    uploaded_at: datetime

    verification_status: DocumentVerificationStatus
    verified_by: UUID | None = None
    verified_at: datetime | None = None

    class Config:
        from_attributes = True


class DocumentSummary(BaseModel):
    total: int
    verified: int
    pending: int
    rejected: int


def summarize_documents(documents: Iterable[Any]) -> DocumentSummary:
    """Count documents (ORM rows or read models) by verification status."""

    counts = Counter(DocumentVerificationStatus(d.verification_status) for d in documents)
    return DocumentSummary(
        total=sum(counts.values()),
        verified=counts[DocumentVerificationStatus.VERIFIED],
        pending=counts[DocumentVerificationStatus.PENDING],
        rejected=counts[DocumentVerificationStatus.REJECTED],
    )


class ApplicationCreate(BaseModel):
    beneficiary_id: UUID
    application_type: ApplicationType

    application_id: str | None = None
    scheme_details: dict[str, Any]
    documents: list[DocumentUploadCreate] = Field(default_factory=list)
    application_reason: str | None = None

    @model_validator(mode="after")
    def _validate_scheme_details(self) -> "ApplicationCreate":
        # Raises ApplicationValidationError (a ValueError), surfaced by pydantic as a 422.
        self.scheme_details = validate_scheme_details(self.application_type, self.scheme_details)
        return self


class ApplicationListItem(BaseModel):
    application_id: str
    beneficiary_id: UUID
    application_type: ApplicationType
    application_status: ApplicationStatus

    assigned_officer: UUID | None = None
    submitted_at: datetime | None = None
    approved_amount: float | None = None

    document_summary: DocumentSummary

    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @model_validator(mode="before")
    @classmethod
    def _summarize_documents(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return data
        # ORM row: listings carry the document counts, not the documents.
        values = {name: getattr(data, name, None) for name in cls.model_fields if name != "document_summary"}
        values["document_summary"] = summarize_documents(data.documents)
        return values


class ApplicationListResponse(BaseModel):
    items: list[ApplicationListItem]
    total: int
    page: int
    page_size: int


class ApplicationRead(BaseModel):
    application_id: str
    beneficiary_id: UUID
    application_type: ApplicationType
    application_status: ApplicationStatus

    assigned_officer: UUID | None = None
    submitted_at: datetime | None = None
    reviewed_at: datetime | None = None

    approved_amount: float | None = None
    rejection_reason: str | None = None
    application_reason: str | None = None

    scheme_details: dict[str, Any]
    documents: list[DocumentUploadRead] = Field(default_factory=list)

    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @computed_field  # type: ignore[prop-decorator]
    @property
    def document_summary(self) -> DocumentSummary:
        return summarize_documents(self.documents)


class ApplicationStatsItem(BaseModel):
    application_type: ApplicationType
    application_status: ApplicationStatus
    count: int


class ApplicationStatsResponse(BaseModel):
    items: list[ApplicationStatsItem]


class AssignRequest(BaseModel):
    officer_id: UUID


class StartReviewRequest(BaseModel):
    officer_id: UUID


class DecisionRequest(BaseModel):
    action: ReviewAction
    officer_id: UUID

    remarks: str | None = None
    # Sign is checked by the review workflow so that a negative amount
    # surfaces as the same ValidationError for API and in-process callers.
    amount: Decimal | None = None


class PaymentRequest(BaseModel):
    transaction_id: str = Field(..., min_length=1, max_length=100)
    performed_by: UUID | None = None


class DocumentVerificationUpdate(BaseModel):
    verification_status: DocumentVerificationStatus
    verified_by: UUID


class SchemeDetailsVerificationUpdate(BaseModel):
    verification_status: DetailsVerificationStatus
    verified_by: UUID
