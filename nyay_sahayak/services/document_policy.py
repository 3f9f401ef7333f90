from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from nyay_sahayak.config import settings
from nyay_sahayak.lifecycle import ApplicationType, DocumentVerificationStatus
from nyay_sahayak.models.document import ApplicationDocument


@dataclass(frozen=True)
class DocumentPolicy:
    """Which document types must be VERIFIED before an application can be approved.

    The table is supplied by configuration per application type; types not
    listed have no mandatory documents.
    """

    mandatory: Mapping[ApplicationType, frozenset[str]] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Iterable[str]]) -> "DocumentPolicy":
        table: dict[ApplicationType, frozenset[str]] = {}
        for raw_type, doc_types in mapping.items():
            try:
                app_type = ApplicationType(raw_type)
            except ValueError as e:
                raise ValueError(f"Unknown application type in document policy: {raw_type}") from e
            table[app_type] = frozenset(doc_types)
        return cls(mandatory=table)

    @classmethod
    def from_settings(cls) -> "DocumentPolicy":
        return cls.from_mapping(settings.mandatory_documents)

    def mandatory_for(self, application_type: ApplicationType | str) -> frozenset[str]:
        return self.mandatory.get(ApplicationType(application_type), frozenset())

    def missing_verified(
        self,
        application_type: ApplicationType | str,
        documents: Iterable[ApplicationDocument],
    ) -> list[str]:
        """Mandatory document types with no VERIFIED upload, sorted."""

        verified = {
            d.document_type
            for d in documents
            if d.verification_status == DocumentVerificationStatus.VERIFIED.value
        }
        return sorted(self.mandatory_for(application_type) - verified)
