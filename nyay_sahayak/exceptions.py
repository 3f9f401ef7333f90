from __future__ import annotations


class ApplicationError(Exception):
    """Base class for failures reported to callers of the store / workflow.

    `kind` is the stable error name surfaced in API error bodies.
    """

    kind = "ApplicationError"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ApplicationNotFoundError(ApplicationError):
    kind = "NotFound"
    status_code = 404

    def __init__(self, application_id: str) -> None:
        super().__init__(f"Application {application_id} not found")
        self.application_id = application_id


class DocumentNotFoundError(ApplicationError):
    kind = "NotFound"
    status_code = 404

    def __init__(self, application_id: str, index: int) -> None:
        super().__init__(f"Document {index} not found on application {application_id}")
        self.application_id = application_id
        self.index = index


class DuplicateApplicationIdError(ApplicationError):
    kind = "DuplicateId"
    status_code = 409

    def __init__(self, application_id: str) -> None:
        super().__init__(f"Application id {application_id} already exists")
        self.application_id = application_id


class InvalidTransitionError(ApplicationError):
    kind = "InvalidTransition"
    status_code = 409

    def __init__(self, application_id: str, current: str | None, target: str) -> None:
        super().__init__(f"Invalid status transition for {application_id}: {current} -> {target}")
        self.application_id = application_id
        self.current = current
        self.target = target


class MissingRemarksError(ApplicationError):
    kind = "MissingRemarks"
    status_code = 422

    def __init__(self) -> None:
        super().__init__("Remarks are required to reject an application")


class OfficerMismatchError(ApplicationError):
    kind = "OfficerMismatch"
    status_code = 403

    def __init__(self, application_id: str) -> None:
        super().__init__(f"Application {application_id} is assigned to a different officer")
        self.application_id = application_id


class ApplicationValidationError(ApplicationError, ValueError):
    kind = "ValidationError"
    status_code = 422


class DocumentsNotVerifiedError(ApplicationValidationError):
    kind = "DocumentsNotVerified"

    def __init__(self, application_id: str, missing: list[str]) -> None:
        super().__init__(
            f"Application {application_id} is missing verified mandatory documents: {', '.join(missing)}"
        )
        self.missing = missing


class StoreTimeoutError(ApplicationError):
    kind = "Timeout"
    status_code = 504
