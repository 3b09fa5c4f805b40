# File: civicvoice/core/errors.py
"""
Error taxonomy for the issue core.

Every error is recoverable at the call site. Services raise them, callers may
catch them, and the API renders them through a single exception handler
registered in ``civicvoice.main``.
"""

from typing import Optional


class CivicError(Exception):
    code = "error"
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"detail": self.message, "error": self.code}


class NotAuthenticated(CivicError):
    code = "not_authenticated"
    status_code = 401
    default_message = "Not authenticated"


class NotOwner(CivicError):
    code = "not_owner"
    status_code = 403
    default_message = "Only the owner of this issue can change it"


class NotEditable(CivicError):
    code = "not_editable"
    status_code = 409
    default_message = "Issue can no longer be changed once work has started"


class AlreadyVoted(CivicError):
    code = "already_voted"
    status_code = 409
    default_message = "User has already voted on this issue"


class ValidationError(CivicError):
    code = "validation_error"
    status_code = 422
    default_message = "Invalid value"

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"Invalid value for {field}")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["field"] = self.field
        return data


class NotFound(CivicError):
    code = "not_found"
    status_code = 404
    default_message = "Not found"


class UploadTooLarge(CivicError):
    code = "upload_too_large"
    status_code = 413
    default_message = "Image exceeds the maximum upload size"


class UpstreamFailure(CivicError):
    """Storage or network failure; the original exception is kept as ``__cause__``."""
    code = "upstream_failure"
    status_code = 502
    default_message = "Upstream service failed"


class UploadFailed(UpstreamFailure):
    code = "upload_failed"
    default_message = "Image upload failed"
