"""Typed errors surfaced by the scan service.

Automatic (upload-triggered) pipeline runs never raise these to a caller;
they are recorded on the scan itself as ``status=error``. The direct
operations (retry, analyze) raise them and the HTTP layer renders them.
"""


class ScanServiceError(Exception):
    code = "internal"
    http_status = 500

    def __init__(self, message: str = "", details: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details

    def to_dict(self) -> dict:
        payload = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFound(ScanServiceError):
    code = "not-found"
    http_status = 404


class PermissionDenied(ScanServiceError):
    code = "permission-denied"
    http_status = 403


class FailedPrecondition(ScanServiceError):
    code = "failed-precondition"
    http_status = 409


class InvalidArgument(ScanServiceError):
    code = "invalid-argument"
    http_status = 400


class InvalidResponse(ScanServiceError):
    """Model output could not be parsed."""

    code = "invalid-response"
    http_status = 502


class ValidationError(ScanServiceError):
    """Parsed model output does not have the AnalysisResult shape."""

    code = "validation-error"
    http_status = 502


class Unauthenticated(ScanServiceError):
    code = "unauthenticated"
    http_status = 401


class Internal(ScanServiceError):
    code = "internal"
    http_status = 500
