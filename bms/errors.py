"""Error taxonomy shared by the service layer and the HTTP boundary.

Every error carries a stable machine-readable ``code``, the HTTP status
it maps to, and a short human-readable message that is safe to show to
clients.
"""


class BMSError(Exception):
    code = "SERVER_ERROR"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, *, details: list | None = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.code, "message": self.message}
        if self.details:
            body["errors"] = self.details
        return body


class ValidationError(BMSError):
    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Validation error"


class InvalidCredentials(BMSError):
    code = "INVALID_CREDENTIALS"
    status_code = 401
    default_message = "Invalid credentials"


class Unauthenticated(BMSError):
    code = "UNAUTHENTICATED"
    status_code = 401
    default_message = "Not authenticated"


class InsufficientRole(BMSError):
    code = "INSUFFICIENT_ROLE"
    status_code = 403
    default_message = "Insufficient role"


class InsufficientPermission(BMSError):
    code = "INSUFFICIENT_PERMISSION"
    status_code = 403
    default_message = "Insufficient permission"


class NotFound(BMSError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Not found"


class StoreError(BMSError):
    code = "STORE_ERROR"
    status_code = 500
    default_message = "A storage error occurred"


class RequestTimeout(BMSError):
    code = "REQUEST_TIMEOUT"
    status_code = 504
    default_message = "Request timed out"
