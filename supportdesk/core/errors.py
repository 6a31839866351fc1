class SupportDeskError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500
    public_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class ValidationError(SupportDeskError):
    status_code = 400
    public_message = "Missing required fields"


class UnauthorizedError(SupportDeskError):
    status_code = 401
    public_message = "Unauthorized"


class NotFoundError(SupportDeskError):
    status_code = 404
    public_message = "Not found"


class ConflictError(SupportDeskError):
    status_code = 409
    public_message = "Conflict"


class PersistenceError(SupportDeskError):
    status_code = 500
    public_message = "Storage unavailable"


class UpstreamNotificationError(SupportDeskError):
    """A messaging channel failed. Caught by the dispatcher, never returned to callers."""

    status_code = 502
    public_message = "Notification channel failed"
