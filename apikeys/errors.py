"""
Error taxonomy for the key service.

Each error carries the HTTP status it maps to and a message that is safe to
return to callers.
"""


class KeyServiceError(Exception):
    """Base class for all service errors."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(KeyServiceError):
    """Malformed input."""

    status_code = 400
    default_message = "Validation failed"


class ConflictError(KeyServiceError):
    """Duplicate admin email."""

    status_code = 400
    default_message = "Email already registered"


class UnauthorizedError(KeyServiceError):
    """Bad credentials or a missing, invalid or expired session."""

    status_code = 401
    default_message = "Unauthorized"


class NotFoundError(KeyServiceError):
    status_code = 404
    default_message = "Not found"


class StoreError(KeyServiceError):
    """Any persistence failure."""

    status_code = 500
    default_message = "Database operation failed"
