"""Custom exceptions for Akshara.

Raised by models and repositories; the API maps each one to its status code.
"""


class AksharaError(Exception):
    """Base class for errors that surface to API callers."""

    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        self.message = message
        super().__init__(message)


class ValidationError(AksharaError):
    """Raised when input is missing or malformed."""

    status_code = 400


class AuthenticationError(AksharaError):
    """Raised for missing, invalid or expired tokens and bad credentials."""

    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class PermissionDeniedError(AksharaError):
    """Raised when the caller does not own the requested resource."""

    status_code = 403

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class NotFoundError(AksharaError):
    """Raised when a requested record does not exist."""

    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)
