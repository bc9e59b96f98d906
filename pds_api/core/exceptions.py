"""Custom exception classes for the PDS backend.

Services raise these; ``main.py`` turns them into JSON responses using the
``status_code`` carried by each class.
"""


class PDSError(Exception):
    """Base exception for the PDS backend."""

    status_code = 400

    def __init__(self, message: str = "An error occurred", **details):
        self.message = message
        self.details = details
        super().__init__(self.message)


class ValidationError(PDSError):
    """Raised when input validation fails."""
    status_code = 400


class DuplicateCredentialError(PDSError):
    """Raised when an email, phone number or national ID is already taken."""
    status_code = 409


class InvalidCredentialsError(PDSError):
    """Raised when an email/password pair does not match."""
    status_code = 401


class InvalidTokenError(PDSError):
    """Raised when a token is unknown, revoked, expired or malformed."""
    status_code = 401


class AccountDeactivatedError(PDSError):
    """Raised when an inactive account tries to authenticate."""
    status_code = 401


class EmailNotVerifiedError(PDSError):
    """Raised when an unverified account tries to log in."""
    status_code = 403


class AlreadyUsedError(PDSError):
    """Raised when a single-use token or flow has already been consumed."""
    status_code = 400


class AuthorizationError(PDSError):
    """Raised when user lacks permission."""
    status_code = 403


class ResourceNotFoundError(PDSError):
    """Raised when a requested resource is not found."""
    status_code = 404


class UnknownEntitiesError(PDSError):
    """Raised when a batch references entities that do not exist."""
    status_code = 400


class DuplicateEntryError(PDSError):
    """Raised when a batch would duplicate rows that already exist."""
    status_code = 409


class AlreadyCancelledError(PDSError):
    """Raised when cancelling an upload that is already cancelled."""
    status_code = 409


class TransportError(PDSError):
    """Raised when an outbound mail or storage call fails."""
    status_code = 502


class StorageError(TransportError):
    """Raised when MinIO/storage operation fails."""
    pass
