"""Error taxonomy raised by account workflows and rendered by the API layer."""

from __future__ import annotations

from typing import Any


class AccountServiceError(Exception):
    """Base class for errors that map onto a client-facing response."""

    status_code: int = 500
    code: str = "internal_error"
    message: str = "Internal server error"

    def __init__(self, message: str | None = None, *, detail: Any = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message
        self.detail = detail


class InvalidAccountIdError(AccountServiceError):
    status_code = 400
    code = "invalid_id"
    message = "Invalid user ID"


class InvalidVerificationTokenError(AccountServiceError):
    status_code = 400
    code = "invalid_verification_token"
    message = "Invalid verification token"


class AccountNotFoundError(AccountServiceError):
    status_code = 404
    code = "not_found"
    message = "User not found"


class DuplicateAccountError(AccountServiceError):
    status_code = 409
    code = "duplicate_account"
    message = "User with given email or username already exists"


class AlreadyVerifiedError(AccountServiceError):
    status_code = 409
    code = "already_verified"
    message = "User is already verified"


class InvalidCredentialsError(AccountServiceError):
    """Raised for unknown emails and wrong passwords alike."""

    status_code = 401
    code = "invalid_credentials"
    message = "Invalid credentials"


class AuthenticationRequiredError(AccountServiceError):
    status_code = 401
    code = "unauthorized"
    message = "Authentication required"


class UploadFailedError(AccountServiceError):
    status_code = 502
    code = "upload_failed"
    message = "File upload failed"


class EmailDeliveryError(Exception):
    """Raised by email senders; the verification flow logs and swallows it."""


class BackendFaultError(AccountServiceError):
    """Store or network fault. The message never carries internal detail."""

    status_code = 500
    code = "backend_fault"
    message = "Internal server error"


class RateLimitedError(AccountServiceError):
    status_code = 429
    code = "rate_limited"
    message = "rate limited"

    def __init__(self, retry_after: int) -> None:
        super().__init__(detail={"retry_after": retry_after})
        self.retry_after = retry_after
