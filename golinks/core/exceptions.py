"""
Custom Exceptions

This module defines custom exceptions for better error handling
and more specific error messages.

Every exception carries the HTTP status it maps to, a stable error code
and a hint for API consumers. The application-level exception handler in
main.py turns them into JSON responses; public endpoints catch them and
answer in plain text instead.
"""

import math
from typing import Any, Optional


class GoLinksException(Exception):
    """Base exception for the go-links service."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    hint: Optional[str] = None

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        hint: Optional[str] = None,
        **extra: Any
    ):
        self.message = message
        if error_code:
            self.error_code = error_code
        if hint:
            self.hint = hint
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        body = {"error": self.message, "errorCode": self.error_code}
        body.update(self.extra)
        if self.hint:
            body["hint"] = self.hint
        return body


class LinkNotFoundError(GoLinksException):
    """Raised when a short code or link ID does not exist."""

    status_code = 404
    error_code = "LINK_NOT_FOUND"

    def __init__(self, short_code: Optional[str] = None, link_id: Optional[int] = None):
        self.short_code = short_code
        self.link_id = link_id
        if link_id is not None:
            super().__init__(
                f"Link not found: No link exists with ID {link_id}",
                hint="Check that the link ID is correct. The link may have been deleted.",
                linkId=link_id,
            )
        else:
            super().__init__(f"Short link not found: /{short_code}")


class EndpointNotFoundError(GoLinksException):
    """Raised for unknown paths under the admin API prefix."""

    status_code = 404
    error_code = "ENDPOINT_NOT_FOUND"


class ValidationError(GoLinksException):
    """Raised when request data fails validation."""

    status_code = 400
    error_code = "VALIDATION_FAILED"


class MissingFieldsError(ValidationError):
    """Raised when required body fields are absent or empty."""

    error_code = "MISSING_FIELDS"

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(
            "Missing required fields",
            hint='Request body must include both "shortCode" and "destinationUrl" fields.',
            missing=missing,
        )


class InvalidDestinationURLError(ValidationError):
    """Raised when a destination URL violates the URL policy."""

    def __init__(self, url: str, reason: str, error_code: str, hint: str):
        self.url = url
        self.reason = reason
        super().__init__(reason, error_code=error_code, hint=hint, providedUrl=url)


class ShortCodeConflictError(GoLinksException):
    """Raised when a short code is already taken by another link."""

    status_code = 409
    error_code = "SHORTCODE_ALREADY_EXISTS"

    def __init__(self, short_code: str, existing_link_id: int, current_link_id: Optional[int] = None):
        self.short_code = short_code
        self.existing_link_id = existing_link_id
        extra = {"conflictingShortCode": short_code, "existingLinkId": existing_link_id}
        if current_link_id is None:
            message = f'Conflict: Short code "{short_code}" already exists'
            hint = "Choose a different short code or update the existing link instead."
        else:
            message = f'Conflict: Short code "{short_code}" is already used by another link'
            hint = "Choose a different short code for this link."
            extra["currentLinkId"] = current_link_id
        super().__init__(message, hint=hint, **extra)


class AuthenticationFailedError(GoLinksException):
    """Raised when the admin key is missing or wrong."""

    status_code = 401
    error_code = "INVALID_ADMIN_KEY"


class RateLimitExceededError(GoLinksException):
    """Raised when the caller's IP is blocked by the brute-force limiter."""

    status_code = 429
    error_code = "RATE_LIMIT_EXCEEDED"
    hint = "Wait for the block period to expire, or contact an administrator to manually unblock your IP."

    def __init__(self, retry_after: int, message: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(
            message or "Too many failed attempts. Please try again later.",
            retryAfter=retry_after,
        )

    @property
    def retry_after_minutes(self) -> int:
        return math.ceil(self.retry_after / 60)


class ServiceError(GoLinksException):
    """Raised when the database is unavailable or a statement fails."""

    status_code = 500
    error_code = "SERVICE_ERROR"

    def __init__(self, message: str, original_error: Optional[Exception] = None, error_code: Optional[str] = None):
        self.original_error = original_error
        super().__init__(
            f"Database error: {message}",
            error_code=error_code,
            hint="Check that the database is accessible and the tables exist.",
        )
