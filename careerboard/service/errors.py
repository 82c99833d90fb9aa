"""Exceptions raised by the careerboard services.

Two families live here. ``ServiceError`` subclasses cross the HTTP boundary:
``api.error_handling`` renders them into the error envelope using the
class-level ``status_code`` and ``error_code``. ``CredentialError``
subclasses never leave the token and password helpers, which turn them into
a plain negative answer after logging ``log_event``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ServiceError(Exception):
    status_code: int = 400
    error_code: str = "validation_error"

    def __init__(
        self,
        message: str,
        *,
        detail: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.detail: Dict[str, Any] = dict(detail or {})
        # per-instance overrides shadow the class defaults
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, detail={self.detail!r})"


class ValidationError(ServiceError):
    """Input passed schema checks but breaks a business rule (400)."""


class AuthenticationError(ServiceError):
    """No usable session, or the supplied credentials were wrong (401)."""

    status_code = 401
    error_code = "unauthorized"


class ForbiddenError(ServiceError):
    """Authenticated, but the role does not allow the action (403)."""

    status_code = 403
    error_code = "forbidden"


class NotFoundError(ServiceError):
    status_code = 404
    error_code = "not_found"


class ConflictError(ServiceError):
    """Duplicate email, or an application already held for another job (409)."""

    status_code = 409
    error_code = "conflict"


class CredentialError(Exception):
    log_event: str = "credential_rejected"


class MalformedToken(CredentialError):
    """Wrong segment count, bad base64url, or a payload of the wrong shape."""

    log_event = "session_token_malformed"


class SignatureMismatch(CredentialError):
    log_event = "session_token_bad_signature"


class TokenExpired(CredentialError):
    log_event = "session_token_expired"


class HashingFailure(CredentialError):
    """The KDF itself failed, typically on a stored salt that is not hex."""

    log_event = "password_hash_failure"


__all__ = [
    "ServiceError",
    "ValidationError",
    "AuthenticationError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "CredentialError",
    "MalformedToken",
    "SignatureMismatch",
    "TokenExpired",
    "HashingFailure",
]
