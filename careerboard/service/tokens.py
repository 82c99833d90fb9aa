"""Signed session tokens.

A token is ``<payload>.<signature>`` where ``payload`` is the compact JSON
object ``{"identifier", "role", "expiresAtEpochMillis"}`` in unpadded
URL-safe base64 and ``signature`` is HMAC-SHA256 over the payload segment with
the server secret, encoded the same way.

There is no version field: changing this format, or rotating the secret,
invalidates every outstanding session.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import re
import time
from datetime import timedelta
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from careerboard.logging import get_logger
from careerboard.service.errors import (
    CredentialError,
    MalformedToken,
    SignatureMismatch,
    TokenExpired,
)

logger = get_logger(__name__)

MAX_TOKEN_LENGTH = 4096
_SEGMENT_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class SessionPayload(BaseModel):
    """Verified session claims: who, with which role, until when."""

    identifier: str = Field(..., min_length=1, max_length=256)
    role: Role
    expires_at_ms: int = Field(..., alias="expiresAtEpochMillis", ge=0)

    # only the wire name is accepted, never the attribute name
    model_config = ConfigDict(frozen=True, extra="forbid")

    def to_json(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def _encode_segment(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _decode_segment(segment: str) -> bytes:
    if not _SEGMENT_PATTERN.fullmatch(segment):
        raise MalformedToken("segment is not unpadded base64url")
    padding = "=" * ((4 - len(segment) % 4) % 4)
    try:
        return base64.urlsafe_b64decode(segment + padding)
    except (ValueError, TypeError) as exc:
        raise MalformedToken("segment does not decode") from exc


class SessionTokenSigner:
    """Issues and verifies session tokens with a fixed HMAC key.

    ``clock`` returns the current time in epoch milliseconds and exists so the
    expiry boundary can be pinned in tests.
    """

    def __init__(self, secret: str | bytes, *, clock: Optional[Callable[[], int]] = None) -> None:
        key = secret.encode("utf-8") if isinstance(secret, str) else bytes(secret)
        if not key:
            raise ValueError("session secret must not be empty")
        self._key = key
        self._clock = clock or now_ms

    def now_ms(self) -> int:
        return self._clock()

    def issue(self, identifier: str, role: Role, ttl: timedelta) -> SessionPayload:
        expires = self.now_ms() + int(ttl.total_seconds() * 1000)
        return SessionPayload(identifier=identifier, role=role, expiresAtEpochMillis=expires)

    def _signature(self, payload_segment: str) -> str:
        digest = hmac.new(
            self._key, payload_segment.encode("ascii"), hashlib.sha256
        ).digest()
        return _encode_segment(digest)

    def sign(self, payload: SessionPayload) -> str:
        payload_segment = _encode_segment(payload.to_json())
        return f"{payload_segment}.{self._signature(payload_segment)}"

    def verify(self, token: Optional[str]) -> Optional[SessionPayload]:
        """Return the payload of a valid, unexpired token, otherwise ``None``.

        Callers cannot tell why a token was refused; the reason is only logged.
        """
        if not token:
            return None
        try:
            return self._verify(token)
        except CredentialError as exc:
            logger.debug(exc.log_event, reason=str(exc))
            return None

    def _verify(self, token: str) -> SessionPayload:
        if len(token) > MAX_TOKEN_LENGTH:
            raise MalformedToken("token too long")
        parts = token.split(".")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise MalformedToken("expected exactly two non-empty segments")
        payload_segment, carried = parts
        if not _SEGMENT_PATTERN.fullmatch(payload_segment):
            raise MalformedToken("payload segment is not unpadded base64url")

        expected = self._signature(payload_segment).encode("ascii")
        carried_bytes = carried.encode("utf-8")
        if len(carried_bytes) != len(expected):
            raise SignatureMismatch("signature length differs")
        if not hmac.compare_digest(carried_bytes, expected):
            raise SignatureMismatch("signature differs")

        raw = _decode_segment(payload_segment)
        try:
            payload = SessionPayload.model_validate_json(raw, strict=True)
        except PydanticValidationError as exc:
            raise MalformedToken(f"payload rejected: {exc.error_count()} error(s)") from exc

        if self.now_ms() >= payload.expires_at_ms:
            raise TokenExpired("token expired")
        return payload
