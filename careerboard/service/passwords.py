"""Password hashing for stored credentials.

Passwords are stretched with Argon2id, a memory-hard KDF, using a random
per-record salt. Both the derived key and the salt are stored as lower-case
hex so the credential record only holds text.

Verification recomputes the key and compares it with ``hmac.compare_digest``.
Any failure inside the KDF (a salt that is not hex, an out-of-range parameter)
is logged and reported as a mismatch rather than raised.
"""

from __future__ import annotations

import hmac
import secrets
from dataclasses import dataclass
from typing import NamedTuple, Optional

from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw

from careerboard.logging import get_logger
from careerboard.service.errors import HashingFailure

logger = get_logger(__name__)


@dataclass(frozen=True)
class KDFParams:
    """Argon2id cost parameters; memory_cost is in KiB."""

    time_cost: int = 3
    memory_cost: int = 64 * 1024
    parallelism: int = 4
    hash_len: int = 32
    salt_len: int = 16

    @classmethod
    def from_settings(cls, settings) -> "KDFParams":
        return cls(
            time_cost=settings.argon2_time_cost,
            memory_cost=settings.argon2_memory_cost,
            parallelism=settings.argon2_parallelism,
        )


DEFAULT_PARAMS = KDFParams()


class PasswordHash(NamedTuple):
    hash: str
    salt: str


def _derive(password: str, salt: bytes, params: KDFParams) -> bytes:
    try:
        return hash_secret_raw(
            secret=password.encode("utf-8"),
            salt=salt,
            time_cost=params.time_cost,
            memory_cost=params.memory_cost,
            parallelism=params.parallelism,
            hash_len=params.hash_len,
            type=Type.ID,
        )
    except (HashingError, ValueError, UnicodeEncodeError) as exc:
        raise HashingFailure(str(exc)) from exc


def _salt_bytes(salt: str) -> bytes:
    try:
        raw = bytes.fromhex(salt)
    except (TypeError, ValueError) as exc:
        raise HashingFailure("salt is not valid hex") from exc
    if not raw:
        raise HashingFailure("salt is empty")
    return raw


def hash_password(
    password: str, salt: Optional[str] = None, *, params: KDFParams = DEFAULT_PARAMS
) -> PasswordHash:
    """Derive a hash for ``password``.

    A fresh random salt is generated when ``salt`` is omitted. Raises
    :class:`HashingFailure` if a supplied salt cannot be used.
    """
    salt_raw = secrets.token_bytes(params.salt_len) if salt is None else _salt_bytes(salt)
    derived = _derive(password, salt_raw, params)
    return PasswordHash(hash=derived.hex(), salt=salt_raw.hex())


def verify_password(
    password: str,
    salt: str,
    expected_hash: str,
    *,
    params: KDFParams = DEFAULT_PARAMS,
) -> bool:
    """Check ``password`` against a stored hash; never raises."""
    try:
        expected = bytes.fromhex(expected_hash)
    except (TypeError, ValueError):
        expected = b""
    try:
        derived = _derive(password, _salt_bytes(salt), params)
    except HashingFailure as exc:
        logger.warning(exc.log_event, error=str(exc))
        return False
    if len(expected) != len(derived):
        return False
    return hmac.compare_digest(derived, expected)
