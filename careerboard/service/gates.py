"""Access gates run before route handlers.

A request starts with no session and ends in one of two states: anonymous
(no cookie, or a cookie that failed verification) or authenticated with a
verified payload. The authentication gate may refuse anonymous requests; the
role gate may refuse authenticated ones whose role does not match.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from careerboard.logging import get_logger
from careerboard.service.errors import AuthenticationError, ForbiddenError
from careerboard.service.tokens import Role, SessionPayload

logger = get_logger(__name__)

UNAUTHORIZED_MESSAGE = "authentication required"
FORBIDDEN_MESSAGE = "access denied"


class SessionState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


def resolve_state(payload: Optional[SessionPayload]) -> SessionState:
    return SessionState.AUTHENTICATED if payload is not None else SessionState.ANONYMOUS


def authentication_gate(
    payload: Optional[SessionPayload], *, required: bool
) -> Optional[SessionPayload]:
    if payload is None:
        if required:
            logger.debug("authentication_gate_rejected")
            raise AuthenticationError(UNAUTHORIZED_MESSAGE)
        return None
    return payload


def role_gate(payload: Optional[SessionPayload], role: Role) -> SessionPayload:
    if payload is None:
        logger.debug("role_gate_rejected", required_role=role.value, reason="anonymous")
        raise ForbiddenError(FORBIDDEN_MESSAGE)
    if payload.role is not role:
        logger.debug(
            "role_gate_rejected",
            required_role=role.value,
            role=payload.role.value,
            user_id=payload.identifier,
        )
        raise ForbiddenError(FORBIDDEN_MESSAGE)
    return payload
