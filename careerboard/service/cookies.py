from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Optional
from urllib.parse import unquote

from starlette.responses import Response

from careerboard.service.tokens import SessionPayload, SessionTokenSigner

SESSION_COOKIE_NAME = "session"


def parse_cookie_header(header: Optional[str]) -> Dict[str, str]:
    """Split a raw ``Cookie`` header into name/value pairs.

    Segments without ``=`` or with an empty name are skipped; the first
    occurrence of a name wins.
    """
    cookies: Dict[str, str] = {}
    if not header:
        return cookies
    for segment in header.split(";"):
        name, sep, value = segment.partition("=")
        name = name.strip()
        if not sep or not name:
            continue
        if name in cookies:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = value[1:-1]
        cookies[name] = unquote(value)
    return cookies


def attach_session(
    response: Response,
    payload: SessionPayload,
    signer: SessionTokenSigner,
    *,
    secure: bool,
) -> str:
    """Sign ``payload`` and set it as the session cookie; returns the token."""
    token = signer.sign(payload)
    remaining_ms = max(payload.expires_at_ms - signer.now_ms(), 0)
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        max_age=remaining_ms // 1000,
        expires=datetime.fromtimestamp(payload.expires_at_ms / 1000, tz=timezone.utc),
        path="/",
        secure=secure,
        httponly=True,
        samesite="lax",
    )
    return token


def clear_session(response: Response, *, secure: bool) -> None:
    response.delete_cookie(
        SESSION_COOKIE_NAME, path="/", secure=secure, httponly=True, samesite="lax"
    )


def current_session(
    cookie_header: Optional[str], signer: SessionTokenSigner
) -> Optional[SessionPayload]:
    token = parse_cookie_header(cookie_header).get(SESSION_COOKIE_NAME)
    return signer.verify(token)
