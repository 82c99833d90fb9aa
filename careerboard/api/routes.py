from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from careerboard.api.schemas import (
    ApplicationResponse,
    ApplyRequest,
    ApplyResponse,
    AuthResponse,
    Envelope,
    JobListResponse,
    JobRequest,
    JobResponse,
    LoginRequest,
    PasswordChangeRequest,
    RegisterRequest,
    UserResponse,
    user_response,
)
from careerboard.logging import get_logger
from careerboard.service.cookies import attach_session, clear_session, current_session
from careerboard.service.errors import AuthenticationError
from careerboard.service.gates import authentication_gate, role_gate
from careerboard.service.runtime import get_runtime
from careerboard.service.tokens import Role, SessionPayload
from careerboard.storage.models import User

logger = get_logger(__name__)

router = APIRouter(prefix="/api")


async def optional_session(request: Request) -> Optional[SessionPayload]:
    """Verified session from the cookie, or ``None`` for anonymous callers."""
    runtime = get_runtime()
    payload = current_session(request.headers.get("cookie"), runtime.signer)
    return authentication_gate(payload, required=False)


async def require_session(
    payload: Optional[SessionPayload] = Depends(optional_session),
) -> SessionPayload:
    return authentication_gate(payload, required=True)


def require_role(role: Role):
    """Dependency factory: authenticated callers holding ``role`` only."""

    async def _role_dependency(
        payload: SessionPayload = Depends(require_session),
    ) -> SessionPayload:
        return role_gate(payload, role)

    return _role_dependency


require_admin = require_role(Role.ADMIN)


def _cookie_secure(request: Request) -> bool:
    return request.url.scheme == "https" or get_runtime().settings.cookie_secure


def _session_response(
    request: Request, response: Response, user: User, payload: SessionPayload
) -> AuthResponse:
    runtime = get_runtime()
    attach_session(response, payload, runtime.signer, secure=_cookie_secure(request))
    described = runtime.auth.describe(user.id) or {}
    return AuthResponse(
        user=user_response(user, described.get("applied_job_id")),
        session_expires_at=datetime.fromtimestamp(
            payload.expires_at_ms / 1000, tz=timezone.utc
        ),
    )


# auth


@router.post("/auth/register", response_model=Envelope, status_code=201, tags=["auth"])
async def register(body: RegisterRequest, request: Request, response: Response):
    """Create a user account and start a session for it."""
    runtime = get_runtime()
    user, payload = await runtime.auth.register(body.email, body.password)
    return Envelope(status="ok", data=_session_response(request, response, user, payload))


@router.post("/auth/login", response_model=Envelope, tags=["auth"])
async def login(body: LoginRequest, request: Request, response: Response):
    runtime = get_runtime()
    result = await runtime.auth.login(body.email, body.password)
    if result is None:
        raise AuthenticationError("invalid email or password")
    user, payload = result
    return Envelope(status="ok", data=_session_response(request, response, user, payload))


@router.post("/auth/logout", response_model=Envelope, tags=["auth"])
async def logout(request: Request, response: Response):
    # Sessions are stateless; dropping the cookie is the whole logout
    clear_session(response, secure=_cookie_secure(request))
    return Envelope(status="ok", data={"message": "logged out"})


@router.get("/auth/me", response_model=Envelope, tags=["auth"])
async def me(payload: Optional[SessionPayload] = Depends(optional_session)):
    if payload is None:
        return Envelope(status="ok", data=None)
    runtime = get_runtime()
    described = runtime.auth.describe(payload.identifier)
    return Envelope(status="ok", data=UserResponse(**described) if described else None)


@router.post("/auth/password", response_model=Envelope, tags=["auth"])
async def change_password(
    body: PasswordChangeRequest,
    request: Request,
    response: Response,
    payload: SessionPayload = Depends(require_session),
):
    """Change the caller's password and re-issue the session cookie."""
    runtime = get_runtime()
    result = await runtime.auth.change_password(
        payload.identifier, body.current_password, body.new_password
    )
    if result is None:
        raise AuthenticationError("current password is incorrect")
    user, new_payload = result
    return Envelope(
        status="ok", data=_session_response(request, response, user, new_payload)
    )


# jobs


@router.get("/jobs", response_model=Envelope, tags=["jobs"])
async def list_jobs():
    runtime = get_runtime()
    now = runtime.jobs.clock()
    items = [JobResponse.from_job(job, now) for job in runtime.jobs.list_jobs()]
    return Envelope(status="ok", data=JobListResponse(items=items))


@router.get("/jobs/me/application", response_model=Envelope, tags=["jobs"])
async def my_application(payload: SessionPayload = Depends(require_session)):
    runtime = get_runtime()
    job = runtime.jobs.my_application(payload)
    data = JobResponse.from_job(job, runtime.jobs.clock()) if job else None
    return Envelope(status="ok", data=data)


@router.get("/jobs/{job_id}", response_model=Envelope, tags=["jobs"])
async def get_job(job_id: str):
    runtime = get_runtime()
    job = runtime.jobs.get_job(job_id)
    return Envelope(status="ok", data=JobResponse.from_job(job, runtime.jobs.clock()))


@router.post("/jobs/{job_id}/apply", response_model=Envelope, tags=["jobs"])
async def apply(
    job_id: str,
    body: ApplyRequest,
    payload: SessionPayload = Depends(require_session),
):
    runtime = get_runtime()
    outcome = runtime.jobs.apply(
        payload,
        job_id,
        full_name=body.full_name,
        phone=body.phone,
        cover_letter=body.cover_letter,
    )
    return Envelope(
        status="ok",
        data=ApplyResponse(
            application=ApplicationResponse.from_application(outcome.application),
            already_applied=outcome.already_applied,
        ),
    )


@router.post("/jobs/{job_id}/cancel", response_model=Envelope, tags=["jobs"])
async def cancel(job_id: str, payload: SessionPayload = Depends(require_session)):
    runtime = get_runtime()
    runtime.jobs.cancel(payload, job_id)
    return Envelope(status="ok", data={"cancelled": True, "job_id": job_id})


# admin


@router.post("/admin/jobs", response_model=Envelope, status_code=201, tags=["admin"])
async def admin_create_job(
    body: JobRequest, payload: SessionPayload = Depends(require_admin)
):
    runtime = get_runtime()
    job = runtime.jobs.create_job(payload, body.to_draft())
    return Envelope(status="ok", data=JobResponse.from_job(job, runtime.jobs.clock()))


@router.put("/admin/jobs/{job_id}", response_model=Envelope, tags=["admin"])
async def admin_update_job(
    job_id: str, body: JobRequest, payload: SessionPayload = Depends(require_admin)
):
    runtime = get_runtime()
    job = runtime.jobs.update_job(job_id, body.to_draft())
    logger.info("admin_job_update", admin_id=payload.identifier, job_id=job_id)
    return Envelope(status="ok", data=JobResponse.from_job(job, runtime.jobs.clock()))


@router.delete("/admin/jobs/{job_id}", response_model=Envelope, tags=["admin"])
async def admin_delete_job(job_id: str, payload: SessionPayload = Depends(require_admin)):
    runtime = get_runtime()
    runtime.jobs.delete_job(job_id)
    logger.info("admin_job_delete", admin_id=payload.identifier, job_id=job_id)
    return Envelope(status="ok", data={"deleted": True, "job_id": job_id})


@router.get(
    "/admin/jobs/{job_id}/applications", response_model=Envelope, tags=["admin"]
)
async def admin_list_applications(
    job_id: str, payload: SessionPayload = Depends(require_admin)
):
    runtime = get_runtime()
    items = [
        ApplicationResponse.from_application(app)
        for app in runtime.jobs.list_applications(job_id)
    ]
    return Envelope(status="ok", data={"items": items})
