from __future__ import annotations

import re
from datetime import datetime
from typing import Any, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from careerboard.service.auth import MAX_PASSWORD_LENGTH, MIN_PASSWORD_LENGTH, is_utf8_encodable
from careerboard.service.jobs import JobDraft
from careerboard.storage.models import Application, Job, User, normalize_email

_VALID_ERROR_CODES = frozenset({
    "unauthorized",
    "forbidden",
    "not_found",
    "validation_error",
    "conflict",
    "server_error",
})


class ErrorBody(BaseModel):
    """Error half of the response envelope; ``code`` is a stable value."""

    code: str
    message: str
    details: Optional[Any] = None

    @field_validator("code")
    @classmethod
    def _known_code(cls, value: str) -> str:
        if value not in _VALID_ERROR_CODES:
            raise ValueError(f"unknown error code {value!r}")
        return value


class Envelope(BaseModel):
    status: str = Field(..., pattern="^(ok|error)$")
    data: Optional[Any] = None
    error: Optional[ErrorBody] = None
    request_id: str = Field(default_factory=lambda: str(uuid4()))


_EMAIL_LOCAL_PART = re.compile(r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+$")
_EMAIL_DOMAIN_LABEL = re.compile(r"^[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?$")


def _validate_email(value: str) -> str:
    normalized = normalize_email(value)
    if len(normalized) > 254:
        raise ValueError("email address too long")
    local, sep, domain = normalized.partition("@")
    if not sep or not local or not domain:
        raise ValueError("invalid email address")
    if len(local) > 64 or not _EMAIL_LOCAL_PART.match(local):
        raise ValueError("invalid email address format")
    domain_parts = domain.split(".")
    if len(domain_parts) < 2:
        raise ValueError("invalid email address format")
    for label in domain_parts:
        if len(label) > 63 or not _EMAIL_DOMAIN_LABEL.match(label):
            raise ValueError("invalid email address format")
    return normalized


def _validate_password_length(value: str) -> str:
    if len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(value) > MAX_PASSWORD_LENGTH:
        raise ValueError(f"password must be at most {MAX_PASSWORD_LENGTH} characters")
    return _validate_encodable(value)


def _validate_encodable(value: str) -> str:
    if not is_utf8_encodable(value):
        raise ValueError("password contains characters that cannot be encoded")
    return value


class RegisterRequest(BaseModel):
    email: str
    password: str

    model_config = ConfigDict(extra="forbid")

    @field_validator("email")
    @classmethod
    def _validate_register_email(cls, value: str) -> str:
        return _validate_email(value)

    @field_validator("password")
    @classmethod
    def _validate_password(cls, value: str) -> str:
        return _validate_password_length(value)


class LoginRequest(BaseModel):
    # Login does not re-validate format; a bad email simply fails to match
    email: str = Field(..., min_length=1, max_length=254)
    password: str = Field(..., min_length=1, max_length=MAX_PASSWORD_LENGTH)

    model_config = ConfigDict(extra="forbid")

    @field_validator("password")
    @classmethod
    def _encodable_password(cls, value: str) -> str:
        return _validate_encodable(value)


class PasswordChangeRequest(BaseModel):
    """Request to change password (requires current password)."""

    current_password: str = Field(..., min_length=1, max_length=MAX_PASSWORD_LENGTH)
    new_password: str

    model_config = ConfigDict(extra="forbid")

    @field_validator("current_password")
    @classmethod
    def _encodable_current_password(cls, value: str) -> str:
        return _validate_encodable(value)

    @field_validator("new_password")
    @classmethod
    def _validate_new_password(cls, value: str) -> str:
        return _validate_password_length(value)


class ApplyRequest(BaseModel):
    full_name: str = Field(..., max_length=200)
    phone: str = Field(..., max_length=40)
    cover_letter: Optional[str] = Field(default=None, max_length=10_000)

    model_config = ConfigDict(extra="forbid")


class JobRequest(BaseModel):
    title: str = Field(..., max_length=200)
    company: str = Field(..., max_length=200)
    location: Optional[str] = Field(default=None, max_length=200)
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    deadline: Optional[datetime] = None
    description: Optional[str] = Field(default=None, max_length=20_000)

    model_config = ConfigDict(extra="forbid")

    def to_draft(self) -> JobDraft:
        return JobDraft(**self.model_dump())


class UserResponse(BaseModel):
    id: str
    email: str
    role: str
    applied_job_id: Optional[str] = None


class AuthResponse(BaseModel):
    user: UserResponse
    session_expires_at: datetime


class JobResponse(BaseModel):
    id: str
    title: str
    company: str
    location: str
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    deadline: Optional[datetime] = None
    description: str
    closed: bool = False
    created_at: datetime

    @classmethod
    def from_job(cls, job: Job, now: Optional[datetime] = None) -> "JobResponse":
        return cls(
            id=job.id,
            title=job.title,
            company=job.company,
            location=job.location,
            salary_min=job.salary_min,
            salary_max=job.salary_max,
            deadline=job.deadline,
            description=job.description,
            closed=job.is_closed(now),
            created_at=job.created_at,
        )


class JobListResponse(BaseModel):
    items: List[JobResponse]


class ApplicationResponse(BaseModel):
    id: str
    job_id: str
    user_id: str
    full_name: str
    phone: str
    cover_letter: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_application(cls, application: Application) -> "ApplicationResponse":
        return cls(
            id=application.id,
            job_id=application.job_id,
            user_id=application.user_id,
            full_name=application.full_name,
            phone=application.phone,
            cover_letter=application.cover_letter,
            created_at=application.created_at,
        )


class ApplyResponse(BaseModel):
    application: ApplicationResponse
    already_applied: bool = False


def user_response(user: User, applied_job_id: Optional[str] = None) -> UserResponse:
    return UserResponse(
        id=user.id, email=user.email, role=user.role.value, applied_job_id=applied_job_id
    )
