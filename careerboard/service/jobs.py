from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol

from careerboard.logging import get_logger
from careerboard.service.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from careerboard.service.tokens import Role, SessionPayload
from careerboard.storage.errors import ConstraintViolation
from careerboard.storage.models import Application, Job, new_id, utcnow

PHONE_PATTERN = re.compile(r"^[0-9\-+() ]+$")


class JobStore(Protocol):
    def list_jobs(self) -> List[Job]: ...

    def get_job(self, job_id: str) -> Optional[Job]: ...

    def create_job(self, job: Job) -> Job: ...

    def update_job(self, job: Job) -> Optional[Job]: ...

    def delete_job(self, job_id: str) -> bool: ...

    def get_application_for_user(self, user_id: str) -> Optional[Application]: ...

    def create_application(self, application: Application) -> Application: ...

    def delete_application(self, application_id: str) -> bool: ...

    def list_applications_for_job(self, job_id: str) -> List[Application]: ...


@dataclass
class JobDraft:
    """Admin-editable job fields before validation."""

    title: str
    company: str
    location: Optional[str] = None
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    deadline: Optional[datetime] = None
    description: Optional[str] = None


@dataclass
class ApplyOutcome:
    application: Application
    already_applied: bool = False


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _required_text(value: Optional[str], field: str, message: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(message, detail={"field": field})
    return cleaned


def _clean_draft(draft: JobDraft) -> JobDraft:
    title = _required_text(draft.title, "title", "title is required")
    company = _required_text(draft.company, "company", "company is required")
    for field in ("salary_min", "salary_max"):
        value = getattr(draft, field)
        if value is not None and value < 0:
            raise ValidationError(
                f"{field} must be a non-negative number", detail={"field": field}
            )
    if (
        draft.salary_min is not None
        and draft.salary_max is not None
        and draft.salary_min > draft.salary_max
    ):
        raise ValidationError(
            "salary_min must not exceed salary_max", detail={"field": "salary_min"}
        )
    return JobDraft(
        title=title,
        company=company,
        location=(draft.location or "").strip(),
        salary_min=draft.salary_min,
        salary_max=draft.salary_max,
        deadline=_as_utc(draft.deadline),
        description=(draft.description or "").strip(),
    )


class JobService:
    """Job listing and the single-application rule, plus admin job management."""

    def __init__(
        self, store: JobStore, *, clock: Optional[Callable[[], datetime]] = None
    ) -> None:
        self.store = store
        self.clock = clock or utcnow
        self.logger = get_logger(__name__)

    def list_jobs(self) -> List[Job]:
        return self.store.list_jobs()

    def get_job(self, job_id: str) -> Job:
        job = self.store.get_job(job_id)
        if job is None:
            raise NotFoundError("job not found", detail={"job_id": job_id})
        return job

    def my_application(self, payload: SessionPayload) -> Optional[Job]:
        application = self.store.get_application_for_user(payload.identifier)
        if application is None:
            return None
        return self.store.get_job(application.job_id)

    def apply(
        self,
        payload: SessionPayload,
        job_id: str,
        *,
        full_name: Optional[str],
        phone: Optional[str],
        cover_letter: Optional[str] = None,
    ) -> ApplyOutcome:
        if payload.role is not Role.USER:
            raise ForbiddenError("admin accounts cannot apply to jobs")
        name = _required_text(full_name, "full_name", "full name is required")
        number = _required_text(phone, "phone", "phone number is required")
        if not PHONE_PATTERN.match(number):
            raise ValidationError("enter a valid phone number", detail={"field": "phone"})
        job = self.get_job(job_id)
        if job.is_closed(self.clock()):
            raise ValidationError(
                "the application deadline for this job has passed",
                detail={"job_id": job_id},
            )

        existing = self.store.get_application_for_user(payload.identifier)
        if existing is not None:
            if existing.job_id == job_id:
                return ApplyOutcome(application=existing, already_applied=True)
            raise ConflictError(
                "already applied to another job; cancel that application first",
                detail={"applied_job_id": existing.job_id},
            )

        application = Application(
            id=new_id(),
            user_id=payload.identifier,
            job_id=job_id,
            full_name=name,
            phone=number,
            cover_letter=(cover_letter or "").strip() or None,
            created_at=self.clock(),
        )
        try:
            created = self.store.create_application(application)
        except ConstraintViolation as exc:
            if exc.field == "job_id":
                raise NotFoundError("job not found", detail={"job_id": job_id}) from exc
            raise ConflictError(
                "already applied to another job; cancel that application first",
                detail=exc.detail,
            ) from exc
        self.logger.info("application_created", user_id=payload.identifier, job_id=job_id)
        return ApplyOutcome(application=created)

    def cancel(self, payload: SessionPayload, job_id: str) -> None:
        existing = self.store.get_application_for_user(payload.identifier)
        if existing is None or existing.job_id != job_id:
            raise ValidationError(
                "no application for this job", detail={"job_id": job_id}
            )
        self.store.delete_application(existing.id)
        self.logger.info("application_cancelled", user_id=payload.identifier, job_id=job_id)

    # admin
    def create_job(self, payload: SessionPayload, draft: JobDraft) -> Job:
        clean = _clean_draft(draft)
        job = Job(
            id=new_id(),
            title=clean.title,
            company=clean.company,
            location=clean.location or "",
            salary_min=clean.salary_min,
            salary_max=clean.salary_max,
            deadline=clean.deadline,
            description=clean.description or "",
            created_by=payload.identifier,
            created_at=self.clock(),
        )
        created = self.store.create_job(job)
        self.logger.info("job_created", job_id=created.id, admin_id=payload.identifier)
        return created

    def update_job(self, job_id: str, draft: JobDraft) -> Job:
        current = self.get_job(job_id)
        clean = _clean_draft(draft)
        updated = self.store.update_job(
            replace(
                current,
                title=clean.title,
                company=clean.company,
                location=clean.location or "",
                salary_min=clean.salary_min,
                salary_max=clean.salary_max,
                deadline=clean.deadline,
                description=clean.description or "",
            )
        )
        if updated is None:
            raise NotFoundError("job not found", detail={"job_id": job_id})
        self.logger.info("job_updated", job_id=job_id)
        return updated

    def delete_job(self, job_id: str) -> None:
        if not self.store.delete_job(job_id):
            raise NotFoundError("job not found", detail={"job_id": job_id})
        self.logger.info("job_deleted", job_id=job_id)

    def list_applications(self, job_id: str) -> List[Application]:
        self.get_job(job_id)
        return self.store.list_applications_for_job(job_id)
