from __future__ import annotations

import unicodedata
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from careerboard.service.tokens import Role


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def normalize_email(email: str) -> str:
    """Canonical form used for both storing and looking up emails.

    NFKC folds compatibility characters (fullwidth letters and the like)
    before case folding, so the result is stable under re-normalization.
    """
    return unicodedata.normalize("NFKC", email).strip().lower()


@dataclass
class User:
    id: str
    email: str
    password_hash: str
    password_salt: str
    role: Role = Role.USER
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Job:
    id: str
    title: str
    company: str
    location: str = ""
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    deadline: Optional[datetime] = None
    description: str = ""
    created_by: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def is_closed(self, now: Optional[datetime] = None) -> bool:
        if self.deadline is None:
            return False
        return self.deadline < (now or utcnow())


@dataclass
class Application:
    id: str
    user_id: str
    job_id: str
    full_name: str
    phone: str
    cover_letter: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)


def job_sort_key(job: Job) -> tuple:
    """Jobs with a deadline first (soonest first), then the rest newest first."""
    if job.deadline is not None:
        return (0, job.deadline.timestamp(), 0.0)
    return (1, 0.0, -job.created_at.timestamp())
