from __future__ import annotations

import json
import threading
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from careerboard.logging import get_logger
from careerboard.service.tokens import Role
from careerboard.storage.errors import ConstraintViolation
from careerboard.storage.models import (
    Application,
    Job,
    User,
    job_sort_key,
    new_id,
    normalize_email,
)


class MemoryStore:
    """In-process store; optionally snapshots to ``<fs_root>/state`` as JSON."""

    def __init__(self, fs_root: Optional[str] = None) -> None:
        self.logger = get_logger(__name__)
        self.users: Dict[str, User] = {}
        self.jobs: Dict[str, Job] = {}
        self.applications: Dict[str, Application] = {}
        # RLock so helpers can be called while a public method holds the lock
        self._data_lock = threading.RLock()
        self.fs_root = Path(fs_root) if fs_root else None
        if self.fs_root is not None:
            self.fs_root.mkdir(parents=True, exist_ok=True)
            self._load_state()

    # persistence
    def _state_path(self) -> Optional[Path]:
        if self.fs_root is None:
            return None
        state_dir = self.fs_root / "state"
        state_dir.mkdir(parents=True, exist_ok=True)
        return state_dir / "careerboard.json"

    @staticmethod
    def _serialize_datetime(dt: Optional[datetime]) -> Optional[str]:
        return dt.isoformat() if dt else None

    @staticmethod
    def _deserialize_datetime(raw: Optional[str]) -> Optional[datetime]:
        return datetime.fromisoformat(raw) if raw else None

    def _serialize_user(self, user: User) -> dict:
        return {
            "id": user.id,
            "email": user.email,
            "password_hash": user.password_hash,
            "password_salt": user.password_salt,
            "role": user.role.value,
            "created_at": self._serialize_datetime(user.created_at),
        }

    def _deserialize_user(self, data: dict) -> User:
        return User(
            id=data["id"],
            email=data["email"],
            password_hash=data["password_hash"],
            password_salt=data["password_salt"],
            role=Role(data.get("role", Role.USER.value)),
            created_at=self._deserialize_datetime(data.get("created_at")),
        )

    def _serialize_job(self, job: Job) -> dict:
        return {
            "id": job.id,
            "title": job.title,
            "company": job.company,
            "location": job.location,
            "salary_min": job.salary_min,
            "salary_max": job.salary_max,
            "deadline": self._serialize_datetime(job.deadline),
            "description": job.description,
            "created_by": job.created_by,
            "created_at": self._serialize_datetime(job.created_at),
        }

    def _deserialize_job(self, data: dict) -> Job:
        return Job(
            id=data["id"],
            title=data["title"],
            company=data["company"],
            location=data.get("location") or "",
            salary_min=data.get("salary_min"),
            salary_max=data.get("salary_max"),
            deadline=self._deserialize_datetime(data.get("deadline")),
            description=data.get("description") or "",
            created_by=data.get("created_by"),
            created_at=self._deserialize_datetime(data.get("created_at")),
        )

    def _serialize_application(self, app: Application) -> dict:
        return {
            "id": app.id,
            "user_id": app.user_id,
            "job_id": app.job_id,
            "full_name": app.full_name,
            "phone": app.phone,
            "cover_letter": app.cover_letter,
            "created_at": self._serialize_datetime(app.created_at),
        }

    def _deserialize_application(self, data: dict) -> Application:
        return Application(
            id=data["id"],
            user_id=data["user_id"],
            job_id=data["job_id"],
            full_name=data["full_name"],
            phone=data["phone"],
            cover_letter=data.get("cover_letter"),
            created_at=self._deserialize_datetime(data.get("created_at")),
        )

    def _persist_state(self) -> None:
        path = self._state_path()
        if path is None:
            return
        state: Dict[str, Any] = {
            "users": [self._serialize_user(u) for u in self.users.values()],
            "jobs": [self._serialize_job(j) for j in self.jobs.values()],
            "applications": [
                self._serialize_application(a) for a in self.applications.values()
            ],
        }
        try:
            path.write_text(json.dumps(state, indent=2))
        except OSError as exc:
            raise RuntimeError(f"failed to persist in-memory state: {exc}") from exc

    def _load_state(self) -> bool:
        path = self._state_path()
        if path is None:
            return False
        try:
            data = json.loads(path.read_text())
        except FileNotFoundError:
            return False
        self.users = {u["id"]: self._deserialize_user(u) for u in data.get("users", [])}
        self.jobs = {j["id"]: self._deserialize_job(j) for j in data.get("jobs", [])}
        self.applications = {
            a["id"]: self._deserialize_application(a)
            for a in data.get("applications", [])
        }
        self.logger.info(
            "memory_store_loaded",
            users=len(self.users),
            jobs=len(self.jobs),
            applications=len(self.applications),
        )
        return True

    # users
    def create(
        self,
        email: str,
        password_hash: str,
        password_salt: str,
        *,
        role: Role = Role.USER,
    ) -> User:
        normalized = normalize_email(email)
        with self._data_lock:
            if any(existing.email == normalized for existing in self.users.values()):
                raise ConstraintViolation("email already exists", field="email")
            user = User(
                id=new_id(),
                email=normalized,
                password_hash=password_hash,
                password_salt=password_salt,
                role=role,
            )
            self.users[user.id] = user
            self._persist_state()
            return replace(user)

    def find_by_identifier(self, user_id: str) -> Optional[User]:
        with self._data_lock:
            user = self.users.get(user_id)
            return replace(user) if user else None

    def find_by_normalized_email(self, email: str) -> Optional[User]:
        with self._data_lock:
            user = next((u for u in self.users.values() if u.email == email), None)
            return replace(user) if user else None

    def update_password_hash(
        self, user_id: str, password_hash: str, password_salt: str
    ) -> bool:
        with self._data_lock:
            user = self.users.get(user_id)
            if not user:
                return False
            user.password_hash = password_hash
            user.password_salt = password_salt
            self._persist_state()
            return True

    def update_role(self, user_id: str, role: Role) -> Optional[User]:
        with self._data_lock:
            user = self.users.get(user_id)
            if not user:
                return None
            user.role = role
            self._persist_state()
            return replace(user)

    # jobs
    def count_jobs(self) -> int:
        with self._data_lock:
            return len(self.jobs)

    def list_jobs(self) -> List[Job]:
        with self._data_lock:
            return sorted((replace(j) for j in self.jobs.values()), key=job_sort_key)

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._data_lock:
            job = self.jobs.get(job_id)
            return replace(job) if job else None

    def create_job(self, job: Job) -> Job:
        with self._data_lock:
            if job.id in self.jobs:
                raise ConstraintViolation("job already exists", field="id")
            self.jobs[job.id] = replace(job)
            self._persist_state()
            return replace(job)

    def update_job(self, job: Job) -> Optional[Job]:
        with self._data_lock:
            if job.id not in self.jobs:
                return None
            self.jobs[job.id] = replace(job)
            self._persist_state()
            return replace(job)

    def delete_job(self, job_id: str) -> bool:
        with self._data_lock:
            if self.jobs.pop(job_id, None) is None:
                return False
            for app_id, app in list(self.applications.items()):
                if app.job_id == job_id:
                    self.applications.pop(app_id, None)
            self._persist_state()
            return True

    # applications
    def get_application_for_user(self, user_id: str) -> Optional[Application]:
        with self._data_lock:
            app = next(
                (a for a in self.applications.values() if a.user_id == user_id), None
            )
            return replace(app) if app else None

    def create_application(self, application: Application) -> Application:
        with self._data_lock:
            if application.job_id not in self.jobs:
                raise ConstraintViolation("job not found", field="job_id")
            if any(a.user_id == application.user_id for a in self.applications.values()):
                raise ConstraintViolation(
                    "user already has an application", field="user_id"
                )
            self.applications[application.id] = replace(application)
            self._persist_state()
            return replace(application)

    def delete_application(self, application_id: str) -> bool:
        with self._data_lock:
            if self.applications.pop(application_id, None) is None:
                return False
            self._persist_state()
            return True

    def list_applications_for_job(self, job_id: str) -> List[Application]:
        with self._data_lock:
            apps = [replace(a) for a in self.applications.values() if a.job_id == job_id]
            return sorted(apps, key=lambda a: a.created_at)
