from __future__ import annotations

from typing import Any, Dict, List, Optional

from psycopg import errors
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from careerboard.logging import get_logger
from careerboard.service.tokens import Role
from careerboard.storage.errors import ConstraintViolation
from careerboard.storage.models import (
    Application,
    Job,
    User,
    new_id,
    normalize_email,
    utcnow,
)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS app_user (
        id TEXT PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        password_salt TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('user', 'admin')),
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS job (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        company TEXT NOT NULL,
        location TEXT NOT NULL DEFAULT '',
        salary_min INTEGER,
        salary_max INTEGER,
        deadline TIMESTAMPTZ,
        description TEXT NOT NULL DEFAULT '',
        created_by TEXT REFERENCES app_user(id) ON DELETE SET NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS job_application (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL UNIQUE REFERENCES app_user(id) ON DELETE CASCADE,
        job_id TEXT NOT NULL REFERENCES job(id) ON DELETE CASCADE,
        full_name TEXT NOT NULL,
        phone TEXT NOT NULL,
        cover_letter TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS job_application_job_idx ON job_application (job_id)",
)

# Deadline-bearing jobs first (soonest first), then newest first
_JOB_ORDER = "ORDER BY (deadline IS NULL), deadline ASC, created_at DESC"


class PostgresStore:
    """Postgres-backed store for users, jobs and applications."""

    def __init__(self, dsn: str, *, pool: Optional[ConnectionPool] = None) -> None:
        self.dsn = dsn
        self.logger = get_logger(__name__)
        self.pool = pool or ConnectionPool(
            self.dsn,
            min_size=1,
            max_size=10,
            open=True,
            kwargs={"row_factory": dict_row, "autocommit": False},
        )
        self._ensure_schema()

    def _connect(self):
        return self.pool.connection()

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            for statement in SCHEMA_STATEMENTS:
                conn.execute(statement)
        self.logger.info("postgres_schema_ready")

    def close(self) -> None:
        self.pool.close()

    @staticmethod
    def _row_to_user(row: Dict[str, Any]) -> User:
        return User(
            id=str(row["id"]),
            email=row["email"],
            password_hash=row["password_hash"],
            password_salt=row["password_salt"],
            role=Role(row.get("role") or Role.USER.value),
            created_at=row.get("created_at") or utcnow(),
        )

    @staticmethod
    def _row_to_job(row: Dict[str, Any]) -> Job:
        return Job(
            id=str(row["id"]),
            title=row["title"],
            company=row["company"],
            location=row.get("location") or "",
            salary_min=row.get("salary_min"),
            salary_max=row.get("salary_max"),
            deadline=row.get("deadline"),
            description=row.get("description") or "",
            created_by=row.get("created_by"),
            created_at=row.get("created_at") or utcnow(),
        )

    @staticmethod
    def _row_to_application(row: Dict[str, Any]) -> Application:
        return Application(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            job_id=str(row["job_id"]),
            full_name=row["full_name"],
            phone=row["phone"],
            cover_letter=row.get("cover_letter"),
            created_at=row.get("created_at") or utcnow(),
        )

    # users
    def create(
        self,
        email: str,
        password_hash: str,
        password_salt: str,
        *,
        role: Role = Role.USER,
    ) -> User:
        user = User(
            id=new_id(),
            email=normalize_email(email),
            password_hash=password_hash,
            password_salt=password_salt,
            role=role,
        )
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO app_user (id, email, password_hash, password_salt, role, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    """,
                    (
                        user.id,
                        user.email,
                        user.password_hash,
                        user.password_salt,
                        user.role.value,
                        user.created_at,
                    ),
                )
        except errors.UniqueViolation:
            raise ConstraintViolation("email already exists", field="email")
        return user

    def find_by_identifier(self, user_id: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM app_user WHERE id = %s", (user_id,)
            ).fetchone()
        return self._row_to_user(row) if row else None

    def find_by_normalized_email(self, email: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM app_user WHERE email = %s", (email,)
            ).fetchone()
        return self._row_to_user(row) if row else None

    def update_password_hash(
        self, user_id: str, password_hash: str, password_salt: str
    ) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE app_user SET password_hash = %s, password_salt = %s WHERE id = %s",
                (password_hash, password_salt, user_id),
            )
            return cur.rowcount > 0

    def update_role(self, user_id: str, role: Role) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                "UPDATE app_user SET role = %s WHERE id = %s RETURNING *",
                (role.value, user_id),
            ).fetchone()
        return self._row_to_user(row) if row else None

    # jobs
    def count_jobs(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS n FROM job").fetchone()
        return int(row["n"]) if row else 0

    def list_jobs(self) -> List[Job]:
        with self._connect() as conn:
            rows = conn.execute(f"SELECT * FROM job {_JOB_ORDER}").fetchall()
        return [self._row_to_job(row) for row in rows]

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM job WHERE id = %s", (job_id,)).fetchone()
        return self._row_to_job(row) if row else None

    def create_job(self, job: Job) -> Job:
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO job (id, title, company, location, salary_min, salary_max,
                                     deadline, description, created_by, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        job.id,
                        job.title,
                        job.company,
                        job.location,
                        job.salary_min,
                        job.salary_max,
                        job.deadline,
                        job.description,
                        job.created_by,
                        job.created_at,
                    ),
                )
        except errors.UniqueViolation:
            raise ConstraintViolation("job already exists", field="id")
        return job

    def update_job(self, job: Job) -> Optional[Job]:
        with self._connect() as conn:
            row = conn.execute(
                """
                UPDATE job
                SET title = %s, company = %s, location = %s, salary_min = %s,
                    salary_max = %s, deadline = %s, description = %s
                WHERE id = %s
                RETURNING *
                """,
                (
                    job.title,
                    job.company,
                    job.location,
                    job.salary_min,
                    job.salary_max,
                    job.deadline,
                    job.description,
                    job.id,
                ),
            ).fetchone()
        return self._row_to_job(row) if row else None

    def delete_job(self, job_id: str) -> bool:
        # job_application rows go with the job through ON DELETE CASCADE
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM job WHERE id = %s", (job_id,))
            return cur.rowcount > 0

    # applications
    def get_application_for_user(self, user_id: str) -> Optional[Application]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM job_application WHERE user_id = %s", (user_id,)
            ).fetchone()
        return self._row_to_application(row) if row else None

    def create_application(self, application: Application) -> Application:
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO job_application (id, user_id, job_id, full_name, phone,
                                                 cover_letter, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        application.id,
                        application.user_id,
                        application.job_id,
                        application.full_name,
                        application.phone,
                        application.cover_letter,
                        application.created_at,
                    ),
                )
        except errors.UniqueViolation:
            raise ConstraintViolation("user already has an application", field="user_id")
        except errors.ForeignKeyViolation:
            raise ConstraintViolation("job not found", field="job_id")
        return application

    def delete_application(self, application_id: str) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM job_application WHERE id = %s", (application_id,)
            )
            return cur.rowcount > 0

    def list_applications_for_job(self, job_id: str) -> List[Application]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM job_application WHERE job_id = %s ORDER BY created_at",
                (job_id,),
            ).fetchall()
        return [self._row_to_application(row) for row in rows]
