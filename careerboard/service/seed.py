"""Startup seeding: the admin account and a few demo jobs.

``seed_admin`` keeps the configured admin usable across restarts. If the
stored hash no longer matches ``ADMIN_PASSWORD`` (the variable was changed),
the password is re-hashed instead of locking the admin out.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from careerboard.config import Settings
from careerboard.logging import get_logger
from careerboard.service.auth import check_password_policy
from careerboard.service.passwords import KDFParams, hash_password, verify_password
from careerboard.service.tokens import Role
from careerboard.storage.models import Job, new_id, normalize_email, utcnow

logger = get_logger(__name__)

DEMO_JOBS = (
    {
        "title": "Frontend Engineer",
        "company": "Bright Labs",
        "location": "Remote (US)",
        "salary_min": 9_000_000,
        "salary_max": 12_000_000,
        "deadline_days": 30,
        "description": "React/TypeScript, design systems, Web Vitals ownership",
    },
    {
        "title": "Backend Engineer",
        "company": "Northwind Logistics",
        "location": "Tokyo",
        "salary_min": 8_000_000,
        "salary_max": 11_000_000,
        "deadline_days": 45,
        "description": "Python services, PostgreSQL, async processing",
    },
    {
        "title": "Product Designer",
        "company": "Atlas Studio",
        "location": "San Francisco",
        "salary_min": 10_000_000,
        "salary_max": 14_000_000,
        "deadline_days": 28,
        "description": "End-to-end product design, user research, prototyping",
    },
)


def seed_admin(
    store,
    settings: Settings,
    email: Optional[str] = None,
    password: Optional[str] = None,
) -> str:
    """Ensure the admin account exists with the configured password.

    Returns one of ``created``, ``password_reset``, ``promoted`` or
    ``unchanged``. Raises ``ValueError`` when no password is configured.
    """
    email = normalize_email(email or settings.admin_email)
    password = password if password is not None else settings.admin_password
    if not password:
        raise ValueError("ADMIN_PASSWORD is not set; refusing to seed an admin account")
    check_password_policy(password)
    params = KDFParams.from_settings(settings)

    existing = store.find_by_normalized_email(email)
    if existing is None:
        hashed = hash_password(password, params=params)
        user = store.create(email, hashed.hash, hashed.salt, role=Role.ADMIN)
        logger.info("admin_seeded", user_id=user.id)
        return "created"

    status = "unchanged"
    if not verify_password(
        password, existing.password_salt, existing.password_hash, params=params
    ):
        hashed = hash_password(password, params=params)
        store.update_password_hash(existing.id, hashed.hash, hashed.salt)
        logger.info("admin_password_reset", user_id=existing.id)
        status = "password_reset"
    if existing.role is not Role.ADMIN:
        store.update_role(existing.id, Role.ADMIN)
        logger.info("admin_promoted", user_id=existing.id)
        status = "promoted"
    return status


def seed_jobs(store, *, now: Optional[datetime] = None) -> int:
    """Insert the demo jobs into an empty store; returns how many were added."""
    if store.count_jobs() > 0:
        return 0
    now = now or utcnow()
    for index, demo in enumerate(DEMO_JOBS):
        store.create_job(
            Job(
                id=new_id(),
                title=demo["title"],
                company=demo["company"],
                location=demo["location"],
                salary_min=demo["salary_min"],
                salary_max=demo["salary_max"],
                deadline=now + timedelta(days=demo["deadline_days"]),
                description=demo["description"],
                created_at=now - timedelta(seconds=index),
            )
        )
    logger.info("jobs_seeded", count=len(DEMO_JOBS))
    return len(DEMO_JOBS)
