from datetime import datetime, timedelta, timezone

import pytest

from careerboard.service.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from careerboard.service.jobs import JobDraft, JobService
from careerboard.service.tokens import Role, SessionPayload
from careerboard.storage.memory import MemoryStore

NOW = datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc)


def _session(identifier: str = "user-1", role: Role = Role.USER) -> SessionPayload:
    return SessionPayload(identifier=identifier, role=role, expiresAtEpochMillis=10**13)


@pytest.fixture
def service():
    return JobService(MemoryStore(), clock=lambda: NOW)


@pytest.fixture
def admin():
    return _session("admin-1", Role.ADMIN)


@pytest.fixture
def job(service, admin):
    return service.create_job(
        admin,
        JobDraft(title=" Engineer ", company=" Acme ", deadline=NOW + timedelta(days=3)),
    )


def _apply(service, job_id, session=None, **overrides):
    fields = {"full_name": "Ada Lovelace", "phone": "+81 (3) 1234-5678"}
    fields.update(overrides)
    return service.apply(session or _session(), job_id, **fields)


class TestAdminJobs:
    def test_create_trims_and_records_creator(self, job, admin):
        assert job.title == "Engineer"
        assert job.company == "Acme"
        assert job.location == ""
        assert job.created_by == admin.identifier

    @pytest.mark.parametrize(
        "draft",
        [
            JobDraft(title="  ", company="Acme"),
            JobDraft(title="T", company=""),
            JobDraft(title="T", company="C", salary_min=-1),
            JobDraft(title="T", company="C", salary_min=10, salary_max=5),
        ],
    )
    def test_create_validates_fields(self, service, admin, draft):
        with pytest.raises(ValidationError):
            service.create_job(admin, draft)

    def test_naive_deadline_is_treated_as_utc(self, service, admin):
        created = service.create_job(
            admin, JobDraft(title="T", company="C", deadline=datetime(2030, 7, 1, 9, 0))
        )
        assert created.deadline == datetime(2030, 7, 1, 9, 0, tzinfo=timezone.utc)

    def test_update_replaces_fields(self, service, job):
        updated = service.update_job(
            job.id, JobDraft(title="Lead", company="Acme", salary_min=1, salary_max=2)
        )
        assert updated.title == "Lead"
        assert updated.deadline is None
        assert updated.created_at == job.created_at
        assert service.get_job(job.id).salary_max == 2

    def test_update_missing(self, service):
        with pytest.raises(NotFoundError):
            service.update_job("missing", JobDraft(title="T", company="C"))

    def test_delete_cascades(self, service, job):
        _apply(service, job.id)
        service.delete_job(job.id)
        assert service.my_application(_session()) is None
        with pytest.raises(NotFoundError):
            service.delete_job(job.id)

    def test_list_applications(self, service, job):
        _apply(service, job.id, _session("u1"))
        _apply(service, job.id, _session("u2"))
        assert {a.user_id for a in service.list_applications(job.id)} == {"u1", "u2"}
        with pytest.raises(NotFoundError):
            service.list_applications("missing")


class TestApply:
    def test_apply_creates_application(self, service, job):
        outcome = _apply(service, job.id, cover_letter="  hi  ")
        assert not outcome.already_applied
        assert outcome.application.cover_letter == "hi"
        assert service.my_application(_session()).id == job.id

    def test_apply_same_job_twice_is_a_no_op(self, service, job):
        first = _apply(service, job.id)
        second = _apply(service, job.id)
        assert second.already_applied
        assert second.application.id == first.application.id

    def test_apply_to_second_job_conflicts(self, service, job, admin):
        other = service.create_job(admin, JobDraft(title="Other", company="Acme"))
        _apply(service, job.id)
        with pytest.raises(ConflictError):
            _apply(service, other.id)

    def test_admin_cannot_apply(self, service, job, admin):
        with pytest.raises(ForbiddenError):
            _apply(service, job.id, admin)

    def test_closed_job_rejected(self, service, admin):
        closed = service.create_job(
            admin, JobDraft(title="Old", company="C", deadline=NOW - timedelta(seconds=1))
        )
        with pytest.raises(ValidationError):
            _apply(service, closed.id)

    def test_missing_job(self, service):
        with pytest.raises(NotFoundError):
            _apply(service, "missing")

    @pytest.mark.parametrize(
        "overrides",
        [{"full_name": "  "}, {"phone": ""}, {"phone": "call me"}, {"phone": None}],
    )
    def test_field_validation(self, service, job, overrides):
        with pytest.raises(ValidationError):
            _apply(service, job.id, **overrides)


class TestCancel:
    def test_cancel_removes_application(self, service, job):
        _apply(service, job.id)
        service.cancel(_session(), job.id)
        assert service.my_application(_session()) is None

    def test_cancel_without_application(self, service, job):
        with pytest.raises(ValidationError):
            service.cancel(_session(), job.id)

    def test_cancel_other_job(self, service, job, admin):
        other = service.create_job(admin, JobDraft(title="Other", company="Acme"))
        _apply(service, job.id)
        with pytest.raises(ValidationError):
            service.cancel(_session(), other.id)
