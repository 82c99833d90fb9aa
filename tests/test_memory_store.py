from datetime import datetime, timedelta, timezone

import pytest

from careerboard.service.tokens import Role
from careerboard.storage.errors import ConstraintViolation
from careerboard.storage.memory import MemoryStore
from careerboard.storage.models import Application, Job, new_id, normalize_email

BASE = datetime(2030, 1, 1, tzinfo=timezone.utc)


def _job(title: str, *, deadline=None, created_at=BASE) -> Job:
    return Job(id=new_id(), title=title, company="Acme", deadline=deadline, created_at=created_at)


def _application(user_id: str, job_id: str) -> Application:
    return Application(id=new_id(), user_id=user_id, job_id=job_id, full_name="N", phone="1")


def test_user_persistence_round_trip(tmp_path):
    store = MemoryStore(fs_root=str(tmp_path))
    user = store.create(" Person@Example.com ", "ab" * 32, "cd" * 16)
    store.update_role(user.id, Role.ADMIN)

    reloaded = MemoryStore(fs_root=str(tmp_path))
    loaded = reloaded.find_by_identifier(user.id)
    assert loaded is not None
    assert loaded.email == "person@example.com"
    assert loaded.role is Role.ADMIN
    assert loaded.created_at == user.created_at
    assert (tmp_path / "state" / "careerboard.json").exists()


@pytest.mark.parametrize(
    "raw",
    [" \uff35ser@Example.com", "USER@EXAMPLE.COM", "\uff55\uff53\uff45\uff52@example.com"],
)
def test_normalize_email_folds_width_and_case(raw):
    assert normalize_email(raw) == "user@example.com"
    assert normalize_email(normalize_email(raw)) == "user@example.com"


def test_lookup_matches_compatibility_spelling():
    store = MemoryStore()
    user = store.create("\uff35ser@example.com", "ab" * 32, "cd" * 16)
    assert user.email == "user@example.com"
    found = store.find_by_normalized_email(normalize_email("\uff35SER@example.com"))
    assert found is not None and found.id == user.id


def test_duplicate_email_violates_constraint():
    store = MemoryStore()
    store.create("a@b.com", "h", "s")
    with pytest.raises(ConstraintViolation) as excinfo:
        store.create("A@B.COM", "h", "s")
    assert excinfo.value.field == "email"
    assert excinfo.value.detail == {"field": "email"}


def test_returned_records_are_copies():
    store = MemoryStore()
    user = store.create("a@b.com", "h", "s")
    user.role = Role.ADMIN
    assert store.find_by_identifier(user.id).role is Role.USER


def test_update_password_hash():
    store = MemoryStore()
    user = store.create("a@b.com", "h", "s")
    assert store.update_password_hash(user.id, "h2", "s2")
    updated = store.find_by_identifier(user.id)
    assert (updated.password_hash, updated.password_salt) == ("h2", "s2")
    assert not store.update_password_hash("missing", "h", "s")


def test_job_ordering():
    store = MemoryStore()
    late = store.create_job(_job("late", deadline=BASE + timedelta(days=10)))
    soon = store.create_job(_job("soon", deadline=BASE + timedelta(days=1)))
    old = store.create_job(_job("old", created_at=BASE - timedelta(days=2)))
    new = store.create_job(_job("new", created_at=BASE))
    assert [j.id for j in store.list_jobs()] == [soon.id, late.id, new.id, old.id]


def test_single_application_per_user():
    store = MemoryStore()
    first = store.create_job(_job("a"))
    second = store.create_job(_job("b"))
    store.create_application(_application("u1", first.id))
    with pytest.raises(ConstraintViolation) as excinfo:
        store.create_application(_application("u1", second.id))
    assert excinfo.value.field == "user_id"


def test_application_requires_existing_job():
    store = MemoryStore()
    with pytest.raises(ConstraintViolation) as excinfo:
        store.create_application(_application("u1", "missing"))
    assert excinfo.value.field == "job_id"


def test_delete_job_cascades_applications():
    store = MemoryStore()
    job = store.create_job(_job("a"))
    other = store.create_job(_job("b"))
    store.create_application(_application("u1", job.id))
    store.create_application(_application("u2", other.id))
    assert store.delete_job(job.id)
    assert store.get_application_for_user("u1") is None
    assert store.get_application_for_user("u2") is not None
    assert not store.delete_job(job.id)


def test_update_missing_job_returns_none():
    store = MemoryStore()
    assert store.update_job(_job("ghost")) is None


def test_jobs_and_applications_persist(tmp_path):
    store = MemoryStore(fs_root=str(tmp_path))
    job = store.create_job(_job("persisted", deadline=BASE + timedelta(days=3)))
    store.create_application(_application("u1", job.id))

    reloaded = MemoryStore(fs_root=str(tmp_path))
    assert reloaded.get_job(job.id).deadline == job.deadline
    assert reloaded.count_jobs() == 1
    assert [a.user_id for a in reloaded.list_applications_for_job(job.id)] == ["u1"]
