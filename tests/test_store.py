import pytest
from sqlmodel import Session

from scoresheet.errors import PersistenceError
from scoresheet.models import Subject, User
from scoresheet.store import DocumentStore


@pytest.fixture(name="subjects")
def subjects_fixture(session: Session):
    return DocumentStore(session, Subject)


def test_insert_and_find(subjects):
    maths = subjects.insert(Subject(name="Maths"))
    subjects.insert(Subject(name="Science", description="Year 9"))
    assert maths.id is not None
    assert [s.name for s in subjects.find()] == ["Maths", "Science"]
    assert subjects.find_one(description="Year 9").name == "Science"
    assert subjects.find_one(name="History") is None
    assert subjects.find_by_id(maths.id).name == "Maths"
    assert subjects.find_by_id(999) is None


def test_update_by_id(subjects):
    maths = subjects.insert(Subject(name="Maths"))
    before = maths.updated_at
    updated = subjects.update_by_id(maths.id, {"name": "Mathematics"})
    assert updated.name == "Mathematics"
    assert updated.updated_at >= before
    assert subjects.update_by_id(999, {"name": "x"}) is None


def test_update_unknown_field(subjects):
    maths = subjects.insert(Subject(name="Maths"))
    with pytest.raises(ValueError):
        subjects.update_by_id(maths.id, {"colour": "red"})


def test_delete_by_id(subjects):
    maths = subjects.insert(Subject(name="Maths"))
    assert subjects.delete_by_id(maths.id) is True
    assert subjects.delete_by_id(maths.id) is False
    assert subjects.find() == []


def test_database_errors_become_persistence_errors(session: Session):
    users = DocumentStore(session, User)
    users.insert(User(username="alice", password_hash="x"))
    with pytest.raises(PersistenceError):
        users.insert(User(username="alice", password_hash="y"))
    # The session was rolled back and is usable again
    assert [u.username for u in users.find()] == ["alice"]
