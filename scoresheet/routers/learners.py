from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from scoresheet.db import get_session
from scoresheet.dependencies import get_group_locks, require_user
from scoresheet.errors import NotFoundError
from scoresheet.models import Learner
from scoresheet.schemas.gradebook import LearnerCreate, LearnerRead, LearnerUpdate
from scoresheet.services import gradebook
from scoresheet.store import DocumentStore
from scoresheet.utils import KeyedLocks

router = APIRouter(prefix="/learner", tags=["learners"], dependencies=[Depends(require_user)])


def _learner_or_404(db: Session, learner_id: int) -> Learner:
    learner = DocumentStore(db, Learner).find_by_id(learner_id)
    if not learner:
        raise NotFoundError("Learner not found")
    return learner


@router.get("/", response_model=List[LearnerRead])
def list_learners(group_id: Optional[int] = Query(default=None, alias="groupId"), db: Session = Depends(get_session)):
    store = DocumentStore(db, Learner)
    return store.find(group_id=group_id) if group_id is not None else store.find()


@router.get("/{learner_id}", response_model=LearnerRead)
def get_learner(learner_id: int, db: Session = Depends(get_session)):
    return _learner_or_404(db, learner_id)


@router.post("/", response_model=LearnerRead, status_code=status.HTTP_201_CREATED)
def create_learner(
    body: LearnerCreate,
    db: Session = Depends(get_session),
    locks: KeyedLocks = Depends(get_group_locks),
):
    with locks.hold(body.group_id):
        group = gradebook.get_group_or_404(db, body.group_id)
        learner = gradebook.add_learner(db, group, body.learner_id, body.name, body.scores)
        db.commit()
        db.refresh(learner)
    return learner


@router.put("/{learner_id}", response_model=LearnerRead)
def update_learner(
    learner_id: int,
    body: LearnerUpdate,
    db: Session = Depends(get_session),
    locks: KeyedLocks = Depends(get_group_locks),
):
    """Updates name, external id or entered scores. Scores are merged, not replaced."""
    group_id = _learner_or_404(db, learner_id).group_id
    with locks.hold(group_id):
        db.expire_all()
        group = gradebook.get_group_or_404(db, group_id)
        learner = gradebook.update_learner(db, group, _learner_or_404(db, learner_id), body.model_dump(exclude_none=True))
        db.commit()
        db.refresh(learner)
    return learner


@router.delete("/{learner_id}")
def delete_learner(
    learner_id: int,
    db: Session = Depends(get_session),
    locks: KeyedLocks = Depends(get_group_locks),
):
    group_id = _learner_or_404(db, learner_id).group_id
    with locks.hold(group_id):
        DocumentStore(db, Learner).delete_by_id(learner_id)
    return {"message": "Learner deleted"}
