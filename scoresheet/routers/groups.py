from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from scoresheet.db import get_session
from scoresheet.dependencies import get_group_locks, require_user
from scoresheet.errors import NotFoundError
from scoresheet.models import Group, Subject
from scoresheet.schemas.gradebook import (
    ColumnOrder,
    GroupCreate,
    GroupRead,
    GroupUpdate,
    LearnerRead,
    ScoreEdit,
)
from scoresheet.services import gradebook
from scoresheet.store import DocumentStore
from scoresheet.utils import KeyedLocks

router = APIRouter(prefix="/group", tags=["groups"], dependencies=[Depends(require_user)])


@router.get("/", response_model=List[GroupRead])
def list_groups(subject_id: Optional[int] = Query(default=None, alias="subjectId"), db: Session = Depends(get_session)):
    store = DocumentStore(db, Group)
    return store.find(subject_id=subject_id) if subject_id is not None else store.find()


@router.get("/{group_id}", response_model=GroupRead)
def get_group(group_id: int, db: Session = Depends(get_session)):
    return gradebook.get_group_or_404(db, group_id)


@router.post("/", response_model=GroupRead, status_code=status.HTTP_201_CREATED)
def create_group(body: GroupCreate, db: Session = Depends(get_session)):
    if not DocumentStore(db, Subject).find_by_id(body.subject_id):
        raise NotFoundError("Subject not found")
    return DocumentStore(db, Group).insert(Group(**body.model_dump()))


@router.put("/{group_id}", response_model=GroupRead)
def update_group(group_id: int, body: GroupUpdate, db: Session = Depends(get_session)):
    group = DocumentStore(db, Group).update_by_id(group_id, body.model_dump(exclude_none=True))
    if not group:
        raise NotFoundError("Group not found")
    return group


@router.delete("/{group_id}")
def delete_group(group_id: int, db: Session = Depends(get_session), locks: KeyedLocks = Depends(get_group_locks)):
    with locks.hold(group_id):
        if not DocumentStore(db, Group).delete_by_id(group_id):
            raise NotFoundError("Group not found")
    return {"message": "Group deleted"}


@router.post("/{group_id}/recompute", response_model=GroupRead)
def recompute(group_id: int, db: Session = Depends(get_session), locks: KeyedLocks = Depends(get_group_locks)):
    """Recomputes every sum and grade column of the group."""
    with locks.hold(group_id):
        group = gradebook.get_group_or_404(db, group_id)
        gradebook.recompute_group(db, group)
        db.commit()
    return group


@router.put("/{group_id}/scores", response_model=LearnerRead)
def edit_score(
    group_id: int,
    body: ScoreEdit,
    db: Session = Depends(get_session),
    locks: KeyedLocks = Depends(get_group_locks),
):
    """
    Sets one entered score and returns the learner with its sum and grade
    columns recomputed. Non-numeric values are rejected without any change.
    """
    with locks.hold(group_id):
        group = gradebook.get_group_or_404(db, group_id)
        learner = gradebook.edit_score(db, group, body.learner_id, body.column_id, body.value)
        db.commit()
        db.refresh(learner)
    return learner


@router.put("/{group_id}/column-order", response_model=GroupRead)
def reorder_columns(
    group_id: int,
    body: ColumnOrder,
    db: Session = Depends(get_session),
    locks: KeyedLocks = Depends(get_group_locks),
):
    with locks.hold(group_id):
        group = gradebook.get_group_or_404(db, group_id)
        gradebook.reorder_columns(db, group, body.column_ids)
        db.commit()
        db.refresh(group)
    return group
