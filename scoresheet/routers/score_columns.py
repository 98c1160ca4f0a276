from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from scoresheet.db import get_session
from scoresheet.dependencies import get_group_locks, require_user
from scoresheet.errors import NotFoundError
from scoresheet.models import ScoreColumn
from scoresheet.schemas.gradebook import ScoreColumnCreate, ScoreColumnRead, ScoreColumnUpdate
from scoresheet.services import gradebook
from scoresheet.store import DocumentStore
from scoresheet.utils import KeyedLocks

router = APIRouter(prefix="/score-column", tags=["score-columns"], dependencies=[Depends(require_user)])


def _column_or_404(db: Session, column_id: int) -> ScoreColumn:
    column = DocumentStore(db, ScoreColumn).find_by_id(column_id)
    if not column:
        raise NotFoundError("Score column not found")
    return column


@router.get("/", response_model=List[ScoreColumnRead])
def list_columns(group_id: Optional[int] = Query(default=None, alias="groupId"), db: Session = Depends(get_session)):
    store = DocumentStore(db, ScoreColumn)
    return store.find(group_id=group_id) if group_id is not None else store.find()


@router.get("/{column_id}", response_model=ScoreColumnRead)
def get_column(column_id: int, db: Session = Depends(get_session)):
    return _column_or_404(db, column_id)


@router.post("/", response_model=ScoreColumnRead, status_code=status.HTTP_201_CREATED)
def create_column(
    body: ScoreColumnCreate,
    db: Session = Depends(get_session),
    locks: KeyedLocks = Depends(get_group_locks),
):
    """Adds a column and fills in its values for every learner of the group."""
    with locks.hold(body.group_id):
        group = gradebook.get_group_or_404(db, body.group_id)
        column = gradebook.add_column(db, group, body.name, body.type, body.source_columns)
        db.commit()
        db.refresh(column)
    return column


@router.put("/{column_id}", response_model=ScoreColumnRead)
def update_column(
    column_id: int,
    body: ScoreColumnUpdate,
    db: Session = Depends(get_session),
    locks: KeyedLocks = Depends(get_group_locks),
):
    group_id = _column_or_404(db, column_id).group_id
    with locks.hold(group_id):
        db.expire_all()
        group = gradebook.get_group_or_404(db, group_id)
        column = _column_or_404(db, column_id)
        gradebook.update_column(db, group, column, body.model_dump(exclude_none=True))
        db.commit()
        db.refresh(column)
    return column


@router.delete("/{column_id}")
def delete_column(
    column_id: int,
    db: Session = Depends(get_session),
    locks: KeyedLocks = Depends(get_group_locks),
):
    """Deletes the column, its values and every reference other columns hold to it."""
    group_id = _column_or_404(db, column_id).group_id
    with locks.hold(group_id):
        db.expire_all()
        group = gradebook.get_group_or_404(db, group_id)
        gradebook.delete_column(db, group, _column_or_404(db, column_id))
        db.commit()
    return {"message": "Score column deleted"}
