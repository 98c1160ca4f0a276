import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from scoresheet.db import get_session
from scoresheet.dependencies import get_group_locks, require_user
from scoresheet.errors import NotFoundError
from scoresheet.models import GradingCriterion, Subject
from scoresheet.schemas.gradebook import GradingCriterionCreate, GradingCriterionRead, GradingCriterionUpdate
from scoresheet.services.gradebook import recompute_group
from scoresheet.store import DocumentStore
from scoresheet.utils import KeyedLocks

log = logging.getLogger(__name__)

router = APIRouter(prefix="/grading-criteria", tags=["grading-criteria"], dependencies=[Depends(require_user)])


def _regrade_subject(db: Session, locks: KeyedLocks, subject_id: int) -> None:
    """Grade columns depend on the criteria, so every group of the subject is recomputed."""
    subject = DocumentStore(db, Subject).find_by_id(subject_id)
    if subject is None:
        return
    for group in subject.groups:
        with locks.hold(group.id):
            db.refresh(group)
            recompute_group(db, group)
            db.commit()
    log.debug("Regraded %d groups of subject %s", len(subject.groups), subject_id)


@router.get("/", response_model=List[GradingCriterionRead])
def list_criteria(subject_id: Optional[int] = Query(default=None, alias="subjectId"), db: Session = Depends(get_session)):
    store = DocumentStore(db, GradingCriterion)
    return store.find(subject_id=subject_id) if subject_id is not None else store.find()


@router.get("/{criterion_id}", response_model=GradingCriterionRead)
def get_criterion(criterion_id: int, db: Session = Depends(get_session)):
    criterion = DocumentStore(db, GradingCriterion).find_by_id(criterion_id)
    if not criterion:
        raise NotFoundError("Grading criteria not found")
    return criterion


@router.post("/", response_model=GradingCriterionRead, status_code=status.HTTP_201_CREATED)
def create_criterion(
    body: GradingCriterionCreate,
    db: Session = Depends(get_session),
    locks: KeyedLocks = Depends(get_group_locks),
):
    if not DocumentStore(db, Subject).find_by_id(body.subject_id):
        raise NotFoundError("Subject not found")
    criterion = DocumentStore(db, GradingCriterion).insert(GradingCriterion(**body.model_dump()))
    _regrade_subject(db, locks, criterion.subject_id)
    db.refresh(criterion)
    return criterion


@router.put("/{criterion_id}", response_model=GradingCriterionRead)
def update_criterion(
    criterion_id: int,
    body: GradingCriterionUpdate,
    db: Session = Depends(get_session),
    locks: KeyedLocks = Depends(get_group_locks),
):
    criterion = DocumentStore(db, GradingCriterion).update_by_id(criterion_id, body.model_dump(exclude_none=True))
    if not criterion:
        raise NotFoundError("Grading criteria not found")
    _regrade_subject(db, locks, criterion.subject_id)
    db.refresh(criterion)
    return criterion


@router.delete("/{criterion_id}")
def delete_criterion(
    criterion_id: int,
    db: Session = Depends(get_session),
    locks: KeyedLocks = Depends(get_group_locks),
):
    criterion = DocumentStore(db, GradingCriterion).find_by_id(criterion_id)
    if not criterion:
        raise NotFoundError("Grading criteria not found")
    subject_id = criterion.subject_id
    DocumentStore(db, GradingCriterion).delete_by_id(criterion_id)
    _regrade_subject(db, locks, subject_id)
    return {"message": "Grading criteria deleted"}
