from typing import List

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from scoresheet.db import get_session
from scoresheet.dependencies import require_user
from scoresheet.errors import NotFoundError
from scoresheet.models import GradingCriterion, Subject
from scoresheet.schemas.gradebook import SubjectCreate, SubjectRead, SubjectSummary, SubjectUpdate
from scoresheet.services.gradebook import seed_default_criteria
from scoresheet.store import DocumentStore

router = APIRouter(prefix="/subject", tags=["subjects"], dependencies=[Depends(require_user)])


def _subject_or_404(db: Session, subject_id: int) -> Subject:
    subject = DocumentStore(db, Subject).find_by_id(subject_id)
    if not subject:
        raise NotFoundError("Subject not found")
    return subject


@router.get("/", response_model=List[SubjectSummary])
def list_subjects(db: Session = Depends(get_session)):
    return DocumentStore(db, Subject).find()


@router.get("/{subject_id}", response_model=SubjectRead)
def get_subject(subject_id: int, db: Session = Depends(get_session)):
    return _subject_or_404(db, subject_id)


@router.post("/", response_model=SubjectRead, status_code=status.HTTP_201_CREATED)
def create_subject(body: SubjectCreate, db: Session = Depends(get_session)):
    """Creates a subject. Without explicit criteria it gets the default A-F scale."""
    subject = DocumentStore(db, Subject).insert(
        Subject(name=body.name, description=body.description), commit=False
    )
    if body.grading_criteria is None:
        seed_default_criteria(db, subject)
    else:
        criteria = DocumentStore(db, GradingCriterion)
        for item in body.grading_criteria:
            criteria.insert(GradingCriterion(subject_id=subject.id, **item.model_dump()), commit=False)
    db.commit()
    db.refresh(subject)
    return subject


@router.put("/{subject_id}", response_model=SubjectRead)
def update_subject(subject_id: int, body: SubjectUpdate, db: Session = Depends(get_session)):
    subject = DocumentStore(db, Subject).update_by_id(subject_id, body.model_dump(exclude_none=True))
    if not subject:
        raise NotFoundError("Subject not found")
    return subject


@router.delete("/{subject_id}")
def delete_subject(subject_id: int, db: Session = Depends(get_session)):
    """Deletes the subject with its criteria, groups, learners and columns."""
    if not DocumentStore(db, Subject).delete_by_id(subject_id):
        raise NotFoundError("Subject not found")
    return {"message": "Subject deleted"}
