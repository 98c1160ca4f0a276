from typing import List, Optional, TYPE_CHECKING
from datetime import datetime
from sqlmodel import Field, SQLModel, Relationship
from scoresheet.utils import utcnow

if TYPE_CHECKING:
    from .group import Group


class Subject(SQLModel, table=True):
    __tablename__ = "subjects"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    description: str = ""
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)

    grading_criteria: List["GradingCriterion"] = Relationship(
        back_populates="subject",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "GradingCriterion.id"},
    )
    groups: List["Group"] = Relationship(
        back_populates="subject",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "Group.id"},
    )


class GradingCriterion(SQLModel, table=True):
    __tablename__ = "grading_criteria"

    id: Optional[int] = Field(default=None, primary_key=True)
    subject_id: int = Field(foreign_key="subjects.id", index=True)
    grade: str
    min_score: float
    color: str

    subject: Optional[Subject] = Relationship(back_populates="grading_criteria")
