from typing import Any, Dict, List, Optional
from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel, Relationship
from .subject import Subject


class Group(SQLModel, table=True):
    __tablename__ = "groups"

    id: Optional[int] = Field(default=None, primary_key=True)
    subject_id: int = Field(foreign_key="subjects.id", index=True)
    name: str

    subject: Optional[Subject] = Relationship(back_populates="groups")
    columns: List["ScoreColumn"] = Relationship(
        back_populates="group",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "order_by": "[ScoreColumn.position, ScoreColumn.id]",
        },
    )
    learners: List["Learner"] = Relationship(
        back_populates="group",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "Learner.id"},
    )


class ScoreColumn(SQLModel, table=True):
    __tablename__ = "score_columns"

    id: Optional[int] = Field(default=None, primary_key=True)
    group_id: int = Field(foreign_key="groups.id", index=True)
    name: str
    type: str  # "score" | "sum" | "grade"
    source_columns: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    position: int = 0  # display order inside the group

    group: Optional[Group] = Relationship(back_populates="columns")


class Learner(SQLModel, table=True):
    __tablename__ = "learners"
    __table_args__ = (
        UniqueConstraint("group_id", "learner_id", name="uq_learner_group"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    group_id: int = Field(foreign_key="groups.id", index=True)
    learner_id: str  # external identifier, unique within the group
    name: str
    # column id (as string) -> number for score/sum columns, grade label for grade columns
    scores: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))

    group: Optional[Group] = Relationship(back_populates="learners")
