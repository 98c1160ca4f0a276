from datetime import datetime
from typing import Dict, List, Literal, Optional, Union
from pydantic import Field
from .base import ApiModel

ColumnType = Literal["score", "sum", "grade"]
ScoreValue = Union[int, float, str]


class GradingCriterionIn(ApiModel):
    grade: str = Field(min_length=1)
    min_score: float
    color: str


class GradingCriterionCreate(GradingCriterionIn):
    subject_id: int


class GradingCriterionUpdate(ApiModel):
    grade: Optional[str] = Field(default=None, min_length=1)
    min_score: Optional[float] = None
    color: Optional[str] = None


class GradingCriterionRead(ApiModel):
    id: int
    subject_id: int
    grade: str
    min_score: float
    color: str


class ScoreColumnCreate(ApiModel):
    group_id: int
    name: str = Field(min_length=1)
    type: ColumnType = "score"
    source_columns: List[int] = []


class ScoreColumnUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1)
    type: Optional[ColumnType] = None
    source_columns: Optional[List[int]] = None


class ScoreColumnRead(ApiModel):
    id: int
    group_id: int
    name: str
    type: ColumnType
    source_columns: List[int] = []
    position: int


class LearnerCreate(ApiModel):
    group_id: int
    learner_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    scores: Dict[str, Optional[ScoreValue]] = {}


class LearnerUpdate(ApiModel):
    learner_id: Optional[str] = Field(default=None, min_length=1)
    name: Optional[str] = Field(default=None, min_length=1)
    scores: Optional[Dict[str, Optional[ScoreValue]]] = None


class LearnerRead(ApiModel):
    id: int
    group_id: int
    learner_id: str
    name: str
    scores: Dict[str, ScoreValue] = {}


class GroupCreate(ApiModel):
    subject_id: int
    name: str = Field(min_length=1)


class GroupUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1)


class GroupSummary(ApiModel):
    id: int
    subject_id: int
    name: str


class GroupRead(GroupSummary):
    columns: List[ScoreColumnRead] = []
    learners: List[LearnerRead] = []


class ScoreEdit(ApiModel):
    learner_id: int  # Learner row id, not the external learner identifier
    column_id: int
    value: Optional[ScoreValue] = None


class ColumnOrder(ApiModel):
    column_ids: List[int]


class SubjectCreate(ApiModel):
    name: str = Field(min_length=1)
    description: str = ""
    # None seeds the default A-F criteria; [] leaves the subject without any
    grading_criteria: Optional[List[GradingCriterionIn]] = None


class SubjectUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None


class SubjectSummary(ApiModel):
    id: int
    name: str
    description: str
    created_at: datetime
    updated_at: datetime


class SubjectRead(SubjectSummary):
    grading_criteria: List[GradingCriterionRead] = []
    groups: List[GroupSummary] = []
