"""Recomputation of derived (sum and grade) columns.

Everything here works on an immutable in-memory snapshot of one group and
returns a new snapshot; persistence lives in ``scoresheet.services.gradebook``.

Score maps hold tagged entries: ``Numeric`` for entered or summed numbers and
``GradeLabel`` for resolved grades. A column id missing from the map is unset.
Columns are one of three variants, ``ScoreColumnSpec``, ``SumColumnSpec`` and
``GradeColumnSpec``; ``_evaluate`` is the only place that dispatches on them.

Evaluation order is all score/sum columns in display order, then all grade
columns, so a grade that reads a sum always sees the fresh total.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from scoresheet.errors import NotFoundError, ValidationError
from scoresheet.services.grading import CriterionLike, resolve_grade

COLUMN_TYPES = ("score", "sum", "grade")


@dataclass(frozen=True)
class Numeric:
    value: float


@dataclass(frozen=True)
class GradeLabel:
    label: str


ScoreEntry = Union[Numeric, GradeLabel]
ScoreMap = dict[str, ScoreEntry]


@dataclass(frozen=True)
class ScoreColumnSpec:
    id: str

    @property
    def sources(self) -> tuple[str, ...]:
        return ()


@dataclass(frozen=True)
class SumColumnSpec:
    id: str
    sources: tuple[str, ...] = ()


@dataclass(frozen=True)
class GradeColumnSpec:
    id: str
    # Only the first source is consulted. A grade column whose source was
    # deleted keeps an empty tuple and stays ungraded.
    sources: tuple[str, ...] = ()

    @property
    def source(self) -> Optional[str]:
        return self.sources[0] if self.sources else None


ColumnSpec = Union[ScoreColumnSpec, SumColumnSpec, GradeColumnSpec]


@dataclass(frozen=True)
class LearnerScores:
    id: str
    scores: ScoreMap = field(default_factory=dict)


@dataclass(frozen=True)
class GroupSnapshot:
    columns: tuple[ColumnSpec, ...] = ()
    learners: tuple[LearnerScores, ...] = ()

    def column(self, column_id: str) -> ColumnSpec:
        for column in self.columns:
            if column.id == column_id:
                return column
        raise NotFoundError("Score column not found")

    def learner(self, learner_id: str) -> LearnerScores:
        for learner in self.learners:
            if learner.id == learner_id:
                return learner
        raise NotFoundError("Learner not found")


# --- Conversion to and from stored JSON ---

def entry_from_raw(raw: Any) -> Optional[ScoreEntry]:
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, (int, float)):
        return Numeric(raw) if math.isfinite(raw) else None
    if isinstance(raw, str):
        return GradeLabel(raw)
    return None


def entry_to_raw(entry: ScoreEntry) -> Union[float, str]:
    if isinstance(entry, Numeric):
        return entry.value
    return entry.label


def scores_from_raw(raw: Optional[Mapping[str, Any]]) -> ScoreMap:
    scores: ScoreMap = {}
    for key, value in (raw or {}).items():
        entry = entry_from_raw(value)
        if entry is not None:
            scores[str(key)] = entry
    return scores


def scores_to_raw(scores: Mapping[str, ScoreEntry]) -> dict[str, Union[float, str]]:
    return {key: entry_to_raw(entry) for key, entry in scores.items()}


def build_column(column_id: str, kind: str, sources: Iterable[str] = ()) -> ColumnSpec:
    sources = tuple(str(s) for s in sources)
    if kind == "score":
        return ScoreColumnSpec(column_id)
    if kind == "sum":
        return SumColumnSpec(column_id, sources)
    if kind == "grade":
        return GradeColumnSpec(column_id, sources)
    raise ValueError(f"Unknown column type {kind!r}")


# --- Validation at data entry ---

def validate_column_config(kind: str, sources: Sequence[Any]) -> None:
    """Shape checks that do not need the rest of the group."""
    if kind not in COLUMN_TYPES:
        raise ValidationError(f"Column type must be one of: {', '.join(COLUMN_TYPES)}")
    if kind == "score" and sources:
        raise ValidationError("Score columns cannot have source columns")
    if kind == "grade" and not sources:
        raise ValidationError("Grade columns need a source column")
    if len(set(sources)) != len(sources):
        raise ValidationError("Source columns must not repeat")


def check_references(columns: Sequence[ColumnSpec]) -> None:
    """
    Sum columns may only add up score columns; a grade column may read a score
    or a sum column. Both rules together rule out dependency cycles.
    """
    by_id = {column.id: column for column in columns}
    for column in columns:
        for source_id in column.sources:
            if source_id == column.id:
                raise ValidationError("A column cannot use itself as a source")
            source = by_id.get(source_id)
            if source is None:
                raise ValidationError(f"Source column {source_id} does not exist in this group")
            if isinstance(column, SumColumnSpec) and not isinstance(source, ScoreColumnSpec):
                raise ValidationError("Sum columns can only add up score columns")
            if isinstance(column, GradeColumnSpec) and isinstance(source, GradeColumnSpec):
                raise ValidationError("Grade columns need a score or sum column as source")


def parse_score(raw: Any) -> Union[int, float]:
    """Empty input counts as 0. Anything that is not a finite number is rejected."""
    if raw is None:
        return 0
    if isinstance(raw, bool):
        raise ValidationError("Score must be a number")
    if isinstance(raw, str):
        text = raw.strip()
        if text == "":
            return 0
        try:
            value = float(text)
        except ValueError:
            raise ValidationError(f"Score must be a number, got {raw!r}") from None
    elif isinstance(raw, (int, float)):
        value = raw
    else:
        raise ValidationError("Score must be a number")
    if not math.isfinite(value):
        raise ValidationError("Score must be a finite number")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


# --- Evaluation ---

def evaluation_order(columns: Iterable[ColumnSpec]) -> tuple[ColumnSpec, ...]:
    columns = tuple(columns)
    return tuple(c for c in columns if not isinstance(c, GradeColumnSpec)) + tuple(
        c for c in columns if isinstance(c, GradeColumnSpec)
    )


def _numeric(scores: Mapping[str, ScoreEntry], column_id: Optional[str]) -> Optional[float]:
    entry = scores.get(column_id) if column_id is not None else None
    return entry.value if isinstance(entry, Numeric) else None


def _evaluate(column: ColumnSpec, scores: ScoreMap, criteria: Sequence[CriterionLike]) -> None:
    if isinstance(column, ScoreColumnSpec):
        return
    if isinstance(column, SumColumnSpec):
        scores[column.id] = Numeric(sum(_numeric(scores, s) or 0 for s in column.sources))
        return
    if isinstance(column, GradeColumnSpec):
        value = _numeric(scores, column.source)
        if value is None or not criteria:
            scores.pop(column.id, None)
        else:
            scores[column.id] = GradeLabel(resolve_grade(value, criteria))
        return
    raise TypeError(f"Unhandled column kind: {column!r}")


def evaluate_learner(
    columns: Sequence[ColumnSpec], scores: Mapping[str, ScoreEntry], criteria: Sequence[CriterionLike]
) -> ScoreMap:
    """Return a copy of ``scores`` with every sum and grade column recomputed."""
    result: ScoreMap = dict(scores)
    for column in evaluation_order(columns):
        _evaluate(column, result, criteria)
    return result


def recompute_all(group: GroupSnapshot, criteria: Sequence[CriterionLike]) -> GroupSnapshot:
    learners = tuple(
        replace(learner, scores=evaluate_learner(group.columns, learner.scores, criteria))
        for learner in group.learners
    )
    return replace(group, learners=learners)


def recompute_learner(group: GroupSnapshot, learner_id: str, criteria: Sequence[CriterionLike]) -> GroupSnapshot:
    group.learner(learner_id)
    learners = tuple(
        replace(learner, scores=evaluate_learner(group.columns, learner.scores, criteria))
        if learner.id == learner_id
        else learner
        for learner in group.learners
    )
    return replace(group, learners=learners)


def apply_score_edit(
    group: GroupSnapshot,
    learner_id: str,
    column_id: str,
    raw_value: Any,
    criteria: Sequence[CriterionLike],
) -> GroupSnapshot:
    learner = group.learner(learner_id)
    column = group.column(column_id)
    if not isinstance(column, ScoreColumnSpec):
        raise ValidationError("Only score columns accept entered values")
    value = parse_score(raw_value)

    scores = dict(learner.scores)
    scores[column_id] = Numeric(value)
    updated = replace(learner, scores=scores)
    group = replace(group, learners=tuple(updated if other.id == learner_id else other for other in group.learners))
    return recompute_learner(group, learner_id, criteria)


# --- Column mutations ---

def add_column(group: GroupSnapshot, column: ColumnSpec, criteria: Sequence[CriterionLike]) -> GroupSnapshot:
    if any(c.id == column.id for c in group.columns):
        raise ValidationError(f"Column {column.id} already exists")
    columns = evaluation_order(group.columns + (column,))
    check_references(columns)
    return recompute_all(replace(group, columns=columns), criteria)


def update_column(group: GroupSnapshot, column: ColumnSpec, criteria: Sequence[CriterionLike]) -> GroupSnapshot:
    """
    Replace a column definition in place. Every column's references are
    re-checked, so turning a score column that a sum reads into anything else
    is refused.
    """
    previous = group.column(column.id)
    columns = evaluation_order(column if c.id == column.id else c for c in group.columns)
    check_references(columns)

    learners = group.learners
    if isinstance(column, ScoreColumnSpec) and not isinstance(previous, ScoreColumnSpec):
        # Leftover grade labels are not entered values
        learners = tuple(_drop_labels(learner, column.id) for learner in learners)
    return recompute_all(replace(group, columns=columns, learners=learners), criteria)


def _drop_labels(learner: LearnerScores, column_id: str) -> LearnerScores:
    if isinstance(learner.scores.get(column_id), GradeLabel):
        scores = dict(learner.scores)
        del scores[column_id]
        return replace(learner, scores=scores)
    return learner


def delete_column(group: GroupSnapshot, column_id: str, criteria: Sequence[CriterionLike]) -> GroupSnapshot:
    """Remove a column, its entries in every score map and every reference to it."""
    group.column(column_id)
    columns = tuple(
        replace(c, sources=tuple(s for s in c.sources if s != column_id))
        if not isinstance(c, ScoreColumnSpec)
        else c
        for c in group.columns
        if c.id != column_id
    )
    learners = tuple(
        replace(learner, scores={k: v for k, v in learner.scores.items() if k != column_id})
        for learner in group.learners
    )
    return recompute_all(GroupSnapshot(columns=columns, learners=learners), criteria)


def reorder_columns(group: GroupSnapshot, ordered_ids: Sequence[str]) -> GroupSnapshot:
    """
    Set the display order of the score and sum columns. Grade columns are not
    part of the ordering and stay after them.
    """
    movable = [c for c in group.columns if not isinstance(c, GradeColumnSpec)]
    if sorted(ordered_ids) != sorted(c.id for c in movable) or len(set(ordered_ids)) != len(ordered_ids):
        raise ValidationError("Column order must list every score and sum column exactly once")
    by_id = {c.id: c for c in movable}
    grades = tuple(c for c in group.columns if isinstance(c, GradeColumnSpec))
    return replace(group, columns=tuple(by_id[i] for i in ordered_ids) + grades)
