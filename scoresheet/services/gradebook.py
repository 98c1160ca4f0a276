"""Glue between the stored gradebook rows and the scoring engine.

Each function loads a snapshot of one group, runs a pure operation from
``scoresheet.services.scoring`` and writes the resulting column layout and
score maps back onto the rows. Callers hold the group's lock and commit.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional, Sequence

from sqlmodel import Session

from scoresheet.errors import NotFoundError, ValidationError
from scoresheet.models import Group, GradingCriterion, Learner, ScoreColumn, Subject
from scoresheet.services import scoring
from scoresheet.services.grading import DEFAULT_GRADING_CRITERIA
from scoresheet.store import DocumentStore

log = logging.getLogger(__name__)


def criteria_for(group: Group) -> list[GradingCriterion]:
    return list(group.subject.grading_criteria) if group.subject else []


def column_spec(row: ScoreColumn) -> scoring.ColumnSpec:
    return scoring.build_column(str(row.id), row.type, row.source_columns or [])


def snapshot_of(group: Group) -> scoring.GroupSnapshot:
    return scoring.GroupSnapshot(
        columns=tuple(column_spec(row) for row in group.columns),
        learners=tuple(
            scoring.LearnerScores(str(learner.id), scoring.scores_from_raw(learner.scores))
            for learner in group.learners
        ),
    )


def save_snapshot(group: Group, snapshot: scoring.GroupSnapshot) -> None:
    columns = {str(row.id): row for row in group.columns}
    for position, spec in enumerate(snapshot.columns):
        row = columns[spec.id]
        row.position = position
        row.source_columns = [int(s) for s in spec.sources]
    learners = {str(row.id): row for row in group.learners}
    for learner in snapshot.learners:
        learners[learner.id].scores = scoring.scores_to_raw(learner.scores)


def _reload(session: Session, group: Group) -> None:
    session.flush()
    session.expire(group, ["columns", "learners"])


def recompute_group(session: Session, group: Group) -> Group:
    snapshot = scoring.recompute_all(snapshot_of(group), criteria_for(group))
    save_snapshot(group, snapshot)
    session.add(group)
    return group


def seed_default_criteria(session: Session, subject: Subject) -> None:
    store = DocumentStore(session, GradingCriterion)
    for criterion in DEFAULT_GRADING_CRITERIA:
        store.insert(
            GradingCriterion(
                subject_id=subject.id,
                grade=criterion.grade,
                min_score=criterion.min_score,
                color=criterion.color,
            ),
            commit=False,
        )
    session.expire(subject, ["grading_criteria"])


# --- Scores ---

def edit_score(session: Session, group: Group, learner_id: int, column_id: int, raw_value: Any) -> Learner:
    snapshot = scoring.apply_score_edit(
        snapshot_of(group), str(learner_id), str(column_id), raw_value, criteria_for(group)
    )
    save_snapshot(group, snapshot)
    learner = next(row for row in group.learners if row.id == learner_id)
    session.add(learner)
    return learner


def entered_scores(group: Group, raw_scores: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    """
    Keep only values for score columns, parsed as numbers. Values sent for
    sum or grade columns are dropped; they are always recomputed.
    """
    kinds = {str(row.id): row.type for row in group.columns}
    scores: dict[str, Any] = {}
    for key, value in (raw_scores or {}).items():
        kind = kinds.get(str(key))
        if kind is None:
            raise ValidationError(f"Column {key} does not exist in this group")
        if kind == "score":
            scores[str(key)] = scoring.parse_score(value)
    return scores


def add_learner(session: Session, group: Group, learner_id: str, name: str, raw_scores=None) -> Learner:
    _check_learner_id(group, learner_id)
    learner = DocumentStore(session, Learner).insert(
        Learner(group_id=group.id, learner_id=learner_id, name=name, scores=entered_scores(group, raw_scores)),
        commit=False,
    )
    _reload(session, group)
    snapshot = scoring.recompute_learner(snapshot_of(group), str(learner.id), criteria_for(group))
    save_snapshot(group, snapshot)
    return learner


def update_learner(session: Session, group: Group, learner: Learner, patch: dict[str, Any]) -> Learner:
    if "learner_id" in patch and patch["learner_id"] != learner.learner_id:
        _check_learner_id(group, patch["learner_id"])
    if "scores" in patch:
        patch = {**patch, "scores": {**learner.scores, **entered_scores(group, patch["scores"])}}
    for name, value in patch.items():
        setattr(learner, name, value)
    session.add(learner)
    snapshot = scoring.recompute_learner(snapshot_of(group), str(learner.id), criteria_for(group))
    save_snapshot(group, snapshot)
    return learner


def _check_learner_id(group: Group, learner_id: str) -> None:
    if any(row.learner_id == learner_id for row in group.learners):
        raise ValidationError(f"Learner ID {learner_id} already exists in this group")


# --- Columns ---

def _check_sources_in_group(group: Group, sources: Iterable[int]) -> None:
    ids = {row.id for row in group.columns}
    missing = [s for s in sources if s not in ids]
    if missing:
        raise ValidationError(f"Source column {missing[0]} does not exist in this group")


def add_column(session: Session, group: Group, name: str, kind: str, sources: Sequence[int]) -> ScoreColumn:
    scoring.validate_column_config(kind, sources)
    _check_sources_in_group(group, sources)
    before = snapshot_of(group)
    row = DocumentStore(session, ScoreColumn).insert(
        ScoreColumn(group_id=group.id, name=name, type=kind, source_columns=list(sources), position=len(before.columns)),
        commit=False,
    )
    snapshot = scoring.add_column(before, column_spec(row), criteria_for(group))
    _reload(session, group)
    save_snapshot(group, snapshot)
    log.debug("Added %s column %s to group %s", kind, row.id, group.id)
    return row


def update_column(session: Session, group: Group, row: ScoreColumn, patch: dict[str, Any]) -> ScoreColumn:
    kind = patch.get("type", row.type)
    sources = patch.get("source_columns", row.source_columns or [])
    if kind == "score" and "source_columns" not in patch:
        sources = []
    if "type" in patch or "source_columns" in patch:
        scoring.validate_column_config(kind, sources)
        _check_sources_in_group(group, sources)

    spec = scoring.build_column(str(row.id), kind, sources)
    snapshot = scoring.update_column(snapshot_of(group), spec, criteria_for(group))
    if "name" in patch:
        row.name = patch["name"]
    row.type = kind
    save_snapshot(group, snapshot)
    session.add(row)
    return row


def delete_column(session: Session, group: Group, row: ScoreColumn) -> None:
    snapshot = scoring.delete_column(snapshot_of(group), str(row.id), criteria_for(group))
    DocumentStore(session, ScoreColumn).delete_by_id(row.id, commit=False)
    _reload(session, group)
    save_snapshot(group, snapshot)


def reorder_columns(session: Session, group: Group, column_ids: Sequence[int]) -> Group:
    snapshot = scoring.reorder_columns(snapshot_of(group), [str(i) for i in column_ids])
    save_snapshot(group, snapshot)
    session.add(group)
    return group


def get_group_or_404(session: Session, group_id: int) -> Group:
    group = DocumentStore(session, Group).find_by_id(group_id)
    if group is None:
        raise NotFoundError("Group not found")
    return group
