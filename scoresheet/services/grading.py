"""Grade resolution against a subject's grading criteria.

A criterion is a (grade, minimum score, colour) rule. Resolution walks the
criteria from the highest threshold down and returns the first grade whose
threshold the score reaches. A score below every threshold is clamped to the
lowest grade; there is no separate "below minimum" state.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from scoresheet.errors import NoCriteriaError

NEUTRAL_COLOR = "#6b7280"


class CriterionLike(Protocol):
    grade: str
    min_score: float
    color: str


@dataclass(frozen=True)
class Criterion:
    grade: str
    min_score: float
    color: str


DEFAULT_GRADING_CRITERIA: tuple[Criterion, ...] = (
    Criterion("A", 90, "#10b981"),
    Criterion("B", 80, "#3b82f6"),
    Criterion("C", 70, "#f59e0b"),
    Criterion("D", 60, "#f97316"),
    Criterion("F", 0, "#ef4444"),
)


def sort_criteria(criteria: Sequence[CriterionLike]) -> list[CriterionLike]:
    """Highest threshold first. Ties keep their original order."""
    return sorted(criteria, key=lambda c: c.min_score, reverse=True)


def resolve_grade(score: float, criteria: Sequence[CriterionLike]) -> str:
    if not criteria:
        raise NoCriteriaError("Cannot resolve a grade: no grading criteria are defined")
    ordered = sort_criteria(criteria)
    for criterion in ordered:
        if score >= criterion.min_score:
            return criterion.grade
    return ordered[-1].grade


def color_for(grade: str, criteria: Sequence[CriterionLike]) -> str:
    """Colour of the first criterion with this grade, gray for unknown or stale labels."""
    for criterion in criteria:
        if criterion.grade == grade:
            return criterion.color
    return NEUTRAL_COLOR
