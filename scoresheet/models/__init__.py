# Re-export models so callers can use: from scoresheet.models import User, Subject, ...
from .user import User
from .subject import Subject, GradingCriterion
from .group import Group, ScoreColumn, Learner

__all__ = [
    "User",
    "Subject", "GradingCriterion",
    "Group", "ScoreColumn", "Learner",
]
