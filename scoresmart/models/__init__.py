"""SQLAlchemy ORM Models for the ScoreSmart sessions schema"""
from scoresmart.models.tutor import Tutor
from scoresmart.models.session import Session
from scoresmart.models.enrollment import SessionEnrollment
from scoresmart.models.student_feature import StudentFeature

__all__ = [
    "Tutor",
    "Session",
    "SessionEnrollment",
    "StudentFeature",
]
