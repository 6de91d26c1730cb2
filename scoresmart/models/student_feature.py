"""StudentFeature model - Per-student feature flags toggled by admins"""
from sqlalchemy import Column, String, Boolean, DateTime, UniqueConstraint
from sqlalchemy.sql import func
import uuid

from scoresmart.database import Base


class StudentFeature(Base):
    """Feature flag (smart_quad, masterclass, one_to_one) for one student"""

    __tablename__ = "student_features"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id = Column(String(36), nullable=False)
    feature_key = Column(String(50), nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("student_id", "feature_key", name="unique_student_feature"),
    )

    def __repr__(self):
        return f"<StudentFeature(student={self.student_id}, key={self.feature_key}, enabled={self.enabled})>"
