"""Session model - Scheduled group and individual tutoring sessions"""
from sqlalchemy import Column, String, Integer, Text, DateTime, CheckConstraint, Index
from sqlalchemy.sql import func
import uuid

from scoresmart.database import Base


class Session(Base):
    """Scheduled session with seat capacity and lifecycle status"""

    __tablename__ = "sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    session_type = Column(String(20), nullable=False, default="ONE_TO_ONE")
    course_type = Column(String(50), nullable=True)
    tutor_id = Column(String(36), nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    max_participants = Column(Integer, nullable=False, default=1)
    current_participants = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="SCHEDULED")
    meeting_link = Column(String(500), nullable=True)
    calendar_event_ref = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("max_participants > 0", name="check_max_participants_positive"),
        CheckConstraint(
            "current_participants >= 0 AND current_participants <= max_participants",
            name="check_participants_within_capacity",
        ),
        CheckConstraint("end_time > start_time", name="check_end_after_start"),
        CheckConstraint(
            "session_type IN ('ONE_TO_ONE', 'SMART_QUAD', 'MASTERCLASS')",
            name="check_session_type",
        ),
        CheckConstraint(
            "status IN ('SCHEDULED', 'ONGOING', 'COMPLETED', 'CANCELLED')",
            name="check_session_status",
        ),
        # Indexes for performance
        Index("idx_sessions_start_time", "start_time"),
        Index("idx_sessions_tutor", "tutor_id"),
        Index("idx_sessions_type_course", "session_type", "course_type"),
    )

    def __repr__(self):
        return (
            f"<Session(id={self.id}, type={self.session_type}, "
            f"seats={self.current_participants}/{self.max_participants})>"
        )
