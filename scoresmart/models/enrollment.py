"""Enrollment model - A participant holding a seat in a session"""
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, Index
from sqlalchemy.sql import func

from scoresmart.database import Base


class SessionEnrollment(Base):
    """Active seat held by a participant; one per (session, participant)"""

    __tablename__ = "session_enrollments"

    confirmation_ref = Column(String(20), primary_key=True)
    session_id = Column(
        String(36),
        ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    participant_id = Column(String(36), nullable=False)
    enrolled_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("session_id", "participant_id", name="unique_session_participant"),
        Index("idx_enrollments_participant", "participant_id"),
    )

    def __repr__(self):
        return f"<SessionEnrollment(ref={self.confirmation_ref}, session={self.session_id}, participant={self.participant_id})>"
