"""Tutor model - Display data for the tutor running a session"""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
import uuid

from scoresmart.database import Base


class Tutor(Base):
    """Tutor owning sessions; the engine only reads the display name"""

    __tablename__ = "tutors"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Tutor(id={self.id}, name={self.name})>"
