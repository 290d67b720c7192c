"""
Modèle SQLAlchemy pour les sessions de réunion.

Nommé MeetingSession pour éviter la confusion avec sqlalchemy.orm.Session.
"""

import uuid
from sqlalchemy import Boolean, Column, Date, DateTime, String, Text, Time, func
from sqlalchemy.dialects.postgresql import UUID

from meetingtrack.database import Base

SESSION_TYPES = ("external", "employee")


class MeetingSession(Base):
    """Réunion avec son planning et son lien de check-in unique."""
    __tablename__ = "sessions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    session_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=True)

    qr_code = Column(Text, nullable=False)                       # URL de check-in, figée à la création
    is_active = Column(Boolean, default=True, nullable=False)
    session_type = Column(String(20), nullable=False, default="external")  # external, employee

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
