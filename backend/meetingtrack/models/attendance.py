"""
Modèles SQLAlchemy pour les présences signées.

Deux tables distinctes car les schémas diffèrent :
- attendances          : participants externes (instansi, téléphone)
- employee_attendances : agents internes (NIP)

Une ligne est créée une seule fois par soumission et n'est jamais modifiée.
checked_in_at est attribué côté serveur, jamais repris du client.
"""

import uuid
from sqlalchemy import Column, DateTime, ForeignKey, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from meetingtrack.database import Base


class Attendance(Base):
    """Présence d'un participant externe."""
    __tablename__ = "attendances"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    session_id = Column(UUID(as_uuid=True), ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)
    full_name = Column(String(255), nullable=False)
    institution = Column(String(255), nullable=False)
    position = Column(String(255), nullable=False)
    phone_number = Column(String(50), nullable=False)
    signature = Column(Text, nullable=False)                 # data URL PNG (base64)
    checked_in_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_at = Column(DateTime, server_default=func.now())


class EmployeeAttendance(Base):
    """Présence d'un agent interne, identifié par son NIP."""
    __tablename__ = "employee_attendances"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    session_id = Column(UUID(as_uuid=True), ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)
    nip = Column(String(50), nullable=False)                 # Nomor Induk Pegawai
    full_name = Column(String(255), nullable=False)
    position = Column(String(255), nullable=False)
    signature = Column(Text, nullable=False)
    checked_in_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_at = Column(DateTime, server_default=func.now())


def model_for_kind(session_type: str):
    """Retourne la table de présences correspondant au type de session."""
    return EmployeeAttendance if session_type == "employee" else Attendance
