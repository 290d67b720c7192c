"""
Service métier pour les sessions de réunion.
Gère la création (avec l'URL de check-in figée), la lecture, la modification,
l'ouverture/fermeture et la suppression en cascade des sessions.
"""

import uuid
import logging
from typing import List, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from meetingtrack.config import settings
from meetingtrack.models.attendance import Attendance, EmployeeAttendance, model_for_kind
from meetingtrack.models.session import MeetingSession
from meetingtrack.schemas.session import (
    SessionCreate,
    SessionResponse,
    SessionSummary,
    SessionUpdate,
)

logger = logging.getLogger(__name__)

CHECKIN_PATHS = {
    "external": "attendance",
    "employee": "employee-attendance",
}


def build_checkin_url(session_id: uuid.UUID, session_type: str, origin: Optional[str] = None) -> str:
    """Construit l'URL encodée dans le QR : {origin}/attendance/{id} ou {origin}/employee-attendance/{id}."""
    base = (origin or settings.PUBLIC_ORIGIN).rstrip("/")
    return f"{base}/{CHECKIN_PATHS[session_type]}/{session_id}"


def create_session(db: Session, data: SessionCreate) -> SessionResponse:
    """
    Crée une session active.

    L'identifiant est généré avant l'insertion pour que l'URL de check-in
    puisse être calculée et stockée telle quelle dans qr_code.
    Cette URL ne change plus jamais, même si la session est modifiée.
    """
    session_id = uuid.uuid4()
    meeting = MeetingSession(
        id=session_id,
        title=data.title,
        description=data.description,
        location=data.location,
        session_date=data.session_date,
        start_time=data.start_time,
        end_time=data.end_time,
        qr_code=build_checkin_url(session_id, data.session_type),
        is_active=True,
        session_type=data.session_type,
    )
    db.add(meeting)
    db.commit()
    db.refresh(meeting)

    logger.info("Session créée : %s (%s, %s)", meeting.title, meeting.id, meeting.session_type)
    return _to_response(db, meeting)


def list_sessions(db: Session, search: Optional[str] = None, status: str = "all") -> List[SessionResponse]:
    """
    Retourne les sessions de la plus récente à la plus ancienne.
    search filtre sur le titre, la description ou le lieu (insensible à la casse).
    status : all, active ou closed.
    """
    query = select(MeetingSession).order_by(MeetingSession.created_at.desc())

    if status == "active":
        query = query.where(MeetingSession.is_active.is_(True))
    elif status == "closed":
        query = query.where(MeetingSession.is_active.is_(False))

    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.where(
            or_(
                MeetingSession.title.ilike(pattern),
                MeetingSession.description.ilike(pattern),
                MeetingSession.location.ilike(pattern),
            )
        )

    sessions = db.execute(query).scalars().all()
    return [_to_response(db, s) for s in sessions]


def get_session(db: Session, session_id: uuid.UUID) -> Optional[SessionResponse]:
    """Retourne une session par son ID, ou None si elle n'existe pas."""
    meeting = db.get(MeetingSession, session_id)
    if meeting is None:
        return None
    return _to_response(db, meeting)


def get_summary(db: Session) -> SessionSummary:
    """Compteurs globaux du tableau de bord."""
    total_sessions = db.execute(select(func.count()).select_from(MeetingSession)).scalar() or 0
    active_sessions = db.execute(
        select(func.count()).select_from(MeetingSession).where(MeetingSession.is_active.is_(True))
    ).scalar() or 0
    external = db.execute(select(func.count()).select_from(Attendance)).scalar() or 0
    employee = db.execute(select(func.count()).select_from(EmployeeAttendance)).scalar() or 0

    return SessionSummary(
        total_sessions=total_sessions,
        active_sessions=active_sessions,
        total_attendances=external + employee,
    )


def update_session(db: Session, session_id: uuid.UUID, data: SessionUpdate) -> Optional[SessionResponse]:
    """
    Met à jour les champs descriptifs et le planning d'une session.
    Seuls les champs fournis sont modifiés ; qr_code et session_type restent intacts.

    Lève ValueError si l'heure de fin résultante précède l'heure de début,
    ou si une session employee se retrouve sans lieu.
    """
    meeting = db.get(MeetingSession, session_id)
    if meeting is None:
        return None

    update_data = data.model_dump(exclude_unset=True)
    start = update_data.get("start_time", meeting.start_time)
    end = update_data.get("end_time", meeting.end_time)
    if end is not None and start is not None and end <= start:
        raise ValueError("L'heure de fin doit être postérieure à l'heure de début.")
    if meeting.session_type == "employee" and not (update_data.get("location", meeting.location) or "").strip():
        raise ValueError("Le lieu est obligatoire pour une session employee.")

    for field, value in update_data.items():
        setattr(meeting, field, value)

    db.commit()
    db.refresh(meeting)
    return _to_response(db, meeting)


def set_session_active(db: Session, session_id: uuid.UUID, is_active: bool) -> Optional[SessionResponse]:
    """
    Ouvre ou ferme une session (mise à jour inconditionnelle, dernier écrivain gagnant).
    Une session fermée refuse tout nouveau check-in.
    """
    meeting = db.get(MeetingSession, session_id)
    if meeting is None:
        return None

    meeting.is_active = is_active
    db.commit()
    db.refresh(meeting)

    logger.info("Session %s %s", session_id, "ouverte" if is_active else "fermée")
    return _to_response(db, meeting)


def delete_session(db: Session, session_id: uuid.UUID) -> bool:
    """
    Supprime une session et toutes ses présences.
    Les présences sont supprimées explicitement avant la session.
    Retourne True si supprimée, False si non trouvée.
    """
    meeting = db.get(MeetingSession, session_id)
    if meeting is None:
        return False

    model = model_for_kind(meeting.session_type)
    db.execute(delete(model).where(model.session_id == session_id))
    db.delete(meeting)
    db.commit()

    logger.info("Session supprimée : %s (%s)", meeting.title, session_id)
    return True


def count_attendances(db: Session, meeting: MeetingSession) -> int:
    """Nombre de présences dans la table correspondant au type de la session."""
    model = model_for_kind(meeting.session_type)
    return db.execute(
        select(func.count())
        .select_from(model)
        .where(model.session_id == meeting.id)
    ).scalar() or 0


def _to_response(db: Session, meeting: MeetingSession) -> SessionResponse:
    """Construit le schéma de réponse avec le nombre de présences."""
    return SessionResponse(
        id=meeting.id,
        title=meeting.title,
        description=meeting.description,
        location=meeting.location,
        session_date=meeting.session_date,
        start_time=meeting.start_time,
        end_time=meeting.end_time,
        qr_code=meeting.qr_code,
        is_active=meeting.is_active,
        session_type=meeting.session_type,
        attendance_count=count_attendances(db, meeting),
        created_at=meeting.created_at,
        updated_at=meeting.updated_at,
    )
