"""
Service de check-in des participants.

Flux :
  1. Relire la session en base et vérifier qu'elle est active (sinon SessionUnavailable)
  2. Vérifier les champs requis selon le type de session + la signature (sinon ValidationError)
  3. Optionnel : refuser un doublon si ALLOW_DUPLICATE_CHECKINS est désactivé
  4. Insérer exactement une ligne horodatée côté serveur dans la table du type de session
  5. Publier la ligne sur le canal temps réel après le commit
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from meetingtrack.config import settings
from meetingtrack.exceptions import DuplicateCheckIn, SessionUnavailable, SubmissionError, ValidationError
from meetingtrack.models.attendance import Attendance, EmployeeAttendance, model_for_kind
from meetingtrack.models.session import MeetingSession
from meetingtrack.schemas.attendance import AttendanceResponse, EmployeeAttendanceResponse
from meetingtrack.schemas.session import PublicSessionResponse
from meetingtrack.services.realtime import InsertBroker, broker as default_broker

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = {
    "external": ("full_name", "institution", "position", "phone_number"),
    "employee": ("nip", "full_name", "position"),
}

AttendanceRowType = Union[AttendanceResponse, EmployeeAttendanceResponse]


def get_available_session(db: Session, session_id: uuid.UUID) -> MeetingSession:
    """
    Relit la session et vérifie qu'elle accepte encore des présences.
    Lève SessionUnavailable si elle est introuvable ou fermée.
    """
    meeting = db.execute(
        select(MeetingSession).where(MeetingSession.id == session_id)
    ).scalar()
    if meeting is None:
        raise SessionUnavailable("Session introuvable.", SessionUnavailable.NOT_FOUND)
    if not meeting.is_active:
        raise SessionUnavailable("La session est fermée, les présences ne sont plus acceptées.",
                                 SessionUnavailable.CLOSED)
    return meeting


def get_public_session(db: Session, session_id: uuid.UUID) -> PublicSessionResponse:
    """Vue publique d'une session ouverte, affichée avant le formulaire."""
    return PublicSessionResponse.model_validate(get_available_session(db, session_id))


def validate_fields(session_type: str, fields: Mapping[str, Optional[str]], signature: Optional[str]) -> Dict[str, str]:
    """
    Nettoie et vérifie les champs requis pour le type de session.
    Retourne uniquement les champs requis, sans espaces superflus.
    Lève ValidationError (avec la liste des champs manquants) sans rien écrire.
    """
    cleaned = {name: (fields.get(name) or "").strip() for name in REQUIRED_FIELDS[session_type]}
    missing = [name for name, value in cleaned.items() if not value]
    if not (signature or "").strip():
        missing.append("signature")

    if missing:
        raise ValidationError(
            "Champs obligatoires manquants : " + ", ".join(missing),
            missing_fields=missing,
        )
    return cleaned


def submit_attendance(
    db: Session,
    session_id: uuid.UUID,
    fields: Mapping[str, Optional[str]],
    signature: Optional[str],
    broker: InsertBroker = default_broker,
) -> AttendanceRowType:
    """
    Enregistre une présence pour la session.

    La session est relue juste avant l'écriture : une session fermée entre
    l'affichage du formulaire et la soumission est refusée.
    L'horodatage checked_in_at est attribué ici, jamais repris du client.

    Pas d'idempotence par défaut : une nouvelle soumission crée une nouvelle ligne.
    """
    meeting = get_available_session(db, session_id)
    cleaned = validate_fields(meeting.session_type, fields, signature)
    model = model_for_kind(meeting.session_type)

    if not settings.ALLOW_DUPLICATE_CHECKINS:
        _ensure_not_duplicate(db, meeting, cleaned)

    row = model(
        id=uuid.uuid4(),
        session_id=meeting.id,
        signature=signature.strip(),
        checked_in_at=datetime.now(timezone.utc),
        **cleaned,
    )

    try:
        db.add(row)
        db.commit()
        db.refresh(row)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Échec d'enregistrement de la présence (session %s) : %s", session_id, exc)
        raise SubmissionError("Gagal melakukan absensi, silakan coba lagi.") from exc

    result = to_row(row, meeting.session_type)
    broker.publish(model.__tablename__, meeting.id, result)

    logger.info("Présence enregistrée : %s (session %s)", result.full_name, meeting.id)
    return result


def list_attendances(db: Session, session_id: uuid.UUID, session_type: str) -> List[AttendanceRowType]:
    """Présences d'une session, triées par checked_in_at croissant."""
    model = model_for_kind(session_type)
    rows = db.execute(
        select(model)
        .where(model.session_id == session_id)
        .order_by(model.checked_in_at.asc())
    ).scalars().all()
    return [to_row(r, session_type) for r in rows]


def to_row(row, session_type: str) -> AttendanceRowType:
    """Convertit une ligne ORM en variant étiqueté selon le type de session."""
    if session_type == "employee":
        return EmployeeAttendanceResponse.model_validate(row)
    return AttendanceResponse.model_validate(row)


def _ensure_not_duplicate(db: Session, meeting: MeetingSession, cleaned: Dict[str, str]) -> None:
    """
    Refuse un second check-in du même participant.
    Identité : NIP pour un agent, (nom, téléphone) pour un externe.
    """
    if meeting.session_type == "employee":
        condition = (EmployeeAttendance.session_id == meeting.id) & (EmployeeAttendance.nip == cleaned["nip"])
        model = EmployeeAttendance
    else:
        condition = (
            (Attendance.session_id == meeting.id)
            & (func.lower(Attendance.full_name) == cleaned["full_name"].lower())
            & (Attendance.phone_number == cleaned["phone_number"])
        )
        model = Attendance

    existing = db.execute(select(func.count()).select_from(model).where(condition)).scalar() or 0
    if existing:
        logger.warning("Check-in en double refusé (session %s)", meeting.id)
        raise DuplicateCheckIn("Vous avez déjà enregistré votre présence pour cette session.")
