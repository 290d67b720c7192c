"""
Router public du check-in (page ouverte par le scan du QR code).
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from meetingtrack.database import get_db
from meetingtrack.exceptions import DuplicateCheckIn, SessionUnavailable, SubmissionError, ValidationError
from meetingtrack.schemas.attendance import CheckInForm, CheckInResult
from meetingtrack.schemas.session import PublicSessionResponse
from meetingtrack.services import checkin_service

router = APIRouter(prefix="/api/v1/checkin", tags=["Check-in"])


@router.get("/{session_id}", response_model=PublicSessionResponse, summary="Session ouverte au check-in")
def get_checkin_session(session_id: uuid.UUID, db: Session = Depends(get_db)):
    """
    Retourne les informations publiques de la session.
    404 si elle n'existe pas, 410 si elle est fermée : le formulaire ne doit pas être affiché.
    """
    try:
        return checkin_service.get_public_session(db, session_id)
    except SessionUnavailable as e:
        raise _unavailable(e)


@router.post("/{session_id}", response_model=CheckInResult, status_code=201, summary="Enregistrer une présence")
def submit_checkin(session_id: uuid.UUID, data: CheckInForm, db: Session = Depends(get_db)):
    """
    Enregistre la présence d'un participant avec sa signature.

    - Session introuvable → 404, fermée → 410
    - Champ requis ou signature manquant → 422 (aucune écriture)
    - Doublon refusé (si configuré) → 409
    - Échec d'écriture → 503, le participant peut réessayer
    """
    fields = data.model_dump(exclude={"signature"})
    try:
        row = checkin_service.submit_attendance(db, session_id, fields, data.signature)
    except SessionUnavailable as e:
        raise _unavailable(e)
    except DuplicateCheckIn as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail={"message": str(e), "missing_fields": e.missing_fields})
    except SubmissionError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return CheckInResult(attendance_id=row.id, checked_in_at=row.checked_in_at)


def _unavailable(e: SessionUnavailable) -> HTTPException:
    status = 410 if e.reason == SessionUnavailable.CLOSED else 404
    return HTTPException(status_code=status, detail=str(e))
