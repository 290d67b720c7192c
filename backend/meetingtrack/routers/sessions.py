"""
Router des sessions de réunion (espace organisateur).
CRUD complet, ouverture/fermeture, QR code et flyer, exports PDF/CSV,
et moniteur temps réel des présences (WebSocket).
"""

import asyncio
import io
import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from meetingtrack.config import settings
from meetingtrack.database import get_db
from meetingtrack.exceptions import SessionUnavailable
from meetingtrack.schemas.attendance import AttendanceRow
from meetingtrack.schemas.session import (
    SessionCreate,
    SessionResponse,
    SessionStatusUpdate,
    SessionSummary,
    SessionUpdate,
)
from meetingtrack.services import auth_service, checkin_service, qr_service, report_service, session_service
from meetingtrack.services.monitor_service import LiveMonitor

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/sessions",
    tags=["Sessions"],
    dependencies=[Depends(auth_service.require_admin)],
)

# WebSocket : l'authentification est vérifiée dans l'endpoint (cookie lu sur la poignée de main)
live_router = APIRouter(prefix="/api/v1/sessions", tags=["Sessions"])


@router.post("", response_model=SessionResponse, status_code=201, summary="Créer une session")
def create_session(data: SessionCreate, db: Session = Depends(get_db)):
    """
    Crée une session active et fige son URL de check-in :
    /attendance/{id} pour une session external, /employee-attendance/{id} pour employee.
    """
    return session_service.create_session(db, data)


@router.get("", response_model=List[SessionResponse], summary="Lister les sessions")
def list_sessions(
    search: Optional[str] = None,
    status: str = Query("all", pattern="^(all|active|closed)$"),
    db: Session = Depends(get_db),
):
    """Sessions de la plus récente à la plus ancienne, filtrables par texte et par statut."""
    return session_service.list_sessions(db, search=search, status=status)


@router.get("/summary", response_model=SessionSummary, summary="Compteurs du tableau de bord")
def get_summary(db: Session = Depends(get_db)):
    return session_service.get_summary(db)


@router.get("/{session_id}", response_model=SessionResponse, summary="Détail d'une session")
def get_session(session_id: uuid.UUID, db: Session = Depends(get_db)):
    return _get_or_404(db, session_id)


@router.put("/{session_id}", response_model=SessionResponse, summary="Modifier une session")
def update_session(session_id: uuid.UUID, data: SessionUpdate, db: Session = Depends(get_db)):
    """
    Met à jour les informations et le planning d'une session.
    Seuls les champs fournis sont modifiés ; l'URL de check-in ne change jamais.
    """
    try:
        session = session_service.update_session(db, session_id, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if session is None:
        raise HTTPException(status_code=404, detail="Session introuvable.")
    return session


@router.patch("/{session_id}/status", response_model=SessionResponse, summary="Ouvrir ou fermer une session")
def set_session_status(session_id: uuid.UUID, data: SessionStatusUpdate, db: Session = Depends(get_db)):
    """Une session fermée n'accepte plus de présences ; elle peut être rouverte."""
    session = session_service.set_session_active(db, session_id, data.is_active)
    if session is None:
        raise HTTPException(status_code=404, detail="Session introuvable.")
    return session


@router.delete("/{session_id}", status_code=204, summary="Supprimer une session")
def delete_session(session_id: uuid.UUID, db: Session = Depends(get_db)):
    """Suppression définitive de la session et de toutes ses présences."""
    if not session_service.delete_session(db, session_id):
        raise HTTPException(status_code=404, detail="Session introuvable.")


@router.get("/{session_id}/attendances", response_model=List[AttendanceRow], summary="Présences d'une session")
def list_attendances(session_id: uuid.UUID, db: Session = Depends(get_db)):
    """Présences triées par heure de check-in croissante."""
    session = _get_or_404(db, session_id)
    return checkin_service.list_attendances(db, session.id, session.session_type)


@router.get("/{session_id}/qr.png", summary="Aperçu du QR code")
def get_qr_preview(session_id: uuid.UUID, db: Session = Depends(get_db)):
    session = _get_or_404(db, session_id)
    png = qr_service.generate_qr_png(session.qr_code)
    return StreamingResponse(io.BytesIO(png), media_type="image/png")


@router.get("/{session_id}/flyer.png", summary="Télécharger le flyer QR imprimable")
def download_flyer(session_id: uuid.UUID, coordinator: Optional[str] = None, db: Session = Depends(get_db)):
    """Flyer A4 (200 DPI) encodant l'URL de check-in stockée, avec les informations de la session."""
    session = _get_or_404(db, session_id)
    png = qr_service.render_flyer(
        session.qr_code,
        session.title,
        qr_service.session_info_for(session, coordinator=coordinator),
    )
    return StreamingResponse(
        io.BytesIO(png),
        media_type="image/png",
        headers={"Content-Disposition": f"attachment; filename={qr_service.flyer_filename(session.title)}"},
    )


@router.get("/{session_id}/export.pdf", summary="Exporter le rapport de présence en PDF")
def export_pdf(session_id: uuid.UUID, db: Session = Depends(get_db)):
    session = _get_or_404(db, session_id)
    rows = checkin_service.list_attendances(db, session.id, session.session_type)
    pdf = report_service.export_pdf(session, rows)
    return StreamingResponse(
        io.BytesIO(pdf),
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={report_service.pdf_filename(session)}"},
    )


@router.get("/{session_id}/export.csv", summary="Exporter les présences en CSV")
def export_csv(session_id: uuid.UUID, db: Session = Depends(get_db)):
    """CSV UTF-8 avec BOM, tous les champs entre guillemets. Compatible Excel."""
    session = _get_or_404(db, session_id)
    rows = checkin_service.list_attendances(db, session.id, session.session_type)
    csv_content = report_service.export_csv(session, rows)
    return StreamingResponse(
        iter([csv_content]),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={report_service.csv_filename(session)}"},
    )


@live_router.websocket("/{session_id}/live")
async def live_monitor(websocket: WebSocket, session_id: uuid.UUID):
    """
    Moniteur temps réel : envoie d'abord l'instantané, puis un message par nouvelle présence.
    L'abonnement est fermé dès que le client se déconnecte, sur tous les chemins de sortie.
    """
    if not auth_service.is_valid_admin_token(websocket.cookies.get(settings.AUTH_COOKIE_NAME)):
        await websocket.close(code=1008)
        return

    await websocket.accept()
    monitor = LiveMonitor(session_id)

    async def watch_disconnect():
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        finally:
            monitor.stop()

    watcher = asyncio.create_task(watch_disconnect())
    try:
        snapshot = await monitor.start()
        await websocket.send_json({"type": "snapshot", **snapshot.model_dump(mode="json")})
        async for row in monitor.events():
            await websocket.send_json({"type": "insert", "attendance": row.model_dump(mode="json")})
    except SessionUnavailable as e:
        await websocket.send_json({"type": "error", "detail": str(e)})
        await websocket.close(code=1008)
    except WebSocketDisconnect:
        logger.info("Moniteur déconnecté : session %s", session_id)
    finally:
        monitor.stop()
        watcher.cancel()


def _get_or_404(db: Session, session_id: uuid.UUID) -> SessionResponse:
    session = session_service.get_session(db, session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session introuvable.")
    return session
