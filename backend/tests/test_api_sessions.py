"""
Tests d'intégration API pour les sessions (espace organisateur).
Testent /api/v1/sessions et ses sous-ressources (statut, présences, QR, flyer, exports, moniteur).
"""

import uuid
from datetime import date, datetime, time, timezone
from unittest.mock import patch

import pytest
from starlette.websockets import WebSocketDisconnect

from meetingtrack.config import settings
from meetingtrack.schemas.attendance import AttendanceResponse
from meetingtrack.schemas.session import SessionResponse, SessionSummary
from meetingtrack.services.auth_service import create_admin_token
from meetingtrack.services.monitor_service import LiveMonitor
from meetingtrack.services.realtime import InsertBroker


# --- Helpers ---

def make_session_response(**kwargs) -> SessionResponse:
    session_id = kwargs.get("id", uuid.uuid4())
    return SessionResponse(
        id=session_id,
        title=kwargs.get("title", "Rapat Q4"),
        description=kwargs.get("description", None),
        location=kwargs.get("location", "Aula"),
        session_date=kwargs.get("session_date", date(2025, 10, 13)),
        start_time=kwargs.get("start_time", time(9, 0)),
        end_time=kwargs.get("end_time", time(11, 0)),
        qr_code=f"http://localhost:3000/attendance/{session_id}",
        is_active=kwargs.get("is_active", True),
        session_type=kwargs.get("session_type", "external"),
        attendance_count=kwargs.get("attendance_count", 0),
    )


def make_attendance(session_id, name="Alice") -> AttendanceResponse:
    return AttendanceResponse(
        id=uuid.uuid4(),
        session_id=session_id,
        full_name=name,
        institution="Acme",
        position="Manager",
        phone_number="0811",
        checked_in_at=datetime(2025, 10, 13, 2, 0, tzinfo=timezone.utc),
    )


SESSION_PAYLOAD = {
    "title": "Rapat Q4",
    "location": "Aula",
    "session_date": "2025-10-13",
    "start_time": "09:00",
    "end_time": "11:00",
    "session_type": "external",
}


# ============================================================
# Accès organisateur
# ============================================================

def test_sessions_sans_cookie_refusees(client):
    response = client.get("/api/v1/sessions")
    assert response.status_code == 401


def test_sessions_avec_cookie_valide(client):
    client.cookies.set(settings.AUTH_COOKIE_NAME, create_admin_token())
    with patch("meetingtrack.routers.sessions.session_service.list_sessions", return_value=[]):
        response = client.get("/api/v1/sessions")
    assert response.status_code == 200


def test_sessions_avec_cookie_falsifie(client):
    client.cookies.set(settings.AUTH_COOKIE_NAME, "pas-un-jwt")
    response = client.get("/api/v1/sessions")
    assert response.status_code == 401


# ============================================================
# POST /api/v1/sessions
# ============================================================

def test_create_session_succes(admin_client):
    with patch("meetingtrack.routers.sessions.session_service.create_session") as mock:
        mock.return_value = make_session_response()
        response = admin_client.post("/api/v1/sessions", json=SESSION_PAYLOAD)

    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "Rapat Q4"
    assert data["is_active"] is True
    assert data["qr_code"].endswith(f"/attendance/{data['id']}")


def test_create_session_titre_vide(admin_client):
    response = admin_client.post("/api/v1/sessions", json={**SESSION_PAYLOAD, "title": "  "})
    assert response.status_code == 422


def test_create_session_employee_sans_lieu(admin_client):
    payload = {**SESSION_PAYLOAD, "session_type": "employee", "location": None}
    response = admin_client.post("/api/v1/sessions", json=payload)
    assert response.status_code == 422


# ============================================================
# GET /api/v1/sessions, /summary, /{id}
# ============================================================

def test_list_sessions_transmet_les_filtres(admin_client):
    with patch("meetingtrack.routers.sessions.session_service.list_sessions") as mock:
        mock.return_value = [make_session_response(), make_session_response(is_active=False)]
        response = admin_client.get("/api/v1/sessions?search=rapat&status=closed")

    assert response.status_code == 200
    assert len(response.json()) == 2
    assert mock.call_args.kwargs == {"search": "rapat", "status": "closed"}


def test_list_sessions_statut_inconnu(admin_client):
    response = admin_client.get("/api/v1/sessions?status=archived")
    assert response.status_code == 422


def test_summary(admin_client):
    with patch("meetingtrack.routers.sessions.session_service.get_summary") as mock:
        mock.return_value = SessionSummary(total_sessions=3, active_sessions=1, total_attendances=42)
        response = admin_client.get("/api/v1/sessions/summary")

    assert response.status_code == 200
    assert response.json()["total_attendances"] == 42


def test_get_session_introuvable(admin_client):
    with patch("meetingtrack.routers.sessions.session_service.get_session", return_value=None):
        response = admin_client.get(f"/api/v1/sessions/{uuid.uuid4()}")
    assert response.status_code == 404


# ============================================================
# PUT / PATCH status / DELETE
# ============================================================

def test_update_session(admin_client):
    session = make_session_response(title="Rapat Revisi")
    with patch("meetingtrack.routers.sessions.session_service.update_session", return_value=session):
        response = admin_client.put(f"/api/v1/sessions/{session.id}", json={"title": "Rapat Revisi"})
    assert response.status_code == 200
    assert response.json()["title"] == "Rapat Revisi"


def test_update_session_titre_null(admin_client):
    with patch("meetingtrack.routers.sessions.session_service.update_session") as mock:
        response = admin_client.put(f"/api/v1/sessions/{uuid.uuid4()}", json={"title": None})
    assert response.status_code == 422
    mock.assert_not_called()


def test_update_session_horaire_invalide(admin_client):
    with patch(
        "meetingtrack.routers.sessions.session_service.update_session",
        side_effect=ValueError("L'heure de fin doit être postérieure à l'heure de début."),
    ):
        response = admin_client.put(f"/api/v1/sessions/{uuid.uuid4()}", json={"end_time": "08:00"})
    assert response.status_code == 400


def test_fermer_une_session(admin_client):
    session = make_session_response(is_active=False)
    with patch("meetingtrack.routers.sessions.session_service.set_session_active", return_value=session) as mock:
        response = admin_client.patch(f"/api/v1/sessions/{session.id}/status", json={"is_active": False})

    assert response.status_code == 200
    assert response.json()["is_active"] is False
    assert mock.call_args[0][2] is False


def test_delete_session(admin_client):
    with patch("meetingtrack.routers.sessions.session_service.delete_session", return_value=True):
        response = admin_client.delete(f"/api/v1/sessions/{uuid.uuid4()}")
    assert response.status_code == 204


def test_delete_session_introuvable(admin_client):
    with patch("meetingtrack.routers.sessions.session_service.delete_session", return_value=False):
        response = admin_client.delete(f"/api/v1/sessions/{uuid.uuid4()}")
    assert response.status_code == 404


# ============================================================
# Présences, QR, flyer, exports
# ============================================================

def test_list_attendances(admin_client):
    session = make_session_response()
    rows = [make_attendance(session.id, "Alice"), make_attendance(session.id, "Bob")]
    with patch("meetingtrack.routers.sessions.session_service.get_session", return_value=session), \
         patch("meetingtrack.routers.sessions.checkin_service.list_attendances", return_value=rows):
        response = admin_client.get(f"/api/v1/sessions/{session.id}/attendances")

    assert response.status_code == 200
    data = response.json()
    assert [r["full_name"] for r in data] == ["Alice", "Bob"]
    assert data[0]["kind"] == "external"


def test_qr_preview(admin_client):
    session = make_session_response()
    with patch("meetingtrack.routers.sessions.session_service.get_session", return_value=session):
        response = admin_client.get(f"/api/v1/sessions/{session.id}/qr.png")

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"


def test_flyer_telecharge(admin_client):
    session = make_session_response(title="Rapat Q4")
    with patch("meetingtrack.routers.sessions.session_service.get_session", return_value=session), \
         patch("meetingtrack.routers.sessions.qr_service.render_flyer", return_value=b"\x89PNG") as render:
        response = admin_client.get(f"/api/v1/sessions/{session.id}/flyer.png?coordinator=Ibu Sari")

    assert response.status_code == 200
    assert "QR-Rapat_Q4.png" in response.headers["content-disposition"]
    args = render.call_args[0]
    assert args[0] == session.qr_code
    assert args[2]["coordinator"] == "Ibu Sari"


def test_export_csv(admin_client):
    session = make_session_response(title="Rapat Q4")
    rows = [make_attendance(session.id, "Alice"), make_attendance(session.id, "Bob")]
    with patch("meetingtrack.routers.sessions.session_service.get_session", return_value=session), \
         patch("meetingtrack.routers.sessions.checkin_service.list_attendances", return_value=rows):
        response = admin_client.get(f"/api/v1/sessions/{session.id}/export.csv")

    assert response.status_code == 200
    assert "Absensi_Eksternal_Rapat_Q4.csv" in response.headers["content-disposition"]
    assert response.content.startswith(b"\xef\xbb\xbf")
    assert response.content.decode("utf-8-sig").splitlines()[0] == (
        "No,Nama Lengkap,Instansi,Jabatan,No. Telepon,Waktu Absen"
    )


def test_export_pdf(admin_client):
    session = make_session_response()
    with patch("meetingtrack.routers.sessions.session_service.get_session", return_value=session), \
         patch("meetingtrack.routers.sessions.checkin_service.list_attendances", return_value=[]), \
         patch("meetingtrack.routers.sessions.report_service.export_pdf", return_value=b"%PDF-1.4"):
        response = admin_client.get(f"/api/v1/sessions/{session.id}/export.pdf")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert "Laporan_Absensi_Eksternal_Rapat_Q4_" in response.headers["content-disposition"]


def test_export_session_introuvable(admin_client):
    with patch("meetingtrack.routers.sessions.session_service.get_session", return_value=None):
        response = admin_client.get(f"/api/v1/sessions/{uuid.uuid4()}/export.csv")
    assert response.status_code == 404


# ============================================================
# WS /api/v1/sessions/{id}/live
# ============================================================

def test_moniteur_sans_cookie_ferme(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/api/v1/sessions/{uuid.uuid4()}/live"):
            pass
    assert exc.value.code == 1008


def test_moniteur_instantane_puis_insertion(client):
    session = make_session_response()
    initial = [make_attendance(session.id, "Alice")]
    broker = InsertBroker()

    def build_monitor(session_id):
        return LiveMonitor(
            session_id,
            broker=broker,
            read_session=lambda _id: session,
            read_rows=lambda _id: {"external": initial, "employee": []},
        )

    cookie = f"{settings.AUTH_COOKIE_NAME}={create_admin_token()}"
    with patch("meetingtrack.routers.sessions.LiveMonitor", side_effect=build_monitor):
        with client.websocket_connect(f"/api/v1/sessions/{session.id}/live", headers={"cookie": cookie}) as ws:
            snapshot = ws.receive_json()
            broker.publish("attendances", session.id, make_attendance(session.id, "Bob"))
            event = ws.receive_json()

    assert snapshot["type"] == "snapshot"
    assert snapshot["session"]["id"] == str(session.id)
    assert [r["full_name"] for r in snapshot["attendances"]] == ["Alice"]
    assert event["type"] == "insert"
    assert event["attendance"]["full_name"] == "Bob"
