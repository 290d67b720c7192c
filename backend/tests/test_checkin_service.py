"""
Tests unitaires pour le service de check-in (vérification de session, champs requis,
insertion horodatée côté serveur et publication temps réel).
"""

import uuid
from datetime import date, datetime, time, timezone
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from meetingtrack.config import settings
from meetingtrack.exceptions import DuplicateCheckIn, SessionUnavailable, SubmissionError, ValidationError
from meetingtrack.models.attendance import Attendance, EmployeeAttendance
from meetingtrack.services.checkin_service import (
    get_available_session,
    get_public_session,
    list_attendances,
    submit_attendance,
    validate_fields,
)
from meetingtrack.services.realtime import InsertBroker

SIGNATURE = "data:image/png;base64,iVBORw0KGgo="

EXTERNAL_FIELDS = {
    "full_name": "Alice",
    "institution": "Acme",
    "position": "Manager",
    "phone_number": "0811000111",
}

EMPLOYEE_FIELDS = {
    "nip": "198501012010011001",
    "full_name": "Budi Santoso",
    "position": "Analis Keimigrasian",
}


# --- Helpers ---

def make_meeting_mock(session_type="external", is_active=True):
    meeting = MagicMock()
    meeting.id = uuid.uuid4()
    meeting.title = "Rapat Q4"
    meeting.description = None
    meeting.location = "Aula"
    meeting.session_date = date(2025, 10, 13)
    meeting.start_time = time(9, 0)
    meeting.end_time = None
    meeting.is_active = is_active
    meeting.session_type = session_type
    return meeting


def make_db_mock(meeting=None, duplicate_count=0):
    """Premier execute() : relecture de la session ; suivants : comptage des doublons."""
    db = MagicMock()
    session_result = MagicMock()
    session_result.scalar.return_value = meeting
    count_result = MagicMock()
    count_result.scalar.return_value = duplicate_count
    db.execute.side_effect = [session_result, count_result]
    return db


# --- get_available_session ---

def test_session_introuvable():
    db = make_db_mock(meeting=None)
    with pytest.raises(SessionUnavailable) as exc:
        get_available_session(db, uuid.uuid4())
    assert exc.value.reason == SessionUnavailable.NOT_FOUND


def test_session_fermee():
    db = make_db_mock(meeting=make_meeting_mock(is_active=False))
    with pytest.raises(SessionUnavailable) as exc:
        get_available_session(db, uuid.uuid4())
    assert exc.value.reason == SessionUnavailable.CLOSED


def test_session_publique_sans_url():
    meeting = make_meeting_mock()
    db = make_db_mock(meeting=meeting)

    public = get_public_session(db, meeting.id)

    assert public.id == meeting.id
    assert public.title == "Rapat Q4"
    assert "qr_code" not in public.model_dump()


# --- validate_fields ---

def test_champs_nettoyes():
    cleaned = validate_fields("external", {**EXTERNAL_FIELDS, "full_name": "  Alice  "}, SIGNATURE)
    assert cleaned["full_name"] == "Alice"


def test_champ_blanc_refuse():
    with pytest.raises(ValidationError) as exc:
        validate_fields("external", {**EXTERNAL_FIELDS, "institution": "   "}, SIGNATURE)
    assert exc.value.missing_fields == ["institution"]


def test_signature_vide_refusee():
    with pytest.raises(ValidationError) as exc:
        validate_fields("employee", EMPLOYEE_FIELDS, "")
    assert exc.value.missing_fields == ["signature"]


def test_employee_sans_nip_refuse():
    fields = {k: v for k, v in EMPLOYEE_FIELDS.items() if k != "nip"}
    with pytest.raises(ValidationError) as exc:
        validate_fields("employee", fields, SIGNATURE)
    assert "nip" in exc.value.missing_fields


def test_les_champs_external_ne_suffisent_pas_pour_employee():
    with pytest.raises(ValidationError) as exc:
        validate_fields("employee", EXTERNAL_FIELDS, SIGNATURE)
    assert exc.value.missing_fields == ["nip"]


# --- submit_attendance ---

def test_check_in_external_insere_et_publie():
    meeting = make_meeting_mock()
    db = make_db_mock(meeting=meeting)
    broker = InsertBroker()
    received = []
    broker.subscribe("attendances", meeting.id, received.append)

    before = datetime.now(timezone.utc)
    result = submit_attendance(db, meeting.id, EXTERNAL_FIELDS, SIGNATURE, broker=broker)

    added = db.add.call_args[0][0]
    assert isinstance(added, Attendance)
    assert added.session_id == meeting.id
    assert added.signature == SIGNATURE
    assert result.kind == "external"
    assert result.full_name == "Alice"
    assert result.checked_in_at >= before
    assert received == [result]
    db.commit.assert_called_once()


def test_check_in_employee_utilise_sa_table():
    meeting = make_meeting_mock(session_type="employee")
    db = make_db_mock(meeting=meeting)
    broker = InsertBroker()
    external, employee = [], []
    broker.subscribe("attendances", meeting.id, external.append)
    broker.subscribe("employee_attendances", meeting.id, employee.append)

    result = submit_attendance(db, meeting.id, EMPLOYEE_FIELDS, SIGNATURE, broker=broker)

    assert isinstance(db.add.call_args[0][0], EmployeeAttendance)
    assert result.kind == "employee"
    assert result.nip == "198501012010011001"
    assert employee == [result]
    assert external == []


def test_horodatage_client_ignore():
    """Un checked_in_at fourni par le client n'est jamais repris."""
    meeting = make_meeting_mock()
    db = make_db_mock(meeting=meeting)
    forged = {**EXTERNAL_FIELDS, "checked_in_at": "2000-01-01T00:00:00Z"}

    result = submit_attendance(db, meeting.id, forged, SIGNATURE, broker=InsertBroker())

    assert result.checked_in_at.year != 2000


def test_session_fermee_aucune_ecriture():
    db = make_db_mock(meeting=make_meeting_mock(is_active=False))

    with pytest.raises(SessionUnavailable):
        submit_attendance(db, uuid.uuid4(), EXTERNAL_FIELDS, SIGNATURE, broker=InsertBroker())

    db.add.assert_not_called()
    db.commit.assert_not_called()


def test_champ_manquant_aucune_ecriture():
    meeting = make_meeting_mock()
    db = make_db_mock(meeting=meeting)

    with pytest.raises(ValidationError):
        submit_attendance(db, meeting.id, {**EXTERNAL_FIELDS, "phone_number": ""}, SIGNATURE, broker=InsertBroker())

    db.add.assert_not_called()


def test_echec_base_rollback_sans_publication():
    meeting = make_meeting_mock()
    db = make_db_mock(meeting=meeting)
    db.commit.side_effect = SQLAlchemyError("connexion perdue")
    broker = InsertBroker()
    received = []
    broker.subscribe("attendances", meeting.id, received.append)

    with pytest.raises(SubmissionError) as exc:
        submit_attendance(db, meeting.id, EXTERNAL_FIELDS, SIGNATURE, broker=broker)

    assert "silakan coba lagi" in str(exc.value)
    db.rollback.assert_called_once()
    assert received == []


def test_soumissions_multiples_acceptees_par_defaut():
    meeting = make_meeting_mock()

    for _ in range(2):
        db = make_db_mock(meeting=meeting, duplicate_count=1)
        submit_attendance(db, meeting.id, EXTERNAL_FIELDS, SIGNATURE, broker=InsertBroker())
        db.add.assert_called_once()


def test_doublon_refuse_si_configure():
    meeting = make_meeting_mock()
    db = make_db_mock(meeting=meeting, duplicate_count=1)

    with patch.object(settings, "ALLOW_DUPLICATE_CHECKINS", False):
        with pytest.raises(DuplicateCheckIn):
            submit_attendance(db, meeting.id, EXTERNAL_FIELDS, SIGNATURE, broker=InsertBroker())

    db.add.assert_not_called()


# --- list_attendances ---

def test_list_attendances_variant_par_type():
    session_id = uuid.uuid4()
    row = EmployeeAttendance(
        id=uuid.uuid4(),
        session_id=session_id,
        checked_in_at=datetime(2025, 10, 13, 2, 0, tzinfo=timezone.utc),
        signature=SIGNATURE,
        **EMPLOYEE_FIELDS,
    )
    db = MagicMock()
    db.execute.return_value.scalars.return_value.all.return_value = [row]

    rows = list_attendances(db, session_id, "employee")

    assert len(rows) == 1
    assert rows[0].kind == "employee"
    assert rows[0].nip == EMPLOYEE_FIELDS["nip"]
