"""
Schémas Pydantic pour les présences.

Les lignes sont un variant étiqueté par `kind` :
- external → AttendanceResponse (instansi, téléphone)
- employee → EmployeeAttendanceResponse (NIP)
L'export et le check-in aiguillent sur cette étiquette, jamais sur des champs optionnels.
"""

import uuid
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from meetingtrack.schemas.session import SessionResponse


class CheckInForm(BaseModel):
    """
    Corps brut du formulaire de présence.
    Tous les champs sont optionnels ici : les champs requis dépendent du type
    de session et sont vérifiés par le service (ValidationError sans écriture).
    Un éventuel checked_in_at envoyé par le client est ignoré.
    """
    full_name: Optional[str] = None
    institution: Optional[str] = None
    position: Optional[str] = None
    phone_number: Optional[str] = None
    nip: Optional[str] = None
    signature: Optional[str] = None


class AttendanceResponse(BaseModel):
    kind: Literal["external"] = "external"
    id: uuid.UUID
    session_id: uuid.UUID
    full_name: str
    institution: str
    position: str
    phone_number: str
    signature: Optional[str] = None
    checked_in_at: datetime

    model_config = {"from_attributes": True}


class EmployeeAttendanceResponse(BaseModel):
    kind: Literal["employee"] = "employee"
    id: uuid.UUID
    session_id: uuid.UUID
    nip: str
    full_name: str
    position: str
    signature: Optional[str] = None
    checked_in_at: datetime

    model_config = {"from_attributes": True}


AttendanceRow = Annotated[
    Union[AttendanceResponse, EmployeeAttendanceResponse],
    Field(discriminator="kind"),
]


class CheckInResult(BaseModel):
    """Accusé de réception renvoyé au participant."""
    ok: bool = True
    attendance_id: uuid.UUID
    checked_in_at: datetime


class MonitorSnapshot(BaseModel):
    """Lecture initiale du moniteur : la session et ses présences triées par checked_in_at."""
    session: SessionResponse
    attendances: List[AttendanceRow]
