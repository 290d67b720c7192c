"""
Schémas Pydantic pour les sessions de réunion.

Note : on importe datetime en tant que module (dt) pour éviter le conflit de nommage
entre les champs `session_date`/`start_time` et les types `datetime.date`/`datetime.time`.
"""

import uuid
import datetime as dt
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, field_validator, model_validator

SessionType = Literal["external", "employee"]


class SessionCreate(BaseModel):
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    session_date: dt.date
    start_time: dt.time
    end_time: Optional[dt.time] = None
    session_type: SessionType = "external"

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le titre de la session ne peut pas être vide.")
        return v.strip()

    @model_validator(mode="after")
    def check_schedule(self) -> "SessionCreate":
        if self.end_time is not None and self.end_time <= self.start_time:
            raise ValueError("L'heure de fin doit être postérieure à l'heure de début.")
        # Les réunions internes exigent un lieu (formulaire pegawai)
        if self.session_type == "employee" and not (self.location or "").strip():
            raise ValueError("Le lieu est obligatoire pour une session employee.")
        return self


class SessionUpdate(BaseModel):
    """
    Champs modifiables d'une session.
    qr_code, session_type et id ne figurent pas ici : ils ne changent jamais après création.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    session_date: Optional[dt.date] = None
    start_time: Optional[dt.time] = None
    end_time: Optional[dt.time] = None

    @field_validator("title", "session_date", "start_time")
    @classmethod
    def required_not_null(cls, v, info):
        # Omettre un champ le laisse inchangé ; l'envoyer à null est refusé
        if v is None:
            raise ValueError(f"Le champ {info.field_name} ne peut pas être null.")
        return v

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le titre de la session ne peut pas être vide.")
        return v.strip()


class SessionStatusUpdate(BaseModel):
    is_active: bool


class SessionResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    session_date: dt.date
    start_time: dt.time
    end_time: Optional[dt.time] = None
    qr_code: str
    is_active: bool
    session_type: SessionType
    attendance_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PublicSessionResponse(BaseModel):
    """Vue publique affichée au participant avant le formulaire (sans URL ni statistiques)."""
    id: uuid.UUID
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    session_date: dt.date
    start_time: dt.time
    end_time: Optional[dt.time] = None
    session_type: SessionType

    model_config = {"from_attributes": True}


class SessionSummary(BaseModel):
    """Compteurs du tableau de bord organisateur."""
    total_sessions: int
    active_sessions: int
    total_attendances: int


class ConfirmationPrompt(BaseModel):
    """Descripteur déclaratif d'une boîte de confirmation (titre, message, libellés)."""
    action: str
    variant: Literal["danger", "warning", "success"]
    title: str
    message: str
    confirm_label: str = "Konfirmasi"
    cancel_label: str = "Batal"
