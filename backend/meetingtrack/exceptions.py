"""
Erreurs métier du flux de présence et des exports.

Les services lèvent ces exceptions ; les routers les traduisent en codes HTTP.
RenderError et ResourceFetchError ne sortent jamais de l'export : elles sont
journalisées et l'export continue en mode dégradé.
"""

from typing import List, Optional


class AttendanceError(Exception):
    """Base commune à toutes les erreurs métier."""


class ValidationError(AttendanceError):
    """Champ obligatoire manquant ou signature vide. Aucune écriture tentée."""

    def __init__(self, message: str, missing_fields: Optional[List[str]] = None):
        super().__init__(message)
        self.missing_fields = missing_fields or []


class DuplicateCheckIn(ValidationError):
    """Participant déjà enregistré pour cette session (si les doublons sont désactivés)."""


class SessionUnavailable(AttendanceError):
    """Session introuvable ou fermée : le formulaire ne doit pas être affiché."""

    NOT_FOUND = "not_found"
    CLOSED = "closed"

    def __init__(self, message: str, reason: str = NOT_FOUND):
        super().__init__(message)
        self.reason = reason


class SubmissionError(AttendanceError):
    """L'écriture a été tentée mais refusée par la base (ou réseau indisponible)."""


class RenderError(AttendanceError):
    """Image de signature impossible à décoder pendant l'export."""


class ResourceFetchError(AttendanceError):
    """Logo du kop surat indisponible pendant l'export."""
