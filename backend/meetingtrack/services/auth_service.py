"""
Accès organisateur par mot de passe partagé unique.

Le mot de passe vient de la configuration (ADMIN_PASSWORD), jamais du code.
En cas de succès, un cookie HTTP-only contenant un JWT signé expire après 24 h.
Pas de comptes, pas de rotation, pas de verrouillage : ce n'est pas un système
d'identifiants.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Cookie, HTTPException

from meetingtrack.config import settings

logger = logging.getLogger(__name__)

ADMIN_SUBJECT = "admin"


def verify_password(password: Optional[str]) -> bool:
    """Comparaison à temps constant avec le secret configuré."""
    if not password:
        return False
    return secrets.compare_digest(password.encode("utf-8"), settings.ADMIN_PASSWORD.encode("utf-8"))


def create_admin_token(expires_hours: Optional[int] = None) -> str:
    """JWT signé porté par le cookie admin."""
    expire = datetime.now(timezone.utc) + timedelta(hours=expires_hours or settings.AUTH_COOKIE_MAX_AGE_HOURS)
    payload = {"sub": ADMIN_SUBJECT, "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def is_valid_admin_token(token: Optional[str]) -> bool:
    if not token:
        return False
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.PyJWTError:
        return False
    return payload.get("sub") == ADMIN_SUBJECT


def require_admin(token: Optional[str] = Cookie(default=None, alias=settings.AUTH_COOKIE_NAME)) -> None:
    """Dépendance FastAPI : refuse la requête si le cookie admin est absent, expiré ou falsifié."""
    if not is_valid_admin_token(token):
        raise HTTPException(status_code=401, detail="Authentification requise.")
