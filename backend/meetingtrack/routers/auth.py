"""
Router d'authentification organisateur (mot de passe partagé + cookie HTTP-only).
"""

import logging

from fastapi import APIRouter, HTTPException, Response
from pydantic import BaseModel

from meetingtrack.config import settings
from meetingtrack.services import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentification"])


class LoginRequest(BaseModel):
    password: str = ""


@router.post("/login", summary="Connexion organisateur")
def login(data: LoginRequest, response: Response):
    """
    Compare le mot de passe au secret configuré.
    Succès : cookie HTTP-only valable 24 h. Échec : 401.
    """
    if not auth_service.verify_password(data.password):
        logger.warning("Tentative de connexion admin refusée")
        raise HTTPException(status_code=401, detail="Mot de passe incorrect.")

    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=auth_service.create_admin_token(),
        httponly=True,
        secure=settings.ENV == "production",
        max_age=settings.AUTH_COOKIE_MAX_AGE_HOURS * 3600,
        path="/",
        samesite="lax",
    )
    return {"success": True}


@router.post("/logout", summary="Déconnexion organisateur")
def logout(response: Response):
    """Supprime le cookie admin."""
    response.delete_cookie(key=settings.AUTH_COOKIE_NAME, path="/")
    return {"success": True}
