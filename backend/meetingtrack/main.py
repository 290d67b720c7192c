"""
Point d'entrée principal de l'API MeetingTrack.
Démarrage : uvicorn meetingtrack.main:app --reload
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import meetingtrack.models  # noqa: F401 (enregistre tous les modèles dans Base.metadata avant les routers)
from meetingtrack.routers import auth, checkin, prompts, sessions

logger = logging.getLogger(__name__)


app = FastAPI(
    title="MeetingTrack API",
    description="API de présence aux réunions par QR code (check-in signé, suivi temps réel, rapports)",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

# CORS : autorise tous les ports localhost en développement (à restreindre en production).
# allow_credentials est requis pour que le cookie admin accompagne les requêtes du front.
app.add_middleware(
    CORSMiddleware,
    allow_origins=[],
    allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


app.include_router(auth.router)
app.include_router(sessions.router)
app.include_router(sessions.live_router)
app.include_router(checkin.router)
app.include_router(prompts.router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Intercepte toutes les exceptions non gérées pour garantir que la réponse 500
    passe bien par CORSMiddleware (qui injecte les headers CORS).
    """
    logger.error("Exception non gérée : %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Une erreur interne est survenue."},
    )


@app.get("/api/health", tags=["Santé"])
def health_check():
    """Vérifie que l'API est opérationnelle."""
    return {"status": "ok", "service": "MeetingTrack API", "version": "0.1.0"}
