"""
Router des boîtes de confirmation réutilisables (création, fermeture, réouverture,
suppression de session, soumission de présence).
"""

from typing import Optional

from fastapi import APIRouter, HTTPException

from meetingtrack.schemas.session import ConfirmationPrompt
from meetingtrack.services import prompt_service

router = APIRouter(prefix="/api/v1/prompts", tags=["Confirmations"])


@router.get("/{action}", response_model=ConfirmationPrompt, summary="Descripteur de confirmation")
def get_prompt(action: str, session_title: Optional[str] = None):
    """Actions reconnues : create, close, open, delete, submit."""
    try:
        return prompt_service.build_prompt(action, session_title)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
