"""Endpoint turning recorded voice notes into text."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from app.controllers.dependencies import CurrentPrincipalDep, decode_base64_payload
from app.services import transcribe
from app.views import TranscribeRequest, TranscribeResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["transcription"])


@router.post("/transcribe", response_model=TranscribeResponse)
async def transcribe_audio(
    payload: TranscribeRequest,
    principal: CurrentPrincipalDep,
) -> TranscribeResponse:
    audio_bytes = decode_base64_payload(payload.audio_base64, "audioBase64")
    try:
        result = await transcribe.get_transcribe_service().transcribe(audio_bytes)
    except transcribe.TranscriptionServiceError as exc:
        logger.error("Transcription failed user=%s: %s", principal.user_id, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Transcription failed: {exc}",
        ) from exc

    return TranscribeResponse(transcription=result.transcript)


__all__ = ["router"]
