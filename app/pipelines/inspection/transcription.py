"""Voice-to-text stage of the inspection workflow."""

from __future__ import annotations

import logging

from .errors import TranscriptionError
from .gateway import InspectionGateway

logger = logging.getLogger("app.pipelines.inspection")


class TranscriptionClient:
    """Send a captured recording to the speech-to-text collaborator."""

    def __init__(self, gateway: InspectionGateway) -> None:
        self._gateway = gateway

    async def transcribe(self, audio_bytes: bytes, *, token: str) -> str:
        if not audio_bytes:
            raise TranscriptionError("No audio was captured.")

        text = (await self._gateway.transcribe(audio_bytes, token=token)).strip()
        if not text:
            raise TranscriptionError("No speech was recognized in the recording.")

        logger.info("Transcription received chars=%s", len(text))
        return text


__all__ = ["TranscriptionClient"]
