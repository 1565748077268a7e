"""Amazon Transcribe integration helpers using the streaming API."""

from __future__ import annotations

import asyncio
import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass

from amazon_transcribe.client import TranscribeStreamingClient
from amazon_transcribe.handlers import TranscriptResultStreamHandler
from amazon_transcribe.model import TranscriptEvent
from fastapi.concurrency import run_in_threadpool

from app.config.settings import settings

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 8192


@dataclass(frozen=True)
class TranscriptionResult:
    """Structured transcription outcome returned to controllers."""

    transcript: str
    language_code: str | None = None


class TranscriptionServiceError(RuntimeError):
    """Raised when Amazon Transcribe fails to process audio successfully."""


class TranscribeService:
    """High-level facade for streaming audio to Amazon Transcribe."""

    def __init__(
        self,
        region: str,
        language_code: str = "en-US",
        media_sample_rate_hz: int = 16000,
        media_encoding: str = "pcm",
    ) -> None:
        self._region = region
        self._language_code = language_code
        self._media_sample_rate_hz = media_sample_rate_hz
        self._media_encoding = media_encoding

        # The streaming SDK only reads credentials from the environment chain.
        if settings.s3.access_key:
            os.environ.setdefault("AWS_ACCESS_KEY_ID", settings.s3.access_key)
        if settings.s3.secret_key:
            os.environ.setdefault("AWS_SECRET_ACCESS_KEY", settings.s3.secret_key)

        self._client = TranscribeStreamingClient(region=region)

    async def transcribe(self, audio_bytes: bytes) -> TranscriptionResult:
        """Stream audio to Transcribe and return the full transcript."""

        if not audio_bytes:
            raise TranscriptionServiceError("The uploaded audio is empty.")

        try:
            pcm_data = await run_in_threadpool(self._convert_to_pcm_sync, audio_bytes)
        except TranscriptionServiceError:
            raise
        except OSError as exc:
            raise TranscriptionServiceError(f"Audio conversion failed: {exc}") from exc

        if not pcm_data:
            raise TranscriptionServiceError("Audio conversion produced no samples.")

        try:
            stream = await self._client.start_stream_transcription(
                language_code=self._language_code,
                media_sample_rate_hz=self._media_sample_rate_hz,
                media_encoding=self._media_encoding,
            )
            handler = _CollectingTranscriptHandler(stream.output_stream)

            async def write_chunks() -> None:
                # Pace the upload close to real time.
                sleep_time = _CHUNK_SIZE / (self._media_sample_rate_hz * 2)
                for offset in range(0, len(pcm_data), _CHUNK_SIZE):
                    chunk = pcm_data[offset : offset + _CHUNK_SIZE]
                    await stream.input_stream.send_audio_event(audio_chunk=chunk)
                    await asyncio.sleep(sleep_time)
                await stream.input_stream.end_stream()

            logger.info("Streaming %s bytes of PCM to Transcribe", len(pcm_data))
            await asyncio.gather(write_chunks(), handler.handle_events())
        except Exception as exc:
            logger.error("Streaming transcription failed: %s", exc)
            raise TranscriptionServiceError(f"Streaming transcription failed: {exc}") from exc

        transcript = handler.transcript.strip()
        logger.info("Transcription complete chars=%s", len(transcript))
        return TranscriptionResult(transcript=transcript, language_code=self._language_code)

    def _convert_to_pcm_sync(self, audio_bytes: bytes) -> bytes:
        """Convert input audio to raw PCM s16le via ffmpeg using a temporary file."""

        with tempfile.NamedTemporaryFile(delete=False, suffix=".tmp") as tmp_file:
            tmp_file.write(audio_bytes)
            tmp_path = tmp_file.name

        try:
            process = subprocess.run(
                [
                    "ffmpeg",
                    "-y",
                    "-i", tmp_path,
                    "-f", "s16le",
                    "-ac", "1",
                    "-ar", str(self._media_sample_rate_hz),
                    "pipe:1",
                ],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=True,
            )
            if not process.stdout:
                logger.warning(
                    "ffmpeg produced empty output. stderr: %s",
                    process.stderr.decode("utf-8", errors="replace"),
                )
            return process.stdout
        except subprocess.CalledProcessError as exc:
            error_msg = exc.stderr.decode("utf-8", errors="replace") if exc.stderr else "No stderr"
            logger.error("ffmpeg failed. stderr: %s", error_msg)
            raise TranscriptionServiceError(f"ffmpeg failed to convert audio to PCM: {error_msg}") from exc
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)


class _CollectingTranscriptHandler(TranscriptResultStreamHandler):
    def __init__(self, transcript_result_stream) -> None:
        super().__init__(transcript_result_stream)
        self.transcript = ""

    async def handle_transcript_event(self, transcript_event: TranscriptEvent) -> None:
        for result in transcript_event.transcript.results:
            if result.is_partial:
                continue
            for alt in result.alternatives:
                self.transcript += alt.transcript + " "


_DEFAULT_SERVICE: TranscribeService | None = None


def get_transcribe_service() -> TranscribeService:
    """Return a lazily-instantiated transcribe service singleton."""

    global _DEFAULT_SERVICE
    if _DEFAULT_SERVICE is None:
        _DEFAULT_SERVICE = TranscribeService(
            region=settings.transcribe.region,
            language_code=settings.transcribe.language_code,
            media_sample_rate_hz=settings.transcribe.sample_rate_hz,
        )
    return _DEFAULT_SERVICE


__all__ = [
    "TranscribeService",
    "TranscriptionResult",
    "TranscriptionServiceError",
    "get_transcribe_service",
]
