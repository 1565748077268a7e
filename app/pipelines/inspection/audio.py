"""Microphone capture for voice descriptions.

``AudioCaptureSession`` owns at most one open recording. The device handle
is registered on an ``AsyncExitStack`` as soon as it is acquired, so every
exit path (``stop``, a failed ``start``, ``release`` or leaving the
``async with`` block) closes it exactly once.
"""

from __future__ import annotations

import asyncio
import io
import logging
import sys
import wave
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Protocol

import numpy as np
from fastapi.concurrency import run_in_threadpool

from app.config.settings import AudioConfig, settings

from .errors import PermissionDeniedError, RecordingError

logger = logging.getLogger("app.pipelines.inspection")


class AudioState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPING = "stopping"
    RELEASED = "released"


class RecordingHandle(Protocol):
    """Opaque hardware recording resource."""

    def start(self) -> None: ...

    def stop(self) -> bytes: ...

    def close(self) -> None: ...


class MicrophoneBackend(Protocol):
    """Platform access to the microphone."""

    def request_permission(self) -> bool: ...

    def open(self) -> RecordingHandle: ...


@dataclass
class AudioSession:
    """One open recording, alive between ``start`` and ``stop``/teardown."""

    handle: RecordingHandle
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def encode_wav(samples: np.ndarray, sample_rate: int, channels: int) -> bytes:
    """Scale float samples in [-1, 1] to 16-bit PCM inside a WAV container."""

    scaled = np.int16(np.clip(samples, -1.0, 1.0) * 32767)
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(scaled.tobytes())
    return buffer.getvalue()


def _sounddevice() -> Any:
    # PortAudio is loaded on import; keep it out of module import time.
    try:
        import sounddevice as sd
    except OSError as exc:
        raise RecordingError(f"Audio subsystem unavailable: {exc}") from exc
    return sd


class _SoundDeviceRecording:
    """``sounddevice.InputStream`` collecting float32 chunks in memory."""

    def __init__(self, config: AudioConfig) -> None:
        sd = _sounddevice()
        self._config = config
        self._chunks: list[np.ndarray] = []
        extra_settings = None
        if config.exclusive_mode and sys.platform == "win32":
            extra_settings = sd.WasapiSettings(exclusive=True)
        self._stream = sd.InputStream(
            samplerate=config.sample_rate,
            channels=config.channels,
            dtype="float32",
            callback=self._callback,
            extra_settings=extra_settings,
        )
        self._closed = False

    def _callback(self, indata: np.ndarray, _frames: int, _time: Any, status: Any) -> None:
        if status:
            logger.debug("Recording status: %s", status)
        self._chunks.append(indata.copy())

    def start(self) -> None:
        self._chunks = []
        self._stream.start()

    def stop(self) -> bytes:
        self._stream.stop()
        if not self._chunks:
            return b""
        data = np.concatenate(self._chunks, axis=0)
        self._chunks = []
        return encode_wav(data, self._config.sample_rate, self._config.channels)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._stream.active:
            self._stream.stop()
        self._stream.close()


class SoundDeviceMicrophone:
    """Default backend built on PortAudio via ``sounddevice``."""

    def __init__(self, config: AudioConfig | None = None) -> None:
        self._config = config or settings.audio

    def request_permission(self) -> bool:
        sd = _sounddevice()
        try:
            sd.check_input_settings(
                samplerate=self._config.sample_rate,
                channels=self._config.channels,
            )
        except (sd.PortAudioError, ValueError) as exc:
            logger.warning("Microphone unavailable or access refused: %s", exc)
            return False
        return True

    def open(self) -> RecordingHandle:
        return _SoundDeviceRecording(self._config)


class AudioCaptureSession:
    """Lifecycle of a single microphone recording."""

    def __init__(self, backend: MicrophoneBackend | None = None) -> None:
        self._backend = backend or SoundDeviceMicrophone()
        self._state = AudioState.IDLE
        self._session: Optional[AudioSession] = None
        self._resources: Optional[AsyncExitStack] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> AudioState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state is AudioState.RECORDING

    @property
    def session(self) -> Optional[AudioSession]:
        return self._session

    async def start(self) -> AudioSession:
        """Acquire the microphone and begin capturing."""

        if self._state is AudioState.RELEASED:
            raise RecordingError("The audio session has been released.")
        if self._state is not AudioState.IDLE or self._lock.locked():
            raise RecordingError("A recording is already in progress.")

        async with self._lock:
            try:
                granted = await run_in_threadpool(self._backend.request_permission)
            except Exception as exc:
                raise RecordingError(f"Could not query microphone access: {exc}") from exc
            if not granted:
                raise PermissionDeniedError(
                    "Microphone permission is required to record audio."
                )

            resources = AsyncExitStack()
            try:
                handle = await run_in_threadpool(self._backend.open)
                resources.push_async_callback(run_in_threadpool, handle.close)
                await run_in_threadpool(handle.start)
            except Exception as exc:
                await self._close_quietly(resources)
                raise RecordingError(f"Could not start recording: {exc}") from exc

            if self._state is AudioState.RELEASED:
                await self._close_quietly(resources)
                raise RecordingError("The audio session was released while starting.")

            self._resources = resources
            self._session = AudioSession(handle=handle)
            self._state = AudioState.RECORDING

        logger.info("Recording started.")
        return self._session

    async def stop(self) -> Optional[bytes]:
        """Flush and release the device; ``None`` when nothing was recording."""

        if self._state is not AudioState.RECORDING or self._session is None:
            logger.warning("Stop recording called but no recording is active.")
            return None

        async with self._lock:
            session, resources = self._session, self._resources
            self._state = AudioState.STOPPING
            try:
                audio_bytes = await run_in_threadpool(session.handle.stop)
            except Exception as exc:
                raise RecordingError(f"Could not stop recording: {exc}") from exc
            finally:
                self._session = None
                self._resources = None
                if resources is not None:
                    await self._close_quietly(resources)
                if self._state is AudioState.STOPPING:
                    self._state = AudioState.IDLE

        logger.info("Recording stopped bytes=%s", len(audio_bytes))
        return audio_bytes

    async def release(self) -> None:
        """Best-effort teardown; never raises."""

        if self._state is AudioState.RELEASED:
            return
        was_recording = self._state is AudioState.RECORDING
        self._state = AudioState.RELEASED
        self._session = None
        resources, self._resources = self._resources, None
        if resources is not None:
            await self._close_quietly(resources)
        if was_recording:
            logger.info("Recording released during teardown.")

    @staticmethod
    async def _close_quietly(resources: AsyncExitStack) -> None:
        try:
            await resources.aclose()
        except Exception:
            logger.exception("Error releasing microphone")

    async def __aenter__(self) -> "AudioCaptureSession":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.release()


__all__ = [
    "AudioCaptureSession",
    "AudioSession",
    "AudioState",
    "MicrophoneBackend",
    "RecordingHandle",
    "SoundDeviceMicrophone",
    "encode_wav",
]
