"""Shared fixtures for the inspection workflow tests."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from app.pipelines.inspection import AudioCaptureSession, GenerationOrchestrator  # noqa: E402

from fakes import FakeGateway, FakeMicrophone, static_token  # noqa: E402


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def microphone() -> FakeMicrophone:
    return FakeMicrophone()


@pytest.fixture
def audio_sessions() -> list[AudioCaptureSession]:
    return []


@pytest.fixture
def make_orchestrator(
    gateway: FakeGateway,
    microphone: FakeMicrophone,
    audio_sessions: list[AudioCaptureSession],
):
    """Build an orchestrator wired to the fakes."""

    def audio_factory() -> AudioCaptureSession:
        session = AudioCaptureSession(backend=microphone)
        audio_sessions.append(session)
        return session

    def factory(*, requires_preview: bool = True, token=None, **kwargs: Any) -> GenerationOrchestrator:
        return GenerationOrchestrator(
            gateway,
            token or static_token(),
            jurisdiction=kwargs.pop("jurisdiction", "NC"),
            requires_preview=requires_preview,
            audio_factory=audio_factory,
            **kwargs,
        )

    return factory
