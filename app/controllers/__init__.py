"""FastAPI routers for the inspection API."""

from . import inspections, media, transcription

__all__ = ["inspections", "media", "transcription"]
