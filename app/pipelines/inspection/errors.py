"""Failure taxonomy surfaced by the inspection workflow.

Every error is recoverable by retrying the transition that raised it; the
orchestrator stores the instance on the snapshot instead of letting it
escape to the caller.
"""

from __future__ import annotations


class WorkflowError(RuntimeError):
    """Base class for user-visible workflow failures."""

    code = "workflow_error"


class PermissionDeniedError(WorkflowError):
    """Raised when microphone access is refused."""

    code = "permission_denied"


class RecordingError(WorkflowError):
    """Raised when the microphone cannot be opened, started or flushed."""

    code = "recording_failed"


class ImageProcessingError(WorkflowError):
    """Raised when an image cannot be decoded, resized or encoded."""

    code = "image_processing"


class TranscriptionError(WorkflowError):
    """Raised when the speech-to-text round-trip fails."""

    code = "transcription_failed"


class AnalysisError(WorkflowError):
    """Raised when the preliminary analysis call fails."""

    code = "analysis_failed"


class UploadError(WorkflowError):
    """Raised when the normalized image cannot be stored remotely."""

    code = "upload_failed"


class GenerationError(WorkflowError):
    """Raised when the final statement cannot be generated."""

    code = "generation_failed"


class SaveError(WorkflowError):
    """Raised when an edited statement cannot be persisted."""

    code = "save_failed"


class AuthUnavailableError(WorkflowError):
    """Raised when no bearer credential is available for a gateway call."""

    code = "auth_unavailable"


__all__ = [
    "WorkflowError",
    "PermissionDeniedError",
    "RecordingError",
    "ImageProcessingError",
    "TranscriptionError",
    "AnalysisError",
    "UploadError",
    "GenerationError",
    "SaveError",
    "AuthUnavailableError",
]
