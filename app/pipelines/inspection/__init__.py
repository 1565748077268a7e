"""Inspection workflow package.

Modules are organised by the order in which one inspection executes:

1. `media` - normalize the photo into a bounded JPEG.
2. `audio` and `transcription` - capture and transcribe voice notes.
3. `gateway` - remote analysis, upload, generation and persistence.
4. `orchestrator` - the state machine tying the stages together.
5. `flow` - human-readable description of the stages.
"""

from .audio import AudioCaptureSession, AudioState, SoundDeviceMicrophone
from .context import resolve_jurisdiction
from .errors import (
    AnalysisError,
    AuthUnavailableError,
    GenerationError,
    ImageProcessingError,
    PermissionDeniedError,
    RecordingError,
    SaveError,
    TranscriptionError,
    UploadError,
    WorkflowError,
)
from .flow import InspectionWorkflow, WorkflowStage
from .gateway import HttpInspectionGateway, InspectionGateway, TokenProvider
from .media import MediaNormalizer
from .orchestrator import GenerationOrchestrator
from .transcription import TranscriptionClient
from .types import (
    AnalysisResult,
    DraftInspection,
    GenerationResult,
    ImageAsset,
    ImageOrigin,
    ImageSource,
    TransitionOutcome,
    UploadResult,
    WorkflowSnapshot,
    WorkflowState,
)

__all__ = [
    "AnalysisError",
    "AnalysisResult",
    "AudioCaptureSession",
    "AudioState",
    "AuthUnavailableError",
    "DraftInspection",
    "GenerationError",
    "GenerationOrchestrator",
    "GenerationResult",
    "HttpInspectionGateway",
    "ImageAsset",
    "ImageOrigin",
    "ImageProcessingError",
    "ImageSource",
    "InspectionGateway",
    "InspectionWorkflow",
    "MediaNormalizer",
    "PermissionDeniedError",
    "RecordingError",
    "SaveError",
    "SoundDeviceMicrophone",
    "TokenProvider",
    "TranscriptionClient",
    "TranscriptionError",
    "TransitionOutcome",
    "UploadError",
    "UploadResult",
    "WorkflowError",
    "WorkflowSnapshot",
    "WorkflowStage",
    "WorkflowState",
    "resolve_jurisdiction",
]
