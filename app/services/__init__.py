"""Service layer helpers for external integrations."""

from .inspection_repository import (
    InspectionAccessError,
    InspectionNotFoundError,
    InspectionRepository,
)
from .llm_client import BedrockLlmClient, LlmInvocationError, get_llm_client
from .statement_generator import (
    StatementContractError,
    generate_analysis,
    generate_statement,
)
from .storage import StorageError, upload_inspection_image
from .transcribe import (
    TranscribeService,
    TranscriptionResult,
    TranscriptionServiceError,
    get_transcribe_service,
)

__all__ = [
    "BedrockLlmClient",
    "InspectionAccessError",
    "InspectionNotFoundError",
    "InspectionRepository",
    "LlmInvocationError",
    "StatementContractError",
    "StorageError",
    "TranscribeService",
    "TranscriptionResult",
    "TranscriptionServiceError",
    "generate_analysis",
    "generate_statement",
    "get_llm_client",
    "get_transcribe_service",
    "upload_inspection_image",
]
