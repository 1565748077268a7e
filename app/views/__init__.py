"""Pydantic schemas used as views by the inspection API."""

from .common import ErrorResponse, MessageResponse
from .inspections import (
    AnalyzeDefectRequest,
    AnalyzeDefectResponse,
    GenerateStatementRequest,
    GenerateStatementResponse,
    InspectionRead,
    LogStatementEditRequest,
    TranscribeRequest,
    TranscribeResponse,
    UpdateStatementRequest,
    UpdateStatementResponse,
    UploadImageRequest,
    UploadImageResponse,
)

__all__ = [
    "AnalyzeDefectRequest",
    "AnalyzeDefectResponse",
    "ErrorResponse",
    "GenerateStatementRequest",
    "GenerateStatementResponse",
    "InspectionRead",
    "LogStatementEditRequest",
    "MessageResponse",
    "TranscribeRequest",
    "TranscribeResponse",
    "UpdateStatementRequest",
    "UpdateStatementResponse",
    "UploadImageRequest",
    "UploadImageResponse",
]
