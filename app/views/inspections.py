"""Schemas for the inspection API.

Field aliases keep the camelCase wire format used by the field clients;
``populate_by_name`` lets Python callers use the snake_case names.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

_WIRE = ConfigDict(populate_by_name=True)


def _strip_required(value: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValueError("must not be blank")
    return cleaned


class AnalyzeDefectRequest(BaseModel):
    model_config = _WIRE

    image_base64: str = Field(alias="imageBase64", min_length=1)
    description: str
    user_state: str = Field(alias="userState")

    @field_validator("description", "user_state")
    @classmethod
    def require_text(cls, value: str) -> str:
        return _strip_required(value)


class AnalyzeDefectResponse(BaseModel):
    model_config = _WIRE

    pre_description: str = Field(alias="preDescription", min_length=1)


class UploadImageRequest(BaseModel):
    model_config = _WIRE

    image_base64: str = Field(alias="imageBase64", min_length=1)
    content_type: str = Field(default="image/jpeg", alias="contentType")


class UploadImageResponse(BaseModel):
    model_config = _WIRE

    image_url: str = Field(alias="imageUrl", min_length=1)


class GenerateStatementRequest(BaseModel):
    model_config = _WIRE

    image_base64: str = Field(alias="imageBase64", min_length=1)
    final_description: str = Field(alias="finalDescription")
    user_state: str = Field(alias="userState")
    image_url: str = Field(alias="imageUrl", min_length=1)

    @field_validator("final_description", "user_state")
    @classmethod
    def require_text(cls, value: str) -> str:
        return _strip_required(value)


class GenerateStatementResponse(BaseModel):
    model_config = _WIRE

    ddid: str = Field(min_length=1)
    inspection_id: Optional[Union[int, str]] = Field(default=None, alias="inspectionId")


class UpdateStatementRequest(BaseModel):
    model_config = _WIRE

    ddid: str

    @field_validator("ddid")
    @classmethod
    def require_text(cls, value: str) -> str:
        return _strip_required(value)


class UpdateStatementResponse(BaseModel):
    model_config = _WIRE

    message: str
    inspection_id: Union[int, str] = Field(alias="inspectionId")


class LogStatementEditRequest(BaseModel):
    model_config = _WIRE

    inspection_id: Union[int, str] = Field(alias="inspectionId")
    original_ddid: str = Field(alias="originalDdid", min_length=1)
    edited_ddid: str = Field(alias="editedDdid", min_length=1)


class TranscribeRequest(BaseModel):
    model_config = _WIRE

    audio_base64: str = Field(alias="audioBase64", min_length=1)


class TranscribeResponse(BaseModel):
    model_config = _WIRE

    transcription: str


class InspectionRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: int
    description: str
    ddid: Optional[str] = None
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    state: Optional[str] = None
    created_at: datetime = Field(alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")


__all__ = [
    "AnalyzeDefectRequest",
    "AnalyzeDefectResponse",
    "GenerateStatementRequest",
    "GenerateStatementResponse",
    "InspectionRead",
    "LogStatementEditRequest",
    "TranscribeRequest",
    "TranscribeResponse",
    "UpdateStatementRequest",
    "UpdateStatementResponse",
    "UploadImageRequest",
    "UploadImageResponse",
]
