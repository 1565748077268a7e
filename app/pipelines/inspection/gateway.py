"""Boundary between the workflow and the remote inspection service.

``InspectionGateway`` is the contract the orchestrator calls; it does not
care whether completion, storage and persistence sit behind one HTTP API
or several. ``HttpInspectionGateway`` speaks the JSON API served by
``app.main``.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Type

import httpx
from pydantic import BaseModel, ValidationError

from app.config.settings import GatewayConfig, settings
from app.views.inspections import (
    AnalyzeDefectResponse,
    GenerateStatementResponse,
    TranscribeResponse,
    UploadImageResponse,
)

from .errors import (
    AnalysisError,
    GenerationError,
    SaveError,
    TranscriptionError,
    UploadError,
    WorkflowError,
)
from .types import AnalysisResult, GenerationResult, ImageAsset, UploadResult

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[Optional[str]]]


class InspectionGateway(Protocol):
    """Remote generation and persistence operations."""

    async def analyze(
        self, image: ImageAsset, description: str, jurisdiction: str, *, token: str
    ) -> AnalysisResult: ...

    async def upload_image(self, image: ImageAsset, *, token: str) -> UploadResult: ...

    async def generate_final(
        self,
        image: ImageAsset,
        source_text: str,
        jurisdiction: str,
        image_url: str,
        *,
        token: str,
    ) -> GenerationResult: ...

    async def update_statement(
        self, record_id: str, statement_text: str, *, token: str
    ) -> None: ...

    async def log_edit(
        self, record_id: str, original_text: str, edited_text: str, *, token: str
    ) -> None: ...

    async def transcribe(self, audio_bytes: bytes, *, token: str) -> str: ...


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(payload, Mapping):
        detail = payload.get("detail") or payload.get("message")
        if detail:
            return str(detail)
    return response.reason_phrase


class HttpInspectionGateway:
    """``InspectionGateway`` over the service's JSON API."""

    def __init__(
        self,
        config: GatewayConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        cfg = config or settings.gateway
        prefix = cfg.api_prefix.strip("/")
        self._prefix = f"/{prefix}" if prefix else ""
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=cfg.base_url,
            timeout=cfg.timeout_seconds,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpInspectionGateway":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _send(
        self,
        method: str,
        path: str,
        payload: Mapping[str, Any],
        *,
        token: str,
        error_cls: Type[WorkflowError],
    ) -> httpx.Response:
        url = f"{self._prefix}{path}"
        try:
            response = await self._client.request(
                method,
                url,
                json=dict(payload),
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            logger.warning("Gateway %s %s failed: %s", method, url, exc)
            raise error_cls(f"Could not reach the inspection service: {exc}") from exc

        if response.is_error:
            detail = _error_detail(response)
            logger.warning(
                "Gateway %s %s returned %s: %s", method, url, response.status_code, detail
            )
            raise error_cls(detail)
        return response

    @staticmethod
    def _parse(
        response: httpx.Response,
        model: Type[BaseModel],
        error_cls: Type[WorkflowError],
    ) -> Any:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise error_cls("Invalid response from the inspection service.") from exc

    async def analyze(
        self, image: ImageAsset, description: str, jurisdiction: str, *, token: str
    ) -> AnalysisResult:
        response = await self._send(
            "POST",
            "/analyze-defect",
            {
                "imageBase64": image.as_base64(),
                "description": description,
                "userState": jurisdiction,
            },
            token=token,
            error_cls=AnalysisError,
        )
        body = self._parse(response, AnalyzeDefectResponse, AnalysisError)
        return AnalysisResult(analysis_text=body.pre_description.strip())

    async def upload_image(self, image: ImageAsset, *, token: str) -> UploadResult:
        response = await self._send(
            "POST",
            "/upload-image",
            {"imageBase64": image.as_base64(), "contentType": image.content_type},
            token=token,
            error_cls=UploadError,
        )
        body = self._parse(response, UploadImageResponse, UploadError)
        return UploadResult(image_url=body.image_url)

    async def generate_final(
        self,
        image: ImageAsset,
        source_text: str,
        jurisdiction: str,
        image_url: str,
        *,
        token: str,
    ) -> GenerationResult:
        response = await self._send(
            "POST",
            "/generate-ddid",
            {
                "imageBase64": image.as_base64(),
                "finalDescription": source_text,
                "userState": jurisdiction,
                "imageUrl": image_url,
            },
            token=token,
            error_cls=GenerationError,
        )
        body = self._parse(response, GenerateStatementResponse, GenerationError)
        record_id = body.inspection_id
        return GenerationResult(
            statement_text=body.ddid.strip(),
            record_id=str(record_id) if record_id is not None else None,
        )

    async def update_statement(
        self, record_id: str, statement_text: str, *, token: str
    ) -> None:
        await self._send(
            "PUT",
            f"/inspections/{record_id}",
            {"ddid": statement_text},
            token=token,
            error_cls=SaveError,
        )

    async def log_edit(
        self, record_id: str, original_text: str, edited_text: str, *, token: str
    ) -> None:
        await self._send(
            "POST",
            "/log-statement-edit",
            {
                "inspectionId": record_id,
                "originalDdid": original_text,
                "editedDdid": edited_text,
            },
            token=token,
            error_cls=SaveError,
        )

    async def transcribe(self, audio_bytes: bytes, *, token: str) -> str:
        response = await self._send(
            "POST",
            "/transcribe",
            {"audioBase64": base64.b64encode(audio_bytes).decode("ascii")},
            token=token,
            error_cls=TranscriptionError,
        )
        body = self._parse(response, TranscribeResponse, TranscriptionError)
        return body.transcription


__all__ = ["InspectionGateway", "HttpInspectionGateway", "TokenProvider"]
