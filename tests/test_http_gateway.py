"""HttpInspectionGateway against an httpx mock transport."""

from __future__ import annotations

import asyncio
import base64
import json

import httpx
import pytest

from app.config.settings import GatewayConfig
from app.pipelines.inspection import (
    AnalysisError,
    GenerationError,
    HttpInspectionGateway,
    ImageAsset,
    SaveError,
    TranscriptionError,
    UploadError,
)

IMAGE = ImageAsset(data=b"jpeg-bytes", display_ref="data:image/jpeg;base64,", width=4, height=3)


def _gateway(handler, requests: list[httpx.Request]) -> HttpInspectionGateway:
    def record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(record), base_url="http://inspect.test")
    return HttpInspectionGateway(GatewayConfig(base_url="http://inspect.test"), client=client)


def test_analyze_sends_camel_case_payload_with_bearer_token() -> None:
    requests: list[httpx.Request] = []
    gateway = _gateway(lambda _: httpx.Response(200, json={"preDescription": " Crack in slab "}), requests)

    result = asyncio.run(gateway.analyze(IMAGE, "crack", "NC", token="tok-1"))

    assert result.analysis_text == "Crack in slab"
    request = requests[0]
    assert request.method == "POST"
    assert request.url.path == "/api/analyze-defect"
    assert request.headers["Authorization"] == "Bearer tok-1"
    assert json.loads(request.content) == {
        "imageBase64": base64.b64encode(b"jpeg-bytes").decode("ascii"),
        "description": "crack",
        "userState": "NC",
    }


def test_generate_final_converts_numeric_record_id() -> None:
    requests: list[httpx.Request] = []
    gateway = _gateway(lambda _: httpx.Response(200, json={"ddid": "Statement.", "inspectionId": 42}), requests)

    result = asyncio.run(
        gateway.generate_final(IMAGE, "crack", "SC", "https://bucket/img.jpg", token="t")
    )

    assert result.statement_text == "Statement."
    assert result.record_id == "42"
    body = json.loads(requests[0].content)
    assert body["finalDescription"] == "crack"
    assert body["imageUrl"] == "https://bucket/img.jpg"


def test_generate_final_without_record_id() -> None:
    gateway = _gateway(lambda _: httpx.Response(200, json={"ddid": "Statement."}), [])

    result = asyncio.run(gateway.generate_final(IMAGE, "crack", "SC", "u", token="t"))

    assert result.record_id is None


def test_upload_and_update_and_log_edit_paths() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/upload-image"):
            return httpx.Response(200, json={"imageUrl": "https://bucket/a.jpg"})
        return httpx.Response(200, json={"message": "ok", "inspectionId": 7})

    gateway = _gateway(handler, requests)

    async def scenario() -> str:
        uploaded = await gateway.upload_image(IMAGE, token="t")
        await gateway.update_statement("7", "Edited.", token="t")
        await gateway.log_edit("7", "Original.", "Edited.", token="t")
        return uploaded.image_url

    assert asyncio.run(scenario()) == "https://bucket/a.jpg"
    assert [(r.method, r.url.path) for r in requests] == [
        ("POST", "/api/upload-image"),
        ("PUT", "/api/inspections/7"),
        ("POST", "/api/log-statement-edit"),
    ]
    assert json.loads(requests[1].content) == {"ddid": "Edited."}
    assert json.loads(requests[2].content) == {
        "inspectionId": "7",
        "originalDdid": "Original.",
        "editedDdid": "Edited.",
    }


def test_transcribe_returns_text() -> None:
    requests: list[httpx.Request] = []
    gateway = _gateway(lambda _: httpx.Response(200, json={"transcription": "water stain"}), requests)

    assert asyncio.run(gateway.transcribe(b"wav", token="t")) == "water stain"
    assert json.loads(requests[0].content) == {"audioBase64": base64.b64encode(b"wav").decode("ascii")}


@pytest.mark.parametrize(
    ("call", "error_cls"),
    [
        (lambda g: g.analyze(IMAGE, "d", "NC", token="t"), AnalysisError),
        (lambda g: g.upload_image(IMAGE, token="t"), UploadError),
        (lambda g: g.generate_final(IMAGE, "d", "NC", "u", token="t"), GenerationError),
        (lambda g: g.update_statement("1", "x", token="t"), SaveError),
        (lambda g: g.transcribe(b"a", token="t"), TranscriptionError),
    ],
)
def test_error_status_maps_to_stage_error_with_detail(call, error_cls) -> None:
    gateway = _gateway(lambda _: httpx.Response(502, json={"detail": "Model unavailable"}), [])

    with pytest.raises(error_cls, match="Model unavailable"):
        asyncio.run(call(gateway))


def test_malformed_success_body_is_rejected() -> None:
    gateway = _gateway(lambda _: httpx.Response(200, json={"unexpected": True}), [])

    with pytest.raises(AnalysisError, match="Invalid response"):
        asyncio.run(gateway.analyze(IMAGE, "d", "NC", token="t"))


def test_transport_failure_is_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    gateway = _gateway(handler, [])

    with pytest.raises(UploadError, match="Could not reach"):
        asyncio.run(gateway.upload_image(IMAGE, token="t"))
