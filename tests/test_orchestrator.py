"""Behaviour of the inspection workflow state machine."""

from __future__ import annotations

import asyncio
import logging
import threading

from app.pipelines.inspection import (
    AnalysisError,
    AudioState,
    AuthUnavailableError,
    DraftInspection,
    GenerationError,
    GenerationOrchestrator,
    ImageProcessingError,
    ImageSource,
    MediaNormalizer,
    PermissionDeniedError,
    RecordingError,
    SaveError,
    TranscriptionError,
    TransitionOutcome,
    UploadError,
    WorkflowState,
)
from app.pipelines.inspection.orchestrator import MISSING_RECORD_ID_WARNING

from fakes import image_source, static_token

APPLIED = TransitionOutcome.APPLIED
FAILED = TransitionOutcome.FAILED
REJECTED = TransitionOutcome.REJECTED
STALE = TransitionOutcome.STALE


async def _ready(orchestrator: GenerationOrchestrator, description: str = "Crack in foundation") -> None:
    assert await orchestrator.select_image(image_source()) is APPLIED
    assert orchestrator.update_description(description) is APPLIED


async def _final(orchestrator: GenerationOrchestrator) -> None:
    await _ready(orchestrator)
    assert await orchestrator.analyze() is APPLIED
    assert await orchestrator.generate_final() is APPLIED


async def _wait_for_call(gateway, name: str) -> None:
    while gateway.count(name) == 0:
        await asyncio.sleep(0)


async def _until(predicate) -> None:
    while not predicate():
        await asyncio.sleep(0.01)


def test_two_stage_flow_reaches_editable_final(make_orchestrator, gateway) -> None:
    async def scenario() -> None:
        orchestrator = make_orchestrator()
        assert await orchestrator.select_image(image_source()) is APPLIED
        assert orchestrator.snapshot.state is WorkflowState.IMAGE_SELECTED

        orchestrator.update_description("Crack in foundation")
        assert orchestrator.snapshot.state is WorkflowState.DESCRIBED_READY

        assert await orchestrator.analyze() is APPLIED
        snapshot = orchestrator.snapshot
        assert snapshot.state is WorkflowState.ANALYSIS_PREVIEW
        assert snapshot.draft.analysis_text == "Foundation crack near southeast corner"

        assert await orchestrator.generate_final() is APPLIED
        snapshot = orchestrator.snapshot
        assert snapshot.state is WorkflowState.FINAL
        assert snapshot.draft.final_statement_text == gateway.statement_text
        assert snapshot.draft.remote_id == "abc123"
        assert snapshot.draft.analysis_text is None
        assert snapshot.can_edit
        assert snapshot.error is None

    asyncio.run(scenario())

    assert [name for name, _ in gateway.calls] == ["analyze", "upload_image", "generate_final"]
    generate = gateway.last("generate_final")
    assert generate["source_text"] == "Foundation crack near southeast corner"
    assert generate["image_url"] == gateway.image_url
    assert generate["jurisdiction"] == "NC"
    assert gateway.last("analyze")["token"] == "test-token"


def test_upload_failure_returns_to_preview_without_generating(make_orchestrator, gateway) -> None:
    gateway.failures["upload_image"] = UploadError("bucket unavailable")

    async def scenario() -> None:
        orchestrator = make_orchestrator()
        await _ready(orchestrator)
        await orchestrator.analyze()

        assert await orchestrator.generate_final() is FAILED
        snapshot = orchestrator.snapshot
        assert snapshot.state is WorkflowState.ANALYSIS_PREVIEW
        assert isinstance(snapshot.error, UploadError)
        assert snapshot.draft.final_statement_text is None
        assert snapshot.draft.analysis_text == "Foundation crack near southeast corner"

    asyncio.run(scenario())
    assert gateway.count("generate_final") == 0


def test_generation_failure_keeps_uploaded_image(make_orchestrator, gateway) -> None:
    gateway.failures["generate_final"] = GenerationError("model unavailable")

    async def scenario() -> None:
        orchestrator = make_orchestrator()
        await _ready(orchestrator)
        await orchestrator.analyze()

        assert await orchestrator.generate_final() is FAILED
        snapshot = orchestrator.snapshot
        assert snapshot.state is WorkflowState.ANALYSIS_PREVIEW
        assert isinstance(snapshot.error, GenerationError)
        assert snapshot.draft.uploaded_image_url == gateway.image_url

        del gateway.failures["generate_final"]
        assert await orchestrator.generate_final() is APPLIED
        assert orchestrator.snapshot.state is WorkflowState.FINAL
        assert orchestrator.snapshot.error is None

    asyncio.run(scenario())
    assert gateway.count("upload_image") == 1
    assert gateway.count("generate_final") == 2


def test_single_stage_generates_from_description(make_orchestrator, gateway) -> None:
    async def scenario() -> None:
        orchestrator = make_orchestrator(requires_preview=False)
        await _ready(orchestrator, "Loose handrail on stairs")

        assert await orchestrator.analyze() is REJECTED
        assert await orchestrator.generate_final() is APPLIED
        assert orchestrator.snapshot.state is WorkflowState.FINAL

    asyncio.run(scenario())
    assert gateway.count("analyze") == 0
    assert gateway.last("generate_final")["source_text"] == "Loose handrail on stairs"


def test_two_stage_requires_preview_before_generating(make_orchestrator, gateway) -> None:
    async def scenario() -> None:
        orchestrator = make_orchestrator()
        await _ready(orchestrator)
        assert await orchestrator.generate_final() is REJECTED
        assert orchestrator.snapshot.state is WorkflowState.DESCRIBED_READY

    asyncio.run(scenario())
    assert gateway.calls == []


def test_missing_inputs_disable_network_transitions(make_orchestrator, gateway) -> None:
    async def scenario() -> None:
        orchestrator = make_orchestrator()
        orchestrator.update_description("Crack in foundation")
        assert orchestrator.snapshot.state is WorkflowState.EMPTY
        assert await orchestrator.analyze() is REJECTED

        await orchestrator.select_image(image_source())
        orchestrator.update_description("   ")
        assert orchestrator.snapshot.state is WorkflowState.IMAGE_SELECTED
        assert not orchestrator.snapshot.can_analyze
        assert await orchestrator.analyze() is REJECTED
        assert await orchestrator.generate_final() is REJECTED

    asyncio.run(scenario())
    assert gateway.calls == []


def test_transitions_are_rejected_while_one_is_in_flight(make_orchestrator, gateway) -> None:
    async def scenario() -> None:
        gateway.gates["analyze"] = asyncio.Event()
        orchestrator = make_orchestrator()
        await _ready(orchestrator)

        pending = asyncio.create_task(orchestrator.analyze())
        await _wait_for_call(gateway, "analyze")
        assert orchestrator.snapshot.state is WorkflowState.ANALYZING
        assert orchestrator.snapshot.busy

        assert await orchestrator.analyze() is REJECTED
        assert await orchestrator.generate_final() is REJECTED
        assert await orchestrator.select_image(image_source(color="blue")) is REJECTED
        assert orchestrator.update_description("changed") is REJECTED
        assert orchestrator.snapshot.draft.description == "Crack in foundation"

        gateway.gates["analyze"].set()
        assert await pending is APPLIED
        assert orchestrator.snapshot.state is WorkflowState.ANALYSIS_PREVIEW

    asyncio.run(scenario())
    assert gateway.count("analyze") == 1


def test_late_response_after_reset_is_discarded(make_orchestrator, gateway) -> None:
    async def scenario() -> None:
        gateway.gates["analyze"] = asyncio.Event()
        orchestrator = make_orchestrator()
        await _ready(orchestrator)

        pending = asyncio.create_task(orchestrator.analyze())
        await _wait_for_call(gateway, "analyze")
        assert await orchestrator.reset() is APPLIED

        gateway.gates["analyze"].set()
        assert await pending is STALE
        snapshot = orchestrator.snapshot
        assert snapshot.state is WorkflowState.EMPTY
        assert snapshot.draft == DraftInspection(jurisdiction="NC")

    asyncio.run(scenario())


def test_late_upload_after_reset_is_discarded(make_orchestrator, gateway) -> None:
    async def scenario() -> None:
        gateway.gates["upload_image"] = asyncio.Event()
        orchestrator = make_orchestrator()
        await _ready(orchestrator)
        assert await orchestrator.analyze() is APPLIED

        pending = asyncio.create_task(orchestrator.generate_final())
        await _wait_for_call(gateway, "upload_image")
        assert await orchestrator.reset() is APPLIED

        gateway.gates["upload_image"].set()
        assert await pending is STALE
        snapshot = orchestrator.snapshot
        assert snapshot.state is WorkflowState.EMPTY
        assert snapshot.draft == DraftInspection(jurisdiction="NC")
        assert snapshot.error is None

    asyncio.run(scenario())
    assert gateway.count("generate_final") == 0


def test_late_statement_after_reset_is_discarded(make_orchestrator, gateway) -> None:
    async def scenario() -> None:
        gateway.gates["generate_final"] = asyncio.Event()
        orchestrator = make_orchestrator()
        await _ready(orchestrator)
        assert await orchestrator.analyze() is APPLIED

        pending = asyncio.create_task(orchestrator.generate_final())
        await _wait_for_call(gateway, "generate_final")
        assert await orchestrator.reset() is APPLIED

        gateway.gates["generate_final"].set()
        assert await pending is STALE
        snapshot = orchestrator.snapshot
        assert snapshot.state is WorkflowState.EMPTY
        assert snapshot.draft.final_statement_text is None
        assert snapshot.draft.remote_id is None
        assert snapshot.draft.uploaded_image_url is None
        assert snapshot.warning is None

    asyncio.run(scenario())


def test_late_save_after_reset_is_discarded(make_orchestrator, gateway) -> None:
    async def scenario() -> None:
        orchestrator = make_orchestrator()
        await _final(orchestrator)
        assert orchestrator.begin_edit() is APPLIED
        orchestrator.update_edit("Edited statement text")

        gateway.gates["update_statement"] = asyncio.Event()
        pending = asyncio.create_task(orchestrator.save_edit())
        await _wait_for_call(gateway, "update_statement")
        assert await orchestrator.reset() is APPLIED

        gateway.gates["update_statement"].set()
        assert await pending is STALE
        await orchestrator.wait_for_background()
        snapshot = orchestrator.snapshot
        assert snapshot.state is WorkflowState.EMPTY
        assert snapshot.draft == DraftInspection(jurisdiction="NC")

    asyncio.run(scenario())
    assert gateway.count("log_edit") == 0


class _GatedNormalizer(MediaNormalizer):
    def __init__(self) -> None:
        super().__init__()
        self.entered = False
        self.gate = asyncio.Event()

    async def normalize(self, source: ImageSource):
        self.entered = True
        await self.gate.wait()
        return await super().normalize(source)


def test_late_image_after_reset_is_discarded(make_orchestrator) -> None:
    async def scenario() -> None:
        normalizer = _GatedNormalizer()
        orchestrator = make_orchestrator(normalizer=normalizer)

        pending = asyncio.create_task(orchestrator.select_image(image_source()))
        await _until(lambda: normalizer.entered)
        assert await orchestrator.reset() is APPLIED

        normalizer.gate.set()
        assert await pending is STALE
        snapshot = orchestrator.snapshot
        assert snapshot.state is WorkflowState.EMPTY
        assert snapshot.draft.image_asset is None

        assert await orchestrator.select_image(image_source()) is APPLIED
        assert orchestrator.snapshot.state is WorkflowState.IMAGE_SELECTED

    asyncio.run(scenario())


def test_recording_stopped_after_reset_is_not_transcribed(
    make_orchestrator, gateway, microphone, audio_sessions
) -> None:
    microphone.stop_gate = threading.Event()

    async def scenario() -> None:
        orchestrator = make_orchestrator()
        assert await orchestrator.start_recording() is APPLIED

        pending = asyncio.create_task(orchestrator.stop_recording())
        await _until(lambda: audio_sessions[0].state is AudioState.STOPPING)
        assert await orchestrator.reset() is APPLIED

        microphone.stop_gate.set()
        assert await pending is STALE
        snapshot = orchestrator.snapshot
        assert snapshot.draft == DraftInspection(jurisdiction="NC")
        assert snapshot.error is None
        assert not snapshot.transcribing
        assert await orchestrator.retry_transcription() is REJECTED

    asyncio.run(scenario())
    assert gateway.count("transcribe") == 0
    assert microphone.handles[0].close_calls == 1


def test_late_transcript_after_reset_is_discarded(make_orchestrator, gateway) -> None:
    async def scenario() -> None:
        gateway.gates["transcribe"] = asyncio.Event()
        orchestrator = make_orchestrator()
        await _ready(orchestrator)
        assert await orchestrator.start_recording() is APPLIED

        pending = asyncio.create_task(orchestrator.stop_recording())
        await _wait_for_call(gateway, "transcribe")
        assert await orchestrator.reset() is APPLIED

        gateway.gates["transcribe"].set()
        assert await pending is STALE
        snapshot = orchestrator.snapshot
        assert snapshot.draft == DraftInspection(jurisdiction="NC")
        assert not snapshot.transcribing

    asyncio.run(scenario())


def test_recording_start_interrupted_by_reset_is_discarded(make_orchestrator, microphone) -> None:
    microphone.start_gate = threading.Event()

    async def scenario() -> None:
        orchestrator = make_orchestrator()

        pending = asyncio.create_task(orchestrator.start_recording())
        await _until(lambda: bool(microphone.handles) and microphone.handles[0].entered_start)
        assert await orchestrator.reset() is APPLIED

        microphone.start_gate.set()
        assert await pending is STALE
        snapshot = orchestrator.snapshot
        assert snapshot.error is None
        assert not snapshot.recording

    asyncio.run(scenario())
    assert microphone.handles[0].close_calls == 1


def test_statement_without_record_id_is_final_but_not_editable(make_orchestrator, gateway) -> None:
    gateway.record_id = None

    async def scenario() -> None:
        orchestrator = make_orchestrator()
        await _final(orchestrator)

        snapshot = orchestrator.snapshot
        assert snapshot.state is WorkflowState.FINAL
        assert snapshot.draft.final_statement_text == gateway.statement_text
        assert snapshot.draft.remote_id is None
        assert snapshot.warning == MISSING_RECORD_ID_WARNING
        assert not snapshot.can_edit

        assert orchestrator.begin_edit() is REJECTED
        assert await orchestrator.regenerate() is REJECTED

    asyncio.run(scenario())


def test_saved_edit_survives_edit_log_failure(make_orchestrator, gateway) -> None:
    gateway.failures["log_edit"] = SaveError("audit log unavailable")

    async def scenario() -> None:
        orchestrator = make_orchestrator()
        await _final(orchestrator)

        assert orchestrator.begin_edit() is APPLIED
        assert orchestrator.snapshot.state is WorkflowState.EDITING
        orchestrator.update_edit("Edited statement text")

        assert await orchestrator.save_edit() is APPLIED
        await orchestrator.wait_for_background()

        snapshot = orchestrator.snapshot
        assert snapshot.state is WorkflowState.FINAL
        assert snapshot.draft.final_statement_text == "Edited statement text"
        assert snapshot.draft.edit_buffer is None
        assert snapshot.error is None

    asyncio.run(scenario())
    assert gateway.last("update_statement") == {
        "record_id": "abc123",
        "statement_text": "Edited statement text",
    }
    log = gateway.last("log_edit")
    assert log["original_text"] == gateway.statement_text
    assert log["edited_text"] == "Edited statement text"


def test_failed_save_stays_in_editing(make_orchestrator, gateway) -> None:
    gateway.failures["update_statement"] = SaveError("offline")

    async def scenario() -> None:
        orchestrator = make_orchestrator()
        await _final(orchestrator)
        orchestrator.begin_edit()
        orchestrator.update_edit("Edited statement text")

        assert await orchestrator.save_edit() is FAILED
        snapshot = orchestrator.snapshot
        assert snapshot.state is WorkflowState.EDITING
        assert isinstance(snapshot.error, SaveError)
        assert snapshot.draft.edit_buffer == "Edited statement text"
        assert snapshot.draft.final_statement_text == gateway.statement_text

    asyncio.run(scenario())
    assert gateway.count("log_edit") == 0


def test_cancel_edit_keeps_statement(make_orchestrator, gateway) -> None:
    async def scenario() -> None:
        orchestrator = make_orchestrator()
        await _final(orchestrator)
        orchestrator.begin_edit()
        orchestrator.update_edit("Something else")

        assert orchestrator.cancel_edit() is APPLIED
        snapshot = orchestrator.snapshot
        assert snapshot.state is WorkflowState.FINAL
        assert snapshot.draft.final_statement_text == gateway.statement_text
        assert snapshot.draft.edit_buffer is None

    asyncio.run(scenario())


def test_regenerate_reuses_inputs_and_upload(make_orchestrator, gateway) -> None:
    async def scenario() -> None:
        orchestrator = make_orchestrator()
        await _final(orchestrator)

        gateway.statement_text = "Describe: A second version of the statement."
        gateway.record_id = "def456"
        assert await orchestrator.regenerate() is APPLIED

        snapshot = orchestrator.snapshot
        assert snapshot.state is WorkflowState.FINAL
        assert snapshot.draft.final_statement_text == "Describe: A second version of the statement."
        assert snapshot.draft.remote_id == "def456"

    asyncio.run(scenario())
    assert gateway.count("upload_image") == 1
    assert gateway.count("generate_final") == 2
    assert gateway.last("generate_final")["source_text"] == "Foundation crack near southeast corner"


def test_failed_regenerate_restores_previous_statement(make_orchestrator, gateway) -> None:
    async def scenario() -> None:
        orchestrator = make_orchestrator()
        await _final(orchestrator)
        original = orchestrator.snapshot.draft.final_statement_text

        gateway.failures["generate_final"] = GenerationError("model unavailable")
        assert await orchestrator.regenerate() is FAILED

        snapshot = orchestrator.snapshot
        assert snapshot.state is WorkflowState.FINAL
        assert isinstance(snapshot.error, GenerationError)
        assert snapshot.draft.final_statement_text == original
        assert snapshot.draft.remote_id == "abc123"
        assert snapshot.can_edit

    asyncio.run(scenario())


def test_missing_credential_short_circuits(make_orchestrator, gateway) -> None:
    async def scenario() -> None:
        orchestrator = make_orchestrator(token=static_token(None))
        await _ready(orchestrator)

        assert await orchestrator.analyze() is FAILED
        snapshot = orchestrator.snapshot
        assert isinstance(snapshot.error, AuthUnavailableError)
        assert snapshot.state is WorkflowState.DESCRIBED_READY

    asyncio.run(scenario())
    assert gateway.calls == []


def test_analysis_failure_is_retryable(make_orchestrator, gateway) -> None:
    gateway.failures["analyze"] = RuntimeError("connection reset")

    async def scenario() -> None:
        orchestrator = make_orchestrator()
        await _ready(orchestrator)

        assert await orchestrator.analyze() is FAILED
        snapshot = orchestrator.snapshot
        assert snapshot.state is WorkflowState.DESCRIBED_READY
        assert isinstance(snapshot.error, AnalysisError)

        del gateway.failures["analyze"]
        assert await orchestrator.analyze() is APPLIED
        assert orchestrator.snapshot.error is None

    asyncio.run(scenario())


def test_edited_analysis_is_sent_for_generation(make_orchestrator, gateway) -> None:
    async def scenario() -> None:
        orchestrator = make_orchestrator()
        await _ready(orchestrator)
        await orchestrator.analyze()

        assert orchestrator.update_analysis("Hairline crack, southeast foundation wall") is APPLIED
        assert await orchestrator.generate_final() is APPLIED

    asyncio.run(scenario())
    assert gateway.last("generate_final")["source_text"] == "Hairline crack, southeast foundation wall"


def test_unreadable_image_discards_previous_photo(make_orchestrator) -> None:
    async def scenario() -> None:
        orchestrator = make_orchestrator()
        await _ready(orchestrator)

        outcome = await orchestrator.select_image(ImageSource(data=b"definitely not an image"))
        assert outcome is FAILED
        snapshot = orchestrator.snapshot
        assert isinstance(snapshot.error, ImageProcessingError)
        assert snapshot.draft.image_asset is None
        assert snapshot.draft.description == "Crack in foundation"
        assert snapshot.state is WorkflowState.EMPTY

    asyncio.run(scenario())


def test_new_image_clears_previous_analysis(make_orchestrator) -> None:
    async def scenario() -> None:
        orchestrator = make_orchestrator()
        await _ready(orchestrator)
        await orchestrator.analyze()

        assert await orchestrator.select_image(image_source(color="green")) is APPLIED
        snapshot = orchestrator.snapshot
        assert snapshot.state is WorkflowState.DESCRIBED_READY
        assert snapshot.draft.analysis_text is None
        assert snapshot.draft.uploaded_image_url is None

    asyncio.run(scenario())


def test_voice_note_is_appended_to_description(make_orchestrator, gateway) -> None:
    async def scenario() -> None:
        orchestrator = make_orchestrator()
        await _ready(orchestrator)

        assert await orchestrator.start_recording() is APPLIED
        assert orchestrator.snapshot.recording
        assert orchestrator.snapshot.recording_started_at is not None

        assert await orchestrator.stop_recording() is APPLIED
        snapshot = orchestrator.snapshot
        assert not snapshot.recording
        assert snapshot.draft.description == "Crack in foundation near the southeast corner"

    asyncio.run(scenario())
    assert gateway.count("transcribe") == 1


def test_voice_note_fills_empty_description(make_orchestrator) -> None:
    async def scenario() -> None:
        orchestrator = make_orchestrator()
        await orchestrator.select_image(image_source())
        await orchestrator.start_recording()
        await orchestrator.stop_recording()

        snapshot = orchestrator.snapshot
        assert snapshot.draft.description == "near the southeast corner"
        assert snapshot.state is WorkflowState.DESCRIBED_READY

    asyncio.run(scenario())


def test_failed_transcription_keeps_audio_for_retry(make_orchestrator, gateway) -> None:
    gateway.failures["transcribe"] = TranscriptionError("no speech detected")

    async def scenario() -> None:
        orchestrator = make_orchestrator()
        await _ready(orchestrator)
        await orchestrator.start_recording()

        assert await orchestrator.stop_recording() is FAILED
        snapshot = orchestrator.snapshot
        assert isinstance(snapshot.error, TranscriptionError)
        assert snapshot.draft.description == "Crack in foundation"
        assert not snapshot.transcribing

        del gateway.failures["transcribe"]
        assert await orchestrator.retry_transcription() is APPLIED
        assert orchestrator.snapshot.draft.description.endswith("near the southeast corner")
        assert await orchestrator.retry_transcription() is REJECTED

    asyncio.run(scenario())
    assert gateway.count("transcribe") == 2


def test_refused_microphone_surfaces_permission_error(make_orchestrator, microphone) -> None:
    microphone.granted = False

    async def scenario() -> None:
        orchestrator = make_orchestrator()
        assert await orchestrator.start_recording() is FAILED
        snapshot = orchestrator.snapshot
        assert isinstance(snapshot.error, PermissionDeniedError)
        assert not snapshot.recording

    asyncio.run(scenario())
    assert microphone.handles == []


def test_microphone_backend_failure_is_surfaced(make_orchestrator, microphone) -> None:
    microphone.permission_error = RuntimeError("host API unavailable")

    async def scenario() -> None:
        orchestrator = make_orchestrator()
        assert await orchestrator.start_recording() is FAILED
        snapshot = orchestrator.snapshot
        assert isinstance(snapshot.error, RecordingError)
        assert "host API unavailable" in str(snapshot.error)
        assert not snapshot.recording

    asyncio.run(scenario())
    assert microphone.handles == []


def test_stop_without_recording_logs_one_warning(make_orchestrator, caplog) -> None:
    orchestrator = make_orchestrator()
    caplog.set_level(logging.INFO, logger="app.pipelines.inspection")
    caplog.clear()

    assert asyncio.run(orchestrator.stop_recording()) is REJECTED

    records = [record for record in caplog.records if record.name == "app.pipelines.inspection"]
    assert [record.levelno for record in records] == [logging.WARNING]


def test_reset_releases_open_recording(make_orchestrator, microphone, audio_sessions) -> None:
    async def scenario() -> None:
        orchestrator = make_orchestrator()
        await _ready(orchestrator)
        await orchestrator.start_recording()

        assert await orchestrator.reset() is APPLIED
        snapshot = orchestrator.snapshot
        assert snapshot.state is WorkflowState.EMPTY
        assert snapshot.draft == DraftInspection(jurisdiction="NC")
        assert not snapshot.recording
        assert orchestrator.audio is audio_sessions[-1]

    asyncio.run(scenario())
    assert audio_sessions[0].state is AudioState.RELEASED
    assert microphone.handles[0].close_calls == 1
    assert audio_sessions[1].state is AudioState.IDLE


def test_teardown_releases_recording(make_orchestrator, microphone, audio_sessions) -> None:
    async def scenario() -> None:
        async with make_orchestrator() as orchestrator:
            await orchestrator.start_recording()

    asyncio.run(scenario())
    assert audio_sessions[0].state is AudioState.RELEASED
    assert microphone.handles[0].close_calls == 1


def test_listeners_receive_snapshots(make_orchestrator) -> None:
    seen: list[WorkflowState] = []

    async def scenario() -> None:
        orchestrator = make_orchestrator()
        unsubscribe = orchestrator.subscribe(lambda snapshot: seen.append(snapshot.state))
        await _ready(orchestrator)
        await orchestrator.analyze()
        unsubscribe()
        await orchestrator.reset()

    asyncio.run(scenario())
    assert seen[0] is WorkflowState.EMPTY
    assert WorkflowState.ANALYZING in seen
    assert seen[-1] is WorkflowState.ANALYSIS_PREVIEW


def test_profile_state_sets_jurisdiction(gateway, make_orchestrator) -> None:
    orchestrator = GenerationOrchestrator.for_profile(
        {"state": "tx"},
        gateway,
        static_token(),
        requires_preview=True,
    )
    assert orchestrator.snapshot.draft.jurisdiction == "TX"

    fallback = make_orchestrator(jurisdiction=None)
    assert fallback.snapshot.draft.jurisdiction == "NC"
