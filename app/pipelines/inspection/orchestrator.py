"""Generation orchestrator: the inspection workflow state machine.

The orchestrator is the only writer of what the user sees. It holds one
``DraftInspection`` value and one ``WorkflowState`` tag; every transition
reads both, suspends on at most one network call at a time, and then
publishes a fresh ``WorkflowSnapshot`` to its listeners.

Rules enforced here:

* the state tag doubles as the re-entrancy guard: while it is one of the
  in-flight states, analyze / generate / save / image selection are
  rejected without side effects;
* every call issued before a ``reset`` carries an older generation token
  and its result is dropped when it finally lands;
* failures are stored on the snapshot and the state falls back to the one
  the transition departed from.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Callable, Mapping, Optional, Type

from app.config.settings import settings

from .audio import AudioCaptureSession
from .context import resolve_jurisdiction
from .errors import (
    AnalysisError,
    AuthUnavailableError,
    GenerationError,
    ImageProcessingError,
    RecordingError,
    SaveError,
    TranscriptionError,
    UploadError,
    WorkflowError,
)
from .gateway import InspectionGateway, TokenProvider
from .media import MediaNormalizer
from .transcription import TranscriptionClient
from .types import (
    DraftInspection,
    ImageSource,
    TransitionOutcome,
    WorkflowSnapshot,
    WorkflowState,
)

logger = logging.getLogger("app.pipelines.inspection")

Listener = Callable[[WorkflowSnapshot], None]

_RESTING_STATES = frozenset(
    {
        WorkflowState.EMPTY,
        WorkflowState.IMAGE_SELECTED,
        WorkflowState.DESCRIBED_READY,
    }
)

MISSING_RECORD_ID_WARNING = (
    "The statement was generated but the service did not return a record id; "
    "editing and regenerating are disabled for this inspection."
)


def _resting_state(draft: DraftInspection) -> WorkflowState:
    if draft.image_asset is None:
        return WorkflowState.EMPTY
    if not draft.description.strip():
        return WorkflowState.IMAGE_SELECTED
    return WorkflowState.DESCRIBED_READY


def _as_workflow_error(exc: Exception, error_cls: Type[WorkflowError]) -> WorkflowError:
    if isinstance(exc, WorkflowError):
        return exc
    logger.exception("Unexpected error during %s", error_cls.code, exc_info=exc)
    return error_cls(str(exc) or error_cls.__name__)


class GenerationOrchestrator:
    """Drive one inspection from photo + notes to a saved statement."""

    def __init__(
        self,
        gateway: InspectionGateway,
        token_provider: TokenProvider,
        *,
        jurisdiction: str | None = None,
        requires_preview: bool | None = None,
        normalizer: MediaNormalizer | None = None,
        audio_factory: Callable[[], AudioCaptureSession] | None = None,
        transcription: TranscriptionClient | None = None,
    ) -> None:
        self._gateway = gateway
        self._token_provider = token_provider
        self._jurisdiction = (jurisdiction or settings.workflow.default_jurisdiction).upper()
        self._requires_preview = (
            settings.workflow.requires_preview if requires_preview is None else requires_preview
        )
        self._normalizer = normalizer or MediaNormalizer()
        self._audio_factory = audio_factory or AudioCaptureSession
        self._audio = self._audio_factory()
        self._transcription = transcription or TranscriptionClient(gateway)

        self._draft = DraftInspection(jurisdiction=self._jurisdiction)
        self._state = WorkflowState.EMPTY
        self._error: Optional[WorkflowError] = None
        self._warning: Optional[str] = None
        self._selecting = False
        self._transcribing = False
        self._pending_audio: Optional[bytes] = None
        self._generation = 0
        self._listeners: list[Listener] = []
        self._background: set[asyncio.Task[None]] = set()

    @classmethod
    def for_profile(
        cls,
        profile: Mapping[str, Any] | None,
        gateway: InspectionGateway,
        token_provider: TokenProvider,
        **kwargs: Any,
    ) -> "GenerationOrchestrator":
        return cls(
            gateway,
            token_provider,
            jurisdiction=resolve_jurisdiction(profile),
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Observation

    @property
    def snapshot(self) -> WorkflowSnapshot:
        session = self._audio.session
        return WorkflowSnapshot(
            state=self._state,
            draft=self._draft,
            requires_preview=self._requires_preview,
            error=self._error,
            warning=self._warning,
            recording=self._audio.is_recording,
            recording_started_at=session.started_at if session else None,
            transcribing=self._transcribing,
        )

    @property
    def audio(self) -> AudioCaptureSession:
        return self._audio

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for every published snapshot."""

        self._listeners.append(listener)
        listener(self.snapshot)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        snapshot = self.snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Workflow listener failed")

    def dismiss_error(self) -> None:
        if self._error is not None:
            self._error = None
            self._publish()

    # ------------------------------------------------------------------
    # Guards

    @property
    def _busy(self) -> bool:
        return self._state.in_flight or self._selecting

    def _reject(self, transition: str, reason: str) -> TransitionOutcome:
        logger.info("Rejected %s in state=%s: %s", transition, self._state.value, reason)
        return TransitionOutcome.REJECTED

    def _is_stale(self, token: int, transition: str) -> bool:
        if token != self._generation:
            logger.info("Discarding stale %s response (token=%s current=%s)", transition, token, self._generation)
            return True
        return False

    def _enter(self, state: WorkflowState) -> int:
        self._state = state
        self._error = None
        self._publish()
        return self._generation

    def _fail(
        self,
        token: int,
        transition: str,
        departed: WorkflowState,
        error: WorkflowError,
        draft: DraftInspection | None = None,
    ) -> TransitionOutcome:
        if self._is_stale(token, transition):
            return TransitionOutcome.STALE
        if draft is not None:
            self._draft = draft
        self._state = departed
        self._error = error
        logger.warning("%s failed (%s): %s", transition, error.code, error)
        self._publish()
        return TransitionOutcome.FAILED

    async def _credential(self) -> str:
        token = await self._token_provider()
        if not token:
            raise AuthUnavailableError("Authentication token not available.")
        return token

    # ------------------------------------------------------------------
    # Inputs

    async def select_image(self, source: ImageSource) -> TransitionOutcome:
        """Normalize ``source`` and make it the inspection photo."""

        if self._busy:
            return self._reject("select_image", "transition in flight")

        token = self._generation
        self._selecting = True
        try:
            asset = await self._normalizer.normalize(source)
        except Exception as exc:
            error = _as_workflow_error(exc, ImageProcessingError)
            if self._is_stale(token, "select_image"):
                return TransitionOutcome.STALE
            # The previous photo is dropped so the user has to pick again.
            draft = self._draft.without_image()
            return self._fail(token, "select_image", _resting_state(draft), error, draft)
        finally:
            if token == self._generation:
                self._selecting = False

        if self._is_stale(token, "select_image"):
            return TransitionOutcome.STALE

        self._draft = self._draft.with_image(asset)
        self._state = _resting_state(self._draft)
        self._error = None
        self._warning = None
        self._publish()
        return TransitionOutcome.APPLIED

    def update_description(self, text: str) -> TransitionOutcome:
        if self._busy:
            return self._reject("update_description", "transition in flight")

        self._draft = self._draft.with_description(text)
        if self._state in _RESTING_STATES:
            self._state = _resting_state(self._draft)
        self._publish()
        return TransitionOutcome.APPLIED

    def update_analysis(self, text: str) -> TransitionOutcome:
        """Fold the user's corrections into the preliminary analysis."""

        if self._state is not WorkflowState.ANALYSIS_PREVIEW:
            return self._reject("update_analysis", "no analysis to edit")

        self._draft = replace(self._draft, analysis_text=text)
        self._publish()
        return TransitionOutcome.APPLIED

    # ------------------------------------------------------------------
    # Voice notes

    async def start_recording(self) -> TransitionOutcome:
        if self._audio.is_recording or self._transcribing:
            return self._reject("start_recording", "recording already active")

        token = self._generation
        audio = self._audio
        try:
            await audio.start()
        except Exception as exc:
            error = _as_workflow_error(exc, RecordingError)
            if self._is_stale(token, "start_recording"):
                return TransitionOutcome.STALE
            self._error = error
            logger.warning("start_recording failed (%s): %s", error.code, error)
            self._publish()
            return TransitionOutcome.FAILED

        if self._is_stale(token, "start_recording"):
            return TransitionOutcome.STALE

        self._error = None
        self._publish()
        return TransitionOutcome.APPLIED

    async def stop_recording(self) -> TransitionOutcome:
        """Stop the microphone and merge the transcript into the description."""

        audio = self._audio
        if not audio.is_recording:
            # The session logs the no-op itself.
            await audio.stop()
            return TransitionOutcome.REJECTED

        token = self._generation
        try:
            audio_bytes = await audio.stop()
        except Exception as exc:
            error = _as_workflow_error(exc, RecordingError)
            if self._is_stale(token, "stop_recording"):
                return TransitionOutcome.STALE
            self._error = error
            logger.warning("stop_recording failed (%s): %s", error.code, error)
            self._publish()
            return TransitionOutcome.FAILED

        if self._is_stale(token, "stop_recording"):
            return TransitionOutcome.STALE

        self._pending_audio = audio_bytes or None
        return await self._transcribe_pending()

    async def retry_transcription(self) -> TransitionOutcome:
        if self._pending_audio is None:
            return self._reject("retry_transcription", "no captured audio")
        return await self._transcribe_pending()

    async def _transcribe_pending(self) -> TransitionOutcome:
        if self._transcribing:
            return self._reject("transcribe", "transcription in flight")

        token = self._generation
        audio_bytes = self._pending_audio or b""
        self._transcribing = True
        self._error = None
        self._publish()
        try:
            credential = await self._credential()
            text = await self._transcription.transcribe(audio_bytes, token=credential)
        except Exception as exc:
            error = _as_workflow_error(exc, TranscriptionError)
            if self._is_stale(token, "transcribe"):
                return TransitionOutcome.STALE
            self._transcribing = False
            self._error = error
            logger.warning("transcribe failed (%s): %s", error.code, error)
            self._publish()
            return TransitionOutcome.FAILED

        if self._is_stale(token, "transcribe"):
            return TransitionOutcome.STALE

        self._transcribing = False
        self._pending_audio = None
        self._draft = self._draft.with_transcript(text)
        if self._state in _RESTING_STATES:
            self._state = _resting_state(self._draft)
        self._publish()
        return TransitionOutcome.APPLIED

    # ------------------------------------------------------------------
    # Generation

    async def analyze(self) -> TransitionOutcome:
        """Request the preliminary defect description."""

        if self._busy:
            return self._reject("analyze", "transition in flight")
        if not self._requires_preview:
            return self._reject("analyze", "preview step disabled")
        if self._state not in (WorkflowState.DESCRIBED_READY, WorkflowState.ANALYSIS_PREVIEW):
            return self._reject("analyze", "not ready")
        if not self._draft.has_inputs:
            return self._reject("analyze", "image and description required")

        departed = self._state
        draft = self._draft
        token = self._enter(WorkflowState.ANALYZING)
        try:
            credential = await self._credential()
            result = await self._gateway.analyze(
                draft.image_asset,
                draft.description.strip(),
                draft.jurisdiction,
                token=credential,
            )
            if not result.analysis_text.strip():
                raise AnalysisError("The analysis came back empty.")
        except Exception as exc:
            return self._fail(token, "analyze", departed, _as_workflow_error(exc, AnalysisError))

        if self._is_stale(token, "analyze"):
            return TransitionOutcome.STALE

        self._draft = self._draft.with_analysis(result.analysis_text.strip())
        self._state = WorkflowState.ANALYSIS_PREVIEW
        self._publish()
        return TransitionOutcome.APPLIED

    async def generate_final(self) -> TransitionOutcome:
        """Upload the photo if needed, then generate and save the statement."""

        if self._busy:
            return self._reject("generate_final", "transition in flight")
        if not self._draft.has_inputs:
            return self._reject("generate_final", "image and description required")

        if self._requires_preview:
            if self._state is not WorkflowState.ANALYSIS_PREVIEW:
                return self._reject("generate_final", "analysis preview required")
            source_text = (self._draft.analysis_text or "").strip()
            if not source_text:
                return self._reject("generate_final", "analysis text is empty")
        else:
            if self._state is not WorkflowState.DESCRIBED_READY:
                return self._reject("generate_final", "not ready")
            source_text = self._draft.description.strip()

        return await self._run_generation(source_text, self._state, self._draft)

    async def regenerate(self) -> TransitionOutcome:
        """Discard the current statement and generate a new one from the same inputs."""

        if self._busy:
            return self._reject("regenerate", "transition in flight")
        if self._state is not WorkflowState.FINAL or not self._draft.editable:
            return self._reject("regenerate", "no editable statement")
        source_text = self._draft.generation_input
        if not source_text or self._draft.image_asset is None:
            return self._reject("regenerate", "original inputs unavailable")

        fallback = self._draft
        self._draft = self._draft.without_statement()
        return await self._run_generation(source_text, WorkflowState.FINAL, fallback)

    async def _run_generation(
        self,
        source_text: str,
        departed: WorkflowState,
        fallback: DraftInspection,
    ) -> TransitionOutcome:
        first_stage = (
            WorkflowState.UPLOADING
            if self._draft.uploaded_image_url is None
            else WorkflowState.GENERATING
        )
        token = self._enter(first_stage)

        def restore() -> DraftInspection:
            # Keep what the user added meanwhile and any upload that succeeded.
            return replace(
                fallback,
                description=self._draft.description,
                uploaded_image_url=self._draft.uploaded_image_url,
            )

        try:
            credential = await self._credential()
        except Exception as exc:
            error_cls = UploadError if first_stage is WorkflowState.UPLOADING else GenerationError
            return self._fail(token, "generate_final", departed, _as_workflow_error(exc, error_cls), restore())

        if self._draft.uploaded_image_url is None:
            try:
                upload = await self._gateway.upload_image(self._draft.image_asset, token=credential)
                if not upload.image_url:
                    raise UploadError("The image upload returned no URL.")
            except Exception as exc:
                return self._fail(token, "upload_image", departed, _as_workflow_error(exc, UploadError), restore())

            if self._is_stale(token, "upload_image"):
                return TransitionOutcome.STALE
            self._draft = self._draft.with_upload(upload.image_url)
            self._state = WorkflowState.GENERATING
            self._publish()

        draft = self._draft
        try:
            result = await self._gateway.generate_final(
                draft.image_asset,
                source_text,
                draft.jurisdiction,
                draft.uploaded_image_url,
                token=credential,
            )
            if not result.statement_text.strip():
                raise GenerationError("The generated statement was empty.")
        except Exception as exc:
            return self._fail(token, "generate_final", departed, _as_workflow_error(exc, GenerationError), restore())

        if self._is_stale(token, "generate_final"):
            return TransitionOutcome.STALE

        self._draft = self._draft.with_statement(result, source_text)
        self._state = WorkflowState.FINAL
        if result.record_id is None:
            self._warning = MISSING_RECORD_ID_WARNING
            logger.warning("Statement generated without a record id; edits disabled.")
        else:
            self._warning = None
            logger.info("Statement generated record_id=%s", result.record_id)
        self._publish()
        return TransitionOutcome.APPLIED

    # ------------------------------------------------------------------
    # Editing

    def begin_edit(self) -> TransitionOutcome:
        if self._state is not WorkflowState.FINAL:
            return self._reject("begin_edit", "no final statement")
        if not self._draft.editable:
            return self._reject("begin_edit", "statement has no record id")

        self._draft = self._draft.begin_edit()
        self._state = WorkflowState.EDITING
        self._error = None
        self._publish()
        return TransitionOutcome.APPLIED

    def update_edit(self, text: str) -> TransitionOutcome:
        if self._state is not WorkflowState.EDITING:
            return self._reject("update_edit", "not editing")

        self._draft = self._draft.with_edit(text)
        self._publish()
        return TransitionOutcome.APPLIED

    def cancel_edit(self) -> TransitionOutcome:
        if self._state is not WorkflowState.EDITING:
            return self._reject("cancel_edit", "not editing")

        self._draft = self._draft.discard_edit()
        self._state = WorkflowState.FINAL
        self._error = None
        self._publish()
        return TransitionOutcome.APPLIED

    async def save_edit(self) -> TransitionOutcome:
        """Persist the edit buffer, then log the original/edited pair in the background."""

        if self._busy:
            return self._reject("save_edit", "transition in flight")
        if self._state is not WorkflowState.EDITING:
            return self._reject("save_edit", "not editing")
        record_id = self._draft.remote_id
        edited = (self._draft.edit_buffer or "").strip()
        if record_id is None:
            return self._reject("save_edit", "statement has no record id")
        if not edited:
            return self._reject("save_edit", "edited statement is empty")

        original = self._draft.original_statement_text or ""
        token = self._enter(WorkflowState.SAVING)
        try:
            credential = await self._credential()
            await self._gateway.update_statement(record_id, edited, token=credential)
        except Exception as exc:
            return self._fail(token, "save_edit", WorkflowState.EDITING, _as_workflow_error(exc, SaveError))

        if self._is_stale(token, "save_edit"):
            return TransitionOutcome.STALE

        self._draft = replace(self._draft, edit_buffer=edited).commit_edit()
        self._state = WorkflowState.FINAL
        self._publish()

        if original != edited:
            self._spawn(self._log_edit(record_id, original, edited, credential))
        return TransitionOutcome.APPLIED

    async def _log_edit(self, record_id: str, original: str, edited: str, credential: str) -> None:
        try:
            await self._gateway.log_edit(record_id, original, edited, token=credential)
        except Exception:
            logger.exception("Statement edit log failed record_id=%s", record_id)
        else:
            logger.info("Statement edit logged record_id=%s", record_id)

    def _spawn(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def wait_for_background(self) -> None:
        """Wait for fire-and-forget work such as edit logging."""

        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------
    # Lifecycle

    async def reset(self) -> TransitionOutcome:
        """Discard the draft and any open recording; start a new inspection."""

        self._generation += 1
        await self._audio.release()
        self._audio = self._audio_factory()
        self._draft = DraftInspection(jurisdiction=self._jurisdiction)
        self._state = WorkflowState.EMPTY
        self._error = None
        self._warning = None
        self._selecting = False
        self._transcribing = False
        self._pending_audio = None
        logger.info("Inspection reset")
        self._publish()
        return TransitionOutcome.APPLIED

    async def aclose(self) -> None:
        """Teardown: invalidate pending responses and release the microphone."""

        self._generation += 1
        await self._audio.release()
        await self.wait_for_background()
        self._listeners.clear()

    async def __aenter__(self) -> "GenerationOrchestrator":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


__all__ = ["GenerationOrchestrator", "MISSING_RECORD_ID_WARNING"]
