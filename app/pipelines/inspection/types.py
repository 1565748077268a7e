"""Typed containers shared across the inspection workflow.

``DraftInspection`` is an immutable value: every transition builds a new
draft from the previous one, and the orchestrator swaps its single
reference once the transition completes. These dataclasses live in their
own module so ``media``, ``gateway`` and ``orchestrator`` can import them
without creating circular dependencies.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from .errors import WorkflowError


class WorkflowState(str, Enum):
    """Conceptual states of one inspection run."""

    EMPTY = "empty"
    IMAGE_SELECTED = "image_selected"
    DESCRIBED_READY = "described_ready"
    ANALYZING = "analyzing"
    ANALYSIS_PREVIEW = "analysis_preview"
    UPLOADING = "uploading"
    GENERATING = "generating"
    FINAL = "final"
    EDITING = "editing"
    SAVING = "saving"

    @property
    def in_flight(self) -> bool:
        return self in _IN_FLIGHT_STATES


_IN_FLIGHT_STATES = frozenset(
    {
        WorkflowState.ANALYZING,
        WorkflowState.UPLOADING,
        WorkflowState.GENERATING,
        WorkflowState.SAVING,
    }
)


class TransitionOutcome(str, Enum):
    """What happened to a requested transition."""

    APPLIED = "applied"
    FAILED = "failed"
    REJECTED = "rejected"
    STALE = "stale"


class ImageOrigin(str, Enum):
    """Where the raw image came from."""

    CAMERA = "camera"
    LIBRARY = "library"
    DROP = "drop"


@dataclass(frozen=True)
class ImageSource:
    """Raw picked, captured or dropped image prior to normalization."""

    data: bytes
    origin: ImageOrigin = ImageOrigin.LIBRARY
    content_type: Optional[str] = None
    filename: Optional[str] = None

    @classmethod
    def from_path(
        cls,
        path: Path | str,
        origin: ImageOrigin = ImageOrigin.LIBRARY,
    ) -> "ImageSource":
        file_path = Path(path)
        return cls(data=file_path.read_bytes(), origin=origin, filename=file_path.name)


@dataclass(frozen=True)
class ImageAsset:
    """Bounded-size encoded image ready for transmission."""

    data: bytes = field(repr=False)
    display_ref: str = field(repr=False)
    width: int
    height: int
    content_type: str = "image/jpeg"

    def as_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


@dataclass(frozen=True)
class AnalysisResult:
    analysis_text: str


@dataclass(frozen=True)
class UploadResult:
    image_url: str


@dataclass(frozen=True)
class GenerationResult:
    statement_text: str
    record_id: Optional[str] = None


def merge_transcript(description: str, transcript: str) -> str:
    """Append ``transcript`` to ``description`` with one separating space."""

    addition = transcript.strip()
    if not addition:
        return description
    if not description:
        return addition
    return f"{description} {addition}"


@dataclass(frozen=True)
class DraftInspection:
    """In-memory record of one in-progress defect report."""

    jurisdiction: str
    description: str = ""
    image_asset: Optional[ImageAsset] = None
    analysis_text: Optional[str] = None
    generation_input: Optional[str] = None
    final_statement_text: Optional[str] = None
    original_statement_text: Optional[str] = None
    edit_buffer: Optional[str] = None
    remote_id: Optional[str] = None
    uploaded_image_url: Optional[str] = None

    @property
    def has_inputs(self) -> bool:
        return self.image_asset is not None and bool(self.description.strip())

    @property
    def editable(self) -> bool:
        """A statement can only be edited once the service gave it an id."""

        return self.final_statement_text is not None and self.remote_id is not None

    def with_image(self, asset: ImageAsset) -> "DraftInspection":
        # A new photo starts a new record.
        return replace(
            self,
            image_asset=asset,
            analysis_text=None,
            generation_input=None,
            final_statement_text=None,
            original_statement_text=None,
            edit_buffer=None,
            remote_id=None,
            uploaded_image_url=None,
        )

    def without_image(self) -> "DraftInspection":
        return DraftInspection(jurisdiction=self.jurisdiction, description=self.description)

    def with_description(self, text: str) -> "DraftInspection":
        return replace(self, description=text)

    def with_transcript(self, transcript: str) -> "DraftInspection":
        return replace(self, description=merge_transcript(self.description, transcript))

    def with_analysis(self, text: str) -> "DraftInspection":
        return replace(self, analysis_text=text, final_statement_text=None)

    def with_upload(self, image_url: str) -> "DraftInspection":
        return replace(self, uploaded_image_url=image_url)

    def with_statement(self, result: GenerationResult, source_text: str) -> "DraftInspection":
        return replace(
            self,
            analysis_text=None,
            generation_input=source_text,
            final_statement_text=result.statement_text,
            original_statement_text=None,
            edit_buffer=None,
            remote_id=result.record_id,
        )

    def without_statement(self) -> "DraftInspection":
        return replace(
            self,
            final_statement_text=None,
            original_statement_text=None,
            edit_buffer=None,
            remote_id=None,
        )

    def begin_edit(self) -> "DraftInspection":
        return replace(
            self,
            edit_buffer=self.final_statement_text,
            original_statement_text=self.final_statement_text,
        )

    def with_edit(self, text: str) -> "DraftInspection":
        return replace(self, edit_buffer=text)

    def commit_edit(self) -> "DraftInspection":
        return replace(
            self,
            final_statement_text=self.edit_buffer,
            original_statement_text=None,
            edit_buffer=None,
        )

    def discard_edit(self) -> "DraftInspection":
        return replace(self, original_statement_text=None, edit_buffer=None)


@dataclass(frozen=True)
class WorkflowSnapshot:
    """Everything the UI may render for the current run."""

    state: WorkflowState
    draft: DraftInspection
    requires_preview: bool
    error: Optional[WorkflowError] = None
    warning: Optional[str] = None
    recording: bool = False
    recording_started_at: Optional[datetime] = None
    transcribing: bool = False

    @property
    def busy(self) -> bool:
        return self.state.in_flight

    @property
    def can_analyze(self) -> bool:
        return (
            self.requires_preview
            and not self.busy
            and self.state in (WorkflowState.DESCRIBED_READY, WorkflowState.ANALYSIS_PREVIEW)
            and self.draft.has_inputs
        )

    @property
    def can_generate(self) -> bool:
        if self.busy or not self.draft.has_inputs:
            return False
        if self.requires_preview:
            return self.state is WorkflowState.ANALYSIS_PREVIEW and bool(
                (self.draft.analysis_text or "").strip()
            )
        return self.state is WorkflowState.DESCRIBED_READY

    @property
    def can_edit(self) -> bool:
        return self.state is WorkflowState.FINAL and self.draft.editable


__all__ = [
    "WorkflowState",
    "TransitionOutcome",
    "ImageOrigin",
    "ImageSource",
    "ImageAsset",
    "AnalysisResult",
    "UploadResult",
    "GenerationResult",
    "DraftInspection",
    "WorkflowSnapshot",
    "merge_transcript",
]
