"""High-level map of the inspection workflow.

``GenerationOrchestrator`` runs the choreography; this module lists the
stages in the order a single inspection visits them so contributors can
find the module behind each step:

1. ``media`` - normalize the picked, captured or dropped photo.
2. ``audio`` / ``transcription`` - optional voice notes merged into the description.
3. ``gateway.analyze`` - preliminary analysis (two-stage mode only).
4. ``gateway.upload_image`` - store the photo once per inspection.
5. ``gateway.generate_final`` - produce and persist the statement.
6. ``gateway.update_statement`` / ``gateway.log_edit`` - save edits and record them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from .types import WorkflowState


@dataclass(frozen=True)
class WorkflowStage:
    """Human-readable description of one stage in the inspection workflow."""

    order: int
    name: str
    module: str
    summary: str
    state: WorkflowState | None = None
    two_stage_only: bool = False


class InspectionWorkflow:
    """Utility wrapper documenting the photo-to-statement flow."""

    _STAGES: List[WorkflowStage] = [
        WorkflowStage(
            1,
            "Image Normalization",
            "app.pipelines.inspection.media",
            "Decode, orient, downscale and re-encode the photo as a bounded JPEG.",
            WorkflowState.IMAGE_SELECTED,
        ),
        WorkflowStage(
            2,
            "Voice Notes",
            "app.pipelines.inspection.transcription",
            "Record the microphone, transcribe it and append the text to the description.",
        ),
        WorkflowStage(
            3,
            "Preliminary Analysis",
            "app.pipelines.inspection.gateway",
            "Ask the model for a short defect analysis the inspector can correct.",
            WorkflowState.ANALYZING,
            two_stage_only=True,
        ),
        WorkflowStage(
            4,
            "Image Upload",
            "app.pipelines.inspection.gateway",
            "Store the normalized photo and remember its URL for the record.",
            WorkflowState.UPLOADING,
        ),
        WorkflowStage(
            5,
            "Statement Generation",
            "app.pipelines.inspection.gateway",
            "Generate the final statement and receive the persisted record id.",
            WorkflowState.GENERATING,
        ),
        WorkflowStage(
            6,
            "Edit and Save",
            "app.pipelines.inspection.orchestrator",
            "Persist the inspector's edit, then log the original/edited pair.",
            WorkflowState.SAVING,
        ),
    ]

    @classmethod
    def describe(cls, requires_preview: bool = True) -> Iterable[WorkflowStage]:
        """Ordered stages for the given mode."""

        return tuple(
            stage for stage in cls._STAGES if requires_preview or not stage.two_stage_only
        )


__all__ = ["InspectionWorkflow", "WorkflowStage"]
