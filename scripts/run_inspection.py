"""Drive one inspection against a running service from the command line.

Usage:
    python scripts/run_inspection.py photo.jpg "Water stain on ceiling below bath"
    python scripts/run_inspection.py photo.jpg "" --record 8 --single-stage

The bearer token is read from ``INSPECTION_TOKEN``; when it is unset a token
is signed locally with the configured JWT secret for ``--user``.
"""

import argparse
import asyncio
import os
import sys

# Add project root to path so we can import app
sys.path.append(os.getcwd())

from app.pipelines.inspection import (  # noqa: E402
    GenerationOrchestrator,
    HttpInspectionGateway,
    ImageOrigin,
    ImageSource,
    InspectionWorkflow,
    TransitionOutcome,
    WorkflowSnapshot,
)
from app.utils import create_access_token  # noqa: E402


def _print_snapshot(snapshot: WorkflowSnapshot) -> None:
    line = f"[{snapshot.state.value}]"
    if snapshot.recording:
        line += " recording..."
    if snapshot.transcribing:
        line += " transcribing..."
    if snapshot.error is not None:
        line += f" error={snapshot.error.code}: {snapshot.error}"
    if snapshot.warning:
        line += f" warning={snapshot.warning}"
    print(line)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate a DDID statement for one photo.")
    parser.add_argument("image", help="Path to the inspection photo")
    parser.add_argument("description", help="Inspector notes (may be empty with --record)")
    parser.add_argument("--state", default=None, help="Two-letter state code")
    parser.add_argument("--user", default="cli-user", help="Subject for a locally signed token")
    parser.add_argument("--record", type=float, default=0, help="Seconds of voice notes to record")
    parser.add_argument("--single-stage", action="store_true", help="Skip the preliminary analysis")
    parser.add_argument("--edit", default=None, help="Replace the statement with this text and save")
    return parser.parse_args()


def _fail(step: str, outcome: TransitionOutcome, orchestrator: GenerationOrchestrator) -> int:
    error = orchestrator.snapshot.error
    print(f"{step} {outcome.value}: {error or 'not allowed in the current state'}")
    return 1


async def main() -> int:
    args = _parse_args()
    for stage in InspectionWorkflow.describe(requires_preview=not args.single_stage):
        print(f"{stage.order}. {stage.name}: {stage.summary}")
    print()

    token = os.environ.get("INSPECTION_TOKEN") or create_access_token(args.user, state=args.state)

    async def token_provider() -> str:
        return token

    async with HttpInspectionGateway() as gateway:
        orchestrator = GenerationOrchestrator.for_profile(
            {"state": args.state} if args.state else None,
            gateway,
            token_provider,
            requires_preview=not args.single_stage,
        )
        async with orchestrator:
            orchestrator.subscribe(_print_snapshot)

            outcome = await orchestrator.select_image(
                ImageSource.from_path(args.image, origin=ImageOrigin.LIBRARY)
            )
            if outcome is not TransitionOutcome.APPLIED:
                return _fail("Image", outcome, orchestrator)
            orchestrator.update_description(args.description)

            if args.record > 0:
                if await orchestrator.start_recording() is TransitionOutcome.APPLIED:
                    await asyncio.sleep(args.record)
                    await orchestrator.stop_recording()

            if not args.single_stage:
                outcome = await orchestrator.analyze()
                if outcome is not TransitionOutcome.APPLIED:
                    return _fail("Analysis", outcome, orchestrator)
                print("\n--- Preliminary analysis ---")
                print(orchestrator.snapshot.draft.analysis_text)
                print("----------------------------\n")

            outcome = await orchestrator.generate_final()
            if outcome is not TransitionOutcome.APPLIED:
                return _fail("Generation", outcome, orchestrator)

            draft = orchestrator.snapshot.draft
            print("\n--- DDID statement ---")
            print(draft.final_statement_text)
            print(f"--- record id: {draft.remote_id or '-'} ---\n")

            if args.edit and orchestrator.begin_edit() is TransitionOutcome.APPLIED:
                orchestrator.update_edit(args.edit)
                outcome = await orchestrator.save_edit()
                if outcome is not TransitionOutcome.APPLIED:
                    return _fail("Save", outcome, orchestrator)
                await orchestrator.wait_for_background()
                print("Edit saved.")

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
