"""Endpoints for defect analysis, statement generation and inspection history."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from app.controllers.dependencies import (
    CurrentPrincipalDep,
    RepositoryDep,
    decode_base64_payload,
)
from app.services import statement_generator
from app.services.inspection_repository import (
    InspectionAccessError,
    InspectionNotFoundError,
)
from app.services.llm_client import LlmInvocationError
from app.services.statement_generator import StatementContractError
from app.telemetry import increment_statement_edit
from app.views import (
    AnalyzeDefectRequest,
    AnalyzeDefectResponse,
    GenerateStatementRequest,
    GenerateStatementResponse,
    InspectionRead,
    LogStatementEditRequest,
    MessageResponse,
    UpdateStatementRequest,
    UpdateStatementResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["inspections"])


def _model_failure(exc: Exception, action: str) -> HTTPException:
    logger.exception("Model call failed during %s", action, exc_info=exc)
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"Failed to {action}: {exc}",
    )


def _parse_inspection_id(raw: int | str) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="inspectionId must be an integer.",
        ) from None


def _ownership_failure(exc: Exception) -> HTTPException:
    if isinstance(exc, InspectionNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Inspection not found.")
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Forbidden: you do not own this inspection.",
    )


@router.post("/analyze-defect", response_model=AnalyzeDefectResponse)
async def analyze_defect(
    payload: AnalyzeDefectRequest,
    principal: CurrentPrincipalDep,
) -> AnalyzeDefectResponse:
    """Return a brief preliminary description of the photographed defect."""

    image_bytes = decode_base64_payload(payload.image_base64, "imageBase64")
    logger.info("Preliminary analysis requested user=%s state=%s", principal.user_id, payload.user_state)
    try:
        analysis = await statement_generator.generate_analysis(
            image_bytes,
            payload.description,
            payload.user_state,
        )
    except (LlmInvocationError, StatementContractError) as exc:
        raise _model_failure(exc, "generate the preliminary description") from exc

    return AnalyzeDefectResponse(preDescription=analysis)


@router.post("/generate-ddid", response_model=GenerateStatementResponse)
async def generate_ddid(
    payload: GenerateStatementRequest,
    principal: CurrentPrincipalDep,
    repository: RepositoryDep,
) -> GenerateStatementResponse:
    """Generate the final DDID statement and save it as a new inspection."""

    image_bytes = decode_base64_payload(payload.image_base64, "imageBase64")
    try:
        ddid = await statement_generator.generate_statement(
            image_bytes,
            payload.final_description,
            payload.user_state,
        )
    except (LlmInvocationError, StatementContractError) as exc:
        raise _model_failure(exc, "generate the DDID statement") from exc

    try:
        inspection = await repository.create(
            user_id=principal.user_id,
            description=payload.final_description,
            ddid=ddid,
            image_url=payload.image_url,
            state=payload.user_state,
        )
    except SQLAlchemyError as exc:
        logger.exception("Failed to save inspection for user=%s", principal.user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="The statement was generated but the inspection could not be saved.",
        ) from exc

    return GenerateStatementResponse(ddid=ddid, inspectionId=inspection.id)


@router.get("/inspections", response_model=list[InspectionRead])
async def list_inspections(
    principal: CurrentPrincipalDep,
    repository: RepositoryDep,
) -> list[InspectionRead]:
    """Return the caller's inspections, newest first."""

    inspections = await repository.list_for_user(principal.user_id)
    return [InspectionRead.model_validate(item) for item in inspections]


@router.put("/inspections/{inspection_id}", response_model=UpdateStatementResponse)
async def update_inspection_statement(
    inspection_id: int,
    payload: UpdateStatementRequest,
    principal: CurrentPrincipalDep,
    repository: RepositoryDep,
) -> UpdateStatementResponse:
    """Replace the stored statement with the user's edited version."""

    try:
        await repository.update_statement(inspection_id, principal.user_id, payload.ddid)
    except (InspectionNotFoundError, InspectionAccessError) as exc:
        raise _ownership_failure(exc) from exc

    return UpdateStatementResponse(
        message="Inspection statement updated successfully.",
        inspectionId=inspection_id,
    )


@router.delete("/inspections/{inspection_id}", response_model=MessageResponse)
async def delete_inspection(
    inspection_id: int,
    principal: CurrentPrincipalDep,
    repository: RepositoryDep,
) -> MessageResponse:
    try:
        await repository.delete(inspection_id, principal.user_id)
    except (InspectionNotFoundError, InspectionAccessError) as exc:
        raise _ownership_failure(exc) from exc

    return MessageResponse(message="Deleted successfully")


@router.post(
    "/log-statement-edit",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def log_statement_edit(
    payload: LogStatementEditRequest,
    principal: CurrentPrincipalDep,
    repository: RepositoryDep,
) -> MessageResponse:
    """Record the original and edited statement for later review."""

    inspection_id = _parse_inspection_id(payload.inspection_id)
    await repository.log_edit(
        inspection_id=inspection_id,
        user_id=principal.user_id,
        original_ddid=payload.original_ddid,
        edited_ddid=payload.edited_ddid,
    )
    increment_statement_edit()
    logger.info("Statement edit logged inspection=%s user=%s", inspection_id, principal.user_id)
    return MessageResponse(message="Edit logged successfully.")


__all__ = ["router"]
