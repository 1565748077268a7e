"""Repository helpers for inspection records and their edit history."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.inspection import Inspection
from app.models.statement_edit import StatementEdit

logger = logging.getLogger(__name__)
edit_audit_logger = logging.getLogger("app.statement_edits")


class InspectionNotFoundError(LookupError):
    """Raised when the inspection id does not exist."""


class InspectionAccessError(PermissionError):
    """Raised when the inspection belongs to another user."""


class InspectionRepository:
    """Inspection persistence bound to one database session."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        *,
        user_id: str,
        description: str,
        ddid: str,
        image_url: str | None,
        state: str | None,
    ) -> Inspection:
        inspection = Inspection(
            user_id=user_id,
            description=description,
            ddid=ddid,
            image_url=image_url,
            state=state,
        )
        self._session.add(inspection)
        await self._session.commit()
        await self._session.refresh(inspection)
        logger.info("Inspection saved id=%s user=%s", inspection.id, user_id)
        return inspection

    async def list_for_user(self, user_id: str) -> Sequence[Inspection]:
        result = await self._session.execute(
            select(Inspection)
            .where(Inspection.user_id == user_id)
            .order_by(Inspection.created_at.desc())
        )
        return result.scalars().all()

    async def _get_owned(self, inspection_id: int, user_id: str) -> Inspection:
        result = await self._session.execute(
            select(Inspection).where(Inspection.id == inspection_id)
        )
        inspection = result.scalar_one_or_none()
        if inspection is None:
            raise InspectionNotFoundError(f"Inspection {inspection_id} not found.")
        if inspection.user_id != user_id:
            logger.warning(
                "User %s attempted to modify inspection %s owned by %s",
                user_id,
                inspection_id,
                inspection.user_id,
            )
            raise InspectionAccessError("You do not own this inspection.")
        return inspection

    async def update_statement(self, inspection_id: int, user_id: str, ddid: str) -> Inspection:
        inspection = await self._get_owned(inspection_id, user_id)
        inspection.ddid = ddid
        inspection.updated_at = datetime.utcnow()
        await self._session.commit()
        logger.info("Inspection statement updated id=%s", inspection_id)
        return inspection

    async def delete(self, inspection_id: int, user_id: str) -> None:
        inspection = await self._get_owned(inspection_id, user_id)
        await self._session.delete(inspection)
        await self._session.commit()
        logger.info("Inspection deleted id=%s", inspection_id)

    async def log_edit(
        self,
        *,
        inspection_id: int,
        user_id: str,
        original_ddid: str,
        edited_ddid: str,
    ) -> StatementEdit:
        entry = StatementEdit(
            inspection_id=inspection_id,
            user_id=user_id,
            original_ddid=original_ddid,
            edited_ddid=edited_ddid,
        )
        self._session.add(entry)
        await self._session.commit()
        edit_audit_logger.info(
            json.dumps(
                {
                    "inspectionId": inspection_id,
                    "userId": user_id,
                    "originalDdid": original_ddid,
                    "editedDdid": edited_ddid,
                },
                ensure_ascii=False,
            )
        )
        return entry


__all__ = [
    "InspectionAccessError",
    "InspectionNotFoundError",
    "InspectionRepository",
]
