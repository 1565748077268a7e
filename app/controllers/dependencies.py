"""Common FastAPI dependencies reused across controllers."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_session
from app.services.inspection_repository import InspectionRepository
from app.utils import AuthenticationError, decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)
SessionDep = Annotated[AsyncSession, Depends(get_session)]


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as far as the API needs to know."""

    user_id: str
    state: str | None = None


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Principal:
    """Resolve and validate the caller referenced by the bearer token."""

    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = decode_access_token(credentials.credentials)
    except AuthenticationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    return Principal(user_id=payload.sub, state=payload.state)


async def get_inspection_repository(session: SessionDep) -> InspectionRepository:
    return InspectionRepository(session)


CurrentPrincipalDep = Annotated[Principal, Depends(get_current_principal)]
RepositoryDep = Annotated[InspectionRepository, Depends(get_inspection_repository)]


def decode_base64_payload(value: str, field: str) -> bytes:
    """Decode a base64 body field, accepting an optional ``data:`` URI prefix."""

    raw = value.strip()
    if raw.startswith("data:") and "," in raw:
        raw = raw.split(",", 1)[1]
    try:
        decoded = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{field} is not valid base64.",
        ) from None
    if not decoded:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{field} is empty.",
        )
    return decoded


__all__ = [
    "CurrentPrincipalDep",
    "Principal",
    "RepositoryDep",
    "SessionDep",
    "bearer_scheme",
    "decode_base64_payload",
    "get_current_principal",
    "get_inspection_repository",
]
