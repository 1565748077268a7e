"""Inputs the workflow takes from the signed-in user's profile."""

from __future__ import annotations

from typing import Any, Mapping

from app.config.settings import settings

_PROFILE_KEYS = ("inspection_state", "inspectionState", "state")


def resolve_jurisdiction(
    profile: Mapping[str, Any] | None,
    default: str | None = None,
) -> str:
    """Return the two-letter region code, falling back to the configured default."""

    fallback = (default or settings.workflow.default_jurisdiction).upper()
    if not profile:
        return fallback

    for key in _PROFILE_KEYS:
        value = profile.get(key)
        if isinstance(value, str):
            code = value.strip().upper()
            if len(code) == 2 and code.isalpha():
                return code
    return fallback


__all__ = ["resolve_jurisdiction"]
