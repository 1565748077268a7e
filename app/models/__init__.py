"""SQLAlchemy models for the inspection service."""

from .base import Base
from .inspection import Inspection  # noqa: F401
from .statement_edit import StatementEdit  # noqa: F401

__all__ = [
    "Base",
    "Inspection",
    "StatementEdit",
]
