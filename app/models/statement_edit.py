"""Audit trail of user edits to generated statements."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from .base import Base


class StatementEdit(Base):
    __tablename__ = "statement_edits"

    id = Column(Integer, primary_key=True, index=True)
    inspection_id = Column(Integer, nullable=False, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    original_ddid = Column(Text, nullable=False)
    edited_ddid = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


__all__ = ["StatementEdit"]
