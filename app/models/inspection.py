"""Inspection record: one photo, its description and the generated statement."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from .base import Base


class Inspection(Base):
    """Persisted inspection owned by the user who generated it."""

    __tablename__ = "inspections"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    description = Column(Text, nullable=False)
    ddid = Column(Text, nullable=True)
    image_url = Column(String(2048), nullable=True)
    state = Column(String(2), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=True, onupdate=datetime.utcnow)


__all__ = ["Inspection"]
