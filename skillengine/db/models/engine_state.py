"""
Persisted engine state blobs.

One row per key (typically a learner or session id). The blob is the opaque
string produced by MasteryEngine.export_state(); it is never parsed here.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class EngineState(Base):
    """Latest exported engine state for a key."""

    __tablename__ = "engine_states"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    state: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<EngineState(key={self.key!r}, bytes={len(self.state)})>"
