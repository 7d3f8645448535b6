"""
Player: identity and display name of everyone who has been seen.
Schema only.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from capture_stats.core.database.base import Base, utc_now


class Player(Base):
    """
    A player identified by UUID.

    The id never changes; the display name is overwritten on every sighting
    so the leaderboard shows the latest one.
    """

    __tablename__ = "players"
    __table_args__ = (Index("ix_players_name", "name"),)

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        doc="Canonical UUID string",
    )

    name: Mapped[str] = mapped_column(String(16), nullable=False)

    last_seen: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    def __repr__(self) -> str:
        return f"<Player(id={self.id!r}, name={self.name!r})>"
