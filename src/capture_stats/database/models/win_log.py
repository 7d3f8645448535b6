"""
WinLog: append-only record of every capture win.
Schema only.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from capture_stats.core.database.base import Base, IdMixin, utc_now


class WinLog(Base, IdMixin):
    """One row per win. Never updated, never deleted except by cascade."""

    __tablename__ = "win_log"
    __table_args__ = (
        Index("ix_win_log_player_event", "player_id", "event_name"),
        Index("ix_win_log_win_time", "win_time"),
    )

    player_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("players.id", ondelete="CASCADE"),
        nullable=False,
    )

    event_name: Mapped[str] = mapped_column(String(64), nullable=False)

    win_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
