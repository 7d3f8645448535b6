"""
AggregateStat: win counter per (player, event).
Schema only.

Kept equal to the number of matching `win_log` rows: both are written in the
same transaction by `SqlStatsStore.record_win_transaction`.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from capture_stats.core.database.base import Base


class AggregateStat(Base):
    __tablename__ = "aggregate_stats"
    __table_args__ = (Index("ix_aggregate_stats_wins", "wins"),)

    player_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("players.id", ondelete="CASCADE"),
        primary_key=True,
    )

    event_name: Mapped[str] = mapped_column(String(64), primary_key=True)

    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
