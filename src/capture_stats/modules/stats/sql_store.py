"""
SqlStatsStore - SQLAlchemy implementation of StatsStore
=======================================================

Purpose
-------
Persist players, the win log and per-(player, event) aggregates through
`DatabaseService`, and answer the two read queries the caches are built
from.

Design Notes
------------
- Every method is one `DatabaseService.execute` / `query` call, so each is
  its own transaction with the service's timeouts, concurrency cap and error
  translation. Timings land in `DatabaseService.metrics` under the
  operation names used here.
- Upserts are dialect specific:
  - PostgreSQL / SQLite: `INSERT ... ON CONFLICT (...) DO UPDATE`
  - MySQL / MariaDB: `INSERT ... ON DUPLICATE KEY UPDATE`
- The aggregate increment is `wins = wins + 1` evaluated by the database,
  so concurrent wins for the same pair serialize on the row and none is
  lost.
- The leaderboard is an outer join from `players`, so a player with no
  wins still ranks, with total 0.
- Player ids are stored as canonical UUID strings; ordering by the string
  column is ordering by UUID.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Insert

from capture_stats.core.database.base import utc_now
from capture_stats.core.database.service import DatabaseService
from capture_stats.core.logging.logger import get_logger
from capture_stats.database.models import AggregateStat, Base, Player, WinLog
from capture_stats.modules.stats.store import StatsStore
from capture_stats.modules.stats.types import LeaderboardEntry

logger = get_logger(__name__)


# ============================================================================
# Dialect-aware upsert
# ============================================================================


def build_upsert(
    dialect_name: str,
    table: Any,
    rows: Sequence[Dict[str, Any]],
    conflict_columns: Sequence[str],
    update_from_insert: Sequence[str] = (),
    update_expressions: Optional[Mapping[str, Any]] = None,
) -> Insert:
    """
    Build an insert-or-update statement for `dialect_name`.

    `update_from_insert` columns take the value being inserted;
    `update_expressions` maps columns to SQL expressions over the existing
    row (e.g. `table.c.wins + 1`).
    """
    update_expressions = dict(update_expressions or {})

    if dialect_name in ("postgresql", "sqlite"):
        dialect_insert = postgresql.insert if dialect_name == "postgresql" else sqlite.insert
        stmt = dialect_insert(table).values(list(rows))
        set_ = {col: stmt.excluded[col] for col in update_from_insert}
        set_.update(update_expressions)
        return stmt.on_conflict_do_update(index_elements=list(conflict_columns), set_=set_)

    if dialect_name in ("mysql", "mariadb"):
        stmt = mysql.insert(table).values(list(rows))
        set_ = {col: stmt.inserted[col] for col in update_from_insert}
        set_.update(update_expressions)
        return stmt.on_duplicate_key_update(set_)

    raise NotImplementedError(f"Upsert is not supported for dialect {dialect_name!r}")


# ============================================================================
# SqlStatsStore
# ============================================================================


class SqlStatsStore(StatsStore):
    """
    StatsStore over a relational database.

    The `DatabaseService` must be initialized before any method is called.
    """

    def __init__(self, db: DatabaseService) -> None:
        self._db = db

    @property
    def database(self) -> DatabaseService:
        return self._db

    async def create_schema(self) -> None:
        await self._db.run_schema(Base.metadata.create_all)
        logger.info(
            "Stats schema ensured",
            extra={"tables": sorted(Base.metadata.tables)},
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _player_upsert(self, players: Mapping[uuid.UUID, str]) -> Insert:
        seen_at = utc_now()
        rows = [
            {"id": str(player_id), "name": name, "last_seen": seen_at}
            for player_id, name in players.items()
        ]
        return build_upsert(
            self._db.dialect_name,
            Player.__table__,
            rows,
            conflict_columns=["id"],
            update_from_insert=["name", "last_seen"],
        )

    async def upsert_player(self, player_id: uuid.UUID, name: str) -> None:
        stmt = self._player_upsert({player_id: name})

        async def unit_of_work(session: AsyncSession) -> None:
            await session.execute(stmt)

        await self._db.execute(unit_of_work, operation="upsert_player")

    async def bulk_upsert_players(self, players: Mapping[uuid.UUID, str]) -> int:
        if not players:
            return 0
        stmt = self._player_upsert(players)

        async def unit_of_work(session: AsyncSession) -> None:
            await session.execute(stmt)

        await self._db.execute(unit_of_work, operation="bulk_upsert_players")
        logger.debug("Players bulk upserted", extra={"count": len(players)})
        return len(players)

    async def record_win_transaction(self, player_id: uuid.UUID, event_name: str) -> None:
        pid = str(player_id)
        table = AggregateStat.__table__
        aggregate_upsert = build_upsert(
            self._db.dialect_name,
            table,
            [{"player_id": pid, "event_name": event_name, "wins": 1}],
            conflict_columns=["player_id", "event_name"],
            update_expressions={"wins": table.c.wins + 1},
        )

        async def unit_of_work(session: AsyncSession) -> None:
            session.add(WinLog(player_id=pid, event_name=event_name, win_time=utc_now()))
            await session.flush()
            await session.execute(aggregate_upsert)

        await self._db.execute(unit_of_work, operation="record_win")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def fetch_player_aggregate(self, player_id: uuid.UUID) -> Dict[str, int]:
        stmt = (
            select(AggregateStat.event_name, AggregateStat.wins)
            .where(AggregateStat.player_id == str(player_id))
            .order_by(AggregateStat.wins.desc(), AggregateStat.event_name.asc())
        )
        rows = await self._db.query(stmt, operation="fetch_player_aggregate")
        return {row.event_name: int(row.wins) for row in rows}

    async def fetch_top_players(self, limit: int) -> List[LeaderboardEntry]:
        total_wins = func.coalesce(func.sum(AggregateStat.wins), 0).label("total_wins")
        stmt = (
            select(Player.id, Player.name, total_wins)
            .select_from(Player)
            .outerjoin(AggregateStat, AggregateStat.player_id == Player.id)
            .group_by(Player.id, Player.name)
            .order_by(total_wins.desc(), Player.id.asc())
            .limit(limit)
        )
        rows = await self._db.query(stmt, operation="fetch_top_players")
        return [
            LeaderboardEntry(
                player_id=uuid.UUID(row.id),
                name=row.name,
                total_wins=int(row.total_wins),
            )
            for row in rows
        ]

    async def count_wins(self, player_id: uuid.UUID, event_name: str) -> int:
        stmt = (
            select(func.count())
            .select_from(WinLog)
            .where(WinLog.player_id == str(player_id), WinLog.event_name == event_name)
        )
        rows = await self._db.query(stmt, operation="count_wins")
        return int(rows[0][0]) if rows else 0
