"""SQLite store for reward attempt history, activity log, and the round cursor."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from round_rewarder.models.records import (
    ActivityRecord,
    RewardNotification,
    RewardRecord,
    RewardSummary,
)

SCHEMA = """
-- Round event cursor for resumption
CREATE TABLE IF NOT EXISTS cursor (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    last_ledger INTEGER NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- One row per completed claim attempt
CREATE TABLE IF NOT EXISTS reward_attempts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    round INTEGER NOT NULL,
    outcome TEXT NOT NULL,
    success INTEGER NOT NULL,
    duration_ms INTEGER NOT NULL,
    tx_hash TEXT,
    replaced INTEGER NOT NULL DEFAULT 0,
    error TEXT,
    reward_pool INTEGER,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_attempts_round ON reward_attempts(round);

-- Activity log
CREATE TABLE IF NOT EXISTS activity_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_type TEXT NOT NULL,
    round INTEGER,
    tx_hash TEXT,
    message TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_activity_created ON activity_log(created_at);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteRewardStore:
    """SQLite-backed reward history. Also usable directly as a RewardMonitor."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    # ── Cursor ─────────────────────────────────────────────

    async def get_cursor(self) -> int | None:
        async with self.db.execute("SELECT last_ledger FROM cursor WHERE id=1") as cur:
            row = await cur.fetchone()
            return row["last_ledger"] if row else None

    async def set_cursor(self, ledger: int) -> None:
        await self.db.execute(
            "INSERT INTO cursor (id, last_ledger, updated_at) VALUES (1, ?, ?)"
            " ON CONFLICT(id) DO UPDATE SET last_ledger=excluded.last_ledger,"
            " updated_at=excluded.updated_at",
            (ledger, _now()),
        )
        await self.db.commit()

    # ── Reward attempts ────────────────────────────────────

    async def reward_attempted(self, notification: RewardNotification) -> None:
        """RewardMonitor hook: persist the attempt and log it."""
        await self.save_attempt(notification)
        if notification.success:
            await self.log_activity(
                "reward_claimed",
                f"Claimed reward for round {notification.round}"
                + (" (fee bumped)" if notification.replaced else ""),
                round_number=notification.round,
                tx_hash=notification.tx_hash,
            )
        else:
            await self.log_activity(
                "reward_failed",
                f"Reward for round {notification.round} failed:"
                f" {notification.outcome.value} ({notification.error})",
                round_number=notification.round,
                tx_hash=notification.tx_hash,
            )

    async def save_attempt(self, notification: RewardNotification) -> None:
        pool = notification.earnings_pool
        await self.db.execute(
            "INSERT INTO reward_attempts"
            " (round, outcome, success, duration_ms, tx_hash, replaced, error,"
            "  reward_pool, created_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                notification.round,
                notification.outcome.value,
                int(notification.success),
                notification.duration_ms,
                notification.tx_hash,
                int(notification.replaced),
                notification.error,
                pool.reward_pool if pool else None,
                _now(),
            ),
        )
        await self.db.commit()

    async def get_recent_attempts(self, limit: int = 20) -> list[RewardRecord]:
        async with self.db.execute(
            "SELECT * FROM reward_attempts ORDER BY id DESC LIMIT ?", (limit,)
        ) as cur:
            return [_row_to_attempt(row) async for row in cur]

    async def get_summary(self) -> RewardSummary:
        async with self.db.execute(
            "SELECT COUNT(*) AS attempts,"
            " COALESCE(SUM(success), 0) AS claimed,"
            " COALESCE(SUM(replaced), 0) AS replaced,"
            " MAX(CASE WHEN success=1 THEN round END) AS last_claimed_round,"
            " COALESCE(SUM(CASE WHEN success=1 THEN reward_pool END), 0) AS total_pool"
            " FROM reward_attempts"
        ) as cur:
            row = await cur.fetchone()

        attempts = row["attempts"] if row else 0
        claimed = row["claimed"] if row else 0
        return RewardSummary(
            attempts=attempts,
            claimed=claimed,
            failed=attempts - claimed,
            replaced=row["replaced"] if row else 0,
            last_claimed_round=row["last_claimed_round"] if row else None,
            total_reward_pool=row["total_pool"] if row else 0,
        )

    # ── Activity log ───────────────────────────────────────

    async def log_activity(
        self,
        event_type: str,
        message: str,
        round_number: int | None = None,
        tx_hash: str | None = None,
    ) -> None:
        await self.db.execute(
            "INSERT INTO activity_log (event_type, round, tx_hash, message, created_at)"
            " VALUES (?, ?, ?, ?, ?)",
            (event_type, round_number, tx_hash, message, _now()),
        )
        await self.db.commit()

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        async with self.db.execute(
            "SELECT * FROM activity_log ORDER BY id DESC LIMIT ?", (limit,)
        ) as cur:
            return [
                ActivityRecord(
                    id=row["id"],
                    event_type=row["event_type"],
                    round=row["round"],
                    tx_hash=row["tx_hash"],
                    message=row["message"],
                    created_at=row["created_at"],
                )
                async for row in cur
            ]


def _row_to_attempt(row: aiosqlite.Row) -> RewardRecord:
    return RewardRecord(
        id=row["id"],
        round=row["round"],
        outcome=row["outcome"],
        success=bool(row["success"]),
        duration_ms=row["duration_ms"],
        tx_hash=row["tx_hash"],
        replaced=bool(row["replaced"]),
        error=row["error"],
        reward_pool=row["reward_pool"],
        created_at=row["created_at"],
    )
