"""Persistence for completed verifications.

One row per Discord user in ``verified_users``. Rows are only ever written
through :meth:`VerificationStore.mark_verified`, which is an upsert, so
repeated completions for the same user never create duplicates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, MetaData, Table, Text, func, select
from sqlalchemy.dialects.postgresql import Insert, insert
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.sql import expression

from .config import GatewayConfig

log = logging.getLogger("gatebot")

metadata = MetaData()

verified_users = Table(
    "verified_users",
    metadata,
    Column("user_id", Text, primary_key=True),
    Column("verified_status", Boolean, server_default=expression.false()),
    Column("timestamp", DateTime(timezone=True), server_default=func.now()),
)


@dataclass(frozen=True, slots=True)
class VerificationRecord:
    user_id: str
    verified_status: bool
    timestamp: datetime

    @classmethod
    def from_row(cls, row) -> "VerificationRecord":
        return cls(
            user_id=row.user_id,
            verified_status=bool(row.verified_status),
            timestamp=row.timestamp,
        )


def build_verified_upsert(user_id: str) -> Insert:
    """Insert-or-update the user's row as verified.

    The stored timestamp never moves backwards, even if two completions for
    the same user race each other.
    """
    stmt = insert(verified_users).values(
        user_id=user_id,
        verified_status=True,
        timestamp=func.now(),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[verified_users.c.user_id],
        set_={
            "verified_status": True,
            "timestamp": func.greatest(
                verified_users.c.timestamp, stmt.excluded.timestamp
            ),
        },
    )
    return stmt.returning(
        verified_users.c.user_id,
        verified_users.c.verified_status,
        verified_users.c.timestamp,
    )


class VerificationStore:
    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @classmethod
    def from_config(cls, config: GatewayConfig) -> "VerificationStore":
        connect_args = {"ssl": "require"} if config.database_ssl else {}
        engine = create_async_engine(
            config.database_url,
            pool_pre_ping=True,
            connect_args=connect_args,
        )
        return cls(engine)

    async def ensure_table(self) -> None:
        """Create ``verified_users`` if it does not exist yet."""
        async with self._engine.begin() as conn:
            await conn.run_sync(metadata.create_all, checkfirst=True)
        log.info('Database table "%s" is ready.', verified_users.name)

    async def mark_verified(self, user_id: str) -> VerificationRecord:
        async with self._engine.begin() as conn:
            result = await conn.execute(build_verified_upsert(user_id))
            row = result.one()
        return VerificationRecord.from_row(row)

    async def get(self, user_id: str) -> VerificationRecord | None:
        stmt = select(verified_users).where(verified_users.c.user_id == user_id)
        async with self._engine.connect() as conn:
            result = await conn.execute(stmt)
            row = result.first()
        if row is None:
            return None
        return VerificationRecord.from_row(row)

    async def close(self) -> None:
        await self._engine.dispose()
