"""
Couche base de données pour les demandes de création de groupe en attente.

Schéma :
- pending_confirmation : message_id BIGINT PK, channel_id, guild_id, group_name, creator_id,
  created_at TIMESTAMPTZ, expires_at TIMESTAMPTZ NULL
- pending_confirmation_user : message_id FK (cascade), user_id ; un membre requis par ligne
Un index par guild accélère le listing par serveur.
"""
from __future__ import annotations

import asyncpg
from datetime import datetime
from typing import Iterable, Optional, Sequence

SCHEMA = """
CREATE TABLE IF NOT EXISTS pending_confirmation (
    message_id BIGINT PRIMARY KEY,
    channel_id BIGINT NOT NULL,
    guild_id BIGINT NOT NULL,
    group_name TEXT NOT NULL,
    creator_id BIGINT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    expires_at TIMESTAMPTZ NULL
);

CREATE TABLE IF NOT EXISTS pending_confirmation_user (
    message_id BIGINT NOT NULL REFERENCES pending_confirmation(message_id) ON DELETE CASCADE,
    user_id BIGINT NOT NULL,
    PRIMARY KEY (message_id, user_id)
);

CREATE INDEX IF NOT EXISTS idx_pending_confirmation_guild ON pending_confirmation(guild_id);
"""

async def ensure_schema(pool: asyncpg.Pool):
    async with pool.acquire() as conn:
        await conn.execute(SCHEMA)

async def insert_confirmation(pool: asyncpg.Pool, message_id: int, channel_id: int, guild_id: int, group_name: str,
                              creator_id: int, user_ids: Iterable[int], created_at: datetime,
                              expires_at: Optional[datetime]) -> bool:
    """Insère la demande et ses membres requis. Retourne False si le message est déjà suivi."""
    q = """
    INSERT INTO pending_confirmation(message_id, channel_id, guild_id, group_name, creator_id, created_at, expires_at)
    VALUES($1,$2,$3,$4,$5,$6,$7)
    ON CONFLICT (message_id) DO NOTHING
    RETURNING message_id
    """
    async with pool.acquire() as conn:
        async with conn.transaction():
            inserted = await conn.fetchval(q, message_id, channel_id, guild_id, group_name, creator_id, created_at, expires_at)
            if inserted is None:
                return False
            await conn.executemany(
                "INSERT INTO pending_confirmation_user(message_id, user_id) VALUES($1,$2) ON CONFLICT DO NOTHING",
                [(message_id, uid) for uid in user_ids],
            )
    return True

async def delete_confirmation(pool: asyncpg.Pool, message_id: int) -> bool:
    """Supprime la demande ; True seulement pour l'appelant qui l'a effectivement retirée."""
    q = "DELETE FROM pending_confirmation WHERE message_id=$1 RETURNING message_id"
    async with pool.acquire() as conn:
        return await conn.fetchval(q, message_id) is not None

_SELECT = """
SELECT c.message_id, c.channel_id, c.guild_id, c.group_name, c.creator_id, c.created_at, c.expires_at,
       COALESCE(array_agg(u.user_id) FILTER (WHERE u.user_id IS NOT NULL), '{}') AS user_ids
FROM pending_confirmation c
LEFT JOIN pending_confirmation_user u ON u.message_id = c.message_id
"""

async def fetch_confirmation(pool: asyncpg.Pool, message_id: int) -> Optional[asyncpg.Record]:
    q = _SELECT + " WHERE c.message_id=$1 GROUP BY c.message_id"
    async with pool.acquire() as conn:
        return await conn.fetchrow(q, message_id)

async def fetch_all_confirmations(pool: asyncpg.Pool) -> Sequence[asyncpg.Record]:
    q = _SELECT + " GROUP BY c.message_id ORDER BY c.created_at"
    async with pool.acquire() as conn:
        return await conn.fetch(q)

__all__ = [
    "ensure_schema", "insert_confirmation", "delete_confirmation", "fetch_confirmation", "fetch_all_confirmations",
]
