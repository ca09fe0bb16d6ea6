"""
Suivi des demandes de création de groupe en attente de confirmation.

Deux implémentations partagent la même interface asynchrone :
- `MemoryReactionStore` : dictionnaire en mémoire (perdu au redémarrage)
- `DatabaseReactionStore` : lignes PostgreSQL via asyncpg, rechargées au démarrage

Toute lecture / écriture passe par un `asyncio.Lock` : un tick du poller et un `add`
concurrent ne peuvent pas corrompre l'itération (le poller travaille sur une copie).
"""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional

from db import confirmations as db
from .models import PendingConfirmation

logger = logging.getLogger(__name__)


class DuplicateConfirmation(Exception):
    """Une demande est déjà suivie pour ce message."""

    def __init__(self, message_id: int):
        super().__init__(f"Confirmation déjà en attente pour le message {message_id}")
        self.message_id = message_id


class MemoryReactionStore:
    def __init__(self):
        self._lock = asyncio.Lock()
        self._pending: Dict[int, PendingConfirmation] = {}

    async def load(self) -> int:
        logger.warning("Stockage mémoire : les demandes en attente ne survivent pas à un redémarrage")
        return len(self._pending)

    async def add(self, confirmation: PendingConfirmation):
        async with self._lock:
            if confirmation.message_id in self._pending:
                raise DuplicateConfirmation(confirmation.message_id)
            self._pending[confirmation.message_id] = confirmation

    async def remove(self, message_id: int) -> bool:
        async with self._lock:
            return self._pending.pop(message_id, None) is not None

    async def get(self, message_id: int) -> Optional[PendingConfirmation]:
        async with self._lock:
            return self._pending.get(message_id)

    async def list_pending(self) -> List[PendingConfirmation]:
        async with self._lock:
            return list(self._pending.values())


def _from_record(rec) -> PendingConfirmation:
    return PendingConfirmation(
        message_id=int(rec["message_id"]),
        channel_id=int(rec["channel_id"]),
        guild_id=int(rec["guild_id"]),
        group_name=str(rec["group_name"]),
        required_user_ids=frozenset(int(u) for u in rec["user_ids"]),
        creator_id=int(rec["creator_id"]),
        created_at=rec["created_at"],
        expires_at=rec["expires_at"],
    )


class DatabaseReactionStore:
    """Variante durable : une demande acceptée survit au redémarrage du bot."""

    def __init__(self, pool):
        self.pool = pool
        self._lock = asyncio.Lock()

    async def load(self) -> int:
        await db.ensure_schema(self.pool)
        pending = await self.list_pending()
        logger.info("Demandes de groupe rechargées: %s", len(pending))
        return len(pending)

    async def add(self, confirmation: PendingConfirmation):
        async with self._lock:
            inserted = await db.insert_confirmation(
                self.pool,
                confirmation.message_id,
                confirmation.channel_id,
                confirmation.guild_id,
                confirmation.group_name,
                confirmation.creator_id,
                sorted(confirmation.required_user_ids),
                confirmation.created_at,
                confirmation.expires_at,
            )
        if not inserted:
            raise DuplicateConfirmation(confirmation.message_id)

    async def remove(self, message_id: int) -> bool:
        async with self._lock:
            return await db.delete_confirmation(self.pool, message_id)

    async def get(self, message_id: int) -> Optional[PendingConfirmation]:
        async with self._lock:
            rec = await db.fetch_confirmation(self.pool, message_id)
        return _from_record(rec) if rec else None

    async def list_pending(self) -> List[PendingConfirmation]:
        async with self._lock:
            records = await db.fetch_all_confirmations(self.pool)
        out: List[PendingConfirmation] = []
        for rec in records:
            try:
                out.append(_from_record(rec))
            except ValueError:
                # Ligne incohérente (aucun membre requis) : ignorée plutôt que de bloquer le tick
                logger.error("Demande %s invalide en base, ignorée", rec["message_id"])
        return out


__all__ = ["DuplicateConfirmation", "MemoryReactionStore", "DatabaseReactionStore"]
