"""
Abstraction pour PostgreSQL via asyncpg.

Principes :
- Un pool unique, créé à la demande (`get_pool`)
- Fonctions SQL atomiques (pas d'ORM) dans le package `db`
- Le schéma des demandes en attente est géré par `db.confirmations.ensure_schema`
"""
from __future__ import annotations

import asyncpg
import logging

logger = logging.getLogger(__name__)

_pool = None


async def get_pool(dsn: str):
    """
    Retourne (et crée si nécessaire) le pool asyncpg.
    Args :
        dsn : URL de connexion Postgres
    """
    global _pool
    if _pool is None:
        _pool = await asyncpg.create_pool(dsn, min_size=1, max_size=5)
        logger.info("Pool asyncpg initialisé")
    return _pool
