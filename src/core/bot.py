"""
Classe principale du bot Discord.

Responsabilités :
- Crée le client Discord et l'arbre de commandes slash.
- Initialise la base de données (pool) si configurée.
- Démarre le workflow de création de groupes (poller de confirmations).
- Enregistre les commandes et les synchronise.

Note : L'initialisation asynchrone est centralisée dans `setup_hook`, appelé avant `on_ready`.
"""
from __future__ import annotations

import logging
import discord
from discord import app_commands

from core import config, db

logger = logging.getLogger(__name__)

class Bot(discord.Client):
    """
    Client Discord étendu, encapsulant l'état applicatif.

    Attributs principaux :
        tree : Arbre des commandes slash (CommandTree)
        db_pool : Pool asyncpg (None si aucune DB configurée)
        group_formation : GroupFormationManager (None tant que setup_hook n'a pas tourné)
    """


    def __init__(self):
        super().__init__(intents=config.INTENTS)
        self.tree = app_commands.CommandTree(self)
        self.db_pool = None  # Sera peuplé si DATABASE_URL défini
        self.group_formation = None

    async def setup_hook(self):
        """
        Initialise les sous-systèmes avant la mise en ligne.

        Séquence :
        1. Connexion DB (si configurée)
        2. Workflow de groupes (stockage durable si DB, mémoire sinon)
        3. Enregistrement et synchronisation des commandes
        """
        try:
            if config.DATABASE_URL:
                self.db_pool = await db.get_pool(config.DATABASE_URL)
                logger.info("DB prête")
        except Exception:  # noqa: BLE001
            logger.exception("Erreur init DB")
        try:
            from core.groups.manager import setup_group_formation  # import local pour éviter cycles
            await setup_group_formation(self, self.db_pool)
            logger.info("Workflow de groupes initialisé")
        except Exception:  # noqa: BLE001
            logger.exception("Erreur init workflow de groupes")
        # Chargement commandes dynamiques
        try:
            from commands import load_all_commands  # type: ignore
            await load_all_commands(self)
        except Exception:  # noqa: BLE001
            logger.exception("Erreur chargement commandes dynamiques")
        # Sync final
        try:
            await self.tree.sync()
            logger.info("Slash commands synchronisées")
        except Exception:  # noqa: BLE001
            logger.exception("Erreur sync slash commands")

    async def on_ready(self):
        logger.info("Connecté: %s (%s)", self.user, getattr(self.user, 'id', '?'))

    async def close(self):  # type: ignore[override]
        """
        Fermeture propre du bot.
        Arrête le poller, ferme la session REST puis le pool asyncpg si présent.
        """
        try:
            if self.group_formation is not None:
                await self.group_formation.stop()
        except Exception:  # noqa: BLE001
            logger.exception("Erreur arrêt workflow de groupes")
        try:
            if self.db_pool is not None:
                await self.db_pool.close()  # type: ignore[union-attr]
                logger.info("Pool asyncpg fermé")
        except Exception:  # noqa: BLE001
            logger.exception("Erreur fermeture pool")
        await super().close()
