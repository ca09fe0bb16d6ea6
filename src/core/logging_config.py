"""
Configuration centralisée du logging pour le bot Discord.

Objectifs :
- Un seul setup idempotent (évite la duplication des handlers)
- Déduplication des messages identiques sous WARNING (retries et échecs toujours journalisés)
- Masquage du token du bot dans tout message rendu (aucune fuite dans les logs)
- Format uniforme configurable via variables d'environnement
"""
from __future__ import annotations

import logging
import threading
import os
from typing import Optional

_INITIALIZED = False
_SEEN_LOCK = threading.Lock()
_SEEN_RECORDS = set()

DEFAULT_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEFAULT_FORMAT = '[%(asctime)s] %(levelname)s %(name)s: %(message)s'
TOKEN_MASK = "***"


class _DeduplicateFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        # Retries et échecs : chaque occurrence compte
        if record.levelno >= logging.WARNING:
            return True
        # Déduplication basée sur le message rendu (args interpolés)
        try:
            rendered = record.getMessage()
        except Exception:  # noqa: BLE001
            rendered = str(record.msg)
        key = (record.name, record.levelno, rendered)
        with _SEEN_LOCK:
            if key in _SEEN_RECORDS:
                return False
            _SEEN_RECORDS.add(key)
            # Limite la croissance mémoire (reset si trop gros)
            if len(_SEEN_RECORDS) > 5000:
                _SEEN_RECORDS.clear()
        return True


class RedactTokenFilter(logging.Filter):
    """Remplace le secret par `***` dans le message rendu et l'exception éventuelle."""

    def __init__(self, secret: Optional[str]):
        super().__init__()
        self.secret = secret or None

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        if not self.secret:
            return True
        try:
            rendered = record.getMessage()
        except Exception:  # noqa: BLE001
            rendered = str(record.msg)
        if self.secret in rendered:
            record.msg = rendered.replace(self.secret, TOKEN_MASK)
            record.args = None
        if record.exc_info and record.exc_info[1] is not None:
            text = logging.Formatter().formatException(record.exc_info)
            if self.secret in text:
                # Le traceback brut contient le secret : on le remplace par sa version masquée
                record.exc_text = text.replace(self.secret, TOKEN_MASK)
        return True


def setup_logging(force: bool = False, secret: Optional[str] = None) -> None:
    global _INITIALIZED
    if _INITIALIZED and not force:
        return

    root = logging.getLogger()
    if force:
        # Purge tous les handlers existants
        for h in list(root.handlers):
            root.removeHandler(h)
    if not root.handlers:
        handler = logging.StreamHandler()
        root.addHandler(handler)
    # Filtres sur chaque handler : masquage avant déduplication
    secret = secret if secret is not None else os.getenv("BOT_TOKEN")
    for h in root.handlers:
        h.addFilter(RedactTokenFilter(secret))
        h.addFilter(_DeduplicateFilter())
        h.setFormatter(logging.Formatter(DEFAULT_FORMAT))
    root.setLevel(getattr(logging, DEFAULT_LEVEL, logging.INFO))
    # aiohttp et discord.py sont verbeux en DEBUG
    logging.getLogger("discord.http").setLevel(max(root.level, logging.INFO))
    _INITIALIZED = True


__all__ = ["setup_logging", "RedactTokenFilter"]
