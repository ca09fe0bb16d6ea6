"""
Configuration centrale du bot Discord.

Ce module charge les variables d'environnement (.env) et prépare :
- Les intents Discord (members pour résoudre les participants)
- Le token du bot (BOT_TOKEN, obligatoire)
- L'URL de la base de données (DATABASE_URL, optionnelle : active le stockage durable des demandes)
- Les paramètres du workflow de création de groupes (GROUP_*)

Un warning est émis si BOT_TOKEN est absent pour détecter le problème avant le lancement du bot.
"""
from __future__ import annotations

import os
import logging
from dotenv import load_dotenv
import discord

load_dotenv()

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Valeur invalide pour %s (%r), défaut utilisé: %s", name, raw, default)
        return default
    return max(minimum, value)


def _env_float(name: str, default: float, *, minimum: float = 0.0) -> float:
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Valeur invalide pour %s (%r), défaut utilisé: %s", name, raw, default)
        return default
    return max(minimum, value)


INTENTS = discord.Intents.default()
INTENTS.members = True

BOT_TOKEN = os.getenv("BOT_TOKEN")
DATABASE_URL = os.getenv("DATABASE_URL")

# API REST Discord (seul point de sortie réseau du workflow)
DISCORD_API_BASE = (os.getenv("DISCORD_API_BASE") or "https://discord.com/api/v10").rstrip("/")
HTTP_TIMEOUT_SECONDS = _env_float("HTTP_TIMEOUT_SECONDS", 10.0, minimum=1.0)

# Workflow de création de groupes
GROUP_CONFIRM_EMOJI = os.getenv("GROUP_CONFIRM_EMOJI") or "✅"
GROUP_POLL_INTERVAL = _env_float("GROUP_POLL_INTERVAL", 40.0, minimum=1.0)
# 0 désactive explicitement l'expiration des demandes
GROUP_EXPIRY_SECONDS = _env_int("GROUP_EXPIRY_SECONDS", 24 * 3600)
GROUP_POLL_CONCURRENCY = _env_int("GROUP_POLL_CONCURRENCY", 4, minimum=1)
GROUP_TEXT_CATEGORY = os.getenv("GROUP_TEXT_CATEGORY") or "grupos-de-tps"
GROUP_VOICE_CATEGORY = os.getenv("GROUP_VOICE_CATEGORY") or "grupos-de-tps-voz"
GROUP_STAFF_ROLE = (os.getenv("GROUP_STAFF_ROLE") or "").strip() or None


# Avertit si le token du bot est absent
if not BOT_TOKEN:
    logger.warning("BOT_TOKEN manquant dans l'environnement")
