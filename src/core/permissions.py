"""
Utilitaires pour la vérification des permissions Discord via bitmask.

Rappel :
- `discord.Permissions` expose un attribut `.value` (int) contenant les bits cumulés
- On teste un sous-ensemble via : (current & required) == required

Ce module fournit :
- le décorateur `require_perms` pour restreindre une commande slash à certains membres
- `missing_bot_perms` pour vérifier que le bot peut créer rôles et salons avant de lancer une demande
"""
from __future__ import annotations

from typing import Callable, TypeVar, Awaitable, Any
import functools
import discord

T = TypeVar("T", bound=Callable[..., Awaitable[Any]])

# Extraits de `discord.Permissions`
ADMINISTRATOR = 1 << 3
MANAGE_CHANNELS = 1 << 4
MANAGE_ROLES = 1 << 28

# Droits nécessaires au bot pour provisionner un groupe
PROVISIONING = MANAGE_CHANNELS | MANAGE_ROLES


def has_perms(value: int, bits: int) -> bool:
    # ADMINISTRATOR implique toutes les permissions
    return (value & ADMINISTRATOR) == ADMINISTRATOR or (value & bits) == bits


def missing_bot_perms(interaction: discord.Interaction, bits: int = PROVISIONING) -> int:
    """Bits manquants au bot dans le salon de l'interaction (0 si tout est présent)."""
    perms = getattr(interaction, "app_permissions", None)
    value = perms.value if perms is not None else 0
    if has_perms(value, bits):
        return 0
    return bits & ~value


def require_perms(bits: int, *, ephemeral: bool = True, message: str | None = None):
    """
    Décorateur pour vérifier qu'un utilisateur possède toutes les permissions spécifiées (bitmask).

    Args :
        bits : Masque de bits des permissions requises (ex : ADMINISTRATOR = 8)
        ephemeral : Si True, les messages d'erreur sont envoyés en éphémère
        message : Message d'erreur personnalisé (optionnel)

    Note :
    - Si utilisée en DM, l'accès est refusé
    """
    def decorator(func: T) -> T:
        @functools.wraps(func)
        async def wrapper(interaction: discord.Interaction, *args, **kwargs):  # type: ignore[misc]
            if interaction.guild is None:
                await interaction.response.send_message(
                    message or "Commande uniquement disponible dans un serveur.", ephemeral=ephemeral
                )
                return  # type: ignore[return-value]
            perms_value = interaction.user.guild_permissions.value  # type: ignore[assignment]
            if not has_perms(perms_value, bits):
                default_msg = message or f"Permissions insuffisantes (requis bitmask: {bits})."
                if interaction.response.is_done():
                    await interaction.followup.send(default_msg, ephemeral=ephemeral)
                else:
                    await interaction.response.send_message(default_msg, ephemeral=ephemeral)
                return  # type: ignore[return-value]
            return await func(interaction, *args, **kwargs)
        return wrapper  # type: ignore[return-value]
    return decorator

__all__ = ["require_perms", "has_perms", "missing_bot_perms", "ADMINISTRATOR", "MANAGE_CHANNELS", "MANAGE_ROLES", "PROVISIONING"]
