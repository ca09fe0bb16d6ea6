"""
Commande slash `/ping`.

Vérifie que le bot répond (latence gateway en millisecondes).
Accessible uniquement aux administrateurs.
"""
from __future__ import annotations

import discord
from core.permissions import require_perms, ADMINISTRATOR

def register(bot: discord.Client):
    @bot.tree.command(name="ping", description="Vérifie que le bot répond")
    @require_perms(ADMINISTRATOR, message="Ping réservé aux administrateurs.")
    async def ping(interaction: discord.Interaction):  # noqa: D401
        poller = getattr(getattr(bot, "group_formation", None), "poller", None)
        state = "actif" if poller is not None and poller.running else "arrêté"
        await interaction.response.send_message(f"Pong {bot.latency*1000:.0f} ms | poller {state}", ephemeral=True)

__all__ = ["register"]
