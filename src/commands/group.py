"""
Commandes slash de création de groupes : `/creer_groupe` et `/groupes_en_attente`.

La logique métier est déléguée à `core.groups` (workflow) et `views/groups.py` (textes).
"""
from __future__ import annotations

import re
import logging
from typing import List

import discord
from discord import app_commands

from core.groups.manager import GroupFormationManager, InvalidGroupRequest
from core.permissions import require_perms, missing_bot_perms, MANAGE_CHANNELS
from views import groups as groups_view

logger = logging.getLogger(__name__)

MENTION_RE = re.compile(r"<@!?(\d{15,25})>")


def parse_mentions(text: str | None) -> List[int]:
    """IDs des utilisateurs mentionnés (`<@id>` / `<@!id>`), ordre préservé, sans doublon."""
    out: List[int] = []
    for m in MENTION_RE.finditer(text or ""):
        uid = int(m.group(1))
        if uid not in out:
            out.append(uid)
    return out


def get_manager(interaction: discord.Interaction) -> GroupFormationManager | None:
    return getattr(interaction.client, "group_formation", None)


@app_commands.command(name="creer_groupe", description="Crée un groupe avec salons texte et vocal")
@app_commands.describe(
    nom_groupe="Nom du groupe à créer",
    membres="Membres du groupe (mentions @)",
)
@app_commands.guild_only()
async def creer_groupe(interaction: discord.Interaction, nom_groupe: str, membres: str):
    mgr = get_manager(interaction)
    if mgr is None or interaction.guild is None or interaction.channel_id is None:
        await interaction.response.send_message(groups_view.msg_not_ready(), ephemeral=True)
        return
    if not nom_groupe.strip() or not membres.strip():
        await interaction.response.send_message(groups_view.msg_missing_args(), ephemeral=True)
        return
    user_ids = parse_mentions(membres)
    if not user_ids:
        await interaction.response.send_message(groups_view.msg_no_mentions(), ephemeral=True)
        return
    if interaction.user.id in user_ids:
        await interaction.response.send_message(groups_view.msg_self_included(), ephemeral=True)
        return
    missing = missing_bot_perms(interaction)
    if missing:
        logger.warning("Permissions bot insuffisantes (bitmask manquant %s) guild %s", missing, interaction.guild.id)
    await interaction.response.defer(ephemeral=True, thinking=True)
    try:
        await mgr.request_group_confirmation(
            interaction.channel_id,
            interaction.guild.id,
            nom_groupe,
            user_ids,
            interaction.user.id,
        )
    except InvalidGroupRequest as exc:
        await interaction.followup.send(str(exc), ephemeral=True)
        return
    except Exception:  # noqa: BLE001
        logger.exception("Erreur création demande de groupe '%s'", nom_groupe)
        await interaction.followup.send(groups_view.msg_error(), ephemeral=True)
        return
    await interaction.followup.send(groups_view.msg_request_sent(), ephemeral=True)


@app_commands.command(name="groupes_en_attente", description="Lister les demandes de groupe en attente")
@require_perms(MANAGE_CHANNELS, message="Permission 'Gérer les salons' requise.")
async def groupes_en_attente(interaction: discord.Interaction):
    mgr = get_manager(interaction)
    if mgr is None or interaction.guild is None:
        await interaction.response.send_message(groups_view.msg_not_ready(), ephemeral=True)
        return
    await interaction.response.defer(ephemeral=True)
    pending = await mgr.pending_for_guild(interaction.guild.id)
    if not pending:
        await interaction.followup.send(groups_view.msg_no_pending(), ephemeral=True)
        return
    lines = [
        groups_view.fmt_pending_line(p.group_name, p.channel_id, p.message_id, len(p.required_user_ids))
        for p in pending
    ]
    await interaction.followup.send("\n".join(lines)[:2000], ephemeral=True)


def register(bot: discord.Client):
    bot.tree.add_command(creer_groupe)
    bot.tree.add_command(groupes_en_attente)


__all__ = ["register", "parse_mentions"]
