from __future__ import annotations

import asyncio
import logging
import random
from typing import Iterable, List, Optional, Tuple

from core.rest import RateLimitedClient
from .models import (
    GUILD_CATEGORY,
    GUILD_TEXT,
    GUILD_VOICE,
    VIEW_CHANNEL,
    FormationSettings,
    OverwriteType,
    PermissionOverwrite,
    ProvisionedGroup,
    slugify,
)

logger = logging.getLogger(__name__)

MAX_COLOR = 0xFFFFFF


def build_overwrites(guild_id: int, role_id: int, staff_role_id: Optional[int] = None) -> List[PermissionOverwrite]:
    """@everyone (id == guild) ne voit pas le salon ; le rôle du groupe (et le staff) oui."""
    overwrites = [
        PermissionOverwrite(guild_id, OverwriteType.ROLE, deny=VIEW_CHANNEL),
        PermissionOverwrite(role_id, OverwriteType.ROLE, allow=VIEW_CHANNEL),
    ]
    if staff_role_id is not None and staff_role_id not in (guild_id, role_id):
        overwrites.append(PermissionOverwrite(staff_role_id, OverwriteType.ROLE, allow=VIEW_CHANNEL))
    return overwrites


def unique_ids(ids: Iterable[int]) -> List[int]:
    seen = set()
    out = []
    for uid in ids:
        uid = int(uid)
        if uid not in seen:
            seen.add(uid)
            out.append(uid)
    return out


class GroupProvisioner:
    """Crée rôle + salons texte / vocal d'un groupe confirmé et attribue le rôle.

    Politique d'erreur :
        - création du rôle / des salons : bloquante (exception propagée, pas de rollback)
        - catégorie ou rôle staff introuvable : non bloquant (warning, salon créé sans parent)
        - attribution du rôle : échec individuel journalisé, les autres continuent
    """

    def __init__(self, rest: RateLimitedClient, settings: FormationSettings, *, rng: Optional[random.Random] = None):
        self.rest = rest
        self.settings = settings
        self.rng = rng or random.Random()

    async def create_role(self, guild_id: int, name: str) -> int:
        payload = {
            "name": name,
            "permissions": "0",
            "color": self.rng.randint(0, MAX_COLOR),
            "mentionable": True,
        }
        role = await self.rest.request("POST", f"guilds/{guild_id}/roles", payload, reason=f"Groupe {name}")
        return int(role["id"])

    async def resolve_categories(self, guild_id: int) -> Tuple[Optional[int], Optional[int]]:
        channels = await self.rest.request("GET", f"guilds/{guild_id}/channels") or []
        text_id = voice_id = None
        for ch in channels:
            if ch.get("type") != GUILD_CATEGORY:
                continue
            # Correspondance exacte, sensible à la casse
            if text_id is None and ch.get("name") == self.settings.text_category:
                text_id = int(ch["id"])
            if voice_id is None and ch.get("name") == self.settings.voice_category:
                voice_id = int(ch["id"])
        if text_id is None:
            logger.warning("Catégorie texte '%s' introuvable (guild %s)", self.settings.text_category, guild_id)
        if voice_id is None:
            logger.warning("Catégorie vocale '%s' introuvable (guild %s)", self.settings.voice_category, guild_id)
        return text_id, voice_id

    async def resolve_staff_role(self, guild_id: int) -> Optional[int]:
        name = self.settings.staff_role
        if not name:
            return None
        roles = await self.rest.request("GET", f"guilds/{guild_id}/roles") or []
        for role in roles:
            if role.get("name") == name:
                return int(role["id"])
        logger.warning("Rôle staff '%s' introuvable (guild %s)", name, guild_id)
        return None

    async def create_channel(self, guild_id: int, name: str, channel_type: int,
                             overwrites: List[PermissionOverwrite], parent_id: Optional[int]) -> int:
        payload = {
            "name": slugify(name),
            "type": channel_type,
            "permission_overwrites": [o.to_payload() for o in overwrites],
        }
        if parent_id is not None:
            payload["parent_id"] = str(parent_id)
        channel = await self.rest.request("POST", f"guilds/{guild_id}/channels", payload, reason=f"Groupe {name}")
        return int(channel["id"])

    async def assign_role(self, guild_id: int, user_id: int, role_id: int):
        await self.rest.request(
            "PUT", f"guilds/{guild_id}/members/{user_id}/roles/{role_id}", reason="Membre du groupe confirmé"
        )

    async def assign_roles(self, guild_id: int, role_id: int, user_ids: List[int]) -> Tuple[List[int], List[int]]:
        results = await asyncio.gather(
            *(self.assign_role(guild_id, uid, role_id) for uid in user_ids),
            return_exceptions=True,
        )
        assigned: List[int] = []
        failed: List[int] = []
        for uid, res in zip(user_ids, results):
            if isinstance(res, BaseException):
                logger.error("Echec attribution rôle %s à %s: %s", role_id, uid, res)
                failed.append(uid)
            else:
                assigned.append(uid)
        return assigned, failed

    async def provision(self, guild_id: int, group_name: str, participant_ids: Iterable[int]) -> ProvisionedGroup:
        participants = unique_ids(participant_ids)
        role_id = await self.create_role(guild_id, group_name)
        logger.info("Rôle %s créé pour le groupe '%s' (guild %s)", role_id, group_name, guild_id)

        text_parent, voice_parent = await self.resolve_categories(guild_id)
        staff_role_id = await self.resolve_staff_role(guild_id)
        overwrites = build_overwrites(guild_id, role_id, staff_role_id)

        text_id = await self.create_channel(guild_id, group_name, GUILD_TEXT, overwrites, text_parent)
        voice_id = await self.create_channel(guild_id, group_name, GUILD_VOICE, overwrites, voice_parent)
        logger.info("Salons créés pour '%s': texte %s, vocal %s", group_name, text_id, voice_id)

        assigned, failed = await self.assign_roles(guild_id, role_id, participants)
        if failed:
            logger.warning("Groupe '%s' partiel: rôle absent pour %s", group_name, failed)
        return ProvisionedGroup(
            role_id=role_id,
            text_channel_id=text_id,
            voice_channel_id=voice_id,
            assigned_user_ids=assigned,
            failed_user_ids=failed,
        )


__all__ = ["GroupProvisioner", "build_overwrites", "unique_ids"]
