from __future__ import annotations

import logging
from typing import Iterable, List, Optional

import discord

from core import config
from core.rest import RateLimitedClient
from views import groups as groups_view
from .models import FormationSettings, PendingConfirmation
from .notifier import NotificationSender
from .poller import ConfirmationPoller
from .provisioner import GroupProvisioner, unique_ids
from .store import DatabaseReactionStore, MemoryReactionStore

logger = logging.getLogger(__name__)

MAX_GROUP_NAME = 100


class InvalidGroupRequest(ValueError):
    """Demande rejetée avant tout appel réseau (nom vide, membres absents, créateur inclus)."""


class GroupFormationManager:
    """Coordonne le workflow de création de groupes par confirmation (réactions).

    Responsabilités:
        - Publication de la demande et réaction ✅ du bot.
        - Enregistrement de la demande en attente (mémoire ou base).
        - Cycle de vie du poller (start / stop).
    """

    def __init__(self, rest: RateLimitedClient, store, settings: Optional[FormationSettings] = None, *,
                 provisioner: Optional[GroupProvisioner] = None):
        self.rest = rest
        self.store = store
        self.settings = settings or FormationSettings()
        self.notifier = NotificationSender(rest)
        self.provisioner = provisioner or GroupProvisioner(rest, self.settings)
        self.poller = ConfirmationPoller(self.store, self.notifier, self.provisioner, self.settings)

    async def start(self):
        await self.store.load()
        self.poller.start()

    async def stop(self):
        await self.poller.stop()
        await self.rest.close()

    def validate(self, group_name: str, required_user_ids: Iterable[int], creator_id: int) -> tuple[str, List[int]]:
        name = (group_name or "").strip()
        if not name:
            raise InvalidGroupRequest(groups_view.msg_missing_args())
        if len(name) > MAX_GROUP_NAME:
            raise InvalidGroupRequest(groups_view.msg_name_too_long())
        members = unique_ids(required_user_ids)
        if not members:
            raise InvalidGroupRequest(groups_view.msg_no_mentions())
        if int(creator_id) in members:
            raise InvalidGroupRequest(groups_view.msg_self_included())
        return name, members

    async def request_group_confirmation(self, channel_id: int, guild_id: int, group_name: str,
                                         required_user_ids: Iterable[int], creator_id: int) -> dict:
        """Point d'entrée unique : publie la demande et l'enregistre pour le poller.

        Retourne le message Discord (dict JSON) de la demande.
        """
        name, members = self.validate(group_name, required_user_ids, creator_id)
        text = groups_view.build_confirmation_request(name, creator_id, members, self.settings.confirm_emoji)
        message = await self.notifier.send_message(channel_id, text)
        message_id = int(message["id"])
        await self.notifier.add_self_reaction(channel_id, message_id, self.settings.confirm_emoji)
        entry = PendingConfirmation.create(
            message_id=message_id,
            channel_id=channel_id,
            guild_id=guild_id,
            group_name=name,
            required_user_ids=members,
            creator_id=creator_id,
            expiry_seconds=self.settings.expiry_seconds,
        )
        await self.store.add(entry)
        logger.info("Demande de groupe '%s' enregistrée (%s, %s membres)", name, message_id, len(members))
        return message

    async def pending_for_guild(self, guild_id: int) -> List[PendingConfirmation]:
        return [p for p in await self.store.list_pending() if p.guild_id == guild_id]


def settings_from_config() -> FormationSettings:
    return FormationSettings(
        confirm_emoji=config.GROUP_CONFIRM_EMOJI,
        poll_interval=config.GROUP_POLL_INTERVAL,
        expiry_seconds=config.GROUP_EXPIRY_SECONDS,
        poll_concurrency=config.GROUP_POLL_CONCURRENCY,
        text_category=config.GROUP_TEXT_CATEGORY,
        voice_category=config.GROUP_VOICE_CATEGORY,
        staff_role=config.GROUP_STAFF_ROLE,
    )


async def setup_group_formation(bot: discord.Client, pool) -> GroupFormationManager:
    rest = RateLimitedClient(config.BOT_TOKEN or "", base_url=config.DISCORD_API_BASE, timeout=config.HTTP_TIMEOUT_SECONDS)
    store = DatabaseReactionStore(pool) if pool is not None else MemoryReactionStore()
    manager = GroupFormationManager(rest, store, settings_from_config())
    await manager.start()
    if manager.settings.expiry_seconds <= 0:
        logger.warning("Expiration des demandes désactivée (GROUP_EXPIRY_SECONDS=0)")
    bot.group_formation = manager  # type: ignore
    return manager
