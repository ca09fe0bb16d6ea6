from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, Optional, Set

from core.rest import RestError
from views import groups as groups_view
from .models import ConfirmationState, FormationSettings, PendingConfirmation, ProvisionedGroup, utcnow
from .notifier import NotificationSender
from .provisioner import GroupProvisioner

logger = logging.getLogger(__name__)


class ConfirmationPoller:
    """Planificateur des vérifications de réactions, propre à chaque instance.

    Chaque tick traite une copie des demandes en attente, en parallèle borné
    (`poll_concurrency`) : un appel ralenti par un rate limit ne retarde pas les autres groupes.
    Transitions : PENDING -> CONFIRMED (provisioning en tâche de fond) | EXPIRED.
    """

    def __init__(
        self,
        store,
        notifier: NotificationSender,
        provisioner: GroupProvisioner,
        settings: FormationSettings,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.notifier = notifier
        self.provisioner = provisioner
        self.settings = settings
        self.clock = clock
        self._task: Optional[asyncio.Task] = None
        self._provisioning: Set[asyncio.Task] = set()
        self._semaphore = asyncio.Semaphore(settings.poll_concurrency)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="group-confirmation-poller")
        logger.info("Surveillance des confirmations démarrée (intervalle %ss)", self.settings.poll_interval)

    async def stop(self):
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.info("Surveillance des confirmations arrêtée")
        await self.wait_idle()

    async def wait_idle(self):
        """Attend la fin des provisionings lancés par les ticks précédents."""
        while self._provisioning:
            await asyncio.gather(*list(self._provisioning), return_exceptions=True)

    async def _run(self):
        while True:
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001
                logger.exception("Erreur tick confirmations")
            await asyncio.sleep(self.settings.poll_interval)

    async def tick(self) -> Dict[int, ConfirmationState]:
        pending = await self.store.list_pending()
        if not pending:
            return {}
        states = await asyncio.gather(*(self._guarded(entry) for entry in pending))
        outcome = {entry.message_id: state for entry, state in zip(pending, states)}
        logger.debug("Tick confirmations: %s", outcome)
        return outcome

    async def _guarded(self, entry: PendingConfirmation) -> ConfirmationState:
        async with self._semaphore:
            try:
                return await self.check(entry)
            except Exception:  # noqa: BLE001
                # Une entrée en échec n'interrompt jamais les autres
                logger.exception("Erreur vérification demande %s", entry.message_id)
                return ConfirmationState.PENDING

    async def check(self, entry: PendingConfirmation) -> ConfirmationState:
        expired = entry.is_expired(self.clock())
        try:
            reactors = set(
                await self.notifier.fetch_reactors(entry.channel_id, entry.message_id, self.settings.confirm_emoji)
            )
        except (RestError, ValueError, KeyError) as exc:
            # Erreur d'API ou réponse mal formée : l'expiration reste appliquée
            logger.warning("Réactions indisponibles pour %s (%s), tick ignoré", entry.message_id, exc)
            if expired:
                return await self._expire(entry)
            return ConfirmationState.PENDING

        if entry.is_confirmed(reactors):
            # Le retrait sert de verrou : un seul appelant lance le provisioning
            if not await self.store.remove(entry.message_id):
                return ConfirmationState.CONFIRMED
            logger.info("Groupe '%s' confirmé par tous les membres (%s)", entry.group_name, entry.message_id)
            task = asyncio.create_task(self._provision(entry), name=f"provision-{entry.message_id}")
            self._provisioning.add(task)
            task.add_done_callback(self._provisioning.discard)
            return ConfirmationState.CONFIRMED

        if expired:
            return await self._expire(entry)
        return ConfirmationState.PENDING

    async def _expire(self, entry: PendingConfirmation) -> ConfirmationState:
        if not await self.store.remove(entry.message_id):
            return ConfirmationState.EXPIRED
        logger.info("Demande '%s' expirée (%s)", entry.group_name, entry.message_id)
        text = groups_view.build_expired(entry.group_name)
        try:
            await self.notifier.edit_message(entry.channel_id, entry.message_id, text)
        except RestError:
            logger.debug("Impossible d'éditer la demande expirée %s", entry.message_id, exc_info=True)
        try:
            await self.notifier.send_message(entry.channel_id, text)
        except RestError:
            logger.exception("Echec notification d'expiration %s", entry.message_id)
        return ConfirmationState.EXPIRED

    async def _provision(self, entry: PendingConfirmation) -> Optional[ProvisionedGroup]:
        try:
            group = await self.provisioner.provision(entry.guild_id, entry.group_name, entry.participants())
        except Exception:  # noqa: BLE001
            # Pas de retour à PENDING ni de retry : le groupe reste partiel
            logger.exception("Echec provisioning du groupe '%s' (%s)", entry.group_name, entry.message_id)
            try:
                await self.notifier.send_message(entry.channel_id, groups_view.build_failure(entry.group_name))
            except RestError:
                logger.exception("Echec notification d'échec %s", entry.message_id)
            return None
        try:
            await self.notifier.send_message(
                entry.channel_id, groups_view.build_success(entry.group_name, group.text_channel_id)
            )
            if group.failed_user_ids:
                await self.notifier.send_message(
                    entry.channel_id, groups_view.build_partial(entry.group_name, group.failed_user_ids)
                )
        except RestError:
            logger.exception("Echec annonce du groupe '%s'", entry.group_name)
        logger.info("Groupe '%s' provisionné: %s", entry.group_name, group)
        return group


__all__ = ["ConfirmationPoller"]
