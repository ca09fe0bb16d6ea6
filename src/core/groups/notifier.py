from __future__ import annotations

import logging
from typing import List, Optional
from urllib.parse import quote

from core.rest import RateLimitedClient

logger = logging.getLogger(__name__)

REACTORS_PAGE_SIZE = 100


def _emoji_path(emoji: str) -> str:
    # Emoji unicode ou `nom:id` pour un emoji custom, encodé dans le chemin
    return quote(emoji, safe=":")


class NotificationSender:
    """Envoi / édition de messages et gestion des réactions via le client REST."""

    def __init__(self, rest: RateLimitedClient):
        self.rest = rest

    async def send_message(self, channel_id: int, text: str) -> dict:
        data = await self.rest.request(
            "POST",
            f"channels/{channel_id}/messages",
            {"content": text, "allowed_mentions": {"parse": ["users"]}},
        )
        logger.info("Message envoyé dans %s (%s)", channel_id, (data or {}).get("id"))
        return data or {}

    async def edit_message(self, channel_id: int, message_id: int, text: str) -> dict:
        data = await self.rest.request(
            "PATCH",
            f"channels/{channel_id}/messages/{message_id}",
            {"content": text},
        )
        return data or {}

    async def add_self_reaction(self, channel_id: int, message_id: int, emoji: str) -> None:
        # 204 (corps vide) ou corps JSON : les deux valent succès
        await self.rest.request(
            "PUT",
            f"channels/{channel_id}/messages/{message_id}/reactions/{_emoji_path(emoji)}/@me",
        )

    async def fetch_reactors(self, channel_id: int, message_id: int, emoji: str) -> List[int]:
        """Liste complète (paginée) des utilisateurs ayant réagi avec `emoji`."""
        out: List[int] = []
        after: Optional[int] = None
        base = f"channels/{channel_id}/messages/{message_id}/reactions/{_emoji_path(emoji)}"
        while True:
            endpoint = f"{base}?limit={REACTORS_PAGE_SIZE}"
            if after is not None:
                endpoint += f"&after={after}"
            page = await self.rest.request("GET", endpoint) or []
            ids = [int(u["id"]) for u in page if isinstance(u, dict) and "id" in u]
            out.extend(ids)
            if len(page) < REACTORS_PAGE_SIZE or not ids:
                return out
            after = max(ids)


__all__ = ["NotificationSender"]
