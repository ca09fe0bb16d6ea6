from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum, IntEnum
from typing import FrozenSet, Iterable, List, Optional

_WHITESPACE_RE = re.compile(r"\s+")

# Bits de permission Discord utilisés pour les overwrites
VIEW_CHANNEL = 1 << 10

# Types de salon Discord (API v10)
GUILD_TEXT = 0
GUILD_VOICE = 2
GUILD_CATEGORY = 4


def slugify(name: str) -> str:
    """Nom de salon : minuscules, espaces consécutifs remplacés par un seul tiret."""
    return _WHITESPACE_RE.sub("-", name.strip().lower())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConfirmationState(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    EXPIRED = "expired"


class OverwriteType(IntEnum):
    ROLE = 0
    MEMBER = 1


@dataclass(frozen=True)
class PendingConfirmation:
    """Demande de création de groupe en attente des réactions.

    required_user_ids:
        membres invités qui doivent tous réagir (jamais le créateur)
    creator_id:
        initiateur ; reçoit le rôle au succès sans avoir à réagir
    """

    message_id: int
    channel_id: int
    guild_id: int
    group_name: str
    required_user_ids: FrozenSet[int]
    creator_id: int
    created_at: datetime = field(default_factory=utcnow)
    expires_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "required_user_ids", frozenset(int(u) for u in self.required_user_ids))
        if not self.required_user_ids:
            raise ValueError("required_user_ids ne peut pas être vide")
        if self.creator_id in self.required_user_ids:
            raise ValueError("le créateur ne peut pas faire partie des membres requis")

    @classmethod
    def create(
        cls,
        *,
        message_id: int,
        channel_id: int,
        guild_id: int,
        group_name: str,
        required_user_ids: Iterable[int],
        creator_id: int,
        expiry_seconds: int = 0,
        now: Optional[datetime] = None,
    ) -> "PendingConfirmation":
        created = now or utcnow()
        expires = created + timedelta(seconds=expiry_seconds) if expiry_seconds > 0 else None
        return cls(
            message_id=int(message_id),
            channel_id=int(channel_id),
            guild_id=int(guild_id),
            group_name=group_name,
            required_user_ids=frozenset(int(u) for u in required_user_ids),
            creator_id=int(creator_id),
            created_at=created,
            expires_at=expires,
        )

    def is_confirmed(self, reactor_ids: Iterable[int]) -> bool:
        return self.required_user_ids <= set(reactor_ids)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utcnow()) >= self.expires_at

    def participants(self) -> List[int]:
        # Créateur en tête puis membres requis, sans doublon
        out = [self.creator_id]
        out.extend(sorted(u for u in self.required_user_ids if u != self.creator_id))
        return out


@dataclass(frozen=True)
class PermissionOverwrite:
    subject_id: int
    subject_type: OverwriteType
    allow: int = 0
    deny: int = 0

    def to_payload(self) -> dict:
        return {
            "id": str(self.subject_id),
            "type": int(self.subject_type),
            "allow": str(self.allow),
            "deny": str(self.deny),
        }


@dataclass
class ProvisionedGroup:
    role_id: int
    text_channel_id: int
    voice_channel_id: int
    assigned_user_ids: List[int] = field(default_factory=list)
    failed_user_ids: List[int] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed_user_ids


@dataclass(frozen=True)
class FormationSettings:
    """Paramètres du workflow (construits depuis `core.config`)."""

    confirm_emoji: str = "✅"
    poll_interval: float = 40.0
    expiry_seconds: int = 24 * 3600
    poll_concurrency: int = 4
    text_category: str = "grupos-de-tps"
    voice_category: str = "grupos-de-tps-voz"
    staff_role: Optional[str] = None
