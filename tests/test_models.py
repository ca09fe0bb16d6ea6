from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from core.groups.models import (
    VIEW_CHANNEL,
    OverwriteType,
    PendingConfirmation,
    PermissionOverwrite,
    slugify,
)

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def _entry(**overrides):
    values = dict(
        message_id=1, channel_id=2, guild_id=3, group_name='Alpha',
        required_user_ids=[10, 20], creator_id=1, expiry_seconds=0, now=NOW,
    )
    values.update(overrides)
    return PendingConfirmation.create(**values)


@pytest.mark.parametrize('raw, expected', [
    ('Team Alpha', 'team-alpha'),
    ('Alpha', 'alpha'),
    ('  Grupo   de\tTP  3 ', 'grupo-de-tp-3'),
    ('déjà-vu', 'déjà-vu'),
])
def test_slugify(raw, expected):
    assert slugify(raw) == expected


@pytest.mark.parametrize('raw', ['Team Alpha', '  A  B  ', 'x\ny z', 'already-slug'])
def test_slugify_is_idempotent(raw):
    assert slugify(slugify(raw)) == slugify(raw)


def test_completion_is_subset_containment():
    entry = _entry()
    assert not entry.is_confirmed([10])
    assert not entry.is_confirmed([])
    assert entry.is_confirmed([20, 10])
    assert entry.is_confirmed([10, 20, 10, 99, 1])


def test_string_ids_are_normalised():
    entry = _entry(required_user_ids=['10', '20'], creator_id='1')
    assert entry.required_user_ids == frozenset({10, 20})
    assert entry.is_confirmed({10, 20})


def test_participants_include_creator_once():
    entry = _entry()
    assert entry.participants() == [1, 10, 20]


def test_empty_required_rejected():
    with pytest.raises(ValueError):
        _entry(required_user_ids=[])


def test_creator_among_required_rejected():
    with pytest.raises(ValueError):
        _entry(required_user_ids=[1, 10])


def test_expiry():
    assert _entry().expires_at is None
    assert not _entry().is_expired(NOW + timedelta(days=365))
    entry = _entry(expiry_seconds=60)
    assert entry.expires_at == NOW + timedelta(seconds=60)
    assert not entry.is_expired(NOW + timedelta(seconds=59))
    assert entry.is_expired(NOW + timedelta(seconds=60))


def test_overwrite_payload_uses_string_bitfields():
    ow = PermissionOverwrite(1000, OverwriteType.ROLE, deny=VIEW_CHANNEL)
    assert ow.to_payload() == {'id': '1000', 'type': 0, 'allow': '0', 'deny': str(1 << 10)}
