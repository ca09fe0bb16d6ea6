from __future__ import annotations

import asyncio
import random

import pytest

from core.groups.models import GUILD_TEXT, GUILD_VOICE, VIEW_CHANNEL, FormationSettings
from core.groups.provisioner import GroupProvisioner, build_overwrites, unique_ids
from core.rest import RemoteApiError
from fakes import GUILD_ID, TEXT_CATEGORY_ID, VOICE_CATEGORY_ID, FakeDiscord


def _provisioner(api, **settings):
    return GroupProvisioner(api, FormationSettings(**settings), rng=random.Random(7))


def test_provision_creates_role_channels_and_assigns_everyone():
    api = FakeDiscord()
    group = asyncio.run(_provisioner(api).provision(GUILD_ID, 'Team Alpha', [1, 10, 20]))

    role = api.roles_created[0]
    assert role['name'] == 'Team Alpha'
    assert role['permissions'] == '0'
    assert 0 <= role['color'] <= 0xFFFFFF

    text, voice = api.channels_created
    assert text['name'] == voice['name'] == 'team-alpha'
    assert text['type'] == GUILD_TEXT and voice['type'] == GUILD_VOICE
    assert text['parent_id'] == str(TEXT_CATEGORY_ID)
    assert voice['parent_id'] == str(VOICE_CATEGORY_ID)
    everyone, member_role = text['permission_overwrites']
    assert everyone == {'id': str(GUILD_ID), 'type': 0, 'allow': '0', 'deny': str(VIEW_CHANNEL)}
    assert member_role['id'] == str(group.role_id) and member_role['allow'] == str(VIEW_CHANNEL)

    assert api.assigned[group.role_id] == {1, 10, 20}
    assert group.assigned_user_ids == [1, 10, 20]
    assert group.complete


def test_participants_are_deduplicated():
    api = FakeDiscord()
    group = asyncio.run(_provisioner(api).provision(GUILD_ID, 'Alpha', [1, 10, 1, 10]))
    puts = [c for c in api.calls if c[0] == 'PUT']
    assert len(puts) == 2
    assert group.assigned_user_ids == [1, 10]


def test_missing_category_creates_channel_at_root():
    api = FakeDiscord(channels=[{'id': '501', 'name': 'grupos-de-tps', 'type': 4},
                                {'id': '600', 'name': 'Grupos-De-Tps-Voz', 'type': 4}])
    asyncio.run(_provisioner(api).provision(GUILD_ID, 'Alpha', [1, 10]))
    text, voice = api.channels_created
    assert text['parent_id'] == '501'
    # Correspondance sensible à la casse : la catégorie vocale n'est pas trouvée
    assert 'parent_id' not in voice


def test_category_name_must_be_a_category():
    api = FakeDiscord(channels=[{'id': '700', 'name': 'grupos-de-tps', 'type': 0}])
    asyncio.run(_provisioner(api).provision(GUILD_ID, 'Alpha', [1, 10]))
    assert all('parent_id' not in c for c in api.channels_created)


def test_staff_role_gets_view_access():
    api = FakeDiscord(roles=[{'id': str(GUILD_ID), 'name': '@everyone'}, {'id': '77', 'name': 'Docentes'}])
    asyncio.run(_provisioner(api, staff_role='Docentes').provision(GUILD_ID, 'Alpha', [1, 10]))
    overwrites = api.channels_created[0]['permission_overwrites']
    assert {'id': '77', 'type': 0, 'allow': str(VIEW_CHANNEL), 'deny': '0'} in overwrites


def test_unknown_staff_role_is_skipped():
    api = FakeDiscord()
    asyncio.run(_provisioner(api, staff_role='Docentes').provision(GUILD_ID, 'Alpha', [1, 10]))
    assert len(api.channels_created[0]['permission_overwrites']) == 2


def test_role_creation_failure_aborts():
    api = FakeDiscord()
    api.fail('POST', f'guilds/{GUILD_ID}/roles', RemoteApiError(403, {'code': 50013}))
    with pytest.raises(RemoteApiError):
        asyncio.run(_provisioner(api).provision(GUILD_ID, 'Alpha', [1, 10]))
    assert api.channels_created == []


def test_channel_creation_failure_aborts_without_rollback():
    api = FakeDiscord()
    api.fail('POST', f'guilds/{GUILD_ID}/channels', RemoteApiError(400, {'message': 'bad'}))
    with pytest.raises(RemoteApiError):
        asyncio.run(_provisioner(api).provision(GUILD_ID, 'Alpha', [1, 10]))
    assert len(api.roles_created) == 1
    assert api.assigned == {}


def test_partial_role_assignment_failure_does_not_abort_others():
    api = FakeDiscord()
    api.fail('PUT', '/members/10/', RemoteApiError(404, {'message': 'Unknown Member'}))
    group = asyncio.run(_provisioner(api).provision(GUILD_ID, 'Alpha', [1, 10, 20]))
    assert api.assigned[group.role_id] == {1, 20}
    assert group.failed_user_ids == [10]
    assert not group.complete


def test_build_overwrites_ignores_staff_equal_to_guild():
    assert len(build_overwrites(5, 6, staff_role_id=5)) == 2
    assert len(build_overwrites(5, 6, staff_role_id=7)) == 3


def test_unique_ids_preserves_order():
    assert unique_ids(['3', 1, 3, 2, 1]) == [3, 1, 2]
