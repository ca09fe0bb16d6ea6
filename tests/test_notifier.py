from __future__ import annotations

import asyncio

from core.groups.notifier import REACTORS_PAGE_SIZE, NotificationSender
from fakes import FakeDiscord


def test_fetch_reactors_follows_pagination():
    api = FakeDiscord()
    api.reactions[5] = list(range(1, 251))
    reactors = asyncio.run(NotificationSender(api).fetch_reactors(7, 5, '✅'))
    assert reactors == list(range(1, 251))
    gets = [c[1] for c in api.calls if c[0] == 'GET']
    assert len(gets) == 3
    assert f'limit={REACTORS_PAGE_SIZE}' in gets[0]
    assert gets[1].endswith('&after=100')


def test_fetch_reactors_encodes_emoji():
    api = FakeDiscord()
    asyncio.run(NotificationSender(api).fetch_reactors(7, 5, '✅'))
    assert '/reactions/%E2%9C%85?' in api.calls[0][1]


def test_add_self_reaction_accepts_empty_response():
    api = FakeDiscord()
    assert asyncio.run(NotificationSender(api).add_self_reaction(7, 5, '✅')) is None
    assert api.self_reactions == [(7, 5, '✅')]
    assert api.calls[0][1].endswith('/@me')


def test_send_message_returns_message():
    api = FakeDiscord()
    message = asyncio.run(NotificationSender(api).send_message(7, 'bonjour'))
    assert message['id']
    assert api.messages == [(7, 'bonjour')]
