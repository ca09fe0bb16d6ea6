from __future__ import annotations

import asyncio
import json
import logging

import pytest

from core.rest import (
    NotFound,
    RateLimited,
    RateLimitedClient,
    RemoteApiError,
    TransportError,
    parse_retry_after,
)

TOKEN = 'super-secret-token'


class _Response:
    def __init__(self, status: int, body=None):
        self.status = status
        if body is None:
            self._raw = b''
        elif isinstance(body, bytes):
            self._raw = body
        else:
            self._raw = json.dumps(body).encode()

    async def read(self):
        return self._raw

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class _Session:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


def _client(responses):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    session = _Session(responses)
    client = RateLimitedClient(TOKEN, session=session, sleep=fake_sleep)
    return client, session, sleeps


def test_success_returns_parsed_body_and_sends_auth_headers():
    client, session, sleeps = _client([_Response(200, {'id': '42'})])
    data = asyncio.run(client.request('post', '/channels/1/messages', {'content': 'hi'}))
    assert data == {'id': '42'}
    method, url, kwargs = session.calls[0]
    assert method == 'POST'
    assert url == 'https://discord.com/api/v10/channels/1/messages'
    assert kwargs['headers']['Authorization'] == f'Bot {TOKEN}'
    assert kwargs['headers']['Content-Type'].startswith('application/json')
    assert kwargs['json'] == {'content': 'hi'}
    assert sleeps == []


def test_no_content_returns_none():
    client, _, _ = _client([_Response(204)])
    assert asyncio.run(client.request('PUT', 'channels/1/messages/2/reactions/x/@me')) is None


def test_single_429_waits_retry_after_then_succeeds():
    client, session, sleeps = _client([
        _Response(429, {'retry_after': 2, 'global': False}),
        _Response(200, {'ok': True}),
    ])
    assert asyncio.run(client.request('GET', 'guilds/1/roles')) == {'ok': True}
    assert sleeps == [2.0]
    assert client.retry_count == 1
    assert len(session.calls) == 2


def test_fourth_429_raises_after_three_retries():
    client, session, sleeps = _client([_Response(429, {'retry_after': 0.5})] * 4)
    with pytest.raises(RateLimited) as info:
        asyncio.run(client.request('GET', 'guilds/1/channels'))
    assert sleeps == [0.5, 0.5, 0.5]
    assert client.retry_count == 3
    assert len(session.calls) == 4
    assert info.value.attempts == 4


def test_fractional_retry_after_is_honored():
    client, _, sleeps = _client([_Response(429, {'retry_after': 0.25}), _Response(200, [])])
    asyncio.run(client.request('GET', 'x'))
    assert sleeps == [0.25]


@pytest.mark.parametrize('body', [None, {}, {'retry_after': 'soon'}, b'not json', {'retry_after': None}])
def test_retry_after_defaults_to_one_second(body):
    assert parse_retry_after(body if not isinstance(body, bytes) else body.decode()) == 1.0


def test_other_error_status_is_not_retried():
    client, session, sleeps = _client([_Response(403, {'message': 'Missing Permissions', 'code': 50013})])
    with pytest.raises(RemoteApiError) as info:
        asyncio.run(client.request('POST', 'guilds/1/roles', {}))
    assert info.value.status == 403
    assert info.value.body['code'] == 50013
    assert len(session.calls) == 1
    assert sleeps == []


def test_404_raises_not_found():
    client, _, _ = _client([_Response(404, {'message': 'Unknown Message'})])
    with pytest.raises(NotFound):
        asyncio.run(client.request('GET', 'channels/1/messages/2/reactions/x'))


def test_timeout_surfaces_as_transport_error():
    client, _, _ = _client([asyncio.TimeoutError()])
    with pytest.raises(TransportError):
        asyncio.run(client.request('GET', 'guilds/1/channels'))


def test_logs_never_contain_token(caplog):
    client, _, _ = _client([_Response(429, {'retry_after': 0}), _Response(500, {'message': 'boom'})])
    with caplog.at_level(logging.DEBUG, logger='core.rest'):
        with pytest.raises(RemoteApiError):
            asyncio.run(client.request('GET', 'guilds/1/channels'))
    assert caplog.records
    assert all(TOKEN not in r.getMessage() for r in caplog.records)
    assert any('guilds/1/channels' in r.getMessage() for r in caplog.records)


def test_audit_reason_header_is_quoted():
    client, session, _ = _client([_Response(200, {'id': '1'})])
    asyncio.run(client.request('POST', 'guilds/1/roles', {}, reason='Groupe Équipe'))
    assert session.calls[0][2]['headers']['X-Audit-Log-Reason'] == 'Groupe %C3%89quipe'


def test_empty_token_is_rejected():
    with pytest.raises(ValueError):
        RateLimitedClient('')


def test_payload_keyword_is_sent_as_json_body():
    client, session, _ = _client([_Response(200, {'id': '7', 'name': 'Alpha'})])
    data = asyncio.run(client.request('POST', 'guilds/1/roles', payload={'name': 'Alpha'}))
    assert data == {'id': '7', 'name': 'Alpha'}
    assert session.calls[0][2]['json'] == {'name': 'Alpha'}
