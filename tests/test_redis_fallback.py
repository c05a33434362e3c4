"""A configured Redis that errors degrades to the in-memory stores."""
from __future__ import annotations

import asyncio
import json
import logging
from types import SimpleNamespace

import pytest
import redis

import auth
import flows


class BrokenRedis:
    """Every command fails as if the server went away."""

    def _fail(self, *args, **kwargs):
        raise redis.ConnectionError('Connection refused')

    get = setex = pipeline = zadd = expire = _fail


@pytest.fixture
def broken_redis(monkeypatch):
    monkeypatch.setattr(flows, 'get_redis', lambda: BrokenRedis())
    monkeypatch.setattr(auth, 'get_redis', lambda: BrokenRedis())
    flows.clear_cache()
    auth._user_requests.clear()
    auth._login_attempts.clear()
    yield
    flows.clear_cache()
    auth._user_requests.clear()
    auth._login_attempts.clear()


def test_cache_falls_back_to_memory(broken_redis, caplog):
    caplog.set_level(logging.WARNING, logger='flows')
    flows._set_cached('k1', {'narrative': 'cached'})
    assert flows._get_cached('k1') == {'narrative': 'cached'}
    assert flows._get_cached('missing') is None
    assert 'falling back' in caplog.text


def test_flow_still_cached_when_redis_fails(broken_redis, monkeypatch):
    calls = []

    async def create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(content=[SimpleNamespace(type='text', text=json.dumps({'narrative': 'Once.'}))])

    monkeypatch.setattr(flows, 'anthropic_client', SimpleNamespace(messages=SimpleNamespace(create=create)))

    first = asyncio.run(flows.generate_trip_narrative('details', 'preps'))
    second = asyncio.run(flows.generate_trip_narrative('details', 'preps'))
    assert first.narrative == second.narrative == 'Once.'
    assert len(calls) == 1


def test_user_rate_limit_falls_back_to_memory(broken_redis, monkeypatch):
    monkeypatch.setitem(auth.RATE_LIMIT_RULES, 'image', (1, 600))

    assert auth.check_user_rate_limit(3, 'image') == (True, 0)
    allowed, retry_after = auth.check_user_rate_limit(3, 'image')
    assert allowed is False
    assert retry_after > 0


def test_login_limiter_falls_back_to_memory(broken_redis):
    for _ in range(auth.LOGIN_MAX_ATTEMPTS):
        assert auth._check_login_rate_limit('10.0.0.1') is True
        auth._record_login_failure('10.0.0.1')
    assert auth._check_login_rate_limit('10.0.0.1') is False
    assert auth._check_login_rate_limit('10.0.0.2') is True
