"""
redis_client.py — Optional Redis connection for the AI cache and rate limiters.

get_redis() returns None when REDIS_URL is unset or the server does not answer
at startup; callers then keep their state in per-process dicts.
"""

import os
import logging
from urllib.parse import urlparse, urlunparse

import redis

logger = logging.getLogger(__name__)

_redis_client = None
_redis_checked = False


def get_redis():
    """The process-wide client, connected on first call, or None."""
    global _redis_client, _redis_checked

    if _redis_checked:
        return _redis_client

    _redis_checked = True
    url = os.getenv('REDIS_URL', '').strip()

    if not url:
        logger.info("REDIS_URL not set — AI cache and rate limits are per-process")
        return None

    try:
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=3,
            socket_timeout=3,
        )
        client.ping()
        logger.info("Redis connected: %s", _redact_url(url))
        _redis_client = client
    except redis.RedisError as exc:
        logger.warning("Redis unavailable at %s (%s) — AI cache and rate limits are per-process",
                       _redact_url(url), exc)
        _redis_client = None

    return _redis_client


def _redact_url(url: str) -> str:
    p = urlparse(url)
    if p.password:
        netloc = f"{p.username or ''}:***@{p.hostname}" + (f":{p.port}" if p.port else "")
        return urlunparse(p._replace(netloc=netloc))
    return url
