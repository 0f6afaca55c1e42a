from __future__ import annotations

import logging
from contextlib import contextmanager

import redis
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

logger = logging.getLogger(__name__)


class PlayLockError(Exception):
    """Raised when the play lock cannot be acquired."""


LOCK_PREFIX = getattr(settings, "SCRATCHCARD_LOCK_PREFIX", "scratchcard:play:")
LOCK_TIMEOUT = getattr(settings, "SCRATCHCARD_LOCK_TIMEOUT", 10)
LOCK_WAIT = getattr(settings, "SCRATCHCARD_LOCK_WAIT", 5)


def _redis_client() -> redis.Redis:
    redis_url = getattr(settings, "REDIS_URL", None)
    if not redis_url:
        raise ImproperlyConfigured("REDIS_URL is not configured in settings.")
    return redis.Redis.from_url(redis_url, decode_responses=True)


def lock_name(user_id: str, card_id: str) -> str:
    return f"{LOCK_PREFIX}{card_id}:{user_id}"


@contextmanager
def play_lock(user_id: str, card_id: str, client: redis.Redis | None = None):
    """Serialize play attempts by one user on one card."""
    if client is None:
        client = _redis_client()
    lock = client.lock(
        lock_name(user_id, card_id),
        timeout=LOCK_TIMEOUT,
        blocking_timeout=LOCK_WAIT,
    )
    try:
        acquired = lock.acquire(blocking=True)
    except redis.RedisError as exc:
        raise PlayLockError(f"Failed to acquire play lock: {exc}") from exc
    if not acquired:
        raise PlayLockError("A play for this card is already in progress. Please try again.")
    try:
        yield
    finally:
        try:
            lock.release()
        except redis.exceptions.LockError:
            # Lock expired server-side before we released it.
            pass
        except redis.RedisError as exc:
            # The lock times out server-side; the play itself already finished.
            logger.warning("Failed to release play lock for %s on %s: %s", user_id, card_id, exc)
