"""
cache/store.py -- Redis-backed session store: one live token pair per user.

Each user owns exactly one slot made of two keys:

    auth:accessToken:<user_id>    access token string, TTL = access lifetime
    auth:refreshToken:<user_id>   refresh token string, TTL = refresh lifetime

replace() overwrites both keys in one MULTI/EXEC pipeline. Whatever pair was
there before becomes unreachable immediately, even if it has not expired --
that overwrite IS the at-most-one-live-session invariant. Nothing is revoked
actively; superseded tokens simply stop matching.

Usage:
    sessions = SessionStore.from_url("redis://localhost:6379/0", timeout=5.0)
    sessions.replace(42, pair)
    sessions.current_access_token(42)   # str or None on miss / TTL expiry
    sessions.close()

Deadlines are fixed per store at construction: from_url() sets the socket
and connect timeouts on the client, and every command shares them. There is
no per-call deadline. redis.RedisError (including TimeoutError and
ConnectionError) never escapes this module; it is wrapped as StoreError.
"""

from __future__ import annotations

import logging
from typing import Optional

import redis

from core.errors import StoreError
from core.models import TokenPair

logger = logging.getLogger("usergate.cache")

_ACCESS_KEY = "auth:accessToken:{user_id}"
_REFRESH_KEY = "auth:refreshToken:{user_id}"


class SessionStore:
    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, redis_url: str, timeout: float = 5.0) -> "SessionStore":
        """Build a store over a pooled client with bounded socket timeouts."""
        client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
        )
        return cls(client)

    @staticmethod
    def access_key(user_id: int) -> str:
        return _ACCESS_KEY.format(user_id=user_id)

    @staticmethod
    def refresh_key(user_id: int) -> str:
        return _REFRESH_KEY.format(user_id=user_id)

    def replace(self, user_id: int, pair: TokenPair) -> None:
        """Make pair the only live session for user_id, superseding any previous one."""
        try:
            with self._client.pipeline(transaction=True) as pipe:
                pipe.set(self.access_key(user_id), pair.access_token, ex=pair.access_token_expires_in)
                pipe.set(self.refresh_key(user_id), pair.refresh_token, ex=pair.refresh_token_expires_in)
                pipe.execute()
        except redis.RedisError as exc:
            raise StoreError(f"write session for user {user_id}: {exc}") from exc
        logger.debug("Session slot replaced for user %d", user_id)

    def current_access_token(self, user_id: int) -> Optional[str]:
        """Return the live access token for user_id, or None on miss or TTL expiry."""
        return self._get(self.access_key(user_id))

    def current_refresh_token(self, user_id: int) -> Optional[str]:
        return self._get(self.refresh_key(user_id))

    def _get(self, key: str) -> Optional[str]:
        try:
            return self._client.get(key)
        except redis.RedisError as exc:
            raise StoreError(f"read {key.rsplit(':', 1)[0]}: {exc}") from exc

    def ping(self) -> bool:
        """Return True if redis answers PING."""
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            logger.warning("Session store ping failed", exc_info=True)
            return False

    def close(self) -> None:
        self._client.close()
