"""
Redis-backed deduplication of PortPro webhook events.

Keys are derived from (event type, reference, timestamp) and expire after
24 hours. Every read path fails open: if Redis is down we would rather
process an event twice than drop it.
"""
import logging
import re
import time
from typing import Optional

import redis
from django.conf import settings

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = 'portpro:dedup:'
DEFAULT_TTL_SECONDS = 24 * 60 * 60

_UNSAFE_KEY_CHARS = re.compile(r'[^a-zA-Z0-9:_-]')


def generate_key(
    event_type: Optional[str],
    reference_number: Optional[str] = None,
    timestamp: Optional[str] = None
) -> str:
    """
    Build the deduplication key for an event.

    An empty event type yields a key starting with ':'; callers rely on
    that shape, so it is left as is.
    """
    raw = f"{event_type or ''}:{reference_number or 'unknown'}:{timestamp or ''}"
    return _UNSAFE_KEY_CHARS.sub('_', raw)


def get_redis_client() -> Optional[redis.Redis]:
    """Return a client for settings.REDIS_URL, or None when unset."""
    url = getattr(settings, 'REDIS_URL', '')
    if not url:
        return None
    return redis.Redis.from_url(url, socket_timeout=5, socket_connect_timeout=5)


class IdempotencyStore:
    """Tracks processed event keys in Redis with a TTL."""

    def __init__(self, client: Optional[redis.Redis], prefix: str = DEFAULT_PREFIX,
                 ttl: int = DEFAULT_TTL_SECONDS):
        self.client = client
        self.prefix = prefix
        self.ttl = ttl

    @classmethod
    def from_settings(cls) -> 'IdempotencyStore':
        return cls(
            get_redis_client(),
            prefix=getattr(settings, 'DEDUP_KEY_PREFIX', DEFAULT_PREFIX),
            ttl=getattr(settings, 'DEDUP_TTL_SECONDS', DEFAULT_TTL_SECONDS),
        )

    @property
    def configured(self) -> bool:
        return self.client is not None

    def _full_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def is_duplicate(self, key: str) -> bool:
        """Return True if the key was already processed. False on store errors."""
        if not self.configured:
            logger.warning("Idempotency store not configured, skipping duplicate check")
            return False
        try:
            return bool(self.client.exists(self._full_key(key)))
        except redis.RedisError as e:
            logger.error(f"Duplicate check failed for {key}, failing open: {e}")
            return False

    def mark_processed(self, key: str) -> bool:
        if not self.configured:
            return False
        try:
            self.client.set(self._full_key(key), int(time.time() * 1000), ex=self.ttl)
            logger.debug(f"Marked event {key} as processed")
            return True
        except redis.RedisError as e:
            logger.error(f"Failed to mark event {key} as processed: {e}")
            return False

    def claim(self, key: str) -> bool:
        """
        Atomically reserve a key with SET NX.

        Returns True when this caller owns the event and should process it,
        False when another delivery already claimed it. Store errors fail
        open and return True.
        """
        if not self.configured:
            return True
        try:
            claimed = self.client.set(
                self._full_key(key), int(time.time() * 1000), ex=self.ttl, nx=True
            )
            return bool(claimed)
        except redis.RedisError as e:
            logger.error(f"Claim failed for {key}, failing open: {e}")
            return True

    def remove_marker(self, key: str) -> bool:
        """Delete a key so the event can be reprocessed."""
        if not self.configured:
            return False
        try:
            self.client.delete(self._full_key(key))
            logger.info(f"Removed processed marker for {key}")
            return True
        except redis.RedisError as e:
            logger.error(f"Failed to remove marker {key}: {e}")
            return False

    def _scan_keys(self):
        return self.client.scan_iter(match=f"{self.prefix}*", count=100)

    def stats(self) -> dict:
        if not self.configured:
            return {'configured': False, 'key_count': 0}
        try:
            key_count = sum(1 for _ in self._scan_keys())
        except redis.RedisError as e:
            logger.error(f"Failed to count dedup keys: {e}")
            key_count = 0
        return {'configured': True, 'key_count': key_count}

    def cleanup_keys_without_ttl(self) -> int:
        """Delete prefixed keys that somehow lost their expiry. Returns the count deleted."""
        if not self.configured:
            return 0
        deleted = 0
        try:
            for full_key in self._scan_keys():
                if self.client.ttl(full_key) == -1:
                    self.client.delete(full_key)
                    deleted += 1
        except redis.RedisError as e:
            logger.error(f"Dedup key cleanup failed after {deleted} deletions: {e}")
        if deleted:
            logger.info(f"Cleaned up {deleted} dedup keys without TTL")
        return deleted
