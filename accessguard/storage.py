"""
Shared key-value storage for the response cache and usage counters.

The store owns expiry: the core never runs timers of its own. Two backends
are provided, an in-process MemoryStore and a RedisStore for deployments
where several worker processes must share counters.
"""

import hashlib
import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

import redis

from .models import ReputationRecord, UsageStats

logger = logging.getLogger(__name__)

KEY_PREFIX = 'accessguard:'
MINUTE_COUNTER_TTL = 120
CACHE_TTL = 3600

# Failures of a shared store degrade counting and caching, never the lookup
STORE_ERRORS = (redis.exceptions.RedisError, OSError)


class KeyValueStore(ABC):
    """Minimal key-value interface required by the core."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value or None if missing or expired."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store a value, optionally expiring after ttl seconds."""
        pass

    @abstractmethod
    def incr(self, key: str, ttl: Optional[int] = None) -> int:
        """
        Atomically increment an integer counter.

        Args:
            key: Counter key
            ttl: Expiry applied when the counter is created

        Returns:
            The counter value after the increment
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass


class MemoryStore(KeyValueStore):
    """Thread-safe in-process store with lazy expiry."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._data: Dict[str, Tuple[Any, Optional[float]]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def _live(self, key: str) -> Optional[Tuple[Any, Optional[float]]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return entry

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._live(key)
            return entry[0] if entry else None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        with self._lock:
            expires_at = self._clock() + ttl if ttl else None
            self._data[key] = (value, expires_at)

    def incr(self, key: str, ttl: Optional[int] = None) -> int:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                expires_at = self._clock() + ttl if ttl else None
                value = 1
            else:
                value = int(entry[0]) + 1
                expires_at = entry[1]
            self._data[key] = (value, expires_at)
            return value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


class RedisStore(KeyValueStore):
    """Store backed by Redis, shared between worker processes."""

    def __init__(self, client: Optional[redis.Redis] = None, url: Optional[str] = None):
        if client is None:
            if not url:
                raise ValueError("RedisStore needs a client or a URL")
            client = redis.Redis.from_url(url, decode_responses=True)
        self.client = client

    def get(self, key: str) -> Optional[Any]:
        return self.client.get(key)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        if ttl:
            self.client.set(key, value, ex=ttl)
        else:
            self.client.set(key, value)

    def incr(self, key: str, ttl: Optional[int] = None) -> int:
        value = self.client.incr(key)
        if value == 1 and ttl:
            self.client.expire(key, ttl)
        return int(value)

    def delete(self, key: str) -> None:
        self.client.delete(key)


def create_store(redis_url: Optional[str] = None) -> KeyValueStore:
    """
    Build the store for this process.

    Args:
        redis_url: Redis URL, or None for an in-memory store

    Returns:
        RedisStore when a URL is given, MemoryStore otherwise
    """
    if redis_url:
        logger.info("Using Redis for provider counters and cache")
        return RedisStore(url=redis_url)
    return MemoryStore()


class UsageCounter:
    """
    Usage accounting for one provider.

    Keeps a calendar-month request count, a per-minute request count that
    expires on its own, and lifetime success/failure tallies.
    """

    def __init__(self, store: KeyValueStore, slug: str,
                 now: Callable[[], datetime] = datetime.now):
        self.store = store
        self.slug = slug
        self._now = now

    def monthly_key(self) -> str:
        return f"{KEY_PREFIX}usage:{self.slug}:{self._now().strftime('%Y-%m')}"

    def minute_key(self) -> str:
        return f"{KEY_PREFIX}minute:{self.slug}:{self._now().strftime('%Y-%m-%d-%H-%M')}"

    def stats_key(self, outcome: str) -> str:
        return f"{KEY_PREFIX}stats:{self.slug}:{outcome}"

    def record(self, success: bool) -> None:
        """Count one request attempt against every window."""
        try:
            self.store.incr(self.monthly_key())
            self.store.incr(self.minute_key(), ttl=MINUTE_COUNTER_TTL)
        except STORE_ERRORS as e:
            logger.warning(f"Could not count request for {self.slug}: {e}")
        self.record_outcome(success)

    def record_outcome(self, success: bool) -> None:
        """Tally a success or failure without counting a request."""
        try:
            self.store.incr(self.stats_key('success' if success else 'failure'))
        except STORE_ERRORS as e:
            logger.warning(f"Could not tally outcome for {self.slug}: {e}")

    def monthly_count(self) -> int:
        return self._read(self.monthly_key())

    def minute_count(self) -> int:
        return self._read(self.minute_key())

    def stats(self) -> UsageStats:
        return UsageStats(
            monthly_count=self.monthly_count(),
            success_count=self._read(self.stats_key('success')),
            failure_count=self._read(self.stats_key('failure')),
        )

    def _read(self, key: str) -> int:
        try:
            value = self.store.get(key)
        except STORE_ERRORS as e:
            logger.warning(f"Could not read counter {key}: {e}")
            return 0
        try:
            return max(0, int(value or 0))
        except (TypeError, ValueError):
            logger.warning(f"Corrupt counter value at {key}, treating as 0")
            return 0


class ResponseCache:
    """Short-lived cache of normalized provider answers, keyed by hash(ip)."""

    def __init__(self, store: KeyValueStore, slug: str, ttl: int = CACHE_TTL):
        self.store = store
        self.slug = slug
        self.ttl = ttl

    def key(self, ip: str) -> str:
        digest = hashlib.md5(ip.encode('utf-8')).hexdigest()
        return f"{KEY_PREFIX}cache:{self.slug}:{digest}"

    def get(self, ip: str) -> Optional[ReputationRecord]:
        """Cached record for ip, None on a miss or when the store fails."""
        try:
            raw = self.store.get(self.key(ip))
        except STORE_ERRORS as e:
            logger.warning(f"Cache read failed for {self.slug}, treating as miss: {e}")
            return None
        if raw is None:
            return None
        try:
            return ReputationRecord.from_dict(json.loads(raw))
        except (TypeError, ValueError) as e:
            logger.warning(f"Dropping unreadable cache entry for {self.slug}: {e}")
            self._discard(ip)
            return None

    def set(self, ip: str, record: ReputationRecord) -> None:
        try:
            self.store.set(self.key(ip), json.dumps(record.to_dict()), ttl=self.ttl)
        except STORE_ERRORS as e:
            logger.warning(f"Cache write failed for {self.slug}: {e}")

    def _discard(self, ip: str) -> None:
        try:
            self.store.delete(self.key(ip))
        except STORE_ERRORS as e:
            logger.warning(f"Cache delete failed for {self.slug}: {e}")
