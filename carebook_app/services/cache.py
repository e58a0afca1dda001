"""Short-TTL cache in front of the availability resolver.

Entries are keyed by ``(doctor, generation, day)``. Every successful admission
bumps the doctor's generation, which retires all of that doctor's date keys at
once; a reader that computed its slots before the bump stores them under the
old generation, where nobody will look again.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any

import redis
from cachetools import TTLCache
from flask import Flask

logger = logging.getLogger(__name__)

KEY_PREFIX = "availability"
LOCAL_MAXSIZE = 4096


class _LocalStore:
    """``memory://`` backend for a single worker process.

    Entries live in a ``cachetools.TTLCache``; generations never expire. An
    invalidation here is invisible to other processes, so multi-worker
    deployments need ``redis://``.
    """

    def __init__(self, ttl_seconds: int, maxsize: int = LOCAL_MAXSIZE) -> None:
        self._entries: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl_seconds)
        self._generations: dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            if key in self._generations:
                return str(self._generations[key])
            return self._entries.get(key)

    def setex(self, key: str, ttl: int, value: str) -> None:
        with self._lock:
            self._entries[key] = value

    def incr(self, key: str) -> int:
        with self._lock:
            self._generations[key] = self._generations.get(key, 0) + 1
            return self._generations[key]

    def scan_iter(self, match: str):
        prefix = match.rstrip("*")
        with self._lock:
            keys = [key for key in self._entries.keys() if key.startswith(prefix)]
        return iter(keys)

    def delete(self, *keys: str) -> int:
        with self._lock:
            return sum(1 for key in keys if self._entries.pop(key, None) is not None)


class AvailabilityCache:
    """Availability cache with an injected TTL and explicit invalidation."""

    def __init__(self, uri: str | None = None, ttl_seconds: int = 120) -> None:
        self.uri = uri or "memory://"
        self.ttl_seconds = ttl_seconds
        self._client: Any = None

    def init_app(self, app: Flask) -> None:
        self.uri = app.config.get("AVAILABILITY_CACHE_URI", "memory://")
        self.ttl_seconds = int(app.config.get("AVAILABILITY_CACHE_TTL", 120))
        self._client = None
        app.extensions["availability_cache"] = self

    @property
    def is_local(self) -> bool:
        return self.uri.startswith("memory://")

    def _get_client(self):
        if self._client is None:
            if self.is_local:
                self._client = _LocalStore(self.ttl_seconds)
            else:
                self._client = redis.Redis.from_url(self.uri)
        return self._client

    @staticmethod
    def _generation_key(doctor_id: str) -> str:
        return f"{KEY_PREFIX}:{doctor_id}:gen"

    @staticmethod
    def _entry_key(doctor_id: str, generation: int, day: str) -> str:
        return f"{KEY_PREFIX}:{doctor_id}:{generation}:{day}"

    def generation(self, doctor_id: str) -> int | None:
        """Current generation for a doctor, or ``None`` if the store is unreachable."""
        try:
            raw = self._get_client().get(self._generation_key(doctor_id))
        except redis.RedisError as exc:
            logger.warning("Availability cache unavailable: %s", exc)
            return None
        return int(raw or 0)

    def get(self, doctor_id: str, day: str) -> list[dict[str, Any]] | None:
        generation = self.generation(doctor_id)
        if generation is None:
            return None
        key = self._entry_key(doctor_id, generation, day)
        try:
            raw = self._get_client().get(key)
        except redis.RedisError as exc:
            logger.warning("Availability cache get failed for %s: %s", key, exc)
            return None
        if raw is None:
            logger.debug("Cache MISS: %s", key)
            return None
        logger.debug("Cache HIT: %s", key)
        return json.loads(raw)

    def set(self, doctor_id: str, day: str, slots: list[dict[str, Any]], generation: int | None) -> bool:
        """Store slots computed while ``generation`` was current."""
        if generation is None:
            return False
        key = self._entry_key(doctor_id, generation, day)
        try:
            self._get_client().setex(key, self.ttl_seconds, json.dumps(slots))
        except redis.RedisError as exc:
            logger.warning("Availability cache set failed for %s: %s", key, exc)
            return False
        return True

    def invalidate(self, doctor_id: str) -> None:
        """Retire every cached date for ``doctor_id``."""
        client = self._get_client()
        gen_key = self._generation_key(doctor_id)
        try:
            client.incr(gen_key)
            stale = [
                key
                for key in client.scan_iter(match=f"{KEY_PREFIX}:{doctor_id}:*")
                if (key.decode() if isinstance(key, bytes) else key) != gen_key
            ]
            if stale:
                client.delete(*stale)
        except redis.RedisError as exc:
            logger.error("Availability cache invalidation failed for %s: %s", doctor_id, exc)
            raise
        logger.debug("Cache INVALIDATE: doctor=%s", doctor_id)
