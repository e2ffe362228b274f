"""Operator-facing activity log.

Sync reports, import counts and errors are appended here so an operator
can review them later. Entries are redacted and size-limited before they
are stored, and only the newest LOG_CAP entries are retained.

Implementations:
    - RedisActivityLog: Redis list (RPUSH + LTRIM)
    - MemoryActivityLog: bounded deque, used by tests and local runs
"""
import json
import time
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Deque, Dict, List

import structlog
from redis.asyncio import Redis

logger = structlog.get_logger(__name__)

LOG_CAP = 800
MAX_ENTRY_CHARS = 100_000
SENSITIVE_KEYS = frozenset({"password", "token", "api_key", "secret", "auth"})
REDACTED = "[REDACTED]"


def redact(data: Any) -> Any:
    """Replace values stored under sensitive keys, at any depth."""
    if isinstance(data, dict):
        return {
            key: REDACTED if str(key).lower() in SENSITIVE_KEYS else redact(value)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [redact(value) for value in data]
    return data


def build_entry(action: str, data: Dict[str, Any], now: float) -> Dict[str, Any]:
    """Produce the stored form of an activity entry."""
    safe = redact(json.loads(json.dumps(data, default=str)))
    if len(json.dumps(safe)) > MAX_ENTRY_CHARS:
        safe = {"note": "Log entry truncated"}
    return {"ts": int(now), "action": action.strip()[:100], "data": safe}


class ActivityLog(ABC):
    """Append-only, capped activity log."""

    def __init__(self, cap: int = LOG_CAP):
        self.cap = cap

    async def append(self, action: str, data: Dict[str, Any] | None = None) -> Dict[str, Any]:
        """Redact, size-check and store an entry.

        Args:
            action: Short action name (e.g. "sync", "import", "sync_error")
            data: Structured payload

        Returns:
            The stored entry
        """
        entry = build_entry(action, data or {}, time.time())
        await self._persist(entry)
        logger.info("activity_logged", action=entry["action"])
        return entry

    @abstractmethod
    async def _persist(self, entry: Dict[str, Any]) -> None:
        """Store an entry and evict the oldest beyond the cap."""

    @abstractmethod
    async def recent(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Newest entries first."""

    @abstractmethod
    async def keep_latest(self, count: int) -> int:
        """Drop all but the newest ``count`` entries. Returns entries removed."""


class RedisActivityLog(ActivityLog):
    """Activity log stored in a Redis list."""

    def __init__(self, redis: Redis, key: str = "dropship:activity", cap: int = LOG_CAP):
        super().__init__(cap)
        self._redis = redis
        self._key = key

    async def _persist(self, entry: Dict[str, Any]) -> None:
        await self._redis.rpush(self._key, json.dumps(entry))
        await self._redis.ltrim(self._key, -self.cap, -1)

    async def recent(self, limit: int = 100) -> List[Dict[str, Any]]:
        raw = await self._redis.lrange(self._key, -limit, -1)
        entries = []
        for item in reversed(raw):
            try:
                entries.append(json.loads(item))
            except json.JSONDecodeError:
                logger.warning("activity_entry_undecodable")
        return entries

    async def keep_latest(self, count: int) -> int:
        total = await self._redis.llen(self._key)
        if total <= count:
            return 0
        if count <= 0:
            await self._redis.delete(self._key)
            return total
        await self._redis.ltrim(self._key, -count, -1)
        return total - count


class MemoryActivityLog(ActivityLog):
    """In-process activity log."""

    def __init__(self, cap: int = LOG_CAP):
        super().__init__(cap)
        self.entries: Deque[Dict[str, Any]] = deque(maxlen=cap)

    async def _persist(self, entry: Dict[str, Any]) -> None:
        self.entries.append(entry)

    async def recent(self, limit: int = 100) -> List[Dict[str, Any]]:
        return list(reversed(self.entries))[:limit]

    async def keep_latest(self, count: int) -> int:
        removed = max(0, len(self.entries) - count)
        for _ in range(removed):
            self.entries.popleft()
        return removed

    def actions(self) -> List[str]:
        """Actions in insertion order."""
        return [entry["action"] for entry in self.entries]
