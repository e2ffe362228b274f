"""Reconciliation lock and status tracking.

This module provides:
- A per-installation run lock (timestamp value, 30 minute TTL)
- The ``sync_lock`` async context manager that always releases it
- Status get/update helpers for observers of a running sync
"""
import hashlib
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

import structlog
from pydantic import ValidationError
from redis.exceptions import RedisError

from dropship_sync.models.sync_messages import SyncState, SyncStatusMessage
from dropship_sync.services.cache import SYNC_STATUS_KEY, TTLCache

logger = structlog.get_logger(__name__)

# Lock TTL (30 minutes) - auto-expires so a crashed run cannot block forever
SYNC_LOCK_TTL_SECONDS = 30 * 60


def lock_key_for(installation_id: str) -> str:
    """Cache key of the run lock for one installation."""
    digest = hashlib.md5(installation_id.encode("utf-8")).hexdigest()[:16]
    return f"sync:lock:{digest}"


async def acquire_sync_lock(
    cache: TTLCache,
    key: str,
    stamp: float,
    ttl_seconds: int = SYNC_LOCK_TTL_SECONDS,
) -> bool:
    """Try to take the run lock.

    The lock value is the acquisition timestamp. A lock older than
    ``ttl_seconds`` that the backend has not expired yet is taken over.

    Args:
        cache: Shared cache
        key: Lock key (see lock_key_for)
        stamp: Current Unix time, stored as the lock value
        ttl_seconds: Lock lifetime

    Returns:
        True when the lock is now held by the caller
    """
    if await cache.add(key, stamp, ttl_seconds=ttl_seconds):
        return True

    holder = await cache.get(key)
    if isinstance(holder, (int, float)) and not isinstance(holder, bool):
        if stamp - holder < ttl_seconds:
            logger.info("sync_lock_denied", lock_age_seconds=round(stamp - holder, 1))
            return False

    logger.warning("sync_lock_stale_taken_over", previous=holder)
    await cache.set(key, stamp, ttl_seconds=ttl_seconds)
    return True


async def release_sync_lock(cache: TTLCache, key: str, stamp: float) -> bool:
    """Release the lock only if it still holds our timestamp."""
    released = await cache.delete_if_equals(key, stamp)
    if not released:
        logger.warning("sync_lock_not_owned")
    return released


@asynccontextmanager
async def sync_lock(
    cache: TTLCache,
    installation_id: str,
    clock: Callable[[], float] = time.time,
    ttl_seconds: int = SYNC_LOCK_TTL_SECONDS,
) -> AsyncIterator[bool]:
    """Hold the installation's run lock for the body of an ``async with``.

    Yields whether the lock was acquired. When it was, it is released on
    every exit path, including exceptions raised by the body.

    Usage:
        async with sync_lock(cache, settings.installation_id) as acquired:
            if not acquired:
                return
            ...
    """
    key = lock_key_for(installation_id)
    stamp = clock()
    acquired = await acquire_sync_lock(cache, key, stamp, ttl_seconds)
    try:
        yield acquired
    finally:
        if acquired:
            await release_sync_lock(cache, key, stamp)
            logger.debug("sync_lock_released")


async def get_sync_status(cache: TTLCache) -> SyncStatusMessage:
    """Current sync status; idle when nothing (valid) is stored."""
    try:
        data = await cache.get(SYNC_STATUS_KEY)
    except RedisError as e:
        logger.error("get_sync_status_failed", error=str(e))
        return SyncStatusMessage(state=SyncState.IDLE)

    if not isinstance(data, dict):
        return SyncStatusMessage(state=SyncState.IDLE)
    try:
        return SyncStatusMessage(**data)
    except ValidationError as e:
        logger.error("get_sync_status_failed", error=str(e))
        return SyncStatusMessage(state=SyncState.IDLE)


async def update_sync_status(
    cache: TTLCache,
    status: SyncStatusMessage,
    **changes: object,
) -> SyncStatusMessage:
    """Store ``status`` with ``changes`` applied and return the new status.

    Status is informational: a storage failure is logged and does not
    interrupt the sync.
    """
    updated = status.model_copy(update=changes)
    try:
        await cache.set(SYNC_STATUS_KEY, updated.model_dump(mode="json"))
    except RedisError as e:
        logger.error("update_sync_status_failed", error=str(e), state=updated.state.value)
        return updated
    logger.debug("sync_status_updated", state=updated.state.value, batch=updated.batch)
    return updated
