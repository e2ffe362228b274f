"""Cached set of catalog SKUs for bulk existence checks.

The set lives under a key namespaced by a version marker. Dropping the
marker (``invalidate``) makes the next read build a fresh set under a new
namespace, and the old one simply expires.
"""
import re
import secrets
import string
from typing import Any, Iterable, Set

import structlog

from dropship_sync.db.catalog import Catalog
from dropship_sync.models.feed import SKU_PATTERN
from dropship_sync.services.cache import SKU_CACHE_VERSION_KEY, TTLCache

logger = structlog.get_logger(__name__)

VERSION_TTL_SECONDS = 24 * 60 * 60
SET_TTL_SECONDS = 5 * 60
MAX_CACHED_SKUS = 50_000
MAX_SKU_LENGTH = 100
VERSION_LENGTH = 12
_SKU_RE = re.compile(SKU_PATTERN)
_VERSION_ALPHABET = string.ascii_letters + string.digits


def is_valid_sku(value: Any) -> bool:
    return isinstance(value, str) and len(value) <= MAX_SKU_LENGTH and bool(_SKU_RE.match(value))


def verify_integrity(entries: Iterable[Any]) -> bool:
    """Whether every cached entry is a plausible SKU."""
    return all(is_valid_sku(entry) for entry in entries)


class SkuCache:
    """Uppercased catalog SKUs, rebuilt at most every five minutes.

    Usage:
        skus = await sku_cache.all_skus()
        if not skus:
            exists = await catalog.find_by_sku(sku) is not None
    """

    def __init__(self, cache: TTLCache, catalog: Catalog, max_skus: int = MAX_CACHED_SKUS):
        self._cache = cache
        self._catalog = catalog
        self._max_skus = max_skus

    async def _version(self) -> str:
        version = await self._cache.get(SKU_CACHE_VERSION_KEY)
        if isinstance(version, str) and version:
            return version
        version = "".join(secrets.choice(_VERSION_ALPHABET) for _ in range(VERSION_LENGTH))
        await self._cache.set(SKU_CACHE_VERSION_KEY, version, ttl_seconds=VERSION_TTL_SECONDS)
        return version

    async def all_skus(self) -> Set[str]:
        """Every catalog SKU, uppercased.

        Returns an empty set when the catalog holds more than ``max_skus``
        SKUs; callers then check existence per SKU instead.
        """
        total = await self._catalog.count_skus()
        if total > self._max_skus:
            logger.info("sku_cache_bypassed", sku_count=total, max_skus=self._max_skus)
            return set()

        key = f"skus:{await self._version()}"
        cached = await self._cache.get(key)
        if isinstance(cached, list):
            if verify_integrity(cached):
                return set(cached)
            logger.warning("sku_cache_integrity_failed", key=key)

        skus = set()
        for raw in await self._catalog.list_skus():
            sku = str(raw).strip().upper()
            if sku and is_valid_sku(sku):
                skus.add(sku)

        await self._cache.set(key, sorted(skus), ttl_seconds=SET_TTL_SECONDS)
        logger.debug("sku_cache_rebuilt", sku_count=len(skus))
        return skus

    async def invalidate(self) -> None:
        """Force the next ``all_skus`` call to rebuild from the catalog."""
        await self._cache.delete(SKU_CACHE_VERSION_KEY)
