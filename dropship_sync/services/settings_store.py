"""Persistence of operator feed settings."""
from typing import Any, List, Mapping, Optional, Tuple

import structlog
from pydantic import ValidationError

from dropship_sync.models.settings import FeedSettings
from dropship_sync.services.activity_log import ActivityLog
from dropship_sync.services.cache import (
    FEED_CACHE_KEY,
    SETTINGS_KEY,
    SKU_CACHE_VERSION_KEY,
    TOKEN_CACHE_KEY,
    TTLCache,
)
from dropship_sync.services.crypto import SecretCipher

logger = structlog.get_logger(__name__)


class SettingsStore:
    """Loads and saves FeedSettings under a single cache key (no TTL).

    The password is encrypted before it is written and decrypted on load,
    so callers always see plain text. Saving drops every cache that was
    derived from the previous settings: the bearer token, the feed
    snapshot and the SKU cache version marker.
    """

    def __init__(
        self,
        cache: TTLCache,
        cipher: SecretCipher,
        activity_log: Optional[ActivityLog] = None,
    ):
        self._cache = cache
        self._cipher = cipher
        self._activity_log = activity_log

    async def load(self) -> FeedSettings:
        """Return the stored settings, or defaults when nothing valid is stored."""
        stored = await self._cache.get(SETTINGS_KEY)
        if not isinstance(stored, dict):
            return FeedSettings()

        data = dict(stored)
        data["password"] = self._cipher.decrypt(str(data.get("password") or ""))
        try:
            return FeedSettings(**data)
        except ValidationError as e:
            logger.warning("stored_settings_invalid", error_count=e.error_count())
            return FeedSettings()

    async def save(self, raw: Mapping[str, Any]) -> Tuple[FeedSettings, List[str]]:
        """Validate submitted values against the current settings and persist them.

        Args:
            raw: Submitted form values

        Returns:
            Tuple of (saved settings, validation error messages)
        """
        current = await self.load()
        updated, errors = current.apply_update(raw)

        stored = updated.model_dump()
        stored["password"] = self._cipher.encrypt(updated.password)
        await self._cache.set(SETTINGS_KEY, stored)

        for key in (TOKEN_CACHE_KEY, FEED_CACHE_KEY, SKU_CACHE_VERSION_KEY):
            await self._cache.delete(key)

        logger.info("settings_saved", error_count=len(errors))
        if self._activity_log is not None:
            await self._activity_log.append("settings_saved", {"errors": errors})
        return updated, errors
