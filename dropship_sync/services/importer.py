"""Import of operator-selected feed items into the catalog.

Every item is handled on its own: a malformed payload, a bad SKU or a
duplicate is recorded as an error message and the batch carries on.

Duplicate detection is optimistic. The cached SKU set answers the common
case without touching the catalog; SKUs not in that set are re-checked
against the catalog right before the write, and SKUs imported earlier in
the same batch are tracked locally. Two concurrent batches importing the
same new SKU can still both pass the check.
"""
import json
from typing import Any, List, Mapping, Optional, Sequence, Set

import structlog

from dropship_sync.db.catalog import Catalog
from dropship_sync.errors.exceptions import CatalogError, DuplicateSku, ItemInvalid
from dropship_sync.models.feed import FeedItem, ImportResult
from dropship_sync.models.settings import FeedSettings
from dropship_sync.services.activity_log import ActivityLog
from dropship_sync.services.catalog_writer import apply_feed_item, normalize_sku
from dropship_sync.services.extraction.fields import canonicalize
from dropship_sync.services.settings_store import SettingsStore
from dropship_sync.services.sku_cache import SkuCache

logger = structlog.get_logger(__name__)

MAX_IMPORT_ITEMS = 200
MAX_ITEM_BYTES = 64 * 1024


def decode_item(raw: Any) -> FeedItem:
    """Decode one submitted item.

    Args:
        raw: JSON text (str or UTF-8 bytes) or an already decoded mapping

    Returns:
        The item as a dict

    Raises:
        ItemInvalid: Wrong type, invalid UTF-8, over 64 KiB, or not a JSON object
    """
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, str):
        try:
            encoded = raw.encode("utf-8")
        except UnicodeEncodeError as e:
            raise ItemInvalid("Invalid UTF-8") from e
    elif isinstance(raw, (bytes, bytearray)):
        encoded = bytes(raw)
        try:
            encoded.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ItemInvalid("Invalid UTF-8") from e
    else:
        raise ItemInvalid("Invalid item type")

    if len(encoded) > MAX_ITEM_BYTES:
        raise ItemInvalid("Item too large", details={"bytes": len(encoded)})
    try:
        decoded = json.loads(encoded)
    except json.JSONDecodeError as e:
        raise ItemInvalid("Invalid item payload") from e
    if not isinstance(decoded, dict):
        raise ItemInvalid("Invalid item payload")
    return decoded


class ImportService:
    """Creates draft catalog records for selected feed items."""

    def __init__(
        self,
        catalog: Catalog,
        store: SettingsStore,
        sku_cache: SkuCache,
        activity_log: Optional[ActivityLog] = None,
    ):
        self._catalog = catalog
        self._store = store
        self._sku_cache = sku_cache
        self._activity_log = activity_log

    async def _is_duplicate(self, sku: str, cached: Set[str], batch: Set[str]) -> bool:
        if sku in batch or sku in cached:
            return True
        return await self._catalog.find_by_sku(sku) is not None

    async def _import_one(
        self,
        raw: Any,
        feed_settings: FeedSettings,
        cached: Set[str],
        batch: Set[str],
    ) -> str:
        item = decode_item(raw)
        sku = normalize_sku(canonicalize(item, feed_settings).sku)
        if await self._is_duplicate(sku, cached, batch):
            raise DuplicateSku(sku)
        await apply_feed_item(self._catalog, item, feed_settings)
        return sku

    async def import_items(self, raw_items: Sequence[Any]) -> ImportResult:
        """Import up to MAX_IMPORT_ITEMS items.

        Args:
            raw_items: Submitted items (JSON strings or mappings)

        Returns:
            ImportResult with the success count and one message per failed item
        """
        if not raw_items:
            return ImportResult(errors=["No items selected."])

        items = list(raw_items[:MAX_IMPORT_ITEMS])
        log = logger.bind(submitted=len(raw_items), processed=len(items))
        if len(raw_items) > MAX_IMPORT_ITEMS:
            log.info("import_batch_truncated", max_items=MAX_IMPORT_ITEMS)

        cached = await self._sku_cache.all_skus()
        feed_settings = await self._store.load()

        imported = 0
        errors: List[str] = []
        batch: Set[str] = set()
        for raw in items:
            try:
                sku = await self._import_one(raw, feed_settings, cached, batch)
            except (ItemInvalid, DuplicateSku, CatalogError) as e:
                errors.append(e.message)
                continue
            batch.add(sku)
            imported += 1

        if imported:
            await self._sku_cache.invalidate()
            if self._activity_log is not None:
                await self._activity_log.append("import", {"count": imported})

        log.info("import_completed", imported=imported, error_count=len(errors))
        return ImportResult(imported=imported, errors=errors)
