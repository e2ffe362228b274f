"""Batched reconciliation of the local catalog against the supplier feed.

Run states:

    IDLE -> LOCKED -> FETCHING -> MATCHING -> BATCHING(n) -> DONE / FAILED

Only records whose SKU appears in the feed are touched, and only their
price, stock, title and description change. Each page's writes are final:
a run that fails midway leaves earlier pages updated.
"""
import time
from typing import Callable, Dict, List, Literal, Optional

import structlog

from dropship_sync.db.catalog import Catalog, CatalogRecord
from dropship_sync.errors.exceptions import (
    CatalogError,
    DropshipError,
    ItemInvalid,
    SyncError,
)
from dropship_sync.models.feed import FeedItem
from dropship_sync.models.settings import FeedSettings
from dropship_sync.models.sync_messages import (
    FieldChange,
    ProductChange,
    SyncResult,
    SyncState,
    SyncStatus,
    SyncStatusMessage,
)
from dropship_sync.services.activity_log import ActivityLog
from dropship_sync.services.cache import TTLCache
from dropship_sync.services.catalog_writer import apply_feed_item
from dropship_sync.services.feed_client import FeedClient, extract_products
from dropship_sync.services.settings_store import SettingsStore
from dropship_sync.services.sync_state import sync_lock, update_sync_status

logger = structlog.get_logger(__name__)

PAGE_SIZE = 400
SYNC_NOTE = "Matched by SKU (batched with progress)"


def index_by_sku(products: List[FeedItem]) -> Dict[str, FeedItem]:
    """Map uppercased SKU to feed item; later duplicates win."""
    by_sku: Dict[str, FeedItem] = {}
    for item in products:
        raw = item.get("sku")
        if isinstance(raw, bool) or not isinstance(raw, (str, int)):
            continue
        sku = str(raw).strip().upper()
        if sku:
            by_sku[sku] = item
    return by_sku


def diff_record(before: CatalogRecord, after: CatalogRecord) -> Dict[str, FieldChange]:
    """Price and stock changes between two snapshots of a record."""
    changed: Dict[str, FieldChange] = {}
    if float(after.price) != float(before.price):
        changed["price"] = FieldChange(from_=float(before.price), to=float(after.price))
    if int(after.stock) != int(before.stock):
        changed["stock"] = FieldChange(from_=int(before.stock), to=int(after.stock))
    return changed


class ReconciliationEngine:
    """Updates catalog price and stock from a fresh feed snapshot.

    Usage:
        engine = ReconciliationEngine(cache, catalog, feed_client, store, activity_log)
        result = await engine.run(triggered_by="scheduled")
    """

    def __init__(
        self,
        cache: TTLCache,
        catalog: Catalog,
        feed_client: FeedClient,
        store: SettingsStore,
        activity_log: ActivityLog,
        installation_id: str = "default",
        page_size: int = PAGE_SIZE,
        clock: Callable[[], float] = time.time,
    ):
        self._cache = cache
        self._catalog = catalog
        self._feed_client = feed_client
        self._store = store
        self._activity_log = activity_log
        self._installation_id = installation_id
        self._page_size = page_size
        self._clock = clock

    async def run(self, triggered_by: Literal["manual", "scheduled"] = "manual") -> SyncResult:
        """Run one reconciliation under the installation lock.

        Returns:
            SyncResult; ``status=lock_held`` with zero updates when another
            run holds the lock

        Raises:
            SyncError: The feed could not be fetched
        """
        log = logger.bind(triggered_by=triggered_by, installation_id=self._installation_id)

        async with sync_lock(self._cache, self._installation_id, clock=self._clock) as acquired:
            if not acquired:
                log.info("sync_skipped", reason="locked")
                await self._activity_log.append("sync_skipped", {"reason": "locked"})
                return SyncResult(status=SyncStatus.LOCK_HELD)

            status = await update_sync_status(
                self._cache, SyncStatusMessage.started(triggered_by)
            )
            log.info("sync_started")
            try:
                result = await self._reconcile(status, log)
            except Exception as e:
                await update_sync_status(self._cache, status, state=SyncState.FAILED)
                log.error("sync_failed", error=str(e), error_type=type(e).__name__)
                raise

        log.info("sync_completed", updated=result.updated, pages=result.pages)
        return result

    async def _reconcile(self, status: SyncStatusMessage, log) -> SyncResult:
        status = await update_sync_status(self._cache, status, state=SyncState.FETCHING)
        try:
            feed = await self._feed_client.fetch_feed(bypass_cache=True)
        except DropshipError as e:
            await self._activity_log.append("sync_error", {"error": e.message})
            raise SyncError(e.message, details={"cause": type(e).__name__}) from e

        products = extract_products(feed)
        if not products:
            await self._activity_log.append("sync", {"updated": 0, "note": "Feed empty"})
            await update_sync_status(self._cache, status, state=SyncState.DONE)
            log.info("sync_feed_empty")
            return SyncResult(status=SyncStatus.SUCCESS)

        status = await update_sync_status(self._cache, status, state=SyncState.MATCHING)
        by_sku = index_by_sku(products)
        feed_settings = await self._store.load()
        log.info("sync_feed_indexed", feed_items=len(products), feed_skus=len(by_sku))

        updated = 0
        changes: List[ProductChange] = []
        pages = 0
        offset = 0
        while True:
            records = await self._catalog.iter_sku_page(offset, self._page_size)
            pages += 1
            if not records:
                break

            status = await update_sync_status(
                self._cache, status, state=SyncState.BATCHING, batch=pages
            )
            for record in records:
                change = await self._reconcile_record(record, by_sku, feed_settings, log)
                if change is not None:
                    updated += 1
                    changes.append(change)

            await self._activity_log.append("sync_progress", {"batch": pages, "updated": updated})
            status = await update_sync_status(self._cache, status, updated=updated)
            log.debug("sync_page_completed", batch=pages, records=len(records), updated=updated)

            if len(records) < self._page_size:
                break
            offset += self._page_size

        await self._activity_log.append(
            "sync",
            {
                "updated": updated,
                "details": [change.to_report() for change in changes],
                "note": SYNC_NOTE,
            },
        )
        await update_sync_status(self._cache, status, state=SyncState.DONE, updated=updated)
        return SyncResult(
            status=SyncStatus.SUCCESS,
            updated=updated,
            changes=changes,
            pages=pages,
        )

    async def _reconcile_record(
        self,
        record: CatalogRecord,
        by_sku: Dict[str, FeedItem],
        feed_settings: FeedSettings,
        log,
    ) -> Optional[ProductChange]:
        item = by_sku.get(record.sku.strip().upper())
        if item is None or record.id is None:
            return None

        try:
            await apply_feed_item(self._catalog, item, feed_settings, existing_id=record.id)
        except (ItemInvalid, CatalogError) as e:
            log.warning("sync_record_skipped", product_id=record.id, error=e.message)
            return None

        after = await self._catalog.load(record.id)
        if after is None:
            return None
        changed = diff_record(record, after)
        if not changed:
            return None
        return ProductChange(product_id=record.id, sku=record.sku, changed=changed)
