"""Operator search over the cached supplier feed."""
from typing import List, Optional

import structlog

from dropship_sync.errors.exceptions import DropshipError, ItemInvalid
from dropship_sync.models.feed import SearchRow
from dropship_sync.services.activity_log import ActivityLog
from dropship_sync.services.extraction.fields import canonicalize
from dropship_sync.services.feed_client import FeedClient, extract_products
from dropship_sync.services.matching.fuzzy import rank
from dropship_sync.services.pricing import price_breakdown
from dropship_sync.services.settings_store import SettingsStore
from dropship_sync.services.sku_cache import SkuCache

logger = structlog.get_logger(__name__)

MAX_KEYWORD_LENGTH = 200
MAX_RESULTS = 500


class SearchService:
    """Ranks feed items for a keyword and prices each result."""

    def __init__(
        self,
        feed_client: FeedClient,
        store: SettingsStore,
        sku_cache: SkuCache,
        activity_log: Optional[ActivityLog] = None,
    ):
        self._feed_client = feed_client
        self._store = store
        self._sku_cache = sku_cache
        self._activity_log = activity_log

    async def search(self, keyword: str, sku_only: bool = False) -> List[SearchRow]:
        """Search the feed.

        An empty keyword lists the feed in its own order.

        Args:
            keyword: Operator search text (trimmed, capped at 200 characters)
            sku_only: Exact SKU match instead of fuzzy scoring

        Returns:
            Up to MAX_RESULTS rows, best match first

        Raises:
            DropshipError: Feed could not be retrieved
        """
        keyword = (keyword or "").strip()[:MAX_KEYWORD_LENGTH]
        log = logger.bind(keyword_length=len(keyword), sku_only=sku_only)

        try:
            feed = await self._feed_client.fetch_feed()
        except DropshipError as e:
            log.warning("search_error", error=e.message, error_type=type(e).__name__)
            if self._activity_log is not None:
                await self._activity_log.append("search_error", {"error": e.message})
            raise

        products = extract_products(feed)
        if keyword:
            products = rank(products, keyword, sku_only=sku_only)
        products = products[:MAX_RESULTS]
        if not products:
            log.info("search_completed", results=0)
            return []

        existing = await self._sku_cache.all_skus()
        feed_settings = await self._store.load()

        rows = []
        for product in products:
            canonical = canonicalize(product, feed_settings)
            try:
                pricing = price_breakdown(canonical.price, canonical.weight, feed_settings)
            except ItemInvalid as e:
                log.warning("search_row_skipped", sku=canonical.sku, error=e.message)
                continue
            rows.append(
                SearchRow(
                    item=canonical,
                    pricing=pricing,
                    imported=bool(canonical.sku_key) and canonical.sku_key in existing,
                    raw=product,
                )
            )

        log.info("search_completed", results=len(rows))
        return rows
