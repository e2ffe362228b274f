"""Unit tests for SearchService."""
import pytest

from dropship_sync.db.catalog import CatalogRecord, InMemoryCatalog
from dropship_sync.errors.exceptions import HostNotAllowed
from dropship_sync.services.auth import TokenManager
from dropship_sync.services.feed_client import FeedClient
from dropship_sync.services.search import MAX_RESULTS, SearchService
from dropship_sync.services.sku_cache import SkuCache

from helpers import ALLOWED_HOSTS, make_feed_item


@pytest.fixture
def search_service(cache, store, supplier_api, activity_log) -> SearchService:
    tokens = TokenManager(cache, store, allowed_hosts=ALLOWED_HOSTS, transport=supplier_api.transport)
    feed_client = FeedClient(cache, store, tokens, allowed_hosts=ALLOWED_HOSTS, transport=supplier_api.transport)
    catalog = InMemoryCatalog([CatalogRecord(sku="ab-1")])
    return SearchService(feed_client, store, SkuCache(cache, catalog), activity_log)


class TestSearchService:
    """Tests for SearchService.search."""

    @pytest.mark.asyncio
    async def test_keyword_match_priced(self, search_service, configured_store):
        rows = await search_service.search("owl")

        assert len(rows) == 1
        row = rows[0]
        assert row.item.sku == "AB-1"
        assert row.item.stock == 12
        assert row.pricing.shipping == 3.99
        assert row.pricing.final == 13.62
        assert row.imported is True
        assert row.raw["name"] == "Ceramic Owl Mug"

    @pytest.mark.asyncio
    async def test_empty_keyword_lists_feed(self, search_service, configured_store):
        rows = await search_service.search("   ")
        assert [row.item.sku for row in rows] == ["AB-1", "AB-2"]
        assert [row.imported for row in rows] == [True, False]

    @pytest.mark.asyncio
    async def test_sku_only(self, search_service, configured_store):
        rows = await search_service.search("ab-2", sku_only=True)
        assert [row.item.sku for row in rows] == ["AB-2"]
        assert rows[0].item.price == 7.5

    @pytest.mark.asyncio
    async def test_no_match(self, search_service, configured_store):
        assert await search_service.search("zebra") == []

    @pytest.mark.asyncio
    async def test_results_capped(self, search_service, configured_store, supplier_api):
        supplier_api.set_feed([make_feed_item(f"S-{i}") for i in range(MAX_RESULTS + 20)])
        rows = await search_service.search("")
        assert len(rows) == MAX_RESULTS

    @pytest.mark.asyncio
    async def test_feed_error_logged_and_raised(self, search_service, seed_settings, activity_log):
        await seed_settings(api_base="https://elsewhere.example.com")
        with pytest.raises(HostNotAllowed):
            await search_service.search("owl")
        assert activity_log.entries[-1]["action"] == "search_error"
        assert activity_log.entries[-1]["data"] == {"error": "API host is not allowed."}

    @pytest.mark.asyncio
    async def test_unpriceable_item_skipped(self, search_service, configured_store, supplier_api):
        """Test an item whose price overflows is left out of the results."""
        supplier_api.set_feed([make_feed_item("BIG-1", price=1.7e308), make_feed_item("OK-1")])
        rows = await search_service.search("")
        assert [row.item.sku for row in rows] == ["OK-1"]
