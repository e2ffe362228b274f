"""Unit tests for the catalog collaborator and feed item writes."""
import pytest

from dropship_sync.db import load_catalog
from dropship_sync.db.catalog import (
    STATUS_DRAFT,
    STATUS_PUBLISHED,
    CatalogRecord,
    InMemoryCatalog,
)
from dropship_sync.errors.exceptions import CatalogError, ItemInvalid
from dropship_sync.models.settings import FeedSettings
from dropship_sync.services.catalog_writer import (
    META_SOURCE_FLAG,
    META_SOURCE_SKU,
    MAX_TITLE_LENGTH,
    apply_feed_item,
    clean_text,
    normalize_sku,
    sanitize_description,
)

from helpers import make_feed_item


class TestInMemoryCatalog:
    """Tests for InMemoryCatalog."""

    @pytest.mark.asyncio
    async def test_find_by_sku_case_insensitive(self):
        catalog = InMemoryCatalog([CatalogRecord(sku="ab-1")])
        assert await catalog.find_by_sku(" AB-1 ") == 1
        assert await catalog.find_by_sku("AB-2") is None
        assert await catalog.find_by_sku("") is None

    @pytest.mark.asyncio
    async def test_load_returns_copy(self):
        catalog = InMemoryCatalog([CatalogRecord(sku="A", price=1.0)])
        record = await catalog.load(1)
        record.price = 99.0
        assert (await catalog.load(1)).price == 1.0

    @pytest.mark.asyncio
    async def test_save_unknown_id(self):
        catalog = InMemoryCatalog()
        with pytest.raises(CatalogError):
            await catalog.save(CatalogRecord(id=42, sku="A"))

    @pytest.mark.asyncio
    async def test_pages_skip_records_without_sku(self):
        catalog = InMemoryCatalog(
            [CatalogRecord(sku="A"), CatalogRecord(sku=""), CatalogRecord(sku="B"), CatalogRecord(sku="C")]
        )
        page = await catalog.iter_sku_page(1, 5)
        assert [record.sku for record in page] == ["B", "C"]
        assert await catalog.count_skus() == 3
        assert sorted(await catalog.list_skus()) == ["A", "B", "C"]


class TestLoadCatalog:
    """Tests for load_catalog."""

    def test_default_factory(self):
        assert isinstance(load_catalog("dropship_sync.db.catalog:InMemoryCatalog"), InMemoryCatalog)

    @pytest.mark.parametrize(
        "path",
        ["no-colon", "dropship_sync.db.catalog:Missing", "not_a_module_xyz:Factory", "dropship_sync.db.catalog:CatalogRecord"],
    )
    def test_bad_factory(self, path):
        with pytest.raises(CatalogError):
            load_catalog(path)


class TestTextCleaning:
    """Tests for title and description cleaning."""

    def test_clean_text(self):
        assert clean_text("  <b>Owl</b>\n\tMug ") == "Owl Mug"

    def test_sanitize_description(self):
        html = '<p onclick="x()">Hand <b>painted</b><script>alert(1)</script></p><br/><img src="y">'
        assert sanitize_description(html) == "<p>Hand painted</p><br/>"

    def test_sanitize_keeps_lists(self):
        html = '<ul class="a"><li>One</li><li>Two</li></ul>'
        assert sanitize_description(html) == "<ul><li>One</li><li>Two</li></ul>"


class TestNormalizeSku:
    """Tests for normalize_sku."""

    def test_uppercases(self):
        assert normalize_sku(" ab_1-x ") == "AB_1-X"

    def test_empty(self):
        with pytest.raises(ItemInvalid) as exc_info:
            normalize_sku("   ")
        assert exc_info.value.message == "Item has no SKU."

    @pytest.mark.parametrize("sku", ["AB 1", "AB/1", "AB;DROP", "ÄB-1"])
    def test_invalid_characters(self, sku):
        with pytest.raises(ItemInvalid) as exc_info:
            normalize_sku(sku)
        assert exc_info.value.message == "SKU contains invalid characters."


class TestApplyFeedItem:
    """Tests for apply_feed_item."""

    @pytest.mark.asyncio
    async def test_creates_draft(self, catalog):
        item = make_feed_item("ab-1", price=10, weight=0.05, qty=4, description="<p>Nice</p>")
        record_id = await apply_feed_item(catalog, item, FeedSettings())

        record = await catalog.load(record_id)
        assert record.status == STATUS_DRAFT
        assert record.sku == "AB-1"
        assert record.title == "Product ab-1"
        assert record.description == "<p>Nice</p>"
        assert record.price == 18.78
        assert record.stock == 4
        assert record.meta == {META_SOURCE_FLAG: 1, META_SOURCE_SKU: "AB-1"}

    @pytest.mark.asyncio
    async def test_updates_existing_keeps_status(self):
        catalog = InMemoryCatalog([CatalogRecord(sku="AB-1", status=STATUS_PUBLISHED, price=1.0)])
        record_id = await apply_feed_item(catalog, make_feed_item("AB-1", price=10, qty=2), FeedSettings())

        assert record_id == 1
        record = await catalog.load(1)
        assert record.status == STATUS_PUBLISHED
        assert record.stock == 2
        assert record.price > 1.0

    @pytest.mark.asyncio
    async def test_title_fallbacks(self, catalog):
        long_name = "x" * (MAX_TITLE_LENGTH + 50)
        first = await apply_feed_item(catalog, {"sku": "A", "name": long_name}, FeedSettings())
        second = await apply_feed_item(catalog, {"sku": "B", "name": "<br>"}, FeedSettings())

        assert len((await catalog.load(first)).title) == MAX_TITLE_LENGTH
        assert (await catalog.load(second)).title == "Untitled"

    @pytest.mark.asyncio
    async def test_missing_record_id(self, catalog):
        with pytest.raises(CatalogError):
            await apply_feed_item(catalog, make_feed_item("A"), FeedSettings(), existing_id=7)

    @pytest.mark.asyncio
    async def test_invalid_sku_writes_nothing(self, catalog):
        with pytest.raises(ItemInvalid):
            await apply_feed_item(catalog, {"name": "No SKU"}, FeedSettings())
        assert catalog.saves == 0
