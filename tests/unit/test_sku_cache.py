"""Unit tests for the versioned SKU set cache."""
import pytest

from dropship_sync.db.catalog import CatalogRecord, InMemoryCatalog
from dropship_sync.services.cache import SKU_CACHE_VERSION_KEY
from dropship_sync.services.sku_cache import (
    SET_TTL_SECONDS,
    SkuCache,
    is_valid_sku,
    verify_integrity,
)


class CountingCatalog(InMemoryCatalog):
    """InMemoryCatalog that counts full SKU listings."""

    def __init__(self, records=None):
        super().__init__(records)
        self.listings = 0

    async def list_skus(self):
        self.listings += 1
        return await super().list_skus()


@pytest.fixture
def counting_catalog():
    return CountingCatalog(
        [CatalogRecord(sku="ab-1"), CatalogRecord(sku="AB-2"), CatalogRecord(sku="bad sku"), CatalogRecord(sku="")]
    )


class TestIntegrity:
    """Tests for SKU plausibility checks."""

    def test_is_valid_sku(self):
        assert is_valid_sku("AB-1_x")
        assert not is_valid_sku("AB 1")
        assert not is_valid_sku("A" * 101)
        assert not is_valid_sku(5)

    def test_verify_integrity(self):
        assert verify_integrity(["A", "B-2"])
        assert not verify_integrity(["A", "<script>"])


class TestSkuCache:
    """Tests for SkuCache."""

    @pytest.mark.asyncio
    async def test_uppercased_valid_skus(self, cache, counting_catalog):
        sku_cache = SkuCache(cache, counting_catalog)
        assert await sku_cache.all_skus() == {"AB-1", "AB-2"}

    @pytest.mark.asyncio
    async def test_served_from_cache_until_expiry(self, cache, clock, counting_catalog):
        sku_cache = SkuCache(cache, counting_catalog)
        await sku_cache.all_skus()
        await sku_cache.all_skus()
        assert counting_catalog.listings == 1

        clock.advance(SET_TTL_SECONDS)
        await sku_cache.all_skus()
        assert counting_catalog.listings == 2

    @pytest.mark.asyncio
    async def test_invalidate_rebuilds_under_new_version(self, cache, counting_catalog):
        sku_cache = SkuCache(cache, counting_catalog)
        await sku_cache.all_skus()
        old_version = await cache.get(SKU_CACHE_VERSION_KEY)

        await counting_catalog.save(CatalogRecord(sku="AB-3"))
        await sku_cache.invalidate()

        assert await sku_cache.all_skus() == {"AB-1", "AB-2", "AB-3"}
        new_version = await cache.get(SKU_CACHE_VERSION_KEY)
        assert new_version != old_version
        assert len(new_version) == 12

    @pytest.mark.asyncio
    async def test_tampered_set_rebuilt(self, cache, counting_catalog):
        """Test a cached set containing an implausible entry is discarded."""
        sku_cache = SkuCache(cache, counting_catalog)
        await sku_cache.all_skus()
        version = await cache.get(SKU_CACHE_VERSION_KEY)
        await cache.set(f"skus:{version}", ["AB-1", "'; DROP TABLE"])

        assert await sku_cache.all_skus() == {"AB-1", "AB-2"}
        assert counting_catalog.listings == 2

    @pytest.mark.asyncio
    async def test_bypassed_for_large_catalogs(self, cache):
        catalog = CountingCatalog([CatalogRecord(sku=f"S-{i}") for i in range(6)])
        sku_cache = SkuCache(cache, catalog, max_skus=5)

        assert await sku_cache.all_skus() == set()
        assert catalog.listings == 0
        assert await cache.get(SKU_CACHE_VERSION_KEY) is None
