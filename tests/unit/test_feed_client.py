"""Unit tests for FeedClient and feed envelope handling."""
import pytest

from dropship_sync.errors.exceptions import (
    FeedFailure,
    FeedTooLarge,
    HostNotAllowed,
    HttpError,
    InvalidEndpoint,
    InvalidFeedFormat,
)
from dropship_sync.services.auth import TokenManager
from dropship_sync.services.cache import FEED_CACHE_KEY, TOKEN_CACHE_KEY
from dropship_sync.services.feed_client import (
    FEED_CACHE_TTL_SECONDS,
    MAX_FEED_BYTES,
    FeedClient,
    extract_products,
    validate_endpoint,
)

from helpers import ALLOWED_HOSTS, FEED_URL


@pytest.fixture
def feed_client(cache, store, supplier_api) -> FeedClient:
    tokens = TokenManager(cache, store, allowed_hosts=ALLOWED_HOSTS, transport=supplier_api.transport)
    return FeedClient(cache, store, tokens, allowed_hosts=ALLOWED_HOSTS, transport=supplier_api.transport)


class TestValidateEndpoint:
    """Tests for validate_endpoint."""

    def test_strips_leading_slash(self):
        assert validate_endpoint("/rest/feed?page=1") == "rest/feed?page=1"

    @pytest.mark.parametrize(
        "endpoint",
        [
            "",
            "   ",
            "rest/../admin",
            "rest//feed",
            "rest%2Ffeed",
            "rest/feed<script>",
            "a" * 513,
        ],
    )
    def test_rejected(self, endpoint):
        with pytest.raises(InvalidEndpoint) as exc_info:
            validate_endpoint(endpoint)
        assert exc_info.value.message == "Invalid endpoint format."


class TestExtractProducts:
    """Tests for extract_products."""

    def test_data_envelope(self):
        assert extract_products({"data": [{"sku": "A"}]}) == [{"sku": "A"}]

    def test_items_envelope(self):
        assert extract_products({"items": [{"sku": "A"}]}) == [{"sku": "A"}]

    def test_bare_list_drops_non_mappings(self):
        assert extract_products([{"sku": "A"}, "junk", 3, None]) == [{"sku": "A"}]

    @pytest.mark.parametrize("feed", [{}, {"data": "nope"}, "text", 5, None])
    def test_unrecognized_shapes(self, feed):
        assert extract_products(feed) == []


class TestFeedClient:
    """Tests for FeedClient.fetch_feed."""

    @pytest.mark.asyncio
    async def test_fetches_with_bearer_token(self, feed_client, configured_store, supplier_api):
        feed = await feed_client.fetch_feed()

        assert [item["sku"] for item in extract_products(feed)] == ["AB-1", "AB-2"]
        feed_request = supplier_api.requests[-1]
        assert str(feed_request.url) == FEED_URL
        assert feed_request.headers["Authorization"] == "Bearer tok-123"

    @pytest.mark.asyncio
    async def test_cached_for_ten_minutes(self, feed_client, configured_store, supplier_api, clock):
        await feed_client.fetch_feed()
        await feed_client.fetch_feed()
        assert len(supplier_api.requests) == 2  # token + one feed call

        clock.advance(FEED_CACHE_TTL_SECONDS)
        await feed_client.fetch_feed()
        assert len(supplier_api.requests) == 3

    @pytest.mark.asyncio
    async def test_bypass_cache(self, feed_client, configured_store, supplier_api):
        await feed_client.fetch_feed()
        supplier_api.set_feed({"data": [{"sku": "NEW"}]})

        cached = await feed_client.fetch_feed()
        fresh = await feed_client.fetch_feed(bypass_cache=True)

        assert extract_products(cached)[0]["sku"] == "AB-1"
        assert extract_products(fresh)[0]["sku"] == "NEW"

    @pytest.mark.asyncio
    async def test_invalid_endpoint_checked_before_token(self, feed_client, seed_settings, supplier_api):
        await seed_settings(endpoint="rest/../secret")
        with pytest.raises(InvalidEndpoint):
            await feed_client.fetch_feed()
        assert supplier_api.requests == []

    @pytest.mark.asyncio
    async def test_host_checked_before_token(self, feed_client, seed_settings, supplier_api):
        await seed_settings(api_base="https://intranet.local")
        with pytest.raises(HostNotAllowed):
            await feed_client.fetch_feed()
        assert supplier_api.requests == []

    @pytest.mark.asyncio
    async def test_non_200(self, feed_client, configured_store, supplier_api, cache):
        supplier_api.set_feed({"message": "oops"}, status=500)
        with pytest.raises(HttpError) as exc_info:
            await feed_client.fetch_feed()
        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Feed HTTP 500"
        assert await cache.get(FEED_CACHE_KEY) is None
        assert await cache.get(TOKEN_CACHE_KEY) == "tok-123"

    @pytest.mark.asyncio
    async def test_unauthorized_drops_token(self, feed_client, configured_store, supplier_api, cache):
        supplier_api.set_feed({"message": "expired"}, status=401)
        with pytest.raises(HttpError):
            await feed_client.fetch_feed()
        assert await cache.get(TOKEN_CACHE_KEY) is None

    @pytest.mark.asyncio
    async def test_invalid_json(self, feed_client, configured_store, supplier_api):
        supplier_api.set_feed_body(b"<html>maintenance</html>")
        with pytest.raises(InvalidFeedFormat) as exc_info:
            await feed_client.fetch_feed()
        assert exc_info.value.message == "Invalid JSON from feed."

    @pytest.mark.asyncio
    async def test_scalar_json_rejected(self, feed_client, configured_store, supplier_api):
        supplier_api.set_feed("just a string")
        with pytest.raises(InvalidFeedFormat):
            await feed_client.fetch_feed()

    @pytest.mark.asyncio
    async def test_too_large(self, feed_client, configured_store, supplier_api):
        supplier_api.set_feed_body(b" " * (MAX_FEED_BYTES + 1))
        with pytest.raises(FeedTooLarge):
            await feed_client.fetch_feed()

    def test_feed_failures_share_base(self):
        assert issubclass(FeedTooLarge, FeedFailure)
        assert issubclass(InvalidFeedFormat, FeedFailure)
        assert issubclass(HttpError, FeedFailure)
