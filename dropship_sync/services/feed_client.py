"""Supplier product feed retrieval.

The feed endpoint is validated before anything touches the network, the
response is size-capped while streaming, and a successful parse is cached
for ten minutes so interactive searches do not hit the supplier each time.
"""
import json
from typing import List, Optional

import httpx
import structlog

from dropship_sync.errors.exceptions import (
    FeedFailure,
    FeedTooLarge,
    HttpError,
    InvalidEndpoint,
    InvalidFeedFormat,
)
from dropship_sync.models.feed import FeedItem, JSONValue
from dropship_sync.models.settings import ENDPOINT_PATTERN, MAX_ENDPOINT_LENGTH
from dropship_sync.services.auth import TokenManager
from dropship_sync.services.cache import FEED_CACHE_KEY, TTLCache
from dropship_sync.services.http import (
    ResponseTooLarge,
    TransportError,
    build_client,
    capped_request,
    check_api_base,
)
from dropship_sync.services.settings_store import SettingsStore

logger = structlog.get_logger(__name__)

FEED_CACHE_TTL_SECONDS = 10 * 60
MAX_FEED_BYTES = 10 * 1024 * 1024


def validate_endpoint(endpoint: str) -> str:
    """Check the feed endpoint path and return it without leading slashes.

    Raises:
        InvalidEndpoint: Empty, too long, traversal, doubled or encoded
            slashes, or characters outside the allowed set
    """
    path = (endpoint or "").strip().lstrip("/")
    if (
        not path
        or len(path) > MAX_ENDPOINT_LENGTH
        or ".." in path
        or "//" in path
        or "%2f" in path.lower()
        or not ENDPOINT_PATTERN.match(path)
    ):
        raise InvalidEndpoint("Invalid endpoint format.")
    return path


def extract_products(feed: JSONValue) -> List[FeedItem]:
    """Flatten the feed envelope into a list of item mappings.

    Accepts ``{"data": [...]}``, ``{"items": [...]}`` or a bare list.
    Anything else yields an empty list. Non-mapping entries are dropped.
    """
    items: JSONValue = None
    if isinstance(feed, dict):
        for envelope in ("data", "items"):
            if isinstance(feed.get(envelope), list):
                items = feed[envelope]
                break
    elif isinstance(feed, list):
        items = feed

    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


class FeedClient:
    """Fetches the supplier feed with a bearer token.

    Usage:
        client = FeedClient(cache, store, tokens, allowed_hosts=settings.allowed_api_hosts)
        feed = await client.fetch_feed(bypass_cache=True)
        products = extract_products(feed)
    """

    def __init__(
        self,
        cache: TTLCache,
        store: SettingsStore,
        tokens: TokenManager,
        allowed_hosts: List[str],
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._cache = cache
        self._store = store
        self._tokens = tokens
        self._allowed_hosts = allowed_hosts
        self._timeout = timeout
        self._transport = transport

    async def fetch_feed(self, bypass_cache: bool = False) -> JSONValue:
        """Return the parsed feed document.

        Args:
            bypass_cache: Skip the cached snapshot and always call the supplier

        Raises:
            InvalidEndpoint, HostNotAllowed, InsecureScheme: Before any network call
            AuthFailure: Token could not be obtained
            HttpError: Non-200 status
            FeedTooLarge: Body over 10 MiB
            InvalidFeedFormat: Body is not a JSON object or array
            FeedFailure: Transport failure
        """
        feed_settings = await self._store.load()
        endpoint = validate_endpoint(feed_settings.endpoint)
        base = check_api_base(feed_settings.api_base, self._allowed_hosts)
        url = f"{base}/{endpoint}"
        log = logger.bind(endpoint=endpoint, bypass_cache=bypass_cache)

        if not bypass_cache:
            cached = await self._cache.get(FEED_CACHE_KEY)
            if isinstance(cached, (dict, list)):
                log.debug("feed_cache_hit")
                return cached

        token = await self._tokens.get_token()

        log.info("feed_fetch_started")
        try:
            async with build_client(self._timeout, self._transport) as client:
                response = await capped_request(
                    client,
                    "GET",
                    url,
                    max_bytes=MAX_FEED_BYTES,
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Accept": "application/json",
                    },
                )
        except ResponseTooLarge as e:
            log.warning("feed_too_large", **e.details)
            raise FeedTooLarge("Feed too large.", details=e.details) from e
        except TransportError as e:
            log.warning("feed_fetch_failed", error=e.message)
            raise FeedFailure(e.message) from e

        if response.status_code != 200:
            log.warning("feed_http_error", status_code=response.status_code)
            if response.status_code == 401:
                await self._tokens.invalidate()
            raise HttpError(response.status_code)

        try:
            data = json.loads(response.body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidFeedFormat("Invalid JSON from feed.") from e
        if not isinstance(data, (dict, list)):
            raise InvalidFeedFormat("Invalid JSON from feed.")

        await self._cache.set(FEED_CACHE_KEY, data, ttl_seconds=FEED_CACHE_TTL_SECONDS)
        log.info("feed_fetch_completed", bytes=len(response.body))
        return data
