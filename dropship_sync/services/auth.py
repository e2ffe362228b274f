"""Supplier bearer token retrieval and caching."""
import json
from typing import Any, List, Optional

import httpx
import structlog

from dropship_sync.errors.exceptions import (
    AuthFailure,
    InvalidTokenResponse,
    MissingCredentials,
)
from dropship_sync.services.cache import TOKEN_CACHE_KEY, TTLCache
from dropship_sync.services.http import (
    TransportError,
    build_client,
    capped_request,
    check_api_base,
)
from dropship_sync.services.settings_store import SettingsStore

logger = structlog.get_logger(__name__)

TOKEN_PATH = "/rest/all/V1/integration/customer/token"
TOKEN_TTL_SECONDS = 45 * 60
MAX_TOKEN_RESPONSE_BYTES = 256 * 1024


def parse_token(body: bytes) -> str:
    """Extract the token from a bare JSON string or a ``{"token": ...}`` object.

    Raises:
        InvalidTokenResponse: For any other shape or an empty token
    """
    try:
        data: Any = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidTokenResponse("Token response is not JSON.") from e

    if isinstance(data, dict):
        data = data.get("token")
    if not isinstance(data, str) or not data.strip():
        raise InvalidTokenResponse("Token response has no token.")
    return data.strip()


class TokenManager:
    """Obtains the supplier bearer token and keeps it for 45 minutes.

    Usage:
        manager = TokenManager(cache, store, allowed_hosts=settings.allowed_api_hosts)
        token = await manager.get_token()
    """

    def __init__(
        self,
        cache: TTLCache,
        store: SettingsStore,
        allowed_hosts: List[str],
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._cache = cache
        self._store = store
        self._allowed_hosts = allowed_hosts
        self._timeout = timeout
        self._transport = transport
        self._log = logger.bind(component="token_manager")

    async def get_token(self) -> str:
        """Return a cached token or request a new one.

        Raises:
            HostNotAllowed: API host not in the allow-list
            InsecureScheme: API base is not HTTPS
            MissingCredentials: Username or password empty
            InvalidTokenResponse: Response is not a token
            AuthFailure: Network failure or non-200 status
        """
        cached = await self._cache.get(TOKEN_CACHE_KEY)
        if isinstance(cached, str) and cached:
            return cached

        feed_settings = await self._store.load()
        base = check_api_base(feed_settings.api_base, self._allowed_hosts)
        if not feed_settings.has_credentials:
            raise MissingCredentials("API username and password are required.")

        url = base + TOKEN_PATH
        self._log.info("token_request_started")
        try:
            async with build_client(self._timeout, self._transport) as client:
                response = await capped_request(
                    client,
                    "POST",
                    url,
                    max_bytes=MAX_TOKEN_RESPONSE_BYTES,
                    headers={"Content-Type": "application/json"},
                    json_body={
                        "username": feed_settings.username,
                        "password": feed_settings.password,
                    },
                )
        except TransportError as e:
            self._log.warning("token_request_failed", error=e.message)
            raise AuthFailure(f"Failed to get token: {e.message}") from e

        if response.status_code != 200:
            self._log.warning("token_request_rejected", status_code=response.status_code)
            raise AuthFailure(
                f"Token endpoint returned HTTP {response.status_code}",
                details={"status_code": response.status_code},
            )

        token = parse_token(response.body)
        await self._cache.set(TOKEN_CACHE_KEY, token, ttl_seconds=TOKEN_TTL_SECONDS)
        self._log.info("token_cached", ttl_seconds=TOKEN_TTL_SECONDS)
        return token

    async def invalidate(self) -> None:
        """Forget the cached token."""
        await self._cache.delete(TOKEN_CACHE_KEY)
