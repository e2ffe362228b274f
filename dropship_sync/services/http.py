"""HTTP helpers shared by the token manager and the feed client.

Requests never follow redirects automatically: each hop is checked so a
supplier response cannot bounce us to an internal address, and response
bodies are read in a stream so an oversize answer is cut off early.
A hop to another origin loses the Authorization header and the request
body.
"""
import ipaddress
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlsplit

import httpx
import structlog

from dropship_sync.errors.exceptions import (
    DropshipError,
    HostNotAllowed,
    InsecureScheme,
)

logger = structlog.get_logger(__name__)

USER_AGENT = "dropship-sync/1.0"
MAX_REDIRECTS = 3
_REDIRECT_CODES = {301, 302, 303, 307, 308}


class TransportError(DropshipError):
    """Raised when the request could not be completed."""
    pass


class ResponseTooLarge(TransportError):
    """Raised when the body exceeds the configured byte cap."""
    pass


class UnsafeRedirect(TransportError):
    """Raised when a redirect points at a non-public or non-HTTPS target."""
    pass


@dataclass
class RawResponse:
    """Status code and fully read body of a capped request."""
    status_code: int
    body: bytes
    url: str

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


def check_api_base(api_base: str, allowed_hosts: Any) -> str:
    """Validate the supplier base URL against the host allow-list.

    Args:
        api_base: Configured base URL
        allowed_hosts: Iterable of permitted host names

    Returns:
        The base URL without trailing slash

    Raises:
        HostNotAllowed: If the host is missing or not allowed
        InsecureScheme: If the URL is not https://
    """
    parts = urlsplit(api_base.strip())
    host = (parts.hostname or "").lower()
    allowed = {h.lower() for h in allowed_hosts}
    if not host or host not in allowed:
        raise HostNotAllowed("API host is not allowed.", details={"host": host})
    if parts.scheme.lower() != "https":
        raise InsecureScheme("HTTPS required.", details={"host": host})
    return api_base.strip().rstrip("/")


def _origin(url: str) -> Tuple[str, str, int]:
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    return scheme, (parts.hostname or "").lower(), parts.port or (443 if scheme == "https" else 80)


def is_safe_url(url: str) -> bool:
    """Whether a redirect target is an https URL on a public host."""
    parts = urlsplit(url)
    if parts.scheme.lower() != "https":
        return False
    host = (parts.hostname or "").lower()
    if not host or host == "localhost" or host.endswith(".localhost"):
        return False
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return True
    return not (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_reserved
        or address.is_multicast
        or address.is_unspecified
    )


async def capped_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    max_bytes: int,
    max_redirects: int = MAX_REDIRECTS,
    headers: Optional[dict] = None,
    json_body: Any = None,
) -> RawResponse:
    """Send a request, following at most ``max_redirects`` safe redirects.

    Args:
        client: Configured async client (timeouts, transport)
        method: HTTP method
        url: Absolute URL
        max_bytes: Maximum accepted body size
        max_redirects: Maximum number of redirect hops
        headers: Extra request headers
        json_body: Optional JSON payload

    Returns:
        RawResponse of the final hop

    Raises:
        ResponseTooLarge: If the body exceeds max_bytes
        UnsafeRedirect: If a redirect target is unsafe or hops are exhausted
        TransportError: On connection errors and timeouts
    """
    log = logger.bind(method=method, host=urlsplit(url).hostname)
    current_url = url
    current_method = method
    request_headers: Dict[str, str] = dict(headers or {})
    body = json_body

    for hop in range(max_redirects + 1):
        try:
            async with client.stream(
                current_method,
                current_url,
                headers=request_headers,
                json=body,
                follow_redirects=False,
            ) as response:
                if response.status_code in _REDIRECT_CODES and "location" in response.headers:
                    target = str(response.url.join(response.headers["location"]))
                    if not is_safe_url(target):
                        log.warning("redirect_rejected", target_host=urlsplit(target).hostname)
                        raise UnsafeRedirect("Redirect target is not allowed.")
                    if response.status_code == 303 or (
                        response.status_code in (301, 302) and current_method == "POST"
                    ):
                        current_method, body = "GET", None
                    if _origin(target) != _origin(current_url):
                        request_headers = {
                            name: value
                            for name, value in request_headers.items()
                            if name.lower() != "authorization"
                        }
                        body = None
                    current_url = target
                    log.debug("redirect_followed", hop=hop + 1, status_code=response.status_code)
                    continue

                declared = response.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > max_bytes:
                    raise ResponseTooLarge(
                        "Response too large.",
                        details={"declared_bytes": int(declared), "max_bytes": max_bytes},
                    )
                chunks = []
                received = 0
                async for chunk in response.aiter_bytes():
                    received += len(chunk)
                    if received > max_bytes:
                        raise ResponseTooLarge(
                            "Response too large.", details={"max_bytes": max_bytes}
                        )
                    chunks.append(chunk)
                return RawResponse(
                    status_code=response.status_code,
                    body=b"".join(chunks),
                    url=str(response.url),
                )
        except httpx.HTTPError as e:
            log.warning("http_request_failed", error=str(e), error_type=type(e).__name__)
            raise TransportError(f"Request failed: {type(e).__name__}") from e

    raise UnsafeRedirect("Too many redirects.", details={"max_redirects": max_redirects})


def build_client(
    timeout: float,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create the async client used for supplier calls."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        transport=transport,
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
    )
