"""Test helpers shared by unit tests: fake clock, scripted supplier API, item builders."""
import json
from typing import Any, Dict, List, Optional

import httpx

API_BASE = "https://www.puckator-dropship.co.uk"
TOKEN_URL = f"{API_BASE}/rest/all/V1/integration/customer/token"
FEED_URL = f"{API_BASE}/rest/puck_dsuk/V1/customer/feed/products"
ALLOWED_HOSTS = ["www.puckator-dropship.co.uk", "puckator-dropship.co.uk"]


class FakeClock:
    """Manually advanced time source for TTL tests."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SupplierApi:
    """Scripted supplier endpoints for httpx.MockTransport.

    Attributes:
        token_response: (status, body) returned by the token endpoint
        feed_response: (status, body) returned by the feed endpoint
        requests: Every request received, in order
    """

    def __init__(self, feed: Any = None, token: Any = "tok-123"):
        self.token_response = (200, json.dumps(token).encode())
        self.feed_response = (200, json.dumps(feed if feed is not None else {"data": []}).encode())
        self.requests: List[httpx.Request] = []

    def set_feed(self, feed: Any, status: int = 200) -> None:
        self.feed_response = (status, json.dumps(feed).encode())

    def set_feed_body(self, body: bytes, status: int = 200) -> None:
        self.feed_response = (status, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/integration/customer/token"):
            status, body = self.token_response
        else:
            status, body = self.feed_response
        return httpx.Response(status, content=body, headers={"content-type": "application/json"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]


def make_feed_item(sku: str, price: Optional[float] = 5.0, **extra: Any) -> Dict[str, Any]:
    item: Dict[str, Any] = {"sku": sku, "name": f"Product {sku}"}
    if price is not None:
        item["price"] = price
    item.update(extra)
    return item
