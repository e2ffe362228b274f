"""Pytest configuration and fixtures for test suite.

This is the root-level conftest.py that provides:
- Python path setup (so we can import dropship_sync without installing)
- Basic environment variable defaults
- Shared fixtures: in-memory cache, activity log, catalog, settings store
  and a scripted supplier API for httpx.MockTransport
"""
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict

# Add project root to Python path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

# Set environment variables BEFORE importing modules that use settings
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("LOG_LEVEL", "INFO")
os.environ.setdefault("SETTINGS_ENCRYPTION_KEY", "test-secret")
os.environ.setdefault("INSTALLATION_ID", "https://shop.example.com")

import pytest
import pytest_asyncio

from dropship_sync.db.catalog import InMemoryCatalog
from dropship_sync.models.settings import FeedSettings
from dropship_sync.services.activity_log import MemoryActivityLog
from dropship_sync.services.cache import SETTINGS_KEY, MemoryCache
from dropship_sync.services.crypto import SecretCipher
from dropship_sync.services.settings_store import SettingsStore

from helpers import FakeClock, SupplierApi


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> MemoryCache:
    return MemoryCache(clock=clock)


@pytest.fixture
def activity_log() -> MemoryActivityLog:
    return MemoryActivityLog()


@pytest.fixture
def cipher() -> SecretCipher:
    return SecretCipher("test-secret")


@pytest.fixture
def store(cache, cipher, activity_log) -> SettingsStore:
    return SettingsStore(cache, cipher, activity_log)


@pytest.fixture
def catalog() -> InMemoryCatalog:
    return InMemoryCatalog()


@pytest.fixture
def seed_settings(cache, cipher) -> Callable[..., Any]:
    """Store FeedSettings directly (no activity entry, no cache invalidation)."""

    async def _seed(**overrides: Any) -> FeedSettings:
        values: Dict[str, Any] = {"username": "buyer@example.com", "password": "s3cret"}
        values.update(overrides)
        feed_settings = FeedSettings(**values)
        stored = feed_settings.model_dump()
        stored["password"] = cipher.encrypt(feed_settings.password)
        await cache.set(SETTINGS_KEY, stored)
        return feed_settings

    return _seed


@pytest_asyncio.fixture
async def configured_store(store, seed_settings) -> SettingsStore:
    await seed_settings()
    return store


@pytest.fixture
def supplier_api() -> SupplierApi:
    return SupplierApi(
        feed={
            "data": [
                {"sku": "AB-1", "name": "Ceramic Owl Mug", "price": 5, "weight": 0.3, "qty": 12},
                {"sku": "AB-2", "name": "Glass Unicorn Lamp", "price": "7.50", "weight": 1.2, "qty": 0},
            ]
        }
    )
