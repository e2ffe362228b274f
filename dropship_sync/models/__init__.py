"""Pydantic validation models."""

from dropship_sync.models.settings import (
    ShippingBand,
    FeedSettings,
    parse_shipping_table,
    normalize_endpoint,
)
from dropship_sync.models.feed import (
    JSONValue,
    FeedItem,
    CanonicalItem,
    PriceBreakdown,
    SearchRow,
    ImportResult,
)
from dropship_sync.models.sync_messages import (
    SyncState,
    SyncStatus,
    FieldChange,
    ProductChange,
    SyncResult,
    SyncStatusMessage,
)

__all__ = [
    "ShippingBand",
    "FeedSettings",
    "parse_shipping_table",
    "normalize_endpoint",
    "JSONValue",
    "FeedItem",
    "CanonicalItem",
    "PriceBreakdown",
    "SearchRow",
    "ImportResult",
    "SyncState",
    "SyncStatus",
    "FieldChange",
    "ProductChange",
    "SyncResult",
    "SyncStatusMessage",
]
