"""Business logic services for feed ingestion and catalog sync.

Available Services:
    - auth: Supplier bearer token retrieval and caching
    - feed_client: Feed retrieval, validation and envelope handling
    - extraction: Canonical field extraction from feed items
    - pricing: Sell price derivation
    - matching: Fuzzy keyword ranking
    - search / importer: Operator search and import
    - reconciliation: Batched, lock-protected catalog sync
    - sku_cache: Cached catalog SKU set
    - settings_store / activity_log / cache: Persistence helpers
"""
