"""Catalog collaborator interface."""
from dropship_sync.db.catalog import (
    STATUS_DRAFT,
    STATUS_PUBLISHED,
    Catalog,
    CatalogRecord,
    InMemoryCatalog,
    load_catalog,
)

__all__ = [
    "STATUS_DRAFT",
    "STATUS_PUBLISHED",
    "Catalog",
    "CatalogRecord",
    "InMemoryCatalog",
    "load_catalog",
]
