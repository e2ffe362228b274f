"""Supplier feed ingestion, pricing, search/import and catalog reconciliation."""

__version__ = "1.0.0"
