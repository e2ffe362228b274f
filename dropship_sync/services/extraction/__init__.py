"""Canonical field extraction from supplier feed items.

Key Components:
    - resolve_path: Dotted-path lookup with a NOT_FOUND marker
    - find_numeric_key: Bounded recursive search by key name
    - extract_price, extract_weight, extract_stock: Prioritized field rules
    - canonicalize: Raw feed item to CanonicalItem
"""
from dropship_sync.services.extraction.fields import (
    NOT_FOUND,
    canonicalize,
    extract_price,
    extract_stock,
    extract_weight,
    find_numeric_key,
    is_numeric,
    resolve_path,
)

__all__: list[str] = [
    "NOT_FOUND",
    "canonicalize",
    "extract_price",
    "extract_stock",
    "extract_weight",
    "find_numeric_key",
    "is_numeric",
    "resolve_path",
]
