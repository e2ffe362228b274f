"""Field extraction over heterogeneous supplier item shapes.

Suppliers do not agree on a schema: the cost may live under ``price`` or
``supplier_price``, stock may be a number under ``qty`` or a nested
``extension_attributes.stock_item.qty``, or only an ``in_stock`` flag.
Each canonical field is therefore resolved from a prioritized list of
candidate key paths, with a bounded recursive search as the last resort
for stock.

Key Components:
    - resolve_path: Dotted-path lookup through nested mappings
    - find_numeric_key: Depth-bounded search for a numeric value by key name
    - extract_price / extract_weight / extract_stock: Canonical field rules
    - canonicalize: Build a CanonicalItem from a raw feed item
"""
import math
import re
from typing import Any, Iterable, Optional

from dropship_sync.models.feed import CanonicalItem, FeedItem, JSONValue
from dropship_sync.models.settings import FeedSettings

MAX_PATH_DEPTH = 12

PRICE_KEYS = ("price", "cost", "price_ex_vat", "price_inc_vat", "base_price", "supplier_price")
WEIGHT_KEYS = (
    "weight",
    "package_weight",
    "product_weight",
    "shipping_weight",
    "extension_attributes.weight",
)
STOCK_KEYS = ("qty", "stock", "stock_qty", "quantity", "qty_available", "available")
STOCK_KEYWORDS = ("qty", "stock", "quantity")
STOCK_FLAG_KEYS = ("in_stock", "is_in_stock", "stock_status")
IN_STOCK_VALUES = frozenset({"in_stock", "instock", "yes", "true", "1"})
OUT_OF_STOCK_VALUES = frozenset({"out_of_stock", "outofstock", "no", "false", "0"})

_NUMERIC_STRING = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")


class _NotFound:
    """Marker for a path that does not resolve (distinct from None and 0)."""

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __bool__(self) -> bool:
        return False


NOT_FOUND: Any = _NotFound()


def is_numeric(value: Any) -> bool:
    """True for finite ints/floats (not bools) and strings holding a number."""
    if isinstance(value, bool):
        return False
    if isinstance(value, str):
        if not _NUMERIC_STRING.match(value):
            return False
        value = value.strip()
    elif not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(float(value))
    except OverflowError:
        return False


def to_float(value: Any) -> float:
    """Convert a value already accepted by is_numeric."""
    return float(value.strip() if isinstance(value, str) else value)


def resolve_path(data: JSONValue, path: str) -> Any:
    """Follow a dotted path through nested mappings.

    Exact key match is tried first, then a match against the string form
    of each key (so ``"0"`` reaches list index 0 or an int key 0).

    Args:
        data: Feed item or nested value
        path: Dotted key path, e.g. ``"extension_attributes.weight"``

    Returns:
        The value found, or NOT_FOUND when any segment is absent, the path
        is empty or deeper than MAX_PATH_DEPTH, or a segment is ``.``/``..``
    """
    path = (path or "").strip()
    if not path:
        return NOT_FOUND
    parts = [part for part in path.split(".") if part]
    if not parts or len(parts) > MAX_PATH_DEPTH:
        return NOT_FOUND

    cursor: Any = data
    for segment in parts:
        if segment in (".", ".."):
            return NOT_FOUND
        if isinstance(cursor, dict):
            if segment in cursor:
                cursor = cursor[segment]
                continue
            match = next((k for k in cursor if str(k) == segment), NOT_FOUND)
            if match is NOT_FOUND:
                return NOT_FOUND
            cursor = cursor[match]
        elif isinstance(cursor, list) and segment.isdigit() and int(segment) < len(cursor):
            cursor = cursor[int(segment)]
        else:
            return NOT_FOUND
    return cursor


def find_numeric_key(
    data: JSONValue,
    keywords: Iterable[str],
    max_depth: int = MAX_PATH_DEPTH,
) -> Any:
    """Depth-first search for a numeric value whose key contains a keyword.

    Keys are compared case-insensitively. Nested containers are searched
    before later siblings, and nothing below ``max_depth`` levels is visited.

    Returns:
        The first matching value, or NOT_FOUND
    """
    words = [word.lower() for word in keywords]

    def walk(node: JSONValue, depth: int) -> Any:
        if depth > max_depth:
            return NOT_FOUND
        if isinstance(node, dict):
            entries = node.items()
        elif isinstance(node, list):
            entries = enumerate(node)
        else:
            return NOT_FOUND
        for key, value in entries:
            if isinstance(value, (dict, list)):
                found = walk(value, depth + 1)
                if found is not NOT_FOUND:
                    return found
            elif is_numeric(value) and any(word in str(key).lower() for word in words):
                return value
        return NOT_FOUND

    return walk(data, 1)


def extract_price(item: FeedItem, price_field_key: str = "") -> float:
    """Supplier cost: override path first, then PRICE_KEYS. Defaults to 0.0."""
    keys = ([price_field_key] if price_field_key else []) + list(PRICE_KEYS)
    for key in keys:
        value = resolve_path(item, key)
        if is_numeric(value):
            return to_float(value)
    return 0.0


def extract_weight(item: FeedItem) -> float:
    """Weight in kg from WEIGHT_KEYS. Defaults to 0.0."""
    for key in WEIGHT_KEYS:
        value = resolve_path(item, key)
        if is_numeric(value):
            return to_float(value)
    return 0.0


def _stock_flag(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, str):
        lowered = value.lower()
        if lowered in IN_STOCK_VALUES:
            return 1
        if lowered in OUT_OF_STOCK_VALUES:
            return 0
    return None


def extract_stock(item: FeedItem, stock_field_path: str = "") -> int:
    """Units available.

    Resolution order:
        1. The configured override path
        2. Top-level STOCK_KEYS
        3. Any nested key containing qty/stock/quantity with a numeric value
        4. in_stock/is_in_stock/stock_status flags mapped to 1/0
        5. 0
    """
    if stock_field_path:
        value = resolve_path(item, stock_field_path)
        if is_numeric(value):
            return int(to_float(value))

    for key in STOCK_KEYS:
        value = item.get(key)
        if is_numeric(value):
            return int(to_float(value))

    found = find_numeric_key(item, STOCK_KEYWORDS)
    if found is not NOT_FOUND:
        return int(to_float(found))

    for key in STOCK_FLAG_KEYS:
        flag = _stock_flag(resolve_path(item, key))
        if flag is not None:
            return flag
    return 0


def _text(item: FeedItem, *keys: str) -> str:
    """First non-empty scalar under ``keys`` as a trimmed string."""
    for key in keys:
        value = item.get(key)
        if isinstance(value, bool) or value is None:
            continue
        if isinstance(value, (str, int, float)):
            text = str(value).strip()
            if text:
                return text
    return ""


def canonicalize(item: FeedItem, settings: FeedSettings) -> CanonicalItem:
    """Extract the canonical view of a feed item.

    Negative price, weight and stock are clamped to 0.
    """
    return CanonicalItem(
        sku=_text(item, "sku"),
        name=_text(item, "name", "title"),
        description=_text(item, "description", "short_description"),
        price=max(0.0, extract_price(item, settings.price_field_key)),
        weight=max(0.0, extract_weight(item)),
        stock=max(0, extract_stock(item, settings.stock_field_path)),
    )
