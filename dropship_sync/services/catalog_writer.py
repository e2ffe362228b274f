"""Create-or-update of catalog records from feed items."""
import re
from typing import Optional

import structlog
from bs4 import BeautifulSoup

from dropship_sync.db.catalog import STATUS_DRAFT, Catalog, CatalogRecord
from dropship_sync.errors.exceptions import CatalogError, ItemInvalid
from dropship_sync.models.feed import SKU_PATTERN, FeedItem
from dropship_sync.models.settings import FeedSettings
from dropship_sync.services.extraction.fields import canonicalize
from dropship_sync.services.pricing import price

logger = structlog.get_logger(__name__)

META_SOURCE_FLAG = "_dropship_source"
META_SOURCE_SKU = "_dropship_sku"
MAX_TITLE_LENGTH = 200
ALLOWED_DESCRIPTION_TAGS = frozenset({"p", "br", "strong", "em", "ul", "ol", "li"})
_DROPPED_WITH_CONTENT = ("script", "style")
_SKU_RE = re.compile(SKU_PATTERN)
_WHITESPACE = re.compile(r"\s+")


def clean_text(value: str) -> str:
    """Plain text without markup, on a single line."""
    soup = BeautifulSoup(value or "", "html.parser")
    return _WHITESPACE.sub(" ", soup.get_text(" ")).strip()


def sanitize_description(html: str) -> str:
    """Keep only basic formatting tags, without attributes.

    Disallowed tags are unwrapped so their text survives; script and
    style elements are removed with their content.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    for tag in soup.find_all(_DROPPED_WITH_CONTENT):
        tag.decompose()
    for tag in soup.find_all(True):
        if tag.name in ALLOWED_DESCRIPTION_TAGS:
            tag.attrs = {}
        else:
            tag.unwrap()
    return str(soup).strip()


def normalize_sku(raw: str) -> str:
    """Uppercase and validate a SKU.

    Raises:
        ItemInvalid: Empty SKU or characters outside ``[A-Za-z0-9_-]``
    """
    sku = (raw or "").strip().upper()
    if not sku:
        raise ItemInvalid("Item has no SKU.")
    if not _SKU_RE.match(sku):
        raise ItemInvalid("SKU contains invalid characters.", details={"sku": sku[:100]})
    return sku


async def apply_feed_item(
    catalog: Catalog,
    item: FeedItem,
    settings: FeedSettings,
    existing_id: Optional[int] = None,
) -> int:
    """Write a feed item to the catalog.

    Updates ``existing_id`` (or the record found by SKU) in place, leaving
    its status untouched; otherwise creates a new draft record. The record
    is then tagged with the feed source markers.

    Args:
        catalog: Catalog collaborator
        item: Raw feed item
        settings: Pricing and field-path settings
        existing_id: Known record id, skips the SKU lookup

    Returns:
        Catalog id of the written record

    Raises:
        ItemInvalid: Missing or malformed SKU, or a price out of range
        CatalogError: Record vanished or the catalog rejected the write
    """
    canonical = canonicalize(item, settings)
    sku = normalize_sku(canonical.sku)

    title = clean_text(canonical.name)[:MAX_TITLE_LENGTH] or "Untitled"
    description = sanitize_description(canonical.description)
    final_price = price(canonical.price, canonical.weight, settings)

    record_id = existing_id or await catalog.find_by_sku(sku)
    if record_id:
        record = await catalog.load(record_id)
        if record is None:
            raise CatalogError("Product not found.", details={"product_id": record_id})
    else:
        record = CatalogRecord(status=STATUS_DRAFT)

    record.sku = sku
    record.title = title
    record.description = description
    record.price = final_price
    record.stock = canonical.stock

    record_id = await catalog.save(record)
    await catalog.set_meta(record_id, META_SOURCE_FLAG, 1)
    await catalog.set_meta(record_id, META_SOURCE_SKU, sku)

    logger.debug("catalog_record_written", product_id=record_id, sku=sku, price=final_price)
    return record_id
