"""Catalog collaborator interface and the in-memory implementation.

The catalog owns product records; this service only reads and writes
price, stock, title, description, status (new records) and meta. A
production deployment plugs its own store in through
``settings.catalog_factory``.
"""
import copy
import importlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from dropship_sync.errors.exceptions import CatalogError

STATUS_DRAFT = "draft"
STATUS_PUBLISHED = "publish"


@dataclass
class CatalogRecord:
    """A product record as seen through the catalog interface.

    Attributes:
        id: Catalog identifier (None until first saved)
        sku: Product SKU (empty when the record has none)
        title: Product title
        description: Product description (restricted HTML)
        price: Regular sell price
        stock: Managed stock quantity
        status: Publication status
        meta: Additional key/value metadata
    """
    id: Optional[int] = None
    sku: str = ""
    title: str = ""
    description: str = ""
    price: float = 0.0
    stock: int = 0
    status: str = STATUS_PUBLISHED
    meta: Dict[str, Any] = field(default_factory=dict)


class Catalog(ABC):
    """Operations the sync service needs from the product catalog."""

    @abstractmethod
    async def find_by_sku(self, sku: str) -> Optional[int]:
        """Identifier of the record with this SKU (case-insensitive), or None."""

    @abstractmethod
    async def load(self, record_id: int) -> Optional[CatalogRecord]:
        """Load a record by identifier, or None when it does not exist."""

    @abstractmethod
    async def save(self, record: CatalogRecord) -> int:
        """Create (id None) or update a record.

        Returns:
            The record identifier

        Raises:
            CatalogError: If the record cannot be stored
        """

    @abstractmethod
    async def set_meta(self, record_id: int, key: str, value: Any) -> None:
        """Set one metadata value on a record."""

    @abstractmethod
    async def iter_sku_page(self, offset: int, limit: int) -> List[CatalogRecord]:
        """One page of SKU-bearing records in ascending id order."""

    @abstractmethod
    async def list_skus(self) -> List[str]:
        """Every SKU in the catalog, as stored."""

    @abstractmethod
    async def count_skus(self) -> int:
        """Number of SKU-bearing records."""


class InMemoryCatalog(Catalog):
    """Dictionary-backed catalog with auto-incrementing integer ids.

    Records are copied on load and save so callers never share state
    with the store.
    """

    def __init__(self, records: Optional[List[CatalogRecord]] = None):
        self._records: Dict[int, CatalogRecord] = {}
        self._next_id = 1
        self.saves = 0
        self.page_requests: List[int] = []
        for record in records or []:
            self._insert(copy.deepcopy(record))

    def _insert(self, record: CatalogRecord) -> int:
        if record.id is None:
            record.id = self._next_id
        self._next_id = max(self._next_id, record.id + 1)
        self._records[record.id] = record
        return record.id

    async def find_by_sku(self, sku: str) -> Optional[int]:
        wanted = sku.strip().upper()
        if not wanted:
            return None
        for record_id in sorted(self._records):
            if self._records[record_id].sku.strip().upper() == wanted:
                return record_id
        return None

    async def load(self, record_id: int) -> Optional[CatalogRecord]:
        record = self._records.get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def save(self, record: CatalogRecord) -> int:
        if record.id is not None and record.id not in self._records:
            raise CatalogError("Product not found.", details={"product_id": record.id})
        self.saves += 1
        return self._insert(copy.deepcopy(record))

    async def set_meta(self, record_id: int, key: str, value: Any) -> None:
        record = self._records.get(record_id)
        if record is None:
            raise CatalogError("Product not found.", details={"product_id": record_id})
        record.meta[key] = value

    async def iter_sku_page(self, offset: int, limit: int) -> List[CatalogRecord]:
        self.page_requests.append(offset)
        with_sku = [self._records[i] for i in sorted(self._records) if self._records[i].sku]
        return [copy.deepcopy(record) for record in with_sku[offset:offset + limit]]

    async def list_skus(self) -> List[str]:
        return [record.sku for record in self._records.values() if record.sku]

    async def count_skus(self) -> int:
        return sum(1 for record in self._records.values() if record.sku)


def load_catalog(factory_path: str) -> Catalog:
    """Instantiate the catalog named by a ``"module:callable"`` path.

    Raises:
        CatalogError: Path malformed, not importable, or not a Catalog
    """
    module_name, _, attr = factory_path.partition(":")
    if not module_name or not attr:
        raise CatalogError("Catalog factory must look like 'module:callable'.")
    try:
        factory = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as e:
        raise CatalogError(f"Catalog factory not found: {factory_path}") from e
    catalog = factory()
    if not isinstance(catalog, Catalog):
        raise CatalogError(f"Catalog factory returned {type(catalog).__name__}, not a Catalog.")
    return catalog
