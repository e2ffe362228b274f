"""Models for supplier feed items, prices and search/import results.

Feed items arrive as arbitrary JSON. They are kept as ``JSONValue`` trees
(null/bool/number/string/sequence/mapping) and only the canonical fields
below are extracted from them.
"""
from typing import Any, Dict, List, Union

from pydantic import BaseModel, Field

JSONScalar = Union[None, bool, int, float, str]
JSONValue = Union[JSONScalar, List["JSONValue"], Dict[str, "JSONValue"]]
FeedItem = Dict[str, JSONValue]

SKU_PATTERN = r"^[A-Za-z0-9_-]+$"


class CanonicalItem(BaseModel):
    """Normalized view of a feed item.

    Attributes:
        sku: Supplier SKU as delivered (trimmed, not uppercased)
        name: Product name (falls back to title)
        description: Description (falls back to short_description)
        price: Supplier cost
        weight: Weight in kg
        stock: Units available
    """
    sku: str = ""
    name: str = ""
    description: str = ""
    price: float = Field(default=0.0, ge=0)
    weight: float = Field(default=0.0, ge=0)
    stock: int = Field(default=0, ge=0)

    @property
    def sku_key(self) -> str:
        """Uppercased SKU used for comparisons."""
        return self.sku.strip().upper()


class PriceBreakdown(BaseModel):
    """Every intermediate of the sell price derivation."""
    cost: float
    shipping: float
    vat: float
    fee: float
    subtotal: float
    profit: float
    final: float


class SearchRow(BaseModel):
    """A ranked feed item prepared for the operator."""
    item: CanonicalItem
    pricing: PriceBreakdown
    imported: bool = False
    raw: Dict[str, Any] = Field(default_factory=dict)


class ImportResult(BaseModel):
    """Outcome of an import batch (partial success)."""
    imported: int = 0
    errors: List[str] = Field(default_factory=list)
