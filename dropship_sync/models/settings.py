"""Pydantic models for operator-editable feed settings.

These settings are edited by an operator and persisted by SettingsStore.
Every save re-validates every field; a rejected value falls back to the
previously stored value (or the empty default) instead of being coerced.
"""
import json
import re
from typing import Any, List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

DEFAULT_API_BASE = "https://www.puckator-dropship.co.uk"
DEFAULT_ENDPOINT = "/rest/puck_dsuk/V1/customer/feed/products"

# Characters allowed in the endpoint path and query string
ENDPOINT_PATTERN = re.compile(r"^[a-z0-9/_.\-?=,&]*$", re.IGNORECASE)
MAX_ENDPOINT_LENGTH = 512
MAX_SHIPPING_JSON_LENGTH = 65536
MAX_PASSWORD_LENGTH = 256
MAX_TEXT_LENGTH = 255


class ShippingBand(BaseModel):
    """A weight range (kg) mapped to a fixed shipping cost."""
    min: float = Field(default=0.0, ge=0)
    max: float = Field(default=0.0, ge=0)
    cost: float = Field(default=0.0, ge=0)

    @model_validator(mode="after")
    def check_range(self) -> "ShippingBand":
        if self.max < self.min:
            raise ValueError("max must be greater than or equal to min")
        return self

    @classmethod
    def from_row(cls, row: Any) -> "ShippingBand":
        """Build a band from a loosely-typed JSON row.

        Missing or non-numeric fields default to 0, negatives clamp to 0
        and max is raised to min when smaller.
        """
        if not isinstance(row, Mapping):
            row = {}
        low = max(0.0, _to_float(row.get("min"), 0.0))
        high = max(low, _to_float(row.get("max"), 0.0))
        cost = max(0.0, _to_float(row.get("cost"), 0.0))
        return cls(min=low, max=high, cost=cost)


def _default_shipping_table() -> List[ShippingBand]:
    return [
        ShippingBand(min=0, max=0.1, cost=2.49),
        ShippingBand(min=0.1, max=1, cost=3.99),
        ShippingBand(min=1, max=1.5, cost=4.99),
        ShippingBand(min=1.5, max=2, cost=5.99),
    ]


def _to_float(value: Any, default: float) -> float:
    """Parse a number that may use a comma as decimal separator."""
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip().replace(",", "."))
        except ValueError:
            return default
    if number != number or number in (float("inf"), float("-inf")):
        return default
    return number


def parse_shipping_table(raw: Any) -> Tuple[List[ShippingBand], Optional[str]]:
    """Validate a shipping table given as JSON text or an already decoded list.

    Returns:
        Tuple of (bands, error message or None). An invalid table yields
        an empty list, which prices every weight at zero shipping.
    """
    if isinstance(raw, str):
        if len(raw) > MAX_SHIPPING_JSON_LENGTH:
            return [], "Shipping table too large."
        if not raw.strip():
            return [], None
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return [], "Shipping table is not valid JSON."
    if not isinstance(raw, list):
        return [], "Shipping table must be a JSON array."
    return [ShippingBand.from_row(row) for row in raw], None


def normalize_endpoint(value: str) -> Optional[str]:
    """Strip leading slashes and check the endpoint charset and length.

    Returns:
        The normalized endpoint, or None when it must be rejected.
    """
    endpoint = value.strip().lstrip("/")
    if len(endpoint) > MAX_ENDPOINT_LENGTH or not ENDPOINT_PATTERN.match(endpoint):
        return None
    return endpoint


class FeedSettings(BaseModel):
    """Operator settings for the supplier feed and the pricing formula.

    Attributes:
        api_base: Supplier base URL (must be https://)
        endpoint: Feed path relative to api_base
        username: API username (email)
        password: API password in plain text (encrypted only at rest)
        vat_percent: VAT percentage added on top of cost + shipping
        paypal_percent: Payment processor percentage fee
        paypal_fixed: Payment processor fixed fee per order
        profit_percent: Profit margin applied to the subtotal
        stock_field_path: Optional dotted path to the stock value
        price_field_key: Optional dotted path to the cost value
        shipping_table: Ordered weight bands
    """
    api_base: str = DEFAULT_API_BASE
    endpoint: str = DEFAULT_ENDPOINT
    username: str = ""
    password: str = ""
    vat_percent: float = Field(default=20.0, ge=0, le=100)
    paypal_percent: float = Field(default=2.9, ge=0, le=100)
    paypal_fixed: float = Field(default=0.30, ge=0, le=100)
    profit_percent: float = Field(default=20.0, ge=0, le=100)
    stock_field_path: str = ""
    price_field_key: str = ""
    shipping_table: List[ShippingBand] = Field(default_factory=_default_shipping_table)

    @property
    def has_credentials(self) -> bool:
        return bool(self.username) and bool(self.password)

    def apply_update(self, raw: Mapping[str, Any]) -> Tuple["FeedSettings", List[str]]:
        """Validate a submitted settings form against the current values.

        Only keys present in ``raw`` are considered. Rejected values fall
        back to the current value (numbers, blank password) or to the empty
        default (URL, endpoint, shipping table), and an error message is
        collected for each rejection.

        Args:
            raw: Submitted field values (strings or already typed values)

        Returns:
            Tuple of (new FeedSettings, list of error messages)
        """
        data = self.model_dump()
        errors: List[str] = []

        if "api_base" in raw:
            api_base = str(raw["api_base"] or "").strip()
            if not api_base.lower().startswith("https://"):
                api_base = ""
                errors.append("API Base URL must start with https://")
            data["api_base"] = api_base.rstrip("/")

        if "endpoint" in raw:
            endpoint = normalize_endpoint(str(raw["endpoint"] or ""))
            if endpoint is None:
                endpoint = ""
                errors.append("Endpoint contains invalid characters.")
            data["endpoint"] = endpoint

        if "username" in raw:
            data["username"] = str(raw["username"] or "").strip()[:MAX_TEXT_LENGTH]

        if "password" in raw:
            password = str(raw["password"] or "").strip()
            if password:
                data["password"] = password[:MAX_PASSWORD_LENGTH]

        for name in ("vat_percent", "paypal_percent", "paypal_fixed", "profit_percent"):
            if name not in raw:
                continue
            number = _to_float(raw[name], float("nan"))
            if number != number:
                errors.append(f"{name} must be a number.")
                continue
            data[name] = round(max(0.0, min(100.0, number)), 2)

        for name in ("stock_field_path", "price_field_key"):
            if name in raw:
                data[name] = str(raw[name] or "").strip()[:MAX_TEXT_LENGTH]

        if "shipping_table" in raw:
            bands, error = parse_shipping_table(raw["shipping_table"])
            if error:
                errors.append(error)
            data["shipping_table"] = [band.model_dump() for band in bands]

        return FeedSettings(**data), errors

    def shipping_table_json(self) -> str:
        """Serialize the shipping table the way it is shown for editing."""
        return json.dumps([band.model_dump() for band in self.shipping_table])
