"""Sell price derivation.

    base     = cost + shipping_for_weight(weight)
    vat      = base * vat_percent / 100
    fee      = paypal_fixed + base * paypal_percent / 100
    subtotal = base + vat + fee
    final    = max(0, round(subtotal * (1 + profit_percent / 100), 2))

Percentages are clamped when settings are saved, not here.
"""
import math
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Sequence

import structlog

from dropship_sync.errors.exceptions import ItemInvalid
from dropship_sync.models.feed import PriceBreakdown
from dropship_sync.models.settings import FeedSettings, ShippingBand

logger = structlog.get_logger(__name__)

_CENT = Decimal("0.01")
# Wide enough to quantize any finite float to cents
_CONTEXT = Context(prec=400)


def round_half_up(value: float) -> float:
    """Round to 2 decimals, halves away from zero (2.675 -> 2.68)."""
    return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP, context=_CONTEXT))


def shipping_for_weight(weight: float, table: Sequence[ShippingBand]) -> float:
    """Cost of the first band with ``min <= weight <= max``.

    A weight outside every band (above the table or in a gap) is charged
    the last band's cost. An empty table means free shipping.
    """
    if not table:
        return 0.0
    for band in table:
        if band.min <= weight <= band.max:
            return band.cost
    logger.debug("shipping_band_fallback", weight=weight, band_count=len(table))
    return table[-1].cost


def price_breakdown(cost: float, weight: float, settings: FeedSettings) -> PriceBreakdown:
    """Compute the final price together with every intermediate amount.

    Args:
        cost: Supplier cost
        weight: Item weight in kg
        settings: Fee, tax, profit and shipping configuration

    Returns:
        PriceBreakdown; intermediates are rounded for display, ``final``
        is rounded once from the unrounded subtotal

    Raises:
        ItemInvalid: If cost or weight push the price out of float range
    """
    shipping = shipping_for_weight(weight, settings.shipping_table)
    base = cost + shipping
    vat = base * settings.vat_percent / 100
    fee = settings.paypal_fixed + base * settings.paypal_percent / 100
    subtotal = base + vat + fee
    gross = subtotal * (1 + settings.profit_percent / 100)
    if not (math.isfinite(subtotal) and math.isfinite(gross)):
        raise ItemInvalid(
            "Price out of range.", details={"cost": str(cost), "weight": str(weight)}
        )
    final = max(0.0, round_half_up(gross))

    return PriceBreakdown(
        cost=round_half_up(cost),
        shipping=round_half_up(shipping),
        vat=round_half_up(vat),
        fee=round_half_up(fee),
        subtotal=round_half_up(subtotal),
        profit=round_half_up(final - subtotal),
        final=final,
    )


def price(cost: float, weight: float, settings: FeedSettings) -> float:
    """Final sell price, rounded to 2 decimals and never negative."""
    return price_breakdown(cost, weight, settings).final
