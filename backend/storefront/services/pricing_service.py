# Overview: Service-layer operations for delivery pricing; distance, delivery zone, fees, tax and totals.

"""
Delivery Pricing

WHY: The client never supplies a trusted fee, tax or total. Checkout
recomputes everything here from the stored customer coordinates, the
live cart and the current fee schedule.

DESIGN PRINCIPLES:
- Pure functions: no database access, callers pass settings in
- Money is Decimal, rounded half-up to cents where each value is produced
- Fee types are a closed enum; compute_delivery_fee handles every member
- Missing coordinates fail closed (never assume the customer is in range)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from ..money import ZERO, format_money, to_money


EARTH_RADIUS_MILES = 3959.0

ADDRESS_NEEDS_VERIFICATION = (
    "Your delivery address needs to be verified. "
    "Please update your address in your account settings."
)


# =============================================================================
# DISTANCE & DELIVERY ZONE
# =============================================================================

def calculate_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle (haversine) distance in miles."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_MILES * c


@dataclass(frozen=True)
class ZoneCheck:
    within_zone: bool
    distance: float | None
    needs_verification: bool = False

    def error_message(self, radius: float) -> str | None:
        if self.needs_verification:
            return ADDRESS_NEEDS_VERIFICATION
        if not self.within_zone:
            return (
                f"Delivery address is outside our {format_radius(radius)}-mile delivery zone. "
                f"Your address is {self.distance:.1f} miles away."
            )
        return None


def _is_usable_coordinate(value) -> bool:
    if value is None:
        return False
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def check_delivery_zone(lat, lng, radius: float, origin: tuple[float, float]) -> ZoneCheck:
    """
    Check whether (lat, lng) is within `radius` miles of `origin`.

    The boundary is inclusive. Missing or non-numeric coordinates are never
    in range; they report needs_verification so the caller can ask the
    customer to fix their address.
    """
    if not (_is_usable_coordinate(lat) and _is_usable_coordinate(lng)):
        return ZoneCheck(within_zone=False, distance=None, needs_verification=True)

    distance = calculate_distance(origin[0], origin[1], float(lat), float(lng))
    return ZoneCheck(within_zone=distance <= radius, distance=distance)


def format_radius(radius: float) -> str:
    return f"{radius:g}"


# =============================================================================
# DELIVERY FEES
# =============================================================================

class FeeType(str, Enum):
    FLAT = "flat"
    PER_MILE = "per_mile"
    PER_ITEM = "per_item"
    COMBINED = "combined"


@dataclass(frozen=True)
class FeeSchedule:
    fee_type: FeeType = FeeType.FLAT
    flat_fee: Decimal = Decimal("10.00")
    per_mile_fee: Decimal = Decimal("1.50")
    per_item_fee: Decimal = Decimal("0.50")

    def to_dict(self) -> dict:
        return {
            "fee_type": self.fee_type.value,
            "flat_fee": format_money(self.flat_fee),
            "per_mile_fee": format_money(self.per_mile_fee),
            "per_item_fee": format_money(self.per_item_fee),
        }


def compute_delivery_fee(schedule: FeeSchedule, distance: float | None, item_count: int) -> Decimal:
    """
    Delivery fee for an order.

    distance is miles from the store (None counts as 0 for distance-based
    components); item_count is the total quantity across cart lines.
    """
    miles = Decimal(str(distance or 0))
    items = Decimal(max(int(item_count), 0))

    flat = to_money(schedule.flat_fee)
    per_mile = to_money(schedule.per_mile_fee) * miles
    per_item = to_money(schedule.per_item_fee) * items

    if schedule.fee_type is FeeType.FLAT:
        fee = flat
    elif schedule.fee_type is FeeType.PER_MILE:
        fee = per_mile
    elif schedule.fee_type is FeeType.PER_ITEM:
        fee = per_item
    elif schedule.fee_type is FeeType.COMBINED:
        fee = flat + per_mile + per_item
    else:
        raise ValueError(f"Unhandled fee type: {schedule.fee_type!r}")

    return to_money(fee)


# =============================================================================
# TAX & TOTALS
# =============================================================================

@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    discount: Decimal
    delivery_fee: Decimal
    tax: Decimal
    total: Decimal

    def to_dict(self) -> dict:
        return {
            "subtotal": format_money(self.subtotal),
            "discount": format_money(self.discount),
            "delivery_fee": format_money(self.delivery_fee),
            "tax": format_money(self.tax),
            "total": format_money(self.total),
        }


def compute_tax(taxable_amount, tax_rate) -> Decimal:
    return to_money(to_money(taxable_amount) * Decimal(str(tax_rate)))


def compute_order_totals(subtotal, discount, delivery_fee, tax_rate) -> OrderTotals:
    """
    Tax applies to the discounted subtotal only; the delivery fee is not taxed.

    Example: 50.00 - 5.00 discount, 8.25% tax, 10.00 fee
    -> tax 3.71 (3.7125 rounded half-up), total 58.71
    """
    subtotal = to_money(subtotal)
    discount = min(to_money(discount), subtotal)
    delivery_fee = to_money(delivery_fee)

    discounted = max(subtotal - discount, ZERO)
    tax = compute_tax(discounted, tax_rate)
    total = to_money(discounted + delivery_fee + tax)
    return OrderTotals(
        subtotal=subtotal,
        discount=discount,
        delivery_fee=delivery_fee,
        tax=tax,
        total=total,
    )
