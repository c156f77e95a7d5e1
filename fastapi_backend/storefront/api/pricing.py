"""
Order pricing: line subtotals, coupon eligibility and discount, order total.

Amounts are ``Decimal`` and rounded half-up to whole currency units, the
smallest unit the storefront charges in.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping, Optional

from storefront.api.schemas import DiscountType, RecordStatus

_UNIT = Decimal("1")
_ZERO = Decimal("0")


class CouponError(ValueError):
    """Raised when a coupon cannot be applied; the message is shown to the customer."""


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    discount: Decimal
    shipping_fee: Decimal
    total: Decimal

    def as_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "shipping_fee": self.shipping_fee,
            "total": self.total,
        }


def _amount(value: Any) -> Decimal:
    if value is None:
        return _ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value


def round_amount(value: Decimal) -> Decimal:
    return _amount(value).quantize(_UNIT, rounding=ROUND_HALF_UP)


def as_utc(value: datetime) -> datetime:
    # Naive timestamps from the database are stored in UTC.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


# PUBLIC_INTERFACE
def line_subtotal(lines: Iterable[Mapping[str, Any]]) -> Decimal:
    """Sum of ``price * quantity`` over order or cart lines."""
    total = _ZERO
    for line in lines:
        total += _amount(line["price"]) * int(line["quantity"])
    return round_amount(total)


# PUBLIC_INTERFACE
def validate_coupon(
    coupon: Optional[Mapping[str, Any]],
    subtotal: Decimal,
    *,
    usage_count: int = 0,
    now: Optional[datetime] = None,
) -> None:
    """Raise ``CouponError`` unless ``coupon`` may be applied to an order of ``subtotal``."""
    if not coupon or coupon.get("status") == RecordStatus.deleted:
        raise CouponError("Coupon not found")
    if coupon.get("status") != RecordStatus.active or not coupon.get("is_active", True):
        raise CouponError("Coupon is not active")

    now = as_utc(now or datetime.now(timezone.utc))
    start, end = coupon.get("start_date"), coupon.get("end_date")
    if start is not None and now < as_utc(start):
        raise CouponError("Coupon is not yet valid")
    if end is not None and now > as_utc(end):
        raise CouponError("Coupon has expired")

    minimum = coupon.get("min_purchase_amount")
    if minimum is not None and _amount(subtotal) < _amount(minimum):
        raise CouponError(f"Order subtotal must be at least {round_amount(_amount(minimum))} to use this coupon")

    max_usage = coupon.get("max_usage")
    if max_usage is not None and usage_count >= int(max_usage):
        raise CouponError("Coupon usage limit reached")


# PUBLIC_INTERFACE
def coupon_discount(coupon: Mapping[str, Any], subtotal: Decimal) -> Decimal:
    """Discount granted by ``coupon`` on ``subtotal``; never more than the subtotal."""
    subtotal = _amount(subtotal)
    value = _amount(coupon["discount_value"])
    discount_type = DiscountType(coupon["discount_type"])

    if discount_type == DiscountType.percentage:
        discount = subtotal * value / Decimal(100)
        cap = coupon.get("max_discount_value")
        if cap is not None:
            discount = min(discount, _amount(cap))
    else:
        discount = value

    return round_amount(max(_ZERO, min(discount, subtotal)))


# PUBLIC_INTERFACE
def compute_totals(
    subtotal: Decimal,
    shipping_fee: Decimal,
    coupon: Optional[Mapping[str, Any]] = None,
    *,
    usage_count: int = 0,
    now: Optional[datetime] = None,
) -> OrderTotals:
    """Validate ``coupon`` (when given) and compute the amounts charged for an order."""
    subtotal = round_amount(subtotal)
    discount = _ZERO
    if coupon is not None:
        validate_coupon(coupon, subtotal, usage_count=usage_count, now=now)
        discount = coupon_discount(coupon, subtotal)
    shipping_fee = round_amount(shipping_fee)
    return OrderTotals(
        subtotal=subtotal,
        discount=discount,
        shipping_fee=shipping_fee,
        total=subtotal - discount + shipping_fee,
    )
