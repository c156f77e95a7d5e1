from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from storefront.api import pricing

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def _coupon(**overrides):
    coupon = {
        "id": 3,
        "code": "SUMMER",
        "discount_type": "percentage",
        "discount_value": Decimal("10"),
        "max_discount_value": None,
        "min_purchase_amount": None,
        "max_usage": None,
        "start_date": None,
        "end_date": None,
        "is_active": True,
        "status": 1,
    }
    coupon.update(overrides)
    return coupon


def test_line_subtotal_multiplies_price_by_quantity():
    lines = [
        {"price": Decimal("15000000"), "quantity": 2},
        {"price": Decimal("250000.50"), "quantity": 1},
    ]
    assert pricing.line_subtotal(lines) == Decimal("30250001")


def test_percentage_discount_is_capped():
    coupon = _coupon(discount_value=Decimal("10"), max_discount_value=Decimal("20000"))
    assert pricing.coupon_discount(coupon, Decimal("250000")) == Decimal("20000")


def test_percentage_discount_rounds_half_up():
    assert pricing.coupon_discount(_coupon(), Decimal("1005")) == Decimal("101")


def test_fixed_discount_never_exceeds_subtotal():
    coupon = _coupon(discount_type="fixed_amount", discount_value=Decimal("500000"))
    assert pricing.coupon_discount(coupon, Decimal("120000")) == Decimal("120000")


def test_compute_totals_with_fixed_coupon_and_shipping():
    coupon = _coupon(discount_type="fixed_amount", discount_value=Decimal("50000"))
    totals = pricing.compute_totals(Decimal("500000"), Decimal("30000"), coupon, now=NOW)
    assert totals.as_dict() == {
        "subtotal": Decimal("500000"),
        "discount": Decimal("50000"),
        "shipping_fee": Decimal("30000"),
        "total": Decimal("480000"),
    }


def test_compute_totals_without_coupon():
    totals = pricing.compute_totals(Decimal("99999.6"), Decimal("30000"))
    assert totals.subtotal == Decimal("100000")
    assert totals.discount == Decimal("0")
    assert totals.total == Decimal("130000")


@pytest.mark.parametrize(
    "overrides, usage, message",
    [
        ({"status": 0}, 0, "not active"),
        ({"is_active": False}, 0, "not active"),
        ({"start_date": NOW + timedelta(days=1)}, 0, "not yet valid"),
        ({"end_date": NOW - timedelta(seconds=1)}, 0, "expired"),
        ({"min_purchase_amount": Decimal("1000000")}, 0, "at least 1000000"),
        ({"max_usage": 5}, 5, "usage limit"),
    ],
)
def test_validate_coupon_rejections(overrides, usage, message):
    with pytest.raises(pricing.CouponError, match=message):
        pricing.validate_coupon(_coupon(**overrides), Decimal("500000"), usage_count=usage, now=NOW)


def test_missing_or_deleted_coupon_is_not_found():
    with pytest.raises(pricing.CouponError, match="not found"):
        pricing.validate_coupon(None, Decimal("1"))
    with pytest.raises(pricing.CouponError, match="not found"):
        pricing.validate_coupon(_coupon(status=-2), Decimal("1"))


def test_naive_database_dates_are_treated_as_utc():
    coupon = _coupon(start_date=datetime(2024, 6, 1), end_date=datetime(2024, 6, 30))
    pricing.validate_coupon(coupon, Decimal("100"), usage_count=0, now=NOW)


def test_usage_below_limit_is_accepted():
    pricing.validate_coupon(_coupon(max_usage=5), Decimal("100"), usage_count=4, now=NOW)
