from datetime import datetime
from decimal import Decimal

COUPON = {
    "id": 3,
    "code": "SAVE10",
    "discount_type": "percentage",
    "discount_value": Decimal("10"),
    "max_discount_value": Decimal("500000"),
    "min_purchase_amount": Decimal("1000000"),
    "max_usage": 100,
    "start_date": None,
    "end_date": None,
    "is_active": True,
    "status": 1,
}


def test_lookup_by_code_reports_usage(client, fake_db):
    fake_db.on("fetch_one", "FROM coupons WHERE UPPER(code)", COUPON)
    fake_db.on("fetch_one", "COUNT(*) AS used FROM orders", {"used": 4})

    resp = client.get("/coupons/code/save10")

    assert resp.json()["data"]["usage_count"] == 4
    assert fake_db.find("fetch_one", "COUNT(*) AS used")[0] == [3, 5]


def test_check_coupon_returns_discount(client, fake_db):
    fake_db.on("fetch_one", "FROM coupons WHERE UPPER(code)", COUPON)

    resp = client.post("/coupons/check", json={"code": "SAVE10", "subtotal": "8000000"})

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["discount"] == 500000
    assert type(data["discount"]) is int
    assert data["subtotal_after_discount"] == 7500000


def test_check_coupon_below_minimum(client, fake_db):
    fake_db.on("fetch_one", "FROM coupons WHERE UPPER(code)", COUPON)

    resp = client.post("/coupons/check", json={"code": "SAVE10", "subtotal": "999999"})

    assert resp.status_code == 400
    assert resp.json()["message"] == "Order subtotal must be at least 1000000 to use this coupon"


def test_check_unknown_coupon(client, fake_db):
    resp = client.post("/coupons/check", json={"code": "NOPE", "subtotal": "100"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Coupon not found"


def test_admin_create_upper_cases_code(client, fake_db, as_admin):
    fake_db.on("execute_returning_one", "INSERT INTO coupons", {"id": 9, "code": "WELCOME"})

    resp = client.post(
        "/admin/coupons", json={"code": " welcome ", "discount_type": "fixed_amount", "discount_value": "50000"}
    )

    assert resp.status_code == 201
    sql = [s for m, s, _ in fake_db.calls if "INSERT INTO coupons" in s][0]
    params = fake_db.find("execute_returning_one", "INSERT INTO coupons")[0]
    columns = sql.split("(")[1].split(")")[0].split(", ")
    values = dict(zip(columns, params))
    assert values["code"] == "WELCOME"
    assert values["discount_type"] == "fixed_amount"
    assert values["status"] == 1


def test_admin_create_rejects_large_percentage(client, fake_db, as_admin):
    resp = client.post(
        "/admin/coupons", json={"code": "HALF", "discount_type": "percentage", "discount_value": "150"}
    )
    assert resp.status_code == 400


def test_admin_create_duplicate_code(client, fake_db, as_admin):
    fake_db.on("fetch_one", "FROM coupons WHERE LOWER(code)", {"id": 3})

    resp = client.post(
        "/admin/coupons", json={"code": "save10", "discount_type": "fixed_amount", "discount_value": "1"}
    )

    assert resp.status_code == 409


def test_admin_update_checks_merged_dates(client, fake_db, as_admin):
    fake_db.on("fetch_one", "FROM coupons WHERE id=%s", {**COUPON, "start_date": datetime(2024, 6, 1)})

    resp = client.put("/admin/coupons/3", json={"end_date": "2024-05-01T00:00:00Z"})

    assert resp.status_code == 400
    assert resp.json()["message"] == "end_date must not be earlier than start_date"


def test_admin_update_switching_to_percentage_is_checked(client, fake_db, as_admin):
    fake_db.on(
        "fetch_one",
        "FROM coupons WHERE id=%s",
        {**COUPON, "discount_type": "fixed_amount", "discount_value": Decimal("50000")},
    )

    resp = client.put("/admin/coupons/3", json={"discount_type": "percentage"})

    assert resp.status_code == 400
    assert resp.json()["message"] == "Percentage discount cannot exceed 100"


def test_admin_update_rejects_null_for_required_columns(client, fake_db, as_admin):
    fake_db.on("fetch_one", "FROM coupons WHERE id=%s", COUPON)

    for body in ({"code": None}, {"discount_value": None}, {"discount_type": None}):
        resp = client.put("/admin/coupons/3", json=body)
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid request data"

    assert not fake_db.find("execute_returning_one", "UPDATE coupons SET")


def test_admin_update_may_clear_optional_limits(client, fake_db, as_admin):
    fake_db.on("fetch_one", "FROM coupons WHERE id=%s", COUPON)
    fake_db.on("execute_returning_one", "UPDATE coupons SET", {**COUPON, "max_usage": None})

    resp = client.put("/admin/coupons/3", json={"max_usage": None})

    assert resp.status_code == 200
    assert fake_db.find("execute_returning_one", "UPDATE coupons SET max_usage=%s")[0][0] is None


def test_amounts_are_json_numbers(client, fake_db):
    fake_db.on("fetch_one", "FROM coupons WHERE UPPER(code)", COUPON)

    data = client.get("/coupons/code/SAVE10").json()["data"]

    assert type(data["discount_value"]) is int
    assert type(data["max_discount_value"]) is int
