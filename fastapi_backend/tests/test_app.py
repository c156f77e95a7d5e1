import json
import logging
from decimal import Decimal

import pytest

from storefront.api.db import total_pages, update_clause
from storefront.api.logging_config import JSONFormatter
from storefront.api.responses import envelope


def test_health(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.json() == {"status": 200, "message": "Healthy", "data": {"healthy": True}}


def test_unknown_route_uses_envelope(client):
    resp = client.get("/nope")
    assert resp.status_code == 404
    assert resp.json() == {"status": 404, "message": "Not Found", "data": None}


def test_bad_pagination_is_rejected(client):
    assert client.get("/tags", params={"limit": 500}).status_code == 400
    assert client.get("/tags", params={"page": 0}).status_code == 400


@pytest.mark.parametrize("total, limit, pages", [(0, 10, 0), (1, 10, 1), (10, 10, 1), (21, 10, 3)])
def test_total_pages(total, limit, pages):
    assert total_pages(total, limit) == pages


def test_update_clause_keeps_column_order():
    assert update_clause({"name": "x", "price": 2}) == ("name=%s, price=%s", ["x", 2])


def test_json_formatter_surfaces_extras():
    record = logging.LogRecord("storefront.api.orders", logging.INFO, __file__, 1, "Order placed", None, None)
    record.order_id = 100
    record.user_id = 7

    line = json.loads(JSONFormatter().format(record))

    assert line["message"] == "Order placed"
    assert line["level"] == "INFO"
    assert line["order_id"] == 100
    assert line["user_id"] == 7
    assert "path" not in line


def test_envelope_emits_decimals_as_numbers():
    body = envelope({"price": Decimal("15000000.00"), "rate": Decimal("1.50"), "lines": [{"total": Decimal("2")}]})

    assert body["data"] == {"price": 15000000, "rate": 1.5, "lines": [{"total": 2}]}
    assert type(body["data"]["price"]) is int
