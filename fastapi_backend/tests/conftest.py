"""Shared fixtures: a scripted stand-in for the database helpers and auth shortcuts."""
import copy
import os
from contextlib import contextmanager
from typing import Any, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

# Tokens are signed in tests; never fall back to a real secret.
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("SHIPPING_FEE", "30000")

from storefront.api import db  # noqa: E402
from storefront.api.auth_utils import get_current_user  # noqa: E402
from storefront.api.main import app  # noqa: E402

CUSTOMER = {
    "id": 7,
    "username": "alice",
    "email": "alice@example.com",
    "full_name": "Alice Nguyen",
    "role_id": 2,
    "role_name": "customer",
    "status": 1,
}
ADMIN = {
    "id": 1,
    "username": "root",
    "email": "root@example.com",
    "full_name": "Store Admin",
    "role_id": 1,
    "role_name": "admin",
    "status": 1,
}


def _norm(sql: str) -> str:
    return " ".join(sql.split())


class FakeDB:
    """
    Answers queries from rules registered with ``on``.

    A rule matches when its method is the one called and its fragment occurs
    in the whitespace-normalised SQL; the first match wins. A rule result may
    be a callable taking ``(sql, params)``. Every call is recorded.
    """

    _defaults = {"fetch_one": None, "fetch_all": [], "execute": 1, "execute_returning_one": {"id": 1}}

    def __init__(self) -> None:
        self.rules: List[Tuple[str, str, Any]] = []
        self.calls: List[Tuple[str, str, list]] = []

    def on(self, method: str, fragment: str, result: Any) -> "FakeDB":
        self.rules.append((method, _norm(fragment), result))
        return self

    def _answer(self, method: str, query: str, params) -> Any:
        sql = _norm(query)
        params = list(params or [])
        self.calls.append((method, sql, params))
        for rule_method, fragment, result in self.rules:
            if rule_method == method and fragment in sql:
                if callable(result):
                    return result(sql, params)
                return copy.deepcopy(result)
        return copy.deepcopy(self._defaults[method])

    def fetch_one(self, query, params=None):
        return self._answer("fetch_one", query, params)

    def fetch_all(self, query, params=None):
        return self._answer("fetch_all", query, params)

    def execute(self, query, params=None):
        return self._answer("execute", query, params)

    def execute_returning_one(self, query, params=None):
        return self._answer("execute_returning_one", query, params)

    @contextmanager
    def transaction(self):
        yield self

    def find(self, method: str, fragment: str) -> List[list]:
        """Params of every recorded ``method`` call whose SQL contains ``fragment``."""
        fragment = _norm(fragment)
        return [params for m, sql, params in self.calls if m == method and fragment in sql]


@pytest.fixture
def fake_db(monkeypatch) -> FakeDB:
    fake = FakeDB()
    for name in ("fetch_one", "fetch_all", "execute", "execute_returning_one", "transaction"):
        monkeypatch.setattr(db, name, getattr(fake, name))
    return fake


@pytest.fixture
def client(fake_db):
    app.dependency_overrides.clear()
    yield TestClient(app)
    app.dependency_overrides.clear()


def _login_as(user: Optional[dict]) -> None:
    app.dependency_overrides[get_current_user] = lambda: dict(user)


@pytest.fixture
def as_customer(client):
    _login_as(CUSTOMER)
    return CUSTOMER


@pytest.fixture
def as_admin(client):
    _login_as(ADMIN)
    return ADMIN
