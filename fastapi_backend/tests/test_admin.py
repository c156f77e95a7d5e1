from storefront.api.auth_utils import verify_password


# =========================
# Users
# =========================

def test_list_users_searches_and_filters(client, fake_db, as_admin):
    fake_db.on("fetch_one", "COUNT(*) AS total FROM users u", {"total": 1})
    fake_db.on("fetch_all", "FROM users u", [{"id": 7, "username": "alice"}])

    resp = client.get("/admin/users", params={"search": "ali", "status": -1})

    assert resp.json()["pagination"]["total_items"] == 1
    assert fake_db.find("fetch_all", "FROM users u")[0] == [-2, "%ali%", "%ali%", "%ali%", -1, 10, 0]


def test_create_user_hashes_password(client, fake_db, as_admin):
    fake_db.on("fetch_one", "FROM roles WHERE id=%s", {"id": 2})
    fake_db.on("execute_returning_one", "INSERT INTO users", {"id": 20})
    fake_db.on("fetch_one", "FROM users u", {"id": 20, "username": "staff"})

    resp = client.post(
        "/admin/users",
        json={"username": "staff", "password": "secret123", "email": "Staff@Example.com", "role_id": 2},
    )

    assert resp.status_code == 201
    params = fake_db.find("execute_returning_one", "INSERT INTO users")[0]
    assert params[0] == "staff"
    assert verify_password("secret123", params[1])
    assert params[2] == "staff@example.com"


def test_create_user_with_unknown_role(client, fake_db, as_admin):
    resp = client.post(
        "/admin/users", json={"username": "staff", "password": "secret123", "email": "s@example.com", "role_id": 99}
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Role not found"


def test_create_user_duplicate_username(client, fake_db, as_admin):
    fake_db.on("fetch_one", "FROM users WHERE LOWER(username)", {"id": 7})

    resp = client.post("/admin/users", json={"username": "alice", "password": "secret123", "email": "a@example.com"})

    assert resp.status_code == 409


def test_update_user_rehashes_password(client, fake_db, as_admin):
    fake_db.on("fetch_one", "FROM users u", {"id": 7, "username": "alice"})

    resp = client.put("/admin/users/7", json={"password": "newpass1"})

    assert resp.status_code == 200
    params = fake_db.find("execute", "UPDATE users SET password=%s")[0]
    assert verify_password("newpass1", params[0])
    assert params[1] == 7


def test_admin_cannot_ban_self(client, fake_db, as_admin):
    resp = client.put(f"/admin/users/{as_admin['id']}/status", json={"status": -1})
    assert resp.status_code == 400


def test_ban_user(client, fake_db, as_admin):
    resp = client.put("/admin/users/7/status", json={"status": -1})

    assert resp.json()["data"] == {"id": 7, "status": -1}
    assert fake_db.find("execute", "UPDATE users SET status=%s") == [[-1, 7]]


def test_status_must_be_known(client, fake_db, as_admin):
    assert client.put("/admin/users/7/status", json={"status": 3}).status_code == 400


# =========================
# Roles
# =========================

def test_create_role_unique_name(client, fake_db, as_admin):
    fake_db.on("fetch_one", "FROM roles WHERE LOWER(name)", {"id": 1})

    resp = client.post("/admin/roles", json={"name": "Admin", "description": "dup"})

    assert resp.status_code == 409


def test_create_role(client, fake_db, as_admin):
    fake_db.on("execute_returning_one", "INSERT INTO roles", {"id": 3, "name": "staff"})

    resp = client.post("/admin/roles", json={"name": "staff", "description": "Warehouse staff"})

    assert resp.status_code == 201
    assert fake_db.find("execute_returning_one", "INSERT INTO roles") == [["staff", "Warehouse staff", 1]]


def test_roles_list_ordered_by_id(client, fake_db, as_admin):
    client.get("/admin/roles")
    sql = [s for m, s, _ in fake_db.calls if m == "fetch_all"][0]
    assert "ORDER BY id ASC" in sql


# =========================
# Payment methods
# =========================

def test_payment_methods_need_login(client, fake_db):
    assert client.get("/payment-methods").status_code == 401


def test_payment_methods_active_only(client, fake_db, as_customer):
    fake_db.on("fetch_all", "FROM payment_methods", [{"id": 1, "code": "COD"}])

    resp = client.get("/payment-methods")

    assert resp.json()["data"] == [{"id": 1, "code": "COD"}]
    assert fake_db.find("fetch_all", "FROM payment_methods") == [[1]]


def test_create_payment_method_wraps_config(client, fake_db, as_admin):
    fake_db.on("execute_returning_one", "INSERT INTO payment_methods", {"id": 2, "code": "VNPAY"})

    resp = client.post(
        "/admin/payment-methods",
        json={"name": "VNPay", "code": "VNPAY", "provider": "vnpay", "config": {"sandbox": True}},
    )

    assert resp.status_code == 201
    params = fake_db.find("execute_returning_one", "INSERT INTO payment_methods")[0]
    wrapped = [p for p in params if hasattr(p, "adapted")]
    assert wrapped[0].adapted == {"sandbox": True}


# =========================
# Settings
# =========================

def test_settings_list_is_public(client, fake_db):
    fake_db.on("fetch_all", "FROM settings", [{"name": "hotline", "value": "1900"}])
    assert client.get("/settings").json()["data"][0]["name"] == "hotline"


def test_bulk_upsert_reports_actions(client, fake_db, as_admin):
    fake_db.on("execute", "UPDATE settings SET value=%s", lambda sql, params: 1 if params[1] == "hotline" else 0)

    resp = client.put(
        "/settings/bulk", json=[{"name": "hotline", "value": "1900 1234"}, {"name": "email", "value": "hi@shop.vn"}]
    )

    assert resp.status_code == 200
    assert resp.json()["data"] == [
        {"name": "hotline", "action": "updated"},
        {"name": "email", "action": "created"},
    ]
    assert fake_db.find("execute", "INSERT INTO settings") == [["email", "hi@shop.vn", 1]]


def test_bulk_upsert_needs_admin(client, fake_db, as_customer):
    assert client.put("/settings/bulk", json=[]).status_code == 403


def test_create_setting_duplicate(client, fake_db, as_admin):
    fake_db.on("fetch_one", "FROM settings WHERE LOWER(name)", {"id": 1})
    assert client.post("/settings", json={"name": "hotline", "value": "1"}).status_code == 409


def test_delete_setting(client, fake_db, as_admin):
    fake_db.on("fetch_one", "FROM settings WHERE id=%s", {"id": 5})

    resp = client.delete("/settings/5")

    assert resp.status_code == 200
    assert fake_db.find("execute_returning_one", "UPDATE settings SET status=%s") == [[-2, 5]]


def test_update_user_rejects_null_email(client, fake_db, as_admin):
    fake_db.on("fetch_one", "FROM users u", {"id": 9, "username": "bob"})

    resp = client.put("/admin/users/9", json={"email": None})

    assert resp.status_code == 400
    assert not fake_db.find("execute", "UPDATE users SET")


def test_update_user_may_clear_phone(client, fake_db, as_admin):
    fake_db.on("fetch_one", "FROM users u", {"id": 9, "username": "bob"})

    resp = client.put("/admin/users/9", json={"phone": None})

    assert resp.status_code == 200
    assert fake_db.find("execute", "UPDATE users SET phone=%s") == [[None, 9]]


def test_create_user_checks_uniqueness_like_register(client, fake_db, as_admin):
    client.post("/admin/users", json={"username": "Alice", "password": "secret123", "email": "a@example.com"})

    assert fake_db.find("fetch_one", "FROM users WHERE LOWER(username)=LOWER(%s) AND status <> %s")[0] == ["Alice", -2]


def test_payment_method_list_matches_checkout_filter(client, fake_db, as_customer):
    client.get("/payment-methods")

    sql = [s for m, s, _ in fake_db.calls if m == "fetch_all" and "FROM payment_methods" in s][0]
    assert "status=%s AND is_active" in sql


def test_bulk_upsert_matches_existing_name_case_insensitively(client, fake_db, as_admin):
    fake_db.on(
        "execute", "UPDATE settings SET value=%s", lambda sql, params: 1 if params[1].lower() == "sitename" else 0
    )

    resp = client.put("/settings/bulk", json=[{"name": "sitename", "value": "PC Shop"}])

    assert resp.json()["data"] == [{"name": "sitename", "action": "updated"}]
    assert not fake_db.find("execute", "INSERT INTO settings")
    sql = [s for m, s, _ in fake_db.calls if m == "execute" and "UPDATE settings" in s][0]
    assert "LOWER(name)=LOWER(%s) AND status <> %s" in sql
    assert fake_db.find("execute", "UPDATE settings SET value=%s") == [["PC Shop", "sitename", -2]]
