from conftest import ADMIN, CUSTOMER

from storefront.api.auth_utils import create_user_access_token, decode_access_token, hash_password, verify_password


def _bearer(user):
    return {"Authorization": f"Bearer {create_user_access_token(user)}"}


def test_password_hash_roundtrip():
    hashed = hash_password("secret123")
    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("secret123", "not-a-hash")


def test_token_carries_user_and_role():
    claims = decode_access_token(create_user_access_token(ADMIN))
    assert claims["sub"] == "1"
    assert claims["role_name"] == "admin"
    assert "exp" in claims


def test_register_creates_customer(client, fake_db):
    fake_db.on("fetch_one", "FROM roles WHERE LOWER(name)", {"id": 2})
    fake_db.on(
        "execute_returning_one",
        "INSERT INTO users",
        {"id": 9, "username": "bob", "email": "bob@example.com", "full_name": "Bob", "role_id": 2, "status": 1},
    )

    resp = client.post(
        "/auth/register",
        json={"username": "bob", "email": "Bob@Example.com", "password": "hunter22", "full_name": "Bob"},
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == 201
    assert body["data"]["username"] == "bob"
    params = fake_db.find("execute_returning_one", "INSERT INTO users")[0]
    assert params[1] == "bob@example.com"
    assert verify_password("hunter22", params[2])
    assert params[4] == 2


def test_register_duplicate_email_conflicts(client, fake_db):
    fake_db.on("fetch_one", "FROM users WHERE LOWER(email)", {"id": 3})

    resp = client.post(
        "/auth/register",
        json={"username": "bob", "email": "bob@example.com", "password": "hunter22", "full_name": "Bob"},
    )

    assert resp.status_code == 409
    assert resp.json() == {"status": 409, "message": "Email already registered", "data": None}
    assert not fake_db.find("execute_returning_one", "INSERT INTO users")


def test_register_validation_error_uses_envelope(client, fake_db):
    resp = client.post(
        "/auth/register",
        json={"username": "bob", "email": "not-an-email", "password": "123", "full_name": "Bob"},
    )

    assert resp.status_code == 400
    body = resp.json()
    assert body["message"] == "Invalid request data"
    fields = {err["field"] for err in body["data"]}
    assert {"body.email", "body.password"} <= fields


def test_login_sets_cookie_and_hides_password(client, fake_db):
    fake_db.on("fetch_one", "u.password FROM users", {**CUSTOMER, "password": hash_password("secret123")})

    resp = client.post("/auth/login", json={"username": "alice", "password": "secret123"})

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["token_type"] == "bearer"
    assert "password" not in data["user"]
    assert resp.cookies.get("token") == data["access_token"]
    assert decode_access_token(data["access_token"])["sub"] == str(CUSTOMER["id"])


def test_login_wrong_password(client, fake_db):
    fake_db.on("fetch_one", "u.password FROM users", {**CUSTOMER, "password": hash_password("secret123")})

    resp = client.post("/auth/login", json={"username": "alice", "password": "nope"})

    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid credentials"


def test_login_rejects_banned_account(client, fake_db):
    fake_db.on(
        "fetch_one", "u.password FROM users", {**CUSTOMER, "status": -1, "password": hash_password("secret123")}
    )

    resp = client.post("/auth/login", json={"username": "alice", "password": "secret123"})

    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid credentials"


def test_login_unknown_user_gives_same_message(client, fake_db):
    resp = client.post("/auth/login", json={"username": "ghost", "password": "secret123"})

    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid credentials"


def test_register_username_is_case_insensitive(client, fake_db):
    fake_db.on("fetch_one", "FROM users WHERE LOWER(username)", {"id": 7})

    resp = client.post(
        "/auth/register",
        json={"username": "Alice", "email": "alice2@example.com", "password": "hunter22", "full_name": "Alice"},
    )

    assert resp.status_code == 409
    assert resp.json()["message"] == "Username already taken"
    assert fake_db.find("fetch_one", "FROM users WHERE LOWER(username)=LOWER(%s) AND status <> %s")[0] == ["Alice", -2]


def test_profile_with_bearer_token(client, fake_db):
    fake_db.on("fetch_one", "FROM users u LEFT JOIN roles r", CUSTOMER)

    resp = client.get("/auth/profile", headers=_bearer(CUSTOMER))

    assert resp.status_code == 200
    assert resp.json()["data"]["username"] == "alice"


def test_profile_with_cookie(client, fake_db):
    fake_db.on("fetch_one", "FROM users u LEFT JOIN roles r", CUSTOMER)
    client.cookies.set("token", create_user_access_token(CUSTOMER))

    resp = client.get("/auth/profile")

    assert resp.status_code == 200


def test_missing_token_is_unauthorized(client, fake_db):
    resp = client.get("/auth/profile")
    assert resp.status_code == 401
    assert resp.json()["message"] == "Not authenticated"


def test_garbage_token_is_unauthorized(client, fake_db):
    resp = client.get("/auth/profile", headers={"Authorization": "Bearer abc.def.ghi"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid token"


def test_inactive_user_is_unauthorized(client, fake_db):
    fake_db.on("fetch_one", "FROM users u LEFT JOIN roles r", {**CUSTOMER, "status": 0})

    resp = client.get("/auth/profile", headers=_bearer(CUSTOMER))

    assert resp.status_code == 401


def test_admin_routes_reject_customers(client, fake_db):
    fake_db.on("fetch_one", "FROM users u LEFT JOIN roles r", CUSTOMER)

    resp = client.get("/admin/users", headers=_bearer(CUSTOMER))

    assert resp.status_code == 403
    assert resp.json()["message"] == "Admin access required"


def test_update_profile(client, fake_db, as_customer):
    fake_db.on("fetch_one", "FROM users u LEFT JOIN roles r", {**CUSTOMER, "phone": "0900000000"})

    resp = client.put("/auth/profile", json={"phone": "0900000000"})

    assert resp.status_code == 200
    assert resp.json()["data"]["phone"] == "0900000000"
    assert fake_db.find("execute", "UPDATE users SET phone=%s") == [["0900000000", CUSTOMER["id"]]]


def test_update_profile_requires_a_field(client, fake_db, as_customer):
    resp = client.put("/auth/profile", json={})
    assert resp.status_code == 400


def test_logout_clears_cookie(client, fake_db):
    resp = client.post("/auth/logout")
    assert resp.status_code == 200
    assert "token=" in resp.headers["set-cookie"]
