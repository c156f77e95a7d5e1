import pytest


@pytest.mark.parametrize(
    "path, table",
    [
        ("/cpus", "cpus"),
        ("/ram", "ram"),
        ("/storages", "hard_drives"),
        ("/graphics-cards", "graphics_cards"),
        ("/displays", "displays"),
    ],
)
def test_public_list_reads_component_table(client, fake_db, path, table):
    fake_db.on("fetch_one", f"SELECT COUNT(*) AS total FROM {table}", {"total": 3})
    fake_db.on("fetch_all", f"FROM {table}", [{"id": 1, "name": "x"}])

    resp = client.get(path, params={"search": "i7"})

    assert resp.status_code == 200
    assert resp.json()["pagination"]["total_items"] == 3
    assert fake_db.find("fetch_all", f"FROM {table}")[0] == [-2, "%i7%", 10, 0]


def test_create_cpu(client, fake_db, as_admin):
    fake_db.on("execute_returning_one", "INSERT INTO cpus", {"id": 8, "name": "Core i7-13700H"})

    resp = client.post("/cpus", json={"name": "Core i7-13700H", "brand": "Intel", "cores": 14, "threads": 20})

    assert resp.status_code == 201
    assert resp.json()["data"]["id"] == 8
    params = fake_db.find("execute_returning_one", "INSERT INTO cpus")[0]
    assert params[0] == "Core i7-13700H"
    assert params[-1] == 1


def test_create_ram_validates_required_fields(client, fake_db, as_admin):
    resp = client.post("/ram", json={"name": "DDR5 16GB"})
    assert resp.status_code == 400
    fields = {err["field"] for err in resp.json()["data"]}
    assert {"body.type", "body.brand", "body.capacity", "body.speed"} <= fields


def test_component_writes_need_admin(client, fake_db, as_customer):
    assert client.post("/displays", json={"name": "15.6 FHD"}).status_code == 403


def test_update_with_nothing_to_change(client, fake_db, as_admin):
    resp = client.put("/graphics-cards/3", json={})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Nothing to update"


def test_update_storage(client, fake_db, as_admin):
    fake_db.on("execute_returning_one", "UPDATE hard_drives SET", {"id": 3, "capacity": 1024})

    resp = client.put("/storages/3", json={"capacity": 1024})

    assert resp.status_code == 200
    assert fake_db.find("execute_returning_one", "UPDATE hard_drives SET capacity=%s") == [[1024, 3, -2]]


def test_get_deleted_component_is_not_found(client, fake_db):
    resp = client.get("/cpus/99")
    assert resp.status_code == 404
    assert resp.json() == {"status": 404, "message": "CPU not found", "data": None}


def test_ban_component(client, fake_db, as_admin):
    fake_db.on("execute_returning_one", "UPDATE displays SET status=%s", {"id": 2, "status": -1})

    resp = client.put("/displays/2/status", json={"status": -1})

    assert resp.json()["data"]["status"] == -1
