"""Almacenes, gabinetes, empleados y usuarios"""


def test_create_warehouse_also_creates_cabinet(client, seed, session_user):
    session_user.set(seed.admin)
    response = client.post("/api/v1/warehouse/create", json={"name": "Almacén Este", "code": "ALM-E"})

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["code"] == "ALM-E"
    assert body["data"]["createdBy"] == seed.admin.id

    cabinets = client.get("/api/v1/cabinet-warehouse/all").json()["data"]
    names = [cabinet["name"] for cabinet in cabinets]
    assert "Almacén Este Gabinete" in names


def test_create_warehouse_duplicate_code(client, seed):
    response = client.post("/api/v1/warehouse/create", json={"name": "Otro", "code": "ALM-N"})

    assert response.status_code == 409
    assert response.json() == {
        "success": False,
        "message": "Warehouse code already exists - please use a unique code",
    }


def test_create_warehouse_rejects_bad_hours(client, seed):
    response = client.post(
        "/api/v1/warehouse/create",
        json={"name": "Horario", "code": "HR", "operatingHoursStart": "25:00"},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid request data"


def test_update_config_requires_a_field(client, seed, session_user):
    session_user.set(seed.admin)
    response = client.patch(f"/api/v1/warehouse/{seed.store_id}/update-config", json={})
    assert response.status_code == 400


def test_update_config_sets_cedis_flag(client, seed, session_user):
    session_user.set(seed.encargado)
    response = client.patch(f"/api/v1/warehouse/{seed.other_id}/update-config", json={"isCedis": True})

    assert response.status_code == 200
    assert response.json()["data"]["isCedis"] is True


def test_update_config_unknown_warehouse(client, seed, session_user):
    session_user.set(seed.admin)
    response = client.patch("/api/v1/warehouse/missing/update-config", json={"isCedis": True})
    assert response.status_code == 404


def test_update_config_forbidden_for_employee(client, seed, session_user):
    session_user.set(seed.employee_user)
    response = client.patch(f"/api/v1/warehouse/{seed.store_id}/update-config", json={"isCedis": True})
    assert response.status_code == 403


def test_cabinet_map_includes_cedis_without_cabinet(client, seed):
    body = client.get("/api/v1/cabinet-warehouse/map").json()

    entries = body["data"]
    assert [entry["warehouseName"] for entry in entries] == sorted(entry["warehouseName"] for entry in entries)
    cedis = next(entry for entry in entries if entry["warehouseId"] == seed.cedis_id)
    assert cedis["cabinetId"] is None
    assert len(entries) == 3


def test_create_employee_with_unknown_warehouse(client, seed):
    response = client.post(
        "/api/v1/employee/create",
        json={"name": "Luis", "surname": "Pérez", "warehouseId": "missing"},
    )
    assert response.status_code == 400


def test_create_employee_defaults_passcode(client, seed):
    response = client.post(
        "/api/v1/employee/create",
        json={"name": "Luis", "surname": "Pérez", "warehouseId": seed.store_id},
    )
    assert response.status_code == 201
    assert response.json()["data"]["employee"]["passcode"] == 1111


def test_update_user_requires_role_or_warehouse(client, seed, session_user):
    session_user.set(seed.admin)
    response = client.post("/api/v1/users/update", json={"userId": seed.employee_user.id})
    assert response.status_code == 400


def test_update_user_role(client, seed, session_user):
    session_user.set(seed.admin)
    response = client.post(
        "/api/v1/users/update",
        json={"userId": seed.employee_user.id, "role": "encargado"},
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["role"] == "encargado"
    assert "passwordHash" not in data


def test_update_unknown_user(client, seed, session_user):
    session_user.set(seed.admin)
    response = client.post("/api/v1/users/update", json={"userId": "missing", "role": "employee"})
    assert response.status_code == 404
