"""Kits asignados a empleados"""
from inventory_api.shared.database.models import ProductStock, ProductStockUsageHistory


def _create_kit(client, seed, product_ids):
    return client.post("/api/v1/kits/create", json={
        "assignedEmployee": seed.employee_id,
        "observations": "Kit de colorimetría",
        "kitItems": [{"productId": product_id} for product_id in product_ids],
    })


def test_create_kit_marks_units_in_use(client, seed, db_session):
    response = _create_kit(client, seed, seed.product_ids[:2])

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Kit created successfully"
    assert body["data"]["kit"]["numProducts"] == 2
    assert len(body["data"]["items"]) == 2

    for product_id in seed.product_ids[:2]:
        product = db_session.get(ProductStock, product_id)
        db_session.refresh(product)
        assert product.is_being_used is True
        assert product.last_used_by == seed.employee_id
        assert product.number_of_uses == 1

    actions = {
        row.action for row in db_session.query(ProductStockUsageHistory).filter(
            ProductStockUsageHistory.kit_id == body["data"]["kit"]["id"]
        )
    }
    assert actions == {"assign"}


def test_create_kit_rejects_units_in_use(client, seed):
    _create_kit(client, seed, [seed.product_ids[0]])

    response = _create_kit(client, seed, [seed.product_ids[0]])
    assert response.status_code == 400
    assert response.json()["message"] == "Products with barcodes 7501001 are currently being used"


def test_create_kit_unknown_product(client, seed):
    response = _create_kit(client, seed, ["missing"])
    assert response.status_code == 400
    assert response.json()["message"] == "One or more product stock items not found"


def test_create_kit_requires_items(client, seed):
    response = client.post("/api/v1/kits/create", json={"assignedEmployee": seed.employee_id, "kitItems": []})
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid request data"


def test_kit_details_and_returns(client, seed):
    kit_id = _create_kit(client, seed, seed.product_ids[:2]).json()["data"]["kit"]["id"]

    details = client.get("/api/v1/kits/details", params={"kitId": kit_id}).json()["data"]
    assert details["kit"]["employee"]["id"] == seed.employee_id
    assert details["kit"]["warehouse"]["id"] == seed.store_id
    assert details["summary"] == {"totalItems": 2, "returnedItems": 0, "activeItems": 2}

    first_item = details["items"][0]["id"]
    response = client.post("/api/v1/kits/items/update-status", json={"kitItemId": first_item, "isReturned": True})
    assert response.status_code == 200
    assert response.json()["data"]["isReturned"] is True

    kit = client.get("/api/v1/kits/details", params={"kitId": kit_id}).json()["data"]["kit"]
    assert kit["isPartial"] is True
    assert kit["isComplete"] is False

    second_item = details["items"][1]["id"]
    client.post("/api/v1/kits/items/update-status", json={"kitItemId": second_item, "isReturned": True})
    kit = client.get("/api/v1/kits/details", params={"kitId": kit_id}).json()["data"]["kit"]
    assert kit["isPartial"] is False
    assert kit["isComplete"] is True


def test_kit_details_wrong_warehouse(client, seed):
    kit_id = _create_kit(client, seed, [seed.product_ids[2]]).json()["data"]["kit"]["id"]

    response = client.get("/api/v1/kits/details", params={"kitId": kit_id, "warehouseId": seed.other_id})
    assert response.status_code == 404
    assert response.json()["message"] == "Kit not found for the specified warehouse"


def test_kits_by_employee(client, seed):
    _create_kit(client, seed, [seed.product_ids[2]])

    body = client.get("/api/v1/kits/by-employee", params={"employeeId": seed.employee_id}).json()
    assert len(body["data"]) == 1
    assert body["data"][0]["employee"]["surname"] == "López"

    body = client.get("/api/v1/kits/by-employee", params={"employeeId": "nobody"}).json()
    assert body["data"] == []
    assert body["message"] == "No kits found for employee nobody"


def test_update_unknown_kit(client, seed):
    response = client.post("/api/v1/kits/update", json={"kitId": "missing", "observations": "x"})
    assert response.status_code == 404


def test_create_kit_rejects_repeated_unit(client, seed, db_session):
    response = _create_kit(client, seed, [seed.product_ids[0], seed.product_ids[0]])

    assert response.status_code == 400
    assert response.json()["message"] == "Duplicate product stock items in kit"
    assert db_session.get(ProductStock, seed.product_ids[0]).is_being_used is False


def test_create_kit_rejects_deleted_or_empty_units(client, seed, db_session):
    deleted = db_session.get(ProductStock, seed.product_ids[0])
    deleted.is_deleted = True
    empty = db_session.get(ProductStock, seed.product_ids[1])
    empty.is_empty = True
    db_session.commit()

    response = _create_kit(client, seed, [seed.product_ids[0]])
    assert response.status_code == 400
    assert response.json()["message"] == f"Products {seed.product_ids[0]} are deleted or empty"

    response = _create_kit(client, seed, [seed.product_ids[1], seed.product_ids[2]])
    assert response.status_code == 400
    assert db_session.get(ProductStock, seed.product_ids[2]).is_being_used is False


def test_create_kit_requires_authentication(client, seed, session_user):
    session_user.set(None)
    response = _create_kit(client, seed, [seed.product_ids[0]])

    assert response.status_code == 401
    assert response.json()["message"] == "Authentication required"
