"""Unidades de producto: altas, uso, bajas y purga"""
from inventory_api.shared.database.models import (
    InventoryShrinkageEvent, ProductStock, ProductStockUsageHistory
)


def test_create_multiple_units(client, seed):
    response = client.post(
        "/api/v1/product-stock/create",
        json={"barcode": 7509999, "quantity": 3, "currentWarehouse": seed.store_id, "description": "Crema"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Product stock created successfully (x3)"
    assert len(body["data"]) == 3
    assert {row["barcode"] for row in body["data"]} == {7509999}


def test_create_in_use_requires_last_used_by(client, seed):
    response = client.post(
        "/api/v1/product-stock/create",
        json={"barcode": 1, "currentWarehouse": seed.store_id, "isBeingUsed": True},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "lastUsedBy is required when product is being used"


def test_create_with_unknown_warehouse(client, seed):
    response = client.post(
        "/api/v1/product-stock/create",
        json={"barcode": 1, "currentWarehouse": "missing"},
    )
    assert response.status_code == 400


def test_create_with_employee_writes_history(client, seed, db_session):
    response = client.post(
        "/api/v1/product-stock/create",
        json={"barcode": 42, "currentWarehouse": seed.store_id, "lastUsedBy": seed.employee_id},
    )
    assert response.status_code == 201

    product_id = response.json()["data"][0]["id"]
    history = db_session.query(ProductStockUsageHistory).filter_by(product_stock_id=product_id).all()
    assert len(history) == 1
    assert history[0].action == "checkin"


def test_by_warehouse_splits_warehouse_and_cabinet(client, seed):
    body = client.get("/api/v1/product-stock/by-warehouse", params={"warehouseId": seed.store_id}).json()

    assert body["data"]["cabinetId"] == seed.store_cabinet_id
    assert len(body["data"]["cabinet"]) == 1
    assert body["data"]["cabinet"][0]["productStock"]["barcode"] == 7503003


def test_by_warehouse_leaves_cabinet_units_out_of_warehouse_list(client, seed):
    body = client.get("/api/v1/product-stock/by-warehouse", params={"warehouseId": seed.store_id}).json()

    warehouse_ids = {row["productStock"]["id"] for row in body["data"]["warehouse"]}
    assert warehouse_ids == set(seed.product_ids[:3])
    assert seed.product_ids[3] not in warehouse_ids


def test_by_warehouse_cedis_has_no_cabinet(client, seed):
    body = client.get("/api/v1/product-stock/by-warehouse", params={"warehouseId": seed.cedis_id}).json()

    assert body["data"]["cabinet"] == []
    assert body["data"]["cabinetId"] == ""
    assert "CEDIS" in body["message"]


def test_by_warehouse_unknown(client, seed):
    response = client.get("/api/v1/product-stock/by-warehouse", params={"warehouseId": "missing"})
    assert response.status_code == 404


def test_update_usage_checkout_and_first_used_is_kept(client, seed, db_session):
    product_id = seed.product_ids[0]
    response = client.post("/api/v1/product-stock/update-usage", json={
        "productStockId": product_id,
        "isBeingUsed": True,
        "lastUsedBy": seed.employee_id,
        "firstUsed": "2024-01-10",
        "incrementUses": True,
    })
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["isBeingUsed"] is True
    assert data["numberOfUses"] == 1
    assert data["firstUsed"] == "2024-01-10"

    response = client.post("/api/v1/product-stock/update-usage", json={
        "productStockId": product_id,
        "isBeingUsed": False,
        "lastUsedBy": seed.employee_id,
        "firstUsed": "2024-05-01",
    })
    assert response.json()["data"]["firstUsed"] == "2024-01-10"

    actions = [
        row.action for row in db_session.query(ProductStockUsageHistory).filter_by(product_stock_id=product_id)
    ]
    assert sorted(actions) == ["checkin", "checkout"]


def test_update_usage_without_fields(client, seed):
    response = client.post("/api/v1/product-stock/update-usage", json={"productStockId": seed.product_ids[0]})
    assert response.status_code == 400


def test_update_usage_unknown_employee(client, seed):
    response = client.post("/api/v1/product-stock/update-usage", json={
        "productStockId": seed.product_ids[0],
        "lastUsedBy": "missing",
    })
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid employee ID - employee does not exist"


def test_toggle_is_kit(client, seed):
    response = client.post("/api/v1/product-stock/update-is-kit", json={"productStockId": seed.product_ids[0]})
    assert response.json()["data"]["isKit"] is True


def test_delete_requires_encargado(client, seed, session_user):
    session_user.set(None)
    response = client.delete("/api/v1/product-stock/delete", params={"id": seed.product_ids[0]})
    assert response.status_code == 401

    session_user.set(seed.admin)
    response = client.delete("/api/v1/product-stock/delete", params={"id": seed.product_ids[0]})
    assert response.status_code == 403


def test_delete_records_legacy_shrinkage(client, seed, session_user, db_session):
    session_user.set(seed.encargado)
    product_id = seed.product_ids[0]

    response = client.delete("/api/v1/product-stock/delete", params={"id": product_id})
    assert response.status_code == 200
    assert response.json()["data"]["isDeleted"] is True

    event = db_session.query(InventoryShrinkageEvent).filter_by(product_stock_id=product_id).one()
    assert event.reason == "otro"
    assert event.source == "manual"
    assert event.warehouse_id == seed.store_id

    response = client.delete("/api/v1/product-stock/delete", params={"id": product_id})
    assert response.status_code == 404


def test_mark_empty_records_consumido(client, seed, db_session):
    cabinet_product = seed.product_ids[3]
    response = client.post("/api/v1/product-stock/update-is-empty", json={"productIds": [cabinet_product]})

    assert response.status_code == 200
    assert response.json()["data"]["updatedCount"] == 1

    event = db_session.query(InventoryShrinkageEvent).filter_by(product_stock_id=cabinet_product).one()
    assert event.reason == "consumido"


def test_mark_empty_unknown_ids(client, seed):
    response = client.post("/api/v1/product-stock/update-is-empty", json={"productIds": ["missing"]})
    assert response.status_code == 404


def test_deleted_and_empty_listing(client, seed):
    client.post("/api/v1/product-stock/update-is-empty", json={"productIds": [seed.product_ids[1]]})
    body = client.get("/api/v1/product-stock/deleted-and-empty").json()
    assert [row["id"] for row in body["data"]] == [seed.product_ids[1]]


def test_purge_only_for_main_account(client, seed, session_user):
    session_user.set(seed.admin)
    response = client.post("/api/v1/product-stock/purge-non-cedis")
    assert response.status_code == 403


def test_purge_removes_non_cedis_stock(client, seed, session_user, db_session):
    db_session.add(ProductStock(barcode=9, current_warehouse=seed.cedis_id))
    db_session.commit()

    session_user.set(seed.owner)
    response = client.post("/api/v1/product-stock/purge-non-cedis")

    assert response.status_code == 200
    assert response.json()["data"]["productStockDeleted"] == 4
    remaining = db_session.query(ProductStock).all()
    assert [product.current_warehouse for product in remaining] == [seed.cedis_id]
