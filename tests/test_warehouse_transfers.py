"""Transferencias entre almacenes y entre almacén y gabinete"""
from inventory_api.shared.database.models import InventoryShrinkageEvent, ProductStock


def _external(seed, number="TR-001", product_ids=None):
    return {
        "transferNumber": number,
        "transferType": "external",
        "sourceWarehouseId": seed.store_id,
        "destinationWarehouseId": seed.other_id,
        "initiatedBy": seed.encargado.id,
        "transferDetails": [
            {"productStockId": product_id, "quantityTransferred": 1}
            for product_id in (product_ids or seed.product_ids[:2])
        ],
    }


def _create(client, payload):
    response = client.post("/api/v1/warehouse-transfers/create", json=payload)
    assert response.status_code == 201, response.json()
    return response.json()["data"]


def test_create_external_transfer_is_pending(client, seed):
    data = _create(client, _external(seed))

    assert data["transfer"]["isPending"] is True
    assert data["transfer"]["isCompleted"] is False
    assert data["transfer"]["totalItems"] == 2
    assert data["totalDetailsCreated"] == 2


def test_external_requires_different_warehouses(client, seed):
    payload = _external(seed)
    payload["destinationWarehouseId"] = seed.store_id

    response = client.post("/api/v1/warehouse-transfers/create", json=payload)
    assert response.status_code == 400
    assert response.json()["message"] == "Source and destination warehouses must be different for external transfers"


def test_duplicate_transfer_number(client, seed):
    _create(client, _external(seed))

    response = client.post("/api/v1/warehouse-transfers/create", json=_external(seed, product_ids=[seed.product_ids[2]]))
    assert response.status_code == 409


def test_invalid_reference(client, seed):
    response = client.post("/api/v1/warehouse-transfers/create", json=_external(seed, product_ids=["missing"]))
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid reference - warehouse, employee, or product does not exist"


def test_internal_transfer_moves_units_to_cabinet(client, seed, db_session):
    data = _create(client, {
        "transferNumber": "INT-001",
        "transferType": "internal",
        "sourceWarehouseId": seed.store_id,
        "destinationWarehouseId": seed.store_id,
        "initiatedBy": seed.encargado.id,
        "cabinetId": seed.store_cabinet_id,
        "transferDetails": [{"productStockId": seed.product_ids[0], "quantityTransferred": 1}],
    })

    assert data["transfer"]["isCompleted"] is True
    assert data["transfer"]["completedDate"] is not None
    product = db_session.get(ProductStock, seed.product_ids[0])
    db_session.refresh(product)
    assert product.current_cabinet == seed.store_cabinet_id


def test_internal_transfer_back_to_warehouse(client, seed, db_session):
    _create(client, {
        "transferNumber": "INT-002",
        "transferType": "internal",
        "sourceWarehouseId": seed.store_id,
        "destinationWarehouseId": seed.store_id,
        "initiatedBy": seed.encargado.id,
        "cabinetId": seed.store_cabinet_id,
        "isCabinetToWarehouse": True,
        "transferDetails": [{"productStockId": seed.product_ids[3], "quantityTransferred": 1}],
    })

    product = db_session.get(ProductStock, seed.product_ids[3])
    db_session.refresh(product)
    assert product.current_cabinet is None


def test_listings(client, seed):
    _create(client, _external(seed))

    assert len(client.get("/api/v1/warehouse-transfers/all").json()["data"]) == 1
    by_source = client.get("/api/v1/warehouse-transfers/by-warehouse", params={"warehouseId": seed.store_id})
    assert len(by_source.json()["data"]) == 1
    external = client.get("/api/v1/warehouse-transfers/external", params={"warehouseId": seed.other_id})
    assert len(external.json()["data"]) == 1
    empty = client.get("/api/v1/warehouse-transfers/external", params={"warehouseId": seed.store_id})
    assert empty.json()["data"] == []


def test_details_summary(client, seed):
    transfer_id = _create(client, _external(seed))["transfer"]["id"]

    data = client.get("/api/v1/warehouse-transfers/details", params={"transferId": transfer_id}).json()["data"]
    assert data["summary"] == {"totalItems": 2, "receivedItems": 0, "pendingItems": 2}
    assert {row["productBarcode"] for row in data["details"]} == {7501001}

    response = client.get("/api/v1/warehouse-transfers/details", params={"transferId": "missing"})
    assert response.status_code == 404


def test_receive_item_requires_destination_user(client, seed, session_user):
    data = _create(client, _external(seed))
    detail_id = data["details"][0]["id"]

    session_user.set(seed.encargado)
    response = client.post("/api/v1/warehouse-transfers/update-item-status", json={
        "transferDetailId": detail_id, "isReceived": True,
    })
    assert response.status_code == 403
    assert response.json()["message"] == "Only destination warehouse users can mark external items as received"


def test_receive_then_complete_registers_missing(client, seed, session_user, db_session):
    data = _create(client, _external(seed))
    transfer_id = data["transfer"]["id"]
    received_detail = data["details"][0]
    missing_detail = data["details"][1]

    session_user.set(seed.admin)
    response = client.post("/api/v1/warehouse-transfers/update-item-status", json={
        "transferDetailId": received_detail["id"], "isReceived": True,
    })
    assert response.status_code == 200
    assert response.json()["data"]["isReceived"] is True

    received = db_session.get(ProductStock, received_detail["productStockId"])
    db_session.refresh(received)
    assert received.current_warehouse == seed.other_id

    response = client.post("/api/v1/warehouse-transfers/update-status", json={
        "transferId": transfer_id, "isCompleted": True,
    })
    assert response.status_code == 200
    assert response.json()["data"]["isPending"] is False

    missing = db_session.get(ProductStock, missing_detail["productStockId"])
    db_session.refresh(missing)
    assert missing.is_deleted is True

    event = db_session.query(InventoryShrinkageEvent).one()
    assert event.source == "transfer_missing"
    assert event.product_stock_id == missing_detail["productStockId"]
    assert event.warehouse_id == seed.other_id
    assert event.notes == "Faltante al completar transferencia TR-001"


def test_completed_transfer_is_locked(client, seed, session_user):
    transfer_id = _create(client, _external(seed))["transfer"]["id"]
    session_user.set(seed.admin)
    client.post("/api/v1/warehouse-transfers/update-status", json={"transferId": transfer_id, "isCompleted": True})

    response = client.post("/api/v1/warehouse-transfers/update-status", json={
        "transferId": transfer_id, "isCancelled": True,
    })
    assert response.status_code == 409

    response = client.post("/api/v1/warehouse-transfers/update-status", json={
        "transferId": transfer_id, "notes": "Revisado",
    })
    assert response.status_code == 200
    assert response.json()["data"]["notes"] == "Revisado"


def test_complete_external_outside_destination(client, seed, session_user):
    transfer_id = _create(client, _external(seed))["transfer"]["id"]
    session_user.set(seed.encargado)

    response = client.post("/api/v1/warehouse-transfers/update-status", json={
        "transferId": transfer_id, "isCompleted": True,
    })
    assert response.status_code == 403


def test_invalid_status_combination(client, seed, session_user):
    session_user.set(seed.admin)
    response = client.post("/api/v1/warehouse-transfers/update-status", json={
        "transferId": "x", "isCompleted": True, "isCancelled": True,
    })
    assert response.status_code == 400
    assert response.json()["message"] == "Transfer cannot be both completed and cancelled"


def test_status_update_requires_authentication(client, seed, session_user):
    session_user.set(None)
    response = client.post("/api/v1/warehouse-transfers/update-status", json={"transferId": "x", "notes": "n"})
    assert response.status_code == 401
