"""Pedidos de reabastecimiento almacén -> CEDIS"""
import pytest

BASE = "/api/v1/replenishment-orders"


@pytest.fixture
def order(client, seed, session_user):
    session_user.set(seed.encargado)
    response = client.post(BASE, json={
        "sourceWarehouseId": seed.store_id,
        "cedisWarehouseId": seed.cedis_id,
        "notes": "  Urgente para fin de semana  ",
        "items": [
            {"barcode": 7502002, "quantity": 2},
            {"barcode": 7501001, "quantity": 5, "notes": "Presentación 1L"},
        ],
    })
    assert response.status_code == 201, response.json()
    return response.json()["data"]


def _external_transfer(client, seed, source_id, destination_id, number="TR-PED-1"):
    response = client.post("/api/v1/warehouse-transfers/create", json={
        "transferNumber": number,
        "transferType": "external",
        "sourceWarehouseId": source_id,
        "destinationWarehouseId": destination_id,
        "initiatedBy": seed.cedis_encargado.id,
        "transferDetails": [{"productStockId": seed.product_ids[2], "quantityTransferred": 1}],
    })
    return response.json()["data"]["transfer"]["id"]


def test_create_order(order):
    assert order["orderNumber"].startswith("PED-")
    assert order["orderNumber"].endswith("-0001")
    assert order["notes"] == "Urgente para fin de semana"
    assert order["itemsCount"] == 2
    assert order["hasRelatedTransfer"] is False
    assert [detail["barcode"] for detail in order["details"]] == [7501001, 7502002]


def test_order_numbers_are_sequential(client, seed, order):
    response = client.post(BASE, json={
        "sourceWarehouseId": seed.other_id,
        "cedisWarehouseId": seed.cedis_id,
        "items": [{"barcode": 1, "quantity": 1}],
    })
    assert response.json()["data"]["orderNumber"].endswith("-0002")


def test_create_requires_authentication(client, seed, session_user):
    session_user.set(None)
    response = client.post(BASE, json={
        "sourceWarehouseId": seed.store_id,
        "cedisWarehouseId": seed.cedis_id,
        "items": [{"barcode": 1, "quantity": 1}],
    })
    assert response.status_code == 401


def test_create_validations(client, seed, session_user):
    session_user.set(seed.encargado)

    response = client.post(BASE, json={
        "sourceWarehouseId": seed.store_id,
        "cedisWarehouseId": seed.other_id,
        "items": [{"barcode": 1, "quantity": 1}],
    })
    assert response.status_code == 400
    assert response.json()["message"] == "Destination warehouse must be flagged as CEDIS"

    response = client.post(BASE, json={
        "sourceWarehouseId": "missing",
        "cedisWarehouseId": seed.cedis_id,
        "items": [{"barcode": 1, "quantity": 1}],
    })
    assert response.status_code == 404
    assert response.json()["message"] == "Source warehouse not found"

    response = client.post(BASE, json={
        "sourceWarehouseId": seed.store_id,
        "cedisWarehouseId": seed.cedis_id,
        "items": [{"barcode": 1, "quantity": 1}, {"barcode": 1, "quantity": 3}],
    })
    assert response.status_code == 400
    assert response.json()["message"] == "Duplicate barcode 1 detected"


def test_list_and_filter(client, seed, order):
    body = client.get(BASE).json()
    assert len(body["data"]) == 1

    assert len(client.get(BASE, params={"status": "open"}).json()["data"]) == 1
    assert client.get(BASE, params={"status": "sent"}).json()["data"] == []

    by_warehouse = client.get(f"{BASE}/warehouse/{seed.store_id}").json()
    assert by_warehouse["message"] == "Warehouse replenishment orders retrieved successfully"
    assert len(by_warehouse["data"]) == 1
    assert client.get(f"{BASE}/warehouse/{seed.other_id}").json()["data"] == []


def test_get_unknown_order(client, seed, session_user):
    session_user.set(seed.encargado)
    response = client.get(f"{BASE}/missing")
    assert response.status_code == 404
    assert response.json()["message"] == "Replenishment order not found"


def test_update_requires_a_field(client, order):
    response = client.put(f"{BASE}/{order['id']}", json={})
    assert response.status_code == 400


def test_receive_before_send(client, order):
    response = client.put(f"{BASE}/{order['id']}", json={"isReceived": True})
    assert response.status_code == 400
    assert response.json()["message"] == "Order must be sent before it can be marked as received"


def test_send_receive_and_unfulfilled(client, seed, order):
    order_id = order["id"]

    sent = client.put(f"{BASE}/{order_id}", json={
        "isSent": True,
        "items": [
            {"barcode": 7501001, "quantity": 5, "sentQuantity": 3},
            {"barcode": 7502002, "quantity": 2},
        ],
    }).json()["data"]
    assert sent["isSent"] is True
    assert sent["sentByUserId"] == seed.encargado.id
    sent_quantities = {detail["barcode"]: detail["sentQuantity"] for detail in sent["details"]}
    assert sent_quantities == {7501001: 3, 7502002: 2}

    assert client.get(f"{BASE}/unfulfilled-products").json()["data"] == []

    received = client.put(f"{BASE}/{order_id}", json={"isReceived": True}).json()["data"]
    assert received["isReceived"] is True
    assert received["receivedAt"] is not None

    unfulfilled = client.get(f"{BASE}/unfulfilled-products").json()["data"]
    assert len(unfulfilled) == 1
    assert unfulfilled[0]["barcode"] == 7501001
    assert unfulfilled[0]["unfulfilledQuantity"] == 2
    assert unfulfilled[0]["orderNumber"] == order["orderNumber"]

    response = client.patch(f"{BASE}/mark-buy-order-generated", json={"detailIds": [unfulfilled[0]["id"]]})
    assert response.json()["message"] == "Successfully marked 1 item(s) as buy order generated"
    assert client.get(f"{BASE}/unfulfilled-products").json()["data"] == []


def test_unsend_clears_reception(client, order):
    order_id = order["id"]
    client.put(f"{BASE}/{order_id}", json={"isSent": True})
    client.put(f"{BASE}/{order_id}", json={"isReceived": True})

    data = client.put(f"{BASE}/{order_id}", json={"isSent": False}).json()["data"]
    assert data["isSent"] is False
    assert data["sentAt"] is None
    assert data["isReceived"] is False
    assert data["receivedByUserId"] is None


def test_link_transfer(client, seed, session_user, order):
    transfer_id = _external_transfer(client, seed, seed.cedis_id, seed.store_id)

    session_user.set(seed.cedis_encargado)
    response = client.patch(f"{BASE}/{order['id']}/link-transfer", json={"warehouseTransferId": transfer_id})

    assert response.status_code == 200
    assert response.json()["data"]["warehouseTransferId"] == transfer_id
    assert response.json()["data"]["hasRelatedTransfer"] is True


def test_link_transfer_forbidden(client, seed, session_user, order):
    transfer_id = _external_transfer(client, seed, seed.cedis_id, seed.store_id)

    session_user.set(seed.employee_user)
    response = client.patch(f"{BASE}/{order['id']}/link-transfer", json={"warehouseTransferId": transfer_id})

    assert response.status_code == 403
    assert response.json()["message"].startswith("Forbidden: User warehouse")


def test_link_transfer_wrong_direction(client, seed, session_user, order):
    transfer_id = _external_transfer(client, seed, seed.store_id, seed.other_id)

    session_user.set(seed.cedis_encargado)
    response = client.patch(f"{BASE}/{order['id']}/link-transfer", json={"warehouseTransferId": transfer_id})

    assert response.status_code == 400
    assert response.json()["message"] == "Transfer direction does not match replenishment order warehouses"

    response = client.patch(f"{BASE}/{order['id']}/link-transfer", json={"warehouseTransferId": "missing"})
    assert response.status_code == 404
