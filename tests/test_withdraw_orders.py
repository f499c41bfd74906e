"""Órdenes de retiro y devoluciones"""
from inventory_api.shared.database.models import ProductStock


def _create_order(client, seed, product_ids, num_items=None):
    return client.post("/api/v1/withdraw-orders/create", json={
        "dateWithdraw": "2024-03-01",
        "employeeId": seed.employee_id,
        "numItems": num_items if num_items is not None else len(product_ids),
        "products": product_ids,
    })


def test_create_withdraw_order(client, seed, db_session):
    response = _create_order(client, seed, seed.product_ids[:2])

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["withdrawOrder"]["numItems"] == 2
    assert len(data["details"]) == 2

    product = db_session.get(ProductStock, seed.product_ids[0])
    assert product.is_being_used is True
    assert product.last_used_by == seed.employee_id
    assert product.first_used.isoformat() == "2024-03-01"


def test_create_requires_matching_num_items(client, seed):
    response = _create_order(client, seed, seed.product_ids[:2], num_items=3)
    assert response.status_code == 400
    assert response.json()["message"] == "Number of items (3) must match the number of products (2)"


def test_create_rejects_unknown_and_in_use(client, seed):
    response = _create_order(client, seed, ["missing"])
    assert response.json()["message"] == "Product with ID missing not found"

    _create_order(client, seed, [seed.product_ids[0]])
    response = _create_order(client, seed, [seed.product_ids[0]])
    assert response.status_code == 400
    assert response.json()["message"] == f"Product {seed.product_ids[0]} is currently being used"


def test_details_by_employee(client, seed):
    _create_order(client, seed, [seed.product_ids[2]])

    body = client.get("/api/v1/withdraw-orders/details", params={"employeeId": seed.employee_id}).json()
    assert body["message"] == "Datos obtenidos correctamente"
    assert body["data"][0]["barcode"] == 7502002
    assert body["data"][0]["description"] == "Tinte rubio"

    body = client.get("/api/v1/withdraw-orders/details", params={"employeeId": "nobody"}).json()
    assert body["data"] == []


def test_partial_then_full_return(client, seed, db_session):
    order_id = _create_order(client, seed, seed.product_ids[:2]).json()["data"]["withdrawOrder"]["id"]

    response = client.post("/api/v1/withdraw-orders/update", json={
        "dateReturn": "2024-03-05",
        "orders": [{"withdrawOrderId": order_id, "productStockIds": [seed.product_ids[0]]}],
    })
    assert response.status_code == 200
    body = response.json()
    assert body["data"]["completedOrders"] == 0
    assert body["data"]["orders"][0]["allProductsReturned"] is False

    response = client.post("/api/v1/withdraw-orders/update", json={
        "dateReturn": "2024-03-06",
        "orders": [{"withdrawOrderId": order_id, "productStockIds": [seed.product_ids[1]]}],
    })
    body = response.json()
    assert body["message"] == "1 orden(es) completada(s) correctamente"
    assert body["data"]["orders"][0]["withdrawOrder"]["isComplete"] is True
    assert body["data"]["orders"][0]["withdrawOrder"]["dateReturn"] == "2024-03-06"

    product = db_session.get(ProductStock, seed.product_ids[1])
    assert product.is_being_used is False


def test_return_with_errors_is_multi_status(client, seed):
    order_id = _create_order(client, seed, [seed.product_ids[0]]).json()["data"]["withdrawOrder"]["id"]

    response = client.post("/api/v1/withdraw-orders/update", json={
        "dateReturn": "2024-03-05",
        "orders": [
            {"withdrawOrderId": order_id, "productStockIds": [seed.product_ids[0]]},
            {"withdrawOrderId": "missing", "productStockIds": [seed.product_ids[0]]},
        ],
    })

    assert response.status_code == 207
    body = response.json()
    assert body["success"] is False
    assert body["data"]["errors"] == 1
    assert body["data"]["orders"][0]["allProductsReturned"] is True
    assert body["data"]["orders"][1]["error"] == "No se encontró la orden de retiro"


def test_return_product_not_in_use(client, seed):
    order_id = _create_order(client, seed, [seed.product_ids[0]]).json()["data"]["withdrawOrder"]["id"]
    payload = {
        "dateReturn": "2024-03-05",
        "orders": [{"withdrawOrderId": order_id, "productStockIds": [seed.product_ids[0]]}],
    }
    client.post("/api/v1/withdraw-orders/update", json=payload)

    response = client.post("/api/v1/withdraw-orders/update", json=payload)
    assert response.status_code == 207
    assert "no está actualmente en uso" in response.json()["data"]["orders"][0]["error"]


def test_return_requires_products(client, seed):
    response = client.post("/api/v1/withdraw-orders/update", json={"dateReturn": "2024-03-05", "orders": []})
    assert response.status_code == 400

    response = client.post("/api/v1/withdraw-orders/update", json={
        "dateReturn": "2024-03-05",
        "orders": [{"withdrawOrderId": "x", "productStockIds": []}],
    })
    assert response.json()["message"] == "Debe proporcionar al menos un producto para actualizar"


def test_create_rejects_repeated_product(client, seed, db_session):
    response = _create_order(client, seed, [seed.product_ids[0], seed.product_ids[0]])

    assert response.status_code == 400
    assert response.json()["message"] == "Duplicate product IDs in withdraw order"
    assert db_session.get(ProductStock, seed.product_ids[0]).is_being_used is False


def test_create_rejects_deleted_product(client, seed, db_session):
    assert client.delete("/api/v1/product-stock/delete", params={"id": seed.product_ids[0]}).status_code == 200

    response = _create_order(client, seed, [seed.product_ids[0]])
    assert response.status_code == 400
    assert response.json()["message"] == f"Product {seed.product_ids[0]} is deleted or empty"


def test_create_rejects_empty_product(client, seed, db_session):
    product = db_session.get(ProductStock, seed.product_ids[1])
    product.is_empty = True
    db_session.commit()

    response = _create_order(client, seed, [seed.product_ids[1]])
    assert response.status_code == 400


def test_create_requires_authentication(client, seed, session_user):
    session_user.set(None)
    response = _create_order(client, seed, [seed.product_ids[0]])
    assert response.status_code == 401
