"""Merma manual, reportes y exportación"""
from datetime import datetime

import pytest

from inventory_api.modules.merma.service import decode_cursor, encode_cursor
from inventory_api.shared.database.models import ProductStock
from inventory_api.shared.inventory import escape_csv_value

RANGE = {"start": "2000-01-01T00:00:00Z", "end": "2100-01-01T00:00:00Z"}


def _writeoff(client, product_ids, reason="dañado", notes=None):
    payload = {"productIds": product_ids, "reason": reason}
    if notes is not None:
        payload["notes"] = notes
    return client.post("/api/v1/merma/writeoffs", json=payload)


def test_escape_csv_value():
    assert escape_csv_value(None) == ""
    assert escape_csv_value(12) == "12"
    assert escape_csv_value('dice "hola", adiós') == '"dice ""hola"", adiós"'


def test_cursor_round_trip_and_invalid():
    created_at = datetime(2024, 5, 1, 10, 30)
    assert decode_cursor(encode_cursor(created_at, "abc")) == (created_at, "abc")
    assert decode_cursor("not-base64!") is None


def test_writeoff_requires_role(client, seed, session_user):
    session_user.set(seed.employee_user)
    response = _writeoff(client, [seed.product_ids[0]])
    assert response.status_code == 403


def test_writeoff_otro_requires_notes(client, seed, session_user):
    session_user.set(seed.encargado)
    response = _writeoff(client, [seed.product_ids[0]], reason="otro", notes="   ")
    assert response.status_code == 400
    assert response.json()["message"] == 'notes is required when reason is "otro"'


def test_writeoff_missing_products(client, seed, session_user):
    session_user.set(seed.encargado)
    response = _writeoff(client, [seed.product_ids[0], "missing"])

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["data"] == {"missingIds": ["missing"]}


def test_writeoff_rejects_unit_without_location(client, seed, session_user, db_session):
    loose = ProductStock(barcode=7509009, description="Sin ubicación")
    db_session.add(loose)
    db_session.commit()
    session_user.set(seed.encargado)

    response = _writeoff(client, [seed.product_ids[0], loose.id])

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "One or more products have no warehouse location"
    assert body["data"] == {"unlocatedIds": [loose.id]}
    assert db_session.get(ProductStock, seed.product_ids[0]).is_deleted is False


@pytest.mark.parametrize("reason,deleted,empty", [
    ("dañado", True, False),
    ("consumido", False, True),
])
def test_writeoff_updates_units(client, seed, session_user, db_session, reason, deleted, empty):
    session_user.set(seed.encargado)
    response = _writeoff(client, [seed.product_ids[0]], reason=reason)

    assert response.status_code == 201
    assert response.json()["data"]["eventsCreated"] == 1

    product = db_session.get(ProductStock, seed.product_ids[0])
    db_session.refresh(product)
    assert product.is_deleted is deleted
    assert product.is_empty is empty


def test_duplicate_writeoff_conflict(client, seed, session_user):
    session_user.set(seed.encargado)
    _writeoff(client, [seed.product_ids[0]])

    response = _writeoff(client, [seed.product_ids[0], seed.product_ids[1]])
    assert response.status_code == 409
    assert response.json()["data"] == {"productIds": [seed.product_ids[0]]}


def test_summary_warehouse_scope(client, seed, session_user):
    session_user.set(seed.encargado)
    _writeoff(client, [seed.product_ids[0], seed.product_ids[1]], reason="dañado")
    _writeoff(client, [seed.product_ids[2]], reason="consumido")

    data = client.get("/api/v1/merma/writeoffs/summary", params=RANGE).json()["data"]
    assert data["scope"] == "warehouse"
    assert data["warehouseId"] == seed.store_id
    assert data["total"] == 3

    by_reason = {row["reason"]: row for row in data["reasonSummary"]}
    assert by_reason["dañado"]["total"] == 2
    assert by_reason["dañado"]["percentage"] == 66.67
    assert by_reason["dañado"]["topProducts"][0]["barcode"] == 7501001
    assert by_reason["otro"]["total"] == 0


def test_summary_global_scope(client, seed, session_user):
    session_user.set(seed.encargado)
    _writeoff(client, [seed.product_ids[0]])

    response = client.get("/api/v1/merma/writeoffs/summary", params={**RANGE, "scope": "global"})
    assert response.status_code == 403

    session_user.set(seed.admin)
    data = client.get("/api/v1/merma/writeoffs/summary", params={**RANGE, "scope": "global"}).json()["data"]
    assert data["totals"]["total"] == 1
    assert data["rows"][0]["warehouseName"] == "Almacén Norte"
    assert data["rows"][0]["percentageOfGlobal"] == 100.0

    session_user.set(seed.cedis_encargado)
    response = client.get("/api/v1/merma/writeoffs/summary", params={**RANGE, "scope": "global"})
    assert response.status_code == 200


def test_summary_admin_requires_warehouse(client, seed, session_user):
    session_user.set(seed.admin)
    response = client.get("/api/v1/merma/writeoffs/summary", params=RANGE)
    assert response.status_code == 400


def test_invalid_range(client, seed, session_user):
    session_user.set(seed.admin)
    response = client.get("/api/v1/merma/writeoffs/summary", params={
        "start": "2024-02-01", "end": "2024-01-01", "scope": "global",
    })
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid start/end date range"


def test_events_pagination(client, seed, session_user):
    session_user.set(seed.encargado)
    _writeoff(client, seed.product_ids[:3])

    first = client.get("/api/v1/merma/writeoffs/events", params={**RANGE, "limit": 2}).json()["data"]
    assert len(first["items"]) == 2
    assert first["nextCursor"]

    second = client.get(
        "/api/v1/merma/writeoffs/events", params={**RANGE, "limit": 2, "cursor": first["nextCursor"]}
    ).json()["data"]
    assert len(second["items"]) == 1
    assert second["nextCursor"] is None

    seen = {item["id"] for item in first["items"]} | {item["id"] for item in second["items"]}
    assert len(seen) == 3


def test_events_search_and_invalid_cursor(client, seed, session_user):
    session_user.set(seed.encargado)
    _writeoff(client, [seed.product_ids[0], seed.product_ids[2]])

    data = client.get("/api/v1/merma/writeoffs/events", params={**RANGE, "q": "Tinte"}).json()["data"]
    assert [item["productBarcode"] for item in data["items"]] == [7502002]

    response = client.get("/api/v1/merma/writeoffs/events", params={**RANGE, "cursor": "###"})
    assert response.status_code == 400


def test_export_is_admin_only(client, seed, session_user):
    session_user.set(seed.encargado)
    response = client.get("/api/v1/merma/export", params={**RANGE, "scope": "global"})
    assert response.status_code == 403


def test_export_csv(client, seed, session_user):
    session_user.set(seed.encargado)
    _writeoff(client, [seed.product_ids[0]], reason="otro", notes="Caída, envase roto")

    session_user.set(seed.admin)
    response = client.get("/api/v1/merma/export", params={**RANGE, "scope": "global"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment; filename=\"merma-events-" in response.headers["content-disposition"]
    lines = response.text.split("\n")
    assert lines[0].startswith("createdAt,source,reason,quantity")
    assert '"Caída, envase roto"' in lines[1]


def test_missing_transfers_summary(client, seed, session_user):
    session_user.set(seed.admin)
    transfer = client.post("/api/v1/warehouse-transfers/create", json={
        "transferNumber": "TR-900",
        "transferType": "external",
        "sourceWarehouseId": seed.store_id,
        "destinationWarehouseId": seed.other_id,
        "initiatedBy": seed.admin.id,
        "transferDetails": [
            {"productStockId": seed.product_ids[0], "quantityTransferred": 1},
            {"productStockId": seed.product_ids[1], "quantityTransferred": 1},
        ],
    }).json()["data"]
    client.post("/api/v1/warehouse-transfers/update-item-status", json={
        "transferDetailId": transfer["details"][0]["id"], "isReceived": True,
    })
    client.post("/api/v1/warehouse-transfers/update-status", json={
        "transferId": transfer["transfer"]["id"], "isCompleted": True,
    })

    data = client.get("/api/v1/merma/missing-transfers/summary", params={
        **RANGE, "warehouseId": seed.other_id,
    }).json()["data"]
    assert data["totalMissing"] == 1
    row = data["rows"][0]
    assert row["transferNumber"] == "TR-900"
    assert (row["sent"], row["received"], row["missing"]) == (2, 1, 1)
    assert row["originWarehouseName"] == "Almacén Norte"

    data = client.get("/api/v1/merma/missing-transfers/summary", params={**RANGE, "scope": "global"}).json()["data"]
    assert data["rows"][0]["warehouseId"] == seed.other_id
    assert data["rows"][0]["percentageOfGlobal"] == 100.0
