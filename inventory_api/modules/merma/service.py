import base64
import json
import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_api.core.auth.schemas import UserResponse, UserRole
from inventory_api.core.exceptions import ApiError, api_response
from inventory_api.shared.database.models import InventoryShrinkageEvent
from inventory_api.shared.inventory import (
    HistoryAction, MovementType, ShrinkageReason, ShrinkageSource, SHRINKAGE_REASONS,
    escape_csv_value, parse_iso_datetime, usage_history
)
from .repository import ShrinkageRepository
from .schemas import Scope, WriteoffCreate

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "createdAt", "source", "reason", "quantity", "warehouseId", "warehouseName",
    "barcode", "description", "productStockId", "notes", "transferNumber",
    "transferId", "createdByUserId",
]

TOP_PRODUCTS_PER_REASON = 20


def _percentage(part: int, total: int) -> float:
    return round(part / total * 100, 2) if total > 0 else 0


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def encode_cursor(created_at: datetime, event_id: str) -> str:
    payload = json.dumps({"createdAt": created_at.isoformat(), "id": event_id})
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: Optional[str]) -> Optional[Tuple[datetime, str]]:
    """Cursor base64(JSON {createdAt, id}); None si es inválido"""
    if not cursor:
        return None
    try:
        parsed = json.loads(base64.b64decode(cursor, validate=True).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(parsed, dict) or not parsed.get("createdAt") or not parsed.get("id"):
        return None
    created_at = parse_iso_datetime(str(parsed["createdAt"]))
    if created_at is None:
        return None
    return created_at, str(parsed["id"])


def parse_date_range(start: str, end: str) -> Tuple[datetime, datetime]:
    start_at = parse_iso_datetime(start)
    end_at = parse_iso_datetime(end)
    if start_at is None or end_at is None or start_at > end_at:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid start/end date range"
        )
    return start_at, end_at


class MermaService:

    def __init__(self, db: Session):
        self.db = db
        self.repository = ShrinkageRepository(db)

    # ===== ALCANCE =====

    def can_use_global_scope(self, user: UserResponse) -> bool:
        """Admin siempre; encargado solo si su almacén es CEDIS"""
        if user.role == UserRole.ADMIN.value:
            return True
        if user.role != UserRole.ENCARGADO.value or not user.warehouse_id:
            return False
        warehouse = self.repository.get_warehouse(user.warehouse_id)
        return bool(warehouse and warehouse.is_cedis)

    def resolve_scope(self, user: UserResponse, scope: Scope, warehouse_id: Optional[str]) -> Optional[str]:
        """
        Resolver el almacén de la consulta.

        Devuelve None para alcance global o el id del almacén.
        """
        if user.role == UserRole.ADMIN.value:
            if scope == Scope.GLOBAL:
                return None
            if not warehouse_id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="warehouseId is required when scope is warehouse"
                )
            return warehouse_id

        if user.role == UserRole.ENCARGADO.value:
            if not user.warehouse_id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Encargado user requires an assigned warehouse"
                )
            if scope == Scope.GLOBAL:
                if self.can_use_global_scope(user):
                    return None
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Forbidden - global scope is only available for admin or CEDIS encargado users"
                )
            return user.warehouse_id

        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden - insufficient permissions"
        )

    # ===== MERMA MANUAL =====

    def create_writeoff(self, data: WriteoffCreate, user: UserResponse) -> Dict[str, Any]:
        if user.role not in (UserRole.ADMIN.value, UserRole.ENCARGADO.value):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden - insufficient permissions"
            )

        reason = data.reason.value
        if data.reason == ShrinkageReason.OTRO and not data.notes:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='notes is required when reason is "otro"'
            )

        product_ids = list(dict.fromkeys(data.product_ids))
        products = self.repository.get_products(product_ids)
        if len(products) != len(product_ids):
            found = {product.id for product in products}
            raise ApiError(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="One or more product IDs were not found",
                data={"missingIds": [pid for pid in product_ids if pid not in found]}
            )

        locations = {product.id: self.repository.resolve_warehouse_id(product) for product in products}
        unlocated = [pid for pid in product_ids if locations[pid] is None]
        if unlocated:
            raise ApiError(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="One or more products have no warehouse location",
                data={"unlocatedIds": unlocated}
            )

        conflicts = self.repository.find_existing_product_ids(
            product_ids, ShrinkageSource.MANUAL.value, reason
        )
        if conflicts:
            raise self._conflict_error([pid for pid in product_ids if pid in conflicts])

        employee = self.repository.get_employee_for_user(user.id)
        note = f"Merma manual ({reason}): {data.notes}" if data.notes else f"Merma manual ({reason})"

        events = []
        history = []
        for product in products:
            events.append(InventoryShrinkageEvent(
                source=ShrinkageSource.MANUAL.value,
                reason=reason,
                quantity=1,
                notes=data.notes,
                warehouse_id=locations[product.id],
                product_stock_id=product.id,
                product_barcode=product.barcode,
                product_description=product.description,
                created_by_user_id=user.id,
            ))
            history.append(usage_history(
                product_stock_id=product.id,
                warehouse_id=product.current_warehouse,
                movement_type=MovementType.OTHER,
                action=HistoryAction.CHECKOUT,
                notes=note,
                employee_id=employee.id if employee else None,
                user_id=user.id,
                previous_warehouse_id=product.current_warehouse,
            ))

        try:
            created = self.repository.create_manual_writeoff(
                events, product_ids, mark_empty=data.reason == ShrinkageReason.CONSUMIDO, history=history
            )
        except IntegrityError as e:
            # Otra petición registró el mismo evento entre la verificación y el insert
            if "unique" in str(e.orig).lower() or "duplicate" in str(e.orig).lower():
                conflicts = self.repository.find_existing_product_ids(
                    product_ids, ShrinkageSource.MANUAL.value, reason
                )
                raise self._conflict_error([pid for pid in product_ids if pid in conflicts])
            raise

        logger.info(f"Merma manual ({reason}) registrada por {user.id}: {len(created)} unidad(es)")
        return api_response(
            f"Successfully registered {len(created)} write-off event(s)",
            {"eventsCreated": len(created), "eventIds": [event.id for event in created]}
        )

    def _conflict_error(self, product_ids: List[str]) -> ApiError:
        logger.warning(f"Merma duplicada para unidades {product_ids}")
        return ApiError(
            status_code=status.HTTP_409_CONFLICT,
            detail="A write-off event already exists for one or more products with the same reason",
            data={"productIds": product_ids}
        )

    # ===== REPORTES =====

    def get_writeoff_summary(self, user: UserResponse, start: str, end: str,
                             scope: Scope, warehouse_id: Optional[str]) -> Dict[str, Any]:
        start_at, end_at = parse_date_range(start, end)
        scoped_warehouse_id = self.resolve_scope(user, scope, warehouse_id)
        source = ShrinkageSource.MANUAL.value

        if scope == Scope.GLOBAL:
            by_warehouse: Dict[str, Dict[str, Any]] = {}
            for row in self.repository.sum_by_warehouse_and_reason(source, start_at, end_at, scoped_warehouse_id):
                entry = by_warehouse.setdefault(row.warehouse_id, {
                    "warehouseId": row.warehouse_id,
                    "warehouseName": row.warehouse_name,
                    "consumido": 0,
                    "dañado": 0,
                    "otro": 0,
                    "total": 0,
                })
                total = int(row.total or 0)
                if row.reason in SHRINKAGE_REASONS:
                    entry[row.reason] += total
                entry["total"] += total

            rows = sorted(by_warehouse.values(), key=lambda item: item["warehouseName"])
            totals = {reason: sum(item[reason] for item in rows) for reason in SHRINKAGE_REASONS}
            totals["total"] = sum(item["total"] for item in rows)
            for reason in SHRINKAGE_REASONS:
                totals[f"{reason}Pct"] = _percentage(totals[reason], totals["total"])
            for item in rows:
                item["percentageOfGlobal"] = _percentage(item["total"], totals["total"])

            return api_response(
                "Manual write-off summary fetched successfully",
                {"scope": Scope.GLOBAL.value, "rows": rows, "totals": totals}
            )

        reason_totals = {reason: 0 for reason in SHRINKAGE_REASONS}
        for row in self.repository.sum_by_warehouse_and_reason(source, start_at, end_at, scoped_warehouse_id):
            if row.reason in reason_totals:
                reason_totals[row.reason] += int(row.total or 0)
        total = sum(reason_totals.values())

        top_products: Dict[str, List[Dict[str, Any]]] = {reason: [] for reason in SHRINKAGE_REASONS}
        for row in self.repository.top_products_by_reason(source, start_at, end_at, scoped_warehouse_id):
            bucket = top_products.get(row.reason)
            if bucket is None or len(bucket) >= TOP_PRODUCTS_PER_REASON:
                continue
            bucket.append({
                "barcode": row.barcode,
                "description": row.description,
                "total": int(row.total or 0),
            })

        warehouse = self.repository.get_warehouse(scoped_warehouse_id)
        return api_response("Manual write-off summary fetched successfully", {
            "scope": Scope.WAREHOUSE.value,
            "warehouseId": scoped_warehouse_id,
            "warehouseName": warehouse.name if warehouse else None,
            "total": total,
            "reasonSummary": [
                {
                    "reason": reason,
                    "total": reason_totals[reason],
                    "percentage": _percentage(reason_totals[reason], total),
                    "topProducts": top_products[reason],
                }
                for reason in SHRINKAGE_REASONS
            ],
        })

    def get_events(self, user: UserResponse, start: str, end: str, source: ShrinkageSource,
                   warehouse_id: Optional[str], reason: Optional[ShrinkageReason], q: Optional[str],
                   limit: int, cursor: Optional[str]) -> Dict[str, Any]:
        start_at, end_at = parse_date_range(start, end)

        if self.can_use_global_scope(user):
            scoped_warehouse_id = warehouse_id
        elif user.role == UserRole.ENCARGADO.value:
            if not user.warehouse_id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Encargado user requires an assigned warehouse"
                )
            scoped_warehouse_id = user.warehouse_id
        else:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden - insufficient permissions"
            )

        decoded_cursor = decode_cursor(cursor)
        if cursor and decoded_cursor is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid cursor")

        rows = self.repository.list_events(
            start_at, end_at,
            source=source.value,
            warehouse_id=scoped_warehouse_id,
            reason=reason.value if reason else None,
            q=q.strip() if q and q.strip() else None,
            cursor=decoded_cursor,
            limit=limit + 1,
        )

        has_more = len(rows) > limit
        rows = rows[:limit]
        items = [
            {
                "id": event.id,
                "createdAt": _iso(event.created_at),
                "source": event.source,
                "reason": event.reason,
                "quantity": event.quantity,
                "notes": event.notes,
                "warehouseId": event.warehouse_id,
                "warehouseName": warehouse_name,
                "productStockId": event.product_stock_id,
                "productBarcode": event.product_barcode,
                "productDescription": event.product_description,
                "transferId": event.transfer_id,
                "transferNumber": event.transfer_number,
                "createdByUserId": event.created_by_user_id,
            }
            for event, warehouse_name in rows
        ]
        next_cursor = None
        if has_more:
            last_event = rows[-1][0]
            next_cursor = encode_cursor(last_event.created_at, last_event.id)

        return api_response("Write-off events fetched successfully", {"items": items, "nextCursor": next_cursor})

    def export_events(self, user: UserResponse, start: str, end: str, scope: Scope,
                      warehouse_id: Optional[str], source: Optional[ShrinkageSource],
                      reason: Optional[ShrinkageReason], q: Optional[str]) -> Tuple[str, str]:
        """Devuelve (nombre de archivo, contenido CSV)"""
        if user.role != UserRole.ADMIN.value:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden - export is only available for admin users"
            )

        start_at, end_at = parse_date_range(start, end)
        if scope == Scope.WAREHOUSE and not warehouse_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="warehouseId is required when scope is warehouse"
            )

        rows = self.repository.list_events(
            start_at, end_at,
            source=source.value if source else None,
            warehouse_id=warehouse_id if scope == Scope.WAREHOUSE else None,
            reason=reason.value if reason else None,
            q=q.strip() if q and q.strip() else None,
            include_product_id_search=False,
        )

        lines = [",".join(EXPORT_COLUMNS)]
        for event, warehouse_name in rows:
            lines.append(",".join(escape_csv_value(value) for value in [
                _iso(event.created_at),
                event.source,
                event.reason,
                event.quantity,
                event.warehouse_id,
                warehouse_name,
                event.product_barcode,
                event.product_description,
                event.product_stock_id,
                event.notes,
                event.transfer_number,
                event.transfer_id,
                event.created_by_user_id,
            ]))

        logger.info(f"Exportación de merma por {user.id}: {len(rows)} evento(s)")
        return f"merma-events-{int(time.time() * 1000)}.csv", "\n".join(lines)

    def get_missing_transfers_summary(self, user: UserResponse, start: str, end: str,
                                      scope: Scope, warehouse_id: Optional[str]) -> Dict[str, Any]:
        start_at, end_at = parse_date_range(start, end)
        scoped_warehouse_id = self.resolve_scope(user, scope, warehouse_id)

        if scope == Scope.GLOBAL:
            grouped = self.repository.sum_missing_by_warehouse(start_at, end_at)
            total_missing = sum(int(row.total_missing or 0) for row in grouped)
            rows = [
                {
                    "warehouseId": row.warehouse_id,
                    "warehouseName": row.warehouse_name,
                    "totalMissing": int(row.total_missing or 0),
                    "percentageOfGlobal": _percentage(int(row.total_missing or 0), total_missing),
                }
                for row in grouped
            ]
            return api_response(
                "Missing-transfer summary fetched successfully",
                {"scope": Scope.GLOBAL.value, "rows": rows, "totalMissing": total_missing}
            )

        transfers = self.repository.completed_external_transfers_into(scoped_warehouse_id, start_at, end_at)
        missing_by_transfer = self.repository.sum_missing_by_transfer(
            [row.transfer_id for row in transfers], start_at, end_at
        )
        origin_names = self.repository.get_warehouse_names(
            list({row.source_warehouse_id for row in transfers})
        )

        rows = [
            {
                "transferId": row.transfer_id,
                "transferNumber": row.transfer_number,
                "completedDate": _iso(row.completed_date),
                "originWarehouseId": row.source_warehouse_id,
                "originWarehouseName": origin_names.get(
                    row.source_warehouse_id, f"Almacén {row.source_warehouse_id[:6]}"
                ),
                "sent": int(row.sent or 0),
                "received": int(row.received or 0),
                "missing": missing_by_transfer.get(row.transfer_id, 0),
            }
            for row in transfers
        ]
        return api_response("Missing-transfer summary fetched successfully", {
            "scope": Scope.WAREHOUSE.value,
            "warehouseId": scoped_warehouse_id,
            "rows": rows,
            "totalMissing": sum(row["missing"] for row in rows),
        })
