import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from inventory_api.core.exceptions import api_response
from inventory_api.modules.merma.service import parse_date_range
from .repository import DashboardRepository

logger = logging.getLogger(__name__)

TOP_USED_BARCODES = 5


class DashboardService:

    def __init__(self, db: Session):
        self.db = db
        self.repository = DashboardRepository(db)

    def _low_stock_items(self, warehouse_id: Optional[str]) -> List[Dict[str, Any]]:
        """
        Barcodes con límite de cantidad cuyo stock disponible (fuera de
        gabinete) está por debajo del mínimo.
        """
        limits = self.repository.get_quantity_limits(warehouse_id)
        if not limits:
            return []

        counts = self.repository.count_available_by_barcode(
            list({limit.warehouse_id for limit, _ in limits})
        )
        low = [
            (limit, warehouse_name, counts.get((limit.warehouse_id, limit.barcode), 0))
            for limit, warehouse_name in limits
        ]
        low = [(limit, name, current) for limit, name, current in low if current < limit.min_quantity]

        samples = self.repository.get_product_samples(list({limit.barcode for limit, _, _ in low}))
        items = []
        for limit, warehouse_name, current in low:
            product_id, description = samples.get(limit.barcode, (None, None))
            items.append({
                "warehouseId": limit.warehouse_id,
                "warehouseName": warehouse_name,
                "barcode": limit.barcode,
                "description": description,
                "productId": product_id,
                "currentQuantity": current,
                "minQuantity": limit.min_quantity,
                "maxQuantity": limit.max_quantity,
                "delta": limit.min_quantity - current,
            })

        items.sort(key=lambda item: (-item["delta"], item["barcode"]))
        return items

    def get_low_stock(self, warehouse_id: Optional[str]) -> Dict[str, Any]:
        items = self._low_stock_items(warehouse_id)
        return api_response("Low stock items retrieved successfully", {
            "totalLow": len(items),
            "items": items,
        })

    def get_summary(self, warehouse_id: Optional[str], start: str, end: str) -> Dict[str, Any]:
        """Métricas del dashboard para un almacén (o todos) en un rango de fechas"""
        start_at, end_at = parse_date_range(start, end)
        now = datetime.utcnow()

        pending, completed, total_items = self.repository.reception_metrics(warehouse_id, start_at, end_at)

        orders = self.repository.get_orders(warehouse_id, start_at, end_at)
        open_orders = [order for order in orders if not order.is_sent]
        sent_orders = [order for order in orders if order.is_sent and not order.is_received]
        received_orders = [order for order in orders if order.is_received]
        if open_orders:
            average_age = sum(
                (now - order.created_at).total_seconds() / 86400 for order in open_orders
            ) / len(open_orders)
        else:
            average_age = 0

        kits, active_items, returned_items = self.repository.kit_metrics(warehouse_id)
        in_use, idle = self.repository.usage_breakdown(warehouse_id)
        top_barcodes = [
            {"barcode": barcode, "description": description, "totalUses": int(total or 0)}
            for barcode, description, total in self.repository.top_used_barcodes(warehouse_id, TOP_USED_BARCODES)
        ]

        return api_response("Dashboard summary retrieved successfully", {
            "warehouseId": warehouse_id,
            "range": {"start": start_at.isoformat(), "end": end_at.isoformat()},
            "lowStockCount": len(self._low_stock_items(warehouse_id)),
            "receptions": {
                "pending": pending,
                "completed": completed,
                "totalItems": total_items,
            },
            "orders": {
                "open": len(open_orders),
                "sent": len(sent_orders),
                "received": len(received_orders),
                "averageOpenAgeDays": round(average_age, 1),
            },
            "kits": {
                "total": kits,
                "activeItems": active_items,
                "returnedItems": returned_items,
            },
            "usage": {
                "inUse": in_use,
                "idle": idle,
                "topBarcodes": top_barcodes,
            },
            "unfulfilledQuantity": self.repository.unfulfilled_quantity(warehouse_id),
        })
