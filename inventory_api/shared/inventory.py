"""
Reglas compartidas del inventario: tipos de movimiento, merma y bitácora.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from inventory_api.shared.database.models import ProductStockUsageHistory


class MovementType(str, Enum):
    TRANSFER = "transfer"
    KIT_ASSIGNMENT = "kit_assignment"
    KIT_RETURN = "kit_return"
    WITHDRAW = "withdraw"
    RETURN = "return"
    OTHER = "other"


class HistoryAction(str, Enum):
    CHECKOUT = "checkout"
    CHECKIN = "checkin"
    TRANSFER = "transfer"
    ASSIGN = "assign"
    RETURN = "return"
    OTHER = "other"


class ShrinkageSource(str, Enum):
    MANUAL = "manual"
    TRANSFER_MISSING = "transfer_missing"


class ShrinkageReason(str, Enum):
    CONSUMIDO = "consumido"
    DANADO = "dañado"
    OTRO = "otro"


SHRINKAGE_REASONS = [reason.value for reason in ShrinkageReason]


def escape_csv_value(value: Union[str, int, float, None]) -> str:
    """Escapa un campo CSV cuando contiene comas, comillas o saltos de línea"""
    if value is None:
        return ""
    as_text = str(value)
    if "," not in as_text and '"' not in as_text and "\n" not in as_text:
        return as_text
    return '"' + as_text.replace('"', '""') + '"'


def build_legacy_shrinkage_note(action: str) -> str:
    """Nota por defecto para mermas registradas desde product-stock"""
    if action == "delete":
        return "Registrado desde endpoint legacy product-stock/delete"
    return "Registrado desde endpoint legacy product-stock/update-is-empty"


def usage_history(
    product_stock_id: str,
    warehouse_id: str,
    movement_type: MovementType,
    action: HistoryAction,
    notes: str,
    employee_id: Optional[str] = None,
    user_id: Optional[str] = None,
    warehouse_transfer_id: Optional[str] = None,
    kit_id: Optional[str] = None,
    previous_warehouse_id: Optional[str] = None,
    new_warehouse_id: Optional[str] = None,
) -> ProductStockUsageHistory:
    """Construir un registro de bitácora (no hace commit)"""
    return ProductStockUsageHistory(
        product_stock_id=product_stock_id,
        employee_id=employee_id,
        user_id=user_id,
        warehouse_id=warehouse_id,
        warehouse_transfer_id=warehouse_transfer_id,
        kit_id=kit_id,
        movement_type=movement_type.value,
        action=action.value,
        notes=notes,
        usage_date=datetime.utcnow(),
        previous_warehouse_id=previous_warehouse_id,
        new_warehouse_id=new_warehouse_id,
    )


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """ISO 8601 -> datetime naive en UTC. None si no se puede interpretar"""
    if not value:
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
