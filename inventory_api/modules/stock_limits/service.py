import logging
from typing import Any, Dict
from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_api.core.auth.schemas import UserResponse, UserRole
from inventory_api.core.exceptions import api_response
from .repository import StockLimitRepository
from .schemas import LimitType, StockLimitCreate, StockLimitUpdate

logger = logging.getLogger(__name__)


def _bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def resolve_limit_update(current_type: str, current_values: Dict[str, Any],
                         data: StockLimitUpdate) -> Dict[str, Any]:
    """
    Valores finales de un límite existente.

    Cambiar de tipo exige ambos límites nuevos y reinicia los del otro tipo;
    sin cambio de tipo se combinan los valores enviados con los actuales.
    """
    values: Dict[str, Any] = {}
    target_type = data.limit_type.value if data.limit_type else current_type

    if data.limit_type is not None and target_type != current_type:
        values["limit_type"] = target_type
        if target_type == LimitType.USAGE.value:
            if data.min_usage is None or data.max_usage is None:
                raise _bad_request(
                    "When switching to usage-based limits, both minUsage and maxUsage must be provided"
                )
            values.update({
                "min_quantity": 0,
                "max_quantity": 0,
                "min_usage": data.min_usage,
                "max_usage": data.max_usage,
            })
        else:
            if data.min_quantity is None or data.max_quantity is None:
                raise _bad_request(
                    "When switching to quantity-based limits, both minQuantity and maxQuantity must be provided"
                )
            values.update({
                "min_usage": None,
                "max_usage": None,
                "min_quantity": data.min_quantity,
                "max_quantity": data.max_quantity,
            })
    elif target_type == LimitType.USAGE.value:
        min_usage = data.min_usage if data.min_usage is not None else (current_values.get("min_usage") or 0)
        max_usage = data.max_usage if data.max_usage is not None else (current_values.get("max_usage") or 0)
        if min_usage > max_usage:
            raise _bad_request("minUsage must be ≤ maxUsage")
        values.update({"min_usage": min_usage, "max_usage": max_usage})
    else:
        min_quantity = data.min_quantity if data.min_quantity is not None else (current_values.get("min_quantity") or 0)
        max_quantity = data.max_quantity if data.max_quantity is not None else (current_values.get("max_quantity") or 0)
        if min_quantity > max_quantity:
            raise _bad_request("minQuantity must be ≤ maxQuantity")
        values.update({"min_quantity": min_quantity, "max_quantity": max_quantity})

    if data.notes is not None:
        values["notes"] = data.notes
    return values


class StockLimitService:

    def __init__(self, db: Session):
        self.db = db
        self.repository = StockLimitRepository(db)

    @staticmethod
    def _require_encargado(current_user: UserResponse):
        if current_user.role != UserRole.ENCARGADO.value:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden - insufficient permissions"
            )

    def get_all(self) -> Dict[str, Any]:
        limits = [limit.to_dict() for limit in self.repository.get_all()]
        return api_response("Stock limits fetched successfully", limits)

    def get_by_warehouse(self, warehouse_id: str) -> Dict[str, Any]:
        limits = [limit.to_dict() for limit in self.repository.get_by_warehouse(warehouse_id)]
        return api_response("Stock limits fetched successfully", limits)

    def create(self, data: StockLimitCreate, current_user: UserResponse) -> Dict[str, Any]:
        """Límites de uso guardan cantidades en 0; límites de cantidad guardan uso en null"""
        self._require_encargado(current_user)

        values = {
            "warehouse_id": data.warehouse_id,
            "barcode": data.barcode,
            "limit_type": data.limit_type.value,
            "notes": data.notes,
            "created_by": current_user.id,
        }
        if data.limit_type == LimitType.USAGE:
            values.update({
                "min_usage": data.min_usage,
                "max_usage": data.max_usage,
                "min_quantity": 0,
                "max_quantity": 0,
            })
        else:
            values.update({
                "min_quantity": data.min_quantity or 0,
                "max_quantity": data.max_quantity or 0,
                "min_usage": None,
                "max_usage": None,
            })

        try:
            limit = self.repository.create(values)
        except IntegrityError as e:
            message = str(e.orig).lower()
            if "duplicate" in message or "unique" in message:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Stock limit already exists for this warehouse and barcode"
                )
            if "foreign key" in message:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Invalid warehouse or user reference for stock limit"
                )
            raise

        logger.info(f"Límite {limit.limit_type} creado para {limit.barcode} en {limit.warehouse_id}")
        return api_response("Stock limit created successfully", limit.to_dict())

    def update(self, warehouse_id: str, barcode: int, data: StockLimitUpdate,
               current_user: UserResponse) -> Dict[str, Any]:
        self._require_encargado(current_user)

        if data.is_empty():
            raise _bad_request("At least one field must be provided to update")

        limit = self.repository.get_one(warehouse_id, barcode)
        if not limit:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Stock limit not found for provided warehouse and barcode"
            )

        current_values = {
            "min_quantity": limit.min_quantity,
            "max_quantity": limit.max_quantity,
            "min_usage": limit.min_usage,
            "max_usage": limit.max_usage,
        }
        values = resolve_limit_update(limit.limit_type or LimitType.QUANTITY.value, current_values, data)
        limit = self.repository.update(limit, values)
        return api_response("Stock limit updated successfully", limit.to_dict())
