import logging
from typing import Any, Dict, List
from fastapi import HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from inventory_api.core.exceptions import api_response
from .repository import OrderReturnError, WithdrawOrderRepository
from .schemas import WithdrawOrderCreate, WithdrawOrdersUpdate

logger = logging.getLogger(__name__)


class WithdrawOrderService:

    def __init__(self, db: Session):
        self.db = db
        self.repository = WithdrawOrderRepository(db)

    # ===== CONSULTAS =====

    def get_all(self) -> Dict[str, Any]:
        orders = [order.to_dict() for order in self.repository.get_all()]
        return api_response("Fetching db data", orders)

    def get_details_by_employee(self, employee_id: str) -> Dict[str, Any]:
        rows = [
            {
                "id": detail.id,
                "productId": detail.product_id,
                "withdrawOrderId": detail.withdraw_order_id,
                "dateWithdraw": detail.date_withdraw,
                "dateReturn": detail.date_return,
                "productStockId": product.id,
                "description": product.description,
                "barcode": product.barcode,
            }
            for detail, product in self.repository.get_details_by_employee(employee_id)
        ]
        if not rows:
            return api_response("No se encontraron productos retirados por ese usuario", [])
        return api_response("Datos obtenidos correctamente", rows)

    # ===== ESCRITURA =====

    def create(self, data: WithdrawOrderCreate) -> Dict[str, Any]:
        if data.num_items != len(data.products):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Number of items ({data.num_items}) must match the number of products ({len(data.products)})"
            )
        if len(set(data.products)) != len(data.products):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Duplicate product IDs in withdraw order"
            )

        found = {product.id: product for product in self.repository.get_products(data.products)}
        for product_id in data.products:
            product = found.get(product_id)
            if product is None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Product with ID {product_id} not found"
                )
            if product.is_deleted or product.is_empty:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Product {product_id} is deleted or empty"
                )
            if product.is_being_used:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Product {product_id} is currently being used"
                )

        products = [found[product_id] for product_id in data.products]
        try:
            order, details = self.repository.create_order(
                data.date_withdraw, data.employee_id, data.is_complete, products
            )
        except IntegrityError as e:
            if "foreign key" in str(e.orig).lower():
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Invalid employee ID or product ID - referenced entity does not exist"
                )
            raise

        logger.info(f"Orden de retiro {order.id} creada para {data.employee_id} ({len(details)} unidad(es))")
        return api_response("Withdraw order created successfully", {
            "withdrawOrder": order.to_dict(),
            "details": [detail.to_dict() for detail in details],
        })

    def return_products(self, data: WithdrawOrdersUpdate):
        """
        Devolver unidades de varias órdenes

        Cada orden se procesa en su propia transacción; los errores se
        reportan por orden y la respuesta es 207 si hubo alguno.
        """
        if not data.orders:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Debe proporcionar al menos una orden para actualizar"
            )
        if not any(order.product_stock_ids for order in data.orders):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Debe proporcionar al menos un producto para actualizar"
            )

        results: List[Dict[str, Any]] = []
        for order_data in data.orders:
            result = {
                "withdrawOrderId": order_data.withdraw_order_id,
                "withdrawOrder": None,
                "details": [],
                "productStockUpdates": [],
                "allProductsReturned": False,
            }
            try:
                order, details, products, all_returned = self.repository.return_order(
                    order_data.withdraw_order_id, order_data.product_stock_ids, data.date_return
                )
                result.update({
                    "withdrawOrder": order.to_dict(),
                    "details": [detail.to_dict() for detail in details],
                    "productStockUpdates": [product.to_dict() for product in products],
                    "allProductsReturned": all_returned,
                })
            except OrderReturnError as e:
                result["error"] = str(e)
            except SQLAlchemyError as e:
                logger.error(f"Error devolviendo la orden {order_data.withdraw_order_id}: {e}")
                result["error"] = "Error desconocido al procesar la orden"
            results.append(result)

        errors = sum(1 for result in results if "error" in result)
        completed = sum(1 for result in results if result["allProductsReturned"])

        if errors:
            message = "Algunas órdenes se procesaron con errores"
        elif completed:
            message = f"{completed} orden(es) completada(s) correctamente"
        else:
            message = "Detalles de órdenes de retiro actualizados correctamente"

        payload = api_response(message, {
            "orders": results,
            "totalOrders": len(data.orders),
            "completedOrders": completed,
            "errors": errors,
        }, success=errors == 0)

        if errors:
            return JSONResponse(status_code=status.HTTP_207_MULTI_STATUS, content=jsonable_encoder(payload))
        return payload
