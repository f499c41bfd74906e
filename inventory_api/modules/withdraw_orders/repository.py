from datetime import date
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import and_
from sqlalchemy.exc import SQLAlchemyError

from inventory_api.shared.database.models import WithdrawOrder, WithdrawOrderDetail, ProductStock
from inventory_api.shared.inventory import HistoryAction, MovementType, usage_history


class OrderReturnError(Exception):
    """Error de negocio al devolver una orden (se reporta por orden)"""
    pass


class WithdrawOrderRepository:

    def __init__(self, db: Session):
        self.db = db

    # ===== CONSULTAS =====

    def get_all(self) -> List[WithdrawOrder]:
        return self.db.query(WithdrawOrder).order_by(WithdrawOrder.created_at).all()

    def get_details_by_employee(self, employee_id: str) -> List[Tuple[WithdrawOrderDetail, ProductStock]]:
        return self.db.query(WithdrawOrderDetail, ProductStock).join(
            WithdrawOrder, WithdrawOrderDetail.withdraw_order_id == WithdrawOrder.id
        ).join(
            ProductStock, WithdrawOrderDetail.product_id == ProductStock.id
        ).filter(WithdrawOrder.user_id == employee_id).all()

    def get_products(self, product_ids: List[str]) -> List[ProductStock]:
        return self.db.query(ProductStock).filter(ProductStock.id.in_(product_ids)).all()

    def get_order(self, order_id: str) -> Optional[WithdrawOrder]:
        return self.db.query(WithdrawOrder).filter(WithdrawOrder.id == order_id).first()

    # ===== ESCRITURA =====

    def create_order(self, date_withdraw: date, employee_id: str, is_complete: bool,
                     products: List[ProductStock]) -> Tuple[WithdrawOrder, List[WithdrawOrderDetail]]:
        """Orden + detalles + unidades en uso + bitácora en una transacción"""
        try:
            order = WithdrawOrder(
                date_withdraw=date_withdraw,
                user_id=employee_id,
                num_items=len(products),
                is_complete=is_complete,
            )
            self.db.add(order)
            self.db.flush()

            details = []
            for product in products:
                details.append(WithdrawOrderDetail(
                    product_id=product.id,
                    withdraw_order_id=order.id,
                    date_withdraw=date_withdraw,
                ))
                product.is_being_used = True
                product.number_of_uses = (product.number_of_uses or 0) + 1
                if product.first_used is None:
                    product.first_used = date_withdraw
                product.last_used = date_withdraw
                product.last_used_by = employee_id
                self.db.add(usage_history(
                    product_stock_id=product.id,
                    warehouse_id=product.current_warehouse,
                    movement_type=MovementType.WITHDRAW,
                    action=HistoryAction.CHECKOUT,
                    notes=f"Product withdrawn via order {order.id}",
                    employee_id=employee_id,
                ))
            self.db.add_all(details)

            self.db.commit()
            self.db.refresh(order)
            for detail in details:
                self.db.refresh(detail)
            return order, details
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def return_order(self, order_id: str, product_ids: List[str], date_return: date):
        """
        Devolver unidades de una orden en su propia transacción.

        Lanza OrderReturnError si la orden no existe, no hay detalles que
        coincidan o alguna unidad no está en uso.
        """
        try:
            order = self.get_order(order_id)
            if order is None:
                raise OrderReturnError("No se encontró la orden de retiro")

            details = self.db.query(WithdrawOrderDetail).filter(
                and_(
                    WithdrawOrderDetail.withdraw_order_id == order_id,
                    WithdrawOrderDetail.product_id.in_(product_ids)
                )
            ).all()
            if not details:
                raise OrderReturnError(
                    "No se encontraron detalles de orden de retiro para los productos especificados"
                )

            products = {
                product.id: product
                for product in self.get_products([detail.product_id for detail in details])
            }
            for detail in details:
                product = products.get(detail.product_id)
                if product is not None and not product.is_being_used:
                    raise OrderReturnError(f"El producto {detail.product_id} no está actualmente en uso")

            for detail in details:
                detail.date_return = date_return
                product = products.get(detail.product_id)
                if product is None:
                    continue
                product.is_being_used = False
                product.last_used = date_return
                if product.last_used_by:
                    self.db.add(usage_history(
                        product_stock_id=product.id,
                        warehouse_id=product.current_warehouse,
                        movement_type=MovementType.RETURN,
                        action=HistoryAction.CHECKIN,
                        notes="Producto devuelto desde orden de retiro",
                        employee_id=product.last_used_by,
                    ))
            self.db.flush()

            pending = self.db.query(WithdrawOrderDetail).filter(
                and_(
                    WithdrawOrderDetail.withdraw_order_id == order_id,
                    WithdrawOrderDetail.date_return.is_(None)
                )
            ).count()
            all_returned = pending == 0
            if all_returned:
                order.date_return = date_return
                order.is_complete = True

            self.db.commit()
            self.db.refresh(order)
            return order, details, list(products.values()), all_returned
        except (OrderReturnError, SQLAlchemyError):
            self.db.rollback()
            raise
