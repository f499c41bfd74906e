from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import and_
from sqlalchemy.exc import SQLAlchemyError

from inventory_api.shared.database.models import StockLimit


class StockLimitRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_all(self) -> List[StockLimit]:
        return self.db.query(StockLimit).all()

    def get_by_warehouse(self, warehouse_id: str) -> List[StockLimit]:
        return self.db.query(StockLimit).filter(StockLimit.warehouse_id == warehouse_id).all()

    def get_quantity_limits(self, warehouse_id: Optional[str] = None) -> List[StockLimit]:
        query = self.db.query(StockLimit).filter(StockLimit.limit_type == "quantity")
        if warehouse_id:
            query = query.filter(StockLimit.warehouse_id == warehouse_id)
        return query.all()

    def get_one(self, warehouse_id: str, barcode: int) -> Optional[StockLimit]:
        return self.db.query(StockLimit).filter(
            and_(StockLimit.warehouse_id == warehouse_id, StockLimit.barcode == barcode)
        ).first()

    def create(self, values: Dict[str, Any]) -> StockLimit:
        try:
            limit = StockLimit(**values)
            self.db.add(limit)
            self.db.commit()
            self.db.refresh(limit)
            return limit
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def update(self, limit: StockLimit, values: Dict[str, Any]) -> StockLimit:
        try:
            for field, value in values.items():
                setattr(limit, field, value)
            self.db.commit()
            self.db.refresh(limit)
            return limit
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e
