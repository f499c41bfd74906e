import uuid
from datetime import datetime

from pydantic.alias_generators import to_camel
from sqlalchemy import (
    Column, Integer, BigInteger, String, Boolean, Date, DateTime, Text,
    ForeignKey, UniqueConstraint, Index, text
)
from sqlalchemy.orm import relationship
from inventory_api.config.database import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    """Mixin para timestamps automáticos"""
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class SerializerMixin:
    """Serializa columnas a dict con llaves camelCase (formato de la API)"""

    def to_dict(self, exclude=None):
        exclude = set(exclude or [])
        return {
            to_camel(column.key): getattr(self, column.key)
            for column in self.__table__.columns
            if column.key not in exclude
        }

# ===== USUARIOS Y UBICACIONES =====

class Warehouse(Base, TimestampMixin, SerializerMixin):
    """Almacén físico. CEDIS es el centro de distribución (sin gabinete operativo)"""
    __tablename__ = "warehouse"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    code = Column(String(50), unique=True, nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)
    allows_inbound = Column(Boolean, default=True, nullable=False)
    allows_outbound = Column(Boolean, default=True, nullable=False)
    requires_approval = Column(Boolean, default=False, nullable=False)
    operating_hours_start = Column(String(5), default="08:00")
    operating_hours_end = Column(String(5), default="18:00")
    time_zone = Column(String(50), default="UTC")
    created_by = Column(String(36))
    last_modified_by = Column(String(36))
    altegio_id = Column(Integer)
    consumables_id = Column(Integer)
    sales_id = Column(Integer)
    notes = Column(Text)
    custom_fields = Column(Text)
    is_cedis = Column(Boolean, default=False, nullable=False)

    # Relationships
    cabinets = relationship("CabinetWarehouse", back_populates="warehouse")
    users = relationship("User", back_populates="warehouse")
    employees = relationship("Employee", back_populates="warehouse")


class CabinetWarehouse(Base, SerializerMixin):
    """Gabinete asociado a un almacén (uno por almacén)"""
    __tablename__ = "cabinet_warehouse"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), default="warehouse 1", nullable=False)
    warehouse_id = Column(String(36), ForeignKey("warehouse.id"), unique=True, nullable=False)

    # Relationships
    warehouse = relationship("Warehouse", back_populates="cabinets")


class User(Base, TimestampMixin, SerializerMixin):
    """Cuenta con sesión. role: admin | encargado | employee"""
    __tablename__ = "user"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255))
    role = Column(String(50), default="employee", nullable=False)
    warehouse_id = Column(String(36), ForeignKey("warehouse.id"))

    # Relationships
    warehouse = relationship("Warehouse", back_populates="users")
    employee = relationship("Employee", back_populates="user", uselist=False)

    def to_dict(self, exclude=None):
        return super().to_dict(exclude=set(exclude or []) | {"password_hash"})


class Permission(Base, SerializerMixin):
    __tablename__ = "permissions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    permission = Column(String(255), nullable=False)


class Employee(Base, TimestampMixin, SerializerMixin):
    """Empleado operativo (puede o no tener cuenta de usuario)"""
    __tablename__ = "employee"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    surname = Column(String(255), nullable=False)
    warehouse_id = Column(String(36), ForeignKey("warehouse.id"), nullable=False)
    passcode = Column(Integer, default=1111, nullable=False)
    user_id = Column(String(36), ForeignKey("user.id"))
    permissions = Column(String(36), ForeignKey("permissions.id"))

    # Relationships
    warehouse = relationship("Warehouse", back_populates="employees")
    user = relationship("User", back_populates="employee")
    permission = relationship("Permission")

# ===== INVENTARIO =====

class ProductStock(Base, TimestampMixin, SerializerMixin):
    """
    Unidad física de producto.

    Estados: disponible, en uso (is_being_used), vacía (is_empty),
    eliminada (is_deleted). Una unidad eliminada nunca queda en uso.
    """
    __tablename__ = "product_stock"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    barcode = Column(BigInteger, nullable=False, index=True)
    description = Column(Text)
    last_used = Column(Date)
    last_used_by = Column(String(36), ForeignKey("employee.id"))
    number_of_uses = Column(Integer, default=0, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    is_empty = Column(Boolean, default=False, nullable=False)
    current_warehouse = Column(String(36), ForeignKey("warehouse.id"), index=True)
    current_cabinet = Column(String(36), ForeignKey("cabinet_warehouse.id"))
    is_being_used = Column(Boolean, default=False, nullable=False)
    is_kit = Column(Boolean, default=False, nullable=False)
    first_used = Column(Date)

    # Relationships
    employee = relationship("Employee", foreign_keys=[last_used_by])
    warehouse = relationship("Warehouse", foreign_keys=[current_warehouse])
    cabinet = relationship("CabinetWarehouse", foreign_keys=[current_cabinet])


class ProductStockUsageHistory(Base, SerializerMixin):
    """Bitácora de movimientos de cada unidad"""
    __tablename__ = "product_stock_usage_history"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    product_stock_id = Column(String(36), ForeignKey("product_stock.id"), nullable=False, index=True)
    employee_id = Column(String(36), ForeignKey("employee.id"))
    user_id = Column(String(36))
    warehouse_id = Column(String(36), ForeignKey("warehouse.id"))
    warehouse_transfer_id = Column(String(36), ForeignKey("warehouse_transfer.id"))
    kit_id = Column(String(36), ForeignKey("kits.id"))
    # transfer | kit_assignment | kit_return | withdraw | return | other
    movement_type = Column(String(30), nullable=False)
    # checkout | checkin | transfer | assign | return | other
    action = Column(String(20), nullable=False)
    notes = Column(Text)
    usage_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    previous_warehouse_id = Column(String(36))
    new_warehouse_id = Column(String(36))
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class StockLimit(Base, TimestampMixin, SerializerMixin):
    """Límites min/max por almacén y código de barras (por cantidad o por usos)"""
    __tablename__ = "stock_limit"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    warehouse_id = Column(String(36), ForeignKey("warehouse.id"), nullable=False)
    barcode = Column(BigInteger, nullable=False)
    limit_type = Column(String(20), default="quantity", nullable=False)
    min_quantity = Column(Integer, default=0, nullable=False)
    max_quantity = Column(Integer, default=0, nullable=False)
    min_usage = Column(Integer)
    max_usage = Column(Integer)
    notes = Column(Text)
    created_by = Column(String(36))

    __table_args__ = (
        UniqueConstraint("warehouse_id", "barcode", name="stock_limit_warehouse_barcode_unique"),
    )

# ===== RETIROS Y KITS =====

class WithdrawOrder(Base, TimestampMixin, SerializerMixin):
    __tablename__ = "withdraw_order"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    date_withdraw = Column(Date, nullable=False)
    date_return = Column(Date)
    user_id = Column(String(36), ForeignKey("employee.id"), nullable=False)
    num_items = Column(Integer, nullable=False)
    is_complete = Column(Boolean, default=False, nullable=False)

    # Relationships
    details = relationship("WithdrawOrderDetail", back_populates="order")
    employee = relationship("Employee")


class WithdrawOrderDetail(Base, TimestampMixin, SerializerMixin):
    __tablename__ = "withdraw_order_details"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    product_id = Column(String(36), ForeignKey("product_stock.id"), nullable=False)
    withdraw_order_id = Column(String(36), ForeignKey("withdraw_order.id"), nullable=False)
    date_withdraw = Column(Date, nullable=False)
    date_return = Column(Date)

    # Relationships
    order = relationship("WithdrawOrder", back_populates="details")
    product = relationship("ProductStock")


class Kit(Base, TimestampMixin, SerializerMixin):
    __tablename__ = "kits"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    num_products = Column(Integer, nullable=False)
    assigned_date = Column(Date, nullable=False)
    assigned_employee = Column(String(36), ForeignKey("employee.id"), nullable=False)
    observations = Column(Text)
    is_partial = Column(Boolean, default=False, nullable=False)
    is_complete = Column(Boolean, default=False, nullable=False)

    # Relationships
    employee = relationship("Employee")
    details = relationship("KitDetail", back_populates="kit")


class KitDetail(Base, TimestampMixin, SerializerMixin):
    __tablename__ = "kits_details"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    kit_id = Column(String(36), ForeignKey("kits.id"), nullable=False)
    product_id = Column(String(36), ForeignKey("product_stock.id"), nullable=False)
    observations = Column(Text)
    is_returned = Column(Boolean, default=False, nullable=False)
    returned_date = Column(Date)

    # Relationships
    kit = relationship("Kit", back_populates="details")
    product = relationship("ProductStock")

# ===== TRANSFERENCIAS =====

class WarehouseTransfer(Base, TimestampMixin, SerializerMixin):
    """
    Transferencia entre ubicaciones.

    external: CEDIS -> almacén, se completa al confirmar recepción.
    internal: almacén <-> gabinete, se completa al crearse.
    """
    __tablename__ = "warehouse_transfer"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    transfer_number = Column(String(100), unique=True, nullable=False)
    transfer_type = Column(String(20), nullable=False)
    source_warehouse_id = Column(String(36), ForeignKey("warehouse.id"), nullable=False)
    destination_warehouse_id = Column(String(36), ForeignKey("warehouse.id"), nullable=False)
    cabinet_id = Column(String(36), ForeignKey("cabinet_warehouse.id"))
    transfer_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_date = Column(DateTime)
    is_completed = Column(Boolean, default=False, nullable=False)
    is_pending = Column(Boolean, default=True, nullable=False)
    is_cancelled = Column(Boolean, default=False, nullable=False)
    initiated_by = Column(String(36), nullable=False)
    completed_by = Column(String(36), ForeignKey("user.id"))
    total_items = Column(Integer, default=0, nullable=False)
    transfer_reason = Column(Text)
    notes = Column(Text)
    priority = Column(String(20), default="normal", nullable=False)

    # Relationships
    details = relationship("WarehouseTransferDetail", back_populates="transfer")
    source_warehouse = relationship("Warehouse", foreign_keys=[source_warehouse_id])
    destination_warehouse = relationship("Warehouse", foreign_keys=[destination_warehouse_id])


class WarehouseTransferDetail(Base, TimestampMixin, SerializerMixin):
    __tablename__ = "warehouse_transfer_details"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    transfer_id = Column(String(36), ForeignKey("warehouse_transfer.id"), nullable=False)
    product_stock_id = Column(String(36), ForeignKey("product_stock.id"), nullable=False)
    quantity_transferred = Column(Integer, nullable=False)
    item_condition = Column(String(30), default="good", nullable=False)
    item_notes = Column(Text)
    is_received = Column(Boolean, default=False, nullable=False)
    received_date = Column(DateTime)
    received_by = Column(String(36))

    # Relationships
    transfer = relationship("WarehouseTransfer", back_populates="details")
    product = relationship("ProductStock")

# ===== MERMA =====

class InventoryShrinkageEvent(Base, SerializerMixin):
    """
    Evento de merma.

    source: manual | transfer_missing
    reason: consumido | dañado | otro
    """
    __tablename__ = "inventory_shrinkage_event"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    source = Column(String(30), nullable=False)
    reason = Column(String(30), nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    notes = Column(Text)
    warehouse_id = Column(String(36), ForeignKey("warehouse.id"), nullable=False)
    product_stock_id = Column(String(36), ForeignKey("product_stock.id", ondelete="SET NULL"))
    product_barcode = Column(BigInteger)
    product_description = Column(Text)
    transfer_id = Column(String(36), ForeignKey("warehouse_transfer.id", ondelete="SET NULL"))
    transfer_number = Column(String(100))
    source_warehouse_id = Column(String(36))
    destination_warehouse_id = Column(String(36))
    created_by_user_id = Column(String(36))

    __table_args__ = (
        Index(
            "inventory_shrinkage_event_product_source_reason_unique",
            "product_stock_id", "source", "reason",
            unique=True,
            postgresql_where=text("product_stock_id IS NOT NULL"),
            sqlite_where=text("product_stock_id IS NOT NULL"),
        ),
    )

# ===== PEDIDOS =====

class ReplenishmentOrder(Base, TimestampMixin, SerializerMixin):
    """Pedido de reabastecimiento almacén -> CEDIS"""
    __tablename__ = "replenishment_order"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_number = Column(String(50), unique=True, nullable=False)
    source_warehouse_id = Column(String(36), ForeignKey("warehouse.id"), nullable=False)
    cedis_warehouse_id = Column(String(36), ForeignKey("warehouse.id"), nullable=False)
    is_sent = Column(Boolean, default=False, nullable=False)
    sent_at = Column(DateTime)
    sent_by_user_id = Column(String(36))
    is_received = Column(Boolean, default=False, nullable=False)
    received_at = Column(DateTime)
    received_by_user_id = Column(String(36))
    warehouse_transfer_id = Column(String(36), ForeignKey("warehouse_transfer.id"))
    notes = Column(Text)

    # Relationships
    details = relationship(
        "ReplenishmentOrderDetail",
        back_populates="order",
        order_by="ReplenishmentOrderDetail.created_at",
    )
    source_warehouse = relationship("Warehouse", foreign_keys=[source_warehouse_id])
    cedis_warehouse = relationship("Warehouse", foreign_keys=[cedis_warehouse_id])


class ReplenishmentOrderDetail(Base, TimestampMixin, SerializerMixin):
    __tablename__ = "replenishment_order_details"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_id = Column(String(36), ForeignKey("replenishment_order.id", ondelete="CASCADE"), nullable=False)
    barcode = Column(BigInteger, nullable=False)
    quantity = Column(Integer, nullable=False)
    notes = Column(Text)
    sent_quantity = Column(Integer, default=0, nullable=False)
    buy_order_generated = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        UniqueConstraint("order_id", "barcode", name="replenishment_order_details_order_barcode_unique"),
    )

    # Relationships
    order = relationship("ReplenishmentOrder", back_populates="details")
