"""
Fixtures compartidas: SQLite en memoria, cliente de pruebas y datos base
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("MAIN_ACCOUNT_EMAIL", "owner@example.com")

from types import SimpleNamespace
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from inventory_api.config.database import Base, get_db
from inventory_api.core.auth.dependencies import get_optional_user
from inventory_api.core.auth.schemas import UserResponse
from inventory_api.main import app
from inventory_api.shared.database.models import (
    Warehouse, CabinetWarehouse, User, Employee, ProductStock
)

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine, "connect")
def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class SessionUser:
    """Usuario de la sesión simulada; None equivale a no autenticado"""

    def __init__(self):
        self.user: Optional[UserResponse] = None

    def set(self, user: Optional[UserResponse]):
        self.user = user


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_user():
    return SessionUser()


@pytest.fixture
def client(db_session, session_user):
    def override_get_db():
        yield db_session

    def override_get_optional_user():
        return session_user.user

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_optional_user] = override_get_optional_user
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _as_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id, name=user.name, email=user.email, role=user.role, warehouse_id=user.warehouse_id
    )


@pytest.fixture
def seed(db_session, session_user):
    """
    CEDIS + dos almacenes con gabinete, un usuario por rol, un empleado y
    cuatro unidades en el almacén principal. La sesión arranca como el
    encargado del almacén principal.
    """
    cedis = Warehouse(name="CEDIS Central", code="CEDIS", is_cedis=True)
    store = Warehouse(name="Almacén Norte", code="ALM-N")
    other = Warehouse(name="Almacén Sur", code="ALM-S")
    db_session.add_all([cedis, store, other])
    db_session.flush()

    store_cabinet = CabinetWarehouse(name="Almacén Norte Gabinete", warehouse_id=store.id)
    other_cabinet = CabinetWarehouse(name="Almacén Sur Gabinete", warehouse_id=other.id)
    db_session.add_all([store_cabinet, other_cabinet])

    admin = User(name="Admin", email="admin@example.com", role="admin")
    encargado = User(name="Encargado", email="encargado@example.com", role="encargado", warehouse_id=store.id)
    cedis_encargado = User(name="Encargado CEDIS", email="cedis@example.com", role="encargado",
                           warehouse_id=cedis.id)
    employee_user = User(name="Empleado", email="empleado@example.com", role="employee", warehouse_id=store.id)
    owner = User(name="Owner", email="owner@example.com", role="admin")
    db_session.add_all([admin, encargado, cedis_encargado, employee_user, owner])
    db_session.flush()

    employee = Employee(name="Ana", surname="López", warehouse_id=store.id, user_id=encargado.id)
    db_session.add(employee)
    db_session.flush()

    products = [
        ProductStock(barcode=7501001, description="Shampoo 1L", current_warehouse=store.id),
        ProductStock(barcode=7501001, description="Shampoo 1L", current_warehouse=store.id),
        ProductStock(barcode=7502002, description="Tinte rubio", current_warehouse=store.id),
        ProductStock(barcode=7503003, description="Guantes", current_warehouse=store.id,
                     current_cabinet=store_cabinet.id),
    ]
    db_session.add_all(products)
    db_session.commit()

    session_user.set(_as_response(encargado))

    return SimpleNamespace(
        cedis_id=cedis.id,
        store_id=store.id,
        other_id=other.id,
        store_cabinet_id=store_cabinet.id,
        other_cabinet_id=other_cabinet.id,
        employee_id=employee.id,
        product_ids=[product.id for product in products],
        admin=_as_response(admin),
        encargado=_as_response(encargado),
        cedis_encargado=_as_response(cedis_encargado),
        employee_user=_as_response(employee_user),
        owner=_as_response(owner),
    )
