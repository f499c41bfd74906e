from fastapi import APIRouter, Depends

from inventory_api.core.auth.dependencies import get_current_user
from inventory_api.api.v1.auth import router as auth_router

from inventory_api.modules.warehouses import warehouses_router, cabinet_router
from inventory_api.modules.employees import employees_router, users_router, permissions_router
from inventory_api.modules.product_stock import product_stock_router
from inventory_api.modules.stock_limits import stock_limits_router
from inventory_api.modules.kits import kits_router
from inventory_api.modules.withdraw_orders import withdraw_orders_router
from inventory_api.modules.warehouse_transfers import warehouse_transfers_router
from inventory_api.modules.merma import merma_router
from inventory_api.modules.replenishment_orders import replenishment_orders_router
from inventory_api.modules.dashboard import dashboard_router

# Router principal de la API v1
api_router = APIRouter()

# Todo lo que no es /auth requiere sesión
protected = [Depends(get_current_user)]

# ==================== AUTENTICACIÓN ====================

api_router.include_router(auth_router, prefix="/auth", tags=["authentication"])

# ==================== UBICACIONES Y PERSONAL ====================

api_router.include_router(warehouses_router, prefix="/warehouse", tags=["Warehouses"], dependencies=protected)
api_router.include_router(cabinet_router, prefix="/cabinet-warehouse", tags=["Warehouses"], dependencies=protected)
api_router.include_router(employees_router, prefix="/employee", tags=["Employees"], dependencies=protected)
api_router.include_router(users_router, prefix="/users", tags=["Users"], dependencies=protected)
api_router.include_router(permissions_router, prefix="/permissions", tags=["Permissions"], dependencies=protected)

# ==================== INVENTARIO ====================

api_router.include_router(product_stock_router, prefix="/product-stock", tags=["Product Stock"], dependencies=protected)
api_router.include_router(stock_limits_router, prefix="/stock-limits", tags=["Stock Limits"], dependencies=protected)
api_router.include_router(kits_router, prefix="/kits", tags=["Kits"], dependencies=protected)
api_router.include_router(withdraw_orders_router, prefix="/withdraw-orders", tags=["Withdraw Orders"], dependencies=protected)
api_router.include_router(
    warehouse_transfers_router,
    prefix="/warehouse-transfers",  # Prefijo: /api/v1/warehouse-transfers/...
    tags=["Warehouse Transfers"],
    dependencies=protected
)
api_router.include_router(merma_router, prefix="/merma", tags=["Merma"], dependencies=protected)
api_router.include_router(
    replenishment_orders_router,
    prefix="/replenishment-orders",
    tags=["Replenishment Orders"],
    dependencies=protected
)
api_router.include_router(dashboard_router, prefix="/dashboard", tags=["Dashboard"], dependencies=protected)


@api_router.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": "Inventory Back Office API",
        "architecture": "modular_monolith",
        "modules": [
            "warehouse", "employee", "product-stock", "stock-limits", "kits",
            "withdraw-orders", "warehouse-transfers", "merma",
            "replenishment-orders", "dashboard",
        ],
    }
