import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from inventory_api.config.database import init_db
from inventory_api.config.settings import settings
from inventory_api.core.exceptions import setup_exception_handlers
from inventory_api.core.middleware import setup_logging, setup_middleware
from inventory_api.api.v1.router import api_router

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"{settings.app_name} starting - version {settings.version}")
    logger.info(f"Environment: {'Development' if settings.debug else 'Production'}")
    if settings.auto_create_tables:
        init_db()
        logger.info("Tablas verificadas / creadas")

    yield

    # Shutdown
    logger.info(f"{settings.app_name} shutting down")

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Back office de inventario: stock, kits, retiros, transferencias, pedidos y merma",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

# Setup middleware
setup_middleware(app)
setup_exception_handlers(app)

# Include routers
app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    return {
        "message": "Inventory Back Office API",
        "version": settings.version,
        "status": "running",
        "docs": "/docs" if settings.debug else "Disabled in production",
        "api": "/api/v1"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "inventory_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
