import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from inventory_api.config.settings import settings

logger = logging.getLogger(__name__)


def setup_logging():
    """Configurar logging raíz según settings.log_level"""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def setup_middleware(app: FastAPI):
    """CORS para el cliente web / móvil y bitácora de cada request"""

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept", "Origin"],
        expose_headers=["Content-Disposition"],  # nombre del CSV de merma
        max_age=3600
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        elapsed = time.time() - start_time

        # Errores de negocio (4xx) y de servidor (5xx) en warning
        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(
            level,
            f"{request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Time: {elapsed:.4f}s"
        )
        return response
