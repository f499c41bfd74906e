import logging
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    """HTTPException que además devuelve un payload en `data`"""

    def __init__(self, status_code: int, detail: str, data: Any = None):
        super().__init__(status_code=status_code, detail=detail)
        self.data = data


def api_response(message: str, data: Any = None, success: bool = True) -> dict:
    """Envelope estándar de respuesta"""
    return {"success": success, "message": message, "data": data}


def map_database_error(
    error: Exception,
    fallback_message: str,
    foreign_key_status: int = status.HTTP_409_CONFLICT,
    foreign_key_message: Optional[str] = None,
) -> HTTPException:
    """
    Traduce errores de base de datos a HTTPException según el texto del error.

    - duplicate / unique -> 409
    - foreign key -> 409 (o el status indicado por el endpoint)
    - connection / timeout -> 503
    - resto -> 500 con el mensaje de fallback
    """
    message = str(error).lower()

    if "duplicate" in message or "unique" in message:
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Resource already exists"
        )
    if "foreign key" in message:
        return HTTPException(
            status_code=foreign_key_status,
            detail=foreign_key_message or "Referenced resource does not exist"
        )
    if "connection" in message or "timeout" in message:
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database temporarily unavailable"
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=fallback_message
    )


def setup_exception_handlers(app: FastAPI):
    """Registrar los manejadores globales de errores"""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        content = {"success": False, "message": exc.detail}
        data = getattr(exc, "data", None)
        if data is not None:
            content["data"] = jsonable_encoder(data)
        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "message": "Invalid request data",
                "data": jsonable_encoder(exc.errors(), custom_encoder={Exception: str}),
            },
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"Error de base de datos en {request.url.path}: {exc}", exc_info=True)
        mapped = map_database_error(exc, "Database operation failed")
        return JSONResponse(
            status_code=mapped.status_code,
            content={"success": False, "message": mapped.detail},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Error no manejado en {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "message": "Internal server error"},
        )
