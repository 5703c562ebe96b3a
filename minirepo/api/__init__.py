"""
API Module for minirepo
=======================
FastAPI surface over repositories: one router per repository plus the
centralized exception handlers.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from typing import Mapping
import logging

from ..exceptions import MinirepoException, ErrorManager, handle_unexpected_error
from .models import (
    BaseResponse, ErrorResponse, RecordResponse, PageResponse,
    DatatableColumn, DatatableSearch, DatatableOrder, DatatableRequest, DatatableResponse
)
from .routes import create_repository_router

logger = logging.getLogger(__name__)


# CENTRALIZED EXCEPTION HANDLERS
# ==============================================================
def register_exception_handlers(app: FastAPI) -> None:
    """Map MinirepoException subclasses to their status codes, anything else to 500"""

    @app.exception_handler(MinirepoException)
    async def minirepo_exception_handler(request: Request, exc: MinirepoException):
        status_code = ErrorManager.get_http_status_code(exc)
        error_response = ErrorManager.exception_to_error_response(exc)

        logger.warning(f"MinirepoException in {request.url.path}: {exc.error_code} - {exc.message}")

        return JSONResponse(status_code=status_code, content=error_response)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        error_response = handle_unexpected_error(exc, f"API endpoint {request.url.path}")
        return JSONResponse(status_code=500, content=error_response)


def create_app(repositories: Mapping[str, object], title: str = "minirepo API") -> FastAPI:
    """
    FastAPI app exposing each repository under /<name>

    Example:
        >>> app = create_app({"posts": PostRepository(engine)})
    """
    app = FastAPI(title=title, version="1.0.0", docs_url="/docs", redoc_url="/redoc")
    register_exception_handlers(app)

    for name, repository in repositories.items():
        app.include_router(create_repository_router(repository, prefix=f"/{name}"))
        logger.debug(f"Mounted repository {name} at /{name}")

    return app


__all__ = [
    "register_exception_handlers",
    "create_app",
    "create_repository_router",
    "BaseResponse",
    "ErrorResponse",
    "RecordResponse",
    "PageResponse",
    "DatatableColumn",
    "DatatableSearch",
    "DatatableOrder",
    "DatatableRequest",
    "DatatableResponse",
]
