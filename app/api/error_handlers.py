from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.services.exceptions import (
    ConcurrencyConflictError,
    ConflictError,
    InvalidOperationError,
    ResourceNotFoundError,
    ServiceError,
    StorageUnavailableError,
)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ResourceNotFoundError)
    async def handle_not_found(_: Request, exc: ResourceNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(InvalidOperationError)
    async def handle_invalid_operation(_: Request, exc: InvalidOperationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": exc.detail})

    @app.exception_handler(ConcurrencyConflictError)
    async def handle_concurrency_conflict(_: Request, exc: ConcurrencyConflictError) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": exc.detail, "entity": exc.entity, "entity_id": exc.entity_id},
        )

    @app.exception_handler(ConflictError)
    async def handle_conflict(_: Request, exc: ConflictError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": exc.detail})

    @app.exception_handler(StorageUnavailableError)
    async def handle_storage_unavailable(_: Request, exc: StorageUnavailableError) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": exc.detail}, headers={"Retry-After": "1"})

    @app.exception_handler(ServiceError)
    async def handle_service_error(_: Request, exc: ServiceError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": exc.detail})
