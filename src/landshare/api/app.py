"""FastAPI app factory for the landshare admin API."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from landshare.api.investments import router as investments_router
from landshare.api.migrations import router as migrations_router
from landshare.api.portfolio import router as portfolio_router
from landshare.api.users import router as users_router
from landshare.errors import MergeIncompleteError, NotFoundError, StoreError, ValidationError

LOGGER = logging.getLogger(__name__)


async def _validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


async def _not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc), "collection": exc.collection, "id": exc.doc_id},
    )


async def _merge_incomplete_handler(request: Request, exc: MergeIncompleteError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc), "journal_id": exc.journal_id, "phase": exc.phase},
    )


async def _store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    LOGGER.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI instance.
    """
    app = FastAPI(title="landshare Admin API", version="0.1")
    app.include_router(portfolio_router)
    app.include_router(users_router)
    app.include_router(investments_router)
    app.include_router(migrations_router)

    app.add_exception_handler(ValidationError, _validation_error_handler)
    app.add_exception_handler(NotFoundError, _not_found_handler)
    app.add_exception_handler(MergeIncompleteError, _merge_incomplete_handler)
    app.add_exception_handler(StoreError, _store_error_handler)

    return app


# For uvicorn, expose `app` at module level
app = create_app()

__all__ = ["app", "create_app"]
