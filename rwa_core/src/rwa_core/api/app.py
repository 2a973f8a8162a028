"""FastAPI application factory.

Error mapping:
- ``RWAError`` -> its ``http_status`` with ``code`` in the envelope
- Request validation failures -> 400 VALIDATION_ERROR
- Anything else -> 500 INTERNAL_ERROR (logged with traceback)
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from rwa_core import __version__
from rwa_core.api import routes_asset, routes_dex
from rwa_core.api.envelope import failure, success
from rwa_core.common.errors import RWAError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from fastapi.responses import JSONResponse, Response

    from rwa_core.container import Services

log = structlog.get_logger()


def create_app(services: Services) -> FastAPI:
    """Build the HTTP application around a wired service graph."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await services.start()
        log.info("API started", version=__version__)
        yield
        await services.stop()
        log.info("API stopped")

    app = FastAPI(
        title="RWA-Core",
        version=__version__,
        description="Real-world asset tokenization and DEX trading",
        lifespan=lifespan,
    )
    app.state.services = services

    app.include_router(routes_asset.router)
    app.include_router(routes_dex.router)

    @app.get("/health", tags=["health"])
    async def health() -> JSONResponse:
        store_check = getattr(services.store, "health_check", None)
        status = {
            "ledger": services.ledger.health_check(),
            "circuit_state": services.ledger.circuit_state.value,
            "store": store_check() if store_check else True,
        }
        return success(status, "Healthy" if all((status["ledger"], status["store"])) else "Degraded")

    @app.middleware("http")
    async def bind_request_context(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response

    @app.exception_handler(RWAError)
    async def handle_rwa_error(request: Request, exc: RWAError) -> JSONResponse:
        log.warning(
            "Request failed",
            error_code=exc.code,
            status=exc.http_status,
            result_code=exc.result_code,
            error=exc.message,
        )
        return failure(exc.code, exc.message, exc.http_status, exc.result_code)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        return failure("VALIDATION_ERROR", f"Invalid request: {details}", 400)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        log.exception("Unhandled error", error=str(exc))
        return failure("INTERNAL_ERROR", "Internal server error", 500)

    return app
