"""FastAPI application for lemrecon."""

from __future__ import annotations

from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from lemrecon import __version__
from lemrecon.core.logging import configure_logging
from lemrecon.db.connection import close_db
from lemrecon.exceptions import (
    NotFoundError,
    PartialFinalizeError,
    PersistenceError,
    ValidationError,
)
from lemrecon.web.routes import billing, coverage, disputes, reconciliation

configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_db()


app = FastAPI(
    title="lemrecon",
    description="Chainage coverage, field log reconciliation, disputes and billing",
    version=__version__,
    lifespan=lifespan,
)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        structlog.contextvars.clear_contextvars()

        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.info("request_started", method=request.method, path=request.url.path)
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error("request_failed", error=str(exc))
            raise
        logger.info("request_completed", status_code=response.status_code)
        return response


app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    content = {
        "detail": str(exc),
        "partially_applied": exc.partially_applied,
        "applied": exc.applied,
        "pending": exc.pending,
    }
    if isinstance(exc, PartialFinalizeError):
        content["invoice_id"] = exc.invoice_id
    return JSONResponse(status_code=503, content=content)


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}


app.include_router(coverage.router)
app.include_router(reconciliation.router)
app.include_router(disputes.router)
app.include_router(billing.router)
