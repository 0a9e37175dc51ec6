from contextlib import asynccontextmanager
import logging

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from ledgercore.api.routes import router as api_router
from ledgercore.audit import configure_audit_sink
from ledgercore.core.config import get_settings
from ledgercore.logging import configure_logging
from ledgercore.middleware.request_context import CorrelationIdMiddleware, RequestLoggingMiddleware
from ledgercore.otel import get_fastapi_server_request_hook, setup_otel
from ledgercore.platform.ledger.errors import (
    AlreadyClosedError,
    AlreadyReversedError,
    BudgetNotDraftError,
    ConcurrentModificationError,
    DuplicateBudgetError,
    EntryNotDraftError,
    LedgerError,
    NotFoundError,
    NotPostedError,
    PeriodOverlapError,
)


configure_logging()
logger = logging.getLogger("ledgercore.lifecycle")

_conflict_errors = (
    AlreadyClosedError,
    AlreadyReversedError,
    BudgetNotDraftError,
    ConcurrentModificationError,
    DuplicateBudgetError,
    EntryNotDraftError,
    NotPostedError,
    PeriodOverlapError,
)


def status_for(exc: LedgerError) -> int:
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, _conflict_errors):
        return status.HTTP_409_CONFLICT
    return status.HTTP_422_UNPROCESSABLE_ENTITY


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("system.started")
    yield


app = FastAPI(title="Ledger Core API", version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.include_router(api_router)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    return JSONResponse(status_code=status_for(exc), content={"detail": exc.to_dict()})


settings = get_settings()
configure_audit_sink(settings.audit_backend)

setup_otel(settings)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())


def run() -> None:
    """Serve the API with uvicorn on the configured host and port."""
    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, reload=False)


if __name__ == "__main__":
    run()
