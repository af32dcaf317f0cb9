"""
Application entrypoint: logging, error rendering and router wiring.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.config import settings
from app.infrastructure.observability.logging import get_logger, log_request, setup_logging
from app.routes import data, health, proxy
from app.services.errors import InvalidRequestError, ProxyError
from app.services.remote_caller import remote_caller
from app.services.table_storage import close_table_storage

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Report which integrations are configured; the app starts either way."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    unconfigured = {name: missing for name, missing in settings.integration_status().items() if missing}
    if unconfigured:
        logger.warning("Some integrations are not configured", missing=unconfigured)
    else:
        logger.info("All integrations configured")

    yield

    logger.info("Application shutting down")
    await remote_caller.close()
    await close_table_storage()


app = FastAPI(
    title="Operations Integration Proxy",
    description="Credential-holding proxy for document, mailbox, messaging, task and data APIs",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(health.router)
app.include_router(proxy.router)
app.include_router(data.router)


@app.exception_handler(ProxyError)
async def proxy_error_handler(request: Request, exc: ProxyError):
    """Render every service-layer failure as ``{"error", "kind"}`` with its status."""
    if exc.status_code >= 500:
        logger.error(
            "Request failed", path=request.url.path, kind=exc.kind, error=exc.message
        )
    else:
        logger.warning(
            "Request rejected", path=request.url.path, kind=exc.kind, error=exc.message
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    ctx_error = (first.get("ctx") or {}).get("error")
    if ctx_error is not None:
        return str(ctx_error)
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"{field}: {first.get('msg')}" if field else str(first.get("msg"))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are caller errors: 400, same shape as every other failure."""
    error = InvalidRequestError(_validation_message(exc))
    return await proxy_error_handler(request, error)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    log_request(request.method, request.url.path, response.status_code, round(process_time, 2))
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
