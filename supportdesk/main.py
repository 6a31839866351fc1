import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from supportdesk.api.routes import escalation, health, tickets
from supportdesk.core.config import get_settings
from supportdesk.core.errors import SupportDeskError
from supportdesk.core.logging import configure_logging
from supportdesk.core.middleware import RateLimitMiddleware, RequestContextMiddleware
from supportdesk.db.init_db import init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    yield


async def support_desk_error_handler(request: Request, exc: SupportDeskError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Request failed: %s",
            exc.message,
            exc_info=exc,
            extra={"path": request.url.path, "error_type": type(exc).__name__},
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})
    logger.info(
        "Request rejected: %s",
        exc.message,
        extra={"path": request.url.path, "status_code": exc.status_code},
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = sorted({".".join(str(part) for part in error["loc"] if part != "body") for error in exc.errors()})
    return JSONResponse(status_code=400, content={"error": "Invalid request", "fields": fields})


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    settings.validate_production_safety()

    app = FastAPI(title="SupportDesk Escalation API", version="0.1.0", lifespan=lifespan)

    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(SupportDeskError, support_desk_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)

    app.include_router(health.router)
    app.include_router(escalation.router)
    app.include_router(tickets.router)

    @app.get("/", tags=["root"])
    def root() -> dict:
        return {
            "name": "SupportDesk Escalation API",
            "status": "ok",
            "health": "/v1/health",
            "docs": "/docs",
        }

    return app


app = create_app()
