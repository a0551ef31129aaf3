from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from cinema.db.init_db import init_db
from cinema.domain.errors import CinemaError, ErrorKind
from cinema.logging_config import configure_app_logging
from cinema.routers import health, me, programs, screenings
from cinema.schemas.security import ErrorOut
from cinema.security.config import load_policy_config
from cinema.settings import get_settings

logger = logging.getLogger(__name__)

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorKind.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
}

ERROR_RESPONSES: dict[int | str, dict] = {code: {"model": ErrorOut} for code in sorted(set(STATUS_BY_KIND.values()))}


async def cinema_error_handler(request: Request, exc: CinemaError) -> JSONResponse:
    logger.info("Refused %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=STATUS_BY_KIND[exc.kind], content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed query/path/body values share the VALIDATION_ERROR envelope.
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ())[1:]) or "request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorOut(
            code=ErrorKind.VALIDATION_ERROR.value,
            message=first.get("msg", "Invalid request"),
            details={"field": field},
        ).model_dump(),
    )


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        settings = get_settings()
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        app.state.policy_config = load_policy_config(settings.resolved_policy_config_path())
        logger.info("Loaded policy config: %s", settings.resolved_policy_config_path())
        init_db(seed=settings.seed_demo_data)
        logger.info("Database initialized (tables ensured + seed if needed)")

        yield

    app = FastAPI(title="Cinema Workflow", lifespan=lifespan)

    app.add_exception_handler(CinemaError, cinema_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(health.router)
    app.include_router(me.router, responses=ERROR_RESPONSES)
    app.include_router(programs.router, responses=ERROR_RESPONSES)
    app.include_router(screenings.router, responses=ERROR_RESPONSES)

    return app


app = create_app()
