"""FastAPI application factory.

`create_app` wires settings, the database, CORS, request logging, the
domain error handlers and the `/api/v1` router into one application.
The module-level `app` is what `uvicorn discipleship.main:app` serves.
"""

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.exc import SQLAlchemyError

from .config import Settings, get_settings
from .database import Database
from .errors import DiscipleshipError
from .logging_setup import configure_logging
from .routes import health_payload, router

logger = logging.getLogger("discipleship.api")


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)
    db = database or Database.from_settings(settings)
    db.create_all()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.db.dispose()

    app = FastAPI(title="Discipleship Tracking API", version=settings.API_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db

    # Wide-open CORS keeps local frontends working without extra config in dev.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.ALLOW_DEV_CORS else settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
        request.state.request_id = req_id
        started = time.perf_counter()
        response: Response
        try:
            response = await call_next(request)
        except Exception:
            elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
            logger.exception(
                "request_failed %s",
                json.dumps(
                    {
                        "request_id": req_id,
                        "path": request.url.path,
                        "method": request.method,
                        "duration_ms": elapsed_ms,
                        "client": request.client.host if request.client else "unknown",
                    },
                    ensure_ascii=True,
                ),
            )
            raise
        response.headers["X-Request-ID"] = req_id
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.info(
            "request_done %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                    "church_id": getattr(request.state, "church_id", None),
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        return response

    @app.exception_handler(DiscipleshipError)
    async def domain_error_handler(request: Request, exc: DiscipleshipError):
        if exc.status_code >= 500:
            logger.error("domain_error %s %s", exc.code, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})

    @app.exception_handler(SQLAlchemyError)
    async def store_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("store_error path=%s", request.url.path)
        return JSONResponse(status_code=500, content={"detail": "database error", "code": "STORE_ERROR"})

    @app.get("/health", include_in_schema=False)
    def root_health():
        return health_payload(settings.API_VERSION)

    app.include_router(router)
    return app


app = create_app()
