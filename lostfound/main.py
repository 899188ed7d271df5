import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError

from lostfound.db.db import build_engine, init_db
from lostfound.routers import admin, auth, claims, items, notifications, profile
from lostfound.services.scheduler import build_scheduler
from lostfound.utils.errors import LostFoundError, Unavailable

load_dotenv()

logger = logging.getLogger(__name__)


async def lostfound_error_handler(request: Request, exc: LostFoundError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
    )


async def store_unavailable_handler(request: Request, exc: Exception):
    logger.error("Store unavailable during %s %s: %s", request.method, request.url.path, exc)
    return await lostfound_error_handler(request, Unavailable())


def create_app(engine: Optional[Engine] = None) -> FastAPI:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())

    engine = engine or build_engine()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(engine)

        scheduler = build_scheduler(engine)
        if scheduler:
            scheduler.start()

        yield

        if scheduler:
            scheduler.shutdown()

    app = FastAPI(title="Campus Lost & Found", lifespan=lifespan)
    app.state.engine = engine

    # CORS
    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(LostFoundError, lostfound_error_handler)
    app.add_exception_handler(OperationalError, store_unavailable_handler)
    app.add_exception_handler(PoolTimeoutError, store_unavailable_handler)

    # Register routers
    app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
    app.include_router(profile.router, prefix="/profile", tags=["Profile"])
    app.include_router(items.router, prefix="/items", tags=["Items"])
    app.include_router(claims.router, prefix="/claims", tags=["Claims"])
    app.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
    app.include_router(admin.router, prefix="/admin", tags=["Admin"])

    @app.get("/")
    def root():
        return {"status": "ok"}

    return app


app = create_app()
