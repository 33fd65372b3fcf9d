import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .db import close_mongo_connection, connect_to_mongo, is_connected
from .errors import register_exception_handlers
from .routers import migrations


@asynccontextmanager
async def lifespan(_app: FastAPI):
    await connect_to_mongo()
    try:
        yield
    finally:
        await close_mongo_connection()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="ProfileBuilderX API", lifespan=lifespan)

    # Build CORS origins list from env (supports CSV)
    origins_env = os.getenv("CORS_ORIGINS") or settings.cors_origin
    allow_origins = [o.strip() for o in origins_env.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )

    register_exception_handlers(app, production=settings.is_production)

    app.include_router(migrations.router, prefix="/api", tags=["admin"])

    @app.get("/")
    async def root():
        return {"status": "profilebuilder-api-ok"}

    @app.get("/api/health/db")
    async def db_health():
        return {
            "mongo": "connected" if is_connected() else "disconnected",
            "db": settings.mongo_db,
        }

    return app


app = create_app()
