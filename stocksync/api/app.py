import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stocksync.api.sync_routes import sync_router
from stocksync.api.webhook_routes import webhook_router
from stocksync.database.db import init_db
from stocksync.config.settings import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def create_app() -> FastAPI:
    # Disable Swagger/ReDoc in production
    docs_kwargs = {}
    if settings.is_production:
        docs_kwargs = {"docs_url": None, "redoc_url": None}

    app = FastAPI(
        title="StockSync API",
        description="Dealership inventory sync against the listings provider",
        version="0.1.0",
        **docs_kwargs,
    )

    # Admin dashboard origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", settings.provider_signature_header],
    )

    app.include_router(sync_router, prefix="/api/v1")
    app.include_router(webhook_router)

    @app.get("/health", tags=["health"])
    def health_check():
        return {"status": "ok", "version": "0.1.0", "provider_environment": settings.provider_environment}

    @app.on_event("startup")
    def on_startup():
        settings.validate_production()
        if not settings.is_deployed:
            init_db()  # Deployed envs use: alembic upgrade head

    return app


app = create_app()
