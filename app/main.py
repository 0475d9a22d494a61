import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from config import Settings, get_settings
from database.init import init_from_env
from .api.router import router as api_router
from .errors import register_exception_handlers

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        if settings.database_url:
            init_from_env(settings.database_url)
        logger.info("🚀 API запущен (окружение: %s)", settings.environment)
        yield

    app = FastAPI(title="Back-office API", lifespan=lifespan)
    register_exception_handlers(app, settings)
    app.include_router(api_router, prefix="/api")

    @app.get("/ping")
    def ping():
        return {"message": "pong"}

    return app


app = create_app()
