import logging

import uvicorn

from config import Settings, get_settings
from database.init import init_from_env
from utils.logging_config import setup_logging

__all__ = ["main"]


def main(settings: Settings | None = None) -> int:
    """Запускает HTTP API back-office."""

    settings = settings or get_settings()
    if not settings.database_url:
        raise RuntimeError("DATABASE_URL не задан в .env")

    log_path = setup_logging(settings)
    init_from_env(settings.database_url)
    logger = logging.getLogger(__name__)
    logger.info("📝 Лог пишется в %s", log_path)

    from app.main import create_app

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
