"""Конфигурация логирования back-office сервиса."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from config import Settings, get_settings

LOG_FILE_NAME = "backoffice.log"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s │ %(message)s"
LOG_MAX_BYTES = 2_000_000
LOG_BACKUPS = 3

# логгеры uvicorn пишут через корневые обработчики
_PROPAGATED = ("uvicorn", "uvicorn.error", "uvicorn.access")


class PeeweeFilter(logging.Filter):
    """Пропускает только изменяющие SQL-запросы peewee."""

    def filter(self, record: logging.LogRecord) -> bool:
        statement = getattr(record, "sql", None) or record.getMessage()
        return not str(statement).lstrip().upper().startswith("SELECT")


def _level_for(settings: Settings) -> int:
    if settings.detailed_logging:
        return logging.DEBUG
    return getattr(logging, settings.log_level, logging.INFO)


def _configured(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler.setLevel(level)
    return handler


def setup_logging(settings: Settings | None = None) -> Path:
    """Направляет логи в консоль и ротируемый файл ``backoffice.log``.

    Возвращает путь к файлу лога.
    """
    settings = settings or get_settings()
    log_path = Path(settings.log_dir).expanduser() / LOG_FILE_NAME
    log_path.parent.mkdir(parents=True, exist_ok=True)
    level = _level_for(settings)

    handlers = [
        _configured(
            RotatingFileHandler(log_path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"),
            level,
        ),
        _configured(logging.StreamHandler(), level),
    ]
    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in _PROPAGATED:
        external = logging.getLogger(name)
        external.handlers.clear()
        external.propagate = True

    if not settings.detailed_logging:
        logging.getLogger("peewee").addFilter(PeeweeFilter())

    return log_path
