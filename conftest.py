import os
import signal
import sys
from pathlib import Path

import pytest

# тесты никогда не подключаются к настоящей базе
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("APP_ENV", "test")

sys.path.append(str(Path(__file__).resolve().parent))

from database.db import db
from database.init import ALL_MODELS, sqlite_from_path

TEST_TIMEOUT_SECONDS = int(os.environ.get("PYTEST_TIMEOUT", "60"))


@pytest.fixture(autouse=True)
def watchdog():
    """Прерывает зависший тест по SIGALRM."""
    if not hasattr(signal, "SIGALRM"):
        yield
        return

    def on_timeout(signum, frame):  # pragma: no cover
        pytest.fail(f"Тест дольше {TEST_TIMEOUT_SECONDS} с", pytrace=False)

    signal.signal(signal.SIGALRM, on_timeout)
    signal.alarm(TEST_TIMEOUT_SECONDS)
    try:
        yield
    finally:
        signal.alarm(0)


@pytest.fixture()
def in_memory_db():
    """Чистая схема в SQLite ``:memory:`` на время одного теста."""
    test_db = getattr(db, "obj", None)
    if test_db is None:
        test_db = sqlite_from_path(":memory:")
        db.initialize(test_db)
    elif getattr(test_db, "database", None) != ":memory:":
        raise RuntimeError("Тесты запускаются только на базе в памяти")

    test_db.create_tables(ALL_MODELS)
    try:
        yield test_db
    finally:
        test_db.drop_tables(ALL_MODELS)
