import os
import signal
import sys
from pathlib import Path

import pytest
from peewee import SqliteDatabase

# Force tests to use in-memory SQLite by default to avoid touching any real DB.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

# ensure project root is on sys.path when running tests
sys.path.append(str(Path(__file__).resolve().parent))

from config import get_settings
from database.db import db
from database.init import ALL_MODELS

_TEST_TIMEOUT = int(os.environ.get("PYTEST_TIMEOUT", "60"))


@pytest.fixture(autouse=True)
def watchdog():
    """Fail a test if it hangs longer than the timeout."""
    if not hasattr(signal, "SIGALRM"):
        yield
        return

    def handler(signum, frame):  # pragma: no cover - timeout handler
        pytest.fail("Test timeout exceeded", pytrace=False)

    signal.signal(signal.SIGALRM, handler)
    signal.alarm(_TEST_TIMEOUT)
    try:
        yield
    finally:
        signal.alarm(0)


@pytest.fixture(autouse=True)
def settings(tmp_path, monkeypatch):
    """Настройки с временными каталогами для файлов и логов."""
    monkeypatch.setenv("FILES_DIR", str(tmp_path / "files"))
    monkeypatch.setenv("SHARE_DIR", str(tmp_path / "share"))
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("CURRENT_USER_ID", "user-1")
    monkeypatch.setenv("CURRENCY", "USD")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


def _bind(test_db) -> None:
    db.initialize(test_db)
    test_db.connect(reuse_if_open=True)
    test_db.create_tables(ALL_MODELS)


def _unbind(test_db) -> None:
    test_db.drop_tables(ALL_MODELS)
    if not test_db.is_closed():
        test_db.close()


@pytest.fixture()
def in_memory_db():
    # Каждый тест получает свежую базу в памяти.
    test_db = SqliteDatabase(":memory:", pragmas={"foreign_keys": 1})
    _bind(test_db)
    try:
        yield test_db
    finally:
        _unbind(test_db)


@pytest.fixture()
def file_db(tmp_path):
    """База в файле: её видят потоки, в которых FastAPI выполняет обработчики."""
    test_db = SqliteDatabase(str(tmp_path / "hub.db"), pragmas={"foreign_keys": 1})
    _bind(test_db)
    try:
        yield test_db
    finally:
        _unbind(test_db)
