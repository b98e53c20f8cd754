"""Логирование API и служебных скриптов: консоль и ротируемый ``hub.log``."""

import logging
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

from config import Settings, get_settings

LOG_FILE = "hub.log"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s │ %(message)s"

# Сторонние логгеры, от которых нужны только предупреждения
NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "multipart")

_EMAIL_RE = re.compile(r"([\w.+-])[\w.+-]*@([\w-]+\.[\w.-]+)")
_PHONE_RE = re.compile(r"\+\d[\d\s()-]{7,}(\d{2})")


class PeeweeFilter(logging.Filter):
    """Фильтрует SELECT-запросы peewee."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401 - short doc
        """True, если SQL-запрос не начинается с ``SELECT``."""
        if hasattr(record, "sql"):
            msg = record.sql
        else:
            msg = record.getMessage()
        return not str(msg).lstrip().startswith("SELECT")


def mask_personal_data(text: str) -> str:
    """``john@example.com`` → ``j***@example.com``, телефон → ``***67``."""
    text = _EMAIL_RE.sub(r"\1***@\2", text)
    return _PHONE_RE.sub(r"***\1", text)


class PersonalDataFilter(logging.Filter):
    """Скрывает email и телефоны клиентов в сообщениях (данные форм попадают в лог)."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = mask_personal_data(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def setup_logging(settings: Settings | None = None) -> None:
    """Настраивает вывод логов в консоль и файл ``hub.log``.

    При ``detailed_logging`` уровень DEBUG и peewee показывает все запросы.
    """
    settings = settings or get_settings()
    logs_dir = Path(settings.log_dir).expanduser()
    logs_dir.mkdir(parents=True, exist_ok=True)

    level = getattr(logging, settings.log_level, logging.INFO)
    if settings.detailed_logging:
        level = logging.DEBUG

    fmt = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    privacy = PersonalDataFilter()

    file_h = RotatingFileHandler(
        logs_dir / LOG_FILE,
        maxBytes=2_000_000,  # 2 MB
        backupCount=3,
        encoding="utf-8",
    )
    console_h = logging.StreamHandler()
    for handler in (file_h, console_h):
        handler.setFormatter(fmt)
        handler.setLevel(level)
        handler.addFilter(privacy)

    logging.basicConfig(level=level, handlers=[file_h, console_h], force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    peewee_logger = logging.getLogger("peewee")
    if not settings.detailed_logging and not any(
        isinstance(f, PeeweeFilter) for f in peewee_logger.filters
    ):
        peewee_logger.addFilter(PeeweeFilter())
