import logging

import uvicorn

from config import Settings, get_settings
from database.init import create_tables, init_from_env
from services.seed_service import seed_demo_data
from utils.logging_config import setup_logging

__all__ = ["main"]


def main(settings: Settings | None = None) -> int:
    """Запускает HTTP API."""

    settings = settings or get_settings()
    if not settings.database_url:
        raise RuntimeError("DATABASE_URL не задан в .env")

    init_from_env(settings.database_url)
    setup_logging(settings)
    logger = logging.getLogger(__name__)

    # ───── Подготовка базы ─────
    create_tables()
    if settings.seed_demo_data:
        seed_demo_data()

    # ───── HTTP ─────
    from app.main import app

    logger.info("🚀 API запускается на %s:%s", settings.api_host, settings.api_port)
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_config=None)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
