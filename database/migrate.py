"""Создать таблицы (и при необходимости демо-данные) без запуска API."""
import argparse
import logging

from config import get_settings
from utils.logging_config import setup_logging

from .init import create_tables, init_from_env

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--seed", action="store_true", help="заполнить пустую базу примерами")
    args = parser.parse_args(argv)

    settings = get_settings()
    init_from_env(settings.database_url or None)
    setup_logging(settings)
    create_tables()
    logger.info("✅ Таблицы созданы")
    if args.seed:
        from services.seed_service import seed_demo_data

        seed_demo_data()


if __name__ == "__main__":
    main()
