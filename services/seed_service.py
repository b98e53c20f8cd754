"""Заполнение пустой базы демонстрационными данными."""

import logging

from database.db import db
from services import client_service, project_service, task_service, time_tracking_service

logger = logging.getLogger(__name__)


def seed_demo_data() -> dict[str, int]:
    """Создать клиентов, проекты, задачи и записи времени, если таблицы пусты.

    Порядок важен: проекты ссылаются на клиентов, задачи на проекты.
    """
    with db.atomic():
        created = {
            "clients": client_service.initialize_clients(),
            "projects": project_service.initialize_projects(),
            "tasks": task_service.initialize_tasks(),
            "time_entries": time_tracking_service.initialize_time_entries(),
        }
    if any(created.values()):
        logger.info("🌱 Демонстрационные данные: %s", created)
    return created
