"""Хранение пользовательских настроек в таблице ``Preference``."""

import logging
from typing import Any

from database.models import Preference

logger = logging.getLogger(__name__)


def get_preference(key: str, default: Any = None) -> Any:
    row = Preference.get_or_none(Preference.key == key)
    if row is None or row.value is None:
        return default
    return row.value


def set_preference(key: str, value: Any) -> Any:
    """Сохранить значение (JSON-совместимое) под ключом ``key``."""
    row, created = Preference.get_or_create(key=key, defaults={"value": value})
    if not created:
        row.value = value
        row.save()
    logger.debug("⚙️ Настройка %s сохранена", key)
    return value


def merged_settings(key: str, defaults: dict, updates: dict | None = None) -> dict:
    """Настройки поверх значений по умолчанию; ``updates`` сохраняются."""
    current = dict(defaults)
    current.update(get_preference(key, {}) or {})
    if updates:
        unknown = set(updates) - set(defaults)
        if unknown:
            raise ValueError(f"Неизвестные настройки: {', '.join(sorted(unknown))}")
        current.update(updates)
        set_preference(key, current)
    return current
