"""Экспорт списков в CSV и аналитики в Excel."""

import csv
import datetime
import logging
from collections import deque
from decimal import Decimal
from pathlib import Path

import pandas as pd
from peewee import Field, ForeignKeyField

from database.models import Client, Project, Task, TimeEntry

logger = logging.getLogger(__name__)

HEADERS = {
    "id": "ID",
    "name": "Имя",
    "company": "Компания",
    "email": "Email",
    "phone": "Телефон",
    "status": "Статус",
    "priority": "Приоритет",
    "project_count": "Проектов",
    "title": "Название",
    "client_name": "Клиент",
    "project": "Проект",
    "task": "Задача",
    "budget": "Бюджет",
    "total_spent": "Потрачено",
    "hourly_rate": "Ставка",
    "deadline": "Дедлайн",
    "due_date": "Срок",
    "estimated_hours": "План, ч",
    "actual_hours": "Факт, ч",
    "description": "Описание",
    "start_time": "Начало",
    "end_time": "Окончание",
    "duration": "Минут",
    "billable": "Оплачиваемо",
    "created_at": "Создано",
}

EXPORT_FIELDS = {
    "clients": (
        Client,
        [Client.id, Client.name, Client.company, Client.email, Client.phone,
         Client.status, Client.project_count, Client.created_at],
    ),
    "projects": (
        Project,
        [Project.id, Project.title, Project.client_name, Project.status,
         Project.priority, Project.budget, Project.total_spent, Project.deadline],
    ),
    "tasks": (
        Task,
        [Task.id, Task.title, "project__title", Task.status, Task.priority,
         Task.estimated_hours, Task.actual_hours, Task.due_date],
    ),
    "time_entries": (
        TimeEntry,
        [TimeEntry.id, "task__title", "project__title", TimeEntry.description,
         TimeEntry.start_time, TimeEntry.duration, TimeEntry.billable,
         TimeEntry.hourly_rate],
    ),
}

# Листы Excel: раздел аналитики → путь к таблице внутри словаря
ANALYTICS_SHEETS = {
    "Выручка по месяцам": ("revenue", "monthly"),
    "Выручка по проектам": ("revenue", "by_project"),
    "Выручка по клиентам": ("revenue", "by_client"),
    "Команда": ("productivity", "team_efficiency"),
    "Прибыльность": ("projects", "profitability_analysis"),
    "Часы по дням": ("time_tracking", "daily_hours"),
    "Распределение часов": ("time_tracking", "project_time_allocation"),
    "Сезонность": ("trends", "seasonal_patterns"),
}


def _model_path(start, target) -> list[str] | None:
    """Цепочка внешних ключей от модели ``start`` до ``target``."""
    if start == target:
        return []
    queue = deque([(start, [])])
    visited: set = {start}
    while queue:
        model, path = queue.popleft()
        for f in model._meta.sorted_fields:
            if isinstance(f, ForeignKeyField):
                rel = f.rel_model
                if rel in visited:
                    continue
                new_path = path + [f.name]
                if rel == target:
                    return new_path
                queue.append((rel, new_path))
                visited.add(rel)
    return None


def _split_path(field: Field | str | object, obj=None) -> list[str]:
    if isinstance(field, str):
        return field.split("__")
    if isinstance(field, Field) and obj is not None:
        path = _model_path(obj.__class__, field.model) or []
        return path + [field.name]
    name = getattr(field, "name", str(field))
    return [name]


def _header_from_field(field: Field | str | object) -> str:
    parts = _split_path(field)
    if len(parts) > 1 and parts[-1] == "title":
        return HEADERS.get(parts[0], parts[0].capitalize())
    return HEADERS.get(parts[-1], parts[-1])


def _resolve(obj, field):
    if isinstance(obj, dict):
        return obj.get(_split_path(field)[-1], "")
    rel = obj
    for step in _split_path(field, obj):
        rel = getattr(rel, step, None)
        if rel is None:
            return ""
    return rel


def _format_cell(value):
    if isinstance(value, datetime.datetime):
        return value.strftime("%d.%m.%Y %H:%M")
    if isinstance(value, datetime.date):
        return value.strftime("%d.%m.%Y")
    if isinstance(value, bool):
        return "да" if value else "нет"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return value


def export_objects_to_csv(path, objects, fields, headers=None):
    """Выгрузить ORM-объекты (или словари) в CSV с разделителем ``;``."""
    objects = list(objects)
    if headers is None:
        headers = [_header_from_field(f) for f in fields]
    logger.debug("Заголовки CSV: %s", headers)
    logger.debug("Количество объектов для экспорта: %d", len(objects))
    with open(path, "w", newline="", encoding="utf-8-sig") as f:
        writer = csv.writer(f, delimiter=";")
        writer.writerow(headers)
        for obj in objects:
            writer.writerow([_format_cell(_resolve(obj, field)) for field in fields])
    logger.info("📤 Выгружено строк в CSV: %d → %s", len(objects), path)
    return len(objects)


def export_entity_csv(entity: str, path, objects=None) -> int:
    """Выгрузить клиентов, проекты, задачи или записи времени."""
    if entity not in EXPORT_FIELDS:
        raise ValueError(f"Неизвестный тип выгрузки: {entity}")
    model, fields = EXPORT_FIELDS[entity]
    if objects is None:
        query = model.active() if hasattr(model, "active") else model.select()
        objects = query.order_by(model.id)
    return export_objects_to_csv(path, objects, fields)


def _frame(rows: list[dict]) -> pd.DataFrame:
    df = pd.DataFrame(rows)
    for column in df.columns:
        if df[column].map(lambda v: isinstance(v, Decimal)).any():
            df[column] = df[column].astype(float)
    return df


def export_analytics_excel(analytics: dict, path) -> str:
    """Записать таблицы аналитики на отдельные листы книги Excel."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    overview = pd.DataFrame(
        [{"Показатель": key, "Значение": value} for key, value in analytics["overview"].items()]
    )
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        overview.to_excel(writer, index=False, sheet_name="Обзор")
        for sheet, (section, key) in ANALYTICS_SHEETS.items():
            rows = analytics.get(section, {}).get(key) or []
            _frame(rows).to_excel(writer, index=False, sheet_name=sheet)
    logger.info("📊 Аналитика выгружена в %s", path)
    return str(path)
