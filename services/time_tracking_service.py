"""Учёт рабочего времени: записи, секундомер и статистика."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP

from peewee import ModelSelect

from config import get_settings as get_app_settings
from database.db import db
from database.models import ActiveTimer, Project, Task, TimeEntry
from services import preference_service, project_service, task_service
from services.errors import FormValidationError, TimeEntryNotFoundError
from services.validators import (
    ensure_valid,
    parse_amount,
    parse_date,
    parse_datetime,
    validate_time_entry_form,
)
from utils.money import round_money, to_decimal
from utils.time_utils import day_key, utcnow

logger = logging.getLogger(__name__)

SETTINGS_KEY = "time_tracking_settings"

DEFAULT_SETTINGS = {
    "default_billable": True,
    "reminder_enabled": True,
    "reminder_interval": 30,
    "auto_stop_enabled": False,
    "auto_stop_duration": 8,
    "rounding_enabled": False,
    "rounding_interval": 15,
}

TIME_ENTRY_ALLOWED_FIELDS = {
    "task_id",
    "project_id",
    "user_id",
    "description",
    "start_time",
    "end_time",
    "duration",
    "tags",
    "billable",
    "hourly_rate",
}

# Задачи указаны по названию, проект берётся из задачи.
DEFAULT_TIME_ENTRIES = [
    {
        "task_title": "Set up project repository",
        "description": "Setting up project repository and initial configuration",
        "start_time": datetime(2024, 1, 15, 9, 0),
        "end_time": datetime(2024, 1, 15, 12, 30),
        "duration": 210,
        "tags": ["setup", "development"],
        "billable": True,
        "hourly_rate": Decimal("80"),
    },
    {
        "task_title": "Design database schema",
        "description": "Designing UI wireframes and mockups",
        "start_time": datetime(2024, 1, 16, 10, 0),
        "end_time": datetime(2024, 1, 16, 15, 45),
        "duration": 345,
        "tags": ["design", "ui"],
        "billable": True,
        "hourly_rate": Decimal("80"),
    },
    {
        "task_title": "Implement user authentication",
        "description": "Code review and testing",
        "start_time": datetime(2024, 1, 17, 14, 0),
        "end_time": datetime(2024, 1, 17, 16, 30),
        "duration": 150,
        "tags": ["review", "testing"],
        "billable": True,
        "hourly_rate": Decimal("80"),
    },
    {
        "task_title": "Create product catalog API",
        "description": "Team meeting and planning session",
        "start_time": datetime(2024, 1, 18, 9, 30),
        "end_time": datetime(2024, 1, 18, 11, 0),
        "duration": 90,
        "tags": ["meeting", "planning"],
        "billable": False,
        "hourly_rate": Decimal("0"),
    },
]


def _hours(minutes: int) -> float:
    return round((minutes or 0) / 60, 2)


def entry_revenue(entry: TimeEntry) -> Decimal:
    """Выручка записи: часы × ставка, только для оплачиваемых записей."""
    if not entry.billable:
        return Decimal("0")
    return to_decimal(entry.duration) / 60 * to_decimal(entry.hourly_rate)


# ──────────────────────────── Настройки ─────────────────────────────


def get_settings() -> dict:
    return preference_service.merged_settings(SETTINGS_KEY, DEFAULT_SETTINGS)


def update_settings(**updates) -> dict:
    settings = preference_service.merged_settings(SETTINGS_KEY, DEFAULT_SETTINGS, updates)
    logger.info("⚙️ Настройки учёта времени обновлены: %s", updates)
    return settings


def apply_rounding(minutes: int, settings: dict | None = None) -> int:
    """Округлить длительность до ближайшего кратного интервала.

    Ненулевая длительность не округляется меньше одного интервала.
    """
    settings = settings or get_settings()
    interval = int(settings.get("rounding_interval") or 0)
    if not settings.get("rounding_enabled") or interval <= 0 or minutes <= 0:
        return minutes
    steps = (Decimal(minutes) / interval).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return max(int(steps), 1) * interval


# ──────────────────────────── Инициализация ─────────────────────────────


def initialize_time_entries() -> int:
    """Создать записи-примеры и сохранить настройки по умолчанию."""
    if preference_service.get_preference(SETTINGS_KEY) is None:
        preference_service.set_preference(SETTINGS_KEY, dict(DEFAULT_SETTINGS))

    if TimeEntry.select().exists():
        return 0
    user_id = get_app_settings().current_user_id
    created = 0
    task_ids: set[int] = set()
    with db.atomic():
        for item in DEFAULT_TIME_ENTRIES:
            data = dict(item)
            task = Task.get_or_none(Task.title == data.pop("task_title"))
            if task is None:
                continue
            TimeEntry.create(task=task, project=task.project_id, user_id=user_id, **data)
            task_ids.add(task.id)
            created += 1
        for task_id in task_ids:
            update_task_actual_hours(task_id)
    logger.info("🌱 Добавлено демонстрационных записей времени: %s", created)
    return created


# ──────────────────────────── Получение ─────────────────────────────


def get_all_time_entries() -> ModelSelect:
    return TimeEntry.select().order_by(TimeEntry.start_time.desc(), TimeEntry.id.desc())


def get_time_entry_by_id(entry_id: int) -> TimeEntry | None:
    return TimeEntry.get_or_none(TimeEntry.id == entry_id)


def get_time_entries_by_task(task_id: int) -> ModelSelect:
    return get_all_time_entries().where(TimeEntry.task == task_id)


def get_time_entries_by_project(project_id: int) -> ModelSelect:
    return get_all_time_entries().where(TimeEntry.project == project_id)


def _range_bounds(start, end) -> tuple[datetime | None, datetime | None]:
    """Границы периода; дата окончания включает весь день."""
    if isinstance(end, str) and len(end.strip()) == 10:
        end = parse_date(end)
    if isinstance(end, date) and not isinstance(end, datetime):
        end = datetime.combine(end, time.max)
    return parse_datetime(start), parse_datetime(end)


def filter_by_date_range(query: ModelSelect, start=None, end=None) -> ModelSelect:
    start_dt, end_dt = _range_bounds(start, end)
    if start_dt is not None:
        query = query.where(TimeEntry.start_time >= start_dt)
    if end_dt is not None:
        query = query.where(TimeEntry.start_time <= end_dt)
    return query


def get_time_entries_by_date_range(start, end) -> ModelSelect:
    """Записи, начатые в периоде ``[start, end]`` включительно."""
    return filter_by_date_range(get_all_time_entries(), start, end)


# ──────────────────────────── Секундомер ─────────────────────────────


def get_active_timer() -> ActiveTimer | None:
    return ActiveTimer.select().order_by(ActiveTimer.id).first()


def get_elapsed_seconds(now: datetime | None = None) -> int:
    """Сколько секунд идёт активный таймер (0, если таймера нет)."""
    timer = get_active_timer()
    if timer is None:
        return 0
    now = now or utcnow()
    return max(int((now - timer.start_time).total_seconds()), 0)


def start_timer(
    task_id: int,
    project_id: int,
    description: str | None = None,
    tags: list[str] | None = None,
    billable: bool | None = None,
    now: datetime | None = None,
) -> ActiveTimer:
    """Запустить секундомер; ранее запущенный таймер сначала останавливается."""
    if task_service.get_task_by_id(task_id) is None:
        raise FormValidationError({"task_id": "Задача не найдена"})
    if project_service.get_project_by_id(project_id) is None:
        raise FormValidationError({"project_id": "Проект не найден"})

    stop_timer(now=now)
    if billable is None:
        billable = bool(get_settings()["default_billable"])

    timer = ActiveTimer.create(
        task=task_id,
        project=project_id,
        start_time=now or utcnow(),
        description=description,
        tags=list(tags or []),
        billable=billable,
    )
    logger.info("⏱ Таймер запущен для задачи #%s", task_id)
    return timer


def stop_timer(description: str | None = None, now: datetime | None = None) -> TimeEntry | None:
    """Остановить таймер и сохранить запись времени.

    Длительность считается в целых минутах с округлением. Ставка берётся
    из проекта для оплачиваемой записи и равна нулю для неоплачиваемой.
    """
    timer = get_active_timer()
    if timer is None:
        return None

    end = now or utcnow()
    seconds = max((end - timer.start_time).total_seconds(), 0)
    minutes = int(
        (Decimal(str(seconds)) / 60).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    )
    minutes = apply_rounding(minutes)

    project = Project.get_or_none(Project.id == timer.project_id)
    rate = to_decimal(project.hourly_rate) if project and project.hourly_rate else Decimal("0")

    with db.atomic():
        entry = TimeEntry.create(
            task=timer.task_id,
            project=timer.project_id,
            user_id=get_app_settings().current_user_id,
            description=description or timer.description or "",
            start_time=timer.start_time,
            end_time=end,
            duration=minutes,
            is_running=False,
            tags=timer.tags or [],
            billable=timer.billable,
            hourly_rate=rate if timer.billable else Decimal("0"),
        )
        timer.delete_instance()
        update_task_actual_hours(entry.task_id)

    logger.info("⏹ Таймер остановлен: запись #%s, %s мин", entry.id, minutes)
    return entry


def check_auto_stop(now: datetime | None = None) -> TimeEntry | None:
    """Остановить таймер, если он идёт дольше ``auto_stop_duration`` часов.

    Запись закрывается в момент достижения предела.
    """
    settings = get_settings()
    timer = get_active_timer()
    if timer is None or not settings.get("auto_stop_enabled"):
        return None
    limit = timedelta(hours=float(settings.get("auto_stop_duration") or 0))
    now = now or utcnow()
    if limit.total_seconds() <= 0 or now - timer.start_time < limit:
        return None
    logger.info("⏹ Автоостановка таймера после %s ч", settings["auto_stop_duration"])
    return stop_timer(now=timer.start_time + limit)


# ──────────────────────────── CRUD ─────────────────────────────


def _prepare(data: dict) -> dict:
    clean = {k: v for k, v in data.items() if k in TIME_ENTRY_ALLOWED_FIELDS}
    for key in ("start_time", "end_time"):
        if key in clean:
            clean[key] = parse_datetime(clean[key])
    if "duration" in clean:
        amount = parse_amount(clean.pop("duration"))
        if amount is not None:
            clean["duration"] = int(amount)
    if "hourly_rate" in clean:
        clean["hourly_rate"] = parse_amount(clean["hourly_rate"]) or Decimal("0")
    if "tags" in clean:
        clean["tags"] = list(clean["tags"] or [])
    if "task_id" in clean:
        clean["task"] = clean.pop("task_id")
    if "project_id" in clean:
        clean["project"] = clean.pop("project_id")
    return clean


def _duration_from_bounds(start: datetime, end: datetime | None) -> int:
    if end is None:
        return 0
    return int(round((end - start).total_seconds() / 60))


def update_task_actual_hours(task_id: int) -> float:
    """Пересчитать фактические часы задачи по её записям времени."""
    minutes = sum(e.duration or 0 for e in TimeEntry.select().where(TimeEntry.task == task_id))
    hours = _hours(minutes)
    Task.update(actual_hours=hours, updated_at=utcnow()).where(Task.id == task_id).execute()
    return hours


def add_time_entry(**data) -> TimeEntry:
    """Добавить запись времени вручную."""
    ensure_valid(validate_time_entry_form(data))
    clean = _prepare(data)
    if task_service.get_task_by_id(clean["task"]) is None:
        raise FormValidationError({"task_id": "Задача не найдена"})
    if project_service.get_project_by_id(clean["project"]) is None:
        raise FormValidationError({"project_id": "Проект не найден"})

    if clean.get("duration") is None:
        clean["duration"] = _duration_from_bounds(clean["start_time"], clean.get("end_time"))
    clean.setdefault("user_id", get_app_settings().current_user_id)
    clean.setdefault("billable", bool(get_settings()["default_billable"]))
    if "hourly_rate" not in clean:
        project = Project.get_or_none(Project.id == clean["project"])
        rate = to_decimal(project.hourly_rate) if project and project.hourly_rate else Decimal("0")
        clean["hourly_rate"] = rate if clean["billable"] else Decimal("0")

    with db.atomic():
        entry = TimeEntry.create(**clean)
        update_task_actual_hours(entry.task_id)
    logger.info("✅ Запись времени #%s добавлена (%s мин)", entry.id, entry.duration)
    return entry


def update_time_entry(entry_id: int, **patch) -> TimeEntry:
    entry = get_time_entry_by_id(entry_id)
    if entry is None:
        logger.warning("❗ Запись времени id=%s не найдена для обновления", entry_id)
        raise TimeEntryNotFoundError(entry_id)

    merged = {
        "task_id": entry.task_id,
        "project_id": entry.project_id,
        "start_time": entry.start_time,
        "end_time": entry.end_time,
        "duration": entry.duration,
    }
    merged.update({k: v for k, v in patch.items() if k in TIME_ENTRY_ALLOWED_FIELDS})
    ensure_valid(validate_time_entry_form(merged))

    updates = _prepare(patch)
    old_task_id = entry.task_id
    with db.atomic():
        for key, value in updates.items():
            setattr(entry, key, value)
        if "duration" not in updates and ("start_time" in updates or "end_time" in updates):
            entry.duration = _duration_from_bounds(entry.start_time, entry.end_time)
        entry.save()
        update_task_actual_hours(entry.task_id)
        if entry.task_id != old_task_id:
            update_task_actual_hours(old_task_id)
    logger.info("✏️ Запись времени #%s обновлена", entry.id)
    return entry


def delete_time_entry(entry_id: int) -> bool:
    entry = get_time_entry_by_id(entry_id)
    if entry is None:
        logger.warning("❗ Запись времени id=%s не найдена для удаления", entry_id)
        return False
    with db.atomic():
        task_id = entry.task_id
        entry.delete_instance()
        update_task_actual_hours(task_id)
    logger.info("🗑 Запись времени #%s удалена", entry_id)
    return True


# ──────────────────────────── Статистика ─────────────────────────────


def _project_breakdown(entries: list[TimeEntry]) -> list[dict]:
    grouped: dict[int, list[TimeEntry]] = defaultdict(list)
    for entry in entries:
        grouped[entry.project_id].append(entry)

    projects = {p.id: p for p in Project.select().where(Project.id.in_(list(grouped)))}
    breakdown = []
    for project_id, items in grouped.items():
        project = projects.get(project_id)
        total = sum(e.duration for e in items) / 60
        billable = sum(e.duration for e in items if e.billable) / 60
        estimated = float(project.estimated_hours or 0) if project else 0.0
        completion = min(total / estimated * 100, 100) if estimated > 0 else 0
        breakdown.append(
            {
                "project_id": project_id,
                "project_title": project.title if project else "Unknown Project",
                "total_hours": round(total, 2),
                "billable_hours": round(billable, 2),
                "estimated_hours": estimated,
                "total_revenue": round_money(sum(entry_revenue(e) for e in items)),
                "completion_percentage": round(completion, 2),
            }
        )
    return sorted(breakdown, key=lambda row: row["total_hours"], reverse=True)


def _task_breakdown(entries: list[TimeEntry]) -> list[dict]:
    grouped: dict[int, list[TimeEntry]] = defaultdict(list)
    for entry in entries:
        grouped[entry.task_id].append(entry)

    tasks = {t.id: t for t in Task.select().where(Task.id.in_(list(grouped)))}
    breakdown = []
    for task_id, items in grouped.items():
        task = tasks.get(task_id)
        total = sum(e.duration for e in items) / 60
        estimated = float(task.estimated_hours or 0) if task else 0.0
        completion = min(total / estimated * 100, 100) if estimated > 0 else 0
        breakdown.append(
            {
                "task_id": task_id,
                "task_title": task.title if task else "Unknown Task",
                "total_hours": round(total, 2),
                "estimated_hours": estimated,
                "completion_percentage": round(completion, 2),
                "is_overtime": estimated > 0 and total > estimated,
            }
        )
    return sorted(breakdown, key=lambda row: row["total_hours"], reverse=True)


def _daily_breakdown(entries: list[TimeEntry]) -> list[dict]:
    grouped: dict[str, list[TimeEntry]] = defaultdict(list)
    for entry in entries:
        grouped[day_key(entry.start_time)].append(entry)

    breakdown = []
    for day, items in grouped.items():
        breakdown.append(
            {
                "date": day,
                "total_hours": _hours(sum(e.duration for e in items)),
                "billable_hours": _hours(sum(e.duration for e in items if e.billable)),
                "entries": len(items),
                "revenue": round_money(sum(entry_revenue(e) for e in items)),
            }
        )
    return sorted(breakdown, key=lambda row: row["date"], reverse=True)


def get_time_tracking_stats(project_id: int | None = None, start=None, end=None) -> dict:
    """Сводка по записям времени с разбивкой по проектам, задачам и дням."""
    query = TimeEntry.select()
    if project_id:
        query = query.where(TimeEntry.project == project_id)
    if start is not None and end is not None:
        query = filter_by_date_range(query, start, end)
    entries = list(query)

    total_minutes = sum(e.duration for e in entries)
    billable_minutes = sum(e.duration for e in entries if e.billable)
    revenue = sum((entry_revenue(e) for e in entries), Decimal("0"))
    billable_hours = billable_minutes / 60
    average_rate = revenue / Decimal(str(billable_hours)) if billable_hours > 0 else Decimal("0")

    return {
        "total_hours": _hours(total_minutes),
        "billable_hours": _hours(billable_minutes),
        "non_billable_hours": _hours(total_minutes - billable_minutes),
        "total_revenue": round_money(revenue),
        "average_hourly_rate": round_money(average_rate),
        "project_breakdown": _project_breakdown(entries),
        "task_breakdown": _task_breakdown(entries),
        "daily_breakdown": _daily_breakdown(entries),
    }
