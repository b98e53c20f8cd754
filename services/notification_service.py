"""Уведомления: хранение, настройки, расписание и доставка."""

from __future__ import annotations

import copy
import logging
from datetime import date, datetime, timedelta

from dateutil.relativedelta import relativedelta
from peewee import ModelSelect, fn

from config import get_settings as get_app_settings
from database.db import db
from database.models import Notification, NotificationPriority, NotificationType
from services import preference_service
from services.errors import FormValidationError
from services.validators import parse_datetime
from utils.time_utils import DATE_FORMAT, as_date, utcnow

logger = logging.getLogger(__name__)

SETTINGS_KEY = "notification_settings"

_CATEGORY_DEFAULT = {"enabled": True, "push_enabled": True, "sound_enabled": True}

DEFAULT_SETTINGS = {
    "enabled": True,
    "push_enabled": True,
    "sound_enabled": True,
    "vibration_enabled": True,
    "quiet_hours": {"enabled": False, "start_time": "22:00", "end_time": "08:00"},
    "categories": {
        **{t.value: dict(_CATEGORY_DEFAULT) for t in NotificationType},
        NotificationType.SYSTEM_UPDATE.value: {**_CATEGORY_DEFAULT, "sound_enabled": False},
        NotificationType.TIME_TRACKING.value: {**_CATEGORY_DEFAULT, "push_enabled": False},
    },
}

RECURRING_FREQUENCIES = ("daily", "weekly", "monthly")


# ───────────────────────── настройки ─────────────────────────


def _deep_merge(base: dict, updates: dict) -> dict:
    result = copy.deepcopy(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def get_settings() -> dict:
    stored = preference_service.get_preference(SETTINGS_KEY, {}) or {}
    return _deep_merge(DEFAULT_SETTINGS, stored)


def update_settings(**updates) -> dict:
    """Обновить настройки; вложенные разделы сливаются, а не заменяются."""
    unknown = set(updates) - set(DEFAULT_SETTINGS)
    if unknown:
        raise ValueError(f"Неизвестные настройки: {', '.join(sorted(unknown))}")
    categories = updates.get("categories") or {}
    bad = set(categories) - {t.value for t in NotificationType}
    if bad:
        raise ValueError(f"Неизвестные категории: {', '.join(sorted(bad))}")
    settings = _deep_merge(get_settings(), updates)
    preference_service.set_preference(SETTINGS_KEY, settings)
    logger.info("⚙️ Настройки уведомлений обновлены")
    return settings


def is_quiet_hours(quiet_hours: dict, now: datetime | None = None) -> bool:
    """Попадает ли ``now`` в тихие часы (окно может переходить через полночь)."""
    if not quiet_hours.get("enabled"):
        return False
    current = (now or utcnow()).strftime("%H:%M")
    start = quiet_hours.get("start_time", "22:00")
    end = quiet_hours.get("end_time", "08:00")
    if start > end:
        return current >= start or current <= end
    return start <= current <= end


def should_show(notification_type: str, settings: dict | None = None) -> bool:
    settings = settings or get_settings()
    if not settings.get("enabled"):
        return False
    return bool(settings["categories"].get(notification_type, {}).get("enabled"))


# ───────────────────────── доставка ─────────────────────────


def present_notification(notification: Notification, sound: bool) -> None:
    """Показать уведомление пользователю.

    Показ выполняет платформа; здесь уведомление только журналируется.
    """
    logger.info(
        "🔔 [%s] %s: %s%s",
        notification.priority,
        notification.title,
        notification.body,
        " 🔊" if sound else "",
    )


def _deliver(notification: Notification, settings: dict, now: datetime) -> bool:
    if not should_show(notification.type, settings):
        return False
    if is_quiet_hours(settings["quiet_hours"], now):
        return False
    category = settings["categories"].get(notification.type, {})
    sound = bool(settings.get("sound_enabled") and category.get("sound_enabled"))
    present_notification(notification, sound)
    notification.delivered_at = utcnow()
    notification.save(only=[Notification.delivered_at])
    return True


def deliver_due_notifications(now: datetime | None = None) -> int:
    """Доставить уведомления, время которых наступило.

    Отложенные из-за тихих часов немедленные уведомления тоже доставляются.
    """
    settings = get_settings()
    now = now or utcnow()
    pending = Notification.select().where(
        Notification.delivered_at.is_null(True)
        & (Notification.scheduled_for.is_null(True) | (Notification.scheduled_for <= now))
    ).order_by(Notification.scheduled_for, Notification.id)
    delivered = sum(1 for item in list(pending) if _deliver(item, settings, now))
    if delivered:
        logger.info("📬 Доставлено уведомлений: %s", delivered)
    return delivered


# ───────────────────────── создание ─────────────────────────


def _next_occurrence(current: datetime, frequency: str, interval: int) -> datetime:
    if frequency == "daily":
        return current + timedelta(days=interval)
    if frequency == "weekly":
        return current + timedelta(weeks=interval)
    return current + relativedelta(months=interval)


def _validate_recurring(recurring: dict | None) -> dict | None:
    if not recurring:
        return None
    frequency = recurring.get("frequency")
    if frequency not in RECURRING_FREQUENCIES:
        raise FormValidationError({"recurring": "Неизвестная периодичность"})
    interval = int(recurring.get("interval") or 1)
    if interval < 1:
        raise FormValidationError({"recurring": "Интервал должен быть положительным"})
    end_date = parse_datetime(recurring.get("end_date"))
    return {
        "frequency": frequency,
        "interval": interval,
        "end_date": end_date.isoformat() if end_date else None,
    }


def schedule_recurring(notification: Notification) -> list[Notification]:
    """Создать будущие повторы запланированного уведомления.

    Повторы идут до ``end_date`` включительно (по умолчанию горизонт из
    настроек приложения), но не больше ``max_recurrences``.
    """
    recurring = notification.recurring
    if not recurring or notification.scheduled_for is None:
        return []

    app_settings = get_app_settings()
    frequency = recurring["frequency"]
    interval = int(recurring.get("interval") or 1)
    end = parse_datetime(recurring.get("end_date")) or (
        notification.scheduled_for + timedelta(days=app_settings.recurring_horizon_days)
    )

    created: list[Notification] = []
    step = 1
    occurrence = _next_occurrence(notification.scheduled_for, frequency, interval)
    with db.atomic():
        while occurrence <= end and len(created) < app_settings.max_recurrences:
            created.append(
                Notification.create(
                    title=notification.title,
                    body=notification.body,
                    type=notification.type,
                    priority=notification.priority,
                    data={**(notification.data or {}), "parent_id": notification.id},
                    entity_id=notification.entity_id,
                    entity_type=notification.entity_type,
                    scheduled_for=occurrence,
                )
            )
            step += 1
            occurrence = _next_occurrence(
                notification.scheduled_for, frequency, interval * step
            )
    logger.info("🔁 Запланировано повторов уведомления #%s: %s", notification.id, len(created))
    return created


def create_notification(
    title: str,
    body: str,
    type: str,
    priority: str = NotificationPriority.NORMAL.value,
    data: dict | None = None,
    entity_id: int | None = None,
    entity_type: str | None = None,
    scheduled_for: datetime | str | None = None,
    recurring: dict | None = None,
) -> Notification:
    """Сохранить непрочитанное уведомление и доставить или запланировать его."""
    errors = {}
    if not (title or "").strip():
        errors["title"] = "Заголовок обязателен"
    if type not in {t.value for t in NotificationType}:
        errors["type"] = "Неизвестный тип уведомления"
    if priority not in {p.value for p in NotificationPriority}:
        errors["priority"] = "Неизвестный приоритет"
    if errors:
        raise FormValidationError(errors)

    notification = Notification.create(
        title=title.strip(),
        body=body or "",
        type=type,
        priority=priority,
        data=data or {},
        entity_id=entity_id,
        entity_type=entity_type,
        scheduled_for=parse_datetime(scheduled_for),
        recurring=_validate_recurring(recurring),
    )
    logger.info("📝 Уведомление #%s создано: %s", notification.id, notification.title)

    if notification.scheduled_for is None:
        _deliver(notification, get_settings(), utcnow())
    elif notification.recurring:
        schedule_recurring(notification)
    return notification


# ───────────────────────── чтение и удаление ─────────────────────────


def get_notifications(
    type: str | None = None,
    read: bool | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> ModelSelect:
    """Уведомления от новых к старым с необязательными фильтрами."""
    query = Notification.select().order_by(
        Notification.created_at.desc(), Notification.id.desc()
    )
    if type:
        query = query.where(Notification.type == type)
    if read is not None:
        query = query.where(Notification.read == read)
    if limit:
        query = query.limit(limit).offset(offset or 0)
    return query


def get_notification_by_id(notification_id: int) -> Notification | None:
    return Notification.get_or_none(Notification.id == notification_id)


def mark_as_read(notification_id: int) -> bool:
    updated = (
        Notification.update(read=True)
        .where(Notification.id == notification_id)
        .execute()
    )
    return bool(updated)


def mark_all_as_read(type: str | None = None) -> int:
    query = Notification.update(read=True).where(Notification.read == False)
    if type:
        query = query.where(Notification.type == type)
    return query.execute()


def delete_notification(notification_id: int) -> bool:
    deleted = Notification.delete().where(Notification.id == notification_id).execute()
    if not deleted:
        logger.warning("❗ Уведомление id=%s не найдено для удаления", notification_id)
    return bool(deleted)


def clear_notifications(type: str | None = None) -> int:
    query = Notification.delete()
    if type:
        query = query.where(Notification.type == type)
    deleted = query.execute()
    logger.info("🧹 Удалено уведомлений: %s", deleted)
    return deleted


# ───────────────────────── статистика ─────────────────────────


def get_stats(now: datetime | None = None) -> dict:
    now = now or utcnow()
    by_type = {t.value: 0 for t in NotificationType}
    by_priority = {p.value: 0 for p in NotificationPriority}
    for value, cnt in (
        Notification.select(Notification.type, fn.COUNT(Notification.id))
        .group_by(Notification.type)
        .tuples()
    ):
        by_type[value] = cnt
    for value, cnt in (
        Notification.select(Notification.priority, fn.COUNT(Notification.id))
        .group_by(Notification.priority)
        .tuples()
    ):
        by_priority[value] = cnt

    day_start = datetime.combine(now.date(), datetime.min.time())
    return {
        "total": Notification.select().count(),
        "unread": Notification.select().where(Notification.read == False).count(),
        "by_type": by_type,
        "by_priority": by_priority,
        "today_count": Notification.select()
        .where(
            (Notification.created_at >= day_start)
            & (Notification.created_at < day_start + timedelta(days=1))
        )
        .count(),
        "week_count": Notification.select()
        .where(Notification.created_at >= now - timedelta(days=7))
        .count(),
    }


# ───────────────────────── готовые уведомления ─────────────────────────


def format_due_date(due: date | datetime, today: date | None = None) -> str:
    """``сегодня``, ``завтра``, ``просрочено``, ``через N дн.`` или дата."""
    today = today or date.today()
    days = (as_date(due) - today).days
    if days == 0:
        return "сегодня"
    if days == 1:
        return "завтра"
    if days < 0:
        return "просрочено"
    if days <= 7:
        return f"через {days} дн."
    return as_date(due).strftime(DATE_FORMAT)


def create_task_due_notification(
    task_title: str, due: date | datetime, task_id: int, today: date | None = None
) -> Notification:
    return create_notification(
        title="Скоро срок задачи",
        body=f"«{task_title}»: срок {format_due_date(due, today)}",
        type=NotificationType.TASK_DUE.value,
        priority=NotificationPriority.HIGH.value,
        entity_id=task_id,
        entity_type="task",
        data={"task_id": task_id, "due_date": due.isoformat()},
    )


def create_task_assigned_notification(
    task_title: str, assigned_by: str, task_id: int
) -> Notification:
    return create_notification(
        title="Новая задача",
        body=f"Вам назначена задача «{task_title}» ({assigned_by})",
        type=NotificationType.TASK_ASSIGNED.value,
        priority=NotificationPriority.NORMAL.value,
        entity_id=task_id,
        entity_type="task",
        data={"task_id": task_id, "assigned_by": assigned_by},
    )


def create_project_update_notification(
    project_title: str, update_type: str, project_id: int
) -> Notification:
    return create_notification(
        title="Обновление проекта",
        body=f"{update_type} в проекте «{project_title}»",
        type=NotificationType.PROJECT_UPDATE.value,
        priority=NotificationPriority.NORMAL.value,
        entity_id=project_id,
        entity_type="project",
        data={"project_id": project_id, "update_type": update_type},
    )
