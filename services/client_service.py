"""Сервисный модуль для управления клиентами."""

import logging
from datetime import date

from peewee import ModelSelect, fn

from database.db import db
from database.models import Client, ClientStatus, Project
from services.errors import ClientNotFoundError
from services.query_utils import ASC, apply_search, directed, nulls_last
from services.validators import ensure_valid, parse_date, validate_client_form
from utils.time_utils import utcnow

logger = logging.getLogger(__name__)

CLIENT_ALLOWED_FIELDS = {
    "name",
    "company",
    "email",
    "phone",
    "avatar",
    "address",
    "notes",
    "status",
    "last_contact_date",
}

CLIENT_SORT_FIELDS = {"name", "company", "status", "project_count", "last_contact", "created"}

DEFAULT_CLIENTS = [
    {
        "name": "John Smith",
        "email": "john.smith@example.com",
        "phone": "+1 (555) 123-4567",
        "company": "Tech Solutions Inc.",
        "address": "123 Main St, New York, NY 10001",
        "status": "active",
        "last_contact_date": date(2024, 1, 10),
        "notes": "Great client, always pays on time.",
    },
    {
        "name": "Sarah Johnson",
        "email": "sarah@creativestudio.com",
        "phone": "+1 (555) 987-6543",
        "company": "Creative Studio",
        "status": "active",
        "last_contact_date": date(2024, 1, 8),
        "notes": "Needs regular updates on project progress.",
    },
    {
        "name": "Mike Brown",
        "email": "mike.brown@startup.io",
        "company": "Innovation Startup",
        "status": "pending",
        "notes": "Potential new client, waiting for contract.",
    },
    {
        "name": "Lisa Davis",
        "email": "lisa@freelancer.com",
        "status": "inactive",
        "last_contact_date": date(2023, 12, 15),
        "notes": "Project completed, maintaining relationship.",
    },
]


def _clean(data: dict) -> dict:
    clean = {k: v for k, v in data.items() if k in CLIENT_ALLOWED_FIELDS}
    for key in ("company", "phone", "avatar", "address", "notes"):
        if key in clean and isinstance(clean[key], str):
            clean[key] = clean[key].strip() or None
    if "last_contact_date" in clean:
        clean["last_contact_date"] = parse_date(clean["last_contact_date"])
    if "status" in clean:
        clean["status"] = ClientStatus(clean["status"]).value
    return clean


# ──────────────────────────── Инициализация ─────────────────────────────


def initialize_clients() -> int:
    """Заполнить пустую таблицу демонстрационными клиентами."""
    if Client.select().exists():
        return 0
    with db.atomic():
        for item in DEFAULT_CLIENTS:
            Client.create(**item)
    logger.info("🌱 Добавлено демонстрационных клиентов: %s", len(DEFAULT_CLIENTS))
    return len(DEFAULT_CLIENTS)


# ──────────────────────────── Получение ─────────────────────────────


def get_all_clients() -> ModelSelect:
    """Вернуть выборку всех активных клиентов."""
    return Client.active().order_by(Client.created_at.desc(), Client.id.desc())


def get_client_by_id(client_id: int) -> Client | None:
    """Получить клиента по его идентификатору."""
    return Client.get_or_none((Client.id == client_id) & (Client.is_deleted == False))


def search_clients(text: str) -> ModelSelect:
    """Поиск по имени, email и компании без учёта регистра."""
    query = get_all_clients()
    return apply_search(query, [Client.name, Client.email, Client.company], text)


def get_clients_by_status(status: str) -> ModelSelect:
    return get_all_clients().where(Client.status == ClientStatus(status).value)


# ──────────────────────────── Добавление ─────────────────────────────


def add_client(**kwargs) -> Client:
    """Проверить форму, создать и вернуть нового клиента."""
    ensure_valid(validate_client_form(kwargs))
    clean_data = _clean(kwargs)
    clean_data["name"] = clean_data["name"].strip()
    clean_data["email"] = clean_data["email"].strip()
    clean_data["project_count"] = 0

    client = Client.create(**clean_data)
    logger.info("✅ Клиент #%s создан: %s", client.id, client.name)
    return client


# ──────────────────────────── Обновление ─────────────────────────────


def update_client(client_id: int, **kwargs) -> Client:
    """Обновить данные клиента; форма проверяется целиком после слияния."""
    client = get_client_by_id(client_id)
    if client is None:
        logger.warning("❗ Клиент с id=%s не найден для обновления", client_id)
        raise ClientNotFoundError(client_id)

    updates = _clean(kwargs)
    merged = {"name": client.name, "email": client.email, "phone": client.phone}
    merged.update(updates)
    ensure_valid(validate_client_form(merged))

    if not updates:
        return client

    logger.info("✏️ Обновление клиента #%s: %s", client.id, updates)
    for key, value in updates.items():
        setattr(client, key, value)
    client.save()

    if "name" in updates:
        (
            Project.update(client_name=client.name)
            .where(Project.client == client)
            .execute()
        )
    return client


def update_client_project_count(client_id: int, count: int | None = None) -> None:
    """Записать число проектов клиента; без ``count`` оно пересчитывается."""
    if count is None:
        count = (
            Project.active().where(Project.client == client_id).count()
        )
    updated = (
        Client.update(project_count=count, updated_at=utcnow())
        .where(Client.id == client_id)
        .execute()
    )
    if not updated:
        logger.warning("❗ Клиент с id=%s не найден для обновления счётчика", client_id)


# ──────────────────────────── Удаление ─────────────────────────────


def delete_client(client_id: int) -> bool:
    """Помечает клиента как удалённого."""
    client = get_client_by_id(client_id)
    if client is None:
        logger.warning("❗ Клиент с id=%s не найден для удаления", client_id)
        return False
    client.soft_delete()
    logger.info("🗑 Клиент #%s удалён", client_id)
    return True


def restore_client(client_id: int) -> Client:
    """Снимает пометку удаления с клиента."""
    client = Client.get_or_none(Client.id == client_id)
    if client is None:
        logger.warning("❗ Клиент с id=%s не найден для восстановления", client_id)
        raise ClientNotFoundError(client_id)
    client.is_deleted = False
    client.save()
    logger.info("✅ Клиент %s восстановлен", client_id)
    return client


# ──────────────────────────── Списки ─────────────────────────────


def build_client_query(
    search_text: str = "",
    status: str | None = None,
    sort_field: str = "name",
    sort_order: str = ASC,
) -> ModelSelect:
    """Создаёт выборку клиентов с учётом поиска, фильтра и сортировки."""
    query = search_clients(search_text)
    if status and status != "all":
        query = query.where(Client.status == ClientStatus(status).value)

    if sort_field not in CLIENT_SORT_FIELDS:
        sort_field = "name"
    if sort_field == "name":
        keys = [directed(fn.LOWER(Client.name), sort_order)]
    elif sort_field == "company":
        keys = nulls_last(fn.LOWER(Client.company), sort_order)
    elif sort_field == "status":
        keys = [directed(Client.status, sort_order)]
    elif sort_field == "project_count":
        keys = [directed(Client.project_count, sort_order)]
    elif sort_field == "last_contact":
        keys = nulls_last(Client.last_contact_date, sort_order)
    else:
        keys = [directed(Client.created_at, sort_order)]
    return query.order_by(*keys, directed(Client.id, sort_order))


def get_status_counts() -> dict[str, int]:
    """Количество клиентов по статусам, плюс ``all``."""
    counts = {status.value: 0 for status in ClientStatus}
    rows = (
        Client.active()
        .select(Client.status, fn.COUNT(Client.id).alias("cnt"))
        .group_by(Client.status)
        .tuples()
    )
    for status, cnt in rows:
        counts[status] = cnt
    counts["all"] = sum(counts.values())
    return counts
