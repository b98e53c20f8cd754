"""Валидаторы и нормализаторы входных данных форм."""

from __future__ import annotations

import ast
import operator as op
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from services.errors import FormValidationError

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^\+?[1-9]\d{0,15}$")

_ALLOWED_OPS = {
    ast.Add: op.add,
    ast.Sub: op.sub,
    ast.Mult: op.mul,
    ast.Div: op.truediv,
}


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def is_valid_email(email: str | None) -> bool:
    return bool(EMAIL_RE.match(_text(email)))


def is_valid_phone(phone: str | None) -> bool:
    """Телефон: 10–17 символов, необязательный ``+`` и без ведущего нуля.

    Дефисы, пробелы и скобки игнорируются.
    """
    clean = re.sub(r"[-\s()]", "", _text(phone))
    return bool(PHONE_RE.match(clean)) and len(clean) >= 10


def parse_amount(value: str | int | float | Decimal | None) -> Decimal | None:
    """Разобрать сумму или простое выражение из поля формы.

    Пробелы и неразрывные пробелы удаляются, запятая заменяется точкой.
    Поддерживаются выражения вида ``10*10`` или ``5+5`` и проценты
    (``10%`` означает ``10/100``). Пустое значение возвращает ``None``.
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))

    text = re.sub(r"\s+", "", str(value)).replace(" ", "")
    text = text.replace(",", ".").rstrip(".")
    if text == "":
        return None

    expr = re.sub(r"(\d+(?:\.\d+)?)%", r"(\1/100)", text)

    def _eval(node):
        if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
            return Decimal(str(node.value))
        if isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.USub):
            return -_eval(node.operand)
        if isinstance(node, ast.BinOp) and type(node.op) in _ALLOWED_OPS:
            return _ALLOWED_OPS[type(node.op)](_eval(node.left), _eval(node.right))
        raise ValueError(f"Некорректное число: {value!r}")

    try:
        tree = ast.parse(expr, mode="eval")
    except SyntaxError as exc:
        raise ValueError(f"Некорректное число: {value!r}") from exc
    try:
        return _eval(tree.body)
    except (ZeroDivisionError, InvalidOperation) as exc:
        raise ValueError(f"Некорректное число: {value!r}") from exc


def parse_date(value: Any) -> date | None:
    """Дата из ``date``/``datetime`` или ISO-строки; пустое значение → ``None``."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def parse_datetime(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip().replace("Z", "+00:00")
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = (parsed - parsed.utcoffset()).replace(tzinfo=None)
    return parsed


def _check_non_negative(
    errors: dict[str, str], data: Mapping[str, Any], field: str, message: str
) -> None:
    raw = data.get(field)
    if raw is None or _text(raw) == "":
        return
    try:
        amount = parse_amount(raw)
    except ValueError:
        errors[field] = message
        return
    if amount is not None and amount < 0:
        errors[field] = message


def _check_date(errors: dict[str, str], data: Mapping[str, Any], field: str) -> date | None:
    try:
        return parse_date(data.get(field))
    except ValueError:
        errors[field] = "Некорректная дата"
        return None


def validate_client_form(data: Mapping[str, Any]) -> dict[str, str]:
    errors: dict[str, str] = {}

    name = _text(data.get("name"))
    if not name:
        errors["name"] = "Имя обязательно"
    elif len(name) < 2:
        errors["name"] = "Имя должно содержать минимум 2 символа"

    email = _text(data.get("email"))
    if not email:
        errors["email"] = "Email обязателен"
    elif not is_valid_email(email):
        errors["email"] = "Введите корректный email"

    phone = _text(data.get("phone"))
    if phone and not is_valid_phone(phone):
        errors["phone"] = "Введите корректный номер телефона"

    return errors


def validate_project_form(data: Mapping[str, Any]) -> dict[str, str]:
    errors: dict[str, str] = {}

    title = _text(data.get("title"))
    if not title:
        errors["title"] = "Название проекта обязательно"
    elif len(title) < 3:
        errors["title"] = "Название должно содержать минимум 3 символа"

    if not data.get("client_id"):
        errors["client_id"] = "Выберите клиента"

    start = _check_date(errors, data, "start_date")
    if start is None and "start_date" not in errors:
        errors["start_date"] = "Дата начала обязательна"

    _check_non_negative(errors, data, "budget", "Введите корректный бюджет")
    _check_non_negative(errors, data, "hourly_rate", "Введите корректную ставку")
    _check_non_negative(
        errors, data, "estimated_hours", "Введите корректную оценку часов"
    )

    end = _check_date(errors, data, "end_date")
    deadline = _check_date(errors, data, "deadline")
    if start and end and end < start:
        errors["start_date"] = "Дата окончания не может быть раньше даты начала"
    if start and deadline and deadline < start:
        errors["deadline"] = "Дедлайн не может быть раньше даты начала"

    return errors


def validate_task_form(data: Mapping[str, Any]) -> dict[str, str]:
    errors: dict[str, str] = {}

    if not _text(data.get("title")):
        errors["title"] = "Название обязательно"

    if not data.get("project_id"):
        errors["project_id"] = "Проект обязателен"

    _check_non_negative(
        errors, data, "estimated_hours", "Оценка часов должна быть неотрицательной"
    )

    start = _check_date(errors, data, "start_date")
    due = _check_date(errors, data, "due_date")
    if start and due and start > due:
        errors["due_date"] = "Срок должен быть не раньше даты начала"

    return errors


def validate_time_entry_form(data: Mapping[str, Any]) -> dict[str, str]:
    errors: dict[str, str] = {}

    if not data.get("task_id"):
        errors["task_id"] = "Задача обязательна"
    if not data.get("project_id"):
        errors["project_id"] = "Проект обязателен"

    _check_non_negative(
        errors, data, "duration", "Длительность должна быть неотрицательной"
    )

    try:
        start = parse_datetime(data.get("start_time"))
        end = parse_datetime(data.get("end_time"))
    except ValueError:
        errors["start_time"] = "Некорректное время"
        return errors
    if start is None:
        errors["start_time"] = "Время начала обязательно"
    elif end is not None and end < start:
        errors["end_time"] = "Окончание не может быть раньше начала"

    return errors


def ensure_valid(errors: dict[str, str]) -> None:
    """Выбросить :class:`FormValidationError`, если есть ошибки."""
    if errors:
        raise FormValidationError(errors)
