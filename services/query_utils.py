"""Utility helpers for building filtered and sorted Peewee queries."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Sequence

from peewee import Case, Field, ModelSelect, Node, fn
from playhouse.shortcuts import Cast

from database.models import Priority, TaskStatus

ASC = "asc"
DESC = "desc"

PRIORITY_ORDER: Sequence[str] = [p.value for p in Priority]
TASK_STATUS_ORDER: Sequence[str] = [s.value for s in TaskStatus]


def normalize_order(order: str | None) -> str:
    """Вернуть ``asc`` или ``desc``; всё остальное считается ``asc``."""
    return DESC if (order or "").strip().lower() == DESC else ASC


@dataclass
class SortState:
    """Текущая сортировка списка.

    Повторный выбор того же поля меняет направление, выбор нового поля
    начинает сортировку по возрастанию.
    """

    field: str
    order: str = ASC

    def toggle(self, field: str) -> "SortState":
        if field == self.field:
            self.order = ASC if self.order == DESC else DESC
        else:
            self.field = field
            self.order = ASC
        return self


def build_or_condition(fields: Iterable[Field], value: str) -> Node | None:
    """Сформировать OR-условие ``field.contains(value)`` для разных моделей.

    Parameters:
        fields: Iterable с полями Peewee из разных моделей.
        value: Текст для поиска (регистр не учитывается).

    Returns:
        Peewee-выражение, объединяющее условия ``OR``. ``None`` если список
        полей пуст или значение не задано.
    """
    value = (value or "").strip()
    if not value:
        return None
    needle = value.lower()
    condition: Node | None = None
    for field in fields:
        expr = fn.LOWER(Cast(field, "TEXT")).contains(needle)
        condition = expr if condition is None else (condition | expr)
    return condition


def apply_search(query: ModelSelect, fields: Iterable[Field], text: str) -> ModelSelect:
    """Добавить к запросу поиск подстроки по ``fields``."""
    condition = build_or_condition(fields, text)
    if condition is not None:
        query = query.where(condition)
    return query


def order_case(field: Field, ordering: Sequence[str]) -> Case:
    """``CASE``, переводящий значение перечисления в его ранг (1, 2, …)."""
    return Case(
        field,
        [(value, rank) for rank, value in enumerate(ordering, start=1)],
        len(ordering) + 1,
    )


def nulls_last(field: Field, order: str) -> list[Node]:
    """Ключи сортировки, при которых пустые значения идут в конце при ``asc``.

    При ``desc`` пустые значения оказываются в начале, как будто они
    равны бесконечности.
    """
    is_null = Case(None, [(field.is_null(True), 1)], 0)
    if normalize_order(order) == DESC:
        return [is_null.desc(), field.desc()]
    return [is_null.asc(), field.asc()]


def directed(expr: Node, order: str) -> Node:
    return expr.desc() if normalize_order(order) == DESC else expr.asc()


def sum_column(query: ModelSelect, field: Field) -> Decimal:
    """Вернуть сумму значений ``field`` для переданного запроса."""

    aggregate = (
        query.clone()
        .limit(None)
        .offset(None)
        .order_by()
        .select(fn.COALESCE(fn.SUM(field), 0))
    )
    value: Any | None = aggregate.scalar()
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))
