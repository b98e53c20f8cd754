from datetime import date, datetime

import pandas as pd
import pytest

from services import analytics_service as an
from services import client_service as cs
from services.export_service import (
    export_analytics_excel,
    export_entity_csv,
    export_objects_to_csv,
)


def _rows(path):
    return path.read_text(encoding="utf-8-sig").splitlines()


def test_export_dicts_with_headers(tmp_path):
    path = tmp_path / "out.csv"
    rows = [
        {"title": "Сайт", "deadline": date(2024, 5, 1), "billable": True},
        {"title": "Лендинг", "deadline": None, "billable": False},
    ]
    count = export_objects_to_csv(path, rows, ["title", "deadline", "billable"])
    assert count == 2
    assert _rows(path) == [
        "Название;Дедлайн;Оплачиваемо",
        "Сайт;01.05.2024;да",
        "Лендинг;;нет",
    ]
    assert path.read_bytes().startswith(b"\xef\xbb\xbf")


def test_export_clients_skips_deleted(make_client, tmp_path):
    make_client(name="Alice", company="Acme")
    gone = make_client(name="Bob")
    cs.delete_client(gone.id)

    path = tmp_path / "clients.csv"
    assert export_entity_csv("clients", path) == 1
    lines = _rows(path)
    assert lines[0] == "ID;Имя;Компания;Email;Телефон;Статус;Проектов;Создано"
    assert ";Alice;Acme;" in lines[1]


def test_export_time_entries_resolves_relations(make_task, make_time_entry, tmp_path):
    task = make_task(title="Макет")
    make_time_entry(task=task, start_time=datetime(2024, 1, 15, 9, 30), description="Правки")

    path = tmp_path / "time.csv"
    assert export_entity_csv("time_entries", path) == 1
    header, row = _rows(path)
    assert header == "ID;Задача;Проект;Описание;Начало;Минут;Оплачиваемо;Ставка"
    cells = row.split(";")
    assert cells[1] == "Макет"
    assert cells[2] == task.project.title
    assert cells[4:7] == ["15.01.2024 09:30", "60", "да"]


def test_export_unknown_entity(tmp_path):
    with pytest.raises(ValueError):
        export_entity_csv("invoices", tmp_path / "x.csv")


def test_export_analytics_excel(make_task, make_time_entry, tmp_path):
    task = make_task()
    make_time_entry(task=task, duration=90)

    path = export_analytics_excel(an.get_business_analytics(), tmp_path / "reports" / "a.xlsx")
    sheets = pd.read_excel(path, sheet_name=None)
    assert {"Обзор", "Выручка по проектам", "Часы по дням", "Сезонность"} <= set(sheets)

    overview = dict(zip(sheets["Обзор"]["Показатель"], sheets["Обзор"]["Значение"]))
    assert overview["total_revenue"] == 150.0
    assert overview["total_hours"] == 1.5
    assert list(sheets["Часы по дням"]["total_hours"]) == [1.5]
    assert len(sheets["Сезонность"]) == 4
