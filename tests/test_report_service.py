from datetime import datetime

import pytest

from services import analytics_service as an
from services.report_service import build_insights, generate_text_report


def _analytics(utilization=80.0, growth=5.0, on_time=90.0, adherence=90.0):
    return {
        "overview": {
            "total_revenue": 12500.5,
            "active_projects": 3,
            "total_clients": 4,
            "utilization": utilization,
            "revenue_growth": growth,
            "total_hours": 120.0,
            "billable_hours": 96.0,
        },
        "revenue": {
            "monthly": [{"revenue": 5000.0}, {"revenue": 7500.5}],
            "by_client": [
                {"client_name": "Acme", "revenue": 2500.0},
                {"client_name": "Globex", "revenue": 10000.5},
            ],
        },
        "productivity": {
            "tasks_completed": 12,
            "overdue_tasks_percentage": 8.0,
            "project_delivery_rate": 75.0,
            "team_efficiency": [{"efficiency": 80.0}, {"efficiency": 100.0}],
        },
        "projects": {
            "on_time_delivery": on_time,
            "budget_adherence": adherence,
            "profitability_analysis": [
                {"project_title": "Site", "profit_margin": 40.0},
                {"project_title": "App", "profit_margin": 20.0},
            ],
        },
        "time_tracking": {"overtime_analysis": {"total_overtime_hours": 3.5}},
    }


def test_full_report(settings):
    report = generate_text_report(
        _analytics(),
        period_label="Март 2024",
        generated_at=datetime(2024, 3, 31, 18, 0),
    )
    lines = report.splitlines()
    assert lines[0] == "📊 Отчёт по бизнес-аналитике"
    assert lines[1] == "Сформирован: 31.03.2024 18:00"
    assert lines[2] == "Период: Март 2024"
    assert "• Выручка: $12,500.50" in lines
    assert "• В среднем за месяц: $6,250.25" in lines
    assert "• Лучший клиент: Globex ($10,000.50)" in lines
    assert "• Эффективность команды: 90.0%" in lines
    assert "• Самый прибыльный: Site (40.0%)" in lines
    assert "• Сверхурочные часы: 3.5" in lines
    assert "💡 ВЫВОДЫ И РЕКОМЕНДАЦИИ" in lines
    assert report.endswith("\n")


def test_selected_sections_only(settings):
    report = generate_text_report(_analytics(), sections=["revenue"])
    assert "💰 ВЫРУЧКА" in report
    assert "📈 ОБЗОР БИЗНЕСА" not in report
    assert "⏰ УЧЁТ ВРЕМЕНИ" not in report
    assert "Период:" not in report


def test_unknown_section_rejected():
    with pytest.raises(ValueError):
        generate_text_report(_analytics(), sections=["overview", "weather"])


def test_currency_from_settings(monkeypatch):
    monkeypatch.setenv("CURRENCY", "EUR")
    from config import get_settings

    get_settings.cache_clear()
    report = generate_text_report(_analytics(), sections=["overview"])
    assert "• Выручка: €12,500.50" in report


@pytest.mark.parametrize(
    "kwargs, expected",
    [
        ({"utilization": 50.0}, "Загрузка ниже оптимальной"),
        ({"utilization": 95.0}, "Очень высокая загрузка"),
        ({"utilization": 80.0}, "Загрузка в норме"),
        ({"growth": 15.0}, "Отличный рост выручки"),
        ({"growth": -3.0}, "Выручка снижается"),
        ({"on_time": 60.0}, "Сдача в срок требует внимания"),
        ({"adherence": 70.0}, "Бюджет соблюдается не всегда"),
    ],
)
def test_insights(kwargs, expected):
    insights = build_insights(_analytics(**kwargs))
    assert any(expected in text for text in insights)


def test_quiet_insights_for_healthy_numbers():
    assert build_insights(_analytics()) == ["✅ Загрузка в норме (80.0%)."]


def test_report_from_empty_database(in_memory_db):
    report = generate_text_report(an.get_business_analytics())
    assert "• Выручка: $0.00" in report
    assert "Загрузка ниже оптимальной (0.0%)" in report
