"""Текстовый отчёт по бизнес-аналитике."""

from __future__ import annotations

import logging
from datetime import datetime

from config import get_settings
from utils.money import format_currency
from utils.time_utils import TIME_FORMAT, utcnow

logger = logging.getLogger(__name__)

SECTIONS = ("overview", "revenue", "productivity", "projects", "time")

_RULE = "=" * 30


def _pct(value) -> str:
    return f"{float(value or 0):.1f}%"


def _overview_lines(analytics: dict, currency: str) -> list[str]:
    overview = analytics["overview"]
    return [
        "📈 ОБЗОР БИЗНЕСА",
        _RULE,
        f"• Выручка: {format_currency(overview['total_revenue'], currency)}",
        f"• Активные проекты: {overview['active_projects']}",
        f"• Клиенты: {overview['total_clients']}",
        f"• Загрузка команды: {_pct(overview['utilization'])}",
    ]


def _revenue_lines(analytics: dict, currency: str) -> list[str]:
    revenue = analytics["revenue"]
    monthly = revenue["monthly"]
    average = sum(m["revenue"] for m in monthly) / len(monthly) if monthly else 0
    lines = [
        "💰 ВЫРУЧКА",
        _RULE,
        f"• Рост за месяц: {_pct(analytics['overview']['revenue_growth'])}",
        f"• В среднем за месяц: {format_currency(average, currency)}",
    ]
    clients = sorted(revenue["by_client"], key=lambda c: c["revenue"], reverse=True)
    if clients:
        top = clients[0]
        lines.append(
            f"• Лучший клиент: {top['client_name']} ({format_currency(top['revenue'], currency)})"
        )
    return lines


def _productivity_lines(analytics: dict) -> list[str]:
    productivity = analytics["productivity"]
    team = productivity["team_efficiency"]
    efficiency = sum(m["efficiency"] for m in team) / len(team) if team else 0
    return [
        "⚡ ПРОДУКТИВНОСТЬ",
        _RULE,
        f"• Выполнено задач: {productivity['tasks_completed']}",
        f"• Просрочено задач: {_pct(productivity['overdue_tasks_percentage'])}",
        f"• Сдача проектов в срок: {_pct(productivity['project_delivery_rate'])}",
        f"• Эффективность команды: {_pct(efficiency)}",
    ]


def _projects_lines(analytics: dict) -> list[str]:
    projects = analytics["projects"]
    lines = [
        "🚀 ПРОЕКТЫ",
        _RULE,
        f"• Сдача в срок: {_pct(projects['on_time_delivery'])}",
        f"• Соблюдение бюджета: {_pct(projects['budget_adherence'])}",
    ]
    rows = projects["profitability_analysis"]
    if rows:
        margin = sum(r["profit_margin"] for r in rows) / len(rows)
        lines.append(f"• Средняя маржа: {_pct(margin)}")
        best = max(rows, key=lambda r: r["profit_margin"])
        lines.append(f"• Самый прибыльный: {best['project_title']} ({_pct(best['profit_margin'])})")
    return lines


def _time_lines(analytics: dict) -> list[str]:
    overview = analytics["overview"]
    overtime = analytics["time_tracking"]["overtime_analysis"]
    return [
        "⏰ УЧЁТ ВРЕМЕНИ",
        _RULE,
        f"• Всего часов: {overview['total_hours']:.1f}",
        f"• Оплачиваемые часы: {overview['billable_hours']:.1f}",
        f"• Загрузка: {_pct(overview['utilization'])}",
        f"• Сверхурочные часы: {overtime['total_overtime_hours']:.1f}",
    ]


def build_insights(analytics: dict) -> list[str]:
    """Выводы и рекомендации по ключевым показателям."""
    insights = []
    utilization = analytics["overview"]["utilization"]
    if utilization < 70:
        insights.append(
            f"⚠️ Загрузка ниже оптимальной ({_pct(utilization)}). Перераспределите ресурсы."
        )
    elif utilization > 90:
        insights.append(f"⚠️ Очень высокая загрузка ({_pct(utilization)}). Риск выгорания.")
    else:
        insights.append(f"✅ Загрузка в норме ({_pct(utilization)}).")

    growth = analytics["overview"]["revenue_growth"]
    if growth > 10:
        insights.append(f"🚀 Отличный рост выручки ({_pct(growth)}). Сохраняйте стратегию.")
    elif growth < 0:
        insights.append(f"📉 Выручка снижается ({_pct(growth)}). Пересмотрите продажи.")

    on_time = analytics["projects"]["on_time_delivery"]
    if on_time < 80:
        insights.append(
            f"⏱️ Сдача в срок требует внимания ({_pct(on_time)}). Пересмотрите планирование."
        )

    adherence = analytics["projects"]["budget_adherence"]
    if adherence < 85:
        insights.append(
            f"💰 Бюджет соблюдается не всегда ({_pct(adherence)}). Уточните оценку затрат."
        )
    return insights


def generate_text_report(
    analytics: dict,
    sections: list[str] | tuple[str, ...] = SECTIONS,
    period_label: str = "",
    generated_at: datetime | None = None,
) -> str:
    """Собрать отчёт из выбранных разделов и блока выводов.

    ``analytics``: результат ``analytics_service.get_business_analytics``.
    """
    unknown = set(sections) - set(SECTIONS)
    if unknown:
        raise ValueError(f"Неизвестные разделы отчёта: {', '.join(sorted(unknown))}")

    currency = get_settings().currency
    generated_at = generated_at or utcnow()
    lines = [
        "📊 Отчёт по бизнес-аналитике",
        f"Сформирован: {generated_at.strftime(TIME_FORMAT)}",
    ]
    if period_label:
        lines.append(f"Период: {period_label}")
    lines.append("")

    builders = {
        "overview": lambda: _overview_lines(analytics, currency),
        "revenue": lambda: _revenue_lines(analytics, currency),
        "productivity": lambda: _productivity_lines(analytics),
        "projects": lambda: _projects_lines(analytics),
        "time": lambda: _time_lines(analytics),
    }
    for section in SECTIONS:
        if section in sections:
            lines.extend(builders[section]())
            lines.append("")

    lines.append("💡 ВЫВОДЫ И РЕКОМЕНДАЦИИ")
    lines.append("=" * 40)
    lines.extend(f"• {text}" for text in build_insights(analytics))
    logger.info("📝 Отчёт сформирован: %s", ", ".join(s for s in SECTIONS if s in sections))
    return "\n".join(lines) + "\n"
