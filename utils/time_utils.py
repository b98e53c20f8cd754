from datetime import date, datetime, timezone

TIME_FORMAT = "%d.%m.%Y %H:%M"
DATE_FORMAT = "%d.%m.%Y"


def utcnow() -> datetime:
    """Текущее время в UTC без tzinfo (так хранятся все отметки в БД)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def month_key(value: date | datetime) -> str:
    """``YYYY-MM`` для группировки по месяцам."""
    return value.strftime("%Y-%m")


def day_key(value: date | datetime) -> str:
    return value.strftime("%Y-%m-%d")


def iso_week_key(value: date | datetime) -> str:
    """``YYYY-Www`` по ISO-неделе (год берётся из ISO-календаря)."""
    year, week, _ = as_date(value).isocalendar()
    return f"{year}-W{week:02d}"


def format_duration(minutes: int) -> str:
    """Длительность в минутах: ``2h 5m``, ``2h`` или ``45m``."""
    minutes = int(minutes or 0)
    hours, mins = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}h {mins}m" if mins > 0 else f"{hours}h"
    return f"{mins}m"


def format_elapsed(seconds: int) -> str:
    """Показание секундомера: ``MM:SS`` или ``HH:MM:SS``."""
    seconds = max(int(seconds or 0), 0)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def format_relative_day(value: date | datetime, today: date | None = None) -> str:
    """``Сегодня``, ``Вчера`` или дата (год только если не текущий)."""
    today = today or date.today()
    day = as_date(value)
    delta = (today - day).days
    if delta == 0:
        return "Сегодня"
    if delta == 1:
        return "Вчера"
    if day.year == today.year:
        return day.strftime("%d.%m")
    return day.strftime(DATE_FORMAT)
