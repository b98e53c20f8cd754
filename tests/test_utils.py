from datetime import date, datetime
from decimal import Decimal

import pytest

from services.query_utils import SortState, normalize_order
from utils.money import format_currency, round_money
from utils.time_utils import (
    format_duration,
    format_elapsed,
    format_relative_day,
    iso_week_key,
    month_key,
)


@pytest.mark.parametrize(
    "value, currency, expected",
    [
        (1234.5, "USD", "$1,234.50"),
        (Decimal("0"), "USD", "$0.00"),
        ("-15.005", "EUR", "-€15.01"),
        (1000000, "RUB", "₽1,000,000.00"),
        (12, "CHF", "12.00 CHF"),
    ],
)
def test_format_currency(value, currency, expected):
    assert format_currency(value, currency) == expected


def test_round_money_half_up():
    assert round_money("2.675") == Decimal("2.68")
    assert round_money(None) == Decimal("0.00")


@pytest.mark.parametrize(
    "minutes, expected",
    [(125, "2h 5m"), (120, "2h"), (45, "45m"), (0, "0m"), (None, "0m")],
)
def test_format_duration(minutes, expected):
    assert format_duration(minutes) == expected


@pytest.mark.parametrize(
    "seconds, expected",
    [(0, "00:00"), (65, "01:05"), (3600, "01:00:00"), (3725, "01:02:05"), (-5, "00:00")],
)
def test_format_elapsed(seconds, expected):
    assert format_elapsed(seconds) == expected


def test_format_relative_day():
    today = date(2024, 5, 10)
    assert format_relative_day(datetime(2024, 5, 10, 8, 0), today) == "Сегодня"
    assert format_relative_day(date(2024, 5, 9), today) == "Вчера"
    assert format_relative_day(date(2024, 3, 1), today) == "01.03"
    assert format_relative_day(date(2023, 12, 31), today) == "31.12.2023"


def test_period_keys():
    assert month_key(date(2024, 3, 9)) == "2024-03"
    # 1 января 2021 относится к 53-й неделе 2020 года
    assert iso_week_key(date(2021, 1, 1)) == "2020-W53"
    assert iso_week_key(datetime(2024, 1, 8, 12)) == "2024-W02"


def test_normalize_order():
    assert normalize_order("DESC") == "desc"
    assert normalize_order(None) == "asc"
    assert normalize_order("sideways") == "asc"


def test_sort_state_toggles_same_field():
    state = SortState("name")
    assert state.toggle("name").order == "desc"
    assert state.toggle("name").order == "asc"
    state.toggle("name")
    assert (state.toggle("status").field, state.order) == ("status", "asc")
