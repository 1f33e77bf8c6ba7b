from datetime import date, datetime

import pytest

from app.opsportal.utils import (
    cents_to_dollars,
    clean,
    dollars_to_cents,
    format_date,
    format_datetime,
    format_label,
    parse_bool,
    parse_date,
    parse_int,
    to_snake_case,
    truncate,
)


def test_format_date():
    assert format_date(datetime(2025, 3, 5, 14, 30)) == "Mar 5, 2025"
    assert format_date(date(2024, 12, 31)) == "Dec 31, 2024"
    assert format_date("2025-03-05T10:00:00Z") == "Mar 5, 2025"
    assert format_date(None) == "?"
    assert format_date("not a date") == "?"


def test_format_datetime():
    assert format_datetime(datetime(2025, 3, 5, 0, 7)) == "Mar 5, 2025, 12:07 AM"
    assert format_datetime(datetime(2025, 3, 5, 13, 45)) == "Mar 5, 2025, 1:45 PM"
    assert format_datetime("") == "?"


def test_labels_and_snake_case():
    assert format_label("phase_one_outline") == "Phase One Outline"
    assert format_label("campaign-onboarding") == "Campaign Onboarding"
    assert format_label(None) == ""
    assert to_snake_case("Technical Audit") == "technical_audit"
    assert to_snake_case("linkBuilding v2") == "link_building_v2"
    assert to_snake_case("") == ""


def test_truncate():
    assert truncate("short") == "short"
    assert truncate("x" * 51) == "x" * 50 + "..."
    assert truncate(None) == ""


def test_money():
    assert dollars_to_cents("12.34") == 1234
    assert dollars_to_cents("$1,000") == 100000
    assert dollars_to_cents("0") is None
    assert dollars_to_cents("") is None
    assert dollars_to_cents("abc") is None
    assert dollars_to_cents("nan") is None
    assert dollars_to_cents("NaN") is None
    assert dollars_to_cents("-Infinity") is None
    assert dollars_to_cents("1e999999") is None
    assert cents_to_dollars(123456) == "1,234.56"
    assert cents_to_dollars(None) == ""


def test_parsers():
    assert parse_int(" 42 ") == 42
    assert parse_int("4.2") is None
    assert parse_int(None) is None
    assert parse_bool("on") is True
    assert parse_bool("0") is False
    assert parse_bool(None) is False
    assert clean("  hi ") == "hi"
    assert clean("   ") is None
    assert parse_date("2024-02-29") == date(2024, 2, 29)
    assert parse_date("") is None
    with pytest.raises(ValueError):
        parse_date("02/29/2024")
