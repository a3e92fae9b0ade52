from datetime import date

from app.utils.fiscal_year import (
    calendar_to_fiscal,
    current_fiscal_month,
    end_month,
    fiscal_month_index,
    fiscal_to_calendar,
    generate_fiscal_months,
    is_future_month,
    is_past_month,
    is_valid_month,
    parse_year,
)


def test_default_fiscal_year_starts_in_november() -> None:
    months = generate_fiscal_months()
    assert months[:3] == ["Nov", "Dec", "Jan"]
    assert months[-1] == "Oct"
    assert len(set(months)) == 12


def test_unknown_start_month_falls_back_to_november() -> None:
    assert generate_fiscal_months("Foo") == generate_fiscal_months("Nov")


def test_custom_start_month_and_end_month() -> None:
    assert generate_fiscal_months("Jan")[0] == "Jan"
    assert end_month("Jan") == "Dec"
    assert end_month("Nov") == "Oct"
    assert fiscal_month_index("Jan", "Nov") == 2
    assert fiscal_month_index("Xyz", "Nov") == -1


def test_calendar_to_fiscal_rolls_into_next_year_from_start_month() -> None:
    assert calendar_to_fiscal(date(2025, 11, 3)) == (2026, "Nov")
    assert calendar_to_fiscal(date(2025, 12, 31)) == (2026, "Dec")
    assert calendar_to_fiscal(date(2026, 10, 1)) == (2026, "Oct")
    assert calendar_to_fiscal(date(2026, 3, 15), "Jan") == (2026, "Mar")


def test_fiscal_to_calendar_returns_first_of_month() -> None:
    assert fiscal_to_calendar(2026, "Nov") == date(2025, 11, 1)
    assert fiscal_to_calendar(2026, "Oct") == date(2026, 10, 1)
    assert fiscal_to_calendar(2026, "Jul", "Jul") == date(2025, 7, 1)


def test_past_and_future_month_checks() -> None:
    today = date(2026, 2, 10)
    assert is_past_month(2026, "Jan", today=today)
    assert not is_past_month(2026, "Feb", today=today)
    assert not is_future_month(2026, "Feb", today=today)
    assert is_future_month(2026, "Mar", today=today)
    assert current_fiscal_month("Nov", today) == (2026, "Feb")


def test_parse_year_and_month_validation() -> None:
    assert parse_year("2026") == 2026
    assert parse_year(" 2000 ") == 2000
    assert parse_year("1999") is None
    assert parse_year("2101") is None
    assert parse_year("abc") is None
    assert parse_year(None) is None
    assert is_valid_month("Mar")
    assert not is_valid_month("March")
    assert not is_valid_month(None)
