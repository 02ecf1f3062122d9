from datetime import date, datetime

import pytest

from salesdash.dates import end_of_day, parse_input_date, parse_sale_date, sale_date_key, start_of_day


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("01/03/2024", datetime(2024, 3, 1)),
        ("01/03/2024 18:45:10", datetime(2024, 3, 1)),
        (" 1/3/24", datetime(2024, 3, 1)),
        ("2024-03-15", datetime(2024, 3, 15)),
        ("2024-03-15 08:30:00", datetime(2024, 3, 15, 8, 30)),
    ],
)
def test_parse_sale_date(raw, expected):
    assert parse_sale_date(raw) == expected


@pytest.mark.parametrize("raw", [None, 20240301, 1.5, "", "   ", "not a date", "31/02/2024", "aa/bb/cccc"])
def test_unparseable_sale_dates(raw):
    assert parse_sale_date(raw) is None


def test_timezone_suffix_keeps_wall_clock():
    assert parse_sale_date("2024-03-15T10:00:00+03:00") == datetime(2024, 3, 15, 10, 0)


def test_day_bounds():
    moment = datetime(2024, 3, 15, 12, 30)
    assert start_of_day(moment) == datetime(2024, 3, 15)
    assert end_of_day(date(2024, 3, 15)) == datetime(2024, 3, 15, 23, 59, 59, 999000)


def test_parse_input_date():
    assert parse_input_date("2024-03-01") == date(2024, 3, 1)
    assert parse_input_date(datetime(2024, 3, 1, 9)) == date(2024, 3, 1)
    assert parse_input_date(date(2024, 3, 1)) == date(2024, 3, 1)
    assert parse_input_date("") is None
    assert parse_input_date(None) is None
    assert parse_input_date("01/03/2024") is None


def test_sale_date_key_cuts_time():
    assert sale_date_key("01/03/2024 10:00") == "01/03/2024"
    assert sale_date_key(None) is None


def test_two_digit_years_are_this_century():
    assert parse_sale_date("01/03/24") == datetime(2024, 3, 1)
    assert parse_sale_date("31/12/99 23:00") == datetime(2099, 12, 31)
