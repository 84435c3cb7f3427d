from datetime import date, datetime

import pytest

from stockledger.utils import to_date, to_iso


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-01-05", date(2024, 1, 5)),
        (" 2024-1-5 ", date(2024, 1, 5)),
        (date(2023, 12, 31), date(2023, 12, 31)),
        (datetime(2024, 2, 29, 18, 30), date(2024, 2, 29)),
    ],
)
def test_to_date(value, expected):
    assert to_date(value) == expected


@pytest.mark.parametrize("value", ["05/01/2024", "2024-02-30", "", "20240105"])
def test_to_date_rejects(value):
    with pytest.raises(ValueError):
        to_date(value)


def test_to_iso_is_zero_padded():
    assert to_iso("2024-2-3") == "2024-02-03"
    assert to_iso(None) is None


def test_iso_order_matches_calendar_order():
    dates = [date(2024, 10, 1), date(2024, 2, 3), date(2023, 12, 31), date(2024, 1, 31)]
    assert sorted(to_iso(d) for d in dates) == [to_iso(d) for d in sorted(dates)]
