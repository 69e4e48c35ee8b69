from __future__ import annotations

import datetime as dt

import pytest

from dirigia.utils.dates import clean_infraction_date, to_review_date

TODAY = dt.date(2024, 6, 15)


def test_review_date_converts_brazilian_format():
    assert to_review_date("05/03/2024") == "2024-03-05"


@pytest.mark.parametrize("value", [None, "", "2024-03-05", "março de 2024"])
def test_review_date_leaves_other_values_untouched(value):
    assert to_review_date(value) == value


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-03-05", dt.date(2024, 3, 5)),
        ("05/03/2024", dt.date(2024, 3, 5)),
        ("05-03-2024", dt.date(2024, 3, 5)),
        (" 2024-06-15 ", TODAY),
    ],
)
def test_clean_infraction_date_accepts_known_formats(value, expected):
    assert clean_infraction_date(value, today=TODAY) == expected


@pytest.mark.parametrize("value", ["31/02/2024", "2024-13-01", "5/3/24", "ontem", "", "   ", None])
def test_clean_infraction_date_rejects_invalid_values(value):
    assert clean_infraction_date(value, today=TODAY) is None


def test_clean_infraction_date_rejects_future_dates():
    assert clean_infraction_date("16/06/2024", today=TODAY) is None
