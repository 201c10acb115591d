# ledger/tests/unit/test_utils.py
from datetime import date, datetime
from decimal import Decimal

import pytest

from ledger.utils import dates
from ledger.utils.formatting import currency, humanize_title, ordinalize, round_money, squish


class TestDates:
    def test_month_boundaries(self):
        assert dates.beginning_of_month(date(2024, 2, 17)) == date(2024, 2, 1)
        assert dates.end_of_month(date(2024, 2, 17)) == date(2024, 2, 29)
        assert dates.next_month(date(2024, 12, 31)) == date(2025, 1, 1)

    def test_clamp_day(self):
        assert dates.clamp_day(date(2025, 2, 1), 31) == date(2025, 2, 28)
        assert dates.clamp_day(date(2025, 3, 1), 31) == date(2025, 3, 31)

    def test_weeks_start_on_sunday(self):
        # 2025-03-12 is a Wednesday
        assert dates.beginning_of_week(date(2025, 3, 12)) == date(2025, 3, 9)
        assert dates.beginning_of_week(date(2025, 3, 9)) == date(2025, 3, 9)
        assert dates.end_of_week(date(2025, 3, 12)) == date(2025, 3, 15)

    def test_calendar_weeks_cover_month(self):
        weeks = dates.calendar_weeks(date(2025, 3, 20))

        assert all(len(week) == 7 for week in weeks)
        assert weeks[0][0] == date(2025, 2, 23)
        assert weeks[-1][-1] == date(2025, 4, 5)
        assert len(weeks) == 6

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("2025-03-01", date(2025, 3, 1)),
            (" 2025-03-01 ", date(2025, 3, 1)),
            (date(2025, 3, 1), date(2025, 3, 1)),
            (datetime(2025, 3, 1, 14, 30), date(2025, 3, 1)),
            ("03/01/2025", None),
            ("", None),
            (None, None),
        ],
    )
    def test_parse_date(self, value, expected):
        assert dates.parse_date(value) == expected

    def test_parse_month(self):
        assert dates.parse_month("2025-03") == date(2025, 3, 1)
        assert dates.parse_month(date(2025, 3, 18)) == date(2025, 3, 1)
        assert dates.parse_month("March") is None
        assert dates.parse_month(None) is None


class TestFormatting:
    def test_squish(self):
        assert squish("  Whole \t Foods\n Market ") == "Whole Foods Market"
        assert squish(None) == ""

    def test_money(self):
        assert round_money("10.005") == Decimal("10.01")
        assert currency(Decimal("1234.5")) == "$1,234.50"
        assert currency(Decimal("-75")) == "-$75.00"
        assert currency(None) == ""

    @pytest.mark.parametrize(
        "number, expected",
        [(1, "1st"), (2, "2nd"), (3, "3rd"), (4, "4th"), (11, "11th"), (12, "12th"), (13, "13th"), (21, "21st"), (22, "22nd"), (31, "31st")],
    )
    def test_ordinalize(self, number, expected):
        assert ordinalize(number) == expected

    def test_humanize_title(self):
        assert humanize_title("debt_repayment") == "Debt Repayment"
        assert humanize_title("") == ""
