"""Tests for bk_common.money and bk_common.datetime_utils."""

from datetime import UTC, datetime
from decimal import Decimal

from src.bk_common.datetime_utils import to_iso, utc_now
from src.bk_common.money import money_display, percentage, to_money


class TestToMoney:
    def test_rounds_half_up(self) -> None:
        assert to_money(Decimal("2.345")) == Decimal("2.35")
        assert to_money(Decimal("2.344")) == Decimal("2.34")

    def test_negative_rounds_away_from_zero(self) -> None:
        assert to_money(Decimal("-2.345")) == Decimal("-2.35")

    def test_accepts_int_and_str(self) -> None:
        assert to_money(15) == Decimal("15.00")
        assert to_money("0.1") == Decimal("0.10")


class TestPercentage:
    def test_basic(self) -> None:
        assert percentage(Decimal("500"), Decimal("1500")) == Decimal("33.33")

    def test_zero_whole(self) -> None:
        assert percentage(Decimal("10"), Decimal("0")) == Decimal("0.00")


class TestMoneyDisplay:
    def test_thousands_separator(self) -> None:
        assert money_display(Decimal("1500")) == "$1,500.00"

    def test_negative(self) -> None:
        assert money_display(Decimal("-12")) == "-$12.00"

    def test_zero(self) -> None:
        assert money_display(Decimal("0")) == "$0.00"


class TestDatetimeUtils:
    def test_utc_now_is_aware(self) -> None:
        assert utc_now().tzinfo == UTC

    def test_to_iso(self) -> None:
        assert to_iso(datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)) == "2026-01-02T03:04:05+00:00"
        assert to_iso(None) is None
