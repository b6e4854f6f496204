"""Unit tests for fixed-point money helpers."""

from decimal import Decimal

from src.ss_common.money import money_from_score, money_to_display, to_money


class TestToMoney:
    def test_rounds_half_up(self) -> None:
        assert to_money(Decimal("10.355")) == Decimal("10.36")
        assert to_money(Decimal("10.354")) == Decimal("10.35")

    def test_accepts_int_and_str(self) -> None:
        assert to_money(5) == Decimal("5.00")
        assert to_money("1.005") == Decimal("1.01")


class TestMoneyFromScore:
    def test_recovers_cents_from_float(self) -> None:
        assert money_from_score(1234.56) == Decimal("1234.56")
        assert money_from_score(0.1 + 0.2) == Decimal("0.30")


class TestMoneyToDisplay:
    def test_thousands_separator(self) -> None:
        assert money_to_display(Decimal("1234.5")) == "$1,234.50"

    def test_negative(self) -> None:
        assert money_to_display(Decimal("-12")) == "-$12.00"
