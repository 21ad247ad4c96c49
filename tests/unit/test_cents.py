"""Tests for ms_common.cents — integer money utilities."""

from decimal import Decimal

from src.ms_common.cents import (
    amount_to_cents,
    cents_to_amount,
    cents_to_display,
    prices_differ,
)


class TestCentsToDisplay:
    def test_basic(self) -> None:
        assert cents_to_display(6500) == "$65.00"

    def test_zero(self) -> None:
        assert cents_to_display(0) == "$0.00"

    def test_one_cent(self) -> None:
        assert cents_to_display(1) == "$0.01"

    def test_large(self) -> None:
        assert cents_to_display(150000) == "$1,500.00"

    def test_negative(self) -> None:
        assert cents_to_display(-1200) == "-$12.00"


class TestPricesDiffer:
    def test_same_price(self) -> None:
        assert prices_differ(10000, 10000) is False

    def test_one_cent_is_noise(self) -> None:
        assert prices_differ(10000, 10001) is False
        assert prices_differ(10000, 9999) is False

    def test_two_cents_is_a_change(self) -> None:
        assert prices_differ(10000, 10002) is True
        assert prices_differ(10000, 9998) is True


class TestGatewayAmounts:
    def test_cents_to_amount(self) -> None:
        assert cents_to_amount(12345) == Decimal("123.45")
        assert cents_to_amount(5) == Decimal("0.05")

    def test_amount_to_cents_from_float(self) -> None:
        assert amount_to_cents(123.45) == 12345

    def test_amount_to_cents_rounds_half_up(self) -> None:
        assert amount_to_cents("0.005") == 1
        assert amount_to_cents(Decimal("10.004")) == 1000

    def test_amount_to_cents_from_int(self) -> None:
        assert amount_to_cents(150) == 15000
