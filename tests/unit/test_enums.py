"""Tests for ms_common.enums — values must match DB CHECK constraints."""

import pytest

from src.ms_common.enums import SALES_STATUSES, OrderStatus, PaymentStatus, UserRole


class TestValues:
    def test_order_status_values(self) -> None:
        assert {s.value for s in OrderStatus} == {
            "PENDING_PAYMENT", "PAID", "SHIPPED", "DELIVERED", "CANCELLED",
        }

    def test_payment_status_values(self) -> None:
        assert {s.value for s in PaymentStatus} == {
            "pending", "in_process", "approved", "rejected", "cancelled",
        }

    def test_user_role_is_str(self) -> None:
        assert isinstance(UserRole.ADMIN, str)
        assert UserRole.ADMIN == "ADMIN"


class TestOrderStateMachine:
    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (OrderStatus.PENDING_PAYMENT, OrderStatus.PAID),
            (OrderStatus.PENDING_PAYMENT, OrderStatus.CANCELLED),
            (OrderStatus.PAID, OrderStatus.SHIPPED),
            (OrderStatus.PAID, OrderStatus.CANCELLED),
            (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
        ],
    )
    def test_allowed(self, current: OrderStatus, target: OrderStatus) -> None:
        assert current.can_transition_to(target)

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (OrderStatus.PENDING_PAYMENT, OrderStatus.SHIPPED),
            (OrderStatus.PAID, OrderStatus.PENDING_PAYMENT),
            (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
            (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
            (OrderStatus.CANCELLED, OrderStatus.PAID),
        ],
    )
    def test_rejected(self, current: OrderStatus, target: OrderStatus) -> None:
        assert not current.can_transition_to(target)

    def test_final_states(self) -> None:
        assert {s for s in OrderStatus if s.is_final} == {
            OrderStatus.DELIVERED, OrderStatus.CANCELLED,
        }

    def test_holds_stock(self) -> None:
        assert {s for s in OrderStatus if s.holds_stock} == {
            OrderStatus.PAID, OrderStatus.SHIPPED,
        }

    def test_sales_statuses(self) -> None:
        assert OrderStatus.PENDING_PAYMENT not in SALES_STATUSES
        assert OrderStatus.CANCELLED not in SALES_STATUSES
        assert OrderStatus.DELIVERED in SALES_STATUSES


class TestPaymentStatus:
    def test_open_and_final(self) -> None:
        assert PaymentStatus.PENDING.is_open
        assert PaymentStatus.IN_PROCESS.is_open
        assert PaymentStatus.APPROVED.is_final
        assert PaymentStatus.REJECTED.is_final
        assert PaymentStatus.CANCELLED.is_final

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("approved", PaymentStatus.APPROVED),
            (" APPROVED ", PaymentStatus.APPROVED),
            ("rejected", PaymentStatus.REJECTED),
            ("in_process", PaymentStatus.IN_PROCESS),
            ("authorized", PaymentStatus.IN_PROCESS),
            ("in_mediation", PaymentStatus.IN_PROCESS),
            ("cancelled", PaymentStatus.CANCELLED),
        ],
    )
    def test_from_gateway(self, raw: str, expected: PaymentStatus) -> None:
        assert PaymentStatus.from_gateway(raw) == expected

    @pytest.mark.parametrize("raw", ["refunded", "charged_back", "", None])
    def test_from_gateway_unknown(self, raw: str | None) -> None:
        assert PaymentStatus.from_gateway(raw) is None
