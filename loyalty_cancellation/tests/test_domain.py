"""
Tests for domain model validation and derived values.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from loyalty_cancellation.domain import (
    BookingStatus,
    CancellationResult,
    CancellationStepStatus,
    CancellationStepType,
    CashRefund,
    LineItemStatus,
    LineOfBusiness,
    derive_booking_status,
)
from loyalty_cancellation.tests.factories import (
    minimal_booking,
    minimal_line_item,
    minimal_plan,
    minimal_step,
)

CANCELLED_AT = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _item(item_id: str, status: LineItemStatus):
    cancelled_at = CANCELLED_AT if status == LineItemStatus.CANCELLED else None
    return minimal_line_item(
        id=item_id, status=status, cancelled_at=cancelled_at
    )


class TestLineItem:
    def test_negative_cash_rejected(self) -> None:
        with pytest.raises(ValidationError, match="non-negative"):
            minimal_line_item(cash_amount=Decimal("-1"))

    def test_negative_points_rejected(self) -> None:
        with pytest.raises(ValidationError, match="non-negative"):
            minimal_line_item(points_redeemed=-5)

    def test_cancelled_item_requires_timestamp(self) -> None:
        with pytest.raises(ValidationError, match="cancelled_at"):
            minimal_line_item(status=LineItemStatus.CANCELLED)

    def test_cash_refund_includes_taxes_and_fees(self) -> None:
        item = minimal_line_item(
            cash_amount=Decimal("100.00"),
            taxes=Decimal("12.50"),
            fees=Decimal("2.50"),
        )
        assert item.cash_refund_amount == Decimal("115.00")

    def test_taxes_without_cash_are_not_refunded(self) -> None:
        item = minimal_line_item(taxes=Decimal("12.50"))
        assert item.cash_refund_amount == Decimal("0")


class TestBookingStatus:
    @pytest.mark.parametrize(
        "statuses,expected",
        [
            ([LineItemStatus.ACTIVE], BookingStatus.ACTIVE),
            (
                [LineItemStatus.ACTIVE, LineItemStatus.CANCELLED],
                BookingStatus.PARTIALLY_CANCELLED,
            ),
            (
                [LineItemStatus.CANCELLED, LineItemStatus.CANCELLED],
                BookingStatus.FULLY_CANCELLED,
            ),
            (
                [LineItemStatus.CANCELLED, LineItemStatus.CANCELLING],
                BookingStatus.FULLY_CANCELLED,
            ),
            (
                [
                    LineItemStatus.CANCELLED,
                    LineItemStatus.PENDING_CANCELLATION,
                ],
                BookingStatus.FULLY_CANCELLED,
            ),
            (
                [
                    LineItemStatus.ACTIVE,
                    LineItemStatus.CANCELLED,
                    LineItemStatus.PENDING_CANCELLATION,
                ],
                BookingStatus.PARTIALLY_CANCELLED,
            ),
            (
                [LineItemStatus.ACTIVE, LineItemStatus.PENDING_CANCELLATION],
                BookingStatus.PENDING_CANCELLATION,
            ),
            (
                [LineItemStatus.CANCELLING, LineItemStatus.CANCELLING],
                BookingStatus.PENDING_CANCELLATION,
            ),
            ([], BookingStatus.ACTIVE),
        ],
    )
    def test_status_is_derived_from_line_items(
        self, statuses, expected
    ) -> None:
        items = [_item(f"LI-{i}", s) for i, s in enumerate(statuses)]
        assert derive_booking_status(items) == expected
        assert minimal_booking(line_items=items).status == expected

    def test_status_cannot_be_assigned(self) -> None:
        booking = minimal_booking()
        with pytest.raises((AttributeError, ValueError)):
            booking.status = BookingStatus.FULLY_CANCELLED  # type: ignore

    def test_status_ignored_on_input(self) -> None:
        booking = minimal_booking(status="FULLY_CANCELLED")
        assert booking.status == BookingStatus.ACTIVE

    def test_duplicate_line_item_ids_rejected(self) -> None:
        with pytest.raises(ValidationError, match="unique"):
            minimal_booking(
                line_items=[
                    minimal_line_item(id="LI-1"),
                    minimal_line_item(id="LI-1"),
                ]
            )

    def test_totals(self) -> None:
        booking = minimal_booking(
            line_items=[
                minimal_line_item(
                    id="A",
                    cash_amount=Decimal("100"),
                    taxes=Decimal("10"),
                    points_redeemed=500,
                ),
                minimal_line_item(
                    id="B",
                    cash_amount=Decimal("50"),
                    fees=Decimal("5"),
                    points_earned=70,
                ),
            ]
        )
        assert booking.total_cash_amount == Decimal("150")
        assert booking.total_taxes_and_fees == Decimal("15")
        assert booking.total_points_redeemed == 500
        assert booking.total_points_earned == 70

    def test_serialised_booking_round_trips_with_status(self) -> None:
        booking = minimal_booking(
            line_items=[_item("A", LineItemStatus.CANCELLED)]
        )
        data = booking.model_dump(mode="json")
        assert data["status"] == "FULLY_CANCELLED"
        assert type(booking).model_validate(data) == booking


class TestCancellationPlan:
    def test_totals_and_net_change(self) -> None:
        plan = minimal_plan(
            steps=[
                minimal_step(amount=3000),
                minimal_step(
                    step_type=CancellationStepType.ACCRUAL_CANCEL,
                    journal_id="J2",
                    amount=1200,
                ),
            ],
            cash_refunds=[
                CashRefund(
                    line_item_id="LI-1",
                    lob=LineOfBusiness.HOTEL,
                    amount=Decimal("115.00"),
                )
            ],
        )
        assert plan.total_points_to_refund == 3000
        assert plan.total_points_to_cancel == 1200
        assert plan.net_points_change == 1800
        assert plan.total_cash_refund == Decimal("115.00")

    def test_plan_is_frozen(self) -> None:
        plan = minimal_plan()
        with pytest.raises(ValidationError):
            plan.booking_id = "other"  # type: ignore[misc]

    def test_step_amount_must_be_positive(self) -> None:
        with pytest.raises(ValidationError, match="positive"):
            minimal_step(amount=0)


class TestCancellationResult:
    def _result(self, *statuses: CancellationStepStatus):
        steps = [
            minimal_step(journal_id=f"J{i}", status=status)
            for i, status in enumerate(statuses)
        ]
        return CancellationResult(plan=minimal_plan(steps=steps), steps=steps)

    def test_all_completed_is_success(self) -> None:
        result = self._result(
            CancellationStepStatus.COMPLETED, CancellationStepStatus.COMPLETED
        )
        assert result.success is True
        assert result.partial_success is False
        assert result.outcome == "success"

    def test_mixed_is_partial(self) -> None:
        result = self._result(
            CancellationStepStatus.COMPLETED, CancellationStepStatus.FAILED
        )
        assert result.success is False
        assert result.partial_success is True
        assert result.outcome == "partial"

    def test_nothing_completed_is_failed(self) -> None:
        result = self._result(CancellationStepStatus.FAILED)
        assert result.outcome == "failed"

    def test_zero_steps_is_not_success(self) -> None:
        result = self._result()
        assert result.success is False
        assert result.partial_success is False
        assert result.outcome == "failed"

    def test_actual_points_count_completed_steps_only(self) -> None:
        steps = [
            minimal_step(
                journal_id="J1",
                amount=500,
                status=CancellationStepStatus.COMPLETED,
            ),
            minimal_step(
                journal_id="J2",
                amount=700,
                status=CancellationStepStatus.FAILED,
            ),
            minimal_step(
                step_type=CancellationStepType.ACCRUAL_CANCEL,
                journal_id="J3",
                amount=90,
                status=CancellationStepStatus.COMPLETED,
            ),
        ]
        result = CancellationResult(plan=minimal_plan(steps=steps), steps=steps)
        assert result.actual_points_refunded == 500
        assert result.actual_points_cancelled == 90
