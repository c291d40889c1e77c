"""
Cancellation planning.

The planner turns a booking and a requested scope into a CancellationPlan.
It reads ledger entries for display but never mutates the booking or the
ledger, so a plan can be previewed as often as the caller likes.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from loyalty_cancellation.domain import (
    Booking,
    CancellationPlan,
    CancellationStep,
    CancellationStepType,
    CashRefund,
    LineItem,
    LineItemStatus,
    utc_now,
)
from loyalty_cancellation.exceptions import NothingToCancelError
from loyalty_cancellation.repositories import LedgerGateway
from loyalty_cancellation.validation import ensure_ledger_gateway

logger = logging.getLogger(__name__)

DEFAULT_CANCELLATION_REASON = "Cancelled at member request"


class CancellationPlanner:
    """
    Builds cancellation plans from bookings.

    Steps are emitted per line item in booking order, a redemption refund
    before an accrual cancel for the same item. Execution order across the
    whole plan is the executor's concern.
    """

    def __init__(
        self,
        ledger_gateway: LedgerGateway,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.ledger_gateway = ensure_ledger_gateway(ledger_gateway)
        self.clock = clock

    async def create_plan(
        self,
        booking: Booking,
        line_item_ids: Optional[List[str]] = None,
        reason: Optional[str] = None,
        requested_by: Optional[str] = None,
    ) -> CancellationPlan:
        """
        Plan the ledger reversals needed to cancel part or all of a booking.

        Args:
            booking: Booking to cancel
            line_item_ids: Line items in scope; None means every line item.
                Ids that do not belong to the booking are ignored.
            reason: Cancellation reason recorded on the line items;
                DEFAULT_CANCELLATION_REASON when missing or blank
            requested_by: Actor recorded on the line items

        Returns:
            CancellationPlan covering the ACTIVE line items in scope

        Raises:
            NothingToCancelError: No step and no cash refund would result
        """
        logger.debug(
            "Creating cancellation plan",
            extra={
                "booking_id": booking.id,
                "requested_line_item_ids": line_item_ids,
                "line_item_count": len(booking.line_items),
            },
        )

        in_scope = self._select_line_items(booking, line_item_ids)

        steps: List[CancellationStep] = []
        cash_refunds: List[CashRefund] = []
        for item in in_scope:
            steps.extend(self._steps_for(item))
            if item.cash_amount > 0:
                cash_refunds.append(
                    CashRefund(
                        line_item_id=item.id,
                        lob=item.lob,
                        amount=item.cash_refund_amount,
                        currency=item.currency,
                    )
                )

        if not steps and not cash_refunds:
            logger.info(
                "Nothing to cancel",
                extra={
                    "booking_id": booking.id,
                    "booking_status": booking.status.value,
                },
            )
            raise NothingToCancelError(booking.id)

        for step in steps:
            step.ledger_entries = await self._fetch_ledger_entries(
                booking.id, step.journal_id
            )

        plan = CancellationPlan(
            booking_id=booking.id,
            line_item_ids=[item.id for item in in_scope],
            reason=(reason or "").strip() or DEFAULT_CANCELLATION_REASON,
            requested_by=requested_by,
            steps=steps,
            cash_refunds=cash_refunds,
            created_at=self.clock(),
        )

        logger.info(
            "Cancellation plan created",
            extra={
                "booking_id": booking.id,
                "step_count": len(plan.steps),
                "total_points_to_refund": plan.total_points_to_refund,
                "total_points_to_cancel": plan.total_points_to_cancel,
                "total_cash_refund": str(plan.total_cash_refund),
            },
        )
        return plan

    def _select_line_items(
        self, booking: Booking, line_item_ids: Optional[List[str]]
    ) -> List[LineItem]:
        if line_item_ids is None:
            candidates = list(booking.line_items)
        else:
            wanted = set(line_item_ids)
            candidates = [
                item for item in booking.line_items if item.id in wanted
            ]
            unknown = wanted - {item.id for item in booking.line_items}
            if unknown:
                logger.debug(
                    "Ignoring line item ids not on booking",
                    extra={
                        "booking_id": booking.id,
                        "unknown_line_item_ids": sorted(unknown),
                    },
                )

        return [
            item for item in candidates if item.status == LineItemStatus.ACTIVE
        ]

    def _steps_for(self, item: LineItem) -> List[CancellationStep]:
        steps = []
        if item.redemption_journal_id and item.points_redeemed > 0:
            steps.append(
                CancellationStep(
                    step_type=CancellationStepType.REDEMPTION_REFUND,
                    line_item_id=item.id,
                    lob=item.lob,
                    journal_id=item.redemption_journal_id,
                    amount=item.points_redeemed,
                    currency=item.currency,
                )
            )
        if item.accrual_journal_id and item.points_earned > 0:
            steps.append(
                CancellationStep(
                    step_type=CancellationStepType.ACCRUAL_CANCEL,
                    line_item_id=item.id,
                    lob=item.lob,
                    journal_id=item.accrual_journal_id,
                    amount=item.points_earned,
                    currency=item.currency,
                )
            )
        return steps

    async def _fetch_ledger_entries(self, booking_id: str, journal_id: str):
        try:
            return list(await self.ledger_gateway.get_ledger_entries(journal_id))
        except Exception as e:
            logger.warning(
                "Could not fetch ledger entries, continuing without them",
                extra={
                    "booking_id": booking_id,
                    "journal_id": journal_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            return []
