"""
Cancellation execution.

The executor runs a plan's ledger reversals and then records the
cancellation on the booking. It is a best-effort batch processor: a failed
reversal or a failed status write is recorded on the result and the rest of
the batch carries on. Once a plan has been handed over, ``execute`` always
returns a CancellationResult.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional, Set, Union

from loyalty_cancellation.domain import (
    CancellationPlan,
    CancellationResult,
    CancellationStep,
    CancellationStepStatus,
    CancellationStepType,
    LedgerReversalOutcome,
    LineItemCancellation,
    LineItemStatus,
    utc_now,
)
from loyalty_cancellation.exceptions import (
    PersistenceError,
    StepExecutionError,
)
from loyalty_cancellation.repositories import (
    BookingRepository,
    LedgerGateway,
    LineItemMirror,
)
from loyalty_cancellation.validation import (
    ensure_booking_repository,
    ensure_ledger_gateway,
    ensure_line_item_mirror,
)

logger = logging.getLogger(__name__)

STEP_LABELS = {
    CancellationStepType.REDEMPTION_REFUND: "Redemption refund",
    CancellationStepType.ACCRUAL_CANCEL: "Accrual cancellation",
}

# Statuses a line item may be left in after a failed reversal
FAILED_REVERSAL_STATUSES = (
    LineItemStatus.CANCELLED,
    LineItemStatus.PENDING_CANCELLATION,
)


class CancellationExecutor:
    """
    Executes cancellation plans against the ledger and the booking store.

    Every redemption refund is run to a terminal state before the first
    accrual cancel starts, so members get points back before any are taken
    away. Within each phase steps run one at a time in plan order.

    By default every line item in the plan is marked CANCELLED, including
    items whose reversal failed; those failures are left in ``errors`` for
    reconciliation. Passing ``failed_reversal_status=PENDING_CANCELLATION``
    instead parks such items until someone reconciles them by hand.
    """

    def __init__(
        self,
        booking_repo: BookingRepository,
        ledger_gateway: LedgerGateway,
        clock: Callable[[], datetime] = utc_now,
        failed_reversal_status: Union[
            LineItemStatus, str
        ] = LineItemStatus.CANCELLED,
        line_item_mirror: Optional[LineItemMirror] = None,
    ) -> None:
        self.booking_repo = ensure_booking_repository(booking_repo)
        self.ledger_gateway = ensure_ledger_gateway(ledger_gateway)
        self.line_item_mirror = (
            ensure_line_item_mirror(line_item_mirror)
            if line_item_mirror is not None
            else None
        )
        self.clock = clock

        status = LineItemStatus(failed_reversal_status)
        if status not in FAILED_REVERSAL_STATUSES:
            raise ValueError(
                "failed_reversal_status must be CANCELLED or "
                f"PENDING_CANCELLATION, got {status.value}"
            )
        self.failed_reversal_status = status

    async def execute(self, plan: CancellationPlan) -> CancellationResult:
        """
        Run every step of a plan and record the outcome on the booking.

        Args:
            plan: Plan produced by CancellationPlanner.create_plan

        Returns:
            CancellationResult holding executed copies of the plan's steps.
            The plan itself is left untouched.
        """
        logger.info(
            "Executing cancellation plan",
            extra={
                "booking_id": plan.booking_id,
                "step_count": len(plan.steps),
                "line_item_ids": plan.line_item_ids,
            },
        )

        steps = [step.model_copy(deep=True) for step in plan.steps]
        errors: List[str] = []

        # Points back to the member first, then points taken away
        for phase in (
            CancellationStepType.REDEMPTION_REFUND,
            CancellationStepType.ACCRUAL_CANCEL,
        ):
            for step in steps:
                if step.step_type == phase:
                    await self._run_step(plan.booking_id, step, errors)

        failed_items = {
            step.line_item_id
            for step in steps
            if step.status == CancellationStepStatus.FAILED
        }
        details = LineItemCancellation(
            cancelled_at=self.clock(),
            reason=plan.reason,
            cancelled_by=plan.requested_by,
        )
        cancelled_items = await self._update_line_items(
            plan, failed_items, details, errors
        )
        if self.line_item_mirror is not None:
            await self._mirror_line_items(
                plan,
                [i for i in plan.line_item_ids if i in cancelled_items],
                details,
                errors,
            )

        actual_cash_refund = sum(
            (
                refund.amount
                for refund in plan.cash_refunds
                if refund.line_item_id in cancelled_items
            ),
            Decimal("0"),
        )

        booking_status = None
        try:
            booking = await self.booking_repo.get_booking(plan.booking_id)
            if booking is not None:
                booking_status = booking.status
            else:
                errors.append(
                    f"Booking {plan.booking_id} could not be read back after "
                    "cancellation"
                )
        except Exception as e:
            errors.append(f"Booking status read failed: {e}")
            logger.error(
                "Could not read booking after cancellation",
                extra={
                    "booking_id": plan.booking_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )

        result = CancellationResult(
            plan=plan,
            steps=steps,
            errors=errors,
            actual_cash_refund=actual_cash_refund,
            booking_status=booking_status,
            completed_at=self.clock(),
        )

        logger.info(
            "Cancellation plan executed",
            extra={
                "booking_id": plan.booking_id,
                "outcome": result.outcome,
                "actual_points_refunded": result.actual_points_refunded,
                "actual_points_cancelled": result.actual_points_cancelled,
                "error_count": len(errors),
                "booking_status": (
                    booking_status.value if booking_status else None
                ),
            },
        )
        return result

    async def _run_step(
        self, booking_id: str, step: CancellationStep, errors: List[str]
    ) -> None:
        step.status = CancellationStepStatus.PROCESSING
        step.started_at = self.clock()

        logger.debug(
            "Reversing journal",
            extra={
                "booking_id": booking_id,
                "step_type": step.step_type.value,
                "journal_id": step.journal_id,
                "amount": step.amount,
            },
        )

        try:
            outcome = await self._reverse(step)
            step.ledger_response = outcome.raw
            if not outcome.ok:
                raise StepExecutionError(
                    outcome.message or "Ledger rejected the reversal"
                )
            step.status = CancellationStepStatus.COMPLETED
            step.cancellation_id = outcome.cancellation_id
            logger.info(
                "Journal reversed",
                extra={
                    "booking_id": booking_id,
                    "journal_id": step.journal_id,
                    "cancellation_id": step.cancellation_id,
                    "amount": step.amount,
                },
            )
        except Exception as e:
            step.status = CancellationStepStatus.FAILED
            step.error = str(e) or type(e).__name__
            errors.append(
                f"{STEP_LABELS[step.step_type]} failed for "
                f"{step.journal_id}: {step.error}"
            )
            logger.warning(
                "Journal reversal failed",
                extra={
                    "booking_id": booking_id,
                    "step_type": step.step_type.value,
                    "journal_id": step.journal_id,
                    "error": step.error,
                    "error_type": type(e).__name__,
                },
            )
        finally:
            step.completed_at = self.clock()

    async def _reverse(self, step: CancellationStep) -> LedgerReversalOutcome:
        if step.step_type == CancellationStepType.REDEMPTION_REFUND:
            return await self.ledger_gateway.reverse_redemption(
                step.journal_id
            )
        return await self.ledger_gateway.reverse_accrual(step.journal_id)

    async def _update_line_items(
        self,
        plan: CancellationPlan,
        failed_items: Set[str],
        details: LineItemCancellation,
        errors: List[str],
    ) -> Set[str]:
        """Write line-item statuses; returns the ids persisted as CANCELLED."""
        cancelled: Set[str] = set()

        for line_item_id in plan.line_item_ids:
            status = (
                self.failed_reversal_status
                if line_item_id in failed_items
                else LineItemStatus.CANCELLED
            )
            try:
                updated = await self.booking_repo.update_line_item_status(
                    plan.booking_id, line_item_id, status, details
                )
                if not updated:
                    raise PersistenceError(
                        f"line item {line_item_id} not found on booking "
                        f"{plan.booking_id}"
                    )
            except Exception as e:
                errors.append(
                    f"Line item status update failed for {line_item_id}: {e}"
                )
                logger.error(
                    "Line item status update failed",
                    extra={
                        "booking_id": plan.booking_id,
                        "line_item_id": line_item_id,
                        "status": status.value,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
                continue

            if status == LineItemStatus.CANCELLED:
                cancelled.add(line_item_id)

        return cancelled

    async def _mirror_line_items(
        self,
        plan: CancellationPlan,
        line_item_ids: List[str],
        details: LineItemCancellation,
        errors: List[str],
    ) -> None:
        """Copy cancellations to the CRM; failures become one error entry."""
        failures: List[str] = []
        for line_item_id in line_item_ids:
            try:
                mirrored = await self.line_item_mirror.cancel_line_item(
                    line_item_id, details
                )
                if not mirrored.ok:
                    failures.append(
                        f"{line_item_id}: {mirrored.error or 'rejected'}"
                    )
            except Exception as e:
                failures.append(
                    f"{line_item_id}: {str(e) or type(e).__name__}"
                )

        if failures:
            errors.append(
                f"CRM line item updates failed: {', '.join(failures)}"
            )
            logger.warning(
                "CRM line item mirror incomplete",
                extra={
                    "booking_id": plan.booking_id,
                    "failed_count": len(failures),
                    "mirrored_count": len(line_item_ids) - len(failures),
                },
            )
