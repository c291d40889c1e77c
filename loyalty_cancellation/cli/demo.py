"""
CLI for a booking cancellation demo against in-memory backends.

Seeds a three-item booking (a points-redeemed flight, a hotel that earned
points and a cash-only car), previews a cancellation and, with --confirm,
executes it. Ledger failures can be scripted per journal to see partial
outcomes.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Sequence

import click

from loyalty_cancellation.domain import (
    Booking,
    CancellationPlan,
    CancellationRequest,
    CancellationResult,
    LedgerEntry,
    LineItem,
    LineItemStatus,
    LineOfBusiness,
)
from loyalty_cancellation.exceptions import PlanningError
from loyalty_cancellation.repos.memory import (
    MemoryBookingRepository,
    MemoryLedgerGateway,
)
from loyalty_cancellation.usecase import CancellationUseCase

logger = logging.getLogger(__name__)

DEMO_BOOKING_ID = "BK-1001"


def demo_booking() -> Booking:
    return Booking(
        id=DEMO_BOOKING_ID,
        external_transaction_number="TXN-1001",
        member_id="MBR-001",
        membership_number="100200300",
        channel="Web",
        line_items=[
            LineItem(
                id="LI-FLIGHT",
                lob=LineOfBusiness.FLIGHT,
                product_name="SFO to LHR, economy",
                cash_amount=Decimal("150.00"),
                taxes=Decimal("42.50"),
                fees=Decimal("7.50"),
                points_redeemed=25000,
                redemption_journal_id="JRN-R-1",
            ),
            LineItem(
                id="LI-HOTEL",
                lob=LineOfBusiness.HOTEL,
                product_name="Harbour View Hotel",
                nights=3,
                destination_city="London",
                cash_amount=Decimal("600.00"),
                taxes=Decimal("60.00"),
                points_earned=1200,
                accrual_journal_id="JRN-A-1",
            ),
            LineItem(
                id="LI-CAR",
                lob=LineOfBusiness.CAR,
                product_name="Compact rental",
                cash_amount=Decimal("90.00"),
            ),
        ],
    )


def _echo_plan(plan: CancellationPlan) -> None:
    click.echo(f"Plan for booking {plan.booking_id}")
    click.echo(f"  Line items in scope: {', '.join(plan.line_item_ids)}")
    for i, step in enumerate(plan.steps, 1):
        click.echo(
            f"  {i}. {step.step_type.value} {step.amount} points "
            f"({step.lob.value}, journal {step.journal_id})"
        )
    click.echo(f"  Points to refund: {plan.total_points_to_refund}")
    click.echo(f"  Points to cancel: {plan.total_points_to_cancel}")
    click.echo(f"  Net points change: {plan.net_points_change}")
    click.echo(f"  Cash refund: {plan.total_cash_refund}")


def _echo_result(result: CancellationResult) -> None:
    click.echo(f"Outcome: {result.outcome.upper()}")
    for step in result.steps:
        line = (
            f"  {step.step_type.value} {step.journal_id}: {step.status.value}"
        )
        if step.cancellation_id:
            line += f" ({step.cancellation_id})"
        click.echo(line)
    click.echo(f"  Points refunded: {result.actual_points_refunded}")
    click.echo(f"  Points cancelled: {result.actual_points_cancelled}")
    click.echo(f"  Cash refund: {result.actual_cash_refund}")
    if result.booking_status:
        click.echo(f"  Booking status: {result.booking_status.value}")
    for error in result.errors:
        click.echo(f"  Error: {error}", err=True)


async def _main(
    line_item_ids: Sequence[str],
    fail_journals: Sequence[str],
    reason: str,
    requested_by: str,
    confirm: bool,
    pending_on_failure: bool,
) -> int:
    booking_repo = MemoryBookingRepository()
    await booking_repo.save_booking(demo_booking())

    ledger = MemoryLedgerGateway(
        entries={
            "JRN-R-1": [
                LedgerEntry(
                    id="LL-1",
                    journal_id="JRN-R-1",
                    points=-25000,
                    event_type="Debit",
                    currency_name="Miles",
                )
            ],
            "JRN-A-1": [
                LedgerEntry(
                    id="LL-2",
                    journal_id="JRN-A-1",
                    points=1200,
                    event_type="Credit",
                    currency_name="Miles",
                )
            ],
        }
    )
    for journal_id in fail_journals:
        ledger.fail_journal(journal_id, "Transaction journal is locked")

    use_case = CancellationUseCase(
        booking_repo=booking_repo,
        ledger_gateway=ledger,
        failed_reversal_status=(
            LineItemStatus.PENDING_CANCELLATION
            if pending_on_failure
            else LineItemStatus.CANCELLED
        ),
    )
    request = CancellationRequest(
        line_item_ids=list(line_item_ids) or None,
        reason=reason,
        requested_by=requested_by,
    )

    click.echo("Booking Cancellation Demo (In-Memory)")
    click.echo("=" * 50)
    try:
        plan = await use_case.preview(DEMO_BOOKING_ID, request)
    except PlanningError as e:
        click.echo(f"Error: {e}", err=True)
        return 1
    _echo_plan(plan)

    if not confirm:
        click.echo()
        click.echo("Preview only. Re-run with --confirm to execute.")
        return 0

    click.echo()
    result = await use_case.confirm(DEMO_BOOKING_ID, request)
    _echo_result(result)
    booking = await use_case.get_booking(DEMO_BOOKING_ID)
    for item in booking.line_items:
        click.echo(f"  {item.id}: {item.status.value}")
    return 0 if result.outcome == "success" else 2


@click.command()
@click.option(
    "--line-item",
    "line_item_ids",
    multiple=True,
    help="Line item to cancel; repeat for several. Defaults to all.",
)
@click.option(
    "--fail-journal",
    "fail_journals",
    multiple=True,
    help="Journal id whose reversal the fake ledger rejects.",
)
@click.option("--reason", default="Member request", show_default=True)
@click.option("--requested-by", default="demo-agent", show_default=True)
@click.option(
    "--confirm/--preview-only",
    default=False,
    help="Execute the cancellation after previewing it.",
)
@click.option(
    "--pending-on-failure",
    is_flag=True,
    help="Leave items whose reversal failed in PENDING_CANCELLATION.",
)
@click.option("--log-level", default="WARNING", show_default=True)
def main(
    line_item_ids: Sequence[str],
    fail_journals: Sequence[str],
    reason: str,
    requested_by: str,
    confirm: bool,
    pending_on_failure: bool,
    log_level: str,
) -> None:
    """Preview and optionally confirm a demo booking cancellation."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    exit_code = asyncio.run(
        _main(
            line_item_ids,
            fail_journals,
            reason,
            requested_by,
            confirm,
            pending_on_failure,
        )
    )
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
