"""
Workflow-side proxies for BookingRepository, LedgerGateway and
LineItemMirror.

These classes are used *inside* Temporal workflows. Every method call is
turned into an activity call, keeping the workflow deterministic.
"""

from datetime import timedelta

from temporalio.common import RetryPolicy

from loyalty_cancellation.repos.temporal.activity_names import (
    BOOKING_ACTIVITY_BASE,
    LEDGER_ACTIVITY_BASE,
    LINE_ITEM_MIRROR_ACTIVITY_BASE,
)
from loyalty_cancellation.repos.temporal.decorators import (
    temporal_workflow_proxy,
)
from loyalty_cancellation.repositories import (
    BookingRepository,
    LedgerGateway,
    LineItemMirror,
)

# Booking writes are idempotent, so a few attempts are safe
BOOKING_RETRY_POLICY = RetryPolicy(
    initial_interval=timedelta(seconds=1),
    backoff_coefficient=2.0,
    maximum_interval=timedelta(seconds=10),
    maximum_attempts=5,
)


@temporal_workflow_proxy(
    BOOKING_ACTIVITY_BASE,
    default_timeout_seconds=10,
    retry_policy=BOOKING_RETRY_POLICY,
)
class WorkflowBookingRepositoryProxy(BookingRepository):
    """BookingRepository whose methods run as activities."""

    pass


@temporal_workflow_proxy(
    LEDGER_ACTIVITY_BASE,
    default_timeout_seconds=30,
    fail_fast_methods=[
        "reverse_redemption",
        "reverse_accrual",
        "get_ledger_entries",
    ],
)
class WorkflowLedgerGatewayProxy(LedgerGateway):
    """LedgerGateway whose methods run as single-attempt activities."""

    pass


@temporal_workflow_proxy(
    LINE_ITEM_MIRROR_ACTIVITY_BASE,
    default_timeout_seconds=30,
    retry_policy=BOOKING_RETRY_POLICY,
)
class WorkflowLineItemMirrorProxy(LineItemMirror):
    """LineItemMirror whose updates run as retried activities."""

    pass
