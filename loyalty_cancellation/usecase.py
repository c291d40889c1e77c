"""
cancellation usecase, free of infrastructure imports.
the booking store and the ledger arrive as injected repository instances.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, Optional, Union

from loyalty_cancellation.domain import (
    Booking,
    CancellationPlan,
    CancellationRequest,
    CancellationResult,
    LineItemStatus,
    utc_now,
)
from loyalty_cancellation.exceptions import BookingNotFoundError
from loyalty_cancellation.executor import CancellationExecutor
from loyalty_cancellation.planner import CancellationPlanner
from loyalty_cancellation.repositories import (
    BookingRepository,
    LedgerGateway,
    LineItemMirror,
)
from loyalty_cancellation.validation import (
    ensure_booking_repository,
    ensure_ledger_gateway,
)

logger = logging.getLogger(__name__)


class CancellationUseCase:
    """
    Use case for previewing and confirming booking cancellations.

    Preview plans only and never mutates anything. Confirm plans and then
    executes that exact plan; the executor never re-plans.

    In workflow contexts this use case is called from workflow code with
    repository proxies that delegate to Temporal activities. The use case
    does not know which kind of repository it was given.

    Architectural Notes:
    - Repository dependencies are injected via constructor and validated
      against their protocols
    - Confirmations for the same booking id are serialised through a
      per-booking asyncio.Lock held across planning and execution
    - Planning errors are raised; execution problems come back as data on
      the CancellationResult
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
        """Initialize cancellation use case.

        Args:
            booking_repo: Repository holding the bookings
            ledger_gateway: Gateway to the loyalty ledger
            clock: Source of timestamps; workflows pass workflow.now
            failed_reversal_status: Status for line items whose reversal
                failed, CANCELLED or PENDING_CANCELLATION
            line_item_mirror: Optional CRM copy to update after the booking
        """
        self.booking_repo = ensure_booking_repository(booking_repo)
        self.ledger_gateway = ensure_ledger_gateway(ledger_gateway)
        self.planner = CancellationPlanner(self.ledger_gateway, clock=clock)
        self.executor = CancellationExecutor(
            self.booking_repo,
            self.ledger_gateway,
            clock=clock,
            failed_reversal_status=failed_reversal_status,
            line_item_mirror=line_item_mirror,
        )
        # Per-booking lock and the number of confirms holding or awaiting it
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    async def preview(
        self, booking_id: str, request: Optional[CancellationRequest] = None
    ) -> CancellationPlan:
        """
        Show what cancelling would do without doing it.

        Raises:
            BookingNotFoundError: No booking with this id
            NothingToCancelError: Nothing in scope can be reversed
        """
        request = request or CancellationRequest()
        logger.info(
            "Previewing cancellation",
            extra={
                "booking_id": booking_id,
                "line_item_ids": request.line_item_ids,
            },
        )
        booking = await self._load_booking(booking_id)
        return await self.planner.create_plan(
            booking,
            request.line_item_ids,
            request.reason,
            request.requested_by,
        )

    async def confirm(
        self, booking_id: str, request: Optional[CancellationRequest] = None
    ) -> CancellationResult:
        """
        Plan and execute a cancellation.

        Planning errors are raised before anything is mutated. Once a plan
        exists the result is always returned, failures included.

        Raises:
            BookingNotFoundError: No booking with this id
            NothingToCancelError: Nothing in scope can be reversed
        """
        request = request or CancellationRequest()
        lock = self._locks.setdefault(booking_id, asyncio.Lock())
        self._lock_users[booking_id] = self._lock_users.get(booking_id, 0) + 1
        if lock.locked():
            logger.info(
                "Waiting for running cancellation of booking",
                extra={"booking_id": booking_id},
            )

        try:
            async with lock:
                logger.info(
                    "Confirming cancellation",
                    extra={
                        "booking_id": booking_id,
                        "line_item_ids": request.line_item_ids,
                        "requested_by": request.requested_by,
                    },
                )
                booking = await self._load_booking(booking_id)
                plan = await self.planner.create_plan(
                    booking,
                    request.line_item_ids,
                    request.reason,
                    request.requested_by,
                )
                return await self.executor.execute(plan)
        finally:
            self._release_lock(booking_id)

    def _release_lock(self, booking_id: str) -> None:
        self._lock_users[booking_id] -= 1
        if self._lock_users[booking_id] == 0:
            del self._lock_users[booking_id]
            del self._locks[booking_id]

    async def get_booking(self, booking_id: str) -> Booking:
        """Fetch a booking, raising BookingNotFoundError when missing."""
        return await self._load_booking(booking_id)

    async def _load_booking(self, booking_id: str) -> Booking:
        booking = await self.booking_repo.get_booking(booking_id)
        if booking is None:
            logger.warning(
                "Booking not found", extra={"booking_id": booking_id}
            )
            raise BookingNotFoundError(booking_id)
        return booking
