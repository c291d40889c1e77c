"""
Repository interfaces defined as Protocols.

The cancellation workflow depends on these collaborators:

- **BookingRepository** owns the canonical booking records. The workflow
  reads a booking once to plan and writes line-item status changes once
  the ledger steps have run.

- **LedgerGateway** fronts the external loyalty platform, which is the
  source of truth for points. The workflow only ever asks it to reverse a
  journal or to describe one.

- **LineItemMirror** (optional) copies line-item cancellations to the CRM
  org that holds a read copy of each booking.

Architectural Notes:

- These are pure interfaces with no implementation details
- Use case, planner and executor depend on these protocols, not on the
  Minio, HTTP or in-memory implementations
- In Temporal workflow contexts the protocols are satisfied by proxies that
  delegate every call to an activity, so all methods take positional
  arguments and return domain objects or primitives
"""

from typing import List, Optional, Protocol, runtime_checkable

from loyalty_cancellation.domain import (
    Booking,
    LedgerEntry,
    LedgerReversalOutcome,
    LineItemCancellation,
    LineItemMirrorResult,
    LineItemStatus,
)


@runtime_checkable
class BookingRepository(Protocol):
    """Reads and updates booking records.

    Booking status is derived from line-item statuses, so implementations
    never store it independently; updating a line item is enough to move
    the booking between ACTIVE, PARTIALLY_CANCELLED and FULLY_CANCELLED.
    """

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        """Retrieve a booking by ID.

        Args:
            booking_id: Internal booking identifier

        Returns:
            Booking if found, None otherwise

        Implementation Notes:
        - Must be idempotent
        - Should return None for missing bookings rather than raise
        """
        ...

    async def save_booking(self, booking: Booking) -> None:
        """Persist the full state of a booking.

        Implementation Notes:
        - Must be idempotent: saving the same booking twice is safe
        """
        ...

    async def update_line_item_status(
        self,
        booking_id: str,
        line_item_id: str,
        status: LineItemStatus,
        details: LineItemCancellation,
    ) -> bool:
        """Set the status of one line item and record cancellation details.

        Args:
            booking_id: Booking owning the line item
            line_item_id: Line item to update
            status: New line-item status
            details: Timestamp, reason and actor for the change

        Returns:
            True if the line item was updated, False if the booking or line
            item does not exist

        Implementation Notes:
        - Must be idempotent: applying the same update twice is safe
        - Storage failures are raised; the executor records them
        """
        ...


@runtime_checkable
class LedgerGateway(Protocol):
    """Reverses and describes journals held by the loyalty platform.

    Reversal calls are not retried by the workflow. A call that raises or
    returns ``ok=False`` marks its step FAILED and the batch continues.
    """

    async def reverse_redemption(
        self, journal_id: str
    ) -> LedgerReversalOutcome:
        """Return redeemed points to the member.

        Args:
            journal_id: Redemption journal to cancel

        Returns:
            LedgerReversalOutcome with ``ok`` set on success and the raw
            platform payload attached for reconciliation
        """
        ...

    async def reverse_accrual(self, journal_id: str) -> LedgerReversalOutcome:
        """Remove points the member earned on a purchase.

        Args:
            journal_id: Accrual journal to cancel

        Returns:
            LedgerReversalOutcome, as for reverse_redemption
        """
        ...

    async def get_ledger_entries(self, journal_id: str) -> List[LedgerEntry]:
        """List the ledger rows a journal produced.

        Used for preview transparency only. Callers treat failures as an
        empty list.
        """
        ...


@runtime_checkable
class LineItemMirror(Protocol):
    """Copies line-item cancellations to the CRM that mirrors bookings.

    Optional collaborator. The booking store stays the record of truth; a
    mirror failure never changes a line item's status and is reported in
    the result's ``errors``.
    """

    async def cancel_line_item(
        self, line_item_id: str, details: LineItemCancellation
    ) -> LineItemMirrorResult:
        """Mark the CRM copy of a line item CANCELLED.

        Args:
            line_item_id: Line item id as known to the booking store
            details: Timestamp, reason and actor to record

        Returns:
            LineItemMirrorResult with ``ok`` unset and ``error`` filled
            when the CRM has no such line item or rejects the update
        """
        ...
