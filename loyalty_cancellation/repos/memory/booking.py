"""
Memory implementation of BookingRepository.

Bookings are kept in a dictionary keyed by booking id. Stored bookings are
deep copies, so callers cannot change stored state by mutating a booking
they were handed. All operations are async to keep the protocol shape.
"""

import logging
from typing import Dict, Optional

from loyalty_cancellation.domain import (
    Booking,
    LineItemCancellation,
    LineItemStatus,
    utc_now,
)
from loyalty_cancellation.repositories import BookingRepository

logger = logging.getLogger(__name__)


class MemoryBookingRepository(BookingRepository):
    """
    Memory implementation of BookingRepository using a Python dictionary.

    This provides a lightweight, dependency-free option for tests and the
    demo CLI while keeping the interface of the Minio implementation.
    """

    def __init__(self) -> None:
        logger.debug("Initializing MemoryBookingRepository")
        self._bookings: Dict[str, Booking] = {}

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        booking = self._bookings.get(booking_id)
        if booking is None:
            logger.debug(
                "MemoryBookingRepository: Booking not found",
                extra={"booking_id": booking_id},
            )
            return None
        return booking.model_copy(deep=True)

    async def save_booking(self, booking: Booking) -> None:
        self._bookings[booking.id] = booking.model_copy(deep=True)
        logger.debug(
            "MemoryBookingRepository: Booking saved",
            extra={
                "booking_id": booking.id,
                "line_item_count": len(booking.line_items),
            },
        )

    async def update_line_item_status(
        self,
        booking_id: str,
        line_item_id: str,
        status: LineItemStatus,
        details: LineItemCancellation,
    ) -> bool:
        booking = self._bookings.get(booking_id)
        if booking is None:
            logger.warning(
                "MemoryBookingRepository: Cannot update line item of "
                "missing booking",
                extra={"booking_id": booking_id, "line_item_id": line_item_id},
            )
            return False

        updated = apply_line_item_status(
            booking, line_item_id, status, details
        )
        if updated is None:
            logger.warning(
                "MemoryBookingRepository: Line item not found",
                extra={"booking_id": booking_id, "line_item_id": line_item_id},
            )
            return False

        self._bookings[booking_id] = updated
        logger.info(
            "MemoryBookingRepository: Line item status updated",
            extra={
                "booking_id": booking_id,
                "line_item_id": line_item_id,
                "status": LineItemStatus(status).value,
                "booking_status": updated.status.value,
            },
        )
        return True


def apply_line_item_status(
    booking: Booking,
    line_item_id: str,
    status: LineItemStatus,
    details: LineItemCancellation,
) -> Optional[Booking]:
    """Return a copy of ``booking`` with one line item's status replaced.

    Returns None when the booking has no such line item. Shared by the
    memory and Minio repositories.
    """
    if booking.get_line_item(line_item_id) is None:
        return None

    status = LineItemStatus(status)
    line_items = []
    for item in booking.line_items:
        if item.id == line_item_id:
            item = item.model_copy(
                update={
                    "status": status,
                    "cancelled_at": (
                        details.cancelled_at
                        if status == LineItemStatus.CANCELLED
                        else item.cancelled_at
                    ),
                    "cancellation_reason": details.reason,
                    "cancelled_by": details.cancelled_by,
                }
            )
        line_items.append(item)

    return booking.model_copy(
        update={"line_items": line_items, "updated_at": utc_now()},
        deep=True,
    )
