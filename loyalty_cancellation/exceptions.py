"""
Exceptions raised by the cancellation workflow.

Planning errors are raised to the caller before anything is mutated.
Step and persistence failures are recorded on the result instead of being
raised; their classes exist so adapters and tests can name them.
"""


class CancellationError(Exception):
    """Base class for cancellation workflow errors."""

    pass


class PlanningError(CancellationError):
    """The request cannot be turned into a cancellation plan."""

    def __init__(self, booking_id: str, message: str) -> None:
        super().__init__(message)
        self.booking_id = booking_id


class BookingNotFoundError(PlanningError):
    def __init__(self, booking_id: str) -> None:
        super().__init__(booking_id, f"Booking {booking_id} not found")


class NothingToCancelError(PlanningError):
    def __init__(self, booking_id: str) -> None:
        super().__init__(
            booking_id,
            f"Booking {booking_id} has no active line items with points or "
            "cash to reverse",
        )


class StepExecutionError(CancellationError):
    """A single ledger reversal failed or timed out."""

    pass


class PersistenceError(CancellationError):
    """Writing line-item status back to the booking store failed."""

    pass


class LedgerGatewayError(CancellationError):
    """The loyalty platform could not be reached or rejected the call."""

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code
