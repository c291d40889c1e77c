"""
Memory repository implementations.

In-memory stand-ins for the booking store, the loyalty ledger and the CRM
line-item mirror, used by the tests and the demo CLI.
"""

from .booking import MemoryBookingRepository
from .ledger import MemoryLedgerGateway
from .mirror import MemoryLineItemMirror

__all__ = [
    "MemoryBookingRepository",
    "MemoryLedgerGateway",
    "MemoryLineItemMirror",
]
