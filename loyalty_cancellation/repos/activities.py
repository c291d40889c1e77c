"""
Temporal activity wrapper classes.

Each class wraps a concrete backend and registers its protocol methods as
activities. Only the worker imports this module; workflow code talks to the
same activity names through ``repos.temporal.proxies``.
"""

from loyalty_cancellation.repos.loyalty.ledger import SalesforceLedgerGateway
from loyalty_cancellation.repos.loyalty.mirror import SalesforceLineItemMirror
from loyalty_cancellation.repos.minio.booking import MinioBookingRepository
from loyalty_cancellation.repos.temporal.activity_names import (
    BOOKING_ACTIVITY_BASE,
    LEDGER_ACTIVITY_BASE,
    LINE_ITEM_MIRROR_ACTIVITY_BASE,
)
from loyalty_cancellation.repos.temporal.decorators import (
    temporal_activity_registration,
)


@temporal_activity_registration(BOOKING_ACTIVITY_BASE)
class TemporalMinioBookingRepository(MinioBookingRepository):
    """Temporal activity wrapper for MinioBookingRepository."""

    pass


@temporal_activity_registration(LEDGER_ACTIVITY_BASE)
class TemporalSalesforceLedgerGateway(SalesforceLedgerGateway):
    """Temporal activity wrapper for SalesforceLedgerGateway."""

    pass


@temporal_activity_registration(LINE_ITEM_MIRROR_ACTIVITY_BASE)
class TemporalSalesforceLineItemMirror(SalesforceLineItemMirror):
    """Temporal activity wrapper for SalesforceLineItemMirror."""

    pass


__all__ = [
    "TemporalMinioBookingRepository",
    "TemporalSalesforceLedgerGateway",
    "TemporalSalesforceLineItemMirror",
]
