"""
Activity name prefixes shared by activity registration and workflow proxies.

Kept in their own module so the proxies can import them without importing
the backends behind the activities.
"""

BOOKING_ACTIVITY_BASE = "loyalty.booking_repo.minio"
LEDGER_ACTIVITY_BASE = "loyalty.ledger_gateway.salesforce"
LINE_ITEM_MIRROR_ACTIVITY_BASE = "loyalty.line_item_mirror.salesforce"

__all__ = [
    "BOOKING_ACTIVITY_BASE",
    "LEDGER_ACTIVITY_BASE",
    "LINE_ITEM_MIRROR_ACTIVITY_BASE",
]
