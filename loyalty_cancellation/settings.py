"""
Process configuration read from environment variables.
"""

import logging
import os

from loyalty_cancellation.domain import LineItemStatus

logger = logging.getLogger(__name__)

DEFAULT_TASK_QUEUE = "booking-cancellation-queue"


def setup_logging() -> None:
    """Configure logging based on environment variables"""
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    log_format = os.environ.get(
        "LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    numeric_level = getattr(logging, log_level, None)
    if not isinstance(numeric_level, int):
        print(f"Invalid log level: {log_level}, defaulting to INFO")
        numeric_level = logging.INFO

    logging.basicConfig(
        level=numeric_level,
        format=log_format,
        force=True,
    )

    logger.info(
        "Logging configured",
        extra={"log_level": log_level, "numeric_level": numeric_level},
    )


def temporal_endpoint() -> str:
    return os.environ.get("TEMPORAL_ENDPOINT", "temporal:7233")


def minio_endpoint() -> str:
    return os.environ.get("MINIO_ENDPOINT", "minio:9000")


def task_queue() -> str:
    return os.environ.get("CANCELLATION_TASK_QUEUE", DEFAULT_TASK_QUEUE)


def failed_reversal_status() -> LineItemStatus:
    """Line-item status for items whose ledger reversal failed.

    Reads FAILED_REVERSAL_STATUS; anything other than CANCELLED or
    PENDING_CANCELLATION falls back to CANCELLED with a warning.
    """
    raw = os.environ.get("FAILED_REVERSAL_STATUS", "CANCELLED").upper()
    if raw not in (
        LineItemStatus.CANCELLED.value,
        LineItemStatus.PENDING_CANCELLATION.value,
    ):
        logger.warning(
            "Invalid FAILED_REVERSAL_STATUS, defaulting to CANCELLED",
            extra={"value": raw},
        )
        return LineItemStatus.CANCELLED
    return LineItemStatus(raw)


def mirror_line_items() -> bool:
    """Whether cancellations are copied to the CRM (SF_SYNC_BOOKINGS)."""
    return os.environ.get("SF_SYNC_BOOKINGS", "").strip().lower() == "true"
