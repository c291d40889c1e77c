"""
Temporal worker that runs the cancellation workflow and its activities.
"""

import asyncio
import logging

from temporalio.client import Client
from temporalio.contrib.pydantic import pydantic_data_converter
from temporalio.service import RPCError
from temporalio.worker import Worker

from loyalty_cancellation.repos.activities import (
    TemporalMinioBookingRepository,
    TemporalSalesforceLedgerGateway,
    TemporalSalesforceLineItemMirror,
)
from loyalty_cancellation.settings import (
    minio_endpoint,
    mirror_line_items,
    setup_logging,
    task_queue,
    temporal_endpoint,
)
from loyalty_cancellation.workflow import ConfirmCancellationWorkflow

logger = logging.getLogger(__name__)


async def get_temporal_client_with_retries(
    endpoint: str, attempts: int = 10, delay: int = 5
) -> Client:
    """Attempt to connect to Temporal with retries."""
    for attempt in range(attempts):
        try:
            client = await Client.connect(
                endpoint,
                data_converter=pydantic_data_converter,
                namespace="default",
            )
            logger.info(
                "Connected to Temporal",
                extra={"endpoint": endpoint, "attempt": attempt + 1},
            )
            return client
        except RPCError as e:
            logger.warning(
                "Failed to connect to Temporal",
                extra={
                    "endpoint": endpoint,
                    "attempt": attempt + 1,
                    "max_attempts": attempts,
                    "error": str(e),
                    "retry_in_seconds": delay,
                },
            )
            if attempt + 1 == attempts:
                raise
            await asyncio.sleep(delay)

    raise RuntimeError("Failed to connect to Temporal after all attempts")


def build_activities(
    booking_repo, ledger_gateway, line_item_mirror=None
) -> list:
    """Bound activity methods for the booking store, ledger and CRM mirror."""
    activities = [
        booking_repo.get_booking,
        booking_repo.save_booking,
        booking_repo.update_line_item_status,
        ledger_gateway.reverse_redemption,
        ledger_gateway.reverse_accrual,
        ledger_gateway.get_ledger_entries,
    ]
    if line_item_mirror is not None:
        activities.append(line_item_mirror.cancel_line_item)
    return activities


async def run_worker() -> None:
    """Run the Temporal worker"""
    setup_logging()

    endpoint = temporal_endpoint()
    queue = task_queue()
    logger.info(
        "Starting Temporal worker",
        extra={"temporal_endpoint": endpoint, "task_queue": queue},
    )

    client = await get_temporal_client_with_retries(endpoint)

    booking_repo = TemporalMinioBookingRepository(endpoint=minio_endpoint())
    ledger_gateway = TemporalSalesforceLedgerGateway()
    line_item_mirror = None
    if mirror_line_items():
        # Same httpx client and token cache as the ledger
        line_item_mirror = TemporalSalesforceLineItemMirror(
            ledger_gateway.settings, ledger_gateway.http, ledger_gateway.auth
        )
    activities = build_activities(
        booking_repo, ledger_gateway, line_item_mirror
    )

    worker = Worker(
        client,
        task_queue=queue,
        workflows=[ConfirmCancellationWorkflow],
        activities=activities,
    )

    logger.info(
        "Worker created",
        extra={"task_queue": queue, "activity_count": len(activities)},
    )
    try:
        await worker.run()
    finally:
        await ledger_gateway.aclose()


def main() -> None:
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
