"""
Dependency injection for FastAPI endpoints.
"""

import logging
from typing import Any, Dict

from fastapi import Depends
from temporalio.client import Client
from temporalio.contrib.pydantic import pydantic_data_converter

from loyalty_cancellation.repos.loyalty.ledger import SalesforceLedgerGateway
from loyalty_cancellation.repos.minio.booking import MinioBookingRepository
from loyalty_cancellation.repositories import BookingRepository, LedgerGateway
from loyalty_cancellation.settings import (
    failed_reversal_status,
    minio_endpoint,
    temporal_endpoint,
)
from loyalty_cancellation.usecase import CancellationUseCase

logger = logging.getLogger(__name__)


class DependencyContainer:
    """
    Dependency injection container with singleton lifecycle management.
    Always creates real clients; mocks are provided by test overrides.
    """

    def __init__(self) -> None:
        self._instances: Dict[str, Any] = {}

    async def get_or_create(self, key: str, factory: Any) -> Any:
        """Get or create a singleton instance."""
        if key not in self._instances:
            self._instances[key] = await factory()
        return self._instances[key]

    async def get_temporal_client(self) -> Client:
        client = await self.get_or_create(
            "temporal_client", self._create_temporal_client
        )
        return client  # type: ignore[no-any-return]

    async def get_ledger_gateway(self) -> SalesforceLedgerGateway:
        gateway = await self.get_or_create(
            "ledger_gateway", self._create_ledger_gateway
        )
        return gateway  # type: ignore[no-any-return]

    async def _create_temporal_client(self) -> Client:
        endpoint = temporal_endpoint()
        logger.debug(
            "Creating Temporal client",
            extra={"endpoint": endpoint, "namespace": "default"},
        )
        return await Client.connect(
            endpoint,
            namespace="default",
            data_converter=pydantic_data_converter,
        )

    async def _create_ledger_gateway(self) -> SalesforceLedgerGateway:
        return SalesforceLedgerGateway()

    async def close(self) -> None:
        gateway = self._instances.pop("ledger_gateway", None)
        if gateway is not None:
            await gateway.aclose()
        self._instances.clear()


# Global container instance
_container = DependencyContainer()


async def get_temporal_client() -> Client:
    """FastAPI dependency for Temporal client."""
    return await _container.get_temporal_client()


async def get_booking_repository() -> BookingRepository:
    """FastAPI dependency for direct Minio BookingRepository."""
    # Reads and previews bypass Temporal; confirmations go through it
    return MinioBookingRepository(endpoint=minio_endpoint())


async def get_ledger_gateway() -> LedgerGateway:
    """FastAPI dependency for the loyalty platform gateway."""
    return await _container.get_ledger_gateway()


async def get_cancellation_use_case(
    booking_repo: BookingRepository = Depends(get_booking_repository),
    ledger_gateway: LedgerGateway = Depends(get_ledger_gateway),
) -> CancellationUseCase:
    """FastAPI dependency for CancellationUseCase (preview and reads)."""
    return CancellationUseCase(
        booking_repo=booking_repo,
        ledger_gateway=ledger_gateway,
        failed_reversal_status=failed_reversal_status(),
    )


async def shutdown_dependencies() -> None:
    await _container.close()
