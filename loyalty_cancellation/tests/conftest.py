import pytest
import pytest_asyncio

from loyalty_cancellation.repos.memory import (
    MemoryBookingRepository,
    MemoryLedgerGateway,
)
from loyalty_cancellation.tests.factories import TickingClock
from loyalty_cancellation.usecase import CancellationUseCase


@pytest.fixture
def booking_repo() -> MemoryBookingRepository:
    return MemoryBookingRepository()


@pytest.fixture
def ledger() -> MemoryLedgerGateway:
    return MemoryLedgerGateway()


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest_asyncio.fixture
async def use_case(
    booking_repo: MemoryBookingRepository,
    ledger: MemoryLedgerGateway,
    clock: TickingClock,
) -> CancellationUseCase:
    return CancellationUseCase(
        booking_repo=booking_repo, ledger_gateway=ledger, clock=clock
    )
