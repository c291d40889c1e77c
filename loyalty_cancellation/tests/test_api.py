from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from temporalio.client import WorkflowFailureError
from temporalio.common import WorkflowIDReusePolicy
from temporalio.exceptions import ApplicationError, WorkflowAlreadyStartedError

from loyalty_cancellation.api.app import app
from loyalty_cancellation.api.dependencies import (
    get_cancellation_use_case,
    get_temporal_client,
)
from loyalty_cancellation.domain import CancellationResult
from loyalty_cancellation.repos.memory import (
    MemoryBookingRepository,
    MemoryLedgerGateway,
)
from loyalty_cancellation.tests.factories import (
    accrual_item,
    cash_item,
    minimal_booking,
    redemption_item,
)
from loyalty_cancellation.usecase import CancellationUseCase
from loyalty_cancellation.workflow import ConfirmCancellationWorkflow


@pytest.fixture
def booking_repo() -> MemoryBookingRepository:
    repo = MemoryBookingRepository()
    repo._bookings["BK-1"] = minimal_booking(
        line_items=[
            redemption_item("A", 3000, "J1"),
            accrual_item("B", 1200, "J2"),
            cash_item("C", "90.00"),
        ]
    )
    return repo


@pytest.fixture
def ledger() -> MemoryLedgerGateway:
    return MemoryLedgerGateway()


@pytest.fixture
def temporal_client() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def client(booking_repo, ledger, temporal_client):
    app.dependency_overrides[get_cancellation_use_case] = (
        lambda: CancellationUseCase(booking_repo, ledger)
    )
    app.dependency_overrides[get_temporal_client] = lambda: temporal_client
    yield TestClient(app)
    # Clean up dependency overrides
    app.dependency_overrides = {}


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_get_booking(client: TestClient) -> None:
    response = client.get("/bookings/BK-1")

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == "BK-1"
    assert body["status"] == "ACTIVE"
    assert len(body["line_items"]) == 3


def test_get_missing_booking_returns_404(client: TestClient) -> None:
    response = client.get("/bookings/BK-404")

    assert response.status_code == 404


def test_preview_without_body_covers_all_items(
    client: TestClient, ledger: MemoryLedgerGateway
) -> None:
    response = client.post("/bookings/BK-1/cancellation/preview")

    assert response.status_code == 200
    summary = response.json()["summary"]
    assert summary == {
        "line_items_to_cancel": 3,
        "steps_required": 2,
        "points_to_refund": 3000,
        "points_to_cancel": 1200,
        "net_points_change": 1800,
        "cash_refund": "90.00",
    }
    assert ledger.calls == []


def test_preview_scoped_to_line_items(client: TestClient) -> None:
    response = client.post(
        "/bookings/BK-1/cancellation/preview",
        json={"line_item_ids": ["B"], "reason": "Change of plans"},
    )

    assert response.status_code == 200
    plan = response.json()["plan"]
    assert plan["line_item_ids"] == ["B"]
    assert [s["step_type"] for s in plan["steps"]] == ["ACCRUAL_CANCEL"]
    assert plan["reason"] == "Change of plans"


def test_preview_missing_booking_returns_404(client: TestClient) -> None:
    response = client.post("/bookings/BK-404/cancellation/preview")

    assert response.status_code == 404
    assert "BK-404" in response.json()["detail"]


def test_preview_nothing_to_cancel_returns_422(client: TestClient) -> None:
    response = client.post(
        "/bookings/BK-1/cancellation/preview",
        json={"line_item_ids": ["NOT-THERE"]},
    )

    assert response.status_code == 422


def test_preview_unexpected_error_returns_500(
    client: TestClient, ledger: MemoryLedgerGateway
) -> None:
    broken = AsyncMock(spec=CancellationUseCase)
    broken.preview.side_effect = RuntimeError("store exploded")
    app.dependency_overrides[get_cancellation_use_case] = lambda: broken

    response = client.post("/bookings/BK-1/cancellation/preview")

    assert response.status_code == 500
    assert "store exploded" not in response.json()["detail"]


def test_confirm_requires_explicit_confirmation(
    client: TestClient, temporal_client: AsyncMock
) -> None:
    response = client.post(
        "/bookings/BK-1/cancellation/confirm", json={"reason": "Oops"}
    )

    assert response.status_code == 400
    temporal_client.execute_workflow.assert_not_called()


@pytest.mark.asyncio
async def test_confirm_runs_workflow_and_returns_summary(
    client: TestClient,
    booking_repo: MemoryBookingRepository,
    ledger: MemoryLedgerGateway,
    temporal_client: AsyncMock,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    # Arrange
    monkeypatch.delenv("FAILED_REVERSAL_STATUS", raising=False)
    monkeypatch.delenv("SF_SYNC_BOOKINGS", raising=False)
    ledger.fail_journal("J2", "Accrual locked")
    result = await CancellationUseCase(booking_repo, ledger).confirm("BK-1")
    temporal_client.execute_workflow = AsyncMock(return_value=result)

    # Act
    response = client.post(
        "/bookings/BK-1/cancellation/confirm",
        json={
            "confirm": True,
            "line_item_ids": ["A", "B"],
            "requested_by": "agent-9",
        },
    )

    # Assert
    assert response.status_code == 200
    body = response.json()
    assert body["workflow_id"] == "cancel-BK-1"
    assert body["summary"]["outcome"] == "partial"
    assert body["summary"]["points_refunded"] == 3000
    assert body["summary"]["points_cancelled"] == 0
    assert body["summary"]["failed_steps"] == 1
    assert body["summary"]["errors"] == [
        "Accrual cancellation failed for J2: Accrual locked"
    ]

    call = temporal_client.execute_workflow.call_args
    assert call.args[0] == ConfirmCancellationWorkflow.run
    assert call.args[1] == {
        "booking_id": "BK-1",
        "line_item_ids": ["A", "B"],
        "reason": None,
        "requested_by": "agent-9",
        "failed_reversal_status": "CANCELLED",
        "mirror_line_items": False,
    }
    assert call.kwargs["id"] == "cancel-BK-1"
    assert call.kwargs["id_reuse_policy"] == (
        WorkflowIDReusePolicy.ALLOW_DUPLICATE
    )
    assert call.kwargs["result_type"] is CancellationResult


@pytest.mark.asyncio
async def test_confirm_passes_crm_mirror_flag(
    client: TestClient,
    booking_repo: MemoryBookingRepository,
    ledger: MemoryLedgerGateway,
    temporal_client: AsyncMock,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("SF_SYNC_BOOKINGS", "true")
    result = await CancellationUseCase(booking_repo, ledger).confirm("BK-1")
    temporal_client.execute_workflow = AsyncMock(return_value=result)

    response = client.post(
        "/bookings/BK-1/cancellation/confirm", json={"confirm": True}
    )

    assert response.status_code == 200
    args = temporal_client.execute_workflow.call_args.args[1]
    assert args["mirror_line_items"] is True


def test_confirm_while_running_returns_409(
    client: TestClient, temporal_client: AsyncMock
) -> None:
    temporal_client.execute_workflow = AsyncMock(
        side_effect=WorkflowAlreadyStartedError(
            "cancel-BK-1", "ConfirmCancellationWorkflow"
        )
    )

    response = client.post(
        "/bookings/BK-1/cancellation/confirm", json={"confirm": True}
    )

    assert response.status_code == 409


@pytest.mark.parametrize(
    "error_type,status_code",
    [
        ("BookingNotFoundError", 404),
        ("NothingToCancelError", 422),
        ("DomainValidationError", 422),
        ("SomethingElse", 500),
    ],
)
def test_confirm_maps_workflow_failures(
    client: TestClient,
    temporal_client: AsyncMock,
    error_type: str,
    status_code: int,
) -> None:
    temporal_client.execute_workflow = AsyncMock(
        side_effect=WorkflowFailureError(
            cause=ApplicationError(
                "workflow said no", type=error_type, non_retryable=True
            )
        )
    )

    response = client.post(
        "/bookings/BK-1/cancellation/confirm", json={"confirm": True}
    )

    assert response.status_code == status_code
    if status_code != 500:
        assert response.json()["detail"] == "workflow said no"


def test_confirm_unexpected_error_returns_500(
    client: TestClient, temporal_client: AsyncMock
) -> None:
    temporal_client.execute_workflow = AsyncMock(
        side_effect=ConnectionError("temporal down")
    )

    response = client.post(
        "/bookings/BK-1/cancellation/confirm", json={"confirm": True}
    )

    assert response.status_code == 500
