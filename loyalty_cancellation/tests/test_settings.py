import logging

import pytest

from loyalty_cancellation.domain import LineItemStatus
from loyalty_cancellation.repos.memory import (
    MemoryBookingRepository,
    MemoryLedgerGateway,
    MemoryLineItemMirror,
)
from loyalty_cancellation.settings import (
    DEFAULT_TASK_QUEUE,
    failed_reversal_status,
    mirror_line_items,
    setup_logging,
    task_queue,
)
from loyalty_cancellation.worker import build_activities


def test_failed_reversal_status_defaults_to_cancelled(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.delenv("FAILED_REVERSAL_STATUS", raising=False)
    assert failed_reversal_status() == LineItemStatus.CANCELLED


def test_failed_reversal_status_pending(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("FAILED_REVERSAL_STATUS", "pending_cancellation")
    assert failed_reversal_status() == LineItemStatus.PENDING_CANCELLATION


def test_invalid_failed_reversal_status_falls_back(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    monkeypatch.setenv("FAILED_REVERSAL_STATUS", "ACTIVE")

    with caplog.at_level(logging.WARNING):
        assert failed_reversal_status() == LineItemStatus.CANCELLED
    assert "Invalid FAILED_REVERSAL_STATUS" in caplog.text


def test_task_queue(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CANCELLATION_TASK_QUEUE", raising=False)
    assert task_queue() == DEFAULT_TASK_QUEUE
    monkeypatch.setenv("CANCELLATION_TASK_QUEUE", "other-queue")
    assert task_queue() == "other-queue"


def test_setup_logging_reads_level(monkeypatch: pytest.MonkeyPatch) -> None:
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", list(root.handlers))
    monkeypatch.setattr(root, "level", root.level)
    monkeypatch.setenv("LOG_LEVEL", "debug")

    setup_logging()

    assert root.level == logging.DEBUG


def test_build_activities_binds_every_protocol_method() -> None:
    booking_repo = MemoryBookingRepository()
    ledger = MemoryLedgerGateway()

    activities = build_activities(booking_repo, ledger)

    assert [a.__name__ for a in activities] == [
        "get_booking",
        "save_booking",
        "update_line_item_status",
        "reverse_redemption",
        "reverse_accrual",
        "get_ledger_entries",
    ]
    assert all(a.__self__ in (booking_repo, ledger) for a in activities)


def test_build_activities_adds_crm_mirror_when_given() -> None:
    mirror = MemoryLineItemMirror()

    activities = build_activities(
        MemoryBookingRepository(), MemoryLedgerGateway(), mirror
    )

    assert activities[-1].__name__ == "cancel_line_item"
    assert activities[-1].__self__ is mirror
    assert len(activities) == 7


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, False),
        ("true", True),
        ("TRUE", True),
        ("false", False),
        ("1", False),
    ],
)
def test_mirror_line_items_reads_sync_flag(
    monkeypatch: pytest.MonkeyPatch, value, expected
) -> None:
    if value is None:
        monkeypatch.delenv("SF_SYNC_BOOKINGS", raising=False)
    else:
        monkeypatch.setenv("SF_SYNC_BOOKINGS", value)

    assert mirror_line_items() is expected
