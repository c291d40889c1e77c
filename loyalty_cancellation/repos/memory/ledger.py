"""
Memory implementation of LedgerGateway.

Stands in for the loyalty platform in tests and in the demo CLI. Every
journal can be reversed once; reversing it again is rejected the way the
platform rejects a journal that is already cancelled. Failures and
exceptions can be scripted per journal id.
"""

import logging
from typing import Dict, List, Optional, Set, Tuple

from loyalty_cancellation.domain import LedgerEntry, LedgerReversalOutcome
from loyalty_cancellation.repositories import LedgerGateway

logger = logging.getLogger(__name__)


class MemoryLedgerGateway(LedgerGateway):
    """
    In-memory ledger gateway with scriptable failures.

    ``calls`` records every reversal as ``(operation, journal_id)`` in the
    order the gateway saw them.
    """

    def __init__(
        self, entries: Optional[Dict[str, List[LedgerEntry]]] = None
    ) -> None:
        self.entries: Dict[str, List[LedgerEntry]] = dict(entries or {})
        self.reversed: Set[str] = set()
        self.calls: List[Tuple[str, str]] = []
        self._failures: Dict[str, str] = {}
        self._exceptions: Dict[str, Exception] = {}
        self._entries_error: Optional[Exception] = None
        self._sequence = 0

    def fail_journal(
        self, journal_id: str, message: str = "Journal cannot be cancelled"
    ) -> None:
        """Make reversals of ``journal_id`` come back with ok=False."""
        self._failures[journal_id] = message

    def raise_for_journal(self, journal_id: str, error: Exception) -> None:
        """Make reversals of ``journal_id`` raise ``error``."""
        self._exceptions[journal_id] = error

    def fail_ledger_entries(self, error: Exception) -> None:
        """Make every get_ledger_entries call raise ``error``."""
        self._entries_error = error

    async def reverse_redemption(
        self, journal_id: str
    ) -> LedgerReversalOutcome:
        return self._reverse("cancel-redemption", journal_id)

    async def reverse_accrual(self, journal_id: str) -> LedgerReversalOutcome:
        return self._reverse("cancel-accrual", journal_id)

    async def get_ledger_entries(self, journal_id: str) -> List[LedgerEntry]:
        if self._entries_error is not None:
            raise self._entries_error
        return list(self.entries.get(journal_id, []))

    def _reverse(
        self, operation: str, journal_id: str
    ) -> LedgerReversalOutcome:
        self.calls.append((operation, journal_id))

        if journal_id in self._exceptions:
            raise self._exceptions[journal_id]

        if journal_id in self._failures:
            message = self._failures[journal_id]
            logger.info(
                "MemoryLedgerGateway: Scripted reversal failure",
                extra={"operation": operation, "journal_id": journal_id},
            )
            return LedgerReversalOutcome(
                ok=False,
                message=message,
                raw={"status": False, "message": message},
            )

        if journal_id in self.reversed:
            message = f"Journal {journal_id} is already cancelled"
            return LedgerReversalOutcome(
                ok=False,
                message=message,
                raw={"status": False, "message": message},
            )

        self.reversed.add(journal_id)
        self._sequence += 1
        cancellation_id = f"CXL-{self._sequence:04d}"
        logger.info(
            "MemoryLedgerGateway: Journal reversed",
            extra={
                "operation": operation,
                "journal_id": journal_id,
                "cancellation_id": cancellation_id,
            },
        )
        return LedgerReversalOutcome(
            ok=True,
            cancellation_id=cancellation_id,
            raw={
                "status": True,
                "processResult": {
                    "transactionJournalResult": [{"id": cancellation_id}]
                },
            },
        )
