"""
HTTP implementation of LedgerGateway for Salesforce Loyalty Management.

Reversals go through the program's ``cancel-redemption`` and
``cancel-accrual`` transaction endpoints. A rejected reversal comes back as
``LedgerReversalOutcome(ok=False)``; only transport and authentication
problems raise, as LedgerGatewayError.
"""

import logging
from typing import Any, Dict, List, Optional

from loyalty_cancellation.domain import LedgerEntry, LedgerReversalOutcome
from loyalty_cancellation.exceptions import LedgerGatewayError
from loyalty_cancellation.repositories import LedgerGateway
from loyalty_cancellation.repos.loyalty.client import (
    PlatformRestClient,
    error_message,
    soql_literal,
)

logger = logging.getLogger(__name__)

LEDGER_QUERY = (
    "SELECT Id, TransactionJournalId, Points, EventType, "
    "LoyaltyProgramCurrency.Name, ActivityDate "
    "FROM LoyaltyLedger WHERE TransactionJournalId = '{journal_id}'"
)


class SalesforceLedgerGateway(PlatformRestClient, LedgerGateway):
    """LedgerGateway backed by the Salesforce Loyalty Management REST API."""

    async def reverse_redemption(
        self, journal_id: str
    ) -> LedgerReversalOutcome:
        return await self._cancel_transaction("cancel-redemption", journal_id)

    async def reverse_accrual(self, journal_id: str) -> LedgerReversalOutcome:
        return await self._cancel_transaction("cancel-accrual", journal_id)

    async def get_ledger_entries(self, journal_id: str) -> List[LedgerEntry]:
        query = LEDGER_QUERY.format(journal_id=soql_literal(journal_id))
        response = await self._send(
            "GET", self.data_path("query"), params={"q": query}
        )
        if response.status_code >= 400:
            raise LedgerGatewayError(
                f"Ledger query failed: HTTP {response.status_code}",
                status_code=response.status_code,
            )

        records = self._json_body(response).get("records") or []
        return [
            LedgerEntry(
                id=record["Id"],
                journal_id=record.get("TransactionJournalId") or journal_id,
                points=int(record.get("Points") or 0),
                event_type=record.get("EventType"),
                currency_name=(
                    record.get("LoyaltyProgramCurrency") or {}
                ).get("Name"),
                activity_date=record.get("ActivityDate"),
            )
            for record in records
        ]

    async def _cancel_transaction(
        self, operation: str, journal_id: str
    ) -> LedgerReversalOutcome:
        path = self.data_path(
            f"connect/loyalty/programs/{self.settings.loyalty_program}/"
            f"transactions/{operation}"
        )
        logger.info(
            "Requesting journal reversal",
            extra={"operation": operation, "journal_id": journal_id},
        )
        response = await self._send(
            "POST",
            path,
            json={
                "transactionJournalIds": [journal_id],
                "processAsynchronously": False,
            },
        )

        body = self._json_body(response)
        ok = response.is_success and bool(body.get("status"))
        if not ok:
            message = error_message(body) or f"HTTP {response.status_code}"
            logger.warning(
                "Journal reversal rejected",
                extra={
                    "operation": operation,
                    "journal_id": journal_id,
                    "status_code": response.status_code,
                    "platform_message": message,
                },
            )
            return LedgerReversalOutcome(ok=False, message=message, raw=body)

        return LedgerReversalOutcome(
            ok=True,
            cancellation_id=_cancellation_id(body),
            raw=body,
        )


def _cancellation_id(body: Dict[str, Any]) -> Optional[str]:
    results = (body.get("processResult") or {}).get(
        "transactionJournalResult"
    ) or []
    if results and isinstance(results[0], dict):
        return results[0].get("id")
    return None
