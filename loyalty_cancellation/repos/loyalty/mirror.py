"""
LineItemMirror for the CRM copy of bookings kept in the Salesforce org.

Each booking line item has a ``Booking_Line_Item__c`` record keyed by
``Internal_Line_Item_Id__c``. Cancelling one looks the record up and
patches its status and audit fields.
"""

import logging

from loyalty_cancellation.domain import (
    LineItemCancellation,
    LineItemMirrorResult,
)
from loyalty_cancellation.repositories import LineItemMirror
from loyalty_cancellation.repos.loyalty.client import (
    PlatformRestClient,
    error_message,
    soql_literal,
)

logger = logging.getLogger(__name__)

LINE_ITEM_OBJECT = "Booking_Line_Item__c"
LINE_ITEM_QUERY = (
    "SELECT Id FROM Booking_Line_Item__c "
    "WHERE Internal_Line_Item_Id__c = '{line_item_id}' LIMIT 1"
)


class SalesforceLineItemMirror(PlatformRestClient, LineItemMirror):
    async def cancel_line_item(
        self, line_item_id: str, details: LineItemCancellation
    ) -> LineItemMirrorResult:
        query = LINE_ITEM_QUERY.format(line_item_id=soql_literal(line_item_id))
        response = await self._send(
            "GET", self.data_path("query"), params={"q": query}
        )
        body = self._json_body(response)
        records = body.get("records") or []
        if not response.is_success or not records:
            logger.warning(
                "Line item not found in CRM",
                extra={
                    "line_item_id": line_item_id,
                    "status_code": response.status_code,
                },
            )
            return LineItemMirrorResult(
                line_item_id=line_item_id,
                ok=False,
                status_code=404,
                error="Line item not found in Salesforce",
            )

        record_id = records[0]["Id"]
        response = await self._send(
            "PATCH",
            self.data_path(f"sobjects/{LINE_ITEM_OBJECT}/{record_id}"),
            json={
                "Line_Item_Status__c": "CANCELLED",
                "Cancelled_Date__c": details.cancelled_at.isoformat(),
                "Cancellation_Reason__c": details.reason,
                "Cancelled_By__c": details.cancelled_by,
            },
        )
        if not response.is_success:
            body = self._json_body(response)
            error = error_message(body) or f"HTTP {response.status_code}"
            logger.warning(
                "CRM line item update rejected",
                extra={
                    "line_item_id": line_item_id,
                    "record_id": record_id,
                    "status_code": response.status_code,
                    "platform_message": error,
                },
            )
            return LineItemMirrorResult(
                line_item_id=line_item_id,
                ok=False,
                external_id=record_id,
                status_code=response.status_code,
                error=error,
            )

        logger.info(
            "CRM line item cancelled",
            extra={"line_item_id": line_item_id, "record_id": record_id},
        )
        return LineItemMirrorResult(
            line_item_id=line_item_id,
            ok=True,
            external_id=record_id,
            status_code=response.status_code,
        )
