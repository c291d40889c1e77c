"""
Memory implementation of LineItemMirror.
"""

import logging
from typing import Dict, List, Tuple

from loyalty_cancellation.domain import (
    LineItemCancellation,
    LineItemMirrorResult,
)
from loyalty_cancellation.repositories import LineItemMirror

logger = logging.getLogger(__name__)


class MemoryLineItemMirror(LineItemMirror):
    """
    Records mirrored cancellations in ``cancelled``, keyed by line item id.

    Line items listed with ``fail_line_item`` come back with ok=False.
    """

    def __init__(self) -> None:
        self.cancelled: Dict[str, LineItemCancellation] = {}
        self.calls: List[Tuple[str, LineItemCancellation]] = []
        self._failures: Dict[str, str] = {}

    def fail_line_item(
        self,
        line_item_id: str,
        message: str = "Line item not found in CRM",
    ) -> None:
        self._failures[line_item_id] = message

    async def cancel_line_item(
        self, line_item_id: str, details: LineItemCancellation
    ) -> LineItemMirrorResult:
        self.calls.append((line_item_id, details))
        if line_item_id in self._failures:
            logger.debug(
                "MemoryLineItemMirror: Scripted failure",
                extra={"line_item_id": line_item_id},
            )
            return LineItemMirrorResult(
                line_item_id=line_item_id,
                ok=False,
                status_code=404,
                error=self._failures[line_item_id],
            )

        self.cancelled[line_item_id] = details
        return LineItemMirrorResult(
            line_item_id=line_item_id,
            ok=True,
            external_id=f"CRM-{line_item_id}",
            status_code=204,
        )
