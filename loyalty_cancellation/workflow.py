"""
Confirmations run as Temporal workflows. The use case is the same one the
preview path uses; here it is handed repository proxies whose calls become
activities.
"""

from temporalio import workflow
from temporalio.exceptions import ApplicationError

from loyalty_cancellation.domain import (
    CancellationRequest,
    CancellationResult,
    LineItemStatus,
)
from loyalty_cancellation.exceptions import PlanningError
from loyalty_cancellation.repos.temporal.proxies import (
    WorkflowBookingRepositoryProxy,
    WorkflowLedgerGatewayProxy,
    WorkflowLineItemMirrorProxy,
)
from loyalty_cancellation.usecase import CancellationUseCase
from loyalty_cancellation.validation import (
    DomainValidationError,
    validate_domain_model,
)


def cancellation_workflow_id(booking_id: str) -> str:
    """Workflow id for a booking; at most one can run at a time."""
    return f"cancel-{booking_id}"


@workflow.defn
class ConfirmCancellationWorkflow:
    def __init__(self) -> None:
        self.current_step = "initialized"

    @workflow.query
    def get_current_step(self) -> str:
        """Query method to get the current workflow step"""
        return str(self.current_step)

    @workflow.run
    async def run(self, args_dict: dict) -> CancellationResult:
        """
        Plan and execute a booking cancellation.

        ``args_dict`` holds ``booking_id``, the CancellationRequest fields
        and optionally ``failed_reversal_status`` and
        ``mirror_line_items``. Planning errors fail the workflow with a
        non-retryable ApplicationError whose type is the error class name.
        """
        booking_id = args_dict["booking_id"]
        workflow.logger.info(
            "Starting cancellation workflow",
            extra={
                "booking_id": booking_id,
                "workflow_run_id": workflow.info().run_id,
            },
        )

        try:
            request = validate_domain_model(
                {
                    key: args_dict.get(key)
                    for key in ("line_item_ids", "reason", "requested_by")
                },
                CancellationRequest,
            )
        except DomainValidationError as e:
            raise ApplicationError(
                str(e), type=type(e).__name__, non_retryable=True
            ) from e

        use_case = CancellationUseCase(
            booking_repo=WorkflowBookingRepositoryProxy(),
            ledger_gateway=WorkflowLedgerGatewayProxy(),
            clock=workflow.now,
            failed_reversal_status=args_dict.get(
                "failed_reversal_status", LineItemStatus.CANCELLED
            ),
            line_item_mirror=(
                WorkflowLineItemMirrorProxy()
                if args_dict.get("mirror_line_items")
                else None
            ),
        )

        self.current_step = "executing"
        try:
            result = await use_case.confirm(booking_id, request)
        except PlanningError as e:
            self.current_step = "rejected"
            workflow.logger.info(
                "Cancellation rejected during planning",
                extra={"booking_id": booking_id, "error": str(e)},
            )
            raise ApplicationError(
                str(e), type=type(e).__name__, non_retryable=True
            ) from e

        workflow.logger.info(
            "Cancellation workflow completed",
            extra={
                "booking_id": booking_id,
                "outcome": result.outcome,
                "error_count": len(result.errors),
            },
        )
        self.current_step = "completed"
        return result
