"""
FastAPI application for booking cancellations.

Previews run in-process against the booking store and the loyalty
platform; they never mutate anything. Confirmations run as a Temporal
workflow with id ``cancel-<booking_id>``, so a second confirmation for a
booking that is still being cancelled is rejected.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import Depends, FastAPI, HTTPException
from temporalio.client import Client, WorkflowFailureError
from temporalio.common import WorkflowIDReusePolicy
from temporalio.exceptions import ApplicationError, WorkflowAlreadyStartedError

from loyalty_cancellation.api.dependencies import (
    get_cancellation_use_case,
    get_temporal_client,
    shutdown_dependencies,
)
from loyalty_cancellation.api.requests import (
    ConfirmCancellationRequest,
    PreviewCancellationRequest,
)
from loyalty_cancellation.api.responses import (
    CancellationConfirmResponse,
    CancellationPreviewResponse,
    ConfirmSummary,
    HealthCheckResponse,
    PreviewSummary,
)
from loyalty_cancellation.domain import Booking, CancellationResult
from loyalty_cancellation.exceptions import (
    BookingNotFoundError,
    NothingToCancelError,
)
from loyalty_cancellation.settings import (
    failed_reversal_status,
    mirror_line_items,
    setup_logging,
    task_queue,
)
from loyalty_cancellation.usecase import CancellationUseCase
from loyalty_cancellation.workflow import (
    ConfirmCancellationWorkflow,
    cancellation_workflow_id,
)

setup_logging()
logger = logging.getLogger(__name__)

# ApplicationError types raised by the workflow, by HTTP status
WORKFLOW_ERROR_STATUS = {
    "BookingNotFoundError": 404,
    "NothingToCancelError": 422,
    "DomainValidationError": 422,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await shutdown_dependencies()


app = FastAPI(title="Booking Cancellation API", lifespan=lifespan)


@app.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint"""
    return HealthCheckResponse(status="ok", version="1.0.0")


@app.get("/bookings/{booking_id}", response_model=Booking)
async def get_booking(
    booking_id: str,
    use_case: CancellationUseCase = Depends(get_cancellation_use_case),
) -> Booking:
    try:
        return await use_case.get_booking(booking_id)
    except BookingNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.post(
    "/bookings/{booking_id}/cancellation/preview",
    response_model=CancellationPreviewResponse,
)
async def preview_cancellation(
    booking_id: str,
    request: Optional[PreviewCancellationRequest] = None,
    use_case: CancellationUseCase = Depends(get_cancellation_use_case),
) -> CancellationPreviewResponse:
    """Show the ledger reversals a cancellation would perform."""
    logger.info(
        "Cancellation preview requested",
        extra={
            "booking_id": booking_id,
            "line_item_ids": request.line_item_ids if request else None,
        },
    )

    try:
        plan = await use_case.preview(booking_id, request)
    except BookingNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except NothingToCancelError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error(
            "Cancellation preview failed",
            extra={
                "booking_id": booking_id,
                "error_type": type(e).__name__,
                "error_message": str(e),
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=500,
            detail="Failed to preview cancellation due to an internal error.",
        )

    return CancellationPreviewResponse(
        booking_id=booking_id,
        plan=plan,
        summary=PreviewSummary.from_plan(plan),
    )


@app.post(
    "/bookings/{booking_id}/cancellation/confirm",
    response_model=CancellationConfirmResponse,
)
async def confirm_cancellation(
    booking_id: str,
    request: ConfirmCancellationRequest,
    client: Client = Depends(get_temporal_client),
) -> CancellationConfirmResponse:
    """
    Cancel line items of a booking and reverse their loyalty journals.

    Waits for the workflow to finish and returns its result, including
    partial failures.
    """
    if not request.confirm:
        raise HTTPException(
            status_code=400,
            detail="Cancellation must be confirmed with confirm: true",
        )

    workflow_id = cancellation_workflow_id(booking_id)
    args = request.model_dump(mode="json", exclude={"confirm"})
    args["booking_id"] = booking_id
    args["failed_reversal_status"] = failed_reversal_status().value
    args["mirror_line_items"] = mirror_line_items()

    logger.info(
        "Cancellation confirmed via API",
        extra={
            "booking_id": booking_id,
            "workflow_id": workflow_id,
            "line_item_ids": request.line_item_ids,
            "requested_by": request.requested_by,
        },
    )

    try:
        result = await client.execute_workflow(
            ConfirmCancellationWorkflow.run,
            args,
            id=workflow_id,
            task_queue=task_queue(),
            id_reuse_policy=WorkflowIDReusePolicy.ALLOW_DUPLICATE,
            result_type=CancellationResult,
        )
    except WorkflowAlreadyStartedError:
        logger.warning(
            "Cancellation already running for booking",
            extra={"booking_id": booking_id, "workflow_id": workflow_id},
        )
        raise HTTPException(
            status_code=409,
            detail=f"A cancellation for booking {booking_id} is already "
            "in progress",
        )
    except WorkflowFailureError as e:
        cause = e.cause
        if isinstance(cause, ApplicationError) and cause.type in (
            WORKFLOW_ERROR_STATUS
        ):
            raise HTTPException(
                status_code=WORKFLOW_ERROR_STATUS[cause.type],
                detail=cause.message,
            )
        logger.error(
            "Cancellation workflow failed",
            extra={
                "booking_id": booking_id,
                "workflow_id": workflow_id,
                "error_message": str(cause or e),
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=500,
            detail="Cancellation failed due to an internal error.",
        )
    except Exception as e:
        logger.error(
            "Failed to run cancellation workflow",
            extra={
                "booking_id": booking_id,
                "error_type": type(e).__name__,
                "error_message": str(e),
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=500,
            detail="Cancellation failed due to an internal error.",
        )

    return CancellationConfirmResponse(
        booking_id=booking_id,
        workflow_id=workflow_id,
        result=result,
        summary=ConfirmSummary.from_result(result),
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "loyalty_cancellation.api.app:app",
        host="0.0.0.0",
        port=8000,
        log_level="info",
    )
