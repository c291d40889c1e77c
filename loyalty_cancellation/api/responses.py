"""
Pydantic models for API responses.
These define the contract between the API and external clients.
"""

from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel

from loyalty_cancellation.domain import (
    BookingStatus,
    CancellationPlan,
    CancellationResult,
    CancellationStepStatus,
)


class PreviewSummary(BaseModel):
    line_items_to_cancel: int
    steps_required: int
    points_to_refund: int
    points_to_cancel: int
    net_points_change: int
    cash_refund: Decimal

    @classmethod
    def from_plan(cls, plan: CancellationPlan) -> "PreviewSummary":
        return cls(
            line_items_to_cancel=len(plan.line_item_ids),
            steps_required=len(plan.steps),
            points_to_refund=plan.total_points_to_refund,
            points_to_cancel=plan.total_points_to_cancel,
            net_points_change=plan.net_points_change,
            cash_refund=plan.total_cash_refund,
        )


class CancellationPreviewResponse(BaseModel):
    """Plan of a cancellation that has not been executed"""

    booking_id: str
    plan: CancellationPlan
    summary: PreviewSummary


class ConfirmSummary(BaseModel):
    outcome: Literal["success", "partial", "failed"]
    success: bool
    partial_success: bool
    completed_steps: int
    failed_steps: int
    points_refunded: int
    points_cancelled: int
    cash_refund: Decimal
    booking_status: Optional[BookingStatus] = None
    errors: List[str]

    @classmethod
    def from_result(cls, result: CancellationResult) -> "ConfirmSummary":
        statuses = [step.status for step in result.steps]
        return cls(
            outcome=result.outcome,
            success=result.success,
            partial_success=result.partial_success,
            completed_steps=statuses.count(CancellationStepStatus.COMPLETED),
            failed_steps=statuses.count(CancellationStepStatus.FAILED),
            points_refunded=result.actual_points_refunded,
            points_cancelled=result.actual_points_cancelled,
            cash_refund=result.actual_cash_refund,
            booking_status=result.booking_status,
            errors=result.errors,
        )


class CancellationConfirmResponse(BaseModel):
    """Record of an executed cancellation"""

    booking_id: str
    workflow_id: str
    result: CancellationResult
    summary: ConfirmSummary


class HealthCheckResponse(BaseModel):
    status: str
    version: str
