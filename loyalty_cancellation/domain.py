"""
Domain models defined as Pydantic models.

Bookings and their line items are the records the cancellation workflow
reads; plans, steps and results are the records it produces. Booking status
and booking totals are computed from the line items and cannot be assigned.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LineOfBusiness(str, Enum):
    FLIGHT = "FLIGHT"
    HOTEL = "HOTEL"
    CAR = "CAR"
    PACKAGE = "PACKAGE"


class LineItemStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    CANCELLING = "CANCELLING"
    PENDING_CANCELLATION = "PENDING_CANCELLATION"


class BookingStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PARTIALLY_CANCELLED = "PARTIALLY_CANCELLED"
    FULLY_CANCELLED = "FULLY_CANCELLED"
    PENDING_CANCELLATION = "PENDING_CANCELLATION"


class CancellationStepType(str, Enum):
    REDEMPTION_REFUND = "REDEMPTION_REFUND"
    ACCRUAL_CANCEL = "ACCRUAL_CANCEL"


class CancellationStepStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class LineItem(BaseModel):
    """One bookable unit (flight, hotel stay, car, package) of a booking."""

    id: str
    lob: LineOfBusiness
    cash_amount: Decimal = Decimal("0")
    points_redeemed: int = 0
    points_earned: int = 0
    currency: str = "USD"
    taxes: Decimal = Decimal("0")
    fees: Decimal = Decimal("0")

    product_name: Optional[str] = None
    product_code: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    nights: Optional[int] = None
    destination_city: Optional[str] = None
    destination_country: Optional[str] = None

    # Loyalty platform journals; absence means nothing to reverse
    redemption_journal_id: Optional[str] = None
    accrual_journal_id: Optional[str] = None

    status: LineItemStatus = LineItemStatus.ACTIVE
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None

    @field_validator("cash_amount", "taxes", "fees")
    @classmethod
    def money_must_be_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Monetary amounts must be non-negative")
        return v

    @field_validator("points_redeemed", "points_earned")
    @classmethod
    def points_must_be_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Points must be non-negative")
        return v

    @model_validator(mode="after")
    def cancelled_items_carry_timestamp(self) -> "LineItem":
        if self.status == LineItemStatus.CANCELLED and self.cancelled_at is None:
            raise ValueError("Cancelled line items must carry cancelled_at")
        return self

    @property
    def cash_refund_amount(self) -> Decimal:
        """Cash, taxes and fees returned to the member when cancelled."""
        if self.cash_amount <= 0:
            return Decimal("0")
        return self.cash_amount + self.taxes + self.fees


def derive_booking_status(line_items: List[LineItem]) -> BookingStatus:
    """
    Booking status as a function of its line-item statuses.

    Cancelled items decide first: none ACTIVE means FULLY_CANCELLED, some
    ACTIVE means PARTIALLY_CANCELLED. Only a booking with no CANCELLED
    item reports in-flight (CANCELLING or PENDING_CANCELLATION) items.
    """
    statuses = {item.status for item in line_items}
    if LineItemStatus.CANCELLED in statuses:
        if LineItemStatus.ACTIVE in statuses:
            return BookingStatus.PARTIALLY_CANCELLED
        return BookingStatus.FULLY_CANCELLED
    if statuses & {
        LineItemStatus.CANCELLING,
        LineItemStatus.PENDING_CANCELLATION,
    }:
        return BookingStatus.PENDING_CANCELLATION
    return BookingStatus.ACTIVE


class Booking(BaseModel):
    """A trip booking made of one or more line items."""

    id: str
    external_transaction_number: str
    member_id: Optional[str] = None
    membership_number: Optional[str] = None
    booking_date: Optional[str] = None
    channel: Optional[str] = None
    line_items: List[LineItem] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("line_items")
    @classmethod
    def line_item_ids_must_be_unique(
        cls, v: List[LineItem]
    ) -> List[LineItem]:
        ids = [item.id for item in v]
        if len(ids) != len(set(ids)):
            raise ValueError("Line item ids must be unique within a booking")
        return v

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> BookingStatus:
        return derive_booking_status(self.line_items)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_cash_amount(self) -> Decimal:
        return sum(
            (item.cash_amount for item in self.line_items), Decimal("0")
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_taxes_and_fees(self) -> Decimal:
        return sum(
            (item.taxes + item.fees for item in self.line_items),
            Decimal("0"),
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_points_redeemed(self) -> int:
        return sum(item.points_redeemed for item in self.line_items)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_points_earned(self) -> int:
        return sum(item.points_earned for item in self.line_items)

    def get_line_item(self, line_item_id: str) -> Optional[LineItem]:
        for item in self.line_items:
            if item.id == line_item_id:
                return item
        return None


class LineItemCancellation(BaseModel):
    """Audit details written alongside a line-item status change."""

    cancelled_at: datetime
    reason: Optional[str] = None
    cancelled_by: Optional[str] = None


class LedgerEntry(BaseModel):
    """One ledger row of a loyalty journal, shown for transparency."""

    id: str
    journal_id: str
    points: int
    event_type: Optional[str] = None
    currency_name: Optional[str] = None
    activity_date: Optional[str] = None


class LedgerReversalOutcome(BaseModel):
    """Result of asking the loyalty platform to reverse one journal."""

    ok: bool
    cancellation_id: Optional[str] = None
    message: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict)


class LineItemMirrorResult(BaseModel):
    """Result of copying one line-item cancellation to the CRM."""

    line_item_id: str
    ok: bool
    external_id: Optional[str] = None
    status_code: Optional[int] = None
    error: Optional[str] = None


class CancellationRequest(BaseModel):
    """Scope of a preview or confirm call."""

    line_item_ids: Optional[List[str]] = None
    reason: Optional[str] = None
    requested_by: Optional[str] = None


class CancellationStep(BaseModel):
    """One ledger reversal. Mutated in place while a plan executes."""

    step_type: CancellationStepType
    line_item_id: str
    lob: LineOfBusiness
    journal_id: str
    amount: int
    currency: Optional[str] = None

    status: CancellationStepStatus = CancellationStepStatus.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    ledger_response: Optional[Dict[str, Any]] = None
    cancellation_id: Optional[str] = None
    ledger_entries: List[LedgerEntry] = Field(default_factory=list)

    @field_validator("amount")
    @classmethod
    def amount_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Step amount must be positive")
        return v


class CashRefund(BaseModel):
    """Cash owed back for one line item, settled by the payment processor."""

    line_item_id: str
    lob: LineOfBusiness
    amount: Decimal
    currency: str = "USD"


class CancellationPlan(BaseModel):
    """Proposed, unexecuted reversal steps for a booking."""

    model_config = ConfigDict(frozen=True)

    booking_id: str
    line_item_ids: List[str]
    reason: Optional[str] = None
    requested_by: Optional[str] = None
    steps: List[CancellationStep] = Field(default_factory=list)
    cash_refunds: List[CashRefund] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_points_to_refund(self) -> int:
        return sum(
            step.amount
            for step in self.steps
            if step.step_type == CancellationStepType.REDEMPTION_REFUND
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_points_to_cancel(self) -> int:
        return sum(
            step.amount
            for step in self.steps
            if step.step_type == CancellationStepType.ACCRUAL_CANCEL
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def net_points_change(self) -> int:
        return self.total_points_to_refund - self.total_points_to_cancel

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_cash_refund(self) -> Decimal:
        return sum(
            (refund.amount for refund in self.cash_refunds), Decimal("0")
        )


class CancellationResult(BaseModel):
    """Record of what happened when a plan was executed."""

    plan: CancellationPlan
    steps: List[CancellationStep]
    errors: List[str] = Field(default_factory=list)
    actual_cash_refund: Decimal = Decimal("0")
    booking_status: Optional[BookingStatus] = None
    completed_at: Optional[datetime] = None

    def _steps_with(
        self, status: CancellationStepStatus
    ) -> List[CancellationStep]:
        return [step for step in self.steps if step.status == status]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def actual_points_refunded(self) -> int:
        return sum(
            step.amount
            for step in self._steps_with(CancellationStepStatus.COMPLETED)
            if step.step_type == CancellationStepType.REDEMPTION_REFUND
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def actual_points_cancelled(self) -> int:
        return sum(
            step.amount
            for step in self._steps_with(CancellationStepStatus.COMPLETED)
            if step.step_type == CancellationStepType.ACCRUAL_CANCEL
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success(self) -> bool:
        return not self._steps_with(CancellationStepStatus.FAILED) and bool(
            self._steps_with(CancellationStepStatus.COMPLETED)
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def partial_success(self) -> bool:
        return bool(
            self._steps_with(CancellationStepStatus.COMPLETED)
        ) and bool(self._steps_with(CancellationStepStatus.FAILED))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def outcome(self) -> Literal["success", "partial", "failed"]:
        if self.success:
            return "success"
        if self.partial_success:
            return "partial"
        return "failed"
