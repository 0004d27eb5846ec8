"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from timesheet_payroll.calculators.types import RateType
from timesheet_payroll.models import to_naive_utc

# Offset-aware input is stored as naive UTC.
NaiveUtcDatetime = Annotated[datetime, AfterValidator(to_naive_utc)]


# ============================================================================
# Errors
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None


# ============================================================================
# Pay periods
# ============================================================================


class PayrollCycleSchema(BaseModel):
    """Payroll cycle settings."""

    frequency: str | None = None
    anchor_day_of_week: int | None = Field(default=None, description="0=Sunday .. 6=Saturday")
    anchor_day_of_month: int | None = Field(default=None, description="1..28")
    anchor_date: date | None = None


class LastCompletedPeriodRequest(BaseModel):
    """Schema for asking which period most recently finished."""

    reference_date: date
    cycle: PayrollCycleSchema


class PeriodResponse(BaseModel):
    """Half-open date range [start, end)."""

    model_config = ConfigDict(from_attributes=True)

    start: date
    end: date


class LastCompletedPeriodResponse(BaseModel):
    """Null period means the cycle is not configured well enough to compute one."""

    period: PeriodResponse | None = None


class PeriodRange(BaseModel):
    """Period bounds for scan and generation; end is exclusive."""

    period_start: date
    period_end: date


# ============================================================================
# Rates
# ============================================================================


class RateCreate(BaseModel):
    """Schema for appending an employee rate."""

    employee_id: str = Field(min_length=1)
    rate_type: RateType
    amount: Decimal = Field(gt=0)
    effective_date: date
    location_id: str | None = None
    client_profile_id: str | None = None


class RateResponse(BaseModel):
    """Schema for an employee rate record."""

    model_config = ConfigDict(from_attributes=True)

    employee_rate_id: UUID
    employee_id: str
    rate_type: str
    amount: Decimal
    effective_date: date
    location_id: str | None = None
    client_profile_id: str | None = None
    created_at: datetime


class ResolvedRateResponse(BaseModel):
    """Schema for the rate in force for an employee on a date."""

    model_config = ConfigDict(from_attributes=True)

    employee_rate_id: UUID
    rate_type: RateType
    amount: Decimal
    effective_date: date
    location_id: str | None = None
    client_profile_id: str | None = None


# ============================================================================
# Timesheets
# ============================================================================


class RateSnapshotSchema(BaseModel):
    """Frozen {type, amount} copy embedded in a timesheet."""

    model_config = ConfigDict(from_attributes=True)

    rate_type: RateType
    amount: Decimal = Field(gt=0)


class TimesheetCreate(BaseModel):
    """Schema for a manually entered timesheet."""

    employee_id: str = Field(min_length=1)
    start: NaiveUtcDatetime
    end: NaiveUtcDatetime | None = None
    hours: Decimal | None = Field(default=None, ge=0)
    units: int = Field(default=1, ge=0)
    job_id: str | None = None
    rate_snapshot: RateSnapshotSchema | None = None
    location_id: str | None = None
    client_profile_id: str | None = None


class TimesheetUpdate(BaseModel):
    """Schema for editing a timesheet; only fields sent are changed."""

    start: NaiveUtcDatetime | None = None
    end: NaiveUtcDatetime | None = None
    hours: Decimal | None = Field(default=None, ge=0)
    units: int | None = Field(default=None, ge=0)
    job_id: str | None = None
    employee_comment: str | None = None


class TimesheetApprove(BaseModel):
    """Schema for an employee approving a timesheet."""

    comment: str | None = None


class TimesheetResponse(BaseModel):
    """Schema for timesheet response."""

    model_config = ConfigDict(from_attributes=True)

    timesheet_id: UUID
    employee_id: str
    job_id: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    hours: Decimal
    units: int
    rate_snapshot: RateSnapshotSchema | None = None
    employee_approved: bool
    employee_approved_at: datetime | None = None
    employee_comment: str | None = None
    change_requested_at: datetime | None = None
    admin_approved: bool
    admin_approved_at: datetime | None = None
    admin_approved_by: str | None = None
    approved_in_run_id: UUID | None = None
    locked_at: datetime | None = None
    source: str
    earnings: Decimal = Decimal("0.00")
    created_at: datetime
    updated_at: datetime


class TimesheetListResponse(BaseModel):
    """Schema for listing timesheets."""

    items: list[TimesheetResponse]
    total: int


class AssignmentResponse(BaseModel):
    """One employee assigned to one job."""

    model_config = ConfigDict(from_attributes=True)

    employee_id: str
    job_id: str
    service_date: date
    location_id: str | None = None
    client_profile_id: str | None = None
    duration_minutes: int | None = None


class DraftCandidateResponse(BaseModel):
    """A draft the generator would create."""

    employee_id: str
    job_id: str
    service_date: date
    rate_snapshot: RateSnapshotSchema
    hours: Decimal
    units: int
    needs_hours: bool


class ScanResponse(BaseModel):
    """Read-only preview of generation for a period."""

    period_start: date
    period_end: date
    total_jobs: int
    total_assignments: int
    drafts: list[DraftCandidateResponse]
    missing_rates: list[AssignmentResponse]
    existing: list[AssignmentResponse]


class PairFailureResponse(BaseModel):
    """An assignment whose timesheet could not be written."""

    employee_id: str
    job_id: str
    reason: str


class GenerateResponse(BaseModel):
    """Per-pair outcome of a generation pass."""

    period_start: date
    period_end: date
    drafts_created: list[TimesheetResponse]
    missing_rates: list[AssignmentResponse]
    skipped_existing: int
    needs_hours: list[AssignmentResponse]
    failures: list[PairFailureResponse]


# ============================================================================
# Payroll runs
# ============================================================================


class EmployeeTotalsSchema(BaseModel):
    """Per-employee totals in a run."""

    model_config = ConfigDict(from_attributes=True)

    hours: Decimal
    earnings: Decimal
    timesheet_count: int


class RunTotalsSchema(BaseModel):
    """Aggregated totals for a run."""

    model_config = ConfigDict(from_attributes=True)

    by_employee: dict[str, EmployeeTotalsSchema] = Field(default_factory=dict)
    total_hours: Decimal
    total_earnings: Decimal


class PayrollRunCreate(BaseModel):
    """Schema for creating a new payroll run."""

    period_start: date
    period_end: date


class PayrollRunResponse(BaseModel):
    """Schema for payroll run response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_run_id: UUID
    period_start: date
    period_end: date
    status: str
    total_hours: Decimal
    total_earnings: Decimal
    totals: RunTotalsSchema
    created_by: str | None = None
    locked_at: datetime | None = None
    locked_by: str | None = None
    created_at: datetime
    updated_at: datetime


class PayrollRunListResponse(BaseModel):
    """Schema for listing payroll runs."""

    items: list[PayrollRunResponse]
    total: int


class ApproveIntoRunRequest(BaseModel):
    """Schema for approving timesheets into a run."""

    timesheet_ids: list[UUID]
    allow_unapproved: bool = False


class ItemFailureResponse(BaseModel):
    """A timesheet rejected by a batch approval."""

    model_config = ConfigDict(from_attributes=True)

    timesheet_id: UUID
    reason: str
    message: str


class ApproveIntoRunResponse(BaseModel):
    """Per-item outcome of a batch approval."""

    payroll_run_id: UUID
    approved: list[UUID]
    failures: list[ItemFailureResponse]
    totals: RunTotalsSchema
