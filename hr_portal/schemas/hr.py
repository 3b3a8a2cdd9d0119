"""Pydantic schemas for the HR & Payroll portal."""
import logging
import uuid
from datetime import datetime, date, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, List, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from hr_portal.core.date_utils import parse_date, days_in_month
from hr_portal.schemas.base import BaseDocumentSchema, BaseCreateSchema

logger = logging.getLogger(__name__)


# ==================== Enums ====================

class EmployeeStatus(str, Enum):
    """Employment status in the master list."""
    ACTIVE = "Active"
    LEFT = "Left"


class LeaveType(str, Enum):
    """Accruing leave types."""
    CL = "CL"
    SL = "SL"
    PL = "PL"


class AttendanceCode(str, Enum):
    """Daily attendance status codes."""
    PRESENT = "P"
    ABSENT = "A"
    HALF_DAY = "HD"
    WEEK_OFF = "W"
    PUBLIC_HOLIDAY = "PH"
    CASUAL_LEAVE = "CL"
    SICK_LEAVE = "SL"
    PAID_LEAVE = "PL"
    HALF_CASUAL_LEAVE = "HCL"
    HALF_SICK_LEAVE = "HSL"
    HALF_PAID_LEAVE = "HPL"
    NOT_JOINED = "-"


ATTENDANCE_CODES = {code.value for code in AttendanceCode}


def _lenient_date(value, field_name: str) -> Optional[date]:
    parsed = parse_date(value)
    if parsed is None and value not in (None, ""):
        logger.warning(f"Ignoring malformed {field_name}: {value!r}")
    return parsed


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


# ==================== Employee Schemas ====================

class EmployeeDetail(BaseDocumentSchema):
    """Employee master record as stored.

    Loading is lenient: malformed dates become None (and are logged) so a
    single bad row never hides the rest of the master list.
    """
    id: str = ""
    code: str
    name: str
    designation: str = ""
    doj: Optional[date] = None
    dor: Optional[date] = None
    status: EmployeeStatus = EmployeeStatus.ACTIVE
    division: str = ""
    hq: str = ""
    gross_monthly_salary: Decimal = Decimal("0")
    revised_gross_monthly_salary: Optional[Decimal] = None
    salary_effective_date: Optional[date] = None
    breakup_rule_id: Optional[str] = None

    @field_validator("doj", "dor", "salary_effective_date", mode="before")
    @classmethod
    def parse_dates(cls, v, info):
        return _lenient_date(v, info.field_name)

    @field_validator("revised_gross_monthly_salary", "breakup_rule_id", mode="before")
    @classmethod
    def blank_optional(cls, v):
        return _blank_to_none(v)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        if isinstance(v, str):
            return "Left" if v.strip().lower() == "left" else "Active"
        return v

    @model_validator(mode="after")
    def default_id(self):
        if not self.id:
            self.id = self.code
        return self


class EmployeeBase(BaseCreateSchema):
    """Editable employee fields with master-data invariants enforced."""
    name: str = Field(..., min_length=1, max_length=200)
    designation: str = Field("", max_length=100)
    doj: date
    dor: Optional[date] = None
    status: EmployeeStatus = EmployeeStatus.ACTIVE
    division: str = Field("", max_length=100)
    hq: str = Field("", max_length=100)
    gross_monthly_salary: Decimal = Field(..., gt=0)
    revised_gross_monthly_salary: Optional[Decimal] = Field(None, gt=0)
    salary_effective_date: Optional[date] = None
    breakup_rule_id: Optional[str] = None

    @field_validator("dor", "salary_effective_date", "revised_gross_monthly_salary", "breakup_rule_id", mode="before")
    @classmethod
    def blank_optional(cls, v):
        return _blank_to_none(v)

    @field_validator("doj", "dor", "salary_effective_date", mode="before")
    @classmethod
    def parse_dates(cls, v):
        if v is None or isinstance(v, date):
            return v
        parsed = parse_date(v)
        if parsed is None:
            raise ValueError(f"Invalid date: {v!r}")
        return parsed

    @model_validator(mode="after")
    def check_invariants(self):
        if self.status == EmployeeStatus.ACTIVE and self.dor is not None:
            raise ValueError("Date of resignation must be empty for an Active employee")
        if self.dor is not None and self.dor < self.doj:
            raise ValueError("Date of resignation cannot precede date of joining")
        if (self.revised_gross_monthly_salary is None) != (self.salary_effective_date is None):
            raise ValueError("Revised salary and salary effective date must be given together")
        if self.salary_effective_date is not None and self.salary_effective_date < self.doj:
            raise ValueError("Salary effective date cannot precede date of joining")
        return self


class EmployeeCreate(EmployeeBase):
    """Schema for creating an employee."""
    code: str = Field(..., min_length=1, max_length=50)

    @field_validator("code")
    @classmethod
    def strip_code(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Employee code is required")
        return v

    def to_detail(self) -> EmployeeDetail:
        return EmployeeDetail(id=self.code, **self.model_dump())


class EmployeeUpdate(EmployeeBase):
    """Schema for replacing an employee's editable fields."""
    pass


class EmployeeListResponse(BaseModel):
    """Response for listing employees."""
    items: List[EmployeeDetail]
    total: int


# ==================== Leave Schemas ====================

class LeaveApplication(BaseDocumentSchema):
    """A leave taken by an employee. Never deleted when the employee is removed."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    employee_id: str
    leave_type: LeaveType
    start_date: date
    end_date: date
    days: Decimal = Field(..., gt=0)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_dates(cls, v):
        if isinstance(v, date):
            return v
        parsed = parse_date(v)
        if parsed is None:
            raise ValueError(f"Invalid date: {v!r}")
        return parsed

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("Leave end date cannot precede start date")
        return self


class LeaveApplicationCreate(BaseCreateSchema):
    """Schema for recording a leave."""
    employee_id: str
    leave_type: LeaveType
    start_date: date
    end_date: date
    days: Decimal = Field(..., gt=0)

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("Leave end date cannot precede start date")
        return self


class OpeningLeaveBalance(BaseDocumentSchema):
    """Manual opening balance override.

    `month` is None for a financial-year level override (anchored on
    1 April of `financial_year_start`), otherwise the calendar month
    (1-12) the override applies to. A month-level override for January
    to March belongs to the calendar year `financial_year_start + 1`.
    """
    employee_code: str
    financial_year_start: int = Field(..., ge=1900, le=2200)
    month: Optional[int] = Field(None, ge=1, le=12)
    opening_cl: Decimal = Decimal("0")
    opening_sl: Decimal = Decimal("0")
    opening_pl: Decimal = Decimal("0")

    @field_validator("month", mode="before")
    @classmethod
    def blank_month(cls, v):
        return _blank_to_none(v)

    @property
    def key(self) -> tuple[str, int, Optional[int]]:
        return (self.employee_code, self.financial_year_start, self.month)

    def anchor_date(self) -> date:
        if self.month is None:
            return date(self.financial_year_start, 4, 1)
        year = self.financial_year_start if self.month >= 4 else self.financial_year_start + 1
        return date(year, self.month, 1)


class LeaveBalances(BaseModel):
    """Balances available at the start of a month."""
    cl: Decimal
    sl: Decimal
    pl: Decimal
    pl_eligible: bool
    completed_months: int = 0
    source: Literal["accrual", "override", "anchored"] = "accrual"


class MonthLeaveSummary(BaseModel):
    """Opening, used and closing balances for one month."""
    employee_code: str
    year: int
    month: int
    opening_cl: Decimal
    opening_sl: Decimal
    opening_pl: Decimal
    used_cl: Decimal
    used_sl: Decimal
    used_pl: Decimal
    closing_cl: Decimal
    closing_sl: Decimal
    closing_pl: Decimal
    pl_eligible: bool


class LeaveBalanceResponse(BaseModel):
    """Start-of-month balances plus the month summary."""
    balances: LeaveBalances
    summary: MonthLeaveSummary
    notifications: List[str] = []


# ==================== Attendance Schemas ====================

class EmployeeAttendance(BaseDocumentSchema):
    """One employee's daily codes for a month."""
    code: str
    attendance: List[str]

    @field_validator("attendance", mode="before")
    @classmethod
    def normalize_codes(cls, v):
        if isinstance(v, list):
            return [str(c).strip().upper() if str(c).strip() else "A" for c in v]
        return v

    @field_validator("attendance")
    @classmethod
    def check_codes(cls, v: List[str]) -> List[str]:
        unknown = sorted({c for c in v if c not in ATTENDANCE_CODES})
        if unknown:
            raise ValueError(f"Unknown attendance codes: {', '.join(unknown)}")
        return v


class MonthlyAttendance(BaseCreateSchema):
    """A month's attendance sheet."""
    year: int = Field(..., ge=1900, le=2200)
    month: int = Field(..., ge=1, le=12)
    records: List[EmployeeAttendance]

    @model_validator(mode="after")
    def check_lengths(self):
        expected = days_in_month(self.year, self.month)
        for record in self.records:
            if len(record.attendance) != expected:
                raise ValueError(
                    f"Attendance for {record.code} has {len(record.attendance)} days, expected {expected}"
                )
        return self


class AttendanceRecordsUpdate(BaseCreateSchema):
    """Body for replacing a month's attendance."""
    records: List[EmployeeAttendance]


class AttendanceSummary(BaseModel):
    """Attendance totals that drive the pay factor."""
    code: str
    total_days: int
    days_paid: Decimal
    days_absent: Decimal
    week_offs: int
    pay_factor: Decimal


class AttendanceUploadContext(BaseDocumentSchema):
    """Describes the most recent attendance upload (drives the dashboard)."""
    year: int
    month: int
    employee_count: int = 0
    present: int = 0
    absent: int = 0
    half_day: int = 0
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class MonthlyAttendanceResponse(BaseModel):
    year: int
    month: int
    records: List[EmployeeAttendance]
    summaries: List[AttendanceSummary] = []
    notifications: List[str] = []


# ==================== Salary Schemas ====================

class SalaryBreakupRule(BaseDocumentSchema):
    """Percentage split applied to gross salaries within a band."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    from_gross: Decimal = Field(..., ge=0)
    to_gross: Decimal = Field(..., ge=0)
    basic_percentage: Decimal = Field(..., ge=0, le=100)
    hra_percentage: Decimal = Field(..., ge=0, le=100)
    ca_percentage: Decimal = Field(..., ge=0, le=100)
    medical_percentage: Decimal = Field(..., ge=0, le=100)

    @model_validator(mode="after")
    def check_band(self):
        if self.to_gross < self.from_gross:
            raise ValueError("to_gross cannot be less than from_gross")
        total = self.basic_percentage + self.hra_percentage + self.ca_percentage + self.medical_percentage
        if total > 100:
            raise ValueError("Component percentages cannot exceed 100")
        return self


class SalaryComponents(BaseModel):
    """Earnings breakdown. Components always sum to total_gross."""
    basic: Decimal = Decimal("0")
    hra: Decimal = Decimal("0")
    ca: Decimal = Decimal("0")
    medical: Decimal = Decimal("0")
    other_allowance: Decimal = Decimal("0")
    total_gross: Decimal = Decimal("0")


class SalaryComponentsResponse(BaseModel):
    """Monthly components for one employee with rule resolution details."""
    employee_code: str
    year: int
    month: int
    components: SalaryComponents
    rule_id: Optional[str] = None
    rule_matched: bool
    prorated: bool = False
    notifications: List[str] = []


class SalarySheetEdit(BaseDocumentSchema):
    """Manual per-month adjustments for one employee."""
    employee_code: str
    arrears: Decimal = Decimal("0")
    tds: Decimal = Decimal("0")
    loan: Decimal = Decimal("0")
    salary_advance: Decimal = Decimal("0")
    other_deduction: Decimal = Decimal("0")


class SalarySheetEditsUpdate(BaseCreateSchema):
    edits: List[SalarySheetEdit]


class SalarySheetRow(BaseModel):
    """One line of the monthly salary sheet."""
    employee_status: EmployeeStatus
    division: str
    code: str
    name: str
    designation: str
    hq: str
    doj: Optional[date]
    total_days: int
    days_paid: Decimal
    week_offs: int
    days_absent: Decimal
    monthly: SalaryComponents
    actual: SalaryComponents
    arrears: Decimal
    total_allowance: Decimal
    tds: Decimal
    loan: Decimal
    salary_advance: Decimal
    other_deduction: Decimal
    performance_deduction: Decimal
    total_deduction: Decimal
    net_paid: Decimal


class SalarySheetResponse(BaseModel):
    year: int
    month: int
    rows: List[SalarySheetRow]
    notifications: List[str] = []


class SalarySlip(BaseModel):
    """Salary slip for one employee and month."""
    company_name: str
    company_logo: str = ""
    period: str
    row: SalarySheetRow
    leave: MonthLeaveSummary
    net_paid_in_words: str


# ==================== Performance Deduction Schemas ====================

class PerformanceDeductionEntry(BaseDocumentSchema):
    """Deduction keyed by employee, month and year."""
    id: str = ""
    employee_code: str
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1900, le=2200)
    amount: Decimal = Field(..., ge=0)

    @model_validator(mode="after")
    def default_id(self):
        if not self.id:
            self.id = f"{self.employee_code}-{self.month}-{self.year}"
        return self


class PerformanceDeductionCreate(BaseCreateSchema):
    employee_code: str
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1900, le=2200)
    amount: Decimal = Field(..., ge=0)


# ==================== User Schemas ====================

class SimulatedUser(BaseDocumentSchema):
    """Co-admin account stored alongside the HR data."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    username: str
    password_hash: str
    is_locked: bool = False


class UserCreate(BaseCreateSchema):
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6, max_length=128)


class UserLockUpdate(BaseCreateSchema):
    is_locked: bool


class UserResponse(BaseModel):
    id: str
    username: str
    is_locked: bool
    is_main_admin: bool = False


class LoginRequest(BaseCreateSchema):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    username: str


# ==================== Activity / Config / Import Schemas ====================

class RecentActivity(BaseDocumentSchema):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    message: str


class CompanyConfig(BaseDocumentSchema):
    company_name: str
    company_logo: str = ""


class ImportResult(BaseModel):
    """Outcome of a CSV import. Each failure kind is counted separately."""
    added: int = 0
    updated: int = 0
    malformed: int = 0
    duplicates: int = 0
    unknown_employees: int = 0
    missing_headers: List[str] = []
    errors: List[str] = []

    @property
    def imported(self) -> int:
        return self.added + self.updated


# ==================== Dashboard Schemas ====================

class DashboardStats(BaseModel):
    total_employees: int
    active_employees: int
    attendance_percentage: Optional[Decimal] = None
    attendance_period: Optional[str] = None
    leave_records: int
    recent_activities: List[RecentActivity]
    dataset_version: int
    dataset_size: int = 0
