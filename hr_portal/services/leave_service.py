"""
Leave Accrual Calculator

Pure, month-indexed functions. Given an employee, a target month, the
leave history and any manual opening-balance overrides, they return the
CL/SL/PL balances available at the start of that month.

Accrual rules:
- CL and SL accrue 0.6 per completed month of service from month 0
- PL accrues 1.2 per month once 6 months are completed, counted from
  month 6 onward: 1.2 x (completed_months - 5)
- Office-Staff accrue CL and SL at 0.5 per month and get 21 PL each
  1 April instead of the monthly PL accrual
- Leave taken before the target month is subtracted
- Opening-balance overrides re-anchor the computation (see
  `calculate_balances_at_start_of_month`)
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, List, Dict, Iterable, Tuple

from hr_portal.core.date_utils import months_between, add_months, financial_year_start
from hr_portal.schemas.hr import (
    EmployeeDetail, LeaveApplication, OpeningLeaveBalance, LeaveBalances,
    MonthLeaveSummary, LeaveType,
)


ZERO = Decimal("0")

# Attendance codes that consume leave, and how much of a day each one uses
LEAVE_USAGE_BY_CODE: Dict[str, Tuple[LeaveType, Decimal]] = {
    "CL": (LeaveType.CL, Decimal("1")),
    "SL": (LeaveType.SL, Decimal("1")),
    "PL": (LeaveType.PL, Decimal("1")),
    "HCL": (LeaveType.CL, Decimal("0.5")),
    "HSL": (LeaveType.SL, Decimal("0.5")),
    "HPL": (LeaveType.PL, Decimal("0.5")),
}


@dataclass(frozen=True)
class LeaveAccrualPolicy:
    """Monthly accrual rates, plus an optional PL grant every 1 April."""
    cl_per_month: Decimal = Decimal("0.6")
    sl_per_month: Decimal = Decimal("0.6")
    pl_per_month: Decimal = Decimal("1.2")
    pl_eligibility_months: int = 6
    annual_pl_grant: Decimal = ZERO

    def pl_grants(self, doj: date, year: int, month: int) -> int:
        """Number of 1 Aprils from the DOJ month up to the target month."""
        if not self.annual_pl_grant:
            return 0
        first = doj.year if doj.month <= 4 else doj.year + 1
        last = financial_year_start(date(year, month, 1))
        return max(0, last - first + 1)

    def accrued(self, doj: date, year: int, month: int) -> Dict[LeaveType, Decimal]:
        """Total accrued from joining up to the start of the target month."""
        completed = completed_months(doj, year, month)
        pl_months = completed - (self.pl_eligibility_months - 1) if completed >= self.pl_eligibility_months else 0
        return {
            LeaveType.CL: self.cl_per_month * completed,
            LeaveType.SL: self.sl_per_month * completed,
            LeaveType.PL: self.pl_per_month * pl_months + self.annual_pl_grant * self.pl_grants(doj, year, month),
        }


DEFAULT_POLICY = LeaveAccrualPolicy()

# Office staff get PL as a lump sum each financial year instead of monthly
OFFICE_STAFF_DIVISION = "Office-Staff"
OFFICE_STAFF_POLICY = LeaveAccrualPolicy(
    cl_per_month=Decimal("0.5"),
    sl_per_month=Decimal("0.5"),
    pl_per_month=ZERO,
    annual_pl_grant=Decimal("21"),
)


def policy_for(employee: EmployeeDetail) -> LeaveAccrualPolicy:
    if employee.division == OFFICE_STAFF_DIVISION:
        return OFFICE_STAFF_POLICY
    return DEFAULT_POLICY


def completed_months(doj: date, year: int, month: int) -> int:
    """Calendar months from the DOJ month to the target month, floored at 0."""
    return max(0, months_between(doj, date(year, month, 1)))


def _belongs_to(application: LeaveApplication, employee: EmployeeDetail) -> bool:
    return application.employee_id in (employee.id, employee.code)


def leave_used(
    employee: EmployeeDetail,
    leave_history: Iterable[LeaveApplication],
    before: date,
    since: Optional[date] = None,
) -> Dict[LeaveType, Decimal]:
    """Sum leave days per type starting in [since, before)."""
    used = {LeaveType.CL: ZERO, LeaveType.SL: ZERO, LeaveType.PL: ZERO}
    for application in leave_history:
        if not _belongs_to(application, employee):
            continue
        if application.start_date >= before:
            continue
        if since is not None and application.start_date < since:
            continue
        used[application.leave_type] += application.days
    return used


def resolve_override(
    employee: EmployeeDetail,
    target: date,
    overrides: Iterable[OpeningLeaveBalance],
) -> Optional[OpeningLeaveBalance]:
    """Most recent override anchored on or before `target`.

    On the same anchor date a month-level override beats an FY-level one.
    """
    candidates = [
        o for o in overrides
        if o.employee_code == employee.code and o.anchor_date() <= target
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda o: (o.anchor_date(), o.month is not None))


def calculate_balances_at_start_of_month(
    employee: EmployeeDetail,
    year: int,
    month: int,
    leave_history: Iterable[LeaveApplication],
    opening_balance_overrides: Iterable[OpeningLeaveBalance] = (),
    policy: Optional[LeaveAccrualPolicy] = None,
) -> LeaveBalances:
    """
    Balances available on the 1st of `month`/`year` (month is 1-12).

    An override whose anchor is exactly the target month replaces the
    computed value. A later target month starts from the most recent
    override and adds only what accrued, minus what was taken, since
    that anchor. Results may be negative.

    The accrual policy defaults to the one for the employee's division.
    """
    if employee.doj is None:
        return LeaveBalances(cl=ZERO, sl=ZERO, pl=ZERO, pl_eligible=False)

    policy = policy or policy_for(employee)
    history = list(leave_history)
    target = date(year, month, 1)
    completed = completed_months(employee.doj, year, month)
    eligible = completed >= policy.pl_eligibility_months
    accrued = policy.accrued(employee.doj, year, month)

    override = resolve_override(employee, target, opening_balance_overrides)

    if override is None:
        used = leave_used(employee, history, before=target)
        return LeaveBalances(
            cl=accrued[LeaveType.CL] - used[LeaveType.CL],
            sl=accrued[LeaveType.SL] - used[LeaveType.SL],
            pl=accrued[LeaveType.PL] - used[LeaveType.PL],
            pl_eligible=eligible,
            completed_months=completed,
            source="accrual",
        )

    anchor = override.anchor_date()
    if anchor == target:
        return LeaveBalances(
            cl=override.opening_cl,
            sl=override.opening_sl,
            pl=override.opening_pl,
            pl_eligible=eligible,
            completed_months=completed,
            source="override",
        )

    accrued_at_anchor = policy.accrued(employee.doj, anchor.year, anchor.month)
    used = leave_used(employee, history, before=target, since=anchor)
    opening = {
        LeaveType.CL: override.opening_cl,
        LeaveType.SL: override.opening_sl,
        LeaveType.PL: override.opening_pl,
    }
    balances = {
        t: opening[t] + accrued[t] - accrued_at_anchor[t] - used[t]
        for t in (LeaveType.CL, LeaveType.SL, LeaveType.PL)
    }
    return LeaveBalances(
        cl=balances[LeaveType.CL],
        sl=balances[LeaveType.SL],
        pl=balances[LeaveType.PL],
        pl_eligible=eligible,
        completed_months=completed,
        source="anchored",
    )


def attendance_leave_usage(codes: Optional[List[str]]) -> Dict[LeaveType, Decimal]:
    """Leave consumed by a month of attendance codes."""
    used = {LeaveType.CL: ZERO, LeaveType.SL: ZERO, LeaveType.PL: ZERO}
    for code in codes or []:
        usage = LEAVE_USAGE_BY_CODE.get(code)
        if usage:
            leave_type, amount = usage
            used[leave_type] += amount
    return used


def month_leave_summary(
    employee: EmployeeDetail,
    year: int,
    month: int,
    leave_history: Iterable[LeaveApplication],
    opening_balance_overrides: Iterable[OpeningLeaveBalance] = (),
    attendance_codes: Optional[List[str]] = None,
    policy: Optional[LeaveAccrualPolicy] = None,
) -> MonthLeaveSummary:
    """Opening (floored at 0), attendance usage and closing (may be negative)."""
    balances = calculate_balances_at_start_of_month(
        employee, year, month, leave_history, opening_balance_overrides, policy
    )
    used = attendance_leave_usage(attendance_codes)

    opening_cl = max(ZERO, balances.cl)
    opening_sl = max(ZERO, balances.sl)
    opening_pl = max(ZERO, balances.pl)

    return MonthLeaveSummary(
        employee_code=employee.code,
        year=year,
        month=month,
        opening_cl=opening_cl,
        opening_sl=opening_sl,
        opening_pl=opening_pl,
        used_cl=used[LeaveType.CL],
        used_sl=used[LeaveType.SL],
        used_pl=used[LeaveType.PL],
        closing_cl=opening_cl - used[LeaveType.CL],
        closing_sl=opening_sl - used[LeaveType.SL],
        closing_pl=opening_pl - used[LeaveType.PL],
        pl_eligible=balances.pl_eligible,
    )


def months_of_service(employee: EmployeeDetail, up_to_year: int, up_to_month: int) -> List[Tuple[int, int]]:
    """(year, month) pairs from the DOJ month to the given month inclusive."""
    if employee.doj is None:
        return []
    span = months_between(employee.doj, date(up_to_year, up_to_month, 1))
    return [add_months(employee.doj.year, employee.doj.month, offset) for offset in range(span + 1)]
