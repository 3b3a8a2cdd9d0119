"""
Salary Component Calculator & Salary Sheet Builder

Pure functions that:
- Split a gross figure into Basic / HRA / CA / Medical / Other using the
  matching breakup rule, or the fixed fallback scheme
- Pro-rate the split across a mid-month salary revision
- Convert a month of attendance codes into a pay factor
- Assemble salary sheet rows (allowances, deductions, net pay)

All money is Decimal, rounded half-up to paise. "Other allowance"
absorbs rounding so components always sum exactly to the gross.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, List, Dict, Iterable, Union

from hr_portal.core.date_utils import days_in_month, month_start, month_end, month_name
from hr_portal.schemas.hr import (
    EmployeeDetail, SalaryBreakupRule, SalaryComponents, AttendanceSummary,
    SalarySheetEdit, SalarySheetRow, PerformanceDeductionEntry, EmployeeStatus,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")

# Fallback scheme when no breakup rule covers the gross
FALLBACK_BASIC_CAP = Decimal("15010")
FALLBACK_HRA_SHARE = Decimal("0.50")
FALLBACK_CA_SHARE = Decimal("0.20")
FALLBACK_MEDICAL_SHARE = Decimal("0.15")
# Remaining 15% of the non-basic part is "other allowance"

FULL_CREDIT_CODES = {"P", "W", "PH", "CL", "SL", "PL"}
HALF_CREDIT_CODES = {"HD", "HCL", "HSL", "HPL"}


def round_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


# ==================== Rule Resolution ====================

@dataclass
class RuleMatched:
    """A breakup rule covered the gross."""
    rule: SalaryBreakupRule
    components: SalaryComponents


@dataclass
class RuleFallback:
    """No rule matched; the fixed scheme was used."""
    components: SalaryComponents


RuleResolution = Union[RuleMatched, RuleFallback]


def find_breakup_rule(
    gross: Decimal,
    rules: Iterable[SalaryBreakupRule],
    preferred_rule_id: Optional[str] = None,
) -> Optional[SalaryBreakupRule]:
    """Rule for `gross`. An explicitly assigned rule wins over band lookup."""
    rules = list(rules)
    if preferred_rule_id:
        for rule in rules:
            if rule.id == preferred_rule_id:
                return rule
        logger.warning(f"Assigned breakup rule {preferred_rule_id} not found, using band lookup")
    for rule in rules:
        if rule.from_gross <= gross <= rule.to_gross:
            return rule
    return None


def _components(gross: Decimal, basic: Decimal, hra: Decimal, ca: Decimal, medical: Decimal) -> SalaryComponents:
    basic, hra, ca, medical = (round_money(v) for v in (basic, hra, ca, medical))
    return SalaryComponents(
        basic=basic,
        hra=hra,
        ca=ca,
        medical=medical,
        other_allowance=gross - basic - hra - ca - medical,
        total_gross=gross,
    )


def split_gross(
    gross: Decimal,
    rules: Iterable[SalaryBreakupRule] = (),
    preferred_rule_id: Optional[str] = None,
) -> RuleResolution:
    """Split a monthly gross into its components."""
    gross = round_money(gross or ZERO)
    if gross <= ZERO:
        return RuleFallback(components=SalaryComponents())

    rule = find_breakup_rule(gross, rules, preferred_rule_id)
    if rule is not None:
        return RuleMatched(
            rule=rule,
            components=_components(
                gross,
                gross * rule.basic_percentage / HUNDRED,
                gross * rule.hra_percentage / HUNDRED,
                gross * rule.ca_percentage / HUNDRED,
                gross * rule.medical_percentage / HUNDRED,
            ),
        )

    basic = min(gross, FALLBACK_BASIC_CAP)
    remainder = gross - basic
    return RuleFallback(
        components=_components(
            gross,
            basic,
            remainder * FALLBACK_HRA_SHARE,
            remainder * FALLBACK_CA_SHARE,
            remainder * FALLBACK_MEDICAL_SHARE,
        )
    )


# ==================== Monthly Components ====================

@dataclass
class MonthlySalaryDetail:
    """Components for a month and how they were derived."""
    components: SalaryComponents
    resolution: RuleResolution
    prorated: bool = False
    notifications: List[str] = field(default_factory=list)

    @property
    def rule(self) -> Optional[SalaryBreakupRule]:
        return self.resolution.rule if isinstance(self.resolution, RuleMatched) else None


def _prorate(old: SalaryComponents, new: SalaryComponents, days_before: int, days_after: int, dim: int) -> SalaryComponents:
    def part(old_value: Decimal, new_value: Decimal) -> Decimal:
        return old_value * days_before / dim + new_value * days_after / dim

    total = round_money(part(old.total_gross, new.total_gross))
    return _components(
        total,
        part(old.basic, new.basic),
        part(old.hra, new.hra),
        part(old.ca, new.ca),
        part(old.medical, new.medical),
    )


def _fallback_notes(employee: EmployeeDetail, gross: Decimal, resolution) -> List[str]:
    if isinstance(resolution, RuleFallback) and gross > ZERO:
        return [f"{employee.code}: no breakup rule matches gross {gross}, fixed split used"]
    return []


def monthly_salary_detail(
    employee: EmployeeDetail,
    year: int,
    month: int,
    breakup_rules: Iterable[SalaryBreakupRule] = (),
) -> MonthlySalaryDetail:
    """Components for `month`/`year` (1-12), honouring a salary revision."""
    rules = list(breakup_rules)
    base_gross = employee.gross_monthly_salary or ZERO
    revised_gross = employee.revised_gross_monthly_salary
    effective = employee.salary_effective_date
    preferred = employee.breakup_rule_id

    base = split_gross(base_gross, rules, preferred)
    notifications = _fallback_notes(employee, base_gross, base)

    if revised_gross is None or effective is None:
        if revised_gross is not None:
            logger.warning(f"Employee {employee.code} has a revised salary without a valid effective date")
        return MonthlySalaryDetail(components=base.components, resolution=base, notifications=notifications)

    first_day = month_start(year, month)
    last_day = month_end(year, month)

    if effective > last_day:
        return MonthlySalaryDetail(components=base.components, resolution=base, notifications=notifications)

    revised = split_gross(revised_gross, rules, preferred)
    revised_notes = _fallback_notes(employee, revised_gross, revised)
    if effective <= first_day:
        return MonthlySalaryDetail(components=revised.components, resolution=revised, notifications=revised_notes)

    notifications.extend(note for note in revised_notes if note not in notifications)

    dim = days_in_month(year, month)
    days_before = effective.day - 1
    days_after = dim - effective.day + 1
    components = _prorate(base.components, revised.components, days_before, days_after, dim)
    return MonthlySalaryDetail(
        components=components,
        resolution=revised,
        prorated=True,
        notifications=notifications,
    )


def calculate_monthly_salary_components(
    employee: EmployeeDetail,
    year: int,
    month: int,
    breakup_rules: Iterable[SalaryBreakupRule] = (),
) -> SalaryComponents:
    return monthly_salary_detail(employee, year, month, breakup_rules).components


# ==================== Attendance Aggregation ====================

def summarize_attendance(code: str, codes: Optional[List[str]], year: int, month: int) -> AttendanceSummary:
    """Days paid, days absent and pay factor for a month of codes.

    Missing attendance counts as absent for every day.
    """
    total = days_in_month(year, month)
    codes = list(codes)[:total] if codes is not None else ["A"] * total

    paid = ZERO
    absent = ZERO
    week_offs = 0
    for status in codes:
        if status in FULL_CREDIT_CODES:
            paid += 1
            if status == "W":
                week_offs += 1
        elif status in HALF_CREDIT_CODES:
            paid += Decimal("0.5")
            absent += Decimal("0.5")
        elif status == "A":
            absent += 1

    paid = min(paid, Decimal(total))
    return AttendanceSummary(
        code=code,
        total_days=total,
        days_paid=paid,
        days_absent=absent,
        week_offs=week_offs,
        pay_factor=paid / Decimal(total),
    )


def apply_pay_factor(monthly: SalaryComponents, pay_factor: Decimal) -> SalaryComponents:
    """Scale components by attendance; other allowance absorbs rounding."""
    total = round_money(monthly.total_gross * pay_factor)
    return _components(
        total,
        monthly.basic * pay_factor,
        monthly.hra * pay_factor,
        monthly.ca * pay_factor,
        monthly.medical * pay_factor,
    )


# ==================== Salary Sheet ====================

def is_on_payroll(employee: EmployeeDetail, year: int, month: int) -> bool:
    """Joined by the month's end and not gone before it started."""
    if employee.doj is not None and employee.doj > month_end(year, month):
        return False
    if employee.status == EmployeeStatus.LEFT:
        return employee.dor is not None and employee.dor >= month_start(year, month)
    return True


def build_salary_row(
    employee: EmployeeDetail,
    year: int,
    month: int,
    attendance_codes: Optional[List[str]],
    breakup_rules: Iterable[SalaryBreakupRule] = (),
    edit: Optional[SalarySheetEdit] = None,
    performance_deduction: Decimal = ZERO,
) -> tuple[SalarySheetRow, List[str]]:
    detail = monthly_salary_detail(employee, year, month, breakup_rules)
    summary = summarize_attendance(employee.code, attendance_codes, year, month)
    actual = apply_pay_factor(detail.components, summary.pay_factor)

    edit = edit or SalarySheetEdit(employee_code=employee.code)
    arrears = round_money(edit.arrears)
    total_allowance = actual.total_gross + arrears

    tds = round_money(edit.tds)
    loan = round_money(edit.loan)
    salary_advance = round_money(edit.salary_advance)
    other_deduction = round_money(edit.other_deduction)
    performance = round_money(performance_deduction)
    total_deduction = tds + loan + salary_advance + other_deduction + performance

    row = SalarySheetRow(
        employee_status=employee.status,
        division=employee.division,
        code=employee.code,
        name=employee.name,
        designation=employee.designation,
        hq=employee.hq,
        doj=employee.doj,
        total_days=summary.total_days,
        days_paid=summary.days_paid,
        week_offs=summary.week_offs,
        days_absent=summary.days_absent,
        monthly=detail.components,
        actual=actual,
        arrears=arrears,
        total_allowance=total_allowance,
        tds=tds,
        loan=loan,
        salary_advance=salary_advance,
        other_deduction=other_deduction,
        performance_deduction=performance,
        total_deduction=total_deduction,
        net_paid=total_allowance - total_deduction,
    )
    return row, detail.notifications


def build_salary_sheet(
    employees: Iterable[EmployeeDetail],
    year: int,
    month: int,
    attendance: Optional[Dict[str, List[str]]],
    breakup_rules: Iterable[SalaryBreakupRule] = (),
    edits: Optional[Dict[str, SalarySheetEdit]] = None,
    performance_deductions: Iterable[PerformanceDeductionEntry] = (),
    only_with_attendance: bool = False,
) -> tuple[List[SalarySheetRow], List[str]]:
    """Rows for every employee on payroll in the month, plus notifications.

    `attendance` maps employee code to codes; None means no sheet exists.
    """
    rules = list(breakup_rules)
    edits = edits or {}
    deductions = {
        entry.employee_code: entry.amount
        for entry in performance_deductions
        if entry.year == year and entry.month == month
    }

    notifications: List[str] = []
    period = f"{month_name(month)} {year}"
    if attendance is None:
        notifications.append(f"No attendance data for {period}; every day is treated as absent")

    rows: List[SalarySheetRow] = []
    for employee in employees:
        if not is_on_payroll(employee, year, month):
            continue
        codes = attendance.get(employee.code) if attendance is not None else None
        if codes is None:
            if only_with_attendance:
                continue
            if attendance is not None:
                notifications.append(f"{employee.code}: no attendance for {period}; treated as absent")
        row, row_notes = build_salary_row(
            employee, year, month, codes, rules,
            edit=edits.get(employee.code),
            performance_deduction=deductions.get(employee.code, ZERO),
        )
        rows.append(row)
        notifications.extend(row_notes)
    return rows, notifications


# ==================== Amount In Words ====================

_ONES = [
    "", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine", "Ten",
    "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen", "Seventeen",
    "Eighteen", "Nineteen",
]
_TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]


def _two_digits(n: int) -> str:
    if n < 20:
        return _ONES[n]
    return f"{_TENS[n // 10]} {_ONES[n % 10]}".strip()


def _indian_words(n: int) -> str:
    parts = []
    for divisor, label in ((10000000, "Crore"), (100000, "Lakh"), (1000, "Thousand"), (100, "Hundred")):
        chunk, n = divmod(n, divisor)
        if chunk:
            words = _indian_words(chunk) if chunk >= 100 else _two_digits(chunk)
            parts.append(f"{words} {label}")
    if n:
        if parts:
            parts.append("and")
        parts.append(_two_digits(n))
    return " ".join(parts)


def amount_in_words(amount: Decimal) -> str:
    """Rupee amount in Indian numbering words, e.g. "One Lakh Twenty Thousand Rupees Only"."""
    amount = round_money(amount)
    negative = amount < 0
    rupees, paise = divmod(int(abs(amount) * 100), 100)

    words = f"{_indian_words(rupees) or 'Zero'} Rupees"
    if paise:
        words += f" and {_two_digits(paise)} Paise"
    words += " Only"
    return f"Minus {words}" if negative else words
