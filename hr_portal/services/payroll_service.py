"""
Payroll Service

Ties the pure leave and salary calculators to the repository: loads the
slices a computation needs, runs it, and collects non-blocking
notifications (missing attendance, rule fallbacks, ...).
"""
import logging
from datetime import date
from typing import Optional, List, Dict, Tuple

from hr_portal.config import settings
from hr_portal.core.date_utils import month_name
from hr_portal.core.exceptions import NotFoundError
from hr_portal.schemas.hr import (
    EmployeeDetail, LeaveBalanceResponse, MonthLeaveSummary, SalaryComponentsResponse,
    SalarySheetResponse, SalarySlip, CompanyConfig,
)
from hr_portal.services.leave_service import (
    calculate_balances_at_start_of_month, month_leave_summary, months_of_service,
)
from hr_portal.services.salary_service import (
    monthly_salary_detail, build_salary_sheet, amount_in_words, RuleMatched,
)
from hr_portal.services.storage_service import HRRepository

logger = logging.getLogger(__name__)


class PayrollService:
    """Leave and salary computations over stored data."""

    def __init__(self, repo: HRRepository):
        self.repo = repo

    async def _employee(self, code: str) -> EmployeeDetail:
        employee = await self.repo.get_employee(code)
        if employee is None:
            raise NotFoundError(f"Employee {code} not found")
        return employee

    async def _attendance_map(self, year: int, month: int) -> Optional[Dict[str, List[str]]]:
        records = await self.repo.load_attendance(year, month)
        if records is None:
            return None
        return {record.code: record.attendance for record in records}

    # ==================== Leave ====================

    async def leave_balance(self, code: str, year: int, month: int) -> LeaveBalanceResponse:
        employee = await self._employee(code)
        history = await self.repo.load_leave_applications()
        overrides = await self.repo.load_opening_balances()
        attendance = await self._attendance_map(year, month)

        notifications = []
        if employee.doj is None:
            notifications.append(f"{code}: no valid date of joining, balances are zero")
        codes = attendance.get(code) if attendance is not None else None
        if codes is None:
            notifications.append(f"{code}: no attendance for {month_name(month)} {year}, usage not counted")

        balances = calculate_balances_at_start_of_month(employee, year, month, history, overrides)
        summary = month_leave_summary(employee, year, month, history, overrides, codes)
        return LeaveBalanceResponse(balances=balances, summary=summary, notifications=notifications)

    async def leave_usage(self, code: str, up_to_year: int, up_to_month: int) -> Tuple[EmployeeDetail, List[MonthLeaveSummary]]:
        """Month-by-month usage and balances from the DOJ month."""
        employee = await self._employee(code)
        history = await self.repo.load_leave_applications()
        overrides = await self.repo.load_opening_balances()

        summaries = []
        for year, month in months_of_service(employee, up_to_year, up_to_month):
            attendance = await self._attendance_map(year, month)
            codes = attendance.get(code) if attendance is not None else None
            summaries.append(month_leave_summary(employee, year, month, history, overrides, codes))
        return employee, summaries

    # ==================== Salary ====================

    async def salary_components(self, code: str, year: int, month: int) -> SalaryComponentsResponse:
        employee = await self._employee(code)
        rules = await self.repo.load_breakup_rules()
        detail = monthly_salary_detail(employee, year, month, rules)
        return SalaryComponentsResponse(
            employee_code=code,
            year=year,
            month=month,
            components=detail.components,
            rule_id=detail.rule.id if detail.rule else None,
            rule_matched=isinstance(detail.resolution, RuleMatched),
            prorated=detail.prorated,
            notifications=detail.notifications,
        )

    async def salary_sheet(self, year: int, month: int, only_with_attendance: bool = False) -> SalarySheetResponse:
        employees = await self.repo.load_employees()
        notifications = []
        if not employees:
            notifications.append("Employee master is empty; upload employees first")

        rows, sheet_notes = build_salary_sheet(
            employees,
            year,
            month,
            await self._attendance_map(year, month),
            await self.repo.load_breakup_rules(),
            await self.repo.load_salary_edits(year, month),
            await self.repo.load_performance_deductions(),
            only_with_attendance=only_with_attendance,
        )
        notifications.extend(sheet_notes)
        return SalarySheetResponse(year=year, month=month, rows=rows, notifications=notifications)

    async def salary_slip(self, code: str, year: int, month: int) -> SalarySlip:
        employee = await self._employee(code)
        sheet = await self.salary_sheet(year, month)
        row = next((r for r in sheet.rows if r.code == code), None)
        if row is None:
            raise NotFoundError(f"{code} is not on payroll for {month_name(month)} {year}")

        balance = await self.leave_balance(code, year, month)
        config = await self.repo.load_company_config() or CompanyConfig(
            company_name=settings.COMPANY_NAME_DEFAULT,
            company_logo=settings.COMPANY_LOGO_DEFAULT,
        )
        logger.info(f"Generated salary slip for {employee.code} {month_name(month)} {year}")
        return SalarySlip(
            company_name=config.company_name,
            company_logo=config.company_logo,
            period=f"{month_name(month)} {year}",
            row=row,
            leave=balance.summary,
            net_paid_in_words=amount_in_words(row.net_paid),
        )


def current_period(today: Optional[date] = None) -> Tuple[int, int]:
    today = today or date.today()
    return today.year, today.month
