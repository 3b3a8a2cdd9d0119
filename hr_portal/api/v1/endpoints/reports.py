"""CSV report downloads."""
from typing import Optional

from fastapi import APIRouter, Query

from hr_portal.api.deps import Repo, CurrentUser, Year, Month, csv_response
from hr_portal.core.date_utils import month_name
from hr_portal.services.payroll_service import PayrollService, current_period
from hr_portal.services.report_service import leave_usage_csv, salary_sheet_csv

router = APIRouter()


@router.get("/leave-usage/{code}")
async def download_leave_usage(
    code: str,
    repo: Repo,
    current_user: CurrentUser,
    year: Optional[int] = Query(None, ge=1900, le=2200),
    month: Optional[int] = Query(None, ge=1, le=12),
):
    """
    Month-by-month leave usage and balances for one employee.

    Covers every month from the joining month up to the given month
    (default: the current month).
    """
    current_year, current_month = current_period()
    employee, summaries = await PayrollService(repo).leave_usage(
        code, year or current_year, month or current_month
    )
    return csv_response(leave_usage_csv(employee, summaries), f"leave_usage_{employee.code}.csv")


@router.get("/salary-ledger/{year}/{month}")
async def download_salary_ledger(
    repo: Repo,
    current_user: CurrentUser,
    year: Year,
    month: Month,
):
    """Salary sheet restricted to employees with attendance, with a totals row."""
    sheet = await PayrollService(repo).salary_sheet(year, month, only_with_attendance=True)
    return csv_response(
        salary_sheet_csv(sheet.rows, include_totals=True),
        f"salary_ledger_{month_name(month)}_{year}.csv",
    )
