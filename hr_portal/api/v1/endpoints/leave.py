"""API endpoints for leave history, opening balances and balance queries."""
import logging
from datetime import date
from typing import Optional, List

from fastapi import APIRouter, HTTPException, status, Query, UploadFile, File

from hr_portal.api.deps import Repo, CurrentUser, log_activity, read_csv_upload, csv_response
from hr_portal.core.date_utils import financial_year_start, month_name
from hr_portal.schemas.hr import (
    LeaveApplication, LeaveApplicationCreate, LeaveBalanceResponse, OpeningLeaveBalance,
    ImportResult, EmployeeStatus,
)
from hr_portal.services.csv_import_service import OpeningBalanceCSVImporter
from hr_portal.services.payroll_service import PayrollService, current_period

logger = logging.getLogger(__name__)

router = APIRouter()


# ==================== Leave Applications ====================

@router.get("/applications", response_model=List[LeaveApplication])
async def list_leave_applications(
    repo: Repo,
    current_user: CurrentUser,
    employee_id: Optional[str] = None,
):
    """List recorded leave, newest first."""
    applications = await repo.load_leave_applications()
    if employee_id:
        applications = [a for a in applications if a.employee_id == employee_id]
    return sorted(applications, key=lambda a: a.start_date, reverse=True)


@router.post("/applications", response_model=LeaveApplication, status_code=status.HTTP_201_CREATED)
async def create_leave_application(data: LeaveApplicationCreate, repo: Repo, current_user: CurrentUser):
    """Record a leave taken by an employee."""
    employee = await repo.get_employee(data.employee_id)
    if not employee:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Employee not found"
        )

    application = LeaveApplication(**data.model_dump())
    applications = await repo.load_leave_applications()
    applications.append(application)
    await repo.save_leave_applications(applications)
    await log_activity(
        repo, current_user,
        f"recorded {application.days} day(s) {application.leave_type.value} for {employee.code}"
    )
    return application


@router.delete("/applications/{application_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_leave_application(application_id: str, repo: Repo, current_user: CurrentUser):
    """Delete a recorded leave."""
    applications = await repo.load_leave_applications()
    remaining = [a for a in applications if a.id != application_id]
    if len(remaining) == len(applications):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Leave application not found"
        )

    await repo.save_leave_applications(remaining)
    await log_activity(repo, current_user, f"deleted leave record {application_id}")


# ==================== Opening Balances ====================

@router.get("/opening-balances", response_model=List[OpeningLeaveBalance])
async def list_opening_balances(
    repo: Repo,
    current_user: CurrentUser,
    employee_code: Optional[str] = None,
    fy: Optional[int] = None,
):
    """List opening balance overrides."""
    balances = await repo.load_opening_balances()
    if employee_code:
        balances = [b for b in balances if b.employee_code == employee_code]
    if fy is not None:
        balances = [b for b in balances if b.financial_year_start == fy]
    return balances


@router.put("/opening-balances", response_model=OpeningLeaveBalance)
async def upsert_opening_balance(data: OpeningLeaveBalance, repo: Repo, current_user: CurrentUser):
    """
    Create or replace an opening balance override.

    Overrides are keyed by employee, financial year and (optional) month.
    """
    if not await repo.get_employee(data.employee_code):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Employee not found"
        )

    balances = [b for b in await repo.load_opening_balances() if b.key != data.key]
    balances.append(data)
    await repo.save_opening_balances(balances)

    period = f"FY {data.financial_year_start}" if data.month is None else (
        f"{month_name(data.month)} (FY {data.financial_year_start})"
    )
    await log_activity(repo, current_user, f"set opening leave balance for {data.employee_code}, {period}")
    return data


@router.get("/opening-balances/template")
async def download_opening_balance_template(
    repo: Repo,
    current_user: CurrentUser,
    fy: Optional[int] = Query(None, description="Financial year start, defaults to the current one"),
):
    """CSV template listing active employees for the given financial year."""
    if fy is None:
        fy = financial_year_start(date.today())
    employees = [e for e in await repo.load_employees() if e.status == EmployeeStatus.ACTIVE]
    content = OpeningBalanceCSVImporter().template_for(employees, fy)
    return csv_response(content, f"opening_balances_{fy}.csv")


@router.post("/opening-balances/import", response_model=ImportResult)
async def import_opening_balances(
    repo: Repo,
    current_user: CurrentUser,
    file: UploadFile = File(..., description="Opening balances CSV"),
):
    """Import opening balance overrides from CSV. Rows for unknown employees are skipped."""
    content = await read_csv_upload(file)
    employees = await repo.load_employees()
    existing = await repo.load_opening_balances()

    result, balances = OpeningBalanceCSVImporter().import_csv(
        content, existing, [e.code for e in employees]
    )
    if result.imported:
        await repo.save_opening_balances(balances)
        await log_activity(repo, current_user, f"imported {result.imported} opening leave balance(s)")
    return result


# ==================== Balances ====================

@router.get("/balances/{code}", response_model=LeaveBalanceResponse)
async def get_leave_balances(
    code: str,
    repo: Repo,
    current_user: CurrentUser,
    year: Optional[int] = Query(None, ge=1900, le=2200),
    month: Optional[int] = Query(None, ge=1, le=12),
):
    """
    Balances available at the start of a month plus that month's usage.

    Defaults to the current month. Usage comes from the month's attendance.
    """
    current_year, current_month = current_period()
    return await PayrollService(repo).leave_balance(code, year or current_year, month or current_month)
