"""API endpoints for salary breakup rules, components, sheets and slips."""
import logging
from typing import Optional, List

from fastapi import APIRouter, HTTPException, status, Query

from hr_portal.api.deps import Repo, CurrentUser, Year, Month, log_activity, csv_response
from hr_portal.core.date_utils import month_name
from hr_portal.schemas.hr import (
    SalaryBreakupRule, SalaryComponentsResponse, SalarySheetEdit, SalarySheetEditsUpdate,
    SalarySheetResponse, SalarySlip,
)
from hr_portal.services.payroll_service import PayrollService, current_period
from hr_portal.services.report_service import salary_sheet_csv
from hr_portal.services.sync_service import SyncService

logger = logging.getLogger(__name__)

router = APIRouter()


# ==================== Breakup Rules ====================

@router.get("/breakup-rules", response_model=List[SalaryBreakupRule])
async def list_breakup_rules(repo: Repo, current_user: CurrentUser):
    """Salary breakup rules ordered by band."""
    rules = await repo.load_breakup_rules()
    return sorted(rules, key=lambda r: r.from_gross)


@router.put("/breakup-rules", response_model=List[SalaryBreakupRule])
async def replace_breakup_rules(rules: List[SalaryBreakupRule], repo: Repo, current_user: CurrentUser):
    """Replace the full set of breakup rules."""
    ids = [rule.id for rule in rules]
    if len(ids) != len(set(ids)):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Breakup rule ids must be unique"
        )

    await repo.save_breakup_rules(rules)
    await log_activity(repo, current_user, f"saved {len(rules)} salary breakup rule(s)")
    return sorted(rules, key=lambda r: r.from_gross)


@router.post("/breakup-rules/refresh")
async def refresh_breakup_rules(repo: Repo, current_user: CurrentUser):
    """
    Reload breakup rules from the remote dataset.

    Falls back to the stored rules when the remote is unreachable.
    """
    rules, refreshed = await SyncService(repo).fetch_breakup_rules()
    notifications = []
    if refreshed:
        await log_activity(repo, current_user, "refreshed salary breakup rules from remote")
    else:
        notifications.append("Remote breakup rules unavailable, showing stored rules")
    return {
        "rules": [rule.model_dump(mode="json") for rule in rules],
        "refreshed": refreshed,
        "notifications": notifications,
    }


# ==================== Components ====================

@router.get("/components/{code}", response_model=SalaryComponentsResponse)
async def get_salary_components(
    code: str,
    repo: Repo,
    current_user: CurrentUser,
    year: Optional[int] = Query(None, ge=1900, le=2200),
    month: Optional[int] = Query(None, ge=1, le=12),
):
    """Monthly earnings breakdown with the rule that produced it."""
    current_year, current_month = current_period()
    return await PayrollService(repo).salary_components(code, year or current_year, month or current_month)


# ==================== Salary Sheet ====================

@router.get("/sheet/{year}/{month}", response_model=SalarySheetResponse)
async def get_salary_sheet(
    repo: Repo,
    current_user: CurrentUser,
    year: Year,
    month: Month,
    only_with_attendance: bool = False,
):
    """Salary sheet for every employee on payroll in the month."""
    return await PayrollService(repo).salary_sheet(year, month, only_with_attendance=only_with_attendance)


@router.get("/sheet/{year}/{month}/csv")
async def download_salary_sheet(
    repo: Repo,
    current_user: CurrentUser,
    year: Year,
    month: Month,
):
    """Salary sheet as CSV."""
    sheet = await PayrollService(repo).salary_sheet(year, month)
    return csv_response(salary_sheet_csv(sheet.rows), f"salary_sheet_{month_name(month)}_{year}.csv")


@router.get("/sheet/{year}/{month}/edits", response_model=List[SalarySheetEdit])
async def get_salary_sheet_edits(
    repo: Repo,
    current_user: CurrentUser,
    year: Year,
    month: Month,
):
    """Manual adjustments stored for the month."""
    edits = await repo.load_salary_edits(year, month)
    return list(edits.values())


@router.put("/sheet/{year}/{month}/edits", response_model=SalarySheetResponse)
async def save_salary_sheet_edits(
    data: SalarySheetEditsUpdate,
    repo: Repo,
    current_user: CurrentUser,
    year: Year,
    month: Month,
):
    """
    Save arrears, TDS, loan, salary advance and other deductions.

    Edits merge by employee code. Returns the recomputed sheet.
    """
    known = {e.code for e in await repo.load_employees()}
    unknown = sorted({e.employee_code for e in data.edits if e.employee_code not in known})
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown employee codes: {', '.join(unknown)}"
        )

    edits = await repo.load_salary_edits(year, month)
    for edit in data.edits:
        edits[edit.employee_code] = edit
    await repo.save_salary_edits(year, month, list(edits.values()))
    await log_activity(repo, current_user, f"edited salary sheet for {month_name(month)} {year}")
    return await PayrollService(repo).salary_sheet(year, month)


# ==================== Salary Slip ====================

@router.get("/slip/{code}/{year}/{month}", response_model=SalarySlip)
async def get_salary_slip(
    code: str,
    repo: Repo,
    current_user: CurrentUser,
    year: Year,
    month: Month,
):
    """Salary slip data for one employee and month."""
    return await PayrollService(repo).salary_slip(code, year, month)
