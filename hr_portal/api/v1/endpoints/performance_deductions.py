"""API endpoints for monthly performance deductions."""
from typing import Optional, List

from fastapi import APIRouter, HTTPException, status, Query, UploadFile, File

from hr_portal.api.deps import Repo, CurrentUser, log_activity, read_csv_upload, csv_response
from hr_portal.core.date_utils import month_name
from hr_portal.schemas.hr import PerformanceDeductionCreate, PerformanceDeductionEntry, ImportResult
from hr_portal.services.csv_import_service import PerformanceDeductionCSVImporter

router = APIRouter()


@router.get("", response_model=List[PerformanceDeductionEntry])
async def list_performance_deductions(
    repo: Repo,
    current_user: CurrentUser,
    employee_code: Optional[str] = None,
    year: Optional[int] = Query(None, ge=1900, le=2200),
    month: Optional[int] = Query(None, ge=1, le=12),
):
    """List performance deductions, optionally for one employee or month."""
    entries = await repo.load_performance_deductions()
    if employee_code:
        entries = [e for e in entries if e.employee_code == employee_code]
    if year is not None:
        entries = [e for e in entries if e.year == year]
    if month is not None:
        entries = [e for e in entries if e.month == month]
    return entries


@router.put("", response_model=PerformanceDeductionEntry)
async def upsert_performance_deduction(data: PerformanceDeductionCreate, repo: Repo, current_user: CurrentUser):
    """Set the deduction for an employee and month, replacing any earlier amount."""
    if not await repo.get_employee(data.employee_code):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Employee not found"
        )

    entry = PerformanceDeductionEntry(**data.model_dump())
    entries = [e for e in await repo.load_performance_deductions() if e.id != entry.id]
    entries.append(entry)
    await repo.save_performance_deductions(entries)
    await log_activity(
        repo, current_user,
        f"set performance deduction {entry.amount} for {entry.employee_code}, {month_name(entry.month)} {entry.year}"
    )
    return entry


@router.get("/template")
async def download_performance_deduction_template(current_user: CurrentUser):
    return csv_response(PerformanceDeductionCSVImporter().template(), "performance_deduction_template.csv")


@router.post("/import", response_model=ImportResult)
async def import_performance_deductions(
    repo: Repo,
    current_user: CurrentUser,
    file: UploadFile = File(..., description="Performance deduction CSV"),
):
    """Import deductions from CSV. A later upload for the same employee-month wins."""
    content = await read_csv_upload(file)
    employees = await repo.load_employees()
    existing = await repo.load_performance_deductions()

    result, entries = PerformanceDeductionCSVImporter().import_csv(
        content, existing, [e.code for e in employees]
    )
    if result.imported:
        await repo.save_performance_deductions(entries)
        await log_activity(repo, current_user, f"imported {result.imported} performance deduction(s)")
    return result


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_performance_deduction(entry_id: str, repo: Repo, current_user: CurrentUser):
    entries = await repo.load_performance_deductions()
    remaining = [e for e in entries if e.id != entry_id]
    if len(remaining) == len(entries):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Performance deduction not found"
        )

    await repo.save_performance_deductions(remaining)
    await log_activity(repo, current_user, f"deleted performance deduction {entry_id}")
