"""API endpoints for the employee master list."""
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Query, UploadFile, File

from hr_portal.api.deps import Repo, CurrentUser, log_activity, read_csv_upload, csv_response
from hr_portal.schemas.hr import (
    EmployeeCreate, EmployeeUpdate, EmployeeDetail, EmployeeListResponse, EmployeeStatus,
    ImportResult,
)
from hr_portal.services.csv_import_service import EmployeeCSVImporter
from hr_portal.services.report_service import employees_csv

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=EmployeeListResponse)
async def list_employees(
    repo: Repo,
    current_user: CurrentUser,
    search: Optional[str] = None,
    employee_status: Optional[EmployeeStatus] = Query(None, alias="status"),
    division: Optional[str] = None,
):
    """List employees, optionally filtered by status, division or a search term."""
    employees = await repo.load_employees()

    if employee_status is not None:
        employees = [e for e in employees if e.status == employee_status]
    if division:
        employees = [e for e in employees if e.division.lower() == division.lower()]
    if search:
        term = search.lower()
        employees = [
            e for e in employees
            if term in e.code.lower() or term in e.name.lower() or term in e.designation.lower()
        ]

    return EmployeeListResponse(items=employees, total=len(employees))


# ==================== CSV ====================

@router.get("/template")
async def download_employee_template(current_user: CurrentUser):
    """Blank CSV with the employee master headers."""
    return csv_response(EmployeeCSVImporter().template(), "employee_master_template.csv")


@router.get("/export")
async def export_employees(repo: Repo, current_user: CurrentUser):
    """Download the employee master as CSV."""
    employees = await repo.load_employees()
    return csv_response(employees_csv(employees), "employee_master.csv")


@router.post("/import", response_model=ImportResult)
async def import_employees(
    repo: Repo,
    current_user: CurrentUser,
    file: UploadFile = File(..., description="Employee master CSV"),
):
    """
    Import employees from CSV.

    Rows are merged by code. A file missing required headers imports nothing.
    """
    content = await read_csv_upload(file)
    existing = await repo.load_employees()
    result, employees = EmployeeCSVImporter().import_csv(content, existing)

    if result.imported:
        await repo.save_employees(employees)
        await log_activity(
            repo, current_user,
            f"imported employees ({result.added} added, {result.updated} updated)"
        )
    logger.info(
        f"Employee import: {result.added} added, {result.updated} updated, "
        f"{result.malformed} malformed, {result.duplicates} duplicates"
    )
    return result


# ==================== CRUD ====================

@router.get("/{code}", response_model=EmployeeDetail)
async def get_employee(code: str, repo: Repo, current_user: CurrentUser):
    """Get an employee by code."""
    employee = await repo.get_employee(code)
    if not employee:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Employee not found"
        )
    return employee


@router.post("", response_model=EmployeeDetail, status_code=status.HTTP_201_CREATED)
async def create_employee(data: EmployeeCreate, repo: Repo, current_user: CurrentUser):
    """Add an employee to the master list."""
    employees = await repo.load_employees()
    if any(e.code == data.code for e in employees):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Employee with code {data.code} already exists"
        )

    employee = data.to_detail()
    employees.append(employee)
    await repo.save_employees(employees)
    await log_activity(repo, current_user, f"added employee {employee.code} ({employee.name})")
    return employee


@router.put("/{code}", response_model=EmployeeDetail)
async def update_employee(code: str, data: EmployeeUpdate, repo: Repo, current_user: CurrentUser):
    """Replace an employee's editable fields. The code is immutable."""
    employees = await repo.load_employees()
    for index, existing in enumerate(employees):
        if existing.code == code:
            employee = EmployeeDetail(id=existing.id, code=code, **data.model_dump())
            employees[index] = employee
            await repo.save_employees(employees)
            await log_activity(repo, current_user, f"updated employee {code}")
            return employee

    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Employee not found"
    )


@router.delete("/{code}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_employee(code: str, repo: Repo, current_user: CurrentUser):
    """
    Remove an employee from the master list.

    Leave history is kept so past balances stay reproducible.
    """
    employees = await repo.load_employees()
    remaining = [e for e in employees if e.code != code]
    if len(remaining) == len(employees):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Employee not found"
        )

    await repo.save_employees(remaining)
    await log_activity(repo, current_user, f"removed employee {code}")
