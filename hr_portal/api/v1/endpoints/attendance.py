"""API endpoints for monthly attendance sheets."""
import logging
from typing import List

from fastapi import APIRouter, HTTPException, status, UploadFile, File
from pydantic import ValidationError

from hr_portal.api.deps import Repo, CurrentUser, Year, Month, log_activity, read_csv_upload, csv_response
from hr_portal.core.date_utils import month_name
from hr_portal.schemas.hr import (
    AttendanceRecordsUpdate, AttendanceUploadContext, EmployeeAttendance, EmployeeStatus, ImportResult,
    MonthlyAttendance, MonthlyAttendanceResponse,
)
from hr_portal.services.csv_import_service import AttendanceCSVImporter
from hr_portal.services.salary_service import summarize_attendance
from hr_portal.services.storage_service import HRRepository

logger = logging.getLogger(__name__)

router = APIRouter()


# ==================== Helper Functions ====================

def build_upload_context(year: int, month: int, records: List[EmployeeAttendance]) -> AttendanceUploadContext:
    """Counts of P, A and HD across all employees for the dashboard."""
    context = AttendanceUploadContext(year=year, month=month, employee_count=len(records))
    for record in records:
        for code in record.attendance:
            if code == "P":
                context.present += 1
            elif code == "A":
                context.absent += 1
            elif code == "HD":
                context.half_day += 1
    return context


async def _store_month(repo: HRRepository, year: int, month: int, records: List[EmployeeAttendance]) -> None:
    await repo.save_attendance(year, month, records)
    await repo.save_upload_context(build_upload_context(year, month, records))


# ==================== Attendance Endpoints ====================

@router.get("/last-upload", response_model=AttendanceUploadContext)
async def get_last_upload(repo: Repo, current_user: CurrentUser):
    """Context of the most recent attendance upload."""
    context = await repo.load_upload_context()
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No attendance has been uploaded yet"
        )
    return context


@router.get("/{year}/{month}", response_model=MonthlyAttendanceResponse)
async def get_month_attendance(
    repo: Repo,
    current_user: CurrentUser,
    year: Year,
    month: Month,
):
    """Daily codes and pay-factor summary per employee for a month."""
    records = await repo.load_attendance(year, month)
    notifications = []
    if records is None:
        notifications.append(f"No attendance uploaded for {month_name(month)} {year}")
        records = []

    summaries = [summarize_attendance(r.code, r.attendance, year, month) for r in records]
    return MonthlyAttendanceResponse(
        year=year,
        month=month,
        records=records,
        summaries=summaries,
        notifications=notifications,
    )


@router.put("/{year}/{month}", response_model=MonthlyAttendanceResponse)
async def replace_month_attendance(
    data: AttendanceRecordsUpdate,
    repo: Repo,
    current_user: CurrentUser,
    year: Year,
    month: Month,
):
    """Replace a month's attendance with the given records."""
    try:
        sheet = MonthlyAttendance(year=year, month=month, records=data.records)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False, include_context=False, include_input=False),
        )

    known = {e.code for e in await repo.load_employees()}
    unknown = sorted(r.code for r in sheet.records if r.code not in known)
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown employee codes: {', '.join(unknown)}"
        )

    await _store_month(repo, year, month, sheet.records)
    await log_activity(repo, current_user, f"saved attendance for {month_name(month)} {year}")
    return MonthlyAttendanceResponse(
        year=year,
        month=month,
        records=sheet.records,
        summaries=[summarize_attendance(r.code, r.attendance, year, month) for r in sheet.records],
    )


@router.get("/{year}/{month}/template")
async def download_attendance_template(
    repo: Repo,
    current_user: CurrentUser,
    year: Year,
    month: Month,
):
    """CSV template pre-filled with active employees."""
    employees = [e for e in await repo.load_employees() if e.status == EmployeeStatus.ACTIVE]
    content = AttendanceCSVImporter(year, month).template_for(employees)
    return csv_response(content, f"attendance_{month_name(month)}_{year}.csv")


@router.post("/{year}/{month}/upload", response_model=ImportResult)
async def upload_attendance(
    repo: Repo,
    current_user: CurrentUser,
    year: Year,
    month: Month,
    file: UploadFile = File(..., description="Attendance CSV with one column per day"),
):
    """
    Upload a month's attendance from CSV.

    Rows merge into any attendance already stored for the month. Blank
    cells count as absent.
    """
    content = await read_csv_upload(file)
    employees = await repo.load_employees()
    existing = await repo.load_attendance(year, month)

    result, records = AttendanceCSVImporter(year, month).import_csv(
        content, existing, [e.code for e in employees]
    )
    if result.imported:
        await _store_month(repo, year, month, records)
        await log_activity(
            repo, current_user,
            f"uploaded attendance for {month_name(month)} {year} ({result.imported} employees)"
        )
    logger.info(
        f"Attendance upload {month_name(month)} {year}: {result.imported} imported, "
        f"{result.malformed} malformed, {result.unknown_employees} unknown"
    )
    return result
