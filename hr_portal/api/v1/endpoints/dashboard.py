from decimal import Decimal

from fastapi import APIRouter

from hr_portal.api.deps import Repo, CurrentUser
from hr_portal.core.date_utils import month_name
from hr_portal.schemas.hr import DashboardStats, EmployeeStatus

router = APIRouter()


@router.get("", response_model=DashboardStats)
async def get_dashboard_stats(repo: Repo, current_user: CurrentUser):
    """
    Headline numbers for the dashboard.

    Attendance percentage is P / (P + A + HD) over the last uploaded month.
    """
    employees = await repo.load_employees()
    context = await repo.load_upload_context()

    attendance_percentage = None
    attendance_period = None
    if context is not None:
        attendance_period = f"{month_name(context.month)} {context.year}"
        relevant = context.present + context.absent + context.half_day
        if relevant:
            attendance_percentage = (Decimal(context.present) * 100 / Decimal(relevant)).quantize(Decimal("0.1"))

    meta = await repo.load_sync_meta()
    return DashboardStats(
        total_employees=len(employees),
        active_employees=sum(1 for e in employees if e.status == EmployeeStatus.ACTIVE),
        attendance_percentage=attendance_percentage,
        attendance_period=attendance_period,
        leave_records=len(await repo.load_leave_applications()),
        recent_activities=await repo.load_recent_activities(),
        dataset_version=int(meta.get("local_version", 0)),
        dataset_size=len(await repo.export_all()),
    )
