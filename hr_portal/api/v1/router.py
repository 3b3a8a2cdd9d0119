from fastapi import APIRouter

from hr_portal.api.v1.endpoints import (
    # Access Control
    auth,
    users,
    # Master Data
    employees,
    attendance,
    leave,
    performance_deductions,
    # Payroll
    salary,
    reports,
    # Sync & Dashboard
    sync,
    dashboard,
)


# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Access Control ====================
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentication"]
)
api_router.include_router(
    users.router,
    prefix="/users",
    tags=["Users"]
)

# ==================== Master Data ====================
api_router.include_router(
    employees.router,
    prefix="/employees",
    tags=["Employees"]
)
api_router.include_router(
    attendance.router,
    prefix="/attendance",
    tags=["Attendance"]
)
api_router.include_router(
    leave.router,
    prefix="/leave",
    tags=["Leave"]
)
api_router.include_router(
    performance_deductions.router,
    prefix="/performance-deductions",
    tags=["Performance Deductions"]
)

# ==================== Payroll ====================
api_router.include_router(
    salary.router,
    prefix="/salary",
    tags=["Salary"]
)
api_router.include_router(
    reports.router,
    prefix="/reports",
    tags=["Reports"]
)

# ==================== Sync & Dashboard ====================
api_router.include_router(
    sync.router,
    prefix="/sync",
    tags=["Sync"]
)
api_router.include_router(
    dashboard.router,
    prefix="/dashboard",
    tags=["Dashboard"]
)
