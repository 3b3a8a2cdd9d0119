# Services module
from hr_portal.services.storage_service import HRRepository, StorageRepository, InMemoryRepository
from hr_portal.services.auth_service import AuthService
from hr_portal.services.payroll_service import PayrollService
from hr_portal.services.sync_service import SyncService, SyncClient

# CSV Import
from hr_portal.services.csv_import_service import (
    EmployeeCSVImporter,
    OpeningBalanceCSVImporter,
    PerformanceDeductionCSVImporter,
    AttendanceCSVImporter,
)

__all__ = [
    "HRRepository",
    "StorageRepository",
    "InMemoryRepository",
    "AuthService",
    "PayrollService",
    "SyncService",
    "SyncClient",
    # CSV Import
    "EmployeeCSVImporter",
    "OpeningBalanceCSVImporter",
    "PerformanceDeductionCSVImporter",
    "AttendanceCSVImporter",
]
