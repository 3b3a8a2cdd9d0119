"""
Storage Repository for HR Data Slices.

Every slice of portal data (employee master, monthly attendance, leave
applications, ...) is a JSON document under a versioned key. Services get
a repository injected and never touch keys directly.

Supports:
1. SQLAlchemy-backed storage (the `storage_entries` table)
2. In-memory storage (tests and offline tooling)

Usage:
    repo = StorageRepository(db)
    employees = await repo.load_employees()
    await repo.save_employees(employees)
"""
import hashlib
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional, Dict, List, Type, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hr_portal.core.date_utils import month_name
from hr_portal.core.exceptions import StorageError
from hr_portal.models.storage import StorageEntry
from hr_portal.schemas.hr import (
    EmployeeDetail, LeaveApplication, OpeningLeaveBalance, PerformanceDeductionEntry,
    EmployeeAttendance, SalarySheetEdit, SimulatedUser, RecentActivity,
    SalaryBreakupRule, CompanyConfig, AttendanceUploadContext,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


# ==================== Storage Keys ====================

EMPLOYEE_MASTER_KEY = "employee_master_data_v1"
OPENING_BALANCES_KEY = "opening_leave_balances_v1"
LEAVE_APPLICATIONS_KEY = "leave_applications_v1"
PERFORMANCE_DEDUCTIONS_KEY = "performance_deductions_v1"
SIMULATED_USERS_KEY = "simulated_users_v1"
RECENT_ACTIVITIES_KEY = "recent_activities_v1"
BREAKUP_RULES_KEY = "salary_breakup_rules_v1"
COMPANY_CONFIG_KEY = "company_config_v1"
LAST_UPLOAD_CONTEXT_KEY = "last_upload_context_v4"
ATTENDANCE_KEY_PREFIX = "attendance_raw_data_v4_"
SALARY_EDITS_KEY_PREFIX = "salary_sheet_edits_v1_"

# Local bookkeeping, never exported or synced
SYNC_META_KEY = "__sync_meta__"


def attendance_key(year: int, month: int) -> str:
    return f"{ATTENDANCE_KEY_PREFIX}{month_name(month)}_{year}"


def salary_edits_key(year: int, month: int) -> str:
    return f"{SALARY_EDITS_KEY_PREFIX}{month_name(month)}_{year}"


def decode_cell(value: str) -> Any:
    """Spreadsheet cells may hold JSON-encoded slices."""
    try:
        return json.loads(value)
    except ValueError:
        return value


def _dump(items: List[BaseModel]) -> List[Dict[str, Any]]:
    return [item.model_dump(mode="json") for item in items]


class HRRepository(ABC):
    """Abstract storage for HR data slices.

    Implementations provide the four raw key operations; typed accessors
    are shared.
    """

    @abstractmethod
    async def get_raw(self, key: str) -> Optional[Any]:
        """Get the JSON value stored under key."""
        pass

    @abstractmethod
    async def put_raw(self, key: str, value: Any) -> None:
        """Store a JSON value under key."""
        pass

    @abstractmethod
    async def delete_raw(self, key: str) -> bool:
        """Delete key. Returns True if it existed."""
        pass

    @abstractmethod
    async def list_keys(self) -> List[str]:
        """List every stored key."""
        pass

    # ==================== Helpers ====================

    async def _load_models(self, key: str, model: Type[ModelT]) -> List[ModelT]:
        raw = await self.get_raw(key)
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.warning(f"Storage key {key} does not hold a list, ignoring")
            return []

        items: List[ModelT] = []
        for index, item in enumerate(raw):
            try:
                items.append(model.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping invalid {model.__name__} #{index} in {key}: {e.error_count()} errors")
        return items

    async def _save_data(self, key: str, value: Any) -> None:
        await self.put_raw(key, value)
        meta = await self.load_sync_meta()
        meta["local_version"] = int(meta.get("local_version", 0)) + 1
        await self.put_raw(SYNC_META_KEY, meta)

    # ==================== Employees ====================

    async def load_employees(self) -> List[EmployeeDetail]:
        return await self._load_models(EMPLOYEE_MASTER_KEY, EmployeeDetail)

    async def save_employees(self, employees: List[EmployeeDetail]) -> None:
        await self._save_data(EMPLOYEE_MASTER_KEY, _dump(employees))

    async def get_employee(self, code: str) -> Optional[EmployeeDetail]:
        for employee in await self.load_employees():
            if employee.code == code:
                return employee
        return None

    # ==================== Leave ====================

    async def load_leave_applications(self) -> List[LeaveApplication]:
        return await self._load_models(LEAVE_APPLICATIONS_KEY, LeaveApplication)

    async def save_leave_applications(self, applications: List[LeaveApplication]) -> None:
        await self._save_data(LEAVE_APPLICATIONS_KEY, _dump(applications))

    async def load_opening_balances(self) -> List[OpeningLeaveBalance]:
        return await self._load_models(OPENING_BALANCES_KEY, OpeningLeaveBalance)

    async def save_opening_balances(self, balances: List[OpeningLeaveBalance]) -> None:
        await self._save_data(OPENING_BALANCES_KEY, _dump(balances))

    # ==================== Attendance ====================

    async def load_attendance(self, year: int, month: int) -> Optional[List[EmployeeAttendance]]:
        """Records for the month, or None when no sheet was ever saved."""
        key = attendance_key(year, month)
        if await self.get_raw(key) is None:
            return None
        return await self._load_models(key, EmployeeAttendance)

    async def save_attendance(self, year: int, month: int, records: List[EmployeeAttendance]) -> None:
        await self._save_data(attendance_key(year, month), _dump(records))

    async def load_upload_context(self) -> Optional[AttendanceUploadContext]:
        raw = await self.get_raw(LAST_UPLOAD_CONTEXT_KEY)
        if raw is None:
            return None
        try:
            return AttendanceUploadContext.model_validate(raw)
        except ValidationError:
            logger.warning("Ignoring invalid attendance upload context")
            return None

    async def save_upload_context(self, context: AttendanceUploadContext) -> None:
        await self._save_data(LAST_UPLOAD_CONTEXT_KEY, context.model_dump(mode="json"))

    # ==================== Payroll ====================

    async def load_performance_deductions(self) -> List[PerformanceDeductionEntry]:
        return await self._load_models(PERFORMANCE_DEDUCTIONS_KEY, PerformanceDeductionEntry)

    async def save_performance_deductions(self, entries: List[PerformanceDeductionEntry]) -> None:
        await self._save_data(PERFORMANCE_DEDUCTIONS_KEY, _dump(entries))

    async def load_salary_edits(self, year: int, month: int) -> Dict[str, SalarySheetEdit]:
        edits = await self._load_models(salary_edits_key(year, month), SalarySheetEdit)
        return {edit.employee_code: edit for edit in edits}

    async def save_salary_edits(self, year: int, month: int, edits: List[SalarySheetEdit]) -> None:
        await self._save_data(salary_edits_key(year, month), _dump(edits))

    async def load_breakup_rules(self) -> List[SalaryBreakupRule]:
        return await self._load_models(BREAKUP_RULES_KEY, SalaryBreakupRule)

    async def save_breakup_rules(self, rules: List[SalaryBreakupRule]) -> None:
        await self._save_data(BREAKUP_RULES_KEY, _dump(rules))

    # ==================== Users & Activity ====================

    async def load_users(self) -> List[SimulatedUser]:
        return await self._load_models(SIMULATED_USERS_KEY, SimulatedUser)

    async def save_users(self, users: List[SimulatedUser]) -> None:
        await self._save_data(SIMULATED_USERS_KEY, _dump(users))

    async def load_recent_activities(self) -> List[RecentActivity]:
        return await self._load_models(RECENT_ACTIVITIES_KEY, RecentActivity)

    async def add_activity(self, message: str, limit: int = 20) -> RecentActivity:
        """Prepend an entry to the activity log, keeping the newest `limit`."""
        activity = RecentActivity(message=message)
        activities = [activity] + await self.load_recent_activities()
        await self._save_data(RECENT_ACTIVITIES_KEY, _dump(activities[:limit]))
        return activity

    # ==================== Company Config ====================

    async def load_company_config(self) -> Optional[CompanyConfig]:
        raw = await self.get_raw(COMPANY_CONFIG_KEY)
        if raw is None:
            return None
        try:
            return CompanyConfig.model_validate(raw)
        except ValidationError:
            logger.warning("Ignoring invalid cached company config")
            return None

    async def save_company_config(self, config: CompanyConfig) -> None:
        await self._save_data(COMPANY_CONFIG_KEY, config.model_dump(mode="json"))

    # ==================== Whole Dataset ====================

    async def load_sync_meta(self) -> Dict[str, Any]:
        meta = await self.get_raw(SYNC_META_KEY)
        return dict(meta) if isinstance(meta, dict) else {}

    async def save_sync_meta(self, meta: Dict[str, Any]) -> None:
        await self.put_raw(SYNC_META_KEY, meta)

    async def export_all(self) -> Dict[str, Any]:
        """Every data slice keyed by storage key (bookkeeping excluded)."""
        data = {}
        for key in sorted(await self.list_keys()):
            if key == SYNC_META_KEY:
                continue
            data[key] = await self.get_raw(key)
        return data

    async def import_all(self, data: Dict[str, Any], replace: bool = False) -> int:
        """Write every slice in `data` over local storage.

        Empty values are ignored. With `replace`, local keys absent from
        `data` are removed as well.
        """
        incoming = {
            k: v for k, v in data.items()
            if not k.startswith("__") and v not in (None, "")
        }
        if replace:
            for key in await self.list_keys():
                if key != SYNC_META_KEY and key not in incoming:
                    await self.delete_raw(key)
        for key, value in incoming.items():
            if isinstance(value, str):
                value = decode_cell(value)
            await self.put_raw(key, value)
        return len(incoming)

    async def dataset_hash(self) -> str:
        payload = json.dumps(await self.export_all(), sort_keys=True, default=str)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class InMemoryRepository(HRRepository):
    """
    Dict-backed repository.

    Note: data is lost on restart; use StorageRepository for the service.
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = {}
        if initial:
            self._data.update(json.loads(json.dumps(initial, default=str)))

    async def get_raw(self, key: str) -> Optional[Any]:
        value = self._data.get(key)
        # Hand out copies so callers cannot mutate stored state
        return json.loads(json.dumps(value)) if value is not None else None

    async def put_raw(self, key: str, value: Any) -> None:
        self._data[key] = json.loads(json.dumps(value, default=str))

    async def delete_raw(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def list_keys(self) -> List[str]:
        return list(self._data.keys())


class StorageRepository(HRRepository):
    """Repository backed by the `storage_entries` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_raw(self, key: str) -> Optional[Any]:
        try:
            entry = await self.db.get(StorageEntry, key)
        except SQLAlchemyError as e:
            logger.error(f"Failed to read storage key {key}: {e}")
            raise StorageError(f"Failed to read {key}", key=key) from e
        return entry.value if entry else None

    async def put_raw(self, key: str, value: Any) -> None:
        try:
            entry = await self.db.get(StorageEntry, key)
            if entry is None:
                self.db.add(StorageEntry(key=key, value=value, version=1))
            else:
                entry.value = value
                entry.version = (entry.version or 0) + 1
                entry.updated_at = datetime.now(timezone.utc)
            await self.db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Failed to write storage key {key}: {e}")
            raise StorageError(f"Failed to write {key}", key=key) from e

    async def delete_raw(self, key: str) -> bool:
        try:
            result = await self.db.execute(delete(StorageEntry).where(StorageEntry.key == key))
            await self.db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete storage key {key}: {e}")
            raise StorageError(f"Failed to delete {key}", key=key) from e
        return result.rowcount > 0

    async def list_keys(self) -> List[str]:
        try:
            result = await self.db.execute(select(StorageEntry.key))
        except SQLAlchemyError as e:
            logger.error(f"Failed to list storage keys: {e}")
            raise StorageError("Failed to list storage keys") from e
        return [row[0] for row in result.all()]
