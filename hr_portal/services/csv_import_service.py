"""
CSV Import Service

Handles importing HR spreadsheets exported from Excel / Google Sheets:
- Employee master
- Opening leave balances
- Performance deductions
- Monthly attendance

Headers are matched case- and space-insensitively ("Gross Monthly Salary"
== "grossmonthlysalary"). A file missing any required header imports
nothing and reports the missing headers. Malformed rows, in-file
duplicate keys and unknown employees are skipped and counted separately.

Importers are pure: they take the current records and return the merged
list plus an ImportResult. Persisting is the caller's job.
"""

import csv
import io
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Optional, Dict, List, Tuple, Iterable

from pydantic import ValidationError

from hr_portal.core.date_utils import parse_month, days_in_month
from hr_portal.core.exceptions import ParsingError
from hr_portal.schemas.hr import (
    EmployeeCreate, EmployeeDetail, OpeningLeaveBalance, PerformanceDeductionEntry,
    EmployeeAttendance, ImportResult, ATTENDANCE_CODES,
)

logger = logging.getLogger(__name__)


def normalize_header(header: str) -> str:
    return re.sub(r"\s+", "", (header or "").replace("\ufeff", "")).lower()


def _validation_message(e: ValidationError) -> str:
    first = e.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


class CSVParser:
    """Base class for HR CSV importers."""

    # Display names; matching uses normalize_header()
    REQUIRED_HEADERS: List[str] = []
    OPTIONAL_HEADERS: List[str] = []

    def read(self, content: str) -> Tuple[List[str], List[Tuple[int, Dict[str, str]]]]:
        """Return normalized headers and (row_number, row) pairs.

        Row numbers are 1-based file lines, so the first data row is 2.
        Blank lines are skipped.
        """
        reader = csv.reader(io.StringIO(content.lstrip("\ufeff")))
        try:
            raw_headers = next(reader)
        except StopIteration:
            return [], []

        headers = [normalize_header(h) for h in raw_headers]
        rows = []
        for row_number, values in enumerate(reader, start=2):
            if not any(v.strip() for v in values):
                continue
            row = {}
            for index, header in enumerate(headers):
                if header:
                    row[header] = values[index].strip() if index < len(values) else ""
            rows.append((row_number, row))
        return headers, rows

    def required_headers(self) -> List[str]:
        return list(self.REQUIRED_HEADERS)

    def missing_headers(self, headers: Iterable[str]) -> List[str]:
        present = set(headers)
        return [h for h in self.required_headers() if normalize_header(h) not in present]

    def template(self) -> str:
        output = io.StringIO()
        writer = csv.writer(output, lineterminator="\n")
        writer.writerow(self.required_headers() + self.OPTIONAL_HEADERS)
        return output.getvalue()

    def parse_amount(self, value: str, row_number: int, field: str) -> Decimal:
        """Parse an amount, tolerating currency symbols and thousands separators."""
        cleaned = re.sub(r"[₹,\s]", "", value or "")
        if not cleaned:
            return Decimal("0")
        try:
            return Decimal(cleaned)
        except InvalidOperation:
            raise ParsingError(f"Invalid {field}: {value!r}", row_number=row_number)

    def parse_int(self, value: str, row_number: int, field: str) -> int:
        try:
            return int(Decimal((value or "").strip()))
        except (InvalidOperation, ValueError):
            raise ParsingError(f"Invalid {field}: {value!r}", row_number=row_number)

    def reject(self, result: ImportResult, error: ParsingError) -> None:
        result.malformed += 1
        result.errors.append(f"Row {error.row_number}: {error.message}")
        logger.warning(f"CSV row {error.row_number} skipped: {error.message}")


# ==================== Employee Master ====================

class EmployeeCSVImporter(CSVParser):
    REQUIRED_HEADERS = ["Code", "Name", "Designation", "DOJ", "Status", "Division", "HQ", "Gross Monthly Salary"]
    OPTIONAL_HEADERS = ["DOR", "Revised Gross Monthly Salary", "Salary Effective Date"]

    def parse_row(self, row_number: int, row: Dict[str, str]) -> EmployeeCreate:
        try:
            return EmployeeCreate(
                code=row.get("code", ""),
                name=row.get("name", ""),
                designation=row.get("designation", ""),
                doj=row.get("doj") or None,
                dor=row.get("dor") or None,
                status=(row.get("status") or "Active").strip().capitalize(),
                division=row.get("division", ""),
                hq=row.get("hq", ""),
                gross_monthly_salary=self.parse_amount(row.get("grossmonthlysalary", ""), row_number, "gross monthly salary"),
                revised_gross_monthly_salary=row.get("revisedgrossmonthlysalary") or None,
                salary_effective_date=row.get("salaryeffectivedate") or None,
            )
        except ValidationError as e:
            raise ParsingError(_validation_message(e), row_number=row_number)

    def import_csv(self, content: str, existing: List[EmployeeDetail]) -> Tuple[ImportResult, List[EmployeeDetail]]:
        result = ImportResult()
        headers, rows = self.read(content)
        result.missing_headers = self.missing_headers(headers)
        if result.missing_headers:
            return result, existing

        merged = {employee.code: employee for employee in existing}
        seen = set()
        for row_number, row in rows:
            try:
                employee = self.parse_row(row_number, row)
            except ParsingError as e:
                self.reject(result, e)
                continue

            if employee.code in seen:
                result.duplicates += 1
                result.errors.append(f"Row {row_number}: duplicate code {employee.code}")
                continue
            seen.add(employee.code)

            detail = employee.to_detail()
            if employee.code in merged:
                result.updated += 1
                # The CSV carries no rule column; keep the assigned rule
                if detail.breakup_rule_id is None:
                    detail.breakup_rule_id = merged[employee.code].breakup_rule_id
            else:
                result.added += 1
            merged[employee.code] = detail

        return result, list(merged.values())


# ==================== Opening Leave Balances ====================

class OpeningBalanceCSVImporter(CSVParser):
    REQUIRED_HEADERS = ["Code", "Financial Year Start", "Opening CL", "Opening SL", "Opening PL"]
    OPTIONAL_HEADERS = ["Name", "Month"]

    def parse_row(self, row_number: int, row: Dict[str, str]) -> OpeningLeaveBalance:
        month = None
        if row.get("month"):
            month = parse_month(row["month"])
            if month is None:
                raise ParsingError(f"Invalid month: {row['month']!r}", row_number=row_number)
        try:
            return OpeningLeaveBalance(
                employee_code=row.get("code", ""),
                financial_year_start=self.parse_int(row.get("financialyearstart", ""), row_number, "financial year start"),
                month=month,
                opening_cl=self.parse_amount(row.get("openingcl", ""), row_number, "opening CL"),
                opening_sl=self.parse_amount(row.get("openingsl", ""), row_number, "opening SL"),
                opening_pl=self.parse_amount(row.get("openingpl", ""), row_number, "opening PL"),
            )
        except ValidationError as e:
            raise ParsingError(_validation_message(e), row_number=row_number)

    def import_csv(
        self,
        content: str,
        existing: List[OpeningLeaveBalance],
        employee_codes: Iterable[str],
    ) -> Tuple[ImportResult, List[OpeningLeaveBalance]]:
        result = ImportResult()
        headers, rows = self.read(content)
        result.missing_headers = self.missing_headers(headers)
        if result.missing_headers:
            return result, existing

        known = set(employee_codes)
        merged = {balance.key: balance for balance in existing}
        seen = set()
        for row_number, row in rows:
            try:
                balance = self.parse_row(row_number, row)
            except ParsingError as e:
                self.reject(result, e)
                continue

            if balance.employee_code not in known:
                result.unknown_employees += 1
                result.errors.append(f"Row {row_number}: unknown employee {balance.employee_code}")
                continue
            if balance.key in seen:
                result.duplicates += 1
                result.errors.append(f"Row {row_number}: duplicate balance for {balance.employee_code}")
                continue
            seen.add(balance.key)

            if balance.key in merged:
                result.updated += 1
            else:
                result.added += 1
            merged[balance.key] = balance

        return result, list(merged.values())

    def template_for(self, employees: Iterable[EmployeeDetail], financial_year_start: int) -> str:
        output = io.StringIO()
        writer = csv.writer(output, lineterminator="\n")
        writer.writerow(["Code", "Name", "Financial Year Start", "Month", "Opening CL", "Opening SL", "Opening PL"])
        for employee in employees:
            writer.writerow([employee.code, employee.name, financial_year_start, "", "0", "0", "0"])
        return output.getvalue()


# ==================== Performance Deductions ====================

class PerformanceDeductionCSVImporter(CSVParser):
    REQUIRED_HEADERS = ["Code", "Name", "Designation", "Amount", "Month", "Year"]

    def parse_row(self, row_number: int, row: Dict[str, str]) -> PerformanceDeductionEntry:
        month = parse_month(row.get("month"))
        if month is None:
            raise ParsingError(f"Invalid month: {row.get('month')!r}", row_number=row_number)
        code = row.get("code", "").strip()
        if not code:
            raise ParsingError("Missing employee code", row_number=row_number)
        try:
            return PerformanceDeductionEntry(
                employee_code=code,
                month=month,
                year=self.parse_int(row.get("year", ""), row_number, "year"),
                amount=self.parse_amount(row.get("amount", ""), row_number, "amount"),
            )
        except ValidationError as e:
            raise ParsingError(_validation_message(e), row_number=row_number)

    def import_csv(
        self,
        content: str,
        existing: List[PerformanceDeductionEntry],
        employee_codes: Iterable[str],
    ) -> Tuple[ImportResult, List[PerformanceDeductionEntry]]:
        result = ImportResult()
        headers, rows = self.read(content)
        result.missing_headers = self.missing_headers(headers)
        if result.missing_headers:
            return result, existing

        known = set(employee_codes)
        merged = {entry.id: entry for entry in existing}
        seen = set()
        for row_number, row in rows:
            try:
                entry = self.parse_row(row_number, row)
            except ParsingError as e:
                self.reject(result, e)
                continue

            if entry.employee_code not in known:
                result.unknown_employees += 1
                result.errors.append(f"Row {row_number}: unknown employee {entry.employee_code}")
                continue
            if entry.id in seen:
                result.duplicates += 1
                result.errors.append(f"Row {row_number}: duplicate deduction for {entry.employee_code}")
                continue
            seen.add(entry.id)

            # A later upload for the same employee-month replaces the earlier amount
            if entry.id in merged:
                result.updated += 1
            else:
                result.added += 1
            merged[entry.id] = entry

        return result, list(merged.values())


# ==================== Monthly Attendance ====================

class AttendanceCSVImporter(CSVParser):
    """Code, optional Name, then one column per day of the month ("1".."31")."""
    OPTIONAL_HEADERS = ["Name"]

    def __init__(self, year: int, month: int):
        self.year = year
        self.month = month
        self.total_days = days_in_month(year, month)

    def required_headers(self) -> List[str]:
        return ["Code"] + [str(day) for day in range(1, self.total_days + 1)]

    def template(self) -> str:
        output = io.StringIO()
        writer = csv.writer(output, lineterminator="\n")
        writer.writerow(["Code", "Name"] + [str(day) for day in range(1, self.total_days + 1)])
        return output.getvalue()

    def template_for(self, employees: Iterable[EmployeeDetail]) -> str:
        output = io.StringIO()
        writer = csv.writer(output, lineterminator="\n")
        writer.writerow(["Code", "Name"] + [str(day) for day in range(1, self.total_days + 1)])
        for employee in employees:
            writer.writerow([employee.code, employee.name] + [""] * self.total_days)
        return output.getvalue()

    def parse_row(self, row_number: int, row: Dict[str, str]) -> EmployeeAttendance:
        code = row.get("code", "").strip()
        if not code:
            raise ParsingError("Missing employee code", row_number=row_number)

        codes = []
        for day in range(1, self.total_days + 1):
            value = (row.get(str(day)) or "A").strip().upper()
            if value not in ATTENDANCE_CODES:
                raise ParsingError(f"Unknown attendance code {value!r} on day {day}", row_number=row_number)
            codes.append(value)
        return EmployeeAttendance(code=code, attendance=codes)

    def import_csv(
        self,
        content: str,
        existing: Optional[List[EmployeeAttendance]],
        employee_codes: Iterable[str],
    ) -> Tuple[ImportResult, List[EmployeeAttendance]]:
        result = ImportResult()
        current = list(existing or [])
        headers, rows = self.read(content)
        result.missing_headers = self.missing_headers(headers)
        if result.missing_headers:
            return result, current

        known = set(employee_codes)
        merged = {record.code: record for record in current}
        seen = set()
        for row_number, row in rows:
            try:
                record = self.parse_row(row_number, row)
            except ParsingError as e:
                self.reject(result, e)
                continue

            if record.code not in known:
                result.unknown_employees += 1
                result.errors.append(f"Row {row_number}: unknown employee {record.code}")
                continue
            if record.code in seen:
                result.duplicates += 1
                result.errors.append(f"Row {row_number}: duplicate code {record.code}")
                continue
            seen.add(record.code)

            if record.code in merged:
                result.updated += 1
            else:
                result.added += 1
            merged[record.code] = record

        return result, list(merged.values())
