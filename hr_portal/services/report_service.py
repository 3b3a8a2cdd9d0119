"""CSV renderers for salary sheets, the salary ledger and leave usage."""
import csv
import io
from decimal import Decimal
from typing import List, Iterable

from hr_portal.core.date_utils import month_name
from hr_portal.schemas.hr import SalarySheetRow, MonthLeaveSummary, EmployeeDetail

SALARY_SHEET_HEADERS = [
    "Employee Status", "Division", "Code", "Name", "Designation", "HQ", "DOJ",
    "Total Days", "Day Paid", "Week Off", "Day Absent",
    "Monthly Basic", "Monthly HRA", "Monthly CA", "Monthly Other Allowance", "Monthly Medical",
    "Monthly Gross",
    "Actual Basic", "Actual HRA", "Actual CA", "Actual Other Allowance", "Actual Medical",
    "Arrears", "Total Allowance",
    "TDS", "Loan", "Salary Advance", "Other Deduction", "Performance Deduction",
    "Total Deduction", "Net Paid",
]

LEAVE_USAGE_HEADERS = [
    "Month-Year", "Employee Code", "Employee Name",
    "CL Used", "SL Used", "PL Used",
    "CL Balance", "SL Balance", "PL Balance",
]

# Columns summed into the ledger totals row
_TOTAL_COLUMNS = SALARY_SHEET_HEADERS[11:]


def _money(value: Decimal) -> str:
    return f"{value:.2f}"


def _days(value: Decimal) -> str:
    return f"{value:.1f}"


def salary_row_values(row: SalarySheetRow) -> List[str]:
    return [
        row.employee_status.value, row.division or "N/A", row.code, row.name, row.designation,
        row.hq or "N/A", row.doj.strftime("%d-%m-%Y") if row.doj else "N/A",
        str(row.total_days), _days(row.days_paid), str(row.week_offs), _days(row.days_absent),
        _money(row.monthly.basic), _money(row.monthly.hra), _money(row.monthly.ca),
        _money(row.monthly.other_allowance), _money(row.monthly.medical), _money(row.monthly.total_gross),
        _money(row.actual.basic), _money(row.actual.hra), _money(row.actual.ca),
        _money(row.actual.other_allowance), _money(row.actual.medical),
        _money(row.arrears), _money(row.total_allowance),
        _money(row.tds), _money(row.loan), _money(row.salary_advance), _money(row.other_deduction),
        _money(row.performance_deduction),
        _money(row.total_deduction), _money(row.net_paid),
    ]


def salary_sheet_csv(rows: Iterable[SalarySheetRow], include_totals: bool = False) -> str:
    """Salary sheet as CSV; the ledger variant appends a totals row."""
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(SALARY_SHEET_HEADERS)

    totals = [Decimal("0")] * len(_TOTAL_COLUMNS)
    for row in rows:
        values = salary_row_values(row)
        writer.writerow(values)
        for index, value in enumerate(values[11:]):
            totals[index] += Decimal(value)

    if include_totals:
        writer.writerow([""] * 6 + ["TOTALS:"] + [""] * 4 + [_money(total) for total in totals])
    return output.getvalue()


def leave_usage_csv(employee: EmployeeDetail, summaries: Iterable[MonthLeaveSummary]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(LEAVE_USAGE_HEADERS)
    for summary in summaries:
        writer.writerow([
            f"{month_name(summary.month)[:3]}-{summary.year}",
            employee.code,
            employee.name,
            _days(summary.used_cl), _days(summary.used_sl), _days(summary.used_pl),
            _days(summary.closing_cl), _days(summary.closing_sl), _days(summary.closing_pl),
        ])
    return output.getvalue()


def employees_csv(employees: Iterable[EmployeeDetail]) -> str:
    """Employee master in the same layout the importer accepts."""
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow([
        "Code", "Name", "Designation", "DOJ", "DOR", "Status", "Division", "HQ",
        "Gross Monthly Salary", "Revised Gross Monthly Salary", "Salary Effective Date",
    ])
    for e in employees:
        writer.writerow([
            e.code, e.name, e.designation,
            e.doj.isoformat() if e.doj else "",
            e.dor.isoformat() if e.dor else "",
            e.status.value, e.division, e.hq,
            _money(e.gross_monthly_salary),
            _money(e.revised_gross_monthly_salary) if e.revised_gross_monthly_salary is not None else "",
            e.salary_effective_date.isoformat() if e.salary_effective_date else "",
        ])
    return output.getvalue()
