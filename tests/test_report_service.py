from datetime import date
from decimal import Decimal

from conftest import make_employee
from hr_portal.schemas.hr import MonthLeaveSummary
from hr_portal.services.report_service import (
    SALARY_SHEET_HEADERS,
    employees_csv,
    leave_usage_csv,
    salary_sheet_csv,
)
from hr_portal.services.salary_service import build_salary_sheet


def _rows():
    employees = [make_employee("E001"), make_employee("E002", gross_monthly_salary=Decimal("20000"))]
    rows, _ = build_salary_sheet(employees, 2024, 6, {"E001": ["P"] * 30, "E002": ["P"] * 15 + ["A"] * 15})
    return rows


def test_salary_sheet_layout():
    lines = salary_sheet_csv(_rows()).strip().splitlines()

    assert lines[0].split(",") == SALARY_SHEET_HEADERS
    assert len(lines) == 3
    assert lines[1].split(",")[-1] == "30000.00"


def test_ledger_totals_row():
    lines = salary_sheet_csv(_rows(), include_totals=True).strip().splitlines()

    totals = lines[-1].split(",")
    assert totals[6] == "TOTALS:"
    assert totals[SALARY_SHEET_HEADERS.index("Monthly Gross")] == "50000.00"
    assert totals[SALARY_SHEET_HEADERS.index("Net Paid")] == "40000.00"


def test_leave_usage_rows():
    employee = make_employee()
    summary = MonthLeaveSummary(
        employee_code="E001", year=2024, month=7,
        opening_cl=Decimal("3.6"), opening_sl=Decimal("3.6"), opening_pl=Decimal("1.2"),
        used_cl=Decimal("1"), used_sl=Decimal("0.5"), used_pl=Decimal("0"),
        closing_cl=Decimal("2.6"), closing_sl=Decimal("3.1"), closing_pl=Decimal("1.2"),
        pl_eligible=True,
    )

    lines = leave_usage_csv(employee, [summary]).strip().splitlines()

    assert lines[1] == "Jul-2024,E001,Employee E001,1.0,0.5,0.0,2.6,3.1,1.2"


def test_employee_export_round_trips_dates():
    csv_text = employees_csv([make_employee(doj=date(2023, 4, 15))])

    assert "E001,Employee E001,Sales Executive,2023-04-15,,Active,North,Delhi,30000.00" in csv_text
