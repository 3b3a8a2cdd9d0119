from datetime import date
from decimal import Decimal

from conftest import make_employee
from hr_portal.schemas.hr import OpeningLeaveBalance
from hr_portal.services.csv_import_service import (
    AttendanceCSVImporter,
    EmployeeCSVImporter,
    OpeningBalanceCSVImporter,
    PerformanceDeductionCSVImporter,
    normalize_header,
)

EMPLOYEE_HEADER = "Code,Name,Designation,DOJ,Status,Division,HQ,Gross Monthly Salary,DOR\n"


def test_normalize_header():
    assert normalize_header("\ufeffGross  Monthly Salary ") == "grossmonthlysalary"
    assert normalize_header("DOJ") == "doj"


class TestEmployeeImport:
    def test_imports_valid_rows(self):
        content = (
            EMPLOYEE_HEADER
            + "E001,Asha Verma,Sales Executive,01-01-2024,Active,North,Delhi,\"30,000\",\n"
            + "E002,Ravi Kumar,Area Manager,2023-04-15,left,South,Chennai,45000,2024-05-31\n"
        )

        result, employees = EmployeeCSVImporter().import_csv(content, [])

        assert result.added == 2
        assert result.malformed == 0
        by_code = {e.code: e for e in employees}
        assert by_code["E001"].doj == date(2024, 1, 1)
        assert by_code["E001"].gross_monthly_salary == Decimal("30000")
        assert by_code["E002"].status == "Left"
        assert by_code["E002"].dor == date(2024, 5, 31)

    def test_missing_header_imports_nothing(self):
        content = "Code,Name,DOJ\nE001,Asha,2024-01-01\n"
        existing = [make_employee("E900")]

        result, employees = EmployeeCSVImporter().import_csv(content, existing)

        assert result.imported == 0
        assert "Gross Monthly Salary" in result.missing_headers
        assert "Designation" in result.missing_headers
        assert employees == existing

    def test_counts_failure_kinds_separately(self):
        content = (
            EMPLOYEE_HEADER
            + "E001,Asha,Exec,2024-01-01,Active,North,Delhi,30000,\n"
            + "E001,Asha Again,Exec,2024-01-01,Active,North,Delhi,30000,\n"
            + "E003,Bad Date,Exec,31-31-2024,Active,North,Delhi,30000,\n"
            + "E004,Bad Salary,Exec,2024-01-01,Active,North,Delhi,lots,\n"
            + "E005,Active With DOR,Exec,2024-01-01,Active,North,Delhi,30000,2024-03-01\n"
        )

        result, employees = EmployeeCSVImporter().import_csv(content, [])

        assert result.added == 1
        assert result.duplicates == 1
        assert result.malformed == 3
        assert [e.code for e in employees] == ["E001"]
        assert any(error.startswith("Row 4") for error in result.errors)

    def test_existing_codes_are_updated(self):
        content = EMPLOYEE_HEADER + "E001,Asha Verma,Team Lead,2024-01-01,Active,North,Delhi,40000,\n"

        result, employees = EmployeeCSVImporter().import_csv(content, [make_employee("E001"), make_employee("E002")])

        assert result.updated == 1
        assert result.added == 0
        assert len(employees) == 2
        assert next(e for e in employees if e.code == "E001").designation == "Team Lead"

    def test_update_keeps_assigned_breakup_rule(self):
        content = EMPLOYEE_HEADER + "E001,Asha Verma,Team Lead,2024-01-01,Active,North,Delhi,40000,\n"
        existing = [make_employee("E001", breakup_rule_id="band-9")]

        result, employees = EmployeeCSVImporter().import_csv(content, existing)

        assert result.updated == 1
        assert employees[0].breakup_rule_id == "band-9"
        assert employees[0].gross_monthly_salary == Decimal("40000")


class TestOpeningBalanceImport:
    def test_unknown_employee_is_skipped(self):
        content = (
            "Code,Name,Financial Year Start,Month,Opening CL,Opening SL,Opening PL\n"
            "E001,Asha,2024,,2,3,10\n"
            "E001,Asha,2024,Jul,1,1,1\n"
            "E999,Ghost,2024,,1,1,1\n"
            "E001,Asha,2024,Smarch,1,1,1\n"
        )

        result, balances = OpeningBalanceCSVImporter().import_csv(content, [], ["E001"])

        assert result.added == 2
        assert result.unknown_employees == 1
        assert result.malformed == 1
        months = sorted((b.month or 0) for b in balances)
        assert months == [0, 7]

    def test_same_key_replaces_existing(self):
        existing = [OpeningLeaveBalance(employee_code="E001", financial_year_start=2024, opening_cl=Decimal("9"))]
        content = "Code,Financial Year Start,Opening CL,Opening SL,Opening PL\nE001,2024,2,3,10\n"

        result, balances = OpeningBalanceCSVImporter().import_csv(content, existing, ["E001"])

        assert result.updated == 1
        assert len(balances) == 1
        assert balances[0].opening_cl == Decimal("2")

    def test_duplicate_row_is_reported(self):
        content = (
            "Code,Financial Year Start,Opening CL,Opening SL,Opening PL\n"
            "E001,2024,2,3,10\n"
            "E001,2024,4,4,4\n"
        )

        result, balances = OpeningBalanceCSVImporter().import_csv(content, [], ["E001"])

        assert result.duplicates == 1
        assert balances[0].opening_cl == Decimal("2")
        assert any(error.startswith("Row 3") for error in result.errors)

    def test_template_lists_employees(self):
        template = OpeningBalanceCSVImporter().template_for([make_employee("E001")], 2024)

        lines = template.strip().splitlines()
        assert lines[0].startswith("Code,Name,Financial Year Start")
        assert lines[1].startswith("E001,Employee E001,2024")


class TestPerformanceDeductionImport:
    def test_later_row_replaces_same_month(self):
        content = (
            "Code,Name,Designation,Amount,Month,Year\n"
            "E001,Asha,Exec,500,June,2024\n"
            "E002,Ravi,Exec,250,6,2024\n"
        )
        existing_content = "Code,Name,Designation,Amount,Month,Year\nE001,Asha,Exec,100,Jun,2024\n"
        importer = PerformanceDeductionCSVImporter()

        _, first = importer.import_csv(existing_content, [], ["E001", "E002"])
        result, entries = importer.import_csv(content, first, ["E001", "E002"])

        assert result.updated == 1
        assert result.added == 1
        amounts = {e.id: e.amount for e in entries}
        assert amounts == {"E001-6-2024": Decimal("500"), "E002-6-2024": Decimal("250")}

    def test_missing_headers(self):
        result, entries = PerformanceDeductionCSVImporter().import_csv("Code,Amount\nE001,5\n", [], ["E001"])

        assert entries == []
        assert result.missing_headers == ["Name", "Designation", "Month", "Year"]

    def test_duplicate_row_is_reported(self):
        content = (
            "Code,Name,Designation,Amount,Month,Year\n"
            "E001,Asha,Exec,500,June,2024\n"
            "E001,Asha,Exec,700,Jun,2024\n"
        )

        result, entries = PerformanceDeductionCSVImporter().import_csv(content, [], ["E001"])

        assert result.duplicates == 1
        assert [e.amount for e in entries] == [Decimal("500")]
        assert any(error.startswith("Row 3") for error in result.errors)


class TestAttendanceImport:
    def _content(self, rows):
        header = "Code,Name," + ",".join(str(d) for d in range(1, 31))
        return "\n".join([header] + rows) + "\n"

    def test_blank_cells_are_absent(self):
        codes = ["p"] * 25 + ["", "w", "HD", "CL", "A"]
        content = self._content(["E001,Asha," + ",".join(codes)])

        result, records = AttendanceCSVImporter(2024, 6).import_csv(content, None, ["E001"])

        assert result.added == 1
        assert records[0].attendance[:2] == ["P", "P"]
        assert records[0].attendance[25:] == ["A", "W", "HD", "CL", "A"]

    def test_invalid_code_and_unknown_employee(self):
        content = self._content([
            "E001,Asha," + ",".join(["P"] * 29 + ["XX"]),
            "E404,Nobody," + ",".join(["P"] * 30),
        ])

        result, records = AttendanceCSVImporter(2024, 6).import_csv(content, None, ["E001"])

        assert result.malformed == 1
        assert result.unknown_employees == 1
        assert records == []

    def test_missing_day_column(self):
        content = "Code,Name," + ",".join(str(d) for d in range(1, 30)) + "\nE001,Asha\n"

        result, _ = AttendanceCSVImporter(2024, 6).import_csv(content, None, ["E001"])

        assert result.missing_headers == ["30"]

    def test_duplicate_row_is_reported(self):
        content = self._content([
            "E001,Asha," + ",".join(["P"] * 30),
            "E001,Asha," + ",".join(["A"] * 30),
        ])

        result, records = AttendanceCSVImporter(2024, 6).import_csv(content, None, ["E001"])

        assert result.duplicates == 1
        assert records[0].attendance[0] == "P"
        assert any(error.startswith("Row 3") for error in result.errors)
