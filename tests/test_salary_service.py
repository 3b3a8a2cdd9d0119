from datetime import date
from decimal import Decimal

from conftest import make_employee
from hr_portal.schemas.hr import SalaryBreakupRule, SalarySheetEdit, PerformanceDeductionEntry
from hr_portal.services.salary_service import (
    RuleMatched,
    RuleFallback,
    amount_in_words,
    build_salary_sheet,
    calculate_monthly_salary_components,
    monthly_salary_detail,
    split_gross,
    summarize_attendance,
)


def _rule(**overrides) -> SalaryBreakupRule:
    data = {
        "id": "band-1",
        "from_gross": Decimal("10000"),
        "to_gross": Decimal("50000"),
        "basic_percentage": Decimal("40"),
        "hra_percentage": Decimal("20"),
        "ca_percentage": Decimal("10"),
        "medical_percentage": Decimal("5"),
    }
    data.update(overrides)
    return SalaryBreakupRule(**data)


def _total(components) -> Decimal:
    return components.basic + components.hra + components.ca + components.medical + components.other_allowance


class TestSplitGross:
    def test_rule_match(self):
        result = split_gross(Decimal("30000"), [_rule()])

        assert isinstance(result, RuleMatched)
        assert result.rule.id == "band-1"
        c = result.components
        assert c.basic == Decimal("12000.00")
        assert c.hra == Decimal("6000.00")
        assert c.ca == Decimal("3000.00")
        assert c.medical == Decimal("1500.00")
        assert c.other_allowance == Decimal("7500.00")

    def test_fallback_split(self):
        result = split_gross(Decimal("25010"), [_rule(from_gross=Decimal("50001"), to_gross=Decimal("90000"))])

        assert isinstance(result, RuleFallback)
        c = result.components
        assert c.basic == Decimal("15010.00")
        assert c.hra == Decimal("5000.00")
        assert c.ca == Decimal("2000.00")
        assert c.medical == Decimal("1500.00")
        assert c.other_allowance == Decimal("1500.00")

    def test_fallback_below_basic_cap(self):
        c = split_gross(Decimal("12000")).components

        assert c.basic == Decimal("12000.00")
        assert c.hra == c.ca == c.medical == c.other_allowance == 0

    def test_components_always_sum_to_gross(self):
        rules = [_rule(basic_percentage=Decimal("33.33"), hra_percentage=Decimal("16.67"),
                       ca_percentage=Decimal("7.77"), medical_percentage=Decimal("3.33"))]
        for gross in ["10001", "12345.67", "33333.33", "49999.99"]:
            c = split_gross(Decimal(gross), rules).components
            assert _total(c) == c.total_gross == Decimal(gross)

    def test_non_positive_gross_gives_zeros(self):
        for gross in [Decimal("0"), Decimal("-500")]:
            c = split_gross(gross, [_rule()]).components
            assert c.total_gross == 0
            assert _total(c) == 0

    def test_assigned_rule_wins_over_band(self):
        rules = [_rule(), _rule(id="special", basic_percentage=Decimal("60"), from_gross=Decimal("0"),
                                to_gross=Decimal("1000"))]

        result = split_gross(Decimal("30000"), rules, preferred_rule_id="special")

        assert result.rule.id == "special"
        assert result.components.basic == Decimal("18000.00")


class TestMonthlyComponents:
    def test_mid_month_revision_is_prorated(self):
        employee = make_employee(
            gross_monthly_salary=Decimal("30000"),
            revised_gross_monthly_salary=Decimal("36000"),
            salary_effective_date=date(2024, 6, 11),
        )

        detail = monthly_salary_detail(employee, 2024, 6, [_rule()])

        assert detail.prorated is True
        # 10 days at 1000/day + 20 days at 1200/day
        assert detail.components.total_gross == Decimal("34000.00")
        assert detail.components.basic == Decimal("13600.00")
        assert _total(detail.components) == detail.components.total_gross

    def test_revision_applies_in_full_from_next_month(self):
        employee = make_employee(
            revised_gross_monthly_salary=Decimal("36000"),
            salary_effective_date=date(2024, 6, 11),
        )

        assert calculate_monthly_salary_components(employee, 2024, 5).total_gross == Decimal("30000.00")
        assert calculate_monthly_salary_components(employee, 2024, 7).total_gross == Decimal("36000.00")

    def test_revision_on_first_day_is_not_prorated(self):
        employee = make_employee(
            revised_gross_monthly_salary=Decimal("36000"),
            salary_effective_date=date(2024, 6, 1),
        )

        detail = monthly_salary_detail(employee, 2024, 6)

        assert detail.prorated is False
        assert detail.components.total_gross == Decimal("36000.00")

    def test_malformed_effective_date_means_no_revision(self):
        employee = make_employee(
            revised_gross_monthly_salary=Decimal("36000"),
            salary_effective_date="sometime soon",
        )

        components = calculate_monthly_salary_components(employee, 2024, 6)

        assert employee.salary_effective_date is None
        assert components.total_gross == Decimal("30000.00")

    def test_fallback_is_reported(self):
        detail = monthly_salary_detail(make_employee(), 2024, 6)

        assert isinstance(detail.resolution, RuleFallback)
        assert detail.rule is None
        assert any("no breakup rule" in note for note in detail.notifications)

    def test_revised_gross_fallback_is_reported(self):
        employee = make_employee(
            revised_gross_monthly_salary=Decimal("60000"),
            salary_effective_date=date(2024, 6, 1),
        )

        before = monthly_salary_detail(employee, 2024, 5, [_rule()])
        full = monthly_salary_detail(employee, 2024, 6, [_rule()])

        assert isinstance(before.resolution, RuleMatched)
        assert before.notifications == []
        assert isinstance(full.resolution, RuleFallback)
        assert any("60000" in note for note in full.notifications)

    def test_prorated_month_reports_revised_fallback(self):
        employee = make_employee(
            revised_gross_monthly_salary=Decimal("60000"),
            salary_effective_date=date(2024, 6, 16),
        )

        detail = monthly_salary_detail(employee, 2024, 6, [_rule()])

        assert detail.prorated is True
        assert len(detail.notifications) == 1
        assert "60000" in detail.notifications[0]


class TestAttendanceSummary:
    def test_half_days_and_week_offs(self):
        codes = ["P"] * 19 + ["W"] * 4 + ["HD", "HCL"] + ["A"] * 3 + ["PH", "CL"]

        summary = summarize_attendance("E001", codes, 2024, 6)

        assert summary.total_days == 30
        assert summary.days_paid == Decimal("26")
        assert summary.days_absent == Decimal("4")
        assert summary.week_offs == 4
        assert summary.pay_factor == Decimal("26") / Decimal("30")

    def test_missing_attendance_is_all_absent(self):
        summary = summarize_attendance("E001", None, 2024, 2)

        assert summary.total_days == 29
        assert summary.days_paid == 0
        assert summary.days_absent == 29
        assert summary.pay_factor == 0


class TestSalarySheet:
    def test_row_with_edits_and_performance_deduction(self):
        employee = make_employee()
        attendance = {"E001": ["P"] * 30}
        edits = {"E001": SalarySheetEdit(employee_code="E001", arrears=Decimal("500"), tds=Decimal("1000"),
                                         loan=Decimal("200"))}
        deductions = [
            PerformanceDeductionEntry(employee_code="E001", month=6, year=2024, amount=Decimal("300")),
            PerformanceDeductionEntry(employee_code="E001", month=5, year=2024, amount=Decimal("999")),
        ]

        rows, notes = build_salary_sheet([employee], 2024, 6, attendance, [_rule()], edits, deductions)

        row = rows[0]
        assert row.actual.total_gross == Decimal("30000.00")
        assert row.total_allowance == Decimal("30500.00")
        assert row.performance_deduction == Decimal("300.00")
        assert row.total_deduction == Decimal("1500.00")
        assert row.net_paid == Decimal("29000.00")
        assert notes == []

    def test_payroll_membership(self):
        employees = [
            make_employee("E001"),
            make_employee("E002", doj=date(2024, 7, 1)),
            make_employee("E003", status="Left", dor=date(2024, 5, 31)),
            make_employee("E004", status="Left", dor=date(2024, 6, 15)),
        ]

        rows, notes = build_salary_sheet(employees, 2024, 6, None)

        assert [row.code for row in rows] == ["E001", "E004"]
        assert any("No attendance data" in note for note in notes)
        assert all(row.net_paid == 0 for row in rows)

    def test_only_with_attendance(self):
        employees = [make_employee("E001"), make_employee("E002")]

        rows, _ = build_salary_sheet(employees, 2024, 6, {"E002": ["P"] * 30}, only_with_attendance=True)

        assert [row.code for row in rows] == ["E002"]


class TestAmountInWords:
    def test_indian_numbering(self):
        assert amount_in_words(Decimal("120000")) == "One Lakh Twenty Thousand Rupees Only"
        assert amount_in_words(Decimal("29000.50")) == "Twenty Nine Thousand Rupees and Fifty Paise Only"
        assert amount_in_words(Decimal("0")) == "Zero Rupees Only"

    def test_hundreds_and_remainder(self):
        assert amount_in_words(Decimal("1234567")) == (
            "Twelve Lakh Thirty Four Thousand Five Hundred and Sixty Seven Rupees Only"
        )
