from decimal import Decimal

from conftest import EMPLOYEE_PAYLOAD

API = "/api/v1"


async def _create_employee(client, headers, **overrides):
    payload = {**EMPLOYEE_PAYLOAD, **overrides}
    response = await client.post(f"{API}/employees", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def _june_codes(present=30, week_off=0, half_day=0, absent=0):
    codes = ["P"] * present + ["W"] * week_off + ["HD"] * half_day + ["A"] * absent
    assert len(codes) == 30
    return codes


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["checks"]["database"] == "connected"


class TestAuth:
    async def test_login_success(self, client):
        response = await client.post(f"{API}/auth/login", json={"username": "admin", "password": "admin123"})

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["username"] == "admin"

    async def test_wrong_password(self, client):
        response = await client.post(f"{API}/auth/login", json={"username": "admin", "password": "nope"})

        assert response.status_code == 401

    async def test_requires_token(self, client):
        response = await client.get(f"{API}/employees")

        assert response.status_code in (401, 403)

    async def test_invalid_token(self, client):
        response = await client.get(f"{API}/employees", headers={"Authorization": "Bearer not-a-token"})

        assert response.status_code == 401

    async def test_me(self, client, auth_headers):
        response = await client.get(f"{API}/auth/me", headers=auth_headers)

        assert response.json()["is_main_admin"] is True


class TestEmployees:
    async def test_crud(self, client, auth_headers):
        created = await _create_employee(client, auth_headers)
        assert created["id"] == "E001"

        duplicate = await client.post(f"{API}/employees", json=EMPLOYEE_PAYLOAD, headers=auth_headers)
        assert duplicate.status_code == 400

        update = {k: v for k, v in EMPLOYEE_PAYLOAD.items() if k != "code"}
        update["designation"] = "Area Manager"
        response = await client.put(f"{API}/employees/E001", json=update, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["designation"] == "Area Manager"

        response = await client.get(f"{API}/employees", params={"search": "area"}, headers=auth_headers)
        assert response.json()["total"] == 1

        response = await client.delete(f"{API}/employees/E001", headers=auth_headers)
        assert response.status_code == 204
        response = await client.get(f"{API}/employees/E001", headers=auth_headers)
        assert response.status_code == 404

    async def test_active_employee_cannot_have_dor(self, client, auth_headers):
        payload = {**EMPLOYEE_PAYLOAD, "dor": "2024-06-30"}

        response = await client.post(f"{API}/employees", json=payload, headers=auth_headers)

        assert response.status_code == 422

    async def test_csv_import_and_export(self, client, auth_headers):
        content = (
            "Code,Name,Designation,DOJ,Status,Division,HQ,Gross Monthly Salary\n"
            "E001,Asha Verma,Sales Executive,01-01-2024,Active,North,Delhi,30000\n"
            "E002,Ravi Kumar,Area Manager,2023-04-15,Active,South,Chennai,45000\n"
            "E003,Broken,Exec,not a date,Active,South,Chennai,45000\n"
        )

        response = await client.post(
            f"{API}/employees/import",
            files={"file": ("employees.csv", content.encode("utf-8"), "text/csv")},
            headers=auth_headers,
        )

        assert response.status_code == 200
        result = response.json()
        assert result["added"] == 2
        assert result["malformed"] == 1

        export = await client.get(f"{API}/employees/export", headers=auth_headers)
        assert export.headers["content-type"].startswith("text/csv")
        lines = export.text.strip().splitlines()
        assert len(lines) == 3
        assert lines[1].startswith("E001,Asha Verma")


class TestAttendance:
    async def test_save_month_and_dashboard(self, client, auth_headers):
        await _create_employee(client, auth_headers)
        body = {"records": [{"code": "E001", "attendance": _june_codes(20, 4, 2, 4)}]}

        response = await client.put(f"{API}/attendance/2024/6", json=body, headers=auth_headers)

        assert response.status_code == 200
        summary = response.json()["summaries"][0]
        assert Decimal(summary["days_paid"]) == Decimal("25")

        dashboard = (await client.get(f"{API}/dashboard", headers=auth_headers)).json()
        assert dashboard["total_employees"] == 1
        assert dashboard["attendance_period"] == "June 2024"
        assert Decimal(dashboard["attendance_percentage"]) == Decimal("76.9")
        assert dashboard["recent_activities"][0]["message"] == "admin: saved attendance for June 2024"

    async def test_wrong_number_of_days(self, client, auth_headers):
        await _create_employee(client, auth_headers)
        body = {"records": [{"code": "E001", "attendance": ["P"] * 31}]}

        response = await client.put(f"{API}/attendance/2024/6", json=body, headers=auth_headers)

        assert response.status_code == 422

    async def test_unknown_employee(self, client, auth_headers):
        body = {"records": [{"code": "E404", "attendance": _june_codes()}]}

        response = await client.put(f"{API}/attendance/2024/6", json=body, headers=auth_headers)

        assert response.status_code == 400

    async def test_month_out_of_range(self, client, auth_headers):
        response = await client.get(f"{API}/attendance/2024/13", headers=auth_headers)

        assert response.status_code == 422

    async def test_missing_month_is_a_notification(self, client, auth_headers):
        response = await client.get(f"{API}/attendance/2024/6", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["records"] == []
        assert response.json()["notifications"]

    async def test_csv_upload(self, client, auth_headers):
        await _create_employee(client, auth_headers)
        header = "Code,Name," + ",".join(str(d) for d in range(1, 31))
        content = header + "\nE001,Asha Verma," + ",".join(["P"] * 29 + [""]) + "\n"

        response = await client.post(
            f"{API}/attendance/2024/6/upload",
            files={"file": ("june.csv", content.encode("utf-8"), "text/csv")},
            headers=auth_headers,
        )

        assert response.json()["added"] == 1
        context = (await client.get(f"{API}/attendance/last-upload", headers=auth_headers)).json()
        assert context["present"] == 29
        assert context["absent"] == 1


class TestLeave:
    async def test_balances_after_recorded_leave(self, client, auth_headers):
        await _create_employee(client, auth_headers)
        leave = {
            "employee_id": "E001",
            "leave_type": "CL",
            "start_date": "2024-03-04",
            "end_date": "2024-03-05",
            "days": "2",
        }
        response = await client.post(f"{API}/leave/applications", json=leave, headers=auth_headers)
        assert response.status_code == 201

        response = await client.get(
            f"{API}/leave/balances/E001", params={"year": 2024, "month": 7}, headers=auth_headers
        )

        assert response.status_code == 200
        balances = response.json()["balances"]
        assert Decimal(balances["cl"]) == Decimal("1.6")
        assert Decimal(balances["pl"]) == Decimal("1.2")

    async def test_opening_balance_override(self, client, auth_headers):
        await _create_employee(client, auth_headers, doj="2020-01-01")
        override = {"employee_code": "E001", "financial_year_start": 2024, "month": 7,
                    "opening_cl": "5", "opening_sl": "4", "opening_pl": "10"}

        response = await client.put(f"{API}/leave/opening-balances", json=override, headers=auth_headers)
        assert response.status_code == 200

        balances = (await client.get(
            f"{API}/leave/balances/E001", params={"year": 2024, "month": 7}, headers=auth_headers
        )).json()["balances"]
        assert balances["source"] == "override"
        assert Decimal(balances["pl"]) == Decimal("10")

    async def test_unknown_employee(self, client, auth_headers):
        response = await client.get(f"{API}/leave/balances/E404", headers=auth_headers)

        assert response.status_code == 404


class TestSalary:
    async def test_sheet_slip_and_ledger(self, client, auth_headers):
        await _create_employee(client, auth_headers)
        body = {"records": [{"code": "E001", "attendance": _june_codes()}]}
        await client.put(f"{API}/attendance/2024/6", json=body, headers=auth_headers)
        edits = {"edits": [{"employee_code": "E001", "tds": "1000"}]}
        response = await client.put(f"{API}/salary/sheet/2024/6/edits", json=edits, headers=auth_headers)
        assert response.status_code == 200

        sheet = (await client.get(f"{API}/salary/sheet/2024/6", headers=auth_headers)).json()
        row = sheet["rows"][0]
        assert Decimal(row["actual"]["total_gross"]) == Decimal("30000")
        assert Decimal(row["net_paid"]) == Decimal("29000")
        assert any("no breakup rule" in note for note in sheet["notifications"])

        slip = (await client.get(f"{API}/salary/slip/E001/2024/6", headers=auth_headers)).json()
        assert slip["period"] == "June 2024"
        assert slip["net_paid_in_words"] == "Twenty Nine Thousand Rupees Only"

        ledger = await client.get(f"{API}/reports/salary-ledger/2024/6", headers=auth_headers)
        last = ledger.text.strip().splitlines()[-1].split(",")
        assert last[6] == "TOTALS:"
        assert last[-1] == "29000.00"

    async def test_breakup_rule_applies(self, client, auth_headers):
        await _create_employee(client, auth_headers)
        rules = [{"id": "band-1", "from_gross": "0", "to_gross": "50000", "basic_percentage": "50",
                  "hra_percentage": "20", "ca_percentage": "10", "medical_percentage": "5"}]
        response = await client.put(f"{API}/salary/breakup-rules", json=rules, headers=auth_headers)
        assert response.status_code == 200

        response = await client.get(
            f"{API}/salary/components/E001", params={"year": 2024, "month": 6}, headers=auth_headers
        )

        data = response.json()
        assert data["rule_id"] == "band-1"
        assert Decimal(data["components"]["basic"]) == Decimal("15000")

    async def test_unknown_employee_slip(self, client, auth_headers):
        response = await client.get(f"{API}/salary/slip/E404/2024/6", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["type"] == "NotFoundError"

    async def test_edits_for_unknown_employee(self, client, auth_headers):
        edits = {"edits": [{"employee_code": "E404", "tds": "1"}]}

        response = await client.put(f"{API}/salary/sheet/2024/6/edits", json=edits, headers=auth_headers)

        assert response.status_code == 400


class TestUsers:
    async def _login(self, client, username, password):
        return await client.post(f"{API}/auth/login", json={"username": username, "password": password})

    async def test_co_admin_lifecycle(self, client, auth_headers):
        response = await client.post(
            f"{API}/users", json={"username": "priya", "password": "secret1"}, headers=auth_headers
        )
        assert response.status_code == 201
        user_id = response.json()["id"]

        duplicate = await client.post(
            f"{API}/users", json={"username": "Priya", "password": "secret2"}, headers=auth_headers
        )
        assert duplicate.status_code == 409

        login = await self._login(client, "priya", "secret1")
        assert login.status_code == 200
        co_admin_headers = {"Authorization": f"Bearer {login.json()['access_token']}"}

        # Co-admins cannot manage accounts
        response = await client.post(
            f"{API}/users", json={"username": "ravi", "password": "secret3"}, headers=co_admin_headers
        )
        assert response.status_code == 403

        response = await client.put(
            f"{API}/users/{user_id}/lock", json={"is_locked": True}, headers=auth_headers
        )
        assert response.json()["is_locked"] is True

        assert (await self._login(client, "priya", "secret1")).status_code == 403
        response = await client.get(f"{API}/employees", headers=co_admin_headers)
        assert response.status_code == 401

    async def test_main_admin_cannot_be_locked(self, client, auth_headers):
        response = await client.put(
            f"{API}/users/main-admin/lock", json={"is_locked": True}, headers=auth_headers
        )

        assert response.status_code == 400


class TestPerformanceDeductions:
    async def test_upsert_feeds_salary_sheet(self, client, auth_headers):
        await _create_employee(client, auth_headers)
        body = {"records": [{"code": "E001", "attendance": _june_codes()}]}
        await client.put(f"{API}/attendance/2024/6", json=body, headers=auth_headers)
        entry = {"employee_code": "E001", "month": 6, "year": 2024, "amount": "250"}

        response = await client.put(f"{API}/performance-deductions", json=entry, headers=auth_headers)
        assert response.status_code == 200
        response = await client.put(f"{API}/performance-deductions", json={**entry, "amount": "300"},
                                    headers=auth_headers)
        assert response.status_code == 200

        entries = (await client.get(f"{API}/performance-deductions", headers=auth_headers)).json()
        assert len(entries) == 1
        row = (await client.get(f"{API}/salary/sheet/2024/6", headers=auth_headers)).json()["rows"][0]
        assert Decimal(row["performance_deduction"]) == Decimal("300")


class TestSync:
    async def test_status_without_endpoint(self, client, auth_headers):
        response = await client.get(f"{API}/sync/status", headers=auth_headers)

        data = response.json()
        assert data["state"] == "IDLE"
        assert data["configured"] is False

    async def test_sync_requires_endpoint(self, client, auth_headers):
        response = await client.post(f"{API}/sync", headers=auth_headers)

        assert response.status_code == 400

    async def test_company_config_defaults(self, client, auth_headers):
        response = await client.get(f"{API}/sync/company-config", headers=auth_headers)

        assert response.json()["company_name"] == "HR Portal"
