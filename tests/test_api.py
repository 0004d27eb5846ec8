"""HTTP API tests."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from .conftest import ADMIN, ALICE, BOB, actor_headers

pytestmark = pytest.mark.asyncio

PERIOD = {"period_start": "2024-01-01", "period_end": "2024-01-15"}


class TestHealth:
    """Test health endpoints."""

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "healthy"
        assert body["open_payroll_runs"] == 0

    async def test_ready_and_live(self, client):
        assert (await client.get("/ready")).json() == {"status": "ready"}
        assert (await client.get("/live")).json() == {"status": "alive"}


class TestIdentity:
    """Test actor header handling."""

    async def test_missing_actor_header(self, client):
        response = await client.get("/api/v1/timesheets")

        assert response.status_code == 400

    async def test_invalid_role(self, client):
        response = await client.get(
            "/api/v1/timesheets",
            headers={"X-Actor-Id": "someone", "X-Actor-Role": "janitor"},
        )

        assert response.status_code == 400

    async def test_employee_blocked_from_admin_endpoint(self, client):
        response = await client.post(
            "/api/v1/payroll-runs", json=PERIOD, headers=actor_headers(ALICE)
        )

        assert response.status_code == 403


class TestPeriods:
    """Test the pay period endpoint."""

    async def test_weekly_period(self, client):
        response = await client.post(
            "/api/v1/payroll-periods/last-completed",
            json={
                "reference_date": "2024-01-17",
                "cycle": {"frequency": "weekly", "anchor_day_of_week": 1},
            },
            headers=actor_headers(ALICE),
        )

        assert response.status_code == 200
        assert response.json()["period"] == {"start": "2024-01-08", "end": "2024-01-15"}

    async def test_missing_anchor_returns_no_period(self, client):
        response = await client.post(
            "/api/v1/payroll-periods/last-completed",
            json={"reference_date": "2024-01-17", "cycle": {"frequency": "monthly"}},
            headers=actor_headers(ALICE),
        )

        assert response.status_code == 200
        assert response.json()["period"] is None


class TestRates:
    """Test rate endpoints."""

    async def test_create_and_resolve(self, client):
        response = await client.post(
            "/api/v1/rates",
            json={
                "employee_id": ALICE.user_id,
                "rate_type": "hourly",
                "amount": "20.00",
                "effective_date": "2024-01-01",
            },
            headers=actor_headers(ADMIN),
        )
        assert response.status_code == 201

        effective = await client.get(
            "/api/v1/rates/effective",
            params={"employee_id": ALICE.user_id, "as_of": "2024-01-10"},
            headers=actor_headers(ALICE),
        )

        assert effective.status_code == 200
        assert effective.json()["rate_type"] == "hourly"
        assert Decimal(effective.json()["amount"]) == Decimal("20.00")

    async def test_missing_rate_is_404(self, client):
        response = await client.get(
            "/api/v1/rates/effective",
            params={"employee_id": ALICE.user_id, "as_of": "2024-01-10"},
            headers=actor_headers(ADMIN),
        )

        assert response.status_code == 404
        assert response.json()["code"] == "MISSING_RATE"

    async def test_rejects_non_positive_amount(self, client):
        response = await client.post(
            "/api/v1/rates",
            json={
                "employee_id": ALICE.user_id,
                "rate_type": "hourly",
                "amount": "0",
                "effective_date": "2024-01-01",
            },
            headers=actor_headers(ADMIN),
        )

        assert response.status_code == 422

    async def test_employee_cannot_read_other_rates(self, client, make_rate):
        await make_rate(BOB.user_id, "20.00")

        response = await client.get(
            "/api/v1/rates", params={"employee_id": BOB.user_id}, headers=actor_headers(ALICE)
        )

        assert response.status_code == 403


class TestTimesheets:
    """Test timesheet endpoints."""

    async def test_scan_and_generate(self, client, make_rate, make_job):
        await make_rate(ALICE.user_id, "20.00")
        await make_job("job-1", date(2024, 1, 10), assigned_employees=[ALICE.user_id, BOB.user_id], duration_minutes=120)

        scan = await client.post("/api/v1/timesheets/scan", json=PERIOD, headers=actor_headers(ADMIN))
        assert scan.status_code == 200
        assert [d["employee_id"] for d in scan.json()["drafts"]] == [ALICE.user_id]
        assert [m["employee_id"] for m in scan.json()["missing_rates"]] == [BOB.user_id]

        generated = await client.post("/api/v1/timesheets/generate", json=PERIOD, headers=actor_headers(ADMIN))

        assert generated.status_code == 200
        (draft,) = generated.json()["drafts_created"]
        assert draft["hours"] == "2.00"
        assert draft["earnings"] == "40.00"
        assert draft["source"] == "payroll_prep"

    async def test_employee_sees_only_own(self, client, make_timesheet):
        await make_timesheet(employee_id=ALICE.user_id)
        bobs = await make_timesheet(employee_id=BOB.user_id)

        own = await client.get("/api/v1/timesheets", headers=actor_headers(ALICE))
        other = await client.get(
            "/api/v1/timesheets", params={"employee_id": BOB.user_id}, headers=actor_headers(ALICE)
        )
        single = await client.get(f"/api/v1/timesheets/{bobs.timesheet_id}", headers=actor_headers(ALICE))

        assert own.json()["total"] == 1
        assert own.json()["items"][0]["employee_id"] == ALICE.user_id
        assert other.status_code == 403
        assert single.status_code == 403

    async def test_edit_and_approve(self, client, make_timesheet):
        timesheet = await make_timesheet(employee_id=ALICE.user_id)

        edited = await client.patch(
            f"/api/v1/timesheets/{timesheet.timesheet_id}",
            json={"hours": "3.00", "employee_comment": "ran long"},
            headers=actor_headers(ALICE),
        )
        assert edited.status_code == 200
        assert edited.json()["earnings"] == "60.00"

        approved = await client.post(
            f"/api/v1/timesheets/{timesheet.timesheet_id}/approve",
            headers=actor_headers(ALICE),
        )

        assert approved.status_code == 200
        assert approved.json()["employee_approved"] is True

    async def test_patch_with_utc_offset(self, client, make_timesheet):
        timesheet = await make_timesheet(
            employee_id=ALICE.user_id,
            start=datetime(2024, 1, 10, 9, 0),
            end=datetime(2024, 1, 10, 12, 0),
        )

        response = await client.patch(
            f"/api/v1/timesheets/{timesheet.timesheet_id}",
            json={"start": "2024-01-10T08:00:00Z"},
            headers=actor_headers(ALICE),
        )

        assert response.status_code == 200
        assert response.json()["start"] == "2024-01-10T08:00:00"
        assert response.json()["hours"] == "4.00"

    async def test_create_with_utc_offset(self, client):
        response = await client.post(
            "/api/v1/timesheets",
            json={
                "employee_id": ALICE.user_id,
                "start": "2024-01-10T09:00:00+02:00",
                "end": "2024-01-10T11:30:00+02:00",
                "rate_snapshot": {"rate_type": "hourly", "amount": "20.00"},
            },
            headers=actor_headers(ADMIN),
        )

        assert response.status_code == 201
        assert response.json()["start"] == "2024-01-10T07:00:00"
        assert response.json()["hours"] == "2.50"

    async def test_patch_null_hours_rejected(self, client, make_timesheet):
        timesheet = await make_timesheet(employee_id=ALICE.user_id)

        response = await client.patch(
            f"/api/v1/timesheets/{timesheet.timesheet_id}",
            json={"hours": None},
            headers=actor_headers(ALICE),
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_employee_cannot_edit_units(self, client, make_timesheet):
        timesheet = await make_timesheet(employee_id=ALICE.user_id)

        response = await client.patch(
            f"/api/v1/timesheets/{timesheet.timesheet_id}",
            json={"units": 2},
            headers=actor_headers(ALICE),
        )

        assert response.status_code == 403

    async def test_unknown_timesheet(self, client):
        response = await client.get(
            "/api/v1/timesheets/00000000-0000-0000-0000-000000000000",
            headers=actor_headers(ADMIN),
        )

        assert response.status_code == 404


class TestPayrollRuns:
    """Test payroll run endpoints."""

    async def test_run_lifecycle(self, client, make_timesheet):
        alice = await make_timesheet(employee_id=ALICE.user_id, employee_approved=True)
        bob = await make_timesheet(employee_id=BOB.user_id, hours="1.00", employee_approved=True)
        unapproved = await make_timesheet(employee_id=BOB.user_id, hours="5.00")

        created = await client.post("/api/v1/payroll-runs", json=PERIOD, headers=actor_headers(ADMIN))
        assert created.status_code == 201
        run_id = created.json()["payroll_run_id"]
        assert created.json()["status"] == "draft"

        approved = await client.post(
            f"/api/v1/payroll-runs/{run_id}/timesheets",
            json={
                "timesheet_ids": [
                    str(alice.timesheet_id),
                    str(bob.timesheet_id),
                    str(unapproved.timesheet_id),
                ]
            },
            headers=actor_headers(ADMIN),
        )
        assert approved.status_code == 200
        body = approved.json()
        assert len(body["approved"]) == 2
        assert body["failures"][0]["reason"] == "not_approved"
        assert body["totals"]["total_earnings"] == "60.00"

        locked = await client.post(f"/api/v1/payroll-runs/{run_id}/lock", headers=actor_headers(ADMIN))
        assert locked.status_code == 200
        assert locked.json()["status"] == "locked"
        assert locked.json()["total_earnings"] == "60.00"

        again = await client.post(f"/api/v1/payroll-runs/{run_id}/lock", headers=actor_headers(ADMIN))
        assert again.status_code == 409
        assert "already locked" in again.json()["detail"]

        as_alice = await client.get(f"/api/v1/payroll-runs/{run_id}", headers=actor_headers(ALICE))
        assert as_alice.status_code == 200
        assert list(as_alice.json()["totals"]["by_employee"]) == [ALICE.user_id]

    async def test_employee_outside_run_forbidden(self, client):
        created = await client.post("/api/v1/payroll-runs", json=PERIOD, headers=actor_headers(ADMIN))

        response = await client.get(
            f"/api/v1/payroll-runs/{created.json()['payroll_run_id']}",
            headers=actor_headers(ALICE),
        )

        assert response.status_code == 403

    async def test_invalid_period(self, client):
        response = await client.post(
            "/api/v1/payroll-runs",
            json={"period_start": "2024-01-15", "period_end": "2024-01-01"},
            headers=actor_headers(ADMIN),
        )

        assert response.status_code == 400

    async def test_unknown_run(self, client):
        response = await client.post(
            "/api/v1/payroll-runs/00000000-0000-0000-0000-000000000000/lock",
            headers=actor_headers(ADMIN),
        )

        assert response.status_code == 404

    async def test_recalculate_after_lock_conflicts(self, client):
        created = await client.post("/api/v1/payroll-runs", json=PERIOD, headers=actor_headers(ADMIN))
        run_id = created.json()["payroll_run_id"]
        await client.post(f"/api/v1/payroll-runs/{run_id}/lock", headers=actor_headers(ADMIN))

        response = await client.post(f"/api/v1/payroll-runs/{run_id}/recalculate", headers=actor_headers(ADMIN))

        assert response.status_code == 409
