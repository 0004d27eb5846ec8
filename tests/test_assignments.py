"""Tests for normalising job assignments."""

from datetime import date, datetime

from timesheet_payroll.models import Job
from timesheet_payroll.services.assignments import (
    assigned_employee_ids,
    expand_jobs,
    extract_assignments,
)


def _job(job_id="job-1", **fields) -> Job:
    fields.setdefault("service_date", date(2024, 1, 10))
    fields.setdefault("status", "completed")
    return Job(job_id=job_id, **fields)


class TestAssignedEmployeeIds:
    """Test merging current and legacy assignment formats."""

    def test_current_format(self):
        job = _job(assigned_employees=["emp-a", "emp-b"])
        assert assigned_employee_ids(job) == ["emp-a", "emp-b"]

    def test_legacy_format(self):
        job = _job(employee_assignments=[{"uid": "emp-a", "name": "A"}, {"uid": "emp-b"}])
        assert assigned_employee_ids(job) == ["emp-a", "emp-b"]

    def test_union_without_duplicates(self):
        job = _job(
            assigned_employees=["emp-a"],
            employee_assignments=[{"uid": "emp-a"}, {"uid": "emp-c"}],
        )
        assert assigned_employee_ids(job) == ["emp-a", "emp-c"]

    def test_malformed_legacy_entries_skipped(self):
        job = _job(employee_assignments=[{"name": "no uid"}, None, {"uid": "emp-b"}])
        assert assigned_employee_ids(job) == ["emp-b"]

    def test_no_assignments(self):
        assert assigned_employee_ids(_job()) == []


class TestExtractAssignments:
    """Test expanding a job into assignments."""

    def test_carries_job_context(self):
        start = datetime(2024, 1, 10, 9, 30)
        job = _job(
            assigned_employees=["emp-a"],
            duration_minutes=120,
            location_id="loc-1",
            client_profile_id="client-1",
            scheduled_start=start,
        )

        (assignment,) = extract_assignments(job)

        assert assignment.key == ("emp-a", "job-1")
        assert assignment.service_date == date(2024, 1, 10)
        assert assignment.location_id == "loc-1"
        assert assignment.client_profile_id == "client-1"
        assert assignment.duration_minutes == 120
        assert assignment.scheduled_start == start

    def test_duration_falls_back_to_estimate(self):
        job = _job(assigned_employees=["emp-a"], estimated_duration_minutes=90)
        (assignment,) = extract_assignments(job)
        assert assignment.duration_minutes == 90


class TestExpandJobs:
    """Test expanding many jobs."""

    def test_sorted_by_job_then_employee(self):
        jobs = [
            _job("job-2", assigned_employees=["emp-b", "emp-a"]),
            _job("job-1", assigned_employees=["emp-c"]),
        ]

        keys = [a.key for a in expand_jobs(jobs)]

        assert keys == [("emp-c", "job-1"), ("emp-a", "job-2"), ("emp-b", "job-2")]

    def test_skips_canceled_jobs(self):
        jobs = [
            _job("job-1", assigned_employees=["emp-a"], status="canceled"),
            _job("job-2", assigned_employees=["emp-a"], status="Cancelled"),
            _job("job-3", assigned_employees=["emp-a"]),
        ]

        assert [a.job_id for a in expand_jobs(jobs)] == ["job-3"]
