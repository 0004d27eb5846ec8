"""Normalise job assignment data into Assignment values.

Scheduling records carry assignments in two shapes: the current
``assigned_employees`` list of employee ids, and the legacy
``employee_assignments`` list of embedded objects keyed by ``uid``. Both are
merged here so the rest of the core sees a single representation.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from timesheet_payroll.calculators.types import Assignment
from timesheet_payroll.models import Job

logger = logging.getLogger(__name__)


def _legacy_employee_id(entry: Any) -> str | None:
    if isinstance(entry, dict):
        uid = entry.get("uid") or entry.get("employeeId")
        return str(uid) if uid else None
    if isinstance(entry, str) and entry:
        return entry
    return None


def assigned_employee_ids(job: Job) -> list[str]:
    """Employee ids assigned to a job, current format first, de-duplicated."""
    seen: set[str] = set()
    employee_ids: list[str] = []

    for employee_id in job.assigned_employees or []:
        if employee_id and str(employee_id) not in seen:
            seen.add(str(employee_id))
            employee_ids.append(str(employee_id))

    for entry in job.employee_assignments or []:
        employee_id = _legacy_employee_id(entry)
        if employee_id is None:
            logger.debug("Ignoring malformed legacy assignment on job %s: %r", job.job_id, entry)
            continue
        if employee_id not in seen:
            seen.add(employee_id)
            employee_ids.append(employee_id)

    return employee_ids


def extract_assignments(job: Job) -> list[Assignment]:
    """Expand a job into one Assignment per assigned employee."""
    duration = job.effective_duration_minutes()
    return [
        Assignment(
            employee_id=employee_id,
            job_id=job.job_id,
            service_date=job.service_date,
            location_id=job.location_id,
            client_profile_id=job.client_profile_id,
            duration_minutes=duration,
            scheduled_start=job.scheduled_start,
        )
        for employee_id in assigned_employee_ids(job)
    ]


def expand_jobs(jobs: Iterable[Job]) -> list[Assignment]:
    """Expand jobs into assignments in a stable (job id, employee id) order."""
    assignments: dict[tuple[str, str], Assignment] = {}
    for job in jobs:
        if job.is_canceled:
            continue
        for assignment in extract_assignments(job):
            assignments.setdefault(assignment.key, assignment)
    return sorted(assignments.values(), key=lambda a: (a.job_id, a.employee_id))
