# tm_core/lifecycle/tests/conftest.py
from dataclasses import replace
from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils.dateparse import parse_datetime

from tm_core.lifecycle.constants import AppointmentStatus, CaseStatus, INACTIVE_APPOINTMENT_STATUSES
from tm_core.lifecycle.policy import LifecyclePolicy
from tm_core.lifecycle.ports import RecordNotFound
from tm_core.lifecycle.services import LifecycleService
from tm_core.lifecycle.snapshots import AppointmentSnapshot


class FakeCaseService:
    """In-memory case service; records every mutating call."""

    def __init__(self, *cases):
        self.cases = {c.id: c for c in cases}
        self.calls = []
        self.closed = False

    def get_case(self, case_id):
        try:
            return self.cases[case_id]
        except KeyError:
            raise RecordNotFound(case_id)

    def _save(self, case_id, **changes):
        self.cases[case_id] = replace(self.get_case(case_id), **changes)
        return self.cases[case_id]

    def accept_case(self, case_id):
        self.calls.append(("accept", case_id))
        return self._save(case_id, status=CaseStatus.ACCEPTED)

    def reject_case(self, case_id, reason):
        self.calls.append(("reject", case_id, reason))
        return self._save(case_id, status=CaseStatus.REJECTED)

    def set_case_fee(self, case_id, fee):
        self.calls.append(("set_fee", case_id, fee))
        return self._save(case_id, consultation_fee=fee)

    def close_case(self, case_id):
        self.calls.append(("close", case_id))
        return self._save(case_id, status=CaseStatus.CLOSED)

    def close(self):
        self.closed = True


class FakeAppointmentService:
    def __init__(self, *appointments):
        self.appointments = {a.id: a for a in appointments}
        self.calls = []

    def get_appointment(self, appointment_id):
        try:
            return self.appointments[appointment_id]
        except KeyError:
            raise RecordNotFound(appointment_id)

    def get_case_appointment(self, case_id):
        active = [
            a
            for a in self.appointments.values()
            if a.case_id == case_id and a.status not in INACTIVE_APPOINTMENT_STATUSES
        ]
        return max(active, key=lambda a: a.scheduled_time) if active else None

    def schedule_appointment(self, data):
        self.calls.append(("schedule", data))
        appt = AppointmentSnapshot(
            id=f"appt-{len(self.appointments) + 1}",
            case_id=data["caseId"],
            status=AppointmentStatus.SCHEDULED,
            scheduled_time=parse_datetime(data["scheduledTime"]),
            duration=data["duration"],
            consultation_type=data["consultationType"],
            meeting_link=data["meetingLink"],
        )
        self.appointments[appt.id] = appt
        return appt

    def reschedule_appointment(self, appointment_id, data):
        self.calls.append(("reschedule", appointment_id, data))
        current = self.get_appointment(appointment_id)
        self.appointments[appointment_id] = replace(
            current,
            status=AppointmentStatus.RESCHEDULED,
            scheduled_time=parse_datetime(data["newDateTime"]),
            reschedule_count=current.reschedule_count + 1,
        )
        return self.appointments[appointment_id]

    def cancel_appointment(self, appointment_id, reason):
        self.calls.append(("cancel", appointment_id, reason))
        current = self.get_appointment(appointment_id)
        self.appointments[appointment_id] = replace(current, status=AppointmentStatus.CANCELLED)
        return self.appointments[appointment_id]


@pytest.fixture
def policy():
    return LifecyclePolicy()


@pytest.fixture
def fake_cases():
    return FakeCaseService()


@pytest.fixture
def fake_appointments():
    return FakeAppointmentService()


@pytest.fixture
def service(fake_cases, fake_appointments, clock, policy):
    return LifecycleService(cases=fake_cases, appointments=fake_appointments, clock=clock, policy=policy)


@pytest.fixture
def tomorrow(now):
    return now + timedelta(days=1)


@pytest.fixture
def fee():
    return Decimal("150")
