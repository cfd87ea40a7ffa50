# tm_core/conftest.py
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from tm_core.common.clock import FixedClock
from tm_core.lifecycle.constants import AppointmentStatus, CaseStatus
from tm_core.lifecycle.snapshots import AppointmentSnapshot, CaseSnapshot

NOW = datetime(2026, 3, 2, 10, 0, tzinfo=dt_timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def make_case():
    def _make(status=CaseStatus.ASSIGNED, **overrides):
        data = {"id": "case-1", "status": status, "assigned_at": NOW}
        data.update(overrides)
        return CaseSnapshot(**data)

    return _make


@pytest.fixture
def make_appointment():
    def _make(status=AppointmentStatus.SCHEDULED, **overrides):
        data = {
            "id": "appt-1",
            "case_id": "case-1",
            "status": status,
            "scheduled_time": NOW,
            "meeting_link": "https://meet.example.com/room-1",
        }
        data.update(overrides)
        return AppointmentSnapshot(**data)

    return _make


@pytest.fixture
def accepted_case_with_fee(make_case):
    return make_case(CaseStatus.ACCEPTED, consultation_fee=Decimal("150"))


@pytest.fixture
def user(db):
    User = get_user_model()
    return User.objects.create_user(username="doctor", password="testpass", is_active=True)


@pytest.fixture
def api_client(user):
    c = APIClient()
    c.force_authenticate(user=user)
    return c
