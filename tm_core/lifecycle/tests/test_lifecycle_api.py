# tm_core/lifecycle/tests/test_lifecycle_api.py
from datetime import timedelta

import pytest
from rest_framework.test import APIClient, APIRequestFactory

from tm_core.lifecycle.api.views import (
    AppointmentLifecycleViewSet,
    CaseLifecycleViewSet,
    default_service_factory,
)
from tm_core.lifecycle.constants import AppointmentStatus, CaseStatus
from tm_core.lifecycle.ports import ExternalServiceError
from tm_core.lifecycle.services import LifecycleService

pytestmark = pytest.mark.django_db

NOW_ISO = "2026-03-02T10:00:00Z"


def _error(res):
    assert isinstance(res.data, dict) and "error" in res.data, res.data
    return res.data["error"]


@pytest.fixture
def wired_service(monkeypatch, fake_cases, fake_appointments, clock, policy):
    """Route both viewsets to in-memory services."""

    def factory(request):
        return LifecycleService(cases=fake_cases, appointments=fake_appointments, clock=clock, policy=policy)

    monkeypatch.setattr(CaseLifecycleViewSet, "service_factory", staticmethod(factory))
    monkeypatch.setattr(AppointmentLifecycleViewSet, "service_factory", staticmethod(factory))
    return factory


# ----------------------------
# Dry-run endpoints
# ----------------------------
def test_available_actions_dry_run(api_client):
    res = api_client.post(
        "/api/v1/lifecycle/available-actions/",
        {
            "case": {"id": "c-1", "status": "SCHEDULED", "consultation_fee": "150"},
            "appointment": {
                "id": "a-1",
                "status": "SCHEDULED",
                "scheduled_time": "2026-03-02T10:10:00Z",
                "meeting_link": "https://meet.example.com/a-1",
            },
            "now": NOW_ISO,
        },
        format="json",
    )

    assert res.status_code == 200, res.data
    assert res.data["case_actions"] == ["request_payment"]
    assert res.data["appointment_actions"] == ["cancel", "confirm", "join", "reschedule"]
    assert res.data["preview"]["case"] == {"request_payment": "PAYMENT_PENDING"}


def test_available_actions_without_appointment(api_client):
    res = api_client.post(
        "/api/v1/lifecycle/available-actions/",
        {"case": {"id": "c-1", "status": "ASSIGNED"}, "now": NOW_ISO},
        format="json",
    )

    assert res.status_code == 200, res.data
    assert res.data["case_actions"] == ["accept", "reject"]
    assert res.data["appointment_actions"] == []


def test_case_validate_set_fee(api_client):
    res = api_client.post(
        "/api/v1/lifecycle/cases/validate/",
        {"case": {"id": "c-1", "status": "ACCEPTED"}, "action": "set_fee", "fee": "150"},
        format="json",
    )

    assert res.status_code == 200, res.data
    assert res.data["ok"] is True
    assert res.data["status"] == "ACCEPTED"
    assert res.data["case"]["consultation_fee"] == "150.00"


def test_case_validate_invalid_state_is_409(api_client):
    res = api_client.post(
        "/api/v1/lifecycle/cases/validate/",
        {"case": {"id": "c-1", "status": "CLOSED"}, "action": "accept"},
        format="json",
    )

    assert res.status_code == 409, res.data
    err = _error(res)
    assert err["code"] == "conflict"
    assert err["details"] == {"kind": "invalid_state"}


def test_case_validate_guard_failure_is_400(api_client):
    res = api_client.post(
        "/api/v1/lifecycle/cases/validate/",
        {"case": {"id": "c-1", "status": "ASSIGNED"}, "action": "reject", "reason": "too busy"},
        format="json",
    )

    assert res.status_code == 400, res.data
    err = _error(res)
    assert err["code"] == "validation_error"
    assert err["details"] == {"kind": "guard_failed"}


def test_appointment_validate_reschedule(api_client):
    res = api_client.post(
        "/api/v1/lifecycle/appointments/validate/",
        {
            "appointment": {"id": "a-1", "status": "CONFIRMED", "scheduled_time": "2026-03-02T12:00:00Z"},
            "action": "reschedule",
            "new_time": "2026-03-03T12:00:00Z",
            "reason": "Doctor is in surgery",
            "now": NOW_ISO,
        },
        format="json",
    )

    assert res.status_code == 200, res.data
    assert res.data["status"] == "RESCHEDULED"
    assert res.data["appointment"]["reschedule_count"] == 1


def test_appointment_validate_join_outside_window(api_client):
    res = api_client.post(
        "/api/v1/lifecycle/appointments/validate/",
        {
            "appointment": {
                "id": "a-1",
                "status": "SCHEDULED",
                "scheduled_time": "2026-03-02T11:00:00Z",
                "meeting_link": "https://meet.example.com/a-1",
            },
            "action": "join",
            "now": NOW_ISO,
        },
        format="json",
    )

    assert res.status_code == 400, res.data
    assert _error(res)["details"] == {"kind": "guard_failed"}


def test_dry_run_rejects_unknown_status(api_client):
    res = api_client.post(
        "/api/v1/lifecycle/cases/validate/",
        {"case": {"id": "c-1", "status": "LOST"}, "action": "accept"},
        format="json",
    )

    assert res.status_code == 400
    assert _error(res)["code"] == "validation_error"


def test_requires_authentication():
    res = APIClient().post("/api/v1/lifecycle/available-actions/", {}, format="json")

    assert res.status_code == 401
    assert _error(res)["code"] == "not_authenticated"


# ----------------------------
# Service-backed endpoints
# ----------------------------
def test_case_actions_endpoint(api_client, wired_service, fake_cases, make_case):
    fake_cases.cases["case-1"] = make_case(CaseStatus.ASSIGNED)

    res = api_client.get("/api/v1/cases/case-1/actions/")

    assert res.status_code == 200, res.data
    assert res.data["case_actions"] == ["accept", "reject"]
    assert res.data["case"]["status"] == "ASSIGNED"
    assert res.data["appointment"] is None


def test_accept_case(api_client, wired_service, fake_cases, make_case):
    fake_cases.cases["case-1"] = make_case(CaseStatus.ASSIGNED)

    res = api_client.post("/api/v1/cases/case-1/accept/", {}, format="json")

    assert res.status_code == 200, res.data
    assert res.data["status"] == "ACCEPTED"
    assert fake_cases.closed is True


def test_accept_closed_case_is_409(api_client, wired_service, fake_cases, make_case):
    fake_cases.cases["case-1"] = make_case(CaseStatus.CLOSED)

    res = api_client.post("/api/v1/cases/case-1/accept/", {}, format="json")

    assert res.status_code == 409
    assert _error(res)["code"] == "conflict"
    assert fake_cases.calls == []


def test_unknown_case_is_404(api_client, wired_service):
    res = api_client.post("/api/v1/cases/ghost/accept/", {}, format="json")

    assert res.status_code == 404
    assert _error(res)["code"] == "not_found"


def test_reject_case_short_reason(api_client, wired_service, fake_cases, make_case):
    fake_cases.cases["case-1"] = make_case(CaseStatus.ASSIGNED)

    res = api_client.post("/api/v1/cases/case-1/reject/", {"reason": "too busy"}, format="json")

    assert res.status_code == 400
    assert _error(res)["details"] == {"kind": "guard_failed"}


def test_set_fee_then_close_flow(api_client, wired_service, fake_cases, make_case):
    fake_cases.cases["case-1"] = make_case(CaseStatus.ACCEPTED)

    res = api_client.post("/api/v1/cases/case-1/fee/", {"consultation_fee": "150"}, format="json")
    assert res.status_code == 200, res.data
    assert res.data["consultation_fee"] == "150.00"

    res = api_client.post("/api/v1/cases/case-1/fee/", {"consultation_fee": "600"}, format="json")
    assert res.status_code == 400

    fake_cases.cases["case-1"] = make_case(CaseStatus.CONSULTATION_COMPLETE, report_finalized=True)
    res = api_client.post("/api/v1/cases/case-1/close/", {}, format="json")
    assert res.status_code == 200, res.data
    assert res.data["status"] == "CLOSED"


def test_upstream_failure_is_502(api_client, wired_service, fake_cases, make_case, monkeypatch):
    fake_cases.cases["case-1"] = make_case(CaseStatus.ASSIGNED)

    def down(case_id):
        raise ExternalServiceError("case-service unreachable")

    monkeypatch.setattr(fake_cases, "accept_case", down)

    res = api_client.post("/api/v1/cases/case-1/accept/", {}, format="json")

    assert res.status_code == 502
    assert _error(res)["code"] == "external_service_error"


def test_schedule_appointment(api_client, wired_service, fake_cases, fake_appointments, accepted_case_with_fee):
    fake_cases.cases["case-1"] = accepted_case_with_fee

    res = api_client.post(
        "/api/v1/appointments/",
        {
            "case_id": "case-1",
            "scheduled_time": "2026-03-03T10:00:00Z",
            "duration": 45,
            "consultation_type": "PHONE_CALL",
        },
        format="json",
    )

    assert res.status_code == 201, res.data
    assert res.data["status"] == "SCHEDULED"
    assert res.data["duration"] == 45
    assert res.data["consultation_type"] == "PHONE_CALL"
    assert len(fake_appointments.calls) == 1


def test_schedule_appointment_with_bad_duration(api_client, wired_service, fake_cases, accepted_case_with_fee):
    fake_cases.cases["case-1"] = accepted_case_with_fee

    res = api_client.post(
        "/api/v1/appointments/",
        {"case_id": "case-1", "scheduled_time": "2026-03-03T10:00:00Z", "duration": 20},
        format="json",
    )

    assert res.status_code == 400
    assert _error(res)["details"] == {"kind": "guard_failed"}


def test_reschedule_and_cancel_appointment(api_client, wired_service, fake_appointments, make_appointment, now):
    fake_appointments.appointments["appt-1"] = make_appointment(scheduled_time=now + timedelta(hours=3))

    res = api_client.post(
        "/api/v1/appointments/appt-1/reschedule/",
        {"new_time": "2026-03-04T09:00:00Z", "reason": "Doctor is in surgery"},
        format="json",
    )
    assert res.status_code == 200, res.data
    assert res.data["status"] == "RESCHEDULED"
    assert res.data["reschedule_count"] == 1

    res = api_client.post(
        "/api/v1/appointments/appt-1/cancel/",
        {"reason": "Patient recovered already"},
        format="json",
    )
    assert res.status_code == 200, res.data
    assert res.data["status"] == AppointmentStatus.CANCELLED

    res = api_client.post(
        "/api/v1/appointments/appt-1/cancel/",
        {"reason": "Patient recovered already"},
        format="json",
    )
    assert res.status_code == 409


def test_default_factory_forwards_bearer_token():
    request = APIRequestFactory().post("/", HTTP_AUTHORIZATION="Bearer jwt-abc")
    service = default_service_factory(request)
    try:
        assert service.cases.client.headers["Authorization"] == "Bearer jwt-abc"
        assert service.appointments.client.headers["Authorization"] == "Bearer jwt-abc"
        assert str(service.cases.client.base_url).startswith("http://case-service.test")
    finally:
        service.close()


def test_schedule_new_slot_after_cancellation(
    api_client, wired_service, fake_cases, fake_appointments, make_case, make_appointment, now
):
    fake_cases.cases["case-1"] = make_case(CaseStatus.SCHEDULED, consultation_fee=150)
    fake_appointments.appointments["appt-1"] = make_appointment(
        AppointmentStatus.CANCELLED, scheduled_time=now + timedelta(hours=1)
    )

    res = api_client.get("/api/v1/cases/case-1/actions/")
    assert res.data["case_actions"] == ["request_payment", "reschedule"]

    res = api_client.post(
        "/api/v1/appointments/",
        {"case_id": "case-1", "scheduled_time": "2026-03-03T10:00:00Z"},
        format="json",
    )

    assert res.status_code == 201, res.data
    assert res.data["status"] == "SCHEDULED"
