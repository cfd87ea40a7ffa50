# tm_core/lifecycle/clients.py
"""
HTTP adapters for the doctor-facing case/appointment microservices.

Responses use the portal envelope:
    {"success": true, "data": {...}, "message": "..."}
Payload keys are camelCase (consultationFee, scheduledTime, ...).
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Optional

import httpx
from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from tm_core.lifecycle.constants import INACTIVE_APPOINTMENT_STATUSES
from tm_core.lifecycle.ports import ExternalServiceError, RecordNotFound
from tm_core.lifecycle.snapshots import AppointmentSnapshot, CaseSnapshot

logger = logging.getLogger(__name__)


def _dt(value):
    """Timestamps without an offset (datetime-local values) are read in the project time zone."""
    if not value:
        return None
    parsed = parse_datetime(value) if isinstance(value, str) else value
    if parsed is None:
        raise ExternalServiceError(f"Unparseable timestamp from upstream: {value!r}")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, timezone.get_default_timezone())
    return parsed


def case_from_payload(data: dict[str, Any]) -> CaseSnapshot:
    fee = data.get("consultationFee")
    return CaseSnapshot(
        id=str(data["id"]),
        status=str(data["status"]).upper(),
        consultation_fee=None if fee in (None, "") else Decimal(str(fee)),
        urgency_level=str(data.get("urgencyLevel") or "MEDIUM").upper(),
        assigned_at=_dt(data.get("assignedAt")),
        accepted_at=_dt(data.get("acceptedAt")),
        closed_at=_dt(data.get("closedAt")),
        report_finalized=bool(data.get("reportFinalized", False)),
    )


def appointment_from_payload(data: dict[str, Any]) -> AppointmentSnapshot:
    return AppointmentSnapshot(
        id=str(data["id"]),
        case_id=str(data.get("caseId") or ""),
        status=str(data["status"]).upper(),
        scheduled_time=_dt(data["scheduledTime"]),
        duration=int(data.get("duration") or 30),
        consultation_type=str(data.get("consultationType") or "VIDEO_CONSULTATION").upper(),
        reschedule_count=int(data.get("rescheduleCount") or 0),
        meeting_link=data.get("meetingLink") or None,
        joined_at=_dt(data.get("joinedAt")),
    )


class _HttpServiceBase:
    service_name = "service"
    settings_url_key = ""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        base_url = base_url or getattr(settings, self.settings_url_key, "")
        timeout = timeout if timeout is not None else getattr(settings, "EXTERNAL_SERVICE_TIMEOUT", 10.0)
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.client = httpx.Client(base_url=base_url, headers=headers, timeout=timeout, transport=transport)

    def close(self) -> None:
        self.client.close()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("%s %s %s failed: %s", self.service_name, method, path, e)
            raise ExternalServiceError(f"{self.service_name} unreachable: {e}") from e

        if response.status_code == 404:
            raise RecordNotFound(f"{self.service_name}: {path} not found.")

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("%s %s %s -> %s: %s", self.service_name, method, path, response.status_code, response.text)
            raise ExternalServiceError(f"{self.service_name} answered {response.status_code}.") from e

        body = response.json() if response.content else {}
        if isinstance(body, dict) and "success" in body:
            if not body.get("success"):
                raise ExternalServiceError(body.get("message") or f"{self.service_name} request failed.")
            return body.get("data")
        return body


class HttpCaseService(_HttpServiceBase):
    service_name = "case-service"
    settings_url_key = "CASE_SERVICE_URL"

    def get_case(self, case_id: str) -> CaseSnapshot:
        return case_from_payload(self._request("GET", f"/api/doctors/cases/{case_id}"))

    def accept_case(self, case_id: str) -> CaseSnapshot:
        return case_from_payload(self._request("POST", f"/api/doctors/cases/{case_id}/accept"))

    def reject_case(self, case_id: str, reason: str) -> CaseSnapshot:
        data = self._request("POST", f"/api/doctors/cases/{case_id}/reject", json={"reason": reason})
        return case_from_payload(data)

    def set_case_fee(self, case_id: str, fee: Decimal) -> CaseSnapshot:
        data = self._request("PUT", f"/api/doctors/cases/{case_id}/fee", json={"consultationFee": str(fee)})
        return case_from_payload(data)

    def close_case(self, case_id: str) -> CaseSnapshot:
        data = self._request("PUT", f"/api/doctors/cases/{case_id}/status", json={"status": "CLOSED"})
        return case_from_payload(data)


class HttpAppointmentService(_HttpServiceBase):
    service_name = "appointment-service"
    settings_url_key = "APPOINTMENT_SERVICE_URL"

    def get_appointment(self, appointment_id: str) -> AppointmentSnapshot:
        return appointment_from_payload(self._request("GET", f"/api/doctors/appointments/{appointment_id}"))

    def get_case_appointment(self, case_id: str) -> Optional[AppointmentSnapshot]:
        data = self._request("GET", "/api/doctors/appointments", params={"caseId": case_id}) or []
        if isinstance(data, dict):
            data = data.get("appointments") or data.get("content") or []

        active = [
            appointment_from_payload(item)
            for item in data
            if str(item.get("status", "")).upper() not in INACTIVE_APPOINTMENT_STATUSES
        ]
        if not active:
            return None
        return max(active, key=lambda a: a.scheduled_time)

    def schedule_appointment(self, data: dict[str, Any]) -> AppointmentSnapshot:
        return appointment_from_payload(self._request("POST", "/api/doctors/appointments", json=data))

    def reschedule_appointment(self, appointment_id: str, data: dict[str, Any]) -> AppointmentSnapshot:
        payload = self._request("POST", f"/api/doctors/appointments/{appointment_id}/reschedule", json=data)
        return appointment_from_payload(payload)

    def cancel_appointment(self, appointment_id: str, reason: str) -> AppointmentSnapshot:
        payload = self._request(
            "POST",
            f"/api/doctors/appointments/{appointment_id}/cancel",
            json={"reason": reason},
        )
        return appointment_from_payload(payload)
