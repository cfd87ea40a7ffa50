# tm_core/lifecycle/ports.py
"""
Interfaces of the external case/appointment services.

The services own persistence (and optimistic locking against concurrent
writes); this project only reads snapshots from them and asks them to mutate
after the lifecycle core has validated the transition.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional, Protocol, runtime_checkable

from tm_core.lifecycle.snapshots import AppointmentSnapshot, CaseSnapshot


class RecordNotFound(Exception):
    """The external service has no case/appointment with this id."""


class ExternalServiceError(Exception):
    """Transport failure or unexpected response from an external service."""


@runtime_checkable
class CaseService(Protocol):
    def get_case(self, case_id: str) -> CaseSnapshot:
        ...

    def accept_case(self, case_id: str) -> CaseSnapshot:
        ...

    def reject_case(self, case_id: str, reason: str) -> CaseSnapshot:
        ...

    def set_case_fee(self, case_id: str, fee: Decimal) -> CaseSnapshot:
        ...

    def close_case(self, case_id: str) -> CaseSnapshot:
        ...


@runtime_checkable
class AppointmentService(Protocol):
    def get_appointment(self, appointment_id: str) -> AppointmentSnapshot:
        ...

    def get_case_appointment(self, case_id: str) -> Optional[AppointmentSnapshot]:
        """Active (non-cancelled) appointment of a case, if any."""
        ...

    def schedule_appointment(self, data: dict[str, Any]) -> AppointmentSnapshot:
        ...

    def reschedule_appointment(self, appointment_id: str, data: dict[str, Any]) -> AppointmentSnapshot:
        ...

    def cancel_appointment(self, appointment_id: str, reason: str) -> AppointmentSnapshot:
        ...
