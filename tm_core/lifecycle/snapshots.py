# tm_core/lifecycle/snapshots.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from tm_core.lifecycle.constants import (
    AppointmentStatus,
    CaseStatus,
    ConsultationType,
    INACTIVE_APPOINTMENT_STATUSES,
    TERMINAL_APPOINTMENT_STATUSES,
    TERMINAL_CASE_STATUSES,
    UrgencyLevel,
)


@dataclass(frozen=True)
class CaseSnapshot:
    """
    Read-only copy of a case as returned by the case service.

    The lifecycle core never mutates a snapshot; transitions hand back a
    proposed copy (dataclasses.replace) and the owning service persists it.
    """

    id: str
    status: CaseStatus
    consultation_fee: Optional[Decimal] = None
    urgency_level: UrgencyLevel = UrgencyLevel.MEDIUM
    assigned_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    report_finalized: bool = False

    def __post_init__(self):
        object.__setattr__(self, "status", CaseStatus(self.status))
        object.__setattr__(self, "urgency_level", UrgencyLevel(self.urgency_level))
        if self.consultation_fee is not None and not isinstance(self.consultation_fee, Decimal):
            object.__setattr__(self, "consultation_fee", Decimal(str(self.consultation_fee)))

    @property
    def has_fee(self) -> bool:
        return self.consultation_fee is not None and self.consultation_fee > 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_CASE_STATUSES


@dataclass(frozen=True)
class AppointmentSnapshot:
    id: str
    case_id: str
    status: AppointmentStatus
    scheduled_time: datetime
    duration: int = 30
    consultation_type: ConsultationType = ConsultationType.VIDEO_CONSULTATION
    reschedule_count: int = 0
    meeting_link: Optional[str] = None
    joined_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "status", AppointmentStatus(self.status))
        object.__setattr__(self, "consultation_type", ConsultationType(self.consultation_type))

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_APPOINTMENT_STATUSES

    @property
    def is_active(self) -> bool:
        """Holds the case's slot (COMPLETED still counts, it closes the consult)."""
        return self.status not in INACTIVE_APPOINTMENT_STATUSES
