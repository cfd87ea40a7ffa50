# tm_core/lifecycle/constants.py
from __future__ import annotations

from django.db import models


class CaseStatus(models.TextChoices):
    ASSIGNED = "ASSIGNED", "Doctor Assigned"
    ACCEPTED = "ACCEPTED", "Case Accepted"
    SCHEDULED = "SCHEDULED", "Appointment Scheduled"
    PAYMENT_PENDING = "PAYMENT_PENDING", "Awaiting Payment"
    IN_PROGRESS = "IN_PROGRESS", "Consultation Active"
    CONSULTATION_COMPLETE = "CONSULTATION_COMPLETE", "Consultation Complete"
    CLOSED = "CLOSED", "Case Closed"
    REJECTED = "REJECTED", "Case Rejected"


class CaseAction(models.TextChoices):
    ACCEPT = "accept", "Accept"
    REJECT = "reject", "Reject"
    SET_FEE = "set_fee", "Update Fees"
    SCHEDULE = "schedule", "Schedule Appointment"
    RESCHEDULE = "reschedule", "Re-Schedule"
    REQUEST_PAYMENT = "request_payment", "Request Payment"
    START_CONSULTATION = "start_consultation", "Start Consultation"
    COMPLETE_CONSULTATION = "complete_consultation", "Complete Consultation"
    CLOSE = "close", "Close Case"


class UrgencyLevel(models.TextChoices):
    LOW = "LOW", "Low"
    MEDIUM = "MEDIUM", "Medium"
    HIGH = "HIGH", "High"
    CRITICAL = "CRITICAL", "Critical"


class AppointmentStatus(models.TextChoices):
    SCHEDULED = "SCHEDULED", "Scheduled"
    CONFIRMED = "CONFIRMED", "Confirmed"
    RESCHEDULED = "RESCHEDULED", "Rescheduled"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"
    NO_SHOW = "NO_SHOW", "No Show"


class AppointmentAction(models.TextChoices):
    JOIN = "join", "Join"
    CONFIRM = "confirm", "Confirm"
    RESCHEDULE = "reschedule", "Reschedule"
    CANCEL = "cancel", "Cancel"
    COMPLETE = "complete", "Mark Complete"
    MARK_NO_SHOW = "mark_no_show", "Mark No-Show"


class ConsultationType(models.TextChoices):
    VIDEO_CONSULTATION = "VIDEO_CONSULTATION", "Video Consultation"
    PHONE_CALL = "PHONE_CALL", "Phone Call"
    ZOOM = "ZOOM", "Zoom"
    WHATSAPP = "WHATSAPP", "WhatsApp"


TERMINAL_CASE_STATUSES = frozenset({CaseStatus.CLOSED, CaseStatus.REJECTED})

TERMINAL_APPOINTMENT_STATUSES = frozenset(
    {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
)

# Appointment statuses that no longer hold the case's slot.
INACTIVE_APPOINTMENT_STATUSES = frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW})

# Happy path shown to patients/doctors (REJECTED is a side exit).
CASE_LIFECYCLE_STEPS = (
    CaseStatus.ASSIGNED,
    CaseStatus.ACCEPTED,
    CaseStatus.SCHEDULED,
    CaseStatus.PAYMENT_PENDING,
    CaseStatus.IN_PROGRESS,
    CaseStatus.CONSULTATION_COMPLETE,
    CaseStatus.CLOSED,
)

URGENCY_RANK = {
    UrgencyLevel.CRITICAL: 4,
    UrgencyLevel.HIGH: 3,
    UrgencyLevel.MEDIUM: 2,
    UrgencyLevel.LOW: 1,
}
