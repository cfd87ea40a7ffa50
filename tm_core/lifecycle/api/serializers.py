# tm_core/lifecycle/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from tm_core.lifecycle.constants import (
    AppointmentAction,
    AppointmentStatus,
    CaseAction,
    CaseStatus,
    ConsultationType,
    UrgencyLevel,
)
from tm_core.lifecycle.snapshots import AppointmentSnapshot, CaseSnapshot


class CaseSnapshotSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=64)
    status = serializers.ChoiceField(choices=CaseStatus.choices)
    consultation_fee = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=0, required=False, allow_null=True
    )
    urgency_level = serializers.ChoiceField(choices=UrgencyLevel.choices, required=False, default=UrgencyLevel.MEDIUM)
    assigned_at = serializers.DateTimeField(required=False, allow_null=True)
    accepted_at = serializers.DateTimeField(required=False, allow_null=True)
    closed_at = serializers.DateTimeField(required=False, allow_null=True)
    report_finalized = serializers.BooleanField(required=False, default=False)

    @staticmethod
    def to_snapshot(data: dict) -> CaseSnapshot:
        return CaseSnapshot(**data)


class AppointmentSnapshotSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=64)
    case_id = serializers.CharField(max_length=64, required=False, default="")
    status = serializers.ChoiceField(choices=AppointmentStatus.choices)
    scheduled_time = serializers.DateTimeField()
    duration = serializers.IntegerField(min_value=1, required=False, default=30)
    consultation_type = serializers.ChoiceField(
        choices=ConsultationType.choices, required=False, default=ConsultationType.VIDEO_CONSULTATION
    )
    reschedule_count = serializers.IntegerField(min_value=0, required=False, default=0)
    meeting_link = serializers.CharField(required=False, allow_null=True, allow_blank=True, default=None)
    joined_at = serializers.DateTimeField(required=False, allow_null=True, default=None)

    @staticmethod
    def to_snapshot(data: dict) -> AppointmentSnapshot:
        return AppointmentSnapshot(**data)


# -------------------------
# Dry-run inputs (snapshots posted by the caller)
# -------------------------
class AvailableActionsInputSerializer(serializers.Serializer):
    case = CaseSnapshotSerializer()
    appointment = AppointmentSnapshotSerializer(required=False, allow_null=True, default=None)
    now = serializers.DateTimeField(required=False, allow_null=True, default=None)


class CaseValidateInputSerializer(serializers.Serializer):
    case = CaseSnapshotSerializer()
    action = serializers.ChoiceField(choices=CaseAction.choices)
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)
    fee = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True, default=None)
    appointment = AppointmentSnapshotSerializer(required=False, allow_null=True, default=None)
    now = serializers.DateTimeField(required=False, allow_null=True, default=None)


class AppointmentValidateInputSerializer(serializers.Serializer):
    appointment = AppointmentSnapshotSerializer()
    action = serializers.ChoiceField(choices=AppointmentAction.choices)
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)
    new_time = serializers.DateTimeField(required=False, allow_null=True, default=None)
    duration = serializers.IntegerField(required=False, allow_null=True, default=None)
    now = serializers.DateTimeField(required=False, allow_null=True, default=None)


# -------------------------
# Service-backed action inputs
# -------------------------
class RejectCaseInputSerializer(serializers.Serializer):
    reason = serializers.CharField(allow_blank=True)


class CaseFeeInputSerializer(serializers.Serializer):
    consultation_fee = serializers.DecimalField(max_digits=10, decimal_places=2)


class ScheduleAppointmentInputSerializer(serializers.Serializer):
    case_id = serializers.CharField(max_length=64)
    scheduled_time = serializers.DateTimeField()
    duration = serializers.IntegerField(required=False, default=30)
    consultation_type = serializers.ChoiceField(
        choices=ConsultationType.choices, required=False, default=ConsultationType.VIDEO_CONSULTATION
    )
    meeting_link = serializers.CharField(required=False, allow_null=True, allow_blank=True, default=None)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class RescheduleAppointmentInputSerializer(serializers.Serializer):
    new_time = serializers.DateTimeField()
    reason = serializers.CharField(allow_blank=True)
    duration = serializers.IntegerField(required=False, allow_null=True, default=None)


class CancelAppointmentInputSerializer(serializers.Serializer):
    reason = serializers.CharField(allow_blank=True)


# -------------------------
# Outputs
# -------------------------
class AvailableActionsSerializer(serializers.Serializer):
    case_actions = serializers.ListField(child=serializers.CharField())
    appointment_actions = serializers.ListField(child=serializers.CharField())
    preview = serializers.DictField(required=False)


class TransitionResultSerializer(serializers.Serializer):
    ok = serializers.BooleanField()
    status = serializers.CharField(allow_null=True)
