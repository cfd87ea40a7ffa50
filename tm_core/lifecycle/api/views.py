# tm_core/lifecycle/api/views.py
from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, ValidationError as DRFValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from tm_core.common.api.exceptions import ConflictError, ExternalServiceUnavailable
from tm_core.common.clock import SystemClock
from tm_core.lifecycle.api.serializers import (
    AppointmentSnapshotSerializer,
    AppointmentValidateInputSerializer,
    AvailableActionsInputSerializer,
    AvailableActionsSerializer,
    CancelAppointmentInputSerializer,
    CaseFeeInputSerializer,
    CaseSnapshotSerializer,
    CaseValidateInputSerializer,
    RejectCaseInputSerializer,
    RescheduleAppointmentInputSerializer,
    ScheduleAppointmentInputSerializer,
    TransitionResultSerializer,
)
from tm_core.lifecycle.clients import HttpAppointmentService, HttpCaseService
from tm_core.lifecycle.coordinator import AvailableActions, LifecycleCoordinator
from tm_core.lifecycle.policy import LifecyclePolicy
from tm_core.lifecycle.ports import ExternalServiceError, RecordNotFound
from tm_core.lifecycle.results import ErrorKind, TransitionError
from tm_core.lifecycle.services import LifecycleService, TransitionDenied


def transition_error_to_api(error: TransitionError):
    payload = {"detail": error.detail, "kind": str(error.kind)}
    if error.kind == ErrorKind.INVALID_STATE:
        return ConflictError(payload)
    if error.kind == ErrorKind.NOT_FOUND:
        return NotFound(payload)
    return DRFValidationError(payload)


def _bearer_token(request) -> str | None:
    header = request.META.get("HTTP_AUTHORIZATION", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


def default_service_factory(request) -> LifecycleService:
    """Forward the caller's JWT so the case/appointment services apply their own ownership rules."""
    token = _bearer_token(request)
    return LifecycleService(
        cases=HttpCaseService(token=token),
        appointments=HttpAppointmentService(token=token),
    )


def _actions_payload(actions: AvailableActions, preview: dict | None = None) -> dict:
    data = {
        "case_actions": sorted(str(a) for a in actions.case_actions),
        "appointment_actions": sorted(str(a) for a in actions.appointment_actions),
    }
    if preview is not None:
        data["preview"] = preview
    return data


# ----------------------------
# Dry-run endpoints (pure, snapshots in / decisions out)
# ----------------------------
class AvailableActionsView(APIView):
    clock = SystemClock()

    @extend_schema(request=AvailableActionsInputSerializer, responses=AvailableActionsSerializer)
    def post(self, request):
        s = AvailableActionsInputSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        case = CaseSnapshotSerializer.to_snapshot(data["case"])
        appointment = data.get("appointment")
        appointment = AppointmentSnapshotSerializer.to_snapshot(appointment) if appointment else None
        now = data.get("now") or self.clock.now()

        coordinator = LifecycleCoordinator(LifecyclePolicy.from_settings())
        actions = coordinator.compute_available_actions(case, appointment, now)
        preview = coordinator.preview(case, appointment, now)
        return Response(_actions_payload(actions, preview), status=status.HTTP_200_OK)


class CaseTransitionValidateView(APIView):
    clock = SystemClock()

    @extend_schema(request=CaseValidateInputSerializer, responses=TransitionResultSerializer)
    def post(self, request):
        s = CaseValidateInputSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        case = CaseSnapshotSerializer.to_snapshot(data["case"])
        appointment = data.get("appointment")
        appointment = AppointmentSnapshotSerializer.to_snapshot(appointment) if appointment else None

        coordinator = LifecycleCoordinator(LifecyclePolicy.from_settings())
        result = coordinator.cases.validate(
            case,
            data["action"],
            reason=data.get("reason"),
            fee=data.get("fee"),
            appointment=appointment,
            now=data.get("now") or self.clock.now(),
        )
        if not result.ok:
            raise transition_error_to_api(result.error)

        return Response(
            {"ok": True, "status": str(result.status), "case": CaseSnapshotSerializer(result.snapshot).data},
            status=status.HTTP_200_OK,
        )


class AppointmentTransitionValidateView(APIView):
    clock = SystemClock()

    @extend_schema(request=AppointmentValidateInputSerializer, responses=TransitionResultSerializer)
    def post(self, request):
        s = AppointmentValidateInputSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        appointment = AppointmentSnapshotSerializer.to_snapshot(data["appointment"])
        coordinator = LifecycleCoordinator(LifecyclePolicy.from_settings())
        result = coordinator.appointments.validate(
            appointment,
            data["action"],
            now=data.get("now") or self.clock.now(),
            reason=data.get("reason"),
            new_time=data.get("new_time"),
            duration=data.get("duration"),
        )
        if not result.ok:
            raise transition_error_to_api(result.error)

        return Response(
            {
                "ok": True,
                "status": str(result.status),
                "appointment": AppointmentSnapshotSerializer(result.snapshot).data,
            },
            status=status.HTTP_200_OK,
        )


# ----------------------------
# Service-backed endpoints
# ----------------------------
class _LifecycleServiceMixin:
    service_factory = staticmethod(default_service_factory)

    def _call(self, request, fn):
        service = self.service_factory(request)
        try:
            return fn(service)
        except TransitionDenied as e:
            raise transition_error_to_api(e.error)
        except RecordNotFound as e:
            raise NotFound(str(e))
        except ExternalServiceError as e:
            raise ExternalServiceUnavailable(str(e))
        finally:
            service.close()


class CaseLifecycleViewSet(_LifecycleServiceMixin, viewsets.ViewSet):
    """
    Thin API layer:
    - input validation (serializers)
    - lifecycle checks + external calls (LifecycleService)
    - error mapping (409 invalid state / 400 guard failed / 404 not found / 502 upstream)
    """

    @extend_schema(responses=AvailableActionsSerializer)
    @action(detail=True, methods=["get"], url_path="actions")
    def available_actions(self, request, pk=None):
        case, appointment, actions = self._call(request, lambda svc: svc.available_actions(pk))
        return Response(
            {
                **_actions_payload(actions),
                "case": CaseSnapshotSerializer(case).data,
                "appointment": AppointmentSnapshotSerializer(appointment).data if appointment else None,
            },
            status=status.HTTP_200_OK,
        )

    @extend_schema(request=None, responses=CaseSnapshotSerializer)
    @action(detail=True, methods=["post"])
    def accept(self, request, pk=None):
        case = self._call(request, lambda svc: svc.accept_case(pk))
        return Response(CaseSnapshotSerializer(case).data, status=status.HTTP_200_OK)

    @extend_schema(request=RejectCaseInputSerializer, responses=CaseSnapshotSerializer)
    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        s = RejectCaseInputSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        case = self._call(request, lambda svc: svc.reject_case(pk, s.validated_data["reason"]))
        return Response(CaseSnapshotSerializer(case).data, status=status.HTTP_200_OK)

    @extend_schema(request=CaseFeeInputSerializer, responses=CaseSnapshotSerializer)
    @action(detail=True, methods=["post"])
    def fee(self, request, pk=None):
        s = CaseFeeInputSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        case = self._call(request, lambda svc: svc.set_case_fee(pk, s.validated_data["consultation_fee"]))
        return Response(CaseSnapshotSerializer(case).data, status=status.HTTP_200_OK)

    @extend_schema(request=None, responses=CaseSnapshotSerializer)
    @action(detail=True, methods=["post"])
    def close(self, request, pk=None):
        case = self._call(request, lambda svc: svc.close_case(pk))
        return Response(CaseSnapshotSerializer(case).data, status=status.HTTP_200_OK)


class AppointmentLifecycleViewSet(_LifecycleServiceMixin, viewsets.ViewSet):
    @extend_schema(request=ScheduleAppointmentInputSerializer, responses=AppointmentSnapshotSerializer)
    def create(self, request):
        s = ScheduleAppointmentInputSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = dict(s.validated_data)
        case_id = data.pop("case_id")

        appointment = self._call(request, lambda svc: svc.schedule_appointment(case_id, **data))
        return Response(AppointmentSnapshotSerializer(appointment).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=RescheduleAppointmentInputSerializer, responses=AppointmentSnapshotSerializer)
    @action(detail=True, methods=["post"])
    def reschedule(self, request, pk=None):
        s = RescheduleAppointmentInputSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        appointment = self._call(
            request,
            lambda svc: svc.reschedule_appointment(
                pk,
                new_time=data["new_time"],
                reason=data["reason"],
                duration=data.get("duration"),
            ),
        )
        return Response(AppointmentSnapshotSerializer(appointment).data, status=status.HTTP_200_OK)

    @extend_schema(request=CancelAppointmentInputSerializer, responses=AppointmentSnapshotSerializer)
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        s = CancelAppointmentInputSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        appointment = self._call(request, lambda svc: svc.cancel_appointment(pk, s.validated_data["reason"]))
        return Response(AppointmentSnapshotSerializer(appointment).data, status=status.HTTP_200_OK)
