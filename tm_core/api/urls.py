# tm_core/api/urls.py
from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from tm_core.lifecycle.api.views import (
    AppointmentLifecycleViewSet,
    AppointmentTransitionValidateView,
    AvailableActionsView,
    CaseLifecycleViewSet,
    CaseTransitionValidateView,
)

router = DefaultRouter()

# Service-backed lifecycle actions
router.register(r"cases", CaseLifecycleViewSet, basename="cases")
router.register(r"appointments", AppointmentLifecycleViewSet, basename="appointments")

urlpatterns = [
    # Dry-run decisions over posted snapshots
    path("lifecycle/available-actions/", AvailableActionsView.as_view(), name="lifecycle-available-actions"),
    path("lifecycle/cases/validate/", CaseTransitionValidateView.as_view(), name="lifecycle-case-validate"),
    path(
        "lifecycle/appointments/validate/",
        AppointmentTransitionValidateView.as_view(),
        name="lifecycle-appointment-validate",
    ),

    # Router URLs last (so explicit paths win if ever overlapping)
    *router.urls,
]
