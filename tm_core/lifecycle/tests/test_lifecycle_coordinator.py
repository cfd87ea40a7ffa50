from datetime import timedelta

import pytest

from tm_core.lifecycle.constants import AppointmentAction, AppointmentStatus, CaseAction, CaseStatus
from tm_core.lifecycle.coordinator import LifecycleCoordinator


@pytest.fixture
def coordinator():
    return LifecycleCoordinator()


def test_accepted_case_without_appointment(coordinator, accepted_case_with_fee, now):
    actions = coordinator.compute_available_actions(accepted_case_with_fee, None, now)

    assert actions.case_actions == {CaseAction.REJECT, CaseAction.SET_FEE, CaseAction.SCHEDULE}
    assert actions.appointment_actions == frozenset()


def test_active_appointment_suppresses_case_level_scheduling(coordinator, make_case, make_appointment, now):
    case = make_case(CaseStatus.SCHEDULED, consultation_fee=150)
    appt = make_appointment(scheduled_time=now + timedelta(hours=3))

    actions = coordinator.compute_available_actions(case, appt, now)

    assert CaseAction.SCHEDULE not in actions.case_actions
    assert CaseAction.RESCHEDULE not in actions.case_actions
    assert CaseAction.REQUEST_PAYMENT in actions.case_actions
    # appointment hasn't started yet
    assert CaseAction.START_CONSULTATION not in actions.case_actions
    assert actions.appointment_actions == {
        AppointmentAction.CONFIRM,
        AppointmentAction.RESCHEDULE,
        AppointmentAction.CANCEL,
    }


def test_start_consultation_appears_at_scheduled_time(coordinator, make_case, make_appointment, now):
    case = make_case(CaseStatus.SCHEDULED, consultation_fee=150)
    appt = make_appointment(scheduled_time=now)

    actions = coordinator.compute_available_actions(case, appt, now)

    assert CaseAction.START_CONSULTATION in actions.case_actions
    assert AppointmentAction.JOIN in actions.appointment_actions


def test_cancelled_appointment_is_ignored(coordinator, make_case, make_appointment, now):
    case = make_case(CaseStatus.SCHEDULED, consultation_fee=150)
    appt = make_appointment(AppointmentStatus.CANCELLED, scheduled_time=now + timedelta(hours=3))

    actions = coordinator.compute_available_actions(case, appt, now)

    assert actions == coordinator.compute_available_actions(case, None, now)
    # rebooking goes through reschedule; there is no appointment to start
    assert actions.case_actions == {CaseAction.REQUEST_PAYMENT, CaseAction.RESCHEDULE}
    assert actions.appointment_actions == frozenset()


def test_payment_pending_case_can_rebook_after_no_show(coordinator, make_case, make_appointment, now):
    case = make_case(CaseStatus.PAYMENT_PENDING, consultation_fee=150)
    appt = make_appointment(AppointmentStatus.NO_SHOW, scheduled_time=now - timedelta(hours=1))

    actions = coordinator.compute_available_actions(case, appt, now)

    assert actions.case_actions == {CaseAction.RESCHEDULE}


def test_complete_consultation_waits_for_completed_appointment(coordinator, make_case, make_appointment, now):
    case = make_case(CaseStatus.IN_PROGRESS, consultation_fee=150)

    running = coordinator.compute_available_actions(case, make_appointment(scheduled_time=now), now)
    assert CaseAction.COMPLETE_CONSULTATION not in running.case_actions
    assert AppointmentAction.COMPLETE in running.appointment_actions

    done = coordinator.compute_available_actions(
        case, make_appointment(AppointmentStatus.COMPLETED, scheduled_time=now), now
    )
    assert CaseAction.COMPLETE_CONSULTATION in done.case_actions
    assert done.appointment_actions == frozenset()


def test_terminal_case_offers_nothing_case_level(coordinator, make_case, now):
    actions = coordinator.compute_available_actions(make_case(CaseStatus.CLOSED), None, now)
    assert actions.case_actions == frozenset()


def test_same_inputs_same_answer(coordinator, make_case, make_appointment, now):
    case = make_case(CaseStatus.SCHEDULED, consultation_fee=150)
    appt = make_appointment(scheduled_time=now + timedelta(minutes=10))

    first = coordinator.compute_available_actions(case, appt, now)
    second = coordinator.compute_available_actions(case, appt, now)

    assert first == second


def test_preview_maps_actions_to_next_status(coordinator, make_case, make_appointment, now):
    case = make_case(CaseStatus.SCHEDULED, consultation_fee=150)
    appt = make_appointment(scheduled_time=now + timedelta(minutes=10))

    preview = coordinator.preview(case, appt, now)

    assert preview["case"] == {"request_payment": "PAYMENT_PENDING"}
    assert preview["appointment"] == {
        "cancel": "CANCELLED",
        "confirm": "CONFIRMED",
        "join": "SCHEDULED",
        "reschedule": "RESCHEDULED",
    }


def test_is_allowed(coordinator, make_case, now):
    case = make_case(CaseStatus.ASSIGNED)

    assert coordinator.is_allowed(case, None, now, CaseAction.ACCEPT)
    assert coordinator.is_allowed(case, None, now, "reject", level="case")
    assert not coordinator.is_allowed(case, None, now, CaseAction.SCHEDULE)
    assert not coordinator.is_allowed(case, None, now, AppointmentAction.JOIN)


def test_is_allowed_keeps_case_and_appointment_reschedule_apart(coordinator, make_case, make_appointment, now):
    case = make_case(CaseStatus.SCHEDULED, consultation_fee=150)
    appt = make_appointment(scheduled_time=now + timedelta(hours=3))

    assert not coordinator.is_allowed(case, appt, now, CaseAction.RESCHEDULE)
    assert coordinator.is_allowed(case, appt, now, AppointmentAction.RESCHEDULE)
    assert not coordinator.is_allowed(case, appt, now, "reschedule", level="case")
    assert coordinator.is_allowed(case, appt, now, "reschedule", level="appointment")
    assert not coordinator.is_allowed(case, appt, now, "teleport", level="case")


def test_is_allowed_needs_level_for_plain_names(coordinator, make_case, now):
    with pytest.raises(ValueError):
        coordinator.is_allowed(make_case(CaseStatus.SCHEDULED), None, now, "reschedule")
