"""Derivation of a doctor's weekly slot grid.

Everything here is pure: no database access, no clock, no mutation of the
inputs. The grid is a point-in-time snapshot of the appointments passed in.
"""

from collections import defaultdict
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta

import structlog

from app.schemas.doctors import WEEKDAYS, DoctorWorkProfile
from app.schemas.schedules import (
    DaySchedule,
    SlotAppointment,
    SlotStatus,
    TimeSlot,
    WeeklySchedule,
)

logger = structlog.get_logger()

LABEL_FORMAT = "%H:%M"

# Sunday of the last week that fits entirely before date.max
LAST_GRID_DATE = date.max - timedelta(days=date.max.weekday() + 1)


def week_bounds(anchor: date) -> tuple[date, date]:
    """Return the Monday and Sunday of the week containing anchor."""
    start = anchor - timedelta(days=anchor.weekday())
    return start, start + timedelta(days=6)


def generate_time_labels(start: time, end: time, duration_minutes: int) -> list[str]:
    """
    Generate slot start labels in [start, end).

    Args:
        start: First slot start
        end: Exclusive end of the working window
        duration_minutes: Slot length

    Returns:
        Ordered "HH:MM" labels; empty for a non-positive duration or an
        empty window
    """
    if duration_minutes <= 0 or start >= end:
        return []

    current = datetime.combine(date.min, start)
    limit = datetime.combine(date.min, end)
    step = timedelta(minutes=duration_minutes)

    labels = []
    while current < limit:
        labels.append(current.strftime(LABEL_FORMAT))
        current += step
    return labels


def slot_label(value: time) -> str:
    """Label of the slot an appointment start time maps to."""
    return value.strftime(LABEL_FORMAT)


def build_day(
    day: date,
    labels: list[str],
    is_working_day: bool,
    day_appointments: list[SlotAppointment],
) -> DaySchedule:
    """Build the slots of one day."""
    if not is_working_day:
        return DaySchedule(
            date=day,
            day_name=WEEKDAYS[day.weekday()],
            is_working_day=False,
            slots=[TimeSlot(time=label, status=SlotStatus.NON_WORKING) for label in labels],
            unplaced_appointments=day_appointments,
        )

    by_label: dict[str, list[SlotAppointment]] = defaultdict(list)
    for appointment in day_appointments:
        by_label[slot_label(appointment.appointment_time)].append(appointment)

    slots = []
    for label in labels:
        booked = by_label.pop(label, [])
        if booked:
            slots.append(TimeSlot(time=label, status=SlotStatus.OCCUPIED, appointments=booked))
        else:
            slots.append(TimeSlot(time=label, status=SlotStatus.FREE))

    # Whatever is left did not match a generated label
    unplaced = [appointment for booked in by_label.values() for appointment in booked]
    unplaced.sort(key=lambda appointment: appointment.appointment_time)

    return DaySchedule(
        date=day,
        day_name=WEEKDAYS[day.weekday()],
        is_working_day=True,
        slots=slots,
        unplaced_appointments=unplaced,
    )


def build_week_schedule(
    profile: DoctorWorkProfile,
    appointments: Iterable[SlotAppointment],
    anchor: date,
) -> WeeklySchedule:
    """
    Build the Monday-to-Sunday grid of a doctor around anchor.

    Appointments sharing a label are all listed in that slot. Appointments
    whose start does not align with a label, or that fall on a non-working
    day, are kept in the day's unplaced_appointments instead of being
    snapped to a neighbouring slot.

    Args:
        profile: Resolved work calendar of the doctor
        appointments: Appointments of the doctor (other dates are ignored)
        anchor: Any date inside the requested week

    Returns:
        Weekly grid keyed by ISO date
    """
    week_start, week_end = week_bounds(anchor)
    labels = generate_time_labels(
        profile.work_start_time,
        profile.work_end_time,
        profile.appointment_duration_minutes,
    )
    work_days = set(profile.work_days)

    by_date: dict[date, list[SlotAppointment]] = defaultdict(list)
    for appointment in appointments:
        if week_start <= appointment.appointment_date <= week_end:
            by_date[appointment.appointment_date].append(appointment)

    days: dict[str, DaySchedule] = {}
    for offset in range(7):
        day = week_start + timedelta(days=offset)
        schedule = build_day(
            day,
            labels,
            WEEKDAYS[day.weekday()] in work_days,
            by_date.get(day, []),
        )
        if schedule.unplaced_appointments:
            logger.warning(
                "appointments_outside_slot_grid",
                doctor_id=str(profile.doctor_id),
                date=day.isoformat(),
                count=len(schedule.unplaced_appointments),
            )
        days[day.isoformat()] = schedule

    return WeeklySchedule(
        doctor=profile,
        week_start=week_start,
        week_end=week_end,
        time_slots=labels,
        days=days,
    )
