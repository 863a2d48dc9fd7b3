from __future__ import annotations

import logging
import re
from datetime import time

from sqlalchemy.orm import Session

from counselling.core.errors import ConflictError, NotFoundError, ValidationError
from counselling.db import commit_or_raise
from counselling.models import Appointment, AppointmentStatus, TimeSlot
from counselling.services.counsellor_service import get_counsellor_row


logger = logging.getLogger(__name__)
_DUPLICATE_SLOT = 'Time slot already exists'
# Optional ':SS' is accepted and dropped.
_HHMM_RE = re.compile(r'^(\d{1,2}):(\d{2})(?::\d{2})?$')


def _parse_hhmm(value: str) -> time:
    match = _HHMM_RE.match((value or '').strip())
    if not match:
        raise ValidationError('Times must be in HH:MM format')
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValidationError('Times must be in HH:MM format')
    return time(hour=hour, minute=minute)


def serialize_slot(row: TimeSlot) -> dict:
    return {
        'id': row.id,
        'counsellor_id': row.counsellor_id,
        'day_of_week': row.day_of_week,
        'start_time': row.start_time,
        'end_time': row.end_time,
        'is_available': bool(row.is_available),
    }


def create_slot(db: Session, counsellor_id: int, day_of_week: int, start_time: str, end_time: str) -> TimeSlot:
    if not 0 <= int(day_of_week) <= 6:
        raise ValidationError('day_of_week must be between 0 (Sunday) and 6 (Saturday)')
    start = _parse_hhmm(start_time)
    end = _parse_hhmm(end_time)
    if end <= start:
        raise ValidationError('end_time must be after start_time')
    start_label = start.strftime('%H:%M')

    get_counsellor_row(db, counsellor_id)
    duplicate = (
        db.query(TimeSlot.id)
        .filter(
            TimeSlot.counsellor_id == counsellor_id,
            TimeSlot.day_of_week == int(day_of_week),
            TimeSlot.start_time == start_label,
        )
        .first()
    )
    if duplicate:
        logger.info('slot_conflict counsellor_id=%s day=%s start=%s', counsellor_id, day_of_week, start_label)
        raise ConflictError(_DUPLICATE_SLOT)

    row = TimeSlot(
        counsellor_id=counsellor_id,
        day_of_week=int(day_of_week),
        start_time=start_label,
        end_time=end.strftime('%H:%M'),
        is_available=True,
    )
    db.add(row)
    # A concurrent insert of the same slot loses on the unique constraint.
    commit_or_raise(db, conflict_message=_DUPLICATE_SLOT)
    db.refresh(row)
    logger.info('slot_created slot_id=%s counsellor_id=%s', row.id, counsellor_id)
    return row


def list_slots(db: Session, counsellor_id: int) -> list[TimeSlot]:
    return (
        db.query(TimeSlot)
        .filter(TimeSlot.counsellor_id == counsellor_id, TimeSlot.is_available.is_(True))
        .order_by(TimeSlot.day_of_week.asc(), TimeSlot.start_time.asc())
        .all()
    )


def _owned_slot(db: Session, counsellor_id: int, slot_id: int) -> TimeSlot:
    row = (
        db.query(TimeSlot)
        .filter(TimeSlot.id == slot_id, TimeSlot.counsellor_id == counsellor_id)
        .with_for_update()
        .first()
    )
    if not row:
        raise NotFoundError('Time slot not found')
    return row


def set_slot_availability(db: Session, counsellor_id: int, slot_id: int, is_available: bool) -> TimeSlot:
    row = _owned_slot(db, counsellor_id, slot_id)
    row.is_available = bool(is_available)
    commit_or_raise(db)
    db.refresh(row)
    logger.info('slot_availability_changed slot_id=%s is_available=%s', row.id, row.is_available)
    return row


def delete_slot(db: Session, counsellor_id: int, slot_id: int) -> bool:
    """Remove a slot. Returns False when it was only deactivated because bookings still reference it."""
    row = _owned_slot(db, counsellor_id, slot_id)
    referenced = (
        db.query(Appointment.id)
        .filter(Appointment.time_slot_id == row.id)
        .first()
    )
    if referenced:
        row.is_available = False
        commit_or_raise(db)
        pending = (
            db.query(Appointment.id)
            .filter(Appointment.time_slot_id == row.id, Appointment.status == AppointmentStatus.SCHEDULED.value)
            .count()
        )
        logger.info('slot_deactivated slot_id=%s pending_appointments=%s', slot_id, pending)
        return False
    db.delete(row)
    commit_or_raise(db)
    logger.info('slot_deleted slot_id=%s counsellor_id=%s', slot_id, counsellor_id)
    return True
