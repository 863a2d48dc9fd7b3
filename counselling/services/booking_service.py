from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.orm import Session, joinedload

from counselling.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from counselling.core.time_provider import TimeProvider, default_time_provider
from counselling.db import commit_or_raise
from counselling.models import Appointment, AppointmentStatus, Role, TimeSlot, User
from counselling.services.availability_service import serialize_slot
from counselling.services.counsellor_service import get_counsellor_row


logger = logging.getLogger(__name__)


def slot_weekday(target_date: date) -> int:
    """Weekday in the slot convention: 0 = Sunday ... 6 = Saturday."""
    return (target_date.weekday() + 1) % 7


def serialize_appointment(row: Appointment) -> dict:
    data = {
        'id': row.id,
        'student_id': row.student_id,
        'counsellor_id': row.counsellor_id,
        'time_slot_id': row.time_slot_id,
        'appointment_date': row.appointment_date.isoformat(),
        'status': row.status,
        'created_at': row.created_at.isoformat() if row.created_at else None,
    }
    if row.counsellor is not None:
        data['counsellor'] = {
            'id': row.counsellor.id,
            'name': row.counsellor.name,
            'specialization': row.counsellor.specialization,
        }
    if row.student is not None:
        data['student'] = {
            'id': row.student.id,
            'anonymous_username': row.student.anonymous_username,
        }
    data['time_slot'] = serialize_slot(row.time_slot) if row.time_slot is not None else None
    return data


def _lock_student(db: Session, student_id: int) -> User:
    student = (
        db.query(User)
        .filter(User.id == student_id, User.role == Role.STUDENT.value)
        .with_for_update()
        .first()
    )
    if not student:
        raise NotFoundError('Student not found')
    return student


def active_appointment_for_student(db: Session, student_id: int, today: date) -> Appointment | None:
    return (
        db.query(Appointment)
        .filter(
            Appointment.student_id == student_id,
            Appointment.status == AppointmentStatus.SCHEDULED.value,
            Appointment.appointment_date >= today,
        )
        .order_by(Appointment.appointment_date.asc())
        .first()
    )


def book_appointment(
    db: Session,
    student_id: int,
    counsellor_id: int,
    time_slot_id: int,
    appointment_date: date,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> Appointment:
    today = time_provider.today()
    try:
        _lock_student(db, student_id)
        if appointment_date < today:
            raise ValidationError('Appointment date must be today or later')

        if active_appointment_for_student(db, student_id, today):
            logger.info('booking_conflict_existing student_id=%s', student_id)
            raise ConflictError('You already have a scheduled appointment')

        get_counsellor_row(db, counsellor_id)
        slot = db.query(TimeSlot).filter(TimeSlot.id == time_slot_id).first()
        if not slot or slot.counsellor_id != counsellor_id:
            raise NotFoundError('Time slot not found')
        if not slot.is_available:
            raise ValidationError('Time slot is not available')
        if slot.day_of_week != slot_weekday(appointment_date):
            raise ValidationError('Appointment date does not fall on the time slot day')

        taken = (
            db.query(Appointment.id)
            .filter(
                Appointment.time_slot_id == slot.id,
                Appointment.appointment_date == appointment_date,
                Appointment.status == AppointmentStatus.SCHEDULED.value,
            )
            .first()
        )
        if taken:
            logger.info('booking_conflict_slot_taken slot_id=%s date=%s', slot.id, appointment_date.isoformat())
            raise ConflictError('This time slot is already booked for that date')
    except Exception:
        db.rollback()
        raise

    row = Appointment(
        student_id=student_id,
        counsellor_id=counsellor_id,
        time_slot_id=slot.id,
        appointment_date=appointment_date,
        status=AppointmentStatus.SCHEDULED.value,
    )
    db.add(row)
    commit_or_raise(db)
    db.refresh(row)
    logger.info(
        'appointment_booked appointment_id=%s student_id=%s counsellor_id=%s date=%s',
        row.id,
        student_id,
        counsellor_id,
        appointment_date.isoformat(),
    )
    return row


def _load_appointment(db: Session, appointment_id: int) -> Appointment | None:
    return (
        db.query(Appointment)
        .options(joinedload(Appointment.counsellor), joinedload(Appointment.student), joinedload(Appointment.time_slot))
        .filter(Appointment.id == appointment_id)
        .first()
    )


def cancel_appointment(db: Session, requester_id: int, requester_role: str, appointment_id: int) -> Appointment:
    row = db.query(Appointment).filter(Appointment.id == appointment_id).with_for_update().first()
    if not row:
        raise NotFoundError('Appointment not found')

    role = (requester_role or '').lower()
    if role == Role.STUDENT.value:
        allowed = row.student_id == requester_id
    elif role == Role.COUNSELLOR.value:
        allowed = row.counsellor_id == requester_id
    else:
        allowed = role == Role.MANAGEMENT.value
    if not allowed:
        db.rollback()
        raise ForbiddenError('Not authorized')

    if row.status == AppointmentStatus.COMPLETED.value:
        db.rollback()
        raise ConflictError('Completed appointments cannot be cancelled')
    if row.status != AppointmentStatus.CANCELLED.value:
        row.status = AppointmentStatus.CANCELLED.value
        commit_or_raise(db)
        logger.info('appointment_cancelled appointment_id=%s by_role=%s by_user=%s', row.id, role, requester_id)
    else:
        db.rollback()
    return _load_appointment(db, appointment_id)


def list_my_appointments(db: Session, user_id: int, role: str) -> list[Appointment]:
    query = db.query(Appointment).options(
        joinedload(Appointment.counsellor),
        joinedload(Appointment.student),
        joinedload(Appointment.time_slot),
    )
    normalized = (role or '').lower()
    if normalized == Role.STUDENT.value:
        query = query.filter(Appointment.student_id == user_id)
    elif normalized == Role.COUNSELLOR.value:
        query = query.filter(Appointment.counsellor_id == user_id)
    elif normalized != Role.MANAGEMENT.value:
        return []
    return query.order_by(Appointment.appointment_date.desc(), Appointment.id.desc()).all()
