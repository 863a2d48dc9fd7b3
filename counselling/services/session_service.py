from __future__ import annotations

import logging

from sqlalchemy.orm import Session, joinedload

from counselling.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from counselling.core.time_provider import TimeProvider, default_time_provider
from counselling.db import commit_or_raise
from counselling.models import Appointment, AppointmentStatus, CounsellingSession, Role, Severity, User
from counselling.services.counsellor_service import get_counsellor_row, has_open_session, refresh_counsellor_activity


logger = logging.getLogger(__name__)
_SEVERITIES = {item.value for item in Severity}


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def serialize_session(row: CounsellingSession) -> dict:
    data = {
        'id': row.id,
        'student_id': row.student_id,
        'counsellor_id': row.counsellor_id,
        'appointment_id': row.appointment_id,
        'start_time': _iso(row.start_time),
        'end_time': _iso(row.end_time),
        'qr_scan_in_time': _iso(row.qr_scan_in_time),
        'qr_scan_out_time': _iso(row.qr_scan_out_time),
        'notes': row.notes or '',
        'severity': row.severity,
        'status': 'open' if row.is_open else 'closed',
        'created_at': _iso(row.created_at),
    }
    if row.start_time is not None and row.end_time is not None:
        data['duration_minutes'] = int((row.end_time - row.start_time).total_seconds() // 60)
    if row.student is not None:
        data['student'] = {
            'id': row.student.id,
            'anonymous_username': row.student.anonymous_username,
            'department': row.student.department,
            'year': row.student.year,
        }
    if row.counsellor is not None:
        data['counsellor'] = {
            'id': row.counsellor.id,
            'name': row.counsellor.name,
            'specialization': row.counsellor.specialization,
        }
    return data


def _with_people(query):
    return query.options(joinedload(CounsellingSession.student), joinedload(CounsellingSession.counsellor))


def _resolve_student(db: Session, student_id: int | None, qr_secret: str | None) -> User:
    query = db.query(User).filter(User.role == Role.STUDENT.value)
    if student_id:
        student = query.filter(User.id == student_id).first()
    elif qr_secret and qr_secret.strip():
        student = query.filter(User.qr_secret == qr_secret.strip()).first()
    else:
        raise ValidationError('studentId or qrSecret is required')
    if not student:
        raise NotFoundError('Student not found')
    return student


def start_session(
    db: Session,
    counsellor_id: int,
    student_id: int | None = None,
    appointment_id: int | None = None,
    *,
    qr_secret: str | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> CounsellingSession:
    try:
        # Serializes start/end for one counsellor until commit or rollback.
        get_counsellor_row(db, counsellor_id, for_update=True)
        student = _resolve_student(db, student_id, qr_secret)

        if has_open_session(db, counsellor_id):
            logger.info('session_start_conflict counsellor_id=%s', counsellor_id)
            raise ConflictError('You already have a session in progress')

        if appointment_id:
            appointment = db.query(Appointment).filter(Appointment.id == appointment_id).with_for_update().first()
            if not appointment or appointment.counsellor_id != counsellor_id or appointment.student_id != student.id:
                raise NotFoundError('Appointment not found')
            if appointment.status != AppointmentStatus.SCHEDULED.value:
                raise ConflictError(f'Appointment is {appointment.status}')
    except Exception:
        db.rollback()
        raise

    now = time_provider.naive_now()
    row = CounsellingSession(
        student_id=student.id,
        counsellor_id=counsellor_id,
        appointment_id=appointment_id or None,
        start_time=now,
        qr_scan_in_time=now,
        end_time=None,
    )
    db.add(row)
    # The open-session partial index rejects a racing second start here.
    refresh_counsellor_activity(db, counsellor_id, conflict_message='You already have a session in progress')
    commit_or_raise(db, conflict_message='You already have a session in progress')
    db.refresh(row)
    logger.info(
        'session_started session_id=%s counsellor_id=%s student_id=%s appointment_id=%s',
        row.id,
        counsellor_id,
        student.id,
        appointment_id,
    )
    return row


def end_session(
    db: Session,
    counsellor_id: int,
    session_id: int,
    notes: str = '',
    severity: str | None = None,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> CounsellingSession:
    if severity is not None and severity not in _SEVERITIES:
        raise ValidationError('severity must be one of: low, moderate, high')
    try:
        get_counsellor_row(db, counsellor_id, for_update=True)
        # Ownership is part of the lookup: another counsellor's session reads as missing.
        row = (
            db.query(CounsellingSession)
            .filter(CounsellingSession.id == session_id, CounsellingSession.counsellor_id == counsellor_id)
            .with_for_update()
            .first()
        )
        if not row:
            raise NotFoundError('Session not found')
        if not row.is_open:
            raise ConflictError('Session already ended')
    except Exception:
        db.rollback()
        raise

    now = time_provider.naive_now()
    row.end_time = now
    row.qr_scan_out_time = now
    row.notes = notes or ''
    row.severity = severity

    if row.appointment_id:
        appointment = db.query(Appointment).filter(Appointment.id == row.appointment_id).first()
        if appointment and appointment.status == AppointmentStatus.SCHEDULED.value:
            appointment.status = AppointmentStatus.COMPLETED.value

    refresh_counsellor_activity(db, counsellor_id)
    commit_or_raise(db)
    logger.info(
        'session_ended session_id=%s counsellor_id=%s severity=%s appointment_id=%s',
        row.id,
        counsellor_id,
        severity,
        row.appointment_id,
    )
    return get_session_row(db, row.id)


def get_session_row(db: Session, session_id: int) -> CounsellingSession | None:
    return _with_people(db.query(CounsellingSession)).filter(CounsellingSession.id == session_id).first()


def get_session(db: Session, requester_id: int, requester_role: str, session_id: int) -> CounsellingSession:
    row = get_session_row(db, session_id)
    if not row:
        raise NotFoundError('Session not found')
    role = (requester_role or '').lower()
    if role == Role.STUDENT.value and row.student_id != requester_id:
        raise ForbiddenError('Not authorized')
    if role == Role.COUNSELLOR.value and row.counsellor_id != requester_id:
        raise ForbiddenError('Not authorized')
    if role not in (Role.STUDENT.value, Role.COUNSELLOR.value, Role.MANAGEMENT.value):
        raise ForbiddenError('Not authorized')
    return row


def list_sessions(db: Session, requester_id: int, requester_role: str) -> list[CounsellingSession]:
    query = _with_people(db.query(CounsellingSession))
    role = (requester_role or '').lower()
    if role == Role.STUDENT.value:
        query = query.filter(CounsellingSession.student_id == requester_id)
    elif role == Role.COUNSELLOR.value:
        query = query.filter(CounsellingSession.counsellor_id == requester_id)
    elif role != Role.MANAGEMENT.value:
        return []
    return query.order_by(CounsellingSession.created_at.desc(), CounsellingSession.id.desc()).all()


def list_student_history(db: Session, counsellor_id: int, student_id: int) -> list[CounsellingSession]:
    return (
        _with_people(db.query(CounsellingSession))
        .filter(CounsellingSession.counsellor_id == counsellor_id, CounsellingSession.student_id == student_id)
        .order_by(CounsellingSession.start_time.desc(), CounsellingSession.id.desc())
        .all()
    )
