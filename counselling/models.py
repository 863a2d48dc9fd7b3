from datetime import date, datetime
from enum import Enum

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from counselling.core.time_provider import default_time_provider
from counselling.db import Base


_now = default_time_provider.naive_now


class Role(str, Enum):
    STUDENT = 'student'
    COUNSELLOR = 'counsellor'
    MANAGEMENT = 'management'


class AppointmentStatus(str, Enum):
    SCHEDULED = 'scheduled'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


class Severity(str, Enum):
    LOW = 'low'
    MODERATE = 'moderate'
    HIGH = 'high'


class User(Base):
    __tablename__ = 'users'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), default='')
    role: Mapped[str] = mapped_column(String(20), default=Role.STUDENT.value, index=True)
    name: Mapped[str] = mapped_column(String(120), default='')
    is_onboarded: Mapped[bool] = mapped_column(Boolean, default=False)
    # Projection of "has an open session"; recomputed by counsellor_service, never set directly.
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    department: Mapped[str | None] = mapped_column(String(120), nullable=True, index=True)
    year: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    specialization: Mapped[str | None] = mapped_column(String(160), nullable=True)
    anonymous_username: Mapped[str | None] = mapped_column(String(20), unique=True, nullable=True)
    qr_secret: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now, index=True)

    time_slots: Mapped[list['TimeSlot']] = relationship('TimeSlot', back_populates='counsellor')


class TimeSlot(Base):
    __tablename__ = 'time_slots'
    __table_args__ = (
        UniqueConstraint('counsellor_id', 'day_of_week', 'start_time', name='uq_time_slots_counsellor_day_start'),
        Index('ix_time_slots_counsellor_available', 'counsellor_id', 'is_available'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    counsellor_id: Mapped[int] = mapped_column(ForeignKey('users.id'), index=True)
    # 0 = Sunday ... 6 = Saturday, the convention the mobile client sends.
    day_of_week: Mapped[int] = mapped_column(Integer)
    start_time: Mapped[str] = mapped_column(String(5))
    end_time: Mapped[str] = mapped_column(String(5))
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    counsellor: Mapped['User'] = relationship('User', back_populates='time_slots')


class Appointment(Base):
    __tablename__ = 'appointments'
    __table_args__ = (
        Index('ix_appointments_student_status_date', 'student_id', 'status', 'appointment_date'),
        Index('ix_appointments_slot_date_status', 'time_slot_id', 'appointment_date', 'status'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey('users.id'), index=True)
    counsellor_id: Mapped[int] = mapped_column(ForeignKey('users.id'), index=True)
    time_slot_id: Mapped[int | None] = mapped_column(ForeignKey('time_slots.id'), nullable=True, index=True)
    appointment_date: Mapped[date] = mapped_column(Date, index=True)
    status: Mapped[str] = mapped_column(String(20), default=AppointmentStatus.SCHEDULED.value, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now, onupdate=_now)

    student: Mapped['User'] = relationship('User', foreign_keys=[student_id])
    counsellor: Mapped['User'] = relationship('User', foreign_keys=[counsellor_id])
    time_slot: Mapped['TimeSlot | None'] = relationship('TimeSlot')


class CounsellingSession(Base):
    __tablename__ = 'sessions'
    __table_args__ = (
        Index(
            'uq_sessions_open_per_counsellor',
            'counsellor_id',
            unique=True,
            sqlite_where=text('end_time IS NULL'),
            postgresql_where=text('end_time IS NULL'),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey('users.id'), index=True)
    counsellor_id: Mapped[int] = mapped_column(ForeignKey('users.id'), index=True)
    appointment_id: Mapped[int | None] = mapped_column(ForeignKey('appointments.id'), nullable=True, index=True)
    start_time: Mapped[datetime] = mapped_column(DateTime)
    end_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    qr_scan_in_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    qr_scan_out_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    notes: Mapped[str] = mapped_column(Text, default='')
    severity: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now, index=True)

    student: Mapped['User'] = relationship('User', foreign_keys=[student_id])
    counsellor: Mapped['User'] = relationship('User', foreign_keys=[counsellor_id])
    appointment: Mapped['Appointment | None'] = relationship('Appointment')

    @property
    def is_open(self) -> bool:
        return self.end_time is None


class Journal(Base):
    __tablename__ = 'journals'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey('users.id'), index=True)
    title: Mapped[str] = mapped_column(String(200), default='')
    content: Mapped[str] = mapped_column(Text, default='')
    mood: Mapped[str | None] = mapped_column(String(40), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now, onupdate=_now)


class Mood(Base):
    __tablename__ = 'moods'
    __table_args__ = (
        UniqueConstraint('student_id', 'date', name='uq_moods_student_date'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey('users.id'), index=True)
    date: Mapped[date] = mapped_column(Date, index=True)
    mood_level: Mapped[int] = mapped_column(Integer)
    mood_emoji: Mapped[str] = mapped_column(String(16), default='')
    note: Mapped[str] = mapped_column(Text, default='')
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)


class RateLimitState(Base):
    __tablename__ = 'rate_limit_states'
    __table_args__ = (
        UniqueConstraint('scope_type', 'scope_key', 'action_name', name='uq_rate_limit_scope_action'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    scope_type: Mapped[str] = mapped_column(String(20), default='user', index=True)
    scope_key: Mapped[str] = mapped_column(String(255), default='', index=True)
    action_name: Mapped[str] = mapped_column(String(80), default='', index=True)
    window_start: Mapped[datetime] = mapped_column(DateTime, default=_now, index=True)
    request_count: Mapped[int] = mapped_column(Integer, default=0)


class RevokedToken(Base):
    __tablename__ = 'revoked_tokens'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    jti: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id'), index=True)
    # Purged by clear_session_token once past expires_at.
    expires_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
