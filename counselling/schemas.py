from datetime import date
from typing import Literal

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    email: str
    password: str
    role: Literal['student', 'counsellor', 'management'] = 'student'
    name: str = ''
    specialization: str | None = None


class LoginRequest(BaseModel):
    email: str
    password: str


class OnboardingRequest(BaseModel):
    year: str = Field(min_length=1, max_length=20)
    department: str = Field(min_length=1, max_length=120)


class TimeSlotCreateRequest(BaseModel):
    day_of_week: int = Field(alias='dayOfWeek', ge=0, le=6)
    start_time: str = Field(alias='startTime')
    end_time: str = Field(alias='endTime')

    model_config = {'populate_by_name': True}


class TimeSlotAvailabilityRequest(BaseModel):
    is_available: bool = Field(alias='isAvailable')

    model_config = {'populate_by_name': True}


class AppointmentCreateRequest(BaseModel):
    counsellor_id: int = Field(alias='counsellorId')
    time_slot_id: int = Field(alias='timeSlotId')
    appointment_date: date = Field(alias='appointmentDate')

    model_config = {'populate_by_name': True}


class SessionStartRequest(BaseModel):
    student_id: int | None = Field(default=None, alias='studentId')
    qr_secret: str | None = Field(default=None, alias='qrSecret')
    appointment_id: int | None = Field(default=None, alias='appointmentId')

    model_config = {'populate_by_name': True}


class SessionEndRequest(BaseModel):
    notes: str = ''
    severity: Literal['low', 'moderate', 'high'] | None = None


class JournalWriteRequest(BaseModel):
    title: str = Field(default='', max_length=200)
    content: str = ''
    mood: str | None = None


class MoodLogRequest(BaseModel):
    mood_date: date = Field(alias='date')
    mood_level: int = Field(alias='moodLevel', ge=1, le=5)
    mood_emoji: str = Field(default='', alias='moodEmoji', max_length=16)
    note: str = ''

    model_config = {'populate_by_name': True}
