from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.orm import Session

from counselling.core.errors import ValidationError
from counselling.core.time_provider import TimeProvider, default_time_provider
from counselling.db import commit_or_raise
from counselling.models import Mood


logger = logging.getLogger(__name__)
HISTORY_LIMIT = 90


def serialize_mood(row: Mood) -> dict:
    return {
        'id': row.id,
        'student_id': row.student_id,
        'date': row.date.isoformat(),
        'mood_level': row.mood_level,
        'mood_emoji': row.mood_emoji,
        'note': row.note,
    }


def log_mood(
    db: Session,
    student_id: int,
    mood_date: date,
    mood_level: int,
    mood_emoji: str = '',
    note: str = '',
) -> tuple[Mood, bool]:
    """Upsert the student's mood for ``mood_date``. Returns ``(row, created)``."""
    if not 1 <= int(mood_level) <= 5:
        raise ValidationError('mood_level must be between 1 and 5')
    row = (
        db.query(Mood)
        .filter(Mood.student_id == student_id, Mood.date == mood_date)
        .with_for_update()
        .first()
    )
    created = row is None
    if created:
        row = Mood(student_id=student_id, date=mood_date)
        db.add(row)
    row.mood_level = int(mood_level)
    row.mood_emoji = mood_emoji or ''
    row.note = note or ''
    commit_or_raise(db, conflict_message='Mood already logged for this date, please retry')
    db.refresh(row)
    logger.info('mood_logged student_id=%s date=%s created=%s', student_id, mood_date.isoformat(), created)
    return row, created


def list_moods(db: Session, student_id: int, limit: int = HISTORY_LIMIT) -> list[Mood]:
    return (
        db.query(Mood)
        .filter(Mood.student_id == student_id)
        .order_by(Mood.date.desc())
        .limit(limit)
        .all()
    )


def list_month_moods(db: Session, student_id: int, *, time_provider: TimeProvider = default_time_provider) -> list[Mood]:
    start_of_month = time_provider.today().replace(day=1)
    return (
        db.query(Mood)
        .filter(Mood.student_id == student_id, Mood.date >= start_of_month)
        .order_by(Mood.date.asc())
        .all()
    )


def get_today_mood(db: Session, student_id: int, *, time_provider: TimeProvider = default_time_provider) -> Mood | None:
    return (
        db.query(Mood)
        .filter(Mood.student_id == student_id, Mood.date == time_provider.today())
        .first()
    )
