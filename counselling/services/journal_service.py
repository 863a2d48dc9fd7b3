from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from counselling.core.errors import NotFoundError
from counselling.db import commit_or_raise
from counselling.models import Journal


logger = logging.getLogger(__name__)


def serialize_journal(row: Journal) -> dict:
    return {
        'id': row.id,
        'student_id': row.student_id,
        'title': row.title,
        'content': row.content,
        'mood': row.mood,
        'created_at': row.created_at.isoformat() if row.created_at else None,
        'updated_at': row.updated_at.isoformat() if row.updated_at else None,
    }


def list_journals(db: Session, student_id: int) -> list[Journal]:
    return (
        db.query(Journal)
        .filter(Journal.student_id == student_id)
        .order_by(Journal.created_at.desc(), Journal.id.desc())
        .all()
    )


def create_journal(db: Session, student_id: int, title: str, content: str, mood: str | None = None) -> Journal:
    row = Journal(student_id=student_id, title=(title or '').strip(), content=content or '', mood=mood)
    db.add(row)
    commit_or_raise(db)
    db.refresh(row)
    logger.info('journal_created journal_id=%s student_id=%s', row.id, student_id)
    return row


def _owned_journal(db: Session, student_id: int, journal_id: int) -> Journal:
    row = db.query(Journal).filter(Journal.id == journal_id, Journal.student_id == student_id).first()
    if not row:
        raise NotFoundError('Journal not found')
    return row


def update_journal(
    db: Session,
    student_id: int,
    journal_id: int,
    title: str,
    content: str,
    mood: str | None = None,
) -> Journal:
    row = _owned_journal(db, student_id, journal_id)
    row.title = (title or '').strip()
    row.content = content or ''
    row.mood = mood
    commit_or_raise(db)
    db.refresh(row)
    return row


def delete_journal(db: Session, student_id: int, journal_id: int) -> None:
    row = _owned_journal(db, student_id, journal_id)
    db.delete(row)
    commit_or_raise(db)
    logger.info('journal_deleted journal_id=%s student_id=%s', journal_id, student_id)
