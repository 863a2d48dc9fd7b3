from __future__ import annotations

import logging

from sqlalchemy import exists
from sqlalchemy.orm import Session

from counselling.core.errors import NotFoundError
from counselling.db import flush_or_raise
from counselling.models import CounsellingSession, Role, User


logger = logging.getLogger(__name__)


def serialize_counsellor(user: User) -> dict:
    return {
        'id': user.id,
        'name': user.name,
        'specialization': user.specialization,
        'is_active': bool(user.is_active),
    }


def has_open_session(db: Session, counsellor_id: int) -> bool:
    return bool(
        db.query(
            exists().where(
                CounsellingSession.counsellor_id == counsellor_id,
                CounsellingSession.end_time.is_(None),
            )
        ).scalar()
    )


def refresh_counsellor_activity(db: Session, counsellor_id: int, *, conflict_message: str = 'Record already exists') -> bool:
    """Recompute ``users.is_active`` from open sessions; runs inside the caller's transaction."""
    counsellor = db.query(User).filter(User.id == counsellor_id).first()
    if not counsellor:
        raise NotFoundError('Counsellor not found')
    flush_or_raise(db, conflict_message=conflict_message)
    active = has_open_session(db, counsellor_id)
    if bool(counsellor.is_active) != active:
        logger.info('counsellor_activity_changed counsellor_id=%s is_active=%s', counsellor_id, active)
    counsellor.is_active = active
    return active


def get_counsellor_row(db: Session, counsellor_id: int, *, for_update: bool = False) -> User:
    query = db.query(User).filter(User.id == counsellor_id, User.role == Role.COUNSELLOR.value)
    if for_update:
        query = query.with_for_update()
    counsellor = query.first()
    if not counsellor:
        raise NotFoundError('Counsellor not found')
    return counsellor


def list_counsellors(db: Session) -> list[dict]:
    rows = (
        db.query(User)
        .filter(User.role == Role.COUNSELLOR.value)
        .order_by(User.name.asc(), User.id.asc())
        .all()
    )
    return [serialize_counsellor(row) for row in rows]


def get_counsellor(db: Session, counsellor_id: int) -> dict:
    return serialize_counsellor(get_counsellor_row(db, counsellor_id))
