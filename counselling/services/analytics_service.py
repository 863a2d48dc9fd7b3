from __future__ import annotations

from collections import OrderedDict

from sqlalchemy import func
from sqlalchemy.orm import Session

from counselling.models import CounsellingSession, Role, Severity, User


_UNKNOWN = 'Unknown'


def _empty_bucket() -> dict:
    return {'total': 0, 'high': 0, 'moderate': 0, 'low': 0}


def _group_by_student_field(db: Session, column) -> dict:
    rows = (
        db.query(column, CounsellingSession.severity, func.count(CounsellingSession.id))
        .join(User, User.id == CounsellingSession.student_id)
        .group_by(column, CounsellingSession.severity)
        .all()
    )
    stats: dict[str, dict] = {}
    for bucket, severity, count in rows:
        key = str(bucket).strip() if bucket is not None and str(bucket).strip() else _UNKNOWN
        entry = stats.setdefault(key, _empty_bucket())
        entry['total'] += int(count)
        if severity in entry:
            entry[severity] += int(count)
    return stats


def sessions_by_department(db: Session) -> dict:
    return _group_by_student_field(db, User.department)


def sessions_by_year(db: Session) -> dict:
    return _group_by_student_field(db, User.year)


def severity_distribution(db: Session) -> dict:
    stats = _empty_bucket()
    for severity, count in (
        db.query(CounsellingSession.severity, func.count(CounsellingSession.id))
        .group_by(CounsellingSession.severity)
        .all()
    ):
        stats['total'] += int(count)
        if severity in (Severity.HIGH.value, Severity.MODERATE.value, Severity.LOW.value):
            stats[severity] += int(count)
    return stats


def session_volume(db: Session) -> dict:
    volume: OrderedDict[str, int] = OrderedDict()
    for (created_at,) in db.query(CounsellingSession.created_at).order_by(CounsellingSession.created_at.asc()).all():
        if created_at is None:
            continue
        month = created_at.strftime('%Y-%m')
        volume[month] = volume.get(month, 0) + 1
    return dict(volume)


def overview(db: Session) -> dict:
    total_sessions = db.query(func.count(CounsellingSession.id)).scalar() or 0
    total_students = db.query(func.count(User.id)).filter(User.role == Role.STUDENT.value).scalar() or 0
    total_counsellors = db.query(func.count(User.id)).filter(User.role == Role.COUNSELLOR.value).scalar() or 0
    # Counted from open sessions rather than the stored flag.
    active_counsellors = (
        db.query(func.count(func.distinct(CounsellingSession.counsellor_id)))
        .filter(CounsellingSession.end_time.is_(None))
        .scalar()
        or 0
    )
    return {
        'total_sessions': int(total_sessions),
        'total_students': int(total_students),
        'total_counsellors': int(total_counsellors),
        'active_counsellors': int(active_counsellors),
    }
