from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from counselling.core.router_guard import require_auth_user, require_role
from counselling.db import get_db
from counselling.models import Role
from counselling.request_context import EndpointNameRoute
from counselling.schemas import MoodLogRequest
from counselling.services.mood_service import get_today_mood, list_month_moods, list_moods, log_mood, serialize_mood


router = APIRouter(prefix='/api/moods', tags=['Moods'], route_class=EndpointNameRoute)


def _require_student(request: Request, db: Session) -> dict:
    user = require_auth_user(request, db)
    require_role(user, {Role.STUDENT.value})
    return user


@router.get('')
def get_all(request: Request, db: Session = Depends(get_db)):
    user = _require_student(request, db)
    rows = list_moods(db, user['user_id'])
    return {'success': True, 'count': len(rows), 'data': [serialize_mood(row) for row in rows]}


@router.post('')
def log(payload: MoodLogRequest, request: Request, db: Session = Depends(get_db)):
    user = _require_student(request, db)
    row, created = log_mood(
        db,
        user['user_id'],
        mood_date=payload.mood_date,
        mood_level=payload.mood_level,
        mood_emoji=payload.mood_emoji,
        note=payload.note,
    )
    return JSONResponse(status_code=201 if created else 200, content={'success': True, 'data': serialize_mood(row)})


@router.get('/month')
def month(request: Request, db: Session = Depends(get_db)):
    user = _require_student(request, db)
    rows = list_month_moods(db, user['user_id'])
    return {'success': True, 'count': len(rows), 'data': [serialize_mood(row) for row in rows]}


@router.get('/today')
def today(request: Request, db: Session = Depends(get_db)):
    user = _require_student(request, db)
    row = get_today_mood(db, user['user_id'])
    return {'success': True, 'data': serialize_mood(row) if row else None}
