from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from counselling.core.router_guard import require_auth_user, require_role
from counselling.db import get_db
from counselling.models import Role
from counselling.request_context import EndpointNameRoute
from counselling.schemas import SessionEndRequest, SessionStartRequest
from counselling.services.session_service import (
    end_session,
    get_session,
    get_session_row,
    list_sessions,
    list_student_history,
    serialize_session,
    start_session,
)


router = APIRouter(prefix='/api/sessions', tags=['Sessions'], route_class=EndpointNameRoute)


@router.get('')
def get_all(request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request, db)
    rows = list_sessions(db, user['user_id'], user['role'])
    return {'success': True, 'count': len(rows), 'data': [serialize_session(row) for row in rows]}


@router.get('/students/{student_id}')
def student_history(student_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request, db)
    require_role(user, {Role.COUNSELLOR.value})
    rows = list_student_history(db, user['user_id'], student_id)
    return {'success': True, 'count': len(rows), 'data': [serialize_session(row) for row in rows]}


@router.get('/{session_id}')
def get_one(session_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request, db)
    row = get_session(db, user['user_id'], user['role'], session_id)
    return {'success': True, 'data': serialize_session(row)}


@router.post('/start', status_code=201)
def start(payload: SessionStartRequest, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request, db)
    require_role(user, {Role.COUNSELLOR.value})
    row = start_session(
        db,
        counsellor_id=user['user_id'],
        student_id=payload.student_id,
        appointment_id=payload.appointment_id,
        qr_secret=payload.qr_secret,
    )
    return {'success': True, 'data': serialize_session(get_session_row(db, row.id))}


@router.post('/{session_id}/end')
def end(session_id: int, payload: SessionEndRequest, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request, db)
    require_role(user, {Role.COUNSELLOR.value})
    row = end_session(
        db,
        counsellor_id=user['user_id'],
        session_id=session_id,
        notes=payload.notes,
        severity=payload.severity,
    )
    return {'success': True, 'data': serialize_session(row)}
